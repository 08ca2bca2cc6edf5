"""
Custom Domain API

  GET    /domain/lookup?domain=   public: which profile does a host serve?
  GET    /domain                  current user's domain and its state
  POST   /domain                  save a domain (pending)
  POST   /domain/verify           check DNS + billing, activate
  DELETE /domain                  remove the domain
"""

import logging
from datetime import datetime
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from bublr.api import deps
from bublr.models.user import DomainStatus
from bublr.services.custom_domains import (
    CustomDomainService,
    DomainActionResult,
    DomainErrorCode,
)
from bublr.services.tenant_resolver import ResolutionOutcome, TenantResolver

router = APIRouter()
logger = logging.getLogger("bublr.custom_domain")

_STATUS_FOR_CODE = {
    DomainErrorCode.INVALID: status.HTTP_400_BAD_REQUEST,
    DomainErrorCode.NO_DOMAIN: status.HTTP_400_BAD_REQUEST,
    DomainErrorCode.DNS_FAILED: status.HTTP_400_BAD_REQUEST,
    DomainErrorCode.CONFLICT: status.HTTP_409_CONFLICT,
    DomainErrorCode.SUBSCRIPTION_REQUIRED: status.HTTP_403_FORBIDDEN,
    DomainErrorCode.USER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    DomainErrorCode.UPSTREAM: status.HTTP_503_SERVICE_UNAVAILABLE,
}


# ── Schemas ──

class DomainUpdate(BaseModel):
    domain: str


class DomainStateOut(BaseModel):
    domain: Optional[str] = None
    status: DomainStatus
    active: bool
    verified_at: Optional[datetime] = None
    message: str = ""
    record_type: Optional[str] = None
    records: List[str] = []


class LookupUser(BaseModel):
    id: str
    name: str
    display_name: Optional[str] = None


class LookupOut(BaseModel):
    active: bool
    user: LookupUser


# ── Helpers ──

def _to_response(result: DomainActionResult) -> DomainStateOut:
    if not result.ok:
        raise HTTPException(
            status_code=_STATUS_FOR_CODE.get(result.code, status.HTTP_400_BAD_REQUEST),
            detail={"code": result.code.value if result.code else None, "message": result.message},
        )
    verification = result.verification
    return DomainStateOut(
        domain=result.domain,
        status=result.status,
        active=result.status == DomainStatus.ACTIVE,
        verified_at=result.verified_at,
        message=result.message,
        record_type=verification.record_type if verification else None,
        records=verification.records if verification else [],
    )


# ── Endpoints ──

@router.get("/lookup", response_model=LookupOut)
async def lookup_domain(
    domain: str = Query(..., min_length=1),
    resolver: TenantResolver = Depends(deps.get_resolver),
) -> Any:
    """Resolve a host to the profile it serves; 404 unless servable."""
    resolution = await resolver.resolve_tenant(domain)
    if resolution.outcome == ResolutionOutcome.UPSTREAM_ERROR:
        raise HTTPException(status_code=503, detail="Domain lookup is temporarily unavailable")
    if not resolution.servable:
        raise HTTPException(status_code=404, detail="Domain not found")
    user = resolution.user
    return LookupOut(
        active=True,
        user=LookupUser(id=user.id, name=user.name, display_name=user.display_name),
    )


@router.get("", response_model=DomainStateOut)
async def get_domain(
    user_id: str = Depends(deps.get_current_user_id),
    service: CustomDomainService = Depends(deps.get_domain_service),
) -> Any:
    return _to_response(await service.get_status(user_id))


@router.post("", response_model=DomainStateOut)
async def set_domain(
    body: DomainUpdate,
    user_id: str = Depends(deps.get_current_user_id),
    service: CustomDomainService = Depends(deps.get_domain_service),
) -> Any:
    return _to_response(await service.set_domain(user_id, body.domain))


@router.post("/verify", response_model=DomainStateOut)
async def verify_domain(
    user_id: str = Depends(deps.get_current_user_id),
    service: CustomDomainService = Depends(deps.get_domain_service),
) -> Any:
    return _to_response(await service.verify_domain(user_id))


@router.delete("", response_model=DomainStateOut)
async def remove_domain(
    user_id: str = Depends(deps.get_current_user_id),
    service: CustomDomainService = Depends(deps.get_domain_service),
) -> Any:
    return _to_response(await service.remove_domain(user_id))
