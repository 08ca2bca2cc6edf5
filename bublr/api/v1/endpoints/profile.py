"""Profile settings for the signed-in user."""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from bublr.api import deps
from bublr.errors import NameConflictError, UpstreamError, UserNotFound, ValidationError
from bublr.schemas.records import UserRecord
from bublr.services.profiles import ProfileService, ProfileUpdate

router = APIRouter()
logger = logging.getLogger("bublr.profiles")


class ProfileSettingsOut(BaseModel):
    id: str
    name: str
    display_name: Optional[str] = None
    about: Optional[str] = None
    link: Optional[str] = None


def _settings_out(user: UserRecord) -> ProfileSettingsOut:
    return ProfileSettingsOut(
        id=user.id,
        name=user.name,
        display_name=user.display_name,
        about=user.about,
        link=user.link,
    )


@router.get("", response_model=ProfileSettingsOut)
async def get_profile_settings(
    user_id: str = Depends(deps.get_current_user_id),
    service: ProfileService = Depends(deps.get_profile_service),
) -> Any:
    try:
        return _settings_out(await service.get_profile_settings(user_id))
    except UserNotFound:
        raise HTTPException(status_code=404, detail="User not found")
    except UpstreamError as e:
        logger.error("Profile lookup failed for %s: %s", user_id, e)
        raise HTTPException(status_code=503, detail="Profile storage is temporarily unavailable")


@router.put("", response_model=ProfileSettingsOut)
async def update_profile(
    body: ProfileUpdate,
    user_id: str = Depends(deps.get_current_user_id),
    service: ProfileService = Depends(deps.get_profile_service),
) -> Any:
    """Save profile edits. Renaming moves the public profile to ``/{name}``."""
    try:
        return _settings_out(await service.update_profile(user_id, body))
    except UserNotFound:
        raise HTTPException(status_code=404, detail="User not found")
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NameConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except UpstreamError as e:
        logger.error("Profile update failed for %s: %s", user_id, e)
        raise HTTPException(status_code=503, detail="Profile storage is temporarily unavailable")
