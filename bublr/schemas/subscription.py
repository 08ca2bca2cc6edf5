import enum
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

# Vendor spellings folded onto one vocabulary
_STATUS_ALIASES = {
    "canceled": "cancelled",
    "on_trial": "trialing",
    "trial": "trialing",
    "unpaid": "failed",
    "missing": "none",
    "": "none",
}


class SubscriptionStatus(str, enum.Enum):
    NONE = "none"
    ACTIVE = "active"
    TRIALING = "trialing"
    ON_HOLD = "on_hold"
    PAST_DUE = "past_due"
    PAUSED = "paused"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    FAILED = "failed"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            key = value.strip().lower()
            key = _STATUS_ALIASES.get(key, key)
            for member in cls:
                if member.value == key:
                    return member
        return cls.UNKNOWN


# Paid-up states
PAYING_STATUSES = frozenset({SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING})
# States that stay servable only until the grace period ends
GRACE_STATUSES = frozenset({SubscriptionStatus.ON_HOLD, SubscriptionStatus.PAST_DUE})


class BillingStatus(BaseModel):
    """What the billing provider says about one subscription."""

    active: bool
    status: SubscriptionStatus
    customer_id: Optional[str] = None
    current_period_end: Optional[datetime] = None


class SubscriptionStatusOut(BaseModel):
    subscription_status: SubscriptionStatus
    subscription_id: Optional[str] = None
    is_active: bool
    is_past_due: bool
    grace_period_ends_at: Optional[datetime] = None
    custom_domain: Optional[str] = None
    custom_domain_status: str
    custom_domain_active: bool
    domain_verified_at: Optional[datetime] = None
