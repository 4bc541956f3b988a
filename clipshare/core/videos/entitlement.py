"""
Upload entitlement policy.

The decision is subscription-status gated: when billing is configured only
an active subscriber may create new upload slots. The caller's current
video count rides along on the decision for analytics; it does not take
part in the allow/deny predicate.
"""

from dataclasses import dataclass
from typing import Optional

from .models import Identity

ACTIVE_SUBSCRIPTION_STATUS = "active"


@dataclass(frozen=True)
class EntitlementDecision:
    allowed: bool
    video_count: int
    subscription_status: Optional[str]
    reason: str


def check_upload_entitlement(
    identity: Identity,
    current_video_count: int,
    subscription_gating_enabled: bool,
    active_status: str = ACTIVE_SUBSCRIPTION_STATUS,
) -> EntitlementDecision:
    """
    Decide whether the caller may request another upload slot.

    Gating disabled means no billing integration exists, so everyone may
    upload. Otherwise anything but the active marker is a denial,
    regardless of how many videos the caller already has.
    """
    status = identity.subscription_status

    if not subscription_gating_enabled:
        return EntitlementDecision(
            allowed=True,
            video_count=current_video_count,
            subscription_status=status,
            reason="gating_disabled",
        )

    if status == active_status:
        return EntitlementDecision(
            allowed=True,
            video_count=current_video_count,
            subscription_status=status,
            reason="active_subscription",
        )

    return EntitlementDecision(
        allowed=False,
        video_count=current_video_count,
        subscription_status=status,
        reason="inactive_subscription",
    )
