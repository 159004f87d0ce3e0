"""
Subscription Tier Control System

Decides whether a user may generate a report right now.
Free users get exactly one preview, ever. Paid users get a monthly
allowance of full streamed reports that resets on the 1st (UTC).

The gate is a pure function of the stored entitlement and the clock:
it never writes. Callers perform the counter reset it asks for, and
record usage, only after an allowed report succeeds.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union


class SubscriptionTier(str, Enum):
    """User subscription tiers"""
    FREE = "free"
    PREMIUM = "premium"
    LIFETIME = "lifetime"

    @classmethod
    def from_status(cls, status: Optional[str]) -> "SubscriptionTier":
        """Map a stored subscription status to a tier; anything unknown is FREE."""
        if not status:
            return cls.FREE
        try:
            return cls(status.strip().lower())
        except ValueError:
            return cls.FREE

    @property
    def is_paid(self) -> bool:
        return self in (SubscriptionTier.PREMIUM, SubscriptionTier.LIFETIME)


@dataclass
class TierLimits:
    """Usage limits for each tier. None means the limit does not apply."""
    lifetime_previews: Optional[int]
    monthly_reports: Optional[int]


DEFAULT_PREMIUM_MONTHLY_LIMIT = 5

TIER_CONFIG: Dict[SubscriptionTier, TierLimits] = {
    SubscriptionTier.FREE: TierLimits(
        lifetime_previews=1,
        monthly_reports=None,
    ),
    SubscriptionTier.PREMIUM: TierLimits(
        lifetime_previews=None,
        monthly_reports=DEFAULT_PREMIUM_MONTHLY_LIMIT,
    ),
    SubscriptionTier.LIFETIME: TierLimits(
        lifetime_previews=None,
        monthly_reports=DEFAULT_PREMIUM_MONTHLY_LIMIT,
    ),
}


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def same_month(a: Optional[datetime], b: datetime) -> bool:
    """True when both instants fall in the same UTC calendar month."""
    if a is None:
        return False
    a, b = _as_utc(a), _as_utc(b)
    return (a.year, a.month) == (b.year, b.month)


@dataclass
class UserEntitlement:
    """A user's stored subscription state."""
    user_id: str
    tier: SubscriptionTier = SubscriptionTier.FREE
    reports_generated_this_month: int = 0
    last_report_generated_at: Optional[datetime] = None
    has_generated_preview_ever: bool = False
    email: Optional[str] = None

    @classmethod
    def default(cls, user_id: str, email: Optional[str] = None) -> "UserEntitlement":
        """Entitlement for a user with no stored profile."""
        return cls(user_id=user_id, email=email)

    def effective_reports_this_month(self, now: datetime) -> int:
        """The counter only counts within the month of the last report."""
        if same_month(self.last_report_generated_at, now):
            return self.reports_generated_this_month
        return 0


@dataclass(frozen=True)
class Allow:
    tier: SubscriptionTier
    reports_used: int = 0
    # Stored counter belongs to an earlier month and should be zeroed
    reset_counter: bool = False


@dataclass(frozen=True)
class Deny:
    reason: str
    http_status: int
    details: Dict[str, Any] = field(default_factory=dict)

    def body(self) -> Dict[str, Any]:
        return {"error": self.reason, **self.details}


Decision = Union[Allow, Deny]


@dataclass
class EligibilitySummary:
    """Non-throwing answer to "could I generate a report now?"."""
    eligible: bool
    tier: SubscriptionTier
    reports_used: int
    limit: Optional[int]
    reason: Optional[str] = None
    upgrade_required: bool = False

    @property
    def remaining(self) -> Optional[int]:
        if self.limit is None:
            return None
        return max(0, self.limit - self.reports_used)


class EntitlementGate:
    """Authorize report generation based on tier and usage."""

    def __init__(
        self,
        premium_monthly_limit: int = DEFAULT_PREMIUM_MONTHLY_LIMIT,
        upgrade_url: str = "/pricing",
    ):
        self.premium_monthly_limit = premium_monthly_limit
        self.upgrade_url = upgrade_url

    def limits_for(self, tier: SubscriptionTier) -> TierLimits:
        limits = TIER_CONFIG[tier]
        if limits.monthly_reports is not None:
            return TierLimits(
                lifetime_previews=limits.lifetime_previews,
                monthly_reports=self.premium_monthly_limit,
            )
        return limits

    def authorize(self, entitlement: UserEntitlement, now: datetime) -> Decision:
        """
        Decide whether `entitlement` may generate a report at `now`.

        Args:
            entitlement: Stored subscription state
            now: Current time (any timezone; compared in UTC)

        Returns:
            Allow(tier) or Deny(reason, http_status)
        """
        tier = entitlement.tier

        if not tier.is_paid:
            if entitlement.has_generated_preview_ever:
                return Deny(
                    reason=(
                        "You've already generated your free preview. "
                        "Upgrade to Premium for unlimited reports."
                    ),
                    http_status=403,
                    details={"upgradeUrl": self.upgrade_url, "upgradeRequired": True},
                )
            return Allow(tier=tier)

        rolled_over = not same_month(entitlement.last_report_generated_at, now)
        used = entitlement.effective_reports_this_month(now)
        limit = self.limits_for(tier).monthly_reports

        if used >= limit:
            return Deny(
                reason=(
                    f"You've reached your Premium limit of {limit} reports this month. "
                    "Limit resets on the 1st."
                ),
                http_status=429,
                details={"reportsUsed": used, "limit": limit},
            )

        return Allow(
            tier=tier,
            reports_used=used,
            reset_counter=rolled_over and entitlement.reports_generated_this_month > 0,
        )

    def check_eligibility(self, entitlement: UserEntitlement, now: datetime) -> EligibilitySummary:
        decision = self.authorize(entitlement, now)
        tier = entitlement.tier

        if tier.is_paid:
            used = entitlement.effective_reports_this_month(now)
            limit = self.limits_for(tier).monthly_reports
        else:
            used = 1 if entitlement.has_generated_preview_ever else 0
            limit = TIER_CONFIG[tier].lifetime_previews

        if isinstance(decision, Deny):
            return EligibilitySummary(
                eligible=False,
                tier=tier,
                reports_used=used,
                limit=limit,
                reason=decision.reason,
                upgrade_required=bool(decision.details.get("upgradeRequired")),
            )
        return EligibilitySummary(eligible=True, tier=tier, reports_used=used, limit=limit)


__all__ = [
    'SubscriptionTier',
    'TierLimits',
    'TIER_CONFIG',
    'UserEntitlement',
    'Allow',
    'Deny',
    'Decision',
    'EligibilitySummary',
    'EntitlementGate',
    'same_month',
]
