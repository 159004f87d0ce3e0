"""Tests for the entitlement gate."""

from datetime import datetime, timezone

import pytest

from subscription.tier_control import (
    Allow,
    Deny,
    EntitlementGate,
    SubscriptionTier,
    UserEntitlement,
    same_month,
)

from report_fakes import NOW, premium_entitlement


class TestSubscriptionTier:

    @pytest.mark.parametrize("status,expected", [
        ("premium", SubscriptionTier.PREMIUM),
        ("Lifetime", SubscriptionTier.LIFETIME),
        ("free", SubscriptionTier.FREE),
        ("cancelled", SubscriptionTier.FREE),
        ("", SubscriptionTier.FREE),
        (None, SubscriptionTier.FREE),
    ])
    def test_from_status(self, status, expected):
        assert SubscriptionTier.from_status(status) == expected

    def test_paid_tiers(self):
        assert SubscriptionTier.PREMIUM.is_paid
        assert SubscriptionTier.LIFETIME.is_paid
        assert not SubscriptionTier.FREE.is_paid


class TestSameMonth:

    def test_same_month_across_timezones(self):
        late_feb_utc = datetime(2025, 2, 28, 23, 30, tzinfo=timezone.utc)
        # 00:30 on 1 March in UTC+1 is still February in UTC
        early_march_local = datetime.fromisoformat("2025-03-01T00:30:00+01:00")
        assert same_month(late_feb_utc, early_march_local)

    def test_naive_treated_as_utc(self):
        assert same_month(datetime(2025, 3, 1), NOW)

    def test_year_matters(self):
        assert not same_month(datetime(2024, 3, 20, tzinfo=timezone.utc), NOW)

    def test_missing_timestamp(self):
        assert not same_month(None, NOW)


class TestFreeTier:

    def test_first_preview_allowed(self):
        decision = EntitlementGate().authorize(UserEntitlement.default("u1"), NOW)
        assert isinstance(decision, Allow)
        assert decision.tier == SubscriptionTier.FREE

    def test_second_preview_denied(self):
        entitlement = UserEntitlement(user_id="u1", has_generated_preview_ever=True)
        decision = EntitlementGate().authorize(entitlement, NOW)

        assert isinstance(decision, Deny)
        assert decision.http_status == 403
        body = decision.body()
        assert body["upgradeRequired"] is True
        assert body["upgradeUrl"] == "/pricing"
        assert "free preview" in body["error"]

    def test_upgrade_url_configurable(self):
        entitlement = UserEntitlement(user_id="u1", has_generated_preview_ever=True)
        decision = EntitlementGate(upgrade_url="/upgrade").authorize(entitlement, NOW)
        assert decision.body()["upgradeUrl"] == "/upgrade"


class TestPremiumTier:

    def test_under_limit_allowed(self):
        decision = EntitlementGate().authorize(premium_entitlement(used=4), NOW)
        assert isinstance(decision, Allow)
        assert decision.reports_used == 4
        assert not decision.reset_counter

    def test_at_limit_denied(self):
        decision = EntitlementGate().authorize(premium_entitlement(used=5), NOW)

        assert isinstance(decision, Deny)
        assert decision.http_status == 429
        assert decision.body()["reportsUsed"] == 5
        assert decision.body()["limit"] == 5

    def test_counter_from_previous_month_is_ignored(self):
        entitlement = premium_entitlement(used=5, last=datetime(2025, 2, 27, tzinfo=timezone.utc))
        decision = EntitlementGate().authorize(entitlement, NOW)

        assert isinstance(decision, Allow)
        assert decision.reports_used == 0
        assert decision.reset_counter

    def test_same_month_last_year_is_a_rollover(self):
        entitlement = premium_entitlement(used=5, last=datetime(2024, 3, 10, tzinfo=timezone.utc))
        assert isinstance(EntitlementGate().authorize(entitlement, NOW), Allow)

    def test_no_reset_needed_for_zero_counter(self):
        entitlement = premium_entitlement(used=0, last=None)
        decision = EntitlementGate().authorize(entitlement, NOW)
        assert isinstance(decision, Allow)
        assert not decision.reset_counter

    def test_lifetime_shares_premium_limit(self):
        entitlement = premium_entitlement(used=5)
        entitlement.tier = SubscriptionTier.LIFETIME
        assert isinstance(EntitlementGate().authorize(entitlement, NOW), Deny)

    def test_custom_limit(self):
        gate = EntitlementGate(premium_monthly_limit=10)
        assert isinstance(gate.authorize(premium_entitlement(used=9), NOW), Allow)
        assert isinstance(gate.authorize(premium_entitlement(used=10), NOW), Deny)

    def test_authorize_has_no_side_effects(self):
        entitlement = premium_entitlement(used=5, last=datetime(2025, 1, 5, tzinfo=timezone.utc))
        EntitlementGate().authorize(entitlement, NOW)
        assert entitlement.reports_generated_this_month == 5


class TestCheckEligibility:

    def test_premium_remaining(self):
        summary = EntitlementGate().check_eligibility(premium_entitlement(used=3), NOW)
        assert summary.eligible
        assert summary.reports_used == 3
        assert summary.limit == 5
        assert summary.remaining == 2

    def test_premium_exhausted(self):
        summary = EntitlementGate().check_eligibility(premium_entitlement(used=5), NOW)
        assert not summary.eligible
        assert summary.remaining == 0
        assert "Limit resets" in summary.reason
        assert not summary.upgrade_required

    def test_free_used(self):
        entitlement = UserEntitlement(user_id="u1", has_generated_preview_ever=True)
        summary = EntitlementGate().check_eligibility(entitlement, NOW)
        assert not summary.eligible
        assert summary.upgrade_required
        assert summary.reports_used == 1
        assert summary.limit == 1
