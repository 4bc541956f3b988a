"""Unit tests for the upload entitlement policy."""

import pytest

from clipshare.core.videos.entitlement import check_upload_entitlement
from clipshare.core.videos.models import Identity


def caller(status=None) -> Identity:
    return Identity(id="user-1", subscription_status=status)


class TestGatingDisabled:

    @pytest.mark.parametrize("status", [None, "active", "canceled", "past_due"])
    def test_everyone_may_upload(self, status):
        decision = check_upload_entitlement(caller(status), 50, subscription_gating_enabled=False)
        assert decision.allowed
        assert decision.reason == "gating_disabled"


class TestGatingEnabled:

    def test_active_subscriber_may_upload(self):
        decision = check_upload_entitlement(caller("active"), 3, subscription_gating_enabled=True)
        assert decision.allowed
        assert decision.reason == "active_subscription"

    @pytest.mark.parametrize("status", [None, "", "canceled", "trialing", "ACTIVE"])
    def test_anything_but_active_is_denied(self, status):
        decision = check_upload_entitlement(caller(status), 0, subscription_gating_enabled=True)
        assert not decision.allowed
        assert decision.reason == "inactive_subscription"

    def test_video_count_does_not_affect_decision(self):
        many = check_upload_entitlement(caller("active"), 10_000, subscription_gating_enabled=True)
        none = check_upload_entitlement(caller(None), 0, subscription_gating_enabled=True)
        assert many.allowed
        assert not none.allowed

    def test_custom_active_marker(self):
        decision = check_upload_entitlement(
            caller("paid"), 1, subscription_gating_enabled=True, active_status="paid"
        )
        assert decision.allowed


def test_decision_carries_count_and_status():
    decision = check_upload_entitlement(caller("canceled"), 7, subscription_gating_enabled=True)
    assert decision.video_count == 7
    assert decision.subscription_status == "canceled"
