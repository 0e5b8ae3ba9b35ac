"""Tests for the plan catalog and feature gating."""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from replygate.plans.catalog import (
    PLANS,
    can_access_feature,
    current_trial_day,
    get_plan,
    get_upgrade_target,
    is_known_plan,
    trial_days_left,
)


NOW = datetime(2026, 10, 14, 15, 30, tzinfo=timezone.utc)
EXPIRED = datetime(2020, 1, 1, tzinfo=timezone.utc)


class TestPlans:
    def test_known_plans(self):
        assert set(PLANS) == {"starter", "pro", "enterprise"}
        assert is_known_plan("pro")
        assert is_known_plan("Enterprise")
        assert not is_known_plan("platinum")

    def test_unknown_plan_metadata_is_starter(self):
        assert get_plan("platinum") is PLANS["starter"]


class TestFeatureAccess:
    def test_matrix_pro_up(self):
        assert not can_access_feature("starter", "prompt_builder", None, NOW)
        assert can_access_feature("pro", "prompt_builder", None, NOW)
        assert can_access_feature("enterprise", "prompt_builder", None, NOW)

    def test_matrix_enterprise_only(self):
        assert not can_access_feature("pro", "white_label", None, NOW)
        assert can_access_feature("enterprise", "white_label", None, NOW)

    def test_allowed_features_fallback(self):
        assert can_access_feature("starter", "basic_analytics", None, NOW)
        assert not can_access_feature("starter", "sso", None, NOW)
        assert can_access_feature("enterprise", "sso", None, NOW)

    def test_expired_starter_denied_everything(self):
        assert not can_access_feature("starter", "basic_responses", EXPIRED, NOW)

    def test_active_trial_keeps_starter_features(self):
        assert can_access_feature("starter", "basic_responses", NOW + timedelta(days=1), NOW)


class TestUpgradeTarget:
    def test_matrix_feature(self):
        assert get_upgrade_target("starter", "prompt_builder") == "pro"
        assert get_upgrade_target("pro", "white_label") == "enterprise"

    def test_enterprise_list_feature(self):
        assert get_upgrade_target("pro", "sso") == "enterprise"

    def test_unknown_feature_defaults_to_pro(self):
        assert get_upgrade_target("starter", "time_travel") == "pro"


class TestTrialDays:
    def test_days_left_rounds_up(self):
        assert trial_days_left("starter", NOW + timedelta(days=2, hours=1), NOW) == 3

    def test_days_left_expired_is_zero(self):
        assert trial_days_left("starter", EXPIRED, NOW) == 0

    def test_days_left_paid_plan_is_zero(self):
        assert trial_days_left("pro", NOW + timedelta(days=5), NOW) == 0

    def test_current_trial_day_first_day(self):
        assert current_trial_day("starter", NOW - timedelta(hours=2), NOW) == 1

    def test_current_trial_day_counts_calendar_days(self):
        start = datetime(2026, 10, 10, 23, 0, tzinfo=timezone.utc)
        assert current_trial_day("starter", start, NOW) == 5

    def test_current_trial_day_capped(self):
        start = NOW - timedelta(days=40)
        assert current_trial_day("starter", start, NOW, trial_days=14) == 14

    def test_current_trial_day_uses_local_midnight(self):
        zone = ZoneInfo("Asia/Kolkata")
        # 20:00 UTC on the 13th is already the 14th in Kolkata
        start = datetime(2026, 10, 13, 20, 0, tzinfo=timezone.utc)
        now = datetime(2026, 10, 14, 10, 0, tzinfo=zone)
        assert current_trial_day("starter", start, now) == 1

    def test_current_trial_day_paid_plan(self):
        assert current_trial_day("pro", NOW - timedelta(days=3), NOW) == 1
