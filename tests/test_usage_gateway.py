from datetime import datetime, timedelta

import pytest

from tokbox.models.analysis import Identity, ModelTier, PlanTier
from tokbox.services.errors import UsageCheckUnavailable
from tokbox.services.usage_gateway import UsageGateway

NOW = datetime(2026, 3, 15, 12, 0, 0)


@pytest.fixture
def gateway(repository):
    return UsageGateway(repository=repository, allow_on_check_failure=True, clock=lambda: NOW)


def record(repository, count, user_id=None, ip_address=None, model_used="premium", created_at=NOW):
    for _ in range(count):
        repository.track_analysis(
            mood="thirst",
            model_used=model_used,
            user_id=user_id,
            ip_address=ip_address,
            grade="B",
            viral_score=8.2,
            created_at=created_at,
        )


class BrokenRepository:
    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise RuntimeError("database unreachable")
        return fail


def test_anonymous_first_attempt_allowed(gateway):
    decision = gateway.check(Identity(ip_address="10.0.0.1"))
    assert decision.allowed
    assert decision.plan == PlanTier.ANONYMOUS
    assert decision.model_tier == ModelTier.PREMIUM


def test_anonymous_second_attempt_requires_sign_up(gateway, repository):
    record(repository, 1, ip_address="10.0.0.1")
    decision = gateway.check(Identity(ip_address="10.0.0.1"))
    assert not decision.allowed
    assert decision.requires_sign_up
    assert not decision.upgrade_required

    # A different IP is unaffected
    assert gateway.check(Identity(ip_address="10.0.0.2")).allowed


def test_signed_in_rows_do_not_count_against_ip(gateway, repository):
    record(repository, 1, user_id="user_1", ip_address="10.0.0.1")
    assert gateway.check(Identity(ip_address="10.0.0.1")).allowed


def test_free_user_with_prior_analysis_needs_upgrade(gateway, repository):
    identity = Identity(user_id="user_free", plan=PlanTier.FREE)
    assert gateway.check(identity).allowed

    record(repository, 1, user_id="user_free")
    decision = gateway.check(identity)
    assert not decision.allowed
    assert decision.upgrade_required
    assert not decision.requires_sign_up
    assert decision.used == 1
    assert decision.limit == 1


def test_creator_switches_to_fast_after_premium_allowance(gateway, repository):
    identity = Identity(user_id="user_creator", plan=PlanTier.CREATOR)

    record(repository, 19, user_id="user_creator")
    decision = gateway.check(identity)
    assert decision.allowed
    assert decision.model_tier == ModelTier.PREMIUM

    record(repository, 1, user_id="user_creator")
    decision = gateway.check(identity)
    assert decision.allowed
    assert decision.model_tier == ModelTier.FAST
    assert decision.used == 20
    assert decision.period_label == "this month"


def test_creator_monthly_cap(gateway, repository):
    identity = Identity(user_id="user_creator", plan=PlanTier.CREATOR)
    record(repository, 20, user_id="user_creator")
    record(repository, 10, user_id="user_creator", model_used="fast")

    decision = gateway.check(identity)
    assert not decision.allowed
    assert decision.upgrade_required


def test_creator_last_month_does_not_count(gateway, repository):
    identity = Identity(user_id="user_creator", plan=PlanTier.CREATOR)
    record(repository, 30, user_id="user_creator", created_at=NOW - timedelta(days=20))

    decision = gateway.check(identity)
    assert decision.allowed
    assert decision.used == 0
    assert decision.model_tier == ModelTier.PREMIUM


def test_pro_daily_cap_is_hard_stop(gateway, repository):
    identity = Identity(user_id="user_pro", plan=PlanTier.PRO)
    record(repository, 5, user_id="user_pro")

    decision = gateway.check(identity)
    assert not decision.allowed
    assert not decision.upgrade_required
    assert not decision.requires_sign_up
    assert decision.period_label == "today"
    assert "tomorrow" in decision.message


def test_pro_premium_allowance_independent_of_daily_cap(gateway, repository):
    identity = Identity(user_id="user_pro", plan=PlanTier.PRO)
    record(repository, 50, user_id="user_pro", created_at=NOW - timedelta(days=3))

    decision = gateway.check(identity)
    assert decision.allowed
    assert decision.used == 0
    assert decision.model_tier == ModelTier.FAST


def test_fail_open_when_query_fails():
    gateway = UsageGateway(repository=BrokenRepository(), allow_on_check_failure=True)
    decision = gateway.check(Identity(user_id="user_free", plan=PlanTier.FREE))
    assert decision.allowed
    assert decision.check_failed
    assert decision.model_tier == ModelTier.PREMIUM


def test_fail_closed_when_policy_off():
    gateway = UsageGateway(repository=BrokenRepository(), allow_on_check_failure=False)
    with pytest.raises(UsageCheckUnavailable):
        gateway.check(Identity(user_id="user_free", plan=PlanTier.FREE))


def test_usage_summary_counts_current_analysis(gateway, repository):
    identity = Identity(user_id="user_creator", plan=PlanTier.CREATOR)
    record(repository, 4, user_id="user_creator")
    decision = gateway.check(identity)

    summary = gateway.usage_summary(decision, "premium")
    assert summary == {
        "plan": "creator",
        "modelUsed": "premium",
        "analysesUsed": 5,
        "analysesLimit": 30,
        "isLastFreeAnalysis": False,
    }


def test_usage_summary_marks_last_free_analysis(gateway):
    decision = gateway.check(Identity(user_id="user_free", plan=PlanTier.FREE))
    summary = gateway.usage_summary(decision)
    assert summary["isLastFreeAnalysis"]
    assert summary["analysesUsed"] == 1


def test_status_for_limited_user(gateway, repository):
    record(repository, 1, user_id="user_free")
    status = gateway.status(Identity(user_id="user_free", email="a@b.co", plan=PlanTier.FREE))
    assert status["limitReached"]
    assert status["plan"] == "free"
    assert status["email"] == "a@b.co"
    assert status["periodLabel"] == "total"


def test_status_for_anonymous_caller(gateway):
    status = gateway.status(Identity(ip_address="10.0.0.9"))
    assert status["limitReached"] is False
    assert status["message"] == "Not signed in"


def test_status_fails_open():
    gateway = UsageGateway(repository=BrokenRepository(), allow_on_check_failure=False)
    assert gateway.status(Identity(user_id="user_free", plan=PlanTier.FREE)) == {"limitReached": False}


def test_fail_open_summary_reports_plan_limit():
    gateway = UsageGateway(repository=BrokenRepository(), allow_on_check_failure=True)

    decision = gateway.check(Identity(user_id="user_creator", plan=PlanTier.CREATOR))
    assert decision.limit == 30
    assert decision.period_label == "this month"
    assert gateway.usage_summary(decision)["analysesLimit"] == 30

    anonymous = gateway.check(Identity())
    assert anonymous.plan == PlanTier.ANONYMOUS
    assert gateway.usage_summary(anonymous)["analysesLimit"] == 1


def test_anonymous_without_ip_shares_unknown_key(gateway, repository):
    record(repository, 1, ip_address=Identity().ip_address)
    decision = gateway.check(Identity())
    assert not decision.allowed
    assert decision.requires_sign_up
