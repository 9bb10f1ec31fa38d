"""
Usage Gateway
=============

Decides whether a caller may run another analysis and on which model tier.

Counts come from the analyses table; limits come from the static plan table.
Nothing is written here: usage grows when the orchestrator records a row.
The read-then-insert sequence is not atomic, so two concurrent requests near
a limit can both pass.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple

from tokbox.config.settings import get_settings
from tokbox.config.usage_limits import USAGE_LIMITS
from tokbox.database.connection import utc_now
from tokbox.database.repositories.analysis_repository import AnalysisRepository
from tokbox.models.analysis import Identity, ModelTier, PlanTier, QuotaDecision
from tokbox.services.errors import UsageCheckUnavailable

logger = logging.getLogger(__name__)

LIMIT_MESSAGES = {
    PlanTier.ANONYMOUS: "Sign up for free to analyze another video.",
    PlanTier.FREE: "You've used your free analysis. Upgrade to continue!",
    PlanTier.CREATOR: "You've reached your 30 analyses this month.",
    PlanTier.PRO: "You've reached your 5 analyses for today. Come back tomorrow!",
}

# The cap that bounds each plan's period, and the label the client shows for it
PLAN_PERIODS = {
    PlanTier.ANONYMOUS: ("total_analyses", "total"),
    PlanTier.FREE: ("total_analyses", "total"),
    PlanTier.CREATOR: ("monthly_analyses", "this month"),
    PlanTier.PRO: ("daily_analyses", "today"),
}


def limits_for(plan: PlanTier) -> Tuple[int, str]:
    """(period limit, period label) for a plan"""
    key, label = PLAN_PERIODS[plan]
    return USAGE_LIMITS[plan.value][key], label


def effective_plan(identity: Identity) -> PlanTier:
    return identity.plan if identity.is_authenticated else PlanTier.ANONYMOUS


class UsageGateway:
    """Quota checks per plan tier, with an explicit policy for failed checks"""

    def __init__(
        self,
        repository: Optional[AnalysisRepository] = None,
        allow_on_check_failure: Optional[bool] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repository = repository or AnalysisRepository()
        if allow_on_check_failure is None:
            allow_on_check_failure = get_settings().allow_on_check_failure
        self.allow_on_check_failure = allow_on_check_failure
        self._clock = clock

    def check(self, identity: Identity) -> QuotaDecision:
        """Quota decision for one analysis attempt.

        When the count query fails the caller is let through on the premium
        tier (flagged with check_failed) unless the fail-open policy is off,
        in which case UsageCheckUnavailable is raised.
        """
        try:
            decision = self._evaluate(identity)
        except Exception as e:
            if not self.allow_on_check_failure:
                logger.error(f"❌ Usage check failed, rejecting request: {e}")
                raise UsageCheckUnavailable() from e
            logger.error(f"🚨 Usage check failed, allowing request (fail-open): {e}")
            plan = effective_plan(identity)
            limit, period_label = limits_for(plan)
            return QuotaDecision(
                allowed=True,
                plan=plan,
                limit=limit,
                period_label=period_label,
                check_failed=True,
            )

        if not decision.allowed:
            logger.info(
                f"🚫 Usage limit reached: plan={decision.plan.value} "
                f"used={decision.used}/{decision.limit} ({decision.period_label})"
            )
        elif decision.model_tier == ModelTier.FAST:
            logger.info(f"⚡ Premium allowance spent for plan={decision.plan.value}, using fast model")
        return decision

    def usage_summary(self, decision: QuotaDecision, model_used: Optional[str] = None) -> Dict[str, Any]:
        """Usage block for the analyze response, counting the analysis just completed"""
        return {
            "plan": decision.plan.value,
            "modelUsed": model_used or decision.model_tier.value,
            "analysesUsed": decision.used + 1,
            "analysesLimit": decision.limit,
            "isLastFreeAnalysis": decision.plan in (PlanTier.ANONYMOUS, PlanTier.FREE),
        }

    def status(self, identity: Identity) -> Dict[str, Any]:
        """Current usage for the check-usage endpoint; reports no limit if the check fails"""
        try:
            decision = self._evaluate(identity)
        except Exception as e:
            logger.error(f"Failed to check usage: {e}")
            return {"limitReached": False}

        message = decision.message
        if not identity.is_authenticated and decision.allowed:
            message = "Not signed in"

        body = {
            "limitReached": not decision.allowed,
            "plan": decision.plan.value,
            "message": message,
            "analysesUsed": decision.used,
            "analysesLimit": decision.limit,
            "periodLabel": decision.period_label,
        }
        if identity.email:
            body["email"] = identity.email
        return body

    def _evaluate(self, identity: Identity) -> QuotaDecision:
        plan = effective_plan(identity)
        if plan == PlanTier.ANONYMOUS:
            return self._check_anonymous(identity.ip_address)
        if plan == PlanTier.PRO:
            return self._check_pro(identity.user_id)
        if plan == PlanTier.CREATOR:
            return self._check_creator(identity.user_id)
        return self._check_free(identity.user_id)

    def _check_anonymous(self, ip_address: str) -> QuotaDecision:
        limit, period_label = limits_for(PlanTier.ANONYMOUS)
        used = 1 if self.repository.has_ip_used_free_analysis(ip_address) else 0
        allowed = used < limit
        return QuotaDecision(
            allowed=allowed,
            plan=PlanTier.ANONYMOUS,
            used=used,
            limit=limit,
            period_label=period_label,
            requires_sign_up=not allowed,
            message="" if allowed else LIMIT_MESSAGES[PlanTier.ANONYMOUS],
        )

    def _check_free(self, user_id: str) -> QuotaDecision:
        limit, period_label = limits_for(PlanTier.FREE)
        used = self.repository.count_total(user_id)
        allowed = used < limit
        return QuotaDecision(
            allowed=allowed,
            plan=PlanTier.FREE,
            used=used,
            limit=limit,
            period_label=period_label,
            upgrade_required=not allowed,
            message="" if allowed else LIMIT_MESSAGES[PlanTier.FREE],
        )

    def _check_creator(self, user_id: str) -> QuotaDecision:
        limit, period_label = limits_for(PlanTier.CREATOR)
        now = self._clock()
        used = self.repository.count_monthly(user_id, now=now)
        if used >= limit:
            return QuotaDecision(
                allowed=False,
                plan=PlanTier.CREATOR,
                used=used,
                limit=limit,
                period_label=period_label,
                upgrade_required=True,
                message=LIMIT_MESSAGES[PlanTier.CREATOR],
            )

        premium_used = self.repository.count_monthly_premium(user_id, now=now)
        premium_limit = USAGE_LIMITS["creator"]["premium_analyses"]
        return QuotaDecision(
            allowed=True,
            plan=PlanTier.CREATOR,
            model_tier=ModelTier.FAST if premium_used >= premium_limit else ModelTier.PREMIUM,
            used=used,
            limit=limit,
            period_label=period_label,
        )

    def _check_pro(self, user_id: str) -> QuotaDecision:
        limit, period_label = limits_for(PlanTier.PRO)
        now = self._clock()
        used = self.repository.count_daily(user_id, now=now)
        if used >= limit:
            # Top tier: nothing to upgrade to
            return QuotaDecision(
                allowed=False,
                plan=PlanTier.PRO,
                used=used,
                limit=limit,
                period_label=period_label,
                message=LIMIT_MESSAGES[PlanTier.PRO],
            )

        premium_used = self.repository.count_monthly_premium(user_id, now=now)
        premium_limit = USAGE_LIMITS["pro"]["premium_analyses"]
        return QuotaDecision(
            allowed=True,
            plan=PlanTier.PRO,
            model_tier=ModelTier.FAST if premium_used >= premium_limit else ModelTier.PREMIUM,
            used=used,
            limit=limit,
            period_label=period_label,
        )
