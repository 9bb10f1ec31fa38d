from typing import Any, Dict, Optional

from tokbox.models.analysis import QuotaDecision


class TokboxError(Exception):
    """Base class for errors surfaced to API clients"""

    status_code = 500
    error = "Analysis failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.error)
        self.message = message or self.error

    def to_response(self) -> Dict[str, Any]:
        return {"error": self.error, "message": self.message}


class UsageLimitReached(TokboxError):
    """Caller has no quota left. Expected and user-facing; not an error in the logs."""

    status_code = 403
    error = "limit_reached"

    def __init__(self, decision: QuotaDecision, usage: Dict[str, Any]):
        super().__init__(decision.message)
        self.decision = decision
        self.usage = usage

    def to_response(self) -> Dict[str, Any]:
        body = {
            "error": self.error,
            "message": self.message,
            "currentPlan": self.decision.plan.value,
            "usage": self.usage,
        }
        if self.decision.requires_sign_up:
            body["requiresSignUp"] = True
        if self.decision.upgrade_required:
            body["upgradeRequired"] = True
        return body


class UsageCheckUnavailable(TokboxError):
    """The usage query failed and the fail-open policy is switched off"""

    status_code = 503
    error = "Usage check unavailable. Please try again."


class FrameExtractionUnavailable(TokboxError):
    """Frame-extraction service unreachable or returned no frames"""

    status_code = 503
    error = "Could not process video. Make sure the embedding service is running."
    hint = "Check EMBEDDING_SERVICE_URL and that the frame-extraction service is up"

    def to_response(self) -> Dict[str, Any]:
        return {"error": self.error, "hint": self.hint}


class AnalysisFailed(TokboxError):
    """The primary analysis call returned nothing usable"""

    status_code = 500
    error = "Analysis failed. Please try again."

    def to_response(self) -> Dict[str, Any]:
        return {"error": self.error}
