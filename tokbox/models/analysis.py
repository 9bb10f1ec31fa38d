from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class PlanTier(str, Enum):
    """Subscription plans, plus callers who are not signed in"""
    ANONYMOUS = "anonymous"
    FREE = "free"
    CREATOR = "creator"
    PRO = "pro"


class ModelTier(str, Enum):
    """Model quality tier for one analysis"""
    PREMIUM = "premium"
    FAST = "fast"


class HookType(str, Enum):
    """The three hook styles generated for every video"""
    CURIOSITY_GAP = "curiosity_gap"
    PATTERN_INTERRUPT = "pattern_interrupt"
    ASPIRATIONAL = "aspirational"


class AnalyzeRequest(BaseModel):
    """JSON body for the analyze endpoint (video already uploaded to storage)"""
    videoUrl: str = Field(min_length=1)
    mood: Optional[str] = None


class UploadUrlRequest(BaseModel):
    """Request for a presigned upload URL"""
    filename: Optional[str] = None
    contentType: Optional[str] = None


class UploadUrlResponse(BaseModel):
    uploadUrl: str
    videoUrl: str
    s3Key: str


UNKNOWN_IP = "unknown"


@dataclass(frozen=True)
class Identity:
    """Who is calling. user_id is None for anonymous callers, who are keyed by IP.

    Callers whose IP can't be resolved all share the UNKNOWN_IP key, so the
    quota check and the recorded row always agree.
    """
    user_id: Optional[str] = None
    email: Optional[str] = None
    plan: PlanTier = PlanTier.ANONYMOUS
    ip_address: Optional[str] = None

    def __post_init__(self):
        if not self.ip_address:
            object.__setattr__(self, "ip_address", UNKNOWN_IP)

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None


@dataclass
class QuotaDecision:
    """Outcome of a quota check, including the remediation path when denied"""
    allowed: bool
    plan: PlanTier
    model_tier: ModelTier = ModelTier.PREMIUM
    used: int = 0
    limit: int = 0
    period_label: str = "total"
    requires_sign_up: bool = False
    upgrade_required: bool = False
    message: str = ""
    check_failed: bool = False

    def usage_counts(self) -> Dict[str, Any]:
        return {
            "analysesUsed": self.used,
            "analysesLimit": self.limit,
            "periodLabel": self.period_label,
        }


@dataclass
class HookContext:
    """What the hook and caption prompts know about a video after the first analysis"""
    content_description: str
    existing_text: Optional[str] = None
    intent: Optional[str] = None
    is_trend: bool = False
    trend_type: Optional[str] = None
    mood_context: Optional[str] = None
    hook_style: Optional[str] = None
    caption_style: Optional[str] = None


@dataclass
class FrameExtractionResult:
    """Response of the frame-extraction microservice"""
    frames: List[str] = field(default_factory=list)
    embedding: List[float] = field(default_factory=list)
    duration: Optional[float] = None
    num_frames: int = 0
