"""
Video Analysis Service
======================

Runs one analysis end to end:

    quota check -> frame extraction -> frame staging -> analysis call
    -> hook call -> caption call -> grade -> record -> response

The three model calls run strictly in sequence. Each is a stage whose outcome
is a tagged StageResult; STAGE_POLICIES decides whether a failed stage aborts
the request or degrades to placeholder content.
"""

import asyncio
import copy
import json
import logging
import secrets
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from tokbox.config.settings import Settings, get_settings
from tokbox.database.repositories.analysis_repository import AnalysisRepository
from tokbox.models.analysis import FrameExtractionResult, HookContext, HookType, Identity, QuotaDecision
from tokbox.services.errors import AnalysisFailed, FrameExtractionUnavailable, UsageLimitReached
from tokbox.services.frame_extraction import FrameExtractionClient
from tokbox.services.grading import calculate_grade, coerce_sub_score
from tokbox.services.llm_providers import LLMProvider, LLMProviderFactory
from tokbox.services.mood_strategies import MoodStrategy, MoodStrategyRegistry, get_mood_registry
from tokbox.services.prompts import (
    MAX_ANALYSIS_FRAMES,
    MAX_HOOK_FRAMES,
    build_analysis_prompt,
    build_caption_prompt,
    build_hook_prompt,
)
from tokbox.services.response_parsing import ResponseParseError, parse_hook_response
from tokbox.services.s3_storage_service import S3StorageService, get_s3_storage
from tokbox.services.usage_gateway import UsageGateway
from tokbox.utils.logger import NO_ANALYSIS_ID, analysis_id_var

logger = logging.getLogger(__name__)

BASE36_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"
NO_MOOD = "none"


class StageStatus(str, Enum):
    OK = "ok"
    DEGRADED = "degraded"
    FATAL = "fatal"


class StagePolicy(str, Enum):
    FATAL = "fatal"  # abort the request
    DEGRADE = "degrade"  # continue with placeholder content


@dataclass
class StageResult:
    status: StageStatus
    data: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.status == StageStatus.OK


STAGE_POLICIES = {
    "analysis": StagePolicy.FATAL,
    "hooks": StagePolicy.DEGRADE,
    "captions": StagePolicy.DEGRADE,
}

# Placeholder hooks point the creator back at their own footage
PLACEHOLDER_HOOKS = {
    "hookSet": {
        "curiosityGap": [{"text": "Rewatch your opening and tease the moment that pays off at the end"}],
        "patternInterrupt": [{"text": "Look at your first frame and say the one thing nobody expects"}],
        "aspirational": [{"text": "Look at your best shot and caption the feeling you want them to have"}],
    },
    "recommendedType": HookType.CURIOSITY_GAP.value,
    "existingTextAssessment": None,
    "whyThisWorks": None,
}

PLACEHOLDER_CAPTIONS = [".", "anyway", "no caption needed"]

STAGE_PLACEHOLDERS = {
    "hooks": PLACEHOLDER_HOOKS,
    "captions": PLACEHOLDER_CAPTIONS,
}


def generate_analysis_id(now_ms: Optional[int] = None) -> str:
    """tokbox_{epoch ms}_{9 random base36 chars}"""
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    suffix = "".join(secrets.choice(BASE36_ALPHABET) for _ in range(9))
    return f"tokbox_{now_ms}_{suffix}"


async def run_stage(name: str, call: Callable[[], Awaitable[Any]]) -> StageResult:
    """Run one model stage and tag its outcome according to STAGE_POLICIES"""
    try:
        return StageResult(status=StageStatus.OK, data=await call())
    except Exception as e:
        if STAGE_POLICIES[name] == StagePolicy.DEGRADE:
            logger.warning(f"⚠️ Stage '{name}' failed, using placeholder content: {e}")
            return StageResult(status=StageStatus.DEGRADED, data=copy.deepcopy(STAGE_PLACEHOLDERS[name]), error=e)
        logger.error(f"❌ Stage '{name}' failed: {e}")
        return StageResult(status=StageStatus.FATAL, error=e)


class VideoAnalysisService:
    """Orchestrates a single video analysis request"""

    def __init__(
        self,
        usage_gateway: Optional[UsageGateway] = None,
        frame_client: Optional[FrameExtractionClient] = None,
        storage: Optional[S3StorageService] = None,
        analysis_provider: Optional[LLMProvider] = None,
        caption_provider: Optional[LLMProvider] = None,
        repository: Optional[AnalysisRepository] = None,
        moods: Optional[MoodStrategyRegistry] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.repository = repository or AnalysisRepository()
        self.usage_gateway = usage_gateway or UsageGateway(repository=self.repository)
        self.frame_client = frame_client or FrameExtractionClient()
        self.storage = storage or get_s3_storage()
        self.analysis_provider = analysis_provider or LLMProviderFactory.create_provider("anthropic")
        self.caption_provider = caption_provider or LLMProviderFactory.create_provider("openai")
        self.moods = moods if moods is not None else get_mood_registry()

    async def analyze(
        self,
        identity: Identity,
        video_url: Optional[str] = None,
        video_bytes: Optional[bytes] = None,
        mood: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Analyze a video and return the client payload.

        Raises:
            UsageLimitReached: caller has no quota left (403)
            FrameExtractionUnavailable: no frames could be extracted (503)
            AnalysisFailed: primary analysis failed or the run timed out (500)
        """
        token = analysis_id_var.set(NO_ANALYSIS_ID)
        try:
            return await asyncio.wait_for(
                self._run(identity, video_url, video_bytes, mood),
                timeout=self.settings.request_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"⏱️ Analysis timed out after {self.settings.request_timeout_seconds}s")
            raise AnalysisFailed() from e
        finally:
            analysis_id_var.reset(token)

    async def _run(
        self,
        identity: Identity,
        video_url: Optional[str],
        video_bytes: Optional[bytes],
        mood: Optional[str],
    ) -> Dict[str, Any]:
        start_time = time.time()

        # Step 1: Authorize
        decision = await asyncio.to_thread(self.usage_gateway.check, identity)
        if not decision.allowed:
            raise UsageLimitReached(decision, decision.usage_counts())

        analysis_id = generate_analysis_id()
        analysis_id_var.set(analysis_id)
        strategy = self.moods.get(mood)
        if mood and strategy is None:
            logger.warning(f"⚠️ Unknown mood '{mood}', analyzing without a persona")
        tier = decision.model_tier.value
        logger.info(f"🎬 Starting analysis {analysis_id} (plan={decision.plan.value}, model={tier}, mood={mood or NO_MOOD})")

        # Step 2: Ingest
        logger.info("🎞️ Extracting frames...")
        extraction = await self.frame_client.extract(video_url=video_url, video_bytes=video_bytes)

        # Step 3: Stage frames
        logger.info(f"☁️ Uploading {len(extraction.frames)} frames...")
        frame_urls = await self._stage_frames(analysis_id, extraction)

        # Step 4: Comprehensive analysis
        logger.info(f"🔍 Analyzing video with {self.analysis_provider.get_provider_name()}...")
        analysis_stage = await run_stage("analysis", lambda: self._analyze_frames(frame_urls, strategy, tier))
        if analysis_stage.status == StageStatus.FATAL:
            raise AnalysisFailed() from analysis_stage.error
        analysis = analysis_stage.data

        context = self._hook_context(analysis, strategy)

        # Step 5: Hooks
        logger.info(f"🪝 Generating hooks with {self.analysis_provider.get_provider_name()}...")
        hooks_stage = await run_stage("hooks", lambda: self._generate_hooks(frame_urls, context, tier))

        # Step 6: Captions
        logger.info(f"✍️ Generating captions with {self.caption_provider.get_provider_name()}...")
        captions_stage = await run_stage("captions", lambda: self._generate_captions(context, tier))

        # Step 7: Grade
        scores = analysis.get("scores")
        if not isinstance(scores, dict):
            scores = {}
        hook_score = coerce_sub_score(_score_of(scores, "hook"))
        visual_score = coerce_sub_score(_score_of(scores, "visual"))
        execution_score = coerce_sub_score(_score_of(scores, "execution"), _score_of(scores, "pacing"))
        grade = calculate_grade(hook_score, visual_score, execution_score)

        processing_time_ms = int((time.time() - start_time) * 1000)
        hooks = hooks_stage.data

        payload = {
            "id": analysis_id,
            "processingTimeMs": processing_time_ms,

            # Grade & summary
            "grade": grade.grade,
            "gradeColor": grade.color,
            "viralPotential": grade.potential,
            "summary": analysis.get("summary") or "Analysis complete",

            # What the model noticed about the format
            "existingTextOverlay": analysis.get("existing_text_overlay") or None,
            "isTrendFormat": bool(analysis.get("is_trend_format")),
            "trendType": analysis.get("trend_type") or None,
            "intent": analysis.get("intent") or None,

            "scores": {
                "hook": {
                    "score": hook_score,
                    "label": "Hook Power",
                    "feedback": _feedback_of(scores, "hook") or "Consider a stronger opening",
                },
                "visual": {
                    "score": visual_score,
                    "label": "Visual Quality",
                    "feedback": _feedback_of(scores, "visual") or "Lighting could be improved",
                },
                "pacing": {
                    "score": execution_score,
                    "label": "Execution",
                    "feedback": _feedback_of(scores, "execution") or _feedback_of(scores, "pacing")
                    or "Consider the overall execution",
                },
            },

            "contentDescription": context.content_description,
            "strengths": _string_list(analysis.get("strengths")),
            "improvements": _string_list(analysis.get("improvements")),
            "theOneThing": analysis.get("the_one_thing") or None,
            "advancedInsight": analysis.get("advanced_insight") or None,

            "hooks": hooks["hookSet"],
            "recommendedHookType": hooks["recommendedType"],
            "existingTextAssessment": hooks["existingTextAssessment"],
            "whyThisHookType": hooks["whyThisWorks"],

            "captions": captions_stage.data,
            "moodStrategy": strategy.summary() if strategy else None,
        }

        # Step 8: Record (before responding; a failed insert doesn't fail the response)
        await self._record(identity, decision, extraction, payload, video_url, mood)

        # Step 9: Usage summary
        payload["usage"] = self.usage_gateway.usage_summary(decision, tier)

        logger.info(f"✅ Analysis {analysis_id} complete in {processing_time_ms}ms: {grade.grade}")
        return payload

    async def _stage_frames(self, analysis_id: str, extraction: FrameExtractionResult) -> List[str]:
        frame_urls = []
        try:
            for index, frame in enumerate(extraction.frames):
                key = self.storage.frame_key(analysis_id, index)
                frame_urls.append(await asyncio.to_thread(self.storage.upload_base64_image, frame, key))
        except Exception as e:
            logger.error(f"❌ Frame staging failed for {analysis_id}: {e}")
            raise FrameExtractionUnavailable() from e
        return frame_urls

    async def _analyze_frames(self, frame_urls: List[str], strategy: Optional[MoodStrategy], tier: str) -> Dict[str, Any]:
        provider = self.analysis_provider
        text = await provider.generate(
            prompt=build_analysis_prompt(strategy),
            model=self.settings.model_for_tier(tier, "analysis"),
            max_tokens=self.settings.analysis_max_tokens,
            image_urls=frame_urls[:MAX_ANALYSIS_FRAMES],
        )
        parsed = provider.json_extractor.extract(text)
        if not parsed:
            raise ResponseParseError("Analysis response was an empty object")
        return parsed

    async def _generate_hooks(self, frame_urls: List[str], context: HookContext, tier: str) -> Dict[str, Any]:
        provider = self.analysis_provider
        text = await provider.generate(
            prompt=build_hook_prompt(context),
            model=self.settings.model_for_tier(tier, "analysis"),
            max_tokens=self.settings.hook_max_tokens,
            image_urls=frame_urls[:MAX_HOOK_FRAMES],
        )
        parsed = provider.json_extractor.extract(text)
        hook_set = parse_hook_response(parsed)
        if not any(hook_set.values()):
            raise ResponseParseError("Hook response contained no hooks")

        recommended = parsed.get("recommended_type")
        if recommended not in {hook_type.value for hook_type in HookType}:
            recommended = HookType.CURIOSITY_GAP.value

        return {
            "hookSet": hook_set,
            "recommendedType": recommended,
            "existingTextAssessment": parsed.get("existing_text_assessment") or None,
            "whyThisWorks": parsed.get("why_this_works") or None,
        }

    async def _generate_captions(self, context: HookContext, tier: str) -> List[str]:
        provider = self.caption_provider
        system, user = build_caption_prompt(context)
        text = await provider.generate(
            prompt=user,
            model=self.settings.model_for_tier(tier, "caption"),
            max_tokens=self.settings.caption_max_tokens,
            system=system,
        )
        captions = _string_list(provider.json_extractor.extract(text).get("captions"))
        if not captions:
            raise ResponseParseError("Caption response contained no captions")
        return captions

    def _hook_context(self, analysis: Dict[str, Any], strategy: Optional[MoodStrategy]) -> HookContext:
        return HookContext(
            content_description=analysis.get("content_description") or "Video content",
            existing_text=analysis.get("existing_text_overlay") or None,
            intent=analysis.get("intent") or None,
            is_trend=bool(analysis.get("is_trend_format")),
            trend_type=analysis.get("trend_type") or None,
            mood_context=strategy.context if strategy else None,
            hook_style=strategy.hook_style if strategy else None,
            caption_style=strategy.caption_style if strategy else None,
        )

    async def _record(
        self,
        identity: Identity,
        decision: QuotaDecision,
        extraction: FrameExtractionResult,
        payload: Dict[str, Any],
        video_url: Optional[str],
        mood: Optional[str],
    ) -> None:
        try:
            row_id = await asyncio.to_thread(
                self.repository.track_analysis,
                mood=mood or NO_MOOD,
                model_used=decision.model_tier.value,
                user_id=identity.user_id,
                user_email=identity.email,
                ip_address=identity.ip_address,
                video_duration_seconds=extraction.duration,
                grade=payload["grade"],
                viral_score=payload["viralPotential"],
                results_json=json.dumps(payload),
                video_url=video_url,
            )
            logger.info(f"💾 Recorded analysis row {row_id}")
        except Exception as e:
            logger.error(f"❌ Failed to record analysis {payload['id']}: {e}")


def _score_of(scores: Dict[str, Any], key: str) -> Any:
    entry = scores.get(key)
    return entry.get("score") if isinstance(entry, dict) else None


def _feedback_of(scores: Dict[str, Any], key: str) -> Optional[str]:
    entry = scores.get(key)
    if isinstance(entry, dict) and isinstance(entry.get("feedback"), str):
        return entry["feedback"] or None
    return None


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str) and item]
