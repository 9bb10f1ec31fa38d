"""
Mood Strategy Registry
======================

Expert personas per creator mood, loaded once from the packaged JSON table.
Prompt builders look strategies up by mood id; nothing here mutates them.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_STRATEGY_PATH = Path(__file__).resolve().parent.parent / "data" / "mood_strategies.json"


@dataclass(frozen=True)
class ScoringFocus:
    hook: str
    visual: str
    execution: str


@dataclass(frozen=True)
class MoodStrategy:
    id: str
    name: str
    context: str
    psychology: str
    common_mistakes: Tuple[str, ...]
    scoring_focus: ScoringFocus
    hook_style: str
    caption_style: str
    what_matters: Tuple[str, ...]
    advanced_tips: Tuple[str, ...]

    @classmethod
    def from_dict(cls, mood_id: str, data: Dict[str, Any]) -> "MoodStrategy":
        focus = data["scoring_focus"]
        return cls(
            id=mood_id,
            name=data["name"],
            context=data["context"],
            psychology=data["psychology"],
            common_mistakes=tuple(data.get("common_mistakes", [])),
            scoring_focus=ScoringFocus(
                hook=focus["hook"],
                visual=focus["visual"],
                execution=focus["execution"],
            ),
            hook_style=data["hook_style"],
            caption_style=data["caption_style"],
            what_matters=tuple(data.get("what_matters", [])),
            advanced_tips=tuple(data.get("advanced_tips", [])),
        )

    def persona_text(self) -> str:
        """Full persona section for the analysis prompt"""
        mistakes = "\n".join(f"- {m}" for m in self.common_mistakes)
        tips = "\n".join(f"- {t}" for t in self.advanced_tips)
        return (
            f"THE CREATOR SAYS THIS IS: {self.name.upper()}\n"
            f"{self.context}\n\n"
            f"You are an expert in {self.name} content.\n\n"
            f"WHAT DRIVES THIS CONTENT:\n{self.psychology}\n\n"
            f"COMMON MISTAKES TO CHECK FOR:\n{mistakes}\n\n"
            f"HOW TO SCORE {self.name.upper()} CONTENT:\n"
            f"- Hook: {self.scoring_focus.hook}\n"
            f"- Visual: {self.scoring_focus.visual}\n"
            f"- Execution: {self.scoring_focus.execution}\n\n"
            f"ADVANCED TIPS YOU CAN DRAW ON:\n{tips}"
        )

    def summary(self) -> Dict[str, Any]:
        """Client-facing tips block"""
        return {
            "name": self.name,
            "whatMatters": list(self.what_matters),
            "advancedTips": list(self.advanced_tips),
        }


class MoodStrategyRegistry:
    """Read-only lookup of mood strategies by id"""

    def __init__(self, strategies: Mapping[str, MoodStrategy]):
        self._strategies = MappingProxyType(dict(strategies))

    @classmethod
    def from_file(cls, path: Path = DEFAULT_STRATEGY_PATH) -> "MoodStrategyRegistry":
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        strategies = {mood_id: MoodStrategy.from_dict(mood_id, data) for mood_id, data in raw.items()}
        logger.info(f"🎭 Loaded {len(strategies)} mood strategies from {path.name}")
        return cls(strategies)

    def get(self, mood_id: Optional[str]) -> Optional[MoodStrategy]:
        if not mood_id:
            return None
        return self._strategies.get(mood_id)

    def ids(self) -> Tuple[str, ...]:
        return tuple(self._strategies.keys())

    def __contains__(self, mood_id: object) -> bool:
        return mood_id in self._strategies

    def __iter__(self) -> Iterator[str]:
        return iter(self._strategies)

    def __len__(self) -> int:
        return len(self._strategies)


# Global instance
_registry: Optional[MoodStrategyRegistry] = None


def get_mood_registry() -> MoodStrategyRegistry:
    """Get global mood strategy registry, loading it on first use"""
    global _registry
    if _registry is None:
        _registry = MoodStrategyRegistry.from_file()
    return _registry
