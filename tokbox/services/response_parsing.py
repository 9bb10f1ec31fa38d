"""
LLM Response Parsing
====================

Model output is not guaranteed to be pure JSON: it may be wrapped in prose or
code fences. Extraction is a swappable strategy so providers with a JSON
output mode can use strict parsing while the rest fall back to the greedy
brace match.
"""

import copy
import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

# First "{" through the LAST "}". Assumes one JSON object per response: two
# objects, or a stray brace in trailing prose, make the match unparseable.
GREEDY_JSON_PATTERN = re.compile(r"\{[\s\S]*\}")

HOOK_CATEGORIES = {
    "curiosity_gap": "curiosityGap",
    "pattern_interrupt": "patternInterrupt",
    "aspirational": "aspirational",
}


class ResponseParseError(ValueError):
    """No JSON object could be read from the model output"""


class JsonExtractor(ABC):
    """Strategy for reading a JSON object out of model text"""

    @abstractmethod
    def extract(self, text: str) -> Dict[str, Any]:
        """Return the parsed object or raise ResponseParseError"""


class GreedyBraceExtractor(JsonExtractor):
    """Regex fallback for providers without a structured-output mode"""

    def extract(self, text: str) -> Dict[str, Any]:
        match = GREEDY_JSON_PATTERN.search(text or "")
        if not match:
            raise ResponseParseError("No JSON object found in response")
        return _loads_object(match.group(0))


class StrictJsonExtractor(JsonExtractor):
    """For responses produced in JSON output mode: the whole text must be the object"""

    def extract(self, text: str) -> Dict[str, Any]:
        return _loads_object(text or "")


def _loads_object(snippet: str) -> Dict[str, Any]:
    try:
        obj = json.loads(snippet)
    except json.JSONDecodeError as ex:
        raise ResponseParseError(f"Invalid JSON object: {ex}") from ex
    if not isinstance(obj, dict):
        raise ResponseParseError("Top-level JSON value must be an object")
    return obj


def parse_json_response(
    text: str,
    extractor: Optional[JsonExtractor] = None,
    default: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Lenient parse: the caller's default (copied) instead of an exception"""
    extractor = extractor or GreedyBraceExtractor()
    try:
        return extractor.extract(text)
    except ResponseParseError as e:
        logger.warning(f"⚠️ Could not parse model response ({e}); using default")
        return copy.deepcopy(default) if default is not None else {}


def _parse_hooks(items: Any) -> List[Dict[str, Any]]:
    if not isinstance(items, list):
        return []

    hooks = []
    for item in items:
        if isinstance(item, str):
            hook = {"text": item}
        elif isinstance(item, dict):
            hook = {"text": item.get("text") if isinstance(item.get("text"), str) else ""}
            if item.get("timing"):
                hook["timing"] = item["timing"]
        else:
            continue
        if hook["text"]:
            hooks.append(hook)
    return hooks


def parse_hook_response(response: Dict[str, Any]) -> Dict[str, List[Dict[str, Any]]]:
    """Normalise the model's hook_set into the client's three hook lists"""
    hook_set = response.get("hook_set") or {}
    if not isinstance(hook_set, dict):
        hook_set = {}
    return {client_key: _parse_hooks(hook_set.get(key)) for key, client_key in HOOK_CATEGORIES.items()}
