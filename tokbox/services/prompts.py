"""
Prompt Builders
===============

Three prompts per analysis, run in sequence:
1. Comprehensive analysis (frames + mood persona + rubric) -> scores and description
2. Hook generation (frames + what step 1 found) -> three hook styles
3. Caption generation (text only) -> three captions
"""

from typing import Optional, Tuple

from tokbox.models.analysis import HookContext
from tokbox.services.mood_strategies import MoodStrategy

MAX_ANALYSIS_FRAMES = 5
MAX_HOOK_FRAMES = 3

BANNED_HOOK_PHRASES = (
    "they don't know",
    "wait for it",
    "watch till the end",
    "you won't believe",
    "nobody is talking about this",
    "this changed everything",
    "main character energy",
    "POV:",
    "vibes",
)

BANNED_CAPTION_PHRASES = (
    "When reality hits",
    "Sometimes you just can't",
    "Lost in the [x]",
    "Living my best [x]",
    "That feeling when",
    "Just a girl/guy who",
    "Not me [doing x]",
)

ANALYSIS_RUBRIC = """You're a TikTok strategist analyzing a video. Your job is to give ACTUALLY USEFUL feedback, not generic advice.

FIRST, identify:
1. Is there TEXT OVERLAY visible in the video? If so, what does it say? This is critical.
2. Is this following a TREND FORMAT? (POV videos, transition trends, photo dump style, etc.)
3. What's the INTENT? (humor, thirst trap, relatable content, transformation, etc.)

DESCRIBE THE VIDEO:
- What do you literally see? Person, setting, outfit, action.
- If there are multiple frames/scenes, what changes?
- What's the vibe/energy trying to be conveyed?

NOW SCORE - but be CONTEXTUALLY AWARE:
- If it's a trend format, judge it AS that format, not against unrelated criteria
- If it's intentionally static (like a pose trend), don't dock points for lack of movement
- A 7 is genuinely good. 8+ is legitimately impressive. Don't grade inflate.

1. HOOK POWER (0-3 seconds):
   - Given what this video IS, does the opening work?
   - Will it stop the scroll for the TARGET AUDIENCE?

2. VISUAL QUALITY:
   - Lighting, composition, aesthetic
   - Does it look intentional and polished?

3. EXECUTION:
   - How well does it execute what it's TRYING to do?
   - If it's a trend, does it nail the format?
   - If it's meant to be static, is that done well?

CRITICAL: If the video ALREADY HAS text overlay, note this in your response. Don't suggest they add text if they already have it - suggest how to IMPROVE the existing text or note if it works."""

ANALYSIS_SCHEMA = """Return JSON:
{
  "existing_text_overlay": "exact text if visible, or null",
  "is_trend_format": true/false,
  "trend_type": "describe the trend/format if applicable, or null",
  "intent": "what is this video trying to accomplish",

  "content_description": "1-2 sentences - what this video actually is",
  "summary": "1 sentence verdict that shows you UNDERSTAND what they're going for",

  "scores": {
    "hook": { "score": 1-10, "feedback": "specific to THIS type of content" },
    "visual": { "score": 1-10, "feedback": "specific observation" },
    "execution": { "score": 1-10, "feedback": "how well they executed their intent" }
  },

  "strengths": ["2-3 things that work FOR THIS TYPE of content"],
  "improvements": ["2-3 actually useful suggestions that understand the format"],
  "the_one_thing": "the single change that would make the biggest difference",
  "advanced_insight": "one non-obvious observation about why this works or doesn't"
}"""

HOOK_STYLES = """STYLE 1 - CURIOSITY GAP: Creates anticipation, open loop, they need to watch to close it
STYLE 2 - PATTERN INTERRUPT: Bold, unexpected, breaks the scroll, makes them stop
STYLE 3 - ASPIRATIONAL: Makes them want the vibe/feeling/life/look"""

HOOK_SCHEMA = """Return JSON:
{
  "existing_text_assessment": "If there's existing text, is it good? What works/doesn't?",
  "recommended_type": "curiosity_gap" | "pattern_interrupt" | "aspirational",
  "why_this_works": "1 sentence on why this hook type fits this video",
  "hook_set": {
    "curiosity_gap": [
      { "text": "hook that creates anticipation - can be longer" },
      { "text": "alternative approach" }
    ],
    "pattern_interrupt": [
      { "text": "bold/unexpected hook" },
      { "text": "alternative" }
    ],
    "aspirational": [
      { "text": "vibe-based hook" },
      { "text": "alternative" }
    ]
  }
}"""


def build_analysis_prompt(mood_strategy: Optional[MoodStrategy] = None) -> str:
    """Comprehensive analysis prompt; the persona section is omitted without a mood"""
    sections = []
    if mood_strategy is not None:
        sections.append(mood_strategy.persona_text())
    sections.append(ANALYSIS_RUBRIC)
    sections.append(ANALYSIS_SCHEMA)
    return "\n\n".join(sections)


def _context_block(context: HookContext) -> str:
    lines = [f"Video shows: {context.content_description}"]
    if context.mood_context:
        lines.append(f"Creator's intended vibe: {context.mood_context}")
    if context.intent:
        lines.append(f"Detected intent: {context.intent}")
    if context.is_trend:
        trend = f" ({context.trend_type})" if context.trend_type else ""
        lines.append(f"This appears to follow a trend format{trend}.")
    return "\n".join(lines)


def build_hook_prompt(context: HookContext) -> str:
    """Hook generation prompt built from what the analysis step found"""
    existing_text_section = ""
    if context.existing_text:
        existing_text_section = f"""
⚠️ THIS VIDEO ALREADY HAS TEXT: "{context.existing_text}"

Since they already have text, your job is to suggest ALTERNATIVES or IMPROVEMENTS.
The current text might be fine - if so, say why it works and offer slight variations.
Don't ignore the existing text and suggest something completely different.
"""

    mood_section = ""
    if context.mood_context:
        mood_section = f"""THE CREATOR SAID THIS IS: {context.mood_context}
Your hooks MUST match this energy. If they said "thirst trap", don't give them relatable humor hooks."""
        if context.hook_style:
            mood_section += f"\nHOOK STYLE FOR THIS MOOD: {context.hook_style}"

    banned = "\n".join(f'- "{phrase}"' for phrase in BANNED_HOOK_PHRASES)

    return f"""{_context_block(context)}
{existing_text_section}
Generate text overlay options in 3 styles.

IMPORTANT ABOUT LENGTH:
- Hooks can be ANY length that works
- Longer hooks (full sentences, even multiple sentences) can INCREASE watch time because people have to read them
- A relatable rant can be 15+ words. A confident statement might be 3 words.
- Match the LENGTH to the VIBE

{mood_section}

CRITICAL RULES:
1. Must make sense for THIS SPECIFIC video
2. Must match the VIBE the creator is going for
3. NO generic garbage
4. NO nonsense that doesn't relate to the actual content

BANNED PHRASES (never use these or close variants):
{banned}

BAD HOOKS (never do these):
- "Why [random item] reveals everything" - makes no sense
- Generic mystery that doesn't connect to content
- Mismatched tone (funny hook for serious content or vice versa)
- Anything that sounds like clickbait spam

GOOD HOOKS:
- Match the energy/vibe perfectly
- Reference something the viewer will actually see
- Feel like something a real creator would write

{HOOK_STYLES}

{HOOK_SCHEMA}"""


def build_caption_prompt(context: HookContext) -> Tuple[str, str]:
    """Caption prompt as (system, user) messages; text only, no frames"""
    mood_section = ""
    if context.mood_context:
        mood_section = f"""THE CREATOR SAID THIS IS: {context.mood_context}
Your captions MUST match this energy exactly."""
        if context.caption_style:
            mood_section += f"\nCAPTION STYLE FOR THIS MOOD: {context.caption_style}"

    banned = "\n".join(f'- "{phrase}"' for phrase in BANNED_CAPTION_PHRASES)

    system = f"""Generate 3 TikTok captions that a real creator would actually use.

{mood_section}

CRITICAL - AVOID THESE CRINGE PATTERNS:
{banned}
- Anything that sounds like an Instagram caption from 2018
- Generic "relatable" phrases that could apply to anything

MATCH THE VIBE:
- Thirst trap: Confident, mysterious, or just "."
- Relatable: Casual, self-deprecating, conversational
- Confident: Unbothered, short, powerful
- Funny: Actually funny, not trying-too-hard funny
- Trend: Can be minimal or reference the trend

Rules:
- Can be 1 word to 15 words - whatever fits the vibe
- NO emojis in the text
- NO hashtags
- Must feel NATURAL, like a real person wrote it
- "." is a valid caption for thirst traps
- "no" or "anyway" or "lol" are valid captions

Return JSON: {{ "captions": ["caption1", "caption2", "caption3"] }}"""

    user_lines = [f"Video: {context.content_description}"]
    if context.mood_context:
        user_lines.append(f"Creator's vibe: {context.mood_context}")
    if context.intent:
        user_lines.append(f"Detected intent: {context.intent}")
    if context.existing_text:
        user_lines.append(f'Has text overlay: "{context.existing_text}"')

    return system, "\n".join(user_lines)
