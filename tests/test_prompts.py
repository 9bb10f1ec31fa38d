from tokbox.models.analysis import HookContext
from tokbox.services.prompts import (
    BANNED_CAPTION_PHRASES,
    BANNED_HOOK_PHRASES,
    build_analysis_prompt,
    build_caption_prompt,
    build_hook_prompt,
)


def test_analysis_prompt_without_mood_has_no_persona():
    prompt = build_analysis_prompt()
    assert "THE CREATOR SAYS THIS IS" not in prompt
    assert "TEXT OVERLAY" in prompt
    assert '"the_one_thing"' in prompt
    assert '"execution"' in prompt


def test_analysis_prompt_with_mood_leads_with_persona(moods):
    strategy = moods.get("thirst")
    prompt = build_analysis_prompt(strategy)
    assert prompt.startswith("THE CREATOR SAYS THIS IS:")
    assert strategy.psychology in prompt
    assert "Don't grade inflate" in prompt


def test_hook_prompt_includes_context_and_banned_phrases():
    context = HookContext(
        content_description="A woman doing a slow-motion hair flip on a balcony at sunset",
        intent="thirst trap",
        is_trend=True,
        trend_type="slow-mo reveal",
        mood_context="Thirst trap - confident, alluring",
        hook_style="Short, confident, a little teasing",
    )
    prompt = build_hook_prompt(context)
    assert "Video shows: A woman doing a slow-motion hair flip" in prompt
    assert "slow-mo reveal" in prompt
    assert "THE CREATOR SAID THIS IS: Thirst trap" in prompt
    assert "HOOK STYLE FOR THIS MOOD: Short, confident" in prompt
    for phrase in BANNED_HOOK_PHRASES:
        assert phrase in prompt
    assert '"why_this_works"' in prompt
    assert "THIS VIDEO ALREADY HAS TEXT" not in prompt


def test_hook_prompt_with_existing_text():
    context = HookContext(content_description="Gym mirror check", existing_text="day 1 vs day 100")
    prompt = build_hook_prompt(context)
    assert 'THIS VIDEO ALREADY HAS TEXT: "day 1 vs day 100"' in prompt
    assert "THE CREATOR SAID THIS IS" not in prompt


def test_caption_prompt_is_system_and_user():
    context = HookContext(
        content_description="Cat knocking a glass off the table",
        intent="humor",
        mood_context="Comedy - making people laugh",
        caption_style="Deadpan",
        existing_text="he knew",
    )
    system, user = build_caption_prompt(context)
    assert '"captions"' in system
    assert "CAPTION STYLE FOR THIS MOOD: Deadpan" in system
    for phrase in BANNED_CAPTION_PHRASES:
        assert phrase in system
    assert user.splitlines()[0] == "Video: Cat knocking a glass off the table"
    assert 'Has text overlay: "he knew"' in user
    assert "Creator's vibe: Comedy" in user
