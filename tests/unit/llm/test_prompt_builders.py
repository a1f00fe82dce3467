"""Unit tests for prompt builders and provider detection."""

from __future__ import annotations

import pytest

from subloom_llm.prompts import (
    STYLE_PRESETS,
    build_analysis_prompt,
    build_retranslation_prompt,
    build_translation_prompt,
    translation_system_prompt,
    verification_system_prompt,
)
from subloom_llm.providers import (
    GENERIC_CAPABILITIES,
    LOCAL_CAPABILITIES,
    OPENAI_CAPABILITIES,
    OPENROUTER_CAPABILITIES,
    detect_provider,
    normalize_base_url,
)
from subloom_schemas.primitives import ProblemType, TranslationStyle
from subloom_schemas.translation import RetranslationRequest, TranslationRequest
from tests.helpers.stubs import make_blocks, make_issue


@pytest.mark.unit
def test_style_presets_cover_every_style() -> None:
    """Each style has its own sampling parameters."""
    assert set(STYLE_PRESETS) == set(TranslationStyle)
    assert STYLE_PRESETS[TranslationStyle.NATURAL].temperature == 0.4
    assert STYLE_PRESETS[TranslationStyle.CREATIVE].top_p == 0.95


@pytest.mark.unit
def test_translation_prompt_sections_in_order() -> None:
    """Known terms come first, then context, the blocks, and trailing context."""
    blocks = make_blocks(6)
    request = TranslationRequest(
        blocks=blocks[2:4],
        context_before=blocks[:2],
        context_after=blocks[4:],
        target_language="German",
        style=TranslationStyle.NATURAL,
    )

    prompt = build_translation_prompt(request)

    assert prompt.startswith("KNOWN TERMS:\nNo known terms yet.")
    assert "TRANSLATE ONLY THESE BLOCKS 3-4 TO GERMAN:" in prompt
    assert prompt.index("CONTEXT BEFORE:") < prompt.index("TRANSLATE ONLY")
    assert prompt.index("TRANSLATE ONLY") < prompt.index("CONTEXT AFTER:")
    assert "BLOCK 3:\nline 3" in prompt


@pytest.mark.unit
def test_system_prompts_name_language_and_categories() -> None:
    """System prompts carry the language and the defect taxonomy."""
    translation = translation_system_prompt("German", TranslationStyle.CREATIVE)
    verification = verification_system_prompt("German")

    assert "expressive German language" in translation
    for problem in ProblemType:
        assert problem.value in verification


@pytest.mark.unit
def test_analysis_and_retranslation_prompts() -> None:
    """Analysis lists both sides; re-translation lists defects per block."""
    analysis = build_analysis_prompt(make_blocks(1), make_blocks(1, prefix="T"))
    request = RetranslationRequest(
        issues=[make_issue(4, problems=[ProblemType.TOO_FREE])],
        context_before=make_blocks(1, start=3),
        target_language="German",
        style=TranslationStyle.PRECISE,
    )

    prompt = build_retranslation_prompt(request)

    assert analysis.startswith("ORIGINAL BLOCKS:\nBLOCK 1:\nline 1")
    assert "TRANSLATED BLOCKS:\nBLOCK 1:\nT 1" in analysis
    assert "Problems: too_free" in prompt
    assert "blocks 4-4" in prompt
    assert "UNCHANGED" in prompt


@pytest.mark.unit
@pytest.mark.parametrize(
    ("base_url", "expected"),
    [
        ("https://openrouter.ai/api/v1", OPENROUTER_CAPABILITIES),
        ("https://api.openai.com/v1", OPENAI_CAPABILITIES),
        ("http://localhost:1234/v1", LOCAL_CAPABILITIES),
        ("http://192.168.1.20:8080/v1", LOCAL_CAPABILITIES),
        ("https://llm.example.com/v1", GENERIC_CAPABILITIES),
    ],
)
def test_detect_provider(base_url: str, expected: object) -> None:
    """Providers are recognised from their base URL."""
    assert detect_provider(base_url) == expected


@pytest.mark.unit
def test_normalize_base_url_adds_scheme_and_strips_slash() -> None:
    """Bare hosts get https and trailing slashes are removed."""
    assert normalize_base_url("api.openai.com/v1/") == "https://api.openai.com/v1"
    assert normalize_base_url("HTTP://Host:1/v1/") == "http://host:1/v1"
