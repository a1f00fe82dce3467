"""Prompt templates and sampling presets for the translator client."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from subloom_schemas.io import SubtitleBlock
from subloom_schemas.primitives import ProblemType, TranslationStyle
from subloom_schemas.translation import RetranslationRequest, TranslationRequest

UNCHANGED_MARKER = "UNCHANGED"


@dataclass(frozen=True, slots=True)
class StylePreset:
    """Sampling parameters and extra rules for a translation style."""

    temperature: float
    top_p: float
    instructions: str


STYLE_PRESETS: dict[TranslationStyle, StylePreset] = {
    TranslationStyle.PRECISE: StylePreset(
        temperature=0.2,
        top_p=0.8,
        instructions=(
            "ADDITIONAL PRECISE TRANSLATION RULES:\n"
            "1. Maintain maximum accuracy with the original text\n"
            "2. Preserve all nuances and details\n"
            "3. Keep technical terminology exact\n"
            "4. Minimize creative liberties\n"
            "5. Ensure literal meaning is preserved"
        ),
    ),
    TranslationStyle.NATURAL: StylePreset(
        temperature=0.4,
        top_p=0.9,
        instructions=(
            "ADDITIONAL NATURAL TRANSLATION RULES:\n"
            "1. Use natural {language} expressions\n"
            "2. Adapt idioms to {language} equivalents\n"
            "3. Maintain readability and flow\n"
            "4. Use common {language} language patterns\n"
            "5. Balance accuracy with naturalness"
        ),
    ),
    TranslationStyle.CREATIVE: StylePreset(
        temperature=0.85,
        top_p=0.95,
        instructions=(
            "ADDITIONAL CREATIVE TRANSLATION RULES:\n"
            "1. Preserve the original style and tone\n"
            "2. Use expressive {language} language\n"
            "3. Adapt cultural references appropriately\n"
            "4. Maintain artistic elements\n"
            "5. Allow creative interpretation while keeping the core meaning"
        ),
    ),
}

_TRANSLATION_RULES = """TRANSLATION RULES:
1. Do not add any additional information or comments, only the translation.
2. Preserve numbers, brackets and technical markers like [MUSIC] exactly.
3. Use a literary {language} style.
4. Keep line breaks and punctuation.
5. Maintain consistency with surrounding context and previous blocks.
6. Never leave any block untranslated.
7. Use the known terms exactly as given.
8. Report names and recurring terms you translated in "terms".
9. If unsure about context, translate literally.
10. Return exactly one translation per requested block number."""

_PROBLEM_DESCRIPTIONS: dict[ProblemType, str] = {
    ProblemType.MEANING_LOSS: "important meaning from the original is missing",
    ProblemType.GRAMMAR_ISSUES: "incorrect grammar structure",
    ProblemType.CONTEXT_MISMATCH: "translation does not fit surrounding context",
    ProblemType.TECHNICAL_ERRORS: "issues with format or markers",
    ProblemType.UNNATURAL_LANGUAGE: "sounds mechanical or non-native",
    ProblemType.TOO_LITERAL: "word-for-word translation that sounds awkward",
    ProblemType.TOO_FREE: "diverges too much from the original meaning",
    ProblemType.INCONSISTENT_STYLE: "style differs from the rest of the translation",
    ProblemType.TOO_LONG: "translation will not fit timing constraints",
}


def style_preset(style: TranslationStyle | str) -> StylePreset:
    """Return the preset for a style."""
    return STYLE_PRESETS[TranslationStyle(style)]


def translation_system_prompt(language: str, style: TranslationStyle | str) -> str:
    """Build the system prompt for translation mode.

    Args:
        language: Target language name.
        style: Translation style.

    Returns:
        str: System prompt with the style's extra rules.
    """
    rules = _TRANSLATION_RULES.format(language=language)
    extra = style_preset(style).instructions.format(language=language)
    return f"{rules}\n\n{extra}"


def verification_system_prompt(language: str) -> str:
    """Build the system prompt for analysis mode."""
    categories = "\n".join(
        f"   - {problem.value}: {description}"
        for problem, description in _PROBLEM_DESCRIPTIONS.items()
    )
    return (
        "VERIFICATION RULES:\n"
        f"1. Compare the original subtitles with their {language} translation.\n"
        "2. Identify translation issues using ONLY these categories:\n"
        f"{categories}\n"
        "3. Rate translation quality from 1 (extremely poor) to 10 (perfect).\n"
        "4. Consider surrounding blocks when evaluating.\n"
        "5. For blocks with issues, give specific recommendations, but do not "
        "provide the improved translation.\n"
        "Only report blocks with issues. If all blocks look good, return an "
        "empty list."
    )


def retranslation_system_prompt(language: str, style: TranslationStyle | str) -> str:
    """Build the system prompt for re-translation mode."""
    return (
        "You are a professional subtitle translator improving existing "
        f"{language} translations.\n\n"
        + style_preset(style).instructions.format(language=language)
    )


def format_blocks(blocks: list[SubtitleBlock]) -> str:
    """Render blocks as ``BLOCK n:`` sections."""
    return "\n\n".join(f"BLOCK {block.number}:\n{block.text}" for block in blocks)


def format_known_terms(glossary: Mapping[str, str]) -> str:
    """Render the glossary section of a translation prompt."""
    if not glossary:
        return "KNOWN TERMS:\nNo known terms yet."
    terms = "\n".join(f"- {source} -> {target}" for source, target in glossary.items())
    return f"KNOWN TERMS:\n{terms}"


def build_translation_prompt(request: TranslationRequest) -> str:
    """Build the user prompt for one translation window.

    Returns:
        str: Prompt with known terms, context, and the blocks to translate.
    """
    first, last = request.blocks[0].number, request.blocks[-1].number
    span = str(first) if first == last else f"{first}-{last}"
    sections = [format_known_terms(request.glossary)]
    if request.context_before:
        sections.append(f"CONTEXT BEFORE:\n{format_blocks(request.context_before)}")
    sections.append(
        f"TRANSLATE ONLY THESE BLOCKS {span} TO "
        f"{request.target_language.upper()}:\n{format_blocks(request.blocks)}"
    )
    if request.context_after:
        sections.append(f"CONTEXT AFTER:\n{format_blocks(request.context_after)}")
    return "\n\n".join(sections)


def build_analysis_prompt(
    original: list[SubtitleBlock], translated: list[SubtitleBlock]
) -> str:
    """Build the user prompt for one scan window."""
    return (
        f"ORIGINAL BLOCKS:\n{format_blocks(original)}\n\n"
        f"TRANSLATED BLOCKS:\n{format_blocks(translated)}"
    )


def build_retranslation_prompt(request: RetranslationRequest) -> str:
    """Build the user prompt for one issue group.

    Returns:
        str: Prompt listing the problematic blocks with their defects.
    """
    problems = []
    for issue in request.issues:
        lines = [
            f"BLOCK {issue.block_number}",
            f"Original: {issue.original_text}",
            f"Current: {issue.current_translation}",
            f"Problems: {', '.join(str(problem) for problem in issue.problem_types)}",
        ]
        if issue.recommendations:
            lines.append(f"Recommendations: {issue.recommendations}")
        problems.append("\n".join(lines))

    sections = []
    if request.context_before:
        sections.append(f"CONTEXT BEFORE:\n{format_blocks(request.context_before)}")
    sections.append("PROBLEMATIC BLOCKS:\n" + "\n\n".join(problems))
    if request.context_after:
        sections.append(f"CONTEXT AFTER:\n{format_blocks(request.context_after)}")
    sections.append(
        "INSTRUCTIONS:\n"
        f"- Provide better translations for blocks {request.first_block}-"
        f"{request.last_block} that address all identified issues\n"
        "- The new translation must differ from the current one\n"
        "- Maintain consistency with the context\n"
        f"- Keep the translation concise and natural in {request.target_language}\n"
        "- Preserve all formatting and technical markers\n"
        f"- If a block cannot be improved, return {UNCHANGED_MARKER} as its text"
    )
    return "\n\n".join(sections)
