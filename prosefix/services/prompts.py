"""
Option resolution and prompt construction for grammar and translation jobs.

Options arrive from the browser in camelCase and are resolved leniently:
anything outside the known vocabulary falls back to its default.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from ..core.constants import (
    DEFAULT_MAX_CHARS,
    DEFAULT_MAX_PARAGRAPHS,
    LANGUAGE_LABELS,
    MAX_CHARS_LIMIT,
    MAX_PARAGRAPHS_LIMIT,
    PUNCTUATION_STYLES,
    SOURCE_LANGUAGES,
    SPELLING_VARIANTS,
    STRICTNESS_LEVELS,
    TARGET_LANGUAGES,
    TONES,
    UNIT_SYSTEMS,
)
from .segmenter import Unit


def _choice(value: Any, allowed: Sequence[str], default: str, lower: bool = False) -> str:
    candidate = str(value or "")
    if lower:
        candidate = candidate.lower()
    return candidate if candidate in allowed else default


def _bounded_int(value: Any, default: int, low: int, high: int) -> int:
    """Clamp a positive number into [low, high]; non-positive or invalid keeps the default."""
    if isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number or number <= 0 or number == float("inf"):
        return default
    return max(low, min(high, int(number)))


# =============================================================================
# GUIDANCE TABLES
# =============================================================================

STRICTNESS_GUIDE = {
    "strict": "Be strict: fix all grammar, style and clarity issues.",
    "lenient": "Be lenient: fix only clear grammar errors.",
    "balanced": "Be balanced: fix obvious grammar errors and light clarity issues.",
}

PUNCTUATION_GUIDE = {
    "smart": (
        "Use typographic punctuation appropriate to the text’s language "
        "(proper quotation marks, dashes, and ellipsis)."
    ),
    "unchanged": (
        "Preserve the original punctuation style; do not convert quotation marks or dashes."
    ),
    "auto": "Choose a consistent punctuation style appropriate to the text’s language.",
    "simple": "Use simple ASCII punctuation only (straight quotes, hyphen, three dots).",
}

_KEEP_LANGUAGE = (
    "Keep the original language and regional spelling; do not change dialect or translate."
)

UNITS_GUIDE = {
    "metric": (
        "Convert measurement units to SI/metric, updating numbers and unit labels. "
        + _KEEP_LANGUAGE
    ),
    "imperial": (
        "Convert measurement units to Imperial/US customary, updating numbers and unit "
        "labels. " + _KEEP_LANGUAGE
    ),
    "auto": (
        "Use a consistent unit system based on context; avoid mixing systems. "
        + _KEEP_LANGUAGE
    ),
    "unchanged": "Preserve the original measurement units.",
}

SPELLING_GUIDE = {
    "unchanged": (
        "Keep the original language and regional spelling conventions; do not change "
        "dialect and do not translate."
    ),
    "en-US": (
        "Keep the original language; do not translate. If the text is English, "
        "standardize spelling to American English (US) conventions; otherwise, do not "
        "alter regional spelling."
    ),
    "en-GB": (
        "Keep the original language; do not translate. If the text is English, "
        "standardize spelling to British English (UK) conventions; otherwise, do not "
        "alter regional spelling."
    ),
}


# =============================================================================
# GRAMMAR
# =============================================================================


@dataclass(frozen=True)
class GrammarOptions:
    tone: str = "neutral"
    strictness: str = "balanced"
    punctuation_style: str = "unchanged"
    units: str = "unchanged"
    spelling_variant: str = "en-US"

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any] | None) -> "GrammarOptions":
        raw = raw if isinstance(raw, Mapping) else {}
        return cls(
            tone=_choice(raw.get("tone"), TONES, "neutral"),
            strictness=_choice(raw.get("strictness"), STRICTNESS_LEVELS, "balanced"),
            punctuation_style=_choice(
                raw.get("punctuationStyle"), PUNCTUATION_STYLES, "unchanged"
            ),
            units=_choice(raw.get("units"), UNIT_SYSTEMS, "unchanged"),
            spelling_variant=_choice(raw.get("spellingVariant"), SPELLING_VARIANTS, "en-US"),
        )

    @property
    def tone_guide(self) -> str:
        if self.tone == "neutral":
            return "Keep tone neutral."
        return f"Target tone: {self.tone}."


def build_grammar_prompt(paragraph: str, options: GrammarOptions) -> str:
    """Build the correction prompt for a single paragraph."""
    lines = [
        "You are a grammar correction assistant.",
        "- Keep the original meaning and style.",
        f"- {SPELLING_GUIDE[options.spelling_variant]}",
        f"- {options.tone_guide}",
        f"- {STRICTNESS_GUIDE[options.strictness]}",
        f"- {PUNCTUATION_GUIDE[options.punctuation_style]}",
        f"- {UNITS_GUIDE[options.units]}",
        "- Do NOT include explanations, commentary, quotes around the output, or extra text.",
        "- Only output the corrected paragraph.",
        "",
        "Paragraph:",
        paragraph.strip(),
    ]
    return "\n".join(lines)


# =============================================================================
# TRANSLATION
# =============================================================================


@dataclass(frozen=True)
class TranslateOptions:
    source_lang: str = "auto"
    target_lang: str = "english"
    punctuation_style: str = "unchanged"
    max_paragraphs: int = DEFAULT_MAX_PARAGRAPHS
    max_chars: int = DEFAULT_MAX_CHARS

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any] | None) -> "TranslateOptions":
        raw = raw if isinstance(raw, Mapping) else {}
        chunking = raw.get("chunking")
        if not isinstance(chunking, Mapping):
            chunking = raw
        return cls(
            source_lang=_choice(raw.get("sourceLang"), SOURCE_LANGUAGES, "auto", lower=True),
            target_lang=_choice(
                raw.get("targetLang"), TARGET_LANGUAGES, "english", lower=True
            ),
            punctuation_style=_choice(
                raw.get("punctuationStyle"), PUNCTUATION_STYLES, "unchanged"
            ),
            max_paragraphs=_bounded_int(
                chunking.get("maxParagraphs"), DEFAULT_MAX_PARAGRAPHS, 1, MAX_PARAGRAPHS_LIMIT
            ),
            max_chars=_bounded_int(
                chunking.get("maxChars"), DEFAULT_MAX_CHARS, 0, MAX_CHARS_LIMIT
            ),
        )


def describe_source_language(code: str) -> str:
    if code == "auto":
        return "Detect the source language automatically."
    return f"The source language is {LANGUAGE_LABELS.get(code, code)}."


def describe_target_language(code: str) -> str:
    return f"Translate into {LANGUAGE_LABELS.get(code, code)}."


_TRANSLATION_REQUIREMENTS = "\n".join(
    [
        "Requirements:",
        '- Return valid JSON with the structure {"translations":[{"index":<index>,"text":"..."}]}.',
        "- Use the same numeric indices that are provided with each paragraph below.",
        "- Provide only the JSON; do not add explanations, markdown, comments, or extra keys.",
        "- Preserve sentence boundaries and formatting where possible.",
    ]
)


def build_translation_prompt(units: Sequence[Unit], options: TranslateOptions) -> str:
    """
    Build one translation prompt covering a chunk of paragraphs.

    Each paragraph is tagged with its global index so the model can echo it
    back in the JSON payload.
    """
    if not units:
        return ""

    header = [
        "You are a professional translator.",
        describe_source_language(options.source_lang),
        describe_target_language(options.target_lang),
    ]
    if len(units) > 1:
        header.append(
            "Use the combined context of all paragraphs to keep terminology and tone consistent."
        )
    else:
        header.append("Translate the paragraph accurately while keeping the original intent.")
    # Default punctuation leaves the prompt untouched
    if options.punctuation_style != "unchanged":
        header.append(PUNCTUATION_GUIDE[options.punctuation_style])

    paragraphs = "\n\n".join(f"[{unit.index}]: {unit.text}" for unit in units)
    return (
        "\n".join(header)
        + "\n\n"
        + _TRANSLATION_REQUIREMENTS
        + "\n\nParagraphs:\n"
        + paragraphs
    )
