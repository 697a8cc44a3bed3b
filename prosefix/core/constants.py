"""Application-wide constants for Prosefix."""

# Marker written in place of model output when an invocation fails or times out
ERROR_MARKER = "(error)"

DEFAULT_MODEL = "gemma3"

# =============================================================================
# GRAMMAR OPTIONS
# =============================================================================

TONES = ("neutral", "formal", "friendly", "academic", "technical")
STRICTNESS_LEVELS = ("lenient", "balanced", "strict")
PUNCTUATION_STYLES = ("unchanged", "auto", "simple", "smart")
UNIT_SYSTEMS = ("unchanged", "metric", "imperial", "auto")
SPELLING_VARIANTS = ("unchanged", "en-US", "en-GB")

# =============================================================================
# TRANSLATION OPTIONS
# =============================================================================

SOURCE_LANGUAGES = ("auto", "english", "hungarian", "japanese")
TARGET_LANGUAGES = ("english", "hungarian", "japanese")

LANGUAGE_LABELS = {
    "auto": "auto-detect",
    "english": "English",
    "hungarian": "Hungarian",
    "japanese": "Japanese",
}

# Chunking bounds for batched translation calls
MAX_PARAGRAPHS_LIMIT = 20
MAX_CHARS_LIMIT = 20000
DEFAULT_MAX_PARAGRAPHS = 1
DEFAULT_MAX_CHARS = 0  # 0 = no character cap

# =============================================================================
# STREAMING
# =============================================================================

NDJSON_MEDIA_TYPE = "application/x-ndjson; charset=utf-8"
STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}
