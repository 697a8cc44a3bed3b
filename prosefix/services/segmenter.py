"""
Paragraph segmentation and chunking.

Text is split on blank-line boundaries into Units; for batched translation
the Units are grouped into Chunks bounded by paragraph count and characters.
"""

import re
from collections.abc import Sequence
from dataclasses import dataclass

# A blank line is a newline followed by whitespace-only content and another newline
_PARAGRAPH_BREAK = re.compile(r"\n\s*\n+")


@dataclass(frozen=True)
class Unit:
    """A single trimmed, non-empty paragraph and its position in the input."""

    index: int
    text: str


@dataclass(frozen=True)
class Chunk:
    """An ordered, non-empty run of consecutive Units sent as one invocation."""

    units: tuple[Unit, ...]

    @property
    def indices(self) -> list[int]:
        return [unit.index for unit in self.units]

    @property
    def char_count(self) -> int:
        return sum(len(unit.text) for unit in self.units)

    def __len__(self) -> int:
        return len(self.units)


def split_paragraphs(text: str | None) -> list[str]:
    """Split text into trimmed, non-empty paragraphs."""
    if not text:
        return []
    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    return [part.strip() for part in _PARAGRAPH_BREAK.split(normalized) if part.strip()]


def segment(text: str | None) -> list[Unit]:
    """Split text into Units indexed by position."""
    return [Unit(index=i, text=part) for i, part in enumerate(split_paragraphs(text))]


def chunk_units(
    units: Sequence[Unit], max_paragraphs: int = 1, max_chars: int = 0
) -> list[Chunk]:
    """
    Greedily group Units into Chunks.

    The current chunk is closed before a unit is added when it already holds
    ``max_paragraphs`` units, or when it is non-empty and the unit would push
    its character count above ``max_chars``. ``max_chars <= 0`` means no
    character cap. A unit longer than ``max_chars`` ends up alone in its chunk.
    """
    limit = max(1, max_paragraphs)
    chunks: list[Chunk] = []
    current: list[Unit] = []
    running_chars = 0

    for unit in units:
        size = len(unit.text)
        over_count = len(current) >= limit
        over_chars = max_chars > 0 and bool(current) and running_chars + size > max_chars
        if over_count or over_chars:
            chunks.append(Chunk(units=tuple(current)))
            current = []
            running_chars = 0

        current.append(unit)
        running_chars += size

    if current:
        chunks.append(Chunk(units=tuple(current)))

    return chunks
