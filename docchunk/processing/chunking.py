"""Utilities for splitting source text into embedding-ready chunks."""

from __future__ import annotations

from dataclasses import dataclass, replace
import re
from typing import Final, Literal

Direction = Literal["forward", "backward"]

# Characters to look at on one side of a target offset.
SEARCH_RANGE: Final = 100

# Highest-priority break first.
_BREAK_PATTERNS: Final = (
    re.compile(r"\n#{1,6} "),
    re.compile(r"\n\n"),
    re.compile(r"\n"),
    re.compile(r"\. "),
    re.compile(r" "),
)


class InvalidConfiguration(ValueError):
    """Raised when chunking options cannot produce a terminating segmentation."""


@dataclass(frozen=True)
class Chunk:
    """A slice of normalized text with its source character range."""

    content: str
    start_char: int
    end_char: int


@dataclass(frozen=True)
class ChunkOptions:
    """Chunk and overlap sizes, both counted in characters."""

    chunk_size: int = 1000
    overlap_size: int = 100

    def validate(self) -> ChunkOptions:
        if self.chunk_size <= 0:
            raise InvalidConfiguration(f"chunk_size must be greater than zero, got {self.chunk_size}")
        if self.overlap_size < 0:
            raise InvalidConfiguration(f"overlap_size must be non-negative, got {self.overlap_size}")
        if self.overlap_size >= self.chunk_size:
            raise InvalidConfiguration(
                f"overlap_size ({self.overlap_size}) must be less than chunk_size ({self.chunk_size})"
            )
        return self


def normalize_text(text: str) -> str:
    """Unify line endings to ``\\n`` and trim outer whitespace."""

    return text.replace("\r\n", "\n").strip()


def find_breakpoint(
    text: str,
    target_index: int,
    direction: Direction,
    *,
    bound: int | None = None,
) -> int:
    """Return the best natural break offset near ``target_index``.

    The search covers up to ``SEARCH_RANGE`` characters on the side given by
    ``direction``. Headers beat paragraph breaks, which beat newlines, sentence
    ends and finally plain spaces. Going forward the start of the first match
    is returned; going backward the offset just past the last match.

    ``bound`` narrows the window: for a backward search it is the lowest offset
    the window may start at, for a forward search the highest offset it may end
    at. When nothing matches, ``target_index`` is returned unchanged.
    """

    if direction == "backward":
        start = max(0, target_index - SEARCH_RANGE)
        end = min(len(text), target_index)
        if bound is not None:
            start = max(start, bound)
    elif direction == "forward":
        start = max(0, target_index)
        end = min(len(text), target_index + SEARCH_RANGE)
        if bound is not None:
            end = min(end, bound)
    else:
        raise ValueError(f"direction must be 'forward' or 'backward', got {direction!r}")

    if end <= start:
        return target_index

    for pattern in _BREAK_PATTERNS:
        if direction == "forward":
            match = pattern.search(text, start, end)
            if match is not None:
                return match.start()
            continue

        matches = list(pattern.finditer(text, start, end))
        if matches:
            return matches[-1].end()

    return target_index


def chunk_text(
    text: str,
    options: ChunkOptions | None = None,
    *,
    chunk_size: int | None = None,
    overlap_size: int | None = None,
) -> list[Chunk]:
    """Split text into ordered, overlapping chunks on natural boundaries.

    Args:
        text: Raw source text; line endings are normalized and outer whitespace
            trimmed before splitting. Chunk offsets refer to that normalized text.
        options: Chunk and overlap sizes. Defaults to ``ChunkOptions()``.
        chunk_size: Overrides ``options.chunk_size``.
        overlap_size: Overrides ``options.overlap_size``.

    Raises:
        InvalidConfiguration: If the sizes cannot make forward progress.
    """

    options = options or ChunkOptions()
    if chunk_size is not None:
        options = replace(options, chunk_size=chunk_size)
    if overlap_size is not None:
        options = replace(options, overlap_size=overlap_size)
    options.validate()

    normalized = normalize_text(text)
    length = len(normalized)
    if length == 0:
        return []

    if length <= options.chunk_size:
        return [Chunk(content=normalized, start_char=0, end_char=length)]

    chunks: list[Chunk] = []
    start_index = 0
    previous_context_start = -1

    while start_index < length:
        end_index = min(start_index + options.chunk_size, length)
        if end_index < length:
            end_index = find_breakpoint(normalized, end_index, "backward", bound=start_index)

        if end_index <= start_index:
            raise InvalidConfiguration(
                f"chunking stalled at offset {start_index} with chunk_size={options.chunk_size}"
            )

        if start_index == 0:
            context_start = 0
        else:
            context_start = find_breakpoint(
                normalized,
                max(0, start_index - options.overlap_size),
                "forward",
                bound=start_index,
            )
            # Neighbouring forward windows can snap to the same break.
            context_start = max(context_start, previous_context_start + 1)

        if end_index == length:
            context_end = length
        else:
            context_end = find_breakpoint(
                normalized,
                min(length, end_index + options.overlap_size),
                "backward",
                bound=end_index,
            )

        content = normalized[context_start:context_end]
        if content.strip():
            chunks.append(Chunk(content=content, start_char=context_start, end_char=context_end))

        previous_context_start = context_start
        start_index = end_index

    return chunks
