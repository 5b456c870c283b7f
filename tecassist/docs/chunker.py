"""Document chunker - deterministic, overlap-aware text splitting."""

import math
import re
from dataclasses import dataclass

from tecassist.errors import ValidationError
from tecassist.models.documents import ChunkDraft

# Boundaries tried in order before falling back to a hard character cut
_BOUNDARIES = ("\n\n", "\n", ". ", "? ", "! ", "; ", " ")

_BLANK_LINES = re.compile(r"\n[ \t]*(\n[ \t]*)+")
_INLINE_SPACE = re.compile(r"[ \t]+")


@dataclass(frozen=True)
class ChunkerConfig:
    """Chunking parameters.

    Attributes:
        max_chars: Hard upper bound on a chunk's length
        overlap: Characters shared between consecutive chunks
        min_chars: Trailing fragments shorter than this are merged into the
            previous chunk when the merge still fits max_chars
        strategy: "semantic" (natural boundaries) or "fixed" (sliding window)
    """

    max_chars: int = 800
    overlap: int = 150
    min_chars: int = 80
    strategy: str = "semantic"

    def validate(self) -> None:
        """Raise ValidationError if the configuration cannot produce progress."""
        if self.max_chars <= 0:
            raise ValidationError("max_chars must be positive", {"max_chars": self.max_chars})
        if self.overlap < 0 or self.overlap >= self.max_chars:
            raise ValidationError(
                "overlap must be >= 0 and smaller than max_chars",
                {"overlap": self.overlap, "max_chars": self.max_chars},
            )
        if self.min_chars < 0 or self.min_chars > self.max_chars:
            raise ValidationError(
                "min_chars must be between 0 and max_chars",
                {"min_chars": self.min_chars, "max_chars": self.max_chars},
            )
        if self.strategy not in ("semantic", "fixed"):
            raise ValidationError("unknown chunking strategy", {"strategy": self.strategy})


def normalize_text(text: str) -> str:
    """Normalize line endings, inline whitespace runs and blank-line runs."""
    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    normalized = _INLINE_SPACE.sub(" ", normalized)
    normalized = _BLANK_LINES.sub("\n\n", normalized)
    return normalized.strip()


def estimate_tokens(text: str, chars_per_token: int = 4) -> int:
    """Rough token estimate used for budgeting (1 token ~ 4 characters)."""
    return math.ceil(len(text) / chars_per_token)


def _find_cut(text: str, start: int, limit: int, earliest: int) -> int:
    """Find the end offset for a chunk starting at `start`.

    Prefers the latest natural boundary in (earliest, limit]; falls back to
    a hard cut at limit.
    """
    for sep in _BOUNDARIES:
        idx = text.rfind(sep, earliest, limit)
        if idx == -1:
            continue
        # Keep sentence punctuation with the sentence it ends
        end = idx + 1 if sep[0] in ".?!;" else idx
        if end > earliest:
            return end
    return limit


def _window_spans(text: str, config: ChunkerConfig) -> list[tuple[int, int]]:
    spans: list[tuple[int, int]] = []
    start = 0
    length = len(text)

    while start < length:
        limit = start + config.max_chars
        if limit >= length:
            end = length
        elif config.strategy == "semantic":
            # A boundary must leave room for progress past the overlap
            earliest = start + max(config.overlap, config.min_chars, 1)
            end = _find_cut(text, start, limit, min(earliest, limit - 1))
        else:
            end = limit

        spans.append((start, end))
        if end >= length:
            break

        if config.overlap:
            start = end - config.overlap
        else:
            start = end
            while start < length and text[start].isspace():
                start += 1

    return spans


def _merge_short_tail(
    text: str, spans: list[tuple[int, int]], config: ChunkerConfig
) -> list[tuple[int, int]]:
    if len(spans) < 2:
        return spans
    tail_start, tail_end = spans[-1]
    prev_start, _ = spans[-2]
    if tail_end - tail_start >= config.min_chars:
        return spans
    if tail_end - prev_start > config.max_chars:
        return spans
    return spans[:-2] + [(prev_start, tail_end)]


def chunk_document(text: str, config: ChunkerConfig | None = None) -> list[ChunkDraft]:
    """Chunk document text into ordered, overlapping segments.

    Pure function with no I/O or randomness: identical input and config
    always give identical output, which keeps re-indexing idempotent.

    Args:
        text: Raw extracted document text
        config: Chunking parameters (defaults to ChunkerConfig())

    Returns:
        List of ChunkDraft where:
        - index is 0-based and contiguous
        - content is non-empty and at most max_chars long
        - consecutive chunks share exactly `overlap` characters
          (the previous chunk's suffix is the next chunk's prefix)

    Raises:
        ValidationError: If the config is malformed (e.g. overlap >= max_chars)

    Strategy:
        1. Normalize line endings and whitespace runs
        2. Walk a window of max_chars over the text
        3. semantic: cut at the latest paragraph break, then line break,
           then sentence end, then word gap; hard cut as last resort
        4. fixed: always hard cut at max_chars
        5. Start the next window `overlap` characters before the cut
        6. Merge a tail shorter than min_chars into the previous chunk if
           the merged chunk still fits
    """
    config = config or ChunkerConfig()
    config.validate()

    if not text or not text.strip():
        return []

    normalized = normalize_text(text)
    spans = _merge_short_tail(normalized, _window_spans(normalized, config), config)

    contents = [normalized[start:end] for start, end in spans]
    contents = [c for c in contents if c.strip()]

    return [ChunkDraft(index=i, content=c) for i, c in enumerate(contents)]
