"""
cutplan.transcript.ranges - Map words to segments and resolve selections.
"""

from __future__ import annotations

from collections.abc import Sequence

from pydantic import BaseModel

from cutplan.transcript.models import TranscriptSegment, TranscriptWord
from cutplan.utils import clean_text

UNMAPPED_INDEX = -1


class ResolvedRange(BaseModel):
    start_word_index: int
    end_word_index: int
    start_ms: int
    end_ms: int
    word_count: int
    text_preview: str


class SegmentWordRange(BaseModel):
    segment_id: str
    start_word_index: int
    end_word_index: int
    start_ms: int
    end_ms: int
    text: str
    speaker_label: str | None = None
    confidence_avg: float | None = None

    @property
    def unmapped(self) -> bool:
        return self.start_word_index == UNMAPPED_INDEX


def resolve_range_selection(
    words: Sequence[TranscriptWord], start_word_index: int, end_word_index: int
) -> ResolvedRange | None:
    """Clamp a word-index selection to the transcript and describe it.

    Returns:
        ResolvedRange, or None for an empty transcript
    """
    if not words:
        return None
    start = max(0, min(len(words) - 1, start_word_index))
    end = max(start, min(len(words) - 1, end_word_index))
    selected = words[start : end + 1]
    return ResolvedRange(
        start_word_index=start,
        end_word_index=end,
        start_ms=selected[0].start_ms,
        end_ms=selected[-1].end_ms,
        word_count=len(selected),
        text_preview=clean_text(" ".join(w.text for w in selected)),
    )


def build_segment_word_ranges(
    segments: Sequence[TranscriptSegment], words: Sequence[TranscriptWord]
) -> list[SegmentWordRange]:
    """Two-pointer scan assigning each segment its span of word indexes.

    Both inputs are sorted by start time; indexes refer to the sorted word
    list. A segment that no word falls into gets UNMAPPED_INDEX for both
    bounds instead of being dropped.
    """
    ordered_segments = sorted(segments, key=lambda s: s.start_ms)
    ordered_words = sorted(words, key=lambda w: w.start_ms)
    ranges: list[SegmentWordRange] = []

    cursor = 0
    for segment in ordered_segments:
        while cursor < len(ordered_words) and ordered_words[cursor].end_ms <= segment.start_ms:
            cursor += 1
        start_index = cursor
        while cursor < len(ordered_words) and ordered_words[cursor].start_ms < segment.end_ms:
            cursor += 1
        end_index = cursor - 1

        mapped = start_index <= end_index
        ranges.append(
            SegmentWordRange(
                segment_id=segment.id,
                start_word_index=start_index if mapped else UNMAPPED_INDEX,
                end_word_index=end_index if mapped else UNMAPPED_INDEX,
                start_ms=segment.start_ms,
                end_ms=segment.end_ms,
                text=segment.text,
                speaker_label=segment.speaker_label,
                confidence_avg=segment.confidence_avg,
            )
        )

    return ranges
