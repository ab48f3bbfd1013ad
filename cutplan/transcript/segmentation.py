"""
cutplan.transcript.segmentation - Group words into caption-sized segments.
"""

from __future__ import annotations

from collections.abc import Sequence

from cutplan.transcript.models import TranscriptSegment, TranscriptWord
from cutplan.utils import clamp, clean_text

MIN_WORD_MS = 80
MIN_SEGMENT_MS = 120
MIN_REBUILT_WORD_MS = 60
MAX_WORD_LENGTH = 64


def _max_words(max_words_per_segment: int) -> int:
    return int(clamp(max_words_per_segment, 3, 14))


def _max_chars(max_chars_per_line: int, max_lines_per_segment: int) -> int:
    return int(clamp(max_chars_per_line, 14, 42)) * int(clamp(max_lines_per_segment, 1, 3))


def _safe_words(words: Sequence[TranscriptWord]) -> list[TranscriptWord]:
    safe = []
    for word in words:
        text = clean_text(word.text, max_length=MAX_WORD_LENGTH)
        if not text:
            continue
        start = max(0, word.start_ms)
        confidence = clamp(word.confidence, 0.0, 1.0) if word.confidence is not None else None
        safe.append(
            word.model_copy(
                update={
                    "text": text,
                    "start_ms": start,
                    "end_ms": max(start + MIN_WORD_MS, word.end_ms),
                    "confidence": confidence,
                }
            )
        )
    return sorted(safe, key=lambda w: w.start_ms)


def build_transcript_segments_from_words(
    words: Sequence[TranscriptWord],
    max_words_per_segment: int = 7,
    max_chars_per_line: int = 24,
    max_lines_per_segment: int = 2,
) -> list[TranscriptSegment]:
    """Greedily pack time-sorted words into segments.

    A segment closes when adding the next word would exceed the word limit
    or the character budget (chars per line times lines). Limits are
    clamped to sane caption sizes.

    Args:
        words: Raw words, any order
        max_words_per_segment: Word limit per segment (3-14)
        max_chars_per_line: Characters per caption line (14-42)
        max_lines_per_segment: Caption lines per segment (1-3)

    Returns:
        Segments in time order, each with a fresh id
    """
    safe = _safe_words(words)
    word_limit = _max_words(max_words_per_segment)
    char_limit = _max_chars(max_chars_per_line, max_lines_per_segment)
    segments: list[TranscriptSegment] = []

    cursor = 0
    while cursor < len(safe):
        chunk: list[TranscriptWord] = []
        char_count = 0
        for candidate in safe[cursor:]:
            next_chars = char_count + (1 if chunk else 0) + len(candidate.text)
            if len(chunk) >= word_limit or next_chars > char_limit:
                break
            chunk.append(candidate)
            char_count = next_chars

        if not chunk:
            chunk.append(safe[cursor])

        scores = [w.confidence for w in chunk if w.confidence is not None]
        segments.append(
            TranscriptSegment(
                text=clean_text(" ".join(w.text for w in chunk)),
                start_ms=chunk[0].start_ms,
                end_ms=chunk[-1].end_ms,
                speaker_label=chunk[0].speaker_label,
                confidence_avg=sum(scores) / len(scores) if scores else None,
            )
        )
        cursor += len(chunk)

    return segments


def assign_segment_ids_to_words(
    words: Sequence[TranscriptWord], segments: Sequence[TranscriptSegment]
) -> list[TranscriptWord]:
    """Attach each word to the segment containing it, else the one it overlaps most."""
    assigned = []
    for word in words:
        match = next(
            (s for s in segments if word.start_ms >= s.start_ms and word.end_ms <= s.end_ms),
            None,
        )
        if match is None:
            best_overlap = -1
            for segment in segments:
                overlap = max(0, min(word.end_ms, segment.end_ms) - max(word.start_ms, segment.start_ms))
                if overlap > best_overlap:
                    best_overlap = overlap
                    match = segment
        assigned.append(word.model_copy(update={"segment_id": match.id if match else None}))
    return assigned


def rebuild_words_from_segments(segments: Sequence[TranscriptSegment]) -> list[TranscriptWord]:
    """Spread each segment's tokens evenly over its span.

    Used after a patch, when original word timings no longer line up with
    the edited text.
    """
    words: list[TranscriptWord] = []
    for segment in segments:
        tokens = clean_text(segment.text).split()
        if not tokens:
            continue
        duration = max(MIN_SEGMENT_MS, segment.end_ms - segment.start_ms)
        slot = max(MIN_WORD_MS, duration // len(tokens))
        cursor = segment.start_ms
        for token in tokens:
            end = min(segment.end_ms, cursor + slot)
            words.append(
                TranscriptWord(
                    text=token,
                    start_ms=cursor,
                    end_ms=max(cursor + MIN_REBUILT_WORD_MS, end),
                    speaker_label=segment.speaker_label,
                    confidence=segment.confidence_avg,
                    segment_id=segment.id,
                )
            )
            cursor = end
    return words
