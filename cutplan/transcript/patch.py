"""
cutplan.transcript.patch - Apply transcript patches and derive timeline edits.

A patch is a list of transcript operations applied in order to a copy of
the segments. Missing segments, empty text and impossible splits are hard
errors: the whole patch is rolled back and the result is suggestions-only.
A successful patch emits the ripple operations of any safe deletions plus
a rebuild of the auto-caption track from the patched segments. A deletion
that may not ripple makes the whole result suggestions-only with no
timeline operations at all.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, Field

from cutplan.config import DEFAULT_RIPPLE_MIN_CONFIDENCE
from cutplan.timeline.engine import apply_operations
from cutplan.timeline.enums import TrackKind
from cutplan.timeline.models import TimelineState
from cutplan.timeline.operations import (
    AddClip,
    CreateTrack,
    RemoveClip,
    TimelineOperation,
    UpsertEffect,
)
from cutplan.transcript.models import (
    DeleteRange,
    MergeSegments,
    NormalizePunctuation,
    ReplaceText,
    SetSpeaker,
    Severity,
    SplitSegment,
    TranscriptPatchIssue,
    TranscriptPatchOperation,
    TranscriptSegment,
    TranscriptWord,
    parse_patch_operations,
)
from cutplan.transcript.ripple import evaluate_conservative_delete_ripple, normalize_delete_window
from cutplan.transcript.segmentation import MIN_SEGMENT_MS, rebuild_words_from_segments
from cutplan.utils import clean_text, new_id

MIN_SEGMENT_SPLIT_MS = 80
CAPTION_STYLE = {"fontSize": 42, "bgOpacity": 0.72, "radius": 16}

_TERMINAL_PUNCTUATION = re.compile(r"[.!?]$")


class TranscriptPatchResult(BaseModel):
    next_segments: list[TranscriptSegment] = Field(default_factory=list)
    next_words: list[TranscriptWord] = Field(default_factory=list)
    issues: list[TranscriptPatchIssue] = Field(default_factory=list)
    timeline_operations: list[TimelineOperation] = Field(default_factory=list)
    suggestions_only: bool = False


class TranscriptQuality(BaseModel):
    word_count: int
    segment_count: int
    average_confidence: float


def caption_track_name(language: str) -> str:
    return f"Auto captions ({language})"


def _with_terminal_punctuation(text: str) -> str:
    safe = clean_text(text)
    if not safe or _TERMINAL_PUNCTUATION.search(safe):
        return safe
    return f"{safe}."


def build_caption_track_replacement_ops(
    state: TimelineState, language: str, segments: Sequence[TranscriptSegment]
) -> list[TimelineOperation]:
    """Operations that replace the auto-caption track content with one clip per segment.

    The track for ``language`` is matched by name, case-insensitively, and
    created when missing.
    """
    name = caption_track_name(language)
    existing = next(
        (t for t in state.tracks if t.kind == TrackKind.CAPTION and t.name.lower() == name.lower()),
        None,
    )

    operations: list[TimelineOperation] = []
    if existing is None:
        track_id = new_id()
        operations.append(CreateTrack(track_id=track_id, kind=TrackKind.CAPTION, name=name))
    else:
        track_id = existing.id
        operations.extend(RemoveClip(track_id=track_id, clip_id=clip.id) for clip in existing.clips)

    for segment in segments:
        clip_id = new_id()
        duration = max(MIN_SEGMENT_MS, segment.end_ms - segment.start_ms)
        operations.append(
            AddClip(
                clip_id=clip_id,
                track_id=track_id,
                label=clean_text(segment.text),
                timeline_in_ms=segment.start_ms,
                duration_ms=duration,
                source_in_ms=0,
                source_out_ms=duration,
            )
        )
        operations.append(
            UpsertEffect(
                track_id=track_id,
                clip_id=clip_id,
                effect_type="caption_style",
                config=dict(CAPTION_STYLE),
            )
        )
    return operations


def _segment_not_found(segment_id: str) -> TranscriptPatchIssue:
    return TranscriptPatchIssue(
        code="SEGMENT_NOT_FOUND", message=f"Segment not found: {segment_id}", severity=Severity.ERROR
    )


def _find(segments: list[TranscriptSegment], segment_id: str) -> TranscriptSegment | None:
    return next((s for s in segments if s.id == segment_id), None)


def apply_transcript_patch_operations(
    state: TimelineState,
    segments: Sequence[TranscriptSegment],
    operations: Sequence[TranscriptPatchOperation | dict[str, Any]],
    language: str = "en",
    min_confidence_for_ripple: float = DEFAULT_RIPPLE_MIN_CONFIDENCE,
) -> TranscriptPatchResult:
    """Apply transcript operations and derive the timeline operations they imply.

    Args:
        state: Current timeline (not modified)
        segments: Current transcript segments (not modified)
        operations: Patch operations or wire dicts, applied in order
        language: Caption language, names the caption track
        min_confidence_for_ripple: Confidence every segment touched by a
            delete_range must carry before the deletion ripples into the timeline

    Returns:
        TranscriptPatchResult. On hard errors the original segments come
        back with no timeline operations and ``suggestions_only`` set.

    Raises:
        pydantic.ValidationError: If a wire dict is not a known patch operation
    """
    parsed = parse_patch_operations(list(operations))
    working = sorted((s.model_copy() for s in segments), key=lambda s: s.start_ms)
    ripple_ops: list[TimelineOperation] = []
    rippled = state
    issues: list[TranscriptPatchIssue] = []
    suggestions_only = False

    for operation in parsed:
        if isinstance(operation, ReplaceText):
            segment = _find(working, operation.segment_id)
            if segment is None:
                issues.append(_segment_not_found(operation.segment_id))
                continue
            segment.text = clean_text(operation.text)
            if not segment.text:
                issues.append(
                    TranscriptPatchIssue(
                        code="SEGMENT_TEXT_EMPTY",
                        message=f"Segment text would become empty: {operation.segment_id}",
                        severity=Severity.ERROR,
                    )
                )

        elif isinstance(operation, SplitSegment):
            segment = _find(working, operation.segment_id)
            if segment is None:
                issues.append(_segment_not_found(operation.segment_id))
                continue
            split_at = max(
                segment.start_ms + MIN_SEGMENT_SPLIT_MS,
                min(operation.split_ms, segment.end_ms - MIN_SEGMENT_SPLIT_MS),
            )
            if split_at <= segment.start_ms or split_at >= segment.end_ms:
                issues.append(
                    TranscriptPatchIssue(
                        code="SEGMENT_SPLIT_INVALID",
                        message="Split point must be within segment bounds.",
                        severity=Severity.ERROR,
                    )
                )
                continue
            tokens = clean_text(segment.text).split()
            midpoint = max(1, len(tokens) // 2)
            left_text = " ".join(tokens[:midpoint])
            right_text = " ".join(tokens[midpoint:])
            original_end = segment.end_ms
            segment.end_ms = split_at
            segment.text = left_text
            working.append(
                TranscriptSegment(
                    text=right_text or left_text,
                    start_ms=split_at,
                    end_ms=max(split_at + MIN_SEGMENT_SPLIT_MS, original_end),
                    speaker_label=segment.speaker_label,
                    confidence_avg=segment.confidence_avg,
                )
            )
            working.sort(key=lambda s: s.start_ms)

        elif isinstance(operation, MergeSegments):
            first = _find(working, operation.first_segment_id)
            second = _find(working, operation.second_segment_id)
            if first is None or second is None:
                issues.append(
                    TranscriptPatchIssue(
                        code="SEGMENT_NOT_FOUND",
                        message="Both segments must exist to merge.",
                        severity=Severity.ERROR,
                    )
                )
                continue
            left, right = sorted((first, second), key=lambda s: s.start_ms)
            left.start_ms = min(left.start_ms, right.start_ms)
            left.end_ms = max(left.end_ms, right.end_ms)
            left.text = clean_text(f"{left.text} {right.text}")
            working = [s for s in working if s.id != right.id]

        elif isinstance(operation, DeleteRange):
            start_ms, end_ms = normalize_delete_window(operation.start_ms, operation.end_ms)
            affected = [s for s in working if s.overlaps(start_ms, end_ms)]
            if not affected:
                continue
            ripple = evaluate_conservative_delete_ripple(
                rippled, start_ms, end_ms, affected, min_confidence=min_confidence_for_ripple
            )
            issues.extend(ripple.issues)
            if ripple.suggestions_only:
                suggestions_only = True
            elif ripple.timeline_operations:
                # later windows resolve against the clips earlier ones left behind
                rippled = apply_operations(rippled, ripple.timeline_operations).state
                ripple_ops.extend(ripple.timeline_operations)
            working = [s for s in working if not s.overlaps(start_ms, end_ms)]

        elif isinstance(operation, SetSpeaker):
            segment = _find(working, operation.segment_id)
            if segment is None:
                issues.append(_segment_not_found(operation.segment_id))
                continue
            segment.speaker_label = clean_text(operation.speaker_label) or None

        elif isinstance(operation, NormalizePunctuation):
            targets = set(operation.segment_ids or [])
            for segment in working:
                if not targets or segment.id in targets:
                    segment.text = _with_terminal_punctuation(segment.text)

    if any(issue.severity == Severity.ERROR for issue in issues):
        original = list(segments)
        return TranscriptPatchResult(
            next_segments=original,
            next_words=rebuild_words_from_segments(original),
            issues=issues,
            suggestions_only=True,
        )

    next_segments = []
    for segment in sorted(working, key=lambda s: s.start_ms):
        text = clean_text(segment.text)
        if not text:
            continue
        start = max(0, segment.start_ms)
        next_segments.append(
            segment.model_copy(
                update={
                    "text": text,
                    "start_ms": start,
                    "end_ms": max(start + MIN_SEGMENT_SPLIT_MS, segment.end_ms),
                }
            )
        )

    caption_ops = build_caption_track_replacement_ops(state, language, next_segments)
    return TranscriptPatchResult(
        next_segments=next_segments,
        next_words=rebuild_words_from_segments(next_segments),
        issues=issues,
        timeline_operations=[] if suggestions_only else [*ripple_ops, *caption_ops],
        suggestions_only=suggestions_only,
    )


def summarize_transcript_quality(
    words: Sequence[TranscriptWord], segments: Sequence[TranscriptSegment]
) -> TranscriptQuality:
    """Word/segment counts and mean word confidence (0 when none is known)."""
    scores = [w.confidence for w in words if w.confidence is not None]
    average = sum(scores) / len(scores) if scores else 0.0
    return TranscriptQuality(
        word_count=len(words),
        segment_count=len(segments),
        average_confidence=round(average, 4),
    )
