"""
cutplan.transcript.ripple - Conservative ripple of transcript deletions.

A transcript deletion only turns into timeline edits when every affected
segment carries a verified confidence at or above the threshold. Anything
less degrades to suggestions-only with zero timeline operations.
"""

from __future__ import annotations

from collections.abc import Sequence

from pydantic import BaseModel, Field

from cutplan.config import DEFAULT_RIPPLE_MIN_CONFIDENCE
from cutplan.logging import logger
from cutplan.timeline.models import TimelineState
from cutplan.timeline.operations import SplitClip, TimelineOperation, TrimClip
from cutplan.transcript.models import Severity, TranscriptPatchIssue, TranscriptSegment
from cutplan.utils import stable_hash

MIN_DELETE_WINDOW_MS = 80
MIN_RIPPLE_OVERLAP_MS = 90


class RippleEvaluation(BaseModel):
    safe: bool
    suggestions_only: bool
    issues: list[TranscriptPatchIssue] = Field(default_factory=list)
    timeline_operations: list[TimelineOperation] = Field(default_factory=list)


def normalize_delete_window(start_ms: int, end_ms: int) -> tuple[int, int]:
    start = max(0, start_ms)
    return start, max(start + MIN_DELETE_WINDOW_MS, end_ms)


def _refuse(code: str, message: str) -> RippleEvaluation:
    logger.debug("Ripple refused: %s", code)
    return RippleEvaluation(
        safe=False,
        suggestions_only=True,
        issues=[TranscriptPatchIssue(code=code, message=message, severity=Severity.WARN)],
    )


def _remainder_clip_id(clip_id: str, split_ms: int) -> str:
    return stable_hash({"clip": clip_id, "splitMs": split_ms})[:24]


def evaluate_conservative_delete_ripple(
    state: TimelineState,
    start_ms: int,
    end_ms: int,
    affected_segments: Sequence[TranscriptSegment],
    min_confidence: float = DEFAULT_RIPPLE_MIN_CONFIDENCE,
) -> RippleEvaluation:
    """Turn a transcript delete window into primary-video timeline operations.

    Per overlapping clip on the primary video track:
    - window reaches a clip edge: trim the covered edge(s) by the overlap;
      a window covering the whole clip trims it down to the minimum duration
    - window sits inside the clip: split at the window start, then trim
      the overlap off the front of the right-hand piece

    Overlaps shorter than MIN_RIPPLE_OVERLAP_MS are ignored.

    Args:
        state: Current timeline (not modified)
        start_ms: Window start
        end_ms: Window end (exclusive)
        affected_segments: Transcript segments overlapping the window
        min_confidence: Minimum confidence every affected segment must carry

    Returns:
        RippleEvaluation
    """
    start_ms, end_ms = normalize_delete_window(start_ms, end_ms)

    unverified = [
        s for s in affected_segments if s.confidence_avg is None or s.confidence_avg < min_confidence
    ]
    if unverified:
        return _refuse(
            "RIPPLE_LOW_CONFIDENCE",
            "One or more affected transcript segments are below confidence threshold.",
        )

    track = state.primary_video_track()
    if track is None or not track.clips:
        return _refuse("RIPPLE_NO_PRIMARY_VIDEO", "No primary video track available for conservative ripple.")

    overlapping = [c for c in track.clips if c.timeline_in_ms < end_ms and c.timeline_out_ms > start_ms]
    if not overlapping:
        return RippleEvaluation(
            safe=True,
            suggestions_only=False,
            issues=[
                TranscriptPatchIssue(
                    code="RIPPLE_NO_OVERLAP",
                    message="Delete range does not overlap primary speech clip windows.",
                    severity=Severity.INFO,
                )
            ],
        )

    operations: list[TimelineOperation] = []
    for clip in overlapping:
        overlap_start = max(start_ms, clip.timeline_in_ms)
        overlap_end = min(end_ms, clip.timeline_out_ms)
        overlap = max(0, overlap_end - overlap_start)
        if overlap < MIN_RIPPLE_OVERLAP_MS:
            continue

        covers_start = overlap_start <= clip.timeline_in_ms
        covers_end = overlap_end >= clip.timeline_out_ms

        if covers_start or covers_end:
            operations.append(
                TrimClip(
                    track_id=track.id,
                    clip_id=clip.id,
                    trim_start_ms=overlap if covers_start else None,
                    trim_end_ms=overlap if covers_end else None,
                )
            )
        else:
            remainder_id = _remainder_clip_id(clip.id, overlap_start)
            operations.append(
                SplitClip(track_id=track.id, clip_id=clip.id, split_ms=overlap_start, new_clip_id=remainder_id)
            )
            operations.append(TrimClip(track_id=track.id, clip_id=remainder_id, trim_start_ms=overlap))

    return RippleEvaluation(safe=True, suggestions_only=False, timeline_operations=operations)
