"""
cutplan.timeline.invariants - Structural invariant checks and safe preview.

validate_timeline_state_invariants is a pure pass over a document.
preview_timeline_operations_with_validation applies a batch to a scratch
copy, validates the result and hands back the candidate state only when
every invariant holds, so speculative plans never touch the live document.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from cutplan.exceptions import StructuralReferenceError
from cutplan.logging import logger
from cutplan.timeline.engine import (
    DEFAULT_REVISION_HISTORY_LIMIT,
    MAX_TRACK_VOLUME,
    MIN_RESOLUTION,
    apply_operations,
)
from cutplan.timeline.models import TimelineState
from cutplan.timeline.operations import TimelineOperation


class InvariantIssue(BaseModel):
    code: str
    message: str
    track_id: str | None = None
    clip_id: str | None = None


class PreviewResult(BaseModel):
    valid: bool
    issues: list[InvariantIssue] = Field(default_factory=list)
    next_state: TimelineState | None = None
    timeline_hash: str | None = None
    revision: int | None = None


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_timeline_state_invariants(state: TimelineState) -> list[InvariantIssue]:
    """Check the structural invariants of a timeline.

    Args:
        state: Timeline to check (not modified)

    Returns:
        List of issues; empty when the document is structurally sound
    """
    issues: list[InvariantIssue] = []

    if not _is_int(state.version) or state.version < 1:
        issues.append(InvariantIssue(code="STATE_VERSION_INVALID", message="Timeline version must be an integer >= 1"))

    if not math.isfinite(state.fps) or state.fps <= 0:
        issues.append(InvariantIssue(code="STATE_FPS_INVALID", message="Timeline FPS must be > 0"))

    if not _is_int(state.resolution.width) or state.resolution.width < MIN_RESOLUTION:
        issues.append(
            InvariantIssue(code="STATE_WIDTH_INVALID", message=f"Timeline width must be an integer >= {MIN_RESOLUTION}")
        )

    if not _is_int(state.resolution.height) or state.resolution.height < MIN_RESOLUTION:
        issues.append(
            InvariantIssue(code="STATE_HEIGHT_INVALID", message=f"Timeline height must be an integer >= {MIN_RESOLUTION}")
        )

    seen_track_ids: set[str] = set()
    seen_clip_ids: set[str] = set()

    for track in state.tracks:
        if not track.id or not track.id.strip():
            issues.append(InvariantIssue(code="TRACK_ID_MISSING", message="Track id is required"))
            continue

        if track.id in seen_track_ids:
            issues.append(
                InvariantIssue(code="TRACK_ID_DUPLICATE", message=f"Duplicate track id: {track.id}", track_id=track.id)
            )
            continue
        seen_track_ids.add(track.id)

        if not _is_int(track.order) or track.order < 0:
            issues.append(
                InvariantIssue(
                    code="TRACK_ORDER_INVALID", message="Track order must be an integer >= 0", track_id=track.id
                )
            )

        if not math.isfinite(track.volume) or not 0 <= track.volume <= MAX_TRACK_VOLUME:
            issues.append(
                InvariantIssue(
                    code="TRACK_VOLUME_INVALID",
                    message=f"Track volume must be between 0 and {MAX_TRACK_VOLUME}",
                    track_id=track.id,
                )
            )

        seen_effect_ids: set[str] = set()

        for clip in track.clips:
            if not clip.id or not clip.id.strip():
                issues.append(InvariantIssue(code="CLIP_ID_MISSING", message="Clip id is required", track_id=track.id))
                continue

            if clip.id in seen_clip_ids:
                issues.append(
                    InvariantIssue(
                        code="CLIP_ID_DUPLICATE",
                        message=f"Duplicate clip id: {clip.id}",
                        track_id=track.id,
                        clip_id=clip.id,
                    )
                )
            seen_clip_ids.add(clip.id)

            def clip_issue(code: str, message: str) -> None:
                issues.append(InvariantIssue(code=code, message=message, track_id=track.id, clip_id=clip.id))

            if not _is_int(clip.timeline_in_ms) or clip.timeline_in_ms < 0:
                clip_issue("CLIP_TIMELINE_IN_INVALID", "Clip timelineInMs must be an integer >= 0")

            if not _is_int(clip.timeline_out_ms) or clip.timeline_out_ms <= clip.timeline_in_ms:
                clip_issue("CLIP_TIMELINE_OUT_INVALID", "Clip timelineOutMs must be > timelineInMs")

            if not _is_int(clip.source_in_ms) or clip.source_in_ms < 0:
                clip_issue("CLIP_SOURCE_IN_INVALID", "Clip sourceInMs must be an integer >= 0")

            if not _is_int(clip.source_out_ms) or clip.source_out_ms < clip.source_in_ms:
                clip_issue("CLIP_SOURCE_OUT_INVALID", "Clip sourceOutMs must be >= sourceInMs")

            for effect in clip.effects:
                if not effect.id or not effect.id.strip():
                    clip_issue("EFFECT_ID_MISSING", "Effect id is required")
                    continue

                if effect.id in seen_effect_ids:
                    clip_issue("EFFECT_ID_DUPLICATE", f"Duplicate effect id: {effect.id}")
                seen_effect_ids.add(effect.id)

                for keyframe in effect.keyframes:
                    if not _is_int(keyframe.time_ms) or keyframe.time_ms < 0:
                        clip_issue("KEYFRAME_TIME_INVALID", "Keyframe timeMs must be an integer >= 0")

    return issues


def preview_timeline_operations_with_validation(
    state: TimelineState,
    operations: Sequence[TimelineOperation | dict[str, Any]],
    revision_history_limit: int = DEFAULT_REVISION_HISTORY_LIMIT,
) -> PreviewResult:
    """Apply a batch to a scratch copy and validate the outcome.

    Structural failures become a single APPLY_FAILED issue; a candidate state
    that breaks any invariant is discarded. Nothing here raises for bad
    operations and the input state is never mutated.

    Args:
        state: Current committed timeline
        operations: Batch to try
        revision_history_limit: Passed through to the engine

    Returns:
        PreviewResult; ``next_state`` is set only when ``valid`` is True
    """
    try:
        applied = apply_operations(state, operations, revision_history_limit=revision_history_limit)
    except (StructuralReferenceError, ValidationError) as e:
        message = e.message if isinstance(e, StructuralReferenceError) else "Operation payload is invalid"
        logger.debug("Preview failed to apply: %s", message)
        return PreviewResult(valid=False, issues=[InvariantIssue(code="APPLY_FAILED", message=message)])

    issues = validate_timeline_state_invariants(applied.state)
    if issues:
        logger.debug("Preview discarded: %d invariant issue(s), first %s", len(issues), issues[0].code)
        return PreviewResult(valid=False, issues=issues)

    return PreviewResult(
        valid=True,
        next_state=applied.state,
        timeline_hash=applied.timeline_hash,
        revision=applied.revision,
    )
