"""
cutplan.timeline.engine - Atomic batch application of timeline operations.

A batch is applied to a deep copy of the document. Any structural failure
raises StructuralReferenceError and the caller's state is left untouched;
on success exactly one Revision is appended and the timeline hash is
recomputed over the new canonical state.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from typing import Any

from pydantic import BaseModel

from cutplan.exceptions import StructuralReferenceError
from cutplan.logging import logger
from cutplan.timeline.enums import ExportPreset
from cutplan.timeline.models import (
    Clip,
    Effect,
    Keyframe,
    Resolution,
    Revision,
    TimelineState,
    Track,
    Transition,
)
from cutplan.timeline.operations import (
    AddClip,
    AddEffect,
    CreateTrack,
    MergeClipWithNext,
    MoveClip,
    RemoveClip,
    ReorderTrack,
    SetClipLabel,
    SetClipTiming,
    SetExportPreset,
    SetKeyframe,
    SetTrackAudio,
    SetTransition,
    SplitClip,
    TimelineOperation,
    TrimClip,
    UpsertEffect,
    parse_operations,
)
from cutplan.utils import clamp, new_id, stable_hash, utc_now_iso

MIN_CLIP_DURATION_MS = 120
SPLIT_EDGE_MARGIN_MS = 40
MIN_TRANSITION_MS = 40
MAX_TRACK_VOLUME = 1.5
MAX_LABEL_LENGTH = 160
MIN_RESOLUTION = 120
PRESET_RESOLUTION = (1080, 1920)
DEFAULT_REVISION_HISTORY_LIMIT = 50


class ApplyResult(BaseModel):
    """Committed state of a successful batch."""

    state: TimelineState
    revision: int
    timeline_hash: str


def compute_timeline_hash(state: TimelineState) -> str:
    """Deterministic digest of the canonical document content.

    Revision history is excluded, so the hash never folds in earlier hashes.
    """
    wire = state.to_wire()
    payload = {
        "version": wire["version"],
        "fps": wire["fps"],
        "resolution": wire["resolution"],
        "exportPreset": wire["exportPreset"],
        "tracks": wire["tracks"],
    }
    return stable_hash(payload)


def _source_ratio(clip: Clip) -> float:
    timeline_span = clip.timeline_out_ms - clip.timeline_in_ms
    source_span = clip.source_out_ms - clip.source_in_ms
    if timeline_span <= 0 or source_span <= 0:
        return 1.0
    return source_span / timeline_span


def _clip_id_taken(state: TimelineState, clip_id: str) -> bool:
    return any(clip.id == clip_id for track in state.tracks for clip in track.clips)


def _copy_effects_with_new_ids(effects: list[Effect]) -> list[Effect]:
    copied = []
    for effect in effects:
        clone = effect.model_copy(deep=True)
        clone.id = new_id()
        for keyframe in clone.keyframes:
            keyframe.id = new_id()
        copied.append(clone)
    return copied


def _create_track(state: TimelineState, op: CreateTrack) -> None:
    requested_id = (op.track_id or "").strip()
    if requested_id and any(track.id == requested_id for track in state.tracks):
        raise StructuralReferenceError(
            "duplicate_track", requested_id, f"Track already exists: {requested_id}"
        )
    state.tracks.append(
        Track(
            id=requested_id or new_id(),
            kind=op.kind,
            name=op.name,
            order=len(state.tracks),
        )
    )


def _add_clip(state: TimelineState, op: AddClip) -> None:
    track = state.find_track(op.track_id)
    requested_id = (op.clip_id or "").strip()
    if requested_id and _clip_id_taken(state, requested_id):
        raise StructuralReferenceError(
            "duplicate_clip", requested_id, f"Clip already exists: {requested_id}"
        )

    duration = max(MIN_CLIP_DURATION_MS, op.duration_ms)
    timeline_in = max(0, op.timeline_in_ms)
    source_in = max(0, op.source_in_ms or 0)
    source_out = op.source_out_ms if op.source_out_ms is not None else source_in + duration
    track.clips.append(
        Clip(
            id=requested_id or new_id(),
            asset_id=op.asset_id,
            slot_key=op.slot_key,
            label=op.label,
            timeline_in_ms=timeline_in,
            timeline_out_ms=timeline_in + duration,
            source_in_ms=source_in,
            source_out_ms=max(source_in, source_out),
        )
    )
    track.sort_clips()


def _split_clip(state: TimelineState, op: SplitClip) -> None:
    track = state.find_track(op.track_id)
    clip = track.find_clip(op.clip_id)
    new_clip_id = (op.new_clip_id or "").strip()
    if new_clip_id and _clip_id_taken(state, new_clip_id):
        raise StructuralReferenceError(
            "duplicate_clip", new_clip_id, f"Clip already exists: {new_clip_id}"
        )
    if clip.duration_ms <= 2 * SPLIT_EDGE_MARGIN_MS:
        raise StructuralReferenceError(
            "clip_too_short", clip.id, f"Clip too short to split: {clip.id}"
        )

    split_point = max(
        clip.timeline_in_ms + SPLIT_EDGE_MARGIN_MS,
        min(op.split_ms, clip.timeline_out_ms - SPLIT_EDGE_MARGIN_MS),
    )
    source_offset = round((split_point - clip.timeline_in_ms) * _source_ratio(clip))

    second_half = clip.model_copy(deep=True)
    second_half.id = new_clip_id or new_id()
    second_half.timeline_in_ms = split_point
    second_half.source_in_ms = clip.source_in_ms + source_offset
    second_half.effects = _copy_effects_with_new_ids(clip.effects)

    clip.timeline_out_ms = split_point
    clip.source_out_ms = clip.source_in_ms + source_offset
    # the outgoing transition stays on the clip that owns the original out point
    clip.transition = None

    index = track.clip_index(clip.id)
    track.clips.insert(index + 1, second_half)
    track.sort_clips()


def _trim_clip(state: TimelineState, op: TrimClip) -> None:
    track = state.find_track(op.track_id)
    clip = track.find_clip(op.clip_id)

    ratio = _source_ratio(clip)
    duration = clip.duration_ms
    trim_start = min(max(0, op.trim_start_ms or 0), max(0, duration - MIN_CLIP_DURATION_MS))
    trim_end = max(0, op.trim_end_ms or 0)
    next_duration = max(MIN_CLIP_DURATION_MS, duration - trim_start - trim_end)

    clip.timeline_in_ms += trim_start
    clip.source_in_ms += round(trim_start * ratio)
    clip.timeline_out_ms = clip.timeline_in_ms + next_duration
    clip.source_out_ms = clip.source_in_ms + round(next_duration * ratio)
    track.sort_clips()


def _reorder_track(state: TimelineState, op: ReorderTrack) -> None:
    track = state.find_track(op.track_id)
    ordered = sorted(state.tracks, key=lambda t: t.order)
    ordered.remove(track)
    target = int(clamp(op.order, 0, len(ordered)))
    ordered.insert(target, track)
    for index, entry in enumerate(ordered):
        entry.order = index
    state.tracks = ordered


def _remove_clip(state: TimelineState, op: RemoveClip) -> None:
    track = state.find_track(op.track_id)
    track.clips.pop(track.clip_index(op.clip_id))


def _move_clip(state: TimelineState, op: MoveClip) -> None:
    track = state.find_track(op.track_id)
    clip = track.find_clip(op.clip_id)
    duration = max(MIN_CLIP_DURATION_MS, clip.duration_ms)
    clip.timeline_in_ms = max(0, op.timeline_in_ms)
    clip.timeline_out_ms = clip.timeline_in_ms + duration
    track.sort_clips()


def _set_clip_timing(state: TimelineState, op: SetClipTiming) -> None:
    track = state.find_track(op.track_id)
    clip = track.find_clip(op.clip_id)
    ratio = _source_ratio(clip)
    duration = max(MIN_CLIP_DURATION_MS, op.duration_ms)
    clip.timeline_in_ms = max(0, op.timeline_in_ms)
    clip.timeline_out_ms = clip.timeline_in_ms + duration
    clip.source_out_ms = clip.source_in_ms + round(duration * ratio)
    track.sort_clips()


def _merge_clip_with_next(state: TimelineState, op: MergeClipWithNext) -> None:
    track = state.find_track(op.track_id)
    track.sort_clips()
    index = track.clip_index(op.clip_id)
    if index >= len(track.clips) - 1:
        raise StructuralReferenceError(
            "merge", op.clip_id, f"Clip merge requires a next clip: {op.clip_id}"
        )

    current = track.clips[index]
    following = track.clips[index + 1]

    current.timeline_out_ms = max(current.timeline_out_ms, following.timeline_out_ms)
    current.source_out_ms = max(current.source_out_ms, following.source_out_ms)
    known_types = {effect.type for effect in current.effects}
    current.effects.extend(e for e in following.effects if e.type not in known_types)
    if following.transition is not None:
        current.transition = following.transition
    track.clips.pop(index + 1)


def _set_clip_label(state: TimelineState, op: SetClipLabel) -> None:
    clip = state.find_track(op.track_id).find_clip(op.clip_id)
    clip.label = op.label[:MAX_LABEL_LENGTH]


def _set_track_audio(state: TimelineState, op: SetTrackAudio) -> None:
    track = state.find_track(op.track_id)
    if op.volume is not None:
        volume = op.volume if math.isfinite(op.volume) else 1.0
        track.volume = clamp(volume, 0.0, MAX_TRACK_VOLUME)
    if op.muted is not None:
        track.muted = op.muted


def _add_effect(state: TimelineState, op: AddEffect) -> None:
    clip = state.find_track(op.track_id).find_clip(op.clip_id)
    clip.effects.append(
        Effect(id=op.effect_id or new_id(), type=op.effect_type, config=dict(op.config or {}))
    )


def _upsert_effect(state: TimelineState, op: UpsertEffect) -> None:
    clip = state.find_track(op.track_id).find_clip(op.clip_id)
    existing = clip.effect_of_type(op.effect_type)
    if existing is not None:
        existing.config = dict(op.config or {})
        return
    clip.effects.append(
        Effect(id=op.effect_id or new_id(), type=op.effect_type, config=dict(op.config or {}))
    )


def _set_transition(state: TimelineState, op: SetTransition) -> None:
    clip = state.find_track(op.track_id).find_clip(op.clip_id)
    clip.transition = Transition(
        transition_type=op.transition_type,
        duration_ms=max(MIN_TRANSITION_MS, op.duration_ms),
    )


def _set_keyframe(state: TimelineState, op: SetKeyframe) -> None:
    clip = state.find_track(op.track_id).find_clip(op.clip_id)
    effect = clip.find_effect(op.effect_id)
    time_ms = max(0, op.time_ms)
    for keyframe in effect.keyframes:
        if keyframe.property == op.property and keyframe.time_ms == time_ms:
            keyframe.value = op.value
            keyframe.easing = op.easing
            return
    effect.keyframes.append(
        Keyframe(
            id=new_id(),
            property=op.property,
            time_ms=time_ms,
            value=op.value,
            easing=op.easing,
        )
    )
    effect.keyframes.sort(key=lambda k: k.time_ms)


def _set_export_preset(state: TimelineState, op: SetExportPreset) -> None:
    state.export_preset = op.preset
    if op.preset == ExportPreset.CUSTOM:
        state.resolution = Resolution(
            width=max(MIN_RESOLUTION, op.width or state.resolution.width),
            height=max(MIN_RESOLUTION, op.height or state.resolution.height),
        )
    else:
        width, height = PRESET_RESOLUTION
        state.resolution = Resolution(width=width, height=height)


_HANDLERS: dict[str, Callable[[TimelineState, Any], None]] = {
    "create_track": _create_track,
    "add_clip": _add_clip,
    "split_clip": _split_clip,
    "trim_clip": _trim_clip,
    "reorder_track": _reorder_track,
    "remove_clip": _remove_clip,
    "move_clip": _move_clip,
    "set_clip_timing": _set_clip_timing,
    "merge_clip_with_next": _merge_clip_with_next,
    "set_clip_label": _set_clip_label,
    "set_track_audio": _set_track_audio,
    "add_effect": _add_effect,
    "upsert_effect": _upsert_effect,
    "set_transition": _set_transition,
    "set_keyframe": _set_keyframe,
    "set_export_preset": _set_export_preset,
}


def apply_operations(
    state: TimelineState,
    operations: Sequence[TimelineOperation | dict[str, Any]],
    revision_history_limit: int = DEFAULT_REVISION_HISTORY_LIMIT,
) -> ApplyResult:
    """Apply an operation batch atomically.

    The input state is never mutated. The batch runs against a deep copy
    which becomes the committed state only if every operation resolves.

    Args:
        state: Current committed timeline
        operations: Operation models or wire dicts, applied in order
        revision_history_limit: Number of most recent revisions to keep

    Returns:
        ApplyResult with the new state, its revision number and hash

    Raises:
        StructuralReferenceError: If any operation references a missing
            track, clip or effect, or collides with an existing id
        pydantic.ValidationError: If a wire dict is not a known operation
    """
    parsed = parse_operations(list(operations))
    working = state.model_copy(deep=True)

    for index, operation in enumerate(parsed):
        try:
            _HANDLERS[operation.op](working, operation)
        except StructuralReferenceError:
            logger.debug(
                "Batch rejected at operation %d/%d (%s)", index + 1, len(parsed), operation.op
            )
            raise

    working.version += 1
    timeline_hash = compute_timeline_hash(working)
    working.revisions.append(
        Revision(
            id=new_id(),
            revision=working.version,
            timeline_hash=timeline_hash,
            created_at=utc_now_iso(),
            operations=parsed,
        )
    )
    working.revisions.sort(key=lambda r: r.revision)
    working.revisions = working.revisions[-revision_history_limit:]

    logger.debug(
        "Committed revision %d with %d operation(s), hash %s",
        working.version,
        len(parsed),
        timeline_hash[:12],
    )
    return ApplyResult(state=working, revision=working.version, timeline_hash=timeline_hash)
