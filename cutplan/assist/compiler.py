"""
cutplan.assist.compiler - Compile semantic intents into timeline operations.

Compilation reads the live document and never mutates it. Intents with no
matching track or clip compile to nothing; an empty result is how the
pipeline learns a plan cannot be applied deterministically.
"""

from __future__ import annotations

from collections.abc import Sequence

from cutplan.assist.planner import EditIntent
from cutplan.timeline.enums import TrackKind
from cutplan.timeline.models import Clip, TimelineState, Track
from cutplan.timeline.operations import (
    AddClip,
    CreateTrack,
    ReorderTrack,
    SetTrackAudio,
    SplitClip,
    TimelineOperation,
    TrimClip,
    UpsertEffect,
)
from cutplan.utils import stable_hash

MIN_SPLIT_DURATION_MS = 520
MIN_TRIM_DURATION_MS = 900
TRIM_EDGE_MS = 120
DUCKED_VOLUME = 0.62

ZOOM_TRANSFORM = {"scale": 1.08, "x": 0.5, "y": 0.5}
CAPTION_STYLE = {"fontSize": 44, "bgOpacity": 0.76, "radius": 14}
CAPTION_TRACK_NAME = "Chat Caption Track"
CAPTION_CLIP_LABEL = "Updated caption style"
CAPTION_CLIP_IN_MS = 240
CAPTION_CLIP_DURATION_MS = 1400


def _first_clip(track: Track | None) -> Clip | None:
    if track is None or not track.clips:
        return None
    return min(track.clips, key=lambda c: c.timeline_in_ms)


def _derived_id(state: TimelineState, role: str) -> str:
    """Id for a compiled entity, stable for a given document revision."""
    seed = {"version": state.version, "hash": state.current_timeline_hash, "role": role}
    return stable_hash(seed)[:24]


def _compile_split(state: TimelineState) -> list[TimelineOperation]:
    track = state.primary_video_track()
    clip = _first_clip(track)
    if clip is None or clip.duration_ms <= MIN_SPLIT_DURATION_MS:
        return []
    split_ms = clip.timeline_in_ms + clip.duration_ms // 2
    return [SplitClip(track_id=track.id, clip_id=clip.id, split_ms=split_ms)]


def _compile_trim(state: TimelineState) -> list[TimelineOperation]:
    track = state.primary_video_track()
    clip = _first_clip(track)
    if clip is None or clip.duration_ms <= MIN_TRIM_DURATION_MS:
        return []
    return [
        TrimClip(
            track_id=track.id,
            clip_id=clip.id,
            trim_start_ms=TRIM_EDGE_MS,
            trim_end_ms=TRIM_EDGE_MS,
        )
    ]


def _compile_reorder(state: TimelineState) -> list[TimelineOperation]:
    # Swap the two lowest video layers; with one video layer, lift it to the top.
    video_tracks = state.tracks_of_kind(TrackKind.VIDEO)
    if len(video_tracks) > 1:
        primary, secondary = video_tracks[0], video_tracks[1]
        return [ReorderTrack(track_id=secondary.id, order=primary.order)]
    if video_tracks and video_tracks[0].order > 0:
        return [ReorderTrack(track_id=video_tracks[0].id, order=0)]
    return []


def _compile_zoom(state: TimelineState) -> list[TimelineOperation]:
    track = state.primary_video_track()
    clip = _first_clip(track)
    if clip is None:
        return []
    return [
        UpsertEffect(
            track_id=track.id,
            clip_id=clip.id,
            effect_type="transform",
            config=dict(ZOOM_TRANSFORM),
        )
    ]


def _compile_audio_duck(state: TimelineState) -> list[TimelineOperation]:
    return [
        SetTrackAudio(track_id=track.id, volume=min(track.volume, DUCKED_VOLUME))
        for track in state.tracks_of_kind(TrackKind.AUDIO)
    ]


def _compile_caption_style(state: TimelineState) -> list[TimelineOperation]:
    operations: list[TimelineOperation] = []
    caption_tracks = state.tracks_of_kind(TrackKind.CAPTION)
    track = caption_tracks[0] if caption_tracks else None
    clip = _first_clip(track)

    track_id = track.id if track else _derived_id(state, "caption-track")
    if track is None:
        operations.append(CreateTrack(track_id=track_id, kind=TrackKind.CAPTION, name=CAPTION_TRACK_NAME))

    clip_id = clip.id if clip else _derived_id(state, "caption-clip")
    if clip is None:
        operations.append(
            AddClip(
                clip_id=clip_id,
                track_id=track_id,
                label=CAPTION_CLIP_LABEL,
                timeline_in_ms=CAPTION_CLIP_IN_MS,
                duration_ms=CAPTION_CLIP_DURATION_MS,
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


_COMPILERS = {
    "split": _compile_split,
    "trim": _compile_trim,
    "reorder": _compile_reorder,
    "zoom": _compile_zoom,
    "audio_duck": _compile_audio_duck,
    "caption_style": _compile_caption_style,
}


def compile_intents(state: TimelineState, intents: Sequence[EditIntent]) -> list[TimelineOperation]:
    """Map validated intents to concrete operations against the current document.

    Every intent is compiled against the same pre-batch document, in plan
    order. ``generic`` and unknown intents compile to nothing.

    Args:
        state: Current committed timeline (not modified)
        intents: Validated intents

    Returns:
        Timeline operations, possibly empty
    """
    operations: list[TimelineOperation] = []
    for intent in intents:
        compiler = _COMPILERS.get(intent.op)
        if compiler is not None:
            operations.extend(compiler(state))
    return operations
