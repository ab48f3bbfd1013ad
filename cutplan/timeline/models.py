"""
cutplan.timeline.models - Pydantic models for the timeline document.

The document is a versioned, multi-track arrangement of clips:
- TimelineState -> Tracks -> Clips -> Effects -> Keyframes
- An append-only list of Revisions, one per committed operation batch

Attributes are snake_case in Python and camelCase on the wire so the
persisted blob keeps its original JSON shape.
"""

from __future__ import annotations

from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from cutplan.exceptions import StructuralReferenceError
from cutplan.timeline.enums import ExportPreset, TrackKind, TransitionType
from cutplan.timeline.operations import TimelineOperation

KeyframeValue = Union[bool, int, float, str]


class WireModel(BaseModel):
    """Base model serializing to camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Resolution(WireModel):
    width: int
    height: int


class Keyframe(WireModel):
    id: str
    property: str
    time_ms: int
    value: KeyframeValue
    easing: str | None = None


class Effect(WireModel):
    id: str
    type: str
    config: dict[str, Any] = Field(default_factory=dict)
    keyframes: list[Keyframe] = Field(default_factory=list)


class Transition(WireModel):
    """Transition into the next clip."""

    transition_type: TransitionType
    duration_ms: int


class Clip(WireModel):
    """A bounded interval on a track with independent timeline/source points."""

    id: str
    asset_id: str | None = None
    slot_key: str | None = None
    label: str | None = None
    timeline_in_ms: int
    timeline_out_ms: int
    source_in_ms: int = 0
    source_out_ms: int = 0
    effects: list[Effect] = Field(default_factory=list)
    transition: Transition | None = None

    @property
    def duration_ms(self) -> int:
        return self.timeline_out_ms - self.timeline_in_ms

    def find_effect(self, effect_id: str) -> Effect:
        for effect in self.effects:
            if effect.id == effect_id:
                return effect
        raise StructuralReferenceError.effect_not_found(effect_id)

    def effect_of_type(self, effect_type: str) -> Effect | None:
        return next((e for e in self.effects if e.type == effect_type), None)


class Track(WireModel):
    id: str
    kind: TrackKind
    name: str
    order: int
    muted: bool = False
    volume: float = 1.0
    clips: list[Clip] = Field(default_factory=list)

    def find_clip(self, clip_id: str) -> Clip:
        for clip in self.clips:
            if clip.id == clip_id:
                return clip
        raise StructuralReferenceError.clip_not_found(clip_id)

    def clip_index(self, clip_id: str) -> int:
        for index, clip in enumerate(self.clips):
            if clip.id == clip_id:
                return index
        raise StructuralReferenceError.clip_not_found(clip_id)

    def sort_clips(self) -> None:
        self.clips.sort(key=lambda c: c.timeline_in_ms)


class Revision(WireModel):
    """Immutable revision marker plus the operation batch that produced it."""

    id: str
    revision: int
    timeline_hash: str
    created_at: str
    operations: list[TimelineOperation] = Field(default_factory=list)


class TimelineState(WireModel):
    """Root timeline document."""

    version: int = 1
    fps: float = 30
    resolution: Resolution = Field(default_factory=lambda: Resolution(width=1080, height=1920))
    export_preset: ExportPreset = ExportPreset.TIKTOK_9X16
    tracks: list[Track] = Field(default_factory=list)
    revisions: list[Revision] = Field(default_factory=list)

    def find_track(self, track_id: str) -> Track:
        for track in self.tracks:
            if track.id == track_id:
                return track
        raise StructuralReferenceError.track_not_found(track_id)

    def tracks_of_kind(self, kind: TrackKind) -> list[Track]:
        return sorted((t for t in self.tracks if t.kind == kind), key=lambda t: t.order)

    def primary_video_track(self) -> Track | None:
        video_tracks = self.tracks_of_kind(TrackKind.VIDEO)
        return video_tracks[0] if video_tracks else None

    @property
    def latest_revision(self) -> Revision | None:
        return max(self.revisions, key=lambda r: r.revision, default=None)

    @property
    def current_timeline_hash(self) -> str | None:
        latest = self.latest_revision
        return latest.timeline_hash if latest else None


class ProjectAsset(WireModel):
    """Media asset attached to a project, used to seed a fresh timeline."""

    id: str
    slot_key: str
    kind: Literal["VIDEO", "IMAGE", "AUDIO"]
    duration_sec: float | None = None
