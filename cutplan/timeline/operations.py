"""
cutplan.timeline.operations - Closed union of timeline operations.

Each operation is a pydantic model tagged by its ``op`` literal; the
``TimelineOperation`` annotated union dispatches on that tag when parsing
wire payloads. The engine keeps one handler per tag.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from cutplan.timeline.enums import ExportPreset, TrackKind, TransitionType


class _Operation(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class CreateTrack(_Operation):
    op: Literal["create_track"] = "create_track"
    track_id: str | None = None
    kind: TrackKind
    name: str


class AddClip(_Operation):
    op: Literal["add_clip"] = "add_clip"
    clip_id: str | None = None
    track_id: str
    label: str | None = None
    asset_id: str | None = None
    slot_key: str | None = None
    timeline_in_ms: int
    duration_ms: int
    source_in_ms: int | None = None
    source_out_ms: int | None = None


class SplitClip(_Operation):
    op: Literal["split_clip"] = "split_clip"
    track_id: str
    clip_id: str
    split_ms: int
    new_clip_id: str | None = None


class TrimClip(_Operation):
    op: Literal["trim_clip"] = "trim_clip"
    track_id: str
    clip_id: str
    trim_start_ms: int | None = None
    trim_end_ms: int | None = None


class ReorderTrack(_Operation):
    op: Literal["reorder_track"] = "reorder_track"
    track_id: str
    order: int


class RemoveClip(_Operation):
    op: Literal["remove_clip"] = "remove_clip"
    track_id: str
    clip_id: str


class MoveClip(_Operation):
    op: Literal["move_clip"] = "move_clip"
    track_id: str
    clip_id: str
    timeline_in_ms: int


class SetClipTiming(_Operation):
    op: Literal["set_clip_timing"] = "set_clip_timing"
    track_id: str
    clip_id: str
    timeline_in_ms: int
    duration_ms: int


class MergeClipWithNext(_Operation):
    op: Literal["merge_clip_with_next"] = "merge_clip_with_next"
    track_id: str
    clip_id: str


class SetClipLabel(_Operation):
    op: Literal["set_clip_label"] = "set_clip_label"
    track_id: str
    clip_id: str
    label: str


class SetTrackAudio(_Operation):
    op: Literal["set_track_audio"] = "set_track_audio"
    track_id: str
    volume: float | None = None
    muted: bool | None = None


class AddEffect(_Operation):
    op: Literal["add_effect"] = "add_effect"
    track_id: str
    clip_id: str
    effect_type: str
    effect_id: str | None = None
    config: dict[str, Any] | None = None


class UpsertEffect(_Operation):
    op: Literal["upsert_effect"] = "upsert_effect"
    track_id: str
    clip_id: str
    effect_type: str
    effect_id: str | None = None
    config: dict[str, Any] | None = None


class SetTransition(_Operation):
    op: Literal["set_transition"] = "set_transition"
    track_id: str
    clip_id: str
    transition_type: TransitionType
    duration_ms: int


class SetKeyframe(_Operation):
    op: Literal["set_keyframe"] = "set_keyframe"
    track_id: str
    clip_id: str
    effect_id: str
    property: str
    time_ms: int
    value: Union[bool, int, float, str]
    easing: str | None = None


class SetExportPreset(_Operation):
    op: Literal["set_export_preset"] = "set_export_preset"
    preset: ExportPreset
    width: int | None = None
    height: int | None = None


OPERATION_TYPES = (
    CreateTrack,
    AddClip,
    SplitClip,
    TrimClip,
    ReorderTrack,
    RemoveClip,
    MoveClip,
    SetClipTiming,
    MergeClipWithNext,
    SetClipLabel,
    SetTrackAudio,
    AddEffect,
    UpsertEffect,
    SetTransition,
    SetKeyframe,
    SetExportPreset,
)

OPERATION_NAMES: frozenset[str] = frozenset(
    cls.model_fields["op"].default for cls in OPERATION_TYPES
)

TimelineOperation = Annotated[
    Union[
        CreateTrack,
        AddClip,
        SplitClip,
        TrimClip,
        ReorderTrack,
        RemoveClip,
        MoveClip,
        SetClipTiming,
        MergeClipWithNext,
        SetClipLabel,
        SetTrackAudio,
        AddEffect,
        UpsertEffect,
        SetTransition,
        SetKeyframe,
        SetExportPreset,
    ],
    Field(discriminator="op"),
]

_operations_adapter: TypeAdapter[list[TimelineOperation]] = TypeAdapter(list[TimelineOperation])


def parse_operations(raw: list[dict[str, Any]] | list[TimelineOperation]) -> list[TimelineOperation]:
    """Parse wire payloads (camelCase or snake_case keys) into operation models.

    Raises:
        pydantic.ValidationError: If any entry has an unknown ``op`` tag or
            missing fields
    """
    return _operations_adapter.validate_python(raw)


def dump_operations(operations: list[TimelineOperation]) -> list[dict[str, Any]]:
    """Serialize operations to wire payloads."""
    return _operations_adapter.dump_python(operations, mode="json", by_alias=True, exclude_none=True)
