"""Tests for cutplan.timeline.engine module."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from cutplan.exceptions import StructuralReferenceError
from cutplan.timeline.engine import _HANDLERS, apply_operations, compute_timeline_hash
from cutplan.timeline.enums import ExportPreset, TrackKind, TransitionType
from cutplan.timeline.models import TimelineState
from cutplan.timeline.operations import (
    OPERATION_NAMES,
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
    TrimClip,
    UpsertEffect,
)


class TestHandlers:
    def test_every_operation_has_a_handler(self) -> None:
        assert set(_HANDLERS) == OPERATION_NAMES


class TestApplyOperations:
    def test_batch_appends_one_revision_with_every_operation(self, single_clip_state: TimelineState) -> None:
        ops = [
            SetClipLabel(track_id="v1", clip_id="c1", label="Opening"),
            TrimClip(track_id="v1", clip_id="c1", trim_start_ms=100),
        ]
        result = apply_operations(single_clip_state, ops)

        assert result.revision == 2
        assert result.state.version == 2
        assert len(result.state.revisions) == 2
        latest = result.state.revisions[-1]
        assert latest.revision == 2
        assert [op.op for op in latest.operations] == ["set_clip_label", "trim_clip"]
        assert latest.timeline_hash == result.timeline_hash

    def test_input_state_is_not_mutated(self, single_clip_state: TimelineState) -> None:
        before = single_clip_state.model_dump()
        apply_operations(single_clip_state, [TrimClip(track_id="v1", clip_id="c1", trim_start_ms=500)])
        assert single_clip_state.model_dump() == before

    def test_accepts_wire_payloads(self, single_clip_state: TimelineState) -> None:
        result = apply_operations(
            single_clip_state,
            [{"op": "trim_clip", "trackId": "v1", "clipId": "c1", "trimStartMs": 100}],
        )
        clip = result.state.find_track("v1").find_clip("c1")
        assert clip.timeline_in_ms == 100

    def test_unknown_operation_tag_raises(self, single_clip_state: TimelineState) -> None:
        with pytest.raises(ValidationError):
            apply_operations(single_clip_state, [{"op": "explode", "trackId": "v1"}])

    def test_revision_history_is_windowed(self, single_clip_state: TimelineState) -> None:
        state = single_clip_state
        for label in ("a", "b", "c"):
            state = apply_operations(
                state,
                [SetClipLabel(track_id="v1", clip_id="c1", label=label)],
                revision_history_limit=2,
            ).state
        assert state.version == 4
        assert [r.revision for r in state.revisions] == [3, 4]

    def test_newest_first_history_is_windowed_by_revision(self, single_clip_state: TimelineState) -> None:
        state = single_clip_state
        for label in ("a", "b"):
            state = apply_operations(state, [SetClipLabel(track_id="v1", clip_id="c1", label=label)]).state
        latest_hash = state.current_timeline_hash
        state.revisions.reverse()

        assert state.latest_revision.revision == 3
        assert state.current_timeline_hash == latest_hash

        result = apply_operations(
            state,
            [SetClipLabel(track_id="v1", clip_id="c1", label="c")],
            revision_history_limit=2,
        )
        assert [r.revision for r in result.state.revisions] == [3, 4]
        assert result.state.current_timeline_hash == result.timeline_hash


class TestAtomicity:
    def test_missing_track_rolls_back_whole_batch(self, single_clip_state: TimelineState) -> None:
        before = single_clip_state.model_dump()
        ops = [
            SetClipLabel(track_id="v1", clip_id="c1", label="Changed"),
            TrimClip(track_id="v1", clip_id="c1", trim_start_ms=200),
            RemoveClip(track_id="missing", clip_id="c1"),
        ]
        with pytest.raises(StructuralReferenceError, match="Track not found"):
            apply_operations(single_clip_state, ops)
        assert single_clip_state.model_dump() == before

    def test_missing_clip_is_distinguished(self, single_clip_state: TimelineState) -> None:
        with pytest.raises(StructuralReferenceError) as exc_info:
            apply_operations(single_clip_state, [MoveClip(track_id="v1", clip_id="nope", timeline_in_ms=0)])
        assert exc_info.value.kind == "clip"
        assert exc_info.value.message == "Clip not found: nope"

    def test_missing_effect_for_keyframe(self, single_clip_state: TimelineState) -> None:
        op = SetKeyframe(track_id="v1", clip_id="c1", effect_id="fx", property="scale", time_ms=0, value=1.0)
        with pytest.raises(StructuralReferenceError, match="Effect not found"):
            apply_operations(single_clip_state, [op])

    def test_duplicate_clip_id_is_rejected(self, single_clip_state: TimelineState) -> None:
        op = AddClip(clip_id="c1", track_id="v1", timeline_in_ms=4000, duration_ms=500)
        with pytest.raises(StructuralReferenceError) as exc_info:
            apply_operations(single_clip_state, [op])
        assert exc_info.value.kind == "duplicate_clip"

    def test_duplicate_track_id_is_rejected(self, single_clip_state: TimelineState) -> None:
        op = CreateTrack(track_id="v1", kind=TrackKind.VIDEO, name="Again")
        with pytest.raises(StructuralReferenceError, match="Track already exists"):
            apply_operations(single_clip_state, [op])


class TestSplitAndMerge:
    def test_split_derives_source_points(self, single_clip_state: TimelineState) -> None:
        result = apply_operations(
            single_clip_state, [SplitClip(track_id="v1", clip_id="c1", split_ms=1000, new_clip_id="c2")]
        )
        track = result.state.find_track("v1")
        first, second = track.clips
        assert (first.id, first.timeline_in_ms, first.timeline_out_ms) == ("c1", 0, 1000)
        assert (second.id, second.timeline_in_ms, second.timeline_out_ms) == ("c2", 1000, 3000)
        assert (first.source_in_ms, first.source_out_ms) == (0, 1000)
        assert (second.source_in_ms, second.source_out_ms) == (1000, 3000)
        assert first.label == second.label == "Take 1"

    def test_split_scales_source_for_retimed_clips(self, single_clip_state: TimelineState) -> None:
        clip = single_clip_state.find_track("v1").find_clip("c1")
        clip.source_out_ms = 6000
        result = apply_operations(single_clip_state, [SplitClip(track_id="v1", clip_id="c1", split_ms=1000)])
        second = result.state.find_track("v1").clips[1]
        assert second.source_in_ms == 2000

    def test_split_point_is_kept_off_the_edges(self, single_clip_state: TimelineState) -> None:
        result = apply_operations(single_clip_state, [SplitClip(track_id="v1", clip_id="c1", split_ms=0)])
        assert result.state.find_track("v1").clips[0].timeline_out_ms == 40

    def test_split_rejects_clip_too_short_to_split(self, single_clip_state: TimelineState) -> None:
        single_clip_state.find_track("v1").find_clip("c1").timeline_out_ms = 80
        with pytest.raises(StructuralReferenceError, match="too short"):
            apply_operations(single_clip_state, [SplitClip(track_id="v1", clip_id="c1", split_ms=40)])

    def test_split_copies_effects_with_new_ids(self, single_clip_state: TimelineState) -> None:
        ops = [
            AddEffect(track_id="v1", clip_id="c1", effect_type="blur", effect_id="fx1"),
            SetTransition(track_id="v1", clip_id="c1", transition_type=TransitionType.CROSSFADE, duration_ms=300),
            SplitClip(track_id="v1", clip_id="c1", split_ms=1500, new_clip_id="c2"),
        ]
        track = apply_operations(single_clip_state, ops).state.find_track("v1")
        first, second = track.clips
        assert first.effects[0].id == "fx1"
        assert second.effects[0].type == "blur"
        assert second.effects[0].id != "fx1"
        assert first.transition is None
        assert second.transition is not None

    def test_split_then_merge_round_trip(self, single_clip_state: TimelineState) -> None:
        split = apply_operations(single_clip_state, [SplitClip(track_id="v1", clip_id="c1", split_ms=1000)])
        merged = apply_operations(split.state, [MergeClipWithNext(track_id="v1", clip_id="c1")])

        clips = merged.state.find_track("v1").clips
        assert len(clips) == 1
        assert (clips[0].timeline_in_ms, clips[0].timeline_out_ms) == (0, 3000)
        assert clips[0].label == "Take 1"

    def test_merge_requires_a_next_clip(self, single_clip_state: TimelineState) -> None:
        with pytest.raises(StructuralReferenceError) as exc_info:
            apply_operations(single_clip_state, [MergeClipWithNext(track_id="v1", clip_id="c1")])
        assert exc_info.value.kind == "merge"

    def test_merge_keeps_left_effects_and_adds_new_types(self, single_clip_state: TimelineState) -> None:
        ops = [
            SplitClip(track_id="v1", clip_id="c1", split_ms=1000, new_clip_id="c2"),
            UpsertEffect(track_id="v1", clip_id="c1", effect_type="transform", config={"scale": 1.2}),
            UpsertEffect(track_id="v1", clip_id="c2", effect_type="transform", config={"scale": 2.0}),
            UpsertEffect(track_id="v1", clip_id="c2", effect_type="lut", config={"name": "warm"}),
            MergeClipWithNext(track_id="v1", clip_id="c1"),
        ]
        clip = apply_operations(single_clip_state, ops).state.find_track("v1").find_clip("c1")
        assert [e.type for e in clip.effects] == ["transform", "lut"]
        assert clip.effects[0].config == {"scale": 1.2}


class TestClipEdits:
    def test_trim_both_edges(self, single_clip_state: TimelineState) -> None:
        result = apply_operations(
            single_clip_state, [TrimClip(track_id="v1", clip_id="c1", trim_start_ms=120, trim_end_ms=120)]
        )
        clip = result.state.find_track("v1").find_clip("c1")
        assert (clip.timeline_in_ms, clip.timeline_out_ms) == (120, 2880)
        assert (clip.source_in_ms, clip.source_out_ms) == (120, 2880)

    def test_trim_never_goes_below_minimum_duration(self, single_clip_state: TimelineState) -> None:
        result = apply_operations(
            single_clip_state, [TrimClip(track_id="v1", clip_id="c1", trim_start_ms=5000)]
        )
        clip = result.state.find_track("v1").find_clip("c1")
        assert clip.duration_ms == 120
        assert clip.timeline_out_ms == 3000

    def test_move_preserves_duration(self, single_clip_state: TimelineState) -> None:
        result = apply_operations(single_clip_state, [MoveClip(track_id="v1", clip_id="c1", timeline_in_ms=700)])
        clip = result.state.find_track("v1").find_clip("c1")
        assert (clip.timeline_in_ms, clip.timeline_out_ms) == (700, 3700)

    def test_add_clip_enforces_minimum_duration(self, single_clip_state: TimelineState) -> None:
        op = AddClip(clip_id="c9", track_id="v1", timeline_in_ms=-50, duration_ms=10, label="Flash")
        clip = apply_operations(single_clip_state, [op]).state.find_track("v1").find_clip("c9")
        assert (clip.timeline_in_ms, clip.timeline_out_ms) == (0, 120)

    def test_label_is_capped(self, single_clip_state: TimelineState) -> None:
        op = SetClipLabel(track_id="v1", clip_id="c1", label="x" * 500)
        clip = apply_operations(single_clip_state, [op]).state.find_track("v1").find_clip("c1")
        assert len(clip.label) == 160

    def test_keyframe_upserts_by_property_and_time(self, single_clip_state: TimelineState) -> None:
        ops = [
            AddEffect(track_id="v1", clip_id="c1", effect_type="transform", effect_id="fx1"),
            SetKeyframe(track_id="v1", clip_id="c1", effect_id="fx1", property="scale", time_ms=500, value=1.0),
            SetKeyframe(track_id="v1", clip_id="c1", effect_id="fx1", property="scale", time_ms=500, value=1.4),
            SetKeyframe(track_id="v1", clip_id="c1", effect_id="fx1", property="scale", time_ms=0, value=1.0),
        ]
        effect = apply_operations(single_clip_state, ops).state.find_track("v1").find_clip("c1").effects[0]
        assert [(k.time_ms, k.value) for k in effect.keyframes] == [(0, 1.0), (500, 1.4)]

    def test_transition_duration_has_a_floor(self, single_clip_state: TimelineState) -> None:
        op = SetTransition(track_id="v1", clip_id="c1", transition_type=TransitionType.SLIDE, duration_ms=5)
        clip = apply_operations(single_clip_state, [op]).state.find_track("v1").find_clip("c1")
        assert clip.transition.duration_ms == 40


class TestTrackAndDocumentEdits:
    def test_reorder_renumbers_tracks(self, timeline_state: TimelineState) -> None:
        result = apply_operations(timeline_state, [ReorderTrack(track_id="cap1", order=0)])
        assert [(t.id, t.order) for t in result.state.tracks] == [("cap1", 0), ("v1", 1), ("a1", 2)]

    def test_track_volume_is_clamped(self, timeline_state: TimelineState) -> None:
        result = apply_operations(timeline_state, [SetTrackAudio(track_id="a1", volume=3.0, muted=True)])
        track = result.state.find_track("a1")
        assert track.volume == 1.5
        assert track.muted is True

    def test_create_track_appends_with_next_order(self, timeline_state: TimelineState) -> None:
        result = apply_operations(
            timeline_state, [CreateTrack(track_id="v2", kind=TrackKind.VIDEO, name="B-roll")]
        )
        assert result.state.find_track("v2").order == 3

    def test_custom_export_preset_clamps_resolution(self, timeline_state: TimelineState) -> None:
        result = apply_operations(
            timeline_state, [SetExportPreset(preset=ExportPreset.CUSTOM, width=50, height=720)]
        )
        assert (result.state.resolution.width, result.state.resolution.height) == (120, 720)

    def test_named_export_preset_resets_resolution(self, timeline_state: TimelineState) -> None:
        ops = [
            SetExportPreset(preset=ExportPreset.CUSTOM, width=1920, height=1080),
            SetExportPreset(preset=ExportPreset.REELS_9X16),
        ]
        state = apply_operations(timeline_state, ops).state
        assert state.export_preset == ExportPreset.REELS_9X16
        assert (state.resolution.width, state.resolution.height) == (1080, 1920)


class TestTimelineHash:
    def test_hash_is_deterministic(self, timeline_state: TimelineState) -> None:
        assert compute_timeline_hash(timeline_state) == compute_timeline_hash(timeline_state.model_copy(deep=True))
        assert len(compute_timeline_hash(timeline_state)) == 64

    def test_hash_ignores_revision_history(self, timeline_state: TimelineState) -> None:
        stripped = timeline_state.model_copy(update={"revisions": []}, deep=True)
        assert compute_timeline_hash(stripped) == compute_timeline_hash(timeline_state)

    def test_hash_changes_with_content(self, single_clip_state: TimelineState) -> None:
        result = apply_operations(single_clip_state, [SetClipLabel(track_id="v1", clip_id="c1", label="New")])
        assert result.timeline_hash != single_clip_state.current_timeline_hash
        assert result.timeline_hash == compute_timeline_hash(result.state)


class TestEndToEnd:
    def test_split_label_move_retime_merge(self, single_clip_state: TimelineState) -> None:
        state = single_clip_state

        state = apply_operations(
            state, [SplitClip(track_id="v1", clip_id="c1", split_ms=1000, new_clip_id="c2")]
        ).state
        clips = state.find_track("v1").clips
        assert [(c.timeline_in_ms, c.timeline_out_ms) for c in clips] == [(0, 1000), (1000, 3000)]

        state = apply_operations(
            state,
            [
                SetClipLabel(track_id="v1", clip_id="c1", label="Intro"),
                AddEffect(track_id="v1", clip_id="c1", effect_type="blur", effect_id="fx1"),
            ],
        ).state

        state = apply_operations(state, [MoveClip(track_id="v1", clip_id="c1", timeline_in_ms=300)]).state
        moved = state.find_track("v1").find_clip("c1")
        assert (moved.timeline_in_ms, moved.timeline_out_ms) == (300, 1300)

        state = apply_operations(
            state, [SetClipTiming(track_id="v1", clip_id="c1", timeline_in_ms=300, duration_ms=900)]
        ).state
        retimed = state.find_track("v1").find_clip("c1")
        assert (retimed.timeline_in_ms, retimed.timeline_out_ms) == (300, 1200)

        result = apply_operations(state, [MergeClipWithNext(track_id="v1", clip_id="c1")])
        clips = result.state.find_track("v1").clips
        assert len(clips) == 1
        assert clips[0].label == "Intro"
        assert [e.id for e in clips[0].effects] == ["fx1"]
        assert (clips[0].timeline_in_ms, clips[0].timeline_out_ms) == (300, 3000)

        assert result.revision == 6
        assert [r.revision for r in result.state.revisions] == [1, 2, 3, 4, 5, 6]
        assert len(result.timeline_hash) == 64
        assert result.timeline_hash == compute_timeline_hash(result.state)
