"""Tests for cutplan.undo and cutplan.assist.session modules."""

from __future__ import annotations

import json

import pytest

from cutplan.assist.session import ChatEditOutcome, UndoOutcome, apply_chat_edit, undo_chat_edit
from cutplan.config import EngineConfig
from cutplan.exceptions import DocumentError
from cutplan.timeline.document import TIMELINE_STATE_KEY, load_timeline_state, serialize_timeline_state
from cutplan.timeline.engine import apply_operations
from cutplan.timeline.models import TimelineState
from cutplan.timeline.operations import SetClipLabel
from cutplan.undo import (
    UNDO_STACK_KEY,
    ConsumedUndo,
    LineageMismatch,
    UndoLineage,
    consume_undo_entry,
    parse_undo_stack,
    push_undo_entry,
)

LINEAGE = UndoLineage(
    project_id="p1",
    base_revision=1,
    base_timeline_hash="h1",
    applied_revision=2,
    applied_timeline_hash="h2",
)


def _push(blob: dict, token: str, lineage: UndoLineage | None = LINEAGE, **kwargs) -> dict:
    return push_undo_entry(blob, token=token, timeline_state_json="{}", prompt="split", lineage=lineage, **kwargs)


class TestUndoStack:
    def test_push_is_newest_first(self) -> None:
        blob = _push(_push({}, "t1"), "t2")
        assert [e.token for e in parse_undo_stack(blob)] == ["t2", "t1"]

    def test_push_respects_limit(self) -> None:
        blob: dict = {}
        for i in range(5):
            blob = _push(blob, f"t{i}", limit=3)
        assert [e.token for e in parse_undo_stack(blob)] == ["t4", "t3", "t2"]

    def test_push_does_not_modify_input(self) -> None:
        original = {"projectName": "demo"}
        blob = _push(original, "t1")
        assert UNDO_STACK_KEY not in original
        assert blob["projectName"] == "demo"

    def test_wire_format_is_camel_case(self) -> None:
        entry = _push({}, "t1")[UNDO_STACK_KEY][0]
        assert entry["timelineStateJson"] == "{}"
        assert entry["lineage"]["appliedTimelineHash"] == "h2"

    def test_malformed_entries_are_skipped(self) -> None:
        blob = _push({}, "t1")
        blob[UNDO_STACK_KEY].append({"token": 5})
        blob[UNDO_STACK_KEY].append("garbage")
        assert [e.token for e in parse_undo_stack(blob)] == ["t1"]

    def test_non_list_stack(self) -> None:
        assert parse_undo_stack({UNDO_STACK_KEY: "nope"}) == []
        assert parse_undo_stack(None) == []


class TestConsumeUndo:
    def test_token_not_found(self) -> None:
        result = consume_undo_entry(_push({}, "t1"), "missing")
        assert isinstance(result, LineageMismatch)
        assert result.code == "TOKEN_NOT_FOUND"

    def test_consume_removes_entry(self) -> None:
        blob = _push(_push({}, "t1"), "t2")
        result = consume_undo_entry(
            blob,
            "t1",
            project_id="p1",
            current_revision=2,
            current_timeline_hash="h2",
            require_latest_lineage=True,
        )
        assert isinstance(result, ConsumedUndo)
        assert result.entry.token == "t1"
        assert [e.token for e in parse_undo_stack(result.blob)] == ["t2"]

    def test_project_mismatch(self) -> None:
        result = consume_undo_entry(_push({}, "t1", project_id="p1"), "t1", project_id="p2")
        assert isinstance(result, LineageMismatch)
        assert result.code == "PROJECT_MISMATCH"

    @pytest.mark.parametrize(
        "revision, timeline_hash, code",
        [
            (3, "h2", "REVISION_MISMATCH"),
            (None, "h2", "REVISION_MISMATCH"),
            (2, "other", "HASH_MISMATCH"),
            (2, None, "HASH_MISMATCH"),
        ],
    )
    def test_lineage_must_match(self, revision, timeline_hash, code) -> None:
        blob = _push({}, "t1")
        result = consume_undo_entry(
            blob,
            "t1",
            current_revision=revision,
            current_timeline_hash=timeline_hash,
            require_latest_lineage=True,
        )
        assert isinstance(result, LineageMismatch)
        assert result.code == code
        assert len(parse_undo_stack(blob)) == 1

    def test_missing_lineage(self) -> None:
        result = consume_undo_entry(
            _push({}, "t1", lineage=None),
            "t1",
            current_revision=2,
            current_timeline_hash="h2",
            require_latest_lineage=True,
        )
        assert isinstance(result, LineageMismatch)
        assert result.code == "LINEAGE_MISSING"

    def test_lineage_ignored_when_not_required(self) -> None:
        result = consume_undo_entry(_push({}, "t1"), "t1", current_revision=9, current_timeline_hash="zz")
        assert isinstance(result, ConsumedUndo)


class TestChatEditSession:
    def test_apply_records_undo_entry(self, timeline_blob: dict, timeline_state: TimelineState) -> None:
        outcome = apply_chat_edit(timeline_blob, "split the hook", project_id="p1")

        assert isinstance(outcome, ChatEditOutcome)
        assert outcome.result.applied
        assert outcome.undo_token is not None
        assert load_timeline_state(outcome.blob).version == 2
        assert outcome.blob["projectName"] == "demo"

        (entry,) = parse_undo_stack(outcome.blob)
        assert entry.token == outcome.undo_token
        assert entry.project_id == "p1"
        assert entry.lineage.base_revision == 1
        assert entry.lineage.base_timeline_hash == timeline_state.current_timeline_hash
        assert entry.lineage.applied_revision == 2
        assert entry.lineage.applied_timeline_hash == outcome.result.next_timeline_hash

    def test_suggestions_only_leaves_blob(self, timeline_blob: dict) -> None:
        outcome = apply_chat_edit(timeline_blob, "do something magical")
        assert not outcome.result.applied
        assert outcome.undo_token is None
        assert outcome.blob == timeline_blob

    def test_apply_seeds_timeline_from_assets(self) -> None:
        assets = [{"id": "a1", "slotKey": "hook", "kind": "VIDEO", "durationSec": 4}]
        outcome = apply_chat_edit({}, "split it", assets=assets)
        assert outcome.result.applied
        video = load_timeline_state(outcome.blob).primary_video_track()
        assert len(video.clips) == 2

    def test_undo_stack_limit_from_config(self, timeline_blob: dict) -> None:
        config = EngineConfig(undo_stack_limit=1)
        blob = apply_chat_edit(timeline_blob, "zoom in", config=config).blob
        blob = apply_chat_edit(blob, "duck the music", config=config).blob
        assert len(parse_undo_stack(blob)) == 1

    def test_undo_restores_prior_state(self, timeline_blob: dict, timeline_state: TimelineState) -> None:
        applied = apply_chat_edit(timeline_blob, "split the hook", project_id="p1")
        outcome = undo_chat_edit(applied.blob, applied.undo_token, project_id="p1")

        assert isinstance(outcome, UndoOutcome)
        assert outcome.state == timeline_state
        assert outcome.prompt == "split the hook"
        assert outcome.blob[TIMELINE_STATE_KEY] == timeline_blob[TIMELINE_STATE_KEY]
        assert parse_undo_stack(outcome.blob) == []

    def test_undo_refused_after_later_edit(self, timeline_blob: dict) -> None:
        applied = apply_chat_edit(timeline_blob, "split the hook")
        current = load_timeline_state(applied.blob)
        later = apply_operations(current, [SetClipLabel(track_id="v1", clip_id="c1", label="Edited")]).state
        blob = serialize_timeline_state(applied.blob, later)

        refused = undo_chat_edit(blob, applied.undo_token)
        assert isinstance(refused, LineageMismatch)
        assert refused.code == "REVISION_MISMATCH"

        forced = undo_chat_edit(blob, applied.undo_token, force=True)
        assert isinstance(forced, UndoOutcome)
        assert forced.state.version == 1

    def test_undo_twice_is_token_not_found(self, timeline_blob: dict) -> None:
        applied = apply_chat_edit(timeline_blob, "split the hook")
        first = undo_chat_edit(applied.blob, applied.undo_token)
        second = undo_chat_edit(first.blob, applied.undo_token)
        assert isinstance(second, LineageMismatch)
        assert second.code == "TOKEN_NOT_FOUND"

    def test_undo_requires_timeline(self) -> None:
        with pytest.raises(DocumentError):
            undo_chat_edit({}, "t1")

    def test_apply_refuses_unreadable_timeline(self, single_clip_state: TimelineState) -> None:
        payload = single_clip_state.to_wire()
        payload["tracks"][0]["clips"][0]["timelineInMs"] = 0.5
        blob = {"projectName": "demo", TIMELINE_STATE_KEY: json.dumps(payload)}
        assets = [{"id": "a1", "slotKey": "hook", "kind": "VIDEO", "durationSec": 4}]

        with pytest.raises(DocumentError):
            apply_chat_edit(blob, "add captions", assets=assets)
        assert json.loads(blob[TIMELINE_STATE_KEY])["tracks"][0]["clips"][0]["id"] == "c1"
