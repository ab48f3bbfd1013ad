"""
cutplan.assist.session - Apply natural-language edits to a document blob.

Glue between the pipeline, the blob format and the undo ledger. Every
APPLIED edit records an undo entry carrying the prior snapshot and its
lineage; undo restores that snapshot only while the lineage still holds.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel

from cutplan.assist.pipeline import PipelineResult, run_edit_pipeline
from cutplan.config import EngineConfig
from cutplan.logging import logger
from cutplan.timeline.document import (
    TIMELINE_STATE_KEY,
    build_timeline_state,
    load_timeline_state,
    serialize_timeline_state,
    timeline_state_json,
)
from cutplan.timeline.models import ProjectAsset, TimelineState
from cutplan.undo import LineageMismatch, UndoLineage, consume_undo_entry, push_undo_entry
from cutplan.utils import new_id


class ChatEditOutcome(BaseModel):
    result: PipelineResult
    blob: dict[str, Any]
    undo_token: str | None = None


class UndoOutcome(BaseModel):
    blob: dict[str, Any]
    state: TimelineState
    prompt: str


def apply_chat_edit(
    blob: dict[str, Any],
    prompt: str,
    assets: Sequence[ProjectAsset | dict[str, Any]] = (),
    project_id: str | None = None,
    config: EngineConfig | None = None,
) -> ChatEditOutcome:
    """Run the edit pipeline against a blob and persist the result into a new blob.

    Suggestions-only outcomes return the input blob unchanged and no token.

    Args:
        blob: Persisted document blob
        prompt: Free-text edit request
        assets: Project assets, used only when the blob has no timeline yet
        project_id: Owning project, recorded for undo
        config: Thresholds (defaults to EngineConfig())

    Returns:
        ChatEditOutcome

    Raises:
        DocumentError: If the blob carries a timeline that cannot be read
    """
    config = config or EngineConfig()
    state = build_timeline_state(blob, assets)
    result = run_edit_pipeline(prompt, state, config=config)
    if not result.applied or result.next_state is None:
        return ChatEditOutcome(result=result, blob=blob)

    token = new_id()
    lineage = UndoLineage(
        project_id=project_id,
        base_revision=state.version,
        base_timeline_hash=state.current_timeline_hash,
        applied_revision=result.next_revision,
        applied_timeline_hash=result.next_timeline_hash,
    )
    next_blob = serialize_timeline_state(blob, result.next_state)
    next_blob = push_undo_entry(
        next_blob,
        token=token,
        timeline_state_json=timeline_state_json(state),
        prompt=prompt,
        project_id=project_id,
        lineage=lineage,
        limit=config.undo_stack_limit,
    )
    logger.debug("Applied chat edit at revision %s, undo token %s", result.next_revision, token)
    return ChatEditOutcome(result=result, blob=next_blob, undo_token=token)


def undo_chat_edit(
    blob: dict[str, Any],
    token: str,
    project_id: str | None = None,
    force: bool = False,
) -> UndoOutcome | LineageMismatch:
    """Restore the snapshot recorded under an undo token.

    Unless ``force`` is set, the document must still be at the revision and
    hash the edit produced.

    Raises:
        DocumentError: If the blob carries no readable timeline
    """
    current = load_timeline_state(blob)
    consumed = consume_undo_entry(
        blob,
        token,
        project_id=project_id,
        current_revision=current.version,
        current_timeline_hash=current.current_timeline_hash,
        require_latest_lineage=not force,
    )
    if isinstance(consumed, LineageMismatch):
        return consumed

    restored_blob = {**consumed.blob, TIMELINE_STATE_KEY: consumed.entry.timeline_state_json}
    restored = load_timeline_state(restored_blob)
    return UndoOutcome(blob=restored_blob, state=restored, prompt=consumed.entry.prompt)
