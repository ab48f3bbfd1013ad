"""
cutplan.undo - Undo ledger with lineage tokens.

Undo entries live in the document blob under ``chatEditUndoStack``, newest
first and bounded in length. Each entry holds the full prior timeline
serialization plus the lineage it was recorded against:

- base revision/hash: the document the edit was applied to
- applied revision/hash: the document the edit produced

An entry is only restorable while the document still sits at its applied
lineage, so an undo never reverts over edits that landed afterwards.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ValidationError

from cutplan.logging import logger
from cutplan.timeline.models import WireModel
from cutplan.utils import clean_text, utc_now_iso

UNDO_STACK_KEY = "chatEditUndoStack"
DEFAULT_UNDO_STACK_LIMIT = 12


class UndoLineage(WireModel):
    project_id: str | None = None
    base_revision: int | None = None
    base_timeline_hash: str | None = None
    applied_revision: int | None = None
    applied_timeline_hash: str | None = None


class UndoEntry(WireModel):
    token: str
    timeline_state_json: str
    created_at: str
    prompt: str = ""
    project_id: str | None = None
    lineage: UndoLineage | None = None


class LineageMismatch(BaseModel):
    """Structured refusal to restore an undo entry."""

    code: str
    message: str


class ConsumedUndo(BaseModel):
    entry: UndoEntry
    blob: dict[str, Any]


def parse_undo_stack(blob: Any) -> list[UndoEntry]:
    """Read the undo stack from a blob, dropping malformed entries."""
    if not isinstance(blob, dict):
        return []
    raw = blob.get(UNDO_STACK_KEY)
    if not isinstance(raw, list):
        return []

    entries = []
    for item in raw:
        try:
            entries.append(UndoEntry.model_validate(item))
        except ValidationError:
            logger.debug("Skipping malformed undo entry")
    return entries


def push_undo_entry(
    blob: dict[str, Any],
    token: str,
    timeline_state_json: str,
    prompt: str,
    project_id: str | None = None,
    lineage: UndoLineage | None = None,
    limit: int = DEFAULT_UNDO_STACK_LIMIT,
) -> dict[str, Any]:
    """Record an undo entry on top of the stack.

    Args:
        blob: Document blob (not modified)
        token: Opaque undo token handed to the caller
        timeline_state_json: Full serialization of the state before the edit
        prompt: Request that produced the edit
        project_id: Owning project, checked on consume
        lineage: Base and applied revision/hash of the edit
        limit: Maximum stack length; the oldest entries fall off

    Returns:
        New blob with the updated stack
    """
    entry = UndoEntry(
        token=token,
        timeline_state_json=timeline_state_json,
        created_at=utc_now_iso(),
        prompt=clean_text(prompt),
        project_id=project_id,
        lineage=lineage,
    )
    stack = [entry, *parse_undo_stack(blob)][:limit]
    return {**blob, UNDO_STACK_KEY: [e.to_wire() for e in stack]}


def _check_lineage(
    entry: UndoEntry, current_revision: int | None, current_timeline_hash: str | None
) -> LineageMismatch | None:
    lineage = entry.lineage
    if lineage is None or lineage.applied_revision is None or not lineage.applied_timeline_hash:
        return LineageMismatch(code="LINEAGE_MISSING", message="Undo token missing lineage metadata")
    if current_revision != lineage.applied_revision:
        return LineageMismatch(
            code="REVISION_MISMATCH",
            message="Undo token no longer matches current timeline revision",
        )
    if current_timeline_hash != lineage.applied_timeline_hash:
        return LineageMismatch(
            code="HASH_MISMATCH",
            message="Undo token no longer matches current timeline hash",
        )
    return None


def consume_undo_entry(
    blob: dict[str, Any],
    token: str,
    project_id: str | None = None,
    current_revision: int | None = None,
    current_timeline_hash: str | None = None,
    require_latest_lineage: bool = False,
) -> ConsumedUndo | LineageMismatch:
    """Pop an undo entry if it may be restored.

    With ``require_latest_lineage`` the current revision and hash must equal
    the entry's applied revision and hash exactly; a missing value counts
    as a mismatch. A refusal leaves the stack untouched.

    Returns:
        ConsumedUndo with the entry and the blob without it, or LineageMismatch
    """
    stack = parse_undo_stack(blob)
    index = next((i for i, entry in enumerate(stack) if entry.token == token), None)
    if index is None:
        return LineageMismatch(code="TOKEN_NOT_FOUND", message="Undo token not found")

    entry = stack[index]
    if project_id and entry.project_id and entry.project_id != project_id:
        return LineageMismatch(
            code="PROJECT_MISMATCH", message="Undo token does not belong to this project"
        )

    if require_latest_lineage:
        mismatch = _check_lineage(entry, current_revision, current_timeline_hash)
        if mismatch is not None:
            logger.debug("Undo refused for %s: %s", token, mismatch.code)
            return mismatch

    remaining = stack[:index] + stack[index + 1 :]
    return ConsumedUndo(entry=entry, blob={**blob, UNDO_STACK_KEY: [e.to_wire() for e in remaining]})
