"""
cutplan.timeline - Timeline document model, operation engine and invariants.
"""

from __future__ import annotations

from cutplan.timeline.engine import ApplyResult, apply_operations, compute_timeline_hash
from cutplan.timeline.invariants import (
    InvariantIssue,
    PreviewResult,
    preview_timeline_operations_with_validation,
    validate_timeline_state_invariants,
)
from cutplan.timeline.models import Clip, Effect, Revision, TimelineState, Track
from cutplan.timeline.operations import TimelineOperation, parse_operations

__all__ = [
    "ApplyResult",
    "Clip",
    "Effect",
    "InvariantIssue",
    "PreviewResult",
    "Revision",
    "TimelineOperation",
    "TimelineState",
    "Track",
    "apply_operations",
    "compute_timeline_hash",
    "parse_operations",
    "preview_timeline_operations_with_validation",
    "validate_timeline_state_invariants",
]
