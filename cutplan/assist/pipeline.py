"""
cutplan.assist.pipeline - Planner -> validator -> compiler -> preview.

run_edit_pipeline has two terminal outcomes:
- APPLIED: operations compiled and the previewed state passed every
  invariant; the caller persists ``next_state``.
- SUGGESTIONS_ONLY: nothing changes; ``fallback_reason`` says why and
  ``constrained_suggestions`` offers safe follow-ups.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from cutplan.assist.compiler import compile_intents
from cutplan.assist.plan_validator import SUPPORTED_INTENT_OPS, PlanValidation, validate_plan
from cutplan.assist.planner import ConstrainedSuggestion, EditIntent, plan_edit_intents
from cutplan.assist.safety import (
    ConfidenceRationale,
    ExecutionMode,
    SafetyMode,
    build_confidence_rationale,
    resolve_safety_mode,
)
from cutplan.config import EngineConfig
from cutplan.logging import logger
from cutplan.timeline.invariants import InvariantIssue, preview_timeline_operations_with_validation
from cutplan.timeline.models import TimelineState
from cutplan.timeline.operations import TimelineOperation, dump_operations
from cutplan.utils import stable_hash

NO_OPERATIONS_REASON = "No deterministic timeline operations available"
INVARIANT_FAILURE_REASON = "Timeline invariant validation failed"


class PipelineResult(BaseModel):
    execution_mode: ExecutionMode
    planned_operations: list[EditIntent] = Field(default_factory=list)
    validated_operations: list[EditIntent] = Field(default_factory=list)
    applied_timeline_operations: list[TimelineOperation] = Field(default_factory=list)
    constrained_suggestions: list[ConstrainedSuggestion] = Field(default_factory=list)
    plan_validation: PlanValidation
    invariant_issues: list[InvariantIssue] = Field(default_factory=list)
    fallback_reason: str | None = None
    next_state: TimelineState | None = None
    next_revision: int | None = None
    next_timeline_hash: str | None = None
    safety_mode: SafetyMode
    confidence_rationale: ConfidenceRationale
    plan_revision_hash: str

    @property
    def applied(self) -> bool:
        return self.execution_mode == ExecutionMode.APPLIED


def compute_plan_revision_hash(
    prompt: str,
    base_revision: int,
    base_timeline_hash: str | None,
    operations: list[TimelineOperation],
) -> str:
    """Digest binding a plan to the document it was compiled against."""
    return stable_hash(
        {
            "prompt": prompt,
            "baseRevision": base_revision,
            "baseTimelineHash": base_timeline_hash,
            "operations": dump_operations(operations),
        }
    )


def _with_reason(validation: PlanValidation, reason: str) -> PlanValidation:
    return validation.model_copy(update={"is_valid": False, "reasons": [*validation.reasons, reason]})


def run_edit_pipeline(prompt: str, state: TimelineState, config: EngineConfig | None = None) -> PipelineResult:
    """Turn a natural-language request into an applied or suggestions-only result.

    The live state is never mutated; APPLIED results carry the candidate
    state produced by the preview.

    Args:
        prompt: Free-text edit request
        state: Current committed timeline
        config: Thresholds (defaults to EngineConfig())

    Returns:
        PipelineResult
    """
    config = config or EngineConfig()
    planner = plan_edit_intents(prompt, confidence_floor=config.min_confidence)
    validation = validate_plan(
        planner.intents, planner.average_confidence, planner.low_confidence, config=config
    )
    validated = [i for i in planner.intents[: config.max_ops] if i.op in SUPPORTED_INTENT_OPS]

    def finish(
        mode: ExecutionMode,
        plan_validation: PlanValidation,
        fallback_reason: str | None = None,
        operations: list[TimelineOperation] | None = None,
        issues: list[InvariantIssue] | None = None,
        next_state: TimelineState | None = None,
        next_revision: int | None = None,
        next_timeline_hash: str | None = None,
    ) -> PipelineResult:
        applied_ops = operations or []
        if fallback_reason:
            logger.debug("Edit plan fell back to suggestions: %s", fallback_reason)
        return PipelineResult(
            execution_mode=mode,
            planned_operations=planner.intents,
            validated_operations=validated,
            applied_timeline_operations=applied_ops,
            constrained_suggestions=planner.constrained_suggestions,
            plan_validation=plan_validation,
            invariant_issues=issues or [],
            fallback_reason=fallback_reason,
            next_state=next_state,
            next_revision=next_revision,
            next_timeline_hash=next_timeline_hash,
            safety_mode=resolve_safety_mode(mode, planner.average_confidence, config=config),
            confidence_rationale=build_confidence_rationale(plan_validation, fallback_reason),
            plan_revision_hash=compute_plan_revision_hash(
                prompt, state.version, state.current_timeline_hash, applied_ops
            ),
        )

    if not validation.is_valid:
        return finish(ExecutionMode.SUGGESTIONS_ONLY, validation, validation.reasons[0])

    operations = compile_intents(state, validated)
    if not operations:
        return finish(
            ExecutionMode.SUGGESTIONS_ONLY,
            _with_reason(validation, f"{NO_OPERATIONS_REASON} for this prompt"),
            NO_OPERATIONS_REASON,
        )

    preview = preview_timeline_operations_with_validation(
        state, operations, revision_history_limit=config.revision_history_limit
    )
    if not preview.valid or preview.next_state is None:
        reason = preview.issues[0].message if preview.issues else INVARIANT_FAILURE_REASON
        return finish(
            ExecutionMode.SUGGESTIONS_ONLY,
            _with_reason(validation, INVARIANT_FAILURE_REASON),
            reason,
            issues=preview.issues,
        )

    logger.debug("Edit plan compiled to %d operation(s) and passed preview", len(operations))
    return finish(
        ExecutionMode.APPLIED,
        validation,
        operations=operations,
        next_state=preview.next_state,
        next_revision=preview.revision,
        next_timeline_hash=preview.timeline_hash,
    )
