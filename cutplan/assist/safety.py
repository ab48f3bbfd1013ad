"""
cutplan.assist.safety - Trust tiers for pipeline results.

The trust tier is advisory: callers use it to decide whether to apply
silently, ask for confirmation, or only show suggestions. It never feeds
back into the mutation path.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from cutplan.assist.plan_validator import PlanValidation
from cutplan.config import EngineConfig


class ExecutionMode(str, Enum):
    APPLIED = "APPLIED"
    SUGGESTIONS_ONLY = "SUGGESTIONS_ONLY"


class SafetyMode(str, Enum):
    SUGGESTIONS_ONLY = "SUGGESTIONS_ONLY"
    APPLY_WITH_CONFIRM = "APPLY_WITH_CONFIRM"
    APPLIED = "APPLIED"


class ConfidenceRationale(BaseModel):
    average_confidence: float
    valid_plan_rate: float
    low_confidence: bool
    reasons: list[str] = Field(default_factory=list)
    fallback_reason: str | None = None


def resolve_safety_mode(
    execution_mode: ExecutionMode,
    average_confidence: float,
    config: EngineConfig | None = None,
) -> SafetyMode:
    """Classify a pipeline outcome into a trust tier.

    Args:
        execution_mode: Pipeline terminal outcome
        average_confidence: Planner aggregate confidence
        config: Thresholds (defaults to EngineConfig())

    Returns:
        SafetyMode
    """
    config = config or EngineConfig()
    if execution_mode == ExecutionMode.SUGGESTIONS_ONLY:
        return SafetyMode.SUGGESTIONS_ONLY
    if average_confidence < config.confirm_threshold:
        return SafetyMode.SUGGESTIONS_ONLY
    if average_confidence < config.auto_apply_threshold:
        return SafetyMode.APPLY_WITH_CONFIRM
    return SafetyMode.APPLIED


def build_confidence_rationale(validation: PlanValidation, fallback_reason: str | None) -> ConfidenceRationale:
    """Summarize why a plan was or was not trusted, for display."""
    return ConfidenceRationale(
        average_confidence=round(validation.average_confidence, 4),
        valid_plan_rate=round(validation.valid_plan_rate, 2),
        low_confidence=validation.low_confidence,
        reasons=list(validation.reasons),
        fallback_reason=fallback_reason,
    )
