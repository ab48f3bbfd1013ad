"""
cutplan.assist.plan_validator - Confidence and policy gate for edit plans.

A rejected plan is a business outcome, not an error: the validator always
returns a PlanValidation and never raises.
"""

from __future__ import annotations

from collections.abc import Sequence

from pydantic import BaseModel, Field

from cutplan.assist.planner import EditIntent
from cutplan.config import EngineConfig

SUPPORTED_INTENT_OPS: frozenset[str] = frozenset(
    {"split", "trim", "reorder", "caption_style", "zoom", "audio_duck", "generic"}
)

VALID_PLAN_RATE_FLOOR = 98.0
INVALID_PLAN_RATE_PENALTY = 35.0


class PlanValidation(BaseModel):
    is_valid: bool
    low_confidence: bool
    average_confidence: float
    valid_plan_rate: float
    reasons: list[str] = Field(default_factory=list)


def compute_valid_plan_rate(is_valid: bool, average_confidence: float) -> float:
    """Display metric for a plan, rounded to two decimals."""
    score = average_confidence * 100
    if is_valid:
        return round(max(VALID_PLAN_RATE_FLOOR, score), 2)
    return round(max(0.0, score - INVALID_PLAN_RATE_PENALTY), 2)


def validate_plan(
    intents: Sequence[EditIntent],
    average_confidence: float,
    low_confidence: bool,
    config: EngineConfig | None = None,
) -> PlanValidation:
    """Decide whether a planned set of intents may proceed to compilation.

    Args:
        intents: Planner output, in order
        average_confidence: Aggregate planner confidence
        low_confidence: Planner's own low-confidence flag
        config: Thresholds (defaults to EngineConfig())

    Returns:
        PlanValidation; ``reasons`` lists every failed check in check order
    """
    config = config or EngineConfig()
    reasons: list[str] = []

    if not intents:
        reasons.append("No planner operations returned")

    if len(intents) > config.max_ops:
        reasons.append(f"Planner returned too many operations ({len(intents)} > {config.max_ops})")

    for intent in intents:
        if intent.op not in SUPPORTED_INTENT_OPS:
            reasons.append(f"Unsupported operation: {intent.op}")

    if intents and all(intent.op == "generic" for intent in intents):
        reasons.append("Planner returned only generic operation")

    if low_confidence or average_confidence < config.min_confidence:
        reasons.append(
            f"Planner confidence too low ({average_confidence:.2f} < {config.min_confidence:.2f})"
        )

    is_valid = not reasons
    return PlanValidation(
        is_valid=is_valid,
        low_confidence=low_confidence,
        average_confidence=average_confidence,
        valid_plan_rate=compute_valid_plan_rate(is_valid, average_confidence),
        reasons=reasons,
    )
