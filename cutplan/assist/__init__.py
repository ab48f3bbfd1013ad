"""
cutplan.assist - Natural-language edit pipeline.

Planner -> plan validator -> operation compiler -> invariant preview:
- Keyword intent planner with calibrated confidences
- Confidence/policy gate for plans
- Deterministic compilation of intents into timeline operations
- Trust-tier classification and undo-tracked application to a blob
"""

from __future__ import annotations

from cutplan.assist.pipeline import PipelineResult, run_edit_pipeline
from cutplan.assist.planner import EditIntent, PlannerResult, plan_edit_intents
from cutplan.assist.safety import SafetyMode, resolve_safety_mode

__all__ = [
    "EditIntent",
    "PipelineResult",
    "PlannerResult",
    "SafetyMode",
    "plan_edit_intents",
    "resolve_safety_mode",
    "run_edit_pipeline",
]
