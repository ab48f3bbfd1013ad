"""
cutplan.assist.planner - Keyword intent planner.

Classifies a free-text edit request into weighted semantic intents by
scanning an ordered list of phrase rules. Every matching rule contributes
one intent; a prompt that matches nothing yields a single low-confidence
``generic`` intent so the plan validator can refuse it.
"""

from __future__ import annotations

from typing import Literal, NamedTuple, Union

from pydantic import BaseModel, Field

from cutplan.config import MIN_CONFIDENCE

IntentOp = Literal["split", "trim", "reorder", "caption_style", "zoom", "audio_duck", "generic"]

GENERIC_CONFIDENCE = 0.55
MAX_SUGGESTIONS = 3


class IntentRule(NamedTuple):
    op: IntentOp
    target: str
    phrases: tuple[str, ...]
    confidence: float


# Order matters: intents are emitted in rule order.
INTENT_RULES: tuple[IntentRule, ...] = (
    IntentRule("split", "timeline", ("split", "cut", "chop"), 0.79),
    IntentRule("trim", "timeline", ("trim", "shorten", "remove pause", "tighten"), 0.80),
    IntentRule("caption_style", "captions", ("caption", "subtitles", "subtitle"), 0.81),
    IntentRule("zoom", "video-track", ("zoom", "punch in", "close up"), 0.74),
    IntentRule("reorder", "clips", ("reorder", "move", "swap"), 0.72),
    IntentRule("audio_duck", "audio-track", ("music lower", "duck", "voice clearer", "reduce music"), 0.76),
)


class EditIntent(BaseModel):
    op: str
    target: str | None = None
    value: Union[str, float, bool, None] = None
    confidence: float


class ConstrainedSuggestion(BaseModel):
    id: str
    title: str
    prompt: str
    reason: str


class PlannerResult(BaseModel):
    intents: list[EditIntent] = Field(default_factory=list)
    average_confidence: float
    low_confidence: bool
    constrained_suggestions: list[ConstrainedSuggestion] = Field(default_factory=list)


def classify_prompt(prompt: str) -> list[tuple[str, float]]:
    """Pure classifier: prompt text -> [(label, confidence)] in rule order."""
    normalized = prompt.lower()
    return [
        (rule.op, rule.confidence)
        for rule in INTENT_RULES
        if any(phrase in normalized for phrase in rule.phrases)
    ]


def build_intents(prompt: str) -> list[EditIntent]:
    """Turn a prompt into semantic intents, falling back to one generic intent."""
    targets = {rule.op: rule.target for rule in INTENT_RULES}
    intents = [
        EditIntent(op=label, target=targets[label], confidence=confidence)
        for label, confidence in classify_prompt(prompt)
    ]
    if not intents:
        intents.append(
            EditIntent(op="generic", target="timeline", value="manual-review", confidence=GENERIC_CONFIDENCE)
        )
    return intents


def build_constrained_suggestions(prompt: str, intents: list[EditIntent]) -> list[ConstrainedSuggestion]:
    """Deterministic, low-risk follow-up prompts shown when a plan is not applied."""
    lowered = prompt.lower()
    ops = {intent.op for intent in intents}
    suggestions: list[ConstrainedSuggestion] = []

    if ops & {"split", "trim"}:
        suggestions.append(
            ConstrainedSuggestion(
                id="timing-tighten",
                title="Tighten timing",
                prompt="Split the intro and trim 120ms from both ends of the first clip",
                reason="Keeps pacing edits deterministic",
            )
        )

    if "caption_style" in ops or "caption" in lowered:
        suggestions.append(
            ConstrainedSuggestion(
                id="caption-style-bold",
                title="Apply bold captions",
                prompt="Apply a bold caption style to the first caption clip",
                reason="Caption style updates are low-risk and reversible",
            )
        )

    if "audio_duck" in ops or "audio" in lowered or "music" in lowered:
        suggestions.append(
            ConstrainedSuggestion(
                id="audio-duck",
                title="Reduce background audio",
                prompt="Lower non-primary audio track volume to 0.62",
                reason="Improves vocal clarity without destructive edits",
            )
        )

    if not suggestions:
        suggestions.extend(
            [
                ConstrainedSuggestion(
                    id="safe-split",
                    title="Split intro",
                    prompt="Split the first clip at the midpoint",
                    reason="Deterministic timeline operation",
                ),
                ConstrainedSuggestion(
                    id="safe-trim",
                    title="Trim dead air",
                    prompt="Trim 120ms from start and end of the first clip",
                    reason="Constrained and reversible",
                ),
                ConstrainedSuggestion(
                    id="safe-caption",
                    title="Style captions",
                    prompt="Apply bold caption style with subtle background opacity",
                    reason="Visual-only change with minimal risk",
                ),
            ]
        )

    return suggestions[:MAX_SUGGESTIONS]


def plan_edit_intents(prompt: str, confidence_floor: float = MIN_CONFIDENCE) -> PlannerResult:
    """Plan semantic intents for a prompt.

    Args:
        prompt: Free-text edit request
        confidence_floor: Average confidence below which the plan is low-confidence

    Returns:
        PlannerResult with intents, aggregate confidence and suggestions
    """
    intents = build_intents(prompt)
    average = sum(intent.confidence for intent in intents) / len(intents)
    low_confidence = average < confidence_floor or any(intent.op == "generic" for intent in intents)
    return PlannerResult(
        intents=intents,
        average_confidence=average,
        low_confidence=low_confidence,
        constrained_suggestions=build_constrained_suggestions(prompt, intents),
    )
