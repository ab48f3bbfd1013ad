"""
cutplan.transcript - Transcript patching with conservative timeline ripple.
"""

from __future__ import annotations

from cutplan.transcript.issues import TranscriptIssue, build_transcript_issues
from cutplan.transcript.models import TranscriptPatchIssue, TranscriptSegment, TranscriptWord
from cutplan.transcript.patch import (
    TranscriptPatchResult,
    apply_transcript_patch_operations,
    summarize_transcript_quality,
)
from cutplan.transcript.ranges import build_segment_word_ranges, resolve_range_selection
from cutplan.transcript.ripple import RippleEvaluation, evaluate_conservative_delete_ripple

__all__ = [
    "RippleEvaluation",
    "TranscriptIssue",
    "TranscriptPatchIssue",
    "TranscriptPatchResult",
    "TranscriptSegment",
    "TranscriptWord",
    "apply_transcript_patch_operations",
    "build_segment_word_ranges",
    "build_transcript_issues",
    "evaluate_conservative_delete_ripple",
    "resolve_range_selection",
    "summarize_transcript_quality",
]
