"""
cutplan.transcript.issues - Quality issues for transcript review.

Flags three kinds of problems, sorted by start time:
- LOW_CONFIDENCE: segment average confidence below the threshold
- OVERLAP: segment starts before the previous one ends
- TIMING_DRIFT: segment has no mapped words, or its first/last word
  starts/ends more than DRIFT_TOLERANCE_MS away from the segment bounds
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum

from pydantic import BaseModel

from cutplan.transcript.models import Severity, TranscriptSegment, TranscriptWord
from cutplan.transcript.ranges import build_segment_word_ranges

DRIFT_TOLERANCE_MS = 250


class IssueType(str, Enum):
    LOW_CONFIDENCE = "LOW_CONFIDENCE"
    OVERLAP = "OVERLAP"
    TIMING_DRIFT = "TIMING_DRIFT"


class TranscriptIssue(BaseModel):
    id: str
    type: IssueType
    severity: Severity
    segment_id: str
    start_ms: int
    end_ms: int
    message: str
    confidence_avg: float | None = None
    speaker_label: str | None = None


def _issue(
    issue_id: str, issue_type: IssueType, severity: Severity, segment: TranscriptSegment, message: str
) -> TranscriptIssue:
    return TranscriptIssue(
        id=issue_id,
        type=issue_type,
        severity=severity,
        segment_id=segment.id,
        start_ms=segment.start_ms,
        end_ms=segment.end_ms,
        message=message,
        confidence_avg=segment.confidence_avg,
        speaker_label=segment.speaker_label,
    )


def build_transcript_issues(
    segments: Sequence[TranscriptSegment],
    words: Sequence[TranscriptWord],
    min_confidence: float,
) -> list[TranscriptIssue]:
    """Collect review issues for a transcript.

    Args:
        segments: Transcript segments, any order
        words: Transcript words, any order
        min_confidence: Threshold for LOW_CONFIDENCE

    Returns:
        Issues sorted by start time
    """
    ordered = sorted(segments, key=lambda s: s.start_ms)
    issues: list[TranscriptIssue] = []

    for previous, segment in zip([None, *ordered], ordered):
        confidence = segment.confidence_avg
        if confidence is not None and confidence < min_confidence:
            issues.append(
                _issue(
                    f"low_confidence:{segment.id}",
                    IssueType.LOW_CONFIDENCE,
                    Severity.WARN,
                    segment,
                    f"Average confidence {confidence:.2f} is below threshold {min_confidence:.2f}.",
                )
            )

        if previous is not None and segment.start_ms < previous.end_ms:
            issues.append(
                _issue(
                    f"overlap:{previous.id}:{segment.id}",
                    IssueType.OVERLAP,
                    Severity.ERROR,
                    segment,
                    f"Segment overlaps previous segment by {previous.end_ms - segment.start_ms}ms.",
                )
            )

    ordered_words = sorted(words, key=lambda w: w.start_ms)
    by_id = {segment.id: segment for segment in ordered}
    for word_range in build_segment_word_ranges(ordered, ordered_words):
        segment = by_id[word_range.segment_id]
        if word_range.unmapped:
            issues.append(
                _issue(
                    f"timing_drift:no_words:{segment.id}",
                    IssueType.TIMING_DRIFT,
                    Severity.WARN,
                    segment,
                    "Segment has no mapped transcript words.",
                )
            )
            continue

        lead_drift = abs(ordered_words[word_range.start_word_index].start_ms - segment.start_ms)
        tail_drift = abs(ordered_words[word_range.end_word_index].end_ms - segment.end_ms)
        if lead_drift > DRIFT_TOLERANCE_MS or tail_drift > DRIFT_TOLERANCE_MS:
            issues.append(
                _issue(
                    f"timing_drift:bounds:{segment.id}",
                    IssueType.TIMING_DRIFT,
                    Severity.WARN,
                    segment,
                    f"Segment timing drift detected (lead {lead_drift}ms, tail {tail_drift}ms).",
                )
            )

    return sorted(issues, key=lambda i: i.start_ms)
