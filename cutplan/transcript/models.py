"""
cutplan.transcript.models - Transcript data consumed by the ripple engine.

Segments and words come from an external speech-to-text collaborator and
are treated as plain data. Confidence is optional: a missing score means
the timing of that span is unverified.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from cutplan.timeline.models import WireModel
from cutplan.utils import new_id


class Severity(str, Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


class TranscriptWord(WireModel):
    id: str | None = None
    text: str
    start_ms: int
    end_ms: int
    speaker_label: str | None = None
    confidence: float | None = None
    segment_id: str | None = None


class TranscriptSegment(WireModel):
    id: str = Field(default_factory=new_id)
    text: str
    start_ms: int
    end_ms: int
    speaker_label: str | None = None
    confidence_avg: float | None = None

    def overlaps(self, start_ms: int, end_ms: int) -> bool:
        return self.start_ms < end_ms and self.end_ms > start_ms


class TranscriptPatchIssue(BaseModel):
    code: str
    message: str
    severity: Severity


class ReplaceText(WireModel):
    op: Literal["replace_text"] = "replace_text"
    segment_id: str
    text: str = Field(min_length=1, max_length=400)


class SplitSegment(WireModel):
    op: Literal["split_segment"] = "split_segment"
    segment_id: str
    split_ms: int = Field(ge=0)


class MergeSegments(WireModel):
    op: Literal["merge_segments"] = "merge_segments"
    first_segment_id: str
    second_segment_id: str


class DeleteRange(WireModel):
    op: Literal["delete_range"] = "delete_range"
    start_ms: int = Field(ge=0)
    end_ms: int = Field(ge=1)


class SetSpeaker(WireModel):
    op: Literal["set_speaker"] = "set_speaker"
    segment_id: str
    speaker_label: str | None = Field(default=None, max_length=80)


class NormalizePunctuation(WireModel):
    op: Literal["normalize_punctuation"] = "normalize_punctuation"
    segment_ids: list[str] | None = None


TranscriptPatchOperation = Annotated[
    Union[ReplaceText, SplitSegment, MergeSegments, DeleteRange, SetSpeaker, NormalizePunctuation],
    Field(discriminator="op"),
]

_patch_adapter: TypeAdapter[list[TranscriptPatchOperation]] = TypeAdapter(list[TranscriptPatchOperation])


def parse_patch_operations(raw: list[dict[str, Any]] | list[TranscriptPatchOperation]) -> list[TranscriptPatchOperation]:
    """Parse transcript patch payloads.

    Raises:
        pydantic.ValidationError: On unknown ``op`` tags or invalid fields
    """
    return _patch_adapter.validate_python(raw)
