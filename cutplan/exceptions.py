"""
cutplan.exceptions - Custom exception classes.

All cutplan exceptions inherit from CutplanError. Only structural reference
failures are raised out of the core; every "not safe to apply" outcome is
returned as a structured result instead.
"""

from __future__ import annotations


class CutplanError(Exception):
    """Base exception for all cutplan errors."""

    pass


class ConfigError(CutplanError):
    """Configuration loading or validation error."""

    pass


class DocumentError(CutplanError):
    """Persisted document blob is missing or cannot be parsed."""

    pass


class StructuralReferenceError(CutplanError):
    """An operation referenced a track, clip or effect that does not resolve.

    Aborts the whole operation batch.
    """

    def __init__(self, kind: str, ref_id: str | None, message: str):
        self.kind = kind
        self.ref_id = ref_id
        self.message = message
        super().__init__(message)

    @classmethod
    def track_not_found(cls, track_id: str) -> StructuralReferenceError:
        return cls("track", track_id, f"Track not found: {track_id}")

    @classmethod
    def clip_not_found(cls, clip_id: str) -> StructuralReferenceError:
        return cls("clip", clip_id, f"Clip not found: {clip_id}")

    @classmethod
    def effect_not_found(cls, effect_id: str) -> StructuralReferenceError:
        return cls("effect", effect_id, f"Effect not found: {effect_id}")
