"""
cutplan.timeline.enums - Closed vocabularies shared by the timeline model.
"""

from __future__ import annotations

from enum import Enum


class TrackKind(str, Enum):
    """Type of track content."""

    VIDEO = "VIDEO"
    AUDIO = "AUDIO"
    CAPTION = "CAPTION"


class ExportPreset(str, Enum):
    """Output presets; every preset except CUSTOM pins a 1080x1920 frame."""

    TIKTOK_9X16 = "tiktok_9x16"
    REELS_9X16 = "reels_9x16"
    YOUTUBE_SHORTS_9X16 = "youtube_shorts_9x16"
    CUSTOM = "custom"


class TransitionType(str, Enum):
    CUT = "cut"
    CROSSFADE = "crossfade"
    SLIDE = "slide"
