"""
Test configuration and shared fixtures.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from cutplan.timeline.document import serialize_timeline_state
from cutplan.timeline.engine import compute_timeline_hash
from cutplan.timeline.enums import TrackKind
from cutplan.timeline.models import Clip, Revision, TimelineState, Track
from cutplan.transcript.models import TranscriptSegment, TranscriptWord


def seal(state: TimelineState) -> TimelineState:
    """Give a hand-built state its first revision marker."""
    state.revisions = [
        Revision(
            id="rev-1",
            revision=state.version,
            timeline_hash=compute_timeline_hash(state),
            created_at="2026-01-01T00:00:00.000+00:00",
        )
    ]
    return state


@pytest.fixture
def single_clip_state() -> TimelineState:
    """One 3000ms clip on one video track."""
    return seal(
        TimelineState(
            tracks=[
                Track(
                    id="v1",
                    kind=TrackKind.VIDEO,
                    name="Video Track 1",
                    order=0,
                    clips=[
                        Clip(
                            id="c1",
                            label="Take 1",
                            timeline_in_ms=0,
                            timeline_out_ms=3000,
                            source_in_ms=0,
                            source_out_ms=3000,
                        )
                    ],
                )
            ]
        )
    )


@pytest.fixture
def timeline_state() -> TimelineState:
    """Video, audio and caption tracks, one clip each."""
    return seal(
        TimelineState(
            tracks=[
                Track(
                    id="v1",
                    kind=TrackKind.VIDEO,
                    name="Video Track 1",
                    order=0,
                    clips=[
                        Clip(
                            id="c1",
                            asset_id="asset-1",
                            slot_key="hook",
                            label="Hook",
                            timeline_in_ms=0,
                            timeline_out_ms=3000,
                            source_in_ms=0,
                            source_out_ms=3000,
                        )
                    ],
                ),
                Track(
                    id="a1",
                    kind=TrackKind.AUDIO,
                    name="Audio Track 1",
                    order=1,
                    clips=[
                        Clip(
                            id="m1",
                            asset_id="asset-2",
                            label="Music",
                            timeline_in_ms=0,
                            timeline_out_ms=5000,
                            source_in_ms=0,
                            source_out_ms=5000,
                        )
                    ],
                ),
                Track(
                    id="cap1",
                    kind=TrackKind.CAPTION,
                    name="Captions",
                    order=2,
                    clips=[
                        Clip(id="cc1", label="Hello there", timeline_in_ms=240, timeline_out_ms=1640)
                    ],
                ),
            ]
        )
    )


@pytest.fixture
def timeline_blob(timeline_state: TimelineState) -> dict:
    """Persisted blob carrying the timeline plus an unrelated field."""
    return serialize_timeline_state({"projectName": "demo"}, timeline_state)


@pytest.fixture
def blob_file(tmp_path: Path, timeline_blob: dict) -> Path:
    path = tmp_path / "project.json"
    path.write_text(json.dumps(timeline_blob))
    return path


@pytest.fixture
def transcript_segments() -> list[TranscriptSegment]:
    """Three consecutive segments covering 0-3000ms."""
    return [
        TranscriptSegment(id="s1", text="Welcome back everyone", start_ms=0, end_ms=1000, confidence_avg=0.95),
        TranscriptSegment(id="s2", text="um so today", start_ms=1000, end_ms=2000, confidence_avg=0.92),
        TranscriptSegment(id="s3", text="we talk about editing", start_ms=2000, end_ms=3000, confidence_avg=0.9),
    ]


@pytest.fixture
def transcript_words() -> list[TranscriptWord]:
    """Words lining up with transcript_segments."""
    spans = [
        ("Welcome", 0, 300),
        ("back", 300, 600),
        ("everyone", 600, 1000),
        ("um", 1000, 1300),
        ("so", 1300, 1600),
        ("today", 1600, 2000),
        ("we", 2000, 2200),
        ("talk", 2200, 2500),
        ("about", 2500, 2700),
        ("editing", 2700, 3000),
    ]
    return [
        TranscriptWord(id=f"w{i}", text=text, start_ms=start, end_ms=end, confidence=0.9)
        for i, (text, start, end) in enumerate(spans)
    ]
