"""
cutplan.timeline.document - Hydrate and serialize the persisted document blob.

The blob is owned by an external persistence layer. One string field,
``timelineStateJson``, carries the canonical JSON of the timeline; every
other field passes through untouched.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError

from cutplan.exceptions import DocumentError
from cutplan.logging import logger
from cutplan.timeline.engine import compute_timeline_hash
from cutplan.timeline.enums import ExportPreset, TrackKind
from cutplan.timeline.models import (
    Clip,
    ProjectAsset,
    Resolution,
    Revision,
    TimelineState,
    Track,
)
from cutplan.utils import canonical_json, new_id, utc_now_iso

TIMELINE_STATE_KEY = "timelineStateJson"

DEFAULT_ASSET_DURATION_SEC = 5
MIN_SEED_CLIP_MS = 1000
SEED_STAGGER_MS = 500


def _decode_state(encoded: str) -> TimelineState:
    data = json.loads(encoded)
    if not isinstance(data, dict) or not isinstance(data.get("tracks"), list):
        raise ValueError("timeline payload has no track list")
    if not isinstance(data.get("revisions"), list):
        data["revisions"] = []
    if not isinstance(data.get("version"), int):
        data["version"] = 1
    return TimelineState.model_validate(data)


def has_timeline_state(blob: Any) -> bool:
    """True if the blob carries a timeline field at all, readable or not."""
    return isinstance(blob, dict) and blob.get(TIMELINE_STATE_KEY) is not None


def load_timeline_state(blob: Any) -> TimelineState:
    """Hydrate the timeline carried by a persisted blob.

    Raises:
        DocumentError: If the blob carries no timeline, or one that does
            not decode into a valid timeline
    """
    if not has_timeline_state(blob):
        raise DocumentError(f"Document has no {TIMELINE_STATE_KEY}")
    encoded = blob[TIMELINE_STATE_KEY]
    if not isinstance(encoded, str):
        raise DocumentError(f"{TIMELINE_STATE_KEY} must be a JSON string")
    try:
        return _decode_state(encoded)
    except (ValueError, ValidationError) as e:
        raise DocumentError(f"Unreadable {TIMELINE_STATE_KEY}: {e}") from e


def parse_timeline_state(blob: Any) -> TimelineState | None:
    """Lenient variant of load_timeline_state.

    Args:
        blob: Persisted document blob (any JSON-like value)

    Returns:
        TimelineState, or None if the blob carries no usable timeline
    """
    if not has_timeline_state(blob):
        return None
    try:
        return load_timeline_state(blob)
    except DocumentError as e:
        logger.warning("Ignoring %s", e)
        return None


def _seed_duration_ms(asset: ProjectAsset) -> int:
    seconds = asset.duration_sec if asset.duration_sec is not None else DEFAULT_ASSET_DURATION_SEC
    return max(MIN_SEED_CLIP_MS, int(seconds * 1000))


def make_initial_timeline(assets: Sequence[ProjectAsset | dict[str, Any]]) -> TimelineState:
    """Build the first timeline for a project from its media assets.

    Video assets are laid out on one video track with a small stagger;
    audio assets all start at zero on one audio track. Images are left for
    the user to place.
    """
    parsed = [ProjectAsset.model_validate(a) for a in assets]

    video_clips = []
    for idx, asset in enumerate(a for a in parsed if a.kind == "VIDEO"):
        duration = _seed_duration_ms(asset)
        offset = idx * SEED_STAGGER_MS
        video_clips.append(
            Clip(
                id=new_id(),
                asset_id=asset.id,
                slot_key=asset.slot_key,
                label=asset.slot_key,
                timeline_in_ms=offset,
                timeline_out_ms=offset + duration,
                source_in_ms=0,
                source_out_ms=duration,
            )
        )

    audio_clips = []
    for asset in (a for a in parsed if a.kind == "AUDIO"):
        duration = _seed_duration_ms(asset)
        audio_clips.append(
            Clip(
                id=new_id(),
                asset_id=asset.id,
                slot_key=asset.slot_key,
                label=asset.slot_key,
                timeline_in_ms=0,
                timeline_out_ms=duration,
                source_in_ms=0,
                source_out_ms=duration,
            )
        )

    state = TimelineState(
        version=1,
        fps=30,
        resolution=Resolution(width=1080, height=1920),
        export_preset=ExportPreset.TIKTOK_9X16,
        tracks=[
            Track(id=new_id(), kind=TrackKind.VIDEO, name="Video Track 1", order=0, clips=video_clips),
            Track(id=new_id(), kind=TrackKind.AUDIO, name="Audio Track 1", order=1, clips=audio_clips),
        ],
    )
    state.revisions.append(
        Revision(
            id=new_id(),
            revision=1,
            timeline_hash=compute_timeline_hash(state),
            created_at=utc_now_iso(),
        )
    )
    return state


def build_timeline_state(
    blob: Any, assets: Sequence[ProjectAsset | dict[str, Any]] = ()
) -> TimelineState:
    """Hydrate the timeline from a blob, seeding a new one from assets if absent.

    A timeline field that is present but unreadable is never replaced.

    Raises:
        DocumentError: If the blob carries an unreadable timeline
    """
    if has_timeline_state(blob):
        return load_timeline_state(blob)
    return make_initial_timeline(assets)


def timeline_state_json(state: TimelineState) -> str:
    """Canonical JSON string stored in the blob."""
    return canonical_json(state.to_wire())


def serialize_timeline_state(blob: dict[str, Any], state: TimelineState) -> dict[str, Any]:
    """Return a new blob carrying the state; other blob fields pass through."""
    return {**blob, TIMELINE_STATE_KEY: timeline_state_json(state)}
