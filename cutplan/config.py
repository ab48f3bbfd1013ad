"""
cutplan.config - YAML config loading, profile merging, validation.

Holds the tunable thresholds of the edit pipeline, ripple safety and undo
ledger. Values come from built-in profiles, optionally overridden by a
cutplan.yaml file.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from cutplan.exceptions import ConfigError

MIN_CONFIDENCE = 0.68
MAX_OPS = 8
DEFAULT_RIPPLE_MIN_CONFIDENCE = 0.86

CONFIG_FILENAME = "cutplan.yaml"


class EngineConfig(BaseModel):
    """Resolved thresholds for the timeline engine and edit pipeline."""

    profile: str = "standard"

    min_confidence: float = Field(default=MIN_CONFIDENCE, ge=0.0, le=1.0)
    max_ops: int = Field(default=MAX_OPS, gt=0)

    confirm_threshold: float = Field(default=0.65, ge=0.0, le=1.0)
    auto_apply_threshold: float = Field(default=0.85, ge=0.0, le=1.0)

    ripple_min_confidence: float = Field(default=DEFAULT_RIPPLE_MIN_CONFIDENCE, ge=0.55, le=0.99)

    undo_stack_limit: int = Field(default=12, gt=0)
    revision_history_limit: int = Field(default=50, gt=0)

    @field_validator("profile")
    @classmethod
    def validate_profile(cls, v: str) -> str:
        if v not in BUILTIN_PROFILES:
            raise ValueError(f"profile must be one of: {set(BUILTIN_PROFILES)}")
        return v

    @model_validator(mode="after")
    def validate_thresholds(self) -> EngineConfig:
        if self.confirm_threshold > self.auto_apply_threshold:
            raise ValueError("confirm_threshold must not exceed auto_apply_threshold")
        return self


BUILTIN_PROFILES: dict[str, dict[str, Any]] = {
    "standard": {
        "min_confidence": MIN_CONFIDENCE,
        "max_ops": MAX_OPS,
        "ripple_min_confidence": DEFAULT_RIPPLE_MIN_CONFIDENCE,
        "confirm_threshold": 0.65,
        "auto_apply_threshold": 0.85,
    },
    "strict": {
        "min_confidence": 0.75,
        "max_ops": 4,
        "ripple_min_confidence": 0.92,
        "confirm_threshold": 0.75,
        "auto_apply_threshold": 0.9,
    },
    "lenient": {
        "min_confidence": 0.6,
        "max_ops": 12,
        "ripple_min_confidence": 0.8,
        "confirm_threshold": 0.6,
        "auto_apply_threshold": 0.8,
    },
}


def load_profile(name: str, profiles_dir: Path | None = None) -> dict[str, Any]:
    """Load a profile by name, checking custom profiles first."""
    if profiles_dir and profiles_dir.exists():
        profile_file = profiles_dir / f"{name}.yaml"
        if profile_file.exists():
            with open(profile_file) as f:
                return yaml.safe_load(f) or {}
    if name in BUILTIN_PROFILES:
        return BUILTIN_PROFILES[name].copy()
    raise ConfigError(f"Unknown profile: {name}")


def merge_config(project_config: dict[str, Any], profile: dict[str, Any]) -> dict[str, Any]:
    """Merge project config with profile defaults. Project config takes precedence."""
    merged = profile.copy()
    for key, value in project_config.items():
        if value is not None:
            merged[key] = value
    return merged


def load_config(config_dir: Path) -> EngineConfig:
    """Load and validate configuration from a directory holding cutplan.yaml.

    Raises:
        FileNotFoundError: If the directory has no cutplan.yaml
        ConfigError: If the profile is unknown or a value is out of range
    """
    config_file = config_dir / CONFIG_FILENAME
    if not config_file.exists():
        raise FileNotFoundError(f"No {CONFIG_FILENAME} found in {config_dir}")

    with open(config_file) as f:
        raw_config = yaml.safe_load(f) or {}

    profile_name = raw_config.get("profile", "standard")
    profiles_dir = config_dir / "profiles"
    profile = load_profile(profile_name, profiles_dir if profiles_dir.exists() else None)
    merged = merge_config(raw_config, profile)
    if profile_name not in BUILTIN_PROFILES:
        # custom profile files inherit the standard gate
        merged["profile"] = "standard"

    try:
        return EngineConfig(**merged)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_file}: {e}") from e


def create_default_config(profile: str = "standard") -> dict[str, Any]:
    """Create a default config dict for the given profile."""
    defaults: dict[str, Any] = {"profile": profile}
    if profile in BUILTIN_PROFILES:
        defaults = merge_config(defaults, BUILTIN_PROFILES[profile])
    return defaults


def write_config(config: dict[str, Any], path: Path) -> None:
    """Write configuration to a YAML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)
