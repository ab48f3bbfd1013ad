"""Tests for cutplan.config module."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from cutplan.config import (
    BUILTIN_PROFILES,
    CONFIG_FILENAME,
    EngineConfig,
    create_default_config,
    load_config,
    load_profile,
    merge_config,
    write_config,
)
from cutplan.exceptions import ConfigError


class TestEngineConfig:
    def test_defaults(self) -> None:
        config = EngineConfig()
        assert config.profile == "standard"
        assert config.min_confidence == 0.68
        assert config.max_ops == 8
        assert config.ripple_min_confidence == 0.86
        assert (config.confirm_threshold, config.auto_apply_threshold) == (0.65, 0.85)
        assert config.undo_stack_limit == 12

    def test_unknown_profile_raises(self) -> None:
        with pytest.raises(ValueError):
            EngineConfig(profile="reckless")

    def test_thresholds_must_be_ordered(self) -> None:
        with pytest.raises(ValueError):
            EngineConfig(confirm_threshold=0.9, auto_apply_threshold=0.8)

    def test_ripple_confidence_range(self) -> None:
        with pytest.raises(ValueError):
            EngineConfig(ripple_min_confidence=0.3)
        with pytest.raises(ValueError):
            EngineConfig(ripple_min_confidence=1.0)


class TestProfiles:
    def test_builtin_profiles_validate(self) -> None:
        for name, values in BUILTIN_PROFILES.items():
            assert EngineConfig(profile=name, **values).profile == name

    def test_load_builtin_profile_is_a_copy(self) -> None:
        profile = load_profile("strict")
        profile["max_ops"] = 99
        assert BUILTIN_PROFILES["strict"]["max_ops"] == 4

    def test_unknown_profile(self) -> None:
        with pytest.raises(ConfigError, match="Unknown profile"):
            load_profile("nope")

    def test_custom_profile_file_wins(self, tmp_path: Path) -> None:
        (tmp_path / "strict.yaml").write_text("max_ops: 2\n")
        assert load_profile("strict", tmp_path) == {"max_ops": 2}

    def test_merge_skips_none(self) -> None:
        merged = merge_config({"max_ops": 3, "min_confidence": None}, {"max_ops": 8, "min_confidence": 0.7})
        assert merged == {"max_ops": 3, "min_confidence": 0.7}


class TestLoadConfig:
    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path)

    def test_profile_with_override(self, tmp_path: Path) -> None:
        write_config({"profile": "strict", "max_ops": 6}, tmp_path / CONFIG_FILENAME)
        config = load_config(tmp_path)
        assert config.profile == "strict"
        assert config.max_ops == 6
        assert config.min_confidence == 0.75
        assert config.ripple_min_confidence == 0.92

    def test_custom_profile_directory(self, tmp_path: Path) -> None:
        (tmp_path / "profiles").mkdir()
        (tmp_path / "profiles" / "studio.yaml").write_text("min_confidence: 0.8\n")
        write_config({"profile": "studio"}, tmp_path / CONFIG_FILENAME)
        config = load_config(tmp_path)
        assert config.min_confidence == 0.8
        assert config.profile == "standard"

    def test_invalid_value(self, tmp_path: Path) -> None:
        write_config({"profile": "standard", "max_ops": 0}, tmp_path / CONFIG_FILENAME)
        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_config(tmp_path)

    def test_empty_file_uses_standard(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILENAME).write_text("")
        assert load_config(tmp_path) == EngineConfig()


class TestDefaultConfig:
    def test_create_and_write(self, tmp_path: Path) -> None:
        defaults = create_default_config("lenient")
        path = tmp_path / "nested" / CONFIG_FILENAME
        write_config(defaults, path)
        loaded = yaml.safe_load(path.read_text())
        assert loaded["profile"] == "lenient"
        assert loaded["max_ops"] == 12
        assert list(loaded)[0] == "profile"
