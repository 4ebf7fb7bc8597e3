"""Tests for config loading and validation."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from shotter.config import CONFIG_ENV_VAR, load_config
from shotter.schemas.config import CaptureSettings, ServiceConfig


class TestServiceConfig:
    """Test the ServiceConfig Pydantic model directly."""

    def test_defaults(self) -> None:
        cfg = ServiceConfig()
        assert cfg.port == 3000
        assert cfg.base_path == "/api/screenshot-service"
        assert cfg.max_workers == 4
        assert cfg.host_cooldown == 2.0
        assert cfg.session_timeout == 300
        assert cfg.retention_seconds == 7 * 24 * 60 * 60
        assert cfg.capture == CaptureSettings()
        assert cfg.capture.navigation_timeout_ms == 29_000

    def test_archive_root_defaults_to_output_root(self) -> None:
        cfg = ServiceConfig(output_root="/tmp/shots")
        assert cfg.archive_root == "/tmp/shots"
        assert not cfg.separate_archive_root

    def test_separate_archive_root(self, tmp_path: Path) -> None:
        cfg = ServiceConfig(output_root=str(tmp_path / "a"), archive_root=str(tmp_path / "b"))
        assert cfg.separate_archive_root

    def test_base_path_normalized(self) -> None:
        assert ServiceConfig(base_path="shots/").base_path == "/shots"
        assert ServiceConfig(base_path="/").base_path == ""

    def test_workers_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            ServiceConfig(max_workers=0)

    def test_jpeg_quality_bounds(self) -> None:
        with pytest.raises(ValidationError):
            CaptureSettings(jpeg_quality=0)


class TestLoadConfig:
    """Test YAML file loading."""

    def test_load_valid_file(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "shotter.yml"
        cfg_file.write_text(
            f"""\
port: 8080
output_root: "{tmp_path / 'out'}"
max_workers: 2
capture:
  settle_ms: 500
"""
        )
        cfg = load_config(cfg_file)
        assert cfg.port == 8080
        assert cfg.max_workers == 2
        assert cfg.capture.settle_ms == 500
        assert cfg.capture.jpeg_quality == 80

    def test_file_not_found(self) -> None:
        with pytest.raises(FileNotFoundError):
            load_config("/nonexistent/shotter.yml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        bad = tmp_path / "bad.yml"
        bad.write_text("just a string")
        with pytest.raises(ValueError, match="YAML mapping"):
            load_config(bad)

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        empty = tmp_path / "empty.yml"
        empty.write_text("# nothing configured yet\n")
        assert load_config(empty) == ServiceConfig()

    def test_null_landmarks_use_defaults(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "shotter.yml"
        cfg_file.write_text("capture:\n  landmarks:\n  # - nav\n")
        cfg = load_config(cfg_file)
        assert cfg.capture.landmarks == ["nav", "main", "header", "footer"]

    def test_invalid_value(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "shotter.yml"
        cfg_file.write_text("session_timeout: -1\n")
        with pytest.raises(ValidationError):
            load_config(cfg_file)

    def test_env_var_fallback(self, tmp_path: Path, monkeypatch) -> None:
        cfg_file = tmp_path / "shotter.yml"
        cfg_file.write_text("port: 9999\n")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(cfg_file))
        assert load_config().port == 9999

    def test_no_path_no_env_gives_defaults(self, monkeypatch) -> None:
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        assert load_config() == ServiceConfig()
