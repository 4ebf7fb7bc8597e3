"""YAML config loader: reads shotter.yml into ServiceConfig."""

import os
from pathlib import Path

import yaml

from shotter.schemas.config import ServiceConfig

CONFIG_ENV_VAR = "SHOTTER_CONFIG"


def load_config(path: str | Path | None = None) -> ServiceConfig:
    """Load and validate a service config file.

    With no path, falls back to ``$SHOTTER_CONFIG`` and then to the built-in
    defaults.  Raises ``FileNotFoundError`` if the path doesn't exist and
    ``pydantic.ValidationError`` if the YAML content is invalid.
    """
    if path is None:
        path = os.environ.get(CONFIG_ENV_VAR) or None
    if path is None:
        return ServiceConfig()

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    raw = yaml.safe_load(path.read_text())
    # An empty file (or one with only comments) loads as None.
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config file must be a YAML mapping, got {type(raw).__name__}")

    # Commented-out landmark lists load as None; fall back to the defaults.
    capture = raw.get("capture")
    if isinstance(capture, dict) and capture.get("landmarks", []) is None:
        capture.pop("landmarks")

    return ServiceConfig(**raw)
