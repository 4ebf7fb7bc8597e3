"""Session manifest (``test-list.json``) writer."""

from __future__ import annotations

import json
from pathlib import Path

from shotter.schemas.events import Manifest

MANIFEST_NAME = "test-list.json"


def render_manifest(manifest: Manifest) -> str:
    return json.dumps(manifest.model_dump(by_alias=True), indent=2, ensure_ascii=False)


def write_manifest(manifest: Manifest, out_dir: str | Path) -> Path:
    """Write the manifest into ``out_dir`` and return its path."""
    path = Path(out_dir) / MANIFEST_NAME
    path.write_text(render_manifest(manifest), encoding="utf-8")
    return path


def read_manifest(out_dir: str | Path) -> Manifest:
    path = Path(out_dir) / MANIFEST_NAME
    return Manifest.model_validate_json(path.read_text(encoding="utf-8"))
