"""Session directory layout and zip archiving of finished sessions."""

from __future__ import annotations

import logging
import time
import zipfile
from dataclasses import dataclass
from pathlib import Path

from shotter.errors import ArchiveError
from shotter.output.manifest import write_manifest
from shotter.schemas.config import ServiceConfig
from shotter.schemas.events import Manifest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionLayout:
    """Where one session's files live on disk and under the public URL space."""

    dirname: str
    output_dir: Path
    archive_path: Path
    public_output_dir: str
    download_link: str

    @classmethod
    def for_session(
        cls,
        config: ServiceConfig,
        session_id: str,
        timestamp_ms: int | None = None,
    ) -> "SessionLayout":
        if timestamp_ms is None:
            timestamp_ms = int(time.time() * 1000)
        dirname = f"screenshots_{session_id}_{timestamp_ms}"
        zip_mount = "zipped_output" if config.separate_archive_root else "output"
        return cls(
            dirname=dirname,
            output_dir=config.output_path / dirname,
            archive_path=config.archive_path / f"{dirname}.zip",
            public_output_dir=f"{config.base_path}/output/{dirname}",
            download_link=f"{config.base_path}/{zip_mount}/{dirname}.zip",
        )

    def create(self) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.archive_path.parent.mkdir(parents=True, exist_ok=True)


def compress_directory(src_dir: str | Path, zip_path: str | Path) -> list[str]:
    """Zip every regular file directly inside ``src_dir``.

    Returns the archived file names.  A partially written archive is removed
    on failure.
    """
    src_dir = Path(src_dir)
    zip_path = Path(zip_path)
    names = sorted(p.name for p in src_dir.iterdir() if p.is_file())
    try:
        with zipfile.ZipFile(zip_path, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as zf:
            for name in names:
                zf.write(src_dir / name, arcname=name)
    except BaseException:
        zip_path.unlink(missing_ok=True)
        raise
    return names


def archive_session(manifest: Manifest, layout: SessionLayout) -> Path:
    """Write the manifest and zip the session directory.  One attempt only.

    Blocking; the orchestrator runs it in a worker thread.
    """
    try:
        write_manifest(manifest, layout.output_dir)
        names = compress_directory(layout.output_dir, layout.archive_path)
    except (OSError, zipfile.BadZipFile) as exc:
        raise ArchiveError(f"Archiving {layout.dirname} failed: {exc}") from exc
    logger.info("Archived %d file(s) to %s", len(names), layout.archive_path)
    return layout.archive_path
