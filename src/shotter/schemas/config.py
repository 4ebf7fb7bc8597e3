"""Configuration schema: validates shotter.yml."""

from pathlib import Path

from pydantic import BaseModel, Field, model_validator


class CaptureSettings(BaseModel):
    """Wait ceilings and image settings used by every capture task.

    All timeouts are in milliseconds, matching Playwright's own units.
    """

    navigation_timeout_ms: int = 29_000
    settle_ms: int = 2_000
    ready_timeout_ms: int = 10_000
    landmark_timeout_ms: int = 10_000
    full_page_timeout_ms: int = 60_000
    segment_timeout_ms: int = 30_000
    jpeg_quality: int = Field(80, ge=1, le=100)

    # Structural elements waited for before capturing
    landmarks: list[str] = ["nav", "main", "header", "footer"]


class ServiceConfig(BaseModel):
    """Top-level service configuration.

    Every field has a default, so an empty YAML mapping is a valid config.
    ``archive_root`` falls back to ``output_root`` when left empty.
    """

    # HTTP
    host: str = "0.0.0.0"
    port: int = 3000
    base_path: str = "/api/screenshot-service"

    # Filesystem
    output_root: str = "./output"
    archive_root: str = ""

    # Scheduling
    max_workers: int = Field(4, ge=1)
    host_cooldown: float = Field(2.0, ge=0)
    session_timeout: float = Field(300.0, gt=0)  # seconds

    # Retention
    retention_days: float = Field(7, gt=0)
    sweep_interval: float = Field(24 * 60 * 60, gt=0)  # seconds

    capture: CaptureSettings = CaptureSettings()

    @model_validator(mode="after")
    def normalize_paths(self) -> "ServiceConfig":
        if not self.archive_root:
            self.archive_root = self.output_root
        self.base_path = "/" + self.base_path.strip("/") if self.base_path.strip("/") else ""
        return self

    @property
    def output_path(self) -> Path:
        return Path(self.output_root)

    @property
    def archive_path(self) -> Path:
        return Path(self.archive_root)

    @property
    def separate_archive_root(self) -> bool:
        """True when zip archives live outside the screenshot output root."""
        return self.archive_path.resolve() != self.output_path.resolve()

    @property
    def retention_seconds(self) -> float:
        return self.retention_days * 24 * 60 * 60
