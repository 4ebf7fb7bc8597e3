"""Job request and capture task models."""

from __future__ import annotations

from enum import Enum
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, model_validator


class BrowserType(str, Enum):
    """Browser engines Playwright can launch."""

    chromium = "chromium"
    firefox = "firefox"
    webkit = "webkit"

    @classmethod
    def names(cls) -> list[str]:
        return [member.value for member in cls]


class Credentials(BaseModel):
    """HTTP basic-auth credentials applied to the browser context."""

    model_config = ConfigDict(frozen=True)

    username: str
    password: str


class JobRequest(BaseModel):
    """One screenshot batch as posted by a client.

    ``widths`` and ``heights`` are index-aligned: each index is one size
    variant.  ``browser_type`` is kept as a plain string so that an unknown
    engine fails the individual capture tasks instead of the whole request.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    urls: list[str]
    header_height: int = Field(0, alias="headerHeight", ge=0)
    widths: list[int]
    heights: list[int]
    full_page: bool = Field(False, alias="fullPage")
    browser_type: str = Field(BrowserType.chromium.value, alias="browserType")
    username: str | None = None
    password: str | None = None
    session_id: str = Field(..., alias="sessionId", min_length=1)

    @model_validator(mode="after")
    def check_size_variants(self) -> "JobRequest":
        if not self.widths:
            raise ValueError("At least one width/height pair is required")
        if len(self.widths) != len(self.heights):
            raise ValueError(
                f"widths and heights must have the same length "
                f"({len(self.widths)} != {len(self.heights)})"
            )
        if any(w <= 0 for w in self.widths) or any(h <= 0 for h in self.heights):
            raise ValueError("widths and heights must be positive")
        return self

    @property
    def credentials(self) -> Credentials | None:
        if self.username and self.password:
            return Credentials(username=self.username, password=self.password)
        return None

    @property
    def size_variants(self) -> list[tuple[int, int]]:
        return list(zip(self.widths, self.heights))

    @property
    def size_labels(self) -> list[str]:
        return [f"{w}*{h}" for w, h in self.size_variants]


class CaptureTask(BaseModel):
    """A single (url, size variant) unit of work.  Never mutated after creation."""

    model_config = ConfigDict(frozen=True)

    url: str
    width: int
    height: int
    header_height: int = 0
    full_page: bool = False
    browser_type: str = BrowserType.chromium.value
    credentials: Credentials | None = None
    output_dir: str
    session_id: str
    is_first_size_variant: bool = False

    @property
    def host(self) -> str:
        return urlsplit(self.url).hostname or ""

    @property
    def label(self) -> str:
        return f"{self.url} @ {self.width}x{self.height}"


class TaskOutcome(BaseModel):
    """What one capture task produced.  Exactly one is reported per task."""

    task: CaptureTask
    ok: bool
    files: list[str] = []
    error: str = ""


class SessionResult(BaseModel):
    """Response body for a finished session."""

    model_config = ConfigDict(populate_by_name=True)

    download_links: list[str] = Field(alias="downloadLinks")
    output_dir: str = Field(alias="outputDir")
    archive_path: str = Field("", exclude=True)
