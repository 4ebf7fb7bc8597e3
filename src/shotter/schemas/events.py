"""Progress events and the session manifest written next to the screenshots."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

EventStatus = Literal["running", "complete", "error", "timeout"]


class ProgressEvent(BaseModel):
    """One progress update for a session, as sent on the progress stream."""

    model_config = ConfigDict(populate_by_name=True)

    completed_tasks: int = Field(alias="completedTasks")
    total_tasks: int = Field(alias="totalTasks")
    session_id: str = Field(alias="sessionId")
    failed_tasks: int = Field(0, alias="failedTasks")
    status: EventStatus = "running"
    download_link: str | None = Field(None, alias="downloadLink")
    error: str | None = None

    @property
    def terminal(self) -> bool:
        return self.status != "running"

    def to_wire(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


class PageTitle(BaseModel):
    """Title discovered for a URL during its first size variant."""

    title: str
    url: str


class Manifest(BaseModel):
    """Contents of ``test-list.json``."""

    model_config = ConfigDict(populate_by_name=True)

    screen_sizes: list[str] = Field(alias="screenSizes")
    datas: list[PageTitle] = []
