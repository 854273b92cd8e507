from typing import Literal
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator

from siteflow.schemas.common import ArtifactModel, iso_now


class ScanOptions(BaseModel):
    target_url: str
    max_depth: int = Field(3, ge=1, le=10)
    respect_robots: bool = True
    authenticated: bool = False
    max_pages: int = Field(50, ge=1, le=200)

    model_config = {"frozen": True}

    @field_validator("target_url")
    @classmethod
    def _absolute_http_url(cls, v: str) -> str:
        v = v.strip()
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("target_url must be an absolute http(s) URL")
        return v


class ReportMeta(ArtifactModel):
    """Contents of meta.json, written when a scan starts."""

    target_url: str
    report_dir: str
    started_at: str = Field(default_factory=iso_now)
    options: dict = {}


ScanState = Literal["pending", "running", "completed", "failed"]


class ScanStatus(ArtifactModel):
    """Contents of status.json, updated at every pipeline stage."""

    scan_id: str
    status: ScanState = "pending"
    stage: str | None = None
    target_url: str | None = None
    error: str | None = None
    discovery_error: str | None = None
    updated_at: str = Field(default_factory=iso_now)


class ScanStartResponse(BaseModel):
    success: bool
    scan_id: str
    status: str = "started"
    message: str = "Scan started"


class ScanStatusResponse(BaseModel):
    success: bool
    scan_id: str
    status: str
    stage: str | None = None
    target_url: str | None = None
    error: str | None = None
    discovery_error: str | None = None
    updated_at: str | None = None
