from pydantic import BaseModel

from siteflow.schemas.common import ArtifactModel


class ReportIndexEntry(ArtifactModel):
    timestamp: str
    target_url: str = ""
    generated_at: str = ""
    summary_path: str = ""
    flow_path: str = ""


class ReportIndex(ArtifactModel):
    """Contents of the published index.json, newest report first."""

    reports: list[ReportIndexEntry] = []


class ReportListResponse(BaseModel):
    success: bool
    total: int
    reports: list[ReportIndexEntry]
