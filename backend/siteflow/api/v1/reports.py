from fastapi import APIRouter, Depends, Query

from siteflow.api.deps import require_token
from siteflow.schemas.report import ReportListResponse
from siteflow.services.publisher import load_index

router = APIRouter()


@router.get("", response_model=ReportListResponse, dependencies=[Depends(require_token)])
async def list_reports(limit: int = Query(50, ge=1, le=200)):
    """Published report history, newest first."""
    index = load_index()
    reports = index.reports[:limit]
    return ReportListResponse(success=True, total=len(index.reports), reports=reports)
