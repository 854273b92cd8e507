import logging

from fastapi import APIRouter, Depends

from siteflow.api.deps import require_token
from siteflow.core.exceptions import BadRequestError, NotFoundError
from siteflow.schemas.scan import ScanOptions, ScanStartResponse, ScanStatus, ScanStatusResponse
from siteflow.services.reports import is_valid_scan_id, new_scan_dir, read_status, scan_dir, write_status
from siteflow.workers.scan_worker import process_scan

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("", response_model=ScanStartResponse, dependencies=[Depends(require_token)])
async def start_scan(request: ScanOptions):
    """Create a report directory and queue the scan pipeline."""
    report_dir = new_scan_dir()
    scan_id = report_dir.name

    write_status(report_dir, ScanStatus(scan_id=scan_id, target_url=request.target_url))

    process_scan.delay(scan_id, request.model_dump())
    logger.info(f"Queued scan {scan_id} for {request.target_url}")

    return ScanStartResponse(
        success=True,
        scan_id=scan_id,
        status="started",
        message=f"Scan started for {request.target_url}",
    )


@router.get("/{scan_id}", response_model=ScanStatusResponse, dependencies=[Depends(require_token)])
async def get_scan_status(scan_id: str):
    """Get the current stage and outcome of a scan."""
    if not is_valid_scan_id(scan_id):
        raise BadRequestError("Invalid scan id")

    status = read_status(scan_dir(scan_id))
    if not status:
        raise NotFoundError("Scan not found")

    return ScanStatusResponse(success=True, **status.model_dump())
