import asyncio
import logging

from siteflow.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


def _run_async(coro):
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@celery_app.task(name="siteflow.workers.scan_worker.process_scan", bind=True, max_retries=0)
def process_scan(self, scan_id: str, options: dict):
    """Run the full scan pipeline for a report directory created by the API."""
    from siteflow.schemas.scan import ScanOptions
    from siteflow.services.pipeline import run_pipeline
    from siteflow.services.reports import scan_dir

    request = ScanOptions(**options)
    report_dir = scan_dir(scan_id)
    logger.info(f"Scan {scan_id} started for {request.target_url}")

    status = _run_async(run_pipeline(request, report_dir))

    logger.info(f"Scan {scan_id} finished: {status.status}")
    return status.to_artifact()
