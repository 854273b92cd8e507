"""End-to-end scan: discovery -> page collection -> flow synthesis -> publish."""

import logging
from pathlib import Path

from siteflow.core.metrics import flow_syntheses_total, scan_jobs_total
from siteflow.schemas.flow import FlowArtifacts
from siteflow.schemas.page import PageContext, UxCounts
from siteflow.schemas.scan import ReportMeta, ScanOptions, ScanStatus
from siteflow.services.auth import resolve_auth
from siteflow.services.collector import PageContextCollector
from siteflow.services.flow import synthesize
from siteflow.services.orchestrator import CrawlOrchestrator
from siteflow.services.publisher import publish_report
from siteflow.services.render import write_flow_html
from siteflow.services.reports import (
    AUTH_COOKIES_FILE,
    DIAGRAM_FILE,
    FLOW_META_FILE,
    META_FILE,
    PAGES_FILE,
    SUMMARY_FILE,
    URLS_FILE,
    UX_FILE,
    ensure_dir,
    read_json,
    read_status,
    write_json,
    write_status,
    write_text,
)

logger = logging.getLogger(__name__)


def build_flow_files(report_dir: str | Path) -> FlowArtifacts:
    """Synthesize flow artifacts from the JSON files already in ``report_dir``.

    Missing or partial inputs are read as empty, so this always writes
    summary.md, flow.mmd and flow_meta.json.
    """
    report_dir = Path(report_dir)
    urls_data = read_json(report_dir / URLS_FILE, {}) or {}
    pages_data = read_json(report_dir / PAGES_FILE, {}) or {}
    ux_data = read_json(report_dir / UX_FILE, {}) or {}

    target_url = urls_data.get("targetUrl") or pages_data.get("targetUrl") or ""
    pages = [
        PageContext.model_validate(page)
        for page in pages_data.get("pages") or []
        if isinstance(page, dict) and isinstance(page.get("url"), str)
    ]
    ux_counts = UxCounts.model_validate(ux_data.get("counts") or {})

    artifacts = synthesize(target_url, pages, ux_counts)
    flow_syntheses_total.inc()

    write_text(report_dir / SUMMARY_FILE, artifacts.summary)
    write_text(report_dir / DIAGRAM_FILE, artifacts.diagram_source)
    write_json(report_dir / FLOW_META_FILE, artifacts.metadata.to_artifact())
    logger.info(
        f"Flow for {target_url or 'unknown target'}: "
        f"{artifacts.metadata.node_count} nodes, {artifacts.metadata.edge_count} edges"
    )
    return artifacts


async def run_pipeline(
    options: ScanOptions,
    report_dir: str | Path,
    *,
    publish: bool = True,
    orchestrator: CrawlOrchestrator | None = None,
    collector: PageContextCollector | None = None,
) -> ScanStatus:
    """Run every stage for one scan, recording progress in status.json.

    Discovery always yields a usable URL set. A failure in any later stage
    marks the scan failed and is re-raised.
    """
    report_dir = ensure_dir(report_dir)
    orchestrator = orchestrator or CrawlOrchestrator()
    collector = collector or PageContextCollector()

    status = read_status(report_dir) or ScanStatus(scan_id=report_dir.name, target_url=options.target_url)
    status = write_status(report_dir, status, status="running", stage="auth", target_url=options.target_url)

    meta = ReportMeta(
        target_url=options.target_url,
        report_dir=str(report_dir),
        options=options.model_dump(exclude={"target_url"}),
    )
    write_json(report_dir / META_FILE, meta.to_artifact())

    try:
        auth = await resolve_auth(options)
        if auth.cookies:
            write_json(
                report_dir / AUTH_COOKIES_FILE,
                {"cookies": [c.model_dump() for c in auth.cookies]},
            )

        status = write_status(report_dir, status, stage="discovery")
        discovered = await orchestrator.discover(options, auth)
        write_json(report_dir / URLS_FILE, discovered.to_artifact())
        if discovered.error:
            logger.warning(f"Discovery degraded ({discovered.error}); continuing with the target URL only")

        status = write_status(report_dir, status, stage="collection", discovery_error=discovered.error)
        pages, ux_report = await collector.collect(
            options.target_url,
            discovered.url_list,
            options.max_pages,
            report_dir,
            cookies=auth.cookies,
        )
        write_json(report_dir / PAGES_FILE, pages.to_artifact())
        write_json(report_dir / UX_FILE, ux_report.to_artifact())

        status = write_status(report_dir, status, stage="synthesis")
        build_flow_files(report_dir)

        status = write_status(report_dir, status, stage="render")
        write_flow_html(report_dir)

        if publish:
            status = write_status(report_dir, status, stage="publish")
            entry = publish_report(report_dir)
            logger.info(f"Report available at {entry.summary_path}")
    except Exception as e:
        logger.error(f"Scan {status.scan_id} failed at stage {status.stage}: {e}")
        write_status(report_dir, status, status="failed", error=str(e))
        scan_jobs_total.labels(status="failed").inc()
        raise

    scan_jobs_total.labels(status="completed").inc()
    return write_status(report_dir, status, status="completed", stage="done")
