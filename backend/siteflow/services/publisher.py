"""Publish finished reports into a browsable tree with a history index."""

import logging
import shutil
from pathlib import Path

from siteflow.config import settings
from siteflow.core.exceptions import ReportError
from siteflow.schemas.common import iso_now
from siteflow.schemas.report import ReportIndex, ReportIndexEntry
from siteflow.services.reports import (
    AUTH_COOKIES_FILE,
    FLOW_HTML_FILE,
    META_FILE,
    SUMMARY_FILE,
    ensure_dir,
    read_json,
    write_json,
)

logger = logging.getLogger(__name__)

INDEX_FILE = "index.json"
LATEST_DIR = "latest"

# Never leaves the report's working directory
_PRIVATE_FILES = (AUTH_COOKIES_FILE,)


def _copy_report(source: Path, destination: Path):
    if destination.exists():
        shutil.rmtree(destination)
    shutil.copytree(source, destination, ignore=shutil.ignore_patterns(*_PRIVATE_FILES))


def load_index(publish_dir: str | Path | None = None) -> ReportIndex:
    publish_dir = Path(publish_dir or settings.PUBLISH_DIR)
    data = read_json(publish_dir / INDEX_FILE, {"reports": []})
    if not isinstance(data, dict):
        return ReportIndex()
    return ReportIndex.model_validate(data)


def update_index(index: ReportIndex, entry: ReportIndexEntry, limit: int) -> ReportIndex:
    """Put ``entry`` first, dropping any older entry with the same timestamp."""
    others = [item for item in index.reports if item.timestamp != entry.timestamp]
    return ReportIndex(reports=[entry, *others][:limit])


def publish_report(
    report_dir: str | Path,
    publish_dir: str | Path | None = None,
    limit: int | None = None,
) -> ReportIndexEntry:
    """Copy ``report_dir`` to ``<publish>/<name>/`` and ``<publish>/latest/``.

    Auth cookies are never copied. The index keeps the newest ``limit``
    reports, newest first.
    """
    report_dir = Path(report_dir)
    if not report_dir.is_dir():
        raise ReportError(f"Report directory {report_dir} does not exist")

    publish_dir = ensure_dir(publish_dir or settings.PUBLISH_DIR)
    limit = limit or settings.REPORT_INDEX_LIMIT
    stamp = report_dir.name

    _copy_report(report_dir, publish_dir / stamp)
    _copy_report(report_dir, publish_dir / LATEST_DIR)

    meta = read_json(report_dir / META_FILE, {})
    if not isinstance(meta, dict):
        meta = {}
    prefix = f"./{publish_dir.name}/{stamp}"
    entry = ReportIndexEntry(
        timestamp=stamp,
        target_url=meta.get("targetUrl") or "",
        generated_at=meta.get("startedAt") or iso_now(),
        summary_path=f"{prefix}/{SUMMARY_FILE}",
        flow_path=f"{prefix}/{FLOW_HTML_FILE}",
    )

    index = update_index(load_index(publish_dir), entry, limit)
    write_json(publish_dir / INDEX_FILE, index.to_artifact())
    logger.info(f"Published report {stamp} to {publish_dir} ({len(index.reports)} in index)")
    return entry
