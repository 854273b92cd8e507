"""Report directory bookkeeping: JSON files, timestamps and scan status."""

import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any

from siteflow.config import settings
from siteflow.schemas.common import iso_now
from siteflow.schemas.scan import ScanStatus

logger = logging.getLogger(__name__)

META_FILE = "meta.json"
STATUS_FILE = "status.json"
AUTH_COOKIES_FILE = "auth_cookies.json"
URLS_FILE = "urls.json"
PAGES_FILE = "pages.json"
UX_FILE = "ux_checks.json"
SUMMARY_FILE = "summary.md"
DIAGRAM_FILE = "flow.mmd"
FLOW_META_FILE = "flow_meta.json"
FLOW_HTML_FILE = "flow.html"
SCREENSHOTS_DIR = "screenshots"

_SCAN_ID_RE = re.compile(r"^[A-Za-z0-9._-]+$")


def timestamp(now: datetime | None = None) -> str:
    """Local time as ``YYYYMMDD-HHMMSS``; used as the report directory name."""
    return (now or datetime.now()).strftime("%Y%m%d-%H%M%S")


def ensure_dir(path: str | Path) -> Path:
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def read_json(path: str | Path, default: Any = None) -> Any:
    """Load JSON from ``path``, returning ``default`` if the file is missing or invalid."""
    path = Path(path)
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Could not read {path}: {e}")
        return default


def write_json(path: str | Path, data: Any):
    path = Path(path)
    ensure_dir(path.parent)
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")


def write_text(path: str | Path, content: str):
    path = Path(path)
    ensure_dir(path.parent)
    path.write_text(content, encoding="utf-8")


def is_valid_scan_id(scan_id: str) -> bool:
    return bool(_SCAN_ID_RE.match(scan_id)) and scan_id not in (".", "..")


def scan_dir(scan_id: str, reports_dir: str | Path | None = None) -> Path:
    return Path(reports_dir or settings.REPORTS_DIR) / scan_id


def new_scan_dir(reports_dir: str | Path | None = None) -> Path:
    """Create a fresh timestamped report directory, suffixing on collision."""
    base = Path(reports_dir or settings.REPORTS_DIR)
    stamp = timestamp()
    candidate = base / stamp
    suffix = 1
    while candidate.exists():
        suffix += 1
        candidate = base / f"{stamp}-{suffix}"
    return ensure_dir(candidate)


def read_status(report_dir: str | Path) -> ScanStatus | None:
    data = read_json(Path(report_dir) / STATUS_FILE)
    if not isinstance(data, dict):
        return None
    return ScanStatus.model_validate(data)


def write_status(report_dir: str | Path, status: ScanStatus, /, **changes) -> ScanStatus:
    """Persist ``status`` with ``changes`` applied and a fresh ``updated_at``."""
    updated = status.model_copy(update={**changes, "updated_at": iso_now()})
    write_json(Path(report_dir) / STATUS_FILE, updated.to_artifact())
    return updated
