"""Tests for the end-to-end scan pipeline with discovery and collection faked."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from siteflow.schemas.auth import AuthCookie, AuthOutcome
from siteflow.schemas.discovery import DiscoveredUrl, DiscoveredUrlSet, UrlCounts
from siteflow.schemas.page import PageCollection, PageContext, UxCounts, UxReport
from siteflow.schemas.scan import ScanOptions
from siteflow.services.pipeline import build_flow_files, run_pipeline

TARGET = "https://x.com/"


def _load(path):
    return json.loads(path.read_text())


@pytest.fixture
def orchestrator():
    discovered = DiscoveredUrlSet(
        target_url=TARGET,
        counts=UrlCounts(total=2, same_origin=2),
        urls=[
            DiscoveredUrl(url=TARGET, source="engine"),
            DiscoveredUrl(url="https://x.com/login", source="engine"),
        ],
    )
    mock = MagicMock()
    mock.discover = AsyncMock(return_value=discovered)
    return mock


@pytest.fixture
def collector():
    pages = PageCollection(
        target_url=TARGET,
        count=2,
        pages=[
            PageContext(url=TARGET, title="Home", links=["https://x.com/login"]),
            PageContext(url="https://x.com/login", title="Login", has_password_input=True),
        ],
    )
    ux = UxReport(target_url=TARGET, counts=UxCounts(images_missing_alt=2))
    mock = MagicMock()
    mock.collect = AsyncMock(return_value=(pages, ux))
    return mock


class TestRunPipeline:

    @pytest.mark.asyncio
    async def test_writes_every_artifact(self, reports_dir, publish_dir, orchestrator, collector):
        report_dir = reports_dir / "20240501-120000"
        options = ScanOptions(target_url=TARGET, max_pages=7)

        status = await run_pipeline(options, report_dir, orchestrator=orchestrator, collector=collector)

        assert status.status == "completed"
        assert status.stage == "done"
        assert status.scan_id == "20240501-120000"
        for name in ("meta.json", "status.json", "urls.json", "pages.json", "ux_checks.json",
                     "summary.md", "flow.mmd", "flow_meta.json", "flow.html"):
            assert (report_dir / name).exists(), name
        assert not (report_dir / "auth_cookies.json").exists()

        meta = _load(report_dir / "meta.json")
        assert meta["targetUrl"] == TARGET
        assert meta["options"]["max_pages"] == 7

        flow_meta = _load(report_dir / "flow_meta.json")
        assert flow_meta["nodeCount"] == 2
        assert flow_meta["edgeCount"] == 1
        assert "Images missing alt: 2" in (report_dir / "summary.md").read_text()
        assert "p1 --> p2" in (report_dir / "flow.mmd").read_text()

        collector.collect.assert_awaited_once()
        args = collector.collect.call_args[0]
        assert args[1] == [TARGET, "https://x.com/login"]
        assert args[2] == 7

        assert (publish_dir / "latest" / "summary.md").exists()
        assert _load(publish_dir / "index.json")["reports"][0]["timestamp"] == "20240501-120000"

    @pytest.mark.asyncio
    async def test_no_publish(self, reports_dir, publish_dir, orchestrator, collector):
        options = ScanOptions(target_url=TARGET)
        await run_pipeline(options, reports_dir / "r1", publish=False, orchestrator=orchestrator, collector=collector)
        assert not (publish_dir / "index.json").exists()

    @pytest.mark.asyncio
    async def test_degraded_discovery_still_completes(self, reports_dir, orchestrator, collector):
        orchestrator.discover = AsyncMock(return_value=DiscoveredUrlSet.fallback(TARGET, "engine_unavailable"))
        report_dir = reports_dir / "r2"

        status = await run_pipeline(ScanOptions(target_url=TARGET), report_dir, publish=False,
                                    orchestrator=orchestrator, collector=collector)

        assert status.status == "completed"
        assert status.discovery_error == "engine_unavailable"
        assert _load(report_dir / "urls.json")["error"] == "engine_unavailable"
        assert collector.collect.call_args[0][1] == [TARGET]

    @pytest.mark.asyncio
    async def test_auth_cookies_passed_and_kept_private(self, reports_dir, orchestrator, collector):
        cookies = [AuthCookie(name="sid", value="abc")]
        outcome = AuthOutcome.from_cookies(cookies)
        report_dir = reports_dir / "r3"

        with patch("siteflow.services.pipeline.resolve_auth", AsyncMock(return_value=outcome)):
            await run_pipeline(ScanOptions(target_url=TARGET, authenticated=True), report_dir,
                               orchestrator=orchestrator, collector=collector)

        assert orchestrator.discover.call_args[0][1] == outcome
        assert collector.collect.call_args[1]["cookies"] == outcome.cookies
        assert _load(report_dir / "auth_cookies.json")["cookies"][0]["name"] == "sid"

    @pytest.mark.asyncio
    async def test_failure_marks_status_and_reraises(self, reports_dir, orchestrator, collector):
        collector.collect = AsyncMock(side_effect=RuntimeError("browser crashed"))
        report_dir = reports_dir / "r4"

        with pytest.raises(RuntimeError):
            await run_pipeline(ScanOptions(target_url=TARGET), report_dir,
                               orchestrator=orchestrator, collector=collector)

        status = _load(report_dir / "status.json")
        assert status["status"] == "failed"
        assert status["stage"] == "collection"
        assert status["error"] == "browser crashed"


class TestBuildFlowFiles:

    def test_empty_report_dir(self, tmp_path):
        artifacts = build_flow_files(tmp_path)
        assert artifacts.metadata.node_count == 0
        assert "Pages discovered: 0" in (tmp_path / "summary.md").read_text()
        assert "Target: Unknown" in (tmp_path / "summary.md").read_text()

    def test_skips_malformed_page_records(self, tmp_path):
        (tmp_path / "pages.json").write_text(json.dumps({
            "targetUrl": TARGET,
            "pages": [{"url": TARGET, "title": "Home"}, {"title": "no url"}, "junk"],
        }))
        (tmp_path / "ux_checks.json").write_text("not json")

        artifacts = build_flow_files(tmp_path)

        assert artifacts.metadata.node_count == 1
        assert artifacts.metadata.target_url == TARGET
