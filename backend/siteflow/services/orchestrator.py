"""Crawl orchestration: drives one ephemeral ZAP instance through a scan.

Phases (each transition is logged and timed):

    Idle -> CheckingRuntime -> StartingEngine -> WaitingReady
         -> [RegisteringAuth] -> SpiderScanning -> AjaxScanning
         -> Aggregating -> Done

Any failure degrades to a single-URL fallback set carrying a reason code.
Once a container handle exists it is released exactly once, from a single
``finally`` block, whatever happened in between. A teardown error is logged
and never replaces the result.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Callable

import httpx

from siteflow.config import settings
from siteflow.core.exceptions import (
    EngineUnavailable,
    PollTimeout,
    ReadyTimeout,
    ScanFailure,
    UnexpectedError,
)
from siteflow.core.metrics import discovery_phase_duration_seconds, discovery_runs_total
from siteflow.core.polling import SleepFunc, poll_until
from siteflow.schemas.auth import AuthOutcome
from siteflow.schemas.common import iso_now
from siteflow.schemas.discovery import DiscoveredUrl, DiscoveredUrlSet, UrlCounts
from siteflow.schemas.scan import ScanOptions
from siteflow.services.engine import DockerRuntime, EngineHandle, ZapClient
from siteflow.services.urls import deduplicate_urls, filter_same_origin

logger = logging.getLogger(__name__)


class DiscoveryPhase(str, Enum):
    IDLE = "idle"
    CHECKING_RUNTIME = "checking_runtime"
    STARTING_ENGINE = "starting_engine"
    WAITING_READY = "waiting_ready"
    REGISTERING_AUTH = "registering_auth"
    SPIDER_SCANNING = "spider_scanning"
    AJAX_SCANNING = "ajax_scanning"
    AGGREGATING = "aggregating"
    DONE = "done"
    FALLBACK = "fallback"


class CrawlOrchestrator:
    """Discovers a site's URLs with ZAP, degrading to the target URL alone.

    ``discover()`` never raises. Collaborators are injectable so tests can
    drive every phase without Docker, network or real sleeps.
    """

    def __init__(
        self,
        runtime: DockerRuntime | None = None,
        client_factory: Callable[[str], ZapClient] | None = None,
        sleep: SleepFunc = asyncio.sleep,
        ready_attempts: int | None = None,
        ready_interval: float | None = None,
        spider_interval: float | None = None,
        spider_max_polls: int | None = None,
        ajax_interval: float | None = None,
        ajax_max_polls: int | None = None,
    ):
        self.runtime = runtime or DockerRuntime()
        self.client_factory = client_factory or ZapClient
        self.sleep = sleep
        self.ready_attempts = ready_attempts if ready_attempts is not None else settings.ZAP_READY_ATTEMPTS
        self.ready_interval = ready_interval if ready_interval is not None else settings.ZAP_READY_INTERVAL
        self.spider_interval = spider_interval if spider_interval is not None else settings.SPIDER_POLL_INTERVAL
        self.spider_max_polls = spider_max_polls if spider_max_polls is not None else settings.SPIDER_MAX_POLLS
        self.ajax_interval = ajax_interval if ajax_interval is not None else settings.AJAX_POLL_INTERVAL
        self.ajax_max_polls = ajax_max_polls if ajax_max_polls is not None else settings.AJAX_MAX_POLLS

        self.phase = DiscoveryPhase.IDLE
        self.history: list[DiscoveryPhase] = []
        self._phase_started = time.monotonic()

    def _enter(self, phase: DiscoveryPhase):
        now = time.monotonic()
        if self.phase != DiscoveryPhase.IDLE:
            discovery_phase_duration_seconds.labels(phase=self.phase.value).observe(now - self._phase_started)
        logger.info(f"Discovery phase: {self.phase.value} -> {phase.value}")
        self.phase = phase
        self.history.append(phase)
        self._phase_started = now

    def _fallback(self, options: ScanOptions, reason: str) -> DiscoveredUrlSet:
        self._enter(DiscoveryPhase.FALLBACK)
        return DiscoveredUrlSet.fallback(options.target_url, reason)

    async def discover(self, options: ScanOptions, auth: AuthOutcome | None = None) -> DiscoveredUrlSet:
        """Run one discovery session for ``options.target_url``."""
        self.phase = DiscoveryPhase.IDLE
        self.history = [DiscoveryPhase.IDLE]
        auth = auth or AuthOutcome.not_requested()

        try:
            result = await self._discover(options, auth)
        except Exception as e:
            logger.error(f"Discovery failed unexpectedly: {e}", exc_info=True)
            result = self._fallback(options, UnexpectedError.reason)

        discovery_runs_total.labels(outcome=result.error or "success").inc()
        return result

    async def _discover(self, options: ScanOptions, auth: AuthOutcome) -> DiscoveredUrlSet:
        self._enter(DiscoveryPhase.CHECKING_RUNTIME)
        if not await self.runtime.is_available():
            logger.warning("Docker is not available. Falling back to the target URL only.")
            return self._fallback(options, EngineUnavailable.reason)

        handle = self.runtime.create_handle(
            respect_robots=options.respect_robots,
            max_depth=options.max_depth,
        )
        try:
            return await self._scan(handle, options, auth)
        except ReadyTimeout as e:
            logger.warning(f"Discovery engine never became ready: {e}")
            return self._fallback(options, ReadyTimeout.reason)
        except Exception as e:
            logger.error(f"Discovery scan failed: {e}")
            return self._fallback(options, ScanFailure.reason)
        finally:
            try:
                await handle.release()
            except Exception as e:
                logger.warning(f"Engine teardown failed for {handle.name}: {e}")

    async def _scan(self, handle: EngineHandle, options: ScanOptions, auth: AuthOutcome) -> DiscoveredUrlSet:
        target = options.target_url

        self._enter(DiscoveryPhase.STARTING_ENGINE)
        await handle.start()

        async with self.client_factory(handle.base_url) as zap:
            self._enter(DiscoveryPhase.WAITING_READY)
            try:
                await poll_until(
                    zap.is_ready,
                    interval=self.ready_interval,
                    max_attempts=self.ready_attempts,
                    sleep=self.sleep,
                    ignore_errors=(httpx.HTTPError, ValueError),
                    description="ZAP API readiness",
                )
            except PollTimeout as e:
                raise ReadyTimeout(e.message, url=target) from e

            cookie_header = auth.cookie_header
            if cookie_header:
                self._enter(DiscoveryPhase.REGISTERING_AUTH)
                await zap.add_cookie_rule(cookie_header)
                logger.info(f"Registered auth cookie rule ({len(auth.cookies)} cookies)")

            self._enter(DiscoveryPhase.SPIDER_SCANNING)
            scan_id = await zap.start_spider(target, options.max_depth)

            async def spider_done() -> bool:
                return await zap.spider_progress(scan_id) >= 100

            await poll_until(
                spider_done,
                interval=self.spider_interval,
                max_attempts=self.spider_max_polls,
                sleep=self.sleep,
                sleep_first=True,
                description=f"Spider scan {scan_id}",
            )

            self._enter(DiscoveryPhase.AJAX_SCANNING)
            await zap.start_ajax_spider(target)

            async def ajax_done() -> bool:
                return await zap.ajax_spider_status() == "stopped"

            await poll_until(
                ajax_done,
                interval=self.ajax_interval,
                max_attempts=self.ajax_max_polls,
                sleep=self.sleep,
                sleep_first=True,
                description="AJAX spider",
            )

            self._enter(DiscoveryPhase.AGGREGATING)
            core_urls = await zap.urls()
            spider_urls = await zap.spider_results(scan_id)

        urls = deduplicate_urls(core_urls + spider_urls)
        same_origin = filter_same_origin(urls, target)
        logger.info(f"Discovered {len(urls)} URLs, {len(same_origin)} on {target}'s origin")

        self._enter(DiscoveryPhase.DONE)
        return DiscoveredUrlSet(
            target_url=target,
            generated_at=iso_now(),
            counts=UrlCounts(total=len(urls), same_origin=len(same_origin)),
            urls=[DiscoveredUrl(url=url, source="engine") for url in same_origin],
        )
