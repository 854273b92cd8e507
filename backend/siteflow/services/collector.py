"""Page context collection: visit discovered URLs and record what each page offers."""

import logging
import re
import time
from pathlib import Path

import httpx
from playwright.async_api import Error as PlaywrightError

from siteflow.config import settings
from siteflow.core.metrics import page_collect_duration_seconds, pages_collected_total
from siteflow.schemas.auth import AuthCookie
from siteflow.schemas.common import iso_now
from siteflow.schemas.page import BrokenLink, PageCollection, PageContext, UxCounts, UxReport
from siteflow.services.browser import browser_session
from siteflow.services.reports import SCREENSHOTS_DIR, ensure_dir
from siteflow.services.urls import (
    deduplicate_urls,
    filter_same_origin,
    safe_url_filename,
    to_absolute_url,
)

logger = logging.getLogger(__name__)

VIEWPORT = {"width": 1280, "height": 720}

_LOGIN_URL_RE = re.compile(r"login|signin|sign-in", re.IGNORECASE)

# Runs inside the page; returns camelCase keys matching PageContext aliases
EXTRACT_SCRIPT = """
() => {
  const text = (value) => (value ?? "").trim();
  const lower = (value) => value.toLowerCase();
  const ctaKeywords = ["get started", "buy", "checkout", "sign up", "start", "contact", "book", "subscribe", "request demo"];
  const buttonSelector = "button, input[type='submit'], input[type='button']";

  const headings = {
    h1: Array.from(document.querySelectorAll("h1")).map((el) => text(el.textContent)).filter(Boolean),
    h2: Array.from(document.querySelectorAll("h2")).map((el) => text(el.textContent)).filter(Boolean)
  };

  const navItems = Array.from(document.querySelectorAll("nav a"))
    .map((el) => ({ text: text(el.textContent), href: el.getAttribute("href") ?? "" }))
    .filter((item) => item.text || item.href);

  const buttons = Array.from(document.querySelectorAll(buttonSelector))
    .map((el) => ({
      text: text(el.textContent) || text(el.getAttribute("value")) || text(el.getAttribute("aria-label")),
      selector: el.tagName.toLowerCase()
    }))
    .filter((btn) => btn.text);

  const ctaButtons = buttons.filter((btn) => ctaKeywords.some((keyword) => lower(btn.text).includes(keyword)));

  const forms = Array.from(document.querySelectorAll("form")).map((form) => ({
    fields: Array.from(form.querySelectorAll("input, select, textarea")).map((field) => ({
      name: field.name || field.id || field.getAttribute("aria-label") || "field",
      type: field.type || field.tagName.toLowerCase(),
      placeholder: field.getAttribute("placeholder") || ""
    }))
  }));

  const links = Array.from(document.querySelectorAll("a"))
    .map((el) => el.getAttribute("href") || "")
    .filter(Boolean);

  const title = text(document.title);

  return {
    title,
    headings,
    navItems,
    buttons,
    ctaButtons,
    forms,
    links,
    landmarks: {
      header: Boolean(document.querySelector("header")),
      main: Boolean(document.querySelector("main, #main, [role='main']")),
      footer: Boolean(document.querySelector("footer"))
    },
    hasPasswordInput: Boolean(document.querySelector("input[type='password']")),
    hasSearchInput: Boolean(document.querySelector("input[type='search'], input[placeholder*='search' i]")),
    missingTitle: !title,
    h1Count: headings.h1.length,
    imagesMissingAlt: Array.from(document.querySelectorAll("img")).filter((img) => !text(img.getAttribute("alt"))).length,
    buttonsMissingLabel: Array.from(document.querySelectorAll(buttonSelector)).filter((el) =>
      !(text(el.textContent) || text(el.getAttribute("value")) || text(el.getAttribute("aria-label")) || text(el.getAttribute("aria-labelledby")))
    ).length
  };
}
"""


def select_urls(target_url: str, urls: list[str], max_pages: int) -> list[str]:
    """Same-origin, deduplicated URLs to visit, capped at ``max_pages``.

    Falls back to the target itself when nothing usable was discovered.
    """
    selected = deduplicate_urls(filter_same_origin(urls, target_url))[:max_pages]
    return selected or [target_url]


def aggregate_ux(pages: list[PageContext], broken_links: list[BrokenLink]) -> UxCounts:
    visited = [page for page in pages if not page.error]
    return UxCounts(
        missing_title_pages=sum(1 for page in visited if page.missing_title),
        multiple_h1_pages=sum(1 for page in visited if page.h1_count > 1),
        images_missing_alt=sum(page.images_missing_alt for page in visited),
        buttons_missing_label=sum(page.buttons_missing_label for page in visited),
        broken_links=len(broken_links),
    )


def sample_links(pages: list[PageContext], sample_size: int) -> list[str]:
    links = [link for page in pages for link in page.links if link.startswith("http")]
    return deduplicate_urls(links)[:sample_size]


async def _probe(client: httpx.AsyncClient, url: str) -> int:
    """HTTP status for ``url``: HEAD first, GET when HEAD fails or is refused."""
    try:
        response = await client.head(url)
        if response.status_code not in (405, 501):
            return response.status_code
    except httpx.HTTPError:
        pass
    try:
        response = await client.get(url)
        return response.status_code
    except httpx.HTTPError:
        return 0


async def check_links(links: list[str], timeout: float | None = None) -> list[BrokenLink]:
    """Probe each link once; status >= 400 or unreachable counts as broken."""
    broken = []
    async with httpx.AsyncClient(
        timeout=timeout or settings.LINK_CHECK_TIMEOUT,
        follow_redirects=True,
    ) as client:
        for link in links:
            status = await _probe(client, link)
            if status == 0 or status >= 400:
                logger.debug(f"Broken link {link} ({status})")
                broken.append(BrokenLink(url=link, status=status))
    return broken


class PageContextCollector:
    """Visits URLs in one browser session and emits one PageContext per URL."""

    def __init__(self, session_factory=browser_session, link_checker=check_links):
        self._session_factory = session_factory
        self._link_checker = link_checker

    async def collect(
        self,
        target_url: str,
        urls: list[str],
        max_pages: int,
        report_dir: str | Path,
        cookies: list[AuthCookie] | tuple[AuthCookie, ...] | None = None,
    ) -> tuple[PageCollection, UxReport]:
        to_visit = select_urls(target_url, urls, max_pages)
        screenshots_dir = ensure_dir(Path(report_dir) / SCREENSHOTS_DIR)
        logger.info(f"Collecting page context for {len(to_visit)} URLs on {target_url}")

        pages: list[PageContext] = []
        async with self._session_factory(
            viewport=VIEWPORT,
            cookies=[c.to_playwright() for c in cookies] if cookies else None,
        ) as context:
            for url in to_visit:
                pages.append(await self._visit(context, url, screenshots_dir))

        sample = sample_links(pages, settings.LINK_SAMPLE_SIZE)
        broken_links = await self._link_checker(sample)
        counts = aggregate_ux(pages, broken_links)

        failed = sum(1 for page in pages if page.error)
        logger.info(
            f"Collected {len(pages)} pages ({failed} failed), "
            f"{len(broken_links)}/{len(sample)} sampled links broken"
        )

        generated_at = iso_now()
        collection = PageCollection(
            target_url=target_url,
            generated_at=generated_at,
            count=len(pages),
            pages=pages,
        )
        ux_report = UxReport(
            target_url=target_url,
            generated_at=generated_at,
            counts=counts,
            broken_links=broken_links,
        )
        return collection, ux_report

    async def _visit(self, context, url: str, screenshots_dir: Path) -> PageContext:
        start = time.monotonic()
        page = await context.new_page()
        try:
            await page.goto(url, wait_until="domcontentloaded", timeout=settings.NAVIGATION_TIMEOUT)
            data = await page.evaluate(EXTRACT_SCRIPT)
            final_url = page.url

            screenshot = None
            screenshot_name = f"{safe_url_filename(url)}.png"
            try:
                await page.screenshot(path=str(screenshots_dir / screenshot_name), full_page=True)
                screenshot = f"{SCREENSHOTS_DIR}/{screenshot_name}"
            except PlaywrightError as e:
                logger.debug(f"Screenshot failed for {url}: {e}")

            data = data if isinstance(data, dict) else {}
            links = [to_absolute_url(link, url) for link in data.get("links") or [] if isinstance(link, str)]
            record = PageContext.model_validate({
                **data,
                "url": url,
                "finalUrl": final_url,
                "links": links,
                "loginDetected": bool(data.get("hasPasswordInput")) or bool(_LOGIN_URL_RE.search(final_url)),
                "screenshot": screenshot,
            })
            pages_collected_total.labels(status="success").inc()
            return record
        except Exception as e:
            logger.warning(f"Failed to collect {url}: {e}")
            pages_collected_total.labels(status="failed").inc()
            return PageContext(url=url, error=str(e))
        finally:
            page_collect_duration_seconds.observe(time.monotonic() - start)
            try:
                await page.close()
            except PlaywrightError as e:
                logger.debug(f"Failed to close page {url}: {e}")
