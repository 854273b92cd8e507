"""Scripted login that harvests session cookies for authenticated crawls."""

import logging

from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from siteflow.config import Settings, settings
from siteflow.core.exceptions import AuthMisconfigured
from siteflow.schemas.auth import AuthCookie, AuthOutcome
from siteflow.schemas.scan import ScanOptions
from siteflow.services.browser import browser_session

logger = logging.getLogger(__name__)


def require_login_fields(**fields: str | None):
    """Raise AuthMisconfigured naming every empty field."""
    missing = [name for name, value in fields.items() if not value]
    if missing:
        raise AuthMisconfigured(missing)


async def acquire_cookies(
    login_url: str | None,
    username: str | None,
    password: str | None,
    user_field: str | None,
    pass_field: str | None,
    submit_selector: str | None,
    success_url_pattern: str | None = None,
) -> list[AuthCookie] | None:
    """Log in through a real browser and return the session's cookies.

    Returns None when the login parameters are incomplete or the login page
    cannot be reached; never raises for either. The returned list may be
    empty if the site set no cookies.
    """
    try:
        require_login_fields(
            login_url=login_url,
            username=username,
            password=password,
            user_field=user_field,
            pass_field=pass_field,
            submit_selector=submit_selector,
        )
    except AuthMisconfigured as e:
        logger.warning(f"Authenticated crawl requested, but login is not configured: {e.message}")
        return None

    async with browser_session() as context:
        page = await context.new_page()

        try:
            await page.goto(login_url, wait_until="domcontentloaded", timeout=settings.NAVIGATION_TIMEOUT)
        except PlaywrightError as e:
            logger.error(f"Could not open login page {login_url}: {e}")
            return None

        try:
            await page.fill(user_field, username)
            await page.fill(pass_field, password)
            await page.click(submit_selector)
        except PlaywrightError as e:
            logger.error(f"Login form interaction failed on {login_url}: {e}")
            return None

        if success_url_pattern:
            try:
                await page.wait_for_url(success_url_pattern, timeout=settings.LOGIN_SUCCESS_TIMEOUT)
            except PlaywrightTimeoutError:
                logger.info(f"URL never matched {success_url_pattern!r}, continuing")

        try:
            await page.wait_for_load_state("networkidle", timeout=settings.NETWORK_IDLE_TIMEOUT)
        except PlaywrightTimeoutError:
            logger.debug("Network did not go idle after login, continuing")

        raw_cookies = await context.cookies()

    cookies = [AuthCookie.model_validate(c) for c in raw_cookies]
    logger.info(f"Harvested {len(cookies)} cookies from {login_url}")
    return cookies


async def resolve_auth(options: ScanOptions, config: Settings | None = None) -> AuthOutcome:
    """Turn the scan's ``authenticated`` flag plus login settings into an AuthOutcome."""
    config = config or settings
    if not options.authenticated:
        return AuthOutcome.not_requested()

    try:
        require_login_fields(
            LOGIN_URL=config.LOGIN_URL,
            LOGIN_USERNAME=config.LOGIN_USERNAME,
            LOGIN_PASSWORD=config.LOGIN_PASSWORD,
            LOGIN_USER_FIELD=config.LOGIN_USER_FIELD,
            LOGIN_PASS_FIELD=config.LOGIN_PASS_FIELD,
            LOGIN_SUBMIT_SELECTOR=config.LOGIN_SUBMIT_SELECTOR,
        )
    except AuthMisconfigured as e:
        logger.warning(f"{e.message}. Falling back to public crawl.")
        return AuthOutcome.unconfigured(e.message)

    try:
        cookies = await acquire_cookies(
            login_url=config.LOGIN_URL,
            username=config.LOGIN_USERNAME,
            password=config.LOGIN_PASSWORD,
            user_field=config.LOGIN_USER_FIELD,
            pass_field=config.LOGIN_PASS_FIELD,
            submit_selector=config.LOGIN_SUBMIT_SELECTOR,
            success_url_pattern=config.LOGGED_IN_URL_PATTERN or None,
        )
    except Exception as e:
        logger.error(f"Scripted login failed: {e}")
        cookies = None

    outcome = AuthOutcome.from_cookies(cookies)
    if outcome.cookie_header:
        logger.info(f"Authenticated crawl with {len(outcome.cookies)} cookies")
    else:
        logger.warning("Login produced no cookies. Falling back to public crawl.")
    return outcome
