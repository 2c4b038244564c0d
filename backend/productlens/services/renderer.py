import asyncio
import logging
import time

from playwright.async_api import Page

from productlens.core.exceptions import RenderTimeoutError
from productlens.services.browser import BrowserManager, browser_manager
from productlens.services.network_settle import InflightTracker

logger = logging.getLogger(__name__)

# Hard cap for navigation plus network settling
NAVIGATION_TIMEOUT_MS = 15000
# "Almost idle": at most this many requests in flight for NETWORK_SETTLE_QUIET_MS
NETWORK_SETTLE_MAX_INFLIGHT = 2
NETWORK_SETTLE_QUIET_MS = 500
# Post-load nudge: wait for a content landmark, or the fallback delay, whichever is first
CONTENT_LANDMARK_SELECTOR = "main, article, [role='main']"
CONTENT_LANDMARK_TIMEOUT_MS = 3000
CONTENT_FALLBACK_DELAY = 1.0  # seconds

RENDER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36"
)

# ---------------------------------------------------------------------------
# Request interception: heavy resources and ad/tracking hosts
# ---------------------------------------------------------------------------

BLOCKED_RESOURCE_TYPES = frozenset({"image", "media"})

BLOCKED_HOSTS = frozenset(
    {
        "doubleclick.net",
        "adservice.google.com",
        "googlesyndication.com",
        "googletagservices.com",
        "googletagmanager.com",
        "google-analytics.com",
        "amazon-adsystem.com",
        "adnxs.com",
        "ads-twitter.com",
        "facebook.net",
        "criteo.com",
        "criteo.net",
        "outbrain.com",
        "taboola.com",
        "moatads.com",
        "pubmatic.com",
        "rubiconproject.com",
        "scorecardresearch.com",
        "quantserve.com",
        "hotjar.com",
        "fullstory.com",
        "mouseflow.com",
        "clarity.ms",
        "segment.io",
        "mixpanel.com",
        "amplitude.com",
        "newrelic.com",
        "nr-data.net",
    }
)


def _hostname(url: str) -> str:
    try:
        after_scheme = url.split("//", 1)[1]
    except IndexError:
        return ""
    return after_scheme.split("/", 1)[0].split(":")[0].lower()


def is_blocked_host(url: str) -> bool:
    """True when the URL's host is, or is a subdomain of, a deny-listed host."""
    hostname = _hostname(url)
    if not hostname:
        return False
    return any(
        hostname == domain or hostname.endswith("." + domain) for domain in BLOCKED_HOSTS
    )


def should_block_request(resource_type: str, url: str) -> bool:
    return resource_type in BLOCKED_RESOURCE_TYPES or is_blocked_host(url)


async def _route_handler(route, request):
    if should_block_request(request.resource_type, request.url):
        await route.abort()
    else:
        await route.continue_()


# ---------------------------------------------------------------------------
# Post-load content race
# ---------------------------------------------------------------------------


def _consume_outcome(task: asyncio.Task) -> None:
    # The losing landmark wait may still fail later (timeout, page closed);
    # retrieve its outcome so it is never reported as unhandled
    if not task.cancelled():
        task.exception()


async def wait_for_content_or_delay(
    page: Page,
    selector: str = CONTENT_LANDMARK_SELECTOR,
    timeout_ms: int = CONTENT_LANDMARK_TIMEOUT_MS,
    fallback_delay: float = CONTENT_FALLBACK_DELAY,
) -> str:
    """Race a landmark selector wait against a fixed delay.

    Returns "landmark" or "delay" depending on which finished first. A failed
    landmark wait does not count as a win. The landmark wait is never
    cancelled; its eventual outcome is ignored.
    """
    landmark = asyncio.ensure_future(page.wait_for_selector(selector, timeout=timeout_ms))
    landmark.add_done_callback(_consume_outcome)
    delay = asyncio.ensure_future(asyncio.sleep(fallback_delay))
    try:
        pending = {landmark, delay}
        while pending:
            done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
            if delay in done:
                return "delay"
            if landmark in done and landmark.exception() is None:
                return "landmark"
        return "delay"
    finally:
        # Cancelling a bare sleep has no side effects
        delay.cancel()


# ---------------------------------------------------------------------------
# Render
# ---------------------------------------------------------------------------


async def render_dynamic(url: str, manager: BrowserManager | None = None) -> str:
    """Load ``url`` in the shared headless browser and return hydrated HTML.

    Raises:
        BrowserLaunchError: the shared browser could not be started.
        RenderTimeoutError: navigation plus settling exceeded NAVIGATION_TIMEOUT_MS.
        playwright.async_api.Error: any other navigation / browser failure.
    """
    manager = manager or browser_manager
    started = time.monotonic()

    async with manager.open_page(user_agent=RENDER_USER_AGENT) as page:
        await page.route("**/*", _route_handler)

        tracker = InflightTracker()
        tracker.attach(page)
        try:
            await page.goto(
                url, wait_until="domcontentloaded", timeout=NAVIGATION_TIMEOUT_MS
            )
            remaining = NAVIGATION_TIMEOUT_MS / 1000 - (time.monotonic() - started)
            try:
                await tracker.wait_for_settle(
                    max_inflight=NETWORK_SETTLE_MAX_INFLIGHT,
                    quiet_ms=NETWORK_SETTLE_QUIET_MS,
                    timeout=max(remaining, 0.0),
                )
            except asyncio.TimeoutError:
                raise RenderTimeoutError(url, NAVIGATION_TIMEOUT_MS) from None
        finally:
            tracker.detach()

        winner = await wait_for_content_or_delay(
            page,
            CONTENT_LANDMARK_SELECTOR,
            CONTENT_LANDMARK_TIMEOUT_MS,
            CONTENT_FALLBACK_DELAY,
        )
        html = await page.content()

    logger.debug(
        f"Rendered {url} in {time.monotonic() - started:.2f}s "
        f"({len(html)} chars, settled via {winner})"
    )
    return html
