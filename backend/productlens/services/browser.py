import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Awaitable, Callable

from playwright.async_api import async_playwright, Browser, Page

from productlens.config import settings
from productlens.core.exceptions import BrowserLaunchError
from productlens.core.metrics import (
    active_browser_pages,
    browser_disconnects_total,
    browser_launches_total,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Chromium launch profiles
# ---------------------------------------------------------------------------

# Full local Chromium: minimal flag set, nothing that trips bot detection
LOCAL_CHROMIUM_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-infobars",
    "--no-first-run",
    "--no-default-browser-check",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
]

# Constrained containers / function runtimes: no sandbox, no zygote, one process,
# no /dev/shm, small V8 heap
SERVERLESS_CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-software-rasterizer",
    "--no-zygote",
    "--single-process",
    "--disable-extensions",
    "--disable-background-networking",
    "--disable-sync",
    "--metrics-recording-only",
    "--no-first-run",
    "--disable-blink-features=AutomationControlled",
    "--js-flags=--max-old-space-size=256",
]


def get_launch_options(
    mode: str,
    headless: bool | None = None,
    executable_path: str | None = None,
) -> dict:
    """Keyword arguments for ``chromium.launch`` for a deployment mode.

    Args:
        mode: "local" (bundled Playwright Chromium) or "serverless".
        headless: Overrides BROWSER_HEADLESS in local mode. Serverless is always headless.
        executable_path: Overrides BROWSER_EXECUTABLE_PATH.
    """
    executable_path = (
        executable_path if executable_path is not None else settings.BROWSER_EXECUTABLE_PATH
    )

    if mode == "local":
        options = {
            "headless": settings.BROWSER_HEADLESS if headless is None else headless,
            "args": list(LOCAL_CHROMIUM_ARGS),
        }
    elif mode == "serverless":
        options = {"headless": True, "args": list(SERVERLESS_CHROMIUM_ARGS)}
    else:
        raise ValueError(f"Unknown browser mode: {mode!r}")

    if executable_path:
        options["executable_path"] = executable_path
    return options


Launcher = Callable[[str], Awaitable[Browser]]


class BrowserManager:
    """Owns at most one live headless Chromium per process.

    The browser is launched lazily on first use and reused for every render.
    Concurrent callers that find no live browser share a single in-flight
    launch instead of starting their own. A disconnect (crash, OOM kill,
    explicit close) clears the cached handle; the next ``acquire`` relaunches.

    Each render gets its own page via ``open_page``; pages on the same browser
    are isolated from one another.

    Args:
        mode: Deployment mode ("local" / "serverless"). Defaults to BROWSER_MODE.
        launcher: Coroutine function ``(mode) -> Browser`` replacing the
            Playwright launch (used by tests and embedding callers).
    """

    def __init__(self, mode: str | None = None, launcher: Launcher | None = None):
        self._mode = mode
        self._launcher = launcher
        self._playwright = None
        self._browser: Browser | None = None
        self._launch_future: asyncio.Future | None = None
        self.launch_count = 0

    @property
    def mode(self) -> str:
        return self._mode or settings.BROWSER_MODE

    @property
    def is_ready(self) -> bool:
        """True when a launched browser is currently connected."""
        return self._browser is not None and self._browser.is_connected()

    async def acquire(self) -> Browser:
        """Return the live shared browser, launching it if needed.

        Raises:
            BrowserLaunchError: the browser could not be started. Nothing is
                cached, so the next call tries again.
        """
        browser = self._browser
        if browser is not None:
            if browser.is_connected():
                return browser
            logger.warning("Cached browser is no longer connected, relaunching")
            self._browser = None

        if self._launch_future is None or self._launch_future.done():
            self._launch_future = asyncio.ensure_future(self._launch())
            self._launch_future.add_done_callback(_consume_launch_outcome)
        launch = self._launch_future

        try:
            # Shielded so one cancelled caller does not abort the launch for the rest
            return await asyncio.shield(launch)
        finally:
            if launch.done() and self._launch_future is launch:
                self._launch_future = None

    async def _launch(self) -> Browser:
        mode = self.mode
        logger.info(f"Launching headless Chromium (mode={mode})")
        launcher = self._launcher or self._launch_chromium
        try:
            browser = await launcher(mode)
        except Exception as e:
            browser_launches_total.labels(status="error").inc()
            logger.error(f"Browser launch failed (mode={mode}): {e}")
            raise BrowserLaunchError(f"Browser launch failed: {e}") from e

        browser.on("disconnected", self._on_disconnected)
        self._browser = browser
        self.launch_count += 1
        browser_launches_total.labels(status="success").inc()
        logger.info(f"Chromium ready (mode={mode}, launches={self.launch_count})")
        return browser

    async def _launch_chromium(self, mode: str) -> Browser:
        options = get_launch_options(mode)
        if self._playwright is None:
            self._playwright = await async_playwright().start()
        return await self._playwright.chromium.launch(**options)

    def _on_disconnected(self, browser) -> None:
        browser_disconnects_total.inc()
        # Only clear if this is still the cached handle (an old browser closing
        # late must not evict a freshly launched one)
        if self._browser is browser:
            logger.warning("Shared browser disconnected; it will be relaunched on next use")
            self._browser = None

    @asynccontextmanager
    async def open_page(self, user_agent: str | None = None):
        """Open one page on the shared browser and always close it afterwards.

        Close-time errors are logged and dropped so they never replace the
        result or the exception raised inside the ``async with`` body.
        """
        browser = await self.acquire()
        if user_agent:
            page: Page = await browser.new_page(user_agent=user_agent)
        else:
            page = await browser.new_page()

        active_browser_pages.inc()
        try:
            yield page
        finally:
            active_browser_pages.dec()
            # Shield cleanup from cancellation so a cancelled render still
            # releases its page
            try:
                await asyncio.shield(_safe_close_page(page))
            except asyncio.CancelledError:
                logger.debug("Cancelled while closing page; close continues in background")
                raise

    async def shutdown(self):
        """Close the browser and stop Playwright.

        A launch still in flight is waited for first, so the browser it
        produces is closed here rather than cached after shutdown.
        """
        launch = self._launch_future
        if launch is not None and not launch.done():
            logger.info("Waiting for in-flight browser launch before shutdown")
            await asyncio.wait({launch})

        browser, self._browser = self._browser, None
        if browser is not None:
            try:
                await browser.close()
            except Exception as e:
                logger.warning(f"Browser close failed during shutdown: {e}")
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.warning(f"Playwright stop failed during shutdown: {e}")
            self._playwright = None
        logger.info("Browser manager shut down")


def _consume_launch_outcome(launch: asyncio.Future) -> None:
    # Every waiter may have been cancelled; the failure is already logged in _launch
    if not launch.cancelled():
        launch.exception()


async def _safe_close_page(page: Page):
    try:
        await page.close()
    except Exception as e:
        logger.debug(f"Page close failed (ignored): {e}")


# Process-wide default; pipeline functions accept an explicit manager instead
browser_manager = BrowserManager()
