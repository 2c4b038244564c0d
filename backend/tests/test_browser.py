"""Tests for the shared browser manager: lazy launch, reuse, crash recovery, page cleanup."""
import asyncio
import gc

import pytest

from productlens.core.exceptions import BrowserLaunchError
from productlens.services.browser import (
    LOCAL_CHROMIUM_ARGS,
    SERVERLESS_CHROMIUM_ARGS,
    BrowserManager,
    get_launch_options,
)


class FakePage:
    def __init__(self, close_error: Exception | None = None):
        self.closed = False
        self.close_calls = 0
        self._close_error = close_error

    async def close(self):
        self.close_calls += 1
        self.closed = True
        if self._close_error:
            raise self._close_error


class SlowClosePage(FakePage):
    def __init__(self):
        super().__init__()
        self.closing = asyncio.Event()

    async def close(self):
        self.closing.set()
        await asyncio.sleep(0.05)
        await super().close()


class FakeBrowser:
    """Mimics the parts of playwright Browser the manager touches."""

    def __init__(self, page: FakePage | None = None):
        self.connected = True
        self.listeners: dict[str, list] = {}
        self.page = page or FakePage()
        self.new_page_kwargs: list[dict] = []
        self.closed = False

    def is_connected(self):
        return self.connected

    def on(self, event, callback):
        self.listeners.setdefault(event, []).append(callback)

    async def new_page(self, **kwargs):
        self.new_page_kwargs.append(kwargs)
        return self.page

    def crash(self):
        self.connected = False
        for callback in self.listeners.get("disconnected", []):
            callback(self)

    async def close(self):
        self.closed = True
        self.crash()


class CountingLauncher:
    """Launcher that records calls and can be slowed down or made to fail."""

    def __init__(self, delay: float = 0.0, errors: list | None = None):
        self.calls = 0
        self.browsers: list[FakeBrowser] = []
        self._delay = delay
        self._errors = list(errors or [])

    async def __call__(self, mode):
        self.calls += 1
        await asyncio.sleep(self._delay)
        if self._errors:
            raise self._errors.pop(0)
        browser = FakeBrowser()
        self.browsers.append(browser)
        return browser


class TestAcquire:
    @pytest.mark.asyncio
    async def test_lazy_launch_and_reuse(self):
        launcher = CountingLauncher()
        manager = BrowserManager(mode="local", launcher=launcher)
        assert manager.is_ready is False

        first = await manager.acquire()
        second = await manager.acquire()

        assert first is second
        assert launcher.calls == 1
        assert manager.launch_count == 1
        assert manager.is_ready is True

    @pytest.mark.asyncio
    async def test_concurrent_first_acquire_launches_once(self):
        launcher = CountingLauncher(delay=0.05)
        manager = BrowserManager(mode="local", launcher=launcher)

        browsers = await asyncio.gather(*(manager.acquire() for _ in range(5)))

        assert launcher.calls == 1
        assert all(b is browsers[0] for b in browsers)

    @pytest.mark.asyncio
    async def test_disconnect_clears_handle_and_relaunches(self):
        launcher = CountingLauncher()
        manager = BrowserManager(mode="local", launcher=launcher)

        first = await manager.acquire()
        first.crash()
        assert manager.is_ready is False

        second = await manager.acquire()
        assert second is not first
        assert launcher.calls == 2

    @pytest.mark.asyncio
    async def test_liveness_is_revalidated_without_event(self):
        launcher = CountingLauncher()
        manager = BrowserManager(mode="local", launcher=launcher)

        first = await manager.acquire()
        first.connected = False  # died without a disconnect event reaching us

        second = await manager.acquire()
        assert second is not first
        assert launcher.calls == 2

    @pytest.mark.asyncio
    async def test_late_disconnect_of_old_browser_keeps_new_one(self):
        launcher = CountingLauncher()
        manager = BrowserManager(mode="local", launcher=launcher)

        old = await manager.acquire()
        old.connected = False
        new = await manager.acquire()

        # Old browser's disconnect event arrives after the relaunch
        for callback in old.listeners["disconnected"]:
            callback(old)

        assert manager.is_ready is True
        assert await manager.acquire() is new
        assert launcher.calls == 2

    @pytest.mark.asyncio
    async def test_launch_failure_is_not_cached(self):
        launcher = CountingLauncher(errors=[RuntimeError("chromium missing")])
        manager = BrowserManager(mode="local", launcher=launcher)

        with pytest.raises(BrowserLaunchError) as exc_info:
            await manager.acquire()
        assert "chromium missing" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert manager.is_ready is False

        browser = await manager.acquire()
        assert browser is launcher.browsers[0]
        assert launcher.calls == 2

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_launch_failure(self):
        launcher = CountingLauncher(delay=0.05, errors=[RuntimeError("boom")])
        manager = BrowserManager(mode="local", launcher=launcher)

        results = await asyncio.gather(
            *(manager.acquire() for _ in range(3)), return_exceptions=True
        )

        assert launcher.calls == 1
        assert all(isinstance(r, BrowserLaunchError) for r in results)

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_abort_launch(self):
        launcher = CountingLauncher(delay=0.05)
        manager = BrowserManager(mode="local", launcher=launcher)

        waiter = asyncio.create_task(manager.acquire())
        await asyncio.sleep(0.01)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        browser = await manager.acquire()
        assert browser is launcher.browsers[0]
        assert launcher.calls == 1


class TestOpenPage:
    @pytest.mark.asyncio
    async def test_page_closed_after_use(self):
        launcher = CountingLauncher()
        manager = BrowserManager(mode="local", launcher=launcher)

        async with manager.open_page(user_agent="UA/1.0") as page:
            assert page.closed is False

        browser = launcher.browsers[0]
        assert page.closed is True
        assert browser.new_page_kwargs == [{"user_agent": "UA/1.0"}]

    @pytest.mark.asyncio
    async def test_page_closed_when_body_raises(self):
        launcher = CountingLauncher()
        manager = BrowserManager(mode="local", launcher=launcher)

        with pytest.raises(ValueError, match="render failed"):
            async with manager.open_page() as page:
                raise ValueError("render failed")

        assert page.close_calls == 1

    @pytest.mark.asyncio
    async def test_close_error_does_not_mask_body_error(self):
        page = FakePage(close_error=RuntimeError("target closed"))
        manager = BrowserManager(mode="local", launcher=lambda mode: _ready(FakeBrowser(page)))

        with pytest.raises(ValueError, match="original"):
            async with manager.open_page():
                raise ValueError("original")

        assert page.close_calls == 1

    @pytest.mark.asyncio
    async def test_close_error_is_swallowed_on_success(self):
        page = FakePage(close_error=RuntimeError("target closed"))
        manager = BrowserManager(mode="local", launcher=lambda mode: _ready(FakeBrowser(page)))

        async with manager.open_page() as opened:
            result = "html"

        assert opened is page
        assert result == "html"
        assert page.close_calls == 1

    @pytest.mark.asyncio
    async def test_cancel_during_close_propagates(self):
        page = SlowClosePage()
        manager = BrowserManager(mode="local", launcher=lambda mode: _ready(FakeBrowser(page)))

        async def render():
            async with manager.open_page():
                pass
            return "finished"

        task = asyncio.create_task(render())
        await page.closing.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        # The shielded close still completes in the background
        await asyncio.sleep(0.1)
        assert page.closed is True


class TestShutdown:
    @pytest.mark.asyncio
    async def test_shutdown_closes_browser(self):
        launcher = CountingLauncher()
        manager = BrowserManager(mode="local", launcher=launcher)
        browser = await manager.acquire()

        await manager.shutdown()

        assert browser.closed is True
        assert manager.is_ready is False

    @pytest.mark.asyncio
    async def test_shutdown_without_browser_is_noop(self):
        manager = BrowserManager(mode="local", launcher=CountingLauncher())
        await manager.shutdown()
        assert manager.is_ready is False

    @pytest.mark.asyncio
    async def test_shutdown_during_launch_closes_new_browser(self):
        launcher = CountingLauncher(delay=0.1)
        manager = BrowserManager(mode="local", launcher=launcher)

        acquiring = asyncio.create_task(manager.acquire())
        await asyncio.sleep(0.01)
        await manager.shutdown()
        browser = await acquiring

        assert browser.closed is True
        assert manager.is_ready is False

    @pytest.mark.asyncio
    async def test_shutdown_during_failing_launch(self):
        launcher = CountingLauncher(delay=0.05, errors=[RuntimeError("boom")])
        manager = BrowserManager(mode="local", launcher=launcher)

        acquiring = asyncio.create_task(manager.acquire())
        await asyncio.sleep(0.01)
        await manager.shutdown()

        with pytest.raises(BrowserLaunchError):
            await acquiring
        assert manager.is_ready is False


class TestAbandonedLaunch:
    @pytest.mark.asyncio
    async def test_failure_without_waiters_is_not_reported_unretrieved(self, caplog):
        launcher = CountingLauncher(delay=0.05, errors=[RuntimeError("boom")])
        manager = BrowserManager(mode="local", launcher=launcher)

        waiter = asyncio.create_task(manager.acquire())
        await asyncio.sleep(0.01)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        launch = manager._launch_future
        await asyncio.wait({launch})
        assert launch.done() and not launch.cancelled()

        # A fresh acquire replaces the failed launch; drop every reference to it
        await manager.acquire()
        del launch, waiter
        gc.collect()

        assert "exception was never retrieved" not in caplog.text


class TestLaunchOptions:
    def test_local_mode(self):
        options = get_launch_options("local", headless=False, executable_path="")
        assert options == {"headless": False, "args": LOCAL_CHROMIUM_ARGS}

    def test_serverless_mode_is_always_headless(self):
        options = get_launch_options("serverless", headless=False, executable_path="")
        assert options["headless"] is True
        assert options["args"] == SERVERLESS_CHROMIUM_ARGS
        assert "--single-process" in options["args"]
        assert "executable_path" not in options

    def test_executable_path(self):
        options = get_launch_options("serverless", executable_path="/opt/chromium")
        assert options["executable_path"] == "/opt/chromium"

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            get_launch_options("desktop")

    def test_mode_defaults_to_settings(self):
        from productlens.config import settings

        assert BrowserManager().mode == settings.BROWSER_MODE
        assert BrowserManager(mode="serverless").mode == "serverless"


async def _ready(value):
    return value
