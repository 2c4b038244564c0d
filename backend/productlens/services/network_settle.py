"""In-flight request tracking for "network settled" detection.

Playwright's ``networkidle`` waits for zero connections, which never happens
on pages holding long-poll or websocket-style connections. This tracker
counts in-flight requests from page events and resolves once the count has
stayed at or below a small threshold for a quiet period.
"""
from __future__ import annotations

import asyncio
import logging
import time

logger = logging.getLogger(__name__)


class InflightTracker:
    """Attaches to a Playwright page and counts unfinished requests.

    Usage:
        tracker = InflightTracker()
        tracker.attach(page)
        await page.goto(url, wait_until="domcontentloaded")
        await tracker.wait_for_settle(max_inflight=2, quiet_ms=500, timeout=10)
    """

    def __init__(self):
        self._inflight: set = set()
        self._last_change = time.monotonic()
        self._changed = asyncio.Event()
        self._page = None

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    def attach(self, page) -> None:
        """Attach listeners to a Playwright page."""
        self._page = page
        page.on("request", self._on_request)
        page.on("requestfinished", self._on_done)
        page.on("requestfailed", self._on_done)

    def detach(self) -> None:
        """Remove listeners (best-effort)."""
        page, self._page = self._page, None
        if page is None:
            return
        for event, handler in (
            ("request", self._on_request),
            ("requestfinished", self._on_done),
            ("requestfailed", self._on_done),
        ):
            try:
                page.remove_listener(event, handler)
            except Exception:
                logger.debug(f"Could not remove {event} listener", exc_info=True)

    def _on_request(self, request) -> None:
        self._inflight.add(request)
        self._touch()

    def _on_done(self, request) -> None:
        self._inflight.discard(request)
        self._touch()

    def _touch(self) -> None:
        self._last_change = time.monotonic()
        self._changed.set()

    async def wait_for_settle(
        self, max_inflight: int, quiet_ms: int, timeout: float
    ) -> None:
        """Wait until <= max_inflight requests have been pending for quiet_ms.

        Raises:
            asyncio.TimeoutError: not settled within ``timeout`` seconds.
        """
        await asyncio.wait_for(self._settled(max_inflight, quiet_ms / 1000), timeout)

    async def _settled(self, max_inflight: int, quiet: float) -> None:
        # Counting starts now: whatever was pending before had its chance
        self._last_change = time.monotonic()
        while True:
            if self.inflight <= max_inflight:
                remaining = quiet - (time.monotonic() - self._last_change)
                if remaining <= 0:
                    return
            else:
                remaining = None
            self._changed.clear()
            try:
                await asyncio.wait_for(self._changed.wait(), remaining)
            except asyncio.TimeoutError:
                continue
