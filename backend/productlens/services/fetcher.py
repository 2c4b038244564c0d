import asyncio
import logging
import random
from dataclasses import dataclass

import httpx

from productlens.config import settings
from productlens.core.metrics import static_fetch_total

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Header rotation - realistic desktop browser identities
# ---------------------------------------------------------------------------

_HEADER_ROTATION_POOL = [
    # Chrome 124 on Windows
    {
        "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9,ko;q=0.8",
        "Sec-Ch-Ua": '"Chromium";v="124", "Google Chrome";v="124", "Not-A.Brand";v="99"',
        "Sec-Ch-Ua-Mobile": "?0",
        "Sec-Ch-Ua-Platform": '"Windows"',
        "Sec-Fetch-Dest": "document",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-Site": "none",
        "Sec-Fetch-User": "?1",
        "Upgrade-Insecure-Requests": "1",
    },
    # Chrome 125 on macOS
    {
        "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36",
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9,ko;q=0.8",
        "Sec-Ch-Ua": '"Chromium";v="125", "Google Chrome";v="125", "Not-A.Brand";v="99"',
        "Sec-Ch-Ua-Mobile": "?0",
        "Sec-Ch-Ua-Platform": '"macOS"',
        "Sec-Fetch-Dest": "document",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-Site": "none",
        "Sec-Fetch-User": "?1",
        "Upgrade-Insecure-Requests": "1",
    },
    # Firefox 126 on Windows
    {
        "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:126.0) Gecko/20100101 Firefox/126.0",
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
        "Sec-Fetch-Dest": "document",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-Site": "none",
        "Sec-Fetch-User": "?1",
        "Upgrade-Insecure-Requests": "1",
    },
]


@dataclass
class StaticFetchResult:
    """Outcome of a plain GET. ``html`` is None unless the response was 2xx."""

    html: str | None
    status_code: int = 0  # 0 when no response was received
    error: str | None = None


# ---------------------------------------------------------------------------
# Shared client - reused across requests, recreated per event loop
# ---------------------------------------------------------------------------

_http_client: httpx.AsyncClient | None = None
_http_loop_id: int | None = None


def _get_http_client() -> httpx.AsyncClient:
    """Get or create the shared httpx client for the running event loop."""
    global _http_client, _http_loop_id
    current_loop_id = id(asyncio.get_running_loop())
    if (
        _http_client is None
        or _http_client.is_closed
        or _http_loop_id != current_loop_id
    ):
        _http_client = httpx.AsyncClient(follow_redirects=True, http2=True)
        _http_loop_id = current_loop_id
    return _http_client


async def close_http_client() -> None:
    global _http_client, _http_loop_id
    if _http_client is not None:
        try:
            await _http_client.aclose()
        except Exception as e:
            logger.debug(f"httpx client close failed: {e}")
        _http_client = None
        _http_loop_id = None


async def fetch_static_with_status(
    url: str,
    timeout: float | None = None,
    client: httpx.AsyncClient | None = None,
) -> StaticFetchResult:
    """GET ``url`` and report the body, status code and error text.

    Never raises for network or HTTP errors.
    """
    client = client or _get_http_client()
    headers = random.choice(_HEADER_ROTATION_POOL).copy()
    timeout = settings.STATIC_FETCH_TIMEOUT if timeout is None else timeout

    try:
        response = await client.get(url, headers=headers, timeout=timeout)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        static_fetch_total.labels(status="error").inc()
        error = f"{type(e).__name__}: {e}"
        logger.warning(f"Static fetch failed for {url}: {error}")
        return StaticFetchResult(html=None, status_code=0, error=error)

    if not response.is_success:
        static_fetch_total.labels(status=str(response.status_code)).inc()
        logger.warning(f"Static fetch for {url} returned HTTP {response.status_code}")
        return StaticFetchResult(
            html=None,
            status_code=response.status_code,
            error=f"HTTP {response.status_code}",
        )

    static_fetch_total.labels(status="ok").inc()
    return StaticFetchResult(html=response.text, status_code=response.status_code)


async def fetch_static(url: str, timeout: float | None = None) -> str | None:
    """Cheapest retrieval: HTML on 2xx, otherwise None."""
    result = await fetch_static_with_status(url, timeout=timeout)
    return result.html
