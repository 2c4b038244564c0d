"""URL -> LLM-ready text.

    static fetch -> classify -> [render in browser] -> extract (concurrent) -> merge & trim

Fallback failures (fetch errors, render timeouts, browser crashes) are
logged and absorbed: partial text is worth more to the summary step than an
error. The one failure that escapes is a browser that cannot be launched
when there is no static HTML at all to fall back to. An empty string is a
valid result; ``run_pipeline`` returns the diagnostics a caller needs to tell
"blocked" apart from "no text".
"""

import logging
import time
from dataclasses import dataclass

from playwright.async_api import Error as PlaywrightError

from productlens.core.exceptions import BrowserLaunchError, RenderTimeoutError
from productlens.core.metrics import (
    pipeline_duration_seconds,
    pipeline_runs_total,
    render_failures_total,
)
from productlens.services.browser import BrowserManager
from productlens.services.classifier import looks_like_dynamic_shell
from productlens.services.extractors import run_extractors
from productlens.services.fetcher import fetch_static_with_status
from productlens.services.preprocess import preprocess
from productlens.services.renderer import render_dynamic

logger = logging.getLogger(__name__)

SOURCE_STATIC = "static"
SOURCE_DYNAMIC = "dynamic"
SOURCE_NONE = "none"


@dataclass
class PipelineResult:
    text: str
    source: str = SOURCE_NONE  # which RawDocument was used
    static_status: int = 0  # HTTP status of the static fetch, 0 if none
    static_error: str | None = None
    render_error: str | None = None


async def _render_or_none(
    url: str, manager: BrowserManager | None, result: PipelineResult
) -> str | None:
    try:
        return await render_dynamic(url, manager=manager)
    except BrowserLaunchError:
        render_failures_total.labels(kind="launch").inc()
        raise
    except RenderTimeoutError as e:
        render_failures_total.labels(kind="timeout").inc()
        result.render_error = str(e)
    except PlaywrightError as e:
        kind = "timeout" if "timeout" in str(e).lower() else "browser"
        render_failures_total.labels(kind=kind).inc()
        result.render_error = str(e)
    except Exception as e:
        render_failures_total.labels(kind="other").inc()
        result.render_error = f"{type(e).__name__}: {e}"
    logger.warning(f"Dynamic render failed for {url}: {result.render_error}")
    return None


async def run_pipeline(url: str, manager: BrowserManager | None = None) -> PipelineResult:
    """Run the full extraction and return text plus diagnostics."""
    started = time.monotonic()
    result = PipelineResult(text="")

    fetched = await fetch_static_with_status(url)
    result.static_status = fetched.status_code
    result.static_error = fetched.error

    html = fetched.html or ""
    result.source = SOURCE_STATIC if html else SOURCE_NONE

    if looks_like_dynamic_shell(fetched.html):
        logger.info(f"Static HTML for {url} looks like a client-rendered shell, rendering")
        try:
            rendered = await _render_or_none(url, manager, result)
        except BrowserLaunchError as e:
            if not html:
                raise
            result.render_error = str(e)
            logger.warning(
                f"Browser unavailable for {url}, continuing with static HTML: {e}"
            )
            rendered = None
        if rendered:
            html = rendered
            result.source = SOURCE_DYNAMIC

    candidates = await run_extractors(html)
    result.text = preprocess(candidates)

    pipeline_runs_total.labels(source=result.source).inc()
    pipeline_duration_seconds.observe(time.monotonic() - started)
    logger.info(
        f"Extracted {len(result.text)} chars from {url} "
        f"(source={result.source}, static_status={result.static_status})"
    )
    return result


async def extract_and_preprocess_url(url: str, manager: BrowserManager | None = None) -> str:
    """Bounded, cleaned page text for ``url`` (may be empty)."""
    result = await run_pipeline(url, manager=manager)
    return result.text
