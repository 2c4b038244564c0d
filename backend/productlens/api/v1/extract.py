"""Product page extraction endpoint used by the summary step of the funnel."""

import asyncio
import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from productlens.config import settings
from productlens.core.exceptions import BrowserLaunchError
from productlens.core.metrics import extract_requests_total
from productlens.schemas.extract import ExtractData, ExtractRequest, ExtractResponse
from productlens.services.failure import (
    BOT_BLOCKED,
    EMPTY_CONTENT,
    SERVER_ERROR,
    TIMEOUT,
    USER_MESSAGES,
    classify_failure,
    classify_result,
)
from productlens.services.pipeline import run_pipeline

router = APIRouter()
logger = logging.getLogger(__name__)

_STATUS_BY_CODE = {
    BOT_BLOCKED: 403,
    EMPTY_CONTENT: 422,
    TIMEOUT: 504,
    SERVER_ERROR: 500,
}


def _failure(code: str) -> JSONResponse:
    extract_requests_total.labels(result=code).inc()
    body = ExtractResponse(success=False, error=code, message=USER_MESSAGES[code])
    return JSONResponse(
        status_code=_STATUS_BY_CODE[code], content=body.model_dump(exclude_none=True)
    )


@router.post(
    "",
    response_model=ExtractResponse,
    response_model_exclude_none=True,
    summary="Extract product page text",
    description="Fetch a product page (rendering it in a headless browser when it is a client-side app) and return cleaned text of at most ~4000 characters, ready for a summarization prompt. Sites that block automated access return 403 with error BOT_BLOCKED; pages without usable text return 422 with EMPTY_CONTENT.",
)
async def extract(request: ExtractRequest):
    url = str(request.url)

    try:
        result = await asyncio.wait_for(
            run_pipeline(url), timeout=settings.EXTRACT_API_TIMEOUT
        )
    except asyncio.TimeoutError:
        logger.warning(f"Extraction timed out after {settings.EXTRACT_API_TIMEOUT}s for {url}")
        return _failure(TIMEOUT)
    except BrowserLaunchError as e:
        logger.error(f"Extraction failed for {url}: {e}")
        return _failure(SERVER_ERROR)
    except Exception as e:
        logger.exception(f"Unexpected extraction error for {url}")
        return _failure(classify_failure(str(e)))

    code = classify_result(result)
    if code is not None:
        logger.info(
            f"No usable text for {url} (code={code}, static_status={result.static_status}, "
            f"render_error={result.render_error})"
        )
        return _failure(code)

    extract_requests_total.labels(result="ok").inc()
    return ExtractResponse(
        success=True,
        data=ExtractData(
            url=url,
            content=result.text,
            content_length=len(result.text),
            source=result.source,
        ),
    )
