"""Map pipeline outcomes and errors to user-facing failure codes.

The pipeline itself never reports "blocked": a 403 on the static fetch
followed by a failed render simply yields little or no text. Callers
combine the text with the fetch status from ``PipelineResult`` to decide
whether to ask the user to type the product details in by hand or to retry.
"""

from productlens.services.pipeline import PipelineResult

BOT_BLOCKED = "BOT_BLOCKED"
EMPTY_CONTENT = "EMPTY_CONTENT"
TIMEOUT = "TIMEOUT"
SERVER_ERROR = "SERVER_ERROR"

# Below this, the text is too thin to summarize
MIN_USABLE_CONTENT_LENGTH = 20

BLOCKING_STATUS_CODES = frozenset({403, 429})

_BLOCK_SIGNATURES = (
    "403",
    "429",
    "forbidden",
    "access denied",
    "too many requests",
    "captcha",
    "cloudflare",
    "err_blocked_by_client",
)

_TIMEOUT_SIGNATURES = ("timeout", "timed out")

USER_MESSAGES = {
    BOT_BLOCKED: (
        "This site's security policy prevents automatic analysis. "
        "Please enter the product details manually."
    ),
    EMPTY_CONTENT: (
        "We couldn't find enough product information on this page. "
        "Please enter the product details manually."
    ),
    TIMEOUT: "The page took too long to load. Please try again.",
    SERVER_ERROR: "A temporary server problem occurred. Please try again.",
}


def classify_failure(error: str | None, status_code: int = 0) -> str:
    """Classify an exception message (and optional HTTP status) into a failure code."""
    if status_code in BLOCKING_STATUS_CODES:
        return BOT_BLOCKED

    err_lower = (error or "").lower()
    if any(sig in err_lower for sig in _BLOCK_SIGNATURES):
        return BOT_BLOCKED
    if any(sig in err_lower for sig in _TIMEOUT_SIGNATURES):
        return TIMEOUT
    return SERVER_ERROR


def classify_result(result: PipelineResult) -> str | None:
    """None when the text is usable, otherwise BOT_BLOCKED or EMPTY_CONTENT."""
    if len(result.text.strip()) >= MIN_USABLE_CONTENT_LENGTH:
        return None
    if result.static_status in BLOCKING_STATUS_CODES:
        return BOT_BLOCKED
    return EMPTY_CONTENT
