"""Schemas for the /extract endpoint."""

from pydantic import BaseModel, HttpUrl


class ExtractRequest(BaseModel):
    """Extract LLM-ready product text from a page URL."""

    url: HttpUrl


class ExtractData(BaseModel):
    url: str
    content: str
    content_length: int = 0
    source: str  # "static", "dynamic" or "none"


class ExtractResponse(BaseModel):
    """Response for /extract. On failure ``error`` holds the failure code."""

    success: bool
    data: ExtractData | None = None
    error: str | None = None
    message: str | None = None
