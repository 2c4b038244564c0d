"""Independent text extractors applied to one RawDocument.

Three strategies, each tolerant of any HTML (empty, malformed, shell pages):

- metadata: <title> and meta description (with Open Graph fallbacks)
- readability: main article body via readability-lxml
- dense block: the single longest <div>/<p> text, for pages built from many
  small containers with no article markup (typical product landing pages)

All three are CPU-bound and synchronous; ``run_extractors`` runs them
concurrently on a small thread pool.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from bs4 import BeautifulSoup
from readability import Document

logger = logging.getLogger(__name__)

# Readability output shorter than this is noise, not an article
MIN_READABILITY_LENGTH = 200
# Dense-block candidates must be longer than this
MIN_DENSE_BLOCK_LENGTH = 50

DENSE_BLOCK_TAGS = ["div", "p"]
NON_TEXT_TAGS = ["script", "style", "noscript", "template"]

# Thread pool for CPU-bound parsing
_extraction_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="extract")


@dataclass
class PageMetadata:
    title: str = ""
    description: str = ""


@dataclass
class ExtractionCandidates:
    """Raw extractor outputs for one document, before length filtering."""

    title: str = ""
    description: str = ""
    readability_text: str = ""
    dense_text: str = ""


def _meta_content(soup: BeautifulSoup, **attrs) -> str:
    tag = soup.find("meta", attrs=attrs)
    if tag is None:
        return ""
    return (tag.get("content") or "").strip()


def extract_metadata(html: str) -> PageMetadata:
    """Title and description; missing values are empty strings."""
    if not html:
        return PageMetadata()
    soup = BeautifulSoup(html, "lxml")

    title = ""
    title_tag = soup.find("title")
    if title_tag:
        title = title_tag.get_text(strip=True)
    if not title:
        title = _meta_content(soup, property="og:title")

    description = _meta_content(soup, name="description")
    if not description:
        description = _meta_content(soup, property="og:description")

    return PageMetadata(title=title, description=description)


def extract_readability_text(html: str) -> str:
    """Main-content text via readability-lxml, or "" when nothing article-like is found."""
    if not html:
        return ""
    try:
        summary = Document(html).summary(html_partial=True)
    except Exception as e:
        logger.debug(f"Readability extraction failed: {e}")
        return ""
    if not summary:
        return ""
    return BeautifulSoup(summary, "lxml").get_text("\n", strip=True)


def extract_dense_text(html: str) -> str:
    """Text of the longest <div>/<p> container, if it exceeds MIN_DENSE_BLOCK_LENGTH."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "lxml")
    for tag in soup.find_all(NON_TEXT_TAGS):
        tag.decompose()

    best_text = ""
    for element in soup.find_all(DENSE_BLOCK_TAGS):
        text = element.get_text(" ", strip=True)
        # Strictly greater: on ties the first (outermost) container wins
        if len(text) > MIN_DENSE_BLOCK_LENGTH and len(text) > len(best_text):
            best_text = text
    return best_text


async def run_extractors(html: str) -> ExtractionCandidates:
    """Run the three extractors concurrently and wait for all of them."""
    loop = asyncio.get_running_loop()
    metadata, readability_text, dense_text = await asyncio.gather(
        loop.run_in_executor(_extraction_executor, extract_metadata, html),
        loop.run_in_executor(_extraction_executor, extract_readability_text, html),
        loop.run_in_executor(_extraction_executor, extract_dense_text, html),
    )
    return ExtractionCandidates(
        title=metadata.title,
        description=metadata.description,
        readability_text=readability_text,
        dense_text=dense_text,
    )
