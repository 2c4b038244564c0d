"""Decide whether statically fetched HTML is usable or a client-rendered shell."""

import re

# Below this many characters the document cannot carry real content
MIN_STATIC_HTML_LENGTH = 2000
# More script tags than this suggests a bundle-driven page
MAX_STATIC_SCRIPT_TAGS = 20

HYDRATION_MARKERS = (
    # Framework mount points
    re.compile(r"""<div[^>]*\bid\s*=\s*["'](?:root|app|__next|__nuxt)["']""", re.IGNORECASE),
    # Embedded framework state blobs
    re.compile(r"__NEXT_DATA__"),
    re.compile(r"window\.__NUXT__"),
    re.compile(r"window\.__INITIAL_STATE__"),
    # React / Angular render attributes
    re.compile(r"\bdata-reactroot\b", re.IGNORECASE),
    re.compile(r"\bng-version\s*=", re.IGNORECASE),
)

_SCRIPT_TAG = re.compile(r"<script\b", re.IGNORECASE)


def has_hydration_marker(html: str) -> bool:
    return any(marker.search(html) for marker in HYDRATION_MARKERS)


def count_script_tags(html: str) -> int:
    return len(_SCRIPT_TAG.findall(html))


def looks_like_dynamic_shell(html: str | None) -> bool:
    """True when the page needs a browser render to expose its text."""
    if not html:
        return True
    if len(html) < MIN_STATIC_HTML_LENGTH:
        return True
    if has_hydration_marker(html):
        return True
    return count_script_tags(html) > MAX_STATIC_SCRIPT_TAGS
