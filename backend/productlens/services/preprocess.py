import re

from productlens.services.extractors import (
    ExtractionCandidates,
    MIN_DENSE_BLOCK_LENGTH,
    MIN_READABILITY_LENGTH,
)

# Model-input budget in characters
MAX_CHARS = 4000
# Marks where the middle of an over-long text was cut
ELISION_MARKER = "\n...\n"

_MULTI_NEWLINE = re.compile(r"\n{2,}")


def collect_candidates(candidates: ExtractionCandidates) -> list[str]:
    """Surviving candidates in priority order: title, description, article, dense block."""
    texts = [candidates.title, candidates.description]
    if len(candidates.readability_text) > MIN_READABILITY_LENGTH:
        texts.append(candidates.readability_text)
    if len(candidates.dense_text) > MIN_DENSE_BLOCK_LENGTH:
        texts.append(candidates.dense_text)
    return [text for text in texts if text]


def merge_and_clean(texts: list[str]) -> str:
    merged = "\n\n".join(text for text in texts if text)
    return _MULTI_NEWLINE.sub("\n", merged).strip()


def trim_for_llm(text: str, max_length: int = MAX_CHARS) -> str:
    """Keep the head and tail halves of an over-long text, eliding the middle.

    Openings (title, hero copy) and endings (calls to action) carry more
    signal for marketing copy than the middle of a page.
    """
    if len(text) <= max_length:
        return text
    half = max_length // 2
    return text[:half] + ELISION_MARKER + text[-half:]


def preprocess(candidates: ExtractionCandidates) -> str:
    return trim_for_llm(merge_and_clean(collect_candidates(candidates)))
