"""
FairReview Context Extractor Module
===================================
Extracts the sentence-bounded snippet around a match for citation.
"""

import re

from core.config import SENTENCE_BOUNDARIES, SENTENCE_TERMINATORS

MAX_CONTEXT_LENGTH = 200
ELLIPSIS = "..."

_BOUNDARY = re.compile("[" + "".join(sorted(SENTENCE_BOUNDARIES)) + "]")
_SENTENCE = re.compile("[^" + "".join(sorted(SENTENCE_BOUNDARIES)) + "]+")


def sentence_spans(document: str):
    """Yield ``(start, end, text)`` for each run of text between sentence boundaries."""
    for match in _SENTENCE.finditer(document):
        yield match.start(), match.end(), match.group(0)


def extract_context(
    document: str,
    match_start: int,
    match_text: str,
    max_length: int = MAX_CONTEXT_LENGTH
) -> str:
    """
    Return the sentence containing a match, trimmed of whitespace.

    The span runs back to the previous sentence terminator or line break
    (exclusive) or document start, and forward to the next terminator
    (inclusive), line break (exclusive) or document end. A span longer
    than ``max_length`` is re-centered on the match, keeping up to
    ``max_length // 2`` characters on each side and marking every
    truncated side with an ellipsis.

    Args:
        document: Full document text
        match_start: Index of the match in ``document``
        match_text: The matched text
        max_length: Longest snippet returned without truncation

    Returns:
        Snippet that always contains the matched text
    """
    length = len(document)
    match_start = min(max(match_start, 0), length)
    match_end = min(match_start + len(match_text), length)

    start = max(document.rfind(mark, 0, match_start) for mark in SENTENCE_BOUNDARIES) + 1

    boundary = _BOUNDARY.search(document, match_end)
    if boundary is None:
        end = length
    elif boundary.group(0) in SENTENCE_TERMINATORS:
        end = boundary.end()  # keep the terminator
    else:
        end = boundary.start()

    raw = document[start:end]
    context = raw.strip()
    if len(context) <= max_length:
        return context

    # Position of the match inside the trimmed span
    leading = len(raw) - len(raw.lstrip())
    offset = max(0, match_start - start - leading)
    half = max_length // 2

    window_start = max(0, offset - half)
    window_end = min(len(context), offset + len(match_text) + half)

    snippet = context[window_start:window_end].strip()
    if window_start > 0:
        snippet = ELLIPSIS + snippet
    if window_end < len(context):
        snippet = snippet + ELLIPSIS
    return snippet
