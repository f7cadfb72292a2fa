"""Text normalization for scraped captions and video transcripts."""

from __future__ import annotations

import math
import re
from collections import Counter

_HORIZONTAL_WS_RE = re.compile(r"[^\S\n]+")
_NEWLINE_RUN_RE = re.compile(r" *\n[ \n]*")

# [00:01:23], [01:23], (01:23), (00:01:23)
_TIMESTAMP_RE = re.compile(r"\[\d{1,2}:\d{2}(?::\d{2})?\]|\(\d{1,2}:\d{2}(?::\d{2})?\)")

# "Speaker 2:", "Host:", "Jane Doe:" at the start of a line
_SPEAKER_RE = re.compile(
    r"^[ \t]*(?:Speaker \d+|[A-Z][\w'.-]*(?: [A-Z][\w'.-]*)?):[ \t]*",
    re.MULTILINE,
)

_STOP_WORDS: frozenset[str] = frozenset(
    [
        "a", "an", "the", "and", "or", "but", "if", "because", "as", "what",
        "which", "this", "that", "these", "those", "then", "just", "so", "than",
        "such", "both", "through", "about", "for", "is", "of", "while", "during",
        "to", "from", "in", "out", "on", "off", "with",
    ]
)


def clean(text: str) -> str:
    """Collapse whitespace runs and trim.

    Carriage returns are removed, runs of spaces/tabs become one space, runs
    of newlines (with any spaces around them) become one newline. Applying
    ``clean`` twice gives the same result as applying it once.
    """
    if not text:
        return ""
    text = text.replace("\r", "")
    text = _HORIZONTAL_WS_RE.sub(" ", text)
    text = _NEWLINE_RUN_RE.sub("\n", text)
    return text.strip()


def clean_transcript(text: str) -> str:
    """Remove timestamp markers and leading speaker labels, then ``clean``."""
    if not text:
        return ""
    text = _TIMESTAMP_RE.sub("", text.replace("\r", ""))
    text = _SPEAKER_RE.sub("", text)
    return clean(text)


def estimate_token_count(text: str) -> int:
    """Approximate token count: ``ceil(len(text) / 4)``, 0 for empty text."""
    if not text:
        return 0
    return math.ceil(len(text) / 4)


def extract_keywords(text: str, max_keywords: int = 10) -> list[str]:
    """Return the most frequent non-stop-words in *text* (most frequent first)."""
    if not text:
        return []
    words = re.sub(r"[^\w\s]", "", text.lower()).split()
    counts = Counter(w for w in words if len(w) > 2 and w not in _STOP_WORDS)
    return [word for word, _ in counts.most_common(max_keywords)]
