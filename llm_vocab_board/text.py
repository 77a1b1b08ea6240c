"""
Text heuristics for captured selections.

A selection is either a single vocabulary item (a word or short phrase) or a
sentence. Terminal punctuation or six or more word tokens make a sentence,
everything else is a word.
"""

import re
from enum import Enum
from typing import List

MAX_WORD_LENGTH = 200
SENTENCE_MIN_TOKENS = 6

_TOKEN_RE = re.compile(r"[A-Za-z][A-Za-z'-]*")
_SENTENCE_PUNCT_RE = re.compile(r"[.!?。！？]")
_WORD_RE = re.compile(r"^[A-Za-z][A-Za-z\-']{0,49}$")
_WHITESPACE_RE = re.compile(r"\s")


class ValidationError(ValueError):
    """Raised for selections that cannot be captured at all."""


class Kind(str, Enum):
    WORD = "word"
    SENTENCE = "sentence"


def normalize(text: str) -> str:
    return (text or "").strip()


def normalize_word(text: str) -> str:
    """Storage key for a word: trimmed, lowercased, clipped to 200 chars."""
    return normalize(text).lower()[:MAX_WORD_LENGTH]


def same_text(a: str, b: str) -> bool:
    """Case- and surrounding-whitespace-insensitive comparison."""
    return normalize(a).lower() == normalize(b).lower()


def tokenize(text: str) -> List[str]:
    """Lowercase word tokens in first-occurrence order, without repeats."""
    return list(dict.fromkeys(t.lower() for t in _TOKEN_RE.findall(text or "")))


def is_sentence(text: str) -> bool:
    t = normalize(text)
    return bool(_SENTENCE_PUNCT_RE.search(t)) or len(tokenize(t)) >= SENTENCE_MIN_TOKENS


def classify(text: str) -> Kind:
    """Classify a non-empty selection as a word or a sentence.

    Punctuation wins over the token-count threshold, so ``"why?"`` is a
    sentence even though it has a single token.
    """
    t = normalize(text)
    if not t:
        raise ValidationError("Cannot classify an empty selection")
    return Kind.SENTENCE if is_sentence(t) else Kind.WORD


def is_word(text: str) -> bool:
    """Strict single-word check: a letter followed by up to 49 letters,
    hyphens or apostrophes, and no whitespace anywhere."""
    t = normalize(text)
    if not t or _WHITESPACE_RE.search(t):
        return False
    return bool(_WORD_RE.match(t))
