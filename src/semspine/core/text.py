"""
Text handling shared by the corpus reader, the cascade and the cache.

Tokenization is deliberately simple and deterministic: the job cursor
``(song_index, word_index)`` indexes into exactly the token list produced
here, so any change to :func:`tokenize` changes what a persisted cursor
points at.

Context windows are clamped at song boundaries: the first word of a song
has no left context, the last has no right context. The window shrinks;
it never wraps into the neighboring song and never raises.
"""

from __future__ import annotations

import re
import unicodedata

_NON_WORD = re.compile(r"[^\w\s]|_", re.UNICODE)
_CONTROL = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F]")

DEFAULT_MAX_LENGTH = 2_000_000


def sanitize_text(value: str | None, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """Strip NUL and control characters (keeping ``\\n``/``\\t``), trim, cap length."""
    if not value:
        return ""
    cleaned = _CONTROL.sub(" ", value.replace("\x00", "")).strip()
    return cleaned[:max_length]


def normalize_word(word: str) -> str:
    """Lowercase and strip diacritics: ``"Tchê"`` → ``"tche"``."""
    decomposed = unicodedata.normalize("NFD", word.lower().strip())
    return "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")


def tokenize(text: str | None) -> list[str]:
    """Lowercase, turn punctuation into spaces, split on whitespace."""
    if not text:
        return []
    return _NON_WORD.sub(" ", sanitize_text(text).lower()).split()


def context_window(tokens: list[str], index: int, size: int) -> tuple[list[str], list[str]]:
    """Return the ``size`` tokens left and right of ``tokens[index]``, clamped."""
    if not 0 <= index < len(tokens):
        raise IndexError(f"token index {index} outside 0..{len(tokens) - 1}")
    left = tokens[max(0, index - size):index]
    right = tokens[index + 1:index + 1 + size]
    return left, right


def kwic(left: list[str], word: str, right: list[str]) -> str:
    """Key-word-in-context line, with the word in brackets."""
    return " ".join([*left, f"[{word}]", *right])
