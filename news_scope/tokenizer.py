"""
Query tokenizer.

Turns what the user types ("San José,  CR  sports") into raw tokens
(["San", "José", "CR", "sports"]) and a normalized form for each one
(["san", "jose", "cr", "sports"]).

The normalized form is the lookup key sent to the candidate search backends
AND the in-memory key used for exact-match detection, so `normalize` must stay
pure and deterministic. It mirrors `lower(unaccent(...))` on the database side.
"""

from __future__ import annotations

import re
import unicodedata

# Comma, dot, or any whitespace, one or more times
_SPLIT_RE = re.compile(r"[,.\s]+")

# Letters that generic accent stripping leaves untouched (ligatures, stroke
# letters, eszett, ...). Applied before decomposition, in order.
EXTRA_MAPS: tuple[tuple[str, str], ...] = (
    ("ß", "ss"),
    ("Æ", "ae"), ("æ", "ae"),
    ("Ø", "o"), ("ø", "o"),
    ("Ð", "d"), ("ð", "d"),
    ("Þ", "th"), ("þ", "th"),
    ("Ł", "l"), ("ł", "l"),
    ("İ", "i"), ("ı", "i"),
    ("Đ", "d"), ("đ", "d"),
    ("Ħ", "h"), ("ħ", "h"),
    ("Å", "a"), ("å", "a"),
    ("Ĳ", "ij"), ("ĳ", "ij"),
    ("Ǆ", "dz"), ("ǅ", "dz"), ("ǆ", "dz"),
    ("Ǉ", "lj"), ("ǈ", "lj"), ("ǉ", "lj"),
    ("Ǌ", "nj"), ("ǋ", "nj"), ("ǌ", "nj"),
    ("ŉ", "n"),
    ("Ŋ", "ng"), ("ŋ", "ng"),
    ("Ƒ", "f"), ("ƒ", "f"),
    ("Ğ", "g"), ("ğ", "g"),
    ("Ş", "s"), ("ş", "s"),
    ("Ə", "e"), ("ə", "e"),
    ("Ŀ", "l"), ("ŀ", "l"),
    ("·", ""),
    ("µ", "u"),
    ("ℓ", "l"),
    ("№", "No"),
    ("ª", "a"), ("º", "o"),
)


class QueryTokenizer:
    """Stateless; one instance can be shared by every request."""

    def split(self, text: str | None) -> list[str]:
        """Split on runs of comma/period/whitespace, keeping case and diacritics."""
        if not text or not text.strip():
            return []
        return [part.strip() for part in _SPLIT_RE.split(text) if part.strip()]

    def normalize(self, token: str | None) -> str:
        if not token:
            return ""
        folded = _strip_diacritics(_apply_extra_maps(token)).lower()
        # Decomposing or lowercasing can surface table letters (Ǿ -> ø, ẞ -> ß)
        return _apply_extra_maps(folded)

    def normalize_all(self, tokens: list[str]) -> list[str]:
        return [self.normalize(t) for t in tokens]


def _apply_extra_maps(text: str) -> str:
    for src, dst in EXTRA_MAPS:
        if src in text:
            text = text.replace(src, dst)
    return text


def _strip_diacritics(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text)
    kept = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    return unicodedata.normalize("NFC", kept)


default_tokenizer = QueryTokenizer()
