"""Text normalization and tokenization for risk comparison.

Every similarity measure in the package goes through :func:`tokenize` so
that both sides of a comparison are reduced to the same vocabulary:

- Unicode compatibility folding (accents stripped, smart quotes flattened)
- lowercase alphanumeric word tokens (punctuation and hyphens split words)
- English stopword removal
- light suffix stemming (``delayed`` -> ``delay``, ``terms`` -> ``term``)

No external NLP libraries required.
"""

from __future__ import annotations

import re
import unicodedata

# English stopwords that carry no signal when comparing risk wording
STOP_WORDS: frozenset[str] = frozenset(
    {
        "a",
        "an",
        "the",
        "and",
        "or",
        "but",
        "in",
        "on",
        "at",
        "to",
        "for",
        "of",
        "with",
        "by",
        "from",
        "as",
        "is",
        "was",
        "are",
        "were",
        "be",
        "been",
        "being",
        "have",
        "has",
        "had",
        "do",
        "does",
        "did",
        "will",
        "would",
        "could",
        "should",
        "may",
        "might",
        "shall",
        "can",
        "must",
        "not",
        "no",
        "nor",
        "so",
        "if",
        "then",
        "than",
        "that",
        "which",
        "this",
        "these",
        "those",
        "it",
        "its",
        "he",
        "she",
        "they",
        "you",
        "your",
        "after",
        "before",
        "between",
        "during",
        "into",
        "through",
        "under",
        "until",
        "up",
        "out",
        "over",
        "here",
        "there",
    }
)

_WORD_RE = re.compile(r"[a-z0-9]+")
_PUNCT_RE = re.compile(r"[^a-z0-9]+")


def fold(text: object) -> str:
    """Lowercase ASCII-folded form of *text*; non-strings fold to ``""``."""
    if not isinstance(text, str) or not text:
        return ""
    text = unicodedata.normalize("NFKD", text)
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    return text.lower()


def stem(token: str) -> str:
    """Strip common English inflection suffixes.

    Deliberately conservative: only plural and past/progressive forms are
    reduced, and short words are left alone.
    """
    if len(token) > 4 and token.endswith("ies"):
        return token[:-3] + "y"
    if len(token) > 5 and token.endswith("ing"):
        return token[:-3]
    if len(token) > 4 and token.endswith("ed"):
        return token[:-2]
    if len(token) > 3 and token.endswith("s") and not token.endswith(("ss", "us", "is")):
        return token[:-1]
    return token


def tokenize(text: object) -> frozenset[str]:
    """Return the normalized token set of *text*.

    Stopwords are dropped unless the text consists only of stopwords, in
    which case the raw words are kept so that e.g. a title of ``"Other"``
    still compares equal to itself.

    Args:
        text: Any value. Non-string and empty values yield an empty set.

    Returns:
        Frozen set of stemmed lowercase tokens.
    """
    words = _WORD_RE.findall(fold(text))
    if not words:
        return frozenset()
    content = [w for w in words if w not in STOP_WORDS] or words
    return frozenset(stem(w) for w in content)


def normalize_label(text: object) -> str:
    """Collapse a short label (e.g. a category) to ``"word word"`` form.

    Case, punctuation, hyphens and repeated whitespace are all ignored, so
    ``"Non-Compete"`` and ``"non  compete"`` normalize identically.
    """
    return _PUNCT_RE.sub(" ", fold(text)).strip()


def jaccard(tokens_a: frozenset[str], tokens_b: frozenset[str]) -> float:
    """Jaccard overlap (|A & B| / |A | B|) of two token sets.

    Returns 0.0 when either set is empty.
    """
    if not tokens_a or not tokens_b:
        return 0.0
    return len(tokens_a & tokens_b) / len(tokens_a | tokens_b)
