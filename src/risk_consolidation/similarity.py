"""Similarity scoring between two risk records.

The overall score is a weighted combination of three field-level scores:

- **title**: Jaccard overlap of normalized title tokens
- **description**: Jaccard overlap of normalized description tokens
- **category**: 1.0 for an exact (case/punctuation-insensitive) match,
  :data:`ALIAS_MATCH_SCORE` when both categories fall in a shared alias
  group, otherwise 0.0

All measures are symmetric, so ``score_risks(a, b) == score_risks(b, a)``.
Nothing here raises: missing or malformed fields score 0 for that field.

Typical usage::

    details = score_risks(template_risk, general_risk, DuplicationConfig())
    print(f"{details.overall_similarity:.0%}")
"""

from __future__ import annotations

from .config import DuplicationConfig
from .models import ComparisonDetails, Risk
from .preprocessing import jaccard, normalize_label, tokenize

ALIAS_MATCH_SCORE = 0.5

# Categories are open vocabulary; each group lists labels that describe the
# same area of a contract.
CATEGORY_ALIAS_GROUPS: tuple[frozenset[str], ...] = (
    frozenset({"payment", "payment terms", "payments", "compensation", "fees", "pricing",
               "invoicing", "billing"}),
    frozenset({"termination", "term and termination", "termination rights", "exit",
               "renewal", "term"}),
    frozenset({"liability", "limitation of liability", "liability limitations",
               "indemnification", "indemnity", "insurance"}),
    frozenset({"confidentiality", "non disclosure", "nda", "data protection", "privacy",
               "data privacy", "security"}),
    frozenset({"intellectual property", "ip", "ip rights", "ownership", "license",
               "licensing"}),
    frozenset({"non compete", "restrictive covenants", "non solicitation", "exclusivity"}),
    frozenset({"dispute resolution", "governing law", "jurisdiction", "arbitration"}),
    frozenset({"service level agreement", "service levels", "sla", "slas", "performance",
               "availability"}),
    frozenset({"compliance", "regulatory", "regulatory compliance", "legal compliance"}),
    frozenset({"warranty", "warranties", "representations", "warranty disclaimers"}),
    frozenset({"scope", "scope of work", "deliverables", "services"}),
)


def clamp(value: float) -> float:
    """Clamp *value* into [0.0, 1.0]."""
    if value != value:  # NaN
        return 0.0
    return max(0.0, min(1.0, value))


def text_similarity(text_a: object, text_b: object) -> float:
    """Jaccard similarity of two free-text values (0.0 -- 1.0)."""
    return clamp(jaccard(tokenize(text_a), tokenize(text_b)))


def alias_groups(category: object) -> frozenset[int]:
    """Indices of the alias groups a category belongs to.

    A category joins a group when its normalized label is one of the
    group's aliases, or when it is a compound label (``"Liability &
    Indemnification"``) containing an alias as a whole phrase.
    """
    label = normalize_label(category)
    if not label:
        return frozenset()
    padded = f" {label} "
    groups = set()
    for index, group in enumerate(CATEGORY_ALIAS_GROUPS):
        if label in group or any(f" {alias} " in padded for alias in group):
            groups.add(index)
    return frozenset(groups)


def category_similarity(category_a: object, category_b: object) -> float:
    """1.0 exact match, :data:`ALIAS_MATCH_SCORE` alias match, else 0.0."""
    label_a = normalize_label(category_a)
    label_b = normalize_label(category_b)
    if not label_a or not label_b:
        return 0.0
    if label_a == label_b:
        return 1.0
    if alias_groups(label_a) & alias_groups(label_b):
        return ALIAS_MATCH_SCORE
    return 0.0


def score_risks(a: Risk, b: Risk, config: DuplicationConfig) -> ComparisonDetails:
    """Compute field-level and weighted overall similarity of two risks.

    Args:
        a: First risk.
        b: Second risk.
        config: Supplies the (normalized) field weights.

    Returns:
        :class:`ComparisonDetails` with every score in [0.0, 1.0].
    """
    title = text_similarity(getattr(a, "title", None), getattr(b, "title", None))
    description = text_similarity(
        getattr(a, "description", None), getattr(b, "description", None)
    )
    category = category_similarity(getattr(a, "category", None), getattr(b, "category", None))

    total = config.title_weight + config.description_weight + config.category_weight
    weighted = (
        config.title_weight * title
        + config.description_weight * description
        + config.category_weight * category
    )
    overall = clamp(weighted / total)

    return ComparisonDetails(
        title_similarity=title,
        description_similarity=description,
        category_similarity=category,
        overall_similarity=overall,
    )
