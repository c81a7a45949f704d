"""Duplicate-detection reporting and threshold tuning advice.

Summarizes a batch of :class:`DuplicationDetection` results: how many
incoming risks were filtered as duplicates, how similarity is distributed
across severities and categories, and whether the configured threshold
looks too strict or too lax for the data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Sequence

from .config import DuplicationConfig
from .models import DuplicationDetection, Severity

# Filter rate above which the threshold is probably too low
HIGH_FILTER_RATE = 0.5
# Average similarity below which incoming risks are clearly distinct
LOW_AVERAGE_SIMILARITY = 0.3


@dataclass(frozen=True)
class ThresholdRecommendation:
    """Advice about the configured similarity threshold."""

    type: Literal["warning", "info"]
    message: str
    suggested_threshold: float | None = None

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "message": self.message,
            "suggested_threshold": (
                round(self.suggested_threshold, 2) if self.suggested_threshold is not None else None
            ),
        }


@dataclass
class DetectionReport:
    """Aggregate statistics over one detection batch.

    Attributes:
        total: Number of incoming risks classified.
        duplicates: How many were classified as duplicates.
        unique: How many were kept.
        average_similarity: Mean best-match score (0.0 for an empty batch).
        severity_breakdown: ``{severity: {"total": n, "filtered": m}}``.
        category_breakdown: Per incoming category, total and filtered
            counts, in first-seen order.
        recommendations: Threshold tuning advice.
        threshold: The threshold the batch was classified with.
    """

    total: int = 0
    duplicates: int = 0
    unique: int = 0
    average_similarity: float = 0.0
    severity_breakdown: dict[str, dict[str, int]] = field(default_factory=dict)
    category_breakdown: list[dict] = field(default_factory=list)
    recommendations: list[ThresholdRecommendation] = field(default_factory=list)
    threshold: float = 0.0

    @property
    def filter_rate(self) -> float:
        return self.duplicates / self.total if self.total else 0.0

    def to_dict(self) -> dict:
        return {
            "summary": {
                "total_general": self.total,
                "filtered_as_duplicates": self.duplicates,
                "kept_as_unique": self.unique,
                "filter_rate": round(self.filter_rate, 4),
                "average_similarity": round(self.average_similarity, 4),
                "threshold": self.threshold,
            },
            "severity_analysis": self.severity_breakdown,
            "category_analysis": self.category_breakdown,
            "recommendations": [r.to_dict() for r in self.recommendations],
        }


def build_detection_report(
    detections: Sequence[DuplicationDetection],
    config: DuplicationConfig,
) -> DetectionReport:
    """Compute a :class:`DetectionReport` for *detections*."""
    total = len(detections)
    duplicates = sum(1 for d in detections if d.is_duplicate)
    average = sum(d.similarity_score for d in detections) / total if total else 0.0

    severity_breakdown = {level.value: {"total": 0, "filtered": 0} for level in Severity}
    categories: dict[str, dict] = {}
    for d in detections:
        risk = d.general_risk
        bucket = severity_breakdown[risk.severity.value]
        bucket["total"] += 1
        label = risk.category or "(uncategorized)"
        row = categories.setdefault(label, {"category": label, "total": 0, "filtered": 0})
        row["total"] += 1
        if d.is_duplicate:
            bucket["filtered"] += 1
            row["filtered"] += 1

    return DetectionReport(
        total=total,
        duplicates=duplicates,
        unique=total - duplicates,
        average_similarity=average,
        severity_breakdown=severity_breakdown,
        category_breakdown=list(categories.values()),
        recommendations=recommend_thresholds(total, duplicates, average, config),
        threshold=config.similarity_threshold,
    )


def recommend_thresholds(
    total: int,
    duplicates: int,
    average_similarity: float,
    config: DuplicationConfig,
) -> list[ThresholdRecommendation]:
    """Threshold advice for a batch; empty for an empty batch."""
    if total == 0:
        return []

    threshold = config.similarity_threshold
    recommendations: list[ThresholdRecommendation] = []

    if duplicates / total > HIGH_FILTER_RATE:
        recommendations.append(
            ThresholdRecommendation(
                type="warning",
                message=(
                    "High duplicate filter rate detected. "
                    "Consider raising the similarity threshold."
                ),
                suggested_threshold=min(1.0, threshold + 0.1),
            )
        )

    if duplicates == 0:
        recommendations.append(
            ThresholdRecommendation(
                type="info",
                message=(
                    "No duplicates detected. Consider lowering the threshold "
                    "if you expect some overlap."
                ),
                suggested_threshold=max(0.3, threshold - 0.1),
            )
        )

    if average_similarity < LOW_AVERAGE_SIMILARITY:
        recommendations.append(
            ThresholdRecommendation(
                type="info",
                message=(
                    "Low average similarity suggests the risks are quite different. "
                    "The current threshold may be appropriate."
                ),
            )
        )

    return recommendations


def render_summary(report: DetectionReport) -> str:
    """Plain-English summary of a detection report."""
    parts: list[str] = []
    parts.append("Duplicate Detection Report")
    parts.append(f"Threshold: {report.threshold:.2f}")
    parts.append("")
    parts.append(
        f"Incoming risks: {report.total} total, {report.duplicates} filtered as duplicates, "
        f"{report.unique} kept as unique."
    )
    parts.append(f"Average best-match similarity: {report.average_similarity:.0%}")

    filtered = [
        f"{level}: {counts['filtered']}/{counts['total']}"
        for level, counts in report.severity_breakdown.items()
        if counts["total"]
    ]
    if filtered:
        parts.append(f"  Filtered by severity: {', '.join(filtered)}")

    for row in report.category_breakdown:
        if row["filtered"]:
            parts.append(f"  {row['category']}: {row['filtered']} of {row['total']} filtered")

    for rec in report.recommendations:
        line = f"  -> [{rec.type}] {rec.message}"
        if rec.suggested_threshold is not None:
            line += f" (suggested: {rec.suggested_threshold:.2f})"
        parts.append(line)

    return "\n".join(parts)
