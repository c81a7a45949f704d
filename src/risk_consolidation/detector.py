"""Duplicate detection between two tiers of risk findings.

For every risk of a secondary ("general") tier the detector scores it
against **every** risk of a primary ("template") set, keeps the best
candidate and classifies the pair against the configured threshold. The
output always holds exactly one :class:`DuplicationDetection` per input
risk, in input order.

Typical usage::

    detector = DuplicationDetector(DuplicationConfig(similarity_threshold=0.6))
    for detection in detector.detect(general_risks, template_risks):
        print(detection.is_duplicate, detection.reason)
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Sequence

import structlog

from .config import DuplicationConfig, ManualOverride
from .models import ComparisonDetails, DuplicationDetection, Risk, Tier
from .similarity import score_risks

logger = structlog.get_logger(__name__)

NO_CANDIDATE_REASON = "no comparable template risk found"

# A field "dominates" a duplicate decision when it scores at least this high
DOMINANT_FIELD_SCORE = 0.5


class DuplicationDetector:
    """Classify incoming risks as duplicates of a candidate set.

    Args:
        config: Weights, threshold and manual overrides for the run.
        max_workers: When greater than 1, incoming risks are scored in a
            thread pool. Results are collected positionally, so the output
            is identical to a serial run.
    """

    def __init__(self, config: DuplicationConfig, max_workers: int | None = None) -> None:
        self._config = config
        self._max_workers = max_workers

    @property
    def config(self) -> DuplicationConfig:
        return self._config

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def detect(
        self,
        general_risks: Sequence[Risk],
        template_risks: Sequence[Risk],
        tier: Optional[Tier] = None,
    ) -> list[DuplicationDetection]:
        """Classify each of *general_risks* against *template_risks*.

        Args:
            general_risks: Risks to classify.
            template_risks: Candidate set. Not modified.
            tier: Tier of *general_risks*, used to match tier-scoped
                manual overrides.

        Returns:
            One detection per general risk, in the same order.
        """
        candidates = list(template_risks)

        if self._max_workers and self._max_workers > 1 and len(general_risks) > 1:
            with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
                detections = list(
                    pool.map(lambda risk: self.classify(risk, candidates, tier), general_risks)
                )
        else:
            detections = [self.classify(risk, candidates, tier) for risk in general_risks]

        logger.debug(
            "duplicates_detected",
            tier=tier.value if tier else None,
            general_count=len(general_risks),
            template_count=len(candidates),
            duplicates=sum(1 for d in detections if d.is_duplicate),
        )
        return detections

    def classify(
        self,
        risk: Risk,
        candidates: Sequence[Risk],
        tier: Optional[Tier] = None,
    ) -> DuplicationDetection:
        """Find the best candidate for *risk* and classify the pair."""
        best_risk, best_details = self._best_match(risk, candidates)

        override = self._config.find_override(risk.id, tier)
        if override is not None:
            return self._apply_override(risk, candidates, override, best_risk, best_details)

        if best_risk is None:
            return DuplicationDetection(
                general_risk=risk,
                template_risk=None,
                similarity_score=0.0,
                is_duplicate=False,
                reason=NO_CANDIDATE_REASON,
                comparison_details=best_details,
            )

        score = best_details.overall_similarity
        is_duplicate = score >= self._config.similarity_threshold
        return DuplicationDetection(
            general_risk=risk,
            template_risk=best_risk,
            similarity_score=score,
            is_duplicate=is_duplicate,
            reason=describe_decision(best_details, self._config.similarity_threshold, is_duplicate),
            comparison_details=best_details,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _best_match(
        self,
        risk: Risk,
        candidates: Sequence[Risk],
    ) -> tuple[Optional[Risk], ComparisonDetails]:
        """Highest-scoring candidate; ties go to the lower candidate id."""
        best_risk: Optional[Risk] = None
        best_details = ComparisonDetails()

        for candidate in candidates:
            details = score_risks(risk, candidate, self._config)
            score = details.overall_similarity
            if score <= 0.0:
                continue
            if (
                best_risk is None
                or score > best_details.overall_similarity
                or (score == best_details.overall_similarity and candidate.id < best_risk.id)
            ):
                best_risk = candidate
                best_details = details

        return best_risk, best_details

    def _apply_override(
        self,
        risk: Risk,
        candidates: Sequence[Risk],
        override: ManualOverride,
        best_risk: Optional[Risk],
        best_details: ComparisonDetails,
    ) -> DuplicationDetection:
        matched, details = best_risk, best_details
        if override.matched_risk_id is not None:
            forced = next((c for c in candidates if c.id == override.matched_risk_id), None)
            if forced is not None:
                matched = forced
                details = score_risks(risk, forced, self._config)

        is_duplicate = override.is_duplicate and matched is not None
        if matched is None:
            reason = f"manual override: {NO_CANDIDATE_REASON}"
        elif is_duplicate:
            reason = f"manual override: forced duplicate of risk {matched.id}"
        else:
            reason = "manual override: forced unique"

        logger.info(
            "manual_override_applied",
            risk_id=risk.id,
            matched_risk_id=matched.id if matched else None,
            is_duplicate=is_duplicate,
        )
        return DuplicationDetection(
            general_risk=risk,
            template_risk=matched,
            similarity_score=details.overall_similarity,
            is_duplicate=is_duplicate,
            reason=reason,
            comparison_details=details,
            overridden=True,
        )


def describe_decision(details: ComparisonDetails, threshold: float, is_duplicate: bool) -> str:
    """Short deterministic explanation of a threshold decision.

    Duplicates name the fields that drove the score, e.g.
    ``"high title and category overlap (0.82 >= 0.70)"``; non-duplicates
    read ``"below threshold: 0.52 < 0.70"``.
    """
    score = details.overall_similarity
    if not is_duplicate:
        return f"below threshold: {score:.2f} < {threshold:.2f}"

    fields = [
        name
        for name, value in (
            ("title", details.title_similarity),
            ("description", details.description_similarity),
            ("category", details.category_similarity),
        )
        if value >= DOMINANT_FIELD_SCORE
    ]
    if not fields:
        label = "combined field overlap"
    elif len(fields) == 1:
        label = f"high {fields[0]} overlap"
    else:
        label = "high " + ", ".join(fields[:-1]) + f" and {fields[-1]} overlap"
    return f"{label} ({score:.2f} >= {threshold:.2f})"


def detect(
    general_risks: Sequence[Risk],
    template_risks: Sequence[Risk],
    config: DuplicationConfig,
) -> list[DuplicationDetection]:
    """Functional shortcut for :meth:`DuplicationDetector.detect`."""
    return DuplicationDetector(config).detect(general_risks, template_risks)
