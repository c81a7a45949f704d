"""Risk consolidation across the template, industry and general tiers.

Template-tier risks form the authoritative base. Industry risks are then
folded in, followed by general risks: each incoming risk is classified
against a snapshot of the result set as it stood when its tier started, and
either merged into its match or appended as a new unique entry.

Inputs are treated as read-only snapshots. Every final record is a new
object, and the output (order, ids, text, decision log) depends only on the
inputs and the configuration.

Typical usage::

    outcome = RiskConsolidator(DuplicationConfig()).consolidate(
        template_risks, industry_risks, general_risks
    )
    for record in outcome.risk_sources:
        print(record.risk_id, [s.value for s in record.sources], record.strategy.value)
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Optional, Sequence

import structlog

from .config import ConfigurationError, DuplicationConfig
from .detector import DuplicationDetector
from .models import (
    ConsolidationDecision,
    ConsolidationStrategy,
    DuplicationDetection,
    Risk,
    RiskSource,
    RiskSourceRecord,
    Tier,
)
from .parsers import normalize_risk
from .preprocessing import fold, tokenize
from .trace import TraceBuilder

logger = structlog.get_logger(__name__)

# Confidence assumed for a risk whose tier reported none
DEFAULT_CONFIDENCE = 0.6
# Added per corroborating source beyond the first
CORROBORATION_BONUS = 0.1

MERGE_SEPARATOR = "\n\n"

_TIER_LABELS = {
    Tier.TEMPLATE: "Template analysis",
    Tier.INDUSTRY: "Industry insight",
    Tier.GENERAL: "Additional analysis",
}


@dataclass
class ConsolidationOutcome:
    """Result of one consolidation pass.

    Attributes:
        final_risks: De-duplicated risks in canonical order (template base
            first, then unique industry risks, then unique general risks).
        risk_sources: Provenance for each final risk, same order.
        decisions: Audit trail, one entry per classified incoming risk.
        detections: Raw detector output, in processing order.
        overall_confidence: Aggregate confidence (0.0 -- 1.0).
    """

    final_risks: list[Risk] = field(default_factory=list)
    risk_sources: list[RiskSourceRecord] = field(default_factory=list)
    decisions: list[ConsolidationDecision] = field(default_factory=list)
    detections: list[DuplicationDetection] = field(default_factory=list)
    overall_confidence: float = 0.0

    @property
    def duplicate_count(self) -> int:
        return sum(1 for d in self.detections if d.is_duplicate)

    def to_dict(self) -> dict:
        return {
            "final_risks": [r.to_dict() for r in self.final_risks],
            "risk_sources": [s.to_dict() for s in self.risk_sources],
            "decisions": [d.to_dict() for d in self.decisions],
            "overall_confidence": round(self.overall_confidence, 4),
        }


@dataclass
class _Entry:
    """Working state for one final risk while a run is in progress."""

    risk: Risk
    sources: list[Tier]
    strategy: ConsolidationStrategy = ConsolidationStrategy.UNIQUE


class RiskConsolidator:
    """Fold industry and general findings into the template findings.

    Args:
        config: Scoring weights and threshold. Defaults to
            :class:`DuplicationConfig` defaults.
        max_workers: Passed to :class:`DuplicationDetector` for parallel
            scoring within a tier.
    """

    def __init__(
        self,
        config: DuplicationConfig | None = None,
        max_workers: int | None = None,
    ) -> None:
        self._config = config or DuplicationConfig()
        self._detector = DuplicationDetector(self._config, max_workers=max_workers)

    @property
    def config(self) -> DuplicationConfig:
        return self._config

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def consolidate(
        self,
        template_risks: Sequence[Risk],
        industry_risks: Sequence[Risk] = (),
        general_risks: Sequence[Risk] = (),
        trace: TraceBuilder | None = None,
    ) -> ConsolidationOutcome:
        """Consolidate three tiers of findings into one provenance-tagged list.

        Args:
            template_risks: Authoritative base findings.
            industry_risks: Industry-pattern findings, folded in first.
            general_risks: Open-ended findings, folded in last.
            trace: Optional builder that receives one step per phase.

        Returns:
            :class:`ConsolidationOutcome` with final risks, provenance and
            the decision log.

        Raises:
            ConfigurationError: If the configuration does not allow scoring.
        """
        if not isinstance(self._config, DuplicationConfig) or self._config.weight_total <= 0:
            raise ConfigurationError("consolidation requires a valid DuplicationConfig")

        template_risks = _normalized(template_risks)
        industry_risks = _normalized(industry_risks)
        general_risks = _normalized(general_risks)

        taken: set[int] = set()
        entries: list[_Entry] = []
        for risk in template_risks:
            entries.append(_Entry(risk=_claim(risk, taken), sources=[Tier.TEMPLATE]))

        if trace is not None:
            trace.record(
                "seed_template",
                input={"risk_count": len(template_risks)},
                output={"risk_ids": [e.risk.id for e in entries]},
            )

        decisions: list[ConsolidationDecision] = []
        detections: list[DuplicationDetection] = []

        for tier, incoming in ((Tier.INDUSTRY, industry_risks), (Tier.GENERAL, general_risks)):
            if not incoming:
                continue
            tier_detections = self._fold_tier(tier, incoming, entries, taken, decisions)
            detections.extend(tier_detections)
            if trace is not None:
                trace.record_detection(tier.value, tier_detections)

        final_risks = [e.risk for e in entries]
        risk_sources = [
            RiskSourceRecord(risk_id=e.risk.id, sources=tuple(e.sources), strategy=e.strategy)
            for e in entries
        ]
        confidence = overall_confidence(entries)

        if trace is not None:
            trace.record(
                "merge_decisions",
                input={"decision_count": len(decisions)},
                output=[d.to_dict() for d in decisions],
            )
            trace.record(
                "overall_confidence",
                input={"entry_count": len(entries)},
                output={"overall_confidence": round(confidence, 4)},
            )

        return ConsolidationOutcome(
            final_risks=final_risks,
            risk_sources=risk_sources,
            decisions=decisions,
            detections=detections,
            overall_confidence=confidence,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _fold_tier(
        self,
        tier: Tier,
        incoming: Sequence[Risk],
        entries: list[_Entry],
        taken: set[int],
        decisions: list[ConsolidationDecision],
    ) -> list[DuplicationDetection]:
        """Classify one tier against the current result set and apply it."""
        snapshot = [e.risk for e in entries]
        position = {id(r): i for i, r in enumerate(snapshot)}
        detections = self._detector.detect(incoming, snapshot, tier=tier)

        merged = 0
        for detection in detections:
            risk = detection.general_risk
            matched = detection.template_risk

            if detection.is_duplicate and matched is not None:
                entry = entries[position[id(matched)]]
                strategy = (
                    ConsolidationStrategy.ENHANCED
                    if len(entry.sources) > 1
                    else ConsolidationStrategy.MERGED
                )
                entry.risk = merge_risks(entry.risk, risk, tier, detection.similarity_score)
                if tier not in entry.sources:
                    entry.sources.append(tier)
                entry.strategy = strategy
                merged += 1
                affected = (entry.risk.id,)
            else:
                strategy = ConsolidationStrategy.UNIQUE
                new_entry = _Entry(risk=_claim(risk, taken), sources=[tier])
                entries.append(new_entry)
                affected = (new_entry.risk.id,)

            decisions.append(
                ConsolidationDecision(
                    sequence=len(decisions) + 1,
                    tier=tier,
                    risk_id=risk.id,
                    decision=strategy,
                    reason=detection.reason,
                    score=detection.similarity_score,
                    matched_risk_id=matched.id if matched is not None else None,
                    affected_risks=affected,
                )
            )
            logger.debug(
                "risk_classified",
                tier=tier.value,
                risk_id=risk.id,
                decision=strategy.value,
                score=round(detection.similarity_score, 4),
            )

        logger.info(
            "tier_consolidated",
            tier=tier.value,
            incoming=len(incoming),
            merged=merged,
            unique=len(incoming) - merged,
            total=len(entries),
        )
        return detections


def merge_risks(base: Risk, incoming: Risk, tier: Tier, score: float) -> Risk:
    """Fold *incoming* into *base* without overwriting existing prose.

    The base keeps its title, category and severity. Description and
    recommendation text from *incoming* is appended after a labelled
    separator only when it adds words the base does not already contain.
    Neither argument is modified.
    """
    label = _TIER_LABELS[tier]
    confidence = None
    if base.confidence is not None or incoming.confidence is not None:
        confidence = max(effective_confidence(base), effective_confidence(incoming))
    notes = list(base.processing_notes)
    notes.append(
        f"merged {tier.value} risk {incoming.id} ({incoming.title or 'untitled'!r}, "
        f"similarity {score:.2f})"
    )
    return replace(
        base,
        description=append_new_text(base.description, incoming.description, label),
        recommendation=append_new_text(base.recommendation, incoming.recommendation, label),
        source=RiskSource.HYBRID,
        confidence=confidence,
        processing_notes=notes,
    )


def append_new_text(existing: str, incoming: str, label: str) -> str:
    """Append *incoming* to *existing* if it carries any new words."""
    existing = existing if isinstance(existing, str) else ""
    incoming = incoming.strip() if isinstance(incoming, str) else ""
    if not incoming:
        return existing
    if not existing.strip():
        return incoming
    if fold(incoming) in fold(existing) or tokenize(incoming) <= tokenize(existing):
        return existing
    return f"{existing}{MERGE_SEPARATOR}{label}: {incoming}"


def effective_confidence(risk: Risk) -> float:
    """Reported confidence clamped to [0, 1], or the default when unreported."""
    if risk.confidence is None:
        return DEFAULT_CONFIDENCE
    return max(0.0, min(1.0, risk.confidence))


def entry_confidence(risk: Risk, source_count: int) -> float:
    """Confidence of one final entry given how many tiers support it."""
    return min(1.0, effective_confidence(risk) + CORROBORATION_BONUS * max(source_count - 1, 0))


def overall_confidence(entries: Sequence[_Entry]) -> float:
    """Mean entry confidence; 0.0 when there are no entries."""
    if not entries:
        return 0.0
    return sum(entry_confidence(e.risk, len(e.sources)) for e in entries) / len(entries)


def consolidate(
    template_risks: Sequence[Risk],
    industry_risks: Sequence[Risk],
    general_risks: Sequence[Risk],
    config: Optional[DuplicationConfig] = None,
) -> ConsolidationOutcome:
    """Functional shortcut for :meth:`RiskConsolidator.consolidate`."""
    return RiskConsolidator(config).consolidate(template_risks, industry_risks, general_risks)


def _claim(risk: Risk, taken: set[int]) -> Risk:
    """Copy *risk*, keeping its id unless another entry already holds it."""
    notes = list(risk.processing_notes)
    risk_id = risk.id
    if risk_id in taken:
        risk_id = max(taken) + 1
        notes.append(f"id reassigned from {risk.id} to {risk_id} to avoid a collision")
    taken.add(risk_id)
    return replace(risk, id=risk_id, processing_notes=notes)


def _normalized(risks: Sequence[Risk]) -> list[Risk]:
    return [normalize_risk(r, i) for i, r in enumerate(risks)]
