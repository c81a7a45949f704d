"""Data models for multi-tier risk consolidation."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class Severity(str, Enum):
    """Risk severity levels."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RiskSource(str, Enum):
    """Where a risk record originated, as reported on the record itself."""

    TEMPLATE = "template"
    AI_INSIGHT = "ai_insight"
    HYBRID = "hybrid"


class Tier(str, Enum):
    """Independent analysis tiers, in consolidation priority order."""

    TEMPLATE = "template"
    INDUSTRY = "industry"
    GENERAL = "general"


class ConsolidationStrategy(str, Enum):
    """How a final risk entry was produced."""

    UNIQUE = "unique"
    MERGED = "merged"
    ENHANCED = "enhanced"


@dataclass
class Risk:
    """A single risk finding produced by one analysis tier.

    ``id`` is only unique within the tier that produced it; the engine
    never relies on it to detect duplicates.
    """

    id: int
    title: str
    description: str
    category: str
    severity: Severity = Severity.MEDIUM
    recommendation: str = ""
    source: Optional[RiskSource] = None
    confidence: Optional[float] = None
    original_text: Optional[str] = None
    processing_notes: list[str] = field(default_factory=list)
    template_reference: Optional[str] = None

    @property
    def is_high(self) -> bool:
        return self.severity == Severity.HIGH

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "severity": getattr(self.severity, "value", self.severity),
            "recommendation": self.recommendation,
            "source": getattr(self.source, "value", self.source),
            "confidence": round(self.confidence, 3) if self.confidence is not None else None,
        }
        if self.original_text is not None:
            data["original_text"] = self.original_text
        if self.processing_notes:
            data["processing_notes"] = list(self.processing_notes)
        if self.template_reference is not None:
            data["template_reference"] = self.template_reference
        return data


@dataclass(frozen=True)
class ComparisonDetails:
    """Per-field similarity scores for one pair of risks (all 0.0 -- 1.0)."""

    title_similarity: float = 0.0
    description_similarity: float = 0.0
    category_similarity: float = 0.0
    overall_similarity: float = 0.0

    def to_dict(self) -> dict:
        return {
            "title_similarity": round(self.title_similarity, 4),
            "description_similarity": round(self.description_similarity, 4),
            "category_similarity": round(self.category_similarity, 4),
            "overall_similarity": round(self.overall_similarity, 4),
        }


@dataclass(frozen=True)
class DuplicationDetection:
    """Classification of one incoming risk against its best candidate.

    Attributes:
        general_risk: The risk being classified.
        template_risk: Best-matching candidate, or ``None`` when nothing
            scored above zero.
        similarity_score: Overall similarity of the best pair.
        is_duplicate: Whether the pair met the configured threshold (or a
            manual override forced it).
        reason: Short deterministic explanation of the classification.
        comparison_details: Field-level scores for the best pair.
        overridden: ``True`` when a manual override decided the pair.
    """

    general_risk: Risk
    template_risk: Optional[Risk]
    similarity_score: float
    is_duplicate: bool
    reason: str
    comparison_details: ComparisonDetails = field(default_factory=ComparisonDetails)
    overridden: bool = False

    def to_dict(self) -> dict:
        return {
            "general_risk": self.general_risk.to_dict(),
            "template_risk": self.template_risk.to_dict() if self.template_risk else None,
            "similarity_score": round(self.similarity_score, 4),
            "is_duplicate": self.is_duplicate,
            "reason": self.reason,
            "comparison_details": self.comparison_details.to_dict(),
            "overridden": self.overridden,
        }


@dataclass(frozen=True)
class RiskSourceRecord:
    """Provenance of one final risk entry."""

    risk_id: int
    sources: tuple[Tier, ...]
    strategy: ConsolidationStrategy

    def to_dict(self) -> dict:
        return {
            "risk_id": self.risk_id,
            "sources": [s.value for s in self.sources],
            "consolidation_strategy": self.strategy.value,
        }


@dataclass(frozen=True)
class ConsolidationDecision:
    """One entry of the consolidation audit trail."""

    sequence: int
    tier: Tier
    risk_id: int
    decision: ConsolidationStrategy
    reason: str
    score: float
    matched_risk_id: Optional[int] = None
    affected_risks: tuple[int, ...] = ()

    def to_dict(self) -> dict:
        return {
            "sequence": self.sequence,
            "tier": self.tier.value,
            "risk_id": self.risk_id,
            "decision": self.decision.value,
            "reason": self.reason,
            "score": round(self.score, 4),
            "matched_risk_id": self.matched_risk_id,
            "affected_risks": list(self.affected_risks),
        }


@dataclass
class TierResult:
    """Raw output of one analysis tier."""

    risks: list[Risk] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)
    processing_time_ms: float = 0.0

    def to_dict(self) -> dict:
        return {
            "risks": [r.to_dict() for r in self.risks],
            "metadata": self.metadata,
            "processing_time_ms": round(self.processing_time_ms, 3),
        }


@dataclass
class ConsolidatedResult:
    """Final de-duplicated risk list with provenance."""

    final_risks: list[Risk] = field(default_factory=list)
    risk_sources: list[RiskSourceRecord] = field(default_factory=list)
    industry_context: Optional[str] = None
    overall_confidence: float = 0.0

    @property
    def high_risks(self) -> list[Risk]:
        return [r for r in self.final_risks if r.is_high]

    @property
    def overall_risk_level(self) -> Severity:
        """Worst severity present (LOW for an empty result)."""
        severities = {r.severity for r in self.final_risks}
        for level in (Severity.HIGH, Severity.MEDIUM):
            if level in severities:
                return level
        return Severity.LOW

    def to_dict(self) -> dict:
        return {
            "final_risks": [r.to_dict() for r in self.final_risks],
            "risk_sources": [s.to_dict() for s in self.risk_sources],
            "industry_context": self.industry_context,
            "overall_confidence": round(self.overall_confidence, 4),
            "overall_risk_level": self.overall_risk_level.value,
            "stats": {
                "total": len(self.final_risks),
                "high": sum(1 for r in self.final_risks if r.severity == Severity.HIGH),
                "medium": sum(1 for r in self.final_risks if r.severity == Severity.MEDIUM),
                "low": sum(1 for r in self.final_risks if r.severity == Severity.LOW),
            },
        }


@dataclass
class DebugInformation:
    """Audit data gathered during one three-tier analysis."""

    industry_detection: Optional[dict] = None
    tier_processing_times: dict = field(default_factory=dict)
    consolidation_decisions: list[ConsolidationDecision] = field(default_factory=list)
    merging_process: dict = field(default_factory=dict)
    missing_clauses: dict = field(default_factory=dict)
    red_flags: dict = field(default_factory=dict)
    processing_steps: list[dict] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "industry_detection": self.industry_detection,
            "tier_processing_times": self.tier_processing_times,
            "risk_consolidation_decisions": [d.to_dict() for d in self.consolidation_decisions],
            "merging_process": self.merging_process,
            "missing_clauses": self.missing_clauses,
            "red_flags": self.red_flags,
            "processing_steps": self.processing_steps,
            "metadata": self.metadata,
        }


@dataclass
class ThreeTierAnalysisResult:
    """Complete output of one consolidation request."""

    contract_specific_analysis: TierResult
    industry_pattern_analysis: Optional[TierResult]
    general_ai_analysis: TierResult
    consolidated_result: ConsolidatedResult
    debug_information: DebugInformation

    def to_dict(self) -> dict:
        return {
            "contract_specific_analysis": self.contract_specific_analysis.to_dict(),
            "industry_pattern_analysis": (
                self.industry_pattern_analysis.to_dict()
                if self.industry_pattern_analysis is not None
                else None
            ),
            "general_ai_analysis": self.general_ai_analysis.to_dict(),
            "consolidated_result": self.consolidated_result.to_dict(),
            "debug_information": self.debug_information.to_dict(),
        }
