"""Three-tier orchestration producing a :class:`ThreeTierAnalysisResult`.

The ``ThreeTierAnalyzer`` takes the already-resolved output of the
template, industry and general analysis tiers, runs the consolidation
engine over them and packages the consolidated risks together with the
debug information (timings, industry detection, decision trail, merging
snapshot, combined missing clauses and red flags).
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Callable, Optional

import structlog

from .config import DuplicationConfig
from .consolidator import RiskConsolidator
from .models import (
    ConsolidatedResult,
    DebugInformation,
    ThreeTierAnalysisResult,
    TierResult,
)
from .parsers import AnalysisInput, load_analysis_input, normalize_tier
from .trace import TraceBuilder, build_merging_snapshot

logger = structlog.get_logger(__name__)

# Metadata keys whose string lists are combined across tiers
_MISSING_CLAUSE_KEYS = ("missing_clauses", "missingClauses")
_RED_FLAG_KEYS = ("identified_red_flags", "identifiedRedFlags", "red_flags", "redFlags")
_INDUSTRY_DETECTION_KEYS = ("industry_detection", "industryDetection")


class ThreeTierAnalyzer:
    """Consolidate the three analysis tiers of one contract review.

    Example::

        analyzer = ThreeTierAnalyzer(DuplicationConfig(similarity_threshold=0.6))
        result = analyzer.analyze(template_tier, industry_tier, general_tier)
        print(len(result.consolidated_result.final_risks))

    Args:
        config: Duplicate-detection configuration for every run.
        max_workers: Optional thread count for parallel scoring.
        clock: Optional timestamp callable for trace entries.
    """

    def __init__(
        self,
        config: DuplicationConfig | None = None,
        max_workers: int | None = None,
        clock: Callable[[], str] | None = None,
    ) -> None:
        self._config = config or DuplicationConfig()
        self._max_workers = max_workers
        self._clock = clock

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def analyze(
        self,
        template: TierResult,
        industry: Optional[TierResult],
        general: TierResult,
        metadata: dict | None = None,
    ) -> ThreeTierAnalysisResult:
        """Consolidate three tier results into one analysis result.

        Risks built in code are coerced like parsed ones (see
        :func:`~risk_consolidation.parsers.normalize_tier`); the tiers
        passed in are not modified.

        Args:
            template: Contract-template tier output.
            industry: Industry-pattern tier output, or ``None`` when no
                industry was detected.
            general: General open-ended tier output.
            metadata: Request-level metadata (contract type, party role).

        Returns:
            Complete :class:`ThreeTierAnalysisResult`.

        Raises:
            ConfigurationError: If the configuration is invalid.
        """
        metadata = metadata or {}
        template = normalize_tier(template)
        industry = normalize_tier(industry) if industry is not None else None
        general = normalize_tier(general)
        trace = TraceBuilder(clock=self._clock)
        industry_risks = industry.risks if industry is not None else []

        trace.record_tier_parse("template", template.risks, _notes_of(template))
        if industry is not None:
            trace.record_tier_parse("industry", industry.risks, _notes_of(industry))
        trace.record_tier_parse("general", general.risks, _notes_of(general))

        consolidator = RiskConsolidator(self._config, max_workers=self._max_workers)
        started = time.perf_counter()
        outcome = consolidator.consolidate(
            template.risks, industry_risks, general.risks, trace=trace
        )
        consolidation_ms = (time.perf_counter() - started) * 1000

        industry_detection = (
            _first_key(industry.metadata, _INDUSTRY_DETECTION_KEYS) if industry is not None else None
        )
        industry_context = None
        if isinstance(industry_detection, dict):
            industry_context = industry_detection.get("industry_name") or industry_detection.get(
                "industryName"
            )

        timings = {
            "contract_specific": template.processing_time_ms,
            "industry_pattern": industry.processing_time_ms if industry is not None else 0.0,
            "general_ai": general.processing_time_ms,
            "consolidation": round(consolidation_ms, 3),
        }

        tiers = {"template": template, "industry": industry, "general": general}
        debug = DebugInformation(
            industry_detection=industry_detection if isinstance(industry_detection, dict) else None,
            tier_processing_times=timings,
            consolidation_decisions=outcome.decisions,
            merging_process=build_merging_snapshot(
                template.risks,
                [*industry_risks, *general.risks],
                outcome.detections,
                outcome.final_risks,
                self._config,
            ),
            missing_clauses=combine_tier_lists(tiers, _MISSING_CLAUSE_KEYS),
            red_flags=combine_tier_lists(tiers, _RED_FLAG_KEYS),
            processing_steps=trace.to_list(),
            metadata={
                "analysis_date": trace.steps[0].timestamp if len(trace) else None,
                "contract_type": metadata.get("contract_type", metadata.get("contractType")),
                "party_role": metadata.get("party_role", metadata.get("partyRole")),
                "total_processing_time": round(sum(timings.values()), 3),
            },
        )

        logger.info(
            "three_tier_analysis_complete",
            template=len(template.risks),
            industry=len(industry_risks),
            general=len(general.risks),
            final=len(outcome.final_risks),
            duplicates=outcome.duplicate_count,
        )

        return ThreeTierAnalysisResult(
            contract_specific_analysis=template,
            industry_pattern_analysis=industry,
            general_ai_analysis=general,
            consolidated_result=ConsolidatedResult(
                final_risks=outcome.final_risks,
                risk_sources=outcome.risk_sources,
                industry_context=industry_context,
                overall_confidence=outcome.overall_confidence,
            ),
            debug_information=debug,
        )

    def analyze_input(self, request: AnalysisInput) -> ThreeTierAnalysisResult:
        """Run :meth:`analyze` on a parsed request."""
        return self.analyze(request.template, request.industry, request.general, request.metadata)

    def analyze_file(self, path: str | Path) -> ThreeTierAnalysisResult:
        """Load a JSON request from *path* and analyze it with its embedded config.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If the file cannot be parsed.
        """
        request = load_analysis_input(path)
        analyzer = ThreeTierAnalyzer(request.config, self._max_workers, self._clock)
        return analyzer.analyze_input(request)


# ----------------------------------------------------------------------
# Internal helpers
# ----------------------------------------------------------------------


def combine_tier_lists(tiers: dict[str, Optional[TierResult]], keys: tuple[str, ...]) -> dict:
    """Per-tier string lists from metadata plus their order-preserving union."""
    combined: dict[str, list[str]] = {}
    seen: dict[str, None] = {}
    for name, tier in tiers.items():
        values = _first_key(tier.metadata, keys) if tier is not None else None
        items = [str(v) for v in values] if isinstance(values, list) else []
        combined[name] = items
        for item in items:
            seen.setdefault(item.strip(), None)
    combined["combined"] = [item for item in seen if item]
    return combined


def _first_key(mapping: dict, keys: tuple[str, ...]):
    for key in keys:
        if key in mapping:
            return mapping[key]
    return None


def _notes_of(tier: TierResult) -> list[str]:
    return [f"risk {r.id}: {note}" for r in tier.risks for note in r.processing_notes]
