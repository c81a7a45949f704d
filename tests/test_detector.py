"""Tests for duplicate detection between tiers."""

from __future__ import annotations

import pytest

import risk_consolidation.detector as detector_module
from risk_consolidation.config import DuplicationConfig, ManualOverride
from risk_consolidation.detector import (
    NO_CANDIDATE_REASON,
    DuplicationDetector,
    describe_decision,
    detect,
)
from risk_consolidation.models import ComparisonDetails, Tier


@pytest.fixture
def detector() -> DuplicationDetector:
    return DuplicationDetector(DuplicationConfig())


# ---------------------------------------------------------------------------
# DuplicationDetector.detect()
# ---------------------------------------------------------------------------


class TestDetect:
    def test_one_result_per_general_risk_in_order(self, detector, late_fee_tiers) -> None:
        template, _, general = late_fee_tiers
        detections = detector.detect(general, template)
        assert [d.general_risk for d in detections] == general

    def test_worked_example_below_default_threshold(
        self, detector, payment_template_risk, payment_general_risk
    ) -> None:
        (detection,) = detector.detect([payment_general_risk], [payment_template_risk])
        assert detection.template_risk is payment_template_risk
        assert not detection.is_duplicate
        assert detection.similarity_score == pytest.approx(0.4048, abs=1e-4)
        assert detection.reason == "below threshold: 0.40 < 0.70"

    def test_worked_example_duplicate_at_lower_threshold(
        self, payment_template_risk, payment_general_risk
    ) -> None:
        (detection,) = detect(
            [payment_general_risk],
            [payment_template_risk],
            DuplicationConfig(similarity_threshold=0.4),
        )
        assert detection.is_duplicate
        assert detection.reason == "high category overlap (0.40 >= 0.40)"

    def test_no_candidate_when_nothing_overlaps(
        self, detector, non_compete_risk, confidentiality_risk
    ) -> None:
        (detection,) = detector.detect([confidentiality_risk], [non_compete_risk])
        assert detection.template_risk is None
        assert detection.similarity_score == 0.0
        assert not detection.is_duplicate
        assert detection.reason == NO_CANDIDATE_REASON

    def test_empty_template_set(self, detector, late_fee_tiers) -> None:
        _, _, general = late_fee_tiers
        detections = detector.detect(general, [])
        assert all(d.template_risk is None and not d.is_duplicate for d in detections)

    def test_empty_general_set(self, detector, late_fee_tiers) -> None:
        template, _, _ = late_fee_tiers
        assert detector.detect([], template) == []

    def test_threshold_is_inclusive(self, payment_template_risk) -> None:
        detector = DuplicationDetector(DuplicationConfig(similarity_threshold=1.0))
        (detection,) = detector.detect([payment_template_risk], [payment_template_risk])
        assert detection.similarity_score == 1.0
        assert detection.is_duplicate

    def test_every_pair_is_scored(self, monkeypatch, detector, late_fee_tiers) -> None:
        template, industry, general = late_fee_tiers
        candidates = template + industry
        scored: list[tuple[int, int]] = []
        original = detector_module.score_risks

        def recording(a, b, config):
            scored.append((id(a), id(b)))
            return original(a, b, config)

        monkeypatch.setattr(detector_module, "score_risks", recording)
        detector.detect(general, candidates)
        expected = {(id(g), id(c)) for g in general for c in candidates}
        assert set(scored) == expected

    def test_inputs_not_modified(self, detector, late_fee_tiers) -> None:
        template, _, general = late_fee_tiers
        before = [r.to_dict() for r in template + general]
        detector.detect(general, template)
        assert [r.to_dict() for r in template + general] == before


class TestTieBreak:
    def test_lower_candidate_id_wins(self, make_risk, detector) -> None:
        incoming = make_risk(20, "Late Payment Penalties", "Late fees accrue monthly", "Payment")
        seven = make_risk(7, "Late Payment Penalties", "Late fees accrue monthly", "Payment")
        three = make_risk(3, "Late Payment Penalties", "Late fees accrue monthly", "Payment")
        (detection,) = detector.detect([incoming], [seven, three])
        assert detection.template_risk is three

    def test_same_id_keeps_earlier_candidate(self, make_risk, detector) -> None:
        incoming = make_risk(20, "Late Payment Penalties", "Late fees accrue monthly", "Payment")
        first = make_risk(1, "Late Payment Penalties", "Late fees accrue monthly", "Payment")
        second = make_risk(1, "Late Payment Penalties", "Late fees accrue monthly", "Payment")
        (detection,) = detector.detect([incoming], [first, second])
        assert detection.template_risk is first


class TestThresholdMonotonicity:
    def test_raising_threshold_never_adds_duplicates(self, late_fee_tiers) -> None:
        template, industry, general = late_fee_tiers
        incoming = industry + general
        counts = []
        for threshold in (0.0, 0.2, 0.4, 0.6, 0.8, 1.0):
            detections = detect(incoming, template, DuplicationConfig(similarity_threshold=threshold))
            counts.append(sum(d.is_duplicate for d in detections))
        assert counts == sorted(counts, reverse=True)


class TestParallelDetection:
    def test_parallel_matches_serial(self, late_fee_tiers) -> None:
        template, industry, general = late_fee_tiers
        config = DuplicationConfig(similarity_threshold=0.5)
        serial = DuplicationDetector(config).detect(industry + general, template)
        parallel = DuplicationDetector(config, max_workers=4).detect(industry + general, template)
        assert parallel == serial


# ---------------------------------------------------------------------------
# Manual overrides
# ---------------------------------------------------------------------------


class TestManualOverrides:
    def _config(self, *overrides: ManualOverride, enabled: bool = True) -> DuplicationConfig:
        return DuplicationConfig(enable_manual_overrides=enabled, manual_overrides=overrides)

    def test_forced_duplicate(self, payment_template_risk, payment_general_risk) -> None:
        config = self._config(ManualOverride(risk_id=9))
        (detection,) = detect([payment_general_risk], [payment_template_risk], config)
        assert detection.is_duplicate
        assert detection.overridden
        assert detection.reason == "manual override: forced duplicate of risk 1"
        assert detection.similarity_score == pytest.approx(0.4048, abs=1e-4)

    def test_forced_unique(self, payment_template_risk) -> None:
        config = self._config(ManualOverride(risk_id=1, is_duplicate=False))
        (detection,) = detect([payment_template_risk], [payment_template_risk], config)
        assert not detection.is_duplicate
        assert detection.reason == "manual override: forced unique"

    def test_disabled_overrides_ignored(self, payment_template_risk, payment_general_risk) -> None:
        config = self._config(ManualOverride(risk_id=9), enabled=False)
        (detection,) = detect([payment_general_risk], [payment_template_risk], config)
        assert not detection.is_duplicate
        assert not detection.overridden

    def test_forced_match_target(self, make_risk) -> None:
        incoming = make_risk(5, "Late Payment Penalties", "Late fees accrue", "Payment")
        best = make_risk(1, "Late Payment Penalties", "Late fees accrue", "Payment")
        other = make_risk(2, "Invoice Disputes", "Client may dispute invoices", "Billing")
        config = self._config(ManualOverride(risk_id=5, matched_risk_id=2))
        (detection,) = detect([incoming], [best, other], config)
        assert detection.template_risk is other
        assert detection.is_duplicate
        assert detection.reason == "manual override: forced duplicate of risk 2"

    def test_no_candidate_cannot_be_forced(self, non_compete_risk, confidentiality_risk) -> None:
        config = self._config(ManualOverride(risk_id=2))
        (detection,) = detect([confidentiality_risk], [non_compete_risk], config)
        assert not detection.is_duplicate
        assert detection.template_risk is None
        assert detection.reason == f"manual override: {NO_CANDIDATE_REASON}"

    def test_tier_scoped_override(self, payment_template_risk, payment_general_risk) -> None:
        config = self._config(ManualOverride(risk_id=9, tier=Tier.INDUSTRY))
        detector = DuplicationDetector(config)
        (general,) = detector.detect([payment_general_risk], [payment_template_risk], Tier.GENERAL)
        (industry,) = detector.detect([payment_general_risk], [payment_template_risk], Tier.INDUSTRY)
        assert not general.overridden
        assert industry.overridden and industry.is_duplicate


# ---------------------------------------------------------------------------
# describe_decision()
# ---------------------------------------------------------------------------


class TestDescribeDecision:
    def test_below_threshold(self) -> None:
        details = ComparisonDetails(0.2, 0.6, 0.5, 0.52)
        assert describe_decision(details, 0.7, False) == "below threshold: 0.52 < 0.70"

    def test_single_dominant_field(self) -> None:
        details = ComparisonDetails(0.9, 0.3, 0.0, 0.48)
        assert describe_decision(details, 0.4, True) == "high title overlap (0.48 >= 0.40)"

    def test_two_dominant_fields(self) -> None:
        details = ComparisonDetails(0.9, 0.2, 1.0, 0.64)
        assert describe_decision(details, 0.6, True) == "high title and category overlap (0.64 >= 0.60)"

    def test_all_fields(self) -> None:
        details = ComparisonDetails(1.0, 0.73, 1.0, 0.89)
        assert (
            describe_decision(details, 0.7, True)
            == "high title, description and category overlap (0.89 >= 0.70)"
        )

    def test_no_dominant_field(self) -> None:
        details = ComparisonDetails(0.4, 0.4, 0.4, 0.4)
        assert describe_decision(details, 0.3, True) == "combined field overlap (0.40 >= 0.30)"

    def test_deterministic(self) -> None:
        details = ComparisonDetails(0.9, 0.2, 1.0, 0.64)
        assert describe_decision(details, 0.6, True) == describe_decision(details, 0.6, True)


def test_functional_detect_matches_class(late_fee_tiers) -> None:
    template, _, general = late_fee_tiers
    config = DuplicationConfig()
    assert detect(general, template, config) == DuplicationDetector(config).detect(general, template)
