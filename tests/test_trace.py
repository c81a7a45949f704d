"""Tests for processing-step tracing and the merging snapshot."""

from __future__ import annotations

from datetime import datetime

from risk_consolidation.config import DuplicationConfig
from risk_consolidation.consolidator import consolidate
from risk_consolidation.detector import detect
from risk_consolidation.trace import TraceBuilder, build_merging_snapshot, utc_timestamp


class TestTraceBuilder:
    def test_record_uses_clock(self, fixed_clock) -> None:
        trace = TraceBuilder(clock=fixed_clock)
        step = trace.record("custom", input={"a": 1}, output=[1, 2])
        assert step.timestamp == "2024-01-01T00:00:00+00:00"
        assert step.to_dict() == {
            "step": "custom",
            "input": {"a": 1},
            "output": [1, 2],
            "timestamp": "2024-01-01T00:00:00+00:00",
        }
        assert len(trace) == 1

    def test_steps_returns_copy(self, fixed_clock) -> None:
        trace = TraceBuilder(clock=fixed_clock)
        trace.record("one")
        trace.steps.clear()
        assert len(trace) == 1

    def test_record_tier_parse(self, fixed_clock, late_fee_tiers) -> None:
        template, _, _ = late_fee_tiers
        trace = TraceBuilder(clock=fixed_clock)
        trace.record_tier_parse("template", template, ["risk 2: missing category"])
        (entry,) = trace.to_list()
        assert entry["step"] == "parse_template"
        assert entry["input"] == {"risk_count": 2}
        assert entry["output"] == {"risk_ids": [1, 2], "notes": ["risk 2: missing category"]}

    def test_record_detection(self, fixed_clock, payment_template_risk, payment_general_risk) -> None:
        detections = detect([payment_general_risk], [payment_template_risk], DuplicationConfig())
        trace = TraceBuilder(clock=fixed_clock)
        trace.record_detection("general", detections)
        (entry,) = trace.to_list()
        assert entry["step"] == "detect_general"
        assert entry["output"] == [
            {
                "risk_id": 9,
                "matched_risk_id": 1,
                "score": 0.4048,
                "is_duplicate": False,
                "reason": "below threshold: 0.40 < 0.70",
            }
        ]

    def test_default_clock_is_iso_utc(self) -> None:
        stamp = utc_timestamp()
        assert datetime.fromisoformat(stamp).utcoffset().total_seconds() == 0


class TestMergingSnapshot:
    def test_before_and_after(self, late_fee_tiers) -> None:
        template, industry, general = late_fee_tiers
        config = DuplicationConfig()
        outcome = consolidate(template, industry, general, config)
        snapshot = build_merging_snapshot(
            template, industry + general, outcome.detections, outcome.final_risks, config
        )

        before = snapshot["before_merging"]
        assert before["total_count"] == 6
        assert len(before["template_risks"]) == 2
        assert len(before["general_risks"]) == 4

        after = snapshot["after_merging"]
        assert after["total_count"] == 4
        assert [r["title"] for r in after["removed_risks"]] == [
            "Late Payment Penalties",
            "Late Payment Penalties",
        ]
        assert [r["id"] for r in after["added_risks"]] == [3, 4]
        assert len(snapshot["duplication_detection"]) == 4
        assert snapshot["configuration"]["similarity_threshold"] == 0.7

    def test_nothing_added(self, late_fee_tiers) -> None:
        template, _, _ = late_fee_tiers
        config = DuplicationConfig()
        outcome = consolidate(template, [], [], config)
        snapshot = build_merging_snapshot(template, [], [], outcome.final_risks, config)
        assert snapshot["after_merging"]["added_risks"] == []
        assert snapshot["after_merging"]["removed_risks"] == []
