"""Audit trail accumulation for a consolidation run.

A :class:`TraceBuilder` collects one :class:`ProcessingStep` per phase
(tier parse, per-tier detection, merge decisions, confidence) and builds
the merging snapshot shown in debug views. Timestamps come from an
injectable clock and are trace metadata only; nothing in the consolidation
decisions depends on them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Sequence

from .config import DuplicationConfig
from .models import DuplicationDetection, Risk


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class ProcessingStep:
    """One recorded phase of a run."""

    step: str
    input: Any
    output: Any
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "step": self.step,
            "input": self.input,
            "output": self.output,
            "timestamp": self.timestamp,
        }


class TraceBuilder:
    """Accumulates processing steps in the order they happen.

    Args:
        clock: Zero-argument callable returning a timestamp string.
            Defaults to the current UTC time in ISO-8601.
    """

    def __init__(self, clock: Callable[[], str] | None = None) -> None:
        self._clock = clock or utc_timestamp
        self._steps: list[ProcessingStep] = []

    @property
    def steps(self) -> list[ProcessingStep]:
        return list(self._steps)

    def __len__(self) -> int:
        return len(self._steps)

    def record(self, step: str, input: Any = None, output: Any = None) -> ProcessingStep:
        """Append a step and return it."""
        entry = ProcessingStep(step=step, input=input, output=output, timestamp=self._clock())
        self._steps.append(entry)
        return entry

    def record_tier_parse(self, tier: str, risks: Sequence[Risk], notes: Sequence[str] = ()) -> None:
        self.record(
            f"parse_{tier}",
            input={"risk_count": len(risks)},
            output={"risk_ids": [r.id for r in risks], "notes": list(notes)},
        )

    def record_detection(self, tier: str, detections: Sequence[DuplicationDetection]) -> None:
        self.record(
            f"detect_{tier}",
            input={"incoming": len(detections)},
            output=[
                {
                    "risk_id": d.general_risk.id,
                    "matched_risk_id": d.template_risk.id if d.template_risk else None,
                    "score": round(d.similarity_score, 4),
                    "is_duplicate": d.is_duplicate,
                    "reason": d.reason,
                }
                for d in detections
            ],
        )

    def to_list(self) -> list[dict]:
        return [s.to_dict() for s in self._steps]


def build_merging_snapshot(
    template_risks: Sequence[Risk],
    incoming_risks: Sequence[Risk],
    detections: Sequence[DuplicationDetection],
    final_risks: Sequence[Risk],
    config: DuplicationConfig,
) -> dict:
    """Before/after view of a consolidation for debug inspection.

    ``removed_risks`` are incoming risks folded into an existing entry;
    ``added_risks`` are final entries that did not come from the template
    tier.
    """
    removed = [d.general_risk for d in detections if d.is_duplicate]
    base_count = len(template_risks)
    added = list(final_risks[base_count:]) if len(final_risks) > base_count else []

    return {
        "before_merging": {
            "template_risks": [r.to_dict() for r in template_risks],
            "general_risks": [r.to_dict() for r in incoming_risks],
            "total_count": len(template_risks) + len(incoming_risks),
        },
        "duplication_detection": [d.to_dict() for d in detections],
        "after_merging": {
            "final_risks": [r.to_dict() for r in final_risks],
            "removed_risks": [r.to_dict() for r in removed],
            "added_risks": [r.to_dict() for r in added],
            "total_count": len(final_risks),
        },
        "configuration": config.to_dict(),
    }
