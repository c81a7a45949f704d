"""Parsing of tier payloads into :mod:`risk_consolidation.models` objects.

Upstream tiers hand over JSON-style data. Individual risk records are often
incomplete, so :func:`parse_risk` never rejects one: missing or invalid
fields are coerced to neutral values and a processing note explaining each
coercion is attached to the record. Only file-level problems (missing file,
undecodable or non-JSON content, wrong top-level shape) raise.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional

import structlog

from .config import DuplicationConfig
from .models import Risk, RiskSource, Severity, TierResult

logger = structlog.get_logger(__name__)

# Keys accepted for each field, first match wins
_FIELD_KEYS: dict[str, tuple[str, ...]] = {
    "id": ("id",),
    "title": ("title",),
    "description": ("description",),
    "category": ("category",),
    "severity": ("severity", "level"),
    "recommendation": ("recommendation", "suggestion"),
    "source": ("source",),
    "confidence": ("confidence",),
    "original_text": ("original_text", "originalText"),
    "processing_notes": ("processing_notes", "processingNotes"),
    "template_reference": ("template_reference", "templateReference"),
}

_REQUIRED_TEXT_FIELDS = ("title", "category")


@dataclass
class AnalysisInput:
    """Everything a consolidation request needs, parsed from one payload."""

    template: TierResult
    industry: Optional[TierResult]
    general: TierResult
    config: DuplicationConfig = field(default_factory=DuplicationConfig)
    metadata: dict = field(default_factory=dict)


def _lookup(raw: dict, name: str) -> Any:
    for key in _FIELD_KEYS[name]:
        if key in raw:
            return raw[key]
    return None


def parse_risk(raw: Any, position: int = 0) -> Risk:
    """Build a :class:`Risk` from a loosely-shaped mapping.

    Args:
        raw: Mapping as produced by an analysis tier. Non-mappings produce
            an empty record.
        position: Zero-based index of the record in its tier, used for the
            fallback id (``position + 1``).

    Returns:
        A well-formed Risk. Every coercion is listed in
        ``processing_notes``.
    """
    notes: list[str] = []
    if not isinstance(raw, dict):
        notes.append(f"record was {type(raw).__name__}, expected an object")
        raw = {}

    existing_notes = _lookup(raw, "processing_notes")
    carried = [str(n) for n in existing_notes] if isinstance(existing_notes, list) else []
    notes = carried + notes

    risk_id = _lookup(raw, "id")
    try:
        if isinstance(risk_id, bool):
            raise TypeError("boolean id")
        risk_id = int(risk_id)
    except (TypeError, ValueError):
        notes.append(f"missing or invalid id {risk_id!r}; using {position + 1}")
        risk_id = position + 1

    text: dict[str, str] = {}
    for name in ("title", "description", "category", "recommendation"):
        value = _lookup(raw, name)
        if isinstance(value, str):
            text[name] = value.strip()
        else:
            text[name] = "" if value is None else str(value).strip()
        if name in _REQUIRED_TEXT_FIELDS and not text[name]:
            notes.append(f"missing {name}; defaulted to empty string")

    severity = _coerce_severity(_lookup(raw, "severity"), notes)
    source = _coerce_source(_lookup(raw, "source"), notes)
    confidence = _coerce_confidence(_lookup(raw, "confidence"), notes)

    original_text = _lookup(raw, "original_text")
    template_reference = _lookup(raw, "template_reference")

    risk = Risk(
        id=risk_id,
        title=text["title"],
        description=text["description"],
        category=text["category"],
        severity=severity,
        recommendation=text["recommendation"],
        source=source,
        confidence=confidence,
        original_text=str(original_text) if original_text is not None else None,
        processing_notes=notes,
        template_reference=str(template_reference) if template_reference is not None else None,
    )
    if len(notes) > len(carried):
        logger.warning("malformed_risk_coerced", risk_id=risk_id, notes=notes)
    return risk


def normalize_risk(risk: Risk, position: int = 0) -> Risk:
    """Apply the :func:`parse_risk` coercions to an already-built :class:`Risk`.

    Records constructed in code can carry ``None`` or wrongly-typed fields.
    Returns *risk* itself when nothing needed fixing, otherwise a corrected
    copy with one processing note per fix. *risk* is never modified.
    """
    notes: list[str] = []
    changes: dict[str, Any] = {}

    if not isinstance(risk.id, int) or isinstance(risk.id, bool):
        try:
            if isinstance(risk.id, bool):
                raise TypeError("boolean id")
            changes["id"] = int(risk.id)
        except (TypeError, ValueError):
            notes.append(f"missing or invalid id {risk.id!r}; using {position + 1}")
            changes["id"] = position + 1

    for name in ("title", "description", "category", "recommendation"):
        value = getattr(risk, name)
        if isinstance(value, str):
            continue
        changes[name] = "" if value is None else str(value).strip()
        if name in _REQUIRED_TEXT_FIELDS and not changes[name]:
            notes.append(f"missing {name}; defaulted to empty string")

    if not isinstance(risk.severity, Severity):
        changes["severity"] = _coerce_severity(risk.severity, notes)
    if risk.source is not None and not isinstance(risk.source, RiskSource):
        changes["source"] = _coerce_source(risk.source, notes)
    if risk.confidence is not None:
        confidence = _coerce_confidence(risk.confidence, notes)
        if confidence != risk.confidence:
            changes["confidence"] = confidence

    if not isinstance(risk.processing_notes, list):
        existing = risk.processing_notes
        changes["processing_notes"] = [str(n) for n in existing] if existing else []

    if not changes:
        return risk
    if notes:
        carried = changes.get("processing_notes", risk.processing_notes)
        changes["processing_notes"] = list(carried) + notes
        logger.warning("malformed_risk_coerced", risk_id=changes.get("id", risk.id), notes=notes)
    return replace(risk, **changes)


def normalize_tier(tier: TierResult) -> TierResult:
    """Return *tier* with every risk passed through :func:`normalize_risk`."""
    risks = [normalize_risk(r, i) for i, r in enumerate(tier.risks)]
    if all(new is old for new, old in zip(risks, tier.risks)):
        return tier
    return replace(tier, risks=risks)


def _coerce_severity(raw: Any, notes: list[str]) -> Severity:
    try:
        return Severity(str(raw).strip().lower())
    except ValueError:
        notes.append(f"invalid severity {raw!r}; defaulted to 'medium'")
        return Severity.MEDIUM


def _coerce_source(raw: Any, notes: list[str]) -> Optional[RiskSource]:
    if raw is None:
        return None
    try:
        return RiskSource(str(raw).strip().lower())
    except ValueError:
        notes.append(f"unknown source {raw!r} dropped")
        return None


def _coerce_confidence(raw: Any, notes: list[str]) -> Optional[float]:
    if raw is None:
        return None
    try:
        confidence = float(raw)
        if isinstance(raw, bool) or not math.isfinite(confidence):
            raise ValueError(raw)
    except (TypeError, ValueError):
        notes.append(f"invalid confidence {raw!r} dropped")
        return None
    if not (0.0 <= confidence <= 1.0):
        notes.append(f"confidence {confidence} clamped to [0, 1]")
        confidence = max(0.0, min(1.0, confidence))
    return confidence


def parse_tier(payload: Any) -> TierResult:
    """Parse one tier result ``{"risks": [...], "metadata": {...}, "processingTimeMs": n}``.

    A bare list is accepted as the risk list. ``None`` yields an empty tier.

    Raises:
        ValueError: If *payload* is neither a mapping, a list nor ``None``.
    """
    if payload is None:
        return TierResult()
    if isinstance(payload, list):
        payload = {"risks": payload}
    if not isinstance(payload, dict):
        raise ValueError(f"Tier payload must be an object or list, got {type(payload).__name__}")

    raw_risks = payload.get("risks") or []
    if not isinstance(raw_risks, list):
        raise ValueError("Tier 'risks' must be a list")

    metadata = payload.get("metadata") or {}
    if not isinstance(metadata, dict):
        metadata = {"value": metadata}

    elapsed = payload.get("processing_time_ms", payload.get("processingTimeMs", 0.0))
    try:
        elapsed = float(elapsed or 0.0)
    except (TypeError, ValueError):
        elapsed = 0.0

    return TierResult(
        risks=[parse_risk(r, i) for i, r in enumerate(raw_risks)],
        metadata=metadata,
        processing_time_ms=elapsed,
    )


def parse_analysis_input(data: Any) -> AnalysisInput:
    """Parse a full consolidation request.

    Expected shape::

        {
            "template": {...tier...},
            "industry": {...tier...} | null,
            "general": {...tier...},
            "config": {...}            # optional
        }

    ``templateRisks`` / ``generalRisks`` bare lists (the debug endpoint
    shape) are accepted too.

    Raises:
        ValueError: If the top level is not an object.
        ConfigurationError: If the embedded config is invalid.
    """
    if not isinstance(data, dict):
        raise ValueError("Analysis input must be a JSON object")

    template = data.get("template", data.get("templateRisks"))
    general = data.get("general", data.get("generalRisks"))
    industry = data.get("industry", data.get("industryRisks"))
    config_raw = data.get("config")

    config = DuplicationConfig.from_dict(config_raw) if isinstance(config_raw, dict) else DuplicationConfig()
    metadata = data.get("metadata") if isinstance(data.get("metadata"), dict) else {}

    return AnalysisInput(
        template=parse_tier(template),
        industry=parse_tier(industry) if industry is not None else None,
        general=parse_tier(general),
        config=config,
        metadata=metadata,
    )


def load_analysis_input(path: str | Path) -> AnalysisInput:
    """Read and parse a JSON consolidation request from disk.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not UTF-8 JSON of the expected shape.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"File not found: {p}")
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except UnicodeDecodeError as exc:
        raise ValueError(f"Cannot read {p} as UTF-8: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {p}: {exc}") from exc
    return parse_analysis_input(data)
