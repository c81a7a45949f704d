"""Duplicate-detection configuration.

A :class:`DuplicationConfig` is built once per consolidation run and never
changes during it. Weights need not sum to 1; they are normalized at
scoring time. Invalid values raise :class:`ConfigurationError` on
construction, before any comparison work can start.

Environment overrides are a caller concern: :func:`load_config` reads them
(optionally from a ``.env`` file) and hands back an ordinary config object.
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

from dotenv import dotenv_values

from .models import Tier

DEFAULT_SIMILARITY_THRESHOLD = 0.7
DEFAULT_TITLE_WEIGHT = 0.4
DEFAULT_DESCRIPTION_WEIGHT = 0.4
DEFAULT_CATEGORY_WEIGHT = 0.2

ENV_PREFIX = "RISK_"


class ConfigurationError(ValueError):
    """Raised when weights or threshold make scoring undefined."""


@dataclass(frozen=True)
class ManualOverride:
    """Force the classification of one incoming risk.

    Attributes:
        risk_id: Id of the incoming (secondary tier) risk.
        matched_risk_id: Candidate to pair it with. ``None`` keeps the
            best-scoring candidate.
        is_duplicate: Forced classification.
        tier: Restrict the override to one tier; ``None`` applies to all.
    """

    risk_id: int
    matched_risk_id: Optional[int] = None
    is_duplicate: bool = True
    tier: Optional[Tier] = None

    def applies_to(self, risk_id: int, tier: Optional[Tier]) -> bool:
        if self.risk_id != risk_id:
            return False
        return self.tier is None or tier is None or self.tier == tier


@dataclass(frozen=True)
class DuplicationConfig:
    """Scoring weights and the duplicate threshold for one run.

    Attributes:
        similarity_threshold: Pairs scoring at or above this value are
            duplicates. Must be in [0.0, 1.0].
        title_weight: Relative weight of title similarity.
        description_weight: Relative weight of description similarity.
        category_weight: Relative weight of category similarity.
        enable_manual_overrides: Honour :attr:`manual_overrides`.
        manual_overrides: Caller-forced classifications.

    Raises:
        ConfigurationError: If the threshold is out of range, a weight is
            negative or not finite, or all weights are zero.
    """

    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD
    title_weight: float = DEFAULT_TITLE_WEIGHT
    description_weight: float = DEFAULT_DESCRIPTION_WEIGHT
    category_weight: float = DEFAULT_CATEGORY_WEIGHT
    enable_manual_overrides: bool = False
    manual_overrides: tuple[ManualOverride, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        threshold = self.similarity_threshold
        if not _is_number(threshold) or not (0.0 <= threshold <= 1.0):
            raise ConfigurationError(
                f"similarity_threshold must be between 0.0 and 1.0, got {threshold!r}"
            )
        for name in ("title_weight", "description_weight", "category_weight"):
            value = getattr(self, name)
            if not _is_number(value) or value < 0:
                raise ConfigurationError(f"{name} must be a non-negative number, got {value!r}")
        if self.weight_total == 0:
            raise ConfigurationError("at least one of the similarity weights must be non-zero")
        # Accept lists from JSON callers but keep the instance hashable
        object.__setattr__(self, "manual_overrides", tuple(self.manual_overrides))

    @property
    def weight_total(self) -> float:
        return self.title_weight + self.description_weight + self.category_weight

    @property
    def normalized_weights(self) -> tuple[float, float, float]:
        """``(title, description, category)`` weights scaled to sum to 1."""
        total = self.weight_total
        return (
            self.title_weight / total,
            self.description_weight / total,
            self.category_weight / total,
        )

    def find_override(self, risk_id: int, tier: Optional[Tier] = None) -> Optional[ManualOverride]:
        """Return the first override for *risk_id*, if overrides are enabled."""
        if not self.enable_manual_overrides:
            return None
        for override in self.manual_overrides:
            if override.applies_to(risk_id, tier):
                return override
        return None

    def with_threshold(self, threshold: float) -> DuplicationConfig:
        """Copy of this config with a different threshold (validated)."""
        return replace(self, similarity_threshold=threshold)

    @classmethod
    def from_dict(cls, data: dict) -> DuplicationConfig:
        """Build a config from a JSON-style mapping.

        Accepts both ``snake_case`` and the ``camelCase`` keys emitted by
        the web front end. Unknown keys are ignored.
        """
        aliases = {
            "similarityThreshold": "similarity_threshold",
            "titleWeight": "title_weight",
            "descriptionWeight": "description_weight",
            "categoryWeight": "category_weight",
            "enableManualOverrides": "enable_manual_overrides",
            "manualOverrides": "manual_overrides",
        }
        kwargs: dict = {}
        for key, value in data.items():
            name = aliases.get(key, key)
            if name in cls.__dataclass_fields__:
                kwargs[name] = value

        overrides = []
        for raw in kwargs.get("manual_overrides") or ():
            if isinstance(raw, ManualOverride):
                overrides.append(raw)
                continue
            try:
                tier = raw.get("tier")
                overrides.append(
                    ManualOverride(
                        risk_id=int(raw.get("risk_id", raw.get("riskId"))),
                        matched_risk_id=_optional_int(
                            raw.get("matched_risk_id", raw.get("matchedRiskId"))
                        ),
                        is_duplicate=bool(raw.get("is_duplicate", raw.get("isDuplicate", True))),
                        tier=Tier(tier) if tier else None,
                    )
                )
            except (AttributeError, TypeError, ValueError) as exc:
                raise ConfigurationError(f"Invalid manual override {raw!r}: {exc}") from exc
        kwargs["manual_overrides"] = tuple(overrides)
        return cls(**kwargs)

    def to_dict(self) -> dict:
        return {
            "similarity_threshold": self.similarity_threshold,
            "title_weight": self.title_weight,
            "description_weight": self.description_weight,
            "category_weight": self.category_weight,
            "enable_manual_overrides": self.enable_manual_overrides,
            "manual_overrides": [
                {
                    "risk_id": o.risk_id,
                    "matched_risk_id": o.matched_risk_id,
                    "is_duplicate": o.is_duplicate,
                    "tier": o.tier.value if o.tier else None,
                }
                for o in self.manual_overrides
            ],
        }


def load_config(env_file: str | Path | None = None) -> DuplicationConfig:
    """Build a config from ``RISK_*`` environment variables.

    Recognised variables: ``RISK_SIMILARITY_THRESHOLD``,
    ``RISK_TITLE_WEIGHT``, ``RISK_DESCRIPTION_WEIGHT``,
    ``RISK_CATEGORY_WEIGHT`` and ``RISK_ENABLE_MANUAL_OVERRIDES``. Unset
    variables keep their defaults.

    Args:
        env_file: Optional ``.env`` file. It is read without touching
            ``os.environ``; variables already present in the process
            environment take precedence.

    Raises:
        ConfigurationError: If a variable cannot be parsed or the resulting
            config is invalid.
    """
    values: dict[str, Optional[str]] = dict(dotenv_values(env_file)) if env_file is not None else {}
    values.update(os.environ)

    kwargs: dict = {}
    for name in ("similarity_threshold", "title_weight", "description_weight", "category_weight"):
        raw = values.get(ENV_PREFIX + name.upper())
        if raw is None or not raw.strip():
            continue
        try:
            kwargs[name] = float(raw)
        except ValueError as exc:
            raise ConfigurationError(
                f"{ENV_PREFIX}{name.upper()} must be a number, got {raw!r}"
            ) from exc

    flag = values.get(ENV_PREFIX + "ENABLE_MANUAL_OVERRIDES")
    if flag is not None and flag.strip():
        kwargs["enable_manual_overrides"] = flag.strip().lower() in ("1", "true", "yes", "on")

    return DuplicationConfig(**kwargs)


def _is_number(value: object) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _optional_int(value: object) -> Optional[int]:
    return None if value is None else int(value)
