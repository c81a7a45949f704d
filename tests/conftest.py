"""Shared test fixtures for contract-risk-consolidator tests."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Callable

import pytest

from risk_consolidation.models import Risk, Severity


@pytest.fixture
def make_risk() -> Callable[..., Risk]:
    """Factory for Risk records with sensible defaults."""

    def _make(
        id: int,
        title: str,
        description: str = "",
        category: str = "General",
        severity: Severity = Severity.MEDIUM,
        recommendation: str = "",
        **kwargs,
    ) -> Risk:
        return Risk(
            id=id,
            title=title,
            description=description,
            category=category,
            severity=severity,
            recommendation=recommendation,
            **kwargs,
        )

    return _make


@pytest.fixture
def payment_template_risk(make_risk) -> Risk:
    return make_risk(
        1,
        "Payment Terms",
        description="Payment due in 60 days",
        category="Payment",
        severity=Severity.MEDIUM,
        recommendation="Negotiate net 30 payment terms",
    )


@pytest.fixture
def payment_general_risk(make_risk) -> Risk:
    return make_risk(
        9,
        "Delayed Payment",
        description="Invoice payment occurs after 60 days, which is long",
        category="Payment Terms",
        severity=Severity.MEDIUM,
        recommendation="Request milestone-based billing",
    )


@pytest.fixture
def non_compete_risk(make_risk) -> Risk:
    return make_risk(
        1,
        "Non-Compete Scope",
        description="Employee may not work for competitors for two years",
        category="Non-Compete",
        severity=Severity.HIGH,
    )


@pytest.fixture
def confidentiality_risk(make_risk) -> Risk:
    return make_risk(
        2,
        "Confidentiality Duration",
        description="Confidential information must be protected indefinitely",
        category="Confidentiality",
        severity=Severity.HIGH,
    )


@pytest.fixture
def late_fee_tiers(make_risk) -> tuple[list[Risk], list[Risk], list[Risk]]:
    """Three tiers that all rediscover the same late-payment defect."""
    template = [
        make_risk(
            1,
            "Late Payment Penalties",
            description="Late payments accrue interest of 5 percent per month",
            category="Payment",
            severity=Severity.HIGH,
            recommendation="Negotiate a lower late fee",
        ),
        make_risk(
            2,
            "Unilateral Termination",
            description="Client may terminate the agreement without cause on 10 days notice",
            category="Termination",
            severity=Severity.HIGH,
            recommendation="Require mutual termination rights",
        ),
    ]
    industry = [
        make_risk(
            1,
            "Late Payment Penalties",
            description=(
                "Late payments accrue interest of 5 percent per month, above industry norms"
            ),
            category="Payment",
            severity=Severity.MEDIUM,
            recommendation="Cap late fees at market rate",
        ),
        make_risk(
            2,
            "HIPAA Business Associate Obligations",
            description="Vendor handles protected health information without a BAA",
            category="Regulatory Compliance",
            severity=Severity.HIGH,
            recommendation="Execute a business associate agreement",
        ),
    ]
    general = [
        make_risk(
            5,
            "Late Payment Penalties",
            description="Late payments accrue interest of 5 percent per month",
            category="Payment Terms",
            severity=Severity.LOW,
            recommendation="Negotiate a lower late fee",
        ),
        make_risk(
            1,
            "Broad Audit Rights",
            description="Customer may audit vendor books at any time without notice",
            category="Audit",
            severity=Severity.LOW,
            recommendation="Limit audits to once per year with reasonable notice",
        ),
    ]
    return template, industry, general


@pytest.fixture
def request_payload() -> dict:
    """A consolidation request in the JSON shape produced by the web layer."""
    return {
        "template": {
            "risks": [
                {
                    "id": 1,
                    "title": "Late Payment Penalties",
                    "description": "Late payments accrue interest of 5 percent per month",
                    "category": "Payment",
                    "severity": "high",
                    "recommendation": "Negotiate a lower late fee",
                    "source": "template",
                }
            ],
            "metadata": {
                "missingClauses": ["Limitation of Liability", "Force Majeure"],
                "identifiedRedFlags": ["Uncapped interest"],
            },
            "processingTimeMs": 1200,
        },
        "industry": {
            "risks": [
                {
                    "id": 1,
                    "title": "Late Payment Penalties",
                    "description": (
                        "Late payments accrue interest of 5 percent per month, "
                        "above industry norms"
                    ),
                    "category": "Payment",
                    "severity": "medium",
                    "recommendation": "Cap late fees at market rate",
                }
            ],
            "metadata": {
                "industryDetection": {
                    "industryId": "healthcare",
                    "industryName": "Healthcare",
                    "confidence": 0.82,
                }
            },
            "processingTimeMs": 300,
        },
        "general": {
            "risks": [
                {
                    "id": 1,
                    "title": "Broad Audit Rights",
                    "description": "Customer may audit vendor books at any time without notice",
                    "category": "Audit",
                    "severity": "low",
                    "recommendation": "Limit audits to once per year",
                    "confidence": 0.7,
                }
            ],
            "metadata": {"missingClauses": ["Force Majeure", "Insurance"]},
            "processingTimeMs": 2500,
        },
        "config": {"similarityThreshold": 0.7},
        "metadata": {"contractType": "service_agreement", "partyRole": "vendor"},
    }


@pytest.fixture
def request_file(tmp_path: Path, request_payload: dict) -> Path:
    """Write the request payload to a temporary JSON file."""
    file = tmp_path / "tiers.json"
    file.write_text(json.dumps(request_payload), encoding="utf-8")
    return file


@pytest.fixture
def fixed_clock() -> Callable[[], str]:
    """Deterministic timestamp source for trace entries."""
    return lambda: "2024-01-01T00:00:00+00:00"
