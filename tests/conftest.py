"""
CertiCV Test Configuration
============================

Shared fixtures, factories, fake transports and helpers for the
entire test suite. Nothing here touches the network.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from certicv.config import CertiCVConfig
from certicv.errors import OracleUnavailable
from certicv.schemas.analysis import AnalysisFindings, FraudReport, SourceUsed
from certicv.schemas.claims import EducationInterval, EmploymentInterval, ExtractedClaims
from certicv.schemas.verification import (
    AttestationProof,
    ClaimKind,
    ClaimVerificationResult,
    ClaimVerifications,
)
from certicv.utils import compute_content_hash


# ── Markers ─────────────────────────────────────────────────────

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: fast unit tests")
    config.addinivalue_line("markers", "integration: multi-component tests")


# ── Sample documents ────────────────────────────────────────────

SAMPLE_RESUME = """Jane Doe
jane.doe@example.com

EDUCATION
Stanford University
Bachelor of Science in Computer Science, 2012 - 2016

EXPERIENCE
Software Engineer at Acme Corp
2016 - 2019
Senior Engineer, Globex Systems
2019 - Present

SKILLS
Python, Docker, Kubernetes, SQL
AWS Certified Developer
"""

EMPTY_RESUME = "just a short note with nothing to verify in it."


# ── Fixtures ────────────────────────────────────────────────────

@pytest.fixture
def config() -> CertiCVConfig:
    """Default test config: no model credentials, no oracle endpoints."""
    return make_config()


@pytest.fixture
def sample_text() -> str:
    return SAMPLE_RESUME


@pytest.fixture
def sample_claims() -> ExtractedClaims:
    """Claims matching SAMPLE_RESUME."""
    return ExtractedClaims(
        institutions=["Stanford University"],
        degrees=["Bachelor of Science in Computer Science"],
        employers=["Acme Corp", "Globex Systems"],
        skills=["Python", "SQL", "Kubernetes", "Docker", "AWS"],
        certifications=["AWS Certified Developer"],
        education_intervals=[
            EducationInterval(start="2012", end="2016", institution="Stanford University"),
        ],
        employment_intervals=[
            EmploymentInterval(start="2016", end="2019", employer="Acme Corp"),
            EmploymentInterval(start="2019", end=None, employer="Globex Systems"),
        ],
    )


@pytest.fixture
def clean_findings() -> AnalysisFindings:
    return make_findings()


@pytest.fixture
def verified_claims() -> ClaimVerifications:
    """Degree verified, institution verified and accredited."""
    return ClaimVerifications(
        degree=make_verification(ClaimKind.DEGREE, verified=True),
        institution=make_verification(ClaimKind.ACCREDITATION, verified=True, accredited=True),
    )


# ── Factories ───────────────────────────────────────────────────

def make_config(**overrides: Any) -> CertiCVConfig:
    """Config isolated from the environment and any .env file."""
    values: dict[str, Any] = {"openai_api_key": None, "gemini_api_key": None}
    values.update(overrides)
    return CertiCVConfig(_env_file=None, **values)


def make_findings(
    inconsistencies: Optional[list[str]] = None,
    fraud_indicators: Optional[list[str]] = None,
    warnings: Optional[list[str]] = None,
    timeline_issues: Optional[list[str]] = None,
    credibility_score: int = 80,
    consistency_score: float = 10.0,
    source_used: SourceUsed = SourceUsed.EXTERNAL_MODEL,
) -> AnalysisFindings:
    """Factory for analyzer findings."""
    return AnalysisFindings(
        inconsistencies=inconsistencies or [],
        fraud_indicators=fraud_indicators or [],
        warnings=warnings or [],
        timeline_issues=timeline_issues or [],
        credibility_score=credibility_score,
        consistency_score=consistency_score,
        source_used=source_used,
    )


def make_report(indicators: int = 0, warnings: int = 0) -> FraudReport:
    """Factory for a fraud report with N distinct indicators/warnings."""
    return FraudReport(
        fraud_indicators=[f"indicator {i}" for i in range(indicators)],
        warnings=[f"warning {i}" for i in range(warnings)],
    )


def make_verification(
    kind: ClaimKind = ClaimKind.DEGREE,
    verified: bool = True,
    accredited: Optional[bool] = None,
    error: Optional[str] = None,
) -> ClaimVerificationResult:
    """Factory for a registry result."""
    query = {"institution": "Stanford University"}
    if kind == ClaimKind.DEGREE:
        query["degree"] = "Bachelor of Science"
    return ClaimVerificationResult(
        kind=kind,
        verified=verified,
        accredited=accredited,
        proof_digest=compute_content_hash(query),
        source="test-registry",
        query=query,
        proof=AttestationProof(signature="0xsig", timestamp=1700000000, merkle_root="0xroot"),
        error=error,
    )


def make_openai_client(content: str | None = None, side_effect: Any = None) -> MagicMock:
    """Mock AsyncOpenAI client whose chat completion returns ``content``."""
    client = MagicMock()
    message = MagicMock()
    message.content = content
    choice = MagicMock()
    choice.message = message
    response = MagicMock()
    response.choices = [choice]
    if side_effect is not None:
        client.chat.completions.create = AsyncMock(side_effect=side_effect)
    else:
        client.chat.completions.create = AsyncMock(return_value=response)
    return client


# ── Fake transports ─────────────────────────────────────────────

class FakeRegistry:
    """In-memory registry transport recording every request."""

    def __init__(
        self,
        verified: bool = True,
        accredited: bool = True,
        fail: bool = False,
        delay: float = 0.0,
    ):
        self.verified = verified
        self.accredited = accredited
        self.fail = fail
        self.delay = delay
        self.requests: list[dict[str, Any]] = []

    async def query(self, request: dict[str, Any]) -> dict[str, Any]:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise OracleUnavailable("registry down")
        return {
            "verified": self.verified,
            "accredited": self.accredited,
            "accreditationBody": "WASC",
            "source": "test-registry",
            "proof": {"signature": "0xsig", "timestamp": 1700000000, "merkleRoot": "0xroot"},
        }


class FakeTimeOracle:
    """In-memory time-oracle transport."""

    def __init__(self, timestamp: int = 1700000000, fail: bool = False, delay: float = 0.0):
        self.timestamp = timestamp
        self.fail = fail
        self.delay = delay

    async def fetch(self) -> dict[str, Any]:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise OracleUnavailable("time-oracle down")
        return {
            "timestamp": self.timestamp,
            "epoch": self.timestamp // 3600,
            "oracle_signature": "0xabc123",
            "confidence": 0.99,
            "block_number": 42,
        }
