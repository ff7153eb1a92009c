"""
Verification Record Schema
===========================

The VerificationRecord is the aggregate root of one verification run.
It is created on submission (``pending``), and from then on owned and
mutated by the orchestrator alone until it reaches a terminal state.

Lifecycle:
    pending → processing → completed
                         ↘ failed

``completed`` and ``failed`` are terminal. There is no retry at this
layer: a caller that wants one submits a new record.

Note the two different "status" notions:
    - ``status``  is the lifecycle state of the *run*
    - ``verdict`` is the score outcome (verified / failed) of a completed run
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from certicv.errors import OrchestrationError
from certicv.schemas.analysis import AnalysisFindings, FraudReport
from certicv.schemas.claims import ExtractedClaims
from certicv.schemas.verification import ClaimVerifications, TimestampProof
from certicv.utils import dedupe


def _utc_now() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


class VerificationStatus(str, Enum):
    """Lifecycle state of a verification run."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (VerificationStatus.COMPLETED, VerificationStatus.FAILED)


ALLOWED_TRANSITIONS: dict[VerificationStatus, frozenset[VerificationStatus]] = {
    VerificationStatus.PENDING: frozenset({VerificationStatus.PROCESSING, VerificationStatus.FAILED}),
    VerificationStatus.PROCESSING: frozenset({VerificationStatus.COMPLETED, VerificationStatus.FAILED}),
    VerificationStatus.COMPLETED: frozenset(),
    VerificationStatus.FAILED: frozenset(),
}


class ScoreVerdict(str, Enum):
    """Outcome of the score threshold on a completed run."""
    VERIFIED = "verified"
    FAILED = "failed"


SCORE_BANDS: dict[str, int] = {
    "degree_verification": 30,
    "experience_verification": 25,
    "identity_verification": 20,
    "document_authenticity": 15,
    "consistency_score": 10,
}


class ScoreBreakdown(BaseModel):
    """
    Five bounded score bands. The sum can never exceed 100.

    Bands:
        degree_verification      [0, 30]
        experience_verification  [0, 25]
        identity_verification    [0, 20]
        document_authenticity    [0, 15]
        consistency_score        [0, 10]
    """
    degree_verification: int = Field(default=0, ge=0, le=SCORE_BANDS["degree_verification"])
    experience_verification: int = Field(default=0, ge=0, le=SCORE_BANDS["experience_verification"])
    identity_verification: int = Field(default=0, ge=0, le=SCORE_BANDS["identity_verification"])
    document_authenticity: int = Field(default=0, ge=0, le=SCORE_BANDS["document_authenticity"])
    consistency_score: int = Field(default=0, ge=0, le=SCORE_BANDS["consistency_score"])

    @property
    def total(self) -> int:
        return (
            self.degree_verification
            + self.experience_verification
            + self.identity_verification
            + self.document_authenticity
            + self.consistency_score
        )


class Flags(BaseModel):
    """Merged projection of AnalysisFindings and FraudReport for display."""
    inconsistencies: list[str] = Field(default_factory=list)
    fraud_indicators: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @field_validator("inconsistencies", "fraud_indicators", "warnings")
    @classmethod
    def deduplicate(cls, v: list[str]) -> list[str]:
        return dedupe(v)

    @classmethod
    def merge(cls, findings: AnalysisFindings, report: FraudReport) -> "Flags":
        return cls(
            inconsistencies=findings.inconsistencies + report.fraud_indicators,
            fraud_indicators=report.fraud_indicators,
            warnings=findings.warnings + report.warnings,
        )


class CandidateMetadata(BaseModel):
    """Optional contact details supplied with the submission."""
    name: str = ""
    email: str = ""
    phone: str = ""


class RunError(BaseModel):
    """Diagnostic summary attached to a failed run."""
    type: str
    message: str
    stage: str = ""


class VerificationRecord(BaseModel):
    """
    Aggregate root for one submitted document.

    All result fields stay empty until the run completes; a failed run
    carries ``error`` instead.
    """
    # ── Identity ───────────────────────────────────────────────────
    verification_id: str = Field(description="Unique verification identifier")
    candidate_id: str = Field(description="Candidate the document belongs to")
    document_digest: str = Field(description="0x-prefixed SHA-256 of the document bytes")
    media_type: str = Field(default="text/plain")
    metadata: CandidateMetadata = Field(default_factory=CandidateMetadata)

    # ── Lifecycle ──────────────────────────────────────────────────
    status: VerificationStatus = Field(default=VerificationStatus.PENDING)
    created_at: str = Field(default_factory=_utc_now)
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    error: Optional[RunError] = None

    # ── Results ────────────────────────────────────────────────────
    claims: ExtractedClaims = Field(default_factory=ExtractedClaims)
    word_count: int = 0
    character_count: int = 0
    findings: Optional[AnalysisFindings] = None
    fraud_report: Optional[FraudReport] = None
    flags: Flags = Field(default_factory=Flags)
    claim_verifications: ClaimVerifications = Field(default_factory=ClaimVerifications)
    breakdown: Optional[ScoreBreakdown] = None
    score: Optional[int] = Field(default=None, ge=0, le=100)
    verdict: Optional[ScoreVerdict] = None
    evidence_digest: Optional[str] = None
    timestamp_proof: Optional[TimestampProof] = None

    # ── Provenance ─────────────────────────────────────────────────
    config_hash: str = ""
    timings: dict[str, float] = Field(default_factory=dict)

    def transition(self, to: VerificationStatus) -> None:
        """Move to ``to``, enforcing the lifecycle graph."""
        if to not in ALLOWED_TRANSITIONS[self.status]:
            raise OrchestrationError(
                f"Illegal transition {self.status.value} → {to.value} "
                f"for {self.verification_id}"
            )
        self.status = to
        if to == VerificationStatus.PROCESSING:
            self.started_at = _utc_now()
        elif to.is_terminal:
            self.completed_at = _utc_now()

    def score_view(self, threshold: int = 70) -> dict[str, Any]:
        """Score, verdict, threshold and breakdown, as shown to an employer."""
        return {
            "verification_id": self.verification_id,
            "score": self.score,
            "status": self.verdict.value if self.verdict else None,
            "threshold": threshold,
            "breakdown": self.breakdown.model_dump() if self.breakdown else None,
        }
