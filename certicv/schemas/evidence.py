"""
Evidence Bundle Schema
=======================

The EvidenceBundle gathers every artifact a verification run produced
(document digest, analysis findings, fraud report, registry results)
into one object whose canonical serialization is hashed into the
EvidenceDigest.

Design Philosophy:
    The bundle is the reviewable evidence trail. Anyone holding the
    bundle can recompute the digest and compare it with the one stored
    on the VerificationRecord; any edit to any finding changes it.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from certicv.schemas.analysis import AnalysisFindings, FraudReport
from certicv.schemas.verification import ClaimVerifications


class EvidenceBundle(BaseModel):
    """Everything bound into the evidence digest."""
    document_digest: str = Field(description="0x-prefixed SHA-256 of the document bytes")
    findings: AnalysisFindings = Field(description="Consistency Analyzer output")
    fraud_report: FraudReport = Field(description="Fraud Heuristics output")
    claim_verifications: ClaimVerifications = Field(
        default_factory=ClaimVerifications,
        description="Registry results (degree + accreditation)"
    )


class EvidenceComponents(BaseModel):
    """Per-component digests, for inspecting what an evidence digest covers."""
    evidence_digest: str
    document_digest: str
    analysis_digest: str
    fraud_report_digest: str
    degree_proof_digest: str = Field(default="", description="Registry proof digest of the degree claim, if any")
