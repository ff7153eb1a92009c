"""
CertiCV Data Schemas
=====================

Pydantic v2 models for every artifact that crosses a component boundary:

1. ExtractedClaims        : Entity Extractor output
2. AnalysisFindings       : Consistency Analyzer output
3. FraudReport            : Fraud Heuristics output
4. ClaimVerificationResult / TimestampProof : external capability results
5. EvidenceBundle         : what the evidence digest covers
6. VerificationRecord     : the aggregate root
"""

from certicv.schemas.claims import (
    EducationInterval,
    EmploymentInterval,
    ExtractedClaims,
    ParsedDocument,
)
from certicv.schemas.analysis import (
    AnalysisFindings,
    FraudReport,
    RiskLevel,
    SourceUsed,
)
from certicv.schemas.verification import (
    AttestationProof,
    ClaimKind,
    ClaimVerificationResult,
    ClaimVerifications,
    TimestampProof,
)
from certicv.schemas.evidence import (
    EvidenceBundle,
    EvidenceComponents,
)
from certicv.schemas.record import (
    CandidateMetadata,
    Flags,
    RunError,
    ScoreBreakdown,
    ScoreVerdict,
    VerificationRecord,
    VerificationStatus,
)

__all__ = [
    # Claims
    "EducationInterval",
    "EmploymentInterval",
    "ExtractedClaims",
    "ParsedDocument",
    # Analysis
    "AnalysisFindings",
    "FraudReport",
    "RiskLevel",
    "SourceUsed",
    # External verification
    "AttestationProof",
    "ClaimKind",
    "ClaimVerificationResult",
    "ClaimVerifications",
    "TimestampProof",
    # Evidence
    "EvidenceBundle",
    "EvidenceComponents",
    # Record
    "CandidateMetadata",
    "Flags",
    "RunError",
    "ScoreBreakdown",
    "ScoreVerdict",
    "VerificationRecord",
    "VerificationStatus",
]
