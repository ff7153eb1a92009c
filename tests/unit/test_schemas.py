"""
Schema Tests
=============

Tests the Pydantic data contracts for:
    - Defined-empty defaults
    - Set semantics of claim collections
    - Band limits on the score breakdown
    - Lifecycle transitions on the verification record
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from certicv.errors import OrchestrationError
from certicv.schemas import (
    ClaimKind,
    ClaimVerificationResult,
    ClaimVerifications,
    ExtractedClaims,
    Flags,
    FraudReport,
    ScoreBreakdown,
    TimestampProof,
    VerificationRecord,
    VerificationStatus,
)
from certicv.schemas.record import SCORE_BANDS

from tests.conftest import make_findings, make_verification


def make_record(**kwargs) -> VerificationRecord:
    values = {
        "verification_id": "ver_test",
        "candidate_id": "cand-1",
        "document_digest": "0x" + "a" * 64,
    }
    values.update(kwargs)
    return VerificationRecord(**values)


class TestExtractedClaims:

    def test_defaults_are_empty(self):
        claims = ExtractedClaims()
        assert claims.is_empty
        assert claims.institutions == []
        assert claims.education_intervals == []
        assert claims.primary_degree is None
        assert claims.graduation_year == ""

    def test_collections_deduplicated_case_preserving(self):
        claims = ExtractedClaims(
            institutions=["MIT", "MIT", "mit", " MIT "],
            skills=["Python", "", "Python"],
        )
        assert claims.institutions == ["MIT", "mit"]
        assert claims.skills == ["Python"]

    def test_graduation_year_from_first_interval(self, sample_claims):
        assert sample_claims.graduation_year == "2016"
        assert sample_claims.primary_institution == "Stanford University"


class TestFraudReport:

    def test_lists_deduplicated(self):
        report = FraudReport(fraud_indicators=["a", "a", "b"], warnings=["w", "w"])
        assert report.fraud_indicators == ["a", "b"]
        assert report.warnings == ["w"]
        assert report.risk_level.value == "none"


class TestScoreBreakdown:

    @pytest.mark.parametrize("band", list(SCORE_BANDS))
    def test_band_ceiling_enforced(self, band):
        with pytest.raises(ValidationError):
            ScoreBreakdown(**{band: SCORE_BANDS[band] + 1})

    def test_negative_rejected(self):
        with pytest.raises(ValidationError):
            ScoreBreakdown(degree_verification=-1)

    def test_max_total_is_100(self):
        assert ScoreBreakdown(**SCORE_BANDS).total == 100


class TestClaimVerification:

    def test_proof_digest_must_be_fixed_length_hex(self):
        with pytest.raises(ValidationError):
            ClaimVerificationResult(kind=ClaimKind.DEGREE, proof_digest="0x1234")

    def test_accreditation_requires_verified_and_accredited(self):
        unverified = ClaimVerifications(
            institution=make_verification(ClaimKind.ACCREDITATION, verified=False, accredited=True)
        )
        assert not unverified.institution_accredited
        accredited = ClaimVerifications(
            institution=make_verification(ClaimKind.ACCREDITATION, verified=True, accredited=True)
        )
        assert accredited.institution_accredited

    def test_degraded_flag(self):
        assert make_verification(error="registry down").degraded
        assert not make_verification().degraded

    def test_timestamp_confidence_bounded(self):
        with pytest.raises(ValidationError):
            TimestampProof(timestamp=1, epoch=0, confidence=1.5)


class TestVerificationRecord:

    def test_created_pending(self):
        record = make_record()
        assert record.status == VerificationStatus.PENDING
        assert record.started_at is None

    def test_lifecycle_transitions(self):
        record = make_record()
        record.transition(VerificationStatus.PROCESSING)
        assert record.started_at is not None
        record.transition(VerificationStatus.COMPLETED)
        assert record.status.is_terminal
        assert record.completed_at is not None

    def test_terminal_state_is_final(self):
        record = make_record()
        record.transition(VerificationStatus.PROCESSING)
        record.transition(VerificationStatus.FAILED)
        with pytest.raises(OrchestrationError):
            record.transition(VerificationStatus.PROCESSING)

    def test_cannot_skip_processing(self):
        with pytest.raises(OrchestrationError):
            make_record().transition(VerificationStatus.COMPLETED)

    def test_score_view(self):
        record = make_record(score=85, breakdown=ScoreBreakdown(degree_verification=30))
        view = record.score_view(threshold=70)
        assert view["score"] == 85
        assert view["threshold"] == 70
        assert view["breakdown"]["degree_verification"] == 30

    def test_flags_merge(self):
        findings = make_findings(inconsistencies=["dates differ"], warnings=["no employers"])
        report = FraudReport(fraud_indicators=["Suspicious institution: X"], warnings=["caps"])
        flags = Flags.merge(findings, report)
        assert flags.inconsistencies == ["dates differ", "Suspicious institution: X"]
        assert flags.fraud_indicators == ["Suspicious institution: X"]
        assert flags.warnings == ["no employers", "caps"]

    def test_json_roundtrip(self):
        record = make_record(findings=make_findings())
        restored = VerificationRecord.model_validate_json(record.model_dump_json())
        assert restored == record
