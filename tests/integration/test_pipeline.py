"""
Pipeline Integration Tests
===========================

Runs whole documents through the VerificationPipeline with fake
registry / time-oracle transports and stub analyzers. No network.
"""

from __future__ import annotations

import asyncio

import pytest

from certicv.analyze.consistency import ConsistencyAnalyzer
from certicv.config import PipelineConfig
from certicv.errors import EmptyDocument, UnsupportedFormat
from certicv.oracles.registry import ClaimVerifier
from certicv.oracles.timestamp import TimestampSource
from certicv.pipeline import VerificationPipeline
from certicv.schemas.analysis import SourceUsed
from certicv.schemas.evidence import EvidenceBundle
from certicv.schemas.record import ScoreVerdict, VerificationStatus
from certicv.score.aggregator import ScoreAggregator
from certicv.score.evidence import EvidenceBinder
from certicv.store import InMemoryRecordStore
from certicv.utils import sha256_hex

from tests.conftest import (
    EMPTY_RESUME,
    SAMPLE_RESUME,
    FakeRegistry,
    FakeTimeOracle,
    make_config,
    make_findings,
    make_openai_client,
)


pytestmark = pytest.mark.integration

SAMPLE_BYTES = SAMPLE_RESUME.encode("utf-8")


class StubAnalyzer:
    """Analyzer returning fixed findings after an optional delay."""

    def __init__(self, delay: float = 0.0, **findings):
        self.delay = delay
        self.findings = make_findings(**findings)
        self.calls = 0

    async def analyze(self, text, claims):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.findings


class ExplodingAggregator(ScoreAggregator):
    def aggregate(self, findings, report, verifications):
        raise RuntimeError("aggregator exploded")


class FailingCommitStore(InMemoryRecordStore):
    """Store whose completing write fails; every other write succeeds."""

    async def compare_and_set(self, record, expected_status):
        if record.status == VerificationStatus.COMPLETED:
            raise RuntimeError("store write failed")
        await super().compare_and_set(record, expected_status)


class MalformedProofRegistry:
    async def query(self, request):
        return {"verified": True, "accredited": True, "proof": {"signature": 123, "timestamp": 1700000000}}


def make_pipeline(registry=None, oracle=None, pipeline_config=None, **overrides) -> VerificationPipeline:
    config = make_config(pipeline=pipeline_config) if pipeline_config else make_config()
    overrides.setdefault("claim_verifier", ClaimVerifier(registry))
    overrides.setdefault("timestamp_source", TimestampSource(oracle))
    return VerificationPipeline(config, **overrides)


class TestEndToEnd:

    @pytest.mark.asyncio
    async def test_fallback_run_completes(self):
        record = await make_pipeline().verify(SAMPLE_BYTES, "text/plain", "cand-1")

        assert record.status == VerificationStatus.COMPLETED
        assert record.error is None
        assert record.findings.source_used == SourceUsed.FALLBACK_HEURISTIC
        assert record.claims.institutions == ["Stanford University"]
        assert record.document_digest == sha256_hex(SAMPLE_BYTES)
        # Registry unavailable: degree 0 + experience 20 + identity 15 + authenticity 15 + consistency 10
        assert record.score == 60
        assert record.verdict == ScoreVerdict.FAILED
        assert record.claim_verifications.degree.degraded
        assert not record.timestamp_proof.verified
        assert record.started_at and record.completed_at

    @pytest.mark.asyncio
    async def test_verified_with_registry_and_oracle(self):
        registry = FakeRegistry(verified=True, accredited=True)
        pipeline = make_pipeline(registry, FakeTimeOracle())
        record = await pipeline.verify(SAMPLE_BYTES, "text/plain", "cand-1")

        assert record.score == 90
        assert record.verdict == ScoreVerdict.VERIFIED
        assert record.breakdown.degree_verification == 30
        assert record.timestamp_proof.verified
        assert record.timestamp_proof.oracle_signature == "0xabc123"

        degree_request = next(r for r in registry.requests if r["data_type"] == "education")
        assert degree_request["query"] == {
            "degree": "Bachelor of Science in Computer Science",
            "institution": "Stanford University",
            "year": "2016",
        }

    @pytest.mark.asyncio
    async def test_document_without_entities(self):
        registry = FakeRegistry()
        record = await make_pipeline(registry).verify(EMPTY_RESUME.encode(), "text/plain", "cand-2")

        assert record.status == VerificationStatus.COMPLETED
        assert record.claims.is_empty
        assert record.claim_verifications.degree is None
        assert record.claim_verifications.institution is None
        assert registry.requests == []
        # consistency 10 - 0.5 * 2 presence warnings = 9
        assert record.score == 59
        assert record.verdict == ScoreVerdict.FAILED

    @pytest.mark.asyncio
    async def test_evidence_digest_recomputable(self):
        record = await make_pipeline(FakeRegistry()).verify(SAMPLE_BYTES, "text/plain", "cand-1")
        bundle = EvidenceBundle(
            document_digest=record.document_digest,
            findings=record.findings,
            fraud_report=record.fraud_report,
            claim_verifications=record.claim_verifications,
        )
        assert EvidenceBinder().verify(bundle, record.evidence_digest)

    @pytest.mark.asyncio
    async def test_record_provenance(self):
        pipeline = make_pipeline()
        record = await pipeline.verify(SAMPLE_BYTES, "text/plain", "cand-1", metadata={"name": "Jane Doe"})

        assert record.config_hash == pipeline.config.config_hash()
        assert record.metadata.name == "Jane Doe"
        assert record.word_count == len(SAMPLE_RESUME.split())
        for key in ("extract_ms", "analysis_ms", "fraud_ms", "registry_ms", "timestamp_ms", "total_ms"):
            assert key in record.timings

    @pytest.mark.asyncio
    async def test_flags_merge_findings_and_fraud(self):
        analyzer = StubAnalyzer(fraud_indicators=["Forged seal"], warnings=["Odd layout"])
        record = await make_pipeline(analyzer=analyzer).verify(SAMPLE_BYTES, "text/plain", "cand-1")

        assert "Forged seal" in record.flags.fraud_indicators
        assert "Forged seal" in record.flags.inconsistencies
        assert "Odd layout" in record.flags.warnings
        assert record.fraud_report.analyzer_merged
        # one indicator: -5 on degree (already 0) and experience
        assert record.breakdown.experience_verification == 15

    @pytest.mark.asyncio
    async def test_score_and_verdict_agree(self):
        for registry in (None, FakeRegistry(), FakeRegistry(verified=False)):
            record = await make_pipeline(registry).verify(SAMPLE_BYTES, "text/plain", "cand-1")
            assert (record.score >= 70) == (record.verdict == ScoreVerdict.VERIFIED)


class TestSubmission:

    @pytest.mark.asyncio
    async def test_submit_returns_processing_record(self):
        pipeline = make_pipeline(analyzer=StubAnalyzer(delay=0.05))
        record = await pipeline.submit(SAMPLE_BYTES, "text/plain", "cand-1")

        assert record.status == VerificationStatus.PROCESSING
        assert record.verification_id.startswith("ver_")
        stored = await pipeline.get(record.verification_id)
        assert stored.status == VerificationStatus.PROCESSING

        final = await pipeline.wait(record.verification_id)
        assert final.status == VerificationStatus.COMPLETED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content,media_type,candidate,error", [
        (None, "text/plain", "cand-1", EmptyDocument),
        (SAMPLE_BYTES, "text/plain", "", EmptyDocument),
        (SAMPLE_BYTES, "image/png", "cand-1", UnsupportedFormat),
        (b"not a pdf", "application/pdf", "cand-1", UnsupportedFormat),
    ])
    async def test_input_errors_raise_before_any_record(self, content, media_type, candidate, error):
        pipeline = make_pipeline()
        with pytest.raises(error):
            await pipeline.submit(content, media_type, candidate)
        assert len(pipeline.store) == 0

    @pytest.mark.asyncio
    async def test_wait_unknown_record(self):
        with pytest.raises(KeyError):
            await make_pipeline().wait("ver_missing")

    @pytest.mark.asyncio
    async def test_concurrent_runs_are_independent(self):
        pipeline = make_pipeline(FakeRegistry(), FakeTimeOracle())
        records = await asyncio.gather(*[
            pipeline.verify(SAMPLE_BYTES, "text/plain", f"cand-{i}") for i in range(5)
        ])

        assert len({r.verification_id for r in records}) == 5
        assert all(r.status == VerificationStatus.COMPLETED for r in records)
        assert len({r.evidence_digest for r in records}) == 1
        assert [r.candidate_id for r in records] == [f"cand-{i}" for i in range(5)]


class TestFailureHandling:

    @pytest.mark.asyncio
    async def test_stage_exception_fails_run(self):
        pipeline = make_pipeline(aggregator=ExplodingAggregator())
        record = await pipeline.verify(SAMPLE_BYTES, "text/plain", "cand-1")

        assert record.status == VerificationStatus.FAILED
        assert record.error.stage == "aggregate"
        assert record.error.type == "RuntimeError"
        assert record.error.message == "aggregator exploded"
        assert record.score is None
        assert record.evidence_digest is None

    @pytest.mark.asyncio
    async def test_stage_timeout_fails_run(self):
        pipeline = make_pipeline(
            analyzer=StubAnalyzer(delay=1.0),
            pipeline_config=PipelineConfig(stage_timeout_seconds=0.05, fraud_wait_seconds=0.0),
        )
        record = await pipeline.verify(SAMPLE_BYTES, "text/plain", "cand-1")

        assert record.status == VerificationStatus.FAILED
        assert record.error.stage == "checks"

    @pytest.mark.asyncio
    async def test_degraded_services_do_not_fail_run(self):
        pipeline = make_pipeline(FakeRegistry(fail=True), FakeTimeOracle(fail=True))
        record = await pipeline.verify(SAMPLE_BYTES, "text/plain", "cand-1")

        assert record.status == VerificationStatus.COMPLETED
        assert record.claim_verifications.degree.error == "registry down"
        assert record.timestamp_proof.error == "time-oracle down"

    @pytest.mark.asyncio
    async def test_non_finite_model_score_does_not_fail_run(self):
        client = make_openai_client('{"credibility_score": Infinity}')
        analyzer = ConsistencyAnalyzer(make_config(), client=client)
        record = await make_pipeline(analyzer=analyzer).verify(SAMPLE_BYTES, "text/plain", "cand-1")

        assert record.status == VerificationStatus.COMPLETED
        assert record.error is None
        assert record.findings.credibility_score == 100

    @pytest.mark.asyncio
    async def test_malformed_registry_answer_does_not_fail_run(self):
        record = await make_pipeline(MalformedProofRegistry()).verify(SAMPLE_BYTES, "text/plain", "cand-1")

        assert record.status == VerificationStatus.COMPLETED
        assert record.claim_verifications.degree.degraded
        assert record.claim_verifications.institution.accredited is False
        assert record.breakdown.degree_verification == 0

    @pytest.mark.asyncio
    async def test_failed_commit_leaves_no_partial_results(self):
        pipeline = make_pipeline(store=FailingCommitStore())
        record = await pipeline.verify(SAMPLE_BYTES, "text/plain", "cand-1")

        assert record.status == VerificationStatus.FAILED
        assert record.error.stage == "commit"
        assert record.error.message == "store write failed"
        assert record.score is None
        assert record.verdict is None
        assert record.evidence_digest is None
        assert record.findings is None
        assert record.breakdown is None

    @pytest.mark.asyncio
    async def test_discarded_record_result_dropped(self):
        pipeline = make_pipeline(analyzer=StubAnalyzer(delay=0.05))
        record = await pipeline.submit(SAMPLE_BYTES, "text/plain", "cand-1")

        assert await pipeline.discard(record.verification_id)
        with pytest.raises(KeyError):
            await pipeline.wait(record.verification_id)
        assert len(pipeline.store) == 0


class TestFraudWait:

    @pytest.mark.asyncio
    async def test_slow_analyzer_not_merged(self):
        analyzer = StubAnalyzer(delay=0.2, fraud_indicators=["Forged seal"])
        pipeline = make_pipeline(
            analyzer=analyzer,
            pipeline_config=PipelineConfig(fraud_wait_seconds=0.01),
        )
        record = await pipeline.verify(SAMPLE_BYTES, "text/plain", "cand-1")

        assert record.status == VerificationStatus.COMPLETED
        assert not record.fraud_report.analyzer_merged
        assert "Forged seal" not in record.fraud_report.fraud_indicators
        assert "Forged seal" in record.findings.fraud_indicators

    @pytest.mark.asyncio
    async def test_fast_analyzer_merged(self):
        analyzer = StubAnalyzer(fraud_indicators=["Forged seal"])
        record = await make_pipeline(analyzer=analyzer).verify(SAMPLE_BYTES, "text/plain", "cand-1")
        assert record.fraud_report.analyzer_merged
        assert "Forged seal" in record.fraud_report.fraud_indicators
        assert analyzer.calls == 1
