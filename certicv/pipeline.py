"""
CertiCV Verification Pipeline
==============================

Orchestrates one verification run per submitted document:

    submit: validate → parse → store (pending) → commit processing → schedule task
    run:    Extract → ┬ Consistency Analyzer ─────────────┐
                      ├ Fraud Heuristics (bounded wait on ┘ analyzer output)
                      ├ External Claim Verifier (degree ∥ accreditation)
                      └ Trusted Timestamp Source
            → join → Score Aggregator → Evidence Binder → completed

Any exception that escapes the stages above (the analyzer, registry and
time-oracle degrade in place and never raise) moves the record to
``failed`` with an error summary. Both terminal commits go through the
store's compare-and-set, so a result for a record that was removed or
already finished is dropped instead of written.

Usage:
    from certicv.pipeline import VerificationPipeline

    pipeline = VerificationPipeline.from_config()
    record = await pipeline.submit(pdf_bytes, "application/pdf", candidate_id="cand-42")
    record = await pipeline.wait(record.verification_id)
    print(record.status, record.score, record.evidence_digest)
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Optional, TypeVar, Union

from certicv.analyze.consistency import ConsistencyAnalyzer
from certicv.analyze.fraud import FraudHeuristicsEngine, FraudRules
from certicv.analyze.timeline import TimelineValidator
from certicv.config import CertiCVConfig, get_config
from certicv.errors import EmptyDocument, RecordSuperseded
from certicv.extract.document import DocumentParser
from certicv.extract.entities import EntityExtractor
from certicv.oracles.registry import ClaimVerifier
from certicv.oracles.timestamp import TimestampSource
from certicv.schemas.analysis import AnalysisFindings, FraudReport
from certicv.schemas.claims import ExtractedClaims, ParsedDocument
from certicv.schemas.record import (
    CandidateMetadata,
    Flags,
    RunError,
    VerificationRecord,
    VerificationStatus,
)
from certicv.schemas.verification import ClaimVerifications, TimestampProof
from certicv.score.aggregator import ScoreAggregator
from certicv.score.evidence import EvidenceBinder
from certicv.store import InMemoryRecordStore, RecordStore
from certicv.utils import generate_verification_id

logger = logging.getLogger("certicv.pipeline")

T = TypeVar("T")


class VerificationPipeline:
    """
    Verification orchestrator.

    Every collaborator can be injected; anything not given is built
    from ``config``. One pipeline instance can run many documents
    concurrently: the only state shared between runs is the store.

    Args:
        config: CertiCV configuration.
        store: Record store (defaults to an InMemoryRecordStore).
        analyzer: Consistency analyzer (Gemini if a Gemini key is set,
            else OpenAI; both fall back without credentials).
        claim_verifier: External claim verifier.
        timestamp_source: Trusted timestamp source.
    """

    def __init__(
        self,
        config: Optional[CertiCVConfig] = None,
        *,
        store: Optional[RecordStore] = None,
        parser: Optional[DocumentParser] = None,
        extractor: Optional[EntityExtractor] = None,
        analyzer: Optional[ConsistencyAnalyzer] = None,
        fraud_engine: Optional[FraudHeuristicsEngine] = None,
        claim_verifier: Optional[ClaimVerifier] = None,
        timestamp_source: Optional[TimestampSource] = None,
        aggregator: Optional[ScoreAggregator] = None,
        binder: Optional[EvidenceBinder] = None,
    ):
        self.config = config or get_config()
        cfg = self.config
        timeline = TimelineValidator(cfg.timeline)

        self.store = store or InMemoryRecordStore()
        self.parser = parser or DocumentParser()
        self.extractor = extractor or EntityExtractor.from_config(cfg.extraction)
        self.analyzer = analyzer or self._build_analyzer(cfg, timeline)
        self.fraud_engine = fraud_engine or FraudHeuristicsEngine(
            FraudRules.from_config(cfg.fraud, future_slack_years=cfg.timeline.future_slack_years),
            timeline,
        )
        self.claim_verifier = claim_verifier or ClaimVerifier.from_config(cfg.oracles)
        self.timestamp_source = timestamp_source or TimestampSource.from_config(cfg.oracles)
        self.aggregator = aggregator or ScoreAggregator.from_config(cfg.scoring)
        self.binder = binder or EvidenceBinder()

        self._config_hash = cfg.config_hash()
        self._tasks: dict[str, asyncio.Task] = {}
        if analyzer is None and not cfg.has_model_credentials:
            logger.info("No analysis model credentials configured; consistency analysis uses the heuristic fallback")

    @classmethod
    def from_config(cls, config_path: Optional[str] = None, **overrides: Any) -> "VerificationPipeline":
        """Create a pipeline from a YAML file or the environment."""
        return cls(get_config(config_path), **overrides)

    @staticmethod
    def _build_analyzer(config: CertiCVConfig, timeline: TimelineValidator) -> ConsistencyAnalyzer:
        if config.gemini_api_key:
            from certicv.analyze.gemini_analyzer import GeminiConsistencyAnalyzer
            return GeminiConsistencyAnalyzer(config, timeline)
        return ConsistencyAnalyzer(config, timeline)

    # ── Submission ─────────────────────────────────────────────────

    async def submit(
        self,
        content: Optional[bytes],
        media_type: str,
        candidate_id: str,
        metadata: Optional[Union[CandidateMetadata, dict[str, str]]] = None,
    ) -> VerificationRecord:
        """
        Validate a document and schedule its verification.

        Input problems raise before any record exists. On return the
        record is stored and already in ``processing``.

        Raises:
            EmptyDocument: Missing document bytes or candidate identifier.
            UnsupportedFormat: Unsupported media type or undecodable bytes.
        """
        if not candidate_id or not str(candidate_id).strip():
            raise EmptyDocument("A candidate identifier is required")
        parsed = self.parser.parse(content, media_type)

        if isinstance(metadata, dict):
            metadata = CandidateMetadata(**metadata)

        record = VerificationRecord(
            verification_id=generate_verification_id(),
            candidate_id=str(candidate_id),
            document_digest=parsed.document_digest,
            media_type=parsed.media_type,
            metadata=metadata or CandidateMetadata(),
            word_count=parsed.word_count,
            character_count=parsed.character_count,
            config_hash=self._config_hash,
        )
        await self.store.put(record)
        record = await self._commit(record, VerificationStatus.PROCESSING)

        task = asyncio.create_task(self.run(record, parsed), name=f"verify-{record.verification_id}")
        self._tasks[record.verification_id] = task
        task.add_done_callback(lambda _t, vid=record.verification_id: self._tasks.pop(vid, None))

        logger.info(
            f"Submitted {record.verification_id} for candidate {record.candidate_id} "
            f"({parsed.media_type}, {parsed.word_count} words)"
        )
        return record.model_copy(deep=True)

    async def verify(
        self,
        content: Optional[bytes],
        media_type: str,
        candidate_id: str,
        metadata: Optional[Union[CandidateMetadata, dict[str, str]]] = None,
    ) -> VerificationRecord:
        """Submit a document and wait for its terminal record."""
        record = await self.submit(content, media_type, candidate_id, metadata)
        return await self.wait(record.verification_id)

    async def get(self, verification_id: str) -> Optional[VerificationRecord]:
        return await self.store.get(verification_id)

    async def wait(self, verification_id: str) -> VerificationRecord:
        """
        Wait for a run to finish and return the stored record.

        Raises:
            KeyError: If no record with this identifier exists.
        """
        task = self._tasks.get(verification_id)
        if task is not None:
            await asyncio.shield(task)
        record = await self.store.get(verification_id)
        if record is None:
            raise KeyError(verification_id)
        return record

    async def discard(self, verification_id: str) -> bool:
        """Remove a record; an in-flight run for it finishes without writing."""
        removed = await self.store.delete(verification_id)
        if removed:
            logger.info(f"Discarded {verification_id}")
        return removed

    # ── Run ────────────────────────────────────────────────────────

    async def run(self, record: VerificationRecord, parsed: ParsedDocument) -> VerificationRecord:
        """
        Execute the verification stages for a ``processing`` record.

        Returns:
            The record as committed, or the caller's record unchanged if
            the commit was superseded.
        """
        timings: dict[str, float] = {}
        total_start = time.time()
        stage = "extract"

        try:
            # ── Step 1: Extract ────────────────────────────────────
            t0 = time.time()
            claims = self.extractor.extract(parsed.text)
            timings["extract_ms"] = (time.time() - t0) * 1000

            # ── Step 2: Concurrent checks ──────────────────────────
            stage = "checks"
            t0 = time.time()
            findings, report, verifications, timestamp = await asyncio.wait_for(
                self._run_checks(parsed.text, claims, timings),
                timeout=self.config.pipeline.stage_timeout_seconds,
            )
            timings["checks_ms"] = (time.time() - t0) * 1000

            # ── Step 3: Aggregate ──────────────────────────────────
            stage = "aggregate"
            t0 = time.time()
            report.overall_risk = FraudHeuristicsEngine.assess_overall_risk(report, findings, verifications)
            breakdown = self.aggregator.aggregate(findings, report, verifications)
            total = breakdown.total
            timings["aggregate_ms"] = (time.time() - t0) * 1000

            # ── Step 4: Bind evidence ──────────────────────────────
            stage = "bind"
            t0 = time.time()
            _, evidence_digest = self.binder.bind(
                parsed.document_digest, findings, report, verifications
            )
            timings["bind_ms"] = (time.time() - t0) * 1000
            timings["total_ms"] = (time.time() - total_start) * 1000

            # Results go on a copy; a failed commit leaves `record` without them
            result = record.model_copy(deep=True)
            result.claims = claims
            result.findings = findings
            result.fraud_report = report
            result.flags = Flags.merge(findings, report)
            result.claim_verifications = verifications
            result.breakdown = breakdown
            result.score = total
            result.verdict = self.aggregator.verdict_for(total)
            result.evidence_digest = evidence_digest
            result.timestamp_proof = timestamp
            result.timings = timings

            stage = "commit"
            committed = await self._commit(result, VerificationStatus.COMPLETED)
            logger.info(
                f"Completed {record.verification_id}: score={total} "
                f"({committed.verdict.value}), analysis={findings.source_used.value} | "
                f"Total: {timings['total_ms']:.0f}ms"
            )
            return committed

        except asyncio.CancelledError:
            raise
        except RecordSuperseded as e:
            logger.warning(f"Dropping result: {e}")
            return record
        except Exception as e:
            logger.error(f"Verification {record.verification_id} failed at {stage}: {e}", exc_info=True)
            timings["total_ms"] = (time.time() - total_start) * 1000
            record.timings = timings
            record.error = RunError(type=type(e).__name__, message=str(e), stage=stage)
            try:
                return await self._commit(record, VerificationStatus.FAILED)
            except RecordSuperseded as superseded:
                logger.warning(f"Dropping failure: {superseded}")
                return record

    async def _run_checks(
        self, text: str, claims: ExtractedClaims, timings: dict[str, float]
    ) -> tuple[AnalysisFindings, FraudReport, ClaimVerifications, TimestampProof]:
        analysis = asyncio.create_task(
            self._timed("analysis_ms", self.analyzer.analyze(text, claims), timings)
        )
        registry = asyncio.create_task(
            self._timed("registry_ms", self._verify_claims(claims), timings)
        )
        timestamp = asyncio.create_task(
            self._timed("timestamp_ms", self.timestamp_source.get_timestamp(), timings)
        )
        fraud = asyncio.create_task(
            self._timed("fraud_ms", self._detect_fraud(text, claims, analysis), timings)
        )
        tasks = (analysis, fraud, registry, timestamp)
        try:
            findings, report, verifications, proof = await asyncio.gather(*tasks)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
        return findings, report, verifications, proof

    async def _detect_fraud(
        self, text: str, claims: ExtractedClaims, analysis: "asyncio.Task[AnalysisFindings]"
    ) -> FraudReport:
        """Fraud heuristics, merging analyzer indicators only if they arrive in time."""
        done, _ = await asyncio.wait({analysis}, timeout=self.config.pipeline.fraud_wait_seconds)
        findings = None
        if analysis in done and not analysis.cancelled() and analysis.exception() is None:
            findings = analysis.result()
        else:
            logger.info(
                f"Analyzer output not ready after {self.config.pipeline.fraud_wait_seconds}s; "
                f"fraud heuristics proceed without it"
            )
        return self.fraud_engine.detect(text, claims, findings)

    async def _verify_claims(self, claims: ExtractedClaims) -> ClaimVerifications:
        """Degree and accreditation queries, concurrently; absent claims are not queried."""
        degree, institution = claims.primary_degree, claims.primary_institution

        async def _none() -> None:
            return None

        degree_call = (
            self.claim_verifier.verify_degree(degree, institution or "", claims.graduation_year)
            if degree else _none()
        )
        accreditation_call = (
            self.claim_verifier.verify_accreditation(institution) if institution else _none()
        )
        degree_result, institution_result = await asyncio.gather(degree_call, accreditation_call)
        return ClaimVerifications(degree=degree_result, institution=institution_result)

    @staticmethod
    async def _timed(key: str, awaitable: Awaitable[T], timings: dict[str, float]) -> T:
        t0 = time.time()
        try:
            return await awaitable
        finally:
            timings[key] = (time.time() - t0) * 1000

    async def _commit(self, record: VerificationRecord, to: VerificationStatus) -> VerificationRecord:
        """Transition a copy of ``record`` and compare-and-set it in the store."""
        expected = record.status
        updated = record.model_copy(deep=True)
        updated.transition(to)
        await self.store.compare_and_set(updated, expected)
        return updated
