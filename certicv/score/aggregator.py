"""
Score Aggregator
=================

Deterministic reconciliation of the three concurrent checks into a
bounded ScoreBreakdown.

    degree_verification      = 20 if degree verified, +10 if institution accredited (independently)
    experience_verification  = placeholder (pending employer checks)
    identity_verification    = placeholder (pending ID-document checks)
    document_authenticity    = baseline
    consistency_score        = analyzer consistency sub-score (floored to int)

Penalty: ``penalty_per_indicator`` × fraud indicators is subtracted from
degree and experience only, each floored at 0. Every field is then
clamped to its band ceiling, so the total is within [0, 100] by
construction.

Verdict: total ≥ pass_threshold → verified, otherwise failed.
"""

from __future__ import annotations

import logging
from typing import Optional

from certicv.config import ScoringConfig
from certicv.schemas.analysis import AnalysisFindings, FraudReport
from certicv.schemas.record import SCORE_BANDS, ScoreBreakdown, ScoreVerdict
from certicv.schemas.verification import ClaimVerifications

logger = logging.getLogger("certicv.score.aggregator")


def _clamp(value: int, band: str) -> int:
    return max(0, min(SCORE_BANDS[band], value))


class ScoreAggregator:
    """
    Combines analysis, fraud heuristics and registry results into a score.

    Usage:
        aggregator = ScoreAggregator(cfg.scoring)
        breakdown = aggregator.aggregate(findings, report, verifications)
        verdict = aggregator.verdict_for(breakdown.total)
    """

    def __init__(self, config: Optional[ScoringConfig] = None):
        self.config = config or ScoringConfig()

    @classmethod
    def from_config(cls, config: ScoringConfig) -> "ScoreAggregator":
        return cls(config)

    @property
    def threshold(self) -> int:
        return self.config.pass_threshold

    def aggregate(
        self,
        findings: AnalysisFindings,
        report: FraudReport,
        verifications: ClaimVerifications,
    ) -> ScoreBreakdown:
        cfg = self.config

        degree = 0
        if verifications.degree_verified:
            degree += cfg.degree_verified_points
        if verifications.institution_accredited:
            degree += cfg.accreditation_points
        experience = cfg.experience_placeholder

        penalty = cfg.penalty_per_indicator * len(report.fraud_indicators)
        degree = max(0, degree - penalty)
        experience = max(0, experience - penalty)

        breakdown = ScoreBreakdown(
            degree_verification=_clamp(degree, "degree_verification"),
            experience_verification=_clamp(experience, "experience_verification"),
            identity_verification=_clamp(cfg.identity_placeholder, "identity_verification"),
            document_authenticity=_clamp(cfg.authenticity_baseline, "document_authenticity"),
            consistency_score=_clamp(int(findings.consistency_score), "consistency_score"),
        )
        logger.info(
            f"Score {breakdown.total}/100 "
            f"(degree={breakdown.degree_verification}, experience={breakdown.experience_verification}, "
            f"penalty={penalty})"
        )
        return breakdown

    def verdict_for(self, total: int) -> ScoreVerdict:
        return ScoreVerdict.VERIFIED if total >= self.threshold else ScoreVerdict.FAILED
