"""
Fraud Heuristics Engine
========================

Rule-based scan over document text and extracted claims.

Checks (each independent, each additive):
    1. Institution on the blocklist (case-insensitive substring) → indicator
    2. Graduation year outside [min_graduation_year, current + 1] → indicator
    3. Suspicious phrasing (regex scan)                          → warning
    4. Timeline issues from the TimelineValidator                → indicators
    5. Fraud indicators already surfaced by the analyzer         → merged

Risk tier (weighted count = indicators + warning_weight × warnings):
    none   : nothing found
    low    : weighted count > 0
    medium : weighted count ≥ medium_risk_at
    high   : weighted count ≥ high_risk_at

All rule tables are injected as a frozen FraudRules value, so engines
with different rule sets can run side by side.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from certicv.analyze.timeline import TimelineValidator, parse_year
from certicv.config import FraudConfig
from certicv.schemas.analysis import AnalysisFindings, FraudReport, RiskLevel
from certicv.schemas.claims import ExtractedClaims
from certicv.schemas.verification import ClaimVerifications

logger = logging.getLogger("certicv.analyze.fraud")

# Overall-risk weights
_INDICATOR_RISK = 20
_WARNING_RISK = 5
_CREDIBILITY_FLOOR = 70
_UNVERIFIED_DEGREE_RISK = 15


@dataclass(frozen=True)
class FraudRules:
    """Immutable rule tables for one engine instance."""
    blocklist: tuple[str, ...]
    patterns: tuple[tuple[str, re.Pattern], ...]
    min_graduation_year: int = 1950
    future_slack_years: int = 1
    warning_weight: float = 0.5
    medium_risk_at: float = 2.0
    high_risk_at: float = 5.0
    lowered_blocklist: tuple[str, ...] = field(init=False, repr=False)

    def __post_init__(self):
        object.__setattr__(
            self, "lowered_blocklist", tuple(name.lower() for name in self.blocklist)
        )

    @classmethod
    def from_config(cls, config: Optional[FraudConfig] = None, future_slack_years: int = 1) -> "FraudRules":
        config = config or FraudConfig()
        return cls(
            blocklist=tuple(config.institution_blocklist),
            patterns=tuple(
                (label, re.compile(regex, re.IGNORECASE if case_insensitive else 0))
                for label, regex, case_insensitive in config.suspicious_patterns
            ),
            min_graduation_year=config.min_graduation_year,
            future_slack_years=future_slack_years,
            warning_weight=config.warning_weight,
            medium_risk_at=config.medium_risk_at,
            high_risk_at=config.high_risk_at,
        )


class FraudHeuristicsEngine:
    """
    Produces a FraudReport from text, claims and (optionally) analyzer findings.

    Usage:
        engine = FraudHeuristicsEngine(FraudRules.from_config(cfg.fraud), TimelineValidator(cfg.timeline))
        report = engine.detect(text, claims, findings)
    """

    def __init__(
        self,
        rules: Optional[FraudRules] = None,
        timeline: Optional[TimelineValidator] = None,
    ):
        self.rules = rules or FraudRules.from_config()
        self.timeline = timeline or TimelineValidator()

    def detect(
        self,
        text: str,
        claims: ExtractedClaims,
        findings: Optional[AnalysisFindings] = None,
    ) -> FraudReport:
        indicators: list[str] = []
        warnings: list[str] = []

        # 1. Blocklisted institutions
        for institution in claims.institutions:
            lowered = institution.lower()
            if any(name in lowered for name in self.rules.lowered_blocklist):
                indicators.append(f"Suspicious institution: {institution}")

        # 2. Graduation years
        latest = self.timeline.current_year + self.rules.future_slack_years
        for interval in claims.education_intervals:
            year = parse_year(interval.end)
            if year is None:
                continue
            if year < self.rules.min_graduation_year or year > latest:
                indicators.append(f"Implausible graduation year: {year}")

        # 3. Suspicious phrasing
        for label, pattern in self.rules.patterns:
            if pattern.search(text or ""):
                warnings.append(f"Suspicious pattern detected: {label}")

        # 4. Timeline
        indicators.extend(
            self.timeline.validate(claims.education_intervals, claims.employment_intervals)
        )

        # 5. Analyzer indicators
        if findings is not None:
            indicators.extend(findings.fraud_indicators)

        report = FraudReport(
            fraud_indicators=indicators,
            warnings=warnings,
            analyzer_merged=findings is not None,
        )
        report.risk_level = self.risk_level(len(report.fraud_indicators), len(report.warnings))

        logger.info(
            f"Fraud scan: {len(report.fraud_indicators)} indicators, "
            f"{len(report.warnings)} warnings → {report.risk_level.value}"
        )
        return report

    def risk_level(self, indicators: int, warnings: int) -> RiskLevel:
        weighted = indicators + warnings * self.rules.warning_weight
        if weighted >= self.rules.high_risk_at:
            return RiskLevel.HIGH
        if weighted >= self.rules.medium_risk_at:
            return RiskLevel.MEDIUM
        if weighted > 0:
            return RiskLevel.LOW
        return RiskLevel.NONE

    @staticmethod
    def assess_overall_risk(
        report: FraudReport,
        findings: Optional[AnalysisFindings],
        verifications: ClaimVerifications,
    ) -> RiskLevel:
        """
        Combine heuristics, credibility and the registry outcome.

        Risk points: 20 per indicator, 5 per warning, the credibility
        shortfall below 70, and 15 when the degree is unverified.
        ≥ 60 is high, ≥ 30 medium, anything else low.
        """
        risk = len(report.fraud_indicators) * _INDICATOR_RISK
        risk += len(report.warnings) * _WARNING_RISK
        if findings is not None:
            risk += max(0, _CREDIBILITY_FLOOR - findings.credibility_score)
        if not verifications.degree_verified:
            risk += _UNVERIFIED_DEGREE_RISK

        if risk >= 60:
            return RiskLevel.HIGH
        if risk >= 30:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW
