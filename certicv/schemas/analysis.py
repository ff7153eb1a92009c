"""
Analysis Schemas
=================

Outputs of the two independent analysis passes:

1. AnalysisFindings : Consistency Analyzer (external model or fallback)
2. FraudReport      : Fraud Heuristics Engine (rule-based)

Both are plain data: they carry no behavior beyond simple counts, and
both are bound into the evidence digest verbatim.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from certicv.utils import dedupe


class SourceUsed(str, Enum):
    """
    Which path produced an AnalysisFindings.

    - EXTERNAL_MODEL:     the reasoning model answered with parseable JSON
    - FALLBACK_HEURISTIC: the deterministic local analysis ran instead
    """
    EXTERNAL_MODEL = "external-model"
    FALLBACK_HEURISTIC = "fallback-heuristic"


class RiskLevel(str, Enum):
    """Coarse fraud-indicator density classification."""
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AnalysisFindings(BaseModel):
    """
    Output of the Consistency Analyzer.

    Schema:
        {
          "inconsistencies": [],
          "fraud_indicators": [],
          "warnings": ["No employers found in document"],
          "timeline_issues": [],
          "recommendations": ["Manual verification recommended"],
          "credibility_score": 70,
          "consistency_score": 9.5,
          "source_used": "fallback-heuristic"
        }
    """
    inconsistencies: list[str] = Field(default_factory=list)
    fraud_indicators: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    timeline_issues: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    credibility_score: int = Field(ge=0, le=100, description="Overall credibility, 0-100")
    consistency_score: float = Field(ge=0.0, le=10.0, description="Consistency sub-score, 0-10")
    source_used: SourceUsed = Field(description="Which analysis path produced these findings")
    error: Optional[str] = Field(
        default=None,
        description="Why the external model was not used (fallback path only)"
    )

    @property
    def is_fallback(self) -> bool:
        return self.source_used == SourceUsed.FALLBACK_HEURISTIC


class FraudReport(BaseModel):
    """
    Output of the Fraud Heuristics Engine.

    ``overall_risk`` is filled in after the concurrent checks join, since
    it also depends on credibility and on the registry outcome.
    """
    fraud_indicators: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    risk_level: RiskLevel = Field(default=RiskLevel.NONE)
    overall_risk: Optional[RiskLevel] = Field(
        default=None,
        description="Risk after combining heuristics, credibility and registry outcome"
    )
    analyzer_merged: bool = Field(
        default=False,
        description="Whether analyzer fraud indicators were available in time to be merged"
    )

    @field_validator("fraud_indicators", "warnings")
    @classmethod
    def deduplicate(cls, v: list[str]) -> list[str]:
        return dedupe(v)
