"""
CertiCV Configuration System
=============================

Central configuration using Pydantic Settings. Supports:
- Environment variables (CERTICV_ prefix, ``__`` for nested fields)
- .env file loading
- YAML config file overrides

Every heuristic table and scoring constant used by the pipeline lives
here rather than in module globals, so rule sets can be varied per
pipeline instance (and per test) without touching shared state.

The config produces a deterministic hash for reproducibility tracking.
Every VerificationRecord is stamped with this hash.

Usage:
    from certicv.config import get_config
    cfg = get_config()                         # loads from env / .env
    cfg = get_config("configs/strict.yaml")    # loads with YAML overrides
"""

from __future__ import annotations

import hashlib
import json
from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# ── Default rule tables ────────────────────────────────────────────
DEFAULT_SKILLS = [
    "JavaScript", "TypeScript", "Python", "Java", "Rust", "C++", "SQL",
    "React", "Node.js", "Django", "Kubernetes", "Docker", "AWS",
    "Blockchain", "Solidity", "Web3", "AI", "Machine Learning",
]

DEFAULT_BLOCKLIST = [
    "University of Phoenix",
    "Diploma Mill",
    "Fake University",
]

# (label, regex, case_insensitive)
DEFAULT_SUSPICIOUS_PATTERNS = [
    ("all-caps run", r"\b(?:[A-Z]{2,}\s+){3,}[A-Z]{2,}\b", False),
    ("perfect GPA", r"\bperfect\s+4\.0\b", True),
    ("overstated superlative", r"\b(?:world'?s\s+(?:best|greatest|leading|top)|best\s+in\s+the\s+world|unmatched|unparalleled)\b", True),
    ("title at implausible age", r"\b(?:CEO|CTO|CFO|founder|president|director)\s+at\s+(?:the\s+)?age\s+(?:of\s+)?\d{1,2}\b", True),
]


# ── Sub-configs ────────────────────────────────────────────────────
class ExtractionConfig(BaseModel):
    """Configuration for the entity extractor."""
    skills: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SKILLS),
        description="Fixed skill vocabulary matched as whole words"
    )
    extract_certifications: bool = Field(default=True, description="Also extract professional certifications")
    max_words_per_name: int = Field(default=3, ge=1, description="Max capitalized words before an institution/employer cue")


class TimelineConfig(BaseModel):
    """Configuration for the timeline validator."""
    floor_year: int = Field(default=1950, description="Interval starts before this year are implausible")
    future_slack_years: int = Field(default=1, description="Ends later than current_year + slack are future-dated")
    employment_slack_years: int = Field(
        default=2,
        description="Employment may start this many years before education ends"
    )


class FraudConfig(BaseModel):
    """Configuration for the fraud heuristics engine."""
    institution_blocklist: list[str] = Field(
        default_factory=lambda: list(DEFAULT_BLOCKLIST),
        description="Case-insensitive substrings of known diploma mills"
    )
    suspicious_patterns: list[tuple[str, str, bool]] = Field(
        default_factory=lambda: list(DEFAULT_SUSPICIOUS_PATTERNS),
        description="(label, regex, case_insensitive) text patterns raised as warnings"
    )
    min_graduation_year: int = Field(default=1950, description="Earliest plausible graduation year")
    warning_weight: float = Field(default=0.5, ge=0.0, description="Weight of a warning in the risk count")
    medium_risk_at: float = Field(default=2.0, description="Weighted count for medium risk")
    high_risk_at: float = Field(default=5.0, description="Weighted count for high risk")


class AnalysisConfig(BaseModel):
    """Configuration for the consistency analyzer."""
    prompt_char_budget: int = Field(default=8000, description="Max document characters sent to the model")
    temperature: float = Field(default=0.3, description="Model temperature")
    max_output_tokens: int = Field(default=2000, description="Max tokens in the model response")
    timeout_seconds: float = Field(default=30.0, gt=0, description="Bound on one model call")
    fallback_credibility: int = Field(default=70, ge=0, le=100, description="Baseline credibility of the fallback path")


class OracleConfig(BaseModel):
    """Configuration for the degree registry and the time-oracle."""
    registry_endpoint: Optional[str] = Field(default=None, description="Registry base URL (unset = unavailable)")
    registry_api_key: Optional[str] = Field(default=None, description="Registry bearer token")
    time_oracle_endpoint: Optional[str] = Field(default=None, description="Time-oracle base URL (unset = local clock)")
    epoch_duration_seconds: int = Field(default=3600, gt=0, description="Oracle epoch length")
    timeout_seconds: float = Field(default=10.0, gt=0, description="Bound on one oracle call")
    fallback_confidence: float = Field(default=0.5, ge=0.0, le=1.0, description="Confidence of a local-clock timestamp")


class ScoringConfig(BaseModel):
    """
    Score aggregation constants.

    These are prototype policy values (flat per-indicator penalty,
    placeholder experience/identity points); override them per
    deployment rather than treating them as fixed business rules.
    """
    degree_verified_points: int = Field(default=20, description="Points for a verified degree claim")
    accreditation_points: int = Field(default=10, description="Points for a verified, accredited institution")
    experience_placeholder: int = Field(default=20, description="Experience points pending employer checks")
    identity_placeholder: int = Field(default=15, description="Identity points pending ID-document checks")
    authenticity_baseline: int = Field(default=15, description="Document authenticity baseline")
    penalty_per_indicator: int = Field(default=5, ge=0, description="Deduction per fraud indicator")
    pass_threshold: int = Field(default=70, ge=0, le=100, description="Total score needed for 'verified'")


class PipelineConfig(BaseModel):
    """Configuration for the orchestrator."""
    fraud_wait_seconds: float = Field(
        default=5.0, ge=0.0,
        description="How long fraud heuristics wait for analyzer output before proceeding"
    )
    stage_timeout_seconds: float = Field(
        default=60.0, gt=0,
        description="Outer bound on the concurrent checks stage"
    )


# ── Main Config ────────────────────────────────────────────────────
class CertiCVConfig(BaseSettings):
    """
    Root configuration for the CertiCV pipeline.

    Loads from environment variables (CERTICV_ prefix) and .env file.
    Can be extended with YAML overrides via `get_config(yaml_path)`.

    Example:
        export CERTICV_OPENAI_API_KEY=sk-...
        export CERTICV_SCORING__PASS_THRESHOLD=75
    """
    model_config = SettingsConfigDict(
        env_prefix="CERTICV_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # ── Top-level settings ─────────────────────────────────────────
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="text", description="Log format: 'json' or 'text'")

    # ── Analysis model credentials ─────────────────────────────────
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")
    openai_model: str = Field(default="gpt-4o-mini", description="OpenAI model for consistency analysis")
    gemini_api_key: Optional[str] = Field(default=None, description="Google Gemini API key")
    gemini_model: str = Field(default="gemini-2.0-flash", description="Gemini model for consistency analysis")

    # ── Sub-configs ────────────────────────────────────────────────
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    timeline: TimelineConfig = Field(default_factory=TimelineConfig)
    fraud: FraudConfig = Field(default_factory=FraudConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    oracles: OracleConfig = Field(default_factory=OracleConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)

    @property
    def has_model_credentials(self) -> bool:
        """True if any external analysis model is configured."""
        return bool(self.openai_api_key or self.gemini_api_key)

    def config_hash(self) -> str:
        """
        Produce a deterministic SHA-256 hash of the configuration.

        Credentials are excluded so that rotating a key does not change
        the reproducibility stamp.
        """
        config_dict = self.model_dump(
            mode="json",
            exclude={
                "openai_api_key": True,
                "gemini_api_key": True,
                "oracles": {"registry_api_key"},
            },
        )
        canonical = json.dumps(config_dict, sort_keys=True, default=str)
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


# ── Config Loading ─────────────────────────────────────────────────
def get_config(yaml_path: Optional[str] = None) -> CertiCVConfig:
    """
    Load CertiCV configuration.

    Priority (highest to lowest):
        1. Explicit YAML values (if a file is provided)
        2. Environment variables (CERTICV_ prefix)
        3. .env file
        4. Default values

    Args:
        yaml_path: Optional path to a YAML config file for overrides.

    Returns:
        Fully resolved CertiCVConfig instance.
    """
    if yaml_path:
        import yaml
        with open(yaml_path) as f:
            overrides = yaml.safe_load(f) or {}
        return CertiCVConfig(**overrides)
    return CertiCVConfig()
