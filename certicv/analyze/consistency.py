"""
Consistency Analyzer
=====================

Asks an external reasoning model to review a document for
inconsistencies and fraud signals, and degrades to a deterministic
local analysis whenever the model cannot be used.

Architecture:
    Text + ExtractedClaims → prompt (bounded) → model (JSON mode) → AnalysisFindings
                                              ↘ (no key / timeout / bad JSON) → fallback

Two paths:
    - EXTERNAL: OpenAI chat completion with JSON response format
      (GeminiConsistencyAnalyzer swaps the transport, nothing else)
    - FALLBACK: timeline checks, presence warnings, baseline credibility

Parsing is two-stage: a strict ``json.loads`` of the (fence-stripped)
response, then recovery of the outermost ``{...}`` fragment from
surrounding prose. Only when both fail is AnalysisParseError raised,
and it never leaves this module: it selects the fallback.

Scores:
    credibility = model value clamped to [0, 100], or when absent
                  100 - 15·F - 10·I - 5·T - 2·W  (floor 0)
    consistency = 10 - 2·I - 3·F - 1·T - 0.5·W   (clamped to [0, 10])
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, Optional

from certicv.analyze.timeline import TimelineValidator
from certicv.config import CertiCVConfig
from certicv.errors import AnalysisParseError
from certicv.schemas.analysis import AnalysisFindings, SourceUsed
from certicv.schemas.claims import ExtractedClaims
from certicv.utils import truncate_chars

logger = logging.getLogger("certicv.analyze.consistency")


# ── Prompt Templates ───────────────────────────────────────────────

SYSTEM_PROMPT = (
    "You are an expert résumé verification analyst. You review candidate "
    "documents for fraud indicators, internal inconsistencies and implausible "
    "timelines. You answer with a single JSON object and nothing else."
)

USER_PROMPT = """Analyze the following résumé for fraud indicators and inconsistencies.

DOCUMENT TEXT:
{text}

EXTRACTED CLAIMS:
- Institutions: {institutions}
- Degrees: {degrees}
- Employers: {employers}
- Education dates: {education}
- Employment dates: {employment}

RESPONSE FORMAT:
{{
  "inconsistencies": ["list of inconsistencies found"],
  "fraud_indicators": ["list of fraud indicators"],
  "warnings": ["list of warnings"],
  "timeline_issues": ["timeline problems"],
  "credibility_score": 0-100,
  "recommendations": ["verification recommendations"]
}}"""

NO_INSTITUTIONS = "No institutions found in document"
NO_EMPLOYERS = "No employers found in document"
MANUAL_REVIEW = "Manual verification recommended"

_LIST_FIELDS = {
    "inconsistencies": ("inconsistencies",),
    "fraud_indicators": ("fraud_indicators", "fraudIndicators"),
    "warnings": ("warnings",),
    "timeline_issues": ("timeline_issues", "timelineIssues"),
    "recommendations": ("recommendations",),
}

_JSON_FRAGMENT = re.compile(r"\{.*\}", re.DOTALL)


# ── Scoring ────────────────────────────────────────────────────────

def consistency_score(
    inconsistencies: int, fraud_indicators: int, timeline_issues: int, warnings: int
) -> float:
    score = 10 - 2 * inconsistencies - 3 * fraud_indicators - timeline_issues - 0.5 * warnings
    return max(0.0, min(10.0, float(score)))


def derived_credibility(
    inconsistencies: int, fraud_indicators: int, timeline_issues: int, warnings: int
) -> int:
    score = 100 - 15 * fraud_indicators - 10 * inconsistencies - 5 * timeline_issues - 2 * warnings
    return max(0, score)


# ── Parsing ────────────────────────────────────────────────────────

def parse_model_output(raw: Optional[str]) -> dict[str, Any]:
    """
    Recover a JSON object from model output.

    Raises:
        AnalysisParseError: If neither a strict parse nor fragment
            recovery yields a JSON object.
    """
    text = (raw or "").strip()
    if text.startswith("```"):
        lines = text.split("\n")
        text = "\n".join(lines[1:-1] if lines[-1].strip() == "```" else lines[1:]).strip()

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        match = _JSON_FRAGMENT.search(text)
        if match is None:
            raise AnalysisParseError(f"No JSON object in model output: {text[:200]!r}")
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise AnalysisParseError(f"Unrecoverable JSON fragment: {e}") from e

    if not isinstance(data, dict):
        raise AnalysisParseError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def _string_list(data: dict[str, Any], keys: tuple[str, ...]) -> list[str]:
    for key in keys:
        value = data.get(key)
        if isinstance(value, list):
            return [str(item) for item in value if item is not None]
    return []


# ── Analyzer ───────────────────────────────────────────────────────

class ConsistencyAnalyzer:
    """
    External-model analysis with a deterministic fallback.

    Usage:
        analyzer = ConsistencyAnalyzer(config)
        findings = await analyzer.analyze(text, claims)
        findings.source_used   # external-model | fallback-heuristic

    Args:
        config: CertiCV configuration (credentials, model, analysis limits).
        timeline: Validator used by the fallback path.
        client: Pre-built async client (tests inject a mock here).
    """

    def __init__(
        self,
        config: Optional[CertiCVConfig] = None,
        timeline: Optional[TimelineValidator] = None,
        client: Any = None,
    ):
        self.config = config or CertiCVConfig()
        self.settings = self.config.analysis
        self.timeline = timeline or TimelineValidator(self.config.timeline)
        self._client = client

    @property
    def model_name(self) -> str:
        return self.config.openai_model

    @property
    def has_credentials(self) -> bool:
        return bool(self.config.openai_api_key) or self._client is not None

    async def analyze(self, text: str, claims: ExtractedClaims) -> AnalysisFindings:
        """Never raises for analyzer-side problems; those select the fallback."""
        if not self.has_credentials:
            logger.info("No analysis model credentials configured; using fallback analysis")
            return self.fallback(claims, error="no model credentials configured")

        messages = self.build_prompt(text, claims)
        try:
            raw = await asyncio.wait_for(
                self._call_openai(messages), timeout=self.settings.timeout_seconds
            )
            data = parse_model_output(raw)
            findings = self.findings_from(data)
        except asyncio.TimeoutError:
            logger.warning(
                f"Analysis model timed out after {self.settings.timeout_seconds}s; using fallback"
            )
            return self.fallback(claims, error="model call timed out")
        except AnalysisParseError as e:
            logger.warning(f"Analysis model returned unparseable output; using fallback: {e}")
            return self.fallback(claims, error=f"parse error: {e}")
        except Exception as e:
            logger.warning(f"Analysis model call failed; using fallback: {e}")
            return self.fallback(claims, error=f"{type(e).__name__}: {e}")

        logger.info(
            f"Model analysis ({self.model_name}): credibility={findings.credibility_score}, "
            f"consistency={findings.consistency_score}"
        )
        return findings

    # ── Prompt ─────────────────────────────────────────────────────

    def build_prompt(self, text: str, claims: ExtractedClaims) -> list[dict[str, str]]:
        """Chat messages; only the document text is truncated, never the section headers."""
        body = truncate_chars(text or "", self.settings.prompt_char_budget)
        user = USER_PROMPT.format(
            text=body,
            institutions=", ".join(claims.institutions) or "None",
            degrees=", ".join(claims.degrees) or "None",
            employers=", ".join(claims.employers) or "None",
            education=json.dumps([i.model_dump() for i in claims.education_intervals]),
            employment=json.dumps([i.model_dump() for i in claims.employment_intervals]),
        )
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": user},
        ]

    # ── Transport ──────────────────────────────────────────────────

    def _get_client(self):
        """Lazy-initialize the async OpenAI client."""
        if self._client is None:
            from openai import AsyncOpenAI
            self._client = AsyncOpenAI(api_key=self.config.openai_api_key)
        return self._client

    async def _call_openai(self, messages: list[dict[str, str]]) -> str:
        """Call OpenAI chat completions in JSON mode."""
        client = self._get_client()
        response = await client.chat.completions.create(
            model=self.model_name,
            messages=messages,
            temperature=self.settings.temperature,
            max_tokens=self.settings.max_output_tokens,
            response_format={"type": "json_object"},
        )
        return response.choices[0].message.content

    # ── Result building ────────────────────────────────────────────

    def findings_from(self, data: dict[str, Any]) -> AnalysisFindings:
        """Build external-model findings from a parsed response."""
        lists = {name: _string_list(data, keys) for name, keys in _LIST_FIELDS.items()}
        counts = (
            len(lists["inconsistencies"]),
            len(lists["fraud_indicators"]),
            len(lists["timeline_issues"]),
            len(lists["warnings"]),
        )

        raw_score = data.get("credibility_score", data.get("credibilityScore"))
        try:
            credibility = max(0, min(100, int(round(float(raw_score)))))
        except (TypeError, ValueError, OverflowError):
            credibility = derived_credibility(*counts)

        return AnalysisFindings(
            **lists,
            credibility_score=credibility,
            consistency_score=consistency_score(*counts),
            source_used=SourceUsed.EXTERNAL_MODEL,
        )

    def fallback(self, claims: ExtractedClaims, error: Optional[str] = None) -> AnalysisFindings:
        """Deterministic local analysis over the extracted claims."""
        warnings = []
        if not claims.institutions:
            warnings.append(NO_INSTITUTIONS)
        if not claims.employers:
            warnings.append(NO_EMPLOYERS)

        timeline_issues = self.timeline.validate(
            claims.education_intervals, claims.employment_intervals
        )

        return AnalysisFindings(
            inconsistencies=[],
            fraud_indicators=[],
            warnings=warnings,
            timeline_issues=timeline_issues,
            recommendations=[MANUAL_REVIEW],
            credibility_score=self.settings.fallback_credibility,
            consistency_score=consistency_score(0, 0, len(timeline_issues), len(warnings)),
            source_used=SourceUsed.FALLBACK_HEURISTIC,
            error=error,
        )
