"""
Entity Extractor
=================

Pattern-based extraction of the claims a candidate document makes:
institutions, degrees, employers, skills, certifications, and the
date ranges attached to institutions and employers.

Architecture:
    Text → PatternLibrary (fixed regex templates per entity class) → ExtractedClaims

Patterns:
    - Institutions: "University of X", "X University/College/Institute"
    - Degrees:      Bachelor/Master/Associate/Doctor of …, PhD, MBA
    - Employers:    preposition cue ("at X Inc") or industry suffix ("X Systems")
    - Dates:        one generic token (year, "Mon YYYY", "MM/YYYY") and a
                    range form ("2015 – 2019", "Jan 2020 - Present")
    - Skills:       whole-word match against a fixed vocabulary

Date ranges are attached line by line: a range belongs to the
institution (education) or employer (employment) named on the same
line, otherwise on the previous non-blank line. Ranges with no anchor
are dropped. A lone date on a line naming an institution or a degree
is read as a graduation year.

This module contains NO model calls and NO randomness: the same text
always yields the same ExtractedClaims.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

from certicv.config import ExtractionConfig
from certicv.schemas.claims import EducationInterval, EmploymentInterval, ExtractedClaims
from certicv.utils import normalize_whitespace

logger = logging.getLogger("certicv.extract.entities")


# ── Pattern Templates ──────────────────────────────────────────────

# A capitalized name word ("Stanford", "A&M", "O'Neil")
_WORD = r"[A-Z][a-zA-Z&'\-]*"

# Capitalized words that open a sentence rather than a name
_LEAD_STOPWORDS = (
    r"(?!(?:The|At|From|In|And|Of|For|With|Attended|Graduated|Studied|Joined|Worked)\b)"
)

_NAMED = _LEAD_STOPWORDS + _WORD

_MONTH = r"(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Sept|Oct|Nov|Dec)[a-z]*\.?"

DATE_TOKEN = rf"(?:\b{_MONTH}\s+\d{{4}}|\b\d{{1,2}}/\d{{4}}|\b\d{{4}})\b"

_ONGOING = r"(?:present|current|now|ongoing|today)"

DATE_RANGE = (
    rf"(?P<start>{DATE_TOKEN})\s*(?:-|–|—|to|until)\s*"
    rf"(?P<end>{DATE_TOKEN}|{_ONGOING}\b)"
)

_LEGAL_SUFFIX = r"(?:Inc|LLC|LLP|Corp|Corporation|Ltd|Limited|Company|Co|GmbH|PLC)"
_INDUSTRY_SUFFIX = r"(?:Technologies|Technology|Systems|Solutions|Group|Labs|Consulting|Partners)"

_DEGREE_PATTERNS = [
    rf"\b(?i:Bachelor of (?:Science|Arts|Engineering|Technology))(?: in {_WORD}(?: {_WORD}){{0,3}})?",
    rf"\b(?i:Master of (?:Science|Arts|Business Administration|Engineering|Fine Arts))(?: in {_WORD}(?: {_WORD}){{0,3}})?",
    r"\b(?i:Associate of (?:Applied Science|Science|Arts))",
    r"\b(?i:Doctor of (?:Philosophy|Medicine|Education))",
    r"\b(?i:Ph\.?\s?D)\b\.?",
    r"\bMBA\b",
]

_CERTIFICATION_PATTERNS = [
    rf"\b(?:AWS|Azure|Google Cloud|Microsoft|Cisco|Oracle|Salesforce) Certified(?: {_WORD}){{0,4}}",
    r"\b(?:PMP|CISSP|CISA|CISM|CPA|CFA|CCNA|CCNP|CKA|CKAD)\b",
]


# ── Pattern Library ────────────────────────────────────────────────

@dataclass(frozen=True)
class PatternLibrary:
    """
    Immutable set of compiled patterns, one group per entity class.

    Built once from an ExtractionConfig and shared read-only by
    every extraction; two extractors with different libraries can run
    side by side.
    """
    institutions: tuple[re.Pattern, ...]
    degrees: tuple[re.Pattern, ...]
    employers: tuple[re.Pattern, ...]
    certifications: tuple[re.Pattern, ...]
    skills: tuple[tuple[str, re.Pattern], ...]
    date_token: re.Pattern
    date_range: re.Pattern

    @classmethod
    def from_config(cls, config: Optional[ExtractionConfig] = None) -> "PatternLibrary":
        config = config or ExtractionConfig()
        n = config.max_words_per_name
        name = rf"{_NAMED}(?: {_WORD}){{0,{n - 1}}}"

        institutions = (
            re.compile(rf"\bUniversity of {_WORD}(?: {_WORD}){{0,{n - 1}}}"),
            re.compile(
                rf"\b{name} (?:University|College|Institute|Academy|Polytechnic)"
                rf"(?: of {_WORD}(?: {_WORD}){{0,{n - 1}}})?"
            ),
        )
        employers = (
            re.compile(rf"\b(?:at|for|with) ({_WORD}(?: {_WORD}){{0,{n}}},? {_LEGAL_SUFFIX})\b"),
            re.compile(rf"\b({name} {_INDUSTRY_SUFFIX})\b"),
        )
        skills = tuple(
            (skill, re.compile(rf"(?<!\w){re.escape(skill)}(?!\w)", re.IGNORECASE))
            for skill in config.skills
        )
        certifications = (
            tuple(re.compile(p) for p in _CERTIFICATION_PATTERNS)
            if config.extract_certifications else ()
        )
        return cls(
            institutions=institutions,
            degrees=tuple(re.compile(p) for p in _DEGREE_PATTERNS),
            employers=employers,
            certifications=certifications,
            skills=skills,
            date_token=re.compile(DATE_TOKEN, re.IGNORECASE),
            date_range=re.compile(DATE_RANGE, re.IGNORECASE),
        )


# ── Extractor ──────────────────────────────────────────────────────

class EntityExtractor:
    """
    Extracts an ExtractedClaims set from document text.

    Usage:
        extractor = EntityExtractor.from_config(config.extraction)
        claims = extractor.extract(parsed.text)

    Args:
        patterns: Compiled pattern library (defaults to the stock library).
    """

    def __init__(self, patterns: Optional[PatternLibrary] = None):
        self.patterns = patterns or PatternLibrary.from_config()

    @classmethod
    def from_config(cls, config: ExtractionConfig) -> "EntityExtractor":
        return cls(PatternLibrary.from_config(config))

    def extract(self, text: str) -> ExtractedClaims:
        """
        Run every pattern group over ``text``.

        Empty text yields an ExtractedClaims with every field empty.
        """
        if not text or not text.strip():
            return ExtractedClaims()

        education, employment = self._extract_intervals(text)
        claims = ExtractedClaims(
            institutions=self._match_all(self.patterns.institutions, text),
            degrees=self._match_all(self.patterns.degrees, text),
            employers=self._match_groups(self.patterns.employers, text),
            skills=[
                skill for skill, pattern in self.patterns.skills
                if pattern.search(text)
            ],
            certifications=self._match_all(self.patterns.certifications, text),
            education_intervals=education,
            employment_intervals=employment,
        )

        logger.info(
            f"Extracted {len(claims.institutions)} institutions, "
            f"{len(claims.degrees)} degrees, {len(claims.employers)} employers, "
            f"{len(claims.education_intervals) + len(claims.employment_intervals)} date ranges"
        )
        return claims

    # ── Matching helpers ───────────────────────────────────────────

    @staticmethod
    def _match_all(patterns: tuple[re.Pattern, ...], text: str) -> list[str]:
        found = []
        for pattern in patterns:
            found.extend(normalize_whitespace(m.group(0)) for m in pattern.finditer(text))
        return found

    @staticmethod
    def _match_groups(patterns: tuple[re.Pattern, ...], text: str) -> list[str]:
        found = []
        for pattern in patterns:
            for m in pattern.finditer(text):
                found.append(normalize_whitespace(m.group(1)).rstrip(".,"))
        return found

    # ── Date ranges ────────────────────────────────────────────────

    def _extract_intervals(
        self, text: str
    ) -> tuple[list[EducationInterval], list[EmploymentInterval]]:
        """Attach date ranges to the institution/employer named on the same or previous line."""
        education: list[EducationInterval] = []
        employment: list[EmploymentInterval] = []
        prev_institutions: list[str] = []
        prev_employers: list[str] = []

        for line in text.splitlines():
            if not line.strip():
                continue

            institutions = self._match_all(self.patterns.institutions, line)
            employers = self._match_groups(self.patterns.employers, line)
            ranges = list(self.patterns.date_range.finditer(line))

            if ranges:
                for m in ranges:
                    start = normalize_whitespace(m.group("start"))
                    end = self._end_token(m.group("end"))
                    if institutions:
                        education.append(EducationInterval(start=start, end=end, institution=institutions[0]))
                    elif employers:
                        employment.append(EmploymentInterval(start=start, end=end, employer=employers[0]))
                    elif prev_institutions:
                        education.append(EducationInterval(start=start, end=end, institution=prev_institutions[0]))
                    elif prev_employers:
                        employment.append(EmploymentInterval(start=start, end=end, employer=prev_employers[0]))
            else:
                graduation = self._graduation(line, institutions, prev_institutions)
                if graduation is not None:
                    education.append(graduation)

            prev_institutions, prev_employers = institutions, employers

        return education, employment

    def _graduation(
        self, line: str, institutions: list[str], prev_institutions: list[str]
    ) -> Optional[EducationInterval]:
        """A lone date on an institution or degree line is a graduation date."""
        tokens = self.patterns.date_token.findall(line)
        if not tokens:
            return None
        if institutions:
            institution = institutions[0]
        elif prev_institutions and self._match_all(self.patterns.degrees, line):
            institution = prev_institutions[0]
        else:
            return None
        return EducationInterval(start=None, end=normalize_whitespace(tokens[-1]), institution=institution)

    @staticmethod
    def _end_token(token: str) -> Optional[str]:
        token = normalize_whitespace(token)
        if re.fullmatch(_ONGOING, token, re.IGNORECASE):
            return None
        return token
