"""
Extracted Claims Schema
========================

Structured claim set produced by the Entity Extractor.

Design Decisions:
    - Every field has a defined-empty default, so downstream components
      never need to probe for missing keys
    - String collections are deduplicated on construction (exact match,
      case-preserving) and keep first-discovery order
    - Interval tokens are kept verbatim ("2015", "Jan 2015", "05/2015");
      interpreting them is the Timeline Validator's job
    - ``end=None`` means the interval is ongoing or the end was not stated

Data Flow:
    Document bytes → DocumentParser → ParsedDocument → EntityExtractor → ExtractedClaims
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from certicv.utils import dedupe


class EducationInterval(BaseModel):
    """A date range attached to an institution."""
    start: Optional[str] = Field(default=None, description="Start token (year or date), if stated")
    end: Optional[str] = Field(default=None, description="End token; None when ongoing or unstated")
    institution: str = Field(default="", description="Institution the range was found next to")


class EmploymentInterval(BaseModel):
    """A date range attached to an employer."""
    start: Optional[str] = Field(default=None, description="Start token (year or date), if stated")
    end: Optional[str] = Field(default=None, description="End token; None when ongoing or unstated")
    employer: str = Field(default="", description="Employer the range was found next to")


class ExtractedClaims(BaseModel):
    """
    All claims extracted from one document.

    Example:
        {
          "institutions": ["Stanford University"],
          "degrees": ["Bachelor of Science in Physics"],
          "employers": ["Acme Inc"],
          "skills": ["Python"],
          "certifications": [],
          "education_intervals": [{"start": "2012", "end": "2016", "institution": "Stanford University"}],
          "employment_intervals": [{"start": "2016", "end": null, "employer": "Acme Inc"}]
        }
    """
    institutions: list[str] = Field(default_factory=list, description="Institution names")
    degrees: list[str] = Field(default_factory=list, description="Degree names")
    employers: list[str] = Field(default_factory=list, description="Employer names")
    skills: list[str] = Field(default_factory=list, description="Skills from the fixed vocabulary")
    certifications: list[str] = Field(default_factory=list, description="Professional certifications")
    education_intervals: list[EducationInterval] = Field(
        default_factory=list,
        description="Education date ranges, in extraction order"
    )
    employment_intervals: list[EmploymentInterval] = Field(
        default_factory=list,
        description="Employment date ranges, in extraction order"
    )

    @field_validator("institutions", "degrees", "employers", "skills", "certifications")
    @classmethod
    def deduplicate(cls, v: list[str]) -> list[str]:
        """String collections behave as sets."""
        return dedupe(v)

    @property
    def is_empty(self) -> bool:
        """True if nothing at all was extracted."""
        return not (
            self.institutions or self.degrees or self.employers
            or self.skills or self.certifications
            or self.education_intervals or self.employment_intervals
        )

    @property
    def primary_degree(self) -> Optional[str]:
        """First degree in discovery order (the one sent to the registry)."""
        return self.degrees[0] if self.degrees else None

    @property
    def primary_institution(self) -> Optional[str]:
        """First institution in discovery order."""
        return self.institutions[0] if self.institutions else None

    @property
    def graduation_year(self) -> str:
        """End token of the first education interval, or ''."""
        if self.education_intervals and self.education_intervals[0].end:
            return self.education_intervals[0].end
        return ""


class ParsedDocument(BaseModel):
    """Decoded document text plus its content digest and size stats."""
    text: str = Field(description="Extracted plain text")
    media_type: str = Field(description="Normalized media type the bytes were decoded as")
    document_digest: str = Field(description="0x-prefixed SHA-256 of the raw bytes")
    word_count: int = Field(ge=0, description="Whitespace-separated word count")
    character_count: int = Field(ge=0, description="Character count of the text")
