"""
Timeline Validator
===================

Pure checks over the date ranges attached to education and employment.

Per interval:
    - start ≥ end                        → "Invalid … dates"
    - end later than current year + 1    → "Future-dated …"
    - start before the configured floor  → "Implausibly old …"

Per category, consecutive in extraction order (not sorted):
    - interval[i].start < interval[i-1].end → "Overlapping …"

Across categories:
    - an employment interval starting more than ``employment_slack_years``
      before an education interval ends → "Employment starts before
      education completed"

Tokens are compared as ordinal years. Anything without a four-digit
year (or absent, or ongoing) is skipped without raising.
"""

from __future__ import annotations

import datetime
import logging
import re
from typing import Optional, Sequence

from certicv.config import TimelineConfig
from certicv.schemas.claims import EducationInterval, EmploymentInterval

logger = logging.getLogger("certicv.analyze.timeline")

_YEAR = re.compile(r"(?<!\d)(\d{4})(?!\d)")


def parse_year(token: Optional[str]) -> Optional[int]:
    """Ordinal year of a date token ("2015", "Jan 2015", "05/2015"), or None."""
    if not token:
        return None
    match = _YEAR.search(token)
    return int(match.group(1)) if match else None


class TimelineValidator:
    """
    Validates education and employment intervals.

    Args:
        config: Timeline thresholds.
        current_year: Fixed "now" year; defaults to the calendar year at call time.
    """

    def __init__(self, config: Optional[TimelineConfig] = None, current_year: Optional[int] = None):
        self.config = config or TimelineConfig()
        self._current_year = current_year

    @property
    def current_year(self) -> int:
        return self._current_year or datetime.date.today().year

    def validate(
        self,
        education: Sequence[EducationInterval],
        employment: Sequence[EmploymentInterval],
    ) -> list[str]:
        """Return human-readable issues; empty input yields no issues."""
        issues: list[str] = []

        for interval in education:
            issues.extend(self._check_interval("education", interval.start, interval.end))
        for interval in employment:
            issues.extend(self._check_interval("employment", interval.start, interval.end))

        issues.extend(self._check_overlaps(
            "education", [(i.institution, i.start, i.end) for i in education]
        ))
        issues.extend(self._check_overlaps(
            "employment", [(i.employer, i.start, i.end) for i in employment]
        ))
        issues.extend(self._check_cross(education, employment))

        if issues:
            logger.debug(f"Timeline issues: {issues}")
        return issues

    def _check_interval(self, category: str, start: Optional[str], end: Optional[str]) -> list[str]:
        issues = []
        start_year, end_year = parse_year(start), parse_year(end)

        if start_year is not None and end_year is not None and start_year >= end_year:
            issues.append(f"Invalid {category} dates: {start} to {end}")
        if end_year is not None and end_year > self.current_year + self.config.future_slack_years:
            issues.append(f"Future-dated {category} end: {end}")
        if start_year is not None and start_year < self.config.floor_year:
            issues.append(f"Implausibly old {category} start: {start}")
        return issues

    @staticmethod
    def _check_overlaps(category: str, intervals: list[tuple[str, Optional[str], Optional[str]]]) -> list[str]:
        issues = []
        for (prev_name, _, prev_end), (name, start, _) in zip(intervals, intervals[1:]):
            start_year, prev_end_year = parse_year(start), parse_year(prev_end)
            if start_year is None or prev_end_year is None:
                continue
            if start_year < prev_end_year:
                issues.append(
                    f"Overlapping {category}: {prev_name or 'unnamed'} and {name or 'unnamed'}"
                )
        return issues

    def _check_cross(
        self,
        education: Sequence[EducationInterval],
        employment: Sequence[EmploymentInterval],
    ) -> list[str]:
        issues = []
        slack = self.config.employment_slack_years
        for edu in education:
            edu_end = parse_year(edu.end)
            if edu_end is None:
                continue
            for job in employment:
                job_start = parse_year(job.start)
                if job_start is None:
                    continue
                if job_start < edu_end - slack:
                    issues.append(
                        f"Employment starts before education completed: {job.employer or 'unnamed'}"
                    )
        return issues
