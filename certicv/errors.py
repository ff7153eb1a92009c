"""
CertiCV Error Taxonomy
=======================

Three classes of failure, handled at three different places:

    (a) Input errors: raised synchronously by ``submit`` before any
        record exists (InputError and subclasses).
    (b) Degraded services: analyzer, registry or time-oracle problems.
        Raised by transports, always converted into degraded *data* by
        the component that owns the call (AnalysisParseError,
        OracleUnavailable).
    (c) Orchestration: anything else. Terminates the run and is
        recorded on the VerificationRecord.
"""

from __future__ import annotations


class CertiCVError(Exception):
    """Base class for all CertiCV errors."""


class InputError(CertiCVError, ValueError):
    """The submitted document or its metadata is missing or invalid."""


class UnsupportedFormat(InputError):
    """The declared media type is not supported or the bytes cannot be decoded."""

    def __init__(self, media_type: str, reason: str = ""):
        self.media_type = media_type
        message = f"Unsupported document format: {media_type!r}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class EmptyDocument(InputError):
    """No document bytes (or no candidate identifier) were supplied."""


class AnalysisParseError(CertiCVError):
    """Model output could not be recovered as a JSON object."""


class OracleUnavailable(CertiCVError):
    """An external registry or time-oracle could not produce an answer."""


class OrchestrationError(CertiCVError, RuntimeError):
    """Unrecoverable failure inside a pipeline run."""


class RecordSuperseded(CertiCVError):
    """A writer found the record removed or already terminal; its result is dropped."""

    def __init__(self, verification_id: str, found: str | None):
        self.verification_id = verification_id
        self.found = found
        super().__init__(
            f"Record {verification_id} cannot be committed (current status: {found or 'removed'})"
        )
