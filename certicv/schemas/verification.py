"""
External Verification Schemas
==============================

Results of the two external capabilities the pipeline consults:

1. ClaimVerificationResult : registry answer for one claim
   (a degree, or an institution's accreditation)
2. TimestampProof          : trusted timestamp for the verification event

Design Decisions:
    - A failed registry/oracle call is *data*, not an exception:
      ``verified=False`` plus an ``error`` marker
    - ``proof_digest`` is computed locally over the query parameters,
      so identical queries are auditable even if the outcome changes
    - Attestation fields (signature, timestamp, merkle root) are opaque
      and carried through exactly as the registry returned them
"""

from __future__ import annotations

from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field


class ClaimKind(str, Enum):
    """Which kind of claim a registry query covered."""
    DEGREE = "degree"
    ACCREDITATION = "institution-accreditation"


class AttestationProof(BaseModel):
    """Opaque attestation returned by the registry."""
    signature: Optional[str] = Field(default=None, description="Registry signature")
    timestamp: Optional[Union[int, str]] = Field(default=None, description="Registry attestation time")
    merkle_root: Optional[str] = Field(default=None, description="Merkle root of the attested batch")


class ClaimVerificationResult(BaseModel):
    """
    Registry outcome for one claim.

    Schema:
        {
          "kind": "degree",
          "verified": true,
          "accredited": null,
          "proof_digest": "0x9f…",
          "source": "government-db",
          "query": {"degree": "…", "institution": "…", "year": "2016"},
          "proof": {"signature": "0x…", "timestamp": 1700000000, "merkle_root": "0x…"},
          "error": null
        }
    """
    kind: ClaimKind = Field(description="Claim type this result covers")
    verified: bool = Field(default=False, description="Registry confirmed the claim")
    accredited: Optional[bool] = Field(
        default=None,
        description="Institution accreditation (accreditation results only)"
    )
    accreditation_body: str = Field(default="", description="Accrediting body, if reported")
    proof_digest: str = Field(
        pattern=r"^0x[0-9a-f]{64}$",
        description="Deterministic digest of the query parameters"
    )
    source: str = Field(default="", description="Registry that answered")
    query: dict[str, str] = Field(default_factory=dict, description="Query parameters as sent")
    proof: AttestationProof = Field(default_factory=AttestationProof)
    error: Optional[str] = Field(default=None, description="Set when the registry could not answer")

    @property
    def degraded(self) -> bool:
        return self.error is not None


class ClaimVerifications(BaseModel):
    """
    Registry results for one run.

    Either field is None when the document gave nothing to query
    (no degree or no institution was extracted).
    """
    degree: Optional[ClaimVerificationResult] = None
    institution: Optional[ClaimVerificationResult] = None

    @property
    def degree_verified(self) -> bool:
        return bool(self.degree and self.degree.verified)

    @property
    def institution_accredited(self) -> bool:
        return bool(
            self.institution
            and self.institution.verified
            and self.institution.accredited
        )


class TimestampProof(BaseModel):
    """
    Trusted timestamp for the verification event.

    A local wall-clock fallback is marked ``verified=False`` with a
    reduced confidence and an ``error`` marker.
    """
    timestamp: int = Field(ge=0, description="Unix seconds")
    epoch: int = Field(ge=0, description="Oracle epoch index")
    oracle_signature: str = Field(default="0x", description="Hex signature from the oracle")
    confidence: float = Field(ge=0.0, le=1.0, description="Oracle confidence")
    verified: bool = Field(default=False, description="True only if the oracle answered")
    block_number: int = Field(default=0, ge=0, description="Block the timestamp was anchored in")
    error: Optional[str] = Field(default=None, description="Set on the local-clock fallback")
