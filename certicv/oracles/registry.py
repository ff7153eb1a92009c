"""
External Claim Verifier
========================

Queries a registry-style service per claim (a degree, or an
institution's accreditation) and returns a ClaimVerificationResult.

Transport:
    The registry is reached through a ``RegistryTransport``: anything
    with ``async query(request: dict) -> dict``. The HTTP transport
    POSTs the request to ``{endpoint}/query`` with a bearer token.
    Tests inject fake transports.

Guarantees:
    - ``proof_digest`` = SHA-256 over the canonical JSON of the request,
      computed locally, independent of the outcome
    - Any transport failure or timeout returns ``verified=False`` with
      ``error`` set; nothing is raised to the caller
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional, Protocol

import httpx
from pydantic import ValidationError

from certicv.config import OracleConfig
from certicv.errors import OracleUnavailable
from certicv.schemas.verification import AttestationProof, ClaimKind, ClaimVerificationResult
from certicv.utils import compute_content_hash

logger = logging.getLogger("certicv.oracles.registry")


class RegistryTransport(Protocol):
    async def query(self, request: dict[str, Any]) -> dict[str, Any]:
        ...


class HttpRegistryTransport:
    """
    Registry transport over HTTP (httpx).

    Args:
        endpoint: Registry base URL.
        api_key: Bearer token, if the registry needs one.
        timeout: Per-request timeout in seconds.
    """

    def __init__(self, endpoint: str, api_key: Optional[str] = None, timeout: float = 10.0):
        self.endpoint = endpoint.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    async def query(self, request: dict[str, Any]) -> dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(f"{self.endpoint}/query", json=request, headers=headers)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise OracleUnavailable(f"Registry query failed: {e}") from e
        if not isinstance(data, dict):
            raise OracleUnavailable("Registry answered with a non-object body")
        return data


def _as_proof(data: Any) -> AttestationProof:
    if not isinstance(data, dict):
        return AttestationProof()
    timestamp = data.get("timestamp")
    if isinstance(timestamp, float):
        timestamp = int(timestamp)
    return AttestationProof(
        signature=data.get("signature"),
        timestamp=timestamp,
        merkle_root=data.get("merkle_root", data.get("merkleRoot")),
    )


class ClaimVerifier:
    """
    Verifies degree and accreditation claims against a registry.

    Usage:
        verifier = ClaimVerifier.from_config(cfg.oracles)
        degree = await verifier.verify_degree("BSc Physics", "Stanford University", "2016")
        school = await verifier.verify_accreditation("Stanford University")

    Args:
        transport: Registry transport; None means no registry is configured,
            and every claim comes back unverified with an error marker.
        timeout: Bound on one registry call, in seconds.
    """

    def __init__(self, transport: Optional[RegistryTransport] = None, timeout: float = 10.0):
        self.transport = transport
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: OracleConfig) -> "ClaimVerifier":
        transport = None
        if config.registry_endpoint:
            transport = HttpRegistryTransport(
                config.registry_endpoint,
                api_key=config.registry_api_key,
                timeout=config.timeout_seconds,
            )
        return cls(transport=transport, timeout=config.timeout_seconds)

    async def verify_degree(
        self, degree: str, institution: str, year: str = ""
    ) -> ClaimVerificationResult:
        query = {"degree": degree, "institution": institution, "year": year}
        request = {"data_type": "education", "query": query}
        return await self._verify(ClaimKind.DEGREE, request, default_source="government-db")

    async def verify_accreditation(self, institution: str) -> ClaimVerificationResult:
        request = {"data_type": "accreditation", "query": {"institution": institution}}
        return await self._verify(ClaimKind.ACCREDITATION, request, default_source="accreditation-list")

    @staticmethod
    def verify_proof(proof: Optional[AttestationProof]) -> bool:
        """Structural check: a usable proof carries a signature and a timestamp."""
        return bool(proof and proof.signature and proof.timestamp)

    async def _verify(
        self, kind: ClaimKind, request: dict[str, Any], default_source: str
    ) -> ClaimVerificationResult:
        proof_digest = compute_content_hash(request)
        query = {k: str(v) for k, v in request["query"].items()}

        try:
            if self.transport is None:
                raise OracleUnavailable("no registry endpoint configured")
            response = await asyncio.wait_for(self.transport.query(request), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Registry {kind.value} query timed out after {self.timeout}s")
            return self._degraded(kind, proof_digest, query, "registry query timed out")
        except Exception as e:
            logger.warning(f"Registry {kind.value} query failed: {e}")
            return self._degraded(kind, proof_digest, query, str(e))

        try:
            result = self._result_from(kind, response, proof_digest, query, default_source)
        except (ValidationError, AttributeError, TypeError, ValueError) as e:
            logger.warning(f"Registry {kind.value} answer is malformed: {e}")
            return self._degraded(kind, proof_digest, query, f"malformed registry answer: {type(e).__name__}")
        logger.info(f"Registry {kind.value}: verified={result.verified}")
        return result

    @staticmethod
    def _result_from(
        kind: ClaimKind,
        response: dict[str, Any],
        proof_digest: str,
        query: dict[str, str],
        default_source: str,
    ) -> ClaimVerificationResult:
        # Only a JSON true counts; "false", 1 or "yes" do not.
        accredited = None
        if kind == ClaimKind.ACCREDITATION:
            accredited = response.get("accredited") is True

        return ClaimVerificationResult(
            kind=kind,
            verified=response.get("verified") is True,
            accredited=accredited,
            accreditation_body=str(response.get("accreditation_body", response.get("accreditationBody", "")) or ""),
            proof_digest=proof_digest,
            source=str(response.get("source") or default_source),
            query=query,
            proof=_as_proof(response.get("proof")),
        )

    @staticmethod
    def _degraded(
        kind: ClaimKind, proof_digest: str, query: dict[str, str], error: str
    ) -> ClaimVerificationResult:
        return ClaimVerificationResult(
            kind=kind,
            verified=False,
            accredited=False if kind == ClaimKind.ACCREDITATION else None,
            proof_digest=proof_digest,
            query=query,
            error=error,
        )
