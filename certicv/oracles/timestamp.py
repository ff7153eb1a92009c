"""
Trusted Timestamp Source
=========================

Obtains a tamper-evident timestamp for a verification event from a
time-oracle, and falls back to the local clock when the oracle cannot
answer.

Fallback contract:
    timestamp  = int(clock())
    epoch      = timestamp // epoch_duration
    signature  = "0x"
    confidence = fallback_confidence (0.5 by default)
    verified   = False, error set
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Optional, Protocol

import httpx

from certicv.config import OracleConfig
from certicv.errors import OracleUnavailable
from certicv.schemas.verification import TimestampProof
from certicv.utils import sha256_hex

logger = logging.getLogger("certicv.oracles.timestamp")


class TimeOracleTransport(Protocol):
    async def fetch(self) -> dict[str, Any]:
        ...


class HttpTimeOracleTransport:
    """GETs ``{endpoint}/timestamp`` and returns the JSON body."""

    def __init__(self, endpoint: str, timeout: float = 10.0):
        self.endpoint = endpoint.rstrip("/")
        self.timeout = timeout

    async def fetch(self) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(f"{self.endpoint}/timestamp")
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise OracleUnavailable(f"Time-oracle request failed: {e}") from e
        if not isinstance(data, dict):
            raise OracleUnavailable("Time-oracle answered with a non-object body")
        return data


class TimestampSource:
    """
    Trusted timestamps with a local-clock fallback.

    Usage:
        source = TimestampSource.from_config(cfg.oracles)
        proof = await source.get_timestamp()

    Args:
        transport: Time-oracle transport; None means local clock only.
        epoch_duration: Oracle epoch length in seconds.
        timeout: Bound on one oracle call, in seconds.
        fallback_confidence: Confidence reported for a local-clock timestamp.
        clock: Wall-clock source (seconds since the epoch).
    """

    def __init__(
        self,
        transport: Optional[TimeOracleTransport] = None,
        epoch_duration: int = 3600,
        timeout: float = 10.0,
        fallback_confidence: float = 0.5,
        clock: Callable[[], float] = time.time,
    ):
        self.transport = transport
        self.epoch_duration = epoch_duration
        self.timeout = timeout
        self.fallback_confidence = fallback_confidence
        self.clock = clock

    @classmethod
    def from_config(cls, config: OracleConfig) -> "TimestampSource":
        transport = None
        if config.time_oracle_endpoint:
            transport = HttpTimeOracleTransport(config.time_oracle_endpoint, timeout=config.timeout_seconds)
        return cls(
            transport=transport,
            epoch_duration=config.epoch_duration_seconds,
            timeout=config.timeout_seconds,
            fallback_confidence=config.fallback_confidence,
        )

    def epoch_of(self, timestamp: int) -> int:
        return int(timestamp) // self.epoch_duration

    async def get_timestamp(self) -> TimestampProof:
        """Oracle timestamp, or a marked local-clock fallback. Never raises."""
        try:
            if self.transport is None:
                raise OracleUnavailable("no time-oracle endpoint configured")
            data = await asyncio.wait_for(self.transport.fetch(), timeout=self.timeout)
            return self._from_oracle(data)
        except asyncio.TimeoutError:
            logger.warning(f"Time-oracle timed out after {self.timeout}s; using local clock")
            return self._fallback("time-oracle timed out")
        except Exception as e:
            logger.warning(f"Time-oracle unavailable; using local clock: {e}")
            return self._fallback(str(e))

    def _from_oracle(self, data: dict[str, Any]) -> TimestampProof:
        timestamp = int(data.get("timestamp") or self.clock())
        epoch = data.get("epoch")
        return TimestampProof(
            timestamp=timestamp,
            epoch=int(epoch) if epoch is not None else self.epoch_of(timestamp),
            oracle_signature=str(data.get("oracle_signature", data.get("oracleSignature")) or "0x"),
            confidence=float(data.get("confidence", 0.99)),
            verified=True,
            block_number=int(data.get("block_number", data.get("blockNumber")) or 0),
        )

    def _fallback(self, error: str) -> TimestampProof:
        timestamp = int(self.clock())
        return TimestampProof(
            timestamp=timestamp,
            epoch=self.epoch_of(timestamp),
            oracle_signature="0x",
            confidence=self.fallback_confidence,
            verified=False,
            error=error,
        )

    def verify_timestamp(self, timestamp: int, epoch: int, signature: Optional[str]) -> bool:
        """The epoch must match the timestamp and a signature must be present."""
        return self.epoch_of(timestamp) == epoch and bool(signature)

    async def timestamp_proof(self, verification_id: str) -> dict[str, Any]:
        """Timestamp for ``verification_id`` plus a hash binding the two."""
        proof = await self.get_timestamp()
        material = f"{verification_id}:{proof.timestamp}:{proof.epoch}:{proof.oracle_signature}"
        return {
            "verification_id": verification_id,
            **proof.model_dump(),
            "proof_hash": sha256_hex(material),
        }
