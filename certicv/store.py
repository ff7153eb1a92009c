"""
Record Store
=============

The storage collaborator seam. The pipeline only needs four operations
on VerificationRecords; anything that provides them (a database
adapter, a document store) can back a pipeline.

Commit discipline:
    Every status change after submission goes through
    ``compare_and_set(record, expected_status)``. A writer whose view of
    the record is stale (the record was removed, or someone else already
    moved it on) gets RecordSuperseded and must drop its result.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol

from certicv.errors import RecordSuperseded
from certicv.schemas.record import VerificationRecord, VerificationStatus

logger = logging.getLogger("certicv.store")


class RecordStore(Protocol):
    async def get(self, verification_id: str) -> Optional[VerificationRecord]:
        ...

    async def put(self, record: VerificationRecord) -> None:
        ...

    async def compare_and_set(
        self, record: VerificationRecord, expected_status: VerificationStatus
    ) -> None:
        ...

    async def delete(self, verification_id: str) -> bool:
        ...


class InMemoryRecordStore:
    """
    Process-local RecordStore.

    Records are copied on the way in and on the way out, so callers
    never share a mutable record with the store.
    """

    def __init__(self):
        self._records: dict[str, VerificationRecord] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._records)

    async def get(self, verification_id: str) -> Optional[VerificationRecord]:
        async with self._lock:
            record = self._records.get(verification_id)
            return record.model_copy(deep=True) if record else None

    async def put(self, record: VerificationRecord) -> None:
        async with self._lock:
            self._records[record.verification_id] = record.model_copy(deep=True)

    async def compare_and_set(
        self, record: VerificationRecord, expected_status: VerificationStatus
    ) -> None:
        """
        Replace the stored record only if it is still in ``expected_status``.

        Raises:
            RecordSuperseded: If the record is gone or has moved on.
        """
        async with self._lock:
            current = self._records.get(record.verification_id)
            if current is None or current.status != expected_status:
                found = current.status.value if current else None
                raise RecordSuperseded(record.verification_id, found)
            self._records[record.verification_id] = record.model_copy(deep=True)

    async def delete(self, verification_id: str) -> bool:
        async with self._lock:
            return self._records.pop(verification_id, None) is not None
