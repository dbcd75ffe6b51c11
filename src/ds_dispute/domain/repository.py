"""Repository Protocol — dependency inversion for testability.

Unit tests inject an in-memory fake that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.ds_dispute.domain.models import Dispute, Evidence


class DisputeRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, dispute: Dispute) -> Dispute: ...

    async def get_by_id(self, db: AsyncSession, dispute_id: str) -> Dispute | None: ...

    async def get_for_update(self, db: AsyncSession, dispute_id: str) -> Dispute | None: ...

    async def get_by_transaction(
        self, db: AsyncSession, transaction_id: str
    ) -> Dispute | None: ...

    async def update(self, db: AsyncSession, dispute: Dispute, expected_status: str) -> bool:
        """Persist status/resolution fields only if the status is still `expected_status`."""
        ...

    async def insert_evidence(self, db: AsyncSession, evidence: Evidence) -> Evidence: ...

    async def count_evidence(
        self, db: AsyncSession, dispute_id: str, uploader_id: str
    ) -> int: ...

    async def list_evidence(self, db: AsyncSession, dispute_id: str) -> list[Evidence]: ...
