"""DisputeRepository — concrete implementation of DisputeRepositoryProtocol.

disputes.transaction_id is UNIQUE, so a second open() for the same
transaction fails in the database even if two requests race past the
service-level check.

Transaction ownership: the CALLER (application service) commits or rolls back.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ds_common.errors import InternalError
from src.ds_dispute.domain.models import Dispute, Evidence

_DISPUTE_COLUMNS = """
    id, transaction_id, initiator_id, category, description, status,
    resolution, refund_amount, admin_notes, resolved_by, resolved_at,
    created_at, updated_at
"""

_EVIDENCE_COLUMNS = """
    id, dispute_id, uploader_id, file_url, file_type, file_name, file_size_bytes, created_at
"""

_INSERT_DISPUTE_SQL = text(f"""
    INSERT INTO disputes
        (id, transaction_id, initiator_id, category, description, status)
    VALUES
        (:id, :transaction_id, :initiator_id, :category, :description, :status)
    RETURNING {_DISPUTE_COLUMNS}
""")

_GET_DISPUTE_SQL = text(f"SELECT {_DISPUTE_COLUMNS} FROM disputes WHERE id = :id")

_GET_DISPUTE_FOR_UPDATE_SQL = text(
    f"SELECT {_DISPUTE_COLUMNS} FROM disputes WHERE id = :id FOR UPDATE"
)

_GET_BY_TXN_SQL = text(
    f"SELECT {_DISPUTE_COLUMNS} FROM disputes WHERE transaction_id = :transaction_id"
)

_UPDATE_DISPUTE_SQL = text("""
    UPDATE disputes
    SET status = :status,
        resolution = :resolution,
        refund_amount = :refund_amount,
        admin_notes = :admin_notes,
        resolved_by = :resolved_by,
        resolved_at = :resolved_at,
        updated_at = NOW()
    WHERE id = :id AND status = :expected_status
    RETURNING id
""")

_INSERT_EVIDENCE_SQL = text(f"""
    INSERT INTO evidences
        (id, dispute_id, uploader_id, file_url, file_type, file_name, file_size_bytes)
    VALUES
        (:id, :dispute_id, :uploader_id, :file_url, :file_type, :file_name, :file_size_bytes)
    RETURNING {_EVIDENCE_COLUMNS}
""")

_COUNT_EVIDENCE_SQL = text("""
    SELECT COUNT(*) FROM evidences
    WHERE dispute_id = :dispute_id AND uploader_id = :uploader_id
""")

_LIST_EVIDENCE_SQL = text(f"""
    SELECT {_EVIDENCE_COLUMNS} FROM evidences
    WHERE dispute_id = :dispute_id
    ORDER BY created_at ASC
""")


def _row_to_dispute(row: object) -> Dispute:
    return Dispute(
        id=str(row.id),  # type: ignore[attr-defined]
        transaction_id=str(row.transaction_id),  # type: ignore[attr-defined]
        initiator_id=str(row.initiator_id),  # type: ignore[attr-defined]
        category=row.category,  # type: ignore[attr-defined]
        description=row.description,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        resolution=row.resolution,  # type: ignore[attr-defined]
        refund_amount=row.refund_amount,  # type: ignore[attr-defined]
        admin_notes=row.admin_notes,  # type: ignore[attr-defined]
        resolved_by=(
            str(row.resolved_by) if row.resolved_by else None  # type: ignore[attr-defined]
        ),
        resolved_at=row.resolved_at,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_evidence(row: object) -> Evidence:
    return Evidence(
        id=str(row.id),  # type: ignore[attr-defined]
        dispute_id=str(row.dispute_id),  # type: ignore[attr-defined]
        uploader_id=str(row.uploader_id),  # type: ignore[attr-defined]
        file_url=row.file_url,  # type: ignore[attr-defined]
        file_type=row.file_type,  # type: ignore[attr-defined]
        file_name=row.file_name,  # type: ignore[attr-defined]
        file_size_bytes=row.file_size_bytes,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class DisputeRepository:
    async def insert(self, db: AsyncSession, dispute: Dispute) -> Dispute:
        row = (
            await db.execute(
                _INSERT_DISPUTE_SQL,
                {
                    "id": dispute.id,
                    "transaction_id": dispute.transaction_id,
                    "initiator_id": dispute.initiator_id,
                    "category": dispute.category,
                    "description": dispute.description,
                    "status": dispute.status,
                },
            )
        ).fetchone()
        if row is None:
            raise InternalError("Dispute insert returned no rows")
        return _row_to_dispute(row)

    async def get_by_id(self, db: AsyncSession, dispute_id: str) -> Dispute | None:
        row = (await db.execute(_GET_DISPUTE_SQL, {"id": dispute_id})).fetchone()
        return _row_to_dispute(row) if row else None

    async def get_for_update(self, db: AsyncSession, dispute_id: str) -> Dispute | None:
        row = (await db.execute(_GET_DISPUTE_FOR_UPDATE_SQL, {"id": dispute_id})).fetchone()
        return _row_to_dispute(row) if row else None

    async def get_by_transaction(
        self, db: AsyncSession, transaction_id: str
    ) -> Dispute | None:
        row = (
            await db.execute(_GET_BY_TXN_SQL, {"transaction_id": transaction_id})
        ).fetchone()
        return _row_to_dispute(row) if row else None

    async def update(self, db: AsyncSession, dispute: Dispute, expected_status: str) -> bool:
        result = await db.execute(
            _UPDATE_DISPUTE_SQL,
            {
                "id": dispute.id,
                "expected_status": expected_status,
                "status": dispute.status,
                "resolution": dispute.resolution,
                "refund_amount": dispute.refund_amount,
                "admin_notes": dispute.admin_notes,
                "resolved_by": dispute.resolved_by,
                "resolved_at": dispute.resolved_at,
            },
        )
        return result.fetchone() is not None

    async def insert_evidence(self, db: AsyncSession, evidence: Evidence) -> Evidence:
        row = (
            await db.execute(
                _INSERT_EVIDENCE_SQL,
                {
                    "id": evidence.id,
                    "dispute_id": evidence.dispute_id,
                    "uploader_id": evidence.uploader_id,
                    "file_url": evidence.file_url,
                    "file_type": evidence.file_type,
                    "file_name": evidence.file_name,
                    "file_size_bytes": evidence.file_size_bytes,
                },
            )
        ).fetchone()
        if row is None:
            raise InternalError("Evidence insert returned no rows")
        return _row_to_evidence(row)

    async def count_evidence(
        self, db: AsyncSession, dispute_id: str, uploader_id: str
    ) -> int:
        result = await db.execute(
            _COUNT_EVIDENCE_SQL, {"dispute_id": dispute_id, "uploader_id": uploader_id}
        )
        return int(result.scalar_one())

    async def list_evidence(self, db: AsyncSession, dispute_id: str) -> list[Evidence]:
        rows = (await db.execute(_LIST_EVIDENCE_SQL, {"dispute_id": dispute_id})).fetchall()
        return [_row_to_evidence(r) for r in rows]
