"""Domain models for ds_dispute — pure dataclasses, no business logic."""

from dataclasses import dataclass
from datetime import datetime

MAX_EVIDENCE_PER_UPLOADER = 10
MAX_EVIDENCE_BYTES = 10 * 1024 * 1024


@dataclass
class Dispute:
    id: str
    transaction_id: str
    initiator_id: str            # always the buyer
    category: str
    description: str
    status: str
    resolution: str | None = None
    refund_amount: int | None = None
    admin_notes: str | None = None
    resolved_by: str | None = None
    resolved_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Evidence:
    id: str
    dispute_id: str
    uploader_id: str
    file_url: str
    file_type: str
    file_name: str
    file_size_bytes: int
    created_at: datetime | None = None
