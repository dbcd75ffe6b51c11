"""Pydantic schemas for ds_dispute API requests and responses."""

from datetime import datetime

from pydantic import BaseModel, Field, HttpUrl, field_validator, model_validator

from src.ds_common.enums import DisputeCategory, DisputeResolution
from src.ds_dispute.domain.models import MAX_EVIDENCE_BYTES, Dispute, Evidence


class OpenDisputeRequest(BaseModel):
    category: DisputeCategory
    description: str = Field(..., min_length=20, max_length=2000)

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: str) -> str:
        stripped = v.strip()
        if len(stripped) < 20:
            raise ValueError("description must be at least 20 characters")
        return stripped


class AddEvidenceRequest(BaseModel):
    file_url: HttpUrl
    file_type: str = Field(..., min_length=1, max_length=100)
    file_name: str = Field(..., min_length=1, max_length=255)
    file_size_bytes: int = Field(..., gt=0, le=MAX_EVIDENCE_BYTES)


class ResolveDisputeRequest(BaseModel):
    resolution: DisputeResolution
    refund_amount: int | None = Field(None, ge=0)
    admin_notes: str | None = Field(None, max_length=1000)

    @model_validator(mode="after")
    def partial_needs_amount(self) -> "ResolveDisputeRequest":
        if self.resolution == DisputeResolution.PARTIAL_REFUND and self.refund_amount is None:
            raise ValueError("refund_amount is required for PARTIAL_REFUND")
        return self


class EvidenceResponse(BaseModel):
    id: str
    dispute_id: str
    uploader_id: str
    file_url: str
    file_type: str
    file_name: str
    file_size_bytes: int
    created_at: datetime | None


class DisputeResponse(BaseModel):
    id: str
    transaction_id: str
    initiator_id: str
    category: str
    description: str
    status: str
    resolution: str | None
    refund_amount: int | None
    admin_notes: str | None
    resolved_by: str | None
    resolved_at: datetime | None
    created_at: datetime | None
    evidence: list[EvidenceResponse] = Field(default_factory=list)


def evidence_to_response(evidence: Evidence) -> EvidenceResponse:
    return EvidenceResponse(
        id=evidence.id,
        dispute_id=evidence.dispute_id,
        uploader_id=evidence.uploader_id,
        file_url=evidence.file_url,
        file_type=evidence.file_type,
        file_name=evidence.file_name,
        file_size_bytes=evidence.file_size_bytes,
        created_at=evidence.created_at,
    )


def dispute_to_response(
    dispute: Dispute, evidence: list[Evidence] | None = None
) -> DisputeResponse:
    return DisputeResponse(
        id=dispute.id,
        transaction_id=dispute.transaction_id,
        initiator_id=dispute.initiator_id,
        category=dispute.category,
        description=dispute.description,
        status=dispute.status,
        resolution=dispute.resolution,
        refund_amount=dispute.refund_amount,
        admin_notes=dispute.admin_notes,
        resolved_by=dispute.resolved_by,
        resolved_at=dispute.resolved_at,
        created_at=dispute.created_at,
        evidence=[evidence_to_response(e) for e in evidence or []],
    )
