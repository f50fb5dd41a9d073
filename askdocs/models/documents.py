"""Document domain models."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from askdocs.errors import DocumentValidationError

Visibility = Literal["private", "organization"]


def check_visibility(visibility: str, organization_id: UUID | None) -> None:
    """Enforce the document ownership invariant.

    Raises:
        DocumentValidationError: If visibility and organization_id disagree
    """
    if visibility == "organization" and organization_id is None:
        raise DocumentValidationError("visibility 'organization' requires an organization_id")
    if visibility == "private" and organization_id is not None:
        raise DocumentValidationError("private documents cannot carry an organization_id")


class DocumentRecord(BaseModel):
    """Stored document metadata and content."""

    document_id: UUID
    owner_id: UUID
    organization_id: UUID | None = None
    filename: str
    content: str
    visibility: Visibility = "private"
    created_at: datetime

    @model_validator(mode="after")
    def _visibility_matches_organization(self) -> "DocumentRecord":
        check_visibility(self.visibility, self.organization_id)
        return self


class ChunkRecord(BaseModel):
    """Embedded chunk with ownership copied from its parent document."""

    chunk_id: UUID
    document_id: UUID
    owner_id: UUID
    organization_id: UUID | None = None
    chunk_index: int = Field(..., ge=0)
    text: str
    embedding: list[float]

    @classmethod
    def for_document(
        cls,
        document: DocumentRecord,
        *,
        chunk_id: UUID,
        chunk_index: int,
        text: str,
        embedding: list[float],
    ) -> "ChunkRecord":
        """Build a chunk whose owner/organization are taken from the parent."""
        return cls(
            chunk_id=chunk_id,
            document_id=document.document_id,
            owner_id=document.owner_id,
            organization_id=document.organization_id,
            chunk_index=chunk_index,
            text=text,
            embedding=embedding,
        )


class MembershipRecord(BaseModel):
    """User role within an organization."""

    user_id: UUID
    organization_id: UUID
    role: Literal["owner", "admin", "member"] = "member"


class DocumentCounts(BaseModel):
    """Documents a caller can reach, split by provenance."""

    personal: int = 0
    organization: int = 0

    @property
    def total(self) -> int:
        return self.personal + self.organization


class IngestResult(BaseModel):
    """Outcome of saving and embedding one document."""

    document_id: UUID
    filename: str
    organization_id: UUID | None
    visibility: Visibility
    total_chunks: int
    processed_chunks: int
    failed_chunks: int

    @property
    def processing_rate(self) -> int:
        """Percentage of chunks that were embedded and stored."""
        if self.total_chunks == 0:
            return 0
        # Half-up, not banker's rounding: 1 of 8 is 13
        return int(self.processed_chunks * 100 / self.total_chunks + 0.5)
