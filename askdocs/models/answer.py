"""Request/response contracts for the ask and ingest endpoints."""

from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from askdocs.models.documents import Visibility
from askdocs.models.retrieval import SearchScope, SourceType


class AskRequest(BaseModel):
    """Body of POST /ask."""

    question: str = Field(..., min_length=1, max_length=2000)
    organization_id: UUID | None = None
    search_scope: SearchScope = "all"


class AnswerSource(BaseModel):
    """Preview of one retrieved chunk."""

    text: str
    similarity: float
    source_type: SourceType
    organization_id: UUID | None = None
    filename: str | None = None


class SourceBreakdown(BaseModel):
    """Count of retrieved chunks by provenance."""

    personal: int = 0
    organization: int = 0


class AskResponse(BaseModel):
    """Body returned by POST /ask."""

    answer: str
    sources: list[AnswerSource] = Field(default_factory=list)
    found_chunks: int = 0
    context_quality_score: float = 0.0
    source_breakdown: SourceBreakdown = Field(default_factory=SourceBreakdown)
    answer_tier: str | None = None


class CreateDocumentRequest(BaseModel):
    """Body of POST /documents."""

    filename: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    organization_id: UUID | None = None
    visibility: Visibility | None = None

    @model_validator(mode="after")
    def _default_visibility(self) -> "CreateDocumentRequest":
        if self.visibility is None:
            self.visibility = "organization" if self.organization_id else "private"
        elif self.visibility == "organization" and self.organization_id is None:
            raise ValueError("visibility 'organization' requires organization_id")
        elif self.visibility == "private" and self.organization_id is not None:
            raise ValueError("private documents cannot carry organization_id")
        return self


class CreateDocumentResponse(BaseModel):
    """Body returned by POST /documents."""

    document_id: UUID
    filename: str
    organization_id: UUID | None
    visibility: Visibility
    total_chunks: int
    processed_chunks: int
    failed_chunks: int
    processing_rate: int
