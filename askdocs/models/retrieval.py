"""Retrieval and context assembly models."""

from dataclasses import dataclass, field
from typing import Literal
from uuid import UUID

from pydantic import BaseModel

SourceType = Literal["personal", "organization"]
SearchScope = Literal["all", "organization"]


class RetrievalResult(BaseModel):
    """One ranked chunk returned by similarity search. Never persisted."""

    chunk_id: UUID
    document_id: UUID
    chunk_index: int
    owner_id: UUID
    organization_id: UUID | None = None
    filename: str | None = None
    text: str
    similarity: float

    @property
    def source_type(self) -> SourceType:
        return "organization" if self.organization_id is not None else "personal"


@dataclass(frozen=True)
class AccessScope:
    """Resolved set of chunks a caller may search."""

    user_id: UUID
    organization_ids: frozenset[UUID]
    include_personal: bool


@dataclass
class AssembledContext:
    """Bounded prompt context built from ranked retrieval results."""

    context: str
    key_info: list[str] = field(default_factory=list)
    quality_score: float = 0.0
    source_breakdown: dict[str, int] = field(
        default_factory=lambda: {"personal": 0, "organization": 0}
    )
    question_type: str = "general"
