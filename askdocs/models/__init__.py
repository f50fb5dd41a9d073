"""Models package - re-exports for convenience."""

from askdocs.models.answer import (
    AnswerSource,
    AskRequest,
    AskResponse,
    CreateDocumentRequest,
    CreateDocumentResponse,
    SourceBreakdown,
)
from askdocs.models.documents import (
    ChunkRecord,
    DocumentCounts,
    DocumentRecord,
    IngestResult,
    MembershipRecord,
    Visibility,
    check_visibility,
)
from askdocs.models.retrieval import (
    AccessScope,
    AssembledContext,
    RetrievalResult,
    SearchScope,
    SourceType,
)

__all__ = [
    # Documents
    "DocumentRecord",
    "ChunkRecord",
    "MembershipRecord",
    "DocumentCounts",
    "IngestResult",
    "Visibility",
    "check_visibility",
    # Retrieval
    "RetrievalResult",
    "AccessScope",
    "AssembledContext",
    "SearchScope",
    "SourceType",
    # API contracts
    "AskRequest",
    "AskResponse",
    "AnswerSource",
    "SourceBreakdown",
    "CreateDocumentRequest",
    "CreateDocumentResponse",
]
