"""Unit tests for document and API contract models."""

import uuid
from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from askdocs.errors import DocumentValidationError
from askdocs.models import (
    AskRequest,
    ChunkRecord,
    CreateDocumentRequest,
    DocumentCounts,
    DocumentRecord,
    IngestResult,
    RetrievalResult,
)

OWNER = uuid.UUID("00000000-0000-0000-0000-000000000001")
ORG = uuid.UUID("00000000-0000-0000-0000-0000000000a1")


def _document(**overrides: object) -> DocumentRecord:
    fields: dict[str, object] = {
        "document_id": uuid.uuid4(),
        "owner_id": OWNER,
        "filename": "label.txt",
        "content": "Some document content.",
        "created_at": datetime.now(UTC),
    }
    fields.update(overrides)
    return DocumentRecord(**fields)  # type: ignore[arg-type]


def test_private_document_has_no_organization() -> None:
    """Test default visibility is private without an organization."""
    doc = _document()

    assert doc.visibility == "private"
    assert doc.organization_id is None


def test_organization_visibility_requires_organization_id() -> None:
    """Test organization visibility without an organization is rejected."""
    with pytest.raises(DocumentValidationError):
        _document(visibility="organization")


def test_private_document_cannot_carry_organization() -> None:
    """Test a private document with an organization is rejected."""
    with pytest.raises(DocumentValidationError):
        _document(visibility="private", organization_id=ORG)


def test_chunk_inherits_parent_ownership() -> None:
    """Test chunk owner and organization are copied from the parent document."""
    doc = _document(visibility="organization", organization_id=ORG)

    chunk = ChunkRecord.for_document(
        doc, chunk_id=uuid.uuid4(), chunk_index=3, text="chunk", embedding=[0.1, 0.2]
    )

    assert chunk.document_id == doc.document_id
    assert chunk.owner_id == OWNER
    assert chunk.organization_id == ORG
    assert chunk.chunk_index == 3


def test_chunk_index_must_be_non_negative() -> None:
    """Test negative chunk ordinals are rejected."""
    with pytest.raises(ValidationError):
        ChunkRecord(
            chunk_id=uuid.uuid4(),
            document_id=uuid.uuid4(),
            owner_id=OWNER,
            chunk_index=-1,
            text="chunk",
            embedding=[0.0],
        )


def test_retrieval_result_source_type() -> None:
    """Test provenance is derived from the organization id."""
    base = {
        "chunk_id": uuid.uuid4(),
        "document_id": uuid.uuid4(),
        "chunk_index": 0,
        "owner_id": OWNER,
        "text": "t",
        "similarity": 0.5,
    }

    assert RetrievalResult(**base).source_type == "personal"  # type: ignore[arg-type]
    org_result = RetrievalResult(**base, organization_id=ORG)  # type: ignore[arg-type]
    assert org_result.source_type == "organization"


def test_document_counts_total() -> None:
    """Test total sums personal and organization counts."""
    assert DocumentCounts(personal=2, organization=3).total == 5
    assert DocumentCounts().total == 0


@pytest.mark.parametrize(
    ("total", "processed", "expected"),
    [(0, 0, 0), (4, 4, 100), (3, 1, 33), (3, 2, 67), (8, 1, 13), (200, 1, 1)],
)
def test_ingest_processing_rate(total: int, processed: int, expected: int) -> None:
    """Test processing rate is a rounded percentage and zero when nothing was chunked."""
    result = IngestResult(
        document_id=uuid.uuid4(),
        filename="doc.txt",
        organization_id=None,
        visibility="private",
        total_chunks=total,
        processed_chunks=processed,
        failed_chunks=total - processed,
    )

    assert result.processing_rate == expected


def test_create_document_request_defaults_visibility() -> None:
    """Test visibility defaults from the presence of an organization."""
    assert CreateDocumentRequest(filename="a.txt", content="text").visibility == "private"
    assert (
        CreateDocumentRequest(filename="a.txt", content="text", organization_id=ORG).visibility
        == "organization"
    )


@pytest.mark.parametrize(
    ("visibility", "organization_id"),
    [("organization", None), ("private", ORG)],
)
def test_create_document_request_rejects_mismatch(
    visibility: str, organization_id: uuid.UUID | None
) -> None:
    """Test inconsistent visibility and organization are rejected at the boundary."""
    with pytest.raises(ValidationError):
        CreateDocumentRequest(
            filename="a.txt",
            content="text",
            organization_id=organization_id,
            visibility=visibility,  # type: ignore[arg-type]
        )


def test_ask_request_defaults_and_validation() -> None:
    """Test ask request defaults to searching everything and rejects empty questions."""
    request = AskRequest(question="What is the license number?")

    assert request.search_scope == "all"
    assert request.organization_id is None

    with pytest.raises(ValidationError):
        AskRequest(question="")
    with pytest.raises(ValidationError):
        AskRequest(question="q", search_scope="everything")  # type: ignore[arg-type]
