"""Document endpoint - POST /documents."""

import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from askdocs.api.deps import enforce_rate_limit, get_document_store, get_embedder
from askdocs.config import Settings, get_settings
from askdocs.db.context import RequestContext
from askdocs.db.repositories import DocumentStore
from askdocs.docs.embedder import Embedder
from askdocs.docs.ingest import ingest_document
from askdocs.errors import AccessDenied, DocumentValidationError
from askdocs.models.answer import CreateDocumentRequest, CreateDocumentResponse

router = APIRouter(prefix="/documents", tags=["documents"])
logger = logging.getLogger(__name__)


@router.post("", response_model=CreateDocumentResponse, status_code=status.HTTP_201_CREATED)
async def create_document(
    request: CreateDocumentRequest,
    ctx: Annotated[RequestContext, Depends(enforce_rate_limit)],
    store: Annotated[DocumentStore, Depends(get_document_store)],
    embedder: Annotated[Embedder, Depends(get_embedder)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> CreateDocumentResponse:
    """Save a document and embed its chunks.

    Args:
        request: Filename, extracted text, optional organization and visibility
        ctx: Request context (verified user_id)
        store: Document store
        embedder: Process-wide embedder
        settings: Application settings

    Returns:
        Created document with chunk processing stats

    Raises:
        HTTPException: 400 content too short, 403 foreign organization,
            500 unexpected error
    """
    request_id = str(uuid.uuid4())
    logger.info(
        f"[POST /documents] request_id={request_id}, filename={request.filename}, "
        f"org={request.organization_id}"
    )

    try:
        result = await ingest_document(
            owner_id=ctx.user_id,
            filename=request.filename,
            content=request.content,
            organization_id=request.organization_id,
            visibility=request.visibility or "private",
            store=store,
            embedder=embedder,
            max_chars=settings.chunk_max_chars,
            overlap_chars=settings.chunk_overlap_chars,
            min_chunk_chars=settings.chunk_min_chars,
            min_document_chars=settings.min_document_chars,
            batch_size=settings.ingest_batch_size,
            batch_delay_ms=settings.ingest_batch_delay_ms,
            request_id=request_id,
        )
    except DocumentValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except AccessDenied as e:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied: you are not a member of this organization",
        ) from e
    except Exception as e:
        logger.error(f"[POST /documents] request_id={request_id} failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal error",
        ) from e

    if result.total_chunks and result.processed_chunks == 0:
        logger.warning(
            f"[POST /documents] request_id={request_id} stored document without embedded chunks"
        )

    return CreateDocumentResponse(
        document_id=result.document_id,
        filename=result.filename,
        organization_id=result.organization_id,
        visibility=result.visibility,
        total_chunks=result.total_chunks,
        processed_chunks=result.processed_chunks,
        failed_chunks=result.failed_chunks,
        processing_rate=result.processing_rate,
    )
