"""Ask endpoint - POST /ask."""

import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from askdocs.api.deps import (
    enforce_rate_limit,
    get_answer_generator,
    get_document_store,
    get_embedder,
)
from askdocs.config import Settings, get_settings
from askdocs.db.context import RequestContext
from askdocs.db.repositories import DocumentStore
from askdocs.docs.embedder import Embedder
from askdocs.docs.pipeline import answer_question
from askdocs.errors import AccessDenied, EmbeddingError, SecurityViolation
from askdocs.llm.answer import AnswerGenerator
from askdocs.models.answer import AskRequest, AskResponse

router = APIRouter(tags=["ask"])
logger = logging.getLogger(__name__)


@router.post("/ask", response_model=AskResponse, status_code=status.HTTP_200_OK)
async def ask(
    request: AskRequest,
    ctx: Annotated[RequestContext, Depends(enforce_rate_limit)],
    store: Annotated[DocumentStore, Depends(get_document_store)],
    embedder: Annotated[Embedder, Depends(get_embedder)],
    generator: Annotated[AnswerGenerator, Depends(get_answer_generator)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> AskResponse:
    """Answer a question from the caller's personal and organization documents.

    Args:
        request: Question, optional organization_id and search_scope
        ctx: Request context (verified user_id)
        store: Document store
        embedder: Process-wide embedder
        generator: Tiered answer generator
        settings: Application settings

    Returns:
        AskResponse with answer, sources and retrieval stats

    Raises:
        HTTPException: 403 foreign organization, 502 embedding backend failure,
            500 security verification failure or unexpected error
    """
    request_id = str(uuid.uuid4())
    logger.info(
        f"[POST /ask] request_id={request_id}, scope={request.search_scope}, "
        f"org={request.organization_id}"
    )

    try:
        return await answer_question(
            request,
            ctx.user_id,
            store=store,
            embedder=embedder,
            generator=generator,
            top_k=settings.retrieval_top_k,
            similarity_threshold=settings.similarity_threshold,
            max_context_chunks=settings.context_max_chunks,
            max_context_chars=settings.context_max_chars,
            request_id=request_id,
        )
    except AccessDenied as e:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied: you are not a member of this organization",
        ) from e
    except EmbeddingError as e:
        logger.error(f"[POST /ask] request_id={request_id} embedding failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Embedding service unavailable",
        ) from e
    except SecurityViolation as e:
        # Fail closed; details stay in the logs
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Security error",
        ) from e
    except Exception as e:
        logger.error(f"[POST /ask] request_id={request_id} failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal error",
        ) from e
