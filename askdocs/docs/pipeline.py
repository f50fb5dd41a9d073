"""Ask pipeline - resolve access, retrieve, verify, assemble, generate."""

import logging
import time
from uuid import UUID, uuid4

from askdocs.db.repositories import DocumentStore
from askdocs.docs.context import QuestionScorer, assemble_context
from askdocs.docs.embedder import Embedder
from askdocs.docs.retriever import resolve_access, retrieve
from askdocs.docs.security import enforce_verification
from askdocs.errors import EmbeddingError, SecurityViolation
from askdocs.llm.answer import AnswerGenerator
from askdocs.models.answer import AnswerSource, AskRequest, AskResponse, SourceBreakdown
from askdocs.models.retrieval import RetrievalResult
from askdocs.utils.logging import StructuredPipelineLogger
from askdocs.utils.metrics import PrometheusPipelineMetrics

logger = logging.getLogger(__name__)

NO_DOCUMENTS_ANSWER = (
    "You don't have access to any documents yet. Please upload a document first "
    "or join an organization to ask questions."
)
NO_RESULTS_ANSWER = (
    "I couldn't find any relevant information in your accessible documents to answer this question."
)

MAX_SOURCES = 5
SOURCE_PREVIEW_CHARS = 150


def build_sources(results: list[RetrievalResult]) -> list[AnswerSource]:
    """Preview of the first retrieved chunks for the response."""
    return [
        AnswerSource(
            text=result.text[:SOURCE_PREVIEW_CHARS] + "...",
            similarity=round(result.similarity, 3),
            source_type=result.source_type,
            organization_id=result.organization_id,
            filename=result.filename,
        )
        for result in results[:MAX_SOURCES]
    ]


async def answer_question(
    request: AskRequest,
    user_id: UUID,
    *,
    store: DocumentStore,
    embedder: Embedder,
    generator: AnswerGenerator,
    scorer: QuestionScorer | None = None,
    top_k: int = 8,
    similarity_threshold: float = 0.3,
    max_context_chunks: int = 6,
    max_context_chars: int = 4000,
    request_id: str | None = None,
) -> AskResponse:
    """Answer a question from the caller's accessible documents.

    Args:
        request: Question, optional organization and search scope
        user_id: Verified caller
        store: Document store
        embedder: Process-wide embedder (same as ingest)
        generator: Tiered answer generator

    Returns:
        AskResponse; "no documents" and "no results" are answers, not errors

    Raises:
        AccessDenied: Explicit organization is not one of the caller's
        EmbeddingError: Query embedding failed
        SecurityViolation: Retrieval returned chunks outside caller access
    """
    request_id = request_id or str(uuid4())
    log = StructuredPipelineLogger()
    metrics = PrometheusPipelineMetrics()
    start = time.perf_counter()

    def elapsed_ms() -> float:
        return (time.perf_counter() - start) * 1000

    # Membership check happens before any embedding work
    access = await resolve_access(store, user_id, request.organization_id, request.search_scope)

    counts = await store.count_documents(
        user_id=user_id,
        organization_ids=access.organization_ids,
        include_personal=access.include_personal,
    )
    if counts.total == 0:
        metrics.inc_retrieval("no_documents")
        metrics.record_ask_latency("no_documents", elapsed_ms())
        log.log_stage(request_id, "retrieve", "no_documents", elapsed_ms())
        return AskResponse(answer=NO_DOCUMENTS_ANSWER, found_chunks=0)

    try:
        query_vector = await embedder.embed(request.question)
    except EmbeddingError:
        metrics.inc_embedding_error("query")
        log.log_stage(request_id, "embed", "error", elapsed_ms())
        raise

    results = await retrieve(
        store,
        query_vector,
        access,
        limit=top_k,
        similarity_threshold=similarity_threshold,
    )

    try:
        await enforce_verification(results, user_id, store)
    except SecurityViolation as e:
        metrics.inc_retrieval("security_violation")
        metrics.record_ask_latency("security_violation", elapsed_ms())
        log.log_stage(
            request_id, "verify", "security_violation", elapsed_ms(), violations=len(e.violations)
        )
        raise

    if not results:
        metrics.inc_retrieval("empty")
        metrics.record_ask_latency("empty", elapsed_ms())
        log.log_stage(request_id, "retrieve", "empty", elapsed_ms())
        return AskResponse(answer=NO_RESULTS_ANSWER, found_chunks=0)

    metrics.inc_retrieval("results")
    log.log_stage(request_id, "retrieve", "results", elapsed_ms(), found_chunks=len(results))

    assembled = assemble_context(
        results,
        request.question,
        scorer,
        max_chunks=max_context_chunks,
        max_chars=max_context_chars,
    )

    answer = await generator.generate(assembled.context, request.question, assembled.key_info)

    metrics.record_ask_latency("answered", elapsed_ms())
    log.log_stage(
        request_id,
        "generate",
        "success",
        elapsed_ms(),
        tier=answer.tier,
        question_type=assembled.question_type,
    )

    return AskResponse(
        answer=answer.text,
        sources=build_sources(results),
        found_chunks=len(results),
        context_quality_score=assembled.quality_score,
        source_breakdown=SourceBreakdown(**assembled.source_breakdown),
        answer_tier=answer.tier,
    )
