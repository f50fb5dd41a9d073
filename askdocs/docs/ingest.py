"""Document ingestion - persist a document, chunk it, embed and store the chunks."""

import asyncio
import logging
import time
from datetime import datetime, timezone
from pathlib import PurePosixPath
from uuid import UUID, uuid4

from askdocs.db.repositories import DocumentStore
from askdocs.docs.chunker import chunk_document
from askdocs.docs.embedder import Embedder
from askdocs.errors import AccessDenied, DocumentValidationError, EmbeddingError
from askdocs.models.documents import (
    ChunkRecord,
    DocumentRecord,
    IngestResult,
    Visibility,
    check_visibility,
)
from askdocs.utils.logging import StructuredPipelineLogger
from askdocs.utils.metrics import PrometheusPipelineMetrics

logger = logging.getLogger(__name__)


def conflict_free_name(filename: str, now: datetime) -> str:
    """Rename `report.txt` to `report_<epoch-ms>.txt`."""
    path = PurePosixPath(filename)
    suffix = path.suffix
    stem = filename[: -len(suffix)] if suffix else filename
    return f"{stem}_{int(now.timestamp() * 1000)}{suffix}"


async def _embed_chunk(embedder: Embedder, text: str) -> list[float] | None:
    try:
        return await embedder.embed(text)
    except EmbeddingError as e:
        logger.warning(f"Chunk embedding failed: {e}")
        return None


async def ingest_document(
    *,
    owner_id: UUID,
    filename: str,
    content: str,
    organization_id: UUID | None,
    visibility: Visibility,
    store: DocumentStore,
    embedder: Embedder,
    max_chars: int = 1000,
    overlap_chars: int = 200,
    min_chunk_chars: int = 20,
    min_document_chars: int = 10,
    batch_size: int = 5,
    batch_delay_ms: int = 100,
    request_id: str | None = None,
    now: datetime | None = None,
) -> IngestResult:
    """Ingest a document: validate, persist, chunk, embed, persist chunks.

    Chunks are embedded in concurrent batches of `batch_size`, pausing
    `batch_delay_ms` between batches. A chunk whose embedding fails is
    counted in `failed_chunks` and skipped; the document itself is kept.

    Args:
        owner_id: Uploading user
        filename: Requested filename (renamed on conflict)
        content: Extracted document text
        organization_id: Target organization, None for a personal document
        visibility: "private" or "organization"
        store: Document store
        embedder: Process-wide embedder

    Returns:
        IngestResult with chunk counts

    Raises:
        DocumentValidationError: Content too short or visibility mismatch
        AccessDenied: Uploader is not a member of organization_id
    """
    request_id = request_id or str(uuid4())
    log = StructuredPipelineLogger()
    metrics = PrometheusPipelineMetrics()
    start = time.perf_counter()

    if len(content.strip()) < min_document_chars:
        raise DocumentValidationError(
            f"document content must be at least {min_document_chars} characters"
        )
    check_visibility(visibility, organization_id)

    if organization_id is not None:
        memberships = await store.list_memberships(owner_id)
        if organization_id not in {m.organization_id for m in memberships}:
            raise AccessDenied(organization_id)

    now = now or datetime.now(timezone.utc)

    # Read-then-write; a concurrent upload with the same name can still race
    final_name = filename
    if await store.filename_exists(
        owner_id=owner_id, organization_id=organization_id, filename=filename
    ):
        final_name = conflict_free_name(filename, now)
        logger.info(
            "Filename conflict, renamed upload",
            extra={"structured": {"requested": filename, "stored": final_name}},
        )

    document = await store.insert_document(
        DocumentRecord(
            document_id=uuid4(),
            owner_id=owner_id,
            organization_id=organization_id,
            filename=final_name,
            content=content,
            visibility=visibility,
            created_at=now,
        )
    )

    chunks = chunk_document(
        content,
        final_name,
        max_chars=max_chars,
        overlap_chars=overlap_chars,
        min_chars=min_chunk_chars,
    )

    processed = 0
    failed = 0
    for batch_start in range(0, len(chunks), batch_size):
        if batch_start > 0 and batch_delay_ms > 0:
            await asyncio.sleep(batch_delay_ms / 1000)

        batch = chunks[batch_start : batch_start + batch_size]
        vectors = await asyncio.gather(*(_embed_chunk(embedder, text) for text in batch))

        # Inserts stay sequential on the request's session
        for offset, (text, vector) in enumerate(zip(batch, vectors, strict=True)):
            if vector is None:
                failed += 1
                continue
            await store.insert_chunk(
                ChunkRecord.for_document(
                    document,
                    chunk_id=uuid4(),
                    chunk_index=batch_start + offset,
                    text=text,
                    embedding=vector,
                )
            )
            processed += 1

    metrics.inc_ingest_chunks("processed", processed)
    metrics.inc_ingest_chunks("failed", failed)
    if failed:
        metrics.inc_embedding_error("ingest", failed)

    if processed == len(chunks):
        outcome = "success"
    elif processed == 0:
        outcome = "no_chunks_embedded"
    else:
        outcome = "partial"
    log.log_stage(
        request_id,
        "ingest",
        outcome,
        (time.perf_counter() - start) * 1000,
        document_id=str(document.document_id),
        total_chunks=len(chunks),
        processed_chunks=processed,
        failed_chunks=failed,
    )

    return IngestResult(
        document_id=document.document_id,
        filename=document.filename,
        organization_id=document.organization_id,
        visibility=document.visibility,
        total_chunks=len(chunks),
        processed_chunks=processed,
        failed_chunks=failed,
    )
