"""In-memory implementations of repository interfaces."""

from collections.abc import Sequence
from datetime import datetime, timedelta
from uuid import UUID

from askdocs.db.repositories import RateLimitDecision
from askdocs.docs.similarity import cosine_similarities
from askdocs.models.documents import (
    ChunkRecord,
    DocumentCounts,
    DocumentRecord,
    MembershipRecord,
)
from askdocs.models.retrieval import RetrievalResult


def _reachable(
    owner_id: UUID,
    organization_id: UUID | None,
    *,
    user_id: UUID,
    organization_ids: frozenset[UUID],
    include_personal: bool,
) -> bool:
    if organization_id is None:
        return include_personal and owner_id == user_id
    return organization_id in organization_ids


class InMemoryDocumentStore:
    """In-memory implementation of DocumentStore."""

    def __init__(self) -> None:
        self._documents: dict[UUID, DocumentRecord] = {}
        self._chunks: dict[UUID, ChunkRecord] = {}
        self._memberships: dict[tuple[UUID, UUID], MembershipRecord] = {}

    def add_membership(self, membership: MembershipRecord) -> None:
        """Register a membership (one role per user/organization)."""
        self._memberships[(membership.user_id, membership.organization_id)] = membership

    @property
    def documents(self) -> list[DocumentRecord]:
        return list(self._documents.values())

    @property
    def chunks(self) -> list[ChunkRecord]:
        return list(self._chunks.values())

    async def insert_document(self, document: DocumentRecord) -> DocumentRecord:
        """Persist a new document."""
        self._documents[document.document_id] = document
        return document

    async def insert_chunk(self, chunk: ChunkRecord) -> None:
        """Persist one embedded chunk."""
        if chunk.document_id not in self._documents:
            raise KeyError(f"unknown document {chunk.document_id}")
        self._chunks[chunk.chunk_id] = chunk

    async def search_chunks(
        self,
        query_vector: Sequence[float],
        *,
        user_id: UUID,
        organization_ids: frozenset[UUID],
        include_personal: bool,
        similarity_threshold: float,
        limit: int,
    ) -> list[RetrievalResult]:
        """Similarity search restricted to the caller's reachable chunks."""
        candidates = [
            chunk
            for chunk in self._chunks.values()
            if _reachable(
                chunk.owner_id,
                chunk.organization_id,
                user_id=user_id,
                organization_ids=organization_ids,
                include_personal=include_personal,
            )
        ]

        scores = cosine_similarities(query_vector, [c.embedding for c in candidates])

        scored = [
            (chunk, float(score))
            for chunk, score in zip(candidates, scores, strict=True)
            if score >= similarity_threshold
        ]
        # Descending similarity; document/ordinal tie-break keeps ranking stable
        scored.sort(key=lambda x: (-x[1], str(x[0].document_id), x[0].chunk_index))

        return [
            RetrievalResult(
                chunk_id=chunk.chunk_id,
                document_id=chunk.document_id,
                chunk_index=chunk.chunk_index,
                owner_id=chunk.owner_id,
                organization_id=chunk.organization_id,
                filename=self._documents[chunk.document_id].filename,
                text=chunk.text,
                similarity=score,
            )
            for chunk, score in scored[:limit]
        ]

    async def list_memberships(self, user_id: UUID) -> list[MembershipRecord]:
        """List the organizations a user belongs to."""
        return [m for (uid, _), m in self._memberships.items() if uid == user_id]

    async def filename_exists(
        self, *, owner_id: UUID, organization_id: UUID | None, filename: str
    ) -> bool:
        """Check whether a filename is already taken in this owner/organization context."""
        return any(
            doc.owner_id == owner_id
            and doc.organization_id == organization_id
            and doc.filename == filename
            for doc in self._documents.values()
        )

    async def count_documents(
        self, *, user_id: UUID, organization_ids: frozenset[UUID], include_personal: bool
    ) -> DocumentCounts:
        """Count documents reachable under the given access scope."""
        counts = DocumentCounts()
        for doc in self._documents.values():
            if not _reachable(
                doc.owner_id,
                doc.organization_id,
                user_id=user_id,
                organization_ids=organization_ids,
                include_personal=include_personal,
            ):
                continue
            if doc.organization_id is None:
                counts.personal += 1
            else:
                counts.organization += 1
        return counts


class InMemoryRateLimiter:
    """In-memory implementation of RateLimiter using fixed windows with TTL eviction."""

    def __init__(self, max_requests: int, window_seconds: int = 60) -> None:
        """Initialize rate limiter.

        Args:
            max_requests: Maximum requests per window
            window_seconds: Window size in seconds (default 60)
        """
        self._max_requests = max_requests
        self._window = timedelta(seconds=window_seconds)
        self._windows: dict[str, tuple[datetime, int]] = {}

    def __len__(self) -> int:
        return len(self._windows)

    def evict_expired(self, now: datetime) -> None:
        """Drop every window whose TTL has elapsed."""
        expired = [key for key, (start, _) in self._windows.items() if now >= start + self._window]
        for key in expired:
            del self._windows[key]

    async def check(self, key: str, now: datetime) -> RateLimitDecision:
        """Consume one request from the key's quota."""
        self.evict_expired(now)

        if key not in self._windows:
            # First request in a fresh window
            self._windows[key] = (now, 1)
            return RateLimitDecision(allowed=True, remaining=self._max_requests - 1)

        window_start, count = self._windows[key]

        if count >= self._max_requests:
            seconds_remaining = int((window_start + self._window - now).total_seconds())
            return RateLimitDecision(
                allowed=False, remaining=0, retry_after_seconds=max(1, seconds_remaining)
            )

        self._windows[key] = (window_start, count + 1)
        return RateLimitDecision(allowed=True, remaining=self._max_requests - count - 1)
