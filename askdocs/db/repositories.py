"""Repository protocol interfaces for data access."""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID

from askdocs.models.documents import ChunkRecord, DocumentCounts, DocumentRecord, MembershipRecord
from askdocs.models.retrieval import RetrievalResult


class DocumentStore(Protocol):
    """External relational + vector store holding documents and chunks."""

    async def insert_document(self, document: DocumentRecord) -> DocumentRecord:
        """Persist a new document.

        Args:
            document: Validated document record

        Returns:
            The stored record
        """
        ...

    async def insert_chunk(self, chunk: ChunkRecord) -> None:
        """Persist one embedded chunk.

        Args:
            chunk: Chunk with ownership copied from its parent
        """
        ...

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
        """Similarity search restricted to the caller's reachable chunks.

        Args:
            query_vector: Query embedding
            user_id: Caller (owner filter for personal chunks)
            organization_ids: Organizations whose chunks are eligible
            include_personal: Whether the caller's personal chunks are eligible
            similarity_threshold: Minimum cosine similarity
            limit: Maximum number of results

        Returns:
            Results ordered by descending similarity
        """
        ...

    async def list_memberships(self, user_id: UUID) -> list[MembershipRecord]:
        """List the organizations a user belongs to.

        Args:
            user_id: User ID

        Returns:
            Membership records (one per organization)
        """
        ...

    async def filename_exists(
        self, *, owner_id: UUID, organization_id: UUID | None, filename: str
    ) -> bool:
        """Check whether a filename is already taken in this owner/organization context."""
        ...

    async def count_documents(
        self, *, user_id: UUID, organization_ids: frozenset[UUID], include_personal: bool
    ) -> DocumentCounts:
        """Count documents reachable under the given access scope."""
        ...


@dataclass
class RateLimitDecision:
    """Outcome of a rate limit check."""

    allowed: bool
    remaining: int
    retry_after_seconds: int = 0


class RateLimiter(Protocol):
    """Rate limiter interface."""

    async def check(self, key: str, now: datetime) -> RateLimitDecision:
        """Consume one request from the key's quota.

        Args:
            key: Rate limit key
            now: Current timestamp

        Returns:
            Decision with remaining quota, or retry-after when blocked
        """
        ...
