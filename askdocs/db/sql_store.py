"""SQL implementation of the document store."""

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import and_, false, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from askdocs.db.models import Document, DocumentChunk, OrganizationMembership
from askdocs.docs.similarity import cosine_similarities
from askdocs.models.documents import (
    ChunkRecord,
    DocumentCounts,
    DocumentRecord,
    MembershipRecord,
)
from askdocs.models.retrieval import RetrievalResult


def _scope_filter(
    owner_col,
    org_col,
    *,
    user_id: UUID,
    organization_ids: frozenset[UUID],
    include_personal: bool,
):
    """Build the WHERE clause restricting rows to the caller's access scope."""
    clauses = []
    if include_personal:
        clauses.append(and_(owner_col == user_id, org_col.is_(None)))
    if organization_ids:
        clauses.append(org_col.in_(list(organization_ids)))
    if not clauses:
        return false()
    return or_(*clauses)


class SqlDocumentStore:
    """SQL implementation of DocumentStore."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def insert_document(self, document: DocumentRecord) -> DocumentRecord:
        """Persist a new document."""
        row = Document(
            document_id=document.document_id,
            owner_id=document.owner_id,
            organization_id=document.organization_id,
            filename=document.filename,
            content=document.content,
            visibility=document.visibility,
            created_at=document.created_at,
        )
        self._session.add(row)
        await self._session.commit()
        return document

    async def insert_chunk(self, chunk: ChunkRecord) -> None:
        """Persist one embedded chunk."""
        row = DocumentChunk(
            chunk_id=chunk.chunk_id,
            document_id=chunk.document_id,
            owner_id=chunk.owner_id,
            organization_id=chunk.organization_id,
            chunk_index=chunk.chunk_index,
            text=chunk.text,
            embedding=list(chunk.embedding),
        )
        self._session.add(row)
        await self._session.commit()

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

        Tenancy is enforced in the SQL WHERE clause; cosine scoring runs over
        the filtered rows only.
        """
        stmt = (
            select(DocumentChunk, Document.filename)
            .join(Document, Document.document_id == DocumentChunk.document_id)
            .where(
                _scope_filter(
                    DocumentChunk.owner_id,
                    DocumentChunk.organization_id,
                    user_id=user_id,
                    organization_ids=organization_ids,
                    include_personal=include_personal,
                )
            )
        )
        rows = (await self._session.execute(stmt)).all()

        scores = cosine_similarities(query_vector, [row[0].embedding for row in rows])

        scored = [
            (chunk, filename, float(score))
            for (chunk, filename), score in zip(rows, scores, strict=True)
            if score >= similarity_threshold
        ]
        scored.sort(key=lambda x: (-x[2], str(x[0].document_id), x[0].chunk_index))

        return [
            RetrievalResult(
                chunk_id=chunk.chunk_id,
                document_id=chunk.document_id,
                chunk_index=chunk.chunk_index,
                owner_id=chunk.owner_id,
                organization_id=chunk.organization_id,
                filename=filename,
                text=chunk.text,
                similarity=score,
            )
            for chunk, filename, score in scored[:limit]
        ]

    async def list_memberships(self, user_id: UUID) -> list[MembershipRecord]:
        """List the organizations a user belongs to."""
        stmt = select(OrganizationMembership).where(OrganizationMembership.user_id == user_id)
        result = await self._session.execute(stmt)
        return [
            MembershipRecord(user_id=m.user_id, organization_id=m.organization_id, role=m.role)
            for m in result.scalars().all()
        ]

    async def filename_exists(
        self, *, owner_id: UUID, organization_id: UUID | None, filename: str
    ) -> bool:
        """Check whether a filename is already taken in this owner/organization context."""
        org_clause = (
            Document.organization_id.is_(None)
            if organization_id is None
            else Document.organization_id == organization_id
        )
        stmt = (
            select(Document.document_id)
            .where(Document.owner_id == owner_id, org_clause, Document.filename == filename)
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.first() is not None

    async def count_documents(
        self, *, user_id: UUID, organization_ids: frozenset[UUID], include_personal: bool
    ) -> DocumentCounts:
        """Count documents reachable under the given access scope."""
        counts = DocumentCounts()

        if include_personal:
            stmt = select(func.count(Document.document_id)).where(
                Document.owner_id == user_id, Document.organization_id.is_(None)
            )
            counts.personal = (await self._session.execute(stmt)).scalar_one()

        if organization_ids:
            stmt = select(func.count(Document.document_id)).where(
                Document.organization_id.in_(list(organization_ids))
            )
            counts.organization = (await self._session.execute(stmt)).scalar_one()

        return counts
