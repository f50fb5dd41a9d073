"""Access-scoped retriever - similarity search limited to what the caller may see."""

import logging
from collections.abc import Sequence
from uuid import UUID

from askdocs.db.repositories import DocumentStore
from askdocs.errors import AccessDenied
from askdocs.models.retrieval import AccessScope, RetrievalResult, SearchScope

logger = logging.getLogger(__name__)


async def resolve_access(
    store: DocumentStore,
    user_id: UUID,
    organization_id: UUID | None = None,
    scope: SearchScope = "all",
) -> AccessScope:
    """Resolve which personal/organization chunks a caller may search.

    Scope rules:
    - organization + organization_id: only that organization
    - organization, no id: every organization the caller belongs to
    - all + organization_id: personal chunks plus that organization
    - all, no id: personal chunks plus every member organization

    Args:
        store: Document store (membership lookup)
        user_id: Verified caller
        organization_id: Optional explicit organization
        scope: "all" or "organization"

    Returns:
        AccessScope for the store query

    Raises:
        AccessDenied: If organization_id is not among the caller's memberships
    """
    memberships = await store.list_memberships(user_id)
    member_orgs = frozenset(m.organization_id for m in memberships)

    if organization_id is not None:
        if organization_id not in member_orgs:
            logger.warning(
                "Access denied to organization",
                extra={
                    "structured": {
                        "user_id": str(user_id),
                        "organization_id": str(organization_id),
                    }
                },
            )
            raise AccessDenied(organization_id)
        organization_ids = frozenset({organization_id})
    else:
        organization_ids = member_orgs

    return AccessScope(
        user_id=user_id,
        organization_ids=organization_ids,
        include_personal=scope == "all",
    )


async def retrieve(
    store: DocumentStore,
    query_vector: Sequence[float],
    access: AccessScope,
    *,
    limit: int = 8,
    similarity_threshold: float = 0.3,
) -> list[RetrievalResult]:
    """Top-K chunks above the threshold within an already resolved scope.

    Returns:
        Results by descending similarity, ties by (document_id, chunk_index).
        Empty when nothing qualifies.
    """
    if not access.include_personal and not access.organization_ids:
        return []

    return await store.search_chunks(
        query_vector,
        user_id=access.user_id,
        organization_ids=access.organization_ids,
        include_personal=access.include_personal,
        similarity_threshold=similarity_threshold,
        limit=limit,
    )


async def retrieve_for_caller(
    store: DocumentStore,
    query_vector: Sequence[float],
    user_id: UUID,
    organization_id: UUID | None = None,
    scope: SearchScope = "all",
    *,
    limit: int = 8,
    similarity_threshold: float = 0.3,
) -> list[RetrievalResult]:
    """Resolve access and search in one call.

    Raises:
        AccessDenied: If organization_id is not among the caller's memberships
    """
    access = await resolve_access(store, user_id, organization_id, scope)
    return await retrieve(
        store, query_vector, access, limit=limit, similarity_threshold=similarity_threshold
    )
