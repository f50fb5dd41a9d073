"""Post-retrieval ownership verification (fail-closed)."""

import logging
from dataclasses import dataclass, field
from uuid import UUID

from askdocs.db.repositories import DocumentStore
from askdocs.errors import SecurityViolation, Violation
from askdocs.models.retrieval import RetrievalResult

logger = logging.getLogger(__name__)


@dataclass
class VerificationReport:
    """Outcome of checking retrieval results against the caller's access."""

    ok: bool
    checked: int = 0
    violations: list[Violation] = field(default_factory=list)


async def verify_results(
    results: list[RetrievalResult], caller_id: UUID, store: DocumentStore
) -> VerificationReport:
    """Re-check every result against freshly loaded memberships.

    Independent of the retriever's own filtering: organization results must
    belong to one of the caller's organizations, personal results must be
    owned by the caller.

    Args:
        results: Retriever output
        caller_id: Verified caller
        store: Store used to reload memberships

    Returns:
        VerificationReport listing any violations
    """
    if not results:
        return VerificationReport(ok=True)

    memberships = await store.list_memberships(caller_id)
    member_orgs = {m.organization_id for m in memberships}

    violations: list[Violation] = []
    for result in results:
        if result.organization_id is not None:
            if result.organization_id not in member_orgs:
                violations.append(
                    Violation(
                        chunk_id=result.chunk_id,
                        reason="organization_not_member",
                        owner_id=result.owner_id,
                        organization_id=result.organization_id,
                    )
                )
        elif result.owner_id != caller_id:
            violations.append(
                Violation(
                    chunk_id=result.chunk_id,
                    reason="personal_not_owner",
                    owner_id=result.owner_id,
                    organization_id=None,
                )
            )

    return VerificationReport(ok=not violations, checked=len(results), violations=violations)


async def enforce_verification(
    results: list[RetrievalResult], caller_id: UUID, store: DocumentStore
) -> VerificationReport:
    """Verify results and fail closed on any violation.

    Raises:
        SecurityViolation: If any result is outside the caller's access
    """
    report = await verify_results(results, caller_id, store)

    if not report.ok:
        logger.error(
            "Retrieval returned chunks outside caller access",
            extra={
                "structured": {
                    "caller_id": str(caller_id),
                    "violations": [
                        {
                            "chunk_id": str(v.chunk_id),
                            "reason": v.reason,
                            "owner_id": str(v.owner_id),
                            "organization_id": str(v.organization_id)
                            if v.organization_id
                            else None,
                        }
                        for v in report.violations
                    ],
                }
            },
        )
        raise SecurityViolation(report.violations)

    return report
