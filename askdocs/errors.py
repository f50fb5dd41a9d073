"""Error taxonomy for the ask/ingest pipelines."""

from dataclasses import dataclass
from uuid import UUID


class AskDocsError(Exception):
    """Base class for all pipeline errors."""

    pass


class AuthError(AskDocsError):
    """Missing, invalid or expired identity token."""

    pass


class IdentityProviderUnavailable(AskDocsError):
    """Identity provider could not be reached or answered with a server error."""

    pass


class AccessDenied(AskDocsError):
    """Caller is not a member of the requested organization."""

    def __init__(self, organization_id: UUID) -> None:
        super().__init__(f"access denied to organization {organization_id}")
        self.organization_id = organization_id


class DocumentValidationError(AskDocsError):
    """Document violates an ingest invariant."""

    pass


class EmbeddingError(AskDocsError):
    """Embedding backend unreachable or returned an unexpected shape."""

    pass


class GenerationBackendError(AskDocsError):
    """A single generative backend call failed."""

    pass


class GenerationExhausted(AskDocsError):
    """Every answer strategy produced an unusable result."""

    pass


@dataclass(frozen=True)
class Violation:
    """One retrieved row the caller should never have seen."""

    chunk_id: UUID
    reason: str
    owner_id: UUID
    organization_id: UUID | None


class SecurityViolation(AskDocsError):
    """Post-retrieval ownership check failed. Always fatal for the request."""

    def __init__(self, violations: list[Violation]) -> None:
        super().__init__(f"{len(violations)} retrieval result(s) failed ownership verification")
        self.violations = violations
