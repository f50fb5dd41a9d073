"""Request context for tenancy enforcement."""

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class RequestContext:
    """Verified caller identity.

    Every store operation that reads or writes documents is scoped by user_id.
    Organization access is resolved per request from memberships, never from
    the token.
    """

    user_id: UUID
    email: str | None = None
