"""Auth dependency - bearer token verified against the identity provider."""

import logging
import uuid
from dataclasses import dataclass
from functools import lru_cache
from typing import Annotated, Protocol

import httpx
from fastapi import Depends, Header, HTTPException, status

from askdocs.config import get_settings
from askdocs.db.context import RequestContext
from askdocs.errors import AuthError, IdentityProviderUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerifiedIdentity:
    """Identity returned by the provider for a valid token."""

    user_id: uuid.UUID
    email: str | None = None


class IdentityVerifier(Protocol):
    """External identity provider."""

    async def verify_token(self, token: str) -> VerifiedIdentity:
        """Resolve a bearer token to a user.

        Raises:
            AuthError: If the token is invalid or expired
            IdentityProviderUnavailable: If the provider cannot answer
        """
        ...


class SupabaseIdentityVerifier:
    """Verifies access tokens via the Supabase auth `GET /auth/v1/user` endpoint."""

    def __init__(
        self,
        base_url: str,
        anon_key: str | None = None,
        *,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = f"{base_url.rstrip('/')}/auth/v1/user"
        self._anon_key = anon_key
        self._timeout = timeout
        self._client = client

    async def verify_token(self, token: str) -> VerifiedIdentity:
        """Ask the provider who owns the token."""
        headers = {"Authorization": f"Bearer {token}"}
        if self._anon_key:
            headers["apikey"] = self._anon_key

        close_client = False
        client = self._client
        if client is None:
            client = httpx.AsyncClient(timeout=self._timeout)
            close_client = True

        try:
            response = await client.get(self._url, headers=headers)
            if response.status_code in (401, 403):
                raise AuthError("invalid or expired token")
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise IdentityProviderUnavailable(
                f"identity provider unavailable: {type(e).__name__}"
            ) from e
        except ValueError as e:
            raise IdentityProviderUnavailable("identity provider returned invalid JSON") from e
        finally:
            if close_client:
                await client.aclose()

        try:
            return VerifiedIdentity(user_id=uuid.UUID(data["id"]), email=data.get("email"))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise AuthError("identity provider response missing user id") from e


@lru_cache
def get_identity_verifier() -> IdentityVerifier:
    """Get cached identity verifier from settings."""
    settings = get_settings()
    anon_key = settings.supabase_anon_key
    return SupabaseIdentityVerifier(
        settings.supabase_url,
        anon_key.get_secret_value() if anon_key else None,
        timeout=settings.auth_timeout_seconds,
    )


async def get_current_context(
    verifier: Annotated[IdentityVerifier, Depends(get_identity_verifier)],
    authorization: Annotated[str | None, Header()] = None,
) -> RequestContext:
    """Extract request context from authorization header.

    Args:
        verifier: Identity provider client
        authorization: Authorization header (e.g., "Bearer <token>")

    Returns:
        RequestContext with the verified user_id

    Raises:
        HTTPException: 401 if the header is missing, malformed or the token is rejected
            503 if the identity provider is down
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = authorization[7:].strip()  # Strip "Bearer "
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Empty bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        identity = await verifier.verify_token(token)
    except AuthError as e:
        logger.info(f"Token rejected: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e
    except IdentityProviderUnavailable as e:
        logger.warning(f"Identity provider unavailable: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Identity provider unavailable",
        ) from e

    return RequestContext(user_id=identity.user_id, email=identity.email)
