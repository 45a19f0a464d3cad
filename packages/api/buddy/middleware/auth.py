# This project was developed with assistance from AI tools.
"""
JWT authentication middleware for an OIDC identity provider.

Validates Bearer tokens against the provider's JWKS endpoint, extracts user
identity, role and bank (tenant), and provides FastAPI dependencies for
route-level auth.

Set AUTH_DISABLED=true to bypass validation (tests / local dev without an IdP).
"""

import logging
import time
from typing import Annotated

import httpx
import jwt
from buddy_db.enums import UserRole
from fastapi import Depends, HTTPException, Request, status

from ..core.auth import build_data_scope
from ..core.config import settings
from ..schemas.auth import DataScope, TokenPayload, UserContext

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# JWKS cache
# ---------------------------------------------------------------------------

_jwks_data: dict | None = None
_jwks_fetched_at: float = 0


def _fetch_jwks() -> dict:
    """Fetch the JSON Web Key Set. Raises on failure."""
    response = httpx.get(settings.AUTH_JWKS_URL, timeout=5)
    response.raise_for_status()
    return response.json()


def _get_jwks(force_refresh: bool = False) -> dict:
    """Return cached JWKS, refreshing if stale or forced."""
    global _jwks_data, _jwks_fetched_at  # noqa: PLW0603

    now = time.time()
    if _jwks_data is None or force_refresh or (now - _jwks_fetched_at) > settings.JWKS_CACHE_TTL:
        _jwks_data = _fetch_jwks()
        _jwks_fetched_at = now

    return _jwks_data


def _get_signing_key(token: str) -> jwt.PyJWK:
    """Find the signing key for the given token from the JWKS."""
    try:
        header = jwt.get_unverified_header(token)
        kid = header.get("kid")

        for force_refresh in (False, True):
            # Second pass busts the cache in case the IdP rotated keys
            jwk_set = jwt.PyJWKSet.from_dict(_get_jwks(force_refresh=force_refresh))
            for key in jwk_set.keys:
                if key.key_id == kid:
                    return key

        raise jwt.InvalidTokenError(f"No matching key found for kid={kid}")

    except httpx.HTTPError as exc:
        logger.error("Failed to fetch JWKS from %s: %s", settings.AUTH_JWKS_URL, exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication service unavailable",
        ) from exc


# ---------------------------------------------------------------------------
# Token validation
# ---------------------------------------------------------------------------

def _extract_token(request: Request) -> str | None:
    """Extract Bearer token from Authorization header."""
    auth = request.headers.get("Authorization")
    if auth and auth.startswith("Bearer "):
        return auth[7:]
    return None


def _decode_token(token: str) -> TokenPayload:
    """Validate and decode a JWT against the configured JWKS."""
    signing_key = _get_signing_key(token)

    payload = jwt.decode(
        token,
        signing_key.key,
        algorithms=["RS256"],
        issuer=settings.AUTH_ISSUER,
        options={"verify_aud": False},
    )
    return TokenPayload(**payload)


def _resolve_role(token_payload: TokenPayload) -> UserRole:
    """Extract the primary role from the configured role claim.

    The claim may be a single string or a list; unknown values are ignored.
    """
    raw = token_payload.claim(settings.AUTH_ROLE_CLAIM)
    roles = raw if isinstance(raw, list) else [raw] if raw else []

    known = {role.value for role in UserRole}
    user_roles = [r for r in roles if r in known]

    if not user_roles:
        raise ValueError("No recognized role assigned")

    if len(user_roles) > 1:
        logger.warning(
            "User %s has multiple roles %s, using first: %s",
            token_payload.sub,
            user_roles,
            user_roles[0],
        )

    return UserRole(user_roles[0])


def _resolve_bank_id(token_payload: TokenPayload) -> str | None:
    value = token_payload.claim(settings.AUTH_BANK_CLAIM)
    return str(value) if value else None


# ---------------------------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------------------------


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


_DISABLED_USER = UserContext(
    user_id="dev-user",
    role=UserRole.ADMIN,
    email="dev@buddy.local",
    name="Dev User",
    data_scope=DataScope(all_banks=True),
)


async def get_current_user(request: Request) -> UserContext:
    """FastAPI dependency: validate JWT and return UserContext.

    When AUTH_DISABLED=true, returns a dev admin user without token validation.
    """
    if settings.AUTH_DISABLED:
        return _DISABLED_USER

    token = _extract_token(request)
    if not token:
        raise _unauthorized("Missing authentication token")

    try:
        payload = _decode_token(token)
    except jwt.ExpiredSignatureError as exc:
        raise _unauthorized("Token has expired") from exc
    except jwt.InvalidTokenError as exc:
        raise _unauthorized("Invalid token") from exc

    try:
        role = _resolve_role(payload)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=str(exc),
        ) from exc

    bank_id = _resolve_bank_id(payload)

    return UserContext(
        user_id=payload.sub,
        role=role,
        email=payload.email,
        name=payload.name or payload.preferred_username,
        bank_id=bank_id,
        data_scope=build_data_scope(role, payload.sub, bank_id),
    )


# Type alias for use in route signatures
CurrentUser = Annotated[UserContext, Depends(get_current_user)]


def require_roles(*allowed_roles: UserRole):
    """Dependency factory: restrict a route to specific roles.

    Usage:
        @router.post("/deals", dependencies=[Depends(require_roles(UserRole.BANKER))])
    """

    async def _check(user: CurrentUser) -> UserContext:
        if user.role not in allowed_roles:
            logger.warning(
                "RBAC denied: user=%s role=%s attempted route requiring %s",
                user.user_id,
                user.role.value,
                [r.value for r in allowed_roles],
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return user

    return _check
