"""
auth/dependencies.py -- The auth gate: FastAPI Depends() helpers.

Every protected route depends on get_current_user_id(). The gate:
  1. Reads the Authorization header and requires the form "Bearer <token>".
  2. Verifies the token's signature and expiry against JWT_SECRET.
  3. Attaches the embedded user id to request.state.user_id and returns it.

Any failure along the way (no header, wrong scheme, empty token, bad
signature, expired, malformed payload) produces the same 401 with body
{"message": "Please authenticate"}. Callers cannot tell the cases apart.

The gate is stateless: it never consults a session table or the user store.
Any process holding the same JWT_SECRET accepts tokens minted by any other.
A token for a user whose record has since vanished still passes the gate;
handlers that load the user report 404 in that case.

try_get_user_id() is the soft variant (returns None on failure) used by the
WebSocket endpoint, where an anonymous connection is allowed.

Layer rule: no imports from api/, metrics/, or realtime/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.tokens import user_id_from_token

_UNAUTHENTICATED = {"message": "Please authenticate"}


def bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an "Authorization: Bearer <token>" value.

    The scheme is matched case-insensitively. Returns None when the header is
    absent, uses another scheme, or carries no token.
    """
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None


def try_get_user_id(token: str | None) -> str | None:
    """Return the user id for a raw token, None if missing or invalid. Never raises."""
    if not token:
        return None
    return user_id_from_token(token)


def get_current_user_id(request: Request) -> str:
    """Require a valid bearer token. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user_id: str = Depends(get_current_user_id)): ...
    """
    user_id = try_get_user_id(bearer_token(request.headers.get("Authorization")))
    if user_id is None:
        raise HTTPException(
            status_code=401,
            detail=_UNAUTHENTICATED,
            headers={"WWW-Authenticate": "Bearer"},
        )
    request.state.user_id = user_id
    return user_id
