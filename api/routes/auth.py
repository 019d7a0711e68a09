"""
api/routes/auth.py -- Registration and login endpoints.

Routes:
  POST /register  -- create an account; 201, does not log the user in
  POST /login     -- username-or-email + password; returns a 24h bearer token

Both routes are public (they sit outside the auth gate) and both are
rate-limited per client address with Settings.auth_rate_limit.

Account enumeration: login answers 404 for an unknown login and 400 for a
wrong password. That tells a caller whether an account exists, which the
dashboard frontend relies on for its error messages. Do not deploy this
behaviour where account privacy matters.

Both handlers are plain `def`: FastAPI runs them in the threadpool, so the
bcrypt work and the store calls never block the event loop.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from api.errors import internal_error
from api.limiter import AUTH_RATE_LIMIT, limiter
from api.models import LoginRequest, LoginResponse, MessageResponse, RegisterRequest
from auth.models import User
from auth.store import UserStore
from auth.tokens import create_access_token, hash_password, verify_password

logger = logging.getLogger("metricboard.api")

# Auth policy:
# - POST /register: public -- account creation must be unauthenticated
# - POST /login:    public -- login endpoint must be unauthenticated
router = APIRouter()


def _no_store(resp: JSONResponse) -> JSONResponse:
    resp.headers["Cache-Control"] = "no-store"
    return resp


@limiter.limit(AUTH_RATE_LIMIT)
@router.post("/register", response_model=MessageResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> MessageResponse:
    """Hash the password and persist a new user.

    A duplicate username or email is rejected by the store's UNIQUE
    constraints and reported as a generic 500 with the raw error text.
    """
    user_store: UserStore = request.app.state.user_store
    try:
        user = User(
            username=body.username,
            email=body.email,
            hashed_password=hash_password(body.password),
            full_name=body.full_name,
            date_of_birth=body.date_of_birth,
        )
        user_id = user_store.create_user(user)
    except (SQLAlchemyError, ValueError) as exc:
        logger.error("Error during registration for %r: %s", body.username, exc)
        raise internal_error("Error registering user", exc) from exc

    logger.info("Registered user %s (%s)", body.username, user_id)
    return MessageResponse(message="User created")


@limiter.limit(AUTH_RATE_LIMIT)
@router.post("/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate by username or email and return a signed token.

    404 if no account matches login, 400 if the password is wrong.
    """
    user_store: UserStore = request.app.state.user_store
    try:
        user = user_store.get_by_login(body.login)
    except SQLAlchemyError as exc:
        logger.error("Error during login: %s", exc)
        raise internal_error("Error logging in", exc) from exc

    if user is None:
        return _no_store(JSONResponse(status_code=404, content={"message": "User not found"}))

    if not verify_password(body.password, user.hashed_password or ""):
        logger.info("Rejected login for %s: bad password", user.username)
        return _no_store(JSONResponse(status_code=400, content={"message": "Invalid credentials"}))

    token = create_access_token(user.id)
    logger.info("User %s logged in", user.username)
    return _no_store(
        JSONResponse(
            status_code=200,
            content=LoginResponse(token=token, username=user.username).model_dump(),
        )
    )
