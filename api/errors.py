"""
api/errors.py -- HTTPException factories shared by the route modules.

Every error body is a flat {"message": ...} object; the HTTPException handler
in api/main.py returns dict details as-is.

internal_error() attaches the raw exception text under "error" for the
routes that have always reported it (register, login, upload). That leaks
internals to the caller and is kept only for client compatibility; routes
that do not need it call internal_error() without exc.
"""

from __future__ import annotations

from fastapi import HTTPException


def not_found(message: str) -> HTTPException:
    return HTTPException(status_code=404, detail={"message": message})


def bad_request(message: str) -> HTTPException:
    return HTTPException(status_code=400, detail={"message": message})


def internal_error(message: str, exc: BaseException | None = None) -> HTTPException:
    detail: dict = {"message": message}
    if exc is not None:
        detail["error"] = str(exc)
    return HTTPException(status_code=500, detail=detail)
