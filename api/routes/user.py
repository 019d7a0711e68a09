"""
api/routes/user.py -- Profile endpoints for the authenticated user.

Routes:
  GET  /user                -- own profile, password hash never included
  PUT  /user                -- update fullName and/or dateOfBirth
  POST /upload-profile-pic  -- multipart upload, field "profilePic"

Every route is scoped to the id the auth gate resolved; there is no way to
address another user's profile.

Uploads are written to the upload directory as <epoch-millis><ext> and the
relative path "uploads/<name>" is stored on the user. There is no type or
size validation and earlier pictures are never deleted. Names are created
exclusively: an upload that lands on a name already taken in the same
millisecond moves to the next free millisecond instead of overwriting it.
The file write and the database update are not coordinated: a crash between
them leaves an orphaned file.
"""

from __future__ import annotations

import logging
import shutil
import time
from pathlib import Path
from typing import BinaryIO, Optional

from fastapi import APIRouter, Depends, File, Request, UploadFile
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from api.errors import bad_request, internal_error, not_found
from api.models import UserResponse, UserUpdate
from auth.dependencies import get_current_user_id
from auth.store import UserStore

logger = logging.getLogger("metricboard.api")

# URL prefix under which api/main.py serves the upload directory.
UPLOAD_URL_PREFIX = "uploads"

router = APIRouter(dependencies=[Depends(get_current_user_id)])


@router.get("/user", response_model=UserResponse)
def get_user(request: Request, user_id: str = Depends(get_current_user_id)) -> UserResponse:
    """Return the authenticated user's profile."""
    user_store: UserStore = request.app.state.user_store
    try:
        user = user_store.get_by_id(user_id)
    except SQLAlchemyError as exc:
        logger.error("Error fetching user %s: %s", user_id, exc)
        raise internal_error("Error fetching user details") from exc
    if user is None:
        raise not_found("User not found")
    return UserResponse.from_user(user)


@router.put("/user", response_model=UserResponse)
def update_user(
    request: Request,
    body: UserUpdate,
    user_id: str = Depends(get_current_user_id),
) -> UserResponse:
    """Update the editable profile fields. Omitted fields keep their value."""
    user_store: UserStore = request.app.state.user_store
    try:
        user = user_store.update_user(user_id, full_name=body.full_name, date_of_birth=body.date_of_birth)
    except SQLAlchemyError as exc:
        logger.error("Error updating user %s: %s", user_id, exc)
        raise internal_error("Error updating user details") from exc
    if user is None:
        raise not_found("User not found")
    return UserResponse.from_user(user)


def _save_upload(src: BinaryIO, upload_dir: Path, millis: int, suffix: str) -> str:
    """Write src to <millis><suffix>, moving to the next free millisecond on a clash.

    Files are opened in exclusive mode, so two uploads landing in the same
    millisecond never overwrite each other. Returns the file name used.
    """
    while True:
        filename = f"{millis}{suffix}"
        try:
            out = (upload_dir / filename).open("xb")
        except FileExistsError:
            millis += 1
            continue
        with out:
            shutil.copyfileobj(src, out)
        return filename


@router.post("/upload-profile-pic", response_model=UserResponse)
async def upload_profile_pic(
    request: Request,
    profile_pic: Optional[UploadFile] = File(None, alias="profilePic"),
    user_id: str = Depends(get_current_user_id),
) -> UserResponse:
    """Store an uploaded picture and record its relative path on the user."""
    if profile_pic is None:
        raise bad_request("No file uploaded")

    upload_dir: Path = request.app.state.upload_dir
    user_store: UserStore = request.app.state.user_store
    millis = int(time.time() * 1000)
    suffix = Path(profile_pic.filename or "").suffix

    try:
        filename = await run_in_threadpool(_save_upload, profile_pic.file, upload_dir, millis, suffix)
        relative_path = f"{UPLOAD_URL_PREFIX}/{filename}"
        user = await run_in_threadpool(user_store.set_profile_pic, user_id, relative_path)
    except (OSError, SQLAlchemyError) as exc:
        logger.error("Error uploading profile picture for %s: %s", user_id, exc)
        raise internal_error("Error uploading profile picture", exc) from exc
    finally:
        await profile_pic.close()

    if user is None:
        raise not_found("User not found")
    logger.info("Stored profile picture %s for user %s", relative_path, user_id)
    return UserResponse.from_user(user)
