"""
auth/models.py -- Domain dataclass for the user identity.

Pattern: Data class (pure data container, zero logic). Mirrors metrics/models.py
-- dataclasses own domain shape; stores and routes do the work.

Layer rule: no imports from api/, core/, metrics/, or realtime/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A registered dashboard user.

    id is an opaque string (uuid4 hex) assigned by the store on insert; it is
    None only before the record is written. username and email are each
    unique -- login accepts either one.

    date_of_birth is stored as given. No format validation is applied beyond
    the field being present at registration.

    profile_pic is the relative path ("uploads/<file>") of the last uploaded
    picture, or None if the user never uploaded one.
    """

    username: str
    email: str
    full_name: str
    date_of_birth: str
    hashed_password: str | None = None
    id: str | None = None
    profile_pic: str | None = None
    created_at: str | None = None
