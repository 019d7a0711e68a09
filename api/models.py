"""
API request and response models for metricboard REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
metrics/models.py, which own the internal domain representation. Route
handlers map between the two.

JSON keys are camelCase (fullName, dateOfBirth, userId) to match the
dashboard frontend. Python attributes stay snake_case; the alias generator
bridges them and populate_by_name lets tests build models either way.
FastAPI serializes response models by alias.

Separation of concerns: domain models = storage truth; api/ models = API contract.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from auth.models import User
from metrics.models import Metric

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)

# Metric values are opaque strings. A JSON number is accepted and kept as its
# text (5 -> "5"), never the other way round.
_METRIC_INPUT = ConfigDict(alias_generator=to_camel, populate_by_name=True, coerce_numbers_to_str=True)


# ---------------------------------------------------------------------------
# Auth -- request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /register.

    Presence is the only check. Uniqueness of username and email is left to
    the store's UNIQUE constraints.
    """

    model_config = _CAMEL

    username: str
    email: str
    password: str = Field(max_length=255)
    full_name: str
    date_of_birth: str


class LoginRequest(BaseModel):
    """Request body for POST /login. login is either the username or the email."""

    model_config = _CAMEL

    login: str
    password: str


# ---------------------------------------------------------------------------
# Auth -- response models
# ---------------------------------------------------------------------------


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: str
    username: str


class MessageResponse(BaseModel):
    """Plain confirmation body, e.g. {"message": "User created"}."""

    model_config = ConfigDict(frozen=True)

    message: str


# ---------------------------------------------------------------------------
# User profile
# ---------------------------------------------------------------------------


class UserUpdate(BaseModel):
    """Request body for PUT /user. Omitted fields are left unchanged."""

    model_config = _CAMEL

    full_name: Optional[str] = None
    date_of_birth: Optional[str] = None


class UserResponse(BaseModel):
    """A user record as returned to its owner. hashed_password never appears here."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    username: str
    email: str
    full_name: str
    date_of_birth: str
    profile_pic: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        """Build the transport model from the domain dataclass, dropping the hash."""
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            full_name=user.full_name,
            date_of_birth=user.date_of_birth,
            profile_pic=user.profile_pic,
            created_at=user.created_at,
        )


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


class MetricCreate(BaseModel):
    """Request body for POST /metrics. value is a string and is never parsed."""

    model_config = _METRIC_INPUT

    title: str
    value: str
    category: str


class MetricUpdate(BaseModel):
    """Request body for PUT /metrics/{id}. Only the value can change."""

    model_config = _METRIC_INPUT

    value: str


class MetricResponse(BaseModel):
    """A metric record. The same serialized body goes to the HTTP caller and the fanout."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    user_id: str
    title: str
    value: str
    category: str

    @classmethod
    def from_metric(cls, metric: Metric) -> "MetricResponse":
        return cls(
            id=metric.id,
            user_id=metric.user_id,
            title=metric.title,
            value=metric.value,
            category=metric.category,
        )

    def to_event(self) -> dict:
        """JSON-ready payload for a dataUpdated event, keyed exactly like the HTTP body."""
        return self.model_dump(by_alias=True)


class MetricTombstone(BaseModel):
    """dataUpdated payload announcing a deletion."""

    model_config = ConfigDict(frozen=True)

    id: str
    deleted: bool = True


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    status: str = "ok"
    version: str
    connected_clients: int = 0
