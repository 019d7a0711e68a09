"""
api/routes/metrics.py -- Owner-scoped metric CRUD with realtime fanout.

Routes:
  GET    /metrics       -- list the requester's metrics
  POST   /metrics       -- create; publishes the new record
  PUT    /metrics/{id}  -- change value; publishes the updated record
  DELETE /metrics/{id}  -- delete; publishes a tombstone {"id", "deleted": true}

Ownership policy:
  Every mutation passes both the metric id and the requester id to the store.
  A metric owned by someone else is reported exactly like a missing one
  (404 "Metric not found or unauthorized"). This is deliberate: the API never
  confirms that another user's record exists.

Fanout:
  The published payload is the same serialized MetricResponse the HTTP caller
  gets, so a connected client sees a body identical to the creator's
  response. Publishing is best-effort; the hub swallows delivery failures.

Handlers are async so they can await the publisher; blocking store calls go
through run_in_threadpool.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from api.errors import internal_error, not_found
from api.models import MessageResponse, MetricCreate, MetricResponse, MetricTombstone, MetricUpdate
from auth.dependencies import get_current_user_id
from metrics.models import Metric
from metrics.store import MetricStore
from realtime.fanout import DATA_UPDATED, Publisher, get_publisher

logger = logging.getLogger("metricboard.api")

# All metric routes require authentication.
router = APIRouter(dependencies=[Depends(get_current_user_id)])

_NOT_FOUND = "Metric not found or unauthorized"


@router.get("/metrics", response_model=list[MetricResponse])
async def list_metrics(request: Request, user_id: str = Depends(get_current_user_id)) -> list[MetricResponse]:
    """Return every metric owned by the requester."""
    store: MetricStore = request.app.state.metric_store
    try:
        metrics = await run_in_threadpool(store.list_by_owner, user_id)
    except SQLAlchemyError as exc:
        logger.error("Error fetching metrics for %s: %s", user_id, exc)
        raise internal_error("Error fetching metrics") from exc
    return [MetricResponse.from_metric(m) for m in metrics]


@router.post("/metrics", response_model=MetricResponse, status_code=201)
async def create_metric(
    request: Request,
    body: MetricCreate,
    user_id: str = Depends(get_current_user_id),
    publisher: Publisher = Depends(get_publisher),
) -> MetricResponse:
    """Create a metric owned by the requester and publish it."""
    store: MetricStore = request.app.state.metric_store
    metric = Metric(user_id=user_id, title=body.title, value=body.value, category=body.category)
    try:
        created = await run_in_threadpool(store.create_metric, metric)
    except SQLAlchemyError as exc:
        logger.error("Error adding metrics for %s: %s", user_id, exc)
        raise internal_error("Error adding metrics") from exc

    response = MetricResponse.from_metric(created)
    await publisher.publish(DATA_UPDATED, response.to_event(), owner_id=user_id)
    return response


@router.put("/metrics/{metric_id}", response_model=MetricResponse)
async def update_metric(
    request: Request,
    metric_id: str,
    body: MetricUpdate,
    user_id: str = Depends(get_current_user_id),
    publisher: Publisher = Depends(get_publisher),
) -> MetricResponse:
    """Change the value of an owned metric and publish the result."""
    store: MetricStore = request.app.state.metric_store
    try:
        updated = await run_in_threadpool(store.update_value, metric_id, user_id, body.value)
    except SQLAlchemyError as exc:
        logger.error("Error updating metric %s: %s", metric_id, exc)
        raise internal_error("Error updating metrics") from exc
    if updated is None:
        raise not_found(_NOT_FOUND)

    response = MetricResponse.from_metric(updated)
    await publisher.publish(DATA_UPDATED, response.to_event(), owner_id=user_id)
    return response


@router.delete("/metrics/{metric_id}", response_model=MessageResponse)
async def delete_metric(
    request: Request,
    metric_id: str,
    user_id: str = Depends(get_current_user_id),
    publisher: Publisher = Depends(get_publisher),
) -> MessageResponse:
    """Delete an owned metric and publish a tombstone."""
    store: MetricStore = request.app.state.metric_store
    try:
        deleted = await run_in_threadpool(store.delete, metric_id, user_id)
    except SQLAlchemyError as exc:
        logger.error("Error deleting metric %s: %s", metric_id, exc)
        raise internal_error("Error deleting metrics") from exc
    if not deleted:
        raise not_found(_NOT_FOUND)

    await publisher.publish(DATA_UPDATED, MetricTombstone(id=metric_id).model_dump(), owner_id=user_id)
    return MessageResponse(message="Metrics deleted")
