"""
realtime/fanout.py -- Connection registry and event fanout for WebSocket clients.

Pattern: Publisher interface + in-process hub. Route handlers depend on the
Publisher protocol (injected with Depends(get_publisher)), never on a module
global, so tests can swap in a recording fake and the hub can be replaced by
a different transport without touching the routes.

Wire format: every frame is a JSON object {"event": <name>, "data": <payload>}.
  server -> client   "dataUpdated"  a metric record or a tombstone {"id", "deleted": true}
  client -> server   "updateData"   re-broadcast verbatim as "dataUpdated"

Delivery policy (Settings.fanout_policy):
  broadcast -- every connected client receives every event, whoever owns the
               metric. Client-injected "updateData" frames go to everyone too,
               with no origin or ownership check.
  owner     -- an event reaches only the connections authenticated as the
               metric owner. Injected frames go to the sender's own
               connections; frames from anonymous sockets are dropped.

Guarantees: at-most-once per connected client, nothing persisted, no replay.
A client that is not connected at publish time never sees the event. A send
that fails removes that client from the hub and is logged; it never fails the
publisher. Events published by concurrent requests may reach clients in a
different order than the store applied them.

All hub state is touched only from the event loop, so no locking is needed.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from fastapi import Request, WebSocket

logger = logging.getLogger("metricboard.realtime")

DATA_UPDATED = "dataUpdated"
UPDATE_DATA = "updateData"


class FanoutPolicy(str, Enum):
    broadcast = "broadcast"
    owner = "owner"


@dataclass(eq=False)
class Subscriber:
    """One accepted WebSocket connection. user_id is None for anonymous sockets."""

    websocket: WebSocket
    user_id: str | None = None


class Publisher(Protocol):
    """What route handlers need from the fanout layer."""

    async def publish(self, event: str, data: Any, owner_id: str | None = None) -> int:
        """Deliver an event to the clients the policy allows; return how many got it."""
        ...


class ConnectionHub:
    """In-process registry of connected clients implementing Publisher.

    Usage:
        hub = ConnectionHub(FanoutPolicy.broadcast)
        sub = await hub.connect(websocket, user_id)
        await hub.publish("dataUpdated", {"id": "..."}, owner_id=user_id)
        hub.disconnect(sub)
    """

    def __init__(self, policy: FanoutPolicy | str = FanoutPolicy.broadcast) -> None:
        self.policy = FanoutPolicy(policy)
        self._subscribers: set[Subscriber] = set()

    def __len__(self) -> int:
        return len(self._subscribers)

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def connect(self, websocket: WebSocket, user_id: str | None = None) -> Subscriber:
        """Accept the socket and start delivering events to it."""
        await websocket.accept()
        subscriber = Subscriber(websocket=websocket, user_id=user_id)
        self._subscribers.add(subscriber)
        logger.info("Client connected (user=%s, clients=%d)", user_id or "anonymous", len(self._subscribers))
        return subscriber

    def disconnect(self, subscriber: Subscriber) -> None:
        """Forget a subscriber. Safe to call more than once."""
        if subscriber in self._subscribers:
            self._subscribers.discard(subscriber)
            logger.info(
                "Client disconnected (user=%s, clients=%d)",
                subscriber.user_id or "anonymous",
                len(self._subscribers),
            )

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    async def publish(self, event: str, data: Any, owner_id: str | None = None) -> int:
        """Send {"event", "data"} to every subscriber the policy admits for owner_id.

        Under the owner policy an event with no owner reaches nobody.
        """
        return await self._deliver(self._recipients(owner_id), {"event": event, "data": data})

    async def relay(self, sender: Subscriber, data: Any) -> int:
        """Re-broadcast a client-injected payload as dataUpdated, unmodified.

        The sender receives its own frame back, like every other recipient.
        """
        if self.policy is FanoutPolicy.owner and sender.user_id is None:
            logger.warning("Dropped updateData from anonymous client under owner policy")
            return 0
        return await self.publish(DATA_UPDATED, data, owner_id=sender.user_id)

    async def dispatch(self, sender: Subscriber, frame: Any) -> int:
        """Handle one decoded frame received from a client.

        Only {"event": "updateData", "data": ...} does anything. Everything
        else is logged and ignored so a misbehaving client cannot break its
        own connection loop.
        """
        if not isinstance(frame, dict) or "event" not in frame:
            logger.warning("Ignored malformed frame from client (user=%s)", sender.user_id or "anonymous")
            return 0
        if frame["event"] != UPDATE_DATA:
            logger.debug("Ignored unknown event %r", frame["event"])
            return 0
        return await self.relay(sender, frame.get("data"))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _recipients(self, owner_id: str | None) -> list[Subscriber]:
        if self.policy is FanoutPolicy.broadcast:
            return list(self._subscribers)
        if owner_id is None:
            return []
        return [s for s in self._subscribers if s.user_id == owner_id]

    async def _deliver(self, recipients: list[Subscriber], message: dict) -> int:
        if not recipients:
            return 0
        results = await asyncio.gather(*(self._send(s, message) for s in recipients))
        return sum(1 for ok in results if ok)

    async def _send(self, subscriber: Subscriber, message: dict) -> bool:
        try:
            await subscriber.websocket.send_json(message)
        except Exception:  # noqa: BLE001 -- any transport error means the client is gone
            logger.warning(
                "Dropping client after failed send (user=%s)",
                subscriber.user_id or "anonymous",
                exc_info=True,
            )
            self.disconnect(subscriber)
            return False
        return True


def get_publisher(request: Request) -> Publisher:
    """FastAPI dependency returning the hub created in the app lifespan.

    Use as a FastAPI dependency:
        async def route(publisher: Publisher = Depends(get_publisher)): ...
    """
    return request.app.state.hub
