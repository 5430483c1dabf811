"""
Domain event publishing.

Events are published after the unit of work that produced them has committed.
A failed publish is reported to the caller as EventPublishError and is never
retried here; committed state stays committed.
"""
from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List

import redis
from redis.exceptions import RedisError

from services.errors import EventPublishError

logger = logging.getLogger(__name__)

USER_REGISTERED = "user.registered"
USER_LOGGED_IN = "user.logged_in"
USER_TOKEN_REFRESHED = "user.token_refreshed"


def _envelope(event_type: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": event_type,
        "occurred_at": datetime.now(timezone.utc).isoformat(),
        "payload": payload,
    }


class EventPublisher(ABC):
    @abstractmethod
    def publish(self, event_type: str, payload: Dict[str, Any]) -> None:
        """Deliver one event; raise EventPublishError when delivery fails."""


class LogEventPublisher(EventPublisher):
    """Writes events to the application log (development default)."""

    def publish(self, event_type, payload):
        logger.info("event %s", json.dumps(_envelope(event_type, payload), default=str))


class InMemoryEventPublisher(EventPublisher):
    """Keeps published events in a list; used by the test configuration."""

    def __init__(self):
        self.events: List[Dict[str, Any]] = []

    def publish(self, event_type, payload):
        self.events.append(_envelope(event_type, payload))


class RedisEventPublisher(EventPublisher):
    """Publishes JSON envelopes on a Redis pub/sub channel."""

    def __init__(self, url: str, channel: str):
        self.redis = redis.Redis.from_url(url, decode_responses=True)
        self.channel = channel

    def publish(self, event_type, payload):
        message = json.dumps(_envelope(event_type, payload), default=str)
        try:
            self.redis.publish(self.channel, message)
        except RedisError as exc:
            logger.error("Failed to publish %s to %s: %s", event_type, self.channel, exc)
            raise EventPublishError(details={"event": event_type}) from exc


def build_publisher(config) -> EventPublisher:
    kind = (config.get("EVENT_PUBLISHER") or "log").lower()
    if kind == "redis":
        return RedisEventPublisher(config["REDIS_URL"], config.get("EVENT_CHANNEL", "storefront-events"))
    if kind == "memory":
        return InMemoryEventPublisher()
    return LogEventPublisher()
