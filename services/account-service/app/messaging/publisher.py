"""Best-effort fan-out of account mutation events."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Mapping

from pydantic import BaseModel

from schemas import EventEnvelope

from .rabbitmq import MessageBus

logger = logging.getLogger(__name__)


class EventPublisher:
    """Publishes post-commit snapshots to the account events topic.

    ``publish`` never raises: a lost notification must not undo or block the
    mutation that triggered it. Events attempted while the transport is down
    are dropped; there is no outbox.
    """

    def __init__(self, bus: MessageBus, *, source: str, schema_version: str) -> None:
        self._bus = bus
        self._source = source
        self._schema_version = schema_version

    def envelope(self) -> dict[str, Any]:
        envelope = EventEnvelope(
            timestamp=datetime.now(timezone.utc),
            source=self._source,
            version=self._schema_version,
        )
        return envelope.model_dump(mode="json", by_alias=True)

    def publish(self, topic: str, payload: BaseModel | Mapping[str, Any]) -> bool:
        """Return ``True`` when the event reached the broker, ``False`` otherwise."""
        try:
            if isinstance(payload, BaseModel):
                body = payload.model_dump(mode="json", by_alias=True)
            else:
                body = dict(payload)
            body.update(self.envelope())
            delivered = self._bus.publish(topic, json.dumps(body), persistent=True)
        except Exception:
            logger.exception("error publishing event %s", topic)
            return False
        if delivered:
            logger.info("event published: %s", topic)
        else:
            logger.warning("event not delivered: %s", topic)
        return delivered

    def is_healthy(self) -> bool:
        try:
            return self._bus.health_probe()
        except Exception:
            logger.exception("message bus health probe failed")
            return False
