from typing import Dict, Any, Literal
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from datetime import datetime, timezone
from enum import Enum

from apex_mcp.domain.models.context_item import ContextItem


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EventType(str, Enum):
    """Stream event types"""
    CONNECTED = "connected"
    HEARTBEAT = "heartbeat"
    CONTEXT = "context"


class BaseEvent(BaseModel):
    """Base event model for all stream messages"""
    type: EventType
    timestamp: datetime = Field(default_factory=_utcnow)
    data: Dict[str, Any] = Field(default_factory=dict)

    def to_sse(self) -> str:
        """Render as one Server-Sent Events frame.

        The named event line is followed by a single-line JSON payload and a
        blank line, so a byte-stream reader can split on the blank line.
        """
        payload = self.model_dump_json(by_alias=True)
        return f"event: {self.type.value}\ndata: {payload}\n\n"


class ConnectedData(BaseModel):
    """Connection greeting payload"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    client_id: str
    timestamp: datetime = Field(default_factory=_utcnow)
    protocol_version: str
    server: str


class ConnectedEvent(BaseEvent):
    """First event of every session"""
    type: Literal[EventType.CONNECTED] = EventType.CONNECTED

    @classmethod
    def create(cls, client_id: str, protocol_version: str, server: str) -> "ConnectedEvent":
        greeting = ConnectedData(client_id=client_id, protocol_version=protocol_version, server=server)
        return cls(data=greeting.model_dump(mode="json", by_alias=True))


class HeartbeatEvent(BaseEvent):
    """Liveness-only event"""
    type: Literal[EventType.HEARTBEAT] = EventType.HEARTBEAT

    @classmethod
    def create(cls) -> "HeartbeatEvent":
        now = _utcnow()
        return cls(timestamp=now, data={"timestamp": now.isoformat()})


class ContextEvent(BaseEvent):
    """Delivers one context item"""
    type: Literal[EventType.CONTEXT] = EventType.CONTEXT

    @property
    def context_id(self) -> str:
        return self.data["id"]

    @classmethod
    def from_item(cls, item: ContextItem) -> "ContextEvent":
        return cls(data=item.model_dump(mode="json", by_alias=True))
