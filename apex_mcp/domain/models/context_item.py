from typing import Dict, Any, Optional
from datetime import datetime, timedelta, timezone
import uuid

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ContextItem(BaseModel):
    """A unit of out-of-band information addressed to one client"""
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str = Field(description="Server-generated unique identifier")
    client_id: str = Field(description="Client the item is addressed to")
    content: Any = Field(description="Arbitrary JSON payload")
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    expires_at: datetime

    @classmethod
    def create(
        cls,
        client_id: str,
        content: Any,
        metadata: Optional[Dict[str, Any]] = None,
        ttl_seconds: int = 86400
    ) -> "ContextItem":
        """Build a fresh item with a new id and computed timestamps"""
        created_at = datetime.now(timezone.utc)
        return cls(
            id=str(uuid.uuid4()),
            client_id=client_id,
            content=content,
            metadata=dict(metadata or {}),
            created_at=created_at,
            expires_at=created_at + timedelta(seconds=ttl_seconds)
        )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, raw: str) -> "ContextItem":
        return cls.model_validate_json(raw)


class ClientStatus(BaseModel):
    """Liveness and backlog summary for one client"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    client_id: str
    last_seen: Optional[datetime] = None
    pending: int = 0
    undelivered: int = 0
