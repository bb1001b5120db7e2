from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Optional, Tuple

from apex_mcp.application.stream.schema.events import BaseEvent
from apex_mcp.application.stream.transport import QueueTransport
from apex_mcp.domain.streaming.subscription_session import SubscriptionSession


def parse_sse(raw: str) -> List[Tuple[Optional[str], Dict[str, Any]]]:
    """Split a rendered stream into (event name, payload) pairs"""
    frames = []
    for block in raw.split("\n\n"):
        if not block.strip():
            continue
        name, data = None, None
        for line in block.split("\n"):
            if line.startswith("event: "):
                name = line[len("event: "):]
            elif line.startswith("data: "):
                data = json.loads(line[len("data: "):])
        frames.append((name, data))
    return frames


async def run_and_collect(session: SubscriptionSession, transport: QueueTransport) -> Tuple[str, List[BaseEvent]]:
    """Run a session to completion and return its end reason and every event it sent"""
    events: List[BaseEvent] = []

    async def consume() -> None:
        async for event in transport.events():
            events.append(event)

    consumer = asyncio.create_task(consume())
    reason = await session.run()
    await asyncio.wait_for(consumer, timeout=1.0)
    return reason, events


def event_types(events: List[BaseEvent]) -> List[str]:
    return [event.type.value for event in events]


def context_ids(events: List[BaseEvent]) -> List[str]:
    return [event.data["id"] for event in events if event.type.value == "context"]
