from typing import Dict, Any, Awaitable, Callable, Optional
from datetime import datetime, timezone
import time

import structlog

from apex_mcp.domain.errors import ProviderError
from apex_mcp.domain.models.tool import ToolResult
from apex_mcp.infrastructure.observability.logging import MetricsCollector, delivery_logger
from apex_mcp.infrastructure.providers.dataforseo_client import DataForSEOClient
from .tool_registry import ToolRegistry
from .tool_validator import ToolParameterValidator

logger = structlog.get_logger(__name__)

ToolHandler = Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]


def _pick(arguments: Dict[str, Any], *names: str) -> Dict[str, Any]:
    return {name: arguments[name] for name in names if arguments.get(name) is not None}


class ToolExecutor:
    """Validates a tool call and dispatches it to the data provider.

    Unknown tools and invalid arguments raise before anything is sent;
    provider failures come back as an unsuccessful ToolResult.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        client: DataForSEOClient,
        metrics: Optional[MetricsCollector] = None
    ):
        self.registry = registry
        self.client = client
        self.metrics = metrics or MetricsCollector()
        self.handlers: Dict[str, ToolHandler] = {
            "keyword_rankings": lambda a: client.keyword_rankings(
                a["domain"], a["keywords"], **_pick(a, "location_code", "language_code")),
            "keywords_data": lambda a: client.keywords_data(
                a["keywords"], **_pick(a, "location_code", "language_code")),
            "keyword_ideas": lambda a: client.keyword_ideas(
                a["keyword"], **_pick(a, "location_code", "language_code")),
            "analyze_content": lambda a: client.analyze_content(a["url"], a.get("keyword")),
            "backlinks_summary": lambda a: client.backlinks_summary(a["target"], **_pick(a, "limit")),
            "analyze_onpage": lambda a: client.analyze_onpage(a["target"], **_pick(a, "max_crawl_pages")),
            "track_keywords": lambda a: client.track_keywords(a["domain"], a["keywords"]),
            "find_competitors": lambda a: client.find_competitors(a["domain"]),
            "domain_metrics": lambda a: client.domain_metrics(a["domain"]),
        }

    async def execute(self, tool_name: str, arguments: Dict[str, Any], client_id: str) -> ToolResult:
        """Run one tool call on behalf of a client"""

        tool = self.registry.get_tool(tool_name)
        ToolParameterValidator.validate_tool_call(tool, arguments)

        handler = self.handlers.get(tool_name)
        metadata = {"tool": tool_name, "timestamp": datetime.now(timezone.utc).isoformat()}
        if handler is None:
            return ToolResult(success=False, error=f"Tool '{tool_name}' has no handler", metadata=metadata)

        started = time.perf_counter()
        try:
            body = await handler(arguments)
        except ProviderError as e:
            duration_ms = (time.perf_counter() - started) * 1000
            self.metrics.increment_counter("tool_errors", tags={"tool": tool_name})
            delivery_logger.log_tool_execution(
                tool_name, client_id, arguments, duration_ms=duration_ms, success=False, error=str(e)
            )
            return ToolResult(success=False, error=str(e), metadata=metadata)

        duration_ms = (time.perf_counter() - started) * 1000
        self.metrics.record_latency("tool_execution", duration_ms, tags={"tool": tool_name})
        delivery_logger.log_tool_execution(tool_name, client_id, arguments, duration_ms=duration_ms)

        return ToolResult(
            success=True,
            result={
                "results": DataForSEOClient.first_result(body),
                "cost": body.get("cost"),
                "tasks_count": body.get("tasks_count")
            },
            metadata=metadata
        )
