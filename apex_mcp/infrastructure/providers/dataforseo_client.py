"""
DataForSEO API client

Thin async wrapper over the DataForSEO v3 REST API. Every call is a JSON POST
of a task list; a response is successful only when both the HTTP status is
2xx and the body's ``status_code`` is 20000.
"""

from typing import Dict, Any, List, Optional
import time

import httpx
import structlog

from apex_mcp.domain.errors import ProviderError

logger = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "https://api.dataforseo.com/v3"
SUCCESS_STATUS = 20000
DEFAULT_LOCATION_CODE = 2840
DEFAULT_LANGUAGE_CODE = "en"


class DataForSEOClient:
    """Async client for the DataForSEO endpoints used by the SEO tools"""

    def __init__(
        self,
        username: Optional[str],
        api_key: Optional[str],
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.username = username
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def configured(self) -> bool:
        return bool(self.username and self.api_key)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                auth=(self.username, self.api_key),
                timeout=self.timeout,
                transport=self._transport,
                headers={"Content-Type": "application/json"}
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def post(self, endpoint: str, tasks: List[Dict[str, Any]]) -> Dict[str, Any]:
        """POST a task list and return the decoded body"""

        if not self.configured:
            raise ProviderError("DataForSEO credentials not configured")

        started = time.perf_counter()
        try:
            response = await self._get_client().post(endpoint, json=tasks)
        except httpx.HTTPError as e:
            logger.error("DataForSEO request failed", endpoint=endpoint, error=str(e))
            raise ProviderError(f"DataForSEO request failed: {e}") from e

        duration_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "DataForSEO response",
            endpoint=endpoint,
            status=response.status_code,
            duration_ms=round(duration_ms, 1)
        )

        if response.is_error:
            raise ProviderError(
                f"DataForSEO API error: HTTP {response.status_code} - {response.text}",
                status_code=response.status_code
            )

        try:
            body = response.json()
        except ValueError as e:
            raise ProviderError("DataForSEO returned a non-JSON response") from e

        if not isinstance(body, dict):
            raise ProviderError(f"DataForSEO returned an unexpected {type(body).__name__} body")

        if body.get("status_code") != SUCCESS_STATUS:
            raise ProviderError(
                f"DataForSEO API error: {body.get('status_message') or 'Unknown error'}",
                status_code=body.get("status_code")
            )

        return body

    @staticmethod
    def first_result(body: Dict[str, Any]) -> List[Any]:
        tasks = body.get("tasks") or []
        if not tasks:
            return []
        return tasks[0].get("result") or []

    async def keyword_rankings(
        self,
        domain: str,
        keywords: List[str],
        location_code: int = DEFAULT_LOCATION_CODE,
        language_code: str = DEFAULT_LANGUAGE_CODE
    ) -> Dict[str, Any]:
        tasks = [
            {
                "keyword": keyword,
                "target": domain,
                "location_code": location_code,
                "language_code": language_code,
                "device": "desktop"
            }
            for keyword in keywords
        ]
        return await self.post("/serp/google/organic/live/advanced", tasks)

    async def keywords_data(
        self,
        keywords: List[str],
        location_code: int = DEFAULT_LOCATION_CODE,
        language_code: str = DEFAULT_LANGUAGE_CODE
    ) -> Dict[str, Any]:
        tasks = [{"keywords": keywords, "location_code": location_code, "language_code": language_code}]
        return await self.post("/keywords_data/google/search_volume/live", tasks)

    async def keyword_ideas(
        self,
        keyword: str,
        location_code: int = DEFAULT_LOCATION_CODE,
        language_code: str = DEFAULT_LANGUAGE_CODE
    ) -> Dict[str, Any]:
        tasks = [{"keyword": keyword, "location_code": location_code, "language_code": language_code}]
        return await self.post("/keywords_data/google/keywords_for_keywords/live", tasks)

    async def analyze_content(self, url: str, keyword: Optional[str] = None) -> Dict[str, Any]:
        task: Dict[str, Any] = {"url": url}
        if keyword:
            task["keyword"] = keyword
        return await self.post("/content_analysis/content/summary/live", [task])

    async def backlinks_summary(self, target: str, limit: int = 100) -> Dict[str, Any]:
        return await self.post("/backlinks/summary/live", [{"target": target, "limit": limit}])

    async def analyze_onpage(self, target: str, max_crawl_pages: int = 10) -> Dict[str, Any]:
        return await self.post("/on_page/task_post", [{"target": target, "max_crawl_pages": max_crawl_pages}])

    async def track_keywords(self, domain: str, keywords: List[str]) -> Dict[str, Any]:
        """Register tracking tasks, then return whatever results are ready"""
        tasks = [
            {
                "target": domain,
                "keywords": [keyword],
                "location_code": DEFAULT_LOCATION_CODE,
                "language_code": DEFAULT_LANGUAGE_CODE
            }
            for keyword in keywords
        ]
        await self.post("/rank_tracker/add", tasks)
        return await self.post("/rank_tracker/tasks_ready", [])

    async def find_competitors(self, domain: str) -> Dict[str, Any]:
        return await self.post("/domain_analytics/competitors/live", [{"target": domain, "limit": 10}])

    async def domain_metrics(self, domain: str) -> Dict[str, Any]:
        return await self.post("/domain_analytics/domain_intersection/live", [{"targets": [domain], "limit": 10}])
