from typing import Dict, List, Any, Optional

from apex_mcp.domain.errors import ToolNotFoundError
from apex_mcp.domain.models.tool import ToolDefinition, ToolParameters

_LOCATION_CODE = {"type": "number", "description": "Location code (default: 2840 for US)"}
_LANGUAGE_CODE = {"type": "string", "description": "Language code (default: en)"}
_KEYWORD_LIST = {"type": "array", "items": {"type": "string"}, "minItems": 1}


def _tool(name: str, description: str, category: str, properties: Dict[str, Any], required: List[str]) -> ToolDefinition:
    return ToolDefinition(
        name=name,
        description=description,
        category=category,
        parameters=ToolParameters(properties=properties, required=required)
    )


SEO_TOOLS = [
    _tool(
        "keyword_rankings",
        "Check keyword rankings for a domain in search results",
        "serp",
        {
            "domain": {"type": "string", "description": "The domain to check rankings for"},
            "keywords": {**_KEYWORD_LIST, "description": "List of keywords to check"},
            "location_code": _LOCATION_CODE,
            "language_code": _LANGUAGE_CODE,
        },
        ["domain", "keywords"]
    ),
    _tool(
        "keywords_data",
        "Get search volume and metrics for a list of keywords",
        "keywords",
        {
            "keywords": {**_KEYWORD_LIST, "description": "List of keywords to get data for"},
            "location_code": _LOCATION_CODE,
            "language_code": _LANGUAGE_CODE,
        },
        ["keywords"]
    ),
    _tool(
        "keyword_ideas",
        "Get related keyword ideas and suggestions for a seed keyword",
        "keywords",
        {
            "keyword": {"type": "string", "minLength": 1, "description": "Seed keyword to get ideas for"},
            "location_code": _LOCATION_CODE,
            "language_code": _LANGUAGE_CODE,
        },
        ["keyword"]
    ),
    _tool(
        "analyze_content",
        "Analyze content for SEO optimization",
        "content",
        {
            "url": {"type": "string", "description": "URL of the content to analyze"},
            "keyword": {"type": "string", "description": "Target keyword for the content"},
        },
        ["url"]
    ),
    _tool(
        "backlinks_summary",
        "Get backlink summary data for a domain or URL",
        "backlinks",
        {
            "target": {"type": "string", "description": "Domain or URL to analyze"},
            "limit": {"type": "number", "minimum": 1, "description": "Maximum number of results to return (default: 100)"},
        },
        ["target"]
    ),
    _tool(
        "analyze_onpage",
        "Analyze on-page SEO factors for a domain",
        "onpage",
        {
            "target": {"type": "string", "description": "Domain or URL to analyze"},
            "max_crawl_pages": {"type": "number", "minimum": 1, "description": "Maximum number of pages to crawl (default: 10)"},
        },
        ["target"]
    ),
    _tool(
        "track_keywords",
        "Track keyword position history for a domain",
        "rank_tracking",
        {
            "domain": {"type": "string", "description": "Domain to track keywords for"},
            "keywords": {**_KEYWORD_LIST, "description": "List of keywords to track"},
        },
        ["domain", "keywords"]
    ),
    _tool(
        "find_competitors",
        "Find competitors for a domain",
        "competitors",
        {"domain": {"type": "string", "description": "Domain to find competitors for"}},
        ["domain"]
    ),
    _tool(
        "domain_metrics",
        "Get SEO metrics for a domain",
        "domain",
        {"domain": {"type": "string", "description": "Domain to get metrics for"}},
        ["domain"]
    ),
]


class ToolRegistry:
    """Registry for managing available tools"""

    def __init__(self, tools: Optional[List[ToolDefinition]] = None):
        self.tools: Dict[str, ToolDefinition] = {}
        self.tool_categories: Dict[str, List[str]] = {}

        for tool in SEO_TOOLS if tools is None else tools:
            self.register_tool(tool)

    def register_tool(self, tool: ToolDefinition):
        """Register a new tool, replacing any tool with the same name"""

        if tool.name in self.tools:
            self.unregister_tool(tool.name)

        self.tools[tool.name] = tool
        self.tool_categories.setdefault(tool.category, []).append(tool.name)

    def unregister_tool(self, name: str):
        tool = self.tools.pop(name, None)
        if tool is not None:
            self.tool_categories[tool.category].remove(name)

    def get_available_tools(self) -> List[ToolDefinition]:
        """Get all available tools"""

        return list(self.tools.values())

    def get_tool(self, name: str) -> ToolDefinition:
        """Look up a tool or raise ToolNotFoundError"""

        tool = self.tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name)
        return tool

    def get_tools_by_category(self, category: str) -> List[ToolDefinition]:
        """Get tools by category"""

        return [self.tools[name] for name in self.tool_categories.get(category, []) if name in self.tools]

    def search_tools(self, query: str) -> List[ToolDefinition]:
        """Search tools by name or description"""

        query_lower = query.lower()
        return [
            tool for tool in self.tools.values()
            if query_lower in tool.name.lower() or query_lower in tool.description.lower()
        ]
