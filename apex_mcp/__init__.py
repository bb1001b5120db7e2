"""Apex MCP server: context delivery over Server-Sent Events plus SEO tools."""

__version__ = "1.0.0"
