from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field


class ToolParameters(BaseModel):
    """JSON Schema describing a tool's arguments"""
    type: str = "object"
    properties: Dict[str, Any] = Field(default_factory=dict)
    required: List[str] = Field(default_factory=list)

    def as_schema(self) -> Dict[str, Any]:
        return self.model_dump()


class ToolDefinition(BaseModel):
    """A named remote operation exposed to clients"""
    name: str
    description: str
    category: str = "general"
    parameters: ToolParameters = Field(default_factory=ToolParameters)

    def public_view(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters.as_schema()
        }


class ToolResult(BaseModel):
    """Outcome of one tool invocation"""
    success: bool
    result: Optional[Any] = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
