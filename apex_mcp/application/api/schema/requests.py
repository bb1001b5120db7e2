from typing import Dict, Any, Optional
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ContextSubmission(_CamelModel):
    """Body of POST /v1/context"""
    client_id: Optional[str] = None
    content: Optional[Any] = None
    metadata: Optional[Dict[str, Any]] = None


class ContextSubmitted(_CamelModel):
    success: bool = True
    context_id: str
    message: str = "Context data stored successfully"


class ToolCallRequest(_CamelModel):
    """Body of POST /v1/tools/execute"""
    client_id: Optional[str] = None
    name: Optional[str] = None
    parameters: Optional[Dict[str, Any]] = None
