from typing import Dict, Any, List

import jsonschema

from apex_mcp.domain.errors import ToolValidationError
from apex_mcp.domain.models.tool import ToolDefinition


class ToolParameterValidator:
    """Validates tool arguments against the tool's JSON Schema"""

    @staticmethod
    def collect_errors(tool: ToolDefinition, parameters: Dict[str, Any]) -> List[str]:
        validator = jsonschema.Draft7Validator(tool.parameters.as_schema())
        errors = sorted(validator.iter_errors(parameters), key=lambda e: [str(part) for part in e.path])
        messages = []
        for error in errors:
            location = ".".join(str(part) for part in error.path)
            messages.append(f"{location}: {error.message}" if location else error.message)
        return messages

    @classmethod
    def validate_tool_call(cls, tool: ToolDefinition, parameters: Dict[str, Any]) -> None:
        """Raise ToolValidationError listing every schema violation"""

        if not isinstance(parameters, dict):
            raise ToolValidationError(tool.name, ["parameters must be an object"])

        errors = cls.collect_errors(tool, parameters)
        if errors:
            raise ToolValidationError(tool.name, errors)
