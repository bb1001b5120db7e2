from typing import List, Optional


class ApexError(Exception):
    """Base class for all server errors"""


class StoreUnavailableError(ApexError):
    """The item store could not complete a read or write.

    Retryable: callers are expected to try again on their next tick rather
    than treat it as fatal.
    """

    def __init__(self, operation: str, key: Optional[str] = None, cause: Optional[BaseException] = None):
        self.operation = operation
        self.key = key
        self.cause = cause
        message = f"Item store unavailable during {operation}"
        if key:
            message += f" ({key})"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class InvalidSubmissionError(ApexError):
    """A context submission was missing required fields"""


class TransportClosedError(ApexError):
    """An event was sent to a stream transport that has already closed"""


class ToolNotFoundError(ApexError):
    """The requested tool is not registered"""

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f'Tool "{tool_name}" not found')


class ToolValidationError(ApexError):
    """Tool arguments failed schema validation"""

    def __init__(self, tool_name: str, errors: List[str]):
        self.tool_name = tool_name
        self.errors = errors
        super().__init__(f"Invalid arguments for {tool_name}: {'; '.join(errors)}")


class ProviderError(ApexError):
    """The upstream SEO data provider rejected or failed a request"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)
