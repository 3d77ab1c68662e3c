"""Error types for the Tally MCP server.

Codes follow JSON-RPC 2.0 conventions where one applies; the rest use the
-320xx server range.
"""

from __future__ import annotations

from typing import Any

INTERNAL_ERROR = -32603


class TallyError(Exception):
    """Base error carrying a JSON-RPC style code and optional data."""

    code: int = INTERNAL_ERROR

    def __init__(self, message: str, data: Any = None, code: int | None = None):
        super().__init__(message)
        self.message = message
        self.data = data
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "data": self.data}


class ValidationError(TallyError):
    code = -32602


class ConfigError(ValidationError):
    def __init__(self, message: str, data: Any = None):
        super().__init__(f"Configuration validation error: {message}", data)


class AuthenticationError(TallyError):
    code = -32003


class RateLimitError(TallyError):
    code = -32004

    def __init__(self, message: str, retry_after: int | None = None):
        super().__init__(message, {"retry_after": retry_after})
        self.retry_after = retry_after


class NotFoundError(TallyError, LookupError):
    code = INTERNAL_ERROR


class PromptNotFoundError(TallyError):
    code = -32604

    def __init__(self, name: str):
        super().__init__(f"Prompt not found: {name}", {"prompt": name})


class GraphQLClientError(TallyError):
    """The API answered but reported GraphQL errors."""

    def __init__(self, message: str, errors: list | None = None):
        super().__init__(message, {"errors": errors or []})
        self.errors = errors or []


class GraphQLNetworkError(TallyError):
    """The request failed at the HTTP or transport level."""

    code = -32001

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message, {"status": status})
        self.status = status


def format_error(exc: BaseException | None) -> dict:
    """Shape any exception as a JSON-RPC error object."""
    if exc is None:
        return {"code": INTERNAL_ERROR, "message": "Internal error", "data": None}
    if isinstance(exc, TallyError):
        return exc.to_dict()
    return {
        "code": INTERNAL_ERROR,
        "message": "Internal error",
        "data": {"original_message": str(exc)},
    }
