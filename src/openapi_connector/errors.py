"""Exception hierarchy for the OpenAPI connector."""

from __future__ import annotations

from typing import Optional


class ConnectorError(Exception):
    pass


class ConfigurationError(ConnectorError):
    pass


class SpecInvalidError(ConnectorError):
    """The OpenAPI document is malformed or incomplete."""


class SchemaUnresolvableError(ConnectorError):
    """A ``$ref`` is dangling, external, or part of a cycle."""


class AuthenticationError(ConnectorError):
    def __init__(
        self, message: str, status_code: Optional[int] = None, body: Optional[str] = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ExecutionError(ConnectorError):
    pass


class TransientNetworkError(ExecutionError):
    pass


class UpstreamError(ExecutionError):
    def __init__(self, status_code: int, reason: str, body: str) -> None:
        super().__init__(f"API request failed: {status_code} {reason} - {body}")
        self.status_code = status_code
        self.reason = reason
        self.body = body


class UnauthorizedError(UpstreamError):
    pass


class UnknownToolError(ExecutionError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Tool {name} not found")
        self.name = name


class NoHandlerOrEndpointError(ExecutionError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Tool {name} has no handler or API endpoint defined")
        self.name = name
