"""Tool execution service: runs invocations and shapes MCP results."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, Optional

from .errors import ConnectorError
from .logging import redact_payload
from .tool_registry import ToolRegistry

logger = logging.getLogger(__name__)


class ConnectorService:
    """
    Executes tool invocations on behalf of the MCP server.

    Every failure is turned into an error result instead of propagating, so a
    single broken tool call never takes the server down.
    """

    def __init__(self, tool_registry: ToolRegistry, max_concurrency: int = 20) -> None:
        self.tool_registry = tool_registry
        self.semaphore = asyncio.Semaphore(max_concurrency)

    async def execute_tool(
        self, name: str, arguments: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Execute a tool by name.

        Args:
            name: Registered tool name
            arguments: Tool arguments as sent by the client

        Returns:
            MCP-formatted result, with ``is_error`` set on failure
        """
        arguments = arguments or {}
        async with self.semaphore:
            logger.info("Executing tool=%s payload=%s", name, redact_payload(arguments))
            try:
                result = await self.tool_registry.invoke(name, arguments)
            except ConnectorError as exc:
                logger.error("Tool execution failed for %s: %s", name, exc)
                return self._format_error(str(exc))
            except Exception as exc:
                logger.exception("Unexpected error executing tool %s", name)
                return self._format_error(str(exc) or exc.__class__.__name__)

            return self._format_result(result)

    def _format_result(self, result: Any) -> Dict[str, Any]:
        return {
            "content": [{"type": "text", "text": json.dumps(result, indent=2, default=str)}],
            "is_error": False,
        }

    def _format_error(self, message: str) -> Dict[str, Any]:
        return {"content": [{"type": "text", "text": f"Error: {message}"}], "is_error": True}
