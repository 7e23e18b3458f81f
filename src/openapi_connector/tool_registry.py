"""Tool registry for the OpenAPI connector."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .errors import UnknownToolError
from .executors import ToolDispatcher
from .inspection import register_inspection_tools
from .models import CompileOptions, ToolDefinition
from .openapi import OpenAPILoader, ToolCompiler


logger = logging.getLogger(__name__)


class ToolRegistry:
    def __init__(
        self,
        dispatcher: ToolDispatcher,
        openapi_loader: Optional[OpenAPILoader] = None,
        compiler: Optional[ToolCompiler] = None,
    ) -> None:
        self.dispatcher = dispatcher
        self.openapi_loader = openapi_loader or OpenAPILoader()
        self.compiler = compiler or ToolCompiler()
        self.document: Optional[Dict[str, Any]] = None
        self.spec_source: Optional[str] = None
        self._tools: Dict[str, ToolDefinition] = {}

    def register(self, name: str, definition: ToolDefinition) -> None:
        if name in self._tools:
            logger.warning("Tool %s is already registered; replacing it", name)
        self._tools[name] = definition

    def get(self, name: str) -> Optional[ToolDefinition]:
        return self._tools.get(name)

    def definitions(self) -> List[ToolDefinition]:
        return list(self._tools.values())

    def list_tools(self) -> List[Dict[str, Any]]:
        return [tool.public_view() for tool in self._tools.values()]

    async def invoke(self, name: str, args: Optional[Dict[str, Any]] = None) -> Any:
        tool = self._tools.get(name)
        if tool is None:
            raise UnknownToolError(name)
        return await self.dispatcher.dispatch(tool, dict(args or {}))

    async def load_openapi_tools(
        self, source: str, options: Optional[CompileOptions] = None
    ) -> int:
        # A failing document must leave no partial tool set.
        spec = await self.openapi_loader.load_spec(source)
        tools = self.compiler.compile(spec, options)

        self.document = spec
        self.spec_source = source
        for tool in tools:
            self.register(tool.name, tool)

        register_inspection_tools(self)
        logger.info("Registered %s OpenAPI tools from %s", len(tools), source)
        return len(tools)
