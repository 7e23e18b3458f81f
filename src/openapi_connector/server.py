"""MCP server setup for the OpenAPI connector."""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, Optional

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.tools import Tool
from fastmcp.tools.tool import ToolResult
from mcp.types import TextContent
from pydantic import PrivateAttr

from .api_client import ApiClient
from .auth import TokenCache
from .config import Settings
from .executors import ToolDispatcher
from .inspection import register_diagnostic_tools
from .models import ToolDefinition
from .openapi import OpenAPILoader
from .service import ConnectorService
from .tool_registry import ToolRegistry

logger = logging.getLogger(__name__)


class ConnectorTool(Tool):
    """FastMCP tool whose schema is the compiled ``inputSchema`` of a registry entry."""

    _service: Optional[ConnectorService] = PrivateAttr(default=None)

    @classmethod
    def from_definition(cls, definition: ToolDefinition, service: ConnectorService) -> "ConnectorTool":
        tool = cls(
            name=definition.name,
            description=definition.description,
            parameters=copy.deepcopy(definition.input_schema),
        )
        tool._service = service
        return tool

    async def run(self, arguments: Dict[str, Any]) -> ToolResult:
        if self._service is None:
            raise ToolError(f"Tool {self.name} is not bound to a service")
        result = await self._service.execute_tool(self.name, arguments)
        text = result["content"][0]["text"]
        if result["is_error"]:
            raise ToolError(text)
        return ToolResult(content=[TextContent(type="text", text=text)])


def build_registry(settings: Settings) -> ToolRegistry:
    token_cache = TokenCache(
        client_id=settings.client_id,
        client_secret=settings.client_secret,
        auth_url=settings.resolved_auth_base_url(),
        auth_path=settings.auth_path,
        timeout_seconds=settings.connector_request_timeout_seconds,
    )
    api_client = ApiClient(
        base_url=settings.api_base_url,
        token_cache=token_cache,
        timeout_seconds=settings.connector_request_timeout_seconds,
    )
    dispatcher = ToolDispatcher(api_client, auth_path=settings.auth_path)
    openapi_loader = OpenAPILoader(
        cache_seconds=settings.openapi_cache_seconds,
        timeout_seconds=settings.connector_request_timeout_seconds,
    )
    return ToolRegistry(dispatcher, openapi_loader)


async def build_server(settings: Settings) -> tuple[FastMCP, object | None]:
    settings.validate_required()

    registry = build_registry(settings)
    service = ConnectorService(registry, max_concurrency=settings.connector_max_concurrency)

    register_diagnostic_tools(registry)
    count = await registry.load_openapi_tools(
        settings.openapi_spec_path, settings.compile_options()
    )
    logger.info("Loaded %s tools from %s", count, settings.openapi_spec_path)

    mcp = FastMCP(settings.service_name, instructions=_instructions(settings))
    for definition in registry.definitions():
        mcp.add_tool(ConnectorTool.from_definition(definition, service))
        logger.debug("Registered tool: %s", definition.name)

    app = _get_http_app(mcp, settings)
    _attach_auth(app, settings)
    _attach_healthcheck(app)
    return mcp, app


def _attach_auth(app, settings: Settings) -> None:  # type: ignore[no-untyped-def]
    if not app:
        return
    if not settings.connector_auth_token:
        logger.warning("CONNECTOR_AUTH_TOKEN not set; HTTP transport accepts anonymous requests")
        return

    @app.middleware("http")
    async def auth_middleware(request, call_next):  # type: ignore[no-untyped-def]
        if request.method == "OPTIONS":
            return await call_next(request)
        if request.url.path.endswith("/health"):
            return await call_next(request)

        auth_header = request.headers.get("authorization", "")
        token = auth_header.replace("Bearer", "").strip()
        if token == settings.connector_auth_token:
            return await call_next(request)

        from starlette.responses import JSONResponse

        return JSONResponse({"error": "Unauthorized"}, status_code=401)


def _attach_healthcheck(app) -> None:  # type: ignore[no-untyped-def]
    if not app:
        return

    async def healthcheck(_request):  # type: ignore[no-untyped-def]
        from starlette.responses import JSONResponse

        return JSONResponse({"status": "ok"})

    app.add_route("/health", healthcheck, methods=["GET"])


def _instructions(settings: Settings) -> str:
    return (
        "OpenAPI connector. Every tool maps to one operation of the REST API at "
        f"{settings.api_base_url}; authentication is handled by the server."
    )


def _get_http_app(mcp: FastMCP, settings: Settings):  # type: ignore[no-untyped-def]
    transport = settings.connector_transport.lower()
    if transport in {"http"}:
        app = mcp.http_app(transport="http", stateless_http=True, json_response=True)
        _attach_cors(app)
        return app
    if transport in {"streamable-http", "streamablehttp"}:
        app = mcp.http_app(
            transport="streamable-http", stateless_http=True, json_response=True
        )
        _attach_cors(app)
        return app
    if transport in {"sse"}:
        app = mcp.http_app(transport="sse")
        _attach_cors(app)
        return app
    return None


def _attach_cors(app) -> None:  # type: ignore[no-untyped-def]
    from starlette.middleware.cors import CORSMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
