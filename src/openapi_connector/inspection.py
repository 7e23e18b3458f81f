"""Built-in handler tools for inspecting the loaded OpenAPI document and the connection."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from .errors import ConnectorError
from .models import ToolDefinition, empty_input_schema
from .openapi import HTTP_METHODS

if TYPE_CHECKING:
    from .api_client import ApiClient
    from .tool_registry import ToolRegistry


logger = logging.getLogger(__name__)

SEARCH_INPUT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "method": {
            "type": "string",
            "description": "Filter by HTTP method (GET, POST, PUT, PATCH, DELETE)",
            "enum": [method.upper() for method in HTTP_METHODS],
        },
        "pathPattern": {
            "type": "string",
            "description": "Filter by path pattern (supports partial matching)",
        },
        "operationIdPattern": {
            "type": "string",
            "description": "Filter by operation ID pattern (supports partial matching)",
        },
    },
    "required": [],
}


def summarize_endpoints(document: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """List every operation that declares an ``operationId``."""
    endpoints: List[Dict[str, Any]] = []
    for path, path_item in ((document or {}).get("paths") or {}).items():
        if not isinstance(path_item, dict):
            continue
        for method, operation in path_item.items():
            if method.lower() not in HTTP_METHODS or not isinstance(operation, dict):
                continue
            if not operation.get("operationId"):
                continue
            endpoints.append(
                {
                    "path": path,
                    "method": method.upper(),
                    "operationId": operation["operationId"],
                    "summary": operation.get("summary"),
                    "description": operation.get("description"),
                    "parameters": [
                        {
                            "name": parameter.get("name"),
                            "in": parameter.get("in"),
                            "required": parameter.get("required"),
                            "type": (parameter.get("schema") or {}).get("type"),
                        }
                        for parameter in operation.get("parameters") or []
                        if isinstance(parameter, dict)
                    ],
                    "hasRequestBody": bool(operation.get("requestBody")),
                    "responses": list((operation.get("responses") or {}).keys()),
                }
            )
    return endpoints


def search_endpoints(
    document: Optional[Dict[str, Any]],
    method: Optional[str] = None,
    path_pattern: Optional[str] = None,
    operation_id_pattern: Optional[str] = None,
) -> List[Dict[str, Any]]:
    matches = []
    for endpoint in summarize_endpoints(document):
        if method and endpoint["method"] != method.upper():
            continue
        if path_pattern and path_pattern not in endpoint["path"]:
            continue
        if operation_id_pattern and operation_id_pattern not in endpoint["operationId"]:
            continue
        matches.append(endpoint)
    return matches


def register_inspection_tools(registry: ToolRegistry) -> None:
    async def get_openapi_spec(_args: Dict[str, Any], _client: ApiClient) -> Dict[str, Any]:
        document = registry.document or {}
        info = document.get("info") or {}
        return {
            "specification": document,
            "summary": {
                "title": info.get("title"),
                "version": info.get("version"),
                "description": info.get("description"),
                "totalPaths": len(document.get("paths") or {}),
                "servers": [
                    server.get("url")
                    for server in document.get("servers") or []
                    if isinstance(server, dict)
                ],
            },
        }

    async def get_generated_tools_info(
        _args: Dict[str, Any], _client: ApiClient
    ) -> Dict[str, Any]:
        tools = [tool.dispatch_info() for tool in registry.definitions() if tool.is_api_tool]
        return {"totalTools": len(tools), "tools": tools}

    async def get_api_endpoints_summary(
        _args: Dict[str, Any], _client: ApiClient
    ) -> Dict[str, Any]:
        endpoints = summarize_endpoints(registry.document)
        return {"totalEndpoints": len(endpoints), "endpoints": endpoints}

    async def search_api_endpoints(args: Dict[str, Any], _client: ApiClient) -> Dict[str, Any]:
        endpoints = search_endpoints(
            registry.document,
            method=args.get("method"),
            path_pattern=args.get("pathPattern"),
            operation_id_pattern=args.get("operationIdPattern"),
        )
        return {
            "totalEndpoints": len(endpoints),
            "filters": {
                "method": args.get("method") or "all",
                "pathPattern": args.get("pathPattern") or "none",
                "operationIdPattern": args.get("operationIdPattern") or "none",
            },
            "endpoints": endpoints,
        }

    definitions = [
        ToolDefinition(
            name="get_openapi_spec",
            description="Get the complete OpenAPI specification in JSON format",
            handler=get_openapi_spec,
        ),
        ToolDefinition(
            name="get_generated_tools_info",
            description=(
                "Get information about tools generated from OpenAPI spec "
                "including parameter classifications"
            ),
            handler=get_generated_tools_info,
        ),
        ToolDefinition(
            name="get_api_endpoints_summary",
            description="Get a summary of all available API endpoints from OpenAPI spec",
            handler=get_api_endpoints_summary,
        ),
        ToolDefinition(
            name="search_api_endpoints",
            description="Search and filter API endpoints by method, path, or operation ID",
            input_schema=SEARCH_INPUT_SCHEMA,
            handler=search_api_endpoints,
        ),
    ]
    for definition in definitions:
        registry.register(definition.name, definition)


def register_diagnostic_tools(registry: ToolRegistry) -> None:
    async def test_connection(_args: Dict[str, Any], _client: ApiClient) -> Dict[str, Any]:
        return {"status": "success", "message": "OpenAPI connector is working!"}

    async def test_auth(_args: Dict[str, Any], client: ApiClient) -> Dict[str, Any]:
        try:
            token = await client.token_cache.get_valid_token()
        except ConnectorError as exc:
            logger.warning("Authentication check failed: %s", exc)
            return {"status": "error", "message": f"Authentication failed: {exc}"}
        return {
            "status": "success",
            "message": "Authentication successful!",
            "token_preview": token[:20] + "...",
        }

    registry.register(
        "test_connection",
        ToolDefinition(
            name="test_connection",
            description="Test the OpenAPI connector",
            input_schema=empty_input_schema(),
            handler=test_connection,
        ),
    )
    registry.register(
        "test_auth",
        ToolDefinition(
            name="test_auth",
            description="Test authentication against the backing API",
            input_schema=empty_input_schema(),
            handler=test_auth,
        ),
    )
