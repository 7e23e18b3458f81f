"""Dispatch of tool invocations to handlers or authenticated REST calls."""

from __future__ import annotations

import inspect
import json
import logging
from typing import Any, Dict, Iterable, Set, Tuple

from .api_client import ApiClient
from .errors import NoHandlerOrEndpointError
from .logging import redact_payload
from .models import ToolDefinition
from .openapi import path_placeholders

logger = logging.getLogger(__name__)

# Body keys whose list value replaces the whole payload, for APIs expecting a bare array.
_ARRAY_BODY_KEYS = ("body", "fields")


def coerce_json_string(value: Any) -> Any:
    """Best-effort parse of strings that look like JSON arrays or objects.

    MCP clients frequently send structured arguments as serialized strings.
    Anything that starts with ``[`` or ``{`` is parsed; when parsing fails the
    original string is returned unchanged, so a genuine string value that
    happens to start with a brace survives as-is.
    """
    if isinstance(value, str) and value.startswith(("[", "{")):
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value


class ToolDispatcher:
    def __init__(self, api_client: ApiClient, auth_path: str = "/auth/token") -> None:
        self.api_client = api_client
        self.auth_path = auth_path

    async def dispatch(self, tool: ToolDefinition, args: Dict[str, Any]) -> Any:
        if tool.handler is not None:
            result = tool.handler(args, self.api_client)
            if inspect.isawaitable(result):
                result = await result
            return result

        if tool.endpoint is None:
            raise NoHandlerOrEndpointError(tool.name)

        method = (tool.method or "GET").upper()
        remaining = dict(args)
        endpoint = self.build_endpoint(tool.endpoint, remaining)

        if self._is_auth_call(tool.name, endpoint):
            logger.info("Tool %s targets the auth endpoint, exchanging credentials directly", tool.name)
            credential = await self.api_client.token_cache.request_token_direct()
            return credential.as_dict()

        query, body = self.partition_arguments(tool, method, remaining)
        logger.info(
            "Dispatching tool=%s %s %s query=%s body=%s",
            tool.name,
            method,
            endpoint,
            redact_payload(query),
            redact_payload(body),
        )

        return await self.api_client.call(
            endpoint,
            method,
            params=query,
            body=body if body or isinstance(body, list) else None,
            content_type=tool.content_type,
        )

    def build_endpoint(self, template: str, params: Dict[str, Any]) -> str:
        """Substitute ``{name}`` placeholders, removing every consumed key from ``params``."""
        endpoint = template
        for key in list(params.keys()):
            placeholder = f"{{{key}}}"
            if placeholder in endpoint:
                endpoint = endpoint.replace(placeholder, str(params.pop(key)))
        return endpoint

    def partition_arguments(
        self, tool: ToolDefinition, method: str, args: Dict[str, Any]
    ) -> Tuple[Dict[str, Any], Any]:
        path_names = set(tool.path_params) | set(path_placeholders(tool.endpoint or ""))

        if method == "GET":
            query = {key: value for key, value in args.items() if key not in path_names}
            return query, {}

        query = self._pick(args, tool.query_params, path_names)
        body: Any = {
            key: coerce_json_string(value)
            for key, value in self._pick(args, tool.body_params, path_names).items()
        }

        if not body:
            for key, value in args.items():
                if key in path_names or key in query:
                    continue
                body[key] = coerce_json_string(value)

        for key in _ARRAY_BODY_KEYS:
            if isinstance(body.get(key), list):
                body = body[key]
                break

        return query, body

    def _pick(
        self, args: Dict[str, Any], names: Iterable[str], excluded: Set[str]
    ) -> Dict[str, Any]:
        picked: Dict[str, Any] = {}
        for name in names:
            if name in excluded or name not in args or args[name] is None:
                continue
            picked[name] = args[name]
        return picked

    def _is_auth_call(self, tool_name: str, endpoint: str) -> bool:
        lowered = tool_name.lower()
        return endpoint == self.auth_path or ("auth" in lowered and "token" in lowered)
