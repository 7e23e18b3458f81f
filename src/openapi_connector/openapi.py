"""OpenAPI spec loader and tool compiler."""

from __future__ import annotations

import copy
import json
import logging
import re
import time
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import httpx

from .errors import SpecInvalidError
from .models import (
    FORM_CONTENT_TYPE,
    JSON_CONTENT_TYPE,
    MULTIPART_CONTENT_TYPE,
    CompileOptions,
    ToolDefinition,
)
from .schema import SchemaResolver


logger = logging.getLogger(__name__)

HTTP_METHODS = ("get", "post", "put", "patch", "delete")

_PLACEHOLDER = re.compile(r"\{([^}]+)\}")

_PARAMETER_SCHEMA_KEYS = (
    "enum",
    "minimum",
    "maximum",
    "pattern",
    "format",
    "items",
    "minItems",
    "maxItems",
    "uniqueItems",
    "default",
)


def path_placeholders(template: str) -> List[str]:
    return _PLACEHOLDER.findall(template)


def validate_spec(spec: Any) -> Dict[str, Any]:
    if not isinstance(spec, dict):
        raise SpecInvalidError("Invalid OpenAPI specification: document is not an object")
    if not spec.get("openapi"):
        raise SpecInvalidError("Invalid OpenAPI specification: missing 'openapi' version")
    paths = spec.get("paths")
    if not isinstance(paths, dict) or not paths:
        raise SpecInvalidError("Invalid OpenAPI specification: missing or empty 'paths'")
    return spec


class OpenAPILoader:
    def __init__(self, cache_seconds: int = 3600, timeout_seconds: float = 30) -> None:
        self.cache_seconds = cache_seconds
        self.timeout_seconds = timeout_seconds
        self._cache: Dict[str, Tuple[float, Dict[str, Any]]] = {}

    async def load_spec(self, source: str) -> Dict[str, Any]:
        cached = self._cache.get(source)
        if cached and time.time() - cached[0] < self.cache_seconds:
            return cached[1]

        if source.startswith(("http://", "https://")):
            raw = await self._fetch(source)
        else:
            raw = self._read(source)

        try:
            data = json.loads(raw)
        except ValueError as exc:
            raise SpecInvalidError(f"OpenAPI spec at {source} is not valid JSON: {exc}") from exc

        spec = validate_spec(data)
        self._cache[source] = (time.time(), spec)
        logger.info("Loaded OpenAPI spec %s (%s paths)", source, len(spec["paths"]))
        return spec

    async def _fetch(self, url: str) -> str:
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            try:
                response = await client.get(url)
            except httpx.HTTPError as exc:
                raise SpecInvalidError(f"Failed to fetch OpenAPI spec {url}: {exc}") from exc
        if response.status_code != 200:
            raise SpecInvalidError(
                f"Failed to fetch OpenAPI spec {url}: HTTP {response.status_code}"
            )
        return response.text

    def _read(self, path: str) -> str:
        try:
            return Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise SpecInvalidError(f"Failed to read OpenAPI spec {path}: {exc}") from exc


class ToolCompiler:
    """Turns every supported operation of an OpenAPI document into a ToolDefinition."""

    def compile(
        self, spec: Mapping[str, Any], options: Optional[CompileOptions] = None
    ) -> List[ToolDefinition]:
        options = options or CompileOptions()
        resolver = SchemaResolver(spec)
        tools: List[ToolDefinition] = []

        for path, path_item in (spec.get("paths") or {}).items():
            if not isinstance(path_item, dict):
                continue
            for method, operation in path_item.items():
                if method.lower() not in HTTP_METHODS or not isinstance(operation, dict):
                    continue

                tool_name = self._tool_name(path, method, operation, options.prefix)
                if tool_name in options.exclude:
                    continue
                if options.include_only and tool_name not in options.include_only:
                    continue

                tools.append(
                    self._build_tool(tool_name, path, method.upper(), operation, path_item, resolver)
                )

        logger.debug("Compiled %s tools", len(tools))
        return tools

    def _tool_name(self, path: str, method: str, operation: Dict[str, Any], prefix: str) -> str:
        operation_id = operation.get("operationId")
        if operation_id:
            return prefix + operation_id

        segments = [part for part in path.split("/") if part and not part.startswith("{")]
        resource = segments[-1] if segments else "resource"
        return f"{prefix}{method.lower()}_{resource}"

    def _build_tool(
        self,
        name: str,
        path: str,
        method: str,
        operation: Dict[str, Any],
        path_item: Dict[str, Any],
        resolver: SchemaResolver,
    ) -> ToolDefinition:
        properties: Dict[str, Any] = {}
        required: List[str] = []
        path_params: List[str] = []
        query_params: List[str] = []
        body_params: List[str] = []

        parameters = [*(path_item.get("parameters") or []), *(operation.get("parameters") or [])]
        for parameter in parameters:
            parameter = resolver.resolve(parameter)
            param_name = parameter.get("name")
            location = parameter.get("in")
            if not param_name:
                continue
            if location == "path":
                properties[param_name] = self._parameter_to_schema(parameter, resolver)
                required.append(param_name)
                path_params.append(param_name)
            elif location == "query":
                properties[param_name] = self._parameter_to_schema(parameter, resolver)
                if parameter.get("required"):
                    required.append(param_name)
                query_params.append(param_name)

        for placeholder in path_placeholders(path):
            if placeholder in path_params:
                continue
            path_params.append(placeholder)
            properties[placeholder] = {
                "type": "string",
                "description": f"Path parameter: {placeholder}",
            }
            required.append(placeholder)

        request_body = resolver.resolve(operation.get("requestBody") or {})
        content = request_body.get("content") or {}
        body_schema = self._extract_body_schema(content)
        if body_schema:
            resolved = resolver.resolve(body_schema)
            body_properties = resolved.get("properties")
            if body_properties:
                properties.update(copy.deepcopy(dict(body_properties)))
                required.extend(resolved.get("required") or [])
                body_params.extend(body_properties.keys())

        return ToolDefinition(
            name=name,
            description=operation.get("summary") or operation.get("description") or f"{method} {path}",
            input_schema={"type": "object", "properties": properties, "required": required},
            endpoint=path,
            method=method,
            content_type=self._content_type(content),
            path_params=tuple(path_params),
            query_params=tuple(query_params),
            body_params=tuple(body_params),
        )

    def _content_type(self, content: Mapping[str, Any]) -> Optional[str]:
        if MULTIPART_CONTENT_TYPE in content:
            return MULTIPART_CONTENT_TYPE
        if FORM_CONTENT_TYPE in content:
            return FORM_CONTENT_TYPE
        return None

    def _extract_body_schema(self, content: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
        json_body = content.get(JSON_CONTENT_TYPE) or {}
        return json_body.get("schema")

    def _parameter_to_schema(
        self, parameter: Mapping[str, Any], resolver: SchemaResolver
    ) -> Dict[str, Any]:
        schema = resolver.resolve(parameter.get("schema") or {})
        result: Dict[str, Any] = {"type": schema.get("type") or "string"}
        if parameter.get("description") is not None:
            result["description"] = parameter["description"]
        for key in _PARAMETER_SCHEMA_KEYS:
            if key in schema:
                result[key] = copy.deepcopy(schema[key])
        return result
