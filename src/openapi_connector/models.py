"""Internal models for tool definitions and credentials."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict, Field


ToolHandler = Callable[[Dict[str, Any], Any], Any]

JSON_CONTENT_TYPE = "application/json"
MULTIPART_CONTENT_TYPE = "multipart/form-data"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def empty_input_schema() -> Dict[str, Any]:
    return {"type": "object", "properties": {}, "required": []}


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    input_schema: Dict[str, Any] = field(default_factory=empty_input_schema)
    endpoint: Optional[str] = None
    method: Optional[str] = None
    content_type: Optional[str] = None
    path_params: Tuple[str, ...] = ()
    query_params: Tuple[str, ...] = ()
    body_params: Tuple[str, ...] = ()
    handler: Optional[ToolHandler] = None
    extras: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_api_tool(self) -> bool:
        return self.endpoint is not None

    def public_view(self) -> Dict[str, Any]:
        """Listing shape exposed to MCP clients; dispatch metadata is never included."""
        view: Dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "inputSchema": copy.deepcopy(self.input_schema),
        }
        for key, value in self.extras.items():
            if key.startswith("_") or key in view:
                continue
            view[key] = value
        return view

    def dispatch_info(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "apiEndpoint": self.endpoint,
            "method": self.method,
            "contentType": self.content_type,
            "pathParams": list(self.path_params),
            "queryParams": list(self.query_params),
            "bodyParams": list(self.body_params),
            "inputSchema": copy.deepcopy(self.input_schema),
        }


@dataclass(frozen=True)
class CachedCredential:
    token: str
    token_type: str
    expires_in: float
    expires_at: float

    def as_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.token,
            "token_type": self.token_type,
            "expires_in": self.expires_in,
            "expires_at": self.expires_at,
        }


class TokenResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    access_token: Optional[str] = None
    token: Optional[str] = None
    token_type: Optional[str] = None
    expires_in: Optional[float] = None

    def resolved_token(self) -> Optional[str]:
        return self.access_token or self.token


class CompileOptions(BaseModel):
    prefix: str = ""
    include_only: Optional[Set[str]] = None
    exclude: Set[str] = Field(default_factory=set)
