"""Shared fixtures for the connector unit tests."""

from typing import Any, Dict

import pytest

from openapi_connector.api_client import ApiClient
from openapi_connector.auth import TokenCache
from openapi_connector.executors import ToolDispatcher
from openapi_connector.tool_registry import ToolRegistry

API_BASE_URL = "https://api.example.com"
AUTH_BASE_URL = "https://auth.example.com"
TOKEN_URL = f"{AUTH_BASE_URL}/auth/token"


class FakeClock:
    """Manually advanced replacement for ``time.time``."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def token_cache(clock: FakeClock) -> TokenCache:
    return TokenCache(
        client_id="client-123",
        client_secret="s3cret",
        auth_url=AUTH_BASE_URL,
        auth_path="/auth/token",
        clock=clock,
    )


@pytest.fixture
def api_client(token_cache: TokenCache) -> ApiClient:
    return ApiClient(API_BASE_URL, token_cache, backoff_seconds=0)


@pytest.fixture
def dispatcher(api_client: ApiClient) -> ToolDispatcher:
    return ToolDispatcher(api_client, auth_path="/auth/token")


@pytest.fixture
def registry(dispatcher: ToolDispatcher) -> ToolRegistry:
    return ToolRegistry(dispatcher)


@pytest.fixture
def petstore() -> Dict[str, Any]:
    return {
        "openapi": "3.0.3",
        "info": {"title": "Pet Store", "version": "1.2.0", "description": "Pets"},
        "servers": [{"url": API_BASE_URL}],
        "components": {
            "schemas": {
                "NewPet": {
                    "type": "object",
                    "properties": {
                        "name": {"type": "string"},
                        "tag": {"type": "string"},
                    },
                    "required": ["name"],
                },
                "Pet": {
                    "allOf": [
                        {"$ref": "#/components/schemas/NewPet"},
                        {
                            "type": "object",
                            "properties": {"id": {"type": "integer"}},
                            "required": ["id"],
                        },
                    ]
                },
            },
            "parameters": {
                "Limit": {
                    "name": "limit",
                    "in": "query",
                    "schema": {"type": "integer", "minimum": 1, "maximum": 100},
                }
            },
        },
        "paths": {
            "/pets": {
                "get": {
                    "operationId": "listPets",
                    "summary": "List pets",
                    "parameters": [
                        {"$ref": "#/components/parameters/Limit"},
                        {
                            "name": "tags",
                            "in": "query",
                            "schema": {"type": "array", "items": {"type": "string"}},
                        },
                        {"name": "X-Trace", "in": "header", "schema": {"type": "string"}},
                    ],
                    "responses": {"200": {"description": "ok"}},
                },
                "post": {
                    "operationId": "createPet",
                    "requestBody": {
                        "content": {
                            "application/json": {
                                "schema": {"$ref": "#/components/schemas/NewPet"}
                            }
                        }
                    },
                    "responses": {"201": {"description": "created"}},
                },
            },
            "/pets/{petId}": {
                "parameters": [
                    {
                        "name": "petId",
                        "in": "path",
                        "required": True,
                        "schema": {"type": "string"},
                    }
                ],
                "get": {
                    "operationId": "showPetById",
                    "description": "Info for a specific pet",
                    "responses": {"200": {"description": "ok"}},
                },
                "put": {
                    "requestBody": {
                        "content": {
                            "application/json": {
                                "schema": {"$ref": "#/components/schemas/Pet"}
                            }
                        }
                    },
                },
            },
            "/pets/{petId}/photos/{photoId}": {
                "delete": {"operationId": "deletePhoto"},
            },
            "/uploads": {
                "post": {
                    "operationId": "uploadFile",
                    "requestBody": {
                        "content": {
                            "multipart/form-data": {
                                "schema": {
                                    "type": "object",
                                    "properties": {"file": {"type": "string"}},
                                }
                            }
                        }
                    },
                }
            },
            "/{id}": {"get": {}, "head": {}},
        },
    }
