"""Authenticated HTTP client for the backing REST API."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, Optional

import httpx

from .auth import DEFAULT_SERVICE, TokenCache
from .errors import TransientNetworkError, UnauthorizedError, UpstreamError
from .models import FORM_CONTENT_TYPE, MULTIPART_CONTENT_TYPE

logger = logging.getLogger(__name__)


class ApiClient:
    def __init__(
        self,
        base_url: str,
        token_cache: TokenCache,
        timeout_seconds: float = 30,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        max_backoff_seconds: float = 5.0,
        service: str = DEFAULT_SERVICE,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token_cache = token_cache
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.max_backoff_seconds = max_backoff_seconds
        self.service = service

    async def call(
        self,
        endpoint: str,
        method: str = "GET",
        params: Optional[Dict[str, Any]] = None,
        body: Any = None,
        content_type: Optional[str] = None,
    ) -> Any:
        method = method.upper()
        url = f"{self.base_url}{endpoint}"
        query = {key: value for key, value in (params or {}).items() if value is not None}

        response = await self._authorized_request(method, url, query, body, content_type)
        if response.status_code == 401:
            logger.warning("Authentication error detected for %s %s, refreshing token", method, endpoint)
            await self.token_cache.refresh(self.service)
            response = await self._authorized_request(
                method, url, query, body, content_type
            )
            if response.status_code == 401:
                raise UnauthorizedError(401, response.reason_phrase, response.text)

        if not response.is_success:
            raise UpstreamError(response.status_code, response.reason_phrase, response.text)

        return self._decode(response)

    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.call(endpoint, "GET", params=params)

    async def post(self, endpoint: str, body: Any = None) -> Any:
        return await self.call(endpoint, "POST", body=body)

    async def put(self, endpoint: str, body: Any = None) -> Any:
        return await self.call(endpoint, "PUT", body=body)

    async def patch(self, endpoint: str, body: Any = None) -> Any:
        return await self.call(endpoint, "PATCH", body=body)

    async def delete(self, endpoint: str) -> Any:
        return await self.call(endpoint, "DELETE")

    async def _authorized_request(
        self,
        method: str,
        url: str,
        query: Dict[str, Any],
        body: Any,
        content_type: Optional[str],
    ) -> httpx.Response:
        token = await self.token_cache.get_valid_token(self.service)
        headers = {"Authorization": f"Bearer {token}"}

        request_kwargs: Dict[str, Any] = {"params": query, "headers": headers}
        if method != "GET" and body is not None:
            if content_type == FORM_CONTENT_TYPE:
                request_kwargs["data"] = body
            elif content_type == MULTIPART_CONTENT_TYPE:
                request_kwargs["files"] = self._multipart_parts(body)
            else:
                request_kwargs["json"] = body

        return await self._send_with_retry(method, url, request_kwargs)

    async def _send_with_retry(
        self, method: str, url: str, request_kwargs: Dict[str, Any]
    ) -> httpx.Response:
        attempt = 0
        while True:
            attempt += 1
            try:
                async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                    return await client.request(method, url, **request_kwargs)
            except httpx.TransportError as exc:
                if attempt >= self.max_attempts:
                    raise TransientNetworkError(
                        f"{method} {url} failed after {attempt} attempts: {exc}"
                    ) from exc
                backoff = min(self.backoff_seconds * 2 ** (attempt - 1), self.max_backoff_seconds)
                logger.warning(
                    "Request failed (attempt %s/%s). Retrying in %ss. %s %s: %s",
                    attempt,
                    self.max_attempts,
                    backoff,
                    method,
                    url,
                    exc,
                )
                await asyncio.sleep(backoff)

    def _multipart_parts(self, body: Any) -> Dict[str, Any]:
        parts: Dict[str, Any] = {}
        for key, value in dict(body).items():
            if isinstance(value, (bytes, tuple)):
                parts[key] = value
            elif isinstance(value, str):
                parts[key] = (None, value)
            else:
                parts[key] = (None, json.dumps(value))
        return parts

    def _decode(self, response: httpx.Response) -> Any:
        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type and response.content:
            return response.json()
        return response.text
