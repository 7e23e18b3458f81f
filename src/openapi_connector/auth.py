"""Client-credential token cache."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Dict

import httpx
from pydantic import ValidationError

from .errors import AuthenticationError
from .logging import redact_payload
from .models import CachedCredential, TokenResponse


logger = logging.getLogger(__name__)

DEFAULT_SERVICE = "default"
DEFAULT_EXPIRES_IN = 3600


class TokenCache:
    """Caches one bearer token per service key.

    A token counts as valid until ``expiry_buffer_seconds`` before it really
    expires. Fetches for the same service are serialized, so concurrent callers
    that find the entry missing or stale share a single credential exchange.
    """

    expiry_buffer_seconds: float = 30.0

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        auth_url: str,
        auth_path: str = "/auth/token",
        timeout_seconds: float = 20,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.auth_url = auth_url.rstrip("/")
        self.auth_path = auth_path or "/auth/token"
        self.timeout_seconds = timeout_seconds
        self.clock = clock
        self._cache: Dict[str, CachedCredential] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    @property
    def token_url(self) -> str:
        return self.auth_url + self.auth_path

    async def get_valid_token(self, service: str = DEFAULT_SERVICE) -> str:
        cached = self._cache.get(service)
        if cached and self._is_valid(cached):
            return cached.token

        async with self._lock_for(service):
            cached = self._cache.get(service)
            if cached and self._is_valid(cached):
                return cached.token

            credential = await self._request_new_token()
            self._cache[service] = credential
            return credential.token

    def invalidate(self, service: str = DEFAULT_SERVICE) -> None:
        self._cache.pop(service, None)

    async def refresh(self, service: str = DEFAULT_SERVICE) -> str:
        self.invalidate(service)
        return await self.get_valid_token(service)

    def clear(self) -> None:
        self._cache.clear()

    async def request_token_direct(self) -> CachedCredential:
        return await self._request_new_token()

    def _is_valid(self, credential: CachedCredential) -> bool:
        return self.clock() < credential.expires_at - self.expiry_buffer_seconds

    def _lock_for(self, service: str) -> asyncio.Lock:
        lock = self._locks.get(service)
        if lock is None:
            lock = self._locks[service] = asyncio.Lock()
        return lock

    async def _request_new_token(self) -> CachedCredential:
        request_body = {"clientId": self.client_id, "clientSecret": self.client_secret}
        logger.info(
            "Requesting token from %s body=%s", self.token_url, redact_payload(request_body)
        )

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.post(self.token_url, json=request_body)
        except httpx.HTTPError as exc:
            raise AuthenticationError(f"Failed to obtain access token: {exc}") from exc

        if not response.is_success:
            raise AuthenticationError(
                f"Authentication failed: {response.status_code} "
                f"{response.reason_phrase} - {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            data = TokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise AuthenticationError(
                f"Failed to obtain access token: invalid response body - {response.text}",
                status_code=response.status_code,
                body=response.text,
            ) from exc

        access_token = data.resolved_token()
        if not access_token:
            raise AuthenticationError(
                "No access token in response",
                status_code=response.status_code,
                body=response.text,
            )

        expires_in = data.expires_in or DEFAULT_EXPIRES_IN
        return CachedCredential(
            token=access_token,
            token_type=data.token_type or "Bearer",
            expires_in=expires_in,
            expires_at=self.clock() + expires_in,
        )
