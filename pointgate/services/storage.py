"""Download-URL resolver — turns a paid-for resource into a retrieval link.

The gateway never streams file contents itself: after a committed spend it
asks the storage backend (an AList server) for the file's raw URL and hands
that to the client.
"""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from pointgate.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """The storage backend could not produce a download URL."""


class DownloadUrlResolver(Protocol):
    async def get_download_url(self, resource: str) -> str: ...


class AListResolver:
    """Resolve download URLs through the AList HTTP API.

    Each lookup logs in with the configured credentials, then queries
    ``/api/fs/get`` for the file's ``raw_url``.
    """

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.username = username
        self.password = password
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> AListResolver:
        settings = settings or get_settings()
        return cls(
            base_url=settings.storage_url,
            username=settings.storage_username,
            password=settings.storage_password,
            timeout=settings.storage_timeout_seconds,
        )

    async def get_download_url(self, resource: str) -> str:
        path = "/" + resource.lstrip("/")
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                token = await self._login(client)
                resp = await client.get(
                    "/api/fs/get",
                    params={"path": path},
                    headers={"Authorization": token},
                )
                resp.raise_for_status()
                body = resp.json()
        except httpx.HTTPError as exc:
            raise StorageError(f"Storage backend request failed: {exc}") from exc
        except ValueError as exc:
            raise StorageError("Storage backend returned invalid JSON") from exc

        if not isinstance(body, dict):
            raise StorageError(f"Storage backend returned an unexpected body for {path}")
        if body.get("code") != 200:
            raise StorageError(f"Storage backend rejected {path}: {body.get('message', body)}")
        data = body.get("data")
        raw_url = data.get("raw_url") if isinstance(data, dict) else None
        if not raw_url or not isinstance(raw_url, str):
            raise StorageError(f"Storage backend returned no raw_url for {path}")
        return raw_url

    async def _login(self, client: httpx.AsyncClient) -> str:
        resp = await client.post(
            "/api/auth/login",
            json={"username": self.username, "password": self.password},
        )
        resp.raise_for_status()
        body = resp.json()
        data = body.get("data") if isinstance(body, dict) else None
        token = data.get("token") if isinstance(data, dict) else None
        if not token or body.get("code") != 200:
            raise StorageError("Storage backend login failed")
        return token
