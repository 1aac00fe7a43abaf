from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Mapping

import aiohttp

from photoforge_workflow.util.errors import AuthError, RemoteError, RemoteRequestError, TransientNetworkError

TRANSIENT_STATUSES = {408, 425, 429, 500, 502, 503, 504}
AUTH_STATUSES = {401, 403}


class JsonHttpClient:
    """Small async interface to keep backend calls mockable and deterministic in tests."""

    async def request_json(
        self,
        method: str,
        url: str,
        *,
        json_body: Any = None,
        params: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        raise NotImplementedError

    async def post_file(
        self,
        url: str,
        *,
        path: Path,
        filename: str,
        content_type: str,
        field_name: str = "file",
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        raise NotImplementedError

    async def close(self) -> None:
        return None


class AiohttpJsonClient(JsonHttpClient):
    def __init__(self, *, timeout_seconds: float = 30.0, user_agent: str = "photoforge-workflow/1.0") -> None:
        self.timeout_seconds = timeout_seconds
        self.user_agent = user_agent
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
                headers={"Accept": "application/json", "User-Agent": self.user_agent},
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "AiohttpJsonClient":
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.close()

    async def request_json(
        self,
        method: str,
        url: str,
        *,
        json_body: Any = None,
        params: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        session = self._get_session()
        try:
            async with session.request(
                method,
                url,
                json=json_body,
                params=dict(params) if params else None,
                headers=dict(headers) if headers else None,
            ) as response:
                body = await response.read()
                return _decode(method, url, response.status, body)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise _transport_error(f"{method} {url} failed", exc) from exc

    async def post_file(
        self,
        url: str,
        *,
        path: Path,
        filename: str,
        content_type: str,
        field_name: str = "file",
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        payload = await asyncio.to_thread(path.read_bytes)
        form = aiohttp.FormData()
        form.add_field(field_name, payload, filename=filename, content_type=content_type)
        session = self._get_session()
        try:
            async with session.post(url, data=form, headers=dict(headers) if headers else None) as response:
                body = await response.read()
                return _decode("POST", url, response.status, body)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise _transport_error(f"Upload of {filename} failed", exc) from exc


def _transport_error(context: str, exc: BaseException) -> RemoteError:
    """Connection trouble is worth retrying; any other client-side failure is not."""
    detail = f"{context}: {exc or type(exc).__name__}"
    if isinstance(exc, (aiohttp.ClientConnectionError, aiohttp.ClientPayloadError, asyncio.TimeoutError)):
        return TransientNetworkError(detail)
    return RemoteRequestError(detail)


def _decode(method: str, url: str, status: int, raw: bytes | str) -> Any:
    # Error pages are not always valid UTF-8; never let decoding hide the status
    body = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
    parsed: Any = None
    if body.strip():
        try:
            parsed = json.loads(body)
        except json.JSONDecodeError as exc:
            if status < 400:
                raise RemoteRequestError("Server returned an invalid response format.", status) from exc

    if status < 400:
        return parsed

    message = error_message(parsed) or f"{method} {url} returned HTTP {status}."
    if status in AUTH_STATUSES:
        raise AuthError(message)
    if status in TRANSIENT_STATUSES:
        raise TransientNetworkError(message, status)
    raise RemoteRequestError(message, status)


def error_message(parsed: Any) -> str:
    if isinstance(parsed, Mapping):
        for key in ("error", "message", "detail"):
            value = parsed.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return ""
