from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Protocol

import httpx

from layers.config import fetch_timeout_s, fetch_user_agent, repo_root
from layers.errors import SourceFetchError


class Transport(Protocol):
    """
    Delivers raw text for a location descriptor.

    Implementations raise `SourceFetchError` on failure; timeouts are theirs to enforce.
    """

    async def fetch(self, location: str) -> str: ...


class HttpTransport:
    def __init__(
        self,
        *,
        timeout_s: float | None = None,
        user_agent: str | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.timeout_s = timeout_s if timeout_s is not None else fetch_timeout_s()
        self.user_agent = user_agent or fetch_user_agent()
        self._client = client

    async def fetch(self, location: str) -> str:
        headers = {"User-Agent": self.user_agent, "Cache-Control": "no-store"}
        try:
            if self._client is not None:
                resp = await self._client.get(
                    location, headers=headers, timeout=self.timeout_s
                )
            else:
                async with httpx.AsyncClient(follow_redirects=True) as client:
                    resp = await client.get(
                        location, headers=headers, timeout=self.timeout_s
                    )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise SourceFetchError(location, f"{type(e).__name__}: {e}") from e
        return resp.text


class FileTransport:
    """
    Reads local files. Relative paths (with or without a leading slash) resolve
    against `root`, which defaults to the repository root.
    """

    def __init__(self, *, root: Path | None = None):
        self.root = root or repo_root()

    def resolve_path(self, location: str) -> Path:
        raw = location[len("file://"):] if location.startswith("file://") else location
        p = Path(raw)
        if p.is_absolute() and p.exists():
            return p
        return self.root / raw.lstrip("/")

    async def fetch(self, location: str) -> str:
        path = self.resolve_path(location)
        try:
            return await asyncio.to_thread(path.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise SourceFetchError(location, f"{type(e).__name__}: {e}") from e


class DefaultTransport:
    """
    Dispatches http(s) locations to `HttpTransport` and everything else to `FileTransport`.
    """

    def __init__(
        self,
        *,
        http: Transport | None = None,
        files: Transport | None = None,
    ):
        self.http = http or HttpTransport()
        self.files = files or FileTransport()

    async def fetch(self, location: str) -> str:
        loc = location.strip()
        if loc.lower().startswith(("http://", "https://")):
            return await self.http.fetch(loc)
        return await self.files.fetch(loc)
