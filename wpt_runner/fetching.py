"""Resource fetching and the interceptor that serves harness resources locally."""

import asyncio
import logging
from collections.abc import AsyncGenerator, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

import aiohttp
from yarl import URL

from wpt_runner.errors import FetchError

log = logging.getLogger(__name__)

REPORTER_PATH = "/resources/testharnessreport.js"
REPORTER_STUB = b"window.shimTest();"
RESOURCES_PREFIX = "/resources/"

# Rewrites performed by the upstream WPT server (tools/serve/serve.py).
RESOURCE_REWRITES: Mapping[str, str] = {
    "/resources/WebIDLParser.js": "/resources/webidl2/lib/webidl2.js",
}


class Fetcher(Protocol):
    """Fetches the bytes behind a URL."""

    async def fetch(self, url: str, options: Mapping[str, Any]) -> bytes:
        """Return the body of url."""


@dataclass(frozen=True, kw_only=True)
class AiohttpFetcher:
    """Fetcher for http(s) and file URLs."""

    session: aiohttp.ClientSession = field(repr=False)

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, *, user_agent: str | None = None
    ) -> AsyncGenerator["AiohttpFetcher", None]:
        """Create fetcher with managed session lifecycle."""
        headers = {"User-Agent": user_agent} if user_agent else None
        # Certificates of local WPT servers are self-signed.
        connector = aiohttp.TCPConnector(ssl=False)
        async with aiohttp.ClientSession(
            connector=connector, headers=headers
        ) as session:
            yield cls(session=session)

    async def fetch(self, url: str, options: Mapping[str, Any]) -> bytes:
        parsed = URL(url)
        if parsed.scheme == "file":
            return await self._read_file(parsed)

        headers = options.get("headers")
        async with self.session.get(url, headers=headers) as response:
            if response.status >= 400:
                raise FetchError(url, response.status, response.reason)
            return await response.read()

    async def _read_file(self, url: URL) -> bytes:
        path = Path(url.path)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as e:
            raise FetchError(str(url), 404, "Not Found") from e


@dataclass(frozen=True, kw_only=True)
class InterceptingFetcher:
    """Serves the harness reporter stub and shared resources locally.

    The WPT server used by some runs has no ``/resources/`` directory, so those
    requests always go to ``resources_root``.
    """

    base: Fetcher
    resources_root: Path

    async def fetch(self, url: str, options: Mapping[str, Any]) -> bytes:
        path = URL(url).path

        if path == REPORTER_PATH:
            return REPORTER_STUB

        if path.startswith(RESOURCES_PREFIX):
            path = RESOURCE_REWRITES.get(path, path)
            file_path = (self.resources_root / path.lstrip("/")).resolve()
            log.debug("Serving %s from %s", url, file_path)
            return await self.base.fetch(file_path.as_uri(), options)

        return await self.base.fetch(url, options)
