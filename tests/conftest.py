"""Shared pytest fixtures for the streamgrab test suite.

Guidelines
----------
* No internet access in any test: HTTP goes to a local aiohttp test server.
* Retry delays are zero or the backoff is patched out, so tests stay fast.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from dataclasses import dataclass, field

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer
from Crypto.Cipher import AES
from Crypto.Util.Padding import pad

from streamgrab.models.config import GrabConfig


@dataclass
class Route:
    body: bytes = b""
    statuses: list[int] = field(default_factory=lambda: [200])
    delay: float = 0.0
    headers: dict[str, str] = field(default_factory=dict)
    chunked: bool = False


class MediaServer:
    """
    A programmable HTTP origin. Each path serves a fixed body; `statuses` is
    consumed one entry per request, the last entry repeating. Unknown paths
    answer 404. Every request is counted in `hits`.
    """

    def __init__(self) -> None:
        self.routes: dict[str, Route] = {}
        self.hits: Counter[str] = Counter()
        app = web.Application()
        app.router.add_route("*", "/{tail:.*}", self._handle)
        self._server = TestServer(app)

    async def start(self) -> None:
        await self._server.start_server()

    async def close(self) -> None:
        await self._server.close()

    def url(self, path: str) -> str:
        return str(self._server.make_url(path))

    def add(
        self,
        path: str,
        body: bytes | str = b"",
        status: int | list[int] = 200,
        delay: float = 0.0,
        headers: dict[str, str] | None = None,
        chunked: bool = False,
    ) -> str:
        if isinstance(body, str):
            body = body.encode()
        statuses = status if isinstance(status, list) else [status]
        self.routes[path] = Route(body, statuses, delay, headers or {}, chunked)
        return self.url(path)

    async def _handle(self, request: web.Request) -> web.StreamResponse:
        path = request.path
        self.hits[path] += 1
        route = self.routes.get(path)
        if route is None:
            return web.Response(status=404)

        status = route.statuses[min(self.hits[path], len(route.statuses)) - 1]
        if route.delay:
            await asyncio.sleep(route.delay)
        if status != 200:
            return web.Response(status=status)

        if route.chunked:
            response = web.StreamResponse(status=status, headers=route.headers)
            response.enable_chunked_encoding()
            await response.prepare(request)
            for i in range(0, len(route.body), 4096):
                await response.write(route.body[i : i + 4096])
            await response.write_eof()
            return response
        return web.Response(status=status, body=route.body, headers=route.headers)


@pytest_asyncio.fixture
async def media_server():
    server = MediaServer()
    await server.start()
    yield server
    await server.close()


@pytest_asyncio.fixture
async def session():
    async with aiohttp.ClientSession() as client_session:
        yield client_session


@pytest.fixture
def fast_config() -> GrabConfig:
    return GrabConfig(concurrency_limit=4, max_retries=1, retry_delay=0)


def encrypt(plaintext: bytes, key: bytes, iv: bytes) -> bytes:
    return AES.new(key, AES.MODE_CBC, iv=iv).encrypt(pad(plaintext, AES.block_size))


def media_playlist(segments: list[str], header: str = "") -> str:
    lines = ["#EXTM3U", "#EXT-X-VERSION:3", "#EXT-X-TARGETDURATION:6"]
    if header:
        lines.append(header)
    for name in segments:
        lines.extend(["#EXTINF:6.0,", name])
    lines.append("#EXT-X-ENDLIST")
    return "\n".join(lines) + "\n"
