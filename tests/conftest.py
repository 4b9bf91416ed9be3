"""Shared fixtures: an in-memory transport that replays canned responses."""

import json
from typing import Any, NamedTuple, Optional

import pytest

from eth2client.config import ClientConfig
from eth2client.exceptions import NotFound

ROOT_A = "0x" + "aa" * 32
ROOT_B = "0x" + "bb" * 32
ROOT_C = "0x" + "cc" * 32
ROOT_D = "0x" + "dd" * 32
PUBKEY_1 = "0x" + "11" * 48
PUBKEY_2 = "0x" + "22" * 48


class Request(NamedTuple):
    method: str
    path: str
    operation: str
    params: Any
    body: Any

    def json(self) -> Any:
        body = self.body
        if isinstance(body, bytes):
            body = body.decode("utf-8")
        if isinstance(body, str):
            return json.loads(body)
        return body


def _encode(body: Any) -> bytes:
    if isinstance(body, bytes):
        return body
    if isinstance(body, str):
        return body.encode("utf-8")
    return json.dumps(body).encode("utf-8")


class FakeTransport:
    """Records requests and answers them from canned responses.

    Responses are keyed by method and path. Several responses for the same
    key are served in order, the last one repeating. Exceptions are raised
    instead of returned. An unknown key answers 404.
    """

    def __init__(self):
        self.responses: dict[tuple[str, str], list] = {}
        self.streams: dict[str, list[bytes]] = {}
        self.requests: list[Request] = []
        self.closed = False

    def add(self, method: str, path: str, body: Any = None, error: Optional[Exception] = None) -> None:
        item = error if error is not None else _encode(body)
        self.responses.setdefault((method, path), []).append(item)

    def get_json(self, path: str, body: Any) -> None:
        self.add("GET", path, body)

    def post_json(self, path: str, body: Any = b"") -> None:
        self.add("POST", path, body)

    def stream(self, path: str, lines: list) -> None:
        self.streams[path] = [line if isinstance(line, bytes) else line.encode("utf-8") for line in lines]

    def sent(self, method: Optional[str] = None, path: Optional[str] = None) -> list[Request]:
        return [
            request
            for request in self.requests
            if (method is None or request.method == method) and (path is None or request.path == path)
        ]

    async def request(self, method, path, operation, params=None, body=None, headers=None) -> bytes:
        self.requests.append(Request(method, path, operation, params, body))
        queue = self.responses.get((method, path))
        if not queue:
            raise NotFound(f"no response for {method} {path}", operation)
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item

    async def get(self, path, operation, params=None) -> bytes:
        return await self.request("GET", path, operation, params=params)

    async def post(self, path, body, operation, params=None) -> bytes:
        return await self.request("POST", path, operation, params=params, body=body)

    async def stream_lines(self, path, operation, params=None, headers=None):
        self.requests.append(Request("STREAM", path, operation, params, None))
        for line in self.streams.get(path, []):
            yield line

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def config():
    return ClientConfig(address="http://localhost:5052", backend="standard", head_poll_interval=0.01)
