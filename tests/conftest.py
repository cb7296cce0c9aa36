"""Pytest fixtures for tabletop-sync tests."""
import asyncio
import json

import pytest

from tabletop_sync.server.hub import RelayHub
from tabletop_sync.server.metadata import GridMetadataStore


class FakeConnection:
    """Server-side stand-in for a websocket; records every frame sent to it."""

    def __init__(self, fail: bool = False):
        self.sent: list[dict] = []
        self.fail = fail

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise RuntimeError("socket gone")
        self.sent.append(json.loads(data))

    def types(self) -> list[str]:
        return [m["type"] for m in self.sent]

    def clear(self) -> None:
        self.sent.clear()


class FakeSocket:
    """Client-side stand-in for a websockets connection."""

    def __init__(self):
        self.sent: list[str] = []
        self.inbox: asyncio.Queue = asyncio.Queue()
        self.closed = False

    async def send(self, data: str) -> None:
        self.sent.append(data)

    def sent_messages(self) -> list[dict]:
        return [json.loads(s) for s in self.sent]

    def sent_types(self) -> list[str]:
        return [m["type"] for m in self.sent_messages()]

    def push(self, msg: dict) -> None:
        self.inbox.put_nowait(json.dumps(msg))

    def drop(self) -> None:
        """Simulate the relay closing the socket."""
        self.inbox.put_nowait(None)

    async def close(self) -> None:
        self.closed = True
        self.inbox.put_nowait(None)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self.inbox.get()
        if item is None:
            raise StopAsyncIteration
        return item


class FakeConnector:
    """Callable replacing `websockets.connect`; can be told to refuse attempts."""

    def __init__(self, fail: int = 0):
        self.fail = fail
        self.attempts = 0
        self.urls: list[str] = []
        self.sockets: list[FakeSocket] = []

    async def __call__(self, url: str) -> FakeSocket:
        self.attempts += 1
        self.urls.append(url)
        if self.fail:
            self.fail -= 1
            raise OSError("connection refused")
        ws = FakeSocket()
        self.sockets.append(ws)
        return ws


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def metadata_path(tmp_path):
    return tmp_path / "maps" / "metadata.json"


@pytest.fixture
def metadata_store(metadata_path) -> GridMetadataStore:
    return GridMetadataStore(metadata_path)


@pytest.fixture
def hub(metadata_store) -> RelayHub:
    return RelayHub(metadata_store)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def join(hub):
    """Attach a fake connection to the hub; returns (handle, connection)."""

    def _join(fail: bool = False):
        conn = FakeConnection(fail=fail)
        return hub.on_connect(conn), conn

    return _join
