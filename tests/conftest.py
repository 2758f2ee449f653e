"""Shared pytest fixtures."""

import asyncio
import json
from typing import Any, AsyncIterator, Iterator

import pytest
from fastapi.testclient import TestClient
from fastapi.websockets import WebSocketState

from app import create_app
from broker import SessionBroker
from registry import Session


class DummyWebSocket:
    def __init__(self) -> None:
        self.application_state = WebSocketState.CONNECTING
        self.sent: list[dict[str, Any]] = []
        self.raw: list[str] = []

    async def accept(self) -> None:
        self.application_state = WebSocketState.CONNECTED

    async def send_text(self, text: str) -> None:
        self.raw.append(text)
        self.sent.append(json.loads(text))

    async def close(self) -> None:
        self.application_state = WebSocketState.DISCONNECTED

    def types(self) -> list[str]:
        return [m["type"] for m in self.sent]


class FailingWebSocket(DummyWebSocket):
    async def send_text(self, text: str) -> None:
        raise RuntimeError("socket went away")


class StalledWebSocket(DummyWebSocket):
    """A peer whose writes never complete until released."""

    def __init__(self) -> None:
        super().__init__()
        self.release = asyncio.Event()
        self.write_started = asyncio.Event()

    async def send_text(self, text: str) -> None:
        self.write_started.set()
        await self.release.wait()
        await super().send_text(text)


async def settle(*sessions: Session) -> None:
    """Wait until every frame queued for these sessions has been written."""
    for session in sessions:
        await session.outbox.join()


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
async def broker(anyio_backend) -> AsyncIterator[SessionBroker]:
    session_broker = SessionBroker()
    yield session_broker
    session_broker.close()


@pytest.fixture()
def client(tmp_path) -> Iterator[TestClient]:
    """App client with lifespan running and uploads going to a temp dir."""
    app = create_app(upload_dir=str(tmp_path / "uploads"))
    with TestClient(app) as test_client:
        yield test_client
