"""Shared test utilities and fixtures for stocksage tests."""

from __future__ import annotations

import json
from collections.abc import Iterable

import httpx
import punq
import pytest
from fastapi import FastAPI

from stocksage.api.router import api_router
from stocksage.core.settings import Settings


class FakeByteSource:
    """Async byte source recording reads and close calls at the network boundary."""

    def __init__(self, chunks: Iterable[bytes], *, fail_at: int | None = None) -> None:
        self._chunks = list(chunks)
        self._fail_at = fail_at
        self.reads = 0
        self.close_calls = 0

    def __aiter__(self):
        return self

    async def __anext__(self) -> bytes:
        if self._fail_at is not None and self.reads == self._fail_at:
            self.reads += 1
            raise httpx.ReadError("connection reset by peer")
        if self.reads >= len(self._chunks):
            raise StopAsyncIteration
        chunk = self._chunks[self.reads]
        self.reads += 1
        return chunk

    async def aclose(self) -> None:
        self.close_calls += 1


def delta_line(content: str | None) -> str:
    delta = {} if content is None else {"content": content}
    return f"data: {json.dumps({'choices': [{'index': 0, 'delta': delta}]}, ensure_ascii=False)}\n"


def sse_body(*deltas: str, done: bool = True) -> bytes:
    lines = [delta_line(delta) + "\n" for delta in deltas]
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines).encode("utf-8")


def split_every(data: bytes, size: int) -> list[bytes]:
    return [data[i : i + size] for i in range(0, len(data), size)]


def build_test_container(bindings: dict[object, object]) -> punq.Container:
    """Create a punq container and bind protocol/service keys to test doubles."""

    container = punq.Container()
    for key, value in bindings.items():
        container.register(key, instance=value)
    return container


def build_test_app(container: punq.Container) -> FastAPI:
    app = FastAPI()
    app.state.container = container
    app.include_router(api_router, prefix="/api")
    return app


@pytest.fixture
def test_settings() -> Settings:
    return Settings(APP_ENV="test", AI_GATEWAY_API_KEY="test-gateway-key")
