"""Shared fixtures and fakes for the test suite."""

import hashlib
import re
from datetime import datetime, timedelta, timezone
from typing import Callable

import httpx
import pytest

from oss_advisor.memory import LocalVectorStore, MemoryStore
from oss_advisor.tools.github_client import GitHubClient


class FakeEmbedder:
    """Deterministic bag-of-words embeddings, no network."""

    DIMENSIONS = 32

    def __init__(self):
        self.calls: list[str] = []

    async def generate(self, text: str) -> list[float]:
        self.calls.append(text)
        vector = [0.0] * self.DIMENSIONS
        for word in re.findall(r"\w+", text.lower()):
            digest = hashlib.md5(word.encode()).digest()
            vector[digest[0] % (self.DIMENSIONS - 1)] += 1.0
        vector[-1] = 1.0
        return vector


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class GitHubRecorder:
    """
    httpx.MockTransport handler that records requests and answers from
    a path -> response factory map.
    """

    def __init__(self, routes: dict[str, Callable[[httpx.Request], httpx.Response]]):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get(request.url.path)
        if handler is None:
            return httpx.Response(404, json={"message": "Not Found"})
        return handler(request)

    @property
    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]

    def search_queries(self) -> list[str]:
        return [
            r.url.params.get("q")
            for r in self.requests
            if r.url.path == "/search/repositories"
        ]


def make_github_client(recorder: GitHubRecorder) -> GitHubClient:
    return GitHubClient(token="test-token", transport=httpx.MockTransport(recorder))


def ts(minutes: int) -> datetime:
    """A fixed UTC timestamp offset by `minutes`."""
    return datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc) + timedelta(minutes=minutes)


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def vector_store(tmp_path) -> LocalVectorStore:
    return LocalVectorStore(storage_path=tmp_path / "memory", persist=False)


@pytest.fixture
def memory(vector_store, embedder) -> MemoryStore:
    return MemoryStore(vector_store, embedder)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
