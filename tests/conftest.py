"""
ExamDash - Test Configuration and Fixtures
"""
import asyncio
from typing import AsyncGenerator, Callable, Dict, List, Optional, Tuple

import httpx
import pytest
from faker import Faker

from examdash.config import Settings
from examdash.offline.manager import OfflineManager

fake = Faker()

API_BASE_URL = "http://backend.test/api"
AUTH_API_URL = "http://auth.test"


class FakeBackend:
    """
    In-process stand-in for the platform API.

    Every request that reaches the backend is recorded. Routes default to
    200 {"ok": True}; use route() to change the answer for one path.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.routes: Dict[Tuple[str, str], Tuple[int, object, bool]] = {}
        self.offline = False
        self.delay = 0.0
        self.on_request: Optional[Callable[[httpx.Request], None]] = None

    def route(self, method: str, path: str, status: int = 200, json=None, fail: bool = False):
        self.routes[(method.upper(), path)] = (status, json, fail)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        if self.offline:
            raise httpx.ConnectError("Network is unreachable", request=request)

        self.requests.append(request)
        if self.on_request is not None:
            self.on_request(request)
        if self.delay:
            await asyncio.sleep(self.delay)

        status, body, fail = self.routes.get(
            (request.method, request.url.path),
            (200, {"ok": True}, False)
        )
        if fail:
            raise httpx.ConnectError("Connection reset", request=request)
        return httpx.Response(status, json=body)

    def calls(self) -> List[Tuple[str, str]]:
        return [(r.method, r.url.path) for r in self.requests]


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing at a throwaway database"""
    return Settings(
        API_BASE_URL=API_BASE_URL,
        AUTH_API_URL=AUTH_API_URL,
        DATA_DIR=str(tmp_path),
        OFFLINE_DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'offline.db'}",
        OFFLINE_NAMESPACE="test",
        AUTH_TOKEN=None,
        SYNC_MAX_ATTEMPTS=0,
        OFFLINE_MAX_ENTRIES=0,
    )


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
async def http_client(backend: FakeBackend) -> AsyncGenerator[httpx.AsyncClient, None]:
    transport = httpx.MockTransport(backend.handler)
    async with httpx.AsyncClient(transport=transport, base_url=API_BASE_URL) as client:
        yield client


@pytest.fixture
async def manager(settings: Settings, http_client: httpx.AsyncClient) -> AsyncGenerator[OfflineManager, None]:
    """Started offline manager wired to the fake backend"""
    offline_manager = OfflineManager(settings, http_client=http_client)
    await offline_manager.start()
    yield offline_manager
    await offline_manager.stop()


@pytest.fixture
def category_payload() -> dict:
    return {
        "name": fake.word().title(),
        "description": fake.sentence(),
        "icon": "book",
        "color": ["#1e40af", "#3b82f6"],
    }
