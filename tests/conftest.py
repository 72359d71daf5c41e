from datetime import datetime, timezone

import httpx
import pytest
import pytest_asyncio
from aiohttp.test_utils import TestServer

from stock_scanner.config import Settings
from stock_scanner.inventory_service import InventoryService
from stock_scanner.main import app, get_inventory_service
from stock_scanner.notion import NotionClient
from stock_scanner.scan_guard import ScanGuard
from tests.fakes import FakeRedis, StubNotion

FIXED_NOW = datetime(2026, 3, 14, 9, 26, 53, 589000, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def notion_stub():
    stub = StubNotion()
    server = TestServer(stub.app)
    await server.start_server()
    stub.url = f"http://{server.host}:{server.port}"
    try:
        yield stub
    finally:
        await server.close()


@pytest.fixture
def settings(notion_stub):
    return Settings(
        notion_token="secret-token",
        notion_database_id=notion_stub.database_id,
        notion_api_url=notion_stub.url,
    )


@pytest_asyncio.fixture
async def notion(settings):
    client = NotionClient(settings)
    try:
        yield client
    finally:
        await client.close()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def guard(fake_redis):
    return ScanGuard(fake_redis, lock_ttl=5, lock_wait=0.2, token_ttl=60)


@pytest.fixture
def service(notion, guard):
    return InventoryService(notion, guard, clock=lambda: FIXED_NOW)


@pytest_asyncio.fixture
async def client(service):
    app.dependency_overrides[get_inventory_service] = lambda: service
    transport = httpx.ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
            yield http
    finally:
        app.dependency_overrides.clear()
