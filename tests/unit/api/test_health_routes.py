"""Unit tests for the versioned health routes."""

from collections.abc import AsyncGenerator, Callable

import pytest
import pytest_check as check
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from pytest_mock import MockerFixture

from src.api.routes.health import router
from src.api.utils.responses import ORJSONResponse
from src.infrastructure.database.manager import ConnectionManager
from tests.fixtures.fake_driver import FakeDriver


@pytest.fixture
def manager(manager_factory: Callable[..., ConnectionManager]) -> ConnectionManager:
    return manager_factory(max_retries=1)


@pytest.fixture
async def client(manager: ConnectionManager) -> AsyncGenerator[AsyncClient]:
    app = FastAPI(default_response_class=ORJSONResponse)
    app.state.connection_manager = manager
    app.include_router(router, prefix="/api/v1")
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.mark.unit
@pytest.mark.timeout(2)
class TestHealthStatus:
    """Test class for GET /api/v1/health/status."""

    async def test_up_when_connected(
        self, client: AsyncClient, manager: ConnectionManager
    ) -> None:
        """Verify a connected, probed database reports UP."""
        await manager.connect()

        response = await client.get("/api/v1/health/status")

        body = response.json()
        check.equal(response.status_code, 200)
        check.equal(body["status"], "UP")
        check.is_true(body["db"]["connected"])
        check.is_true(body["db"]["ping_ok"])
        check.is_in("timestamp", body)

    async def test_degraded_when_disconnected(self, client: AsyncClient) -> None:
        """Verify a disconnected database reports DEGRADED with 200."""
        response = await client.get("/api/v1/health/status")

        body = response.json()
        assert response.status_code == 200
        assert body["status"] == "DEGRADED"
        assert body["db"]["state"] == "disconnected"

    async def test_down_when_check_fails(
        self, client: AsyncClient, mocker: MockerFixture
    ) -> None:
        """Verify an unexpected failure of the check reports DOWN with 500."""
        mocker.patch(
            "src.api.routes.health.check_connection",
            side_effect=RuntimeError("driver exploded"),
        )

        response = await client.get("/api/v1/health/status")

        assert response.status_code == 500
        assert response.json()["status"] == "DOWN"
        assert response.json()["error"] == "driver exploded"


@pytest.mark.unit
@pytest.mark.timeout(2)
class TestReconnect:
    """Test class for POST /api/v1/health/reconnect-db."""

    async def test_success(self, client: AsyncClient, fake_driver: FakeDriver) -> None:
        """Verify a successful reconnect returns SUCCESS."""
        response = await client.post("/api/v1/health/reconnect-db")

        assert response.status_code == 200
        assert response.json()["status"] == "SUCCESS"
        assert response.json()["message"] == "Successfully reconnected to database"
        assert len(fake_driver.connect_calls) == 1

    async def test_already_connected(
        self, client: AsyncClient, manager: ConnectionManager
    ) -> None:
        """Verify reconnecting a live connection is a successful no-op."""
        await manager.connect()

        response = await client.post("/api/v1/health/reconnect-db")

        assert response.status_code == 200
        assert response.json()["message"] == "Database already connected"

    async def test_failed(self, client: AsyncClient, fake_driver: FakeDriver) -> None:
        """Verify an exhausted reconnect returns FAILED with 500."""
        fake_driver.always_fail = OSError("connection refused")

        response = await client.post("/api/v1/health/reconnect-db")

        assert response.status_code == 500
        assert response.json()["status"] == "FAILED"
        assert "Could not connect" in response.json()["message"]

    async def test_error(self, client: AsyncClient, mocker: MockerFixture) -> None:
        """Verify an unexpected exception returns ERROR with 500."""
        mocker.patch(
            "src.api.routes.health.try_reconnect",
            side_effect=RuntimeError("unexpected"),
        )

        response = await client.post("/api/v1/health/reconnect-db")

        assert response.status_code == 500
        assert response.json()["status"] == "ERROR"
        assert response.json()["error"] == "unexpected"
