"""Unit tests for the application factory and lifespan."""

from collections.abc import AsyncGenerator, Callable

import pytest
import pytest_check as check
from httpx import ASGITransport, AsyncClient

from src.api.main import create_app, lifespan
from src.core.config import Settings
from src.infrastructure.database.driver import SQLAlchemyDriver
from src.infrastructure.database.manager import ConnectionManager
from tests.fixtures.fake_driver import FakeDriver

type ManagerFactory = Callable[..., ConnectionManager]


@pytest.fixture
async def client(
    manager_factory: ManagerFactory,
) -> AsyncGenerator[AsyncClient]:
    manager = manager_factory(max_retries=1)
    app = create_app(manager=manager)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.mark.unit
class TestCreateApp:
    """Test class for create_app."""

    def test_default_manager_uses_sqlalchemy_driver(
        self, mock_settings: Settings
    ) -> None:
        """Verify the factory builds a manager over SQLAlchemyDriver."""
        app = create_app(mock_settings)

        manager = app.state.connection_manager
        assert isinstance(manager, ConnectionManager)
        assert isinstance(manager.driver, SQLAlchemyDriver)

    def test_injected_manager_is_used(self, manager_factory: ManagerFactory) -> None:
        """Verify an explicit manager is stored on app.state."""
        manager = manager_factory()

        app = create_app(manager=manager)

        assert app.state.connection_manager is manager

    def test_health_router_is_mounted(self, mock_settings: Settings) -> None:
        """Verify versioned health routes live under the API prefix."""
        app = create_app(mock_settings)

        paths = {getattr(route, "path", None) for route in app.routes}
        assert "/api/v1/health/status" in paths
        assert "/api/v1/health/reconnect-db" in paths


@pytest.mark.unit
@pytest.mark.timeout(2)
class TestLifespan:
    """Test class for startup and shutdown."""

    async def test_startup_connects_and_shutdown_disconnects(
        self, manager_factory: ManagerFactory, fake_driver: FakeDriver
    ) -> None:
        """Verify a long-running process connects eagerly and closes on exit."""
        manager = manager_factory()
        app = create_app(manager=manager)

        async with lifespan(app):
            assert manager.is_connected

        assert not manager.is_connected
        assert fake_driver.close_calls == 1

    async def test_startup_failure_aborts(
        self, manager_factory: ManagerFactory, fake_driver: FakeDriver
    ) -> None:
        """Verify an unreachable database stops a long-running process."""
        fake_driver.always_fail = OSError("connection refused")
        app = create_app(manager=manager_factory(max_retries=1))

        with pytest.raises(RuntimeError, match="Database connection failed"):
            async with lifespan(app):
                pass

    async def test_serverless_connects_lazily(
        self, manager_factory: ManagerFactory, fake_driver: FakeDriver
    ) -> None:
        """Verify serverless startup does not touch the database."""
        manager = manager_factory(serverless=True)
        app = create_app(manager=manager)

        async with lifespan(app):
            assert fake_driver.connect_calls == []

    async def test_shutdown_close_error_is_logged(
        self, manager_factory: ManagerFactory, fake_driver: FakeDriver
    ) -> None:
        """Verify a failing close does not break shutdown."""
        app = create_app(manager=manager_factory())

        async with lifespan(app):
            fake_driver.close_error = OSError("broken pipe")

        assert fake_driver.close_calls == 1


@pytest.mark.unit
@pytest.mark.timeout(2)
class TestTopLevelRoutes:
    """Test class for /, /info and /health."""

    async def test_root(self, client: AsyncClient) -> None:
        """Verify the service banner."""
        response = await client.get("/")

        assert response.status_code == 200
        assert "running" in response.json()["message"]

    async def test_info(self, client: AsyncClient) -> None:
        """Verify application info fields."""
        response = await client.get("/info")

        body = response.json()
        check.equal(body["app_name"], "Kanban API")
        check.equal(body["environment"], "development")
        check.is_false(body["serverless"])

    async def test_health_without_db_check(
        self, client: AsyncClient, fake_driver: FakeDriver
    ) -> None:
        """Verify plain liveness does not touch the database."""
        response = await client.get("/health")

        body = response.json()
        assert response.status_code == 200
        assert body["server"] == "OK"
        assert "database" not in body
        assert fake_driver.connect_calls == []

    async def test_health_reconnects_when_asked(
        self, client: AsyncClient, fake_driver: FakeDriver
    ) -> None:
        """Verify checkDb=true re-establishes a missing connection."""
        response = await client.get("/health", params={"checkDb": "true"})

        assert response.json()["database"] == "reconnected"
        assert len(fake_driver.connect_calls) == 1

    async def test_health_reports_connected(self, client: AsyncClient) -> None:
        """Verify a live connection is reported as connected."""
        await client.get("/info")

        response = await client.get("/health", params={"checkDb": "true"})

        assert response.json()["database"] == "connected"

    async def test_health_reports_disconnected(
        self, client: AsyncClient, fake_driver: FakeDriver
    ) -> None:
        """Verify a failed reconnect is reported as disconnected."""
        fake_driver.always_fail = OSError("connection refused")

        response = await client.get("/health", params={"checkDb": "true"})

        assert response.status_code == 200
        assert response.json()["database"] == "disconnected"

    async def test_health_reports_error(
        self, manager_factory: ManagerFactory, fake_driver: FakeDriver
    ) -> None:
        """Verify a configuration problem is reported as error."""
        app = create_app(manager=manager_factory(database_url=""))
        transport = ASGITransport(app=app)

        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            response = await ac.get("/health", params={"checkDb": "true"})

        body = response.json()
        assert body["database"] == "error"
        assert body["dbError"] == "Database URL is not configured"
        assert fake_driver.connect_calls == []
