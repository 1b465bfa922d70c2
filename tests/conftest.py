"""
Pytest configuration for the plugin engine.

Provides fixtures for the database, mocked upstream systems, the plugin
registry and the HTTP client.
"""

from pathlib import Path
from typing import Any, Callable, Generator, Optional

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

from plugin_engine.core.config import EngineSettings
from plugin_engine.core.database import get_session
from plugin_engine.integrations import create_default_registry
from plugin_engine.integrations.registry import PluginRegistry
from plugin_engine.main import create_application


# =====================================================
# MOCKED UPSTREAM SYSTEMS
# =====================================================


class UpstreamStub:
    """Records outbound requests and answers them from registered routes.

    Routes are keyed by ``(host, path)``; a route registered without a host
    answers for every host. Unknown routes answer 404.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[tuple[Optional[str], str], Callable[[httpx.Request], httpx.Response]] = {}

    def add(
        self,
        path: str,
        *,
        status: int = 200,
        json: Any = None,
        text: Optional[str] = None,
        headers: Optional[dict[str, str]] = None,
        host: Optional[str] = None,
    ) -> None:
        def respond(request: httpx.Request) -> httpx.Response:
            if text is not None:
                return httpx.Response(status, text=text, headers=headers)
            return httpx.Response(status, json=json, headers=headers)

        self._routes[(host, path)] = respond

    def fail(self, path: str, error: Exception, *, host: Optional[str] = None) -> None:
        def respond(request: httpx.Request) -> httpx.Response:
            raise error

        self._routes[(host, path)] = respond

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        responder = self._routes.get((request.url.host, request.url.path)) or self._routes.get(
            (None, request.url.path)
        )
        if responder is None:
            return httpx.Response(404, json={"error": "no mocked route"})
        return responder(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


@pytest.fixture(name="upstream")
def upstream_fixture() -> UpstreamStub:
    return UpstreamStub()


# =====================================================
# REGISTRY
# =====================================================


@pytest.fixture(name="config_dir")
def config_dir_fixture(tmp_path: Path) -> Path:
    return tmp_path / "plugins"


@pytest.fixture(name="settings")
def settings_fixture(config_dir: Path) -> EngineSettings:
    return EngineSettings(plugin_config_dir=config_dir, database_url="sqlite://")


@pytest.fixture(name="registry")
def registry_fixture(settings: EngineSettings, upstream: UpstreamStub) -> PluginRegistry:
    """Registry with every built-in connector, wired to the mocked upstream."""
    return create_default_registry(settings, transport=upstream.transport)


# =====================================================
# TEST DATABASE
# =====================================================


@pytest.fixture(name="session")
def session_fixture() -> Generator[Session, None, None]:
    """Creates an in-memory database session for tests."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(
    session: Session, registry: PluginRegistry, settings: EngineSettings
) -> Generator[TestClient, None, None]:
    """Creates a test client with a mocked database session and registry."""
    app = create_application(registry=registry, settings=settings)

    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


# =====================================================
# DATA FIXTURES
# =====================================================


@pytest.fixture
def user_headers() -> dict[str, str]:
    return {"X-User-Id": "7"}


@pytest.fixture
def sample_instance_data() -> dict[str, Any]:
    return {
        "name": "Branch Office FortiGate",
        "baseUrl": "https://branch-fw.test/",
        "authType": "api_key",
        "authConfig": {"key": "branch-key", "header": "Authorization"},
        "tags": ["branch", "firewall"],
    }
