"""
Shared test fixtures and configuration.
"""

from pathlib import Path

import pytest

from boxpm.adapters.mock import MockAdapter
from boxpm.adapters.registry import AdapterRegistry
from boxpm.adapters.shell.filesystem import FilesystemAdapter
from boxpm.core.config.loader import BoxConfig

REGISTRY_URL = "https://nur.test"


def publish(fetch: MockAdapter, url: str, content: str | bytes) -> None:
    """Make ``url`` fetchable through the mock fetch adapter."""
    data = content.encode("utf-8") if isinstance(content, str) else content
    fetch.set_payload(f"fetch:{url}", data)


@pytest.fixture(autouse=True)
def _no_runtime_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's Neutron/box environment out of the tests."""
    for var in ("NEUTRON_HOME", "MSYSTEM", "BOX_REGISTRY_URL", "BOX_GLOBAL_DIR", "BOX_LOCAL_DIR",
                "BOX_LOG_LEVEL", "BOX_LOG_FILE", "BOX_LOG_FILE_LEVEL"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """An empty project directory."""
    path = tmp_path / "project"
    path.mkdir()
    return path


@pytest.fixture
def config(tmp_path: Path, project_dir: Path) -> BoxConfig:
    """Configuration pointing every path into the temp directory."""
    return BoxConfig(
        registry_url=REGISTRY_URL,
        global_modules_dir=str(tmp_path / "global" / "modules"),
        project_root=str(project_dir),
    )


@pytest.fixture
def fetch() -> MockAdapter:
    """Mock ``fetch`` adapter; unscripted URLs fail like an empty response."""
    mock = MockAdapter(adapter_name="fetch")
    return mock


@pytest.fixture
def git() -> MockAdapter:
    return MockAdapter(adapter_name="git")


@pytest.fixture
def shell() -> MockAdapter:
    return MockAdapter(adapter_name="shell")


@pytest.fixture
def adapters(fetch: MockAdapter, git: MockAdapter, shell: MockAdapter) -> AdapterRegistry:
    """Real filesystem adapter, mocked network, git and compiler."""
    registry = AdapterRegistry()
    registry.register(FilesystemAdapter())
    registry.register(fetch)
    registry.register(git)
    registry.register(shell)
    return registry
