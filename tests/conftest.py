"""
Shared fixtures for plugin host tests.
"""

import textwrap
from pathlib import Path
from typing import Any, Callable, Optional, Sequence
from unittest.mock import AsyncMock

import pytest

from plugin_host.core.interfaces.services import (
    IDatabaseService,
    IMessagingService,
    IObjectStoreService,
)
from plugin_host.core.services.event_bus import EventBus


@pytest.fixture
def plugin_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "plugins"
    directory.mkdir()
    return directory


@pytest.fixture
def write_plugin(plugin_dir: Path) -> Callable[..., str]:
    """
    Write a function style plugin module and return its path.

    ``body`` is appended after the metadata dict, so it can define
    initialize, cleanup and execute functions.
    """
    def _write(name: str, version: str = "1.0.0",
               dependencies: Sequence[str] = (), body: str = "",
               filename: Optional[str] = None, **metadata: Any) -> str:
        declared = {"name": name, "version": version, "dependencies": list(dependencies)}
        declared.update(metadata)
        source = f"metadata = {declared!r}\n\n" + textwrap.dedent(body)
        path = plugin_dir / (filename or f"{name.replace('-', '_')}.py")
        path.write_text(source)
        return str(path)

    return _write


@pytest.fixture
def event_bus() -> EventBus:
    """A bus that is not started, so events are dispatched inline."""
    return EventBus(max_workers=1, queue_size=100)


@pytest.fixture
def database_service() -> AsyncMock:
    service = AsyncMock(spec=IDatabaseService)
    service.query.return_value = []
    service.execute.return_value = 0
    return service


@pytest.fixture
def messaging_service() -> AsyncMock:
    return AsyncMock(spec=IMessagingService)


@pytest.fixture
def object_store_service() -> AsyncMock:
    service = AsyncMock(spec=IObjectStoreService)
    service.download.return_value = b""
    service.list.return_value = []
    service.exists.return_value = False
    service.get_presigned_url.return_value = "https://example.invalid/signed"
    return service


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Default configs create a relative log directory; keep it out of the repo."""
    monkeypatch.chdir(tmp_path)
    return tmp_path
