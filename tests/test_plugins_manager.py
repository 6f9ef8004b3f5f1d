"""
Tests for the plugin lifecycle manager.

Most tests drive the manager through an in-memory loader so plugin hooks can
be plain mocks; directory loading is tested against real plugin files.
"""

import asyncio
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from unittest.mock import AsyncMock, Mock

import pytest

from plugin_host.core.domain.events import Event, SystemEvents
from plugin_host.core.domain.plugin import Plugin, PluginMetadata, PluginState, ResourceOverrides
from plugin_host.core.exceptions import (
    CircularDependencyError,
    DependencyNotFoundError,
    DependencyResolutionError,
    InvalidNamingConventionError,
    InvalidPluginFormatError,
    PluginContextInvalidError,
    PluginLoadError,
    PluginNotExecutableError,
    PluginNotFoundError,
    PluginUnloadAllError,
    PluginUnloadError,
    SelfDependencyError,
)
from plugin_host.core.interfaces.plugins import IModuleLoader
from plugin_host.core.services.event_bus import EventBus
from plugin_host.plugins.manager import MANAGER_SOURCE, PluginManager


def make_plugin(name: str, dependencies=(), version: str = "1.0.0",
                initialize: Optional[Callable] = None,
                cleanup: Optional[Callable] = None,
                execute: Optional[Callable] = None,
                **resources: Any) -> Plugin:
    metadata = PluginMetadata(name=name, version=version,
                              dependencies=list(dependencies), **resources)
    return Plugin(metadata=metadata, initialize=initialize, cleanup=cleanup,
                  execute=execute, source=f"/plugins/{name}.py")


class FakeLoader(IModuleLoader):
    """Serves prepared plugins (or errors) by path."""

    def __init__(self) -> None:
        self.modules: Dict[str, Any] = {}
        self.load_calls: List[str] = []

    def add(self, plugin: Plugin, path: Optional[str] = None) -> str:
        path = path or f"/plugins/{plugin.name}.py"
        self.modules[path] = plugin
        return path

    async def load(self, path: str) -> Plugin:
        self.load_calls.append(path)
        if path not in self.modules:
            raise FileNotFoundError(path)
        result = self.modules[path]
        if isinstance(result, Exception):
            raise result
        return result

    async def discover(self, directory: str) -> List[str]:
        return sorted(self.modules)


@pytest.fixture
def loader() -> FakeLoader:
    return FakeLoader()


@pytest.fixture
def events() -> List[Event]:
    """Host notifications captured by the manager fixture."""
    return []


@pytest.fixture
async def manager(event_bus: EventBus, loader: FakeLoader, events: List[Event],
                  database_service: AsyncMock, messaging_service: AsyncMock,
                  object_store_service: AsyncMock) -> PluginManager:
    await event_bus.subscribe("system.plugin.*", events.append)
    return PluginManager(
        event_bus,
        loader=loader,
        database_service=database_service,
        messaging_service=messaging_service,
        object_store_service=object_store_service,
        config={'auto_load': False},
    )


def _names(events: List[Event]) -> List[str]:
    return [event.name for event in events]


class TestLoadPlugin:

    @pytest.mark.asyncio
    async def test_load_registers_and_notifies(self, manager: PluginManager, loader: FakeLoader,
                                               events: List[Event]) -> None:
        path = loader.add(make_plugin("greeter"))

        plugin = await manager.load_plugin(path)

        assert plugin.name == "greeter"
        assert manager.is_plugin_loaded("greeter")
        assert manager.get_plugin("greeter") is plugin
        assert manager.get_plugin_state("greeter") == PluginState.LOADED
        assert manager.get_plugin_path("greeter") == path
        assert manager.get_plugin_names() == ["greeter"]

        assert _names(events) == [SystemEvents.PLUGIN_LOADED]
        assert events[0].data is plugin
        assert events[0].source == MANAGER_SOURCE

    @pytest.mark.asyncio
    async def test_initialize_receives_fresh_context(self, manager: PluginManager,
                                                     loader: FakeLoader) -> None:
        initialize = Mock(return_value=None)
        path = loader.add(make_plugin("auditor", initialize=initialize, allowed_tables=["audit_log"]))

        await manager.load_plugin(path)

        context = initialize.call_args.args[0]
        assert context is manager.get_plugin_context("auditor")
        assert context.plugin_name == "auditor"
        assert context.is_valid
        assert context.database.get_allowed_tables() == ["audit_log"]
        assert context.messaging.get_allowed_topics() == []
        assert context.object_store.get_allowed_buckets() == []

    @pytest.mark.asyncio
    async def test_async_initialize_is_awaited(self, manager: PluginManager, loader: FakeLoader) -> None:
        initialize = AsyncMock()
        path = loader.add(make_plugin("greeter", initialize=initialize))

        await manager.load_plugin(path)

        initialize.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_repositories_absent_without_services(self, event_bus: EventBus,
                                                        loader: FakeLoader) -> None:
        manager = PluginManager(event_bus, loader=loader, config={'auto_load': False})
        path = loader.add(make_plugin("greeter"))

        await manager.load_plugin(path)

        context = manager.get_plugin_context("greeter")
        assert context.database is None
        assert context.messaging is None
        assert context.object_store is None

    @pytest.mark.asyncio
    async def test_invalid_name_rejected_before_initialize(self, manager: PluginManager,
                                                           loader: FakeLoader,
                                                           events: List[Event]) -> None:
        initialize = Mock()
        path = loader.add(make_plugin("Greeter", initialize=initialize))

        with pytest.raises(InvalidNamingConventionError):
            await manager.load_plugin(path)

        initialize.assert_not_called()
        assert manager.get_plugin_names() == []
        assert manager.get_plugin_state("Greeter") is None
        assert _names(events) == [SystemEvents.PLUGIN_FAILED]
        assert isinstance(events[0].data['error'], InvalidNamingConventionError)
        assert events[0].data['metadata'].name == "Greeter"

    @pytest.mark.asyncio
    async def test_invalid_resource_name_rejected(self, manager: PluginManager, loader: FakeLoader) -> None:
        path = loader.add(make_plugin("auditor", allowed_buckets=["Bad_Bucket"]))

        with pytest.raises(InvalidNamingConventionError, match="bucket names"):
            await manager.load_plugin(path)

    @pytest.mark.asyncio
    async def test_missing_dependency(self, manager: PluginManager, loader: FakeLoader) -> None:
        path = loader.add(make_plugin("auditor", dependencies=["greeter"]))

        with pytest.raises(DependencyNotFoundError) as exc_info:
            await manager.load_plugin(path)

        assert exc_info.value.dependency_name == "greeter"
        assert not manager.is_plugin_loaded("auditor")

    @pytest.mark.asyncio
    async def test_malformed_dependency_name(self, manager: PluginManager,
                                             loader: FakeLoader) -> None:
        path = loader.add(make_plugin("auditor", dependencies=["Greeter"]))

        with pytest.raises(InvalidNamingConventionError) as exc_info:
            await manager.load_plugin(path)

        assert exc_info.value.category == "dependency name"
        assert not manager.is_plugin_loaded("auditor")

    @pytest.mark.asyncio
    async def test_self_dependency(self, manager: PluginManager, loader: FakeLoader) -> None:
        path = loader.add(make_plugin("auditor", dependencies=["auditor"]))

        with pytest.raises(SelfDependencyError):
            await manager.load_plugin(path)

    @pytest.mark.asyncio
    async def test_dependency_available_to_context(self, manager: PluginManager,
                                                   loader: FakeLoader) -> None:
        greeter = make_plugin("greeter")
        seen = {}

        def initialize(context):
            seen['greeter'] = context.get_dependency("greeter")

        await manager.load_plugin(loader.add(greeter))
        await manager.load_plugin(loader.add(make_plugin("auditor", dependencies=["greeter"],
                                                         initialize=initialize)))

        assert seen['greeter'] is greeter

    @pytest.mark.asyncio
    async def test_loader_failure_is_wrapped(self, manager: PluginManager, loader: FakeLoader,
                                             events: List[Event]) -> None:
        loader.modules["/plugins/broken.py"] = SyntaxError("invalid syntax")

        with pytest.raises(PluginLoadError) as exc_info:
            await manager.load_plugin("/plugins/broken.py")

        assert isinstance(exc_info.value.cause, SyntaxError)
        assert exc_info.value.plugin_path == "/plugins/broken.py"
        assert _names(events) == [SystemEvents.PLUGIN_FAILED]

    @pytest.mark.asyncio
    async def test_format_error_passes_through(self, manager: PluginManager, loader: FakeLoader) -> None:
        loader.modules["/plugins/odd.py"] = InvalidPluginFormatError("/plugins/odd.py", "no metadata")

        with pytest.raises(InvalidPluginFormatError):
            await manager.load_plugin("/plugins/odd.py")

    @pytest.mark.asyncio
    async def test_initialize_failure_rolls_back(self, manager: PluginManager, loader: FakeLoader,
                                                 event_bus: EventBus, events: List[Event]) -> None:
        captured = {}

        async def initialize(context):
            captured['context'] = context
            await context.event_bus.on("tick", lambda data: None)
            raise RuntimeError("database unreachable")

        path = loader.add(make_plugin("greeter", initialize=initialize))

        with pytest.raises(PluginLoadError, match="database unreachable") as exc_info:
            await manager.load_plugin(path)

        assert exc_info.value.plugin_name == "greeter"
        assert not manager.is_plugin_loaded("greeter")
        assert manager.get_plugin_state("greeter") is None
        assert not captured['context'].is_valid
        # Only the test's own system.plugin.* subscription remains
        assert event_bus.subscription_count == 1
        assert _names(events) == [SystemEvents.PLUGIN_FAILED]

    @pytest.mark.asyncio
    async def test_loading_same_name_replaces_previous(self, manager: PluginManager,
                                                       loader: FakeLoader, events: List[Event]) -> None:
        first_cleanup = Mock(return_value=None)
        await manager.load_plugin(loader.add(make_plugin("greeter", cleanup=first_cleanup)))
        first_context = manager.get_plugin_context("greeter")

        second = make_plugin("greeter", version="2.0.0")
        await manager.load_plugin(loader.add(second, "/plugins/greeter_v2.py"))

        first_cleanup.assert_called_once()
        assert not first_context.is_valid
        assert manager.get_plugin("greeter") is second
        assert manager.get_plugin_path("greeter") == "/plugins/greeter_v2.py"
        assert _names(events) == [
            SystemEvents.PLUGIN_LOADED, SystemEvents.PLUGIN_UNLOADED, SystemEvents.PLUGIN_LOADED
        ]

    @pytest.mark.asyncio
    async def test_rejected_replacement_keeps_loaded_plugin(self, manager: PluginManager,
                                                            loader: FakeLoader) -> None:
        cleanup = Mock(return_value=None)
        original = make_plugin("greeter", cleanup=cleanup)
        await manager.load_plugin(loader.add(original))

        replacement = make_plugin("greeter", dependencies=["missing"])
        with pytest.raises(DependencyNotFoundError):
            await manager.load_plugin(loader.add(replacement, "/plugins/greeter_v2.py"))

        cleanup.assert_not_called()
        assert manager.get_plugin("greeter") is original

    @pytest.mark.asyncio
    async def test_circular_dependency_via_replacement(self, manager: PluginManager,
                                                       loader: FakeLoader) -> None:
        await manager.load_plugin(loader.add(make_plugin("alpha")))
        await manager.load_plugin(loader.add(make_plugin("beta", dependencies=["alpha"])))

        replacement = make_plugin("alpha", dependencies=["beta"])
        with pytest.raises(CircularDependencyError) as exc_info:
            await manager.load_plugin(loader.add(replacement, "/plugins/alpha_v2.py"))

        assert exc_info.value.dependency_chain == ["alpha", "beta", "alpha"]
        assert manager.get_plugin("alpha").metadata.dependencies == []


class TestUnloadPlugin:

    @pytest.mark.asyncio
    async def test_unload_tears_everything_down(self, manager: PluginManager, loader: FakeLoader,
                                                event_bus: EventBus, events: List[Event]) -> None:
        observed = []

        async def initialize(context):
            await context.event_bus.on("tick", lambda data: None)

        def cleanup():
            observed.append(manager.get_plugin_context("greeter").is_valid)

        plugin = make_plugin("greeter", initialize=initialize, cleanup=cleanup)
        path = loader.add(plugin)
        await manager.load_plugin(path)
        context = manager.get_plugin_context("greeter")
        assert event_bus.subscription_count == 2

        await manager.unload_plugin("greeter")

        assert observed == [False]
        assert not context.is_valid
        assert not manager.is_plugin_loaded("greeter")
        assert manager.get_plugin_context("greeter") is None
        assert manager.get_plugin_state("greeter") is None
        assert manager.get_plugin_path("greeter") == path
        assert event_bus.subscription_count == 1
        assert events[-1].name == SystemEvents.PLUGIN_UNLOADED
        assert events[-1].data is plugin.metadata

    @pytest.mark.asyncio
    async def test_captured_context_fails_after_unload(self, manager: PluginManager,
                                                       loader: FakeLoader) -> None:
        captured = {}

        def initialize(context):
            captured['context'] = context

        await manager.load_plugin(loader.add(make_plugin(
            "auditor", initialize=initialize, allowed_tables=["audit_log"]
        )))
        await manager.unload_plugin("auditor")

        context = captured['context']
        with pytest.raises(PluginContextInvalidError):
            await context.database.execute_query("SELECT * FROM audit_log")
        with pytest.raises(PluginContextInvalidError):
            await context.event_bus.emit("tick")

    @pytest.mark.asyncio
    async def test_unload_unknown_is_noop(self, manager: PluginManager, events: List[Event]) -> None:
        await manager.unload_plugin("ghost")

        assert events == []

    @pytest.mark.asyncio
    async def test_cleanup_failure_still_unloads(self, manager: PluginManager, loader: FakeLoader,
                                                 events: List[Event]) -> None:
        cleanup = Mock(side_effect=RuntimeError("flush failed"))
        await manager.load_plugin(loader.add(make_plugin("greeter", cleanup=cleanup)))

        with pytest.raises(PluginUnloadError) as exc_info:
            await manager.unload_plugin("greeter")

        assert isinstance(exc_info.value.cause, RuntimeError)
        assert not manager.is_plugin_loaded("greeter")
        assert _names(events)[-2:] == [SystemEvents.PLUGIN_UNLOADED, SystemEvents.PLUGIN_FAILED]

    @pytest.mark.asyncio
    async def test_unload_all_collects_errors(self, manager: PluginManager, loader: FakeLoader) -> None:
        ok_cleanup = AsyncMock()
        await manager.load_plugin(loader.add(make_plugin("greeter", cleanup=ok_cleanup)))
        await manager.load_plugin(loader.add(make_plugin(
            "auditor", cleanup=Mock(side_effect=RuntimeError("boom"))
        )))

        with pytest.raises(PluginUnloadAllError) as exc_info:
            await manager.unload_all()

        assert len(exc_info.value.errors) == 1
        assert isinstance(exc_info.value.errors[0], PluginUnloadError)
        ok_cleanup.assert_awaited_once()
        assert manager.get_all_plugins() == {}

    @pytest.mark.asyncio
    async def test_unload_all_with_nothing_loaded(self, manager: PluginManager) -> None:
        await manager.unload_all()


class TestReloadAndExecute:

    @pytest.mark.asyncio
    async def test_reload_uses_stored_path(self, manager: PluginManager, loader: FakeLoader) -> None:
        path = loader.add(make_plugin("greeter"))
        await manager.load_plugin(path)

        updated = make_plugin("greeter", version="1.1.0")
        loader.add(updated, path)
        reloaded = await manager.reload_plugin("greeter")

        assert reloaded is updated
        assert loader.load_calls == [path, path]

    @pytest.mark.asyncio
    async def test_reload_after_unload(self, manager: PluginManager, loader: FakeLoader) -> None:
        path = loader.add(make_plugin("greeter"))
        await manager.load_plugin(path)
        await manager.unload_plugin("greeter")

        await manager.reload_plugin("greeter")

        assert manager.is_plugin_loaded("greeter")

    @pytest.mark.asyncio
    async def test_reload_unknown(self, manager: PluginManager, events: List[Event]) -> None:
        with pytest.raises(PluginNotFoundError):
            await manager.reload_plugin("ghost")

        assert _names(events) == [SystemEvents.PLUGIN_FAILED]

    @pytest.mark.asyncio
    async def test_execute(self, manager: PluginManager, loader: FakeLoader) -> None:
        execute = AsyncMock(return_value={"ok": True})
        await manager.load_plugin(loader.add(make_plugin("greeter", execute=execute)))

        result = await manager.execute_plugin("greeter", {"name": "ada"})

        assert result == {"ok": True}
        execute.assert_awaited_once_with({"name": "ada"})

    @pytest.mark.asyncio
    async def test_execute_errors(self, manager: PluginManager, loader: FakeLoader) -> None:
        await manager.load_plugin(loader.add(make_plugin("greeter")))

        with pytest.raises(PluginNotExecutableError):
            await manager.execute_plugin("greeter")
        with pytest.raises(PluginNotFoundError):
            await manager.execute_plugin("ghost")

    @pytest.mark.asyncio
    async def test_find_plugin_by_path(self, manager: PluginManager, loader: FakeLoader) -> None:
        path = loader.add(make_plugin("greeter"))
        await manager.load_plugin(path)

        assert manager.find_plugin_by_path(path).name == "greeter"
        assert manager.find_plugin_by_path("/plugins/other.py") is None


class TestResourceOverrides:

    @pytest.mark.asyncio
    async def test_overrides_for_unloaded_plugin_are_stored(self, manager: PluginManager) -> None:
        overrides = ResourceOverrides(allowed_tables=["orders"])

        task = manager.set_plugin_resource_overrides("auditor", overrides)

        assert task is None
        assert manager.get_plugin_resource_overrides("auditor") is overrides

    @pytest.mark.asyncio
    async def test_overrides_trigger_background_reload(self, manager: PluginManager,
                                                       loader: FakeLoader) -> None:
        await manager.load_plugin(loader.add(make_plugin("auditor", allowed_tables=["audit_log"])))

        task = manager.set_plugin_resource_overrides(
            "auditor", ResourceOverrides(allowed_tables=["orders"])
        )
        reloaded = await task

        assert reloaded is not None
        context = manager.get_plugin_context("auditor")
        assert context.database.get_allowed_tables() == ["orders"]

        task = manager.clear_plugin_resource_overrides("auditor")
        await task

        assert manager.get_plugin_resource_overrides("auditor") is None
        context = manager.get_plugin_context("auditor")
        assert context.database.get_allowed_tables() == ["audit_log"]

    @pytest.mark.asyncio
    async def test_failed_background_reload_resolves_to_none(self, manager: PluginManager,
                                                             loader: FakeLoader,
                                                             events: List[Event]) -> None:
        await manager.load_plugin(loader.add(make_plugin("auditor")))

        task = manager.set_plugin_resource_overrides(
            "auditor", ResourceOverrides(allowed_topics=["Not Valid"])
        )

        assert await task is None
        assert not manager.is_plugin_loaded("auditor")
        assert events[-1].name == SystemEvents.PLUGIN_FAILED
        assert isinstance(events[-1].data['error'], InvalidNamingConventionError)

    def test_overrides_outside_event_loop_are_stored(self, event_bus: EventBus,
                                                     loader: FakeLoader) -> None:
        manager = PluginManager(event_bus, loader=loader, config={'auto_load': False})
        asyncio.run(manager.load_plugin(loader.add(make_plugin("auditor"))))
        overrides = ResourceOverrides(allowed_tables=["orders"])

        assert manager.set_plugin_resource_overrides("auditor", overrides) is None
        assert manager.get_plugin_resource_overrides("auditor") is overrides
        assert manager.clear_plugin_resource_overrides("auditor") is None
        assert manager.is_plugin_loaded("auditor")

    @pytest.mark.asyncio
    async def test_load_with_overrides_stores_them(self, manager: PluginManager,
                                                   loader: FakeLoader) -> None:
        overrides = ResourceOverrides(allowed_buckets=["exports"])

        await manager.load_plugin(loader.add(make_plugin("auditor")), overrides)

        assert manager.get_plugin_resource_overrides("auditor") is overrides
        context = manager.get_plugin_context("auditor")
        assert context.object_store.get_allowed_buckets() == ["exports"]

    @pytest.mark.asyncio
    async def test_overrides_from_config(self, event_bus: EventBus, loader: FakeLoader,
                                         database_service: AsyncMock) -> None:
        manager = PluginManager(
            event_bus,
            loader=loader,
            database_service=database_service,
            config={
                'auto_load': False,
                'resource_overrides': {
                    'auditor': {'table_name_map': {'audit_log': 'audit_log_v2'}}
                }
            }
        )
        await manager.load_plugin(loader.add(make_plugin("auditor", allowed_tables=["audit_log"])))

        await manager.get_plugin_context("auditor").database.execute_query("SELECT * FROM audit_log")

        database_service.query.assert_awaited_once_with("SELECT * FROM auditor_audit_log_v2", [])


class TestDirectoryLoading:

    @pytest.fixture
    def file_manager(self, event_bus: EventBus) -> PluginManager:
        return PluginManager(event_bus, config={'auto_load': False})

    @pytest.mark.asyncio
    async def test_loads_in_dependency_order(self, file_manager: PluginManager,
                                             write_plugin: Callable[..., str],
                                             plugin_dir: Path, event_bus: EventBus) -> None:
        write_plugin("alpha", dependencies=["beta"], filename="a_alpha.py")
        write_plugin("beta", filename="b_beta.py")
        loaded: List[str] = []
        await event_bus.subscribe(SystemEvents.PLUGIN_LOADED, lambda event: loaded.append(event.data.name))

        await file_manager.load_plugins_from_directory(str(plugin_dir))

        assert loaded == ["beta", "alpha"]

    @pytest.mark.asyncio
    async def test_unresolvable_plugins_are_reported(self, file_manager: PluginManager,
                                                     write_plugin: Callable[..., str],
                                                     plugin_dir: Path) -> None:
        write_plugin("greeter")
        write_plugin("orphan", dependencies=["missing"])
        write_plugin("ping", dependencies=["pong"])
        write_plugin("pong", dependencies=["ping"])

        with pytest.raises(DependencyResolutionError) as exc_info:
            await file_manager.load_plugins_from_directory(str(plugin_dir))

        assert exc_info.value.unresolved_plugins == ["orphan", "ping", "pong"]
        assert file_manager.get_plugin_names() == ["greeter"]

    @pytest.mark.asyncio
    async def test_broken_files_are_skipped(self, file_manager: PluginManager,
                                            write_plugin: Callable[..., str],
                                            plugin_dir: Path) -> None:
        write_plugin("greeter")
        (plugin_dir / "broken.py").write_text("def broken(:\n")
        write_plugin("failing", body="""
            def initialize(context):
                raise RuntimeError("nope")
        """)

        await file_manager.load_plugins_from_directory(str(plugin_dir))

        assert file_manager.get_plugin_names() == ["greeter"]

    @pytest.mark.asyncio
    async def test_missing_directory_loads_nothing(self, file_manager: PluginManager,
                                                   tmp_path: Path) -> None:
        await file_manager.load_plugins_from_directory(str(tmp_path / "absent"))

        assert file_manager.get_plugin_names() == []


class TestManagerLifecycle:

    @pytest.mark.asyncio
    async def test_start_auto_loads_and_stop_unloads(self, write_plugin: Callable[..., str],
                                                     plugin_dir: Path) -> None:
        write_plugin("greeter", body="""
            async def execute(payload=None):
                return "hello"
        """)
        bus = EventBus(max_workers=1)
        manager = PluginManager(bus, config={'plugin_directory': str(plugin_dir)})

        await manager.start()
        try:
            assert bus.is_running
            assert manager.is_plugin_loaded("greeter")
            assert await manager.execute_plugin("greeter") == "hello"

            health = await manager.check_health()
            assert health['healthy'] is True
            assert health['status'] == 'running'
            assert health['details']['loaded_plugins'] == 1
            assert health['details']['plugins']['greeter']['state'] == 'loaded'
        finally:
            await manager.stop()

        assert not bus.is_running
        assert manager.get_plugin_names() == []
        assert (await manager.check_health())['status'] == 'stopped'

    @pytest.mark.asyncio
    async def test_start_logs_unresolved_plugins(self, write_plugin: Callable[..., str],
                                                 plugin_dir: Path) -> None:
        write_plugin("orphan", dependencies=["missing"])
        manager = PluginManager(EventBus(), config={'plugin_directory': str(plugin_dir)})

        await manager.start()
        await manager.stop()

        assert manager.get_plugin_names() == []
