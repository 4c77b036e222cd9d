"""界面测试"""

import pytest

from termfling.app import SurfaceItem, TermflingApp, spec_from_entry
from termfling.config import Config, SurfaceEntry
from termfling.registry import Registry
from termfling.scheduling import AppScheduler


@pytest.fixture
def app_config():
    return Config(surfaces=[
        SurfaceEntry(name="shell", command="bash", window={"direction": "bottom"}),
        SurfaceEntry(name="notes"),
    ])


@pytest.fixture
def app(host, app_config):
    return TermflingApp(Registry(host, settings=app_config), app_config, poll=False)


class TestSpecFromEntry:
    """配置项转换"""

    def test_fields(self):
        spec = spec_from_entry(SurfaceEntry(name="a", command="bash", session="tmux", ephemeral=True))
        assert spec.name == "a"
        assert spec.session == "tmux"
        assert spec.ephemeral is True


class TestApp:
    """TermflingApp"""

    def test_uses_app_scheduler(self, app):
        assert isinstance(app.registry.scheduler, AppScheduler)

    @pytest.mark.asyncio
    async def test_lists_configured_surfaces(self, app):
        async with app.run_test() as pilot:
            await pilot.pause()
            items = list(app.query(SurfaceItem))
            assert [item.surface_name for item in items] == ["shell", "notes"]
            assert all(item.surface_state == "closed" for item in items)

    @pytest.mark.asyncio
    async def test_toggle_name(self, app, host):
        async with app.run_test() as pilot:
            app.toggle_name("shell")
            await pilot.pause()
            surface = app.registry.get("shell")
            assert surface.is_open()
            assert host.calls_named("open_split")[0][2] == "bottom"

            app.toggle_name("shell")
            await pilot.pause()
            assert not surface.is_visible()

    @pytest.mark.asyncio
    async def test_next_key(self, app):
        async with app.run_test() as pilot:
            app.toggle_name("notes")
            app.registry.hide("notes")
            await pilot.press("n")
            await pilot.pause()
            assert app.registry.current_name == "notes"

    @pytest.mark.asyncio
    async def test_error_is_notified(self, app, host):
        async with app.run_test() as pilot:
            host.fail_on.add("create_content")
            app.toggle_name("notes")
            await pilot.pause()
            # 首次打开失败不留下空条目，列表仍显示配置项
            assert "notes" not in app.registry
            assert [item.surface_name for item in app.query(SurfaceItem)] == ["shell", "notes"]

    @pytest.mark.asyncio
    async def test_monitor_cache_follows_registry(self, app):
        async with app.run_test() as pilot:
            app.process_monitor._procs[4242] = object()
            app.toggle_name("shell")
            await pilot.pause()
            assert 4242 not in app.process_monitor._procs
