"""Surface 生命周期测试"""

from unittest.mock import patch

import pytest

from termfling.errors import (
    ConfigurationError,
    HostOperationFailed,
    InvalidUnitToken,
    ReentrantCallError,
    SessionBackendUnavailable,
)
from termfling.geometry import Rect
from termfling.host.headless import HeadlessHost, MAIN_WINDOW
from termfling.models import Mode, ProcessExited, ProcessHandle, WindowClosed
from termfling.presentation import FloatingConfig
from termfling.registry import Registry
from termfling.surface import SurfaceSpec


class TestSurfaceSpec:
    """定义校验"""

    def test_empty_name(self):
        with pytest.raises(ConfigurationError):
            SurfaceSpec(name=" ").validate()
        with pytest.raises(ConfigurationError):
            SurfaceSpec().validate()

    def test_name_from_command(self):
        assert SurfaceSpec(command="htop").validate().name == "htop"
        assert SurfaceSpec(command="htop", init="q").validate().name == "htop"

    def test_name_from_init(self):
        assert SurfaceSpec(init="tail -f log\n").validate().name == "tail -f log\n"
        # 可调用的 init 不能作为名称
        with pytest.raises(ConfigurationError):
            SurfaceSpec(init=lambda surface: None).validate()

    def test_session_needs_command(self):
        with pytest.raises(ConfigurationError):
            SurfaceSpec(name="a", session="tmux").validate()

    def test_unknown_session(self):
        with pytest.raises(ConfigurationError):
            SurfaceSpec(name="a", command="bash", session="screen").validate()

    def test_bad_hooks(self):
        with pytest.raises(ConfigurationError):
            SurfaceSpec(name="a", setup="not callable").validate()
        with pytest.raises(ConfigurationError):
            SurfaceSpec(name="a", init=42).validate()

    def test_negative_delay(self):
        with pytest.raises(ConfigurationError):
            SurfaceSpec(name="a", send_delay=-1).validate()


class TestColdStart:
    """冷启动"""

    def test_floating_scenario(self, registry, host):
        """120x40 屏幕上居中 80% x 60% 的浮动窗口"""
        surface = registry.open("logs", {"width": "80%", "height": "60%", "position": "center"},
                                SurfaceSpec(name="logs", command="tail -f log"))
        assert surface.mode is Mode.FLOATING
        window = host.windows[surface.window_handle.window_id]
        assert window.rect == Rect(row=8, col=12, width=96, height=24)
        assert host.contents[surface.content_handle.content_id].command == "tail -f log"
        assert surface.process_handle.pid == 1000
        assert [c[0] for c in host.calls] == ["create_content", "open_floating", "start_process"]

    def test_default_floating(self, registry, host):
        surface = registry.open("a")
        rect = host.windows[surface.window_handle.window_id].rect
        assert rect == Rect(row=2, col=12, width=96, height=32)
        # 普通内容面板不启动进程
        assert surface.process_handle is None
        assert host.calls_named("start_process") == []

    def test_split(self, registry, host):
        surface = registry.open("a", {"position": "split-left"})
        assert surface.mode is Mode.SPLIT
        assert host.calls_named("open_split") == [("open_split", surface.content_handle.content_id, "left", 36)]

    def test_open_twice_focuses(self, registry, host):
        surface = registry.open("a")
        registry.open("a")
        assert len(host.calls_named("open_floating")) == 1
        assert host.calls_named("focus_window") == [("focus_window", surface.window_handle.window_id)]

    def test_init_string_sent(self, registry, host, scheduler):
        surface = registry.open("a", None, SurfaceSpec(name="a", command="bash", init="echo hi\n"))
        content = host.contents[surface.content_handle.content_id]
        assert content.received == []
        scheduler.advance(0.1)
        assert content.received == ["echo hi\n"]

    def test_init_runs_once(self, registry):
        seen = []
        spec = SurfaceSpec(name="a", command="bash", init=lambda s: seen.append(s.name))
        registry.open("a", None, spec)
        registry.hide("a")
        registry.open("a")
        assert seen == ["a"]

    def test_setup_and_always_run_every_show(self, host, scheduler, settings):
        shown = []
        registry = Registry(host, scheduler, settings, always=lambda s: shown.append(("always", s.name)))
        spec = SurfaceSpec(name="a", setup=lambda s: shown.append(("setup", s.name)))
        registry.open("a", None, spec)
        registry.hide("a")
        registry.open("a")
        assert shown == [("setup", "a"), ("always", "a")] * 2


class TestNoMutationOnBadInput:
    """配置或会话后端错误时不修改宿主"""

    def test_bad_token(self, registry, host):
        with pytest.raises(ConfigurationError):
            registry.open("a", {"width": "wide"})
        assert host.calls == []

    def test_bad_token_in_config_object(self, registry, host):
        with pytest.raises(InvalidUnitToken):
            registry.open("a", FloatingConfig(width="wide"))
        assert host.calls == []

    def test_unsupported_mode(self, scheduler, settings):
        class SplitOnlyHost(HeadlessHost):
            supported_modes = frozenset({Mode.SPLIT})

        host = SplitOnlyHost()
        registry = Registry(host, scheduler, settings)
        with pytest.raises(HostOperationFailed):
            registry.open("a", {"position": "center"})
        assert host.calls == []

    @patch("termfling.sessions.subprocess.run")
    def test_session_unavailable(self, mock_run, registry, host):
        mock_run.side_effect = FileNotFoundError("tmux")
        spec = SurfaceSpec(name="a", command="bash", session="tmux")
        with pytest.raises(SessionBackendUnavailable):
            registry.open("a", None, spec)
        assert host.calls == []

    @patch("termfling.sessions.subprocess.run")
    def test_session_fallback(self, mock_run, registry, host, settings):
        mock_run.side_effect = FileNotFoundError("tmux")
        settings.fallback_to_raw_command = True
        surface = registry.open("a", None, SurfaceSpec(name="a", command="bash", session="tmux"))
        assert surface.backing_command == "bash"


class TestRollback:
    """冷启动失败时回滚"""

    def test_process_start_fails(self, registry, host):
        host.fail_on.add("start_process")
        with pytest.raises(HostOperationFailed):
            registry.open("a", None, SurfaceSpec(name="a", command="bash"))
        # 没有留下内容的新条目被移除
        assert "a" not in registry
        assert list(host.windows) == [MAIN_WINDOW]
        assert host.contents == {}
        assert registry.consistency_errors() == []

    def test_window_fails(self, registry, host):
        host.fail_on.add("open_floating")
        with pytest.raises(HostOperationFailed):
            registry.open("a")
        assert host.contents == {}
        assert len(host.calls_named("destroy_content")) == 1

    def test_retry_after_failure(self, registry, host):
        host.fail_on.add("start_process")
        with pytest.raises(HostOperationFailed):
            registry.open("a", None, SurfaceSpec(name="a", command="bash"))
        surface = registry.open("a", None, SurfaceSpec(name="a", command="bash"))
        assert surface.is_open()
        assert surface.process_handle is not None


class TestReentrancy:
    """生命周期操作不可重入"""

    def test_init_calling_hide(self, registry):
        spec = SurfaceSpec(name="a", init=lambda s: s.hide())
        with pytest.raises(ReentrantCallError) as exc:
            registry.open("a", None, spec)
        assert exc.value.running == "open"
        assert exc.value.operation == "hide"
        # 锁已释放
        assert registry.get("a").hide() is True

    def test_setup_runs_outside_guard(self, registry, host):
        spec = SurfaceSpec(name="a", setup=lambda s: s.resize({"width": 60}))
        surface = registry.open("a", None, spec)
        assert host.windows[surface.window_handle.window_id].rect.width == 60


class TestHide:
    """隐藏"""

    def test_hide_keeps_content(self, registry, host):
        surface = registry.open("a", None, SurfaceSpec(name="a", command="bash"))
        content_id = surface.content_handle.content_id
        assert registry.hide("a") is True
        assert surface.window_handle is None
        assert content_id in host.contents
        assert surface.info().state == "hidden"

    def test_hide_hidden(self, registry):
        registry.open("a")
        registry.hide("a")
        assert registry.hide("a") is False

    def test_reopen_keeps_process(self, registry, host):
        surface = registry.open("a", None, SurfaceSpec(name="a", command="bash"))
        pid = surface.process_handle.pid
        registry.hide("a")
        registry.open("a", {"position": "split-bottom"})
        assert surface.mode is Mode.SPLIT
        assert surface.process_handle.pid == pid
        assert len(host.calls_named("start_process")) == 1

    def test_ephemeral_destroys_content(self, registry, host):
        surface = registry.open("a", None, SurfaceSpec(name="a", command="bash", ephemeral=True))
        registry.hide("a")
        assert surface.content_handle is None
        assert host.contents == {}
        assert surface.info().state == "closed"

    def test_tab_hide_switches_away(self, registry, host):
        surface = registry.open("t", {"mode": "tab"})
        tab_id = surface.tab_handle.tab_id
        assert host.current_tab == tab_id
        registry.hide("t")
        assert host.current_tab == "tab-0"
        assert surface.tab_handle.tab_id == tab_id
        assert surface.is_open()

    def test_tab_with_split(self, registry, host):
        surface = registry.open("t", {"mode": "tab", "direction": "left", "size": "25%"})
        window = host.windows[surface.window_handle.window_id]
        assert window.tab_id == surface.tab_handle.tab_id
        assert window.rect == Rect(row=0, col=0, width=30, height=40)
        assert host.calls_named("open_tab")[0][2:] == ("t", "left", 30)

    def test_tab_split_bad_size_no_mutation(self, registry, host):
        with pytest.raises(ConfigurationError):
            registry.open("t", {"mode": "tab", "direction": "left", "size": "lots"})
        assert host.calls == []

    def test_tab_reopen_reuses_tab(self, registry, host):
        surface = registry.open("t", {"mode": "tab"})
        handle = surface.tab_handle
        registry.hide("t")
        registry.open("t", {"mode": "tab"})
        assert surface.tab_handle == handle
        assert len(host.calls_named("open_tab")) == 1
        assert host.current_tab == handle.tab_id


class TestToggle:
    """切换"""

    def test_toggle_updates_floating_geometry(self, registry, host):
        surface = registry.open("a")
        registry.toggle("a", {"position": "center", "width": 40, "height": 10})
        rect = host.windows[surface.window_handle.window_id].rect
        assert rect == Rect(row=15, col=40, width=40, height=10)
        assert surface.last_config.width == 40

    def test_toggle_opens_closed(self, registry):
        surface = registry.toggle("a", {"position": "split-top"})
        assert surface.is_open()

    def test_toggle_without_config_hides(self, registry):
        surface = registry.open("a")
        registry.toggle("a")
        assert not surface.is_visible()


class TestClose:
    """关闭"""

    def test_close_destroys_everything(self, registry, host):
        registry.open("t", {"mode": "tab"}, SurfaceSpec(name="t", command="bash"))
        registry.close("t")
        assert "t" not in registry
        assert host.contents == {}
        assert host.tabs == ["tab-0"]
        assert list(host.windows) == [MAIN_WINDOW]

    @patch("termfling.sessions.subprocess.run")
    def test_close_kills_session(self, mock_run, registry):
        mock_run.return_value.returncode = 0
        surface = registry.open("a", None, SurfaceSpec(name="a", command="bash", session="tmux"))
        assert surface.backing_command == "tmux attach -t tfling-a"
        registry.close("a", kill_session=True)
        assert mock_run.call_args[0][0] == ["tmux", "kill-session", "-t", "tfling-a"]


class TestEvents:
    """宿主事件"""

    def test_process_exit(self, registry, host):
        surface = registry.open("a", None, SurfaceSpec(name="a", command="bash"))
        handle = surface.process_handle
        assert registry.dispatch(ProcessExited(handle, 0)) is True
        assert surface.process_handle is None
        # 非临时 surface 保留窗口
        assert surface.is_open()

    def test_stale_exit_ignored(self, registry):
        surface = registry.open("a", None, SurfaceSpec(name="a", command="bash"))
        handle = surface.process_handle
        stale = ProcessHandle(handle.pid, handle.generation + 100)
        assert surface.handle_event(ProcessExited(stale, 1)) is False
        assert registry.dispatch(ProcessExited(stale, 1)) is False
        assert surface.process_handle == handle

    def test_ephemeral_exit_closes(self, registry, host):
        surface = registry.open("a", None, SurfaceSpec(name="a", command="bash", ephemeral=True))
        registry.dispatch(ProcessExited(surface.process_handle, 0))
        assert surface.window_handle is None
        assert surface.content_handle is None
        assert registry.current_name is None

    def test_restart_after_exit(self, registry, host):
        surface = registry.open("a", None, SurfaceSpec(name="a", command="bash"))
        registry.dispatch(ProcessExited(surface.process_handle, 0))
        registry.hide("a")
        registry.open("a")
        assert len(host.calls_named("start_process")) == 2
        assert surface.process_handle.pid == 1001

    def test_window_closed_externally(self, registry, host):
        surface = registry.open("a")
        window_id = surface.window_handle.window_id
        host.close_externally(window_id)
        assert registry.dispatch(WindowClosed(window_id)) is True
        assert surface.window_handle is None
        assert surface.content_handle is not None
        assert registry.consistency_errors() == []

    def test_stale_window_detected_on_query(self, registry, host):
        surface = registry.open("a")
        host.close_externally(surface.window_handle.window_id)
        assert surface.is_open() is False
        assert len(registry.index) == 0


class TestSend:
    """延时发送"""

    def test_coalesced(self, registry, host, scheduler):
        surface = registry.open("a", None, SurfaceSpec(name="a", command="bash"))
        assert surface.send("ls") is True
        assert surface.send(" -l\n") is True
        assert scheduler.pending == 1
        scheduler.advance(0.1)
        assert host.contents[surface.content_handle.content_id].received == ["ls -l\n"]

    def test_custom_delay(self, registry, host, scheduler):
        surface = registry.open("a", None, SurfaceSpec(name="a", command="bash", send_delay=500))
        surface.send("x")
        scheduler.advance(0.1)
        assert host.calls_named("send_text") == []
        scheduler.advance(0.5)
        assert len(host.calls_named("send_text")) == 1

    def test_no_process(self, registry, scheduler):
        surface = registry.open("a")
        assert surface.send("x") is False
        assert scheduler.pending == 0

    def test_dropped_after_exit(self, registry, host, scheduler):
        surface = registry.open("a", None, SurfaceSpec(name="a", command="bash"))
        surface.send("x")
        registry.dispatch(ProcessExited(surface.process_handle, 0))
        scheduler.advance(0.1)
        assert host.calls_named("send_text") == []

    def test_dropped_after_restart(self, registry, host, scheduler):
        surface = registry.open("a", None, SurfaceSpec(name="a", command="bash"))
        surface.send("old")
        registry.dispatch(ProcessExited(surface.process_handle, 0))
        registry.hide("a")
        registry.open("a")
        surface.send("new")
        scheduler.advance(0.1)
        assert host.contents[surface.content_handle.content_id].received == ["new"]
