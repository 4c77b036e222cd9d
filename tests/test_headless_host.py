"""无界面宿主测试"""

import pytest

from termfling.errors import HostOperationFailed
from termfling.geometry import Rect
from termfling.host.headless import HeadlessHost, MAIN_TAB, MAIN_WINDOW
from termfling.models import HostExit, Mode


class TestContent:
    """内容与进程"""

    def test_create_and_start(self, host):
        content_id = host.create_content("a")
        pid = host.start_process(content_id, "bash", cwd="/tmp")
        assert host.content_is_valid(content_id)
        assert pid == 1000
        assert host.contents[content_id].cwd == "/tmp"

    def test_send_requires_running(self, host):
        content_id = host.create_content("a")
        with pytest.raises(HostOperationFailed):
            host.send_text(content_id, "x")

    def test_destroy_closes_windows(self, host):
        content_id = host.create_content("a")
        window_id = host.open_floating(content_id, Rect(0, 0, 10, 10))
        host.destroy_content(content_id)
        assert not host.window_is_valid(window_id)
        assert host.focused == MAIN_WINDOW

    def test_simulate_exit(self, host):
        content_id = host.create_content("a")
        pid = host.start_process(content_id, "bash")
        record = host.simulate_exit(content_id, 2)
        assert record == HostExit(content_id, pid, 2)
        assert host.poll_exits() == [record]
        assert host.poll_exits() == []


class TestWindows:
    """窗口"""

    def test_split_rects(self):
        host = HeadlessHost(columns=100, lines=30)
        content_id = host.create_content("a")
        expected = {
            "left": Rect(0, 0, 20, 30),
            "right": Rect(0, 80, 20, 30),
            "top": Rect(0, 0, 100, 20),
            "bottom": Rect(10, 0, 100, 20),
        }
        for direction, rect in expected.items():
            window_id = host.open_split(content_id, direction, 20)
            assert host.get_geometry(window_id) == rect

    def test_set_geometry_floating_only(self, host):
        content_id = host.create_content("a")
        window_id = host.open_split(content_id, "left", 20)
        with pytest.raises(HostOperationFailed):
            host.set_geometry(window_id, Rect(0, 0, 5, 5))

    def test_fail_on_is_one_shot(self, host):
        host.fail_on.add("create_content")
        with pytest.raises(HostOperationFailed):
            host.create_content("a")
        assert host.create_content("a")

    def test_reuse_ids(self):
        host = HeadlessHost(reuse_ids=True)
        content_id = host.create_content("a")
        first = host.open_floating(content_id, Rect(0, 0, 10, 10))
        host.close_window(first)
        assert host.open_floating(content_id, Rect(0, 0, 10, 10)) == first

    def test_no_reuse_by_default(self, host):
        content_id = host.create_content("a")
        first = host.open_floating(content_id, Rect(0, 0, 10, 10))
        host.close_window(first)
        assert host.open_floating(content_id, Rect(0, 0, 10, 10)) != first

    def test_missing_window(self, host):
        with pytest.raises(HostOperationFailed):
            host.focus_window("win-99")


class TestTabs:
    """标签页"""

    def test_open_and_switch_away(self, host):
        content_id = host.create_content("a")
        tab_id, window_id = host.open_tab(content_id, "a")
        assert host.current_tab == tab_id
        assert host.current_window() == window_id
        assert host.windows[window_id].kind is Mode.TAB

        host.switch_away_from_tab(tab_id)
        assert host.current_tab == MAIN_TAB
        assert host.tab_is_valid(tab_id)

    def test_switch_away_when_not_current(self, host):
        content_id = host.create_content("a")
        tab_id, _ = host.open_tab(content_id)
        host.focus_tab(MAIN_TAB)
        host.switch_away_from_tab(tab_id)
        assert host.current_tab == MAIN_TAB

    def test_open_tab_with_split(self, host):
        content_id = host.create_content("a")
        tab_id, window_id = host.open_tab(content_id, "a", "bottom", 10)
        assert host.windows[window_id].rect == Rect(row=30, col=0, width=120, height=10)
        assert host.windows[window_id].tab_id == tab_id
        assert host.calls_named("open_tab")[0] == ("open_tab", content_id, "a", "bottom", 10)

    def test_close_tab(self, host):
        content_id = host.create_content("a")
        tab_id, window_id = host.open_tab(content_id)
        host.close_tab(tab_id)
        assert not host.tab_is_valid(tab_id)
        assert not host.window_is_valid(window_id)
        assert host.current_tab == MAIN_TAB
