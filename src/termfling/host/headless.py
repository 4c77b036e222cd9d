"""无界面宿主

完全在内存中模拟窗口、内容和标签页，支持所有展示模式。
用于测试、演示和没有可用宿主时的试运行，并提供：

- simulate_exit(): 模拟进程退出
- close_externally(): 模拟用户在宿主侧关闭窗口
- fail_on: 指定操作名，下一次调用时抛出 HostOperationFailed
- reuse_ids: 复用已释放的窗口 ID，用于验证句柄代数
"""

import itertools
import logging
from dataclasses import dataclass, field, replace
from typing import Optional

from ..errors import HostOperationFailed
from ..geometry import Rect
from ..models import HostExit, Mode
from .adapter import HostAdapter

logger = logging.getLogger(__name__)

MAIN_TAB = "tab-0"
MAIN_WINDOW = "win-0"


@dataclass
class HeadlessContent:
    """内存中的内容容器"""
    content_id: str
    name: str
    pid: Optional[int] = None
    running: bool = False
    command: Optional[str] = None
    cwd: Optional[str] = None
    received: list[str] = field(default_factory=list)


@dataclass
class HeadlessWindow:
    """内存中的窗口"""
    window_id: str
    content_id: Optional[str]
    kind: Mode
    rect: Rect
    tab_id: str = MAIN_TAB


class HeadlessHost(HostAdapter):
    """内存宿主"""

    def __init__(self, columns: int = 120, lines: int = 40, reuse_ids: bool = False):
        self.columns = columns
        self.lines = lines
        self.reuse_ids = reuse_ids
        self.fail_on: set[str] = set()
        self.calls: list[tuple] = []

        self.contents: dict[str, HeadlessContent] = {}
        self.windows: dict[str, HeadlessWindow] = {
            MAIN_WINDOW: HeadlessWindow(MAIN_WINDOW, None, Mode.TAB, Rect(0, 0, columns, lines)),
        }
        self.tabs: list[str] = [MAIN_TAB]
        self.tab_windows: dict[str, str] = {MAIN_TAB: MAIN_WINDOW}
        self.current_tab: str = MAIN_TAB
        self.focused: Optional[str] = MAIN_WINDOW

        self._ids = itertools.count(1)
        self._pids = itertools.count(1000)
        self._free_window_ids: list[str] = []
        self._exits: list[HostExit] = []

    @property
    def name(self) -> str:
        return "headless"

    # ========== 内部工具 ==========

    def _record(self, op: str, *args) -> None:
        self.calls.append((op,) + args)
        if op in self.fail_on:
            self.fail_on.discard(op)
            raise HostOperationFailed(op, "模拟失败")

    def _new_window_id(self) -> str:
        if self.reuse_ids and self._free_window_ids:
            self._free_window_ids.sort()
            return self._free_window_ids.pop(0)
        return f"win-{next(self._ids)}"

    def _window(self, window_id: str) -> HeadlessWindow:
        win = self.windows.get(window_id)
        if win is None:
            raise HostOperationFailed("window", f"窗口不存在: {window_id}")
        return win

    def _content(self, content_id: str) -> HeadlessContent:
        content = self.contents.get(content_id)
        if content is None:
            raise HostOperationFailed("content", f"内容不存在: {content_id}")
        return content

    def _drop_window(self, window_id: str) -> None:
        win = self.windows.pop(window_id)
        self._free_window_ids.append(window_id)
        if self.focused == window_id:
            self.focused = self.tab_windows.get(win.tab_id)
            if self.focused == window_id:
                self.focused = None

    def calls_named(self, op: str) -> list[tuple]:
        """测试辅助：筛选某个操作的调用记录"""
        return [call for call in self.calls if call[0] == op]

    # ========== 屏幕 ==========

    def get_screen_size(self) -> tuple[int, int]:
        return self.columns, self.lines

    # ========== 内容 ==========

    def create_content(self, name: str) -> str:
        self._record("create_content", name)
        content_id = f"buf-{next(self._ids)}"
        self.contents[content_id] = HeadlessContent(content_id, name)
        return content_id

    def content_is_valid(self, content_id: str) -> bool:
        return content_id in self.contents

    def destroy_content(self, content_id: str) -> None:
        self._record("destroy_content", content_id)
        content = self._content(content_id)
        for window_id in [w.window_id for w in self.windows.values() if w.content_id == content_id]:
            if self.windows[window_id].kind is Mode.TAB:
                self.windows[window_id].content_id = None
            else:
                self._drop_window(window_id)
        content.running = False
        del self.contents[content_id]

    def start_process(self, content_id: str, command: str, cwd: Optional[str] = None) -> int:
        self._record("start_process", content_id, command)
        content = self._content(content_id)
        content.pid = next(self._pids)
        content.running = True
        content.command = command
        content.cwd = cwd
        return content.pid

    def send_text(self, content_id: str, text: str) -> None:
        self._record("send_text", content_id, text)
        content = self._content(content_id)
        if not content.running:
            raise HostOperationFailed("send_text", f"进程未运行: {content_id}")
        content.received.append(text)

    # ========== 窗口 ==========

    def open_floating(self, content_id: str, rect: Rect) -> str:
        self._record("open_floating", content_id, rect)
        self._content(content_id)
        window_id = self._new_window_id()
        self.windows[window_id] = HeadlessWindow(window_id, content_id, Mode.FLOATING, rect, self.current_tab)
        self.focused = window_id
        return window_id

    def _split_rect(self, direction: str, size: int) -> Rect:
        if direction == "left":
            return Rect(0, 0, size, self.lines)
        if direction == "right":
            return Rect(0, self.columns - size, size, self.lines)
        if direction == "top":
            return Rect(0, 0, self.columns, size)
        return Rect(self.lines - size, 0, self.columns, size)

    def open_split(self, content_id: str, direction: str, size: int) -> str:
        self._record("open_split", content_id, direction, size)
        self._content(content_id)
        rect = self._split_rect(direction, size)
        window_id = self._new_window_id()
        self.windows[window_id] = HeadlessWindow(window_id, content_id, Mode.SPLIT, rect, self.current_tab)
        self.focused = window_id
        return window_id

    def window_is_valid(self, window_id: str) -> bool:
        return window_id in self.windows

    def focus_window(self, window_id: str) -> None:
        self._record("focus_window", window_id)
        win = self._window(window_id)
        self.current_tab = win.tab_id
        self.focused = window_id

    def close_window(self, window_id: str) -> None:
        self._record("close_window", window_id)
        self._window(window_id)
        self._drop_window(window_id)

    def close_externally(self, window_id: str) -> None:
        """模拟宿主侧关闭窗口（不记录为调用）"""
        self._drop_window(window_id)

    def get_geometry(self, window_id: str) -> Rect:
        return self._window(window_id).rect

    def set_geometry(self, window_id: str, rect: Rect) -> None:
        self._record("set_geometry", window_id, rect)
        win = self._window(window_id)
        if win.kind is not Mode.FLOATING:
            raise HostOperationFailed("set_geometry", f"不是浮动窗口: {window_id}")
        win.rect = rect

    def set_width(self, window_id: str, width: int) -> None:
        self._record("set_width", window_id, width)
        win = self._window(window_id)
        win.rect = replace(win.rect, width=width)

    def set_height(self, window_id: str, height: int) -> None:
        self._record("set_height", window_id, height)
        win = self._window(window_id)
        win.rect = replace(win.rect, height=height)

    def current_window(self) -> Optional[str]:
        return self.focused

    # ========== 标签页 ==========

    def open_tab(
        self,
        content_id: str,
        title: Optional[str] = None,
        direction: Optional[str] = None,
        size: Optional[int] = None,
    ) -> tuple[str, str]:
        self._record("open_tab", content_id, title, direction, size)
        self._content(content_id)
        tab_id = f"tab-{next(self._ids)}"
        window_id = self._new_window_id()
        # 标签页内分屏时只记录内容窗口，空白部分不建模
        if direction is None:
            rect = Rect(0, 0, self.columns, self.lines)
        else:
            rect = self._split_rect(direction, size)
        self.windows[window_id] = HeadlessWindow(window_id, content_id, Mode.TAB, rect, tab_id)
        self.tabs.append(tab_id)
        self.tab_windows[tab_id] = window_id
        self.current_tab = tab_id
        self.focused = window_id
        return tab_id, window_id

    def tab_is_valid(self, tab_id: str) -> bool:
        return tab_id in self.tabs

    def focus_tab(self, tab_id: str) -> None:
        self._record("focus_tab", tab_id)
        if tab_id not in self.tabs:
            raise HostOperationFailed("focus_tab", f"标签页不存在: {tab_id}")
        self.current_tab = tab_id
        self.focused = self.tab_windows.get(tab_id)

    def switch_away_from_tab(self, tab_id: str) -> None:
        self._record("switch_away_from_tab", tab_id)
        if self.current_tab != tab_id or tab_id not in self.tabs:
            return
        index = self.tabs.index(tab_id)
        if index > 0:
            target = self.tabs[index - 1]
        elif len(self.tabs) > 1:
            target = self.tabs[1]
        else:
            return
        self.current_tab = target
        self.focused = self.tab_windows.get(target)

    def close_tab(self, tab_id: str) -> None:
        self._record("close_tab", tab_id)
        if tab_id not in self.tabs:
            raise HostOperationFailed("close_tab", f"标签页不存在: {tab_id}")
        self.switch_away_from_tab(tab_id)
        for window_id in [w.window_id for w in self.windows.values() if w.tab_id == tab_id]:
            self._drop_window(window_id)
        self.tabs.remove(tab_id)
        self.tab_windows.pop(tab_id, None)

    # ========== 进程 ==========

    def simulate_exit(self, content_id: str, exit_code: int = 0) -> HostExit:
        """模拟内容中的进程退出，返回将被 poll_exits 上报的记录"""
        content = self._content(content_id)
        content.running = False
        record = HostExit(content_id, content.pid, exit_code)
        self._exits.append(record)
        return record

    def poll_exits(self) -> list[HostExit]:
        exits, self._exits = self._exits, []
        return exits
