"""tmux 宿主

用 tmux 自身的 pane/window 实现 surface：

- 内容 = 一个 pane，不显示时停放在隐藏的 stash 会话里（remain-on-exit on，
  进程退出后 pane 保留，可以读出退出码）
- 分屏 = join-pane 把 pane 拼到当前窗口；隐藏 = break-pane 送回 stash
- 标签页 = 把 pane 所在的 window 移到当前会话；隐藏 = 切换到相邻 window
- 浮动窗口 tmux 不支持，在修改任何状态之前拒绝

窗口 ID 就是 pane ID（%N），标签页 ID 是 window ID（@N）。
"""

import logging
import os
import subprocess
from typing import Optional

from ..errors import HostOperationFailed
from ..geometry import Rect
from ..models import HostExit, Mode
from .adapter import HostAdapter

logger = logging.getLogger(__name__)


class TmuxHost(HostAdapter):
    """基于 tmux 命令行的宿主"""

    def __init__(self, stash_session: str = "tfling-stash", timeout: float = 2.0):
        self.stash_session = stash_session
        self.timeout = timeout
        self._panes: set[str] = set()
        self._reported: set[tuple[str, int]] = set()

    @property
    def name(self) -> str:
        return "tmux"

    @property
    def supported_modes(self) -> frozenset:
        return frozenset({Mode.SPLIT, Mode.TAB})

    def _run(self, *args) -> subprocess.CompletedProcess:
        """执行 tmux 命令"""
        cmd = ['tmux'] + list(args)
        try:
            return subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except subprocess.TimeoutExpired:
            return subprocess.CompletedProcess(cmd, 1, '', 'timeout')
        except FileNotFoundError:
            return subprocess.CompletedProcess(cmd, 1, '', 'tmux not found')

    def _check(self, action: str, *args) -> str:
        """执行 tmux 命令，失败抛出 HostOperationFailed，返回去掉空白的输出"""
        result = self._run(*args)
        if result.returncode != 0:
            raise HostOperationFailed(action, f"tmux {' '.join(args)}: {result.stderr.strip()}")
        return result.stdout.strip()

    def _display(self, fmt: str, target: Optional[str] = None) -> Optional[str]:
        """读取格式变量，目标不存在时返回 None"""
        args = ['display-message', '-p']
        if target is not None:
            args += ['-t', target]
        result = self._run(*args, fmt)
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def is_available(self) -> tuple[bool, str]:
        """检查 tmux 是否可用"""
        result = self._run('-V')
        if result.returncode != 0:
            return False, "未找到 tmux，请安装: sudo apt install tmux"

        version = result.stdout.strip()

        if not os.environ.get('TMUX'):
            return False, f"tmux 已安装 ({version})，但当前不在 tmux 会话中"

        return True, f"tmux 可用 ({version})"

    # ========== 屏幕 ==========

    def get_screen_size(self) -> tuple[int, int]:
        output = self._check("get_screen_size", 'display-message', '-p', '#{window_width}\t#{window_height}')
        columns, lines = output.split('\t')
        return int(columns), int(lines)

    # ========== 内容 ==========

    def _ensure_stash(self) -> None:
        if self._run('has-session', '-t', f'={self.stash_session}').returncode == 0:
            return
        self._check("create_stash", 'new-session', '-d', '-s', self.stash_session, '-n', 'stash')
        logger.info(f"[tmux] 已创建 stash 会话: {self.stash_session}")

    def create_content(self, name: str) -> str:
        self._ensure_stash()
        pane_id = self._check(
            "create_content",
            'new-window', '-d', '-t', f'{self.stash_session}:', '-n', name, '-P', '-F', '#{pane_id}',
        )
        self._check("create_content", 'set-option', '-w', '-t', pane_id, 'remain-on-exit', 'on')
        self._panes.add(pane_id)
        logger.debug(f"[tmux] 新建内容 pane: {pane_id} ({name})")
        return pane_id

    def content_is_valid(self, content_id: str) -> bool:
        return self._display('#{pane_id}', content_id) == content_id

    def destroy_content(self, content_id: str) -> None:
        self._check("destroy_content", 'kill-pane', '-t', content_id)
        self._panes.discard(content_id)
        self._reported = {key for key in self._reported if key[0] != content_id}

    def start_process(self, content_id: str, command: str, cwd: Optional[str] = None) -> int:
        args = ['respawn-pane', '-k', '-t', content_id]
        if cwd:
            args += ['-c', cwd]
        args.append(command)
        self._check("start_process", *args)
        pid = self._display('#{pane_pid}', content_id)
        if not pid or not pid.isdigit():
            raise HostOperationFailed("start_process", f"无法读取 {content_id} 的 PID")
        return int(pid)

    def send_text(self, content_id: str, text: str) -> None:
        self._check("send_text", 'send-keys', '-t', content_id, '-l', text)

    # ========== 窗口 ==========

    def open_floating(self, content_id: str, rect: Rect) -> str:
        raise HostOperationFailed("open_floating", "tmux 不支持浮动窗口")

    def open_split(self, content_id: str, direction: str, size: int) -> str:
        target = self.current_window()
        if target is None:
            raise HostOperationFailed("open_split", "无法获取当前 pane")

        # tmux 的 -h 表示左右排列，-b 表示放在目标前面（左/上）
        args = ['join-pane', '-f', '-s', content_id, '-t', target, '-l', str(size)]
        if direction in ('left', 'right'):
            args.append('-h')
        else:
            args.append('-v')
        if direction in ('left', 'top'):
            args.append('-b')
        self._check("open_split", *args)
        return content_id

    def window_is_valid(self, window_id: str) -> bool:
        session = self._display('#{session_name}', window_id)
        return session is not None and session != self.stash_session

    def focus_window(self, window_id: str) -> None:
        self._check("focus_window", 'select-window', '-t', window_id)
        self._check("focus_window", 'select-pane', '-t', window_id)

    def close_window(self, window_id: str) -> None:
        """把 pane 送回 stash 会话（进程继续运行）"""
        panes = self._display('#{window_panes}', window_id)
        if panes == '1':
            tmux_window = self._display('#{window_id}', window_id)
            self._check("close_window", 'move-window', '-s', tmux_window, '-t', f'{self.stash_session}:')
        else:
            self._check("close_window", 'break-pane', '-d', '-s', window_id, '-t', f'{self.stash_session}:')

    def get_geometry(self, window_id: str) -> Rect:
        output = self._check(
            "get_geometry",
            'display-message', '-p', '-t', window_id,
            '#{pane_top}\t#{pane_left}\t#{pane_width}\t#{pane_height}',
        )
        row, col, width, height = (int(x) for x in output.split('\t'))
        return Rect(row=row, col=col, width=width, height=height)

    def set_geometry(self, window_id: str, rect: Rect) -> None:
        raise HostOperationFailed("set_geometry", "tmux 不支持浮动窗口")

    def set_width(self, window_id: str, width: int) -> None:
        self._check("set_width", 'resize-pane', '-t', window_id, '-x', str(width))

    def set_height(self, window_id: str, height: int) -> None:
        self._check("set_height", 'resize-pane', '-t', window_id, '-y', str(height))

    def current_window(self) -> Optional[str]:
        return self._display('#{pane_id}') or None

    # ========== 标签页 ==========

    def open_tab(
        self,
        content_id: str,
        title: Optional[str] = None,
        direction: Optional[str] = None,
        size: Optional[int] = None,
    ) -> tuple[str, str]:
        session = self._display('#{session_id}')
        if not session:
            raise HostOperationFailed("open_tab", "无法获取当前会话")

        tab_id = self._display('#{window_id}', content_id)
        if not tab_id:
            raise HostOperationFailed("open_tab", f"pane 不存在: {content_id}")
        if self._display('#{window_panes}', content_id) != '1':
            tab_id = self._check(
                "open_tab", 'break-pane', '-d', '-s', content_id, '-P', '-F', '#{window_id}',
            )

        self._check("open_tab", 'move-window', '-s', tab_id, '-t', f'{session}:')
        if title:
            self._check("open_tab", 'rename-window', '-t', tab_id, title)
        if direction is not None:
            # 空白 pane 放在内容的另一侧，再把内容 pane 调整到目标尺寸
            args = ['split-window', '-d', '-t', content_id]
            args.append('-h' if direction in ('left', 'right') else '-v')
            if direction in ('right', 'bottom'):
                args.append('-b')
            self._check("open_tab", *args)
            axis = '-x' if direction in ('left', 'right') else '-y'
            self._check("open_tab", 'resize-pane', '-t', content_id, axis, str(size))
        self._check("open_tab", 'select-window', '-t', tab_id)
        return tab_id, content_id

    def tab_is_valid(self, tab_id: str) -> bool:
        session = self._display('#{session_name}', tab_id)
        return session is not None and session != self.stash_session

    def focus_tab(self, tab_id: str) -> None:
        self._check("focus_tab", 'select-window', '-t', tab_id)

    def switch_away_from_tab(self, tab_id: str) -> None:
        if self._display('#{window_id}') != tab_id:
            return
        windows = self._check("switch_away_from_tab", 'list-windows', '-F', '#{window_id}').splitlines()
        if tab_id not in windows or len(windows) < 2:
            return
        index = windows.index(tab_id)
        target = windows[index - 1] if index > 0 else windows[1]
        self._check("switch_away_from_tab", 'select-window', '-t', target)

    def close_tab(self, tab_id: str) -> None:
        self._check("close_tab", 'kill-window', '-t', tab_id)

    # ========== 进程 ==========

    def poll_exits(self) -> list[HostExit]:
        """通过 #{pane_dead} 检测已退出的进程"""
        if not self._panes:
            return []
        result = self._run(
            'list-panes', '-a', '-F', '#{pane_id}\t#{pane_dead}\t#{pane_dead_status}\t#{pane_pid}',
        )
        if result.returncode != 0:
            logger.debug(f"[tmux] list-panes 失败: {result.stderr.strip()}")
            return []

        exits = []
        alive = set()
        for line in result.stdout.splitlines():
            parts = line.split('\t')
            if len(parts) != 4 or parts[0] not in self._panes:
                continue
            pane_id, dead, status, pid = parts
            alive.add(pane_id)
            if dead != '1' or not pid.isdigit():
                continue
            key = (pane_id, int(pid))
            if key in self._reported:
                continue
            self._reported.add(key)
            exits.append(HostExit(pane_id, int(pid), int(status) if status.isdigit() else None))

        # 被外部关闭的 pane 不再跟踪
        self._panes &= alive
        self._reported = {key for key in self._reported if key[0] in self._panes}
        return exits
