"""数据模型

句柄都是不可变值，并带有代数（generation）。宿主可能复用已关闭窗口的 ID，
代数不同的两个句柄即使 ID 相同也不相等，避免旧句柄错误地指向新窗口。
"""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Optional


class Mode(str, Enum):
    """展示模式"""
    FLOATING = "floating"
    SPLIT = "split"
    TAB = "tab"


@dataclass(frozen=True)
class WindowHandle:
    """宿主窗口句柄"""
    window_id: str
    generation: int


@dataclass(frozen=True)
class TabHandle:
    """宿主标签页句柄"""
    tab_id: str
    generation: int


@dataclass(frozen=True)
class ContentHandle:
    """内容容器句柄（终端缓冲区 / tmux pane）"""
    content_id: str
    generation: int


@dataclass(frozen=True)
class ProcessHandle:
    """后台进程句柄"""
    pid: int
    generation: int


# ========== 事件 ==========

@dataclass(frozen=True)
class ProcessExited:
    """进程退出通知

    process 必须与 surface 当前持有的句柄完全相同（含代数），否则视为过期事件。
    """
    process: ProcessHandle
    exit_code: Optional[int] = None


@dataclass(frozen=True)
class WindowClosed:
    """宿主侧关闭了窗口（例如用户手动关闭 pane）"""
    window_id: str


@dataclass(frozen=True)
class HostExit:
    """宿主上报的原始退出记录（尚未映射到句柄）"""
    content_id: str
    pid: int
    exit_code: Optional[int] = None


@dataclass
class SurfaceInfo:
    """list() 返回的单个 surface 摘要"""
    name: str
    mode: Optional[Mode]
    window_id: Optional[str]
    tab_id: Optional[str]
    pid: Optional[int]
    is_open: bool
    has_content: bool = False
    is_current: bool = False
    command: Optional[str] = None

    @property
    def state(self) -> str:
        """状态文字"""
        if self.is_open:
            return "open"
        if self.has_content:
            return "hidden"
        return "closed"

    def to_dict(self) -> dict:
        data = asdict(self)
        data['mode'] = self.mode.value if self.mode else None
        data['state'] = self.state
        return data
