"""
termfling - 可切换的命名终端面板

每个 surface 是一个命名的内容容器（终端进程或普通内容），可以用三种方式显示：
- 浮动窗口：按锚点和百分比计算位置
- 分屏：停靠在当前窗口的一侧
- 标签页：独立的标签页，隐藏时切走而不销毁

进程可以交给 tmux / abduco 会话托管，隐藏窗口后继续运行。
"""

__version__ = "0.1.0"

# 错误类型
from .errors import (
    TflingError,
    ConfigurationError,
    InvalidUnitToken,
    HostOperationFailed,
    SessionBackendUnavailable,
    SurfaceNotFound,
    ReentrantCallError,
)

# 展示配置
from .presentation import FloatingConfig, SplitConfig, TabConfig

# 数据模型
from .models import Mode, ProcessExited, WindowClosed, SurfaceInfo

# 核心
from .surface import Surface, SurfaceSpec
from .registry import Registry

# 宿主适配器
from .host import HostAdapter, HeadlessHost, TmuxHost, get_host

__all__ = [
    # 错误
    "TflingError",
    "ConfigurationError",
    "InvalidUnitToken",
    "HostOperationFailed",
    "SessionBackendUnavailable",
    "SurfaceNotFound",
    "ReentrantCallError",
    # 配置
    "FloatingConfig",
    "SplitConfig",
    "TabConfig",
    # 数据模型
    "Mode",
    "ProcessExited",
    "WindowClosed",
    "SurfaceInfo",
    # 核心
    "Surface",
    "SurfaceSpec",
    "Registry",
    # 宿主
    "HostAdapter",
    "HeadlessHost",
    "TmuxHost",
    "get_host",
]
