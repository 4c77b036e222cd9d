"""错误类型

所有错误都继承自 TflingError，调用方可以统一捕获。
"""

from typing import Optional


class TflingError(Exception):
    """termfling 错误基类"""


class ConfigurationError(TflingError):
    """配置不合法（缺少名称/命令、未知方向、size 与 width/height 冲突等）"""


class InvalidUnitToken(TflingError, ValueError):
    """无法解析的尺寸/位置单位"""

    def __init__(self, token):
        self.token = token
        super().__init__(f"无法解析的单位: {token!r}")


class HostOperationFailed(TflingError):
    """宿主环境拒绝了窗口/内容/标签页操作"""

    def __init__(self, operation: str, detail: str = "", surface: Optional[str] = None):
        self.operation = operation
        self.detail = detail
        self.surface = surface
        msg = f"宿主操作失败: {operation}"
        if surface:
            msg += f" (surface={surface})"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class SessionBackendUnavailable(TflingError):
    """会话后端（tmux/abduco）不可用或探测超时"""

    def __init__(self, backend: str, detail: str = ""):
        self.backend = backend
        self.detail = detail
        super().__init__(f"会话后端不可用: {backend}" + (f" ({detail})" if detail else ""))


class SurfaceNotFound(TflingError, KeyError):
    """注册表中不存在该名称"""

    def __init__(self, name: str):
        self.name = name
        super().__init__(name)

    def __str__(self) -> str:
        return f"未找到 surface: {self.name}"


class ReentrantCallError(TflingError):
    """在同一个 surface 的生命周期操作执行期间再次调用生命周期操作"""

    def __init__(self, surface: str, operation: str, running: str):
        self.surface = surface
        self.operation = operation
        self.running = running
        super().__init__(
            f"surface {surface} 正在执行 {running}，不能重入调用 {operation}"
        )
