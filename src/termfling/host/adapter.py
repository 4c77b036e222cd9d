"""宿主环境适配器抽象基类

定义 surface 需要的全部宿主操作。所有 ID 都是宿主自己的字符串，
由注册表再包装成带代数的句柄。

任何失败都抛出 HostOperationFailed，不返回错误码。
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..geometry import Rect
from ..models import HostExit, Mode


class HostAdapter(ABC):
    """宿主适配器基类

    实现类需要支持：
    - 内容容器：创建、判活、销毁、在其中启动进程、写入文本
    - 窗口：浮动/分屏创建，聚焦，关闭（内容保留），读写几何
    - 标签页：创建、判活、切换、切走
    - 查询：屏幕尺寸、当前窗口、进程退出
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """宿主名称"""
        pass

    @property
    def supported_modes(self) -> frozenset:
        """支持的展示模式"""
        return frozenset(Mode)

    def is_available(self) -> tuple[bool, str]:
        """检查宿主是否可用

        Returns:
            (是否可用, 说明信息)
        """
        return True, self.name

    # ========== 屏幕 ==========

    @abstractmethod
    def get_screen_size(self) -> tuple[int, int]:
        """获取屏幕尺寸

        Returns:
            (列数, 行数)
        """
        pass

    # ========== 内容 ==========

    @abstractmethod
    def create_content(self, name: str) -> str:
        """创建内容容器，返回内容 ID"""
        pass

    @abstractmethod
    def content_is_valid(self, content_id: str) -> bool:
        pass

    @abstractmethod
    def destroy_content(self, content_id: str) -> None:
        """销毁内容容器（其中的进程随之结束）"""
        pass

    @abstractmethod
    def start_process(self, content_id: str, command: str, cwd: Optional[str] = None) -> int:
        """在内容容器中启动命令，返回进程 PID"""
        pass

    @abstractmethod
    def send_text(self, content_id: str, text: str) -> None:
        """向内容中的进程写入文本"""
        pass

    # ========== 窗口 ==========

    @abstractmethod
    def open_floating(self, content_id: str, rect: Rect) -> str:
        """以浮动窗口显示内容，返回窗口 ID"""
        pass

    @abstractmethod
    def open_split(self, content_id: str, direction: str, size: int) -> str:
        """在当前窗口旁分屏显示内容，返回窗口 ID

        Args:
            content_id: 内容 ID
            direction: left / right / top / bottom
            size: 新分屏的列数（左右）或行数（上下）
        """
        pass

    @abstractmethod
    def window_is_valid(self, window_id: str) -> bool:
        pass

    @abstractmethod
    def focus_window(self, window_id: str) -> None:
        pass

    @abstractmethod
    def close_window(self, window_id: str) -> None:
        """关闭窗口，内容容器保留"""
        pass

    @abstractmethod
    def get_geometry(self, window_id: str) -> Rect:
        pass

    @abstractmethod
    def set_geometry(self, window_id: str, rect: Rect) -> None:
        """一次性设置浮动窗口的位置和尺寸"""
        pass

    @abstractmethod
    def set_width(self, window_id: str, width: int) -> None:
        pass

    @abstractmethod
    def set_height(self, window_id: str, height: int) -> None:
        pass

    @abstractmethod
    def current_window(self) -> Optional[str]:
        """当前获得焦点的窗口 ID"""
        pass

    # ========== 标签页 ==========

    @abstractmethod
    def open_tab(
        self,
        content_id: str,
        title: Optional[str] = None,
        direction: Optional[str] = None,
        size: Optional[int] = None,
    ) -> tuple[str, str]:
        """新建标签页显示内容

        Args:
            content_id: 内容 ID
            title: 标签页标题
            direction: 为空时内容占满标签页；否则内容在标签页内该方向的分屏中
            size: 分屏的绝对尺寸（左右为列数，上下为行数）

        Returns:
            (标签页 ID, 窗口 ID)
        """
        pass

    @abstractmethod
    def tab_is_valid(self, tab_id: str) -> bool:
        pass

    @abstractmethod
    def focus_tab(self, tab_id: str) -> None:
        pass

    @abstractmethod
    def switch_away_from_tab(self, tab_id: str) -> None:
        """若当前在该标签页，切换到前一个标签页（没有则后一个）"""
        pass

    @abstractmethod
    def close_tab(self, tab_id: str) -> None:
        pass

    # ========== 进程 ==========

    @abstractmethod
    def poll_exits(self) -> list[HostExit]:
        """返回自上次调用以来退出的进程"""
        pass
