"""Surface 状态机

一个 surface = 一个命名的内容容器 + 至多一个显示它的宿主窗口（或标签页）。

状态:
- Closed: 没有内容
- Hidden: 有内容，没有窗口（标签页模式下是"已切走的标签页"）
- Open: 有内容，窗口存在

所有宿主操作都经过 registry.host；窗口句柄的设置和清除只通过
_bind_window / _unbind_window，保证注册表的反向索引同步更新。
"""

import functools
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

from . import geometry, presentation, sessions, window_ops
from .errors import (
    ConfigurationError,
    HostOperationFailed,
    ReentrantCallError,
    TflingError,
)
from .models import (
    ContentHandle,
    Mode,
    ProcessExited,
    ProcessHandle,
    SurfaceInfo,
    TabHandle,
    WindowClosed,
    WindowHandle,
)
from .presentation import FloatingConfig, PresentationConfig, SplitConfig, TabConfig

logger = logging.getLogger(__name__)


@dataclass
class SurfaceSpec:
    """surface 的内容定义，在第一次引用时确定，之后不变

    Attributes:
        name: 唯一名称；省略时取 command，其次取字符串形式的 init
        command: 在内容中运行的命令；为空表示普通内容面板
        session: 会话后端名称（tmux / abduco），None 表示直接运行
        init: 冷启动后执行一次；字符串会发送给进程，可调用对象以 surface 为参数调用
        setup: 每次显示后调用，参数为 surface
        ephemeral: 隐藏时同时销毁内容
        cwd: 命令工作目录
        send_delay: 延时发送的毫秒数，None 使用全局配置
        title: 标签页标题，None 使用名称
    """
    name: Optional[str] = None
    command: Optional[str] = None
    session: Optional[str] = None
    init: Optional[Union[str, Callable]] = None
    setup: Optional[Callable] = None
    ephemeral: bool = False
    cwd: Optional[str] = None
    send_delay: Optional[int] = None
    title: Optional[str] = None

    def validate(self) -> "SurfaceSpec":
        """校验定义，失败抛出 ConfigurationError"""
        if self.name is None:
            self.name = self.command or (self.init if isinstance(self.init, str) else None)
        if not isinstance(self.name, str) or not self.name.strip():
            raise ConfigurationError("surface 需要 name、command 或字符串形式的 init")
        if self.session is not None:
            if self.session not in sessions.PROVIDERS:
                raise ConfigurationError(f"未知会话后端: {self.session!r}")
            if not self.command:
                raise ConfigurationError(f"{self.name}: 使用会话后端时必须提供 command")
        if self.init is not None and not (isinstance(self.init, str) or callable(self.init)):
            raise ConfigurationError(f"{self.name}: init 必须是字符串或可调用对象")
        if self.setup is not None and not callable(self.setup):
            raise ConfigurationError(f"{self.name}: setup 必须是可调用对象")
        if self.send_delay is not None and self.send_delay < 0:
            raise ConfigurationError(f"{self.name}: send_delay 不能为负数")
        return self


def _lifecycle(method):
    """生命周期操作互斥：同一 surface 的操作执行期间不允许再次进入"""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        if self._running_op is not None:
            raise ReentrantCallError(self.name, method.__name__.lstrip('_'), self._running_op)
        self._running_op = method.__name__.lstrip('_')
        try:
            return method(self, *args, **kwargs)
        finally:
            self._running_op = None
    return wrapper


class Surface:
    """可切换的命名面板"""

    def __init__(self, spec: SurfaceSpec, registry):
        self.spec = spec.validate()
        self.registry = registry

        self.mode: Optional[Mode] = None
        self.content_handle: Optional[ContentHandle] = None
        self.window_handle: Optional[WindowHandle] = None
        self.tab_handle: Optional[TabHandle] = None
        self.process_handle: Optional[ProcessHandle] = None
        self.backing_command: Optional[str] = None
        self.last_config: Optional[PresentationConfig] = None

        self._running_op: Optional[str] = None
        self._outbox: list[str] = []
        self._send_pending: Optional[ProcessHandle] = None

    def __repr__(self) -> str:
        return f"<Surface {self.name} mode={self.mode and self.mode.value} window={self.window_handle}>"

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def host(self):
        return self.registry.host

    # ========== 句柄维护 ==========

    def _bind_window(self, window_id: str) -> WindowHandle:
        handle = WindowHandle(window_id, self.registry.next_generation())
        self.window_handle = handle
        self.registry.index.bind(handle, self)
        return handle

    def _unbind_window(self) -> None:
        if self.window_handle is not None:
            self.registry.index.unbind(self.window_handle)
            self.window_handle = None

    def _clear_content(self) -> None:
        self.content_handle = None
        self.process_handle = None
        self._outbox.clear()

    def content_alive(self) -> bool:
        """内容是否仍然存在（失效时清除句柄）"""
        if self.content_handle is None:
            return False
        if self.host.content_is_valid(self.content_handle.content_id):
            return True
        logger.info(f"[{self.name}] 内容已失效: {self.content_handle.content_id}")
        self._clear_content()
        return False

    def window_alive(self) -> bool:
        """窗口是否仍然存在（失效时清除句柄和索引）"""
        if self.window_handle is None:
            return False
        if self.host.window_is_valid(self.window_handle.window_id):
            return True
        logger.info(f"[{self.name}] 窗口已失效: {self.window_handle.window_id}")
        self._unbind_window()
        return False

    def tab_alive(self) -> bool:
        if self.tab_handle is None:
            return False
        if self.host.tab_is_valid(self.tab_handle.tab_id):
            return True
        logger.info(f"[{self.name}] 标签页已失效: {self.tab_handle.tab_id}")
        self.tab_handle = None
        self._unbind_window()
        return False

    def is_open(self) -> bool:
        """按模式判断是否处于打开状态

        标签页模式: 标签页存在即可（被切走也算）；其他模式: 窗口存在。
        """
        if self.mode is Mode.TAB:
            return self.tab_alive()
        return self.window_alive()

    def is_visible(self) -> bool:
        """窗口或标签页存在"""
        return self.tab_alive() or self.window_alive()

    # ========== 配置 ==========

    def _resolve(self, config) -> PresentationConfig:
        if config is None:
            resolved = self.last_config or FloatingConfig()
        else:
            resolved = presentation.resolve(config, strict_positions=self.registry.settings.strict_positions)
        if resolved.mode not in self.host.supported_modes:
            raise HostOperationFailed(
                "open", f"宿主 {self.host.name} 不支持 {resolved.mode.value} 模式", self.name,
            )
        return resolved

    def _placement(self, config: PresentationConfig):
        """在任何宿主修改之前算好几何参数"""
        if isinstance(config, TabConfig):
            title = config.title or self.spec.title or self.name
            if config.direction is None:
                return title, None
            columns, lines = self.host.get_screen_size()
            return title, geometry.compute_split(config.direction, config.size, columns, lines)
        columns, lines = self.host.get_screen_size()
        if isinstance(config, SplitConfig):
            return geometry.compute_split(config.direction, config.size, columns, lines)
        return geometry.compute_floating(
            config, columns, lines, strict=self.registry.settings.strict_positions,
        )

    def _resolve_command(self) -> str:
        settings = self.registry.settings
        provider = self.registry.provider_for(self.spec.session)
        return sessions.resolve_command(
            provider,
            self.name,
            self.spec.command,
            prefix=settings.session_prefix,
            fallback_to_raw=settings.fallback_to_raw_command,
        )

    # ========== 窗口创建 ==========

    def _show(self, config: PresentationConfig, placement) -> None:
        """为已有内容创建窗口"""
        host = self.host
        content_id = self.content_handle.content_id

        if isinstance(config, TabConfig):
            title, split = placement
            if split is None:
                tab_id, window_id = host.open_tab(content_id, title)
            else:
                tab_id, window_id = host.open_tab(content_id, title, config.direction, split.absolute_size)
            self.tab_handle = TabHandle(tab_id, self.registry.next_generation())
            self._bind_window(window_id)
        elif isinstance(config, SplitConfig):
            window_id = host.open_split(content_id, config.direction, placement.absolute_size)
            self._bind_window(window_id)
        else:
            window_id = host.open_floating(content_id, placement)
            self._bind_window(window_id)

        self.mode = config.mode
        self.last_config = config
        logger.info(f"[{self.name}] 已显示: {presentation.describe(config)} -> {window_id}")

    def _focus(self) -> None:
        host = self.host
        if self.mode is Mode.TAB and self.tab_handle is not None:
            host.focus_tab(self.tab_handle.tab_id)
        if self.window_alive():
            host.focus_window(self.window_handle.window_id)

    def _start_process(self, command: str) -> None:
        pid = self.host.start_process(self.content_handle.content_id, command, self.spec.cwd)
        self.process_handle = ProcessHandle(pid, self.registry.next_generation())
        self.backing_command = command
        logger.info(f"[{self.name}] 进程已启动 pid={pid}: {command}")

    def _rollback(self) -> None:
        """冷启动失败时清理已创建的窗口和内容"""
        host = self.host
        logger.warning(f"[{self.name}] 打开失败，回滚")
        if self.window_handle is not None and host.window_is_valid(self.window_handle.window_id):
            host.close_window(self.window_handle.window_id)
        self._unbind_window()
        if self.tab_handle is not None and host.tab_is_valid(self.tab_handle.tab_id):
            host.close_tab(self.tab_handle.tab_id)
        self.tab_handle = None
        if self.content_handle is not None and host.content_is_valid(self.content_handle.content_id):
            host.destroy_content(self.content_handle.content_id)
        self._clear_content()
        self.backing_command = None

    def _run_init(self) -> None:
        init = self.spec.init
        if init is None:
            return
        if isinstance(init, str):
            self.send(init)
        else:
            init(self)

    def _after_show(self) -> None:
        if not self.is_visible():
            return
        if self.spec.setup is not None:
            self.spec.setup(self)
        if self.registry.always is not None:
            self.registry.always(self)

    # ========== 生命周期 ==========

    def open(self, config=None) -> None:
        """显示 surface

        - 窗口存在: 聚焦
        - 内容存在: 用给定模式新建窗口
        - 否则冷启动: 解析命令、创建内容、创建窗口、启动进程、运行 init

        Raises:
            ConfigurationError / InvalidUnitToken: 配置不合法（未修改宿主）
            SessionBackendUnavailable: 会话后端不可用（未修改宿主）
            HostOperationFailed: 宿主失败（已回滚新建的内容）
        """
        resolved = self._resolve(config)
        self._open(resolved)
        self._after_show()

    @_lifecycle
    def _open(self, config: PresentationConfig) -> None:
        self._open_unlocked(config)

    def _open_unlocked(self, config: PresentationConfig) -> None:
        if self.is_open():
            logger.debug(f"[{self.name}] 已打开，聚焦")
            self._focus()
            return

        placement = self._placement(config)

        if self.content_alive():
            command = None
            if self.spec.command and self.process_handle is None:
                command = self._resolve_command()
            self._show(config, placement)
            if command is not None:
                logger.info(f"[{self.name}] 进程已退出，重新启动")
                self._start_process(command)
            return

        # 冷启动
        command = self._resolve_command() if self.spec.command else None
        content_id = self.host.create_content(self.name)
        self.content_handle = ContentHandle(content_id, self.registry.next_generation())
        logger.info(f"[{self.name}] 已创建内容: {content_id}")
        try:
            self._show(config, placement)
            if command is not None:
                self._start_process(command)
        except TflingError:
            self._rollback()
            raise
        self._run_init()

    def toggle(self, config=None) -> None:
        """切换显示

        config 为 None 时隐藏；已打开时浮动窗口按新配置更新几何并聚焦，
        分屏只聚焦，标签页切换过去；未打开时等同于 open(config)。
        """
        if config is None:
            self.hide()
            return
        resolved = self._resolve(config)
        self._toggle(resolved)
        self._after_show()

    @_lifecycle
    def _toggle(self, config: PresentationConfig) -> None:
        if not self.is_open():
            self._open_unlocked(config)
            return

        if self.mode is Mode.FLOATING and isinstance(config, FloatingConfig):
            rect = self._placement(config)
            self.host.set_geometry(self.window_handle.window_id, rect)
            self.last_config = config
            logger.debug(f"[{self.name}] 更新浮动窗口几何: {rect}")
        self._focus()

    @_lifecycle
    def hide(self) -> bool:
        """隐藏 surface

        标签页模式切换到相邻标签页并保留句柄；其他模式关闭窗口，
        临时 surface 同时销毁内容。

        Returns:
            是否有东西被隐藏
        """
        host = self.host
        if self.mode is Mode.TAB and self.tab_alive():
            host.switch_away_from_tab(self.tab_handle.tab_id)
            logger.info(f"[{self.name}] 已切走标签页: {self.tab_handle.tab_id}")
            return True

        if not self.window_alive():
            return False

        host.close_window(self.window_handle.window_id)
        self._unbind_window()
        logger.info(f"[{self.name}] 已隐藏")

        if self.spec.ephemeral:
            self._destroy_content()
        return True

    def _destroy_content(self) -> None:
        if self.content_handle is not None and self.host.content_is_valid(self.content_handle.content_id):
            self.host.destroy_content(self.content_handle.content_id)
            logger.info(f"[{self.name}] 已销毁内容: {self.content_handle.content_id}")
        self._clear_content()

    @_lifecycle
    def close(self, kill_session: bool = False) -> None:
        """彻底关闭：窗口、标签页、内容，可选结束会话"""
        host = self.host
        if self.window_alive():
            host.close_window(self.window_handle.window_id)
        self._unbind_window()
        if self.tab_alive():
            host.close_tab(self.tab_handle.tab_id)
        self.tab_handle = None
        self._destroy_content()

        if kill_session and self.spec.session:
            session_id = sessions.session_id_for(self.name, self.registry.settings.session_prefix)
            self.registry.provider_for(self.spec.session).kill_session(session_id)
        self.backing_command = None
        logger.info(f"[{self.name}] 已关闭")

    # ========== 窗口操作 ==========

    @_lifecycle
    def resize(self, opts: dict) -> bool:
        """调整尺寸，参数见 window_ops.resize"""
        return window_ops.resize(self, opts)

    @_lifecycle
    def reposition(self, opts: dict) -> bool:
        """调整位置，参数见 window_ops.reposition"""
        return window_ops.reposition(self, opts)

    # ========== 事件 ==========

    def handle_event(self, event) -> bool:
        """处理宿主事件，过期事件忽略

        Returns:
            事件是否改变了状态
        """
        if isinstance(event, ProcessExited):
            return self._on_process_exit(event)
        if isinstance(event, WindowClosed):
            return self._on_window_closed(event)
        return False

    def _on_process_exit(self, event: ProcessExited) -> bool:
        if self.process_handle is None or event.process != self.process_handle:
            logger.debug(f"[{self.name}] 忽略过期的退出事件: {event.process}")
            return False

        self.process_handle = None
        self._outbox.clear()
        if event.exit_code:
            logger.warning(f"[{self.name}] 进程退出 pid={event.process.pid} code={event.exit_code}")
        else:
            logger.info(f"[{self.name}] 进程退出 pid={event.process.pid}")

        if self.spec.ephemeral:
            host = self.host
            if self.window_alive():
                host.close_window(self.window_handle.window_id)
            self._unbind_window()
            if self.tab_alive():
                host.close_tab(self.tab_handle.tab_id)
            self.tab_handle = None
            self._destroy_content()
        return True

    def _on_window_closed(self, event: WindowClosed) -> bool:
        if self.window_handle is None or self.window_handle.window_id != event.window_id:
            return False
        logger.info(f"[{self.name}] 窗口在宿主侧被关闭: {event.window_id}")
        self._unbind_window()
        if self.mode is Mode.TAB:
            self.tab_alive()
        if self.spec.ephemeral:
            self._destroy_content()
        return True

    # ========== 延时发送 ==========

    def send(self, data: str) -> bool:
        """延时向进程发送文本

        多次调用会合并到同一次发送；进程在发送前退出或重启时丢弃。

        Returns:
            是否已加入发送队列
        """
        if self.process_handle is None:
            logger.warning(f"[{self.name}] 没有运行中的进程，忽略发送")
            return False
        self._outbox.append(data)
        if self._send_pending == self.process_handle:
            return True

        self._send_pending = self.process_handle
        delay = self.spec.send_delay
        if delay is None:
            delay = self.registry.settings.send_delay
        self.registry.scheduler.call_later(
            delay / 1000, functools.partial(self._flush_sends, self.process_handle),
        )
        return True

    def _flush_sends(self, process: ProcessHandle) -> None:
        if process != self._send_pending:
            # 进程重启后已经重新安排，旧回调不处理新进程的队列
            return
        self._send_pending = None
        data, self._outbox = "".join(self._outbox), []
        if process != self.process_handle or not self.content_alive():
            logger.debug(f"[{self.name}] 进程已变化，丢弃待发送内容")
            return
        if data:
            self.host.send_text(self.content_handle.content_id, data)

    # ========== 查询 ==========

    def info(self) -> SurfaceInfo:
        is_open = self.is_open()
        return SurfaceInfo(
            name=self.name,
            mode=self.mode,
            window_id=self.window_handle.window_id if self.window_handle else None,
            tab_id=self.tab_handle.tab_id if self.tab_handle else None,
            pid=self.process_handle.pid if self.process_handle else None,
            is_open=is_open,
            has_content=self.content_alive(),
            command=self.backing_command or self.spec.command,
        )
