"""Surface 注册表与导航

注册表是显式创建的对象，持有：

- by_name: 名称 -> Surface（按创建顺序，用于 next/prev）
- index: 窗口句柄 -> Surface 的反向索引
- 导航游标: 最近一次显示/聚焦的 surface

宿主、调度器、配置和会话后端都在构造时注入，测试中可以同时存在多个注册表。
"""

import itertools
import logging
from typing import Callable, Iterator, List, Optional, Tuple

from .config import Config
from .errors import ConfigurationError, SurfaceNotFound, TflingError
from .models import HostExit, ProcessExited, SurfaceInfo, WindowClosed, WindowHandle
from .scheduling import ManualScheduler, Scheduler
from .sessions import SessionProvider, get_provider
from .surface import Surface, SurfaceSpec

logger = logging.getLogger(__name__)


class WindowIndex:
    """窗口句柄反向索引

    同一个宿主窗口 ID 在关闭后可能被复用，因此以带代数的句柄为键，
    同时记录每个宿主 ID 当前对应的句柄。
    """

    def __init__(self):
        self._by_handle: dict[WindowHandle, Surface] = {}
        self._live: dict[str, WindowHandle] = {}

    def bind(self, handle: WindowHandle, surface: Surface) -> None:
        stale = self._live.get(handle.window_id)
        if stale is not None and stale != handle:
            # 宿主复用了 ID，旧句柄已经无效
            owner = self._by_handle.pop(stale, None)
            if owner is not None and owner.window_handle == stale:
                logger.info(f"[注册表] 窗口 ID {stale.window_id} 被复用，清除 {owner.name} 的旧句柄")
                owner.window_handle = None
        self._by_handle[handle] = surface
        self._live[handle.window_id] = handle

    def unbind(self, handle: WindowHandle) -> None:
        self._by_handle.pop(handle, None)
        if self._live.get(handle.window_id) == handle:
            del self._live[handle.window_id]

    def get(self, handle: WindowHandle) -> Optional[Surface]:
        return self._by_handle.get(handle)

    def lookup(self, window_id: str) -> Optional[Surface]:
        """按宿主窗口 ID 查找当前拥有它的 surface"""
        handle = self._live.get(window_id)
        return self._by_handle.get(handle) if handle is not None else None

    def items(self):
        return self._by_handle.items()

    def __len__(self) -> int:
        return len(self._by_handle)

    def __contains__(self, handle) -> bool:
        return handle in self._by_handle


class Registry:
    """surface 注册表

    Args:
        host: 宿主适配器
        scheduler: 延时发送使用的调度器，默认 ManualScheduler
        settings: 全局配置，默认 Config()
        always: 每次显示任意 surface 后调用的钩子
    """

    def __init__(
        self,
        host,
        scheduler: Optional[Scheduler] = None,
        settings: Optional[Config] = None,
        always: Optional[Callable[[Surface], None]] = None,
    ):
        self.host = host
        self.scheduler = scheduler or ManualScheduler()
        self.settings = settings or Config()
        self.always = always

        self.by_name: dict[str, Surface] = {}
        self.index = WindowIndex()
        self._cursor: Optional[str] = None
        self._last_shown: Optional[str] = None
        self._generations = itertools.count(1)
        self._providers: dict[str, SessionProvider] = {}

    def next_generation(self) -> int:
        return next(self._generations)

    def provider_for(self, name: Optional[str]) -> Optional[SessionProvider]:
        """按名称取会话后端（缓存）"""
        if name is None:
            return None
        if name not in self._providers:
            kwargs = {}
            if name == "abduco":
                kwargs["exit_key"] = self.settings.abduco_exit_key
            elif name == "tmux":
                kwargs["timeout"] = self.settings.session_timeout
            self._providers[name] = get_provider(name, **kwargs)
        return self._providers[name]

    # ========== 查找 ==========

    def __contains__(self, name: str) -> bool:
        return name in self.by_name

    def __iter__(self) -> Iterator[Surface]:
        return iter(list(self.by_name.values()))

    def __len__(self) -> int:
        return len(self.by_name)

    def get(self, name: str) -> Surface:
        """按名称取 surface

        Raises:
            SurfaceNotFound: 不存在
        """
        surface = self.by_name.get(name)
        if surface is None:
            raise SurfaceNotFound(name)
        return surface

    def define(self, spec: SurfaceSpec) -> Surface:
        """注册 surface 定义；同名已存在时返回已有的（定义不变）"""
        existing = self.by_name.get(spec.name)
        if existing is not None:
            return existing
        surface = Surface(spec, self)
        self.by_name[spec.name] = surface
        logger.debug(f"[注册表] 新建 surface: {spec.name}")
        return surface

    def _surface_for(self, name: Optional[str], spec: Optional[SurfaceSpec]) -> Tuple[Surface, bool]:
        """取或新建 surface，返回 (surface, 是否新建)"""
        if spec is not None:
            spec.validate()
            if name and spec.name != name:
                raise ConfigurationError(f"名称不一致: {name!r} != {spec.name!r}")
        elif not name:
            raise ConfigurationError("open 需要 name 或 spec")
        else:
            spec = SurfaceSpec(name=name)
        created = spec.name not in self.by_name
        return self.define(spec), created

    def _show(self, surface: Surface, created: bool, action, config) -> None:
        try:
            action(config)
        except TflingError:
            # 首次打开失败且没有留下内容时不保留空条目，修正参数后可以重新定义
            if created and not surface.content_alive() and self.by_name.get(surface.name) is surface:
                del self.by_name[surface.name]
                logger.info(f"[注册表] 首次打开失败，移除: {surface.name}")
            raise

    @property
    def current_name(self) -> Optional[str]:
        """导航游标指向的名称"""
        return self._cursor

    def _set_cursor(self, surface: Surface) -> None:
        if surface.is_visible():
            self._cursor = surface.name
            self._last_shown = surface.name

    def _clear_cursor(self, surface: Surface) -> None:
        if self._cursor == surface.name:
            self._cursor = None

    # ========== 生命周期 ==========

    def open(self, name: Optional[str] = None, config=None, spec: Optional[SurfaceSpec] = None) -> Surface:
        """打开 surface，不存在时按 spec 创建

        spec 省略时以 name 创建一个普通内容面板。
        """
        surface, created = self._surface_for(name, spec)
        self._show(surface, created, surface.open, config)
        self._set_cursor(surface)
        return surface

    def toggle(self, name: Optional[str] = None, config=None, spec: Optional[SurfaceSpec] = None) -> Surface:
        """切换 surface；config 为 None 表示隐藏"""
        if config is None:
            if spec is not None:
                spec.validate()
            target = name or (spec.name if spec is not None else None)
            if not target:
                raise ConfigurationError("toggle 需要 name 或 spec")
            surface = self.get(target)
            self.hide(target)
            return surface
        surface, created = self._surface_for(name, spec)
        self._show(surface, created, surface.toggle, config)
        self._set_cursor(surface)
        return surface

    def hide(self, name: str) -> bool:
        surface = self.get(name)
        hidden = surface.hide()
        self._clear_cursor(surface)
        return hidden

    def close(self, name: str, kill_session: bool = False) -> None:
        """彻底关闭 surface 并从注册表移除"""
        surface = self.get(name)
        surface.close(kill_session=kill_session)
        self._clear_cursor(surface)
        if self._last_shown == name:
            self._last_shown = None
        del self.by_name[name]
        logger.info(f"[注册表] 已移除: {name}")

    def resize(self, name: str, opts: dict) -> bool:
        return self.get(name).resize(opts)

    def reposition(self, name: str, opts: dict) -> bool:
        return self.get(name).reposition(opts)

    def send(self, name: str, data: str) -> bool:
        return self.get(name).send(data)

    def goto(self, name: str) -> Surface:
        """按名称显示已有内容的 surface（沿用上次的展示配置）"""
        surface = self.get(name)
        if not surface.content_alive():
            raise SurfaceNotFound(name)
        surface.open(None)
        self._set_cursor(surface)
        return surface

    # ========== 当前窗口 ==========

    def current(self) -> Optional[Surface]:
        """宿主当前窗口所属的 surface"""
        window_id = self.host.current_window()
        if window_id is None:
            return None
        return self.index.lookup(window_id)

    def hide_current(self) -> Optional[Surface]:
        """隐藏宿主当前窗口所属的 surface"""
        surface = self.current()
        if surface is None:
            logger.info("[注册表] 当前窗口不属于任何 surface")
            return None
        self.hide(surface.name)
        return surface

    def toggle_current(self) -> Optional[Surface]:
        """切换最近一次显示的 surface：可见则隐藏，否则重新显示"""
        name = self._cursor or self._last_shown
        surface = self.by_name.get(name) if name else None
        if surface is None or not surface.content_alive():
            logger.info("[注册表] 没有可切换的 surface")
            return None
        if surface.is_visible() and self._cursor == surface.name:
            self.hide(surface.name)
        else:
            surface.open(None)
            self._set_cursor(surface)
        return surface

    # ========== 导航 ==========

    def navigable(self) -> list[Surface]:
        """可导航的 surface：按创建顺序，内容仍然存在"""
        return [s for s in self.by_name.values() if s.content_alive()]

    def next(self) -> Optional[Surface]:
        return self._step(1)

    def prev(self) -> Optional[Surface]:
        return self._step(-1)

    def _step(self, delta: int) -> Optional[Surface]:
        candidates = self.navigable()
        if not candidates:
            logger.info("[注册表] 没有可导航的 surface")
            return None

        names = [s.name for s in candidates]
        if self._cursor in names:
            index = names.index(self._cursor)
            current = candidates[index]
            if current.is_visible():
                self.hide(current.name)
            index = (index + delta) % len(candidates)
        else:
            index = 0 if delta > 0 else len(candidates) - 1

        target = candidates[index]
        target.open(None)
        self._set_cursor(target)
        logger.debug(f"[注册表] 导航到: {target.name}")
        return target

    # ========== 事件 ==========

    def dispatch(self, event) -> bool:
        """把宿主事件分发给对应的 surface

        Returns:
            是否有 surface 处理了该事件（过期事件返回 False）
        """
        if isinstance(event, WindowClosed):
            surface = self.index.lookup(event.window_id)
            targets = [surface] if surface is not None else []
        elif isinstance(event, ProcessExited):
            targets = [s for s in self.by_name.values() if s.process_handle == event.process]
        else:
            logger.debug(f"[注册表] 未知事件: {event!r}")
            return False

        handled = False
        for surface in targets:
            if surface.handle_event(event):
                handled = True
                if not surface.is_visible():
                    self._clear_cursor(surface)
        return handled

    def poll_host_exits(self) -> list[ProcessExited]:
        """读取宿主的进程退出记录，转换为事件并分发"""
        events = []
        for record in self.host.poll_exits():
            event = self._exit_event(record)
            if event is None:
                logger.debug(f"[注册表] 退出记录没有对应的 surface: {record}")
                continue
            events.append(event)
            self.dispatch(event)
        return events

    def _exit_event(self, record: HostExit) -> Optional[ProcessExited]:
        for surface in self.by_name.values():
            content, process = surface.content_handle, surface.process_handle
            if content is None or process is None:
                continue
            if content.content_id == record.content_id and process.pid == record.pid:
                return ProcessExited(process, record.exit_code)
        return None

    # ========== 查询 ==========

    def list(self) -> List[SurfaceInfo]:
        """所有 surface 的摘要（按创建顺序）"""
        result = []
        for surface in self.by_name.values():
            info = surface.info()
            info.is_current = surface.name == self._cursor
            result.append(info)
        return result

    def consistency_errors(self) -> List[str]:
        """检查 by_name 与窗口索引是否一致，返回问题列表（空表示一致）"""
        errors = []
        for name, surface in self.by_name.items():
            if surface.name != name:
                errors.append(f"{name}: 名称不一致 ({surface.name})")
            handle = surface.window_handle
            if handle is not None and self.index.get(handle) is not surface:
                errors.append(f"{name}: 窗口 {handle} 不在索引中")
        for handle, surface in self.index.items():
            if self.by_name.get(surface.name) is not surface:
                errors.append(f"{handle}: 指向未注册的 surface {surface.name}")
            elif surface.window_handle != handle:
                errors.append(f"{handle}: surface {surface.name} 持有的是 {surface.window_handle}")
        return errors
