"""Textual TUI - surface 列表与切换

左侧列出配置文件里预定义的 surface 以及运行中新建的 surface，
快捷键直接调用注册表的 toggle / hide / next / prev / resize / reposition / close。
定时轮询宿主的进程退出记录。
"""

import logging
from typing import Optional

from textual import on
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, ListItem, ListView, Static

from .config import Config, SurfaceEntry
from .errors import TflingError
from .process_monitor import ProcessMonitor
from .registry import Registry
from .scheduling import AppScheduler
from .surface import SurfaceSpec
from .window_ops import parse_reposition_args, parse_resize_args

logger = logging.getLogger(__name__)


def spec_from_entry(entry: SurfaceEntry) -> SurfaceSpec:
    """配置项 -> SurfaceSpec"""
    return SurfaceSpec(
        name=entry.name,
        command=entry.command,
        session=entry.session,
        init=entry.init,
        ephemeral=entry.ephemeral,
        cwd=entry.cwd,
    )


class SurfaceItem(ListItem):
    """surface 列表项

    - 当前: 绿色 ▶
    - 打开: 蓝色 ●
    - 隐藏: 灰色 ●
    - 未启动: ○
    """

    def __init__(self, name: str, state: str, is_current: bool, mode: Optional[str]):
        super().__init__()
        self.surface_name = name
        self.surface_state = state
        self.current = is_current
        self.surface_mode = mode

    def compose(self) -> ComposeResult:
        suffix = f" [dim]{self.surface_mode}[/]" if self.surface_mode else ""
        if self.current:
            yield Static(f"[green bold]▶ {self.surface_name}[/]{suffix}")
        elif self.surface_state == "open":
            yield Static(f"[blue]● {self.surface_name}[/]{suffix}")
        elif self.surface_state == "hidden":
            yield Static(f"[dim]● {self.surface_name}{suffix}[/]")
        else:
            yield Static(f"[dim]○ {self.surface_name}[/]")


class ArgsDialog(ModalScreen):
    """输入 resize / reposition 参数"""

    BINDINGS = [Binding("escape", "cancel", "取消")]

    def __init__(self, title: str, placeholder: str):
        super().__init__()
        self.title_text = title
        self.placeholder = placeholder

    def compose(self) -> ComposeResult:
        with Container(id="dialog"):
            yield Label(self.title_text, id="dialog-title")
            yield Input(placeholder=self.placeholder, id="args")
            with Container(id="dialog-buttons"):
                yield Button("取消", id="cancel")
                yield Button("确定", variant="primary", id="ok")

    def on_mount(self) -> None:
        self.query_one("#args", Input).focus()

    @on(Input.Submitted, "#args")
    def on_submitted(self, event: Input.Submitted) -> None:
        self.dismiss(event.value)

    @on(Button.Pressed, "#ok")
    def on_ok(self) -> None:
        self.dismiss(self.query_one("#args", Input).value)

    @on(Button.Pressed, "#cancel")
    def on_cancel_pressed(self) -> None:
        self.dismiss(None)

    def action_cancel(self) -> None:
        self.dismiss(None)


class TermflingApp(App):
    """termfling 控制面板"""

    CSS = """
    Screen { background: $surface; }
    #main-container { width: 100%; height: 100%; padding: 0 1; }
    .section-title { text-style: bold; color: $warning; padding: 1 0 0 0; }
    ListView { height: auto; margin: 0; padding: 0; background: transparent; }
    ListItem { padding: 0; height: 1; }
    ListItem > Static { padding: 0 1; }
    ListItem.-highlight { background: $primary 30%; }
    #detail-panel { height: auto; padding: 0 1; color: $text-muted; }
    #status-line { dock: bottom; height: 1; background: $surface-darken-1; color: $text-muted; padding: 0 1; }
    #dialog { width: 50; height: auto; padding: 1 2; background: $surface; border: solid $primary; }
    #dialog-title { text-style: bold; text-align: center; padding-bottom: 1; }
    #dialog-buttons { height: auto; align: center middle; padding-top: 1; }
    #dialog-buttons Button { margin: 0 1; min-width: 8; }
    Input { margin: 0 0 1 0; height: 3; }
    """

    BINDINGS = [
        Binding("q", "quit", "退出"),
        Binding("t", "toggle", "切换"),
        Binding("h", "hide", "隐藏"),
        Binding("x", "close", "关闭"),
        Binding("n", "next", "下一个"),
        Binding("p", "prev", "上一个"),
        Binding("r", "resize", "尺寸"),
        Binding("m", "reposition", "位置"),
        Binding("k", "cursor_up", show=False),
        Binding("j", "cursor_down", show=False),
    ]

    def __init__(self, registry: Registry, config: Optional[Config] = None, poll: bool = True):
        super().__init__()
        self.registry = registry
        self.settings = config or registry.settings
        self.entries = {entry.name: entry for entry in self.settings.surfaces}
        self.process_monitor = ProcessMonitor()
        self.poll_enabled = poll
        self._names: list[str] = []
        self._signature: Optional[tuple] = None

        # 延时发送交给 Textual 定时器
        if not isinstance(registry.scheduler, AppScheduler):
            registry.scheduler = AppScheduler(self)

    def compose(self) -> ComposeResult:
        with Vertical(id="main-container"):
            yield Static("SURFACES", classes="section-title")
            yield ListView(id="surfaces-list")
            yield Static("DETAIL", classes="section-title")
            yield Static("", id="detail-panel")
        yield Static("t:切换 h:隐藏 n/p:导航 r:尺寸 m:位置 x:关闭 q:退出", id="status-line")

    def on_mount(self) -> None:
        self.update_surface_list()
        if self.poll_enabled:
            self.set_interval(self.settings.monitor_interval, self.poll_exits)

    # ========== 列表 ==========

    def _all_names(self) -> list[str]:
        names = list(self.entries)
        for surface in self.registry:
            if surface.name not in self.entries:
                names.append(surface.name)
        return names

    def update_surface_list(self) -> None:
        """按当前状态刷新列表（状态没变时只刷新详情）"""
        infos = {info.name: info for info in self.registry.list()}
        rows = []
        for name in self._all_names():
            info = infos.get(name)
            rows.append((
                name,
                info.state if info else "closed",
                bool(info and info.is_current),
                info.mode.value if info and info.mode else None,
            ))

        self.process_monitor.forget({
            surface.process_handle.pid for surface in self.registry if surface.process_handle is not None
        })

        signature = tuple(rows)
        if signature != self._signature:
            self._signature = signature
            self._names = [row[0] for row in rows]
            list_view = self.query_one("#surfaces-list", ListView)
            index = list_view.index or 0
            list_view.clear()
            for row in rows:
                list_view.append(SurfaceItem(*row))
            if rows:
                list_view.index = min(index, len(rows) - 1)
        self._update_detail_panel()

    def _selected_name(self) -> Optional[str]:
        list_view = self.query_one("#surfaces-list", ListView)
        index = list_view.index
        if index is None or index >= len(self._names):
            return None
        return self._names[index]

    def _update_detail_panel(self) -> None:
        panel = self.query_one("#detail-panel", Static)
        name = self._selected_name()
        if name is None:
            panel.update("")
            return

        lines = [f"名称: {name}"]
        surface = self.registry.by_name.get(name)
        entry = self.entries.get(name)
        command = (surface.backing_command if surface else None) or (entry.command if entry else None)
        if command:
            lines.append(f"命令: {command}")
        if surface is not None and surface.process_handle is not None:
            proc = self.process_monitor.inspect(surface.process_handle.pid, name)
            if proc is not None:
                lines.append(f"PID: {proc.pid} ({proc.status}) 运行 {proc.uptime}")
                lines.append(f"程序: {proc.foreground}")
                lines.append(f"命令行: {proc.summary()}")
                lines.append(f"CPU: {proc.cpu_percent:.1f}% MEM: {proc.memory_percent:.1f}%")
            else:
                lines.append(f"PID: {surface.process_handle.pid}")
        panel.update("\n".join(lines))

    @on(ListView.Highlighted, "#surfaces-list")
    def on_surface_highlighted(self, event: ListView.Highlighted) -> None:
        self._update_detail_panel()

    @on(ListView.Selected, "#surfaces-list")
    def on_surface_selected(self, event: ListView.Selected) -> None:
        self.action_toggle()

    # ========== 操作 ==========

    def _run(self, label: str, func, *args):
        """执行注册表操作，错误以通知显示"""
        try:
            result = func(*args)
        except TflingError as e:
            logger.warning(f"[界面] {label} 失败: {e}")
            self.notify(f"❌ {label}: {e}", severity="error")
            return None
        finally:
            self.update_surface_list()
        return result

    def toggle_name(self, name: str) -> None:
        """可见则隐藏，否则按配置打开"""
        surface = self.registry.by_name.get(name)
        if surface is not None and surface.is_visible() and self.registry.current_name == name:
            self._run("隐藏", self.registry.hide, name)
            return

        entry = self.entries.get(name)
        if entry is not None:
            self._run("打开", self.registry.open, name, entry.window or None, spec_from_entry(entry))
        else:
            self._run("打开", self.registry.open, name, None)

    def action_toggle(self) -> None:
        name = self._selected_name()
        if name is None:
            return
        self.toggle_name(name)

    def action_hide(self) -> None:
        name = self._selected_name()
        if name is None or name not in self.registry:
            return
        self._run("隐藏", self.registry.hide, name)

    def action_close(self) -> None:
        name = self._selected_name()
        if name is None or name not in self.registry:
            return
        self._run("关闭", self.registry.close, name)
        self.notify(f"已关闭 {name}")

    def action_next(self) -> None:
        surface = self._run("下一个", self.registry.next)
        if surface is None:
            self.notify("没有可导航的 surface", severity="warning")

    def action_prev(self) -> None:
        surface = self._run("上一个", self.registry.prev)
        if surface is None:
            self.notify("没有可导航的 surface", severity="warning")

    def _with_args(self, title: str, placeholder: str, parse, apply) -> None:
        name = self._selected_name()
        if name is None or name not in self.registry:
            self.notify("请先打开 surface", severity="warning")
            return

        def on_close(text):
            if not text:
                return
            try:
                opts = parse(text)
            except TflingError as e:
                self.notify(f"❌ {e}", severity="error")
                return
            self._run(title, apply, name, opts)

        self.push_screen(ArgsDialog(f"{title}: {name}", placeholder), on_close)

    def action_resize(self) -> None:
        self._with_args("调整尺寸", "w=+10% h=20", parse_resize_args, self.registry.resize)

    def action_reposition(self) -> None:
        self._with_args("调整位置", "center / row=+2 col=10 / split-left", parse_reposition_args,
                        self.registry.reposition)

    def action_cursor_up(self) -> None:
        self.query_one("#surfaces-list", ListView).action_cursor_up()

    def action_cursor_down(self) -> None:
        self.query_one("#surfaces-list", ListView).action_cursor_down()

    # ========== 轮询 ==========

    def poll_exits(self) -> None:
        """读取宿主的进程退出记录并刷新列表"""
        try:
            events = self.registry.poll_host_exits()
        except TflingError as e:
            logger.warning(f"[界面] 轮询进程退出失败: {e}")
            return
        for event in events:
            logger.info(f"[界面] 进程退出: pid={event.process.pid} code={event.exit_code}")
        if events:
            self.update_surface_list()


def run_app(registry: Registry, config: Optional[Config] = None):
    """运行应用"""
    app = TermflingApp(registry, config)
    app.run()
