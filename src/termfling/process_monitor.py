"""surface 进程查看

只读：从 psutil 读出 surface 后台进程的状态，供界面详情面板显示。
进程由宿主启动和结束，这里不做任何控制。

通过会话后端运行时，宿主记录的 pid 是 `tmux attach` / `abduco` 客户端，
真正的程序在子进程里，因此同时收集子进程名。
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import psutil

_FIELDS = ['pid', 'name', 'cmdline', 'create_time', 'status']


@dataclass
class ProcessInfo:
    """surface 进程快照"""
    surface: str
    pid: int
    name: str
    cmdline: list[str]
    started: datetime
    status: str
    cpu_percent: float = 0.0
    memory_percent: float = 0.0
    children: list[str] = field(default_factory=list)

    @property
    def foreground(self) -> str:
        """最内层的程序名（没有子进程时就是自身）"""
        return self.children[-1] if self.children else self.name

    @property
    def uptime(self) -> str:
        """运行时长，如 "45秒" / "12分钟" / "3小时5分钟" / "2天1小时" """
        seconds = max(0, int((datetime.now() - self.started).total_seconds()))
        days, seconds = divmod(seconds, 86400)
        hours, seconds = divmod(seconds, 3600)
        minutes, seconds = divmod(seconds, 60)
        if days:
            return f"{days}天{hours}小时"
        if hours:
            return f"{hours}小时{minutes}分钟"
        if minutes:
            return f"{minutes}分钟"
        return f"{seconds}秒"

    def summary(self, width: int = 50) -> str:
        """单行摘要，超出 width 时截断"""
        text = ' '.join(self.cmdline) or self.name
        if len(text) > width:
            text = text[:width - 3] + '...'
        return text


class ProcessMonitor:
    """surface 进程查看器

    按 pid 缓存 psutil.Process：cpu_percent(interval=None) 以同一对象上次调用为基准，
    每次新建对象只能得到 0.0。
    """

    def __init__(self):
        self._procs: dict[int, psutil.Process] = {}

    def _process(self, pid: int) -> psutil.Process:
        proc = self._procs.get(pid)
        # pid 被复用时 is_running 会比对创建时间
        if proc is None or not proc.is_running():
            proc = psutil.Process(pid)
            self._procs[pid] = proc
        return proc

    def inspect(self, pid: int, surface: str = "") -> Optional[ProcessInfo]:
        """读取进程状态，进程已退出或无权限时返回 None

        首次查看某个 pid 时 CPU 占用为 0.0，之后为距上次查看的占用。
        """
        try:
            proc = self._process(pid)
            data = proc.as_dict(_FIELDS)
            try:
                children = [child.name() for child in proc.children(recursive=True)]
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                children = []
            created = data.get('create_time')
            return ProcessInfo(
                surface=surface,
                pid=data['pid'],
                name=data.get('name') or '?',
                cmdline=data.get('cmdline') or [],
                started=datetime.fromtimestamp(created) if created else datetime.now(),
                status=data.get('status') or '?',
                cpu_percent=proc.cpu_percent(interval=None),
                memory_percent=proc.memory_percent(),
                children=children,
            )
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            self._procs.pop(pid, None)
            return None

    def forget(self, keep) -> None:
        """丢弃不在 keep 中的 pid 缓存"""
        for pid in [pid for pid in self._procs if pid not in keep]:
            del self._procs[pid]
