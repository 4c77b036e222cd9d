"""会话后端

把 surface 的命令包装成可分离、可重新连接的会话，使进程在窗口隐藏后继续运行：

- tmux: 会话存在则 attach，否则 new-session
- abduco: `abduco -A` 自带"存在则连接，否则创建"的语义
"""

import logging
import re
import shlex
import subprocess
from abc import ABC, abstractmethod
from typing import Optional

from .errors import ConfigurationError, SessionBackendUnavailable

logger = logging.getLogger(__name__)

DEFAULT_SESSION_PREFIX = "tfling-"

_UNSAFE = re.compile(r'[^A-Za-z0-9_-]')


def session_id_for(name: str, prefix: str = DEFAULT_SESSION_PREFIX) -> str:
    """根据 surface 名称生成稳定的会话 ID

    tmux 会话名不能包含 '.' 和 ':'，这里把所有非 [A-Za-z0-9_-] 字符替换为 '-'。
    """
    return prefix + _UNSAFE.sub('-', name)


class SessionProvider(ABC):
    """会话后端基类"""

    @property
    @abstractmethod
    def name(self) -> str:
        """后端名称"""
        pass

    @abstractmethod
    def create_or_attach(self, session_id: str, command: str) -> str:
        """返回在 surface 中实际执行的命令行

        Raises:
            SessionBackendUnavailable: 后端不可用
        """
        pass

    def kill_session(self, session_id: str) -> bool:
        """结束会话，后端不支持时返回 False"""
        return False

    def is_available(self) -> tuple[bool, str]:
        """检查后端是否安装"""
        return True, self.name


class TmuxSessionProvider(SessionProvider):
    """tmux 会话后端"""

    def __init__(self, timeout: float = 2.0):
        self.timeout = timeout

    @property
    def name(self) -> str:
        return "tmux"

    def _run(self, *args) -> subprocess.CompletedProcess:
        """执行 tmux 命令；找不到 tmux 或超时抛出 SessionBackendUnavailable"""
        cmd = ['tmux'] + list(args)
        try:
            return subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except subprocess.TimeoutExpired:
            raise SessionBackendUnavailable("tmux", f"{' '.join(cmd)} 超时") from None
        except FileNotFoundError:
            raise SessionBackendUnavailable("tmux", "tmux not found") from None

    def has_session(self, session_id: str) -> bool:
        """会话是否存在（同步探测）"""
        result = self._run('has-session', '-t', session_id)
        return result.returncode == 0

    def create_or_attach(self, session_id: str, command: str) -> str:
        if self.has_session(session_id):
            logger.info(f"[会话] 连接已有 tmux 会话: {session_id}")
            return shlex.join(['tmux', 'attach', '-t', session_id])
        logger.info(f"[会话] 新建 tmux 会话: {session_id}")
        return f"{shlex.join(['tmux', 'new-session', '-s', session_id])} {command}"

    def kill_session(self, session_id: str) -> bool:
        result = self._run('kill-session', '-t', session_id)
        if result.returncode != 0:
            logger.warning(f"[会话] 结束 tmux 会话失败 {session_id}: {result.stderr.strip()}")
            return False
        logger.info(f"[会话] 已结束 tmux 会话: {session_id}")
        return True

    def is_available(self) -> tuple[bool, str]:
        try:
            result = self._run('-V')
        except SessionBackendUnavailable as e:
            return False, str(e)
        if result.returncode != 0:
            return False, "未找到 tmux，请安装: sudo apt install tmux"
        return True, result.stdout.strip()


class AbducoSessionProvider(SessionProvider):
    """abduco 会话后端

    `abduco -A` 会在会话不存在时创建，因此不需要探测。
    """

    def __init__(self, exit_key: str = "^Q"):
        self.exit_key = exit_key

    @property
    def name(self) -> str:
        return "abduco"

    def create_or_attach(self, session_id: str, command: str) -> str:
        return f"{shlex.join(['abduco', '-e', self.exit_key, '-A', session_id])} {command}"

    def is_available(self) -> tuple[bool, str]:
        try:
            result = subprocess.run(['abduco', '-v'], capture_output=True, text=True, timeout=2.0)
        except FileNotFoundError:
            return False, "未找到 abduco"
        except subprocess.TimeoutExpired:
            return False, "abduco -v 超时"
        # abduco -v 的输出在不同版本里可能写到 stderr
        version = (result.stdout or result.stderr).strip()
        return True, version or "abduco"


PROVIDERS = {
    "tmux": TmuxSessionProvider,
    "abduco": AbducoSessionProvider,
}


def get_provider(name: str, **kwargs) -> SessionProvider:
    """按名称创建会话后端

    Raises:
        ConfigurationError: 未知后端
    """
    cls = PROVIDERS.get(name)
    if cls is None:
        raise ConfigurationError(f"未知会话后端: {name!r}，可选: {', '.join(PROVIDERS)}")
    return cls(**kwargs)


def resolve_command(
    provider: Optional[SessionProvider],
    name: str,
    command: str,
    prefix: str = DEFAULT_SESSION_PREFIX,
    fallback_to_raw: bool = False,
) -> str:
    """计算 surface 实际执行的命令

    Args:
        provider: 会话后端，None 表示直接运行命令
        name: surface 名称
        command: 原始命令
        prefix: 会话 ID 前缀
        fallback_to_raw: 后端不可用时是否退回原始命令

    Returns:
        命令行字符串
    """
    if provider is None:
        return command
    session_id = session_id_for(name, prefix)
    try:
        return provider.create_or_attach(session_id, command)
    except SessionBackendUnavailable as e:
        if not fallback_to_raw:
            raise
        logger.warning(f"[会话] {e}，直接运行命令: {command}")
        return command


def check_backends() -> list[tuple[str, bool, str]]:
    """检查所有会话后端 -> [(名称, 是否可用, 说明)]"""
    results = []
    for name, cls in PROVIDERS.items():
        ok, msg = cls().is_available()
        results.append((name, ok, msg))
    return results
