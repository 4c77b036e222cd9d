"""宿主类型检测

根据环境变量和配置选择宿主适配器。
"""

import os
import logging
from typing import Optional

from ..config import Config, get_config
from .adapter import HostAdapter
from .headless import HeadlessHost
from .tmux_host import TmuxHost

logger = logging.getLogger(__name__)


def detect_host() -> str:
    """检测当前宿主类型

    Returns:
        'tmux' 或 'headless'
    """
    if os.environ.get('TMUX'):
        logger.info("[检测] 检测到 tmux 会话")
        return 'tmux'

    logger.info("[检测] 不在 tmux 中，使用 headless 宿主")
    return 'headless'


def get_host(host_type: Optional[str] = None, config: Optional[Config] = None) -> HostAdapter:
    """获取宿主适配器

    Args:
        host_type: 宿主类型，None 或 'auto' 表示按配置/环境检测
            - 'tmux': tmux pane/window
            - 'headless': 内存宿主
        config: 配置，默认使用全局配置

    Returns:
        HostAdapter 实例

    Raises:
        ValueError: 不支持的宿主类型或宿主不可用
    """
    config = config or get_config()
    if host_type is None or host_type == 'auto':
        if config.host and config.host != 'auto':
            host_type = config.host
        else:
            host_type = detect_host()

    logger.info(f"[宿主] 使用宿主类型: {host_type}")

    if host_type == 'tmux':
        host = TmuxHost(stash_session=config.tmux_stash_session, timeout=config.session_timeout)
        ok, msg = host.is_available()
        if ok:
            return host
        raise ValueError(f"tmux 不可用: {msg}")

    if host_type == 'headless':
        return HeadlessHost()

    raise ValueError(f"不支持的宿主类型: {host_type}")


def check_environment(config: Optional[Config] = None) -> tuple[bool, str, Optional[HostAdapter]]:
    """检查宿主环境

    Returns:
        (是否可用, 说明信息, 适配器实例或 None)
    """
    try:
        host = get_host(config=config)
    except ValueError as e:
        return False, str(e), None
    ok, msg = host.is_available()
    return ok, msg, host
