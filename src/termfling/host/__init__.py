"""宿主适配器模块

提供统一的窗口/内容/标签页操作接口。

使用示例：
    from termfling.host import get_host

    host = get_host()            # 在 tmux 中自动使用 TmuxHost
    host = get_host('headless')  # 内存宿主

    content = host.create_content('logs')
    host.start_process(content, 'tail -f app.log')
    window = host.open_split(content, 'bottom', 12)
"""

from .adapter import HostAdapter
from .detector import (
    get_host,
    detect_host,
    check_environment,
)
from .headless import HeadlessHost
from .tmux_host import TmuxHost

__all__ = [
    # 抽象接口
    'HostAdapter',
    # 具体适配器
    'HeadlessHost',
    'TmuxHost',
    # 工厂函数
    'get_host',
    'detect_host',
    'check_environment',
]
