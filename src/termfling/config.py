"""配置管理模块"""

import yaml
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import List, Optional

logger = logging.getLogger(__name__)

# 默认配置文件路径
CONFIG_DIR = Path.home() / '.config' / 'termfling'
DEFAULT_CONFIG_PATH = CONFIG_DIR / 'config.yaml'
LOG_DIR = CONFIG_DIR / 'logs'


@dataclass
class SurfaceEntry:
    """配置文件中预定义的 surface（供界面使用）

    Attributes:
        name: 名称
        command: 启动命令，空表示普通内容面板
        session: 会话后端（tmux / abduco），空表示直接运行
        ephemeral: 隐藏时销毁
        cwd: 工作目录
        init: 冷启动后发送给进程的文本
        window: 展示配置（同 open 的 config 字典）
    """
    name: str
    command: Optional[str] = None
    session: Optional[str] = None
    ephemeral: bool = False
    cwd: Optional[str] = None
    init: Optional[str] = None
    window: dict = field(default_factory=dict)


@dataclass
class Config:
    """主配置"""
    host: str = "auto"                     # 宿主类型：auto, tmux, headless
    send_delay: int = 100                  # 延时发送（毫秒）
    session_prefix: str = "tfling-"        # 会话 ID 前缀
    session_timeout: float = 2.0           # 会话探测超时（秒）
    strict_positions: bool = False         # 未知位置是否报错（否则回退到 center）
    fallback_to_raw_command: bool = False  # 会话后端不可用时直接运行命令
    abduco_exit_key: str = "^Q"            # abduco 分离快捷键
    tmux_stash_session: str = "tfling-stash"  # 隐藏 pane 的 tmux 会话
    monitor_interval: float = 1.0          # 界面轮询进程退出的间隔（秒）
    log_level: str = "INFO"
    surfaces: List[SurfaceEntry] = field(default_factory=list)


def _parse_surfaces(items) -> List[SurfaceEntry]:
    surfaces = []
    for item in items or []:
        if not isinstance(item, dict) or not item.get('name'):
            logger.warning(f"[配置] 忽略没有 name 的 surface: {item!r}")
            continue
        surfaces.append(SurfaceEntry(
            name=str(item['name']),
            command=item.get('command'),
            session=item.get('session'),
            ephemeral=bool(item.get('ephemeral', False)),
            cwd=item.get('cwd'),
            init=item.get('init'),
            window=item.get('window') or {},
        ))
    return surfaces


def load_config(config_path: Path = None) -> Config:
    """加载配置文件

    Args:
        config_path: 配置文件路径，默认 ~/.config/termfling/config.yaml

    Returns:
        Config 对象
    """
    path = config_path or DEFAULT_CONFIG_PATH
    config = Config()

    if path.exists():
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}

            defaults = Config()
            config = Config(
                host=data.get('host', defaults.host),
                send_delay=int(data.get('send_delay', defaults.send_delay)),
                session_prefix=data.get('session_prefix', defaults.session_prefix),
                session_timeout=float(data.get('session_timeout', defaults.session_timeout)),
                strict_positions=bool(data.get('strict_positions', defaults.strict_positions)),
                fallback_to_raw_command=bool(data.get('fallback_to_raw_command', defaults.fallback_to_raw_command)),
                abduco_exit_key=data.get('abduco_exit_key', defaults.abduco_exit_key),
                tmux_stash_session=data.get('tmux_stash_session', defaults.tmux_stash_session),
                monitor_interval=float(data.get('monitor_interval', defaults.monitor_interval)),
                log_level=str(data.get('log_level', defaults.log_level)).upper(),
                surfaces=_parse_surfaces(data.get('surfaces')),
            )

            logger.info(f"[配置] 已加载: {path}")
        except (OSError, yaml.YAMLError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"[配置] 加载失败，使用默认值: {e}")
            config = Config()
    else:
        logger.info(f"[配置] 文件不存在，使用默认值: {path}")

    return config


def save_default_config(config_path: Path = None) -> Path:
    """保存默认配置文件（用于生成示例）

    Args:
        config_path: 配置文件路径

    Returns:
        写入的路径
    """
    path = config_path or DEFAULT_CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)

    default_yaml = """# termfling 配置文件

# 宿主类型：auto（在 tmux 中自动使用 tmux）, tmux, headless
host: auto

# 延时发送（毫秒）：init 文本和 send() 在进程启动后多久写入
send_delay: 100

# 会话后端
session_prefix: "tfling-"
session_timeout: 2.0
fallback_to_raw_command: false   # 后端不可用时是否直接运行命令
abduco_exit_key: "^Q"

# 未知位置是否报错（false 时回退到 center 并记录警告）
strict_positions: false

# tmux 宿主用于存放隐藏 pane 的会话
tmux_stash_session: tfling-stash

# 界面轮询进程退出的间隔（秒）
monitor_interval: 1.0

log_level: INFO

# 预定义的 surface
surfaces:
  - name: shell
    command: bash
    session: tmux
    window:
      direction: bottom
      size: "30%"

  - name: htop
    command: htop
    ephemeral: true
    window:
      mode: tab

  - name: logs
    command: "tail -f /var/log/syslog"
    window:
      direction: right
      size: "40%"
"""

    with open(path, 'w', encoding='utf-8') as f:
        f.write(default_yaml)

    logger.info(f"[配置] 已生成默认配置: {path}")
    return path


# 全局配置实例
_config: Config = None


def get_config() -> Config:
    """获取全局配置（懒加载）"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config(config_path: Path = None) -> Config:
    """重新加载配置"""
    global _config
    _config = load_config(config_path)
    return _config
