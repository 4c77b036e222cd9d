"""命令行入口 - 可切换的命名终端面板"""

import argparse
import logging
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

from .config import LOG_DIR, load_config, save_default_config, DEFAULT_CONFIG_PATH
from .host import check_environment as check_host_environment
from .sessions import check_backends

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO", log_dir: Path = LOG_DIR) -> Path:
    """日志写入 ~/.config/termfling/logs/app.log（TUI 占用终端，不输出到屏幕）"""
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "app.log"
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        handlers=[
            logging.FileHandler(log_file, encoding='utf-8'),
        ]
    )
    return log_file


def main(argv=None):
    """主入口"""
    parser = argparse.ArgumentParser(
        description='termfling - 可切换的命名终端面板（浮动 / 分屏 / 标签页）',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
展示模式:
  floating  浮动窗口（headless 宿主）
  split     在当前窗口旁分屏：left / right / top / bottom
  tab       独立标签页（tmux window），可加 direction/size 在标签页内分屏

快捷键:
  t / Enter  切换选中的 surface
  h          隐藏
  n / p      下一个 / 上一个
  r          调整尺寸（w=+10% h=20）
  m          调整位置（center / row=+2 / split-left）
  x          关闭
  q          退出

使用方式:
  termfling                 # 启动控制面板（在 tmux 中使用 tmux 宿主）
  termfling --check         # 检查环境
  termfling --init-config   # 生成默认配置文件
        """
    )

    parser.add_argument('--check', '-c', action='store_true', help='检查环境')
    parser.add_argument('--version', '-v', action='store_true', help='显示版本')
    parser.add_argument('--config', type=Path, default=None, help=f'配置文件（默认 {DEFAULT_CONFIG_PATH}）')
    parser.add_argument('--init-config', action='store_true', help='生成默认配置文件')
    parser.add_argument('--host', choices=['auto', 'tmux', 'headless'], default=None, help='宿主类型')
    parser.add_argument('--debug', action='store_true', help='输出调试日志')

    args = parser.parse_args(argv)

    if args.version:
        from . import __version__
        print(f"termfling v{__version__}")
        return 0

    if args.init_config:
        path = args.config or DEFAULT_CONFIG_PATH
        if path.exists():
            print(f"配置文件已存在: {path}", file=sys.stderr)
            return 1
        save_default_config(path)
        print(f"已生成: {path}")
        return 0

    config = load_config(args.config)
    if args.host:
        config.host = args.host
    setup_logging("DEBUG" if args.debug else config.log_level)

    if args.check:
        return check_environment(config)

    # 检查是否在终端中
    if not sys.stdout.isatty():
        print("错误: 需要在终端中运行", file=sys.stderr)
        return 1

    from .host import get_host
    from .registry import Registry
    from .app import run_app

    try:
        host = get_host(config=config)
    except ValueError as e:
        print(f"错误: {e}", file=sys.stderr)
        return 1

    logger.info(f"[启动] 宿主: {host.name}, surface 数: {len(config.surfaces)}")
    run_app(Registry(host, settings=config), config)
    return 0


def check_environment(config=None):
    """检查环境"""
    print("检查环境...\n")
    all_ok = True

    # 检查宿主（自动检测类型）
    ok, msg, host = check_host_environment(config)
    if ok:
        print(f"✅ 宿主: {msg}")
    else:
        print(f"❌ 宿主: {msg}")
        all_ok = False

    # 会话后端是可选的，缺失只提示
    for name, ok, msg in check_backends():
        mark = "✅" if ok else "⚠️ "
        print(f"{mark} 会话后端 {name}: {msg}")

    # 检查 Textual
    try:
        print(f"✅ Textual: {version('textual')}")
    except PackageNotFoundError:
        print("❌ Textual: 未安装")
        all_ok = False

    print()
    if all_ok:
        print("✓ 所有检查通过")
    else:
        print("✗ 部分检查失败，请查看上方信息")

    return 0 if all_ok else 1


if __name__ == '__main__':
    sys.exit(main())
