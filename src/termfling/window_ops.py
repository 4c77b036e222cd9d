"""窗口操作：调整尺寸和位置

按 surface 的展示模式分别处理：

- 浮动窗口: 读出当前矩形，按单位解析新值，限制在屏幕内后一次性写回
- 分屏: 宽/高分别通过宿主的单维度接口设置；改变方向时关闭后重建分屏
- 标签页: 没有几何，不做任何事
"""

import logging
from dataclasses import replace

from . import geometry, units
from .errors import ConfigurationError, HostOperationFailed
from .geometry import PADDING, Rect
from .models import Mode
from .presentation import FloatingConfig, SplitConfig

logger = logging.getLogger(__name__)

_RESIZE_KEYS = {"width", "height"}
_REPOSITION_KEYS = {"position", "row", "col", "direction"}


def _check_keys(opts: dict, allowed: set, operation: str) -> None:
    unknown = set(opts) - allowed
    if unknown:
        raise ConfigurationError(f"{operation} 不支持的参数: {', '.join(sorted(unknown))}")


def _live_window(surface, operation: str):
    if surface.mode is Mode.TAB:
        logger.debug(f"[{surface.name}] 标签页没有几何，忽略 {operation}")
        return None
    if not surface.window_alive():
        logger.debug(f"[{surface.name}] 未打开，忽略 {operation}")
        return None
    return surface.window_handle.window_id


# ========== resize ==========

def resize(surface, opts: dict) -> bool:
    """调整尺寸

    Args:
        surface: 目标 surface
        opts: {"width": 单位, "height": 单位}，至少一个

    Returns:
        是否修改了窗口（未打开或标签页返回 False）
    """
    _check_keys(opts, _RESIZE_KEYS, "resize")
    width, height = opts.get("width"), opts.get("height")
    if width is None and height is None:
        return False
    window_id = _live_window(surface, "resize")
    if window_id is None:
        return False

    host = surface.host
    columns, lines = host.get_screen_size()
    current = host.get_geometry(window_id)

    if surface.mode is Mode.FLOATING:
        new_width = units.parse(width, columns, current.width) if width is not None else current.width
        new_height = units.parse(height, lines, current.height) if height is not None else current.height
        new_width, new_height = geometry.clamp_size(new_width, new_height, columns, lines)
        row, col = geometry.clamp_origin(current.row, current.col, new_width, new_height, columns, lines)
        rect = Rect(row=row, col=col, width=new_width, height=new_height)
        host.set_geometry(window_id, rect)
        if isinstance(surface.last_config, FloatingConfig):
            surface.last_config = replace(surface.last_config, width=new_width, height=new_height)
        logger.info(f"[{surface.name}] 浮动窗口尺寸: {current.width}x{current.height} -> {new_width}x{new_height}")
        return True

    # 分屏：两个维度都解析成功后再写回
    new_width = new_height = None
    if width is not None:
        new_width = max(1, min(units.parse(width, columns, current.width), columns - PADDING))
    if height is not None:
        new_height = max(1, min(units.parse(height, lines, current.height), lines - PADDING))

    config = surface.last_config
    if new_width is not None:
        host.set_width(window_id, new_width)
        if isinstance(config, SplitConfig) and not config.is_horizontal:
            config = replace(config, size=new_width)
    if new_height is not None:
        host.set_height(window_id, new_height)
        if isinstance(config, SplitConfig) and config.is_horizontal:
            config = replace(config, size=new_height)
    surface.last_config = config
    logger.info(f"[{surface.name}] 分屏尺寸已调整: {opts}")
    return True


# ========== reposition ==========

def _direction(opts: dict):
    direction = opts.get("direction")
    position = opts.get("position")
    if direction is None and isinstance(position, str) and position.startswith("split-"):
        direction = position[len("split-"):]
    return direction


def reposition(surface, opts: dict) -> bool:
    """调整位置

    Args:
        surface: 目标 surface
        opts: 浮动窗口 {"position": 锚点, "row": 单位, "col": 单位}；
              分屏 {"direction": 方向} 或 {"position": "split-<方向>"}

    Returns:
        是否修改了窗口
    """
    _check_keys(opts, _REPOSITION_KEYS, "reposition")
    window_id = _live_window(surface, "reposition")
    if window_id is None:
        return False

    direction = _direction(opts)
    if surface.mode is Mode.SPLIT:
        if direction is None:
            logger.debug(f"[{surface.name}] 分屏只支持改变方向，忽略: {opts}")
            return False
        return _move_split(surface, window_id, direction)

    if direction is not None:
        raise ConfigurationError(f"{surface.name}: 浮动窗口不能改为分屏方向 {direction!r}")
    return _move_floating(surface, window_id, opts)


def _move_floating(surface, window_id: str, opts: dict) -> bool:
    position, row_token, col_token = opts.get("position"), opts.get("row"), opts.get("col")
    if position is None and row_token is None and col_token is None:
        return False

    host = surface.host
    settings = surface.registry.settings
    columns, lines = host.get_screen_size()
    current = host.get_geometry(window_id)
    row, col = current.row, current.col

    if position is not None:
        margin = surface.last_config.margin if isinstance(surface.last_config, FloatingConfig) else FloatingConfig.margin
        anchored = geometry.compute_floating(
            FloatingConfig(position=position, width=current.width, height=current.height, margin=margin),
            columns, lines, strict=settings.strict_positions,
        )
        row, col = anchored.row, anchored.col
    if row_token is not None:
        row = units.parse(row_token, lines, row)
    if col_token is not None:
        col = units.parse(col_token, columns, col)

    row, col = geometry.clamp_origin(row, col, current.width, current.height, columns, lines)
    host.set_geometry(window_id, Rect(row=row, col=col, width=current.width, height=current.height))
    if position is not None and isinstance(surface.last_config, FloatingConfig):
        surface.last_config = replace(surface.last_config, position=position)
    logger.info(f"[{surface.name}] 浮动窗口位置: ({current.row}, {current.col}) -> ({row}, {col})")
    return True


def _move_split(surface, window_id: str, direction: str) -> bool:
    """关闭分屏并在新方向重建，内容不变

    新尺寸取原分屏占屏幕的百分比。
    """
    if direction not in geometry.DIRECTIONS:
        raise ConfigurationError(f"未知分屏方向: {direction!r}")
    old = surface.last_config
    if isinstance(old, SplitConfig) and old.direction == direction:
        return False

    host = surface.host
    columns, lines = host.get_screen_size()
    current = host.get_geometry(window_id)
    was_horizontal = old.is_horizontal if isinstance(old, SplitConfig) else current.width >= columns
    if was_horizontal:
        percent = current.height * 100 // lines
    else:
        percent = current.width * 100 // columns

    config = SplitConfig(direction=direction, size=f"{percent}%")
    placement = geometry.compute_split(direction, config.size, columns, lines)

    content_id = surface.content_handle.content_id
    host.close_window(window_id)
    surface._unbind_window()
    try:
        new_id = host.open_split(content_id, direction, placement.absolute_size)
    except HostOperationFailed:
        # 按原方向和尺寸恢复
        if isinstance(old, SplitConfig):
            size = current.height if old.is_horizontal else current.width
            surface._bind_window(host.open_split(content_id, old.direction, size))
            logger.warning(f"[{surface.name}] 分屏改为 {direction} 失败，已恢复为 {old.direction}")
        raise
    surface._bind_window(new_id)
    surface.last_config = config
    logger.info(f"[{surface.name}] 分屏方向改为 {direction}: {window_id} -> {new_id}")
    return True


# ========== 参数解析 ==========

def parse_resize_args(text: str) -> dict:
    """解析命令行形式的尺寸参数

    支持 "width=80%" / "w=80%" / "height=+10%" / "h=20"，
    以及按顺序的位置参数 "80% 60%"（先宽后高）。
    """
    options = {}
    for part in (text or "").split():
        key, sep, value = part.partition("=")
        if sep:
            if key in ("width", "w"):
                options["width"] = value
            elif key in ("height", "h"):
                options["height"] = value
            else:
                raise ConfigurationError(f"未知尺寸参数: {key}")
        elif part[0].isdigit() or part.startswith("+") or part.endswith("%"):
            options.setdefault("width" if "width" not in options else "height", part)
        else:
            raise ConfigurationError(f"无法识别的尺寸参数: {part}")
    return options


def parse_reposition_args(text: str) -> dict:
    """解析命令行形式的位置参数

    支持 "position=center" / "p=top-left" / "row=+2" / "r=10" / "col=50%" / "c=5"，
    "direction=left"，以及直接写锚点或 "split-<方向>"。
    """
    options = {}
    for part in (text or "").split():
        key, sep, value = part.partition("=")
        if sep:
            if key in ("position", "p"):
                options["position"] = value
            elif key in ("row", "r"):
                options["row"] = value
            elif key in ("col", "c"):
                options["col"] = value
            elif key in ("direction", "d"):
                options["direction"] = value
            else:
                raise ConfigurationError(f"未知位置参数: {key}")
        elif part.startswith("split-") or part in geometry.POSITIONS:
            options["position"] = part
        else:
            raise ConfigurationError(f"无法识别的位置参数: {part}")
    return options
