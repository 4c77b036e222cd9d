"""几何计算

把展示配置换算为具体的窗口矩形（浮动）或分屏尺寸（分屏）。
纯函数，不访问宿主环境。
"""

import logging
from dataclasses import dataclass

from . import units
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

# 浮动窗口与屏幕边缘保留的最小间距（宽/高各减去此值）
PADDING = 2

POSITIONS = (
    "center",
    "top-left",
    "top-center",
    "top-right",
    "bottom-left",
    "bottom-center",
    "bottom-right",
    "left-center",
    "right-center",
)

DIRECTIONS = ("left", "right", "top", "bottom")


@dataclass(frozen=True)
class Rect:
    """浮动窗口矩形（单位：单元格）"""
    row: int
    col: int
    width: int
    height: int

    def fits(self, screen_width: int, screen_height: int) -> bool:
        """是否满足屏幕约束"""
        return (
            0 < self.width <= screen_width - PADDING
            and 0 < self.height <= screen_height - PADDING
            and 0 <= self.row and self.row + self.height <= screen_height
            and 0 <= self.col and self.col + self.width <= screen_width
        )


@dataclass(frozen=True)
class SplitGeometry:
    """分屏尺寸

    Attributes:
        is_horizontal: True 表示上下分屏（top/bottom），尺寸是行数
        absolute_size: 新分屏的行数或列数
    """
    is_horizontal: bool
    absolute_size: int


def _check_screen(screen_width: int, screen_height: int) -> None:
    if screen_width <= PADDING or screen_height <= PADDING:
        raise ConfigurationError(f"屏幕太小: {screen_width}x{screen_height}")


def clamp_size(width: int, height: int, screen_width: int, screen_height: int) -> tuple[int, int]:
    """把宽高限制在 [1, 屏幕 - PADDING]"""
    width = max(1, min(width, screen_width - PADDING))
    height = max(1, min(height, screen_height - PADDING))
    return width, height


def clamp_origin(row: int, col: int, width: int, height: int,
                 screen_width: int, screen_height: int) -> tuple[int, int]:
    """移动左上角使窗口完全落在屏幕内"""
    row = max(0, min(row, screen_height - height))
    col = max(0, min(col, screen_width - width))
    return row, col


def anchor(position: str, width: int, height: int, margin: int,
           screen_width: int, screen_height: int, strict: bool = False) -> tuple[int, int]:
    """按锚点计算左上角 (row, col)

    未知锚点默认回退到 center；strict 为 True 时抛出 ConfigurationError。
    """
    center_row = (screen_height - height) // 2
    center_col = (screen_width - width) // 2
    bottom = screen_height - height - margin
    right = screen_width - width - margin

    table = {
        "center": (center_row, center_col),
        "top-left": (margin, margin),
        "top-center": (margin, center_col),
        "top-right": (margin, right),
        "bottom-left": (bottom, margin),
        "bottom-center": (bottom, center_col),
        "bottom-right": (bottom, right),
        "left-center": (center_row, margin),
        "right-center": (center_row, right),
    }
    if position not in table:
        if strict:
            raise ConfigurationError(f"未知位置: {position!r}，可选: {', '.join(POSITIONS)}")
        logger.warning(f"[几何] 未知位置 {position!r}，使用 center")
        return table["center"]
    return table[position]


def compute_floating(config, screen_width: int, screen_height: int,
                     strict: bool = False) -> Rect:
    """计算浮动窗口矩形

    Args:
        config: 具有 position/width/height/margin 属性的浮动配置
        screen_width: 屏幕列数
        screen_height: 屏幕行数
        strict: 未知位置是否报错

    Returns:
        满足屏幕约束的 Rect
    """
    _check_screen(screen_width, screen_height)

    width = units.parse(config.width, screen_width)
    height = units.parse(config.height, screen_height)
    margin = max(0, units.parse(config.margin, min(screen_width, screen_height)))

    width, height = clamp_size(width, height, screen_width, screen_height)
    row, col = anchor(config.position, width, height, margin,
                      screen_width, screen_height, strict=strict)
    row, col = clamp_origin(row, col, width, height, screen_width, screen_height)
    return Rect(row=row, col=col, width=width, height=height)


def compute_split(direction: str, size_token, screen_width: int, screen_height: int) -> SplitGeometry:
    """计算分屏尺寸

    top/bottom 为上下分屏，按屏幕高度计算；left/right 按屏幕宽度计算。
    """
    if direction not in DIRECTIONS:
        raise ConfigurationError(f"未知分屏方向: {direction!r}，可选: {', '.join(DIRECTIONS)}")
    _check_screen(screen_width, screen_height)

    is_horizontal = direction in ("top", "bottom")
    base = screen_height if is_horizontal else screen_width
    size = units.parse(size_token, base)
    size = max(1, min(size, base - PADDING))
    return SplitGeometry(is_horizontal=is_horizontal, absolute_size=size)
