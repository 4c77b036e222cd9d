"""展示配置

三种互斥的配置类型，分别带有自己的默认值：

- FloatingConfig: 浮动窗口（锚点 + 宽高 + 边距）
- SplitConfig: 分屏（方向 + 尺寸）
- TabConfig: 独立标签页，可选在标签页内按方向分出一块显示内容

调用方可以传入字典，由 resolve() 在入口处统一转换和校验，
之后的代码只处理这三种类型。
"""

from dataclasses import dataclass
from typing import Optional, Union

from . import units
from .errors import ConfigurationError, InvalidUnitToken
from .geometry import DIRECTIONS, POSITIONS
from .models import Mode

# 分屏默认尺寸
SPLIT_DEFAULT_WIDTH = "30%"     # split-left / split-right
SPLIT_DEFAULT_HEIGHT = "40%"    # split-top / split-bottom

_KNOWN_KEYS = {"mode", "type", "position", "width", "height", "margin", "size", "direction", "title"}


@dataclass(frozen=True)
class FloatingConfig:
    """浮动窗口配置"""
    position: str = "top-center"
    width: units.Token = "80%"
    height: units.Token = "80%"
    margin: units.Token = "5%"

    @property
    def mode(self) -> Mode:
        return Mode.FLOATING


@dataclass(frozen=True)
class SplitConfig:
    """分屏配置

    size 缺省时按方向取默认值：左右分屏 30% 宽，上下分屏 40% 高。
    """
    direction: str = "right"
    size: Optional[units.Token] = None

    def __post_init__(self):
        if self.direction not in DIRECTIONS:
            raise ConfigurationError(f"未知分屏方向: {self.direction!r}")
        if self.size is None:
            default = SPLIT_DEFAULT_HEIGHT if self.is_horizontal else SPLIT_DEFAULT_WIDTH
            object.__setattr__(self, 'size', default)

    @property
    def mode(self) -> Mode:
        return Mode.SPLIT

    @property
    def is_horizontal(self) -> bool:
        return self.direction in ("top", "bottom")

    @property
    def position(self) -> str:
        return f"split-{self.direction}"


@dataclass(frozen=True)
class TabConfig:
    """标签页配置

    direction 为空时内容占满整个标签页；否则内容占据标签页内
    该方向上 size 大小的分屏，其余部分留给一个空白窗格。
    """
    title: Optional[str] = None
    direction: Optional[str] = None
    size: Optional[units.Token] = None

    def __post_init__(self):
        if self.direction is None:
            if self.size is not None:
                raise ConfigurationError("标签页内分屏需要 direction")
            return
        if self.direction not in DIRECTIONS:
            raise ConfigurationError(f"未知分屏方向: {self.direction!r}")
        if self.size is None:
            default = SPLIT_DEFAULT_HEIGHT if self.is_horizontal else SPLIT_DEFAULT_WIDTH
            object.__setattr__(self, 'size', default)

    @property
    def mode(self) -> Mode:
        return Mode.TAB

    @property
    def is_horizontal(self) -> bool:
        return self.direction in ("top", "bottom")


PresentationConfig = Union[FloatingConfig, SplitConfig, TabConfig]


def _token(data: dict, key: str):
    value = data.get(key)
    if value is None:
        return None
    try:
        return units.validate(value)
    except InvalidUnitToken as e:
        raise ConfigurationError(f"{key} 的值不合法: {value!r}") from e


def _first(*values):
    for value in values:
        if value is not None:
            return value
    return None


def _split_direction(position: Optional[str]) -> Optional[str]:
    if isinstance(position, str) and position.startswith("split-"):
        return position[len("split-"):]
    return None


def resolve(raw=None, strict_positions: bool = False) -> PresentationConfig:
    """把调用方传入的配置转换为具体的配置类型

    Args:
        raw: None / 字典 / 已经解析好的配置对象
        strict_positions: 未知浮动锚点是否直接报错

    Returns:
        FloatingConfig / SplitConfig / TabConfig

    Raises:
        ConfigurationError: 键未知、size 与 width/height 同时出现、方向或单位不合法
    """
    if raw is None:
        return FloatingConfig()
    if isinstance(raw, (FloatingConfig, SplitConfig, TabConfig)):
        return raw
    if not isinstance(raw, dict):
        raise ConfigurationError(f"展示配置必须是字典: {raw!r}")

    unknown = set(raw) - _KNOWN_KEYS
    if unknown:
        raise ConfigurationError(f"未知配置项: {', '.join(sorted(unknown))}")

    if raw.get("size") is not None and (raw.get("width") is not None or raw.get("height") is not None):
        raise ConfigurationError("size 与 width/height 不能同时使用")

    mode = raw.get("mode") or raw.get("type")
    position = raw.get("position")
    direction = raw.get("direction") or _split_direction(position)

    if mode is None:
        mode = Mode.SPLIT if direction else Mode.FLOATING
    try:
        mode = Mode(mode)
    except ValueError:
        raise ConfigurationError(f"未知展示模式: {mode!r}") from None

    if mode is Mode.TAB:
        title = str(raw["title"]) if raw.get("title") is not None else None
        if direction is None:
            if raw.get("size") is not None:
                raise ConfigurationError("标签页内分屏需要 direction")
            return TabConfig(title=title)
        if direction not in DIRECTIONS:
            raise ConfigurationError(f"未知分屏方向: {direction!r}")
        horizontal = direction in ("top", "bottom")
        size = _first(_token(raw, "size"), _token(raw, "height" if horizontal else "width"))
        return TabConfig(title=title, direction=direction, size=size)

    if mode is Mode.SPLIT:
        if direction is None:
            raise ConfigurationError("分屏模式需要 direction 或 split-<方向> 位置")
        if direction not in DIRECTIONS:
            raise ConfigurationError(f"未知分屏方向: {direction!r}")
        horizontal = direction in ("top", "bottom")
        size = _first(_token(raw, "size"), _token(raw, "height" if horizontal else "width"))
        return SplitConfig(direction=direction, size=size)

    # 浮动
    if direction is not None:
        raise ConfigurationError(f"浮动模式不能使用分屏位置: {position or direction!r}")
    position = position or FloatingConfig.position
    if strict_positions and position not in POSITIONS:
        raise ConfigurationError(f"未知位置: {position!r}，可选: {', '.join(POSITIONS)}")

    size = _token(raw, "size")
    defaults = FloatingConfig()
    return FloatingConfig(
        position=position,
        width=_first(size, _token(raw, "width"), defaults.width),
        height=_first(size, _token(raw, "height"), defaults.height),
        margin=_first(_token(raw, "margin"), defaults.margin),
    )


def describe(config: PresentationConfig) -> str:
    """一行描述，用于日志和界面"""
    if isinstance(config, FloatingConfig):
        return f"floating {config.position} {config.width}x{config.height}"
    if isinstance(config, SplitConfig):
        return f"split-{config.direction} {config.size}"
    text = f"tab {config.title or ''}".rstrip()
    if config.direction is not None:
        text += f" split-{config.direction} {config.size}"
    return text
