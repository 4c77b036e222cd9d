"""尺寸/位置单位解析

支持的写法：
- 整数/有限浮点数: 绝对值（浮点数向下取整）
- "NN": 绝对值
- "NN%": base 的百分比
- "+NN%": 在 current 基础上增加 current 的百分比
- "+NN": 在 current 基础上增加绝对值（仅用于位置）

所有计算都向下取整，结果为整数单元格。
"""

import math
import re
from typing import Optional, Union

from .errors import InvalidUnitToken

Token = Union[str, int, float]

_RELATIVE_PERCENT = re.compile(r'^\+(\d+(?:\.\d+)?)%$')
_PERCENT = re.compile(r'^(\d+(?:\.\d+)?)%$')
_RELATIVE = re.compile(r'^\+(\d+)$')
_NUMBER = re.compile(r'^-?\d+(?:\.\d+)?$')


def _number(value: float, token: Token) -> int:
    if not math.isfinite(value):
        raise InvalidUnitToken(token)
    return math.floor(value)


def parse(token: Token, base: int, current: Optional[int] = None) -> int:
    """把单位解析为具体的单元格数

    Args:
        token: 单位（字符串或数字）
        base: 百分比的基准（通常是屏幕宽/高）
        current: 当前值，相对单位以它为起点；缺失时以 base 代替

    Returns:
        解析后的整数

    Raises:
        InvalidUnitToken: 无法解析
    """
    if isinstance(token, bool):
        raise InvalidUnitToken(token)
    if isinstance(token, int):
        return token
    if isinstance(token, float):
        return _number(token, token)
    if not isinstance(token, str):
        raise InvalidUnitToken(token)

    text = token.strip()
    start = base if current is None else current

    m = _RELATIVE_PERCENT.match(text)
    if m:
        return start + math.floor(start * float(m.group(1)) / 100)

    m = _PERCENT.match(text)
    if m:
        return math.floor(base * float(m.group(1)) / 100)

    m = _RELATIVE.match(text)
    if m:
        return start + int(m.group(1))

    if _NUMBER.match(text):
        return _number(float(text), token)

    raise InvalidUnitToken(token)


def validate(token: Token) -> Token:
    """只检查格式，不求值；合法时原样返回"""
    parse(token, 100, 100)
    return token
