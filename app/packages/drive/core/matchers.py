"""节点检索匹配器的编译结果。

校验通过的匹配器被转换成一组不可变的条件节点，由查询编译器翻译为 SQL：

- ``FieldEquals``：字段等于某个标量（含 ``None``）；
- ``FieldRange``：数值区间比较，``operator`` 为 ``$gt``/``$lt``/``$gte``/``$lte``；
- ``FieldInSet``：数组字段与给定集合有交集（目前仅用于 tags）；
- ``FieldRegex``：正则匹配，忽略大小写、多行模式；
- ``GrantEquals`` / ``GrantRegex``：针对 ``permissions.<grantee>`` 的授权级别匹配；
- ``OrOfRanges``：由 ``$or`` 展开得到的一组区间条件，任一满足即可。

字段名一律使用内部名称，例如 ``name`` 已被代理为 ``name-lowercase``。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

Scalar = Union[str, int, float, bool, None]

RANGE_OPERATORS = ("$gt", "$lt", "$gte", "$lte")


@dataclass(frozen=True)
class FieldEquals:
    field: str
    value: Scalar


@dataclass(frozen=True)
class FieldRange:
    field: str
    operator: str
    value: Union[int, float]


@dataclass(frozen=True)
class FieldInSet:
    field: str
    values: tuple[str, ...]


@dataclass(frozen=True)
class FieldRegex:
    field: str
    pattern: str


@dataclass(frozen=True)
class GrantEquals:
    grantee: str
    level: str


@dataclass(frozen=True)
class GrantRegex:
    grantee: str
    pattern: str


@dataclass(frozen=True)
class OrOfRanges:
    operands: tuple[FieldRange, ...]


MatcherTerm = Union[FieldEquals, FieldRange, FieldInSet, FieldRegex, GrantEquals, GrantRegex]


@dataclass(frozen=True)
class CompiledMatcher:
    """一次检索的全部条件：``terms`` 之间为 AND，``any_of`` 作为额外的一组 OR 与之相与。"""

    terms: tuple[MatcherTerm, ...] = ()
    any_of: Optional[OrOfRanges] = None
