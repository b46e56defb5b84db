"""标识符编解码：生成与解析用户、节点共用的 24 位十六进制标识符。

布局与常见的文档数据库主键一致：
- 4 字节秒级时间戳（大端），保证按创建先后递增；
- 5 字节进程级随机值，区分不同进程；
- 3 字节自增计数器，区分同一秒内的多次生成。

因此标识符按字符串倒序排列即为“最新优先”，分页游标可以直接使用 ``<`` 比较。
"""

from __future__ import annotations

import itertools
import re
import secrets
import threading
import time
from typing import Iterable, Optional

from app.packages.drive.core.exceptions import InvalidIdentifierError

ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")

_PROCESS_RANDOM = secrets.token_bytes(5)
_counter = itertools.count(secrets.randbelow(0xFFFFFF))
_counter_lock = threading.Lock()


def generate_id() -> str:
    """生成一个新的标识符（小写十六进制）。"""
    with _counter_lock:
        sequence = next(_counter) & 0xFFFFFF
    seconds = int(time.time()) & 0xFFFFFFFF
    raw = seconds.to_bytes(4, "big") + _PROCESS_RANDOM + sequence.to_bytes(3, "big")
    return raw.hex()


def is_valid_id(value: object) -> bool:
    return isinstance(value, str) and ID_PATTERN.fullmatch(value) is not None


def parse_id(value: object, *, field: Optional[str] = None) -> str:
    """把外部传入的字符串解析为内部标识符，格式错误时抛出 :class:`InvalidIdentifierError`。"""
    if not is_valid_id(value):
        raise InvalidIdentifierError(value, field)
    return value.lower()


def parse_optional_id(value: Optional[str], *, field: Optional[str] = None) -> Optional[str]:
    """游标等可选参数：空值视为未提供。"""
    if value is None or value == "":
        return None
    return parse_id(value, field=field)


def parse_ids(values: Iterable[object], *, field: Optional[str] = None) -> list[str]:
    """批量解析标识符：先按原始字符串去重，再逐个解析。

    返回结果保持首次出现的顺序；解析失败时报告调用方传入的原始字符串。
    """
    parsed = [parse_id(value, field=field) for value in dict.fromkeys(values)]
    return list(dict.fromkeys(parsed))
