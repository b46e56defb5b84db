"""时间工具方法：按配置时区取当前时间，并提供节点使用的毫秒时间戳。"""

from __future__ import annotations

from datetime import datetime

from zoneinfo import ZoneInfo

from app.packages.drive.core.config import get_settings


def get_timezone() -> ZoneInfo:
    """返回配置指定的时区信息。"""
    return get_settings().timezone_info


def now() -> datetime:
    """返回当前时区的时间。"""
    return datetime.now(get_timezone())


def now_ms() -> int:
    """返回当前时刻的 Unix 毫秒时间戳，节点的 createdAt/modifiedAt 均使用该格式。"""
    return int(now().timestamp() * 1000)
