"""节点数据校验：创建与局部更新共用同一套规则。

创建时（未传 ``node_type``）所有结构字段都必须出现；更新时每个字段都可省略，
出现时按相同规则校验。涉及用户、节点引用的存在性检查按集合批量查询，
报告输入顺序中第一个缺失的条目。
"""

from __future__ import annotations

import math
from typing import Any, Optional

from sqlalchemy.orm import Session

from app.packages.drive.core.config import get_settings
from app.packages.drive.core.constants import PUBLIC_GRANTEE, USERNAME_PATTERN
from app.packages.drive.core.enums import NODE_TYPES, PERMISSION_LEVELS, NodeTypeEnum, PermissionLevelEnum
from app.packages.drive.core.exceptions import ItemNotFoundError, ValidationError
from app.packages.drive.core.identifiers import parse_id
from app.packages.drive.crud.nodes import node_crud
from app.packages.drive.crud.users import user_crud

FILE_CREATE_FIELDS = frozenset({"type", "name", "text", "tags", "lock", "permissions"})
META_CREATE_FIELDS = frozenset({"type", "name", "contents", "permissions"})
FILE_PATCH_FIELDS = frozenset({"name", "text", "tags", "lock", "permissions", "owner"})
META_PATCH_FIELDS = frozenset({"name", "contents", "permissions", "owner"})

LOCK_FIELDS = frozenset({"user", "client", "createdAt"})


def _is_number(value: Any) -> bool:
    if isinstance(value, float):
        return math.isfinite(value)
    return isinstance(value, int) and not isinstance(value, bool)


def _first_missing(values: list[str], existing: set[str]) -> Optional[str]:
    return next((value for value in values if value not in existing), None)


def _validate_name(name: Any) -> None:
    settings = get_settings()
    if not isinstance(name, str) or not 1 <= len(name) <= settings.max_node_name_length:
        raise ValidationError.invalid_string_length("name", 1, settings.max_node_name_length)


def _validate_permissions(db: Session, permissions: Any, *, is_file: bool) -> None:
    settings = get_settings()
    if not isinstance(permissions, dict):
        raise ValidationError.invalid_field_value("permissions")

    for grantee, level in permissions.items():
        if not isinstance(level, str) or level not in PERMISSION_LEVELS:
            raise ValidationError.invalid_object_key_value("permissions")
        if grantee == PUBLIC_GRANTEE and not (is_file and level == PermissionLevelEnum.VIEW.value):
            raise ValidationError.invalid_object_key_value("permissions")

    if len(permissions) > settings.max_node_permissions:
        raise ValidationError.too_many_items("permissions")

    grantees = [grantee for grantee in permissions if grantee != PUBLIC_GRANTEE]
    missing = _first_missing(grantees, user_crud.existing_usernames(db, grantees))
    if missing is not None:
        raise ItemNotFoundError(missing, "user (permissions)")


def _validate_text(text: Any) -> None:
    limit = get_settings().max_node_text_length_bytes
    if not isinstance(text, str) or len(text.encode("utf-8")) > limit:
        raise ValidationError.invalid_string_length("text", 0, limit, "bytes")


def _validate_tags(tags: Any) -> None:
    settings = get_settings()
    if not isinstance(tags, list):
        raise ValidationError.invalid_field_value("tags")
    if len(tags) > settings.max_node_tags:
        raise ValidationError.too_many_items("tags")
    for tag in tags:
        if not isinstance(tag, str) or not 1 <= len(tag) <= settings.max_node_tag_length:
            raise ValidationError.invalid_string_length("tags", 1, settings.max_node_tag_length)


def _validate_lock(lock: Any) -> None:
    if lock is None:
        return
    settings = get_settings()
    if not isinstance(lock, dict):
        raise ValidationError.invalid_field_value("lock")

    user = lock.get("user")
    if (
        not isinstance(user, str)
        or not settings.min_user_name_length <= len(user) <= settings.max_user_name_length
        or USERNAME_PATTERN.fullmatch(user) is None
    ):
        raise ValidationError.invalid_string_length(
            "lock.user", settings.min_user_name_length, settings.max_user_name_length
        )

    client = lock.get("client")
    if not isinstance(client, str) or not 1 <= len(client) <= settings.max_lock_client_length:
        raise ValidationError.invalid_string_length("lock.client", 1, settings.max_lock_client_length)

    created_at = lock.get("createdAt")
    if not _is_number(created_at) or created_at <= 0:
        raise ValidationError.invalid_field_value("lock.createdAt")

    if set(lock) != LOCK_FIELDS:
        raise ValidationError.invalid_object_key_value("lock")


def _validate_contents(db: Session, contents: Any, *, node_type: str) -> None:
    settings = get_settings()
    if not isinstance(contents, list):
        raise ValidationError.invalid_field_value("contents")

    limit = 1 if node_type == NodeTypeEnum.SYMLINK.value else settings.max_node_contents
    if len(contents) > limit:
        raise ValidationError.too_many_items("content node_ids")

    parsed = [parse_id(value, field="contents") for value in contents]
    existing = node_crud.existing_ids(db, parsed)
    for original, node_id in zip(contents, parsed):
        if node_id not in existing:
            raise ItemNotFoundError(original, "node_id")


def _validate_owner(db: Session, owner: Any) -> None:
    if not isinstance(owner, str) or not user_crud.exists(db, username=owner):
        raise ItemNotFoundError(owner, "user")


def validate_node_data(db: Session, data: Any, *, node_type: Optional[str] = None) -> dict[str, Any]:
    """校验节点数据并返回其浅拷贝。

    ``node_type`` 为空表示创建，此时从 ``data["type"]`` 读取节点种类；
    否则为对已有节点（种类为 ``node_type``）的局部更新。
    """
    if not isinstance(data, dict):
        raise ValidationError.invalid_json()

    creating = node_type is None
    if creating:
        node_type = data.get("type")
        if not isinstance(node_type, str) or node_type not in NODE_TYPES:
            raise ValidationError.invalid_field_value("type")

    is_file = node_type == NodeTypeEnum.FILE.value

    def present(field: str) -> bool:
        return creating or field in data

    if present("name"):
        _validate_name(data.get("name"))
    if present("permissions"):
        _validate_permissions(db, data.get("permissions"), is_file=is_file)

    if is_file:
        if present("text"):
            _validate_text(data.get("text"))
        if present("tags"):
            _validate_tags(data.get("tags"))
        if "lock" in data:
            _validate_lock(data["lock"])
    elif present("contents"):
        _validate_contents(db, data.get("contents"), node_type=node_type)

    if not creating and "owner" in data:
        _validate_owner(db, data["owner"])

    if creating:
        allowed = FILE_CREATE_FIELDS if is_file else META_CREATE_FIELDS
    else:
        allowed = FILE_PATCH_FIELDS if is_file else META_PATCH_FIELDS
    unknown = next((field for field in data if field not in allowed), None)
    if unknown is not None:
        raise ValidationError.unknown_field(unknown)

    return dict(data)
