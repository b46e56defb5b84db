"""用户服务：封装网盘账号的查询、注册、资料修改、删除与密钥校验。"""

from __future__ import annotations

import hmac
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.packages.drive.core.config import get_settings
from app.packages.drive.core.constants import (
    EMAIL_PATTERN,
    HEXADECIMAL_PATTERN,
    PUBLIC_GRANTEE,
    USERNAME_PATTERN,
)
from app.packages.drive.core.exceptions import DuplicateFieldValueError, ItemNotFoundError, ValidationError
from app.packages.drive.core.identifiers import parse_optional_id
from app.packages.drive.core.logger import get_logger
from app.packages.drive.crud.users import user_crud
from app.packages.drive.models.user import User
from app.packages.drive.services.projection import public_user

logger = get_logger("drive.users")

NEW_USER_FIELDS = frozenset({"username", "email", "salt", "key"})
PATCH_USER_FIELDS = frozenset({"email", "salt", "key"})

# 对外字段 -> 承载唯一约束的小写副本列，约束名遵循 models/base.py 的命名约定
_UNIQUE_COLUMNS = {"username": "username_lowercase", "email": "email_lowercase"}


def _duplicate_field(exc: IntegrityError) -> Optional[str]:
    """从唯一约束冲突中反查字段名。

    PostgreSQL 驱动通过 ``diag.constraint_name`` 给出约束名；SQLite 只在消息里给出
    ``users.<列名>``。两者都不包含冲突的取值，避免被邮箱等内容误导。
    """
    constraint = getattr(getattr(exc.orig, "diag", None), "constraint_name", None)
    if constraint:
        return next(
            (field for field, column in _UNIQUE_COLUMNS.items() if constraint == f"uq_users_{column}"),
            None,
        )
    message = str(exc.orig).split("\n", 1)[0]
    return next(
        (field for field, column in _UNIQUE_COLUMNS.items() if f"users.{column}" in message),
        None,
    )


class UserService:
    """聚合用户相关的核心业务能力。"""

    # ------------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------------

    def list_users(self, db: Session, *, after: Optional[str] = None) -> list[dict[str, Any]]:
        """分页列出用户，最新注册的在前；``after`` 必须指向已存在的用户。"""
        after_id = parse_optional_id(after, field="after")
        if after_id is not None and user_crud.get(db, after_id) is None:
            raise ItemNotFoundError(after, "user_id")
        users = user_crud.list_after(db, after=after_id, limit=get_settings().results_per_page)
        return [public_user(user) for user in users]

    def get_user(self, db: Session, username: str) -> dict[str, Any]:
        return public_user(self._require_user(db, username))

    # ------------------------------------------------------------------
    # 变更
    # ------------------------------------------------------------------

    def create_user(self, db: Session, data: Any) -> dict[str, Any]:
        """校验注册信息并创建用户，盐值与密钥统一以小写保存。"""
        self._validate_user_data(data, required=True)
        settings = get_settings()

        username = data.get("username")
        if (
            not isinstance(username, str)
            or not settings.min_user_name_length <= len(username) <= settings.max_user_name_length
            or USERNAME_PATTERN.fullmatch(username) is None
        ):
            raise ValidationError.invalid_string_length(
                "username", settings.min_user_name_length, settings.max_user_name_length
            )
        if username == PUBLIC_GRANTEE:
            raise ValidationError.illegal_username()
        self._reject_unknown_fields(data, NEW_USER_FIELDS)

        user = User(
            username=username,
            email=data["email"],
            salt=data["salt"].lower(),
            key=data["key"].lower(),
        )
        db.add(user)
        self._commit(db)
        db.refresh(user)
        logger.info("user.create username=%s user_id=%s", user.username, user.id)
        return public_user(user)

    def update_user(self, db: Session, username: str, data: Any) -> None:
        """局部更新邮箱、盐值或密钥；空对象视为无操作。"""
        if isinstance(data, dict) and not data:
            return
        self._validate_user_data(data, required=False)
        self._reject_unknown_fields(data, PATCH_USER_FIELDS)

        user = self._require_user(db, username)
        if "email" in data:
            user.email = data["email"]
        if "salt" in data:
            user.salt = data["salt"].lower()
        if "key" in data:
            user.key = data["key"].lower()
        self._commit(db)
        logger.info("user.update username=%s fields=%s", username, sorted(data))

    def delete_user(self, db: Session, username: str) -> None:
        """删除用户并撤销其在所有节点上的授权；其名下节点保持原样。"""
        user = self._require_user(db, username)
        db.delete(user)
        revoked = user_crud.revoke_grants(db, username)
        self._commit(db)
        logger.info("user.delete username=%s revoked_grants=%s", username, revoked)

    # ------------------------------------------------------------------
    # 认证
    # ------------------------------------------------------------------

    def authenticate(self, db: Session, username: str, key: Any) -> bool:
        """校验客户端派生的密钥；空密钥直接视为失败。"""
        if not key or not isinstance(key, str):
            return False
        user = user_crud.get_by_username(db, username)
        if user is None:
            return False
        return hmac.compare_digest(user.key.encode("utf-8"), key.lower().encode("utf-8"))

    # ------------------------------------------------------------------
    # 内部工具
    # ------------------------------------------------------------------

    @staticmethod
    def _require_user(db: Session, username: str) -> User:
        user = user_crud.get_by_username(db, username)
        if user is None:
            raise ItemNotFoundError(username, "user")
        return user

    @staticmethod
    def _reject_unknown_fields(data: dict, allowed: frozenset) -> None:
        unknown = next((field for field in data if field not in allowed), None)
        if unknown is not None:
            raise ValidationError.unknown_field(unknown)

    @staticmethod
    def _validate_user_data(data: Any, *, required: bool) -> None:
        if not isinstance(data, dict):
            raise ValidationError.invalid_json()
        settings = get_settings()

        if required or "email" in data:
            email = data.get("email")
            if (
                not isinstance(email, str)
                or EMAIL_PATTERN.fullmatch(email) is None
                or not settings.min_user_email_length <= len(email) <= settings.max_user_email_length
            ):
                raise ValidationError.invalid_string_length(
                    "email", settings.min_user_email_length, settings.max_user_email_length
                )

        for field, length in (("salt", settings.user_salt_length), ("key", settings.user_key_length)):
            if required or field in data:
                value = data.get(field)
                if (
                    not isinstance(value, str)
                    or HEXADECIMAL_PATTERN.fullmatch(value) is None
                    or len(value) != length
                ):
                    raise ValidationError.invalid_string_length(field, length, None, "hexadecimal")

    @staticmethod
    def _commit(db: Session) -> None:
        """提交事务；唯一约束冲突转换为 :class:`DuplicateFieldValueError`。"""
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            field = _duplicate_field(exc)
            if field is None:
                raise
            logger.warning("user.duplicate field=%s", field)
            raise DuplicateFieldValueError(field) from exc
        except Exception:
            db.rollback()
            raise


user_service = UserService()
