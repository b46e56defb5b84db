"""用户服务测试：注册校验、唯一性、分页、资料修改、删除与密钥认证。"""

import pytest
from sqlalchemy.exc import IntegrityError

from app.packages.drive.core.config import get_settings
from app.packages.drive.core.enums import ValidationReasonEnum
from app.packages.drive.core.exceptions import (
    DuplicateFieldValueError,
    InvalidIdentifierError,
    ItemNotFoundError,
    ValidationError,
)
from app.packages.drive.crud.users import user_crud
from app.packages.drive.services.user_service import _duplicate_field, user_service

SALT = "A" * 32
KEY = "b" * 128


def _new_user(**overrides):
    data = {"username": "NewUser", "email": "new.user@fake-email.com", "salt": SALT, "key": KEY}
    data.update(overrides)
    return data


def _reason(callable_, *args):
    with pytest.raises(ValidationError) as exc_info:
        callable_(*args)
    return exc_info.value.reason, exc_info.value.details.get("field")


def test_create_user_returns_public_projection(db_session_fixture):
    user = user_service.create_user(db_session_fixture, _new_user())

    assert set(user) == {"user_id", "username", "email", "salt"}
    assert user["username"] == "NewUser"
    assert user["salt"] == SALT.lower()

    stored = user_crud.get_by_username(db_session_fixture, "NewUser")
    assert stored.key == KEY
    assert stored.id == user["user_id"]


def test_new_users_are_listed_first(db_session_fixture, dummy_data):
    user = user_service.create_user(db_session_fixture, _new_user())
    users = user_service.list_users(db_session_fixture)
    assert [item["user_id"] for item in users] == [
        user["user_id"],
        dummy_data.users["User3"],
        dummy_data.users["User2"],
        dummy_data.users["User1"],
    ]


@pytest.mark.parametrize(
    ("overrides", "field"),
    [
        ({"username": "abc"}, "username"),
        ({"username": "a" * 17}, "username"),
        ({"username": "bad name"}, "username"),
        ({"username": 1234}, "username"),
        ({"email": "not-an-email"}, "email"),
        ({"salt": "a" * 31}, "salt"),
        ({"salt": "z" * 32}, "salt"),
        ({"key": "a" * 127}, "key"),
        ({"key": None}, "key"),
    ],
)
def test_create_user_rejects_invalid_fields(db_session_fixture, overrides, field):
    reason, reported = _reason(user_service.create_user, db_session_fixture, _new_user(**overrides))
    assert reason is ValidationReasonEnum.INVALID_STRING_LENGTH
    assert reported == field


def test_create_user_rejects_body_shape_and_unknown_fields(db_session_fixture):
    db = db_session_fixture
    assert _reason(user_service.create_user, db, ["NewUser"])[0] is ValidationReasonEnum.INVALID_JSON
    assert _reason(user_service.create_user, db, _new_user(admin=True)) == (
        ValidationReasonEnum.UNKNOWN_FIELD,
        "admin",
    )


def test_public_is_a_reserved_username(db_session_fixture):
    reason, _ = _reason(user_service.create_user, db_session_fixture, _new_user(username="public"))
    assert reason is ValidationReasonEnum.ILLEGAL_USERNAME


def test_username_and_email_are_unique_case_insensitively(db_session_fixture):
    db = db_session_fixture
    with pytest.raises(DuplicateFieldValueError) as exc_info:
        user_service.create_user(db, _new_user(username="USER1"))
    assert exc_info.value.field == "username"

    with pytest.raises(DuplicateFieldValueError) as exc_info:
        user_service.create_user(db, _new_user(email="User2@Fake-Email.com"))
    assert exc_info.value.field == "email"

    # 冲突后会话已回滚，仍可继续使用
    assert user_service.create_user(db, _new_user())["username"] == "NewUser"


def test_list_users_pagination(db_session_fixture, dummy_data, monkeypatch):
    monkeypatch.setattr(get_settings(), "results_per_page", 2)
    db = db_session_fixture

    first = user_service.list_users(db)
    second = user_service.list_users(db, after=first[-1]["user_id"])

    assert [user["username"] for user in first] == ["User3", "User2"]
    assert [user["username"] for user in second] == ["User1"]


def test_list_users_cursor_errors(db_session_fixture):
    with pytest.raises(InvalidIdentifierError):
        user_service.list_users(db_session_fixture, after="not-an-id")
    with pytest.raises(ItemNotFoundError) as exc_info:
        user_service.list_users(db_session_fixture, after="5f1d7a00aa00bb00ccffffff")
    assert exc_info.value.item_name == "user_id"


def test_get_user_is_case_sensitive(db_session_fixture):
    assert user_service.get_user(db_session_fixture, "User1")["email"] == "user1@fake-email.com"
    with pytest.raises(ItemNotFoundError):
        user_service.get_user(db_session_fixture, "user1")


def test_update_user(db_session_fixture):
    db = db_session_fixture
    user_service.update_user(db, "User1", {"email": "changed@fake-email.com", "salt": "C" * 32})

    user = user_service.get_user(db, "User1")
    assert user["email"] == "changed@fake-email.com"
    assert user["salt"] == "c" * 32


def test_update_user_edge_cases(db_session_fixture):
    db = db_session_fixture

    # 空对象为无操作，不检查用户是否存在
    user_service.update_user(db, "Nobody", {})

    with pytest.raises(ItemNotFoundError):
        user_service.update_user(db, "Nobody", {"email": "x@fake-email.com"})

    assert _reason(user_service.update_user, db, "User1", {"username": "Renamed"}) == (
        ValidationReasonEnum.UNKNOWN_FIELD,
        "username",
    )
    assert _reason(user_service.update_user, db, "User1", {"key": "123"}) == (
        ValidationReasonEnum.INVALID_STRING_LENGTH,
        "key",
    )

    with pytest.raises(DuplicateFieldValueError) as exc_info:
        user_service.update_user(db, "User1", {"email": "USER2@fake-email.com"})
    assert exc_info.value.field == "email"


def test_delete_user(db_session_fixture):
    db = db_session_fixture
    user_service.delete_user(db, "User2")

    with pytest.raises(ItemNotFoundError):
        user_service.get_user(db, "User2")
    with pytest.raises(ItemNotFoundError):
        user_service.delete_user(db, "User2")

    # 用户名释放后可以重新注册
    user_service.create_user(db, _new_user(username="User2", email="again@fake-email.com"))
    assert user_service.get_user(db, "User2")["email"] == "again@fake-email.com"


def test_authenticate(db_session_fixture):
    db = db_session_fixture
    key = user_crud.get_by_username(db, "User1").key
    other_key = user_crud.get_by_username(db, "User2").key

    assert user_service.authenticate(db, "User1", key) is True
    assert user_service.authenticate(db, "User1", key.upper()) is True
    assert user_service.authenticate(db, "User1", other_key) is False
    assert user_service.authenticate(db, "User1", "") is False
    assert user_service.authenticate(db, "User1", None) is False
    assert user_service.authenticate(db, "User1", "ключ") is False
    assert user_service.authenticate(db, "Nobody", key) is False


class _Diagnostics:
    def __init__(self, constraint_name):
        self.constraint_name = constraint_name


class _DriverError(Exception):
    def __init__(self, message, constraint_name=None):
        super().__init__(message)
        if constraint_name is not None:
            self.diag = _Diagnostics(constraint_name)


def _integrity_error(message, constraint_name=None) -> IntegrityError:
    return IntegrityError("INSERT INTO users ...", {}, _DriverError(message, constraint_name))


def test_duplicate_field_uses_constraint_name_not_value():
    """冲突字段由约束名决定；取值里出现 ``username`` 也不会误判。"""
    error = _integrity_error(
        'duplicate key value violates unique constraint "uq_users_email_lowercase"\n'
        "DETAIL:  Key (email_lowercase)=(username1@x.com) already exists.",
        "uq_users_email_lowercase",
    )
    assert _duplicate_field(error) == "email"

    error = _integrity_error("duplicate key", "uq_users_username_lowercase")
    assert _duplicate_field(error) == "username"

    assert _duplicate_field(_integrity_error("duplicate key", "pk_users")) is None


def test_duplicate_field_from_sqlite_message():
    assert _duplicate_field(_integrity_error("UNIQUE constraint failed: users.email_lowercase")) == "email"
    assert _duplicate_field(_integrity_error("UNIQUE constraint failed: users.username_lowercase")) == "username"
    assert _duplicate_field(_integrity_error("NOT NULL constraint failed: users.salt")) is None
