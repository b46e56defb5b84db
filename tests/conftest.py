"""测试夹具：为 pytest 提供数据库、示例数据与客户端的共享配置。"""

import os
from dataclasses import dataclass
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from app.packages.drive.core.dependencies import get_db
from app.packages.drive.core.timezone import now_ms
from app.packages.drive.db import session as db_session
from app.packages.drive.db.init_db import init_db
from app.packages.drive.models.base import Base
from app.packages.drive.models.node import FileNode, MetaNode
from app.packages.drive.models.user import User
from app.main import app

TEST_DB_PATH = os.path.join(os.path.dirname(__file__), "test.db")
TEST_DATABASE_URL = f"sqlite:///{TEST_DB_PATH}"

# 示例用户的密码与用户名相同，salt/key 由客户端派生
DUMMY_USERS = [
    {
        "username": "User1",
        "email": "user1@fake-email.com",
        "salt": "91db41c494502f9ebb6217e4590cccc2",
        "key": "17660270f4c4c1741ab9d43e6fb800bc784f0a3bc2f4cd31f0e26bf821ef2ae7"
        "88f83af134d8c3824f5e0552f8cd432d6b23963d2ffbceb6a7c91b0f59533206",
    },
    {
        "username": "User2",
        "email": "user2@fake-email.com",
        "salt": "bfe69b665a1ae64bb7d76c32347adecb",
        "key": "e71e8bbd23df52bec8af8280ad7901ddd0ecd5cc43371915f7a95cd17ce0a851"
        "5127bfcd433435425c4d245f4a18efcb08e4484682aeb53fcfce5b536d79e4e4",
    },
    {
        "username": "User3",
        "email": "user3@fake-email.com",
        "salt": "12ef85b518da764294abf0a2095bb5ec",
        "key": "e745893e064e26d4349b1639b1596c14bc9b5d050b56bf31ff3ef0dfce6f959a"
        "ef8a3722a35bc35b2d142169e75ca3e1967cd6ee4818af0813d8396a724fdd22",
    },
]


def dummy_id(sequence: int) -> str:
    """固定的历史标识符，保证比测试中新生成的标识符更“旧”。"""
    return f"5f1d7a00aa00bb00cc{sequence:06x}"


@dataclass
class DummyData:
    """示例数据的标识符索引。

    files：user1-file1、User1-File1、user2-file2（已加锁）、USER3-FILE3、user-3-file-4；
    metas：My Music（目录）、tv show music（目录）、HisDarkMaterials-Symlink（符号链接）。
    """

    generated_at: int
    users: dict[str, str]
    files: list[str]
    metas: list[str]


def _seed(session: Session) -> DummyData:
    generated_at = now_ms()
    users = {}
    for sequence, item in enumerate(DUMMY_USERS, start=1):
        user = User(id=dummy_id(sequence), **item)
        session.add(user)
        users[user.username] = user.id

    files = [dummy_id(0x10 + index) for index in range(5)]
    metas = [dummy_id(0x20 + index) for index in range(3)]

    file_rows = [
        {
            "owner": "User1",
            "created_at": generated_at - 10000,
            "modified_at": generated_at - 1000,
            "name": "user1-file1",
            "text": "Tell me how did we get here?",
            "tags": ["grandson", "music"],
            "lock": None,
            "permissions": {},
        },
        {
            "owner": "User1",
            "created_at": generated_at - 8000,
            "modified_at": generated_at - 800,
            "name": "User1-File1",
            "text": "NOW I GOT A FRONT ROW SEAT WATCH THE SYSTEM FALL!\n\n"
            "Cause look who's in control!\n\nTELL ME HOW DID WE GET HERE?",
            "tags": ["grandson", "music"],
            "lock": None,
            "permissions": {},
        },
        {
            "owner": "User2",
            "created_at": generated_at - 150000,
            "modified_at": generated_at - 50000,
            "name": "user2-file2",
            "text": "You'll take only seconds to draw me in.",
            "tags": ["muse", "darkshines", "origin", "symmetry", "music"],
            "lock": {"user": "User2", "client": "F951YAClN2", "createdAt": generated_at - 50000},
            "permissions": {},
        },
        {
            "owner": "User3",
            "created_at": generated_at - 10000,
            "modified_at": generated_at - 1000,
            "name": "USER3-FILE3",
            "text": "Tell me how did we get here?",
            "tags": ["grandson", "music"],
            "lock": None,
            "permissions": {"User1": "view", "User2": "edit"},
        },
        {
            "owner": "User3",
            "created_at": generated_at - 20000,
            "modified_at": generated_at - 5432,
            "name": "user-3-file-4",
            "text": "Did you see His Dark Materials on BBC?!",
            "tags": ["his", "dark", "materials", "lorne", "balfe"],
            "lock": None,
            "permissions": {"public": "view"},
        },
    ]
    for node_id, fields in zip(files, file_rows):
        tags = fields.pop("tags")
        permissions = fields.pop("permissions")
        node = FileNode(id=node_id, **fields)
        node.set_tags(tags)
        node.set_permissions(permissions)
        session.add(node)

    meta_rows = [
        {
            "type": "directory",
            "created_at": generated_at - 200000,
            "name": "My Music",
            "contents": [metas[1], files[3], metas[2]],
            "permissions": {"User1": "view"},
        },
        {
            "type": "directory",
            "created_at": generated_at - 15000,
            "name": "tv show music",
            "contents": [files[4]],
            "permissions": {"User2": "view"},
        },
        {
            "type": "symlink",
            "created_at": generated_at - 4859,
            "name": "HisDarkMaterials-Symlink",
            "contents": [files[4]],
            "permissions": {},
        },
    ]
    for node_id, fields in zip(metas, meta_rows):
        contents = fields.pop("contents")
        permissions = fields.pop("permissions")
        node = MetaNode(id=node_id, owner="User3", **fields)
        node.set_contents(contents)
        node.set_permissions(permissions)
        session.add(node)

    session.commit()
    return DummyData(generated_at=generated_at, users=users, files=files, metas=metas)


@pytest.fixture(scope="session", autouse=True)
def setup_test_database() -> Generator[None, None, None]:
    """创建隔离的 SQLite 测试数据库，并在会话结束后清理。"""
    if os.path.exists(TEST_DB_PATH):
        os.remove(TEST_DB_PATH)

    engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    db_session.engine = engine
    db_session.SessionLocal = TestingSessionLocal

    init_db()
    yield

    engine.dispose()
    if os.path.exists(TEST_DB_PATH):
        os.remove(TEST_DB_PATH)


@pytest.fixture(autouse=True)
def dummy_data(setup_test_database) -> DummyData:
    """每个用例开始前清空所有表并重新写入示例数据。"""
    session = db_session.SessionLocal()
    try:
        for table in reversed(Base.metadata.sorted_tables):
            session.execute(table.delete())
        data = _seed(session)
    finally:
        session.close()
    return data


@pytest.fixture()
def db_session_fixture() -> Generator[Session, None, None]:
    """提供给测试用例使用的数据库会话。"""
    session = db_session.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(db_session_fixture):
    """构建 FastAPI TestClient，并注入测试专用的数据库依赖。"""
    def override_get_db() -> Generator[Session, None, None]:
        session = db_session.SessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
