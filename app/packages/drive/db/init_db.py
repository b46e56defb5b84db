"""数据库初始化：建表（幂等），供应用启动与测试夹具调用。"""

from __future__ import annotations

import logging

from app.packages.drive.db import session as db_session
from app.packages.drive.models.base import Base
from app.packages.drive.models.node import (  # noqa: F401 - ensure table registration
    FileNode,
    FileNodePermission,
    FileNodeTag,
    MetaNode,
    MetaNodeContent,
    MetaNodePermission,
)
from app.packages.drive.models.user import User  # noqa: F401 - ensure table registration

logger = logging.getLogger(__name__)


def init_db() -> None:
    """Create all database tables if they do not exist."""
    Base.metadata.create_all(bind=db_session.engine)
    logger.info("Database tables ensured: %s", ", ".join(sorted(Base.metadata.tables)))
