"""数据库引擎与会话工厂配置。"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.packages.drive.core.config import get_settings

settings = get_settings()


def _connect_args(url: str) -> dict:
    # SQLite 连接默认只允许创建它的线程使用，FastAPI 的同步路由运行在线程池中
    return {"check_same_thread": False} if url.startswith("sqlite") else {}


# ``pool_pre_ping`` 保持连接池健康；``echo`` 在配置开启时输出 SQL，便于排查。
engine = create_engine(
    settings.sql_database_url,
    pool_pre_ping=True,
    echo=settings.database_echo,
    connect_args=_connect_args(settings.sql_database_url),
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
