"""模型基类：统一声明式基类、约束命名约定与标识符主键。

- Base：SQLAlchemy 声明式基类，带统一命名约定，唯一约束名中包含列名，
  存储层抛出的唯一冲突因此可以反查到具体字段；
- IdentifierMixin：24 位十六进制主键，用户与两类节点共用同一标识空间。
"""

from sqlalchemy import MetaData, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from app.packages.drive.core.identifiers import generate_id

convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata_obj = MetaData(naming_convention=convention)


class Base(DeclarativeBase):
    """全局声明式基类，附带一致的命名约定，便于迁移与调试。"""

    metadata = metadata_obj


class IdentifierMixin:
    """按创建顺序递增的字符串主键，倒序即“最新优先”。"""

    id: Mapped[str] = mapped_column(String(24), primary_key=True, default=generate_id)
