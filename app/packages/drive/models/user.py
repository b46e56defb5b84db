"""用户模型：网盘账号。权限表以用户名而非主键作为关联键。"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, validates

from app.packages.drive.models.base import Base, IdentifierMixin


class User(IdentifierMixin, Base):
    """用户实体。用户名、邮箱大小写不敏感唯一，由对应的小写副本列承载唯一约束。"""

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(64), index=True)
    username_lowercase: Mapped[str] = mapped_column(String(64), unique=True)
    email: Mapped[str] = mapped_column(String(255))
    email_lowercase: Mapped[str] = mapped_column(String(255), unique=True)
    salt: Mapped[str] = mapped_column(String(64))
    key: Mapped[str] = mapped_column(String(256))

    @validates("username")
    def _sync_username_lowercase(self, _key: str, value: str) -> str:
        self.username_lowercase = value.lower()
        return value

    @validates("email")
    def _sync_email_lowercase(self, _key: str, value: str) -> str:
        self.email_lowercase = value.lower()
        return value
