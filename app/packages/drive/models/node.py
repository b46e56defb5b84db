"""节点模型：文件节点与元节点（目录/符号链接）分表存储。

存储规则：
- 两张主表 ``file_nodes``、``meta_nodes`` 共用同一标识空间，检索时按 UNION 合并；
- ``name_lowercase`` 始终等于 ``name.lower()``，``size`` 始终等于 ``text`` 的 UTF-8 字节数，
  二者都在赋值时自动派生，不可单独写入；
- 标签、权限表、目录内容以子表形式归属于所在节点，随节点一起删除；
- 权限表以用户名为键，``public`` 为保留的公开授权对象。
"""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import JSON, BigInteger, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from app.packages.drive.core.enums import NodeTypeEnum
from app.packages.drive.models.base import Base, IdentifierMixin


class FileNodeTag(Base):
    __tablename__ = "file_node_tags"

    node_id: Mapped[str] = mapped_column(
        String(24), ForeignKey("file_nodes.id", ondelete="CASCADE"), primary_key=True
    )
    tag: Mapped[str] = mapped_column(String(64), primary_key=True, index=True)


class FileNodePermission(Base):
    __tablename__ = "file_node_permissions"

    node_id: Mapped[str] = mapped_column(
        String(24), ForeignKey("file_nodes.id", ondelete="CASCADE"), primary_key=True
    )
    grantee: Mapped[str] = mapped_column(String(64), primary_key=True, index=True)
    level: Mapped[str] = mapped_column(String(8))


class MetaNodePermission(Base):
    __tablename__ = "meta_node_permissions"

    node_id: Mapped[str] = mapped_column(
        String(24), ForeignKey("meta_nodes.id", ondelete="CASCADE"), primary_key=True
    )
    grantee: Mapped[str] = mapped_column(String(64), primary_key=True, index=True)
    level: Mapped[str] = mapped_column(String(8))


class MetaNodeContent(Base):
    """目录/符号链接所包含的子节点引用。子节点可能位于任一节点表，因此不设外键。"""

    __tablename__ = "meta_node_contents"

    meta_node_id: Mapped[str] = mapped_column(
        String(24), ForeignKey("meta_nodes.id", ondelete="CASCADE"), primary_key=True
    )
    node_id: Mapped[str] = mapped_column(String(24), primary_key=True, index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)


class _PermissionMapMixin:
    """权限表读写：以 ``{grantee: level}`` 形式读写子表，复用已存在的行。"""

    @property
    def permissions(self) -> dict[str, str]:
        return {row.grantee: row.level for row in self.permission_rows}

    def set_permissions(self, permissions: dict[str, str]) -> None:
        existing = {row.grantee: row for row in self.permission_rows}
        rows = []
        for grantee, level in permissions.items():
            row = existing.get(grantee) or self._permission_model(grantee=grantee)
            row.level = level
            rows.append(row)
        self.permission_rows = rows


class FileNode(_PermissionMapMixin, IdentifierMixin, Base):
    __tablename__ = "file_nodes"

    _permission_model = FileNodePermission

    type: Mapped[str] = mapped_column(String(16), default=NodeTypeEnum.FILE.value, index=True)
    owner: Mapped[str] = mapped_column(String(64), index=True)
    created_at: Mapped[int] = mapped_column(BigInteger)
    modified_at: Mapped[int] = mapped_column(BigInteger)
    name: Mapped[str] = mapped_column(String(255))
    name_lowercase: Mapped[str] = mapped_column(String(255), index=True)
    size: Mapped[int] = mapped_column(Integer, default=0)
    text: Mapped[str] = mapped_column(Text, default="")
    lock: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)

    tag_rows: Mapped[list[FileNodeTag]] = relationship(
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by=FileNodeTag.tag,
    )
    permission_rows: Mapped[list[FileNodePermission]] = relationship(
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by=FileNodePermission.grantee,
    )

    @validates("name")
    def _derive_name_lowercase(self, _key: str, value: str) -> str:
        self.name_lowercase = value.lower()
        return value

    @validates("text")
    def _derive_size(self, _key: str, value: str) -> str:
        self.size = len(value.encode("utf-8"))
        return value

    @property
    def tags(self) -> list[str]:
        return [row.tag for row in self.tag_rows]

    def set_tags(self, tags: list[str]) -> None:
        existing = {row.tag: row for row in self.tag_rows}
        self.tag_rows = [existing.get(tag) or FileNodeTag(tag=tag) for tag in tags]


class MetaNode(_PermissionMapMixin, IdentifierMixin, Base):
    __tablename__ = "meta_nodes"

    _permission_model = MetaNodePermission

    type: Mapped[str] = mapped_column(String(16), index=True)
    owner: Mapped[str] = mapped_column(String(64), index=True)
    created_at: Mapped[int] = mapped_column(BigInteger)
    name: Mapped[str] = mapped_column(String(255))
    name_lowercase: Mapped[str] = mapped_column(String(255), index=True)

    content_rows: Mapped[list[MetaNodeContent]] = relationship(
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by=MetaNodeContent.position,
    )
    permission_rows: Mapped[list[MetaNodePermission]] = relationship(
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by=MetaNodePermission.grantee,
    )

    @validates("name")
    def _derive_name_lowercase(self, _key: str, value: str) -> str:
        self.name_lowercase = value.lower()
        return value

    @property
    def contents(self) -> list[str]:
        return [row.node_id for row in self.content_rows]

    def set_contents(self, node_ids: list[str]) -> None:
        existing = {row.node_id: row for row in self.content_rows}
        rows = []
        for position, node_id in enumerate(node_ids):
            row = existing.get(node_id) or MetaNodeContent(node_id=node_id)
            row.position = position
            rows.append(row)
        self.content_rows = rows
