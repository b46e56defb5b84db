"""节点 CRUD：文件节点与元节点的读取、存在性检查与级联删除。"""

from __future__ import annotations

from typing import Iterable, Optional, Union

from sqlalchemy import Select, delete, select, union_all
from sqlalchemy.orm import Session

from app.packages.drive.core.enums import NodeTypeEnum
from app.packages.drive.crud.base import CRUDBase
from app.packages.drive.crud.node_query import compile_edit_lookup
from app.packages.drive.models.node import FileNode, MetaNode, MetaNodeContent

Node = Union[FileNode, MetaNode]


class CRUDNode(CRUDBase[FileNode]):
    """两张节点表共用一个入口：检索结果回表、批量存在性检查、按所有者删除。"""

    def __init__(self) -> None:
        super().__init__(FileNode)
        self.meta_model = MetaNode

    def fetch(self, db: Session, statement: Select) -> list[Node]:
        """执行 ``(id, type)`` 形式的检索语句，并按原顺序加载完整节点。"""
        rows = db.execute(statement).all()
        file_ids = [row.id for row in rows if row.type == NodeTypeEnum.FILE.value]
        meta_ids = [row.id for row in rows if row.type != NodeTypeEnum.FILE.value]

        loaded: dict[str, Node] = {}
        if file_ids:
            loaded.update((node.id, node) for node in db.query(FileNode).filter(FileNode.id.in_(file_ids)))
        if meta_ids:
            loaded.update((node.id, node) for node in db.query(MetaNode).filter(MetaNode.id.in_(meta_ids)))
        return [loaded[row.id] for row in rows if row.id in loaded]

    def get_editable(self, db: Session, node_id: str, username: str) -> Optional[Node]:
        """返回请求者可编辑的节点；不存在或无权编辑时返回 ``None``。"""
        nodes = self.fetch(db, compile_edit_lookup(node_id, username=username))
        return nodes[0] if nodes else None

    def existing_ids(self, db: Session, node_ids: Iterable[str]) -> set[str]:
        """一次查询返回在任一节点表中存在的标识符。"""
        candidates = set(node_ids)
        if not candidates:
            return set()
        statement = union_all(
            select(FileNode.id).where(FileNode.id.in_(candidates)),
            select(MetaNode.id).where(MetaNode.id.in_(candidates)),
        )
        return {row[0] for row in db.execute(statement)}

    def node_exists(self, db: Session, node_id: str) -> bool:
        return node_id in self.existing_ids(db, [node_id])

    def delete_owned(self, db: Session, node_ids: list[str], *, owner: str) -> list[str]:
        """删除 ``owner`` 拥有的节点，其余标识符直接忽略；返回实际删除的标识符。"""
        deleted: list[str] = []
        for model in (FileNode, self.meta_model):
            nodes = db.query(model).filter(model.id.in_(node_ids), model.owner == owner).all()
            for node in nodes:
                db.delete(node)
                deleted.append(node.id)
        db.flush()
        return deleted

    def pull_from_contents(self, db: Session, node_ids: list[str]) -> int:
        """把已删除的节点从所有目录/符号链接的内容中移除。"""
        if not node_ids:
            return 0
        result = db.execute(
            delete(MetaNodeContent)
            .where(MetaNodeContent.node_id.in_(node_ids))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0


node_crud = CRUDNode()
