"""节点服务：节点的批量读取、检索、创建、局部更新与删除。

所有操作都以请求者的用户名为视角：
- 可见：请求者是所有者，或在节点权限表中拥有任意级别的授权；
- 可编辑：请求者是所有者，或拥有 ``edit`` 授权；
- 可删除：仅所有者。
"""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy.orm import Session

from app.packages.drive.core.config import get_settings
from app.packages.drive.core.enums import NodeTypeEnum
from app.packages.drive.core.exceptions import ItemNotFoundError, ItemsNotFoundError, ValidationError
from app.packages.drive.core.identifiers import parse_id, parse_ids, parse_optional_id
from app.packages.drive.core.logger import get_logger
from app.packages.drive.core.timezone import now_ms
from app.packages.drive.crud.node_query import compile_id_lookup, compile_search
from app.packages.drive.crud.nodes import Node, node_crud
from app.packages.drive.crud.users import user_crud
from app.packages.drive.models.node import FileNode, MetaNode
from app.packages.drive.services.node_query import compile_matchers, normalize_tags
from app.packages.drive.services.node_validator import validate_node_data
from app.packages.drive.services.projection import public_node

logger = get_logger("drive.nodes")


class NodeService:
    """节点检索与变更的业务入口。"""

    # ------------------------------------------------------------------
    # 读取
    # ------------------------------------------------------------------

    def get_nodes(self, db: Session, *, username: str, node_ids: list[str]) -> list[dict[str, Any]]:
        """按标识符批量读取；任何一个不存在或不可见都视为失败。"""
        self._check_batch_size(node_ids)
        self._require_user(db, username)

        ids = parse_ids(node_ids, field="node_ids")
        nodes = node_crud.fetch(db, compile_id_lookup(ids, username=username))
        if len(nodes) != len(ids):
            raise ItemsNotFoundError("node_ids")
        return [public_node(node) for node in nodes]

    def search_nodes(
        self,
        db: Session,
        *,
        username: str,
        after: Optional[str] = None,
        match: Optional[dict] = None,
        regex_match: Optional[dict] = None,
    ) -> list[dict[str, Any]]:
        """按匹配器检索一页可见节点，最新优先；``after`` 为上一页最后一个节点的标识符。"""
        after_id = parse_optional_id(after, field="after")
        matcher = compile_matchers(match, regex_match)

        if after_id is not None and not node_crud.node_exists(db, after_id):
            raise ItemNotFoundError(after, "node_id")
        self._require_user(db, username)

        statement = compile_search(
            matcher,
            username=username,
            after=after_id,
            limit=get_settings().results_per_page,
        )
        return [public_node(node) for node in node_crud.fetch(db, statement)]

    # ------------------------------------------------------------------
    # 变更
    # ------------------------------------------------------------------

    def create_node(self, db: Session, *, username: str, data: Any) -> dict[str, Any]:
        """校验并创建节点，返回通过可见性查询重新读取的公开结构。"""
        fields = validate_node_data(db, data)
        self._require_user(db, username)

        timestamp = now_ms()
        if fields["type"] == NodeTypeEnum.FILE.value:
            node: Node = FileNode(
                owner=username,
                created_at=timestamp,
                modified_at=timestamp,
                name=fields["name"],
                text=fields["text"],
                lock=fields.get("lock"),
            )
            node.set_tags(list(normalize_tags(fields["tags"])))
        else:
            node = MetaNode(
                type=fields["type"],
                owner=username,
                created_at=timestamp,
                name=fields["name"],
            )
            node.set_contents(parse_ids(fields["contents"], field="contents"))
        node.set_permissions(fields["permissions"])

        node_crud.save(db, node)
        logger.info("node.create owner=%s node_id=%s type=%s", username, node.id, node.type)
        return self.get_nodes(db, username=username, node_ids=[node.id])[0]

    def update_node(self, db: Session, *, username: str, node_id: str, data: Any) -> None:
        """局部更新节点：只写入出现的字段，文件节点同时刷新修改时间。"""
        target_id = parse_id(node_id, field="node_id")
        if isinstance(data, dict) and not data:
            return
        self._require_user(db, username)

        node = node_crud.get_editable(db, target_id, username)
        if node is None:
            raise ItemNotFoundError(node_id, "node_id")
        fields = validate_node_data(db, data, node_type=node.type)

        if "owner" in fields:
            node.owner = fields["owner"]
        if "name" in fields:
            node.name = fields["name"]
        if "permissions" in fields:
            node.set_permissions(fields["permissions"])

        if isinstance(node, FileNode):
            if "text" in fields:
                node.text = fields["text"]
            if "tags" in fields:
                node.set_tags(list(normalize_tags(fields["tags"])))
            if "lock" in fields:
                node.lock = fields["lock"]
            node.modified_at = now_ms()
        elif "contents" in fields:
            node.set_contents(parse_ids(fields["contents"], field="contents"))

        node_crud.save(db, node)
        logger.info("node.update requester=%s node_id=%s fields=%s", username, target_id, sorted(fields))

    def delete_nodes(self, db: Session, *, username: str, node_ids: list[str]) -> None:
        """删除请求者拥有的节点，并从所有目录/符号链接中移除对它们的引用。"""
        self._check_batch_size(node_ids)
        ids = parse_ids(node_ids, field="node_ids")
        self._require_user(db, username)

        try:
            deleted = node_crud.delete_owned(db, ids, owner=username)
            pulled = node_crud.pull_from_contents(db, deleted)
        except Exception:
            db.rollback()
            raise
        node_crud.commit(db)
        logger.info(
            "node.delete requester=%s requested=%s deleted=%s references_removed=%s",
            username,
            len(ids),
            len(deleted),
            pulled,
        )

    # ------------------------------------------------------------------
    # 内部工具
    # ------------------------------------------------------------------

    @staticmethod
    def _check_batch_size(node_ids: list[str]) -> None:
        if len(node_ids) > get_settings().max_params_per_request:
            raise ValidationError.too_many_items("node_ids")

    @staticmethod
    def _require_user(db: Session, username: str) -> None:
        if not user_crud.exists(db, username=username):
            raise ItemNotFoundError(username, "user")


node_service = NodeService()
