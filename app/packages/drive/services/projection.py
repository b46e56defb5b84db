"""对外投影：把内部实体转换为接口返回的公开结构。

内部派生字段（``name_lowercase``）与用户密钥 ``key`` 永远不会出现在投影结果中。
"""

from __future__ import annotations

from typing import Any

from app.packages.drive.models.node import FileNode, MetaNode
from app.packages.drive.models.user import User


def public_user(user: User) -> dict[str, Any]:
    return {
        "user_id": user.id,
        "username": user.username,
        "email": user.email,
        "salt": user.salt,
    }


def _public_file_node(node: FileNode) -> dict[str, Any]:
    return {
        "node_id": node.id,
        "type": node.type,
        "owner": node.owner,
        "createdAt": node.created_at,
        "modifiedAt": node.modified_at,
        "name": node.name,
        "size": node.size,
        "text": node.text,
        "tags": node.tags,
        "lock": node.lock,
        "permissions": node.permissions,
    }


def _public_meta_node(node: MetaNode) -> dict[str, Any]:
    return {
        "node_id": node.id,
        "type": node.type,
        "owner": node.owner,
        "createdAt": node.created_at,
        "name": node.name,
        "contents": node.contents,
        "permissions": node.permissions,
    }


def public_node(node: FileNode | MetaNode) -> dict[str, Any]:
    """按节点种类分派投影，出现未知种类时直接报错。"""
    if isinstance(node, FileNode):
        return _public_file_node(node)
    if isinstance(node, MetaNode):
        return _public_meta_node(node)
    raise TypeError(f"unsupported node type: {type(node).__name__}")
