"""文件系统相关的路由定义：节点检索、批量读取、创建、更新与删除。"""

from __future__ import annotations

import json
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from app.packages.drive.api.v1.schemas.nodes import NodeListResponse, NodeResponse
from app.packages.drive.api.v1.schemas.users import EmptyResponse
from app.packages.drive.core.dependencies import get_db
from app.packages.drive.core.exceptions import ValidationError
from app.packages.drive.core.responses import create_response
from app.packages.drive.services.node_service import node_service

router = APIRouter(prefix="/filesystem", tags=["filesystem"])


def _parse_matcher(raw: Optional[str], name: str) -> Any:
    """匹配器以 JSON 字符串形式出现在查询参数中。"""
    if raw is None or raw == "":
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValidationError.invalid_matcher(name) from exc


def _split_node_ids(raw: str) -> list[str]:
    return [part for part in raw.split("/") if part]


@router.get("/{username}/search", response_model=NodeListResponse)
def search_nodes(
    username: str,
    after: Optional[str] = Query(None, description="上一页最后一个节点的 node_id"),
    match: Optional[str] = Query(None, description="JSON 编码的等值匹配器"),
    regex_match: Optional[str] = Query(None, alias="regexMatch", description="JSON 编码的正则匹配器"),
    db: Session = Depends(get_db),
) -> dict:
    nodes = node_service.search_nodes(
        db,
        username=username,
        after=after,
        match=_parse_matcher(match, "match"),
        regex_match=_parse_matcher(regex_match, "regexMatch"),
    )
    return create_response("检索节点成功", nodes)


@router.post("/{username}", response_model=NodeResponse)
def create_node(username: str, payload: Any = Body(...), db: Session = Depends(get_db)) -> dict:
    node = node_service.create_node(db, username=username, data=payload)
    return create_response("节点创建成功", node)


@router.get("/{username}/{node_ids:path}", response_model=NodeListResponse)
def get_nodes(username: str, node_ids: str, db: Session = Depends(get_db)) -> dict:
    nodes = node_service.get_nodes(db, username=username, node_ids=_split_node_ids(node_ids))
    return create_response("获取节点成功", nodes)


@router.patch("/{username}/{node_id}", response_model=EmptyResponse)
def update_node(
    username: str,
    node_id: str,
    payload: Any = Body(...),
    db: Session = Depends(get_db),
) -> dict:
    node_service.update_node(db, username=username, node_id=node_id, data=payload)
    return create_response("节点更新成功")


@router.delete("/{username}/{node_ids:path}", response_model=EmptyResponse)
def delete_nodes(username: str, node_ids: str, db: Session = Depends(get_db)) -> dict:
    node_service.delete_nodes(db, username=username, node_ids=_split_node_ids(node_ids))
    return create_response("节点删除成功")
