"""用户管理相关的路由定义。"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.orm import Session

from app.packages.drive.api.v1.schemas.users import (
    EmptyResponse,
    UserAuthRequest,
    UserListResponse,
    UserResponse,
)
from app.packages.drive.core.dependencies import get_db
from app.packages.drive.core.exceptions import AppException
from app.packages.drive.core.responses import create_response
from app.packages.drive.services.user_service import user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=UserListResponse)
def list_users(
    after: Optional[str] = Query(None, description="上一页最后一个用户的 user_id"),
    db: Session = Depends(get_db),
) -> dict:
    users = user_service.list_users(db, after=after)
    return create_response("获取用户列表成功", users)


@router.post("", response_model=UserResponse)
def create_user(payload: Any = Body(...), db: Session = Depends(get_db)) -> dict:
    user = user_service.create_user(db, payload)
    return create_response("用户创建成功", user)


@router.get("/{username}", response_model=UserResponse)
def get_user(username: str, db: Session = Depends(get_db)) -> dict:
    return create_response("获取用户成功", user_service.get_user(db, username))


@router.patch("/{username}", response_model=EmptyResponse)
def update_user(username: str, payload: Any = Body(...), db: Session = Depends(get_db)) -> dict:
    user_service.update_user(db, username, payload)
    return create_response("用户更新成功")


@router.delete("/{username}", response_model=EmptyResponse)
def delete_user(username: str, db: Session = Depends(get_db)) -> dict:
    user_service.delete_user(db, username)
    return create_response("用户删除成功")


@router.post("/{username}/auth", response_model=EmptyResponse)
def authenticate_user(
    username: str,
    payload: UserAuthRequest,
    db: Session = Depends(get_db),
) -> dict:
    """校验客户端派生的密钥，失败时返回 403。"""
    if not user_service.authenticate(db, username, payload.key):
        raise AppException("认证失败", status.HTTP_403_FORBIDDEN)
    return create_response("认证成功")
