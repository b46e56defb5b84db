"""模型包初始化，便于统一导入 ORM 实体并触发模型注册。"""

from app.packages.drive.models.node import (
    FileNode,
    FileNodePermission,
    FileNodeTag,
    MetaNode,
    MetaNodeContent,
    MetaNodePermission,
)
from app.packages.drive.models.user import User

__all__ = [
    "FileNode",
    "FileNodePermission",
    "FileNodeTag",
    "MetaNode",
    "MetaNodeContent",
    "MetaNodePermission",
    "User",
]
