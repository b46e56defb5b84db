"""节点相关的响应模型：按 ``type`` 区分文件节点与元节点。"""

from typing import Literal, Optional, Union

from pydantic import BaseModel

from app.packages.drive.api.v1.schemas.common import ResponseEnvelope

PermissionLevel = Literal["view", "edit"]


class NodeLock(BaseModel):
    user: str
    client: str
    createdAt: Union[int, float]


class PublicFileNode(BaseModel):
    node_id: str
    type: Literal["file"]
    owner: str
    createdAt: int
    modifiedAt: int
    name: str
    size: int
    text: str
    tags: list[str]
    lock: Optional[NodeLock] = None
    permissions: dict[str, PermissionLevel]


class PublicMetaNode(BaseModel):
    node_id: str
    type: Literal["directory", "symlink"]
    owner: str
    createdAt: int
    name: str
    contents: list[str]
    permissions: dict[str, PermissionLevel]


PublicNode = Union[PublicFileNode, PublicMetaNode]

NodeResponse = ResponseEnvelope[PublicNode]
NodeListResponse = ResponseEnvelope[list[PublicNode]]
