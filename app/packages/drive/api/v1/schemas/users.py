"""用户相关的请求与响应模型。

请求体只约束为 JSON 对象，字段级校验由用户服务完成，以便返回统一的校验原因。
"""

from typing import Any

from pydantic import BaseModel

from app.packages.drive.api.v1.schemas.common import ResponseEnvelope


class PublicUser(BaseModel):
    user_id: str
    username: str
    email: str
    salt: str


class UserAuthRequest(BaseModel):
    key: Any = None


UserResponse = ResponseEnvelope[PublicUser]
UserListResponse = ResponseEnvelope[list[PublicUser]]
EmptyResponse = ResponseEnvelope[None]
