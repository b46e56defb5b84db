"""常量定义：集中维护网盘服务使用的状态码、正则与保留名称。"""

import re

HTTP_STATUS_OK = 200

# 权限表中代表“所有人”的保留授权对象，同时也是禁止注册的用户名
PUBLIC_GRANTEE = "public"

EMAIL_PATTERN = re.compile(r"^[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}$", re.IGNORECASE)
USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")
HEXADECIMAL_PATTERN = re.compile(r"^[a-fA-F0-9]+$")

# 检索时 `name` 被代理到该内部字段，对外永不暴露
NAME_LOWERCASE_FIELD = "name-lowercase"
PERMISSIONS_FIELD = "permissions"
PERMISSIONS_PREFIX = "permissions."
TAGS_FIELD = "tags"

# 正则匹配统一启用忽略大小写与多行模式
REGEX_INLINE_FLAGS = "(?im)"
