"""枚举定义：约束节点类型、授权级别与校验失败原因的可选值。"""

from enum import Enum


class NodeTypeEnum(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"


class PermissionLevelEnum(str, Enum):
    VIEW = "view"
    EDIT = "edit"


class ValidationReasonEnum(str, Enum):
    """校验错误的细分原因，随错误响应的 ``data.reason`` 一并返回。"""

    INVALID_FIELD_VALUE = "invalid-field-value"
    INVALID_STRING_LENGTH = "invalid-string-length"
    INVALID_OBJECT_KEY_VALUE = "invalid-object-key-value"
    TOO_MANY_ITEMS_REQUESTED = "too-many-items-requested"
    UNKNOWN_FIELD = "unknown-field"
    UNKNOWN_SPECIFIER = "unknown-specifier"
    INVALID_MATCHER_SHAPE = "invalid-matcher-shape"
    INVALID_OBJECT_ID = "invalid-object-id"
    DUPLICATE_FIELD_VALUE = "duplicate-field-value"
    ILLEGAL_USERNAME = "illegal-username"
    INVALID_JSON = "invalid-json"


META_NODE_TYPES = frozenset({NodeTypeEnum.DIRECTORY.value, NodeTypeEnum.SYMLINK.value})
NODE_TYPES = frozenset({NodeTypeEnum.FILE.value, *META_NODE_TYPES})
PERMISSION_LEVELS = frozenset(level.value for level in PermissionLevelEnum)
