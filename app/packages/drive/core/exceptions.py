"""异常处理模块：定义网盘业务异常、校验错误原因与统一的响应转换。"""

from typing import Any, Optional

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse

from app.packages.drive.core.enums import ValidationReasonEnum
from app.packages.drive.core.logger import logger


class AppException(HTTPException):
    """携带统一响应结构的业务异常，方便在全局处理中转换响应体。"""

    def __init__(self, msg: str, code: int = status.HTTP_400_BAD_REQUEST, data=None) -> None:
        super().__init__(status_code=code, detail=msg)
        self.data = data

    @property
    def msg(self) -> str:
        return self.detail


class ValidationError(AppException):
    """请求参数、匹配器或节点数据不合法。

    ``reason`` 取自 :class:`ValidationReasonEnum`，调用方据此区分失败类别，
    ``msg`` 仅供人阅读。下面的工厂方法覆盖了所有已知的失败场景。
    """

    def __init__(self, reason: ValidationReasonEnum, msg: str, **details: Any) -> None:
        super().__init__(msg, status.HTTP_400_BAD_REQUEST, {"reason": reason.value, **details})
        self.reason = reason
        self.details = details

    @classmethod
    def invalid_json(cls) -> "ValidationError":
        return cls(ValidationReasonEnum.INVALID_JSON, "请求体必须是 JSON 对象")

    @classmethod
    def invalid_field_value(cls, field: str) -> "ValidationError":
        return cls(ValidationReasonEnum.INVALID_FIELD_VALUE, f"字段 `{field}` 的值无效", field=field)

    @classmethod
    def invalid_string_length(
        cls,
        field: str,
        min_length: int,
        max_length: Optional[int],
        kind: str = "string",
    ) -> "ValidationError":
        if max_length is None:
            bounds = f"长度必须恰好为 {min_length}"
        else:
            bounds = f"长度必须在 {min_length} 到 {max_length} 之间"
        return cls(
            ValidationReasonEnum.INVALID_STRING_LENGTH,
            f"字段 `{field}` 必须是 {kind}，{bounds}",
            field=field,
        )

    @classmethod
    def invalid_object_key_value(cls, field: str) -> "ValidationError":
        return cls(
            ValidationReasonEnum.INVALID_OBJECT_KEY_VALUE,
            f"字段 `{field}` 含有非法的键或值",
            field=field,
        )

    @classmethod
    def too_many_items(cls, subject: str) -> "ValidationError":
        return cls(
            ValidationReasonEnum.TOO_MANY_ITEMS_REQUESTED,
            f"{subject} 的数量超出上限",
            field=subject,
        )

    @classmethod
    def unknown_field(cls, field: str) -> "ValidationError":
        return cls(ValidationReasonEnum.UNKNOWN_FIELD, f"未知字段 `{field}`", field=field)

    @classmethod
    def unknown_specifier(cls, specifier: str, *, sub: bool = False) -> "ValidationError":
        kind = "子匹配符" if sub else "匹配字段"
        return cls(
            ValidationReasonEnum.UNKNOWN_SPECIFIER,
            f"未知或不允许的{kind} `{specifier}`",
            specifier=specifier,
        )

    @classmethod
    def unknown_permissions_specifier(cls) -> "ValidationError":
        return cls(
            ValidationReasonEnum.UNKNOWN_SPECIFIER,
            "不支持直接匹配 `permissions`，请使用 `permissions.<用户名>` 形式",
            specifier="permissions",
        )

    @classmethod
    def invalid_matcher(cls, matcher: str) -> "ValidationError":
        return cls(
            ValidationReasonEnum.INVALID_MATCHER_SHAPE,
            f"`{matcher}` 必须是对象",
            matcher=matcher,
        )

    @classmethod
    def invalid_specifier_value(cls, specifier: str, expected: str) -> "ValidationError":
        return cls(
            ValidationReasonEnum.INVALID_MATCHER_SHAPE,
            f"`{specifier}` 的值必须是{expected}",
            specifier=specifier,
        )

    @classmethod
    def invalid_or_specifier(cls, detail: str, index: Optional[int] = None) -> "ValidationError":
        where = "`$or`" if index is None else f"`$or` 的第 {index} 个元素"
        return cls(
            ValidationReasonEnum.INVALID_MATCHER_SHAPE,
            f"{where}{detail}",
            specifier="$or",
            index=index,
        )

    @classmethod
    def invalid_regex(cls, specifier: str) -> "ValidationError":
        return cls(
            ValidationReasonEnum.INVALID_MATCHER_SHAPE,
            f"`{specifier}` 必须是非空且合法的正则表达式",
            specifier=specifier,
        )

    @classmethod
    def illegal_username(cls) -> "ValidationError":
        return cls(ValidationReasonEnum.ILLEGAL_USERNAME, "该用户名为系统保留名称，不可使用")


class InvalidIdentifierError(ValidationError):
    """标识符格式不正确，错误信息中保留调用方传入的原始字符串。"""

    def __init__(self, value: Any, field: Optional[str] = None) -> None:
        details = {"value": str(value)}
        if field is not None:
            details["field"] = field
        super().__init__(
            ValidationReasonEnum.INVALID_OBJECT_ID,
            f"`{value}` 不是合法的标识符",
            **details,
        )
        self.value = value


class DuplicateFieldValueError(ValidationError):
    """唯一字段冲突：由存储层的唯一约束异常转换而来。"""

    def __init__(self, field: str) -> None:
        super().__init__(
            ValidationReasonEnum.DUPLICATE_FIELD_VALUE,
            f"字段 `{field}` 的值已被占用",
            field=field,
        )
        self.field = field


class ItemNotFoundError(AppException):
    """单个资源不存在（或对当前用户不可见）。"""

    def __init__(self, item: Any, item_name: str = "item") -> None:
        super().__init__(
            f"{item_name} `{item}` 不存在",
            status.HTTP_404_NOT_FOUND,
            {"item": None if item is None else str(item), "item_name": item_name},
        )
        self.item = item
        self.item_name = item_name


class ItemsNotFoundError(AppException):
    """批量请求中有一个或多个资源不存在（或不可见）。"""

    def __init__(self, item_name: str = "items") -> None:
        super().__init__(
            f"一个或多个 {item_name} 不存在",
            status.HTTP_404_NOT_FOUND,
            {"item_name": item_name},
        )
        self.item_name = item_name


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:  # pragma: no cover - framework glue
    """将 FastAPI 的 ``HTTPException`` 转换为统一响应格式。"""
    payload = {"msg": exc.detail, "data": getattr(exc, "data", None), "code": exc.status_code}
    return JSONResponse(status_code=exc.status_code, content=payload)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:  # pragma: no cover - framework glue
    """兜底处理：记录堆栈并将未捕获异常转换为标准的 500 响应结构。"""
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    payload = {
        "msg": "服务器内部错误",
        "data": None,
        "code": status.HTTP_500_INTERNAL_SERVER_ERROR,
    }
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=payload)
