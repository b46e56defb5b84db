"""业务包契约：主应用只通过 :class:`AppPackage` 与具体业务包交互。"""

from __future__ import annotations

from dataclasses import dataclass
from logging import Logger
from typing import Any, Awaitable, Callable

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

ExceptionHandler = Callable[[Request, Exception], Awaitable[JSONResponse]]


@dataclass(frozen=True)
class AppPackage:
    """一个可挂载到主应用上的业务包。

    - ``api_router``：挂载在 ``API_V1_STR`` 前缀下的版本化路由；
    - ``get_settings`` / ``setup_logging`` / ``logger``：包内的配置与日志入口；
    - ``init_db``：启动时调用，负责幂等建表；
    - ``create_response`` 与两个异常处理器：保证所有响应都是 ``{msg, data, code}`` 结构。
    """

    name: str
    api_router: APIRouter
    get_settings: Callable[[], Any]
    setup_logging: Callable[[], None]
    logger: Logger
    init_db: Callable[[], None]
    create_response: Callable[..., dict[str, Any]]
    http_exception_handler: ExceptionHandler
    generic_exception_handler: ExceptionHandler
