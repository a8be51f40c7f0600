"""Uniform ``{code, msg, data}`` response envelope and business errors.

JSON endpoints always answer with HTTP 200; the business outcome lives in
``code``. Streaming endpoints are not wrapped.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from urbanscope.core.logger import get_logger

logger = get_logger("urbanscope.responses")


class ErrorCode(IntEnum):
    SUCCESS = 10000

    BUSINESS_FAILED = 20000
    INVALID_INPUT = 20001
    RESOURCE_NOT_FOUND = 20002
    DATA_STILL_REFERENCED = 20003
    DATA_EXIST = 20004

    UNAUTHORIZED = 30000
    FORBIDDEN = 30001
    TOKEN_EXPIRED = 30002

    SYSTEM_ERROR = 50000
    UNKNOWN_ERROR = 50001
    THROTTLE_ERROR = 50002


SUCCESS_MSG = "成功"


def ok(data: Any = None) -> dict[str, Any]:
    return {"code": int(ErrorCode.SUCCESS), "msg": SUCCESS_MSG, "data": jsonable_encoder(data)}


class BusinessException(Exception):
    """Raised by services; rendered as an envelope by the exception handlers."""

    def __init__(self, code: ErrorCode = ErrorCode.BUSINESS_FAILED, message: str | None = None):
        self.code = code
        self.message = message or "业务处理失败"
        super().__init__(self.message)


def _envelope(code: int, msg: str, data: Any = None) -> JSONResponse:
    return JSONResponse(
        status_code=200,
        content={"code": int(code), "msg": msg, "data": jsonable_encoder(data)},
    )


async def _business_exception_handler(request: Request, exc: BusinessException) -> JSONResponse:
    logger.error("【%s】%s - %s - %s", request.method, request.url.path, int(exc.code), exc.message)
    return _envelope(exc.code, exc.message, exc.message)


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0].get("msg") if errors else None
    logger.error("【%s】%s - %s - %s", request.method, request.url.path, int(ErrorCode.INVALID_INPUT), first)
    return _envelope(ErrorCode.INVALID_INPUT, first or "请求参数错误", errors)


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 400:
        code, msg = ErrorCode.INVALID_INPUT, "请求参数错误"
    elif exc.status_code == 404:
        code, msg = ErrorCode.RESOURCE_NOT_FOUND, "请求资源不存在"
    else:
        code, msg = ErrorCode.SYSTEM_ERROR, "服务器内部错误"
    logger.error("【%s】%s - %s - %s", request.method, request.url.path, int(code), exc.detail)
    return _envelope(code, msg, None)


async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("【%s】%s - %s - 未知系统错误发生", request.method, request.url.path, int(ErrorCode.UNKNOWN_ERROR))
    return _envelope(
        ErrorCode.UNKNOWN_ERROR,
        "未知系统错误发生",
        {"type": type(exc).__name__, "message": str(exc) or "未知错误"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BusinessException, _business_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(Exception, _unhandled_exception_handler)
