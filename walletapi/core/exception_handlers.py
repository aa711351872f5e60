import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .exceptions import BaseAPIException, InternalServerError, ValidationError

logger = logging.getLogger("walletapi")


def _describe(request: Request) -> str:
    client = request.client.host if request.client else "-"
    return f"{request.method} {request.url} from {client}"


def _log_status(label: str, request: Request, status_code: int, detail) -> None:
    line = f"[{label}] {_describe(request)} -> {status_code}: {detail}"
    if status_code >= 500:
        logger.error(line)
    else:
        logger.warning(line)


async def handle_base_api_exception(request: Request, exc: BaseAPIException):
    """원장 예외 - 이미 표준 응답 본문을 갖고 있음"""
    _log_status(type(exc).__name__, request, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def handle_http_exception(request: Request, exc: StarletteHTTPException):
    if exc.status_code >= 500:
        tb_str = "".join(traceback.format_tb(exc.__traceback__))
        logger.error(
            f"[HTTPException] {_describe(request)} -> {exc.status_code}: {exc.detail}\n"
            f"Stack Trace:\n{tb_str}"
        )
    else:
        _log_status("HTTPException", request, exc.status_code, exc.detail)

    # 라우팅 404/405 등 프레임워크 예외도 동일한 본문 형태로 변환
    if isinstance(exc.detail, dict) and "error" in exc.detail:
        content = exc.detail
    else:
        content = {
            "success": False,
            "error": {"code": "HTTP_ERROR", "message": str(exc.detail), "details": {}},
        }
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=getattr(exc, "headers", None),
    )


async def handle_validation_error(request: Request, exc: RequestValidationError):
    errors = [str(err) for err in exc.errors()]
    _log_status("RequestValidationError", request, 422, errors)
    body = ValidationError(details={"errors": errors}).to_body()
    return JSONResponse(status_code=422, content=body)


async def handle_unexpected_error(request: Request, exc: Exception):
    tb_str = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    logger.error(
        f"[Unhandled Error] {_describe(request)}\n"
        f"{type(exc).__name__}: {exc}\n\n"
        f"Full Stack Trace:\n{tb_str}"
    )

    internal = InternalServerError()
    return JSONResponse(status_code=internal.status_code, content=internal.to_body())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BaseAPIException, handle_base_api_exception)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
