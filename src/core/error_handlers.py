"""전역 예외 핸들러.

AppException 계열은 {"error_code", "message"} JSON으로, 예상하지 못한 예외는
스택 트레이스를 남기고 INTERNAL_ERROR로 응답한다.
416처럼 헤더가 필요한 예외는 exc.headers를 그대로 붙인다.
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from loguru import logger

from core.exceptions import AppException


def _error_body(error_code: str, message: str) -> dict[str, str]:
    return {"error_code": error_code, "message": message}


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} | {exc.error_code} | {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.error_code, exc.message),
        headers=exc.headers,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error(
        f"{request.method} {request.url.path} | unhandled {type(exc).__name__}: {exc}"
    )
    return JSONResponse(
        status_code=500,
        content=_error_body(AppException.error_code, AppException.message),
    )
