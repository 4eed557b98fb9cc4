from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from utility.timer import timer

SLOW_THRESHOLD_MS = 1000

# 폴링/헬스체크처럼 자주 호출되는 경로는 DEBUG로만 남긴다
QUIET_PATHS = ("/health", "/api/videos/sync")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """HTTP 요청 로깅 미들웨어.

    기록 항목: 메서드, 경로, 클라이언트 IP, 상태코드, 처리시간(ms)
    응답 헤더에 X-Process-Time(ms)을 붙인다.
    비디오 스트리밍 응답은 본문 전송 전까지의 시간만 잰다.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        with timer() as t:
            response = await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        path = request.url.path
        message = f"{request.method} {path} | {client_ip} | {response.status_code} | {t.elapsed_ms}ms"
        response.headers["X-Process-Time"] = str(t.elapsed_ms)

        if t.elapsed_ms > SLOW_THRESHOLD_MS:
            logger.warning(f"{message} (slow)")
        elif path in QUIET_PATHS:
            logger.debug(message)
        else:
            logger.info(message)

        return response
