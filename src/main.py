from datetime import UTC, datetime

import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from core.config import settings
from core.error_handlers import app_exception_handler, unhandled_exception_handler
from core.exceptions import AppException
from core.lifespan import lifespan
from core.middleware import RequestLoggingMiddleware
from router.admin_router import router as admin_router
from router.generation_router import router as generation_router
from router.media_router import router as media_router
from router.sync_router import router as sync_router
from router.video_router import router as video_router

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="한국어 프롬프트 → 번역 → Veo 비디오 생성 → 썸네일/메타데이터 추출 대시보드 백엔드",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.include_router(generation_router)
app.include_router(sync_router)  # /api/videos/{video_id}보다 먼저
app.include_router(video_router)
app.include_router(admin_router)
app.include_router(media_router)


@app.api_route("/health", methods=["GET", "HEAD"])
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "timestamp": datetime.now(UTC).isoformat(),
            "version": settings.APP_VERSION,
        },
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"},
    )


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        access_log=False,
    )
