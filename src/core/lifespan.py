from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from core.config import settings
from core.container import AppContainer
from model.database import create_db_and_tables
from utility.logger import setup_logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    # === 시작 ===
    setup_logger(settings.LOG_LEVEL, settings.LOG_FILE)
    logger.info(f"{settings.APP_NAME} v{settings.APP_VERSION}")

    # 테스트에서는 미리 만든 컨테이너를 주입한다
    container: AppContainer | None = getattr(app.state, "container", None)
    if container is None:
        container = AppContainer.build(settings)
        app.state.container = container

    create_db_and_tables(container.engine)
    await container.repository.seed_defaults()
    logger.info(f"Database ready ({container.settings.DATABASE_URL})")

    container.post_processor.ensure_directories()
    if container.settings.VIDEO_SYNC_ON_STARTUP:
        await container.sync_service.initialize()

    yield

    # === 종료 ===
    logger.info("Shutting down")
    await container.aclose()
