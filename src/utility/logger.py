import sys

from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)


def setup_logger(level: str = "DEBUG", log_file: str | None = None):
    """Loguru 기본 설정. 앱 시작 시 한 번 호출.

    log_file을 주면 같은 포맷으로 파일에도 남기고 50MB 단위로 회전한다.
    """
    logger.remove()
    logger.add(sys.stderr, format=LOG_FORMAT, level=level)
    if log_file:
        logger.add(
            log_file,
            format=LOG_FORMAT,
            level=level,
            rotation="50 MB",
            retention="14 days",
            enqueue=True,
        )
    return logger
