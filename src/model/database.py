from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine


def build_engine(database_url: str) -> Engine:
    """DATABASE_URL로 엔진을 만든다.

    SQLite는 백그라운드 스레드(asyncio.to_thread)에서도 접근하므로
    check_same_thread를 끈다.
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)


def create_db_and_tables(engine: Engine) -> None:
    """테이블이 없을 때만 생성한다 (create if not exists)."""
    import model.admin_setting  # noqa: F401  테이블 등록
    import model.video  # noqa: F401  테이블 등록

    SQLModel.metadata.create_all(engine)
