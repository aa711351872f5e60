from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker

from walletapi.config import settings


def build_engine(database_url: str) -> Engine:
    """원장 DB 엔진 생성

    PostgreSQL 은 커넥션 풀과 search_path 를 설정하고, 로컬 개발용 SQLite URL 은
    기본 풀 설정을 그대로 사용합니다.
    """
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        return create_engine(
            url, echo=settings.DEBUG, connect_args={"check_same_thread": False}
        )

    return create_engine(
        url,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,
        pool_recycle=3600,
        echo=settings.DEBUG,
        connect_args={"options": f"-csearch_path={settings.POSTGRES_SCHEMA}"},
    )


engine = build_engine(settings.database_url)

# 커밋 후에도 응답 스키마 변환에서 속성 접근이 가능해야 함
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)
