import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import text

from walletapi.config import settings
from walletapi.database.connection import engine
from walletapi.logging_config import setup_logging
from walletapi.models import Base

import logging

logger = logging.getLogger("walletapi.scripts.init_db")


def init_db():
    """데이터베이스 초기화 - 스키마 및 원장 테이블 생성"""
    try:
        with engine.connect() as conn:
            conn.execute(
                text(f"CREATE SCHEMA IF NOT EXISTS {settings.POSTGRES_SCHEMA}")
            )
            conn.commit()

        Base.metadata.create_all(bind=engine)
        logger.info(
            f"Database initialized successfully with schema: {settings.POSTGRES_SCHEMA}"
        )
    except Exception as e:
        logger.error(f"Database initialization failed: {str(e)}")
        raise


if __name__ == "__main__":
    setup_logging(settings.LOG_LEVEL)
    init_db()
