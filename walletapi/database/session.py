import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session

from walletapi.database.connection import SessionLocal

logger = logging.getLogger(__name__)


def get_db() -> Iterator[Session]:
    """요청 단위 세션 - 커밋은 서비스의 작업 단위에서 수행"""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        if db.in_transaction():
            logger.warning("Rolling back open ledger transaction after request error")
            db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def get_db_context() -> Iterator[Session]:
    """스크립트/스케줄러용 세션 - 블록이 끝나면 커밋"""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
