"""Base service for ledger operations."""

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from walletapi.config import Settings
from walletapi.core.exceptions import BaseAPIException

logger = logging.getLogger(__name__)


class BaseLedgerService:
    """
    Base service for ledger operations.

    리포지토리는 flush 만 수행하므로, 잔액을 변경하는 서비스 메서드는
    unit_of_work() 블록 안에서 실행되어 성공 시 한 번에 commit 되고
    실패 시 전체가 rollback 됩니다.
    """

    def __init__(self, db: Session, settings: Settings):
        """
        Args:
            db: Database session
            settings: Application settings
        """
        self.db = db
        self.settings = settings

    @contextmanager
    def unit_of_work(self, action: str) -> Iterator[None]:
        """commit / rollback 경계

        Args:
            action: 로그에 남길 작업 이름
        """
        try:
            yield
            self.db.commit()
        except BaseAPIException as e:
            self.db.rollback()
            logger.warning(f"{action} rejected: {e.error_code} {e.message}")
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"{action} failed: {str(e)}")
            raise
