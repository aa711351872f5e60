from decimal import Decimal

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from walletapi.config import Settings
from walletapi.models import Base
from walletapi.models.platform import PLATFORM_SETTINGS_ID, PlatformSettings


@pytest.fixture
def engine():
    """인메모리 SQLite 엔진 (savepoint 지원을 위해 트랜잭션 시작을 직접 제어)"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    Session = sessionmaker(
        bind=engine, autocommit=False, autoflush=False, expire_on_commit=False
    )
    session = Session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def settings():
    return Settings(
        CRON_SECRET="test-cron-secret",
        EARNINGS_MATURATION_RETRY_BACKOFF_SECONDS=0,
    )


@pytest.fixture
def pricing_row(db_session):
    """기본 가격 설정: 구매 2.00, 사용자 가치 1.50, 최소 지급 100 TTD"""
    row = PlatformSettings(
        id=PLATFORM_SETTINGS_ID,
        buy_price_per_point=Decimal("2.00"),
        user_value_per_point=Decimal("1.50"),
        payout_minimum_ttd=Decimal("100.00"),
        mandatory_topup_ttd=Decimal("150.00"),
        referral_bonus_points=20,
        referral_max_topups=3,
    )
    db_session.add(row)
    db_session.commit()
    return row
