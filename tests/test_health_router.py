from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from walletapi.main import create_app


@pytest.fixture
def app():
    return create_app()


@pytest.fixture
def db_session(app):
    """DB 세션 모의 객체로 컨테이너 교체"""
    session = Mock()
    with app.container.repositories.get_db.override(session):
        yield session


@pytest.fixture
def client(app, db_session):
    return TestClient(app)


def test_health_ok(client, db_session):
    db_session.get.return_value = object()

    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database"] == "ok"
    assert data["pricing_configured"] is True


def test_health_without_pricing(client, db_session):
    db_session.get.return_value = None

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["pricing_configured"] is False


def test_health_database_down(client, db_session):
    db_session.execute.side_effect = OperationalError(
        "SELECT 1", {}, Exception("connection refused")
    )

    response = client.get("/health")

    assert response.status_code == 503
    assert response.json()["status"] == "unhealthy"
    db_session.rollback.assert_called_once()
