from datetime import date, datetime, timezone
from decimal import Decimal
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from walletapi.core.exceptions import (
    InsufficientBalanceError,
    InvalidTransitionError,
    NotFoundError,
)
from walletapi.core.ledger_rules import validate_direct_transaction_type
from walletapi.main import create_app
from walletapi.models.wallet import TransactionType
from walletapi.schemas.wallet import (
    TopupReminder,
    TopupReminderScanResponse,
    TransactionResponse,
    WalletResponse,
    WalletSummaryResponse,
)

CRON_SECRET = "router-cron-secret"


@pytest.fixture
def app():
    return create_app()


@pytest.fixture
def ledger_service(app):
    """LedgerService 모의 객체로 컨테이너 교체"""
    mock_service = Mock()
    with app.container.services.ledger_service.override(mock_service):
        yield mock_service


@pytest.fixture
def client(app, ledger_service):
    return TestClient(app)


@pytest.fixture
def cron_secret(monkeypatch):
    monkeypatch.setattr("walletapi.core.security.settings.CRON_SECRET", CRON_SECRET)
    return CRON_SECRET


def _transaction(**overrides):
    values = {
        "id": 1,
        "user_id": 7,
        "type": "top_up",
        "status": "pending",
        "amount_ttd": Decimal("100.00"),
        "points_delta": 50,
        "earnings_points_delta": 0,
        "buy_price_per_point_at_time": Decimal("2.00"),
        "user_value_per_point_at_time": Decimal("1.50"),
        "created_at": datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
    }
    values.update(overrides)
    return TransactionResponse(**values)


class TestWalletRoutes:
    """지갑 라우터 테스트"""

    def test_get_wallet_summary(self, client, ledger_service):
        # Given
        ledger_service.get_wallet_summary.return_value = WalletSummaryResponse(
            wallet=WalletResponse(
                user_id=7, points_balance=40, earnings_points=70, locked_earnings_points=0
            ),
            projected_points=50,
            pending_topup_count=1,
            pending_earnings_points=0,
            minimum_payout_points=67,
            is_payout_eligible=True,
            earnings_value_ttd=Decimal("105.00"),
            next_payout_date=date(2026, 4, 1),
        )

        # When
        response = client.get("/api/v1/wallets/7")

        # Then
        assert response.status_code == 200
        data = response.json()
        assert data["wallet"]["points_balance"] == 40
        assert data["projected_points"] == 50
        assert data["is_payout_eligible"] is True
        ledger_service.get_wallet_summary.assert_called_once_with(7)

    def test_submit_topup_shows_projected_points(self, client, ledger_service):
        ledger_service.submit_topup.return_value = _transaction()

        response = client.post(
            "/api/v1/wallets/7/topups", json={"amount_ttd": "100.00", "ref_id": "bank-1"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "pending"
        assert data["projected_points"] == 50
        ledger_service.submit_topup.assert_called_once_with(
            7, Decimal("100.00"), ref_id="bank-1"
        )

    def test_submit_topup_rejects_non_positive_amount(self, client, ledger_service):
        response = client.post("/api/v1/wallets/7/topups", json={"amount_ttd": "0"})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_001"
        ledger_service.submit_topup.assert_not_called()

    def test_verify_topup(self, client, ledger_service):
        ledger_service.verify_topup.return_value = _transaction(status="verified")

        response = client.post("/api/v1/wallets/topups/1/verify")

        assert response.status_code == 200
        assert response.json()["status"] == "verified"
        assert response.json()["projected_points"] is None
        ledger_service.verify_topup.assert_called_once_with(1)

    def test_verify_topup_twice_conflicts(self, client, ledger_service):
        ledger_service.verify_topup.side_effect = InvalidTransitionError(
            "Top-up is already verified", details={"transaction_id": 1}
        )

        response = client.post("/api/v1/wallets/topups/1/verify")

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "TRANSITION_001"

    def test_verify_unknown_topup(self, client, ledger_service):
        ledger_service.verify_topup.side_effect = NotFoundError("Transaction not found")

        response = client.post("/api/v1/wallets/topups/999/verify")

        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_spend_insufficient_balance(self, client, ledger_service):
        ledger_service.spend_points.side_effect = InsufficientBalanceError(
            details={"points_balance": 5, "points_delta": -10}
        )

        response = client.post(
            "/api/v1/wallets/7/spend", json={"points": 10, "category": "voice_note"}
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"]["code"] == "BALANCE_001"
        assert body["error"]["details"]["points_balance"] == 5

    def test_spend_rejects_unknown_category(self, client, ledger_service):
        response = client.post(
            "/api/v1/wallets/7/spend", json={"points": 10, "category": "lottery"}
        )

        assert response.status_code == 422
        ledger_service.spend_points.assert_not_called()

    def test_refund_spend(self, client, ledger_service):
        ledger_service.refund_spend.return_value = _transaction(
            id=3, type="point_refund", status="verified", points_delta=10, amount_ttd=None
        )

        response = client.post(
            "/api/v1/wallets/spends/2/refund", json={"reason": "event cancelled"}
        )

        assert response.status_code == 200
        assert response.json()["type"] == "point_refund"
        ledger_service.refund_spend.assert_called_once_with(2, "event cancelled")

    def test_apply_rejects_top_up(self, client, ledger_service):
        def apply(user_id, transaction_type, **kwargs):
            validate_direct_transaction_type(transaction_type)

        ledger_service.apply_transaction.side_effect = apply

        response = client.post(
            "/api/v1/wallets/7/transactions",
            json={"type": "top_up", "points_delta": 1000},
        )

        assert response.status_code == 422
        body = response.json()
        assert body["error"]["code"] == "VALIDATION_001"
        assert body["error"]["details"]["allowed_types"] == ["point_spend", "point_refund"]

    def test_apply_point_spend(self, client, ledger_service):
        ledger_service.apply_transaction.return_value = _transaction(
            id=4, type="point_spend", status="verified", points_delta=-5, amount_ttd=None
        )

        response = client.post(
            "/api/v1/wallets/7/transactions",
            json={"type": "point_spend", "points_delta": -5, "ref_id": "adj-9"},
        )

        assert response.status_code == 200
        assert response.json()["points_delta"] == -5
        ledger_service.apply_transaction.assert_called_once_with(
            7,
            TransactionType.POINT_SPEND,
            points_delta=-5,
            earnings_delta=0,
            amount_ttd=None,
            metadata=None,
            ref_id="adj-9",
        )

    def test_invalid_user_id(self, client, ledger_service):
        response = client.get("/api/v1/wallets/0")

        assert response.status_code == 422


class TestTopupReminderRoute:
    """의무 충전 알림 cron 엔드포인트 테스트"""

    def test_requires_cron_secret(self, client, ledger_service, cron_secret):
        response = client.post(
            "/api/v1/wallets/reminders/topup", headers={"x-cron-secret": "wrong"}
        )

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTH_001"
        ledger_service.find_topup_reminders.assert_not_called()

    def test_missing_secret(self, client, ledger_service, cron_secret):
        response = client.post("/api/v1/wallets/reminders/topup")

        assert response.status_code == 401

    @pytest.mark.parametrize(
        "headers",
        [
            {"x-cron-secret": CRON_SECRET},
            {"Authorization": f"Bearer {CRON_SECRET}"},
        ],
    )
    def test_accepts_header_or_bearer(self, client, ledger_service, cron_secret, headers):
        ledger_service.find_topup_reminders.return_value = TopupReminderScanResponse(
            scanned=1,
            reminders=[
                TopupReminder(
                    user_id=7,
                    next_topup_due_on=date(2026, 3, 10),
                    reminder_type="due_today",
                )
            ],
        )

        response = client.post(
            "/api/v1/wallets/reminders/topup?as_of=2026-03-10", headers=headers
        )

        assert response.status_code == 200
        assert response.json()["reminders"][0]["reminder_type"] == "due_today"
        ledger_service.find_topup_reminders.assert_called_once_with(date(2026, 3, 10))
