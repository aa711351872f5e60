from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from walletapi.core.exceptions import InvalidTransitionError, NotFoundError
from walletapi.models.earnings import EarningsSourceType, EarningsStatus, WalletEarningsLedger
from walletapi.models.wallet import Transaction, TransactionType, Wallet
from walletapi.schemas.earnings import MaturationResponse
from walletapi.services.earnings_service import EarningsService
from walletapi.services.ledger_service import LedgerService
from walletapi.utils.clock import LedgerClock

USER_ID = 2001


@pytest.fixture
def earnings(db_session, settings, pricing_row):
    return EarningsService(db_session, settings)


def _wallet(db_session, user_id=USER_ID) -> Wallet:
    return db_session.query(Wallet).filter(Wallet.user_id == user_id).one()


def _credit_transactions(db_session):
    return (
        db_session.query(Transaction)
        .filter(Transaction.type == TransactionType.EARNING_CREDIT.value)
        .count()
    )


class TestCredit:
    def test_immediate_credit_is_confirmed(self, earnings, db_session):
        entry = earnings.credit_earnings(USER_ID, 30, EarningsSourceType.BOOST, source_id="boost-1")

        assert entry.status == EarningsStatus.CONFIRMED
        assert str(entry.amount_ttd) == "45.00"
        assert _wallet(db_session).earnings_points == 30
        assert _credit_transactions(db_session) == 1

    def test_held_credit_is_pending(self, earnings, db_session):
        entry = earnings.credit_earnings(
            USER_ID, 30, EarningsSourceType.LIVE_REGISTRATION, hold_seconds=3600
        )

        assert entry.status == EarningsStatus.PENDING
        assert db_session.query(Wallet).count() == 0
        assert _credit_transactions(db_session) == 0


class TestMaturation:
    def test_matures_only_due_entries(self, earnings, db_session):
        earnings.credit_earnings(USER_ID, 10, EarningsSourceType.BOOST, hold_seconds=60)
        earnings.credit_earnings(USER_ID, 20, EarningsSourceType.BOOST, hold_seconds=7200)

        result = earnings.mature_earnings(
            USER_ID, as_of=LedgerClock.utcnow() + timedelta(minutes=5)
        )

        assert result.matured_count == 1
        assert result.matured_points == 10
        assert _wallet(db_session).earnings_points == 10

    def test_second_run_is_noop(self, earnings, db_session):
        earnings.credit_earnings(USER_ID, 10, EarningsSourceType.BOOST, hold_seconds=60)
        as_of = LedgerClock.utcnow() + timedelta(minutes=5)

        first = earnings.mature_earnings(USER_ID, as_of=as_of)
        second = earnings.mature_earnings(USER_ID, as_of=as_of)

        assert first.matured_count == 1
        assert second.matured_count == 0
        assert _wallet(db_session).earnings_points == 10
        assert _credit_transactions(db_session) == 1

    def test_limit_processes_oldest_first(self, earnings, db_session):
        for hold in (300, 100, 200):
            earnings.credit_earnings(USER_ID, hold // 100, EarningsSourceType.BOOST, hold_seconds=hold)

        result = earnings.mature_earnings(
            USER_ID, limit=2, as_of=LedgerClock.utcnow() + timedelta(hours=1)
        )

        assert result.matured_points == 1 + 2
        pending = earnings.list_entries(USER_ID, EarningsStatus.PENDING)
        assert [entry.points for entry in pending] == [3]

    def test_entry_confirmed_elsewhere_is_not_credited_twice(self, earnings, db_session):
        earnings.credit_earnings(USER_ID, 10, EarningsSourceType.BOOST, hold_seconds=60)
        as_of = LedgerClock.utcnow() + timedelta(minutes=5)
        due = earnings.earnings_repo.list_due_pending(USER_ID, as_of, 10)

        with patch.object(earnings.earnings_repo, "list_due_pending", return_value=due):
            earnings.mature_earnings(USER_ID, as_of=as_of)
            again = earnings.mature_earnings(USER_ID, as_of=as_of)

        assert again.matured_count == 0
        assert _credit_transactions(db_session) == 1

    def test_sweep_covers_all_users(self, earnings, db_session):
        for user_id in (1, 2, 3):
            earnings.credit_earnings(user_id, 5, EarningsSourceType.BOOST, hold_seconds=60)

        result = earnings.mature_all_due(as_of=LedgerClock.utcnow() + timedelta(minutes=5))

        assert result.users_processed == 3
        assert result.matured_count == 3
        assert result.matured_points == 15
        assert result.failed_user_ids == []

    def test_sweep_retries_operational_errors(self, earnings, db_session):
        earnings.credit_earnings(USER_ID, 5, EarningsSourceType.BOOST, hold_seconds=60)
        ok = MaturationResponse(user_id=USER_ID, matured_count=1, matured_points=5)
        flaky = [OperationalError("SELECT 1", {}, Exception("connection reset")), ok]

        with patch.object(earnings, "mature_earnings", side_effect=flaky) as mature:
            result = earnings.mature_all_due(as_of=LedgerClock.utcnow() + timedelta(minutes=5))

        assert mature.call_count == 2
        assert result.matured_count == 1
        assert result.failed_user_ids == []

    def test_sweep_gives_up_after_max_attempts(self, earnings, settings):
        earnings.credit_earnings(USER_ID, 5, EarningsSourceType.BOOST, hold_seconds=60)
        error = OperationalError("SELECT 1", {}, Exception("connection reset"))

        with patch.object(earnings, "mature_earnings", side_effect=error) as mature:
            result = earnings.mature_all_due(as_of=LedgerClock.utcnow() + timedelta(minutes=5))

        assert mature.call_count == settings.EARNINGS_MATURATION_RETRY_ATTEMPTS
        assert result.failed_user_ids == [USER_ID]


class TestReversal:
    def test_reverse_pending_has_no_wallet_effect(self, earnings, db_session):
        entry = earnings.credit_earnings(USER_ID, 10, EarningsSourceType.BOOST, hold_seconds=60)

        reversed_entry = earnings.reverse_entry(entry.id, "fraud")

        assert reversed_entry.status == EarningsStatus.REVERSED
        assert reversed_entry.metadata_json["reversal_reason"] == "fraud"
        assert _wallet(db_session).earnings_points == 0

    def test_reverse_confirmed_debits_earnings(self, earnings, db_session):
        entry = earnings.credit_earnings(USER_ID, 10, EarningsSourceType.BOOST)

        earnings.reverse_entry(entry.id, "chargeback")

        assert _wallet(db_session).earnings_points == 0
        reversal = (
            db_session.query(Transaction)
            .filter(Transaction.type == TransactionType.EARNING_REVERSAL.value)
            .one()
        )
        assert reversal.earnings_points_delta == -10
        assert reversal.ledger_entry_id == entry.id

    def test_reversed_entry_never_matures(self, earnings, db_session):
        entry = earnings.credit_earnings(USER_ID, 10, EarningsSourceType.BOOST, hold_seconds=60)
        earnings.reverse_entry(entry.id, "fraud")

        result = earnings.mature_earnings(
            USER_ID, as_of=LedgerClock.utcnow() + timedelta(minutes=5)
        )

        assert result.matured_count == 0

    @pytest.mark.parametrize("status", [EarningsStatus.LOCKED, EarningsStatus.PAID])
    def test_locked_or_paid_cannot_be_reversed(self, earnings, db_session, status):
        entry = earnings.credit_earnings(USER_ID, 10, EarningsSourceType.BOOST)
        row = db_session.get(WalletEarningsLedger, entry.id)
        row.status = status.value
        db_session.commit()

        with pytest.raises(InvalidTransitionError):
            earnings.reverse_entry(entry.id, "too late")

        assert db_session.get(WalletEarningsLedger, entry.id).status == status.value

    def test_double_reversal_rejected(self, earnings):
        entry = earnings.credit_earnings(USER_ID, 10, EarningsSourceType.BOOST)
        earnings.reverse_entry(entry.id, "once")

        with pytest.raises(InvalidTransitionError):
            earnings.reverse_entry(entry.id, "twice")

    def test_unknown_entry(self, earnings):
        with pytest.raises(NotFoundError):
            earnings.reverse_entry(12345, "missing")


def test_earnings_match_transaction_sum(earnings, db_session, settings):
    earnings.credit_earnings(USER_ID, 40, EarningsSourceType.BOOST)
    pending = earnings.credit_earnings(USER_ID, 25, EarningsSourceType.BOOST, hold_seconds=60)
    confirmed = earnings.credit_earnings(USER_ID, 15, EarningsSourceType.STORAGE_CREDIT)
    earnings.mature_earnings(USER_ID, as_of=LedgerClock.utcnow() + timedelta(minutes=5))
    earnings.reverse_entry(confirmed.id, "adjustment")

    integrity = LedgerService(db_session, settings).verify_wallet_integrity(USER_ID)

    assert integrity.status == "OK"
    assert integrity.recorded_earnings_points == 40 + 25
    assert db_session.get(WalletEarningsLedger, pending.id).status == EarningsStatus.CONFIRMED.value
