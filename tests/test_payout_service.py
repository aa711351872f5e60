from datetime import date, timedelta
from decimal import Decimal

import pytest

from walletapi.core.exceptions import ConflictError, InvalidTransitionError, NotFoundError
from walletapi.core.ledger_rules import next_payout_date
from walletapi.models.earnings import (
    EarningsSourceType,
    EarningsStatus,
    PayoutStatus,
    WalletEarningsLedger,
)
from walletapi.models.wallet import Transaction, TransactionType, Wallet
from walletapi.services.earnings_service import EarningsService
from walletapi.services.ledger_service import LedgerService
from walletapi.services.payout_service import PayoutService
from walletapi.utils.clock import LedgerClock

USER_ID = 3001


@pytest.fixture
def payouts(db_session, settings, pricing_row):
    return PayoutService(db_session, settings)


@pytest.fixture
def earnings(db_session, settings, pricing_row):
    return EarningsService(db_session, settings)


def _wallet(db_session, user_id=USER_ID) -> Wallet:
    return db_session.query(Wallet).filter(Wallet.user_id == user_id).one()


def _entries(db_session, user_id=USER_ID):
    return (
        db_session.query(WalletEarningsLedger)
        .filter(WalletEarningsLedger.user_id == user_id)
        .order_by(WalletEarningsLedger.id)
        .all()
    )


class TestLock:
    def test_below_minimum_returns_none(self, payouts, earnings, db_session):
        earnings.credit_earnings(USER_ID, 66, EarningsSourceType.BOOST)

        assert payouts.lock_payout_eligible_earnings(USER_ID) is None
        wallet = _wallet(db_session)
        assert wallet.earnings_points == 66
        assert wallet.locked_earnings_points == 0

    def test_locks_all_confirmed_earnings(self, payouts, earnings, db_session):
        earnings.credit_earnings(USER_ID, 40, EarningsSourceType.BOOST)
        earnings.credit_earnings(USER_ID, 30, EarningsSourceType.LIVE_REGISTRATION)

        payout = payouts.lock_payout_eligible_earnings(USER_ID)

        assert payout.points == 70
        assert payout.locked_points == 70
        assert payout.amount_ttd == Decimal("105.00")
        assert payout.status == PayoutStatus.PENDING
        assert payout.scheduled_for == next_payout_date(LedgerClock.local_today())

        wallet = _wallet(db_session)
        assert wallet.earnings_points == 0
        assert wallet.locked_earnings_points == 70
        assert {entry.status for entry in _entries(db_session)} == {EarningsStatus.LOCKED.value}
        assert {entry.payout_id for entry in _entries(db_session)} == {payout.id}

        lock = (
            db_session.query(Transaction)
            .filter(Transaction.type == TransactionType.PAYOUT_LOCK.value)
            .one()
        )
        assert lock.earnings_points_delta == -70
        assert lock.payout_id == payout.id

    def test_matures_due_entries_before_locking(self, payouts, earnings, db_session):
        entry = earnings.credit_earnings(USER_ID, 70, EarningsSourceType.BOOST, hold_seconds=3600)
        row = db_session.get(WalletEarningsLedger, entry.id)
        row.available_at = LedgerClock.utcnow() - timedelta(minutes=1)
        db_session.commit()

        payout = payouts.lock_payout_eligible_earnings(USER_ID)

        assert payout is not None
        assert payout.points == 70

    def test_second_lock_updates_open_payout(self, payouts, earnings, db_session):
        earnings.credit_earnings(USER_ID, 70, EarningsSourceType.BOOST)
        first = payouts.lock_payout_eligible_earnings(USER_ID)
        earnings.credit_earnings(USER_ID, 80, EarningsSourceType.BOOST)

        second = payouts.lock_payout_eligible_earnings(USER_ID)

        assert second.id == first.id
        assert second.points == 150
        assert _wallet(db_session).locked_earnings_points == 150

    def test_integrity_holds_after_lock(self, payouts, earnings, db_session, settings):
        earnings.credit_earnings(USER_ID, 70, EarningsSourceType.BOOST)
        payouts.lock_payout_eligible_earnings(USER_ID)

        integrity = LedgerService(db_session, settings).verify_wallet_integrity(USER_ID)

        assert integrity.status == "OK"
        assert integrity.calculated_earnings_points == 0


class TestPayoutLifecycle:
    @pytest.fixture
    def payout(self, payouts, earnings):
        earnings.credit_earnings(USER_ID, 70, EarningsSourceType.BOOST)
        return payouts.lock_payout_eligible_earnings(USER_ID)

    def test_paid_requires_processing(self, payouts, payout):
        with pytest.raises(InvalidTransitionError):
            payouts.mark_paid(payout.id)

    def test_mark_paid_clears_locked_points(self, payouts, payout, db_session):
        payouts.mark_processing(payout.id)

        paid = payouts.mark_paid(payout.id)

        assert paid.status == PayoutStatus.PAID
        assert paid.processed_at is not None
        wallet = _wallet(db_session)
        assert wallet.earnings_points == 0
        assert wallet.locked_earnings_points == 0
        assert {entry.status for entry in _entries(db_session)} == {EarningsStatus.PAID.value}

        record = (
            db_session.query(Transaction)
            .filter(Transaction.type == TransactionType.PAYOUT.value)
            .one()
        )
        assert record.amount_ttd == Decimal("105.00")
        assert record.earnings_points_delta == 0

    def test_cancel_restores_earnings(self, payouts, payout, db_session):
        cancelled = payouts.cancel_payout(payout.id, "bank details missing")

        assert cancelled.status == PayoutStatus.CANCELLED
        assert cancelled.notes == "bank details missing"
        wallet = _wallet(db_session)
        assert wallet.earnings_points == 70
        assert wallet.locked_earnings_points == 0
        entries = _entries(db_session)
        assert {entry.status for entry in entries} == {EarningsStatus.CONFIRMED.value}
        assert {entry.payout_id for entry in entries} == {None}

    def test_cancelled_earnings_can_be_locked_again(self, payouts, payout):
        payouts.cancel_payout(payout.id, "retry")

        relocked = payouts.lock_payout_eligible_earnings(USER_ID)

        assert relocked.id != payout.id
        assert relocked.points == 70

    def test_failed_payout_restores_earnings(self, payouts, payout, db_session):
        payouts.mark_processing(payout.id)

        failed = payouts.mark_failed(payout.id, "transfer bounced")

        assert failed.status == PayoutStatus.FAILED
        assert _wallet(db_session).earnings_points == 70

    def test_paid_payout_cannot_be_cancelled(self, payouts, payout):
        payouts.mark_processing(payout.id)
        payouts.mark_paid(payout.id)

        with pytest.raises(InvalidTransitionError):
            payouts.cancel_payout(payout.id, "too late")

    def test_unknown_payout(self, payouts):
        with pytest.raises(NotFoundError):
            payouts.mark_processing(999)

    def test_list_payouts_filters(self, payouts, payout):
        assert [p.id for p in payouts.list_payouts(user_id=USER_ID)] == [payout.id]
        assert payouts.list_payouts(status=PayoutStatus.PAID) == []


class TestGeneratePayouts:
    def test_refuses_outside_payout_day(self, payouts):
        with pytest.raises(ConflictError):
            payouts.generate_payouts(date(2026, 3, 2))

    def test_generates_for_eligible_wallets(self, payouts, earnings):
        earnings.credit_earnings(1, 70, EarningsSourceType.BOOST)
        earnings.credit_earnings(2, 66, EarningsSourceType.BOOST)
        earnings.credit_earnings(3, 100, EarningsSourceType.BOOST)

        result = payouts.generate_payouts(date(2026, 3, 1))

        assert result.scheduled_for == date(2026, 3, 1)
        assert result.minimum_payout_points == 67
        assert result.summary == {"created": 2, "updated": 0, "skipped": 0, "error": 0}
        assert sorted(r.user_id for r in result.results) == [1, 3]
        scheduled = {p.user_id: p.scheduled_for for p in payouts.list_payouts()}
        assert scheduled == {1: date(2026, 3, 1), 3: date(2026, 3, 1)}
