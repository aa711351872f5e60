"""
추천(referral) 보너스 서비스

피추천인의 검증된 충전마다 referral_topups 에 1행을 기록하고, 추천당 보너스가
지급된 충전 수가 referral_max_topups 에 도달하기 전까지만 추천인의 수익
(earnings)에 보너스를 적립합니다. REFERRAL_BONUS_FOR_REFERRED_USER 가 켜져 있으면
피추천인도 같은 보너스를 받으며, 한도는 두 사람에게 함께 적용됩니다.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from walletapi.config import Settings
from walletapi.core.exceptions import ConflictError, NotFoundError, ValidationError
from walletapi.core.ledger_rules import points_value_ttd
from walletapi.models.earnings import EarningsSourceType, EarningsStatus
from walletapi.models.referral import ReferralTopup
from walletapi.models.wallet import TransactionStatus, TransactionType
from walletapi.repositories.earnings_repository import EarningsRepository
from walletapi.repositories.referral_repository import (
    ReferralRepository,
    ReferralTopupRepository,
)
from walletapi.repositories.transaction_repository import TransactionRepository
from walletapi.schemas.referral import (
    ReferralHistoryItem,
    ReferralHistoryResponse,
    ReferralHistoryTopup,
    ReferralResponse,
    ReferralTopupResponse,
)
from walletapi.services.base_service import BaseLedgerService
from walletapi.services.ledger_service import LedgerService
from walletapi.utils.clock import LedgerClock

logger = logging.getLogger(__name__)


class ReferralService(BaseLedgerService):
    """추천 보너스 비즈니스 로직"""

    def __init__(
        self, db: Session, settings: Settings, ledger: Optional[LedgerService] = None
    ):
        super().__init__(db, settings)
        self.ledger = ledger or LedgerService(db, settings)
        self.referral_repo = ReferralRepository(db)
        self.referral_topup_repo = ReferralTopupRepository(db)
        self.transaction_repo = TransactionRepository(db)
        self.earnings_repo = EarningsRepository(db)

    def get_or_create_referral(
        self, referrer_user_id: int, referred_user_id: int
    ) -> ReferralResponse:
        """추천 관계 등록 - 사용자는 한 번만 추천될 수 있음"""
        if referrer_user_id == referred_user_id:
            raise ValidationError(
                "Users cannot refer themselves", details={"user_id": referrer_user_id}
            )

        existing = self.referral_repo.get_by_referred_user(referred_user_id)
        if existing is not None and existing.referrer_user_id != referrer_user_id:
            raise ConflictError(
                "User was already referred by another user",
                details={"referred_user_id": referred_user_id},
            )

        with self.unit_of_work(f"create referral {referrer_user_id}->{referred_user_id}"):
            referral = self.referral_repo.get_or_create(referrer_user_id, referred_user_id)

        if referral.referrer_user_id != referrer_user_id:
            raise ConflictError(
                "User was already referred by another user",
                details={"referred_user_id": referred_user_id},
            )
        return self.referral_repo.to_schema(referral)

    def record_referral_topup(
        self, referral_id: int, transaction_id: int
    ) -> Optional[ReferralTopupResponse]:
        """피추천인의 충전 기록 + 한도 내 추천인 보너스 적립

        Args:
            referral_id: 추천 ID
            transaction_id: 피추천인의 verified top_up 거래 ID

        Returns:
            ReferralTopupResponse | None: 보너스가 지급되지 않았으면 None
                (한도 도달 시에도 충전 기록 자체는 bonus_points_awarded=0 으로 저장)
        """
        with self.unit_of_work(f"record referral top-up {transaction_id}"):
            referral = self.referral_repo.get(referral_id, for_update=True)
            if referral is None:
                raise NotFoundError("Referral not found", details={"referral_id": referral_id})

            transaction = self.transaction_repo.get(transaction_id)
            if transaction is None:
                raise NotFoundError(
                    "Transaction not found", details={"transaction_id": transaction_id}
                )
            if (
                transaction.type != TransactionType.TOP_UP.value
                or transaction.status != TransactionStatus.VERIFIED.value
                or transaction.user_id != referral.referred_user_id
            ):
                raise ValidationError(
                    "Transaction is not a verified top-up of the referred user",
                    details={"transaction_id": transaction_id, "referral_id": referral_id},
                )

            existing = self.referral_topup_repo.get_by_transaction(transaction.id)
            if existing is not None:
                record = existing
            else:
                record = self._record(referral, transaction.id)

        if record.referrer_bonus_transaction_id is None:
            logger.info(
                f"Referral {referral_id} top-up {transaction_id} recorded without bonus "
                f"(topup #{record.topup_number})"
            )
            return None
        return self.referral_topup_repo.to_schema(record)

    def _record(self, referral, transaction_id: int) -> ReferralTopup:
        pricing = self.ledger.get_pricing()
        topup_number = self.referral_topup_repo.count_for_referral(referral.id) + 1
        bonus_count = self.referral_topup_repo.count_bonus_topups(referral.id)
        bonus_points = pricing.referral_bonus_points

        if bonus_count >= pricing.referral_max_topups or bonus_points <= 0:
            return self.referral_topup_repo.add(
                referral_id=referral.id,
                transaction_id=transaction_id,
                referrer_bonus_transaction_id=None,
                referred_bonus_transaction_id=None,
                bonus_points_awarded=0,
                topup_number=topup_number,
            )

        amount_ttd = points_value_ttd(bonus_points, pricing.user_value_per_point)
        referrer_bonus = self._credit_bonus(
            referral.referrer_user_id,
            referral.referred_user_id,
            "referrer",
            bonus_points,
            amount_ttd,
            referral,
            transaction_id,
            topup_number,
        )
        referred_bonus = None
        if self.settings.REFERRAL_BONUS_FOR_REFERRED_USER:
            referred_bonus = self._credit_bonus(
                referral.referred_user_id,
                referral.referrer_user_id,
                "referred",
                bonus_points,
                amount_ttd,
                referral,
                transaction_id,
                topup_number,
            )

        record = self.referral_topup_repo.add(
            referral_id=referral.id,
            transaction_id=transaction_id,
            referrer_bonus_transaction_id=referrer_bonus.id,
            referred_bonus_transaction_id=referred_bonus.id if referred_bonus else None,
            bonus_points_awarded=bonus_points,
            topup_number=topup_number,
        )
        recipients = [referral.referrer_user_id]
        if referred_bonus is not None:
            recipients.append(referral.referred_user_id)
        logger.info(
            f"Referral bonus {bonus_points} points to users {recipients} "
            f"for top-up #{topup_number} of user {referral.referred_user_id}"
        )
        return record

    def _credit_bonus(
        self,
        user_id: int,
        counterpart_user_id: int,
        bonus_type: str,
        bonus_points: int,
        amount_ttd,
        referral,
        transaction_id: int,
        topup_number: int,
    ):
        """보너스 1건 - 확정 수익 항목 + referral_bonus 거래 (flush only)"""
        entry = self.earnings_repo.add(
            user_id=user_id,
            source_type=EarningsSourceType.REFERRAL_BONUS.value,
            source_id=str(transaction_id),
            points=bonus_points,
            amount_ttd=amount_ttd,
            status=EarningsStatus.CONFIRMED.value,
            available_at=LedgerClock.utcnow(),
            metadata_json={
                "referral_id": referral.id,
                "bonus_type": bonus_type,
                "referrer_user_id": referral.referrer_user_id,
                "referred_user_id": referral.referred_user_id,
                "topup_number": topup_number,
            },
        )
        return self.ledger.record_transaction(
            user_id,
            TransactionType.REFERRAL_BONUS,
            earnings_delta=bonus_points,
            amount_ttd=amount_ttd,
            sender_user_id=counterpart_user_id,
            ledger_entry_id=entry.id,
            related_transaction_id=transaction_id,
            metadata={"bonus_type": bonus_type},
        )

    def process_topup(
        self, referred_user_id: int, transaction_id: int
    ) -> Optional[ReferralTopupResponse]:
        """충전 검증 후 호출 - 추천 관계가 없으면 아무것도 하지 않음"""
        referral = self.referral_repo.get_by_referred_user(referred_user_id)
        if referral is None:
            return None
        return self.record_referral_topup(referral.id, transaction_id)

    def get_referral_history(self, referrer_user_id: int) -> ReferralHistoryResponse:
        pricing = self.ledger.get_pricing()
        items: List[ReferralHistoryItem] = []
        for referral in self.referral_repo.list_for_referrer(referrer_user_id):
            topups = [
                ReferralHistoryTopup(
                    transaction_id=row.transaction_id,
                    topup_number=row.topup_number,
                    bonus_points_awarded=row.bonus_points_awarded,
                    bonus_awarded=row.referrer_bonus_transaction_id is not None,
                    created_at=row.created_at,
                )
                for row in self.referral_topup_repo.list_for_referral(referral.id)
            ]
            bonus_topups = sum(1 for topup in topups if topup.bonus_awarded)
            items.append(
                ReferralHistoryItem(
                    referral_id=referral.id,
                    referred_user_id=referral.referred_user_id,
                    topups=topups,
                    total_bonus_points=sum(t.bonus_points_awarded for t in topups),
                    bonus_topups_remaining=max(
                        pricing.referral_max_topups - bonus_topups, 0
                    ),
                )
            )

        return ReferralHistoryResponse(
            referrer_user_id=referrer_user_id,
            referrals=items,
            total_bonus_points=sum(item.total_bonus_points for item in items),
        )
