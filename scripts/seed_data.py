"""
플랫폼 가격 설정 시드 스크립트
platform_settings 싱글톤 행(id=1)을 생성하거나 갱신합니다.

사용 예:
    python scripts/seed_data.py --buy-price 2.00 --user-value 1.50
"""

import argparse
import logging
import os
import sys
from decimal import Decimal

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from walletapi.config import settings
from walletapi.database.session import get_db_context
from walletapi.logging_config import setup_logging
from walletapi.repositories.platform_repository import PlatformSettingsRepository
from walletapi.schemas.platform import PlatformPricing

logger = logging.getLogger("walletapi.scripts.seed_data")


def seed_platform_settings(pricing: PlatformPricing) -> None:
    """가격 설정 upsert"""
    with get_db_context() as db:
        PlatformSettingsRepository(db).upsert(pricing)
    logger.info(f"Platform settings seeded: {pricing.model_dump()}")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed platform pricing settings")
    parser.add_argument("--buy-price", type=Decimal, default=Decimal("2.00"))
    parser.add_argument("--user-value", type=Decimal, default=Decimal("1.50"))
    parser.add_argument("--payout-minimum", type=Decimal, default=Decimal("100.00"))
    parser.add_argument("--mandatory-topup", type=Decimal, default=Decimal("150.00"))
    parser.add_argument("--referral-bonus-points", type=int, default=20)
    parser.add_argument("--referral-max-topups", type=int, default=3)
    return parser.parse_args()


if __name__ == "__main__":
    setup_logging(settings.LOG_LEVEL)
    args = parse_args()
    seed_platform_settings(
        PlatformPricing(
            buy_price_per_point=args.buy_price,
            user_value_per_point=args.user_value,
            payout_minimum_ttd=args.payout_minimum,
            mandatory_topup_ttd=args.mandatory_topup,
            referral_bonus_points=args.referral_bonus_points,
            referral_max_topups=args.referral_max_topups,
        )
    )
