# Repository layer - Data access with Pydantic responses

from .base import BaseRepository
from .wallet_repository import WalletRepository
from .transaction_repository import TransactionRepository
from .earnings_repository import EarningsRepository, PayoutRepository
from .platform_repository import PlatformSettingsRepository, PlatformWithdrawalRepository
from .referral_repository import ReferralRepository, ReferralTopupRepository
