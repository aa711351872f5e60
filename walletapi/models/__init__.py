# Import all models so Base.metadata knows every table (FK resolution / create_all)

from .base import Base, BaseModel
from .wallet import Wallet, Transaction
from .earnings import WalletEarningsLedger, Payout
from .platform import PlatformSettings, PlatformWithdrawal
from .referral import Referral, ReferralTopup
