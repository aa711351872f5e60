from .platform import PlatformPricing
from .wallet import TransactionResponse, WalletResponse
from .earnings import EarningsEntryResponse
from .payout import PayoutResponse
from .revenue import RevenueBreakdown, RevenueRule
from .referral import ReferralResponse, ReferralTopupResponse
