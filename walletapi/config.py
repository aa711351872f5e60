from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from urllib.parse import quote_plus


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file="walletapi/.env",
        env_file_encoding="utf-8",
        extra="allow",
    )
    # Application
    APP_NAME: str = "Wallet Ledger API"
    PROJECT_NAME: str = "Wallet Ledger API"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USERNAME: str = "postgres"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DATABASE: str = "postgres"
    POSTGRES_SCHEMA: str = "public"

    # 설정되어 있으면 POSTGRES_* 조합보다 우선
    DATABASE_URL: Optional[str] = None
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    @property
    def database_url(self) -> str:
        """Construct database URL from individual components"""
        if self.DATABASE_URL:
            return self.DATABASE_URL

        # URL encode the password to handle special characters
        encoded_password = quote_plus(self.POSTGRES_PASSWORD)
        return f"postgresql+psycopg2://{self.POSTGRES_USERNAME}:{encoded_password}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DATABASE}"

    # Cron / scheduler endpoints (x-cron-secret 헤더 또는 Bearer)
    CRON_SECRET: str = ""

    # Earnings maturation
    EARNINGS_MATURATION_BATCH_SIZE: int = 200  # 사용자당 1회 처리 한도
    EARNINGS_MATURATION_RETRY_ATTEMPTS: int = 3
    EARNINGS_MATURATION_RETRY_BACKOFF_SECONDS: float = 0.5

    # Payouts
    PAYOUT_DAY_OF_MONTH: int = 1  # 매월 1일 지급 사이클

    # Mandatory top-up
    MANDATORY_TOPUP_PERIOD_MONTHS: int = 1
    TOPUP_REMINDER_LEAD_DAYS: int = 3
    TOPUP_OVERDUE_REMINDER_INTERVAL_DAYS: int = 7

    # Referrals - 피추천인도 추천인과 같은 보너스를 수익으로 받음
    REFERRAL_BONUS_FOR_REFERRED_USER: bool = True

    # Timezone
    TIMEZONE: str = "America/Port_of_Spain"


settings = Settings()
