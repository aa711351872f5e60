from dependency_injector import containers, providers

from walletapi.config import Settings
from walletapi.database.session import get_db
from walletapi.services.earnings_service import EarningsService
from walletapi.services.ledger_service import LedgerService
from walletapi.services.payout_service import PayoutService
from walletapi.services.referral_service import ReferralService
from walletapi.services.revenue_service import RevenueService


class ConfigModule(containers.DeclarativeContainer):
    """Application configuration."""

    config = providers.Singleton(Settings)


class RepositoryModule(containers.DeclarativeContainer):
    """Database session."""

    get_db = providers.Resource(get_db)


class ServiceModule(containers.DeclarativeContainer):
    """Service layer dependencies."""

    config = providers.DependenciesContainer()
    repositories = providers.DependenciesContainer()

    ledger_service = providers.Factory(
        LedgerService, db=repositories.get_db, settings=config.config
    )
    earnings_service = providers.Factory(
        EarningsService, db=repositories.get_db, settings=config.config
    )
    payout_service = providers.Factory(
        PayoutService, db=repositories.get_db, settings=config.config
    )
    revenue_service = providers.Factory(
        RevenueService, db=repositories.get_db, settings=config.config
    )
    referral_service = providers.Factory(
        ReferralService, db=repositories.get_db, settings=config.config
    )


class Container(containers.DeclarativeContainer):
    """Application container."""

    wiring_config = containers.WiringConfiguration(
        modules=[
            "walletapi.routers.health_router",
            "walletapi.routers.wallet_router",
            "walletapi.routers.earnings_router",
            "walletapi.routers.payout_router",
            "walletapi.routers.revenue_router",
            "walletapi.routers.referral_router",
        ],
    )

    config = providers.Container(ConfigModule)
    repositories = providers.Container(RepositoryModule)
    services = providers.Container(
        ServiceModule, config=config, repositories=repositories
    )
