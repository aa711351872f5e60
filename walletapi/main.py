import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from mangum import Mangum
from starlette.middleware.cors import CORSMiddleware

from walletapi import containers
from walletapi.config import settings
from walletapi.core.exception_handlers import register_exception_handlers
from walletapi.core.logging_middleware import LoggingMiddleware
from walletapi.logging_config import setup_logging
from walletapi.routers import (
    earnings_router,
    health_router,
    payout_router,
    referral_router,
    revenue_router,
    wallet_router,
)

load_dotenv("walletapi/.env")

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    setup_logging(settings.LOG_LEVEL, json_output=settings.ENVIRONMENT == "production")

    app = FastAPI(title=settings.PROJECT_NAME, debug=settings.DEBUG)
    app.container = containers.Container()  # type: ignore

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)

    register_exception_handlers(app)

    app.include_router(health_router.router)
    for module in (
        wallet_router,
        earnings_router,
        payout_router,
        revenue_router,
        referral_router,
    ):
        app.include_router(module.router, prefix=settings.API_V1_STR)

    logger.info(f"{settings.APP_NAME} started ({settings.ENVIRONMENT})")
    return app


app = create_app()

handler = Mangum(app)
