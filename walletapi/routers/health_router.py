import logging

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from walletapi.containers import Container
from walletapi.models.platform import PLATFORM_SETTINGS_ID, PlatformSettings
from walletapi.schemas.health import HealthCheckResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthCheckResponse)
@inject
async def health_check(
    db: Session = Depends(Provide[Container.repositories.get_db]),
):
    """Health check endpoint - DB 연결 및 가격 설정 존재 여부"""
    try:
        db.execute(text("SELECT 1"))
        pricing_configured = db.get(PlatformSettings, PLATFORM_SETTINGS_ID) is not None
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {str(e)}")
        db.rollback()
        body = HealthCheckResponse(status="unhealthy", database="unavailable", error=str(e))
        return JSONResponse(status_code=503, content=body.model_dump())

    return HealthCheckResponse(database="ok", pricing_configured=pricing_configured)
