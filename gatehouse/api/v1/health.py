"""Liveness endpoint reporting environment, API version and database reachability."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from gatehouse.core.config import Settings, get_settings
from gatehouse.core.database import check_db_connected, get_db
from gatehouse.schemas.health import HealthResponse

router = APIRouter()


@router.get("", response_model=HealthResponse)
def get_health(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> HealthResponse:
    """Not rate limited and not authenticated, so probes never get a 401 or 429."""
    return HealthResponse(
        environment=settings.APP_ENV,
        version=settings.API_LATEST_VERSION,
        database="connected" if check_db_connected(db) else "disconnected",
    )
