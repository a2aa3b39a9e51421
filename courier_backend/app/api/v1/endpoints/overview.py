"""
Overview API Endpoint for the admin dashboard.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from courier_backend.app.db.session import get_db
from courier_backend.app.schemas.overview import OverviewStats
from courier_backend.app.services.overview import OverviewService

router = APIRouter(prefix="/overview", tags=["Overview"])


@router.get("", response_model=OverviewStats)
async def get_overview(db: AsyncSession = Depends(get_db)):
    return await OverviewService.get(db)
