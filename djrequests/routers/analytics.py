from typing import List
from fastapi import APIRouter, Depends
from djrequests.schemas.analytics import SongRanking
from djrequests.services.analytics_service import AnalyticsService
from djrequests.routers.auth import get_current_dj
from djrequests.routers.events import get_analytics_service

router = APIRouter(prefix="/api/dj", tags=["analytics"])


@router.get("/all-time-rankings", response_model=List[SongRanking])
async def get_all_time_rankings(
    dj_id: str = Depends(get_current_dj),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
):
    """Song rankings across every event of the authenticated DJ"""
    return analytics_service.get_all_time_rankings(dj_id)
