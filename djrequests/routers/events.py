from typing import Dict, List
from fastapi import APIRouter, BackgroundTasks, Depends, Query
from djrequests.config import get_settings
from djrequests.schemas.analytics import EventAnalytics, SongRanking
from djrequests.schemas.event import EventCreate, EventOut, EventUpdate
from djrequests.services.analytics_service import AnalyticsService
from djrequests.services.event_service import EventService
from djrequests.database.dynamodb import get_db_connection
from djrequests.routers.auth import get_current_dj

router = APIRouter(prefix="/api/events", tags=["events"])


def get_event_service():
    """Dependency to get EventService instance"""
    db = get_db_connection()
    return EventService(db, get_settings().table_name)


def get_analytics_service():
    """Dependency to get AnalyticsService instance"""
    db = get_db_connection()
    return AnalyticsService(db, get_settings().table_name)


@router.get("", response_model=List[EventOut])
async def list_events(
    dj_id: str = Depends(get_current_dj),
    event_service: EventService = Depends(get_event_service),
):
    """List the authenticated DJ's events, newest first"""
    return event_service.list_events_for_dj(dj_id)


@router.post("", response_model=EventOut, status_code=201)
async def create_event(
    event_data: EventCreate,
    dj_id: str = Depends(get_current_dj),
    event_service: EventService = Depends(get_event_service),
):
    """Create a new active event"""
    return event_service.create_event(dj_id, event_data)


@router.get("/{slug}", response_model=EventOut)
async def get_event(
    slug: str, event_service: EventService = Depends(get_event_service)
):
    """Public event details for attendees"""
    return event_service.get_event(slug)


@router.patch("/{slug}", response_model=EventOut)
async def update_event(
    slug: str,
    updates: EventUpdate,
    background_tasks: BackgroundTasks,
    dj_id: str = Depends(get_current_dj),
    event_service: EventService = Depends(get_event_service),
):
    """Update event details or toggle queue visibility"""
    return event_service.update_event(slug, dj_id, updates, background_tasks)


@router.post("/{slug}/end", response_model=EventOut)
async def end_event(
    slug: str,
    background_tasks: BackgroundTasks,
    dj_id: str = Depends(get_current_dj),
    event_service: EventService = Depends(get_event_service),
):
    """End an event; no further requests are accepted"""
    return event_service.end_event(slug, dj_id, background_tasks)


@router.delete("/{slug}", response_model=Dict[str, str])
async def delete_event(
    slug: str,
    dj_id: str = Depends(get_current_dj),
    event_service: EventService = Depends(get_event_service),
):
    """Delete an event and its requests"""
    event_service.delete_event(slug, dj_id)
    return {"message": "Event deleted successfully"}


@router.get("/{slug}/analytics", response_model=EventAnalytics)
async def get_event_analytics(
    slug: str,
    dj_id: str = Depends(get_current_dj),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
):
    """Post-event rollup of requests, upvotes and outcomes"""
    return analytics_service.get_event_analytics(slug, dj_id)


@router.get("/{slug}/song-rankings", response_model=List[SongRanking])
async def get_song_rankings(
    slug: str,
    dj_id: str = Depends(get_current_dj),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
):
    """Most requested songs at this event"""
    return analytics_service.get_song_rankings(slug, dj_id)


@router.get("/{slug}/hot-songs", response_model=List[SongRanking])
async def get_hot_songs(
    slug: str,
    min_upvotes: int = Query(3, ge=1, description="Minimum total upvotes"),
    min_requests: int = Query(2, ge=1, description="Minimum separate requests"),
    dj_id: str = Depends(get_current_dj),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
):
    """Songs with high demand, worth adding to the library"""
    return analytics_service.get_hot_songs(slug, dj_id, min_upvotes, min_requests)
