from typing import List
from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response
from djrequests.config import get_settings
from djrequests.schemas.song_request import (
    SongRequestCreate,
    SongRequestOut,
    StatusUpdate,
    SubmissionResult,
)
from djrequests.services.identity import resolve_client_identity
from djrequests.services.request_service import RequestService
from djrequests.database.dynamodb import get_db_connection
from djrequests.routers.auth import get_current_dj

router = APIRouter(prefix="/api", tags=["requests"])


def get_request_service():
    """Dependency to get RequestService instance"""
    db = get_db_connection()
    return RequestService(db, get_settings().table_name)


def get_client_identity(request: Request) -> str:
    """Dependency resolving the caller's anonymous identity"""
    peer = request.client.host if request.client else None
    return resolve_client_identity(request.headers, peer)


@router.get("/events/{slug}/requests", response_model=List[SongRequestOut])
async def get_queue(
    slug: str, request_service: RequestService = Depends(get_request_service)
):
    """Live queue: pinned first, then most upvoted, oldest first"""
    return request_service.get_queue(slug)


@router.post("/events/{slug}/requests", response_model=SubmissionResult)
async def submit_request(
    slug: str,
    request_data: SongRequestCreate,
    response: Response,
    background_tasks: BackgroundTasks,
    identity: str = Depends(get_client_identity),
    request_service: RequestService = Depends(get_request_service),
):
    """Submit a song request; duplicates become an upvote"""
    result = request_service.submit_request(
        slug, request_data, identity, background_tasks
    )
    response.status_code = 200 if result.is_duplicate else 201
    return result


@router.post("/requests/{request_id}/upvote", response_model=SongRequestOut)
async def upvote_request(
    request_id: str,
    background_tasks: BackgroundTasks,
    identity: str = Depends(get_client_identity),
    request_service: RequestService = Depends(get_request_service),
):
    """Upvote a request once per identity"""
    return request_service.upvote_request(request_id, identity, background_tasks)


@router.patch("/requests/{request_id}", response_model=SongRequestOut)
async def update_request_status(
    request_id: str,
    update: StatusUpdate,
    background_tasks: BackgroundTasks,
    dj_id: str = Depends(get_current_dj),
    request_service: RequestService = Depends(get_request_service),
):
    """Pin, play or skip a request (DJ only)"""
    return request_service.update_status(
        request_id, update.status, dj_id, background_tasks
    )
