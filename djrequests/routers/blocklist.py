from typing import Dict, List
from fastapi import APIRouter, Depends
from djrequests.config import get_settings
from djrequests.schemas.blocklist import BlockListEntryCreate, BlockListEntryOut
from djrequests.services.blocklist_service import BlockListService
from djrequests.database.dynamodb import get_db_connection
from djrequests.routers.auth import get_current_dj

router = APIRouter(prefix="/api/blocklist", tags=["blocklist"])


def get_blocklist_service():
    """Dependency to get BlockListService instance"""
    db = get_db_connection()
    return BlockListService(db, get_settings().table_name)


@router.get("", response_model=List[BlockListEntryOut])
async def list_blocked_songs(
    dj_id: str = Depends(get_current_dj),
    blocklist_service: BlockListService = Depends(get_blocklist_service),
):
    """Blocked song patterns, newest first"""
    return blocklist_service.list_entries(dj_id)


@router.post("", response_model=BlockListEntryOut, status_code=201)
async def add_blocked_song(
    entry_data: BlockListEntryCreate,
    dj_id: str = Depends(get_current_dj),
    blocklist_service: BlockListService = Depends(get_blocklist_service),
):
    """Block a song pattern across all of the DJ's events"""
    return blocklist_service.add_entry(dj_id, entry_data)


@router.delete("/{entry_id}", response_model=Dict[str, str])
async def remove_blocked_song(
    entry_id: str,
    dj_id: str = Depends(get_current_dj),
    blocklist_service: BlockListService = Depends(get_blocklist_service),
):
    blocklist_service.delete_entry(dj_id, entry_id)
    return {"message": "Entry removed from block list"}
