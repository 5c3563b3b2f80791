from pydantic import BaseModel
from typing import Dict, List, Optional
from datetime import datetime


class TopSong(BaseModel):
    song_name: str
    artist: str
    upvotes: int
    requester_name: str
    status: str


class EventAnalytics(BaseModel):
    """Rollup over every request of one event"""

    total_requests: int
    unique_requesters: int
    played: int
    skipped: int
    played_percentage: float
    skipped_percentage: float
    top_songs: List[TopSong]
    avg_upvotes: float
    timeline: Dict[str, int]  # "YYYY-MM-DDTHH" (UTC) -> request count


class SongRanking(BaseModel):
    song_name: str
    artist: str
    request_count: int
    total_upvotes: int
    max_upvotes: int
    played_count: int
    requesters: List[str]
    last_requested: datetime
    events_requested_at: Optional[int] = None
