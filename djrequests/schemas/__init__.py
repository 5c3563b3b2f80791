from .event import EventBase, EventCreate, EventUpdate, EventOut
from .song_request import (
    SongRequestCreate,
    SongRequestOut,
    SubmissionResult,
    StatusUpdate,
)
from .blocklist import BlockListEntryCreate, BlockListEntryOut
from .dj import DJCreate, DJOut, LoginRequest, LoginResponse
from .analytics import EventAnalytics, SongRanking, TopSong

__all__ = [
    "EventBase",
    "EventCreate",
    "EventUpdate",
    "EventOut",
    "SongRequestCreate",
    "SongRequestOut",
    "SubmissionResult",
    "StatusUpdate",
    "BlockListEntryCreate",
    "BlockListEntryOut",
    "DJCreate",
    "DJOut",
    "LoginRequest",
    "LoginResponse",
    "EventAnalytics",
    "SongRanking",
    "TopSong",
]
