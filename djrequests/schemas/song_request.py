from pydantic import BaseModel, Field, field_validator
from typing import List, Literal, Optional
from datetime import datetime

RequestStatus = Literal["queued", "pinned", "played", "skipped"]

REQUEST_STATUSES = ("queued", "pinned", "played", "skipped")


class SongRequestCreate(BaseModel):
    """Attendee submission"""

    song_name: str = Field(..., max_length=200)
    artist: str = Field(..., max_length=200)
    requester_name: Optional[str] = Field(None, max_length=100)

    @field_validator("song_name", "artist")
    @classmethod
    def require_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Song name and artist are required")
        return value

    @field_validator("requester_name")
    @classmethod
    def blank_name_is_anonymous(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value.strip() if value else value


class SongRequestOut(BaseModel):
    id: str
    event_slug: str
    song_name: str
    artist: str
    requester_name: str
    upvotes: int
    # Raw client identities; kept for analytics and never serialized
    upvoters: List[str] = Field(default=[], exclude=True)
    status: RequestStatus
    created_at: datetime
    played_at: Optional[datetime] = None


class SubmissionResult(BaseModel):
    """Outcome of a submission: a new request or a merge into an existing one"""

    request: SongRequestOut
    is_duplicate: bool
    message: str


class StatusUpdate(BaseModel):
    # Checked against REQUEST_STATUSES by the service so an unknown value is a
    # state conflict rather than a schema failure
    status: str
