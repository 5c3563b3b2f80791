from pydantic import BaseModel, Field
from typing import List, Literal, Optional
from datetime import date as Date, datetime

EventStatus = Literal["active", "ended"]


class EventBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    date: Optional[Date] = None
    is_recurring: bool = False
    queue_visible: bool = True
    # Activation flag for recurring events, independent of status
    visible: bool = True
    requests_per_hour: int = Field(0, ge=0)
    rate_limit_message: Optional[str] = None
    genre_tags: List[str] = []
    venmo_username: Optional[str] = None
    cover_image_url: Optional[str] = None
    instagram_handle: Optional[str] = None
    twitter_handle: Optional[str] = None
    tiktok_handle: Optional[str] = None
    website_url: Optional[str] = None


class EventCreate(EventBase):
    pass


class EventUpdate(BaseModel):
    """Partial update: only fields explicitly sent are applied"""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    date: Optional[Date] = None
    queue_visible: Optional[bool] = None
    visible: Optional[bool] = None
    requests_per_hour: Optional[int] = Field(None, ge=0)
    rate_limit_message: Optional[str] = None
    genre_tags: Optional[List[str]] = None
    venmo_username: Optional[str] = None
    cover_image_url: Optional[str] = None
    instagram_handle: Optional[str] = None
    twitter_handle: Optional[str] = None
    tiktok_handle: Optional[str] = None
    website_url: Optional[str] = None


class EventOut(EventBase):
    slug: str
    dj_id: str
    status: EventStatus
    created_at: datetime
    ended_at: Optional[datetime] = None
