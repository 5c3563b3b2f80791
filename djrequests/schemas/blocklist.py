from pydantic import BaseModel, Field, field_validator
from datetime import datetime


class BlockListEntryCreate(BaseModel):
    song_pattern: str = Field(..., max_length=200)

    @field_validator("song_pattern")
    @classmethod
    def require_pattern(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Song pattern is required")
        return value


class BlockListEntryOut(BaseModel):
    id: str
    dj_id: str
    song_pattern: str
    created_at: datetime
