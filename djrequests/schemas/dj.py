from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime


class DJBase(BaseModel):
    email: EmailStr
    venmo_username: Optional[str] = None


class DJCreate(DJBase):
    password: str = Field(..., min_length=6)


class DJOut(DJBase):
    id: str
    created_at: datetime


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class LoginResponse(BaseModel):
    token: str
    dj: DJOut
