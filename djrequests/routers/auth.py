from typing import Optional
from fastapi import APIRouter, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from djrequests.config import get_settings
from djrequests.errors import AuthenticationError
from djrequests.schemas.dj import DJOut, LoginRequest, LoginResponse
from djrequests.services.dj_service import DJService, decode_token
from djrequests.database.dynamodb import get_db_connection

router = APIRouter(prefix="/api/auth", tags=["auth"])

bearer_scheme = HTTPBearer(auto_error=False)


def get_dj_service():
    """Dependency to get DJService instance"""
    db = get_db_connection()
    return DJService(db, get_settings().table_name)


def get_current_dj(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """Dependency resolving the bearer token to the caller's DJ id"""
    if credentials is None:
        raise AuthenticationError("No token provided")
    return decode_token(credentials.credentials)


@router.post("/login", response_model=LoginResponse)
async def login(
    credentials: LoginRequest, dj_service: DJService = Depends(get_dj_service)
):
    """Exchange DJ email and password for a bearer token"""
    return dj_service.authenticate(credentials.email, credentials.password)


@router.get("/me", response_model=DJOut)
async def me(
    dj_id: str = Depends(get_current_dj),
    dj_service: DJService = Depends(get_dj_service),
):
    """Profile of the authenticated DJ"""
    dj = dj_service.get_dj(dj_id)
    if dj is None:
        raise AuthenticationError("Invalid or expired token")
    return dj
