import uuid
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import bcrypt
import jwt
from botocore.exceptions import ClientError

from djrequests.config import get_settings
from djrequests.database.keys import (
    clean_item,
    dj_email_key,
    dj_key,
    format_timestamp,
)
from djrequests.errors import (
    AuthenticationError,
    EmailAlreadyRegisteredError,
    InvalidCredentialsError,
    StorageError,
)
from djrequests.schemas.dj import DJCreate, DJOut, LoginResponse

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_token(dj_id: str, now: Optional[datetime] = None) -> str:
    settings = get_settings()
    issued_at = now or _utcnow()
    payload = {
        "djId": dj_id,
        "iat": issued_at,
        "exp": issued_at + timedelta(days=settings.jwt_expires_days),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> str:
    """Return the DJ id carried by a token"""
    try:
        payload = jwt.decode(
            token, get_settings().jwt_secret, algorithms=[JWT_ALGORITHM]
        )
    except jwt.PyJWTError:
        raise AuthenticationError("Invalid or expired token")

    dj_id = payload.get("djId")
    if not dj_id:
        raise AuthenticationError("Invalid or expired token")
    return dj_id


class DJService:
    def __init__(
        self,
        dynamodb_resource,
        table_name="DjRequests",
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.dynamodb = dynamodb_resource
        self.table = dynamodb_resource.Table(table_name)
        self.clock = clock

    def create_dj(self, dj_data: DJCreate) -> DJOut:
        """Create a DJ account; the email claim item keeps emails unique"""
        dj_id = str(uuid.uuid4())
        email = dj_data.email.lower()
        password_hash = bcrypt.hashpw(
            dj_data.password.encode("utf-8"),
            bcrypt.gensalt(rounds=get_settings().bcrypt_rounds),
        ).decode("utf-8")
        created_at = self.clock()

        profile_item = {
            **dj_key(dj_id),
            "id": dj_id,
            "email": email,
            "passwordHash": password_hash,
            "createdAt": format_timestamp(created_at),
        }
        if dj_data.venmo_username:
            profile_item["venmoUsername"] = dj_data.venmo_username

        email_item = {**dj_email_key(email), "djId": dj_id}

        try:
            self.dynamodb.meta.client.transact_write_items(
                TransactItems=[
                    {
                        "Put": {
                            "TableName": self.table.table_name,
                            "Item": email_item,
                            "ConditionExpression": "attribute_not_exists(PK)",
                        }
                    },
                    {
                        "Put": {
                            "TableName": self.table.table_name,
                            "Item": profile_item,
                            "ConditionExpression": "attribute_not_exists(PK)",
                        }
                    },
                ]
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "TransactionCanceledException":
                raise EmailAlreadyRegisteredError()
            raise StorageError(f"Failed to create DJ: {e}")

        logger.info("Created DJ account %s", dj_id)
        return self._to_dj_out(profile_item)

    def get_dj(self, dj_id: str) -> Optional[DJOut]:
        item = self._get_profile_item(dj_id)
        return self._to_dj_out(item) if item else None

    def authenticate(self, email: str, password: str) -> LoginResponse:
        """Exchange credentials for a bearer token"""
        try:
            claim = self.table.get_item(Key=dj_email_key(email)).get("Item")
        except ClientError as e:
            raise StorageError(f"Failed to look up DJ: {e}")
        if not claim:
            raise InvalidCredentialsError()

        item = self._get_profile_item(claim["djId"])
        if not item or not bcrypt.checkpw(
            password.encode("utf-8"), item["passwordHash"].encode("utf-8")
        ):
            raise InvalidCredentialsError()

        token = create_token(item["id"], now=self.clock())
        return LoginResponse(token=token, dj=self._to_dj_out(item))

    def _get_profile_item(self, dj_id: str):
        try:
            return self.table.get_item(Key=dj_key(dj_id)).get("Item")
        except ClientError as e:
            raise StorageError(f"Failed to get DJ: {e}")

    def _to_dj_out(self, item) -> DJOut:
        data = clean_item(item)
        return DJOut(
            id=data["id"],
            email=data["email"],
            venmo_username=data.get("venmoUsername"),
            created_at=data["createdAt"],
        )
