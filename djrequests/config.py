import os
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    table_name: str
    dynamodb_endpoint_url: Optional[str]
    aws_region: str
    aws_access_key_id: str
    aws_secret_access_key: str
    jwt_secret: str
    jwt_expires_days: int
    bcrypt_rounds: int
    client_url: str
    log_level: str

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            table_name=os.getenv("DYNAMODB_TABLE_NAME", "DjRequests"),
            # Empty means the real AWS endpoint for the region
            dynamodb_endpoint_url=os.getenv("DYNAMODB_ENDPOINT_URL") or None,
            aws_region=os.getenv("AWS_DEFAULT_REGION", "us-east-1"),
            aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID", "fake"),
            aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY", "fake"),
            jwt_secret=os.getenv("JWT_SECRET", "default-secret-change-this"),
            jwt_expires_days=int(os.getenv("JWT_EXPIRES_DAYS", "7")),
            bcrypt_rounds=int(os.getenv("BCRYPT_ROUNDS", "10")),
            client_url=os.getenv("CLIENT_URL", "http://localhost:5173"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


def get_settings() -> Settings:
    """Read settings from the environment on every call so tests can patch it"""
    return Settings.from_env()
