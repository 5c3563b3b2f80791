import pytest
import boto3
from datetime import datetime, timedelta, timezone
from moto import mock_aws
from djrequests.database.dynamodb import create_table_if_not_exists

TEST_TABLE_NAME = "DjRequests_Test"


class FakeClock:
    """Controllable replacement for datetime.now(timezone.utc)"""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 6, 1, 20, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture(autouse=True)
def aws_environment(monkeypatch):
    """Fake credentials so nothing can reach a real AWS account"""
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("DYNAMODB_ENDPOINT_URL", "")
    monkeypatch.setenv("DYNAMODB_TABLE_NAME", TEST_TABLE_NAME)
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    monkeypatch.setenv("BCRYPT_ROUNDS", "4")


@pytest.fixture
def dynamodb_resource(aws_environment):
    """In-memory DynamoDB with a fresh table for each test"""
    with mock_aws():
        resource = boto3.resource("dynamodb", region_name="us-east-1")
        create_table_if_not_exists(TEST_TABLE_NAME, resource)
        yield resource


@pytest.fixture
def clock():
    return FakeClock()
