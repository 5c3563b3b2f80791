import pytest
from datetime import datetime, timedelta, timezone
from djrequests.errors import (
    AuthenticationError,
    EmailAlreadyRegisteredError,
    ErrorCode,
    InvalidCredentialsError,
)
from djrequests.schemas.dj import DJCreate
from djrequests.services.dj_service import DJService, create_token, decode_token
from tests.conftest import TEST_TABLE_NAME


@pytest.fixture
def dj_service(dynamodb_resource):
    """Create DJService instance with test table"""
    return DJService(dynamodb_resource, TEST_TABLE_NAME)


@pytest.fixture
def dj(dj_service):
    return dj_service.create_dj(
        DJCreate(email="Sam@Example.com", password="hunter22", venmo_username="dj-sam")
    )


def test_create_dj(dj):
    assert dj.id
    assert dj.email == "sam@example.com"
    assert dj.venmo_username == "dj-sam"


def test_get_dj(dj_service, dj):
    assert dj_service.get_dj(dj.id) == dj
    assert dj_service.get_dj("missing") is None


def test_duplicate_email_rejected(dj_service, dj):
    with pytest.raises(EmailAlreadyRegisteredError):
        dj_service.create_dj(DJCreate(email="sam@example.com", password="another1"))


def test_authenticate(dj_service, dj):
    response = dj_service.authenticate("SAM@example.com", "hunter22")

    assert response.dj == dj
    assert decode_token(response.token) == dj.id


def test_authenticate_wrong_password(dj_service, dj):
    with pytest.raises(InvalidCredentialsError) as exc_info:
        dj_service.authenticate("sam@example.com", "wrong-password")
    assert exc_info.value.code == ErrorCode.INVALID_CREDENTIALS


def test_authenticate_unknown_email(dj_service):
    with pytest.raises(InvalidCredentialsError):
        dj_service.authenticate("nobody@example.com", "hunter22")


def test_expired_token_rejected():
    issued = datetime.now(timezone.utc) - timedelta(days=30)
    token = create_token("dj-1", now=issued)

    with pytest.raises(AuthenticationError):
        decode_token(token)


def test_tampered_token_rejected():
    header, _, signature = create_token("dj-1").split(".")
    forged_payload = create_token("dj-2").split(".")[1]

    with pytest.raises(AuthenticationError):
        decode_token(".".join([header, forged_payload, signature]))
