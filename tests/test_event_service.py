import re
import pytest
from datetime import date
from boto3.dynamodb.conditions import Key
from fastapi import BackgroundTasks
from djrequests.database.keys import submitter_partition
from djrequests.errors import (
    EventAlreadyEndedError,
    EventNotFoundError,
    ForbiddenError,
    RequestNotFoundError,
    ValidationError,
)
from djrequests.schemas.event import EventCreate, EventUpdate
from djrequests.schemas.song_request import SongRequestCreate
from djrequests.services.event_service import EventService, slugify
from djrequests.services.request_service import RequestService
from tests.conftest import TEST_TABLE_NAME

DJ_ID = "dj-1"


@pytest.fixture
def event_service(dynamodb_resource, clock):
    """Create EventService instance with test table"""
    return EventService(dynamodb_resource, TEST_TABLE_NAME, clock=clock)


@pytest.fixture
def request_service(dynamodb_resource, clock):
    return RequestService(dynamodb_resource, TEST_TABLE_NAME, clock=clock)


@pytest.fixture
def event(event_service):
    return event_service.create_event(
        DJ_ID,
        EventCreate(
            name="Friday Night",
            date=date(2024, 6, 1),
            venmo_username="dj-sam",
            genre_tags=["house", "disco"],
        ),
    )


def test_slugify():
    assert slugify("Rock & Roll  Night!") == "rock-roll-night"
    assert slugify("  Sam's Wedding ") == "sams-wedding"
    assert slugify("!!!") == ""


def test_create_event(event, clock):
    assert re.match(r"^friday-night-[a-z0-9]{6}$", event.slug)
    assert event.dj_id == DJ_ID
    assert event.status == "active"
    assert event.date == date(2024, 6, 1)
    assert event.queue_visible is True
    assert event.visible is True
    assert event.requests_per_hour == 0
    assert event.genre_tags == ["house", "disco"]
    assert event.venmo_username == "dj-sam"
    assert event.created_at == clock.now
    assert event.ended_at is None


def test_create_event_requires_date_unless_recurring(event_service):
    with pytest.raises(ValidationError):
        event_service.create_event(DJ_ID, EventCreate(name="No Date"))

    recurring = event_service.create_event(
        DJ_ID, EventCreate(name="Weekly Residency", is_recurring=True)
    )
    assert recurring.is_recurring is True
    assert recurring.date is None


def test_slugs_are_unique_for_same_name(event_service):
    first = event_service.create_event(DJ_ID, EventCreate(name="Party", is_recurring=True))
    second = event_service.create_event(DJ_ID, EventCreate(name="Party", is_recurring=True))

    assert first.slug != second.slug


def test_get_event(event_service, event):
    fetched = event_service.get_event(event.slug)

    assert fetched == event


def test_get_missing_event(event_service):
    with pytest.raises(EventNotFoundError):
        event_service.get_event("no-such-event")


def test_list_events_newest_first(event_service, clock):
    first = event_service.create_event(DJ_ID, EventCreate(name="First", is_recurring=True))
    clock.advance(days=1)
    second = event_service.create_event(DJ_ID, EventCreate(name="Second", is_recurring=True))
    event_service.create_event("dj-2", EventCreate(name="Elsewhere", is_recurring=True))

    events = event_service.list_events_for_dj(DJ_ID)

    assert [e.slug for e in events] == [second.slug, first.slug]


class TestUpdateEvent:
    def test_partial_update_only_touches_sent_fields(self, event_service, event):
        updated = event_service.update_event(
            event.slug, DJ_ID, EventUpdate(name="Saturday Night", requests_per_hour=5)
        )

        assert updated.name == "Saturday Night"
        assert updated.requests_per_hour == 5
        assert updated.venmo_username == "dj-sam"
        assert updated.genre_tags == ["house", "disco"]
        assert updated.slug == event.slug

    def test_null_clears_optional_field(self, event_service, event):
        updated = event_service.update_event(
            event.slug, DJ_ID, EventUpdate(venmo_username=None)
        )

        assert updated.venmo_username is None
        assert event_service.get_event(event.slug).venmo_username is None

    def test_null_rate_limit_disables_it(self, event_service, event):
        event_service.update_event(event.slug, DJ_ID, EventUpdate(requests_per_hour=3))

        updated = event_service.update_event(
            event.slug, DJ_ID, EventUpdate(requests_per_hour=None)
        )

        assert updated.requests_per_hour == 0

    def test_empty_update_rejected(self, event_service, event):
        with pytest.raises(ValidationError):
            event_service.update_event(event.slug, DJ_ID, EventUpdate())

    def test_other_dj_forbidden(self, event_service, event):
        with pytest.raises(ForbiddenError):
            event_service.update_event(event.slug, "dj-2", EventUpdate(name="Mine now"))

    def test_visibility_toggle_schedules_broadcast(self, event_service, event):
        background_tasks = BackgroundTasks()

        updated = event_service.update_event(
            event.slug, DJ_ID, EventUpdate(queue_visible=False), background_tasks
        )

        assert updated.queue_visible is False
        assert len(background_tasks.tasks) == 1
        task = background_tasks.tasks[0]
        assert task.func == event_service.broadcaster.broadcast_visibility_toggle
        assert task.args == (event.slug, False)

    def test_unchanged_visibility_does_not_broadcast(self, event_service, event):
        background_tasks = BackgroundTasks()

        event_service.update_event(
            event.slug, DJ_ID, EventUpdate(queue_visible=True), background_tasks
        )

        assert background_tasks.tasks == []


class TestEndEvent:
    def test_end_event(self, event_service, event, clock):
        clock.advance(hours=4)
        background_tasks = BackgroundTasks()

        ended = event_service.end_event(event.slug, DJ_ID, background_tasks)

        assert ended.status == "ended"
        assert ended.ended_at == clock.now
        assert background_tasks.tasks[0].func == (
            event_service.broadcaster.broadcast_queue_update
        )

    def test_end_twice_rejected(self, event_service, event):
        event_service.end_event(event.slug, DJ_ID)

        with pytest.raises(EventAlreadyEndedError):
            event_service.end_event(event.slug, DJ_ID)

    def test_end_by_other_dj_forbidden(self, event_service, event):
        with pytest.raises(ForbiddenError):
            event_service.end_event(event.slug, "dj-2")


class TestDeleteEvent:
    def test_delete_removes_requests(self, event_service, request_service, event):
        result = request_service.submit_request(
            event.slug, SongRequestCreate(song_name="Song", artist="Artist"), "10.0.0.1"
        )
        request_service.upvote_request(result.request.id, "10.0.0.2")

        event_service.delete_event(event.slug, DJ_ID)

        with pytest.raises(EventNotFoundError):
            event_service.get_event(event.slug)
        with pytest.raises(RequestNotFoundError):
            request_service.get_request(result.request.id)
        assert request_service.list_event_requests(event.slug) == []

    def test_delete_removes_rate_limit_markers(
        self, event_service, request_service, event, dynamodb_resource
    ):
        request_service.submit_request(
            event.slug, SongRequestCreate(song_name="Song", artist="Artist"), "10.0.0.1"
        )

        event_service.delete_event(event.slug, DJ_ID)

        remaining = dynamodb_resource.Table(TEST_TABLE_NAME).query(
            KeyConditionExpression=Key("PK").eq(
                submitter_partition(event.slug, "10.0.0.1")
            ),
            ConsistentRead=True,
        )
        assert remaining["Items"] == []

    def test_delete_by_other_dj_forbidden(self, event_service, event):
        with pytest.raises(ForbiddenError):
            event_service.delete_event(event.slug, "dj-2")

        assert event_service.get_event(event.slug).slug == event.slug
