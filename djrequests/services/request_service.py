"""
Live request queue engine.

Submission runs its checks in a fixed order, first failure wins:
event active -> rate limit -> block list -> duplicate merge or create.

Upvotes are stored as one item per (request, identity) pair. Adding an
upvote is a single transaction: a conditional put of the upvoter item plus
an atomic ADD on the request's counter, so "already upvoted" is enforced by
the store and concurrent upvotes are never lost.
"""

import uuid
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError
from fastapi import BackgroundTasks

from djrequests.database.keys import (
    clean_item,
    format_timestamp,
    query_all,
    request_key,
    submitter_marker_key,
    upvoter_key,
)
from djrequests.errors import (
    AlreadyUpvotedError,
    EventNotActiveError,
    ForbiddenError,
    InvalidStatusError,
    InvalidTransitionError,
    RateLimitedError,
    RequestNotFoundError,
    SongBlockedError,
    StorageError,
)
from djrequests.schemas.event import EventOut
from djrequests.schemas.song_request import (
    REQUEST_STATUSES,
    SongRequestCreate,
    SongRequestOut,
    SubmissionResult,
)
from djrequests.services.blocklist_service import BlockListService
from djrequests.services.broadcaster import ConnectionManager, manager
from djrequests.services.event_service import EventService
from djrequests.services.matching import songs_equal
from djrequests.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = ("queued", "pinned")

# target status -> statuses it may be entered from
ALLOWED_TRANSITIONS = {
    "queued": (),
    "pinned": ("queued",),
    "played": ("queued", "pinned"),
    "skipped": ("queued", "pinned"),
}

DUPLICATE_MESSAGE = (
    "This song has already been requested! We've added your upvote instead."
)
CREATED_MESSAGE = "Your request has been added to the queue!"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def queue_sort_key(request: SongRequestOut):
    """Pinned first, then most upvotes, then oldest first"""
    return (request.status != "pinned", -request.upvotes, request.created_at)


def order_queue(requests: List[SongRequestOut]) -> List[SongRequestOut]:
    """Live queue view: queued and pinned requests in display order"""
    active = [r for r in requests if r.status in ACTIVE_STATUSES]
    return sorted(active, key=queue_sort_key)


def can_transition(current: str, target: str) -> bool:
    return current in ALLOWED_TRANSITIONS.get(target, ())


class RequestService:
    def __init__(
        self,
        dynamodb_resource,
        table_name="DjRequests",
        broadcaster: ConnectionManager = manager,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.dynamodb = dynamodb_resource
        self.table = dynamodb_resource.Table(table_name)
        self.broadcaster = broadcaster
        self.clock = clock
        self.event_service = EventService(
            dynamodb_resource, table_name, broadcaster=broadcaster, clock=clock
        )
        self.blocklist_service = BlockListService(
            dynamodb_resource, table_name, clock=clock
        )
        self.rate_limiter = RateLimiter(dynamodb_resource, table_name, clock=clock)

    # Reads

    def get_queue(self, event_slug: str) -> List[SongRequestOut]:
        """Public live queue for an event"""
        self.event_service.get_event(event_slug)
        return order_queue(self.list_event_requests(event_slug))

    def list_event_requests(self, event_slug: str) -> List[SongRequestOut]:
        """Every request of the event in creation order, with upvoters attached"""
        try:
            items = query_all(
                self.table,
                IndexName="GSI_EventRequests",
                KeyConditionExpression=Key("GSI_EventRequests_PK").eq(
                    f"EVENT#{event_slug}"
                ),
            )
        except ClientError as e:
            raise StorageError(f"Failed to list requests: {e}")

        upvoters: Dict[str, List[str]] = {}
        request_items = []
        for item in items:
            if item["SK"] == "DETAIL":
                request_items.append(item)
            else:
                upvoters.setdefault(item["requestId"], []).append(item["identity"])

        return [
            self._to_request_out(item, upvoters.get(item["id"], []))
            for item in request_items
        ]

    def get_request(self, request_id: str) -> SongRequestOut:
        """Return a request with its upvoter set.

        Raises:
            RequestNotFoundError: If the request does not exist.
        """
        try:
            items = query_all(
                self.table,
                KeyConditionExpression=Key("PK").eq(f"REQUEST#{request_id}"),
                ConsistentRead=True,
            )
        except ClientError as e:
            raise StorageError(f"Failed to get request: {e}")

        detail = next((item for item in items if item["SK"] == "DETAIL"), None)
        if detail is None:
            raise RequestNotFoundError(request_id)

        upvoters = [item["identity"] for item in items if item["SK"] != "DETAIL"]
        return self._to_request_out(detail, upvoters)

    # Attendee operations

    def submit_request(
        self,
        event_slug: str,
        request_data: SongRequestCreate,
        identity: str,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> SubmissionResult:
        """Submit a song, merging into an existing queued/pinned duplicate"""
        event = self.event_service.get_event(event_slug)
        if event.status != "active":
            raise EventNotActiveError()

        if self.rate_limiter.is_rate_limited(event, identity):
            raise RateLimitedError(self.rate_limiter.rejection_message(event))

        if self.blocklist_service.is_blocked(event.dj_id, request_data.song_name):
            logger.warning(
                "Blocked request %r on event %s", request_data.song_name, event_slug
            )
            raise SongBlockedError()

        duplicate = self._find_duplicate(event_slug, request_data)
        merged = None
        if duplicate is not None:
            # None when the duplicate left the queue since it was listed
            merged = self._add_upvote(duplicate.id, identity, active_only=True)

        if merged is not None:
            logger.info(
                "Merged submission from %s into request %s (%d upvotes)",
                identity,
                merged.id,
                merged.upvotes,
            )
            result = SubmissionResult(
                request=merged, is_duplicate=True, message=DUPLICATE_MESSAGE
            )
        else:
            created = self._create_request(event, request_data, identity)
            logger.info(
                "Created request %s on event %s: %s - %s",
                created.id,
                event_slug,
                created.song_name,
                created.artist,
            )
            result = SubmissionResult(
                request=created, is_duplicate=False, message=CREATED_MESSAGE
            )

        if background_tasks is not None:
            background_tasks.add_task(
                self.broadcaster.broadcast_new_request,
                event_slug,
                result.request.model_dump(mode="json"),
            )

        return result

    def upvote_request(
        self,
        request_id: str,
        identity: str,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> SongRequestOut:
        """Add one upvote per identity (exactly once)"""
        request = self.get_request(request_id)

        event = self.event_service.get_event(request.event_slug)
        if event.status != "active":
            raise EventNotActiveError()

        updated = self._add_upvote(request_id, identity)
        logger.info(
            "Upvote from %s on request %s (%d upvotes)",
            identity,
            request_id,
            updated.upvotes,
        )

        if background_tasks is not None:
            background_tasks.add_task(
                self.broadcaster.broadcast_queue_update, updated.event_slug
            )

        return updated

    # DJ operations

    def update_status(
        self,
        request_id: str,
        status: str,
        dj_id: str,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> SongRequestOut:
        """Pin, play or skip a request of an event the DJ owns"""
        if status not in REQUEST_STATUSES:
            raise InvalidStatusError(status)

        request = self.get_request(request_id)
        event = self.event_service.get_event(request.event_slug)
        if event.dj_id != dj_id:
            raise ForbiddenError()

        if not can_transition(request.status, status):
            raise InvalidTransitionError(request.status, status)

        expression_values: Dict[str, Any] = {":status": status}
        for i, source in enumerate(ALLOWED_TRANSITIONS[status]):
            expression_values[f":from{i}"] = source
        allowed = ", ".join(
            f":from{i}" for i in range(len(ALLOWED_TRANSITIONS[status]))
        )

        update_expression = "SET #status = :status"
        if status == "played":
            update_expression += ", playedAt = :played_at"
            expression_values[":played_at"] = format_timestamp(self.clock())

        try:
            self.table.update_item(
                Key=request_key(request_id),
                UpdateExpression=update_expression,
                ConditionExpression=f"#status IN ({allowed})",
                ExpressionAttributeNames={"#status": "status"},
                ExpressionAttributeValues=expression_values,
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                # Another DJ action won the race
                current = self.get_request(request_id)
                raise InvalidTransitionError(current.status, status)
            raise StorageError(f"Failed to update request: {e}")

        logger.info("Request %s: %s -> %s", request_id, request.status, status)
        updated = self.get_request(request_id)

        if background_tasks is not None:
            if status == "played":
                background_tasks.add_task(
                    self.broadcaster.broadcast_request_played,
                    updated.event_slug,
                    request_id,
                )
            else:
                background_tasks.add_task(
                    self.broadcaster.broadcast_queue_update, updated.event_slug
                )

        return updated

    # Internals

    def _find_duplicate(
        self, event_slug: str, request_data: SongRequestCreate
    ) -> Optional[SongRequestOut]:
        submitted = (request_data.song_name, request_data.artist)
        for request in self.list_event_requests(event_slug):
            if request.status not in ACTIVE_STATUSES:
                continue
            if songs_equal((request.song_name, request.artist), submitted):
                return request
        return None

    def _create_request(
        self, event: EventOut, request_data: SongRequestCreate, identity: str
    ) -> SongRequestOut:
        """Write the request and its first upvoter in one transaction"""
        request_id = str(uuid.uuid4())
        created_at = format_timestamp(self.clock())

        request_item = {
            **request_key(request_id),
            "id": request_id,
            "eventSlug": event.slug,
            "songName": request_data.song_name,
            "artist": request_data.artist,
            "requesterName": request_data.requester_name or "Anonymous",
            "requesterIdentity": identity,
            "upvotes": 1,
            "status": "queued",
            "createdAt": created_at,
            "GSI_EventRequests_PK": f"EVENT#{event.slug}",
            "GSI_EventRequests_SK": f"REQUEST#{created_at}#{request_id}",
        }
        marker_item = {
            **submitter_marker_key(event.slug, identity, created_at, request_id),
            "requestId": request_id,
            "createdAt": created_at,
        }

        try:
            self.dynamodb.meta.client.transact_write_items(
                TransactItems=[
                    {
                        "Put": {
                            "TableName": self.table.table_name,
                            "Item": request_item,
                            "ConditionExpression": "attribute_not_exists(PK)",
                        }
                    },
                    {
                        "Put": {
                            "TableName": self.table.table_name,
                            "Item": self._upvoter_item(
                                request_id, event.slug, identity, created_at
                            ),
                            "ConditionExpression": "attribute_not_exists(PK)",
                        }
                    },
                    {
                        "Put": {
                            "TableName": self.table.table_name,
                            "Item": marker_item,
                        }
                    },
                ]
            )
        except ClientError as e:
            raise StorageError(f"Failed to create request: {e}")

        return self._to_request_out(request_item, [identity])

    def _add_upvote(
        self, request_id: str, identity: str, active_only: bool = False
    ) -> Optional[SongRequestOut]:
        """Insert the upvoter item and increment the counter atomically.

        With active_only the counter only moves while the request is queued or
        pinned; None is returned when it has been played or skipped instead.
        """
        request = self.get_request(request_id)
        if active_only and request.status not in ACTIVE_STATUSES:
            return None
        created_at = format_timestamp(self.clock())

        update = {
            "TableName": self.table.table_name,
            "Key": request_key(request_id),
            "UpdateExpression": "ADD upvotes :one",
            "ConditionExpression": "attribute_exists(PK)",
            "ExpressionAttributeValues": {":one": 1},
        }
        if active_only:
            update["ConditionExpression"] += " AND #status IN (:queued, :pinned)"
            update["ExpressionAttributeNames"] = {"#status": "status"}
            update["ExpressionAttributeValues"].update(
                {":queued": "queued", ":pinned": "pinned"}
            )

        try:
            self.dynamodb.meta.client.transact_write_items(
                TransactItems=[
                    {
                        "Put": {
                            "TableName": self.table.table_name,
                            "Item": self._upvoter_item(
                                request_id, request.event_slug, identity, created_at
                            ),
                            "ConditionExpression": "attribute_not_exists(PK)",
                        }
                    },
                    {"Update": update},
                ]
            )
        except ClientError as e:
            if e.response["Error"]["Code"] != "TransactionCanceledException":
                raise StorageError(f"Failed to upvote request: {e}")

            reasons = e.response.get("CancellationReasons", [])
            request_check_failed = (
                len(reasons) > 1
                and reasons[1].get("Code") == "ConditionalCheckFailed"
            )
            if active_only:
                if request_check_failed:
                    return None
                if not reasons:
                    # No per-item reasons: settle it from the current row
                    current = self.get_request(request_id)
                    if current.status not in ACTIVE_STATUSES:
                        return None
            elif request_check_failed:
                raise RequestNotFoundError(request_id)
            raise AlreadyUpvotedError()

        return self.get_request(request_id)

    def _upvoter_item(
        self, request_id: str, event_slug: str, identity: str, created_at: str
    ) -> Dict[str, Any]:
        return {
            **upvoter_key(request_id, identity),
            "requestId": request_id,
            "identity": identity,
            "createdAt": created_at,
            "GSI_EventRequests_PK": f"EVENT#{event_slug}",
            "GSI_EventRequests_SK": f"UPVOTER#{request_id}#{identity}",
        }

    def _to_request_out(
        self, item: Dict[str, Any], upvoters: List[str]
    ) -> SongRequestOut:
        data = clean_item(item)
        return SongRequestOut(
            id=data["id"],
            event_slug=data["eventSlug"],
            song_name=data["songName"],
            artist=data["artist"],
            requester_name=data.get("requesterName") or "Anonymous",
            upvotes=int(data["upvotes"]),
            upvoters=sorted(upvoters),
            status=data["status"],
            created_at=data["createdAt"],
            played_at=data.get("playedAt"),
        )
