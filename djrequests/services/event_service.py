import re
import secrets
import string
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError
from fastapi import BackgroundTasks

from djrequests.database.keys import (
    clean_item,
    event_key,
    format_timestamp,
    query_all,
    submitter_marker_key,
)
from djrequests.errors import (
    EventAlreadyEndedError,
    EventNotFoundError,
    ForbiddenError,
    StorageError,
    ValidationError,
)
from djrequests.schemas.event import EventCreate, EventOut, EventUpdate
from djrequests.services.broadcaster import ConnectionManager, manager

logger = logging.getLogger(__name__)

SLUG_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits

# EventOut field -> DynamoDB attribute
EVENT_ATTRIBUTES = {
    "name": "name",
    "date": "date",
    "is_recurring": "isRecurring",
    "queue_visible": "queueVisible",
    "visible": "visible",
    "requests_per_hour": "requestsPerHour",
    "rate_limit_message": "rateLimitMessage",
    "genre_tags": "genreTags",
    "venmo_username": "venmoUsername",
    "cover_image_url": "coverImageUrl",
    "instagram_handle": "instagramHandle",
    "twitter_handle": "twitterHandle",
    "tiktok_handle": "tiktokHandle",
    "website_url": "websiteUrl",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def slugify(text: str) -> str:
    """Convert text to a URL-friendly slug"""
    slug = text.lower().strip()
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"[^\w\-]+", "", slug)
    slug = re.sub(r"\-\-+", "-", slug)
    return slug.strip("-")


def generate_event_slug(event_name: str) -> str:
    """Slugified name plus a random 6 character suffix"""
    suffix = "".join(secrets.choice(SLUG_SUFFIX_ALPHABET) for _ in range(6))
    base_slug = slugify(event_name)
    return f"{base_slug}-{suffix}" if base_slug else suffix


class EventService:
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

    def create_event(self, dj_id: str, event_data: EventCreate) -> EventOut:
        """Create an active event owned by the DJ"""
        if not event_data.is_recurring and event_data.date is None:
            raise ValidationError("Date is required for non-recurring events")

        created_at = format_timestamp(self.clock())

        # Retry on the unlikely slug collision
        for _ in range(5):
            slug = generate_event_slug(event_data.name)
            item = {
                **event_key(slug),
                "slug": slug,
                "djId": dj_id,
                "status": "active",
                "createdAt": created_at,
                "GSI_EventsByDj_PK": f"DJ#{dj_id}",
                "GSI_EventsByDj_SK": f"CREATED#{created_at}#EVENT#{slug}",
            }
            item.update(
                {
                    attribute: value
                    for attribute, value in self._to_attributes(
                        event_data.model_dump()
                    ).items()
                    if value is not None
                }
            )

            try:
                self.table.put_item(
                    Item=item, ConditionExpression="attribute_not_exists(PK)"
                )
            except ClientError as e:
                if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                    continue
                raise StorageError(f"Failed to create event: {e}")

            logger.info("Created event %s for DJ %s", slug, dj_id)
            return self._to_event_out(item)

        raise StorageError("Failed to create event: could not allocate a unique slug")

    def get_event(self, slug: str) -> EventOut:
        """Return an event by slug.

        Raises:
            EventNotFoundError: If no event has this slug.
        """
        try:
            item = self.table.get_item(Key=event_key(slug), ConsistentRead=True).get(
                "Item"
            )
        except ClientError as e:
            raise StorageError(f"Failed to get event: {e}")

        if not item:
            raise EventNotFoundError(slug)
        return self._to_event_out(item)

    def get_owned_event(self, slug: str, dj_id: str) -> EventOut:
        """Return an event the DJ owns.

        Raises:
            EventNotFoundError: If no event has this slug.
            ForbiddenError: If another DJ owns the event.
        """
        event = self.get_event(slug)
        if event.dj_id != dj_id:
            raise ForbiddenError("Not authorized to modify this event")
        return event

    def list_events_for_dj(self, dj_id: str) -> List[EventOut]:
        """Return the DJ's events, newest first"""
        try:
            items = query_all(
                self.table,
                IndexName="GSI_EventsByDj",
                KeyConditionExpression=Key("GSI_EventsByDj_PK").eq(f"DJ#{dj_id}"),
                ScanIndexForward=False,
            )
        except ClientError as e:
            raise StorageError(f"Failed to list events: {e}")

        return [self._to_event_out(item) for item in items]

    def update_event(
        self,
        slug: str,
        dj_id: str,
        updates: EventUpdate,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> EventOut:
        """Apply the fields present in the update in a single UpdateItem call"""
        event = self.get_owned_event(slug, dj_id)

        changes = updates.model_dump(exclude_unset=True)
        if "requests_per_hour" in changes and changes["requests_per_hour"] is None:
            changes["requests_per_hour"] = 0
        for required in ("name", "queue_visible", "visible"):
            if required in changes and changes[required] is None:
                del changes[required]
        if not changes:
            raise ValidationError("No fields to update")

        attributes = self._to_attributes(changes)
        set_clauses = []
        remove_clauses = []
        expression_names = {}
        expression_values = {}
        for i, (attribute, value) in enumerate(attributes.items()):
            expression_names[f"#f{i}"] = attribute
            if value is None:
                remove_clauses.append(f"#f{i}")
            else:
                set_clauses.append(f"#f{i} = :v{i}")
                expression_values[f":v{i}"] = value

        update_expression = ""
        if set_clauses:
            update_expression += "SET " + ", ".join(set_clauses)
        if remove_clauses:
            update_expression += " REMOVE " + ", ".join(remove_clauses)

        params = {
            "Key": event_key(slug),
            "UpdateExpression": update_expression.strip(),
            "ExpressionAttributeNames": expression_names,
            "ConditionExpression": "attribute_exists(PK)",
            "ReturnValues": "ALL_NEW",
        }
        if expression_values:
            params["ExpressionAttributeValues"] = expression_values

        try:
            response = self.table.update_item(**params)
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise EventNotFoundError(slug)
            raise StorageError(f"Failed to update event: {e}")

        updated = self._to_event_out(response["Attributes"])
        logger.info("Updated event %s fields %s", slug, sorted(changes))

        if (
            background_tasks is not None
            and "queue_visible" in changes
            and updated.queue_visible != event.queue_visible
        ):
            background_tasks.add_task(
                self.broadcaster.broadcast_visibility_toggle,
                slug,
                updated.queue_visible,
            )

        return updated

    def end_event(
        self,
        slug: str,
        dj_id: str,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> EventOut:
        """Move an event from active to ended (one way)"""
        event = self.get_owned_event(slug, dj_id)
        if event.status == "ended":
            raise EventAlreadyEndedError()

        try:
            response = self.table.update_item(
                Key=event_key(slug),
                UpdateExpression="SET #status = :ended, endedAt = :ended_at",
                ConditionExpression="#status = :active",
                ExpressionAttributeNames={"#status": "status"},
                ExpressionAttributeValues={
                    ":ended": "ended",
                    ":active": "active",
                    ":ended_at": format_timestamp(self.clock()),
                },
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise EventAlreadyEndedError()
            raise StorageError(f"Failed to end event: {e}")

        logger.info("Ended event %s", slug)
        if background_tasks is not None:
            background_tasks.add_task(self.broadcaster.broadcast_queue_update, slug)

        return self._to_event_out(response["Attributes"])

    def delete_event(self, slug: str, dj_id: str) -> None:
        """Delete an event with its requests, upvoter records and rate limit markers"""
        self.get_owned_event(slug, dj_id)

        try:
            items = query_all(
                self.table,
                IndexName="GSI_EventRequests",
                KeyConditionExpression=Key("GSI_EventRequests_PK").eq(
                    f"EVENT#{slug}"
                ),
            )
            with self.table.batch_writer() as batch:
                for item in items:
                    batch.delete_item(Key={"PK": item["PK"], "SK": item["SK"]})
                    if item["SK"] == "DETAIL" and "requesterIdentity" in item:
                        batch.delete_item(
                            Key=submitter_marker_key(
                                slug,
                                item["requesterIdentity"],
                                item["createdAt"],
                                item["id"],
                            )
                        )
                batch.delete_item(Key=event_key(slug))
        except ClientError as e:
            raise StorageError(f"Failed to delete event: {e}")

        logger.info("Deleted event %s and %d related items", slug, len(items))

    def _to_attributes(self, values: Dict[str, Any]) -> Dict[str, Any]:
        attributes = {}
        for field, attribute in EVENT_ATTRIBUTES.items():
            if field not in values:
                continue
            value = values[field]
            if field == "date" and value is not None:
                value = value.isoformat()
            if value == "":
                value = None
            attributes[attribute] = value
        return attributes

    def _to_event_out(self, item: Dict[str, Any]) -> EventOut:
        data = clean_item(item)
        fields = {
            field: data.get(attribute)
            for field, attribute in EVENT_ATTRIBUTES.items()
            if data.get(attribute) is not None
        }
        if "requests_per_hour" in fields:
            fields["requests_per_hour"] = int(fields["requests_per_hour"])

        return EventOut(
            slug=data["slug"],
            dj_id=data["djId"],
            status=data["status"],
            created_at=data["createdAt"],
            ended_at=data.get("endedAt"),
            **fields,
        )
