import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from djrequests.database.keys import count_all, format_timestamp, submitter_partition
from djrequests.errors import StorageError
from djrequests.schemas.event import EventOut

logger = logging.getLogger(__name__)

RATE_LIMIT_WINDOW = timedelta(seconds=3600)
DEFAULT_RATE_LIMIT_MESSAGE = (
    "You've reached the request limit. Please wait before submitting another song."
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RateLimiter:
    """Per-identity submission cap over a trailing one hour window"""

    def __init__(
        self,
        dynamodb_resource,
        table_name="DjRequests",
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.table = dynamodb_resource.Table(table_name)
        self.clock = clock

    def count_recent_requests(self, event_slug: str, identity: str) -> int:
        """Requests this identity created for the event inside the window.

        Counts the submitter marker items on the base table with a strongly
        consistent read, so a burst of submissions sees every earlier write.
        """
        cutoff = format_timestamp(self.clock() - RATE_LIMIT_WINDOW)
        try:
            return count_all(
                self.table,
                KeyConditionExpression=Key("PK").eq(
                    submitter_partition(event_slug, identity)
                )
                & Key("SK").gt(f"CREATED#{cutoff}"),
                ConsistentRead=True,
            )
        except ClientError as e:
            raise StorageError(f"Failed to count recent requests: {e}")

    def is_rate_limited(self, event: EventOut, identity: str) -> bool:
        """A threshold of 0 disables the limit"""
        if not event.requests_per_hour:
            return False

        recent = self.count_recent_requests(event.slug, identity)
        limited = recent >= event.requests_per_hour
        if limited:
            logger.warning(
                "Rate limited %s on event %s (%d/%d in the last hour)",
                identity,
                event.slug,
                recent,
                event.requests_per_hour,
            )
        return limited

    @staticmethod
    def rejection_message(event: EventOut) -> str:
        return event.rate_limit_message or DEFAULT_RATE_LIMIT_MESSAGE
