import uuid
import logging
from datetime import datetime, timezone
from typing import Callable, List

from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from djrequests.database.keys import (
    block_entry_key,
    clean_item,
    format_timestamp,
    query_all,
)
from djrequests.errors import BlockListEntryNotFoundError, StorageError
from djrequests.schemas.blocklist import BlockListEntryCreate, BlockListEntryOut
from djrequests.services.matching import matches_block_pattern

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BlockListService:
    """DJ-scoped block list; patterns apply to every event of the DJ"""

    def __init__(
        self,
        dynamodb_resource,
        table_name="DjRequests",
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.dynamodb = dynamodb_resource
        self.table = dynamodb_resource.Table(table_name)
        self.clock = clock

    def list_entries(self, dj_id: str) -> List[BlockListEntryOut]:
        """Return the DJ's block list, newest first"""
        try:
            items = query_all(
                self.table,
                KeyConditionExpression=Key("PK").eq(f"DJ#{dj_id}")
                & Key("SK").begins_with("BLOCK#"),
            )
        except ClientError as e:
            raise StorageError(f"Failed to list block list: {e}")

        entries = [self._to_entry_out(item) for item in items]
        entries.sort(key=lambda entry: entry.created_at, reverse=True)
        return entries

    def add_entry(self, dj_id: str, entry_data: BlockListEntryCreate) -> BlockListEntryOut:
        entry_id = str(uuid.uuid4())
        item = {
            **block_entry_key(dj_id, entry_id),
            "id": entry_id,
            "djId": dj_id,
            "songPattern": entry_data.song_pattern,
            "createdAt": format_timestamp(self.clock()),
        }

        try:
            self.table.put_item(Item=item)
        except ClientError as e:
            raise StorageError(f"Failed to add block list entry: {e}")

        logger.info("DJ %s blocked pattern %r", dj_id, entry_data.song_pattern)
        return self._to_entry_out(item)

    def delete_entry(self, dj_id: str, entry_id: str) -> None:
        """Remove an entry from the DJ's own list.

        Raises:
            BlockListEntryNotFoundError: If the DJ has no entry with this id.
        """
        try:
            self.table.delete_item(
                Key=block_entry_key(dj_id, entry_id),
                ConditionExpression="attribute_exists(PK)",
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise BlockListEntryNotFoundError(entry_id)
            raise StorageError(f"Failed to delete block list entry: {e}")

        logger.info("DJ %s removed block list entry %s", dj_id, entry_id)

    def is_blocked(self, dj_id: str, song_name: str) -> bool:
        """True if any of the DJ's patterns matches the song name"""
        return any(
            matches_block_pattern(song_name, entry.song_pattern)
            for entry in self.list_entries(dj_id)
        )

    def _to_entry_out(self, item) -> BlockListEntryOut:
        data = clean_item(item)
        return BlockListEntryOut(
            id=data["id"],
            dj_id=data["djId"],
            song_pattern=data["songPattern"],
            created_at=data["createdAt"],
        )
