"""Single-table key layout and item helpers.

Item              PK                  SK
DJ profile        DJ#<id>             PROFILE
DJ email claim    DJEMAIL#<email>     DJEMAIL
Block entry       DJ#<dj_id>          BLOCK#<id>
Event             EVENT#<slug>        DETAIL
Song request      REQUEST#<id>        DETAIL
Upvoter           REQUEST#<id>        UPVOTER#<identity>
Submitter marker  EVENT#<slug>#SUBMITTER#<identity>  CREATED#<created>#<request_id>

GSI_EventRequests       EVENT#<slug>                       REQUEST#<created>#<id> | UPVOTER#<id>#<identity>
GSI_EventsByDj          DJ#<dj_id>                         CREATED#<created>#EVENT#<slug>
"""

from datetime import datetime, timezone
from typing import Any, Dict, List


def dj_key(dj_id: str) -> Dict[str, str]:
    return {"PK": f"DJ#{dj_id}", "SK": "PROFILE"}


def dj_email_key(email: str) -> Dict[str, str]:
    return {"PK": f"DJEMAIL#{email.lower()}", "SK": "DJEMAIL"}


def block_entry_key(dj_id: str, entry_id: str) -> Dict[str, str]:
    return {"PK": f"DJ#{dj_id}", "SK": f"BLOCK#{entry_id}"}


def event_key(slug: str) -> Dict[str, str]:
    return {"PK": f"EVENT#{slug}", "SK": "DETAIL"}


def request_key(request_id: str) -> Dict[str, str]:
    return {"PK": f"REQUEST#{request_id}", "SK": "DETAIL"}


def upvoter_key(request_id: str, identity: str) -> Dict[str, str]:
    return {"PK": f"REQUEST#{request_id}", "SK": f"UPVOTER#{identity}"}


def submitter_partition(slug: str, identity: str) -> str:
    return f"EVENT#{slug}#SUBMITTER#{identity}"


def submitter_marker_key(
    slug: str, identity: str, created_at: str, request_id: str
) -> Dict[str, str]:
    """One item per created request, counted by the rate limiter"""
    return {
        "PK": submitter_partition(slug, identity),
        "SK": f"CREATED#{created_at}#{request_id}",
    }


def format_timestamp(value: datetime) -> str:
    """Fixed-width UTC ISO string so lexical order matches time order"""
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def clean_item(item: Dict[str, Any]) -> Dict[str, Any]:
    """Remove DynamoDB key and index attributes"""
    return {
        k: v
        for k, v in item.items()
        if k not in ["PK", "SK"] and not k.startswith("GSI_")
    }


def query_all(table, **query_params) -> List[Dict[str, Any]]:
    """Run a query and follow LastEvaluatedKey until exhausted"""
    items = []
    while True:
        response = table.query(**query_params)
        items.extend(response.get("Items", []))

        last_evaluated_key = response.get("LastEvaluatedKey")
        if not last_evaluated_key:
            break
        query_params["ExclusiveStartKey"] = last_evaluated_key

    return items


def count_all(table, **query_params) -> int:
    """COUNT query across all pages"""
    query_params["Select"] = "COUNT"
    count = 0
    while True:
        response = table.query(**query_params)
        count += response["Count"]

        last_evaluated_key = response.get("LastEvaluatedKey")
        if not last_evaluated_key:
            break
        query_params["ExclusiveStartKey"] = last_evaluated_key

    return count
