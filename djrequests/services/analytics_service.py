import logging
from typing import Dict, List, Optional, Tuple

from djrequests.schemas.analytics import EventAnalytics, SongRanking, TopSong
from djrequests.schemas.song_request import SongRequestOut
from djrequests.services.broadcaster import ConnectionManager, manager
from djrequests.services.matching import song_key
from djrequests.services.request_service import RequestService

logger = logging.getLogger(__name__)

TOP_SONGS_LIMIT = 10
EVENT_RANKINGS_LIMIT = 100
ALL_TIME_RANKINGS_LIMIT = 200


def _percentage(part: int, total: int) -> float:
    return round(part * 100 / total, 1) if total else 0.0


def summarize_requests(requests: List[SongRequestOut]) -> EventAnalytics:
    """Rollup over an event's full request history (creation order expected)"""
    total = len(requests)

    identities = set()
    for request in requests:
        identities.update(request.upvoters)

    played = sum(1 for r in requests if r.status == "played")
    skipped = sum(1 for r in requests if r.status == "skipped")

    # sorted() is stable, so ties keep creation order
    top = sorted(requests, key=lambda r: r.upvotes, reverse=True)[:TOP_SONGS_LIMIT]

    timeline: Dict[str, int] = {}
    for request in requests:
        hour = request.created_at.strftime("%Y-%m-%dT%H")
        timeline[hour] = timeline.get(hour, 0) + 1

    return EventAnalytics(
        total_requests=total,
        unique_requesters=len(identities),
        played=played,
        skipped=skipped,
        played_percentage=_percentage(played, total),
        skipped_percentage=_percentage(skipped, total),
        top_songs=[
            TopSong(
                song_name=r.song_name,
                artist=r.artist,
                upvotes=r.upvotes,
                requester_name=r.requester_name,
                status=r.status,
            )
            for r in top
        ],
        avg_upvotes=round(sum(r.upvotes for r in requests) / total, 2) if total else 0.0,
        timeline=timeline,
    )


def rank_songs(
    requests: List[SongRequestOut],
    limit: Optional[int] = None,
    include_event_count: bool = False,
) -> List[SongRanking]:
    """Group requests by normalized (song, artist) and order by demand"""
    groups: Dict[Tuple[str, str], List[SongRequestOut]] = {}
    for request in requests:
        groups.setdefault(song_key(request.song_name, request.artist), []).append(
            request
        )

    rankings = []
    for grouped in groups.values():
        first = grouped[0]
        rankings.append(
            SongRanking(
                song_name=first.song_name,
                artist=first.artist,
                request_count=len(grouped),
                total_upvotes=sum(r.upvotes for r in grouped),
                max_upvotes=max(r.upvotes for r in grouped),
                played_count=sum(1 for r in grouped if r.status == "played"),
                requesters=[r.requester_name for r in grouped],
                last_requested=max(r.created_at for r in grouped),
                events_requested_at=(
                    len({r.event_slug for r in grouped})
                    if include_event_count
                    else None
                ),
            )
        )

    rankings.sort(key=lambda r: (r.total_upvotes, r.request_count), reverse=True)
    return rankings[:limit] if limit is not None else rankings


class AnalyticsService:
    """Read-only rollups for the DJ who owns the events"""

    def __init__(
        self,
        dynamodb_resource,
        table_name="DjRequests",
        broadcaster: ConnectionManager = manager,
    ):
        self.request_service = RequestService(
            dynamodb_resource, table_name, broadcaster=broadcaster
        )
        self.event_service = self.request_service.event_service

    def get_event_analytics(self, event_slug: str, dj_id: str) -> EventAnalytics:
        self.event_service.get_owned_event(event_slug, dj_id)
        requests = self.request_service.list_event_requests(event_slug)
        return summarize_requests(requests)

    def get_song_rankings(self, event_slug: str, dj_id: str) -> List[SongRanking]:
        self.event_service.get_owned_event(event_slug, dj_id)
        requests = self.request_service.list_event_requests(event_slug)
        return rank_songs(requests, limit=EVENT_RANKINGS_LIMIT)

    def get_hot_songs(
        self,
        event_slug: str,
        dj_id: str,
        min_upvotes: int = 3,
        min_requests: int = 2,
    ) -> List[SongRanking]:
        """Songs whose demand crosses either threshold"""
        self.event_service.get_owned_event(event_slug, dj_id)
        requests = self.request_service.list_event_requests(event_slug)
        return [
            ranking
            for ranking in rank_songs(requests)
            if ranking.total_upvotes >= min_upvotes
            or ranking.request_count >= min_requests
        ]

    def get_all_time_rankings(self, dj_id: str) -> List[SongRanking]:
        """Rankings across every event the DJ has run"""
        requests = []
        events = self.event_service.list_events_for_dj(dj_id)
        for event in events:
            requests.extend(self.request_service.list_event_requests(event.slug))

        logger.info(
            "Ranking %d requests across %d events for DJ %s",
            len(requests),
            len(events),
            dj_id,
        )
        return rank_songs(
            requests, limit=ALL_TIME_RANKINGS_LIMIT, include_event_count=True
        )
