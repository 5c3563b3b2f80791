from typing import Mapping, Optional

UNKNOWN_IDENTITY = "unknown"


def resolve_client_identity(
    headers: Mapping[str, str], peer_address: Optional[str] = None
) -> str:
    """
    Best-effort anonymous identity for a public caller.

    Preference: first hop of X-Forwarded-For, then X-Real-IP, then the
    transport peer address, then "unknown". Clients behind one NAT share an
    identity, which is accepted for rate limiting and upvote deduplication.
    """
    lowered = {key.lower(): value for key, value in headers.items()}

    forwarded_for = lowered.get("x-forwarded-for")
    if forwarded_for:
        first_hop = forwarded_for.split(",")[0].strip()
        if first_hop:
            return first_hop

    real_ip = (lowered.get("x-real-ip") or "").strip()
    if real_ip:
        return real_ip

    if peer_address:
        return peer_address

    return UNKNOWN_IDENTITY
