"""
Voter IP privacy helpers.

The upvote ledger keeps the raw IP for abuse investigation. Log lines only
ever see hash_ip_address(); HTTP responses only ever see mask_ip_address().
"""

from typing import Any, Dict, List, Optional
import hashlib
import ipaddress

from incident_hub.core.settings import settings


def hash_ip_address(ip_address: Optional[str]) -> Optional[str]:
    """
    Salted SHA-256 of the IP, truncated to 16 hex chars (64 bits).

    Stable for a given salt, so repeated votes from one address can be
    correlated in logs without storing the address there.
    """
    if not ip_address or not ip_address.strip():
        return None
    digest = hashlib.sha256(f"{settings.IP_HASH_SALT}{ip_address.strip()}".encode()).hexdigest()
    return digest[:16]


def mask_ip_address(ip_address: Optional[str]) -> Optional[str]:
    """
    Hide the host part of an address.

    203.0.113.9 → 203.0.x.x, 2001:db8:85a3::7334 → 2001:db8::x.
    Values that are not IP addresses (proxies, test clients) pass through.
    """
    if not ip_address or not ip_address.strip():
        return None

    try:
        parsed = ipaddress.ip_address(ip_address.strip())
    except ValueError:
        return ip_address

    if parsed.version == 4:
        first, second = str(parsed).split(".")[:2]
        return f"{first}.{second}.x.x"

    groups = parsed.exploded.split(":")[:2]
    return ":".join(group.lstrip("0") or "0" for group in groups) + "::x"


def mask_upvote_ips(upvotes: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Mask ip_address in serialized upvotes, in place."""
    for upvote in upvotes:
        upvote["ip_address"] = mask_ip_address(upvote.get("ip_address"))
    return upvotes
