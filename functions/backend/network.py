"""
Public address observation for incoming requests.
"""

from __future__ import annotations

from typing import Optional

IPV4_MAPPED_PREFIX = "::ffff:"
UNKNOWN_ADDRESS = "unknown"


def normalize_address(address: str) -> str:
    """Strips whitespace and the IPv4-mapped IPv6 prefix."""
    address = address.strip()
    if address.lower().startswith(IPV4_MAPPED_PREFIX):
        address = address[len(IPV4_MAPPED_PREFIX) :]
    return address


def get_public_address(
    forwarded_for: Optional[str],
    remote_addr: Optional[str],
    *,
    trust_forwarded_for: bool = True,
) -> str:
    """
    Returns the caller's public address.

    Behind a trusted proxy the first hop of `X-Forwarded-For` is the client;
    otherwise the socket peer address is used.
    """
    if trust_forwarded_for and forwarded_for:
        first_hop = normalize_address(forwarded_for.split(",")[0])
        if first_hop:
            return first_hop
    if remote_addr:
        normalized = normalize_address(remote_addr)
        if normalized:
            return normalized
    return UNKNOWN_ADDRESS
