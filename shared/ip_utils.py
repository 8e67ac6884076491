"""
Client IP helpers.
"""

from __future__ import annotations

import ipaddress
from typing import Optional


def is_public_ip(ip: Optional[str]) -> bool:
    """Return True if *ip* is a routable public address worth a GeoIP lookup.

    Private, loopback, link-local, reserved and malformed addresses return
    False; their geography is recorded as unknown.
    """
    if not ip:
        return False
    try:
        addr = ipaddress.ip_address(ip.strip())
    except ValueError:
        return False
    return addr.is_global and not addr.is_multicast
