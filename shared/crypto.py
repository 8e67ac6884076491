"""
Visitor identity hashing: one-way, deterministic, stateless.

SHA-256 for the hashed IP (the privacy-preserving visitor key) and MD5 for
the device fingerprint and rolling session id, which only need to be
stable, not secret.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

LOOPBACK_SENTINEL = "127.0.0.1"
DEFAULT_SESSION_WINDOW_SECONDS = 30 * 60


@dataclass(frozen=True)
class VisitorIdentity:
    """Derived identity of one click's visitor. Never persisted as its own record."""

    hashed_ip: str
    fingerprint: str
    session_id: str


def normalize_ip(ip: Optional[str]) -> str:
    """Return *ip* stripped, or the loopback sentinel when missing/blank."""
    if ip is None:
        return LOOPBACK_SENTINEL
    ip = ip.strip()
    return ip or LOOPBACK_SENTINEL


def hash_ip(ip: Optional[str], salt: str = "") -> str:
    """Return the hex-encoded SHA-256 digest of *salt* + *ip*.

    Args:
        ip: Client IP; ``None`` or blank falls back to ``127.0.0.1``.
        salt: Deployment-wide salt. Changing it re-keys every visitor.

    Returns:
        64-character lowercase hex string.
    """
    value = f"{salt}{normalize_ip(ip)}"
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def device_fingerprint(ip: Optional[str], user_agent: Optional[str]) -> str:
    """MD5 of ``"{user_agent}-{ip}"``; same device + network, same value."""
    data = f"{user_agent or ''}-{normalize_ip(ip)}"
    return hashlib.md5(data.encode("utf-8")).hexdigest()


def session_bucket(now: datetime, window_seconds: int) -> int:
    """Index of the fixed-size window *now* falls into (epoch-aligned)."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return int(now.timestamp()) // window_seconds


def session_id(
    hashed_ip: str,
    user_agent: Optional[str],
    now: datetime,
    window_seconds: int = DEFAULT_SESSION_WINDOW_SECONDS,
) -> str:
    """Coarse session id, stable for one window and different in the next."""
    bucket = session_bucket(now, window_seconds)
    data = f"{hashed_ip}-{user_agent or ''}-{bucket}"
    return hashlib.md5(data.encode("utf-8")).hexdigest()


def build_visitor_identity(
    ip: Optional[str],
    user_agent: Optional[str],
    now: datetime,
    *,
    salt: str = "",
    session_window_seconds: int = DEFAULT_SESSION_WINDOW_SECONDS,
) -> VisitorIdentity:
    hashed = hash_ip(ip, salt)
    return VisitorIdentity(
        hashed_ip=hashed,
        fingerprint=device_fingerprint(ip, user_agent),
        session_id=session_id(hashed, user_agent, now, session_window_seconds),
    )
