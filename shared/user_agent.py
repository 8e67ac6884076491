"""
User-agent parsing: device type, OS and browser with versions.

Browser and OS families come from ``ua-parser``; the coarse device type
comes from an ordered regex table (first match wins, desktop otherwise).
"""

from __future__ import annotations

import re
from typing import Any, Optional

from ua_parser import parse

from errors import ClassificationError
from schemas.models.click import UNKNOWN, DeviceInfo, DeviceType

DEVICE_TYPE_RULES: tuple[tuple[re.Pattern, DeviceType], ...] = (
    (
        re.compile(
            r"mobile|iphone|ipod|android.*mobile|windows phone|blackberry|opera mini|opera mobi"
        ),
        "mobile",
    ),
    (re.compile(r"ipad|android(?!.*mobile)|tablet|kindle|silk"), "tablet"),
    (re.compile(r"bot|crawler|spider|crawling"), "bot"),
)

_UNMATCHED_FAMILIES = {"Other", ""}


def detect_device_type(user_agent: str) -> DeviceType:
    ua = user_agent.lower()
    for pattern, device_type in DEVICE_TYPE_RULES:
        if pattern.search(ua):
            return device_type
    return "desktop"


def _version(part: Any) -> Optional[str]:
    """Join the non-empty version components of a ua-parser result part."""
    pieces = [
        getattr(part, attr, None) for attr in ("major", "minor", "patch", "patch_minor")
    ]
    pieces = [p for p in pieces if p]
    return ".".join(pieces) or None


def _family(part: Any) -> str:
    family = getattr(part, "family", None) if part is not None else None
    if not family or family in _UNMATCHED_FAMILIES:
        return UNKNOWN
    return family


def parse_user_agent(user_agent: Optional[str]) -> DeviceInfo:
    """Parse *user_agent* into a ``DeviceInfo``.

    An empty user-agent yields an all-Unknown desktop device.

    Raises:
        ClassificationError: ``ua-parser`` failed on this input.
    """
    if not user_agent:
        return DeviceInfo()

    try:
        result = parse(user_agent)
    except Exception as e:
        raise ClassificationError(
            "user agent could not be parsed", field="user_agent", details=str(e)
        ) from e

    browser = _family(result.user_agent)
    os_name = _family(result.os)
    return DeviceInfo(
        type=detect_device_type(user_agent),
        os=os_name,
        os_version=_version(result.os) if os_name != UNKNOWN else None,
        browser=browser,
        browser_version=_version(result.user_agent) if browser != UNKNOWN else None,
    )
