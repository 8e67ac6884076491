"""
Bot detection: ordered signature table, first match wins.

Rows are checked top to bottom; the generic ``bot|crawler|spider`` row sits
last among the named rows so a specific crawler is always reported by
name. When no row matches, the ``crawlerdetect`` signature database is
consulted as a final catch-all. New signatures are added by appending rows
above the generic one.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from crawlerdetect import CrawlerDetect

from errors import ClassificationError
from schemas.models.click import BotInfo, BotType

_crawler_detect = CrawlerDetect()


@dataclass(frozen=True)
class BotSignature:
    pattern: re.Pattern
    name: str
    bot_type: BotType


def _sig(pattern: str, name: str, bot_type: BotType) -> BotSignature:
    return BotSignature(re.compile(pattern, re.IGNORECASE), name, bot_type)


BOT_SIGNATURES: tuple[BotSignature, ...] = (
    _sig(r"googlebot", "Googlebot", "search"),
    _sig(r"bingbot", "Bingbot", "search"),
    _sig(r"slurp", "Yahoo Slurp", "search"),
    _sig(r"duckduckbot", "DuckDuckBot", "search"),
    _sig(r"baiduspider", "Baiduspider", "search"),
    _sig(r"yandexbot", "YandexBot", "search"),
    _sig(r"facebookexternalhit|facebookcatalog", "Facebook Bot", "social"),
    _sig(r"twitterbot", "Twitterbot", "social"),
    _sig(r"linkedinbot", "LinkedInBot", "social"),
    _sig(r"slackbot|slack-imgproxy", "Slackbot", "social"),
    _sig(r"discordbot", "Discordbot", "social"),
    _sig(r"whatsapp", "WhatsApp", "social"),
    _sig(r"telegrambot", "TelegramBot", "social"),
    _sig(r"pingdom", "Pingdom", "monitoring"),
    _sig(r"uptimerobot", "UptimeRobot", "monitoring"),
    _sig(r"bot|crawler|spider|crawling", "Generic Bot", "other"),
)

HUMAN = BotInfo(is_bot=False)


def match_signature(user_agent: str) -> Optional[BotSignature]:
    """Return the first table row matching *user_agent*, or ``None``."""
    for signature in BOT_SIGNATURES:
        if signature.pattern.search(user_agent):
            return signature
    return None


def detect_bot(user_agent: Optional[str]) -> BotInfo:
    """Classify *user_agent* as bot or human.

    Args:
        user_agent: The ``User-Agent`` header value (may be empty).

    Returns:
        ``BotInfo`` with ``is_bot=False`` when nothing matches.

    Raises:
        ClassificationError: the signature database failed on this input.
    """
    if not user_agent:
        return HUMAN

    signature = match_signature(user_agent)
    if signature is not None:
        return BotInfo(is_bot=True, bot_name=signature.name, bot_type=signature.bot_type)

    try:
        is_crawler = _crawler_detect.isCrawler(user_agent)
        matches = _crawler_detect.getMatches() if is_crawler else None
    except Exception as e:
        raise ClassificationError(
            "crawler signature lookup failed", field="user_agent", details=str(e)
        ) from e

    if is_crawler:
        name = matches if isinstance(matches, str) else None
        if isinstance(matches, (list, tuple)) and matches:
            name = str(matches[0])
        return BotInfo(is_bot=True, bot_name=name or "crawler", bot_type="other")

    return HUMAN
