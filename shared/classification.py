"""
Request classification: runs the user-agent, bot and referrer classifiers.

A failing step never aborts the click: its part degrades to Unknown/default
values and the result is marked ``partial`` so recorded events can be told
apart from fully classified ones.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from errors import ClassificationError
from schemas.models.click import (
    BotInfo,
    ClassificationStatus,
    DeviceInfo,
    ReferrerInfo,
)
from shared.bot_detection import detect_bot
from shared.logging import get_logger
from shared.referrer import classify_referrer
from shared.user_agent import parse_user_agent

log = get_logger(__name__)


@dataclass(frozen=True)
class RequestClassification:
    device: DeviceInfo
    bot: BotInfo
    referrer: ReferrerInfo
    failures: tuple[str, ...] = field(default_factory=tuple)

    @property
    def status(self) -> ClassificationStatus:
        return "partial" if self.failures else "complete"


def classify_request(
    user_agent: Optional[str], referrer: Optional[str]
) -> RequestClassification:
    failures: list[str] = []

    try:
        device = parse_user_agent(user_agent)
    except ClassificationError as e:
        failures.append("device")
        device = DeviceInfo()
        log.warning("classification_degraded", part="device", error=e.message)

    try:
        bot = detect_bot(user_agent)
    except ClassificationError as e:
        failures.append("bot")
        bot = BotInfo()
        log.warning("classification_degraded", part="bot", error=e.message)

    try:
        referrer_info = classify_referrer(referrer)
    except ClassificationError as e:
        failures.append("referrer")
        referrer_info = ReferrerInfo(url=referrer, source="unknown")
        log.warning("classification_degraded", part="referrer", error=e.message)

    if bot.is_bot and device.type == "desktop":
        device = device.model_copy(update={"type": "bot"})

    return RequestClassification(
        device=device, bot=bot, referrer=referrer_info, failures=tuple(failures)
    )
