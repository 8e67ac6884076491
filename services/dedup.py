"""
Click deduplication decisions.

A pure function over the visitor's recent history for one short code. The
reload check is an absolute veto; once a click passes it, the uniqueness
flags are resolved independently of each other.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Literal, Optional, Sequence

from schemas.models.click import ClickEvent
from shared.datetime_utils import ensure_utc

DedupReason = Literal["reload", "new_visitor", "new_session", "first_today", "returning"]


@dataclass(frozen=True)
class DedupDecision:
    should_record: bool
    is_unique_visitor: bool
    is_new_session: bool
    is_unique_today: bool
    last_click_at: Optional[datetime]
    prior_clicks: int
    reason: DedupReason


def _reason(unique_visitor: bool, new_session: bool, unique_today: bool) -> DedupReason:
    if unique_visitor:
        return "new_visitor"
    if new_session:
        return "new_session"
    if unique_today:
        return "first_today"
    return "returning"


def decide(
    history: Sequence[ClickEvent],
    now: datetime,
    *,
    reload_window: timedelta,
    session_window: timedelta,
    day_start: datetime,
) -> DedupDecision:
    """Decide whether a human click should be recorded and how it counts.

    Args:
        history: The visitor's most recent non-bot events for the short
            code, newest first. Only a bounded prefix is ever inspected.
        now: Time of the incoming click.
        reload_window: Clicks closer than this to a prior click are reloads.
        session_window: Clicks closer than this continue the prior session.
        day_start: Start of the current day in the tracking timezone, UTC.

    Returns:
        DedupDecision. ``should_record`` is False only for reloads.
    """
    now = ensure_utc(now)
    day_start = ensure_utc(day_start)
    ages = [now - ensure_utc(event.clicked_at) for event in history]
    last_click_at = ensure_utc(history[0].clicked_at) if history else None

    if any(age < reload_window for age in ages):
        return DedupDecision(
            should_record=False,
            is_unique_visitor=False,
            is_new_session=False,
            is_unique_today=False,
            last_click_at=last_click_at,
            prior_clicks=len(history),
            reason="reload",
        )

    unique_visitor = not history
    new_session = not any(age < session_window for age in ages)
    unique_today = not any(
        ensure_utc(event.clicked_at) >= day_start for event in history
    )

    return DedupDecision(
        should_record=True,
        is_unique_visitor=unique_visitor,
        is_new_session=new_session,
        is_unique_today=unique_today,
        last_click_at=last_click_at,
        prior_clicks=len(history),
        reason=_reason(unique_visitor, new_session, unique_today),
    )
