"""Inactivity rule selection. Pure functions, no I/O."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from wacraft_reminders.reminders.models import InactivityRule


def inactive_duration(last_updated_at: datetime, now: Optional[datetime] = None) -> timedelta:
    """Wall-clock time since last_updated_at. Naive timestamps are taken as UTC."""
    if last_updated_at.tzinfo is None:
        last_updated_at = last_updated_at.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now - last_updated_at


def select_rule(
    rules: Iterable[InactivityRule], duration: timedelta
) -> Optional[InactivityRule]:
    """Pick the rule with the longest threshold that ``duration`` has reached.

    Ties keep their original order. A negative duration (clock skew, future
    timestamps) matches nothing.
    """
    if duration < timedelta(0):
        return None
    ordered = sorted(rules, key=lambda rule: rule.inactive_for_hours, reverse=True)
    for rule in ordered:
        if rule.inactive_for_hours <= duration / timedelta(hours=1):
            return rule
    return None
