"""Background reminder scanner.

Every ``REMINDER_INTERVAL_SECONDS`` the scheduler looks for appointments
starting between ``REMINDER_LEAD_MINUTES`` and ``REMINDER_LEAD_MINUTES + 1``
minutes from now (wall-clock in ``APP_TIMEZONE``), logs a reminder for each
and marks it ``reminded`` so it fires once.  The scheduler starts each
window where the previous successful scan ended, so late ticks or a longer
interval never leave a gap between windows.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from collections.abc import Callable
from typing import Any
from zoneinfo import ZoneInfo

from calendar_assistant.config import (
    APP_TIMEZONE,
    REMINDER_INTERVAL_SECONDS,
    REMINDER_LEAD_MINUTES,
)
from calendar_assistant.services.appointment_store import AppointmentStore, get_appointment_store

logger = logging.getLogger(__name__)

WINDOW_MINUTES = 1


def reminder_window(
    now: datetime, lead_minutes: int = REMINDER_LEAD_MINUTES,
) -> tuple[datetime, datetime]:
    """Return the half-open ``[start, end)`` window of start times due a reminder."""
    start = now + timedelta(minutes=lead_minutes)
    return start, start + timedelta(minutes=WINDOW_MINUTES)


def _localize(moment: datetime, tz: ZoneInfo) -> datetime:
    """Naive values are wall-clock in *tz*; aware ones are converted."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=tz)
    return moment.astimezone(tz)


def _dates_between(start: datetime, end: datetime) -> list[str]:
    day, last = start.date(), end.date()
    dates = []
    while day <= last:
        dates.append(day.strftime("%Y-%m-%d"))
        day += timedelta(days=1)
    return dates


def _appointment_start(apt: dict[str, Any], tz: ZoneInfo) -> datetime | None:
    try:
        naive = datetime.strptime(f"{apt['date']} {apt['time']}", "%Y-%m-%d %H:%M")
    except (KeyError, TypeError, ValueError):
        return None
    return naive.replace(tzinfo=tz)


def _emit_reminder(apt: dict[str, Any]) -> None:
    lines = [f'REMINDER: "{apt["title"]}" at {apt["time"]}', f"   Date: {apt['date']}"]
    if apt.get("description"):
        lines.append(f"   Details: {apt['description']}")
    logger.info("\n".join(lines))


def scan_for_reminders(
    store: AppointmentStore,
    now: datetime | None = None,
    *,
    since: datetime | None = None,
    timezone: str = APP_TIMEZONE,
    lead_minutes: int = REMINDER_LEAD_MINUTES,
) -> list[dict[str, Any]]:
    """Emit reminders for appointments entering the reminder window.

    Args:
        store: Where appointments are read from and marked reminded.
        now: Current time; naive values are taken as *timezone* wall-clock.
            Defaults to the current time.
        since: End of the previous scan's window.  When it is earlier than
            this scan's window start, the window is widened back to it.

    Returns:
        The appointments that were reminded in this scan.
    """
    tz = ZoneInfo(timezone)
    now = datetime.now(tz) if now is None else _localize(now, tz)

    window_start, window_end = reminder_window(now, lead_minutes)
    if since is not None:
        window_start = min(window_start, _localize(since, tz))
    # The window can straddle midnight, so query every date it touches.
    dates = _dates_between(window_start, window_end)

    reminded: list[dict[str, Any]] = []
    for apt in store.find_unreminded_on(dates):
        start = _appointment_start(apt, tz)
        if start is None:
            logger.warning(
                "Skipping appointment %s with unparseable date/time %r %r",
                apt.get("_id"), apt.get("date"), apt.get("time"),
            )
            continue
        if window_start <= start < window_end:
            _emit_reminder(apt)
            store.mark_reminded(apt["_id"])
            reminded.append(apt)

    if reminded:
        logger.info("Sent %d reminder(s)", len(reminded))
    return reminded


class ReminderScheduler:
    """Daemon thread that runs :func:`scan_for_reminders` periodically.

    Each scan picks up where the last successful one ended, so appointments
    between two windows are still reminded when a tick runs late.
    """

    def __init__(
        self,
        store: AppointmentStore | None = None,
        interval_seconds: float = REMINDER_INTERVAL_SECONDS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._interval = interval_seconds
        self._clock = clock or (lambda: datetime.now(ZoneInfo(APP_TIMEZONE)))
        self._covered_until: datetime | None = None
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> list[dict[str, Any]]:
        """Run a single scan, logging (not raising) any error."""
        try:
            store = self._store or get_appointment_store()
            now = self._clock()
            reminded = scan_for_reminders(store, now, since=self._covered_until)
        except Exception:
            logger.exception("Reminder scan failed")
            return []
        _, self._covered_until = reminder_window(now)
        return reminded

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()

        def _loop():
            # Event.wait doubles as an interruptible sleep
            while not self._stop.wait(self._interval):
                self.run_once()

        self._thread = threading.Thread(target=_loop, daemon=True, name="reminder-scan")
        self._thread.start()
        logger.info("Reminder system active (interval=%ss)", self._interval)

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Reminder system stopped")
