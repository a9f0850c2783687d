"""Tests for the reminder scanner and its background scheduler."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from calendar_assistant.services.reminders import (
    ReminderScheduler,
    reminder_window,
    scan_for_reminders,
)

TZ = "Africa/Nairobi"
NOW = datetime(2026, 10, 20, 13, 45)  # wall-clock in TZ


def _scan(store, now=NOW):
    return scan_for_reminders(store, now, timezone=TZ, lead_minutes=15)


# ── Window arithmetic ────────────────────────────────────────────────


class TestReminderWindow:
    def test_window_is_one_minute_at_lead_time(self):
        start, end = reminder_window(NOW, 15)
        assert start == datetime(2026, 10, 20, 14, 0)
        assert end == datetime(2026, 10, 20, 14, 1)


# ── scan_for_reminders ───────────────────────────────────────────────


class TestScanForReminders:
    def test_reminds_appointment_in_window(self, appointment_store):
        doc = appointment_store.insert("alice", "Dentist", "2026-10-20", "14:00")

        reminded = _scan(appointment_store)

        assert [a["_id"] for a in reminded] == [doc["_id"]]
        assert appointment_store.find_unreminded_on(["2026-10-20"]) == []

    def test_fires_only_once(self, appointment_store):
        appointment_store.insert("alice", "Dentist", "2026-10-20", "14:00")
        assert len(_scan(appointment_store)) == 1
        assert _scan(appointment_store) == []

    def test_ignores_appointments_outside_window(self, appointment_store):
        appointment_store.insert("alice", "Too soon", "2026-10-20", "13:59")
        appointment_store.insert("alice", "Too late", "2026-10-20", "14:01")
        appointment_store.insert("alice", "Other day", "2026-10-21", "14:00")

        assert _scan(appointment_store) == []
        assert len(appointment_store.find_unreminded_on(["2026-10-20", "2026-10-21"])) == 3

    def test_covers_every_user(self, appointment_store):
        appointment_store.insert("alice", "A", "2026-10-20", "14:00")
        appointment_store.insert("bob", "B", "2026-10-20", "14:00")
        assert sorted(a["title"] for a in _scan(appointment_store)) == ["A", "B"]

    def test_window_crossing_midnight(self, appointment_store):
        appointment_store.insert("alice", "Night shift", "2026-10-21", "00:05")

        reminded = _scan(appointment_store, now=datetime(2026, 10, 20, 23, 50))

        assert [a["title"] for a in reminded] == ["Night shift"]

    def test_aware_now_is_converted_to_local_time(self, appointment_store):
        appointment_store.insert("alice", "Dentist", "2026-10-20", "14:00")
        # 10:45 UTC is 13:45 in Nairobi (UTC+3)
        now = datetime(2026, 10, 20, 10, 45, tzinfo=timezone.utc)

        assert len(_scan(appointment_store, now=now)) == 1

    def test_skips_unparseable_appointments(self, appointment_store, mongo_db):
        mongo_db["appointments"].insert_one(
            {"userId": "alice", "title": "Broken", "date": "2026-10-20", "time": "2pm", "reminded": False}
        )
        appointment_store.insert("alice", "Dentist", "2026-10-20", "14:00")

        assert [a["title"] for a in _scan(appointment_store)] == ["Dentist"]

    def test_since_widens_window_back_to_previous_end(self, appointment_store):
        appointment_store.insert("alice", "Standup", "2026-10-20", "10:01")
        first = datetime(2026, 10, 20, 9, 44, 59, 990000)
        second = datetime(2026, 10, 20, 9, 46, 0, 40000)

        assert _scan(appointment_store, now=first) == []
        _, covered_until = reminder_window(first, 15)
        reminded = scan_for_reminders(
            appointment_store, second, since=covered_until, timezone=TZ, lead_minutes=15,
        )

        assert [a["title"] for a in reminded] == ["Standup"]

    def test_logs_reminder_text(self, appointment_store, caplog):
        appointment_store.insert("alice", "Dentist", "2026-10-20", "14:00", "Bring x-rays")
        caplog.set_level(logging.INFO, logger="calendar_assistant.services.reminders")

        _scan(appointment_store)

        assert 'REMINDER: "Dentist" at 14:00' in caplog.text
        assert "Date: 2026-10-20" in caplog.text
        assert "Details: Bring x-rays" in caplog.text


# ── ReminderScheduler ────────────────────────────────────────────────


class TestReminderScheduler:
    def test_run_once_logs_and_swallows_errors(self, caplog):
        store = MagicMock()
        store.find_unreminded_on.side_effect = RuntimeError("database down")
        scheduler = ReminderScheduler(store)

        assert scheduler.run_once() == []
        assert "Reminder scan failed" in caplog.text

    def test_late_tick_does_not_skip_appointments(self, appointment_store):
        appointment_store.insert("alice", "Standup", "2026-10-20", "10:01")
        ticks = iter([
            datetime(2026, 10, 20, 9, 44, 59, 990000),
            datetime(2026, 10, 20, 9, 44, 59, 990000) + timedelta(seconds=60.05),
        ])
        scheduler = ReminderScheduler(appointment_store, clock=lambda: next(ticks))

        assert scheduler.run_once() == []
        assert [a["title"] for a in scheduler.run_once()] == ["Standup"]

    def test_long_interval_covers_every_minute(self, appointment_store):
        for minute in range(5):
            appointment_store.insert("alice", f"Slot {minute}", "2026-10-20", f"14:0{minute}")
        start = datetime(2026, 10, 20, 13, 45)
        ticks = iter([start, start + timedelta(minutes=5)])
        scheduler = ReminderScheduler(appointment_store, interval_seconds=300, clock=lambda: next(ticks))

        reminded = scheduler.run_once() + scheduler.run_once()

        assert sorted(a["title"] for a in reminded) == [f"Slot {m}" for m in range(5)]

    def test_start_scans_periodically_and_stops(self):
        store = MagicMock()
        store.find_unreminded_on.return_value = []
        scheduler = ReminderScheduler(store, interval_seconds=0.01)

        scheduler.start()
        assert scheduler.running
        deadline = time.monotonic() + 2
        while store.find_unreminded_on.call_count < 2 and time.monotonic() < deadline:
            time.sleep(0.01)
        scheduler.stop()

        assert store.find_unreminded_on.call_count >= 2
        assert not scheduler.running

    def test_start_is_idempotent(self):
        store = MagicMock()
        store.find_unreminded_on.return_value = []
        scheduler = ReminderScheduler(store, interval_seconds=10)

        scheduler.start()
        thread = scheduler._thread
        scheduler.start()
        assert scheduler._thread is thread
        scheduler.stop()
