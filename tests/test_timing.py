"""Tests for the contact timing planner."""

import random
import pytest
from datetime import date, datetime, timedelta, timezone

from dateutil import tz

from outbound_engine.models import CallHours
from outbound_engine.scheduling.timing import (
    is_executive,
    next_contact_time,
    preferred_hour,
    resolve_timezone,
)

MONDAY_MORNING = datetime(2026, 10, 19, 6, 0, tzinfo=timezone.utc)
TUESDAY_NOON = datetime(2026, 10, 20, 12, 0, tzinfo=timezone.utc)
FRIDAY_NOON = datetime(2026, 10, 23, 12, 0, tzinfo=timezone.utc)


class TestRoleHours:
    """Role to hour band mapping."""

    @pytest.mark.parametrize("role", ["CEO", "Chief Revenue Officer", "Co-Founder", "President", "cto"])
    def test_executive_roles(self, role):
        assert is_executive(role)
        assert preferred_hour(role, random.Random(0)) in (8, 16)

    def test_manager_role(self):
        assert not is_executive("Engineering Manager")
        assert preferred_hour("Engineering Manager", random.Random(0)) == 10

    def test_other_roles(self):
        assert preferred_hour("Data Analyst", random.Random(0)) == 14
        assert preferred_hour("", random.Random(0)) == 14

    def test_substring_does_not_make_executive(self):
        assert not is_executive("Director of Procurement")


class TestResolveTimezone:
    def test_known_zone(self):
        assert resolve_timezone("America/New_York") is not None
        assert resolve_timezone("America/New_York") != tz.UTC

    def test_unknown_zone_falls_back_to_utc(self):
        assert resolve_timezone("Mars/Olympus_Mons") == tz.UTC
        assert resolve_timezone(None) == tz.UTC


class TestNextContactTime:
    """Tests for next_contact_time()."""

    def test_skips_monday_in_first_week(self):
        result = next_contact_time("UTC", "Operations Manager", CallHours(), MONDAY_MORNING)

        assert result.date() == date(2026, 10, 20)
        assert result.hour == 10

    def test_contributor_afternoon(self):
        result = next_contact_time("UTC", "Analyst", CallHours(), MONDAY_MORNING)

        assert result.date() == date(2026, 10, 20)
        assert result.hour == 14

    def test_moves_to_next_day_when_slot_has_passed(self):
        afternoon = datetime(2026, 10, 20, 15, 0, tzinfo=timezone.utc)
        result = next_contact_time("UTC", "Operations Manager", CallHours(), afternoon)

        assert result.date() == date(2026, 10, 21)
        assert result.hour == 10

    def test_friday_rolls_to_next_tuesday(self):
        result = next_contact_time("UTC", "Analyst", CallHours(), FRIDAY_NOON)

        assert result.date() == date(2026, 10, 27)
        assert result.weekday() == 1

    def test_hour_clamped_into_call_window(self):
        result = next_contact_time("UTC", "Operations Manager", CallHours(start=12, end=13), MONDAY_MORNING)
        assert result.hour == 12

    def test_local_hour_converted_then_clamped(self):
        # 14:xx in New York is 18:xx UTC, clamped to the window end
        result = next_contact_time("America/New_York", "Analyst", CallHours(start=9, end=17), TUESDAY_NOON)

        assert result.date() == date(2026, 10, 20)
        assert result.hour == 17

    def test_executive_hour_is_clamped(self):
        result = next_contact_time("UTC", "CEO", CallHours(), MONDAY_MORNING)
        assert result.hour in (9, 16)

    def test_same_now_gives_same_instant(self):
        first = next_contact_time("Europe/Berlin", "CFO", CallHours(), TUESDAY_NOON)
        second = next_contact_time("Europe/Berlin", "CFO", CallHours(), TUESDAY_NOON)
        assert first == second

    def test_unknown_timezone_schedules_as_utc(self):
        unknown = next_contact_time("Not/AZone", "Analyst", CallHours(), MONDAY_MORNING, rng=random.Random(7))
        utc = next_contact_time("UTC", "Analyst", CallHours(), MONDAY_MORNING, rng=random.Random(7))
        assert unknown == utc

    @pytest.mark.parametrize("zone", ["UTC", "America/Los_Angeles", "Asia/Tokyo", "Australia/Sydney"])
    @pytest.mark.parametrize("role", ["CEO", "Sales Manager", "Engineer"])
    def test_never_before_now_or_on_weekend(self, zone, role):
        start = datetime(2026, 10, 17, 3, 0, tzinfo=timezone.utc)
        for hours in range(0, 24 * 9, 7):
            now = start + timedelta(hours=hours)
            result = next_contact_time(zone, role, CallHours(), now)

            assert result >= now
            assert result.astimezone(resolve_timezone(zone)).weekday() < 5
            assert result.tzinfo is not None

    def test_naive_now_is_treated_as_utc(self):
        naive = datetime(2026, 10, 19, 6, 0)
        assert next_contact_time("UTC", "Analyst", CallHours(), naive) == \
            next_contact_time("UTC", "Analyst", CallHours(), MONDAY_MORNING)
