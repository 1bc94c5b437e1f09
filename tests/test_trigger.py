"""Tests for trigger evaluation and delivery-time parsing."""

from datetime import datetime, time, timedelta, timezone

import pytest

from models import DeliveryRecord
from trigger import is_due, normalize_delivery_time, parse_delivery_time, resolve_zone

from conftest import FakeRepository, make_config


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def record(config_id: int, at: datetime) -> DeliveryRecord:
    return DeliveryRecord(config_id=config_id, delivered_at=at, summary="text", item_count=3)


class TestParseDeliveryTime:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("08:00", time(8, 0)),
            ("23:59", time(23, 59)),
            ("08:00:45", time(8, 0)),
            ("2024-01-01T08:30:00", time(8, 30)),
            ("2024-01-01T08:30:00+02:00", time(8, 30)),
            ("0000-01-01T09:15:00Z", time(9, 15)),
            (" 07:05 ", time(7, 5)),
            (time(6, 45, 30), time(6, 45)),
        ],
    )
    def test_accepted_encodings(self, value, expected):
        assert parse_delivery_time(value) == expected

    @pytest.mark.parametrize("value", ["", None, "eight", "25:00", "T99:99", "8 o'clock"])
    def test_unparseable(self, value):
        assert parse_delivery_time(value) is None

    def test_normalize_to_canonical(self):
        assert normalize_delivery_time("08:00:00") == "08:00"
        assert normalize_delivery_time("2024-01-01T18:05:00Z") == "18:05"

    def test_normalize_rejects_garbage(self):
        with pytest.raises(ValueError):
            normalize_delivery_time("soon")


class TestResolveZone:
    def test_known_zone(self):
        assert resolve_zone("Europe/Berlin").key == "Europe/Berlin"

    def test_unknown_zone_falls_back(self):
        assert resolve_zone("Mars/Olympus_Mons").key == "UTC"

    def test_unknown_zone_uses_given_default(self):
        assert resolve_zone("Not/AZone", default="America/New_York").key == "America/New_York"


class TestDaily:
    def test_due_then_suppressed_same_day(self):
        repo = FakeRepository()
        config = make_config()
        now = utc(2024, 3, 5, 8, 0)

        assert is_due(config, now, repo) is True
        repo.records.append(record(config.id, now))
        assert is_due(config, now, repo) is False

    def test_due_again_next_day(self):
        repo = FakeRepository()
        config = make_config()
        repo.records.append(record(config.id, utc(2024, 3, 5, 8, 0)))

        assert is_due(config, utc(2024, 3, 6, 8, 0), repo) is True

    def test_minute_must_match_exactly(self):
        repo = FakeRepository()
        config = make_config(delivery_time="08:00")

        assert is_due(config, utc(2024, 3, 5, 7, 59), repo) is False
        assert is_due(config, utc(2024, 3, 5, 8, 1), repo) is False
        assert is_due(config, utc(2024, 3, 5, 8, 0, 59), repo) is True

    def test_naive_now_taken_as_utc(self):
        config = make_config()
        assert is_due(config, datetime(2024, 3, 5, 8, 0), FakeRepository()) is True

    def test_failed_record_does_not_suppress(self):
        repo = FakeRepository()
        config = make_config()
        failed = record(config.id, utc(2024, 3, 5, 8, 0))
        failed.success = False
        repo.records.append(failed)

        assert is_due(config, utc(2024, 3, 5, 8, 0), repo) is True


class TestTimezones:
    def test_delivery_time_in_local_zone(self):
        # 08:00 in Berlin (CET, UTC+1) is 07:00 UTC in January
        config = make_config(timezone="Europe/Berlin")
        repo = FakeRepository()

        assert is_due(config, utc(2024, 1, 10, 7, 0), repo) is True
        assert is_due(config, utc(2024, 1, 10, 8, 0), repo) is False

    def test_daylight_saving_offset(self):
        # CEST in July is UTC+2
        config = make_config(timezone="Europe/Berlin")
        assert is_due(config, utc(2024, 7, 10, 6, 0), FakeRepository()) is True

    def test_local_date_used_for_suppression(self):
        # Delivered 23:30 local on Jan 9 (Jan 10 04:30 UTC); next local day is still due
        config = make_config(timezone="America/New_York", delivery_time="23:30")
        repo = FakeRepository()
        repo.records.append(record(config.id, utc(2024, 1, 10, 4, 30)))

        assert is_due(config, utc(2024, 1, 11, 4, 30), repo) is True
        assert is_due(config, utc(2024, 1, 10, 4, 30), repo) is False

    def test_unknown_timezone_uses_default(self):
        config = make_config(timezone="Invalid/Zone")
        assert is_due(config, utc(2024, 1, 10, 8, 0), FakeRepository()) is True

    def test_unknown_timezone_uses_configured_default(self):
        config = make_config(timezone="Invalid/Zone")
        # 08:00 in Tokyo is 23:00 UTC the previous day
        assert is_due(config, utc(2024, 1, 9, 23, 0), FakeRepository(), default_timezone="Asia/Tokyo") is True


class TestWeekly:
    def test_only_on_monday(self):
        config = make_config(frequency="weekly")
        repo = FakeRepository()
        monday = utc(2024, 1, 8, 8, 0)

        assert is_due(config, monday, repo) is True
        for offset in range(1, 7):
            assert is_due(config, monday + timedelta(days=offset), repo) is False

    def test_once_per_iso_week(self):
        config = make_config(frequency="weekly")
        repo = FakeRepository()
        monday = utc(2024, 1, 8, 8, 0)
        repo.records.append(record(config.id, monday))

        assert is_due(config, monday, repo) is False
        assert is_due(config, monday + timedelta(days=7), repo) is True

    def test_iso_week_across_year_boundary(self):
        # 2024-12-30 is Monday of ISO week 1 of 2025; a record from week 52 of 2024 does not suppress it
        config = make_config(frequency="weekly")
        repo = FakeRepository()
        repo.records.append(record(config.id, utc(2024, 12, 23, 8, 0)))

        assert is_due(config, utc(2024, 12, 30, 8, 0), repo) is True


class TestMonthly:
    def test_only_on_first_day(self):
        config = make_config(frequency="monthly")
        repo = FakeRepository()

        assert is_due(config, utc(2024, 2, 1, 8, 0), repo) is True
        assert is_due(config, utc(2024, 2, 2, 8, 0), repo) is False
        assert is_due(config, utc(2024, 2, 15, 8, 0), repo) is False

    def test_once_per_month(self):
        config = make_config(frequency="monthly")
        repo = FakeRepository()
        repo.records.append(record(config.id, utc(2024, 2, 1, 8, 0)))

        assert is_due(config, utc(2024, 2, 1, 8, 0), repo) is False
        assert is_due(config, utc(2024, 3, 1, 8, 0), repo) is True

    def test_same_month_previous_year_does_not_suppress(self):
        config = make_config(frequency="monthly")
        repo = FakeRepository()
        repo.records.append(record(config.id, utc(2023, 2, 1, 8, 0)))

        assert is_due(config, utc(2024, 2, 1, 8, 0), repo) is True


class TestConfigurationDataErrors:
    def test_unknown_frequency_never_due(self):
        config = make_config(frequency="hourly")
        assert is_due(config, utc(2024, 1, 1, 8, 0), FakeRepository()) is False

    def test_unparseable_delivery_time_never_due(self):
        config = make_config(delivery_time="breakfast")
        assert is_due(config, utc(2024, 1, 1, 8, 0), FakeRepository()) is False

    def test_legacy_time_encodings(self):
        repo = FakeRepository()
        now = utc(2024, 1, 1, 8, 0)
        for value in ("08:00:00", "0000-01-01T08:00:00Z", "2023-06-01T08:00:00"):
            assert is_due(make_config(delivery_time=value), now, repo) is True


class TestHistoryFailure:
    def test_history_error_fails_open(self):
        repo = FakeRepository()
        repo.fail_history = True
        assert is_due(make_config(), utc(2024, 1, 1, 8, 0), repo) is True

    def test_history_not_read_outside_window(self):
        repo = FakeRepository()
        repo.fail_history = True
        assert is_due(make_config(), utc(2024, 1, 1, 9, 0), repo) is False


class TestEndToEndScenario:
    def test_daily_utc_scenario(self):
        repo = FakeRepository()
        config = make_config(frequency="daily", delivery_time="08:00", timezone="UTC")

        first = utc(2024, 1, 1, 8, 0)
        assert is_due(config, first, repo) is True
        repo.records.append(record(config.id, first))

        assert is_due(config, utc(2024, 1, 1, 8, 1), repo) is False
        assert is_due(config, first, repo) is False
        assert is_due(config, utc(2024, 1, 2, 8, 0), repo) is True
