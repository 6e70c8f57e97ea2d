from __future__ import annotations

import datetime as dt
from unittest.mock import MagicMock, patch

import main
from venuebook.config import Settings
from venuebook.domain import BookingWindow, ExceptionRecord, PackageSchedule, RecurrenceRule, RuleType


def _settings() -> Settings:
    return Settings(api_base_url="https://api.example.test/api", location_id=3, api_token="TEST_TOKEN")


def _args(**overrides):
    values = {"package_id": 7, "date": None, "keep_date": None, "watch": False, "verbose": False}
    values.update(overrides)
    return type("Args", (), values)()


def _client() -> MagicMock:
    client = MagicMock()
    client.fetch_package.return_value = PackageSchedule(
        package_id=7,
        name="Laser Tag",
        rules=(RecurrenceRule(type=RuleType.DAILY),),
        window=BookingWindow(max_days_ahead=3),
    )
    today = dt.date.today()
    client.fetch_day_offs.return_value = [ExceptionRecord(date=today + dt.timedelta(days=1))]
    return client


def test_main_prints_bookable_dates(capsys) -> None:
    client = _client()
    today = dt.date.today()

    with (
        patch("main.load_settings", return_value=_settings()),
        patch("main.ApiClient.from_settings", return_value=client),
        patch("main.argparse.ArgumentParser.parse_args", return_value=_args()),
    ):
        assert main.main() == 0

    client.fetch_package.assert_called_once_with(7)
    client.fetch_day_offs.assert_called_once_with(3)
    out = capsys.readouterr().out.split()
    assert out == [today.isoformat(), (today + dt.timedelta(days=2)).isoformat()]


def test_main_classifies_selected_date(capsys) -> None:
    today = dt.date.today()
    closed = today + dt.timedelta(days=1)

    with (
        patch("main.load_settings", return_value=_settings()),
        patch("main.ApiClient.from_settings", return_value=_client()),
        patch("main.argparse.ArgumentParser.parse_args", return_value=_args(date=closed, keep_date=closed)),
        patch("main.LiveSlotStream") as stream_cls,
    ):
        assert main.main() == 0
        stream_cls.assert_not_called()

    out = capsys.readouterr().out
    assert f"{closed.isoformat()}: full_closure" in out
    # The kept date is listed even though the day is closed.
    assert closed.isoformat() + "\n" in out
