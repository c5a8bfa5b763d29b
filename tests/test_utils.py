from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

from build_digest.utils import (
    is_https_redirect,
    parse_build_datetime,
    resolve_path,
    threshold_from_now,
    to_api_timestamp,
)


def test_parse_build_datetime_handles_seven_fraction_digits():
    parsed = parse_build_datetime("2024-03-05T14:07:00.1234567Z")
    assert parsed == datetime(2024, 3, 5, 14, 7, 0, 123456, tzinfo=timezone.utc)


def test_parse_build_datetime_handles_missing_values():
    assert parse_build_datetime(None) is None
    assert parse_build_datetime("") is None


def test_threshold_and_api_timestamp():
    now = datetime(2024, 3, 5, 14, 7, tzinfo=timezone.utc)
    threshold = threshold_from_now(now, 24)
    assert threshold == now - timedelta(days=1)
    assert to_api_timestamp(threshold) == "2024-03-04T14:07:00Z"


def test_is_https_redirect():
    assert is_https_redirect("https://autodiscover.example.com/x")
    assert is_https_redirect("HTTPS://example.com")
    assert not is_https_redirect("http://example.com")
    assert not is_https_redirect("ftp://example.com")


def test_resolve_path_keeps_absolute_paths(tmp_path):
    assert resolve_path(tmp_path, "a.png") == tmp_path / "a.png"
    absolute = tmp_path / "abs.png"
    assert resolve_path(Path("/elsewhere"), absolute) == absolute
