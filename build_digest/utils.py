from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from pathlib import Path
from urllib.parse import urlsplit

_FRACTION_RE = re.compile(r"\.(\d+)")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def threshold_from_now(now: datetime, hours: int) -> datetime:
    return now - timedelta(hours=hours)


def to_api_timestamp(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_build_datetime(value: str | None) -> datetime | None:
    """Parse a build server timestamp into an aware UTC datetime.

    The server sends up to seven fractional digits; anything past microseconds
    is dropped before parsing.
    """
    if not value:
        return None
    normalized = value.replace("Z", "+00:00") if value.endswith("Z") else value
    normalized = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), normalized, count=1)
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError as exc:
        raise ValueError(f"Invalid datetime format: {value}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def is_https_redirect(url: str) -> bool:
    """Only redirects that keep credentials on an encrypted channel are allowed."""
    return urlsplit(url).scheme.lower() == "https"


def resolve_path(base_dir: Path, path: str | Path) -> Path:
    candidate = Path(path)
    if candidate.is_absolute():
        return candidate
    return base_dir / candidate
