from __future__ import annotations

import html
import uuid
from datetime import datetime, tzinfo
from typing import Iterable, List, Optional

from .build_client import BuildServer
from .models import BuildRecord, BuildStatus, StatusIcon

ERROR_HTML = "<html><body>Error: can not create the eMail HTML-Body</body></html>"

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

ROW_TEMPLATE = """<table border="0" cellpadding="4" cellspacing="0" style="font-family: Segoe UI, Arial, sans-serif; font-size: small;">
<tr valign="middle">
<td rowspan="3"><img src="{icon}" alt="" width="32" height="32" /></td>
<td colspan="2"><strong>{name}</strong></td>
</tr>
<tr><td>Started:</td><td>{start}</td></tr>
<tr><td>Finished:</td><td>{finish} &nbsp; <a href="{details_url}">Details</a></td></tr>
</table>
<br>"""


def status_icon(status: BuildStatus) -> StatusIcon:
    if status is BuildStatus.SUCCEEDED:
        return StatusIcon.SUCCESS
    if status is BuildStatus.FAILED:
        return StatusIcon.FAILED
    if status is BuildStatus.PARTIALLY_SUCCEEDED:
        return StatusIcon.PARTIALLY
    if status is BuildStatus.STOPPED:
        return StatusIcon.STOPPED
    return StatusIcon.UNKNOWN


def select_scheduled(builds: Iterable[BuildRecord]) -> List[BuildRecord]:
    return [build for build in builds if build.reason.is_scheduled]


def format_build_time(dt: Optional[datetime], tz: Optional[tzinfo] = None) -> str:
    """Render ``dd.Mon.yyyy HH:mm`` with English month names.

    Aware datetimes are shown in ``tz`` (host local zone when omitted);
    naive datetimes are shown as given.
    """
    if dt is None:
        return ""
    if dt.tzinfo is not None:
        dt = dt.astimezone(tz)
    return f"{dt.day:02d}.{_MONTHS[dt.month - 1]}.{dt.year:04d} {dt.hour:02d}:{dt.minute:02d}"


def render_row(build: BuildRecord, details_url: Optional[str], tz: Optional[tzinfo] = None) -> str:
    return ROW_TEMPLATE.format(
        icon=status_icon(build.status).placeholder,
        name=html.escape(build.definition_name),
        start=format_build_time(build.start_time, tz),
        finish=format_build_time(build.finish_time, tz),
        details_url=html.escape(details_url or "", quote=True),
    )


def render_rows(builds: Iterable[BuildRecord], server: BuildServer, tz: Optional[tzinfo] = None) -> str:
    rows = []
    for build in select_scheduled(builds):
        rows.append(render_row(build, server.build_details_url(build), tz))
    return "".join(rows)


def build_full_html(fragment: str, page_id: Optional[str] = None) -> str:
    if not fragment or not fragment.strip():
        return ERROR_HTML

    parts = [
        "<html>",
        "<head>",
        f"<title>Page-{page_id or uuid.uuid4()}</title>",
        "</head>",
        "<body>",
        '<span style="color: #0000ff"><span style="font-size: 24px"><strong>Nightly build status</strong></span></span> <br> <br>',
        '<table border="1px" cellpadding="5" cellspacing="0" style="border: solid 1px Black; font-size: small;">',
        '<tr align="left" valign="top">',
        f"<td>{fragment}</td>",
        "</tr>",
        "</table>",
        "<br><br><br>",
        "</body>",
        "</html>",
    ]
    return "".join(parts)


def build_report(builds: Iterable[BuildRecord], server: BuildServer, tz: Optional[tzinfo] = None) -> str:
    return build_full_html(render_rows(builds, server, tz))
