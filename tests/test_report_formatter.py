from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from build_digest.models import BuildReason, BuildRecord, BuildStatus, StatusIcon
from build_digest.report_formatter import (
    ERROR_HTML,
    build_full_html,
    build_report,
    format_build_time,
    render_row,
    render_rows,
    select_scheduled,
    status_icon,
)


class FakeBuildServer:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.requested: list[int] = []

    def query_builds(self, project, definition_filter, *, max_per_definition, min_finish_time):
        return []

    def build_details_url(self, build: BuildRecord) -> Optional[str]:
        if self.fail:
            raise RuntimeError("hyperlink service unavailable")
        self.requested.append(build.id)
        return build.web_url


def _build(
    build_id: int = 1,
    name: str = "Nightly",
    status: BuildStatus = BuildStatus.SUCCEEDED,
    reason: BuildReason = BuildReason.SCHEDULE,
    web_url: Optional[str] = "https://tfs.example.com/build/1",
) -> BuildRecord:
    return BuildRecord(
        id=build_id,
        definition_name=name,
        status=status,
        reason=reason,
        start_time=datetime(2024, 3, 5, 13, 30),
        finish_time=datetime(2024, 3, 5, 14, 7),
        web_url=web_url,
    )


@pytest.mark.parametrize(
    "status,icon",
    [
        (BuildStatus.SUCCEEDED, StatusIcon.SUCCESS),
        (BuildStatus.FAILED, StatusIcon.FAILED),
        (BuildStatus.PARTIALLY_SUCCEEDED, StatusIcon.PARTIALLY),
        (BuildStatus.STOPPED, StatusIcon.STOPPED),
        (BuildStatus.UNKNOWN, StatusIcon.UNKNOWN),
    ],
)
def test_status_icon_mapping(status, icon):
    assert status_icon(status) is icon


def test_status_icon_placeholders():
    assert StatusIcon.SUCCESS.placeholder == "cid:picOK"
    assert StatusIcon.FAILED.placeholder == "cid:picNotOK"
    assert StatusIcon.PARTIALLY.placeholder == "cid:picPartially"
    assert StatusIcon.STOPPED.placeholder == "cid:picStopped"
    assert StatusIcon.UNKNOWN.placeholder == "cid:picUnknown"


def test_format_build_time():
    assert format_build_time(datetime(2024, 3, 5, 14, 7, 0)) == "05.Mar.2024 14:07"
    assert format_build_time(None) == ""


def test_format_build_time_converts_aware_datetimes():
    cet = timezone(timedelta(hours=1))
    dt = datetime(2024, 12, 31, 23, 30, tzinfo=timezone.utc)
    assert format_build_time(dt, cet) == "01.Jan.2025 00:30"


def test_select_scheduled_keeps_order_and_drops_manual():
    builds = [
        _build(1, reason=BuildReason.SCHEDULE_FORCED),
        _build(2, reason=BuildReason.MANUAL),
        _build(3, reason=BuildReason.SCHEDULE),
        _build(4, reason=BuildReason.OTHER),
    ]
    assert [b.id for b in select_scheduled(builds)] == [1, 3]


def test_render_row_contains_all_fields():
    row = render_row(_build(name="Release <x64>", status=BuildStatus.FAILED), "https://tfs.example.com/build/1")
    assert 'src="cid:picNotOK"' in row
    assert "Release &lt;x64&gt;" in row
    assert "05.Mar.2024 13:30" in row
    assert "05.Mar.2024 14:07" in row
    assert 'href="https://tfs.example.com/build/1"' in row


def test_render_row_without_details_url_keeps_empty_link():
    row = render_row(_build(), None)
    assert 'href=""' in row


def test_render_rows_only_non_scheduled_builds_yields_error_page():
    server = FakeBuildServer()
    builds = [_build(1, reason=BuildReason.MANUAL), _build(2, reason=BuildReason.OTHER)]
    assert render_rows(builds, server) == ""
    assert build_report(builds, server) == ERROR_HTML
    assert server.requested == []


def test_build_full_html_whitespace_fragment_is_error_page():
    assert build_full_html("") == ERROR_HTML
    assert build_full_html("  \n\t") == ERROR_HTML


def test_build_full_html_wraps_fragment():
    html = build_full_html("<p>row</p>", page_id="abc")
    assert html.startswith("<html>")
    assert "<title>Page-abc</title>" in html
    assert "Nightly build status" in html
    assert "<td><p>row</p></td>" in html
    assert html.count("<tr") == 1


def test_build_full_html_generates_unique_titles():
    assert build_full_html("<p>row</p>") != build_full_html("<p>row</p>")


def test_build_report_concatenates_rows_in_query_order():
    server = FakeBuildServer()
    builds = [
        _build(1, name="First", status=BuildStatus.SUCCEEDED),
        _build(2, name="Manual", reason=BuildReason.MANUAL),
        _build(3, name="Second", status=BuildStatus.STOPPED),
    ]
    html = build_report(builds, server)
    assert html.index("First") < html.index("Second")
    assert "Manual" not in html
    assert "cid:picOK" in html
    assert "cid:picStopped" in html
    assert server.requested == [1, 3]


def test_build_report_propagates_hyperlink_failures():
    with pytest.raises(RuntimeError):
        build_report([_build()], FakeBuildServer(fail=True))
