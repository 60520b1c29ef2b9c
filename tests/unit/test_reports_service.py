"""Tests for period report generation."""

from __future__ import annotations

import json
from datetime import UTC, datetime

import pytest

from mapdiary.errors import DocumentNotFoundError
from mapdiary.maps.models import MapType
from mapdiary.maps.service import MapsService
from mapdiary.observability.telemetry import get_counter
from mapdiary.reports.periods import last_week
from mapdiary.reports.service import ENTRY_SEPARATOR, ReportsService

NOW = datetime(2024, 8, 15, 12, 0, tzinfo=UTC)

REPORT_JSON = json.dumps(
    {
        "chronological": "Wednesday: long walk.",
        "thematic": "Movement.",
        "summary": "An active week.",
        "emotion": "🚶",
    }
)


@pytest.fixture
def maps(graph_store, gateway):
    return MapsService(graph_store, gateway)


@pytest.fixture
def service(graph_store, gateway, maps):
    return ReportsService(graph_store, gateway, maps)


def write_note(maps, clock, when, title, content):
    clock.set(when)
    doc = maps.create_map(title, MapType.NOTE)
    maps.update_content(doc.id, content)
    return maps.get_map(doc.id)


def test_no_maps_generates_nothing(service, backend):
    assert service.check_and_generate(now=NOW) == []
    assert backend.calls == []


def test_last_week_report_is_generated_once(service, maps, clock, backend):
    write_note(maps, clock, datetime(2024, 8, 7, 9, tzinfo=UTC), "Wed", "long walk")
    backend.queue(REPORT_JSON)

    generated = service.check_and_generate(now=NOW)

    assert [r.period_id for r in generated] == ["2024-W32"]
    report = generated[0]
    assert report.type == "weekly"
    assert report.period_display == "2024년 8월 1주차"
    assert report.summary == "An active week."
    assert not report.in_progress
    assert "long walk" in backend.prompts[0]
    assert get_counter("reports.generated") == 1

    assert service.check_and_generate(now=NOW) == []
    assert len(backend.calls) == 1
    assert [r.period_id for r in service.list_reports()] == ["2024-W32"]


def test_all_due_periods_in_order(service, maps, clock, backend):
    write_note(maps, clock, datetime(2024, 7, 20, 9, tzinfo=UTC), "July", "beach-day")
    write_note(maps, clock, datetime(2024, 8, 6, 9, tzinfo=UTC), "Last week", "office-day")
    write_note(maps, clock, datetime(2024, 8, 13, 9, tzinfo=UTC), "This week", "sofa-day")
    backend.queue(REPORT_JSON, REPORT_JSON, REPORT_JSON)

    generated = service.check_and_generate(now=NOW)

    assert [r.period_id for r in generated] == ["2024-W32", "2024-M07", "2024-W33-IP"]
    assert generated[2].in_progress
    assert "beach-day" in backend.prompts[1]
    assert "office-day" not in backend.prompts[1]
    assert "sofa-day" in backend.prompts[2]


def test_failed_generation_is_retried_on_next_check(service, maps, clock, backend):
    write_note(maps, clock, datetime(2024, 8, 7, 9, tzinfo=UTC), "Wed", "long walk")
    backend.queue("not json")

    assert service.check_and_generate(now=NOW) == []
    assert get_counter("reports.generate.failed") == 1
    assert service.list_reports() == []

    backend.queue(REPORT_JSON)
    assert [r.period_id for r in service.check_and_generate(now=NOW)] == ["2024-W32"]


def test_maps_without_content_are_skipped(service, maps, clock, backend):
    clock.set(datetime(2024, 8, 7, 9, tzinfo=UTC))
    maps.create_map("Empty note", MapType.NOTE)

    assert service.generate_for_period(last_week(NOW)) is None
    assert backend.calls == []


def test_period_markdown_joins_entries(service, maps, clock):
    first = write_note(maps, clock, datetime(2024, 8, 6, 9, tzinfo=UTC), "Tue", "one")
    second = write_note(maps, clock, datetime(2024, 8, 7, 9, tzinfo=UTC), "Wed", "two")

    markdown = service.build_period_markdown([first, second])

    assert markdown == f"# Tue\n\none{ENTRY_SEPARATOR}# Wed\n\ntwo"


def test_maps_in_period_uses_created_at(service, maps, clock):
    inside = write_note(maps, clock, datetime(2024, 8, 11, 23, 0, tzinfo=UTC), "Sun", "x")
    write_note(maps, clock, datetime(2024, 8, 12, 1, 0, tzinfo=UTC), "Mon", "y")
    # Editing later does not move a map out of its period.
    clock.set(datetime(2024, 8, 14, tzinfo=UTC))
    maps.update_content(inside.id, "edited")

    assert [m.id for m in service.maps_in_period(last_week(NOW))] == [inside.id]


def test_delete_report(service, maps, clock, backend):
    write_note(maps, clock, datetime(2024, 8, 7, 9, tzinfo=UTC), "Wed", "walk")
    backend.queue(REPORT_JSON)
    report = service.check_and_generate(now=NOW)[0]

    service.delete_report(report.id)

    assert service.list_reports() == []
    with pytest.raises(DocumentNotFoundError):
        service.delete_report(report.id)
