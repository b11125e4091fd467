import uuid
from datetime import datetime, timezone

import pytest

from lmsbox.db.schemas import CustomReportRequest
from lmsbox.services import report_builder
from lmsbox.services.report_builder import build_report, engagement_score, to_csv


def _course_row(title, category, status, enrollments, completions, created):
    return {
        "courseId": uuid.uuid4(),
        "title": title,
        "category": category,
        "status": status,
        "createdAt": created,
        "enrollments": enrollments,
        "completions": completions,
        "completionRate": round(completions / enrollments * 100, 2) if enrollments else 0.0,
        "averageProgress": 50.0 if enrollments else 0.0,
        "averageCompletionTime": None,
    }


@pytest.fixture
def course_rows():
    return [
        _course_row("Alpha", "Safety", "published", 4, 2, datetime(2024, 1, 5, tzinfo=timezone.utc)),
        _course_row("Beta", "Safety", "draft", 2, 2, datetime(2024, 2, 5, tzinfo=timezone.utc)),
        _course_row("Gamma", None, "published", 0, 0, datetime(2024, 3, 5, tzinfo=timezone.utc)),
    ]


def test_engagement_score_formula_and_floor():
    assert engagement_score(80.0, 2, 3, 5) == 80 * 0.5 + 2 * 5 + 3 * 10 - 5
    # caps: completions 10, enrollments 5, inactivity 50
    assert engagement_score(100.0, 20, 9, 400) == 50 + 50 + 50 - 50
    assert engagement_score(0.0, 0, 0, 50) == 0.0


def test_unknown_entity_rejected():
    with pytest.raises(ValueError):
        report_builder.definition_for("invoices")


def test_flat_report_defaults_to_newest_first(course_rows):
    report = build_report(course_rows, CustomReportRequest(entity_type="Courses"))
    assert report["entity_type"] == "courses"
    assert [r["title"] for r in report["rows"]] == ["Gamma", "Beta", "Alpha"]
    assert report["total"] == 3
    assert "completionRate" in report["columns"]


def test_group_by_category_aggregates(course_rows):
    request = CustomReportRequest(entity_type="courses", group_by="category", metrics=["enrollments", "completionRate"])
    report = build_report(course_rows, request)
    assert report["columns"] == ["category", "count", "enrollments", "completionRate"]
    by_key = {row["category"]: row for row in report["rows"]}
    assert by_key["Safety"]["count"] == 2
    assert by_key["Safety"]["enrollments"] == 6
    assert by_key["Safety"]["completionRate"] == 75.0
    assert by_key["Uncategorized"]["count"] == 1
    # default group sort is count, descending
    assert report["rows"][0]["category"] == "Safety"


def test_filter_is_case_insensitive(course_rows):
    request = CustomReportRequest(entity_type="courses", filter_by="status", filter_value="PUBLISHED")
    report = build_report(course_rows, request)
    assert sorted(r["title"] for r in report["rows"]) == ["Alpha", "Gamma"]


def test_date_window_and_limit(course_rows):
    request = CustomReportRequest(
        entity_type="courses",
        start_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
        end_date=datetime(2024, 2, 28, tzinfo=timezone.utc),
        sort_by="title",
        sort_descending=False,
        limit=1,
    )
    report = build_report(course_rows, request)
    assert report["total"] == 2
    assert [r["title"] for r in report["rows"]] == ["Alpha"]


def test_none_values_sort_last(course_rows):
    course_rows[0]["averageCompletionTime"] = 3.5
    request = CustomReportRequest(entity_type="courses", sort_by="averageCompletionTime", sort_descending=False)
    report = build_report(course_rows, request)
    assert report["rows"][0]["title"] == "Alpha"
    assert all(r["averageCompletionTime"] is None for r in report["rows"][1:])


@pytest.mark.parametrize(
    "fields",
    [
        {"metrics": ["revenue"]},
        {"group_by": "title"},
        {"filter_by": "nonsense", "filter_value": "x"},
        {"sort_by": "nonsense"},
    ],
)
def test_invalid_request_fields_raise(course_rows, fields):
    with pytest.raises(ValueError):
        build_report(course_rows, CustomReportRequest(entity_type="courses", **fields))


def test_limit_is_validated_and_clamped():
    with pytest.raises(ValueError):
        CustomReportRequest(entity_type="courses", limit=0)
    assert CustomReportRequest(entity_type="courses", limit=50000).limit == 1000


def test_csv_export_has_header_and_blank_nulls(course_rows):
    report = build_report(course_rows, CustomReportRequest(entity_type="courses", metrics=["enrollments"]))
    lines = to_csv(report).strip().splitlines()
    assert lines[0] == "courseId,title,category,status,createdAt,enrollments"
    assert len(lines) == 4
    gamma = [line for line in lines if ",Gamma," in line][0]
    assert ",Gamma,,published," in gamma
    assert "2024-03-05T00:00:00+00:00" in gamma
