"""
Custom report builder.

Rows for one organization are fetched once and turned into plain dicts; the
builder then filters, groups, aggregates, sorts and limits them in memory.
Unknown entity types, metrics, group-by keys, filter fields or sort keys raise
ValueError so the router can answer 422.
"""
from __future__ import annotations

import csv
import io
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from lmsbox.db import models

logger = logging.getLogger(__name__)

SUM = "sum"
MEAN = "mean"
MAX = "max"


@dataclass(frozen=True)
class EntityDefinition:
    dimensions: tuple
    metrics: Dict[str, str]  # metric name -> aggregation used when grouping
    group_by: Dict[str, Callable[[Dict[str, Any]], Any]]
    default_sort: str


def _month(value: Optional[datetime]) -> Optional[str]:
    return value.strftime("%Y-%m") if value else None


ENTITIES: Dict[str, EntityDefinition] = {
    "users": EntityDefinition(
        dimensions=("userId", "email", "name", "role", "status", "createdAt"),
        metrics={
            "enrollments": SUM,
            "completions": SUM,
            "averageProgress": MEAN,
            "engagementScore": MEAN,
            "lastActivity": MAX,
        },
        group_by={
            "status": lambda row: row.get("status"),
            "createdAt": lambda row: _month(row.get("createdAt")),
        },
        default_sort="createdAt",
    ),
    "courses": EntityDefinition(
        dimensions=("courseId", "title", "category", "status", "createdAt"),
        metrics={
            "enrollments": SUM,
            "completions": SUM,
            "completionRate": MEAN,
            "averageProgress": MEAN,
            "averageCompletionTime": MEAN,
        },
        group_by={
            "category": lambda row: row.get("category") or "Uncategorized",
            "status": lambda row: row.get("status"),
            "createdAt": lambda row: _month(row.get("createdAt")),
        },
        default_sort="createdAt",
    ),
    "pathways": EntityDefinition(
        dimensions=("pathwayId", "title", "category", "isActive", "createdAt"),
        metrics={
            "enrollments": SUM,
            "completions": SUM,
            "completionRate": MEAN,
            "averageProgress": MEAN,
        },
        group_by={
            "isActive": lambda row: row.get("isActive"),
            "category": lambda row: row.get("category") or "Uncategorized",
        },
        default_sort="createdAt",
    ),
    "progress": EntityDefinition(
        dimensions=("userId", "email", "courseId", "courseTitle", "completed", "createdAt"),
        metrics={
            "progressPercent": MEAN,
            "timeToComplete": MEAN,
        },
        group_by={
            "completed": lambda row: row.get("completed"),
            "courseTitle": lambda row: row.get("courseTitle"),
        },
        default_sort="createdAt",
    ),
}


def engagement_score(avg_progress: float, completions: int, enrollments: int, days_inactive: int) -> float:
    score = (
        avg_progress * 0.5
        + min(completions, 10) * 5
        + min(enrollments, 5) * 10
        - min(days_inactive, 50)
    )
    return round(max(score, 0.0), 2)


def _days_between(start: Optional[datetime], end: Optional[datetime]) -> Optional[float]:
    if not start or not end:
        return None
    return round((models.ensure_aware(end) - models.ensure_aware(start)).total_seconds() / 86400, 2)


def _mean(values: Iterable[Optional[float]]) -> Optional[float]:
    present = [v for v in values if v is not None]
    if not present:
        return None
    return round(sum(present) / len(present), 2)


# Row fetching


def _course_rows_for_org(db: Session, organization_id: uuid.UUID) -> List[models.LearnerProgress]:
    return (
        db.query(models.LearnerProgress)
        .join(models.Course, models.Course.id == models.LearnerProgress.course_id)
        .filter(models.Course.organization_id == organization_id, models.LearnerProgress.lesson_id.is_(None))
        .all()
    )


def _user_rows(db: Session, organization_id: uuid.UUID, now: datetime) -> List[Dict[str, Any]]:
    members = (
        db.query(models.OrganizationMembership, models.User)
        .join(models.User, models.User.id == models.OrganizationMembership.user_id)
        .filter(models.OrganizationMembership.organization_id == organization_id)
        .all()
    )
    by_user: Dict[uuid.UUID, List[models.LearnerProgress]] = {}
    for row in _course_rows_for_org(db, organization_id):
        by_user.setdefault(row.user_id, []).append(row)

    rows = []
    for membership, user in members:
        progress = by_user.get(user.id, [])
        enrollments = len(progress)
        completions = sum(1 for p in progress if p.completed)
        avg_progress = _mean(p.progress_percent for p in progress) or 0.0
        activity = [
            models.ensure_aware(value)
            for p in progress
            for value in (p.last_accessed_at, p.completed_at, p.created_at)
            if value is not None
        ]
        if user.last_login_at:
            activity.append(models.ensure_aware(user.last_login_at))
        last_activity = max(activity) if activity else None
        # Never active counts as fully inactive
        days_inactive = (now - last_activity).days if last_activity else 50
        rows.append(
            {
                "userId": user.id,
                "email": user.email,
                "name": user.full_name,
                "role": membership.role,
                "status": user.active_status,
                "createdAt": models.ensure_aware(user.created_at),
                "enrollments": enrollments,
                "completions": completions,
                "averageProgress": avg_progress,
                "engagementScore": engagement_score(avg_progress, completions, enrollments, days_inactive),
                "lastActivity": last_activity,
            }
        )
    return rows


def _course_rows(db: Session, organization_id: uuid.UUID) -> List[Dict[str, Any]]:
    courses = db.query(models.Course).filter(models.Course.organization_id == organization_id).all()
    by_course: Dict[uuid.UUID, List[models.LearnerProgress]] = {}
    for row in _course_rows_for_org(db, organization_id):
        by_course.setdefault(row.course_id, []).append(row)
    rows = []
    for course in courses:
        progress = by_course.get(course.id, [])
        enrollments = len(progress)
        completed = [p for p in progress if p.completed]
        rows.append(
            {
                "courseId": course.id,
                "title": course.title,
                "category": course.category,
                "status": course.status,
                "createdAt": models.ensure_aware(course.created_at),
                "enrollments": enrollments,
                "completions": len(completed),
                "completionRate": round(len(completed) / enrollments * 100, 2) if enrollments else 0.0,
                "averageProgress": _mean(p.progress_percent for p in progress) or 0.0,
                "averageCompletionTime": _mean(_days_between(p.created_at, p.completed_at) for p in completed),
            }
        )
    return rows


def _pathway_rows(db: Session, organization_id: uuid.UUID) -> List[Dict[str, Any]]:
    pathways = (
        db.query(models.LearningPathway).filter(models.LearningPathway.organization_id == organization_id).all()
    )
    ids = [p.id for p in pathways]
    by_pathway: Dict[uuid.UUID, List[models.LearnerPathwayProgress]] = {}
    if ids:
        for row in (
            db.query(models.LearnerPathwayProgress)
            .filter(models.LearnerPathwayProgress.pathway_id.in_(ids))
            .all()
        ):
            by_pathway.setdefault(row.pathway_id, []).append(row)
    rows = []
    for pathway in pathways:
        progress = by_pathway.get(pathway.id, [])
        enrollments = len(progress)
        completions = sum(1 for p in progress if p.is_completed)
        rows.append(
            {
                "pathwayId": pathway.id,
                "title": pathway.title,
                "category": pathway.category,
                "isActive": bool(pathway.is_active),
                "createdAt": models.ensure_aware(pathway.created_at),
                "enrollments": enrollments,
                "completions": completions,
                "completionRate": round(completions / enrollments * 100, 2) if enrollments else 0.0,
                "averageProgress": _mean(p.progress_percent for p in progress) or 0.0,
            }
        )
    return rows


def _progress_rows(db: Session, organization_id: uuid.UUID) -> List[Dict[str, Any]]:
    results = (
        db.query(models.LearnerProgress, models.User, models.Course)
        .join(models.User, models.User.id == models.LearnerProgress.user_id)
        .join(models.Course, models.Course.id == models.LearnerProgress.course_id)
        .filter(models.Course.organization_id == organization_id, models.LearnerProgress.lesson_id.is_(None))
        .all()
    )
    return [
        {
            "userId": user.id,
            "email": user.email,
            "courseId": course.id,
            "courseTitle": course.title,
            "completed": bool(progress.completed),
            "createdAt": models.ensure_aware(progress.created_at),
            "progressPercent": progress.progress_percent,
            "timeToComplete": _days_between(progress.created_at, progress.completed_at) if progress.completed else None,
        }
        for progress, user, course in results
    ]


_FETCHERS = {
    "users": lambda db, org_id, now: _user_rows(db, org_id, now),
    "courses": lambda db, org_id, now: _course_rows(db, org_id),
    "pathways": lambda db, org_id, now: _pathway_rows(db, org_id),
    "progress": lambda db, org_id, now: _progress_rows(db, org_id),
}


def fetch_rows(db: Session, entity_type: str, organization_id: uuid.UUID, *, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    definition_for(entity_type)
    return _FETCHERS[entity_type](db, organization_id, now or models.now_utc())


# In-memory processing


def definition_for(entity_type: str) -> EntityDefinition:
    try:
        return ENTITIES[entity_type]
    except KeyError:
        raise ValueError(f"Unknown entity_type '{entity_type}'. Allowed: {sorted(ENTITIES)}") from None


def _matches(value: Any, expected: str) -> bool:
    if value is None:
        return expected.strip().lower() in ("", "none", "null")
    if isinstance(value, bool):
        return str(value).lower() == expected.strip().lower()
    return str(value).strip().lower() == expected.strip().lower()


def _aggregate(rows: List[Dict[str, Any]], metric: str, kind: str) -> Any:
    values = [row.get(metric) for row in rows]
    if kind == SUM:
        return sum(v or 0 for v in values)
    if kind == MAX:
        present = [v for v in values if v is not None]
        return max(present) if present else None
    return _mean(values)


def _sort(rows: List[Dict[str, Any]], key: str, descending: bool) -> List[Dict[str, Any]]:
    present = [row for row in rows if row.get(key) is not None]
    missing = [row for row in rows if row.get(key) is None]
    present.sort(key=lambda row: row[key], reverse=descending)
    # Empty values always go last
    return present + missing


def build_report(rows: List[Dict[str, Any]], request) -> Dict[str, Any]:
    """Apply the request to fetched rows; returns {entity_type, columns, rows, total}."""
    definition = definition_for(request.entity_type)
    metrics = list(dict.fromkeys(request.metrics or definition.metrics.keys()))
    unknown = [m for m in metrics if m not in definition.metrics]
    if unknown:
        raise ValueError(f"Unknown metrics for {request.entity_type}: {unknown}")
    if request.group_by and request.group_by not in definition.group_by:
        raise ValueError(f"Cannot group {request.entity_type} by '{request.group_by}'")
    if request.filter_by and request.filter_by not in definition.dimensions:
        raise ValueError(f"Cannot filter {request.entity_type} by '{request.filter_by}'")

    selected = rows
    if request.start_date or request.end_date:
        start = models.ensure_aware(request.start_date)
        end = models.ensure_aware(request.end_date)
        selected = [
            row
            for row in selected
            if row.get("createdAt") is not None
            and (start is None or row["createdAt"] >= start)
            and (end is None or row["createdAt"] <= end)
        ]
    if request.filter_by and request.filter_value is not None:
        selected = [row for row in selected if _matches(row.get(request.filter_by), request.filter_value)]

    if request.group_by:
        key_fn = definition.group_by[request.group_by]
        groups: Dict[Any, List[Dict[str, Any]]] = {}
        for row in selected:
            groups.setdefault(key_fn(row), []).append(row)
        columns = [request.group_by, "count"] + metrics
        output = []
        for key, members in groups.items():
            entry = {request.group_by: key, "count": len(members)}
            for metric in metrics:
                entry[metric] = _aggregate(members, metric, definition.metrics[metric])
            output.append(entry)
        default_sort = "count"
    else:
        columns = list(definition.dimensions) + metrics
        output = [{column: row.get(column) for column in columns} for row in selected]
        default_sort = definition.default_sort

    sort_by = request.sort_by or default_sort
    if sort_by not in columns:
        raise ValueError(f"Cannot sort by '{sort_by}'. Available: {columns}")
    output = _sort(output, sort_by, request.sort_descending)
    total = len(output)
    logger.info("Custom %s report: %d rows (%d before limit)", request.entity_type, min(total, request.limit), total)
    return {
        "entity_type": request.entity_type,
        "columns": columns,
        "rows": output[: request.limit],
        "total": total,
    }


def to_csv(report: Dict[str, Any]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf)
    columns = report["columns"]
    writer.writerow(columns)
    for row in report["rows"]:
        values = []
        for column in columns:
            value = row.get(column)
            if isinstance(value, datetime):
                value = value.isoformat()
            values.append("" if value is None else value)
        writer.writerow(values)
    return buf.getvalue()
