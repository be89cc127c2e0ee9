"""Aggregate complaint statistics for the staff dashboard."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict, List, Optional

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from extensions import db
from models import Category, Complaint, Update
from utils.errors import AuthRequiredError, error_result

TIME_RANGES: tuple[str, ...] = ("all", "today", "week", "month", "year")
SECONDS_PER_DAY = 86400


def _session(session: Optional[Session]) -> Session:
    return session if session is not None else db.session


def resolve_scope(actor, institution_id: Optional[int] = None) -> Optional[int]:
    """Explicit institution, else the actor's own institution, else global (None)."""
    if institution_id:
        return int(institution_id)
    return getattr(actor, "institution_id", None) or None


def range_start(time_range: Optional[str], now: Optional[datetime] = None) -> Optional[datetime]:
    now = now or datetime.utcnow()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if time_range == "today":
        return midnight
    if time_range == "week":
        return midnight - timedelta(days=midnight.weekday())
    if time_range == "month":
        return midnight.replace(day=1)
    if time_range == "year":
        return midnight.replace(month=1, day=1)
    return None


def _filters(institution_id: Optional[int], since: Optional[datetime]) -> list:
    criteria = []
    if institution_id:
        criteria.append(Complaint.institution_id == institution_id)
    if since is not None:
        criteria.append(Complaint.created_at >= since)
    return criteria


def count_total(sess: Session, criteria: list) -> int:
    return int(sess.query(func.count(Complaint.id)).filter(*criteria).scalar() or 0)


def count_by_status(sess: Session, criteria: list) -> List[Dict]:
    count = func.count(Complaint.id).label("count")
    rows = (
        sess.query(Complaint.status, count)
        .filter(*criteria)
        .group_by(Complaint.status)
        .order_by(count.desc(), Complaint.status)
        .all()
    )
    return [{"status": status, "count": int(total)} for status, total in rows]


def count_by_category(sess: Session, criteria: list, limit: int = 5) -> List[Dict]:
    count = func.count(Complaint.id).label("count")
    rows = (
        sess.query(Category.name, count)
        .select_from(Complaint)
        .join(Category, Complaint.category_id == Category.id)
        .filter(*criteria)
        .group_by(Category.name)
        .order_by(count.desc(), Category.name)
        .limit(limit)
        .all()
    )
    return [{"category": name, "count": int(total)} for name, total in rows]


def count_by_province(sess: Session, criteria: list) -> List[Dict]:
    count = func.count(Complaint.id).label("count")
    rows = (
        sess.query(Complaint.province, count)
        .filter(*criteria)
        .group_by(Complaint.province)
        .order_by(count.desc(), Complaint.province)
        .all()
    )
    return [{"province": province, "count": int(total)} for province, total in rows]


def recent_complaints(sess: Session, criteria: list, limit: int = 10) -> List[Dict]:
    rows = (
        sess.query(Complaint, Category.name.label("category_name"))
        .outerjoin(Category, Complaint.category_id == Category.id)
        .filter(*criteria)
        .order_by(Complaint.created_at.desc(), Complaint.id.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "id": complaint.id,
            "tracking_id": complaint.tracking_id,
            "title": complaint.title,
            "status": complaint.status,
            "priority": complaint.priority,
            "created_at": complaint.created_at,
            "category_name": category_name,
        }
        for complaint, category_name in rows
    ]


def average_resolution_days(sess: Session, criteria: list) -> float:
    """Mean days from creation to the first ``resolved`` update, over currently resolved complaints.

    Resolved complaints without a ``resolved`` update are left out of the mean,
    which is reported in days rounded to two decimals.
    """
    first_resolved = (
        sess.query(
            Update.complaint_id.label("complaint_id"),
            func.min(Update.created_at).label("resolved_at"),
        )
        .filter(Update.status == "resolved")
        .group_by(Update.complaint_id)
        .subquery()
    )
    rows = (
        sess.query(Complaint.created_at, first_resolved.c.resolved_at)
        .join(first_resolved, first_resolved.c.complaint_id == Complaint.id)
        .filter(Complaint.status == "resolved", *criteria)
        .all()
    )
    durations = [
        (resolved_at - created_at).total_seconds() / SECONDS_PER_DAY
        for created_at, resolved_at in rows
        if created_at is not None and resolved_at is not None
    ]
    if not durations:
        return 0.0
    return round(sum(durations) / len(durations), 2)


def get_dashboard_stats(
    actor,
    institution_id: Optional[int] = None,
    time_range: Optional[str] = "all",
    session: Optional[Session] = None,
) -> Dict:
    if actor is None or getattr(actor, "id", None) is None:
        return error_result(AuthRequiredError("You must be logged in to view dashboard statistics"))

    sess = _session(session)
    scope = resolve_scope(actor, institution_id)
    time_range = time_range if time_range in TIME_RANGES else "all"
    criteria = _filters(scope, range_start(time_range))
    top_categories = int(current_app.config.get("DASHBOARD_TOP_CATEGORIES", 5))
    recent_limit = int(current_app.config.get("DASHBOARD_RECENT_LIMIT", 10))

    computations = (
        ("total", lambda: count_total(sess, criteria), 0),
        ("by_status", lambda: count_by_status(sess, criteria), []),
        ("by_category", lambda: count_by_category(sess, criteria, limit=top_categories), []),
        ("by_province", lambda: count_by_province(sess, criteria), []),
        ("recent", lambda: recent_complaints(sess, criteria, limit=recent_limit), []),
        ("avg_resolution_days", lambda: average_resolution_days(sess, criteria), 0.0),
    )

    stats: Dict = {}
    for key, compute, default in computations:
        try:
            stats[key] = compute()
        except SQLAlchemyError:
            current_app.logger.exception("Dashboard query failed", extra={"section": key, "institution_id": scope})
            sess.rollback()
            stats[key] = default

    stats["scope"] = {"institution_id": scope, "time_range": time_range}
    current_app.logger.info(
        "dashboard_stats_compiled",
        extra={"institution_id": scope, "time_range": time_range, "total": stats["total"]},
    )
    return stats
