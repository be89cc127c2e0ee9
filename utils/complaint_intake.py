"""Complaint intake: required-field validation, institution routing, and persistence."""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Mapping, Optional

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from extensions import db
from models import COMPLAINT_PRIORITIES, Attachment, Complaint, Institution, Update
from utils.attachments import collect_uploads, describe_uploads
from utils.errors import PersistenceError, ValidationError, error_result
from utils.tracking import generate_tracking_id

REQUIRED_FIELDS: tuple[str, ...] = (
    "title",
    "description",
    "category",
    "location",
    "priority",
    "province",
    "district",
)

INTAKE_COMMENT = "Complaint received and logged in the system."
TRUTHY_FLAGS = {"true", "on", "1", "yes"}


def _session(session: Optional[Session]) -> Session:
    return session if session is not None else db.session


def _text(form: Mapping, key: str) -> str:
    value = form.get(key)
    if value is None:
        return ""
    return str(value).strip()


def _optional_int(value: str) -> Optional[int]:
    if not value:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_submission(form: Mapping) -> Dict:
    """Normalize raw form fields; raises ValidationError for an empty required field or an unknown priority."""
    data = {
        "title": _text(form, "title"),
        "description": _text(form, "description"),
        "category": _optional_int(_text(form, "category")),
        "subcategory": _optional_int(_text(form, "subcategory")),
        "location": _text(form, "location"),
        "priority": _text(form, "priority").lower(),
        "province": _text(form, "province"),
        "district": _text(form, "district"),
        "sector": _text(form, "sector") or None,
        "contact_info": _text(form, "contact") or None,
        "is_anonymous": _text(form, "anonymous").lower() in TRUTHY_FLAGS,
    }
    missing = [field for field in REQUIRED_FIELDS if not data[field]]
    if missing:
        raise ValidationError("Please fill in all required fields", fields=missing)
    if data["priority"] not in COMPLAINT_PRIORITIES:
        raise ValidationError(
            f"Priority must be one of: {', '.join(COMPLAINT_PRIORITIES)}", fields=["priority"]
        )
    return data


def route_institution(district: str, session: Optional[Session] = None) -> Optional[int]:
    """Institution for a district: exact match first, then the catch-all (NULL district)."""
    sess = _session(session)
    try:
        row = (
            sess.query(Institution.id)
            .filter(or_(Institution.district == district, Institution.district.is_(None)))
            .order_by(Institution.district.is_(None), Institution.id)
            .first()
        )
    except SQLAlchemyError:
        current_app.logger.exception("Error finding institution", extra={"district": district})
        sess.rollback()
        return None
    return row[0] if row else None


def _tracking_id_taken(sess: Session, tracking_id: str) -> bool:
    try:
        return sess.query(Complaint.id).filter(Complaint.tracking_id == tracking_id).first() is not None
    except SQLAlchemyError:
        current_app.logger.warning("Tracking ID lookup failed", extra={"tracking_id": tracking_id})
        sess.rollback()
        return False


def _insert_submission(
    sess: Session,
    tracking_id: str,
    data: Dict,
    institution_id: Optional[int],
    citizen_id: Optional[int],
    attachments: List[Dict],
) -> Complaint:
    now = datetime.utcnow()
    complaint = Complaint(
        tracking_id=tracking_id,
        title=data["title"],
        description=data["description"],
        category_id=data["category"],
        subcategory_id=data["subcategory"],
        status="submitted",
        priority=data["priority"],
        location=data["location"],
        province=data["province"],
        district=data["district"],
        sector=data["sector"],
        citizen_id=citizen_id,
        institution_id=institution_id,
        is_anonymous=data["is_anonymous"],
        contact_info=data["contact_info"],
        created_at=now,
    )
    sess.add(complaint)
    sess.flush()

    sess.add(
        Update(
            complaint_id=complaint.id,
            status="submitted",
            comment=INTAKE_COMMENT,
            user_id=None,
            created_at=now,
        )
    )
    sess.flush()

    for meta in attachments:
        sess.add(Attachment(complaint_id=complaint.id, created_at=now, **meta))
    sess.flush()
    return complaint


def submit_complaint(form: Mapping, files=None, actor=None, session: Optional[Session] = None) -> Dict:
    """Validate, route, and persist a citizen complaint.

    Returns ``{"success": True, "tracking_id": ...}`` or a structured error.
    The complaint, its ``submitted`` update, and its attachment rows are
    committed together or not at all.
    """
    sess = _session(session)
    uploads = collect_uploads(files)

    try:
        data = parse_submission(form)
    except ValidationError as exc:
        current_app.logger.info("Complaint submission rejected", extra={"missing_fields": exc.fields})
        return error_result(exc)

    citizen_id = None
    if actor is not None and not data["is_anonymous"]:
        citizen_id = getattr(actor, "id", None)

    current_app.logger.info(
        "Submitting complaint",
        extra={
            "category_id": data["category"],
            "subcategory_id": data["subcategory"],
            "priority": data["priority"],
            "province": data["province"],
            "district": data["district"],
            "is_anonymous": data["is_anonymous"],
            "file_count": len(uploads),
        },
    )

    institution_id = route_institution(data["district"], sess)
    current_app.logger.info("Selected institution", extra={"institution_id": institution_id})

    attachments = describe_uploads(
        uploads,
        base_url=current_app.config.get("ATTACHMENT_BASE_URL", "https://citizenconnect.gov.rw"),
        path_prefix=current_app.config.get("ATTACHMENT_PATH_PREFIX", "/uploads"),
    )
    max_attempts = max(1, int(current_app.config.get("TRACKING_ID_MAX_ATTEMPTS", 5)))

    for attempt in range(1, max_attempts + 1):
        tracking_id = generate_tracking_id()
        try:
            if _tracking_id_taken(sess, tracking_id):
                current_app.logger.warning(
                    "Tracking ID already issued, regenerating",
                    extra={"tracking_id": tracking_id, "attempt": attempt},
                )
                continue
            complaint = _insert_submission(sess, tracking_id, data, institution_id, citizen_id, attachments)
            sess.commit()
        except IntegrityError:
            sess.rollback()
            if _tracking_id_taken(sess, tracking_id):
                current_app.logger.warning(
                    "Tracking ID collided on insert, retrying",
                    extra={"tracking_id": tracking_id, "attempt": attempt},
                )
                continue
            current_app.logger.exception("Integrity error while saving complaint")
            return error_result(PersistenceError("Failed to submit complaint. Please check the details and try again."))
        except SQLAlchemyError:
            sess.rollback()
            current_app.logger.exception("Database error while saving complaint")
            return error_result(
                PersistenceError("An error occurred while submitting your complaint. Please try again.")
            )

        current_app.logger.info(
            "Complaint submitted",
            extra={
                "complaint_id": complaint.id,
                "tracking_id": tracking_id,
                "institution_id": institution_id,
                "attachments": len(attachments),
            },
        )
        return {"success": True, "tracking_id": tracking_id}

    current_app.logger.error("Exhausted tracking ID attempts", extra={"attempts": max_attempts})
    return error_result(PersistenceError("Could not allocate a tracking ID. Please try again."))
