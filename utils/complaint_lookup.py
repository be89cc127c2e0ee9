"""Read paths: public tracking lookup, staff detail view, and filtered listing."""
from __future__ import annotations

from typing import Dict, List, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, aliased

from extensions import db
from models import Attachment, Category, Complaint, Institution, Message, Update, User
from utils.errors import PersistenceError
from utils.tracking import normalize_tracking_id

ALL_STATUSES_SENTINEL = "all"


def _session(session: Optional[Session]) -> Session:
    return session if session is not None else db.session


def _detail_query(sess: Session):
    subcategory = aliased(Category)
    return (
        sess.query(
            Complaint,
            Category.name.label("category_name"),
            subcategory.name.label("subcategory_name"),
            Institution.name.label("institution_name"),
        )
        .outerjoin(Category, Complaint.category_id == Category.id)
        .outerjoin(subcategory, Complaint.subcategory_id == subcategory.id)
        .outerjoin(Institution, Complaint.institution_id == Institution.id)
    )


def _complaint_payload(row) -> Dict:
    complaint = row[0]
    return {
        "id": complaint.id,
        "tracking_id": complaint.tracking_id,
        "title": complaint.title,
        "description": complaint.description,
        "status": complaint.status,
        "priority": complaint.priority,
        "location": complaint.location,
        "province": complaint.province,
        "district": complaint.district,
        "sector": complaint.sector,
        "created_at": complaint.created_at,
        "updated_at": complaint.updated_at,
        "category_name": row.category_name,
        "subcategory_name": row.subcategory_name,
        "institution_name": row.institution_name,
    }


def fetch_messages(sess: Session, complaint_id: int) -> List[Dict]:
    rows = (
        sess.query(Message, User.full_name.label("sender_name"))
        .outerjoin(User, Message.sender_id == User.id)
        .filter(Message.complaint_id == complaint_id)
        .order_by(Message.created_at.asc(), Message.id.asc())
        .all()
    )
    return [
        {
            "id": message.id,
            "content": message.content,
            "created_at": message.created_at,
            "sender_name": sender_name,
        }
        for message, sender_name in rows
    ]


def fetch_updates(sess: Session, complaint_id: int) -> List[Dict]:
    updates = (
        sess.query(Update)
        .filter(Update.complaint_id == complaint_id)
        .order_by(Update.created_at.desc(), Update.id.desc())
        .all()
    )
    return [update.to_dict() for update in updates]


def fetch_attachments(sess: Session, complaint_id: int) -> List[Dict]:
    attachments = (
        sess.query(Attachment)
        .filter(Attachment.complaint_id == complaint_id)
        .order_by(Attachment.created_at.desc(), Attachment.id.desc())
        .all()
    )
    return [attachment.to_dict() for attachment in attachments]


def _attach_thread(sess: Session, payload: Dict) -> Dict:
    # Each part degrades to an empty list on its own.
    sections = (
        ("messages", fetch_messages),
        ("updates", fetch_updates),
        ("attachments", fetch_attachments),
    )
    for key, fetch in sections:
        try:
            payload[key] = fetch(sess, payload["id"])
        except SQLAlchemyError:
            current_app.logger.exception(
                "Error fetching complaint %s", key, extra={"complaint_id": payload["id"]}
            )
            sess.rollback()
            payload[key] = []
    return payload


def get_complaint_by_tracking_id(tracking_id: str | None, session: Optional[Session] = None) -> Optional[Dict]:
    """Public lookup; returns None when nothing matches."""
    tracking_id = normalize_tracking_id(tracking_id)
    if not tracking_id:
        return None

    sess = _session(session)
    try:
        row = _detail_query(sess).filter(Complaint.tracking_id == tracking_id).first()
    except SQLAlchemyError as exc:
        current_app.logger.exception("Error fetching complaint details", extra={"tracking_id": tracking_id})
        sess.rollback()
        raise PersistenceError("Failed to fetch complaint information") from exc

    if row is None:
        current_app.logger.info("Tracking lookup miss", extra={"tracking_id": tracking_id})
        return None
    return _attach_thread(sess, _complaint_payload(row))


def get_complaint_detail(complaint_id: int, session: Optional[Session] = None) -> Optional[Dict]:
    sess = _session(session)
    try:
        row = _detail_query(sess).filter(Complaint.id == complaint_id).first()
    except SQLAlchemyError as exc:
        current_app.logger.exception("Error fetching complaint details", extra={"complaint_id": complaint_id})
        sess.rollback()
        raise PersistenceError("Failed to fetch complaint information") from exc

    if row is None:
        return None
    payload = _complaint_payload(row)
    complaint = row[0]
    payload.update(
        {
            "institution_id": complaint.institution_id,
            "is_anonymous": complaint.is_anonymous,
            "contact_info": complaint.contact_info,
        }
    )
    return _attach_thread(sess, payload)


def list_complaints(
    institution_id: Optional[int] = None,
    status: Optional[str] = None,
    session: Optional[Session] = None,
) -> List[Dict]:
    sess = _session(session)
    try:
        query = (
            sess.query(
                Complaint,
                Category.name.label("category_name"),
                Institution.name.label("institution_name"),
            )
            .outerjoin(Category, Complaint.category_id == Category.id)
            .outerjoin(Institution, Complaint.institution_id == Institution.id)
        )
        if institution_id:
            query = query.filter(Complaint.institution_id == institution_id)
        if status and status != ALL_STATUSES_SENTINEL:
            query = query.filter(Complaint.status == status)

        rows = query.order_by(Complaint.created_at.desc(), Complaint.id.desc()).all()
    except SQLAlchemyError:
        current_app.logger.exception(
            "Error fetching complaints", extra={"institution_id": institution_id, "status": status}
        )
        sess.rollback()
        return []

    return [
        {
            "id": complaint.id,
            "tracking_id": complaint.tracking_id,
            "title": complaint.title,
            "status": complaint.status,
            "priority": complaint.priority,
            "province": complaint.province,
            "district": complaint.district,
            "created_at": complaint.created_at,
            "updated_at": complaint.updated_at,
            "category_name": category_name,
            "institution_name": institution_name,
        }
        for complaint, category_name, institution_name in rows
    ]
