"""Staff-side complaint mutations: status changes and replies to citizens."""
from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from extensions import db
from models import COMPLAINT_STATUSES, Complaint, Message, Update
from utils.errors import (
    AuthRequiredError,
    ComplaintServiceError,
    InvalidStatusError,
    NotFoundError,
    PersistenceError,
    ValidationError,
    error_result,
)


def _session(session: Optional[Session]) -> Session:
    return session if session is not None else db.session


def _actor_id(actor, action: str) -> int:
    actor_id = getattr(actor, "id", None) if actor is not None else None
    if actor_id is None:
        raise AuthRequiredError(f"You must be logged in to {action}")
    return actor_id


def _load_complaint(sess: Session, complaint_id) -> Complaint:
    try:
        complaint = sess.get(Complaint, int(complaint_id))
    except (TypeError, ValueError):
        complaint = None
    if complaint is None:
        raise NotFoundError("Complaint not found")
    return complaint


def update_status(
    complaint_id: int,
    status: str,
    comment: Optional[str],
    actor,
    session: Optional[Session] = None,
) -> Dict:
    """Set a complaint's status and append one audit Update in the same transaction.

    Any recognised status may follow any other; there is no transition table.
    """
    sess = _session(session)
    try:
        actor_id = _actor_id(actor, "update a complaint")
        new_status = (status or "").strip().lower()
        if new_status not in COMPLAINT_STATUSES:
            raise InvalidStatusError(f"Unknown status '{status}'")

        complaint = _load_complaint(sess, complaint_id)
        previous_status = complaint.status
        now = datetime.utcnow()
        complaint.status = new_status
        complaint.updated_at = now
        sess.add(
            Update(
                complaint_id=complaint.id,
                status=new_status,
                comment=(comment or "").strip() or None,
                user_id=actor_id,
                created_at=now,
            )
        )
        sess.commit()
    except ComplaintServiceError as exc:
        sess.rollback()
        current_app.logger.warning(
            "Status update rejected",
            extra={"complaint_id": complaint_id, "status": status, "error": exc.code},
        )
        return error_result(exc)
    except SQLAlchemyError:
        sess.rollback()
        current_app.logger.exception("Error updating complaint status", extra={"complaint_id": complaint_id})
        return error_result(PersistenceError("An error occurred while updating the complaint"))

    current_app.logger.info(
        "Complaint status updated",
        extra={
            "complaint_id": complaint_id,
            "previous_status": previous_status,
            "new_status": new_status,
            "user_id": actor_id,
        },
    )
    return {"success": True, "status": new_status}


def respond_to_complaint(
    complaint_id: int,
    content: Optional[str],
    actor,
    session: Optional[Session] = None,
) -> Dict:
    """Append a staff message to the complaint thread. Status is left untouched."""
    sess = _session(session)
    try:
        actor_id = _actor_id(actor, "respond to a complaint")
        body = (content or "").strip()
        if not body:
            raise ValidationError("Response message cannot be empty", fields=["message"])

        complaint = _load_complaint(sess, complaint_id)
        message = Message(
            complaint_id=complaint.id,
            sender_id=actor_id,
            content=body,
            created_at=datetime.utcnow(),
        )
        sess.add(message)
        sess.commit()
    except ComplaintServiceError as exc:
        sess.rollback()
        current_app.logger.warning(
            "Complaint response rejected",
            extra={"complaint_id": complaint_id, "error": exc.code},
        )
        return error_result(exc)
    except SQLAlchemyError:
        sess.rollback()
        current_app.logger.exception("Error responding to complaint", extra={"complaint_id": complaint_id})
        return error_result(PersistenceError("An error occurred while sending your response"))

    current_app.logger.info(
        "Complaint response recorded",
        extra={"complaint_id": complaint_id, "message_id": message.id, "user_id": actor_id},
    )
    return {"success": True, "message_id": message.id}


def compose_response(message: Optional[str], visit_date: Optional[str] = None) -> str:
    body = (message or "").strip()
    if visit_date:
        return f"A site visit has been scheduled for {visit_date.strip()}. {body}".strip()
    return body


def respond_with_status(
    complaint_id: int,
    status: str,
    message: Optional[str],
    actor,
    visit_date: Optional[str] = None,
    session: Optional[Session] = None,
) -> Dict:
    """Staff reply flow: change the status, then post the same text as a message."""
    text = compose_response(message, visit_date)
    if not text:
        return error_result(ValidationError("Please enter a response message", fields=["message"]))

    status_result = update_status(complaint_id, status, text, actor, session=session)
    if "error" in status_result:
        return status_result

    response_result = respond_to_complaint(complaint_id, text, actor, session=session)
    if "error" in response_result:
        return response_result

    return {"success": True, "status": status_result["status"], "message_id": response_result["message_id"]}
