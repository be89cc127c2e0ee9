"""Staff blueprint: complaint queue, status changes, replies, dashboard, and schema inspector."""
from flask import Blueprint, abort, current_app, g, jsonify, request
from flask_login import current_user

from extensions import db
from models import Complaint
from utils.complaint_lookup import get_complaint_detail, list_complaints
from utils.complaint_workflow import respond_to_complaint, respond_with_status, update_status
from utils.dashboard_stats import get_dashboard_stats
from utils.decorators import roles_required, staff_required
from utils.errors import PersistenceError, error_result, status_for
from utils.schema_inspector import inspect_table, list_tables, validate_table
from utils.serializers import to_jsonable

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


def _int_arg(value):
    try:
        return int(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        abort(400, description="institution_id must be an integer")


def _pinned_institution():
    """The institution an institution admin is limited to; one without an institution gets nothing."""
    if current_user.institution_id is None:
        current_app.logger.warning("Institution admin without institution", extra={"user_id": current_user.id})
        abort(403)
    return current_user.institution_id


def _scoped_institution(requested):
    """Institution admins are pinned to their own institution; platform admins may choose."""
    if current_user.role == "institution_admin":
        return _pinned_institution()
    return requested or current_user.institution_id


def _ensure_in_scope(complaint_id):
    # Unknown ids fall through so the operation itself reports not_found.
    if current_user.role != "institution_admin":
        return
    allowed = _pinned_institution()
    row = db.session.query(Complaint.institution_id).filter(Complaint.id == complaint_id).first()
    if row is not None and row[0] != allowed:
        current_app.logger.warning(
            "Complaint outside staff scope",
            extra={"user_id": current_user.id, "complaint_id": complaint_id, "institution_id": row[0]},
        )
        abort(403)


def _payload():
    return request.get_json(silent=True) or request.form


def _result_response(result, success_status: int = 200):
    return jsonify(to_jsonable(result)), status_for(result, default=success_status)


@admin_bp.route("/complaints", methods=["GET"])
@staff_required
def complaints_queue():
    filters = g.get("sanitized_args") or {}
    status_filter = filters.get("status") or None
    institution_id = _scoped_institution(_int_arg(filters.get("institution_id")))
    complaints = list_complaints(institution_id=institution_id, status=status_filter)
    current_app.logger.info(
        "staff_complaint_list",
        extra={"count": len(complaints), "institution_id": institution_id, "status": status_filter},
    )
    return jsonify(to_jsonable(complaints))


@admin_bp.route("/complaints/<int:complaint_id>", methods=["GET"])
@staff_required
def complaint_detail(complaint_id):
    _ensure_in_scope(complaint_id)
    try:
        complaint = get_complaint_detail(complaint_id)
    except PersistenceError as exc:
        return _result_response(error_result(exc))
    if complaint is None:
        abort(404, description="Complaint not found")
    return jsonify(to_jsonable(complaint))


@admin_bp.route("/complaints/<int:complaint_id>/status", methods=["POST"])
@staff_required
def change_status(complaint_id):
    _ensure_in_scope(complaint_id)
    data = _payload()
    result = update_status(complaint_id, data.get("status"), data.get("comment"), current_user)
    return _result_response(result)


@admin_bp.route("/complaints/<int:complaint_id>/messages", methods=["POST"])
@staff_required
def post_message(complaint_id):
    _ensure_in_scope(complaint_id)
    data = _payload()
    result = respond_to_complaint(complaint_id, data.get("message") or data.get("content"), current_user)
    return _result_response(result, success_status=201)


@admin_bp.route("/complaints/<int:complaint_id>/respond", methods=["POST"])
@staff_required
def respond(complaint_id):
    _ensure_in_scope(complaint_id)
    data = _payload()
    result = respond_with_status(
        complaint_id,
        data.get("status"),
        data.get("message"),
        current_user,
        visit_date=data.get("visit_date") if data.get("response_type") == "visit" else None,
    )
    return _result_response(result)


@admin_bp.route("/dashboard", methods=["GET"])
@staff_required
def dashboard():
    filters = g.get("sanitized_args") or {}
    institution_id = _scoped_institution(_int_arg(filters.get("institution_id")))
    stats = get_dashboard_stats(current_user, institution_id=institution_id, time_range=filters.get("range", "all"))
    return _result_response(stats)


@admin_bp.route("/database/tables", methods=["GET"])
@roles_required("admin")
def database_tables():
    return _inspector_response(list_tables())


@admin_bp.route("/database/tables/<string:table_name>", methods=["GET"])
@roles_required("admin")
def database_table(table_name):
    return _inspector_response(inspect_table(table_name))


@admin_bp.route("/database/tables/<string:table_name>/validate", methods=["GET"])
@roles_required("admin")
def database_table_validate(table_name):
    return _inspector_response(validate_table(table_name))


def _inspector_response(result):
    # A failed validation is still a successful inspection.
    if "error" not in result:
        status = 200
    else:
        status = 404 if result.get("code") == "not_found" else 500
    return jsonify(to_jsonable(result)), status
