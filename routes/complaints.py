"""Citizen-facing complaint intake and tracking blueprint."""
from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user

from utils.complaint_intake import submit_complaint
from utils.complaint_lookup import get_complaint_by_tracking_id
from utils.errors import PersistenceError, error_result, status_for
from utils.serializers import to_jsonable
from utils.tracking import is_tracking_id, normalize_tracking_id

complaints_bp = Blueprint("complaints", __name__, url_prefix="/complaints")


def _acting_user():
    if current_user and current_user.is_authenticated:
        return current_user
    return None


@complaints_bp.route("/", methods=["POST"])
def create_complaint():
    form = request.form if request.form or request.files else (request.get_json(silent=True) or {})
    result = submit_complaint(form, files=request.files, actor=_acting_user())
    if "error" in result:
        return jsonify(result), status_for(result)
    return jsonify(result), 201


@complaints_bp.route("/track/<string:tracking_id>", methods=["GET"])
def track_complaint(tracking_id):
    tracking_id = normalize_tracking_id(tracking_id)
    if not is_tracking_id(tracking_id):
        current_app.logger.info("Malformed tracking id", extra={"tracking_id": tracking_id[:32]})
        return jsonify({"error": "Complaint not found", "code": "not_found"}), 404
    try:
        complaint = get_complaint_by_tracking_id(tracking_id)
    except PersistenceError as exc:
        result = error_result(exc)
        return jsonify(result), status_for(result)
    if complaint is None:
        return jsonify({"error": "Complaint not found", "code": "not_found"}), 404
    return jsonify(to_jsonable(complaint))
