"""Blueprint registration and public reference-data routes."""
from flask import Blueprint, abort, current_app, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from utils.catalog import districts_for, list_categories, list_institutions, list_locations
from .admin import admin_bp
from .auth import auth_bp
from .complaints import complaints_bp

main_bp = Blueprint("main", __name__)


@main_bp.route("/health", methods=["GET"])
def health():
    try:
        db.session.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError:
        current_app.logger.warning("Health check could not reach the database")
        db.session.rollback()
        database = "unavailable"
    status_code = 200 if database == "ok" else 503
    return jsonify({"status": "ok" if database == "ok" else "degraded", "database": database}), status_code


@main_bp.route("/api/categories", methods=["GET"])
def categories():
    return jsonify(list_categories())


@main_bp.route("/api/institutions", methods=["GET"])
def institutions():
    return jsonify(list_institutions())


@main_bp.route("/api/locations", methods=["GET"])
def locations():
    return jsonify(list_locations())


@main_bp.route("/api/locations/<string:province>/districts", methods=["GET"])
def province_districts(province):
    districts = districts_for(province)
    if not districts:
        abort(404, description="Unknown province")
    return jsonify(districts)


__all__ = ["main_bp", "auth_bp", "complaints_bp", "admin_bp"]
