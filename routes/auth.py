"""Staff session endpoints backed by Flask-Login."""
from datetime import datetime, timedelta

from flask import Blueprint, current_app, jsonify, session
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf import FlaskForm
from flask_wtf.csrf import generate_csrf
from wtforms import BooleanField, PasswordField, StringField
from wtforms.validators import DataRequired, Email, Length

from extensions import db
from models import User

auth_bp = Blueprint("auth", __name__)


class LoginForm(FlaskForm):
    email = StringField("Email", validators=[DataRequired(), Email(), Length(max=255)])
    password = PasswordField("Password", validators=[DataRequired()])
    remember_me = BooleanField("Remember me")


@auth_bp.route("/csrf-token", methods=["GET"])
def csrf_token():
    return jsonify({"csrf_token": generate_csrf()})


@auth_bp.route("/login", methods=["POST"])
def login():
    form = LoginForm()
    if not form.validate_on_submit():
        return jsonify({"error": "Email and password are required", "code": "validation_error", "fields": form.errors}), 400

    email = form.email.data.lower().strip()
    user = User.query.filter_by(email=email).first()
    if not user or not user.check_password(form.password.data):
        current_app.logger.warning("Login failed", extra={"email": email})
        return jsonify({"error": "Invalid email or password", "code": "invalid_credentials"}), 401

    if not user.is_active:
        return jsonify({"error": "Your account is inactive. Please contact support.", "code": "inactive_account"}), 403

    login_user(user, remember=bool(form.remember_me.data), duration=timedelta(days=7))
    session.permanent = True
    user.last_login_at = datetime.utcnow()
    db.session.add(user)
    db.session.commit()
    current_app.logger.info("Login succeeded", extra={"user_id": user.id, "role": user.role})
    return jsonify({"success": True, "role": user.role, "user": user.to_session_dict()})


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    current_app.logger.info("Logout", extra={"user_id": current_user.id})
    logout_user()
    return jsonify({"success": True})


@auth_bp.route("/me", methods=["GET"])
def me():
    if not current_user.is_authenticated:
        return jsonify({"user": None})
    return jsonify({"user": current_user.to_session_dict()})
