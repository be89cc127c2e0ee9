"""Flask application factory for the citizen complaint service."""
import os
from typing import Optional

import click
from flask import Flask, g, jsonify, request
from sqlalchemy import create_engine, text
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import OperationalError
from werkzeug.exceptions import HTTPException
from dotenv import load_dotenv

from utils.logger import init_logging
from utils.security import apply_security_headers, password_meets_policy, sanitize_input
from extensions import csrf, db, migrate, login_manager


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(HTTPException)
    def http_error(error):
        if error.code and error.code >= 500:
            app.logger.error("HTTP error", extra={"path": request.path, "status_code": error.code})
        elif error.code in (401, 403, 404):
            app.logger.warning(
                f"{error.code} {error.name}", extra={"path": request.path, "http_method": request.method}
            )
        return jsonify({"error": error.description, "code": error.name.lower().replace(" ", "_")}), error.code

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.exception("500 Internal Server Error")
        db.session.rollback()
        return jsonify({"error": "Internal server error", "code": "internal_error"}), 500


def ensure_default_admin(app: Flask) -> None:
    """Create the bootstrap platform admin when credentials are configured."""
    from models import User  # Local import to avoid circular dependency

    admin_email = (app.config.get("DEFAULT_ADMIN_EMAIL") or "").lower().strip()
    admin_password = app.config.get("DEFAULT_ADMIN_PASSWORD") or ""
    if not admin_email or not admin_password:
        return

    admin_user = User.query.filter_by(email=admin_email).first()
    if admin_user:
        updates = False
        if admin_user.role != "admin":
            admin_user.role = "admin"
            updates = True
        if not admin_user.is_active:
            admin_user.is_active = True
            updates = True
        if updates:
            db.session.add(admin_user)
            db.session.commit()
        return

    admin_user = User(full_name="System Administrator", email=admin_email, role="admin", is_active=True)
    admin_user.set_password(admin_password)
    db.session.add(admin_user)
    db.session.commit()
    app.logger.info("Default admin created", extra={"email": admin_email})


def ensure_database_exists(app: Flask) -> None:
    """Create the configured database on first boot; SQLite only needs its directory."""
    url = make_url(app.config["SQLALCHEMY_DATABASE_URI"])

    if url.drivername.startswith("sqlite"):
        if url.database and url.database != ":memory:":
            os.makedirs(os.path.dirname(url.database) or ".", exist_ok=True)
        return

    if not url.drivername.startswith("postgres"):
        return

    maintenance_url = url.set(database=os.getenv("POSTGRES_DB_ADMIN", "postgres"))
    engine = create_engine(maintenance_url, isolation_level="AUTOCOMMIT")
    try:
        with engine.connect() as conn:
            found = conn.execute(
                text("SELECT 1 FROM pg_database WHERE datname = :name"), {"name": url.database}
            ).scalar()
            if not found:
                conn.execute(text(f'CREATE DATABASE "{url.database}"'))
                app.logger.info("Created database", extra={"database": url.database})
    except OperationalError:
        # Lookups degrade and /health reports the outage.
        app.logger.warning("Database server unreachable at startup", extra={"database": url.database})
    finally:
        engine.dispose()


def register_cli(app: Flask) -> None:
    @app.cli.command("create-staff")
    @click.argument("email")
    @click.argument("full_name")
    @click.option("--role", type=click.Choice(["admin", "institution_admin"]), default="institution_admin")
    @click.option("--institution-id", type=int, default=None)
    @click.password_option()
    def create_staff(email, full_name, role, institution_id, password):
        """Create a staff account (there is no self-service registration)."""
        from models import Institution, User

        ok, reason = password_meets_policy(password)
        if not ok:
            raise click.ClickException(reason)
        if institution_id is not None and db.session.get(Institution, institution_id) is None:
            raise click.ClickException(f"Institution {institution_id} does not exist")
        email = email.lower().strip()
        if User.query.filter_by(email=email).first():
            raise click.ClickException(f"User {email} already exists")

        user = User(email=email, full_name=full_name, role=role, institution_id=institution_id)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        click.echo(f"Created {role} {email} (id={user.id})")


def create_app(config_name: Optional[str] = None) -> Flask:
    """Application factory with environment-aware configuration."""
    load_dotenv()

    app = Flask(__name__, instance_relative_config=True)

    from config import DevelopmentConfig, ProductionConfig, TestingConfig

    config_key = (config_name or os.getenv("FLASK_CONFIG") or os.getenv("FLASK_ENV") or "production").lower()
    config_map = {
        "development": DevelopmentConfig,
        "dev": DevelopmentConfig,
        "production": ProductionConfig,
        "prod": ProductionConfig,
        "testing": TestingConfig,
        "test": TestingConfig,
    }
    config_class = config_map.get(config_key, ProductionConfig)
    app.config.from_object(config_class())

    if not app.config.get("TESTING"):
        app.config.from_pyfile("config.py", silent=True)
        os.makedirs(app.instance_path, exist_ok=True)

    logger = init_logging(app)
    app.logger = logger
    ensure_database_exists(app)

    csrf.init_app(app)
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    login_manager.session_protection = "strong"

    @login_manager.user_loader
    def load_user(user_id):
        from models import User  # Local import to avoid circular dependency

        if not user_id:
            return None
        try:
            return db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "You must be logged in", "code": "auth_required"}), 401

    from routes import admin_bp, auth_bp, complaints_bp, main_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(complaints_bp)
    app.register_blueprint(admin_bp)

    register_error_handlers(app)
    register_cli(app)

    @app.before_request
    def _before_request() -> None:
        g.sanitized_args = sanitize_input(request.args)

    @app.after_request
    def _after_request(response):
        return apply_security_headers(response, force_https=app.config.get("PREFERRED_URL_SCHEME") == "https")

    # First run creates the schema; migrations take over once `flask db` is in use.
    with app.app_context():
        db.create_all()
        ensure_default_admin(app)

    return app


if __name__ == "__main__":
    port = int(os.getenv("PORT", 5000))
    create_app().run(host="0.0.0.0", port=port, use_reloader=False)
