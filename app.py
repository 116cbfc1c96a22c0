import logging

import click
from flask import Flask, jsonify
from flask_login import LoginManager
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from config import Config
from models import db
from blueprints.auth import bp as auth_bp
from blueprints.stores import bp as stores_bp
from blueprints.client import bp as client_bp
from blueprints.admin import bp as admin_bp
from blueprints.bookings import bp as bookings_bp
from blueprints.staff import bp as staff_bp
from utils.errors import ApiError
from utils.session import principal_from_request


def create_app(test_config=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)
    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    if not app.config.get("SESSION_SECRET"):
        raise RuntimeError("SESSION_SECRET must be set in production")

    db.init_app(app)
    with app.app_context():
        db.create_all()

    login_manager = LoginManager()
    # the signed cookies are the session; nothing to protect in Flask's own session
    login_manager.session_protection = None
    login_manager.request_loader(principal_from_request)
    login_manager.init_app(app)

    app.register_blueprint(auth_bp)
    app.register_blueprint(stores_bp)
    app.register_blueprint(client_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(bookings_bp)
    app.register_blueprint(staff_bp)

    _register_error_handlers(app)
    _register_commands(app)

    @app.get("/health")
    def health():
        return jsonify({"ok": True})

    return app


def _register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(err):
        db.session.rollback()
        return err.to_response()

    @app.errorhandler(HTTPException)
    def handle_http_error(err):
        return jsonify({"ok": False, "error": err.description}), err.code

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err):
        db.session.rollback()
        app.logger.warning("Integrity error: %s", err.orig)
        return jsonify({"ok": False, "error": "Record conflicts with existing data."}), 409

    @app.errorhandler(Exception)
    def handle_unexpected(err):
        db.session.rollback()
        app.logger.exception("Unhandled error")
        return jsonify({"ok": False, "error": "Internal server error"}), 500


def _register_commands(app):
    @app.cli.command("create-admin")
    @click.option("--email", prompt=True)
    @click.option("--name", prompt=True, default="Administrator")
    @click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
    def create_admin_command(email, name, password):
        """Create an admin account, or reset and reactivate an existing one."""
        from seed import create_admin

        if len(password) < 6:
            raise click.BadParameter("Password must be at least 6 characters.", param_hint="--password")
        admin, created = create_admin(email, name, password)
        click.echo(f"{'Created' if created else 'Updated'} admin {admin.email} (id {admin.id}).")

    @app.cli.command("seed-demo")
    def seed_demo_command():
        """Load demo stores, room types, rooms and accounts."""
        from seed import seed_demo_data

        summary = seed_demo_data()
        click.echo(
            "Seed complete. {stores} stores, {room_types} room types, {rooms} rooms ready.".format(**summary)
        )
