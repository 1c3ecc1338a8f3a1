import logging

import click
from flask import Flask, jsonify
from flask_migrate import Migrate

from config import Config
from models import db
from routes import (
    health_bp, auth_bp, booking_bp, payments_bp, webhook_bp, checkin_bp, admin_bp, feedback_bp,
)
from services.errors import BookingError
from services.sweeper import complete_checked_in, mark_no_shows
from utils.auth_context import load_current_user
from utils.seed import seed_roles, promote_to_admin


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    configure_logging(app)

    # Register routes
    for bp in (health_bp, auth_bp, booking_bp, payments_bp, webhook_bp, checkin_bp, admin_bp, feedback_bp):
        app.register_blueprint(bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Seed default roles at startup (safe & idempotent)
    if app.config.get("SEED_ON_STARTUP"):
        with app.app_context():
            seed_roles()

    @app.before_request
    def _load_user():
        load_current_user()

    @app.errorhandler(BookingError)
    def _booking_error(exc):
        if exc.status_code >= 500:
            return jsonify(error=exc.message), exc.status_code
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(500)
    def _internal_error(exc):
        return jsonify(error="Internal server error"), 500

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app


def configure_logging(app):
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logging.getLogger().setLevel(level)

#-------------------------

def register_cli(app):
    @app.cli.command("make-admin")
    @click.argument("email")
    def make_admin(email):
        """Promote a user to ADMIN by email (bootstrap)."""
        user = promote_to_admin(email)
        if not user:
            click.echo("User not found")
            return
        click.echo(f"{user.email} promoted to ADMIN")

    @app.cli.group("sweep")
    def sweep():
        """Scheduled booking sweeps (run from cron)."""

    @sweep.command("no-shows")
    def sweep_no_shows():
        """Mark confirmed bookings whose slot has ended as no-show."""
        result = mark_no_shows()
        click.echo(f"no-shows: {result.as_dict()}")

    @sweep.command("complete")
    def sweep_complete():
        """Complete checked-in bookings whose slot has ended."""
        result = complete_checked_in()
        click.echo(f"completed: {result.as_dict()}")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
