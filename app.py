import logging

from flask import Flask, jsonify
from config import Config, GatewaySettings
from routes import health_bp, bookings_bp, payments_bp, notifications_bp, admin_bp

from models import db
from flask_migrate import Migrate
from gateways import GatewayRegistry
from utils.seed import seed_roles
from utils.auth_context import load_current_user


def create_app(overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(bookings_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(notifications_bp)
    app.register_blueprint(admin_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Provider clients get their credentials once, here
    app.extensions["gateways"] = GatewayRegistry.from_settings(GatewaySettings.from_config(app.config))

    # Seed default roles at startup (safe & idempotent)
    if app.config.get("SEED_ROLES", True):
        with app.app_context():
            seed_roles()

    @app.before_request
    def _load_user():
        load_current_user()

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    @app.errorhandler(404)
    def _not_found(_err):
        return jsonify(error="Not found"), 404

    @app.errorhandler(405)
    def _method_not_allowed(_err):
        return jsonify(error="Method not allowed"), 405

    @app.errorhandler(500)
    def _internal_error(_err):
        db.session.rollback()
        return jsonify(error="Internal server error"), 500

    register_cli(app)

    return app

#-------------------------
import click
from models.user import User, Role
from utils.reconcile import reconcile_stale_payments

def register_cli(app):
    @app.cli.command("grant-role")
    @click.argument("email")
    @click.argument("role")
    def grant_role(email, role):
        """Give a user a role by email (bootstrap KASIR/ADMIN accounts)."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            click.echo("User not found")
            return

        role_name = role.strip().upper()
        role_row = Role.query.filter_by(name=role_name).first()
        if not role_row:
            role_row = Role(name=role_name)
            db.session.add(role_row)
            db.session.commit()

        if role_row not in user.roles:
            user.roles.append(role_row)
            db.session.commit()

        click.echo(f"{user.email} granted {role_name}")

    @app.cli.command("reconcile-payments")
    @click.option("--older-than", type=int, default=None, help="Minutes a payment must have been pending.")
    @click.option("--limit", type=int, default=None, help="Maximum payments to check in one run.")
    def reconcile_payments(older_than, limit):
        """Re-check stale pending payments with their provider (run from cron)."""
        results = reconcile_stale_payments(
            app.extensions["gateways"],
            older_than_minutes=older_than if older_than is not None else app.config["RECONCILE_STALE_MINUTES"],
            limit=limit if limit is not None else app.config["RECONCILE_BATCH_SIZE"],
        )
        changed = [r for r in results if r.changed]
        click.echo(f"checked {len(results)} payment(s), {len(changed)} changed")
        for r in changed:
            click.echo(f"  payment {r.payment_id} -> {r.outcome.value}")

#-------------------------




if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
