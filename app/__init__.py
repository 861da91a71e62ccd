import os

import click
from dotenv import load_dotenv
from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix

from app.config import config_by_env
from app.errors import register_error_handlers
from app.extensions import bcrypt, cache, csrf, db, limiter, login_manager, migrate
from app.models import User
from app.routes.api.v1 import api_v1_bp
from app.services import AuctionService, PlatformService


@login_manager.user_loader
def load_user(user_id):
    user = db.session.get(User, int(user_id))
    if user is None or not user.is_active_user:
        return None
    return user


def create_app(test_config=None):
    load_dotenv()
    env = os.getenv("FLASK_ENV", "development")

    project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_by_env.get(env, config_by_env["development"]))
    if test_config:
        app.config.update(test_config)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    db_uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if db_uri.startswith("sqlite:///") and not db_uri.startswith("sqlite:////") and db_uri != "sqlite:///:memory:":
        relative_path = db_uri.replace("sqlite:///", "", 1)
        absolute_path = os.path.join(project_root, relative_path)
        os.makedirs(os.path.dirname(absolute_path), exist_ok=True)
        app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{absolute_path}"

    os.makedirs(app.instance_path, exist_ok=True)

    db.init_app(app)
    migrate.init_app(app, db)
    bcrypt.init_app(app)
    csrf.init_app(app)
    cache.init_app(app)
    # Default limits come from RATELIMIT_DEFAULT ("a;b" separated).
    limiter.init_app(app)
    login_manager.init_app(app)
    _init_sentry(app)

    register_error_handlers(app)
    _register_commands(app)

    app.register_blueprint(api_v1_bp, url_prefix="/api/v1")

    if env == "development" and not app.config.get("TESTING"):
        with app.app_context():
            db.create_all()

    return app


def _init_sentry(app):
    dsn = app.config.get("SENTRY_DSN")
    if not dsn:
        return
    try:
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=dsn,
            integrations=[FlaskIntegration()],
            traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.05")),
            environment=os.getenv("FLASK_ENV", "production"),
        )
        app.logger.info("Sentry initialized.")
    except Exception as exc:
        app.logger.warning("Sentry initialization failed: %s", exc)


def _register_commands(app):
    @app.cli.command("close-expired-auctions")
    def close_expired_auctions_command():
        """Close every auction whose deadline has passed."""
        summary = AuctionService.close_expired_auctions()
        for item in summary["results"]:
            if item["success"]:
                click.echo(
                    f"#{item['request_id']}: closed, {item['total_bids']} bids, "
                    f"winning bid {item['winning_bid_id'] or '-'}"
                )
            else:
                click.echo(f"#{item['request_id']}: failed ({item['error']})", err=True)
        click.echo(f"Processed {summary['closed']} expired auctions.")

    @app.cli.command("set-auction-duration")
    @click.argument("hours")
    def set_auction_duration_command(hours):
        """Override the bidding window for new requests."""
        setting = PlatformService.set_auction_duration(hours)
        click.echo(f"Auction duration set to {setting.value} hours.")
