# backend/resaledesk/__init__.py
from flask import Flask

from .config import Config, engine_options
from .extensions import db, migrate
from .services.credential_vault import CredentialVault


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.config.setdefault(
        "SQLALCHEMY_ENGINE_OPTIONS",
        engine_options(app.config["SQLALCHEMY_DATABASE_URI"], app.config["STORE_TIMEOUT_SECONDS"]),
    )

    # Refuse to start without a usable vault key (raises ConfigurationError)
    app.extensions["credential_vault"] = CredentialVault.from_config(app.config)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.purchases import purchases_bp
    from .routes.payments import payments_bp
    from .routes.coupons import coupons_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(purchases_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(coupons_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app


def get_vault(app=None) -> CredentialVault:
    """The vault built by create_app()."""
    from flask import current_app
    return (app or current_app).extensions["credential_vault"]
