# backend/shopledger/__init__.py
from flask import Flask, current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from .config import Config
from .extensions import db, migrate


def create_app(overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.functions import functions_bp
    from .routes.reports import reports_bp
    from .routes.registers import registers_bp
    from .routes.masters import masters_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(functions_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(registers_bp)
    app.register_blueprint(masters_bp)

    from .services.errors import JobError, PersistenceFailure

    @app.errorhandler(JobError)
    def handle_job_error(exc: JobError):
        if exc.status_code >= 500:
            current_app.logger.error("%s: %s", exc.kind, exc.message, exc_info=exc.cause)
        return jsonify({"error": exc.to_dict()}), exc.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_db_error(exc: SQLAlchemyError):
        db.session.rollback()
        current_app.logger.exception("Database error")
        error = PersistenceFailure("database error", cause=exc)
        return jsonify({"error": error.to_dict()}), error.status_code

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
