# backend/daybook/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate, celery_init_app



def create_app(config_object=Config) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    celery_init_app(app)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.registers import registers_bp  # Lock status and daily closings
    from .routes.treasury import treasury_bp  # Sales, settlements, movements, expenses

    app.register_blueprint(system_bp)
    app.register_blueprint(registers_bp)
    app.register_blueprint(treasury_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = {
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        }
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = (
                "Content-Type, X-Tenant-Id, X-Operator-Id, X-Operator-Name, "
                "X-On-Behalf-Of-Id, X-On-Behalf-Of-Name"
            )
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
