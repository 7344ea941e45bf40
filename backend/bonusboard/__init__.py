# backend/bonusboard/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate


def create_app(config_object=Config) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # App-owned services; caches and sync locks live on these instances
    from .services.caching import TTLCache
    from .services.dapic_client import DapicClient
    from .services.pattern_service import SalesPatternService
    from .services.sync_service import SalesSyncService

    dapic = DapicClient.from_config(app.config)
    app.extensions["bonusboard.dapic"] = dapic
    app.extensions["bonusboard.sync"] = SalesSyncService(
        dapic,
        page_size=app.config["DAPIC_PAGE_SIZE"],
        max_pages=app.config["SYNC_MAX_PAGES"],
    )
    app.extensions["bonusboard.patterns"] = SalesPatternService(
        cache=TTLCache(app.config["PATTERN_CACHE_TTL_SECONDS"]),
    )

    # Register blueprints
    from .routes.system import system_bp
    from .routes.goals import goals_bp
    from .routes.cashier_goals import cashier_goals_bp
    from .routes.bonus import bonus_bp
    from .routes.sales import sales_bp
    from .routes.dapic import dapic_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(goals_bp)
    app.register_blueprint(cashier_goals_bp)
    app.register_blueprint(bonus_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(dapic_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = {
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:4173",
            "http://127.0.0.1:4173",
        }
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "X-User-Id, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
