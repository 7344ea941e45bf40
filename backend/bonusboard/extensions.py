# Overview: Flask extension instances for database and migrations, plus accessors for app-owned services.

from flask import current_app
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()
migrate = Migrate()


def get_dapic_client():
    return current_app.extensions["bonusboard.dapic"]


def get_sync_service():
    return current_app.extensions["bonusboard.sync"]


def get_pattern_service():
    return current_app.extensions["bonusboard.patterns"]
