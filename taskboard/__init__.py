import os
import logging

from dotenv import load_dotenv
from flask import Flask

from taskboard.config import config_by_name
from taskboard.extensions import db


def create_app(config_name=None):
    """Application factory.

    Binds the persistence layer and configuration; the board, chat and
    card services then run inside ``app.app_context()``.
    """
    load_dotenv()  # Load .env before reading config

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])

    # --- Validate required env vars (skip in testing) ---
    if config_name != "testing":
        try:
            config_by_name[config_name].validate()
        except RuntimeError as e:
            app.logger.warning(f"Config validation: {e}")

    # --- Init extensions ---
    db.init_app(app)

    # --- Import models so metadata knows every table ---
    with app.app_context():
        from taskboard import models  # noqa: F401

        if config_name != "testing":
            db.create_all()

    # --- Logging ---
    if not app.debug and not app.testing:
        logging.basicConfig(level=logging.INFO)

    return app
