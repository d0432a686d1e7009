import logging

from flask import Flask
from flask_cors import CORS

from .config import get_config
from .routes import register_routes
from .store import init_store


def create_app(config_name: str | None = None) -> Flask:
    """Application factory so tests and CLI share consistent setup."""
    app = Flask(__name__)

    config_cls = get_config(config_name)
    app.config.from_object(config_cls())

    if not app.config["TESTING"]:
        logging.basicConfig(
            level=logging.DEBUG if app.config["DEBUG"] else logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    CORS(app, resources={r"/api/*": {"origins": "*"}})
    init_store(app)
    register_routes(app)

    return app
