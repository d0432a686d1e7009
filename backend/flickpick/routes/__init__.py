from flask import Flask, jsonify

from flickpick.errors import FlickPickError

from .health_routes import health_bp
from .history_routes import history_bp
from .match_routes import match_bp
from .session_routes import sessions_bp

__all__ = ["register_routes"]


def register_routes(app: Flask) -> None:
    app.register_blueprint(health_bp)
    app.register_blueprint(sessions_bp)
    app.register_blueprint(match_bp)
    app.register_blueprint(history_bp)
    register_error_handlers(app)


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(FlickPickError)
    def handle_flickpick_error(exc: FlickPickError):
        if exc.status_code >= 500:
            app.logger.warning("%s: %s", type(exc).__name__, exc)
        body = {"error": str(exc) or type(exc).__name__}
        if exc.retryable:
            body["retryable"] = True
        return jsonify(body), exc.status_code

    @app.errorhandler(ValueError)
    def handle_value_error(exc: ValueError):
        return jsonify({"error": str(exc)}), 400
