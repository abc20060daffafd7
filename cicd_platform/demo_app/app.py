"""
Microservice demo application.
A small JSON API used as the subject of the CI/CD pipeline.
"""

import time
from datetime import datetime, timezone

from flask import Flask, jsonify, request
from werkzeug.exceptions import InternalServerError

from ..config import DemoAppConfig
from ..core.errors import CalculationError
from ..core.logger import get_logger
from .calculator import calculate_payload

logger = get_logger("demo_app")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def create_app(config: DemoAppConfig = None) -> Flask:
    """Build the Flask application."""
    config = config or DemoAppConfig()
    started = time.monotonic()

    app = Flask(__name__)
    app.config["APP_INFO"] = config

    def uptime() -> float:
        return round(time.monotonic() - started, 3)

    @app.route("/health")
    def health():
        """Health check endpoint for load balancers."""
        return jsonify({
            "status": "healthy",
            "timestamp": _now_iso(),
            "uptime": uptime(),
            "version": config.version,
        })

    @app.route("/api/info")
    def info():
        return jsonify({
            "name": config.name,
            "version": config.version,
            "environment": config.environment,
            "uptime": uptime(),
            "timestamp": _now_iso(),
        })

    @app.route("/api/calculate", methods=["POST"])
    def calculate():
        payload = request.get_json(silent=True)
        try:
            body = calculate_payload(payload)
        except CalculationError as e:
            return jsonify({"error": str(e)}), 400
        return jsonify(body)

    @app.route("/")
    def home():
        return jsonify({
            "message": "Welcome to the Microservice API",
            "endpoints": {
                "health": "GET /health",
                "info": "GET /api/info",
                "calculate": "POST /api/calculate",
            },
        })

    # Unknown paths and unsupported methods both answer 404
    @app.errorhandler(404)
    @app.errorhandler(405)
    def not_found(e):
        return jsonify({"error": "Endpoint not found", "path": request.path}), 404

    @app.errorhandler(InternalServerError)
    def internal_error(e):
        original = getattr(e, "original_exception", None) or e
        logger.error("Unhandled error", path=request.path, error=str(original), exc_info=original)
        return jsonify({"error": "Internal server error", "message": str(original)}), 500

    return app


app = create_app()


def serve(config: DemoAppConfig = None, port: int = None) -> bool:
    """Start the server; returns False without starting when the environment is ``test``."""
    config = config or DemoAppConfig()
    if config.environment == "test":
        logger.info("Test environment, server not started")
        return False

    port = port or config.port
    logger.info("Server starting", port=port, health=f"http://localhost:{port}/health")
    create_app(config).run(host="0.0.0.0", port=port)
    return True
