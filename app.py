# app.py
import logging
import os
from datetime import timedelta, datetime, timezone
from time import perf_counter

from cryptography.fernet import Fernet
from flask import Flask, jsonify, g
from flask_cors import CORS

from config import config
from sessions.orchestrator import ReloginOrchestrator
from sessions.registry import SessionRegistry
from utils.cache import create_redis_client
from utils.log import (
    setup_logging,
    log_api_request,
)  # Import centralized logging setup and handler
from utils.store import UserStore, load_schools

# Setup logging *before* creating the app or blueprints
setup_logging()
logger = logging.getLogger(__name__)  # Get logger for this module


def create_app(redis_client=None, user_store=None, session_registry=None, schools=None):
    """
    Creates and configures the Flask application.

    Collaborators can be injected (tests pass fakeredis and a scripted
    portal); otherwise they are built from config.
    """
    app = Flask(__name__)
    app.config.from_object(config)  # Load config from config.py
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(
        days=config.LOCAL_SESSION_LIFETIME_DAYS
    )

    CORS(
        app,
        resources={r"/api/*": {"origins": config.CORS_ORIGINS}},
        supports_credentials=True,
    )

    if user_store is None:
        if redis_client is None:
            redis_client = create_redis_client()
        user_store = UserStore(
            redis_client,
            Fernet(config.ENCRYPTION_KEY.encode()),
            schools if schools is not None else load_schools(),
        )
    if session_registry is None:
        session_registry = SessionRegistry()

    app.extensions["redis_client"] = redis_client
    app.extensions["user_store"] = user_store
    app.extensions["session_registry"] = session_registry
    app.extensions["relogin_orchestrator"] = ReloginOrchestrator(session_registry)

    # Register request logging hooks from utils.log
    @app.before_request
    def before_request_hook():
        """Sets up g context before each request."""
        g.start_time = perf_counter()
        g.request_time = datetime.now(timezone.utc)
        g.username = None  # Default, can be set by endpoint
        g.log_outcome = "unknown"
        g.log_error_message = None

    @app.after_request
    def after_request_hook(response):
        """Logs request details using the centralized handler."""
        return log_api_request(response)

    # Import and register Blueprints for API endpoints
    from api.admin import admin_bp
    from api.auth import auth_bp
    from api.board import board_bp
    from api.diary import diary_bp
    from api.reports import reports_bp
    from api.schools import schools_bp

    app.register_blueprint(schools_bp, url_prefix="/api")
    app.register_blueprint(auth_bp, url_prefix="/api")
    app.register_blueprint(diary_bp, url_prefix="/api")
    app.register_blueprint(reports_bp, url_prefix="/api")
    app.register_blueprint(board_bp, url_prefix="/api")
    app.register_blueprint(admin_bp, url_prefix="/api")  # Admin endpoints under /api/admin
    logger.info("Registered API Blueprints")

    # Basic root route
    @app.route("/")
    def index():
        return jsonify({"message": "School portal API is running."}), 200

    # Catch-all route for undefined paths under /api/
    @app.route("/api/<path:invalid_path>")
    def invalid_api_route(invalid_path):
        logger.warning(f"Invalid API path accessed: /api/{invalid_path}")
        g.log_outcome = "not_found"
        g.log_error_message = f"Invalid API endpoint: /api/{invalid_path}"
        return jsonify({"status": "error", "message": "Invalid API endpoint"}), 404

    logger.info("Flask app created successfully.")
    return app


# This block is for running locally with `python app.py`
if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    logger.info(f"Starting Flask development server on port {port}")
    # debug=config.DEBUG will enable Flask's debugger and reloader
    create_app().run(host="0.0.0.0", port=port, debug=config.DEBUG)
