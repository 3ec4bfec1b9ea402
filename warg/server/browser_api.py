"""
Warg browser REST API
Request/response access to the same session the WebSocket observers share.
"""

import logging
from typing import Any, Dict, Tuple

from flask import Flask, Response, jsonify, request
from flask_cors import CORS

from ..errors import LifecycleError
from .dispatcher import CommandDispatcher
from .loop_bridge import AsyncBridge

logger = logging.getLogger(__name__)


def create_error_response(message: str, code: int = 500) -> Tuple[Response, int]:
    """Build a failed lifecycle response"""
    return jsonify({"success": False, "error": message}), code


def create_success_response(message: str) -> Response:
    """Build a successful lifecycle response"""
    return jsonify({"success": True, "message": message})


def create_app(dispatcher: CommandDispatcher, bridge: AsyncBridge) -> Flask:
    """Create the Flask application bound to ``dispatcher``.

    Route handlers run on Werkzeug threads; every call into the core goes
    through ``bridge`` onto the server's event loop.
    """
    app = Flask(__name__, static_folder=None)
    CORS(app)

    @app.before_request
    def log_request():
        logger.info("HTTP request %s %s from %s", request.method, request.path, request.remote_addr)

    # Health check
    @app.route("/api/health", methods=["GET"])
    def health_check():
        return jsonify(dispatcher.health())

    # Browser lifecycle
    @app.route("/api/browser/start", methods=["POST"])
    def start_browser():
        try:
            message = bridge.run(dispatcher.start_session())
        except LifecycleError as e:
            logger.error("Failed to start browser via API: %s", e)
            return create_error_response(str(e))
        logger.info("Browser started via API")
        return create_success_response(message)

    @app.route("/api/browser/stop", methods=["DELETE", "POST"])
    def stop_browser():
        try:
            message = bridge.run(dispatcher.stop_session())
        except LifecycleError as e:
            logger.error("Failed to stop browser via API: %s", e)
            return create_error_response(str(e))
        logger.info("Browser stopped via API")
        return create_success_response(message)

    @app.route("/api/browser/restart", methods=["POST"])
    def restart_browser():
        try:
            message = bridge.run(dispatcher.restart_session())
        except LifecycleError as e:
            logger.error("Failed to restart browser via API: %s", e)
            return create_error_response(str(e))
        logger.info("Browser restarted via API")
        return create_success_response(message)

    # Browser commands
    @app.route("/api/command", methods=["POST"])
    def execute_command():
        body = request.get_json(silent=True)
        result = bridge.run(dispatcher.execute(body))
        payload: Dict[str, Any] = result.to_dict()
        if isinstance(body, dict) and body.get("id") is not None:
            payload["id"] = body["id"]
        logger.info("Command executed via API (success=%s)", result.success)
        return jsonify(payload)

    @app.route("/api/status", methods=["GET"])
    def get_status():
        return jsonify(bridge.run(dispatcher.status()))

    @app.errorhandler(404)
    def not_found(error):
        return create_error_response("API endpoint not found", 404)

    @app.errorhandler(405)
    def method_not_allowed(error):
        return create_error_response("Method not allowed", 405)

    @app.errorhandler(500)
    def internal_error(error):
        return create_error_response("Internal server error", 500)

    return app
