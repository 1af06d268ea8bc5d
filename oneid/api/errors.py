"""Error handlers for the application. All responses are JSON."""
from flask import jsonify
from werkzeug.exceptions import HTTPException

from oneid.core.connections import ConnectionServiceError


def register_error_handlers(app):
    """Register error handlers with the Flask app."""

    @app.errorhandler(ConnectionServiceError)
    def connection_error(error):
        """Map service errors (validation, not found) to their HTTP status."""
        return jsonify(error.to_dict()), error.status

    @app.errorhandler(400)
    def bad_request(error):
        description = getattr(error, "description", None) or str(error)
        return jsonify({"error": "Bad Request", "message": description}), 400

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"error": "Not Found", "message": "Resource not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({"error": "Method Not Allowed", "message": "Method not allowed for this resource"}), 405

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.error(f"Internal error: {error}", exc_info=True)
        return jsonify({"error": "Internal Server Error", "message": "An unexpected error occurred"}), 500

    @app.errorhandler(Exception)
    def handle_exception(error):
        """Handle uncaught exceptions."""
        # Pass through HTTP errors
        if isinstance(error, HTTPException):
            return error

        app.logger.error(f"Unhandled exception: {error}", exc_info=True)
        return jsonify({"error": "Internal Server Error", "message": "An unexpected error occurred"}), 500
