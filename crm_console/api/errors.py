"""Error handlers for the application.

Every error leaves the API as JSON in the result envelope
``{"success": false, "message": ..., "error": ...}``.
"""
from flask import jsonify
from werkzeug.exceptions import HTTPException

from crm_console.core.errors import ProvisioningError


def register_error_handlers(app):
    """Register error handlers with the Flask app."""

    @app.errorhandler(ProvisioningError)
    def provisioning_error(error: ProvisioningError):
        """Render taxonomy errors with their own status code."""
        if error.status >= 500:
            app.logger.error(f"Provisioning failure: {error.kind}: {error.message}")
        else:
            app.logger.info(f"Request rejected: {error.kind}: {error.message}")
        return jsonify(error.to_dict()), error.status

    @app.errorhandler(HTTPException)
    def http_error(error: HTTPException):
        """Handle werkzeug HTTP errors (404 routes, 405 methods, aborts)."""
        return jsonify({
            "success": False,
            "message": error.description or error.name,
            "error": error.name.replace(" ", ""),
        }), error.code

    @app.errorhandler(Exception)
    def handle_exception(error):
        """Handle uncaught exceptions without leaking details."""
        # ALWAYS log the full error (even in production) - logs are secure
        app.logger.error(f"Unhandled exception: {error}", exc_info=True)
        return jsonify({
            "success": False,
            "message": "An unexpected error occurred",
            "error": "InternalServerError",
        }), 500
