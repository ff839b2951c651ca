from flask import jsonify
from sqlalchemy.exc import IntegrityError


class AppError(Exception):
    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {"error": self.message, "success": False}


class ValidationError(AppError):
    status_code = 400


class PermissionDenied(AppError):
    status_code = 403

    def __init__(self, message="Permission denied.", status_code=None):
        super().__init__(message, status_code)


class NotFound(AppError):
    """Entity absent or not visible to the actor. The two cases are not told apart."""

    status_code = 404


class InvalidState(AppError):
    status_code = 400

    def __init__(self, message, current_state=None, status_code=None):
        super().__init__(message, status_code)
        self.current_state = current_state

    def to_dict(self):
        payload = super().to_dict()
        if self.current_state is not None:
            payload["current_state"] = self.current_state
        return payload


class InvalidSignature(AppError):
    status_code = 400

    def __init__(self, message="Invalid payment signature.", status_code=None):
        super().__init__(message, status_code)


class AlreadyProcessed(AppError):
    status_code = 409

    def __init__(self, message="Payment already processed.", status_code=None):
        super().__init__(message, status_code)


class GatewayError(AppError):
    status_code = 500

    def __init__(self, message="Payment gateway error.", status_code=None):
        super().__init__(message, status_code)


class StorageError(AppError):
    status_code = 500

    def __init__(self, message="Server error.", status_code=None):
        super().__init__(message, status_code)


def register_error_handlers(app):
    @app.errorhandler(AppError)
    def handle_app_error(err):
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(_err):
        app.logger.warning("Database integrity error")
        return jsonify({"error": "Conflict. Resource already exists.", "success": False}), 409

    @app.errorhandler(400)
    def bad_request(_err):
        return jsonify({"error": "Bad request", "success": False}), 400

    @app.errorhandler(401)
    def unauthorized(_err):
        return jsonify({"error": "Unauthorized", "success": False}), 401

    @app.errorhandler(403)
    def forbidden(_err):
        return jsonify({"error": "Forbidden", "success": False}), 403

    @app.errorhandler(404)
    def not_found(_err):
        return jsonify({"error": "Not found", "success": False}), 404

    @app.errorhandler(405)
    def method_not_allowed(_err):
        return jsonify({"error": "Method not allowed", "success": False}), 405

    @app.errorhandler(429)
    def too_many_requests(_err):
        return jsonify({"error": "Too many requests", "success": False}), 429

    @app.errorhandler(500)
    def server_error(_err):
        app.logger.exception("Internal server error")
        return jsonify({"error": "Internal server error", "success": False}), 500
