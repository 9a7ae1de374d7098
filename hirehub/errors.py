"""Error taxonomy shared by services, jobs and blueprints.

Services raise these; the handlers registered in ``register_error_handlers``
turn them into ``{"error": ..., "code": ...}`` JSON responses.
"""
from flask import jsonify


class HireHubError(Exception):
    status_code = 500
    code = "ERROR"

    def __init__(self, message, code=None, **details):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details

    def to_dict(self):
        body = {"error": self.message, "code": self.code}
        body.update(self.details)
        return body


class ValidationError(HireHubError):
    status_code = 400
    code = "VALIDATION_ERROR"


class TokenExpiredError(ValidationError):
    status_code = 410
    code = "TOKEN_EXPIRED"


class NotFoundError(HireHubError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(HireHubError):
    status_code = 409
    code = "CONFLICT"


class DependencyError(HireHubError):
    """An outbound dependency (mail, AI) failed; safe to retry later."""
    status_code = 503
    code = "DEPENDENCY_ERROR"


class DeliveryError(DependencyError):
    code = "DELIVERY_FAILED"


class ClassificationError(DependencyError):
    code = "CLASSIFICATION_FAILED"


def register_error_handlers(app):
    @app.errorhandler(HireHubError)
    def handle_hirehub_error(err):
        if err.status_code >= 500:
            app.logger.warning('%s: %s', err.code, err.message)
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(401)
    def handle_unauthorized(_err):
        return jsonify({"error": "Unauthorized", "code": "UNAUTHORIZED"}), 401

    @app.errorhandler(403)
    def handle_forbidden(_err):
        return jsonify({"error": "Forbidden", "code": "FORBIDDEN"}), 403
