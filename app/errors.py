from flask import jsonify
from sqlalchemy.exc import IntegrityError, SQLAlchemyError


class AppError(Exception):
    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    status_code = 400


class NotFoundError(AppError):
    status_code = 404


class AuctionClosedError(AppError):
    status_code = 409

    def __init__(self, message="Auction is closed for bidding.", status_code=None):
        super().__init__(message, status_code)


# Both eligibility failures share one message so callers cannot probe
# ownership or partnership topology.
NOT_ELIGIBLE_MESSAGE = "Not eligible to bid on this request."


class IneligibleEquipmentError(AppError):
    status_code = 403

    def __init__(self, message=NOT_ELIGIBLE_MESSAGE, status_code=None):
        super().__init__(message, status_code)


class NotAuthorizedError(AppError):
    status_code = 403

    def __init__(self, message=NOT_ELIGIBLE_MESSAGE, status_code=None):
        super().__init__(message, status_code)


class DuplicateBidError(AppError):
    status_code = 409

    def __init__(self, message="A bid for this equipment was already submitted.", status_code=None):
        super().__init__(message, status_code)


class AuctionNotFinishedError(AppError):
    status_code = 409

    def __init__(self, message="Auction is still running. Try again after the deadline.", status_code=None):
        super().__init__(message, status_code)


def register_error_handlers(app):
    @app.errorhandler(AppError)
    def handle_app_error(err):
        return jsonify({"error": err.message}), err.status_code

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(_err):
        app.logger.warning("Database integrity error")
        return jsonify({"error": "Conflict. Resource already exists."}), 409

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(_err):
        app.logger.exception("Database error")
        return jsonify({"error": "Internal server error"}), 500

    @app.errorhandler(400)
    def bad_request(_err):
        return jsonify({"error": "Bad request"}), 400

    @app.errorhandler(401)
    def unauthorized(_err):
        return jsonify({"error": "Unauthorized"}), 401

    @app.errorhandler(403)
    def forbidden(_err):
        return jsonify({"error": "Forbidden"}), 403

    @app.errorhandler(404)
    def not_found(_err):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(429)
    def too_many_requests(_err):
        return jsonify({"error": "Too many requests"}), 429

    @app.errorhandler(500)
    def server_error(_err):
        app.logger.exception("Internal server error")
        return jsonify({"error": "Internal server error"}), 500
