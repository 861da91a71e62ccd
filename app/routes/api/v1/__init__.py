from flask import Blueprint

from app.extensions import csrf
from app.routes.api.v1.auth import api_auth_bp
from app.routes.api.v1.bids import api_bid_bp
from app.routes.api.v1.notifications import api_notification_bp
from app.routes.api.v1.requests import api_request_bp

api_v1_bp = Blueprint("api_v1", __name__)
api_v1_bp.register_blueprint(api_auth_bp, url_prefix="/auth")
api_v1_bp.register_blueprint(api_request_bp, url_prefix="/requests")
api_v1_bp.register_blueprint(api_bid_bp, url_prefix="/bids")
api_v1_bp.register_blueprint(api_notification_bp, url_prefix="/notifications")

csrf.exempt(api_v1_bp)
