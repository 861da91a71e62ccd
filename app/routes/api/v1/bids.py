from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from app.decorators import role_required
from app.errors import AppError
from app.extensions import limiter
from app.routes.api.v1.payloads import bid_payload
from app.services import BidService

api_bid_bp = Blueprint("api_bid", __name__)


@api_bid_bp.post("")
@login_required
@role_required("owner")
@limiter.limit("30 per minute")
def submit_bid():
    payload = request.get_json(silent=True) or {}
    if payload.get("request_id") is None or payload.get("equipment_id") is None:
        raise AppError("request_id and equipment_id are required.", 400)
    bid = BidService.submit_bid(
        request_id=payload.get("request_id"),
        owner_id=current_user.id,
        equipment_id=payload.get("equipment_id"),
        hourly_rate=payload.get("hourly_rate"),
        daily_rate=payload.get("daily_rate"),
        total_price=payload.get("total_price"),
        comment=payload.get("comment"),
    )
    return jsonify({"message": "Bid submitted.", "bid": bid_payload(bid)}), 201


@api_bid_bp.get("")
@login_required
def list_bids():
    if current_user.role == "owner":
        rows = BidService.bids_for_owner(current_user.id)
    elif current_user.role == "admin":
        request_id = request.args.get("request_id", type=int)
        if request_id is None:
            raise AppError("request_id query parameter is required.", 400)
        rows = BidService.bids_for_request(request_id)
    else:
        raise AppError("Forbidden.", 403)
    return jsonify({"bids": [bid_payload(row) for row in rows]})


@api_bid_bp.get("/<int:bid_id>")
@login_required
def get_bid(bid_id):
    bid = BidService.get_bid(bid_id)
    if current_user.role != "admin" and bid.owner_id != current_user.id:
        raise AppError("Forbidden.", 403)
    return jsonify({"bid": bid_payload(bid)})
