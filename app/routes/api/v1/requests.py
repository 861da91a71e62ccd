from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from app.decorators import role_required
from app.errors import AppError
from app.extensions import cache
from app.routes.api.v1.payloads import (
    bid_payload,
    equipment_payload,
    request_payload,
    statistics_payload,
    winner_payload,
)
from app.services import AuctionService, BidService, EligibilityService, RequestService

api_request_bp = Blueprint("api_request", __name__)


@api_request_bp.get("")
@login_required
def list_requests():
    rows = RequestService.list_requests(current_user, status=request.args.get("status"))
    ids = [row.id for row in rows]
    if current_user.role == "owner":
        with_bids = RequestService.requests_with_owner_bids(current_user.id, ids)
        items = [request_payload(row, has_bid=row.id in with_bids) for row in rows]
    else:
        counts = RequestService.bid_counts(ids)
        items = [request_payload(row, bids_count=counts.get(row.id, 0)) for row in rows]
    return jsonify({"requests": items})


@api_request_bp.post("")
@login_required
@role_required("manager")
def create_request():
    payload = request.get_json(silent=True) or {}
    rental_request, eligible_owners = RequestService.create_request(current_user.id, payload)
    return (
        jsonify(
            {
                "message": "Request created. The auction has started.",
                "request": request_payload(rental_request),
                "eligible_owners": eligible_owners,
            }
        ),
        201,
    )


@api_request_bp.get("/<int:request_id>")
@login_required
def get_request(request_id):
    rental_request = RequestService.get_request(request_id)
    if not RequestService.can_view(rental_request, current_user):
        raise AppError("Forbidden.", 403)

    is_closed = rental_request.closed_at is not None
    if current_user.role == "admin" or rental_request.manager_id == current_user.id:
        # Prices stay sealed until the auction closes.
        bids = [bid_payload(bid, with_price=is_closed) for bid in BidService.bids_for_request(request_id)]
    else:
        bids = [bid_payload(bid) for bid in BidService.bids_for_request(request_id, owner_id=current_user.id)]

    return jsonify(
        {
            "request": request_payload(rental_request, bids_count=BidService.count_for_request(request_id)),
            "bids": bids,
        }
    )


@api_request_bp.get("/<int:request_id>/results")
@login_required
@role_required("manager", "admin")
def get_results(request_id):
    rental_request = RequestService.get_request(request_id)
    if current_user.role != "admin" and rental_request.manager_id != current_user.id:
        raise AppError("Forbidden.", 403)

    results = RequestService.get_results(request_id)
    winner = results["winner"]
    return jsonify(
        {
            "request": request_payload(results["request"]),
            "winner": winner_payload(winner) if winner is not None else None,
            "statistics": statistics_payload(results["statistics"]),
        }
    )


@api_request_bp.get("/<int:request_id>/participation")
@login_required
@role_required("owner")
def participation(request_id):
    outcome = RequestService.participation(request_id, current_user)
    if not outcome["can_participate"]:
        return jsonify(outcome)
    return jsonify(
        {
            "can_participate": True,
            "equipment": [equipment_payload(item) for item in outcome["equipment"]],
            "deadline": outcome["deadline"].isoformat(),
        }
    )


@api_request_bp.patch("/<int:request_id>/status")
@login_required
@role_required("manager", "admin")
def update_status(request_id):
    payload = request.get_json(silent=True) or {}
    rental_request = RequestService.transition_request(request_id, payload.get("status"), current_user)
    return jsonify({"id": rental_request.id, "status": rental_request.status})


@api_request_bp.get("/equipment-types")
@login_required
@role_required("manager")
def equipment_types():
    return jsonify({"types": EligibilityService.available_types_for_manager(current_user)})


@api_request_bp.get("/admin/stats")
@login_required
@role_required("admin")
@cache.cached(timeout=60)
def auction_stats():
    return jsonify({"stats": AuctionService.auction_stats()})
