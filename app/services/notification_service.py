from app.extensions import db
from app.models import Notification


class NotificationService:
    """In-app notification rows; delivery to push/bot/email happens elsewhere."""

    @staticmethod
    def push(user_id, title, message, kind="info", request_id=None):
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            kind=kind,
            request_id=request_id,
        )
        db.session.add(notification)
        db.session.flush()
        return notification

    @staticmethod
    def unread_count(user_id):
        return Notification.query.filter_by(user_id=user_id, is_read=False).count()

    @staticmethod
    def latest_for_user(user_id, limit=10):
        return (
            Notification.query.filter_by(user_id=user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def mark_all_read(user_id):
        Notification.query.filter_by(user_id=user_id, is_read=False).update({"is_read": True})
        db.session.commit()

    @staticmethod
    def request_created(request, owner_ids):
        deadline = request.auction_deadline.strftime("%Y-%m-%d %H:%M UTC")
        for owner_id in owner_ids:
            NotificationService.push(
                owner_id,
                "New rental request",
                f"Request #{request.id} needs {request.equipment_type} ({request.equipment_subtype}) "
                f"at {request.location}. Bids close at {deadline}.",
                kind="new_request",
                request_id=request.id,
            )

    @staticmethod
    def auction_closed(request, winner, bids):
        if winner is None:
            NotificationService.push(
                request.manager_id,
                "Auction finished without bids",
                f"No offers were received for request #{request.id} ({request.equipment_type}). "
                "Consider posting a new request.",
                kind="auction_no_bids",
                request_id=request.id,
            )
            return

        NotificationService.push(
            winner.owner_id,
            "Your bid won",
            f"Your bid of {winner.total_price} on request #{request.id} ({request.equipment_type}) won the auction.",
            kind="bid_won",
            request_id=request.id,
        )
        NotificationService.push(
            request.manager_id,
            "Auction finished",
            f"Request #{request.id} was won by {winner.owner.full_name} ({winner.owner.phone}) "
            f"with {winner.equipment.name} for {winner.total_price}.",
            kind="auction_closed",
            request_id=request.id,
        )
        for bid in bids:
            if bid.id == winner.id:
                continue
            NotificationService.push(
                bid.owner_id,
                "Your bid was not selected",
                f"Another offer won request #{request.id} ({request.equipment_type}).",
                kind="bid_lost",
                request_id=request.id,
            )
