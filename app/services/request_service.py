from datetime import date, datetime, time, timezone

from flask import current_app
from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError

from app.errors import AppError, AuctionNotFinishedError, NotFoundError, ValidationError
from app.extensions import db
from app.models import RentalBid, RentalRequest, User
from app.models.base import as_utc, utcnow
from app.services.auction_service import AuctionService
from app.services.eligibility_service import EligibilityService
from app.services.notification_service import NotificationService
from app.services.platform_service import PlatformService

# Transitions owned by managers/admins. auction_active -> auction_closed
# belongs to AuctionService alone.
REQUEST_TRANSITIONS = {
    "auction_active": {"cancelled"},
    "auction_closed": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}


class RequestService:
    REQUIRED_FIELDS = ("equipment_type", "equipment_subtype", "start_date", "end_date", "location")

    @staticmethod
    def _parse_datetime(value, label):
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, date):
            parsed = datetime.combine(value, time.min)
        else:
            raw = (value or "").strip() if isinstance(value, str) else ""
            if not raw:
                raise ValidationError(f"{label} is required.")
            if raw.endswith("Z"):
                raw = raw[:-1] + "+00:00"
            try:
                parsed = datetime.fromisoformat(raw)
            except ValueError as exc:
                raise ValidationError(f"{label} must be an ISO 8601 date.") from exc
        return as_utc(parsed).astimezone(timezone.utc)

    @staticmethod
    def create_request(manager_id, payload, now=None):
        """Open a new auction and tell every eligible owner about it.

        Returns ``(request, eligible_owner_count)``.
        """
        now = now or utcnow()
        manager = db.session.get(User, manager_id)
        if manager is None or manager.role != "manager":
            raise AppError("Only managers can create rental requests.", 403)

        values = {key: (payload.get(key) or "") for key in RequestService.REQUIRED_FIELDS}
        missing = [key for key in RequestService.REQUIRED_FIELDS if not str(values[key]).strip()]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}.")

        start_date = RequestService._parse_datetime(values["start_date"], "Start date")
        end_date = RequestService._parse_datetime(values["end_date"], "End date")
        if start_date <= now:
            raise ValidationError("Start date must be in the future.")
        if end_date <= start_date:
            raise ValidationError("End date must be after the start date.")

        equipment_type = str(values["equipment_type"]).strip()
        equipment_subtype = str(values["equipment_subtype"]).strip()
        auction_deadline = now + PlatformService.auction_duration()

        request = RentalRequest(
            manager_id=manager.id,
            equipment_type=equipment_type,
            equipment_subtype=equipment_subtype,
            start_date=start_date,
            end_date=end_date,
            location=str(values["location"]).strip(),
            work_description=(payload.get("work_description") or "").strip() or None,
            status="auction_active",
            auction_deadline=auction_deadline,
            created_at=now,
            updated_at=now,
        )
        try:
            owner_ids = EligibilityService.eligible_owner_ids(manager, equipment_type, equipment_subtype)
            request.eligible_owners = len(owner_ids)
            db.session.add(request)
            db.session.flush()
            NotificationService.request_created(request, owner_ids)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("Creating rental request for manager #%s failed", manager_id)
            raise

        if not owner_ids:
            current_app.logger.warning(
                "Request #%s (%s/%s) has no eligible owners", request.id, equipment_type, equipment_subtype
            )
        current_app.logger.info(
            "Auction #%s opened until %s, %s owners notified",
            request.id,
            auction_deadline.isoformat(),
            len(owner_ids),
        )
        return request, len(owner_ids)

    @staticmethod
    def get_request(request_id, now=None):
        return AuctionService.close_if_expired(request_id, now=now)

    @staticmethod
    def _close_overdue_in(query, now):
        overdue = (
            query.filter(RentalRequest.status == "auction_active")
            .filter(RentalRequest.auction_deadline <= now)
            .with_entities(RentalRequest.id)
            .all()
        )
        for (request_id,) in overdue:
            AuctionService.close_if_expired(request_id, now=now)

    @staticmethod
    def list_requests(user, now=None, status=None):
        """Requests visible to ``user``; overdue auctions are closed before returning."""
        now = now or utcnow()
        if user.role == "admin":
            query = RentalRequest.query
        elif user.role == "manager":
            query = RentalRequest.query.filter(RentalRequest.manager_id == user.id)
        elif user.role == "owner":
            query = EligibilityService.visible_requests_query(user)
        else:
            raise AppError("Forbidden.", 403)

        RequestService._close_overdue_in(query, now)

        if user.role == "owner":
            # Owners only see auctions they can still bid on.
            query = query.filter(RentalRequest.status == "auction_active").filter(
                RentalRequest.auction_deadline > now
            )
            return query.order_by(RentalRequest.auction_deadline.asc(), RentalRequest.id.asc()).all()

        if status:
            if status not in RentalRequest.STATUSES:
                raise ValidationError("Unknown request status.")
            query = query.filter(RentalRequest.status == status)
        return query.order_by(RentalRequest.created_at.desc(), RentalRequest.id.desc()).all()

    @staticmethod
    def bid_counts(request_ids):
        if not request_ids:
            return {}
        rows = (
            db.session.query(RentalBid.request_id, func.count(RentalBid.id))
            .filter(RentalBid.request_id.in_(request_ids))
            .group_by(RentalBid.request_id)
            .all()
        )
        return {request_id: int(count) for request_id, count in rows}

    @staticmethod
    def requests_with_owner_bids(owner_id, request_ids):
        if not request_ids:
            return set()
        rows = (
            db.session.query(RentalBid.request_id)
            .filter(RentalBid.owner_id == owner_id)
            .filter(RentalBid.request_id.in_(request_ids))
            .distinct()
            .all()
        )
        return {row[0] for row in rows}

    @staticmethod
    def get_results(request_id, now=None):
        request = AuctionService.close_if_expired(request_id, now=now)
        if request.status == "auction_active":
            raise AuctionNotFinishedError()
        if request.closed_at is None:
            raise AppError("Request was cancelled before the auction finished.", 409)

        statistics = {"total_bids": request.total_bids or 0}
        if statistics["total_bids"]:
            statistics.update(
                min_price=request.min_price,
                max_price=request.max_price,
                avg_price=request.avg_price,
            )
        return {
            "request": request,
            "winner": request.winning_bid,
            "statistics": statistics,
        }

    @staticmethod
    def can_view(request, user):
        if user.role == "admin" or request.manager_id == user.id:
            return True
        if user.role == "owner":
            return EligibilityService.has_active_partnership(user, request.manager)
        return False

    @staticmethod
    def participation(request_id, owner, now=None):
        """Whether ``owner`` may bid right now, and with which equipment."""
        now = now or utcnow()
        request = AuctionService.close_if_expired(request_id, now=now)
        if request.status != "auction_active" or as_utc(request.auction_deadline) <= now:
            return {"can_participate": False, "reason": "Auction is not active."}
        equipment = EligibilityService.owner_equipment_for_request(owner, request)
        if not equipment:
            return {"can_participate": False, "reason": "Not eligible to bid on this request."}
        taken = {
            row[0]
            for row in db.session.query(RentalBid.equipment_id)
            .filter(RentalBid.request_id == request.id)
            .filter(RentalBid.equipment_id.in_([item.id for item in equipment]))
            .all()
        }
        free = [item for item in equipment if item.id not in taken]
        if not free:
            return {"can_participate": False, "reason": "All of your matching equipment already has a bid."}
        return {
            "can_participate": True,
            "equipment": free,
            "deadline": as_utc(request.auction_deadline),
        }

    @staticmethod
    def transition_request(request_id, new_status, actor, now=None):
        now = now or utcnow()
        request = AuctionService.close_if_expired(request_id, now=now)
        if actor.role != "admin" and request.manager_id != actor.id:
            raise AppError("Forbidden.", 403)

        current = request.status
        new_status = (new_status or "").strip().lower()
        if new_status not in REQUEST_TRANSITIONS.get(current, set()):
            raise ValidationError(f"Invalid status transition from {current} to {new_status}.")

        values = {"status": new_status}
        if new_status == "completed":
            values["completed_at"] = now
        elif new_status == "cancelled":
            values["cancelled_at"] = now
        try:
            result = db.session.execute(
                update(RentalRequest)
                .where(RentalRequest.id == request_id)
                .where(RentalRequest.status == current)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                db.session.rollback()
                raise AppError("Request status changed concurrently. Reload and retry.", 409)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("Status change of request #%s failed", request_id)
            raise

        current_app.logger.info("Request #%s moved from %s to %s by user #%s", request_id, current, new_status, actor.id)
        request = db.session.get(RentalRequest, request_id, populate_existing=True)
        if request is None:
            raise NotFoundError("Rental request not found.")
        return request
