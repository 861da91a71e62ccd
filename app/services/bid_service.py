from decimal import Decimal, InvalidOperation

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import joinedload

from app.errors import (
    AppError,
    AuctionClosedError,
    DuplicateBidError,
    IneligibleEquipmentError,
    NotAuthorizedError,
    NotFoundError,
    ValidationError,
)
from app.extensions import db
from app.models import Equipment, RentalBid, RentalRequest, User
from app.models.base import as_utc, utcnow
from app.services.auction_service import AuctionService
from app.services.eligibility_service import EligibilityService

MONEY_QUANTUM = Decimal("0.01")
# Numeric(12, 2) holds at most ten integer digits.
MAX_AMOUNT = Decimal("1e10")


class BidService:
    @staticmethod
    def _parse_amount(value, label, required=False):
        if value is None or (isinstance(value, str) and not value.strip()):
            if required:
                raise ValidationError(f"{label} is required.")
            return None
        if isinstance(value, bool):
            raise ValidationError(f"{label} must be a number.")
        try:
            amount = Decimal(str(value).strip())
            if not amount.is_finite():
                raise ValueError(value)
            if abs(amount) >= MAX_AMOUNT:
                raise ValidationError(f"{label} is too large.")
            return amount.quantize(MONEY_QUANTUM)
        except (InvalidOperation, ValueError) as exc:
            raise ValidationError(f"{label} must be a number.") from exc

    @staticmethod
    def _claim_open_auction(request_id, now):
        """Touch the request row only while bidding is open.

        The predicate is the exact negation of the closer's, and the row stays
        locked until this transaction ends, so a bid and a close on the same
        request can never both commit against the same state.
        """
        result = db.session.execute(
            update(RentalRequest)
            .where(RentalRequest.id == request_id)
            .where(RentalRequest.status == "auction_active")
            .where(RentalRequest.auction_deadline > now)
            .values(updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def submit_bid(
        request_id,
        owner_id,
        equipment_id,
        hourly_rate=None,
        daily_rate=None,
        total_price=None,
        comment=None,
        now=None,
    ):
        now = now or utcnow()
        total = BidService._parse_amount(total_price, "Total price", required=True)
        hourly = BidService._parse_amount(hourly_rate, "Hourly rate")
        daily = BidService._parse_amount(daily_rate, "Daily rate")
        if total <= 0:
            raise ValidationError("Total price must be greater than zero.")
        if (hourly is not None and hourly < 0) or (daily is not None and daily < 0):
            raise ValidationError("Rates cannot be negative.")

        try:
            if not BidService._claim_open_auction(request_id, now):
                db.session.rollback()
                BidService._close_if_overdue(request_id, now)
                raise AuctionClosedError()

            request = db.session.get(RentalRequest, request_id, populate_existing=True)
            owner = db.session.get(User, owner_id, populate_existing=True)
            equipment = db.session.get(Equipment, equipment_id, populate_existing=True)

            if not EligibilityService.is_bidding_owner(owner):
                raise NotAuthorizedError()
            if (
                equipment is None
                or equipment.owner_id != owner.id
                or equipment.status != "available"
                or equipment.type != request.equipment_type
                or equipment.subtype != request.equipment_subtype
            ):
                raise IneligibleEquipmentError()
            if not EligibilityService.has_active_partnership(owner, request.manager):
                raise NotAuthorizedError()
            if RentalBid.query.filter_by(request_id=request.id, equipment_id=equipment.id).first():
                raise DuplicateBidError()

            bid = RentalBid(
                request_id=request.id,
                owner_id=owner.id,
                equipment_id=equipment.id,
                hourly_rate=hourly,
                daily_rate=daily,
                total_price=total,
                comment=(comment or "").strip() or None,
                status="pending",
                created_at=now,
                updated_at=now,
            )
            db.session.add(bid)
            db.session.commit()
        except AppError as exc:
            db.session.rollback()
            current_app.logger.warning(
                "Bid rejected on request #%s for equipment #%s by owner #%s: %s",
                request_id,
                equipment_id,
                owner_id,
                type(exc).__name__,
            )
            raise
        except IntegrityError as exc:
            # Lost a race with an identical submission.
            db.session.rollback()
            raise DuplicateBidError() from exc
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("Persisting bid on request #%s failed", request_id)
            raise

        current_app.logger.info(
            "Bid #%s admitted on request #%s: %s by owner #%s", bid.id, request_id, total, owner_id
        )
        return bid

    @staticmethod
    def _close_if_overdue(request_id, now):
        request = db.session.get(RentalRequest, request_id)
        if request is None:
            return
        deadline = as_utc(request.auction_deadline)
        if request.status == "auction_active" and deadline <= now:
            AuctionService.close_if_expired(request_id, now=now)

    @staticmethod
    def get_bid(bid_id):
        bid = db.session.get(RentalBid, bid_id)
        if bid is None:
            raise NotFoundError("Bid not found.")
        return bid

    @staticmethod
    def bids_for_owner(owner_id):
        return (
            RentalBid.query.options(joinedload(RentalBid.request), joinedload(RentalBid.equipment))
            .filter_by(owner_id=owner_id)
            .order_by(RentalBid.created_at.desc(), RentalBid.id.desc())
            .all()
        )

    @staticmethod
    def bids_for_request(request_id, owner_id=None):
        query = RentalBid.query.options(joinedload(RentalBid.owner), joinedload(RentalBid.equipment)).filter_by(
            request_id=request_id
        )
        if owner_id is not None:
            query = query.filter_by(owner_id=owner_id)
        return query.order_by(RentalBid.total_price.asc(), RentalBid.created_at.asc(), RentalBid.id.asc()).all()

    @staticmethod
    def count_for_request(request_id):
        return RentalBid.query.filter_by(request_id=request_id).count()
