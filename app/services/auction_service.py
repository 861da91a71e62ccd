from flask import current_app
from sqlalchemy import case, func, update
from sqlalchemy.exc import SQLAlchemyError

from app.errors import NotFoundError
from app.extensions import db
from app.models import RentalBid, RentalRequest
from app.models.base import utcnow
from app.services.bid_resolution import bid_statistics, select_winning_bid
from app.services.notification_service import NotificationService


class AuctionService:
    @staticmethod
    def _claim_close(request_id, now):
        """Flip active -> closed if the deadline has passed. True for exactly one caller."""
        result = db.session.execute(
            update(RentalRequest)
            .where(RentalRequest.id == request_id)
            .where(RentalRequest.status == "auction_active")
            .where(RentalRequest.auction_deadline <= now)
            .values(status="auction_closed", closed_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def _resolve(request_id, now):
        bids = (
            RentalBid.query.filter_by(request_id=request_id, status="pending")
            .order_by(RentalBid.id.asc())
            .all()
        )
        winner = select_winning_bid(bids)
        stats = bid_statistics(bids)

        db.session.execute(
            update(RentalRequest)
            .where(RentalRequest.id == request_id)
            .values(
                winning_bid_id=winner.id if winner else None,
                total_bids=stats["total_bids"],
                min_price=stats.get("min_price"),
                max_price=stats.get("max_price"),
                avg_price=stats.get("avg_price"),
            )
            .execution_options(synchronize_session=False)
        )
        if winner is not None:
            db.session.execute(
                update(RentalBid)
                .where(RentalBid.request_id == request_id)
                .where(RentalBid.status == "pending")
                .values(status=case((RentalBid.id == winner.id, "accepted"), else_="rejected"))
                .execution_options(synchronize_session=False)
            )

        request = db.session.get(RentalRequest, request_id, populate_existing=True)
        for bid in bids:
            db.session.refresh(bid)
        NotificationService.auction_closed(request, winner, bids)
        return request, winner, stats

    @staticmethod
    def close_if_expired(request_id, now=None):
        """Close the auction if its deadline has passed and return the request.

        Safe to call from any number of concurrent readers. Only the caller
        whose conditional update succeeds resolves the winner, updates bid
        statuses and emits notifications; every other caller just reads the
        persisted result.
        """
        now = now or utcnow()
        try:
            if not AuctionService._claim_close(request_id, now):
                db.session.rollback()
                request = db.session.get(RentalRequest, request_id, populate_existing=True)
                if request is None:
                    raise NotFoundError("Rental request not found.")
                if request.status != "auction_active":
                    current_app.logger.debug("Auction #%s already %s; reading stored result", request_id, request.status)
                return request

            request, winner, stats = AuctionService._resolve(request_id, now)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("Closing auction #%s failed; nothing was applied", request_id)
            raise

        if winner is not None:
            current_app.logger.info(
                "Auction #%s closed: winning bid #%s at %s out of %s bids",
                request_id,
                winner.id,
                winner.total_price,
                stats["total_bids"],
            )
        else:
            current_app.logger.info("Auction #%s closed without bids", request_id)
        return request

    @staticmethod
    def overdue_request_ids(now=None):
        now = now or utcnow()
        rows = (
            db.session.query(RentalRequest.id)
            .filter(RentalRequest.status == "auction_active")
            .filter(RentalRequest.auction_deadline <= now)
            .order_by(RentalRequest.auction_deadline.asc())
            .all()
        )
        return [row[0] for row in rows]

    @staticmethod
    def close_expired_auctions(now=None):
        """Sweep every overdue auction through close_if_expired."""
        now = now or utcnow()
        results = []
        for request_id in AuctionService.overdue_request_ids(now):
            try:
                request = AuctionService.close_if_expired(request_id, now=now)
            except SQLAlchemyError as exc:
                results.append({"request_id": request_id, "success": False, "error": str(exc)})
                continue
            results.append(
                {
                    "request_id": request_id,
                    "success": True,
                    "winning_bid_id": request.winning_bid_id,
                    "total_bids": request.total_bids,
                }
            )
        if results:
            current_app.logger.info("Swept %s expired auctions", len(results))
        return {"closed": len(results), "results": results}

    @staticmethod
    def auction_stats():
        request_row = db.session.query(
            func.count(RentalRequest.id),
            func.sum(case((RentalRequest.status == "auction_active", 1), else_=0)),
            func.sum(case((RentalRequest.status == "auction_closed", 1), else_=0)),
            func.sum(case((RentalRequest.status == "completed", 1), else_=0)),
            func.sum(case((RentalRequest.status == "cancelled", 1), else_=0)),
        ).one()
        avg_winning_price = (
            db.session.query(func.avg(RentalBid.total_price))
            .join(RentalRequest, RentalRequest.winning_bid_id == RentalBid.id)
            .scalar()
        )
        bid_row = db.session.query(
            func.count(RentalBid.id),
            func.sum(case((RentalBid.status == "pending", 1), else_=0)),
            func.sum(case((RentalBid.status == "accepted", 1), else_=0)),
            func.sum(case((RentalBid.status == "rejected", 1), else_=0)),
            func.avg(RentalBid.total_price),
            func.min(RentalBid.total_price),
            func.max(RentalBid.total_price),
        ).one()

        total, active, closed, completed, cancelled = (int(value or 0) for value in request_row)
        decided = closed + completed
        return {
            "requests": {
                "total": total,
                "active_auctions": active,
                "closed_auctions": closed,
                "completed": completed,
                "cancelled": cancelled,
                "avg_winning_price": round(float(avg_winning_price), 2) if avg_winning_price is not None else None,
            },
            "bids": {
                "total": int(bid_row[0] or 0),
                "pending": int(bid_row[1] or 0),
                "accepted": int(bid_row[2] or 0),
                "rejected": int(bid_row[3] or 0),
                "avg_price": round(float(bid_row[4]), 2) if bid_row[4] is not None else None,
                "min_price": float(bid_row[5]) if bid_row[5] is not None else None,
                "max_price": float(bid_row[6]) if bid_row[6] is not None else None,
            },
            "conversion_rate": round(decided * 100.0 / total, 2) if total else 0.0,
        }
