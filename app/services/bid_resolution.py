"""Pure winner selection and price statistics over a set of bids.

Both functions only read ``total_price``, ``created_at`` and ``id`` from the
bids they are given, so they work with model rows or any similar object.
"""

from decimal import Decimal

from app.models.base import as_utc

PRICE_QUANTUM = Decimal("0.01")


def _ranking_key(bid):
    return (Decimal(str(bid.total_price)), as_utc(bid.created_at), bid.id or 0)


def select_winning_bid(bids):
    """Cheapest bid wins; equal prices go to the earliest submission."""
    bids = list(bids)
    if not bids:
        return None
    return min(bids, key=_ranking_key)


def bid_statistics(bids):
    prices = [Decimal(str(bid.total_price)) for bid in bids]
    if not prices:
        return {"total_bids": 0}
    avg = (sum(prices) / len(prices)).quantize(PRICE_QUANTUM)
    return {
        "total_bids": len(prices),
        "min_price": min(prices),
        "max_price": max(prices),
        "avg_price": avg,
    }
