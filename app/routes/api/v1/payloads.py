from app.models.base import as_utc


def _iso(value):
    value = as_utc(value)
    return value.isoformat() if value is not None else None


def _money(value):
    return float(value) if value is not None else None


def request_payload(request, **extra):
    payload = {
        "id": request.id,
        "manager_id": request.manager_id,
        "equipment_type": request.equipment_type,
        "equipment_subtype": request.equipment_subtype,
        "start_date": _iso(request.start_date),
        "end_date": _iso(request.end_date),
        "location": request.location,
        "work_description": request.work_description,
        "status": request.status,
        "auction_deadline": _iso(request.auction_deadline),
        "winning_bid_id": request.winning_bid_id,
        "created_at": _iso(request.created_at),
    }
    if request.closed_at is not None:
        payload["closed_at"] = _iso(request.closed_at)
        if request.winning_bid is not None:
            payload["winner"] = winner_payload(request.winning_bid)
    payload.update(extra)
    return payload


def bid_payload(bid, with_price=True):
    payload = {
        "id": bid.id,
        "request_id": bid.request_id,
        "owner_id": bid.owner_id,
        "owner_name": bid.owner.full_name if bid.owner else None,
        "equipment_id": bid.equipment_id,
        "equipment_name": bid.equipment.name if bid.equipment else None,
        "status": bid.status,
        "created_at": _iso(bid.created_at),
    }
    if with_price:
        payload.update(
            hourly_rate=_money(bid.hourly_rate),
            daily_rate=_money(bid.daily_rate),
            total_price=_money(bid.total_price),
            comment=bid.comment,
        )
    return payload


def winner_payload(bid):
    owner = bid.owner
    return {
        "bid_id": bid.id,
        "owner_name": owner.full_name if owner else None,
        "owner_phone": owner.phone if owner else None,
        "company_name": owner.company.name if owner and owner.company else None,
        "equipment_name": bid.equipment.name if bid.equipment else None,
        "total_price": _money(bid.total_price),
        "hourly_rate": _money(bid.hourly_rate),
        "daily_rate": _money(bid.daily_rate),
        "comment": bid.comment,
        "created_at": _iso(bid.created_at),
    }


def statistics_payload(statistics):
    return {key: (_money(value) if key != "total_bids" else value) for key, value in statistics.items()}


def equipment_payload(item):
    return {
        "id": item.id,
        "name": item.name,
        "type": item.type,
        "subtype": item.subtype,
        "status": item.status,
        "location": item.location,
        "hourly_rate": _money(item.hourly_rate),
        "daily_rate": _money(item.daily_rate),
    }
