from datetime import timedelta

import pytest

from app.errors import AppError, AuctionNotFinishedError, NotFoundError, ValidationError
from app.extensions import db
from app.models import Notification, RentalBid, RentalRequest, User
from app.models.base import as_utc
from app.services import BidService, PlatformService, RequestService
from conftest import T0, create_user, request_payload

pytestmark = pytest.mark.usefixtures("ctx")

AFTER = T0 + timedelta(hours=6, seconds=1)


def open_auction(market, now=T0, **overrides):
    request, _ = RequestService.create_request(market.manager_id, request_payload(**overrides), now=now)
    return request.id


def user(user_id):
    return db.session.get(User, user_id)


class TestCreateRequest:
    def test_deadline_is_six_hours_after_creation(self, market):
        request, count = RequestService.create_request(market.manager_id, request_payload(), now=T0)

        assert request.status == "auction_active"
        assert as_utc(request.auction_deadline) == T0 + timedelta(hours=6)
        assert count == 2
        assert request.eligible_owners == 2

    def test_platform_setting_overrides_duration(self, market):
        PlatformService.set_auction_duration("1.5")

        request, _ = RequestService.create_request(market.manager_id, request_payload(), now=T0)

        assert as_utc(request.auction_deadline) == T0 + timedelta(minutes=90)

    def test_each_eligible_owner_notified_once(self, market):
        request, _ = RequestService.create_request(market.manager_id, request_payload(), now=T0)

        notified = [n.user_id for n in Notification.query.filter_by(kind="new_request", request_id=request.id)]
        assert sorted(notified) == sorted([market.owner_a_id, market.owner_b_id])

    def test_type_without_partner_equipment_is_still_created(self, market):
        request, count = RequestService.create_request(
            market.manager_id, request_payload(equipment_type="Bulldozer", equipment_subtype="D6"), now=T0
        )

        assert count == 0
        assert request.status == "auction_active"
        assert Notification.query.filter_by(request_id=request.id).count() == 0

    def test_manager_without_company_has_nobody_to_notify(self, market):
        solo = create_user("manager", "solo@nowhere.test")
        _, count = RequestService.create_request(solo.id, request_payload(), now=T0)
        assert count == 0

    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"start_date": (T0 - timedelta(hours=1)).isoformat()}, "future"),
            ({"end_date": (T0 + timedelta(days=1)).isoformat()}, "after the start"),
            ({"start_date": "next tuesday"}, "ISO 8601"),
            ({"location": "  "}, "location"),
            ({"equipment_subtype": None}, "equipment_subtype"),
        ],
    )
    def test_invalid_payload(self, market, overrides, message):
        with pytest.raises(ValidationError) as exc:
            RequestService.create_request(market.manager_id, request_payload(**overrides), now=T0)
        assert message in exc.value.message
        assert RentalRequest.query.count() == 0

    def test_zulu_timestamps_are_accepted(self, market):
        request, _ = RequestService.create_request(
            market.manager_id, request_payload(start_date="2030-03-04T08:00:00Z"), now=T0
        )
        assert as_utc(request.start_date) == T0 + timedelta(days=3)

    def test_only_managers_create_requests(self, market):
        with pytest.raises(AppError) as exc:
            RequestService.create_request(market.owner_a_id, request_payload(), now=T0)
        assert exc.value.status_code == 403


class TestResults:
    def test_results_before_deadline(self, market):
        auction = open_auction(market)
        with pytest.raises(AuctionNotFinishedError):
            RequestService.get_results(auction, now=T0 + timedelta(hours=5))

    def test_results_after_deadline_close_lazily(self, market):
        auction = open_auction(market)
        BidService.submit_bid(auction, market.owner_a_id, market.excavator_a_id, total_price="120", now=T0)
        BidService.submit_bid(auction, market.owner_a_id, market.excavator_a2_id, total_price="80", now=T0)

        results = RequestService.get_results(auction, now=AFTER)

        assert results["request"].status == "auction_closed"
        assert results["winner"].equipment_id == market.excavator_a2_id
        assert results["statistics"]["total_bids"] == 2
        assert results["statistics"]["avg_price"] == 100

    def test_results_without_bids_have_no_prices(self, market):
        auction = open_auction(market)
        results = RequestService.get_results(auction, now=AFTER)
        assert results["winner"] is None
        assert results["statistics"] == {"total_bids": 0}

    def test_results_of_request_cancelled_while_open(self, market):
        auction = open_auction(market)
        RequestService.transition_request(auction, "cancelled", user(market.manager_id), now=T0)

        with pytest.raises(AppError) as exc:
            RequestService.get_results(auction, now=AFTER)
        assert exc.value.status_code == 409

    def test_unknown_request(self, market):
        with pytest.raises(NotFoundError):
            RequestService.get_results(999, now=AFTER)


class TestListRequests:
    def test_owner_sees_only_open_partner_requests(self, market):
        open_id = open_auction(market)
        crane_id = open_auction(market, equipment_type="Crane", equipment_subtype="Mobile 50t")
        old_id = open_auction(market, now=T0 - timedelta(hours=7))

        owner_a_view = {r.id for r in RequestService.list_requests(user(market.owner_a_id), now=T0)}
        outsider_view = RequestService.list_requests(user(market.outsider_id), now=T0)

        # The old auction is already past its deadline.
        assert owner_a_view == {open_id, crane_id}
        assert outsider_view == []
        assert db.session.get(RentalRequest, old_id).status == "auction_closed"

    def test_manager_sees_own_requests_with_status_filter(self, market):
        first = open_auction(market)
        second = open_auction(market, now=T0 - timedelta(hours=7))

        manager = user(market.manager_id)
        assert {r.id for r in RequestService.list_requests(manager, now=T0)} == {first, second}
        closed = RequestService.list_requests(manager, now=T0, status="auction_closed")
        assert [r.id for r in closed] == [second]

        with pytest.raises(ValidationError):
            RequestService.list_requests(manager, now=T0, status="archived")

    def test_admin_sees_everything(self, market):
        open_auction(market)
        solo = create_user("manager", "solo@nowhere.test")
        RequestService.create_request(solo.id, request_payload(), now=T0)

        assert len(RequestService.list_requests(user(market.admin_id), now=T0)) == 2

    def test_bid_counts_and_owner_participation(self, market):
        auction = open_auction(market)
        other = open_auction(market)
        BidService.submit_bid(auction, market.owner_a_id, market.excavator_a_id, total_price="100", now=T0)
        BidService.submit_bid(auction, market.owner_b_id, market.excavator_b_id, total_price="90", now=T0)

        assert RequestService.bid_counts([auction, other]) == {auction: 2}
        assert RequestService.requests_with_owner_bids(market.owner_a_id, [auction, other]) == {auction}
        assert RequestService.bid_counts([]) == {}


class TestParticipation:
    def test_eligible_owner_lists_free_equipment(self, market):
        auction = open_auction(market)
        BidService.submit_bid(auction, market.owner_a_id, market.excavator_a_id, total_price="100", now=T0)

        result = RequestService.participation(auction, user(market.owner_a_id), now=T0)

        assert result["can_participate"] is True
        assert [item.id for item in result["equipment"]] == [market.excavator_a2_id]

    def test_owner_with_every_machine_bid(self, market):
        auction = open_auction(market)
        BidService.submit_bid(auction, market.owner_b_id, market.excavator_b_id, total_price="100", now=T0)

        result = RequestService.participation(auction, user(market.owner_b_id), now=T0)
        assert result["can_participate"] is False

    def test_outsider_and_expired(self, market):
        auction = open_auction(market)
        assert RequestService.participation(auction, user(market.outsider_id), now=T0)["can_participate"] is False
        assert RequestService.participation(auction, user(market.owner_a_id), now=AFTER) == {
            "can_participate": False,
            "reason": "Auction is not active.",
        }


class TestTransitions:
    def test_close_then_complete(self, market):
        auction = open_auction(market)
        BidService.submit_bid(auction, market.owner_a_id, market.excavator_a_id, total_price="100", now=T0)

        request = RequestService.transition_request(auction, "completed", user(market.manager_id), now=AFTER)

        assert request.status == "completed"
        assert as_utc(request.completed_at) == AFTER
        assert request.winning_bid.status == "accepted"

    def test_active_auction_cannot_be_completed(self, market):
        auction = open_auction(market)
        with pytest.raises(ValidationError):
            RequestService.transition_request(auction, "completed", user(market.manager_id), now=T0)

    def test_closed_is_never_set_by_hand(self, market):
        auction = open_auction(market)
        with pytest.raises(ValidationError):
            RequestService.transition_request(auction, "auction_closed", user(market.admin_id), now=T0)

    def test_cancel_open_auction_blocks_bids(self, market):
        auction = open_auction(market)
        RequestService.transition_request(auction, "cancelled", user(market.admin_id), now=T0)

        request = db.session.get(RentalRequest, auction)
        assert request.status == "cancelled"
        assert as_utc(request.cancelled_at) == T0
        assert RentalBid.query.count() == 0

    def test_terminal_states_stay_put(self, market):
        auction = open_auction(market)
        RequestService.transition_request(auction, "cancelled", user(market.manager_id), now=T0)
        with pytest.raises(ValidationError):
            RequestService.transition_request(auction, "completed", user(market.manager_id), now=AFTER)

    def test_only_the_manager_or_admin(self, market):
        auction = open_auction(market)
        with pytest.raises(AppError) as exc:
            RequestService.transition_request(auction, "cancelled", user(market.owner_a_id), now=T0)
        assert exc.value.status_code == 403

    def test_can_view(self, market):
        request = db.session.get(RentalRequest, open_auction(market))
        assert RequestService.can_view(request, user(market.manager_id))
        assert RequestService.can_view(request, user(market.admin_id))
        assert RequestService.can_view(request, user(market.owner_a_id))
        assert not RequestService.can_view(request, user(market.outsider_id))
