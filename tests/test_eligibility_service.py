import pytest

from app.extensions import db
from app.models import Company, CompanyPartnership, Equipment, User
from app.services import EligibilityService
from conftest import create_user

pytestmark = pytest.mark.usefixtures("ctx")


def _user(user_id):
    return db.session.get(User, user_id)


def test_partner_equipment_matching_type_and_subtype(market):
    pairs = EligibilityService.eligible_pairs(_user(market.manager_id), "Excavator", "Crawler 20t")
    assert pairs == {
        (market.owner_a_id, market.excavator_a_id),
        (market.owner_a_id, market.excavator_a2_id),
        (market.owner_b_id, market.excavator_b_id),
    }


def test_owner_count_is_distinct_owners(market):
    owners = EligibilityService.eligible_owner_ids(_user(market.manager_id), "Excavator", "Crawler 20t")
    assert owners == sorted([market.owner_a_id, market.owner_b_id])


def test_subtype_must_match_exactly(market):
    assert EligibilityService.eligible_pairs(_user(market.manager_id), "Excavator", "Crawler 30t") == set()


def test_inactive_partnership_excludes_owner(market):
    link = CompanyPartnership.query.filter_by(owner_company_id=market.rent_id).one()
    link.status = "inactive"
    db.session.commit()

    owners = EligibilityService.eligible_owner_ids(_user(market.manager_id), "Excavator", "Crawler 20t")
    assert owners == [market.owner_a_id]


def test_equipment_leaving_available_drops_out(market):
    db.session.get(Equipment, market.excavator_b_id).status = "maintenance"
    db.session.commit()

    owners = EligibilityService.eligible_owner_ids(_user(market.manager_id), "Excavator", "Crawler 20t")
    assert owners == [market.owner_a_id]


def test_deactivated_owner_company_drops_out(market):
    db.session.get(Company, market.heavy_id).status = "inactive"
    db.session.commit()

    owners = EligibilityService.eligible_owner_ids(_user(market.manager_id), "Excavator", "Crawler 20t")
    assert owners == [market.owner_b_id]


def test_manager_without_company_has_no_eligible_owners(market):
    loner = create_user("manager", "solo@nowhere.test")
    assert EligibilityService.eligible_pairs(loner, "Excavator", "Crawler 20t") == set()
    assert EligibilityService.available_types_for_manager(loner) == {}


def test_partnership_direction_matters(market):
    owner = _user(market.owner_a_id)
    manager = _user(market.manager_id)
    assert EligibilityService.has_active_partnership(owner, manager)
    assert not EligibilityService.has_active_partnership(_user(market.outsider_id), manager)


def test_available_types_grouped_by_subtype(market):
    types = EligibilityService.available_types_for_manager(_user(market.manager_id))
    assert types == {
        "Crane": [{"subtype": "Mobile 50t", "count": 1}],
        "Excavator": [{"subtype": "Crawler 20t", "count": 3}],
    }
