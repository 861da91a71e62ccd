from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from app import create_app
from app.extensions import bcrypt, db
from app.models import Company, CompanyPartnership, Equipment, User

PASSWORD = "secret-pass"

# Fixed clock used by service-level tests; request start dates are set after it.
T0 = datetime(2030, 3, 1, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def app(monkeypatch):
    monkeypatch.setenv("FLASK_ENV", "testing")
    app = create_app()
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


def create_company(name, status="active"):
    company = Company(name=name, status=status)
    db.session.add(company)
    db.session.commit()
    return company


def create_user(role, email, company=None, full_name=None, phone="5550000000", is_active=True):
    user = User(
        full_name=full_name or email.split("@")[0].title(),
        email=email,
        phone=phone,
        role=role,
        company_id=company.id if company else None,
        is_active_user=is_active,
        password_hash=bcrypt.generate_password_hash(PASSWORD).decode("utf-8"),
    )
    db.session.add(user)
    db.session.commit()
    return user


def create_equipment(owner, name, type="Excavator", subtype="Crawler 20t", status="available"):
    item = Equipment(
        owner_id=owner.id,
        name=name,
        type=type,
        subtype=subtype,
        status=status,
        location="Yard 1",
        hourly_rate=Decimal("2500.00"),
        daily_rate=Decimal("20000.00"),
    )
    db.session.add(item)
    db.session.commit()
    return item


def create_partnership(owner_company, manager_company, status="active"):
    link = CompanyPartnership(
        owner_company_id=owner_company.id,
        manager_company_id=manager_company.id,
        status=status,
    )
    db.session.add(link)
    db.session.commit()
    return link


@pytest.fixture
def market(app):
    """Two partner owner companies and one outsider around a single manager company.

    Returns ids only, so the namespace stays usable across app contexts.
    """
    with app.app_context():
        builders = create_company("Builders LLC")
        heavy = create_company("Heavy Fleet")
        rent = create_company("Rent Machines")
        outsider_co = create_company("Lone Wolf Rentals")
        create_partnership(heavy, builders)
        create_partnership(rent, builders)

        manager = create_user("manager", "manager@builders.test", builders, full_name="Maria Manager")
        owner_a = create_user("owner", "owner.a@heavy.test", heavy, full_name="Anton Owner", phone="5551110000")
        owner_b = create_user("owner", "owner.b@rent.test", rent, full_name="Boris Owner", phone="5552220000")
        outsider = create_user("owner", "owner@lonewolf.test", outsider_co, full_name="Oleg Outsider")
        admin = create_user("admin", "admin@platform.test")

        excavator_a = create_equipment(owner_a, "CAT 320")
        excavator_a2 = create_equipment(owner_a, "CAT 320 #2")
        excavator_b = create_equipment(owner_b, "Komatsu PC200")
        excavator_out = create_equipment(outsider, "Hitachi ZX200")
        crane_b = create_equipment(owner_b, "Liebherr LTM", type="Crane", subtype="Mobile 50t")
        busy_a = create_equipment(owner_a, "Volvo EC220", status="busy")

        return SimpleNamespace(
            builders_id=builders.id,
            heavy_id=heavy.id,
            rent_id=rent.id,
            outsider_company_id=outsider_co.id,
            manager_id=manager.id,
            owner_a_id=owner_a.id,
            owner_b_id=owner_b.id,
            outsider_id=outsider.id,
            admin_id=admin.id,
            excavator_a_id=excavator_a.id,
            excavator_a2_id=excavator_a2.id,
            excavator_b_id=excavator_b.id,
            excavator_out_id=excavator_out.id,
            crane_b_id=crane_b.id,
            busy_a_id=busy_a.id,
        )


def request_payload(**overrides):
    payload = {
        "equipment_type": "Excavator",
        "equipment_subtype": "Crawler 20t",
        "start_date": (T0 + timedelta(days=2)).isoformat(),
        "end_date": (T0 + timedelta(days=5)).isoformat(),
        "location": "North site, plot 7",
        "work_description": "Foundation pit excavation",
    }
    payload.update(overrides)
    return payload


def login(client, email, password=PASSWORD):
    response = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.get_json()
    return response
