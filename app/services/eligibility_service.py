from sqlalchemy import and_, false, func
from sqlalchemy.orm import aliased

from app.extensions import db
from app.models import Company, CompanyPartnership, Equipment, RentalRequest, User


class EligibilityService:
    """Which owners and equipment may see and bid on a manager's requests.

    Everything here is evaluated against the current rows on every call.
    Partnerships and equipment availability change between request creation
    and bid submission, so nothing is cached or snapshotted.
    """

    # Owner-side conditions shared by the SQL resolver and the per-bid check.
    OWNER_ROLE = "owner"

    @staticmethod
    def owner_criteria():
        return (User.role == EligibilityService.OWNER_ROLE, User.is_active_user.is_(True))

    @staticmethod
    def is_bidding_owner(user):
        return user is not None and user.role == EligibilityService.OWNER_ROLE and bool(user.is_active_user)

    @staticmethod
    def _partner_equipment_query(manager_company_id):
        owner_company = aliased(Company)
        manager_company = aliased(Company)
        return (
            Equipment.query.join(User, User.id == Equipment.owner_id)
            .join(owner_company, owner_company.id == User.company_id)
            .join(
                CompanyPartnership,
                and_(
                    CompanyPartnership.owner_company_id == owner_company.id,
                    CompanyPartnership.manager_company_id == manager_company_id,
                ),
            )
            .join(manager_company, manager_company.id == CompanyPartnership.manager_company_id)
            .filter(CompanyPartnership.status == "active")
            .filter(owner_company.status == "active")
            .filter(manager_company.status == "active")
            .filter(*EligibilityService.owner_criteria())
            .filter(Equipment.status == "available")
        )

    @staticmethod
    def eligible_equipment(manager, equipment_type, equipment_subtype):
        # A requester outside any company has no partners, hence no eligible owners.
        if manager is None or manager.company_id is None:
            return []
        return (
            EligibilityService._partner_equipment_query(manager.company_id)
            .filter(Equipment.type == equipment_type)
            .filter(Equipment.subtype == equipment_subtype)
            .order_by(Equipment.hourly_rate.asc(), Equipment.id.asc())
            .all()
        )

    @staticmethod
    def eligible_pairs(manager, equipment_type, equipment_subtype):
        return {
            (item.owner_id, item.id)
            for item in EligibilityService.eligible_equipment(manager, equipment_type, equipment_subtype)
        }

    @staticmethod
    def eligible_owner_ids(manager, equipment_type, equipment_subtype):
        return sorted({owner_id for owner_id, _ in EligibilityService.eligible_pairs(manager, equipment_type, equipment_subtype)})

    @staticmethod
    def has_active_partnership(owner, manager):
        if owner is None or manager is None:
            return False
        if owner.company_id is None or manager.company_id is None:
            return False
        owner_company = aliased(Company)
        manager_company = aliased(Company)
        partnership = (
            db.session.query(CompanyPartnership.id)
            .join(owner_company, owner_company.id == CompanyPartnership.owner_company_id)
            .join(manager_company, manager_company.id == CompanyPartnership.manager_company_id)
            .filter(CompanyPartnership.owner_company_id == owner.company_id)
            .filter(CompanyPartnership.manager_company_id == manager.company_id)
            .filter(CompanyPartnership.status == "active")
            .filter(owner_company.status == "active")
            .filter(manager_company.status == "active")
            .first()
        )
        return partnership is not None

    @staticmethod
    def owner_equipment_for_request(owner, request):
        """Equipment of ``owner`` that could be offered on ``request`` right now."""
        if not EligibilityService.is_bidding_owner(owner):
            return []
        if not EligibilityService.has_active_partnership(owner, request.manager):
            return []
        return (
            Equipment.query.filter_by(
                owner_id=owner.id,
                type=request.equipment_type,
                subtype=request.equipment_subtype,
                status="available",
            )
            .order_by(Equipment.id.asc())
            .all()
        )

    @staticmethod
    def available_types_for_manager(manager):
        """Group partner equipment as ``{type: [{"subtype": ..., "count": ...}]}``."""
        if manager is None or manager.company_id is None:
            return {}
        rows = (
            EligibilityService._partner_equipment_query(manager.company_id)
            .with_entities(Equipment.type, Equipment.subtype, func.count(Equipment.id))
            .group_by(Equipment.type, Equipment.subtype)
            .order_by(Equipment.type, Equipment.subtype)
            .all()
        )
        grouped = {}
        for equipment_type, subtype, count in rows:
            grouped.setdefault(equipment_type, []).append({"subtype": subtype, "count": int(count)})
        return grouped

    @staticmethod
    def visible_requests_query(owner):
        """Requests whose manager company is an active partner of the owner's company."""
        manager = aliased(User)
        manager_company = aliased(Company)
        owner_company = aliased(Company)
        if owner is None or owner.company_id is None:
            return RentalRequest.query.filter(false())
        return (
            RentalRequest.query.join(manager, manager.id == RentalRequest.manager_id)
            .join(manager_company, manager_company.id == manager.company_id)
            .join(
                CompanyPartnership,
                and_(
                    CompanyPartnership.manager_company_id == manager_company.id,
                    CompanyPartnership.owner_company_id == owner.company_id,
                ),
            )
            .join(owner_company, owner_company.id == CompanyPartnership.owner_company_id)
            .filter(CompanyPartnership.status == "active")
            .filter(manager_company.status == "active")
            .filter(owner_company.status == "active")
        )
