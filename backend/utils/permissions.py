# utils/permissions.py
"""
Permission resolution for the portal.

Every gate on pricing, ordering, cart and company-job access is derived from
three user attributes: role, company membership (``business_id``) and the
approval flag. ``permissions_for`` is the pure mapping; ``resolve_permissions``
loads the user first.
"""
from dataclasses import dataclass
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from models.invitation import TradieInvitation, InvitationStatus
from models.job import Job
from models.users import User, Role, is_tradie_like
from utils.errors import UserNotFoundError


class AccessLevel:
    INDEPENDENT = "independent"
    LIMITED = "limited"
    APPROVED = "approved"
    PM = "pm"


@dataclass
class UserPermissions:
    can_view_pricing: bool = False
    can_place_orders: bool = False
    can_view_company_jobs: bool = False
    can_search_by_job_number: bool = False
    can_access_cart: bool = False
    can_manage_company: bool = False
    access_level: str = AccessLevel.INDEPENDENT
    company_id: Optional[int] = None

    def as_response(self) -> dict:
        return {
            "canViewPricing": self.can_view_pricing,
            "canPlaceOrders": self.can_place_orders,
            "canViewCompanyJobs": self.can_view_company_jobs,
            "canSearchByJobNumber": self.can_search_by_job_number,
            "canAccessCart": self.can_access_cart,
            "canManageCompany": self.can_manage_company,
            "accessLevel": self.access_level,
            "companyId": self.company_id,
        }


def is_active_pm(user: User) -> bool:
    """Project manager whose account a supplier has approved."""
    return user.role == Role.PROJECT_MANAGER.value and bool(user.is_approved)


def permissions_for(user: User) -> UserPermissions:
    if user.role == Role.PROJECT_MANAGER.value:
        if not user.is_approved:
            # Self-registered PMs wait for a supplier before acting for the company
            level = AccessLevel.LIMITED if user.business_id else AccessLevel.INDEPENDENT
            return UserPermissions(access_level=level)
        return UserPermissions(
            can_view_pricing=True,
            can_place_orders=True,
            can_view_company_jobs=True,
            can_search_by_job_number=True,
            can_access_cart=True,
            can_manage_company=True,
            access_level=AccessLevel.PM,
            company_id=user.business_id,
        )

    if is_tradie_like(user.role):
        if not user.business_id or not user.is_approved:
            level = AccessLevel.LIMITED if user.business_id else AccessLevel.INDEPENDENT
            return UserPermissions(access_level=level)

        # Pricing stays hidden from tradies even once approved
        return UserPermissions(
            can_place_orders=True,
            can_view_company_jobs=True,
            can_search_by_job_number=True,
            can_access_cart=True,
            access_level=AccessLevel.APPROVED,
            company_id=user.business_id,
        )

    return UserPermissions()


def resolve_permissions(db: Session, user_id: int) -> UserPermissions:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise UserNotFoundError()
    return permissions_for(user)


def access_level_of(user: User) -> str:
    return permissions_for(user).access_level


def price_visible(user: Optional[User], permissions: Optional[UserPermissions] = None) -> bool:
    if user is None:
        return False
    if user.role == Role.SUPPLIER.value:
        return True
    if permissions is None:
        permissions = permissions_for(user)
    return permissions.can_view_pricing


def is_company_member(user: User, company_id: Optional[int]) -> bool:
    """PM of the company, or an approved tradie of it."""
    if company_id is None or user.business_id != company_id:
        return False
    if user.role == Role.PROJECT_MANAGER.value:
        return bool(user.is_approved)
    return is_tradie_like(user.role) and bool(user.is_approved)


def can_access_company_data(db: Session, user_id: int, company_id: int) -> bool:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        return False
    return is_company_member(user, company_id)


def can_access_job(user: User, job: Optional[Job]) -> bool:
    if job is None:
        return False
    if user.role == Role.SUPPLIER.value:
        return True
    return is_company_member(user, job.business_id)


def can_manage_tradie(pm: User, tradie: Optional[User]) -> bool:
    if tradie is None or not is_active_pm(pm) or not pm.business_id:
        return False
    return is_tradie_like(tradie.role) and tradie.business_id == pm.business_id


def filter_jobs(user: User, jobs: List[Job]) -> List[Job]:
    return [job for job in jobs if is_company_member(user, job.business_id)]


def can_send_invitation(db: Session, pm: User, email: str) -> Tuple[bool, Optional[str]]:
    if pm.role != Role.PROJECT_MANAGER.value:
        return False, "Only project managers can send invitations"
    if not pm.is_approved:
        return False, "Project manager account is awaiting approval"
    if not pm.business_id:
        return False, "Project manager must be associated with a company"

    normalized = email.strip().lower()
    pending = db.query(TradieInvitation).filter(
        TradieInvitation.email == normalized,
        TradieInvitation.project_manager_id == pm.id,
        TradieInvitation.status == InvitationStatus.PENDING.value,
    ).first()
    if pending:
        return False, "A pending invitation already exists for this email"

    existing = db.query(User).filter(User.email == normalized).first()
    if existing and existing.business_id == pm.business_id and existing.is_approved:
        return False, "User is already an approved member of your company"

    return True, None
