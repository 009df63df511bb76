# utils/guards.py
# Route guards, ordered cheapest check first: session -> role -> resource lookups.
from typing import Callable, Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from database import get_db
from models.job import Job
from models.users import User, Role, is_tradie_like
from utils.errors import AuthorizationDenied, NotFoundError, ValidationFailed
from utils.permissions import (
    AccessLevel, access_level_of, can_access_company_data, can_access_job, is_active_pm,
    permissions_for, resolve_permissions,
)
from utils.session import get_current_user

require_auth = get_current_user


# Dependency factory for role-based access control
def require_role(*allowed_roles):
    allowed = {r.value if isinstance(r, Role) else r for r in allowed_roles}

    def _checker(current_user: User = Depends(get_current_user)) -> User:
        role = current_user.role
        if is_tradie_like(role):
            role = Role.TRADIE.value
        if allowed and role not in allowed:
            raise AuthorizationDenied("Insufficient permissions")
        return current_user
    return _checker


require_supplier = require_role(Role.SUPPLIER)


def require_pm(current_user: User = Depends(require_role(Role.PROJECT_MANAGER))) -> User:
    if not is_active_pm(current_user):
        raise AuthorizationDenied(
            "Project manager account is awaiting supplier approval",
            access_level=access_level_of(current_user),
            isApproved=False,
        )
    return current_user


def require_approved_tradie(current_user: User = Depends(get_current_user)) -> User:
    if not is_tradie_like(current_user.role):
        raise AuthorizationDenied("Tradie role required")
    if not current_user.business_id or not current_user.is_approved:
        level = AccessLevel.LIMITED if current_user.business_id else AccessLevel.INDEPENDENT
        raise AuthorizationDenied("Company membership and approval required", access_level=level)
    return current_user


def require_company_access(resolve_company_id: Callable[[Request], Optional[int]]):
    def _checker(request: Request, db: Session = Depends(get_db),
                 current_user: User = Depends(get_current_user)) -> User:
        company_id = resolve_company_id(request)
        if not company_id:
            raise ValidationFailed("Company ID required")
        if not can_access_company_data(db, current_user.id, company_id):
            raise AuthorizationDenied("Company access required")
        return current_user
    return _checker


def company_from_path(request: Request) -> Optional[int]:
    raw = request.path_params.get("business_id")
    try:
        return int(raw) if raw is not None else None
    except ValueError:
        return None


def validate_job_access(job_id: int, db: Session = Depends(get_db),
                        current_user: User = Depends(get_current_user)) -> Job:
    job = db.query(Job).filter(Job.id == job_id).first()
    if job is None:
        raise NotFoundError("Job not found")
    if not can_access_job(current_user, job):
        raise AuthorizationDenied("Job access denied")
    return job


_ORDER_DENIAL_REASONS = {
    AccessLevel.INDEPENDENT: "Join a company to place orders",
    AccessLevel.LIMITED: "Your company access has been limited pending approval",
}


def require_order_permissions(db: Session = Depends(get_db),
                              current_user: User = Depends(get_current_user)) -> User:
    permissions = resolve_permissions(db, current_user.id)
    if not permissions.can_place_orders:
        raise AuthorizationDenied(
            "Order placement not allowed for your current access level",
            reason=_ORDER_DENIAL_REASONS.get(permissions.access_level, "Insufficient permissions"),
            access_level=permissions.access_level,
        )
    return current_user


def require_cart_access(current_user: User = Depends(get_current_user)) -> User:
    permissions = permissions_for(current_user)
    if not permissions.can_access_cart:
        raise AuthorizationDenied(
            "Cart access not allowed for your current access level",
            reason=_ORDER_DENIAL_REASONS.get(permissions.access_level, "Insufficient permissions"),
            access_level=permissions.access_level,
        )
    return current_user
