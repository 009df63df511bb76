# backend/models/users.py
import enum
from datetime import datetime
from sqlalchemy import Column, Integer, String, ForeignKey, Boolean, DateTime
from sqlalchemy.orm import relationship
from database import Base


class Role(str, enum.Enum):
    TRADIE = "tradie"
    PROJECT_MANAGER = "project_manager"
    SUPPLIER = "supplier"
    # Legacy alias of TRADIE, still present on older rows
    CONTRACTOR = "contractor"


class UserStatus(str, enum.Enum):
    UNASSIGNED = "unassigned"
    PENDING_INVITATION = "pending_invitation"
    INVITED = "invited"
    ACTIVE = "active"
    REJECTED = "rejected"


TRADIE_LIKE_ROLES = {Role.TRADIE.value, Role.CONTRACTOR.value}


def is_tradie_like(role) -> bool:
    """Single predicate for the tradie role and its legacy ``contractor`` alias."""
    value = role.value if isinstance(role, Role) else (role or "")
    return value.lower() in TRADIE_LIKE_ROLES


def normalize_role(role: str) -> str:
    value = (role or "").strip().lower()
    if value == Role.CONTRACTOR.value:
        return Role.TRADIE.value
    return Role(value).value


# Represents a user account with authentication details, role and company membership
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, nullable=False, index=True)
    email = Column(String, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    role = Column(String, nullable=False, default=Role.TRADIE.value)

    # Company membership and approval gate
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=True, index=True)
    is_approved = Column(Boolean, nullable=False, default=False)
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approval_date = Column(DateTime, nullable=True)
    status = Column(String, nullable=False, default=UserStatus.UNASSIGNED.value)

    created_at = Column(DateTime, default=datetime.utcnow)

    business = relationship("Business", back_populates="users", foreign_keys=[business_id])

    @property
    def full_name(self) -> str:
        name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return name or self.username


def is_effectively_approved(user: User) -> bool:
    # Suppliers never wait for approval, whatever the stored flag says
    if user.role == Role.SUPPLIER.value:
        return True
    return bool(user.is_approved)
