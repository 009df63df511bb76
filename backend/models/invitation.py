import enum
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from database import Base


class InvitationStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


# Invitation binding a candidate email to one PM's company, redeemed with a single-use token
class TradieInvitation(Base):
    __tablename__ = "tradie_invitations"

    id = Column(Integer, primary_key=True, index=True)
    project_manager_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False)
    tradie_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    email = Column(String, nullable=False, index=True)
    phone = Column(String, nullable=True)
    personal_message = Column(String, nullable=True)

    invitation_token = Column(String, unique=True, nullable=False, index=True)
    token_expiry = Column(DateTime, nullable=False)
    status = Column(String, nullable=False, default=InvitationStatus.PENDING.value, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    responded_at = Column(DateTime, nullable=True)
