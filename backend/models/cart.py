# backend/models/cart.py
from sqlalchemy import Column, Integer, ForeignKey
from sqlalchemy.orm import relationship
from database import Base


# A single staged line (part + quantity, optionally for a job) in a user's cart
class CartItem(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    part_id = Column(Integer, ForeignKey("parts.id"), index=True, nullable=False)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=True)
    quantity = Column(Integer, nullable=False, default=1)

    part = relationship("Part")
