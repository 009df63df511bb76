# backend/models/product.py
from datetime import datetime
from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, ForeignKey, CheckConstraint, UniqueConstraint
from database import Base


# Catalog part with three price tiers; created and edited by suppliers only
class Part(Base):
    __tablename__ = "parts"

    id = Column(Integer, primary_key=True, index=True)
    item_code = Column(String, unique=True, nullable=False, index=True)
    pipe_size = Column(String, nullable=False)
    description = Column(String, nullable=False)
    type = Column(String, nullable=False, index=True)

    price_t1 = Column(Float, CheckConstraint("price_t1 >= 0"), nullable=False)
    price_t2 = Column(Float, CheckConstraint("price_t2 >= 0"), nullable=False)
    price_t3 = Column(Float, CheckConstraint("price_t3 >= 0"), nullable=False)

    in_stock = Column(Integer, default=0)
    is_popular = Column(Boolean, default=False)
    image = Column(String, nullable=True)

    def price_for_tier(self, tier: str) -> float:
        if tier == "T1":
            return self.price_t1
        if tier == "T2":
            return self.price_t2
        return self.price_t3


# A part bookmarked by a user
class Favorite(Base):
    __tablename__ = "favorites"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    part_id = Column(Integer, ForeignKey("parts.id"), nullable=False)
    added_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "part_id", name="uq_favorite_user_part"),
    )
