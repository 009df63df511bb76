import enum
from datetime import datetime
from sqlalchemy import Column, Integer, String, Float, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from database import Base


class OrderStatus(str, enum.Enum):
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    MODIFIED = "modified"
    # Supplier-side fulfilment states
    PROCESSING = "processing"
    SHIPPED = "shipped"
    COMPLETED = "completed"


SUPPLIER_STATUSES = {OrderStatus.PROCESSING.value, OrderStatus.SHIPPED.value, OrderStatus.COMPLETED.value}


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=True, index=True)
    status = Column(String, nullable=False, default=OrderStatus.PENDING_APPROVAL.value, index=True)

    requested_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approval_date = Column(DateTime, nullable=True)
    rejection_reason = Column(String, nullable=True)
    notes = Column(String, nullable=True)

    # Name of the person placing the order and the client PO number
    customer_name = Column(String, nullable=True)
    order_number = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    history = relationship("OrderHistory", back_populates="order", cascade="all, delete-orphan",
                           order_by="OrderHistory.id")
    business = relationship("Business")
    job = relationship("Job")

    @property
    def total(self) -> float:
        return round(sum(it.quantity * it.price_at_order for it in self.items), 2)


class OrderItem(Base):
    __tablename__ = "order_items"
    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    part_id = Column(Integer, ForeignKey("parts.id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    # Tier price at the moment of ordering, never re-derived
    price_at_order = Column(Float, nullable=False)

    order = relationship("Order", back_populates="items")
    part = relationship("Part")


# Append-only trail of order status changes
class OrderHistory(Base):
    __tablename__ = "order_history"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    status = Column(String, nullable=False)
    changed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    notes = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    order = relationship("Order", back_populates="history")
