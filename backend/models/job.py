# backend/models/job.py
from datetime import datetime
from sqlalchemy import CheckConstraint, Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base


# A job (project site) owned by a business and run by a project manager
class Job(Base):
    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    job_number = Column(String, unique=True, nullable=False, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=True, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=True)
    project_manager_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    # Free-text lifecycle: active / on_hold / completed, or Not Started / In Progress ...
    status = Column(String, nullable=False, default="active")
    location = Column(String, nullable=True)
    description = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    business = relationship("Business", back_populates="jobs")
    client = relationship("Client")
    assignments = relationship("JobUser", back_populates="job", cascade="all, delete-orphan")
    parts = relationship("JobPart", back_populates="job", cascade="all, delete-orphan")


# Tradie assignment to a job
class JobUser(Base):
    __tablename__ = "job_users"

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    assigned_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    assigned_at = Column(DateTime, default=datetime.utcnow)

    job = relationship("Job", back_populates="assignments")
    user = relationship("User", foreign_keys=[user_id])

    __table_args__ = (
        UniqueConstraint("job_id", "user_id", name="uq_jobuser_job_user"),
    )


# Planned part list for a job; one row per part, quantities of at least one
class JobPart(Base):
    __tablename__ = "job_parts"

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False, index=True)
    part_id = Column(Integer, ForeignKey("parts.id"), nullable=False)
    quantity = Column(Integer, CheckConstraint("quantity >= 1"), nullable=False, default=1)
    notes = Column(String, nullable=True)
    added_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    job = relationship("Job", back_populates="parts")
    part = relationship("Part")

    __table_args__ = (
        UniqueConstraint("job_id", "part_id", name="uq_jobpart_job_part"),
    )
