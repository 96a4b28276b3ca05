# model.py
import enum

from sqlalchemy import Column, ForeignKey, Integer, String, Float, DateTime, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from database import Base


class Role(str, enum.Enum):
    CITIZEN = "citizen"
    WORKER = "worker"
    ADMIN = "admin"


class ReportStatus(str, enum.Enum):
    SUBMITTED = "submitted"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(200), unique=True, index=True, nullable=False)
    password = Column(Text, nullable=False)  # bcrypt digest, never plaintext
    role = Column(String(20), nullable=False, default=Role.CITIZEN.value)
    location = Column(String, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    reports = relationship("Report", back_populates="owner", foreign_keys="Report.user_id")
    assigned_reports = relationship(
        "Report", back_populates="assigned_worker", foreign_keys="Report.assigned_worker_id"
    )


class Report(Base):
    __tablename__ = "reports"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    category = Column(String, nullable=False)
    photo = Column(String, nullable=True)  # Filename in the blob store
    location = Column(String, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=ReportStatus.SUBMITTED.value)  # submitted, assigned, in_progress, resolved
    assigned_worker_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    admin_notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    owner = relationship("User", back_populates="reports", foreign_keys=[user_id])
    assigned_worker = relationship("User", back_populates="assigned_reports", foreign_keys=[assigned_worker_id])
