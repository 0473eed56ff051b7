from sqlalchemy import JSON, BigInteger, Boolean, Column, DateTime, Float, ForeignKey, String
from sqlalchemy.orm import relationship, declarative_base
from datetime import datetime

Base = declarative_base()


class AuthUser(Base):
    """Login credentials (email + bcrypt hash). Profiles hang off this id."""

    __tablename__ = "auth_users"
    id = Column(String(36), primary_key=True)
    email = Column(String, unique=True, nullable=False)
    password_hash = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.now)

    profile = relationship("ProfileRow", back_populates="auth_user", cascade="all, delete-orphan", passive_deletes=True, uselist=False)


class ProfileRow(Base):
    __tablename__ = "profiles"
    id = Column(String(36), ForeignKey("auth_users.id", ondelete="CASCADE"), primary_key=True)
    email = Column(String, nullable=False)
    full_name = Column(String, nullable=True)
    role = Column(String, default="user", nullable=False)
    subscription_status = Column(String, default="trial", nullable=False)
    trial_ends_at = Column(DateTime, nullable=True)
    is_approved = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.now)

    auth_user = relationship("AuthUser", back_populates="profile")
    projects = relationship("ProjectRow", back_populates="owner", cascade="all, delete-orphan", passive_deletes=True)
    time_entries = relationship("TimeEntryRow", back_populates="owner", cascade="all, delete-orphan", passive_deletes=True)


class ProjectRow(Base):
    __tablename__ = "projects"
    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    color = Column(String, nullable=True)
    default_hourly_rate = Column(Float, nullable=True)
    shifts = Column(JSON, nullable=True)  # [{"id", "name", "start_time", "end_time"}]
    created_at = Column(DateTime, default=datetime.now)

    owner = relationship("ProfileRow", back_populates="projects")
    time_entries = relationship("TimeEntryRow", back_populates="project", cascade="all, delete-orphan", passive_deletes=True)


class TimeEntryRow(Base):
    __tablename__ = "time_entries"
    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    description = Column(String, default="")
    start_time = Column(BigInteger, nullable=False)  # epoch ms
    end_time = Column(BigInteger, nullable=True)  # epoch ms; NULL while running
    duration = Column(Float, default=0.0)  # seconds
    hourly_rate = Column(Float, nullable=True)
    expenses = Column(JSON, nullable=True)  # [{"id", "description", "amount"}]
    is_night_shift = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.now)

    owner = relationship("ProfileRow", back_populates="time_entries")
    project = relationship("ProjectRow", back_populates="time_entries")
