import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_token():
    """Generate an unguessable token for public links"""
    return uuid.uuid4().hex


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    firebase_uid = Column(String(255), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    username = Column(String(100), unique=True, nullable=True)  # Public booking page slug
    plan = Column(String(50), default="free", nullable=True)  # free, pro, team
    ai_queries_used = Column(Integer, default=0, nullable=False)
    ai_queries_reset_at = Column(DateTime, nullable=True)  # Next monthly reset of the AI counter
    # {"monday": {"enabled": true, "start": "09:00", "end": "17:00"}, ...}
    working_hours = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    bookings = relationship("Booking", back_populates="user", cascade="all, delete-orphan")
    scheduling_rules = relationship(
        "SchedulingRule", back_populates="user", cascade="all, delete-orphan"
    )


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=True)
    title = Column(String(255), nullable=True)
    attendee_name = Column(String(255), nullable=True)
    attendee_email = Column(String(255), nullable=True, index=True)
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False)
    duration = Column(Integer, default=30)  # minutes
    status = Column(String(50), default="confirmed")  # confirmed, pending, pending_approval, cancelled
    notes = Column(Text, nullable=True)
    # Fields set by scheduling rules
    location = Column(String(500), nullable=True)
    priority = Column(String(50), nullable=True)
    buffer_minutes = Column(Integer, nullable=True)
    requires_approval = Column(Boolean, default=False)
    notification_type = Column(String(100), nullable=True)
    template_id = Column(Integer, ForeignKey("email_templates.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="bookings")


class SchedulingRule(Base):
    __tablename__ = "scheduling_rules"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    # domain, keyword, email, time_before, time_after, day_of_week,
    # duration_greater, duration_less, all
    trigger_type = Column(String(50), nullable=False)
    trigger_value = Column(String(500), nullable=True)
    # set_duration, auto_approve, block, set_priority, set_location, set_buffer,
    # add_note, set_title_prefix, require_approval, send_notification
    action_type = Column(String(50), nullable=False)
    action_value = Column(String(500), nullable=True)
    block_message = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    priority = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="scheduling_rules")


class AIPendingAction(Base):
    """Short-lived conversation state; one row per (user, action type)"""

    __tablename__ = "ai_pending_actions"
    __table_args__ = (UniqueConstraint("user_id", "action_type", name="uq_ai_pending_user_type"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    action_type = Column(String(50), nullable=False)  # cancel, reschedule, template_choice, select_meeting
    action_data = Column(JSON, default=dict)
    created_at = Column(DateTime, server_default=func.now())
    expires_at = Column(DateTime, nullable=False, index=True)


class EmailTemplate(Base):
    __tablename__ = "email_templates"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    subject = Column(String(500), nullable=True)
    body = Column(Text, nullable=True)
    type = Column(String(50), nullable=True)  # confirmation, reminder, follow_up
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())


class EventType(Base):
    __tablename__ = "event_types"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False)
    duration = Column(Integer, default=30)
    is_active = Column(Boolean, default=True)
    default_template_id = Column(
        Integer, ForeignKey("email_templates.id", ondelete="SET NULL"), nullable=True
    )
    created_at = Column(DateTime, server_default=func.now())


class Team(Base):
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())

    members = relationship("TeamMember", back_populates="team", cascade="all, delete-orphan")


class TeamMember(Base):
    __tablename__ = "team_members"

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    role = Column(String(50), default="member")
    created_at = Column(DateTime, server_default=func.now())

    team = relationship("Team", back_populates="members")


class MagicLink(Base):
    """Single-use booking link created from the assistant"""

    __tablename__ = "magic_links"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    token = Column(String(64), unique=True, index=True, default=generate_token)
    duration = Column(Integer, default=30)
    title = Column(String(255), nullable=True)
    is_used = Column(Boolean, default=False)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
