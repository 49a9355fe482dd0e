"""Scheduling repository - Database operations for rules and bookings"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ...models import Booking, SchedulingRule


class SchedulingRuleRepository:
    """Repository for scheduling rule database operations"""

    @staticmethod
    def get_rules(db: Session, user_id: int) -> list[SchedulingRule]:
        """All rules for a user, highest priority first"""
        return (
            db.query(SchedulingRule)
            .filter(SchedulingRule.user_id == user_id)
            .order_by(SchedulingRule.priority.desc(), SchedulingRule.created_at.asc())
            .all()
        )

    @staticmethod
    def get_rule_by_id(db: Session, rule_id: int, user_id: int) -> Optional[SchedulingRule]:
        return (
            db.query(SchedulingRule)
            .filter(SchedulingRule.id == rule_id, SchedulingRule.user_id == user_id)
            .first()
        )

    @staticmethod
    def create_rule(db: Session, user_id: int, **rule_data) -> SchedulingRule:
        rule = SchedulingRule(user_id=user_id, **rule_data)
        db.add(rule)
        db.commit()
        db.refresh(rule)
        return rule

    @staticmethod
    def update_rule(db: Session, rule: SchedulingRule, **updates) -> SchedulingRule:
        for key, value in updates.items():
            if value is not None and hasattr(rule, key):
                setattr(rule, key, value)

        db.commit()
        db.refresh(rule)
        return rule

    @staticmethod
    def delete_rule(db: Session, rule: SchedulingRule) -> None:
        db.delete(rule)
        db.commit()


class BookingRepository:
    """Booking queries used by the assistant and the confirmation flow"""

    @staticmethod
    def create_booking(db: Session, user_id: int, **booking_data) -> Booking:
        booking = Booking(user_id=user_id, **booking_data)
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    @staticmethod
    def get_booking(db: Session, booking_id: int, user_id: int) -> Optional[Booking]:
        return db.query(Booking).filter(Booking.id == booking_id, Booking.user_id == user_id).first()

    @staticmethod
    def get_upcoming(db: Session, user_id: int, now: datetime, limit: int = 5) -> list[Booking]:
        return (
            db.query(Booking)
            .filter(
                Booking.user_id == user_id,
                Booking.start_time > now,
                Booking.status != "cancelled",
            )
            .order_by(Booking.start_time.asc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def find_matching(
        db: Session,
        user_id: int,
        now: datetime,
        email: Optional[str] = None,
        name: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        upcoming_only: bool = True,
        limit: int = 10,
    ) -> list[Booking]:
        """Bookings matching an attendee email/name and optional time window"""
        query = db.query(Booking).filter(Booking.user_id == user_id, Booking.status != "cancelled")

        if upcoming_only:
            query = query.filter(Booking.start_time > now)
        if email:
            query = query.filter(func.lower(Booking.attendee_email) == email.lower())
        if name:
            term = f"%{name}%"
            query = query.filter(or_(Booking.attendee_name.ilike(term), Booking.title.ilike(term)))
        if start:
            query = query.filter(Booking.start_time >= start)
        if end:
            query = query.filter(Booking.start_time < end)

        return query.order_by(Booking.start_time.asc()).limit(limit).all()

    @staticmethod
    def count(
        db: Session,
        user_id: int,
        since: Optional[datetime] = None,
        after: Optional[datetime] = None,
        status: Optional[str] = None,
    ) -> int:
        query = db.query(Booking).filter(Booking.user_id == user_id)
        if since:
            query = query.filter(Booking.start_time >= since)
        if after:
            query = query.filter(Booking.start_time > after)
        if status:
            query = query.filter(Booking.status == status)
        return query.count()
