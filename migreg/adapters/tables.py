"""
SQLAlchemy table definitions for users, slots and reservations.

Slot start times are stored as naive UTC timestamps.
"""

from datetime import date, datetime

from sqlalchemy import BigInteger, Date, DateTime, Enum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ..domain.models import Service


class Base(DeclarativeBase):
    """SQLAlchemy declarative base class."""

    pass


class UserRecord(Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    username: Mapped[str] = mapped_column(String(64), default="")
    full_name_lat: Mapped[str] = mapped_column(String(200))
    full_name_cyr: Mapped[str] = mapped_column(String(200))
    citizenship: Mapped[str] = mapped_column(String(120))
    arrival_date: Mapped[date] = mapped_column(Date)


class SlotRecord(Base):
    """A slot that holds at least one reservation; ``revision`` guards writes."""
    __tablename__ = "slots"
    start: Mapped[datetime] = mapped_column(DateTime(timezone=False), primary_key=True)
    revision: Mapped[int] = mapped_column(Integer, default=1)


class ReservationRecord(Base):
    __tablename__ = "reservations"
    __table_args__ = (UniqueConstraint("slot_start", "user_id", name="uq_reservations_slot_user"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slot_start: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        ForeignKey("slots.start", ondelete="CASCADE"),
        index=True,
    )
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"))
    service: Mapped[Service] = mapped_column(
        Enum(Service, name="service", values_callable=lambda e: [m.value for m in e])
    )
    # Booking order within the slot.
    position: Mapped[int] = mapped_column(Integer, default=0)
