"""
Relational storage adapter built on async SQLAlchemy.

Implements every provider protocol of the service layer. Writes use an
optimistic revision check on the ``slots`` table so that two requests
racing between "read available slots" and "save slot" cannot overbook a
slot or book the same user twice: the loser gets ``ConcurrentUpdateError``.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..domain.exceptions import ConcurrentUpdateError, StorageError, UserNotFound
from ..domain.models import Citizenship, CyrillicName, LatinName, Reservation, Slot, User, to_date
from .keys import slot_key
from .tables import ReservationRecord, SlotRecord, UserRecord

logger = logging.getLogger(__name__)


def _to_user(record: UserRecord) -> User:
    return User(
        id=record.id,
        username=record.username,
        full_name_lat=LatinName(record.full_name_lat),
        full_name_cyr=CyrillicName(record.full_name_cyr),
        citizenship=Citizenship.parse(record.citizenship),
        arrival_date=to_date(record.arrival_date),
    )


def _to_record(user: User) -> UserRecord:
    return UserRecord(
        id=user.id,
        username=user.username,
        full_name_lat=str(user.full_name_lat),
        full_name_cyr=str(user.full_name_cyr),
        citizenship=user.citizenship.label,
        arrival_date=to_date(user.arrival_date),
    )


class SqlRepository:
    """
    Users, slots and reservations stored in a relational database.

    Any driver failure is re-raised as ``StorageError``.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    # ------------------------------------------------------------------ users

    async def user(self, user_id: int) -> User:
        try:
            async with self._session_factory() as session:
                record = await session.get(UserRecord, user_id)
        except SQLAlchemyError as exc:
            raise StorageError(f"failed to load user {user_id}: {exc}") from exc

        if record is None:
            raise UserNotFound(user_id)
        return _to_user(record)

    async def save_user(self, user: User) -> None:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await session.merge(_to_record(user))
        except SQLAlchemyError as exc:
            raise StorageError(f"failed to save user {user.id}: {exc}") from exc

    # ------------------------------------------------------------------ slots

    async def _merge(self, templates: Sequence[Slot]) -> List[Slot]:
        """Return copies of ``templates`` filled with stored reservations."""
        if not templates:
            return []
        keys = [slot_key(t.start) for t in templates]

        try:
            async with self._session_factory() as session:
                revisions = dict(
                    (await session.execute(
                        select(SlotRecord.start, SlotRecord.revision).where(SlotRecord.start.in_(keys))
                    )).all()
                )
                rows = (await session.execute(
                    select(ReservationRecord.slot_start, ReservationRecord.service, UserRecord)
                    .join(UserRecord, UserRecord.id == ReservationRecord.user_id)
                    .where(ReservationRecord.slot_start.in_(keys))
                    .order_by(ReservationRecord.slot_start, ReservationRecord.position)
                )).all()
        except SQLAlchemyError as exc:
            raise StorageError(f"failed to load reservations: {exc}") from exc

        reservations: Dict[datetime, List[Reservation]] = defaultdict(list)
        for start, service, record in rows:
            reservations[start].append(Reservation(user=_to_user(record), service=service))

        return [
            Slot.restore(
                interval=template.interval,
                max_size=template.max_size,
                reservations=reservations.get(key, []),
                revision=revisions.get(key, 0),
            )
            for template, key in zip(templates, keys)
        ]

    async def available_slots(self, templates: Sequence[Slot]) -> List[Slot]:
        return [slot for slot in await self._merge(templates) if slot.is_available()]

    async def reserved_slots(self, templates: Sequence[Slot]) -> List[Slot]:
        return [slot for slot in await self._merge(templates) if not slot.is_empty()]

    async def reserved_slot(self, template: Slot) -> Slot:
        return (await self._merge([template]))[0]

    async def has_available_slots(self, templates: Sequence[Slot]) -> bool:
        if not templates:
            return False
        keys = [slot_key(t.start) for t in templates]

        try:
            async with self._session_factory() as session:
                counts = dict(
                    (await session.execute(
                        select(ReservationRecord.slot_start, func.count(ReservationRecord.id))
                        .where(ReservationRecord.slot_start.in_(keys))
                        .group_by(ReservationRecord.slot_start)
                    )).all()
                )
        except SQLAlchemyError as exc:
            raise StorageError(f"failed to count reservations: {exc}") from exc

        return any(
            counts.get(key, 0) < template.max_size
            for template, key in zip(templates, keys)
        )

    async def save_slot(self, slot: Slot) -> None:
        """
        Replace the stored reservations of ``slot`` in one transaction.

        The slot row's revision must still equal ``slot.revision``; on
        success ``slot.revision`` is advanced to the stored value (0 once
        the slot is empty and its row removed).

        Raises:
            ConcurrentUpdateError: If the slot changed since it was read
            StorageError: On any other database failure
        """
        key = slot_key(slot.start)
        if slot.revision == 0 and slot.is_empty():
            return

        try:
            async with self._session_factory() as session:
                async with session.begin():
                    if slot.revision == 0:
                        session.add(SlotRecord(start=key, revision=1))
                        try:
                            await session.flush()
                        except IntegrityError as exc:
                            raise ConcurrentUpdateError(slot.start) from exc
                    else:
                        result = await session.execute(
                            update(SlotRecord)
                            .where(SlotRecord.start == key, SlotRecord.revision == slot.revision)
                            .values(revision=SlotRecord.revision + 1)
                        )
                        if result.rowcount != 1:
                            raise ConcurrentUpdateError(slot.start)

                    await session.execute(
                        delete(ReservationRecord).where(ReservationRecord.slot_start == key)
                    )
                    session.add_all(
                        ReservationRecord(
                            slot_start=key,
                            user_id=reservation.user.id,
                            service=reservation.service,
                            position=position,
                        )
                        for position, reservation in enumerate(slot.reservations)
                    )
                    if slot.is_empty():
                        await session.execute(delete(SlotRecord).where(SlotRecord.start == key))
        except ConcurrentUpdateError:
            logger.warning("Slot %s was modified concurrently (revision %s)", slot.start, slot.revision)
            raise
        except SQLAlchemyError as exc:
            raise StorageError(f"failed to save slot {slot.start}: {exc}") from exc

        slot.revision = 0 if slot.is_empty() else slot.revision + 1
        logger.debug("Saved slot %s with %d reservation(s)", slot.start, slot.reserved)
