"""
Tests for the SQLAlchemy storage adapter, run against a temporary SQLite file.
"""

import asyncio
from dataclasses import replace
from datetime import time

import pendulum
import pytest

from migreg.adapters.db import init_db, make_engine, make_session_factory
from migreg.adapters.sql_repository import SqlRepository
from migreg.domain.deadline import StandardDeadlinePolicy
from migreg.domain.exceptions import (
    ConcurrentUpdateError,
    SlotAlreadyReserved,
    SlotNotFoundError,
    StorageError,
    UserNotFound,
)
from migreg.domain.models import (
    Citizenship,
    ClosedRange,
    Country,
    CyrillicName,
    LatinName,
    Service,
    User,
)
from migreg.domain.slot_factory import FixedSlotFactory
from migreg.domain.working_hours import SplitWorkingHoursPolicy
from migreg.services.scheduling import SchedulingService

TZ = "Europe/Moscow"
TUESDAY = pendulum.date(2026, 10, 20)


def at(clock: str) -> pendulum.DateTime:
    return pendulum.parse(f"{TUESDAY.to_date_string()} {clock}", tz=TZ)


def make_user(user_id: int, country: Country = Country.UZBEKISTAN) -> User:
    return User(
        id=user_id,
        username=f"user{user_id}",
        full_name_lat=LatinName("Dilshod Karimov"),
        full_name_cyr=CyrillicName("Дилшод Каримов"),
        citizenship=Citizenship.of(country),
        arrival_date=pendulum.date(2026, 10, 14),
    )


def _build_service(repository: SqlRepository, capacity: int = 3) -> SchedulingService:
    working_hours = SplitWorkingHoursPolicy(
        weekday_hours=ClosedRange(start=time(10, 0), end=time(17, 0)),
        friday_hours=ClosedRange(start=time(12, 0), end=time(16, 0)),
        lunch=ClosedRange(start=time(12, 30), end=time(13, 30)),
        timezone=TZ,
    )
    return SchedulingService.from_store(
        repository,
        slot_factory=FixedSlotFactory(max_size=capacity, duration_minutes=20, timezone=TZ),
        working_hours=working_hours,
        deadline_policy=StandardDeadlinePolicy(),
        today=lambda: pendulum.date(2026, 10, 19),
    )


def run_with_repository(tmp_path, scenario, create_schema: bool = True):
    """Run ``scenario(repository)`` against a fresh database file."""

    async def _run():
        engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'migreg.db'}")
        try:
            if create_schema:
                await init_db(engine)
            repository = SqlRepository(make_session_factory(engine))
            return await scenario(repository)
        finally:
            await engine.dispose()

    return asyncio.run(_run())


class TestUsers:
    """User persistence."""

    def test_save_and_load_user(self, tmp_path):
        async def scenario(repository):
            await repository.save_user(make_user(7))
            return await repository.user(7)

        user = run_with_repository(tmp_path, scenario)

        assert user == make_user(7)

    def test_save_user_overwrites(self, tmp_path):
        async def scenario(repository):
            await repository.save_user(make_user(7))
            await repository.save_user(make_user(7, Country.BELARUS))
            return await repository.user(7)

        user = run_with_repository(tmp_path, scenario)

        assert user.citizenship == Citizenship.of(Country.BELARUS)

    def test_other_citizenship_round_trip(self, tmp_path):
        async def scenario(repository):
            await repository.save_user(
                replace(make_user(8), citizenship=Citizenship.other("Вьетнам"))
            )
            return await repository.user(8)

        user = run_with_repository(tmp_path, scenario)

        assert user.citizenship.is_other
        assert user.citizenship.label == "Вьетнам"

    def test_unknown_user(self, tmp_path):
        async def scenario(repository):
            await repository.user(404)

        with pytest.raises(UserNotFound):
            run_with_repository(tmp_path, scenario)

    def test_missing_schema_is_storage_error(self, tmp_path):
        async def scenario(repository):
            await repository.user(1)

        with pytest.raises(StorageError):
            run_with_repository(tmp_path, scenario, create_schema=False)


class TestSlots:
    """Slot reads and writes through the scheduling service."""

    def test_reserve_then_read_back(self, tmp_path):
        async def scenario(repository):
            for user_id in (1, 2):
                await repository.save_user(make_user(user_id))
            service = _build_service(repository)
            await service.reserve_slot(2, at("10:00"), Service.VISA)
            await service.reserve_slot(1, at("10:00"), Service.INSURANCE)
            return await service.reservations(TUESDAY), await service.free_slots(TUESDAY)

        rows, free = run_with_repository(tmp_path, scenario)

        assert [(row.user_id, row.service) for row in rows] == [
            (2, Service.VISA),
            (1, Service.INSURANCE),
        ]
        assert rows[0].slot_start == at("10:00")
        assert len(free) == 17

    def test_full_slot_disappears(self, tmp_path):
        async def scenario(repository):
            for user_id in (1, 2, 3):
                await repository.save_user(make_user(user_id))
            service = _build_service(repository, capacity=2)
            await service.reserve_slot(1, at("10:20"), Service.VISA)
            await service.reserve_slot(2, at("10:20"), Service.VISA)
            free = [slot.start for slot in await service.free_slots(TUESDAY)]
            try:
                await service.reserve_slot(3, at("10:20"), Service.VISA)
            except SlotNotFoundError:
                return free, True
            return free, False

        free, rejected = run_with_repository(tmp_path, scenario)

        assert at("10:20") not in free
        assert len(free) == 16
        assert rejected

    def test_duplicate_reservation(self, tmp_path):
        async def scenario(repository):
            await repository.save_user(make_user(1))
            service = _build_service(repository)
            await service.reserve_slot(1, at("11:00"), Service.VISA)
            await service.reserve_slot(1, at("11:00"), Service.VISA)

        with pytest.raises(SlotAlreadyReserved):
            run_with_repository(tmp_path, scenario)

    def test_cancel_keeps_other_reservations(self, tmp_path):
        async def scenario(repository):
            for user_id in (1, 2, 3):
                await repository.save_user(make_user(user_id))
            service = _build_service(repository)
            for user_id in (1, 2, 3):
                await service.reserve_slot(user_id, at("14:00"), Service.ALL)
            await service.cancel_reservation(2, at("14:00"))
            return await service.reservations(TUESDAY)

        rows = run_with_repository(tmp_path, scenario)

        assert [row.user_id for row in rows] == [1, 3]

    def test_cancel_last_reservation(self, tmp_path):
        async def scenario(repository):
            await repository.save_user(make_user(1))
            service = _build_service(repository)
            await service.reserve_slot(1, at("14:00"), Service.ALL)
            await service.cancel_reservation(1, at("14:00"))
            template = next(t for t in service.templates(TUESDAY) if t.start == at("14:00"))
            slot = await repository.reserved_slot(template)
            return await service.reservations(TUESDAY), slot

        rows, slot = run_with_repository(tmp_path, scenario)

        assert rows == []
        assert slot.revision == 0

    def test_has_available_slots(self, tmp_path):
        async def scenario(repository):
            await repository.save_user(make_user(1))
            service = _build_service(repository, capacity=1)
            templates = service.templates(TUESDAY)[:2]
            before = await repository.has_available_slots(templates)
            await service.reserve_slot(1, templates[0].start, Service.VISA)
            partly = await repository.has_available_slots(templates)
            full = await repository.has_available_slots(templates[:1])
            return before, partly, full

        before, partly, full = run_with_repository(tmp_path, scenario)

        assert before and partly
        assert not full


class TestLoweredCapacity:
    """Stored slots stay readable after capacity is reduced."""

    def test_over_full_slot_is_read_back(self, tmp_path):
        async def scenario(repository):
            for user_id in (1, 2, 3):
                await repository.save_user(make_user(user_id))
            roomy = _build_service(repository, capacity=3)
            for user_id in (1, 2, 3):
                await roomy.reserve_slot(user_id, at("10:00"), Service.VISA)
            tight = _build_service(repository, capacity=2)
            return await tight.reservations(TUESDAY), await tight.free_slots(TUESDAY)

        rows, free = run_with_repository(tmp_path, scenario)

        assert [row.user_id for row in rows] == [1, 2, 3]
        assert at("10:00") not in [slot.start for slot in free]


class TestRevisions:
    """Optimistic concurrency on save_slot."""

    def test_concurrent_first_booking(self, tmp_path):
        """Both readers saw an empty slot; only one insert wins."""
        async def scenario(repository):
            for user_id in (1, 2):
                await repository.save_user(make_user(user_id))
            service = _build_service(repository)
            template = service.templates(TUESDAY)[0]
            first = await repository.reserved_slot(template)
            second = await repository.reserved_slot(template)
            first.reserve(make_user(1), Service.VISA)
            second.reserve(make_user(2), Service.VISA)
            await repository.save_slot(first)
            try:
                await repository.save_slot(second)
            except ConcurrentUpdateError:
                return await service.reservations(TUESDAY), True
            return await service.reservations(TUESDAY), False

        rows, conflicted = run_with_repository(tmp_path, scenario)

        assert conflicted
        assert [row.user_id for row in rows] == [1]

    def test_concurrent_update(self, tmp_path):
        async def scenario(repository):
            for user_id in (1, 2, 3):
                await repository.save_user(make_user(user_id))
            service = _build_service(repository)
            await service.reserve_slot(1, at("10:00"), Service.VISA)
            template = service.templates(TUESDAY)[0]
            first = await repository.reserved_slot(template)
            second = await repository.reserved_slot(template)
            first.reserve(make_user(2), Service.VISA)
            second.reserve(make_user(3), Service.VISA)
            await repository.save_slot(first)
            assert first.revision == 2
            await repository.save_slot(second)

        with pytest.raises(ConcurrentUpdateError):
            run_with_repository(tmp_path, scenario)
