"""
Tests for domain models.
"""

import pendulum
import pytest

from migreg.domain.exceptions import (
    InvalidInterval,
    InvalidValue,
    MaxCapacityExceeded,
    SlotAlreadyReserved,
    UserNotReserved,
)
from migreg.domain.models import (
    Citizenship,
    ClosedRange,
    Country,
    CyrillicName,
    LatinName,
    Reservation,
    Service,
    Slot,
    TimeInterval,
    User,
)

TZ = "Europe/Moscow"


def make_user(user_id: int, country: Country = Country.TAJIKISTAN) -> User:
    return User(
        id=user_id,
        username=f"user{user_id}",
        full_name_lat=LatinName("Rustam Nazarov"),
        full_name_cyr=CyrillicName("Рустам Назаров"),
        citizenship=Citizenship.of(country),
        arrival_date=pendulum.date(2026, 10, 12),
    )


def make_slot(max_size: int = 3) -> Slot:
    start = pendulum.datetime(2026, 10, 19, 10, 0, tz=TZ)
    return Slot(interval=TimeInterval.with_duration(start, 20), max_size=max_size)


class TestClosedRange:
    """Tests for ClosedRange."""

    def test_contains(self):
        """A range contains ranges inside it, including equal bounds."""
        outer = ClosedRange(start=10, end=20)

        assert outer.contains(ClosedRange(start=12, end=18))
        assert outer.contains(ClosedRange(start=10, end=20))
        assert not outer.contains(ClosedRange(start=9, end=15))

    def test_overlaps_is_strict(self):
        """Ranges that only touch at a boundary do not overlap."""
        first = ClosedRange(start=10, end=20)

        assert first.overlaps(ClosedRange(start=15, end=25))
        assert not first.overlaps(ClosedRange(start=20, end=30))
        assert not first.overlaps(ClosedRange(start=0, end=10))
        assert first.is_disjoint(ClosedRange(start=20, end=30))

    def test_days_excludes_end(self):
        """Iterating a date range yields every date before the end."""
        days = list(ClosedRange(start=pendulum.date(2026, 10, 30), end=pendulum.date(2026, 11, 2)).days())

        assert days == [
            pendulum.date(2026, 10, 30),
            pendulum.date(2026, 10, 31),
            pendulum.date(2026, 11, 1),
        ]

    def test_days_of_empty_range(self):
        """A range whose end is not after its start yields nothing."""
        day = pendulum.date(2026, 10, 30)

        assert list(ClosedRange(start=day, end=day).days()) == []


class TestTimeInterval:
    """Tests for TimeInterval."""

    def test_create_valid_interval(self):
        """Test creating a valid interval."""
        start = pendulum.parse("2026-10-19 09:00", tz=TZ)
        end = pendulum.parse("2026-10-19 17:00", tz=TZ)

        interval = TimeInterval(start=start, end=end)

        assert interval.start == start
        assert interval.end == end
        assert interval.duration_minutes() == 480
        assert interval.date == pendulum.date(2026, 10, 19)

    def test_reversed_interval_raises_error(self):
        """Start after end is rejected."""
        with pytest.raises(InvalidInterval, match="expected start < end"):
            TimeInterval(
                start=pendulum.parse("2026-10-19 17:00", tz=TZ),
                end=pendulum.parse("2026-10-19 09:00", tz=TZ),
            )

    def test_empty_interval_raises_error(self):
        """Start equal to end is rejected."""
        moment = pendulum.parse("2026-10-19 09:00", tz=TZ)

        with pytest.raises(InvalidInterval):
            TimeInterval(start=moment, end=moment)

    def test_interval_crossing_midnight_raises_error(self):
        """An interval may not straddle midnight."""
        start = pendulum.parse("2026-10-19 23:50", tz=TZ)

        with pytest.raises(InvalidInterval, match="within one day"):
            TimeInterval.with_duration(start, 20)

    def test_invalid_interval_is_value_error(self):
        """InvalidInterval can be handled as a plain ValueError."""
        moment = pendulum.parse("2026-10-19 09:00", tz=TZ)

        with pytest.raises(ValueError):
            TimeInterval(start=moment, end=moment)


class TestSlot:
    """Tests for the Slot entity."""

    def test_new_slot_is_empty_and_available(self):
        slot = make_slot()

        assert slot.is_empty()
        assert slot.is_available()
        assert slot.reserved == 0
        assert slot.revision == 0

    def test_reserve_until_capacity(self):
        """max_size distinct users fit; the next one is rejected."""
        slot = make_slot(max_size=3)

        for user_id in (1, 2, 3):
            reservation = slot.reserve(make_user(user_id), Service.VISA)
            assert reservation.user.id == user_id

        assert not slot.is_available()
        with pytest.raises(MaxCapacityExceeded) as exc_info:
            slot.reserve(make_user(4), Service.VISA)
        assert exc_info.value.max_size == 3
        assert slot.reserved == 3

    def test_reserve_twice_by_same_user(self):
        """The same user cannot hold two seats in one slot."""
        slot = make_slot()
        slot.reserve(make_user(1), Service.VISA)

        with pytest.raises(SlotAlreadyReserved) as exc_info:
            slot.reserve(make_user(1), Service.INSURANCE)

        assert exc_info.value.user_id == 1
        assert slot.reserved == 1

    def test_full_slot_reports_capacity_before_duplicate(self):
        """A full slot rejects with MaxCapacityExceeded even for a holder."""
        slot = make_slot(max_size=1)
        slot.reserve(make_user(1), Service.VISA)

        with pytest.raises(MaxCapacityExceeded):
            slot.reserve(make_user(1), Service.VISA)

    def test_reservations_keep_booking_order(self):
        slot = make_slot()
        for user_id in (3, 1, 2):
            slot.reserve(make_user(user_id), Service.ALL)

        assert [r.user.id for r in slot.reservations] == [3, 1, 2]

    def test_cancel_removes_only_that_user(self):
        """Cancelling drops exactly one reservation and keeps the others."""
        slot = make_slot()
        for user_id in (1, 2, 3):
            slot.reserve(make_user(user_id), Service.VISA)

        removed = slot.cancel(2)

        assert removed.user.id == 2
        assert [r.user.id for r in slot.reservations] == [1, 3]
        assert slot.is_available()

    def test_cancel_without_reservation(self):
        slot = make_slot()
        slot.reserve(make_user(1), Service.VISA)

        with pytest.raises(UserNotReserved) as exc_info:
            slot.cancel(2)

        assert exc_info.value.user_id == 2
        assert slot.reserved == 1

    def test_restore_over_capacity(self):
        """A slot stored before capacity was lowered keeps every seat but takes no more."""
        template = make_slot(max_size=1)
        reservations = [Reservation(make_user(1), Service.VISA), Reservation(make_user(2), Service.VISA)]

        slot = Slot.restore(template.interval, 1, reservations)

        assert slot.reserved == 2
        assert not slot.is_available()
        with pytest.raises(MaxCapacityExceeded):
            slot.reserve(make_user(3), Service.VISA)
        assert slot.cancel(1).user.id == 1
        assert not slot.is_available()

    def test_restore_copies_reservations(self):
        template = make_slot()
        reservations = [Reservation(make_user(1), Service.VISA)]

        slot = Slot.restore(template.interval, 3, reservations, revision=4)
        slot.reserve(make_user(2), Service.VISA)

        assert len(reservations) == 1
        assert slot.revision == 4
        assert slot.holds(1) and slot.holds(2)


class TestServiceAndCitizenship:
    """Tests for the Service and Citizenship value types."""

    def test_renewals_have_no_deadline(self):
        assert not Service.RENEWAL_OF_REGISTRATION.has_deadline
        assert not Service.RENEWAL_OF_VISA.has_deadline
        assert Service.INITIAL_REGISTRATION.has_deadline
        assert Service.ALL.has_deadline

    def test_parse_service_by_code_and_label(self):
        assert Service.parse("visa") is Service.VISA
        assert Service.parse("Продление визы") is Service.RENEWAL_OF_VISA

    def test_parse_unknown_service(self):
        with pytest.raises(InvalidValue, match="invalid service"):
            Service.parse("passport")

    def test_citizenship_round_trip_through_label(self):
        assert Citizenship.parse("Казахстан") == Citizenship.of(Country.KAZAKHSTAN)
        assert Citizenship.parse("Китай") == Citizenship.other("Китай")
        assert Citizenship.other("Китай").is_other
        assert Citizenship.of(Country.ARMENIA).label == "Армения"


class TestNames:
    """Tests for script-restricted names."""

    def test_latin_name(self):
        assert LatinName("Anna-Maria Smith") == "Anna-Maria Smith"
        with pytest.raises(InvalidValue):
            LatinName("Анна Smith")

    def test_cyrillic_name(self):
        assert CyrillicName("Алёна Петрова-Ёлкина") == "Алёна Петрова-Ёлкина"
        with pytest.raises(InvalidValue):
            CyrillicName("Alena")
