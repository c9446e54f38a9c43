"""
In-memory storage adapter for demos and tests without a database.
"""

import asyncio
import json
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Sequence, Tuple

import pendulum

from ..domain.exceptions import ConcurrentUpdateError, UserNotFound
from ..domain.models import Citizenship, CyrillicName, LatinName, Reservation, Service, Slot, User
from .keys import slot_key

DEFAULT_FIXTURE = Path(__file__).parent / "mock_data.json"


class MemoryRepository:
    """
    Keeps users and reservations in dictionaries.

    Implements the same provider protocols and the same revision checks
    as ``SqlRepository``, so services behave identically on top of it.
    """

    def __init__(self):
        self.users: Dict[int, User] = {}
        # slot key -> (revision, reservations in booking order)
        self.slots: Dict[datetime, Tuple[int, List[Reservation]]] = {}
        self._lock = asyncio.Lock()

    @classmethod
    def from_json(cls, data_file: Path = DEFAULT_FIXTURE) -> "MemoryRepository":
        """
        Build a repository pre-filled from a JSON fixture.

        Format::

            {"users": [{"id": 1, "username": "...", "full_name_lat": "...",
                        "full_name_cyr": "...", "citizenship": "...",
                        "arrival_date": "YYYY-MM-DD"}],
             "reservations": [{"slot_start": "ISO-8601", "user_id": 1,
                               "service": "visa"}]}

        A missing file yields an empty repository.
        """
        repository = cls()
        if not data_file.exists():
            return repository

        with open(data_file, "r", encoding="utf-8") as f:
            data = json.load(f)

        for item in data.get("users", []):
            user = User(
                id=int(item["id"]),
                username=item.get("username", ""),
                full_name_lat=LatinName(item["full_name_lat"]),
                full_name_cyr=CyrillicName(item["full_name_cyr"]),
                citizenship=Citizenship.parse(item["citizenship"]),
                arrival_date=pendulum.parse(item["arrival_date"]).date(),
            )
            repository.users[user.id] = user

        for item in data.get("reservations", []):
            key = slot_key(pendulum.parse(item["slot_start"]))
            revision, reservations = repository.slots.get(key, (1, []))
            reservations.append(
                Reservation(
                    user=repository.users[int(item["user_id"])],
                    service=Service.parse(item["service"]),
                )
            )
            repository.slots[key] = (revision, reservations)

        return repository

    async def user(self, user_id: int) -> User:
        try:
            return self.users[user_id]
        except KeyError:
            raise UserNotFound(user_id) from None

    async def save_user(self, user: User) -> None:
        self.users[user.id] = user

    def _merge(self, templates: Sequence[Slot]) -> List[Slot]:
        merged: List[Slot] = []
        for template in templates:
            revision, reservations = self.slots.get(slot_key(template.start), (0, []))
            merged.append(
                Slot.restore(
                    interval=template.interval,
                    max_size=template.max_size,
                    reservations=reservations,
                    revision=revision,
                )
            )
        return merged

    async def available_slots(self, templates: Sequence[Slot]) -> List[Slot]:
        return [slot for slot in self._merge(templates) if slot.is_available()]

    async def reserved_slots(self, templates: Sequence[Slot]) -> List[Slot]:
        return [slot for slot in self._merge(templates) if not slot.is_empty()]

    async def reserved_slot(self, template: Slot) -> Slot:
        return self._merge([template])[0]

    async def has_available_slots(self, templates: Sequence[Slot]) -> bool:
        return any(slot.is_available() for slot in self._merge(templates))

    async def save_slot(self, slot: Slot) -> None:
        key = slot_key(slot.start)
        async with self._lock:
            stored_revision, _ = self.slots.get(key, (0, []))
            if stored_revision != slot.revision:
                raise ConcurrentUpdateError(slot.start)

            if slot.is_empty():
                self.slots.pop(key, None)
                slot.revision = 0
            else:
                slot.revision = stored_revision + 1
                self.slots[key] = (slot.revision, list(slot.reservations))
