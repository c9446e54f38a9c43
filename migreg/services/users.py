"""
User registration and profile updates.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date as _date
from typing import Iterable

from ..domain.exceptions import UserNotFound
from ..domain.models import Citizenship, CyrillicName, LatinName, User, to_date
from .dto import UserDTO
from .providers import UserProvider, UserRepository

logger = logging.getLogger(__name__)


class UserService:
    """Registers users and edits their profile, one field at a time."""

    def __init__(
        self,
        user_provider: UserProvider,
        user_repository: UserRepository,
        admin_ids: Iterable[int] = (),
    ) -> None:
        self._provider = user_provider
        self._repository = user_repository
        self._admin_ids = frozenset(admin_ids)

    async def register(
        self,
        *,
        user_id: int,
        username: str,
        full_name_lat: str,
        full_name_cyr: str,
        citizenship: Citizenship,
        arrival_date: _date,
    ) -> User:
        """
        Create (or overwrite) a user record.

        Raises:
            InvalidValue: If a name contains characters of the wrong script
        """
        user = User(
            id=user_id,
            username=username.lstrip("@"),
            full_name_lat=LatinName(full_name_lat),
            full_name_cyr=CyrillicName(full_name_cyr),
            citizenship=citizenship,
            arrival_date=to_date(arrival_date),
        )
        await self._repository.save_user(user)
        logger.info("Registered user %s", user_id)
        return user

    async def user(self, user_id: int) -> UserDTO:
        return UserDTO.from_user(await self._provider.user(user_id))

    async def is_registered(self, user_id: int) -> bool:
        try:
            await self._provider.user(user_id)
        except UserNotFound:
            return False
        return True

    def is_admin(self, user_id: int) -> bool:
        return user_id in self._admin_ids

    async def _update(self, user_id: int, **changes) -> User:
        user = replace(await self._provider.user(user_id), **changes)
        await self._repository.save_user(user)
        logger.info("Updated %s of user %s", ", ".join(changes), user_id)
        return user

    async def update_name_lat(self, user_id: int, name: str) -> User:
        return await self._update(user_id, full_name_lat=LatinName(name))

    async def update_name_cyr(self, user_id: int, name: str) -> User:
        return await self._update(user_id, full_name_cyr=CyrillicName(name))

    async def update_citizenship(self, user_id: int, citizenship: Citizenship) -> User:
        return await self._update(user_id, citizenship=citizenship)

    async def update_arrival_date(self, user_id: int, arrival_date: _date) -> User:
        return await self._update(user_id, arrival_date=to_date(arrival_date))
