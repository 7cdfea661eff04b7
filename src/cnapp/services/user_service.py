"""
User domain type, the storage contract the service depends on, and the
service itself.

Input validation happens here, before any storage call; storage faults and
not-found outcomes come back from the repository already classified.
"""

import logging
from dataclasses import dataclass, replace
from typing import Protocol

from cnapp.exceptions.base import ValidationError

logger = logging.getLogger(__name__)


@dataclass
class User:
    """
    A user as seen by callers.

    `created_at` / `updated_at` are RFC 3339 UTC strings ("2024-05-01T12:00:00Z").
    """

    id: int = 0
    name: str = ""
    email: str = ""
    role: str = ""
    active: bool = True
    created_at: str = ""
    updated_at: str = ""


class UserRepository(Protocol):
    """Storage contract for users; implemented by `SQLUserRepository`."""

    async def find_by_id(self, user_id: int) -> User: ...

    async def find_all(self) -> list[User]: ...

    async def create(self, user: User) -> User: ...

    async def update(self, user: User) -> None: ...

    async def delete(self, user_id: int) -> None: ...


class UserService:
    """User use cases on top of any `UserRepository`."""

    def __init__(self, repository: UserRepository):
        self.repository = repository

    @staticmethod
    def _require_valid_id(user_id: int, operation: str) -> None:
        if user_id <= 0:
            logger.info("service.invalid_user_id", extra={"operation": operation, "user_id": user_id})
            raise ValidationError("invalid user ID")

    async def get_user_by_id(self, user_id: int) -> User:
        self._require_valid_id(user_id, "get_user_by_id")
        return await self.repository.find_by_id(user_id)

    async def get_all_users(self) -> list[User]:
        return await self.repository.find_all()

    async def create_user(self, user: User) -> User:
        """
        Validate and persist a new user.

        Raises:
            ValidationError: empty name or email (nothing is written).
            DatabaseError: storage failure.
        """
        if not user.name:
            logger.info("service.create_user.invalid", extra={"field": "name"})
            raise ValidationError("user name cannot be empty")
        if not user.email:
            logger.info("service.create_user.invalid", extra={"field": "email"})
            raise ValidationError("user email cannot be empty")
        return await self.repository.create(user)

    async def update_user(self, user: User) -> None:
        """
        Update an existing user.

        Raises:
            ValidationError: non-positive id.
            NotFoundError: no user with that id.
        """
        self._require_valid_id(user.id, "update_user")
        await self.repository.find_by_id(user.id)
        await self.repository.update(user)

    async def deactivate_user(self, user_id: int) -> None:
        self._require_valid_id(user_id, "deactivate_user")
        user = await self.repository.find_by_id(user_id)
        await self.repository.update(replace(user, active=False))
