"""
Интерфейсы (порты) для контекста идентификации.
"""

from __future__ import annotations

from typing import Optional, Protocol

from shared_kernel import EntityId, TenantId

from .domain import User


class ITenantContext(Protocol):
    """Арендатор текущего запроса."""

    def get_tenant_id(self) -> TenantId:
        """Возвращает арендатора или бросает ContextNotAvailableError."""
        ...


class IUserContext(Protocol):
    """Аутентифицированный пользователь текущего запроса."""

    def get_user_id(self) -> EntityId:
        """Возвращает ID пользователя или бросает ContextNotAvailableError."""
        ...

    def is_authenticated(self) -> bool: ...


class IUserRepository(Protocol):
    """Интерфейс репозитория для пользователей."""

    def save(self, user: User) -> None: ...
    def find_by_id(self, user_id: EntityId) -> Optional[User]: ...
    def find_by_email(self, email: str) -> Optional[User]: ...
