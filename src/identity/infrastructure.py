"""
Инфраструктурный слой контекста идентификации.

Реализации контекстов запроса и репозитория пользователей в памяти.
"""

from typing import Dict, Optional

from shared_kernel import EntityId, TenantId

from . import interfaces as ports
from .domain import ContextNotAvailableError, User


class InMemoryTenantContext(ports.ITenantContext):
    """Хранит арендатора на время обработки запроса."""

    def __init__(self, tenant_id: Optional[TenantId] = None):
        self._tenant_id = tenant_id

    def set_tenant_id(self, tenant_id: TenantId) -> None:
        self._tenant_id = tenant_id

    def get_tenant_id(self) -> TenantId:
        if self._tenant_id is None:
            raise ContextNotAvailableError("Арендатор не установлен в контексте")
        return self._tenant_id

    def clear(self) -> None:
        self._tenant_id = None


class InMemoryUserContext(ports.IUserContext):
    """Хранит аутентифицированного пользователя на время запроса."""

    def __init__(self, user: Optional[User] = None):
        self._user = user

    def set_user(self, user: User) -> None:
        self._user = user

    def get_user(self) -> User:
        if self._user is None:
            raise ContextNotAvailableError("В контексте нет аутентифицированного пользователя")
        return self._user

    def get_user_id(self) -> EntityId:
        return self.get_user().id

    def is_authenticated(self) -> bool:
        return self._user is not None

    def clear(self) -> None:
        self._user = None


class InMemoryUserRepository(ports.IUserRepository):
    """Реализация репозитория пользователей в памяти."""

    def __init__(self) -> None:
        self._users: Dict[EntityId, User] = {}

    def save(self, user: User) -> None:
        self._users[user.id] = user

    def find_by_id(self, user_id: EntityId) -> Optional[User]:
        return self._users.get(user_id)

    def find_by_email(self, email: str) -> Optional[User]:
        email = email.lower()
        for user in self._users.values():
            if user.email.lower() == email:
                return user
        return None
