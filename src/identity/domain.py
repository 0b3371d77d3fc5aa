"""
Доменная модель контекста идентификации.
"""

from typing import Optional

from pydantic import BaseModel, Field
from shared_kernel import EntityId, TenantId, generate_id


class ContextNotAvailableError(RuntimeError):
    """Контекст запроса (арендатор или пользователь) не установлен."""

    pass


class CalendarCredentials(BaseModel):
    """Учетные данные доступа к внешнему календарю пользователя."""

    access_token: str = Field(..., min_length=1)
    refresh_token: Optional[str] = None
    calendar_id: str = "primary"


class User(BaseModel):
    """Пользователь арендатора."""

    id: EntityId = Field(default_factory=generate_id)
    tenant_id: TenantId
    email: str
    name: str
    calendar_credentials: Optional[CalendarCredentials] = None

    @property
    def has_calendar_connection(self) -> bool:
        return self.calendar_credentials is not None

    def connect_calendar(self, credentials: CalendarCredentials) -> None:
        """Подключает внешний календарь."""
        self.calendar_credentials = credentials

    def disconnect_calendar(self) -> None:
        self.calendar_credentials = None
