"""
Основные доменные типы и утилиты общего ядра.
"""

from datetime import datetime, timedelta, timezone
from typing import Self
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Общие типы идентификаторов
EntityId = UUID


def generate_id() -> UUID:
    """Генерирует новый UUID."""
    return uuid4()


# Общие утилиты
def now() -> datetime:
    """Возвращает текущий момент времени (UTC)."""
    return datetime.now(timezone.utc)


# Общие исключения
class DomainException(Exception):
    """Базовое исключение для доменных ошибок."""

    pass


class InvalidRangeError(DomainException):
    """Исключение при попытке создать пустой или перевернутый интервал."""

    def __init__(self, starts_at: datetime, ends_at: datetime) -> None:
        super().__init__("Время начала должно быть раньше времени окончания")
        self.starts_at = starts_at
        self.ends_at = ends_at


class TenantId(BaseModel):
    """Идентификатор арендатора (границы изоляции данных)."""

    model_config = ConfigDict(frozen=True)

    value: str = Field(..., min_length=1)

    @classmethod
    def from_string(cls, value: str) -> Self:
        return cls(value=value)

    def __str__(self) -> str:
        return self.value


class TimeRange(BaseModel):
    """Полуоткрытый интервал [starts_at, ends_at) между абсолютными моментами.

    Наивные datetime трактуются как UTC: отображение часовых поясов
    остается задачей слоя представления.
    """

    model_config = ConfigDict(frozen=True)

    starts_at: datetime
    ends_at: datetime

    @field_validator("starts_at", "ends_at")
    @classmethod
    def as_absolute_instant(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @model_validator(mode="after")
    def starts_before_end(self) -> "TimeRange":
        if self.starts_at >= self.ends_at:
            raise InvalidRangeError(self.starts_at, self.ends_at)
        return self

    def overlaps(self, other: "TimeRange") -> bool:
        """Пересекаются ли интервалы. Касание концами пересечением не считается."""
        return self.starts_at < other.ends_at and self.ends_at > other.starts_at

    def duration_minutes(self) -> int:
        """Длительность интервала в полных минутах."""
        return int((self.ends_at - self.starts_at).total_seconds()) // 60

    def shifted(self, delta: timedelta) -> "TimeRange":
        """Возвращает интервал той же длины, сдвинутый на delta."""
        return TimeRange(starts_at=self.starts_at + delta, ends_at=self.ends_at + delta)


class DomainEvent(BaseModel):
    """Базовый класс для всех доменных событий."""

    model_config = ConfigDict(frozen=True)

    event_id: UUID = Field(default_factory=uuid4)
    occurred_on: datetime = Field(default_factory=now)

    @property
    def event_type(self) -> str:
        return type(self).__name__
