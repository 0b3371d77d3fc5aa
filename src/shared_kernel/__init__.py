"""
Общее ядро (Shared Kernel) системы бронирования ресурсов.

Содержит общие типы данных и утилиты, используемые в различных ограниченных контекстах.
"""

from .domain import (
    DomainEvent,
    # Исключения
    DomainException,
    # Базовые типы
    EntityId,
    InvalidRangeError,
    TenantId,
    # Основные классы
    TimeRange,
    generate_id,
    # Утилиты
    now,
)

__all__ = [
    # Базовые типы
    "EntityId",
    "TenantId",
    "generate_id",
    # Основные классы
    "TimeRange",
    "DomainEvent",
    # Исключения
    "DomainException",
    "InvalidRangeError",
    # Утилиты
    "now",
]
