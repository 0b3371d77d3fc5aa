"""
Модуль контекста бронирования (Booking Context).

Отвечает за бронирование ресурсов арендатора, включая:
- Создание и отмену бронирований
- Проверку пересечений по времени и политику отмены
- Синхронизацию и сверку с внешним календарем
"""

from . import (
    application,
    calendar_sync,
    domain,
    event_handlers,
    infrastructure,
    interfaces,
)

__all__ = [
    "domain",
    "application",
    "calendar_sync",
    "event_handlers",
    "infrastructure",
    "interfaces",
]
