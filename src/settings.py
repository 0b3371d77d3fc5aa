"""
Настройки приложения.

Значения читаются из переменных окружения с префиксом BOOKING_,
например BOOKING_CANCELLATION_MIN_LEAD_HOURS=48.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BookingSettings(BaseSettings):
    """Настройки контекста бронирования."""

    model_config = SettingsConfigDict(env_prefix="BOOKING_", env_file=".env", extra="ignore")

    cancellation_min_lead_hours: int = Field(24, ge=0)
    calendar_sync_enabled: bool = True
    notifications_enabled: bool = True
    notification_fallback_recipient: Optional[str] = None
    unknown_resource_label: str = "Unknown resource"
    log_level: str = "INFO"


@lru_cache
def get_settings() -> BookingSettings:
    """Возвращает закешированный экземпляр настроек."""
    return BookingSettings()
