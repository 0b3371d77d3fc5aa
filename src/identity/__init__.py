"""
Модуль контекста идентификации (Identity Context).

Отвечает за пользователей арендатора и текущий контекст запроса:
- Пользователи и их подключения к внешнему календарю
- Текущий арендатор и аутентифицированный пользователь
"""

from . import domain, infrastructure, interfaces

__all__ = [
    "domain",
    "infrastructure",
    "interfaces",
]
