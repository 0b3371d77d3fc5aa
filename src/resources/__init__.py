"""
Модуль контекста ресурсов (Resources Context).

Отвечает за каталог бронируемых ресурсов арендатора:
переговорные, рабочие места, оборудование.
"""

from . import application, domain, infrastructure, interfaces

__all__ = [
    "domain",
    "application",
    "infrastructure",
    "interfaces",
]
