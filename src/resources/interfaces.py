"""
Интерфейсы (порты) для контекста ресурсов.
"""

from __future__ import annotations

from typing import List, Optional, Protocol

from shared_kernel import EntityId

from .domain import Resource


class IResourceRepository(Protocol):
    """Интерфейс репозитория ресурсов. Все запросы ограничены текущим арендатором."""

    def save(self, resource: Resource) -> None: ...
    def find_by_id(self, resource_id: EntityId) -> Optional[Resource]: ...
    def find_all(self) -> List[Resource]: ...
