"""
Инфраструктурный слой контекста ресурсов.
"""

from typing import Dict, List, Optional

from identity.interfaces import ITenantContext
from shared_kernel import EntityId

from . import interfaces as ports
from .domain import Resource


class InMemoryResourceRepository(ports.IResourceRepository):
    """Реализация репозитория ресурсов в памяти."""

    def __init__(self, tenant_context: ITenantContext):
        self._tenant_context = tenant_context
        self._resources: Dict[EntityId, Resource] = {}

    def save(self, resource: Resource) -> None:
        self._resources[resource.id] = resource

    def find_by_id(self, resource_id: EntityId) -> Optional[Resource]:
        resource = self._resources.get(resource_id)
        if resource is None or resource.tenant_id != self._tenant_context.get_tenant_id():
            return None
        return resource

    def find_all(self) -> List[Resource]:
        tenant_id = self._tenant_context.get_tenant_id()
        resources = [r for r in self._resources.values() if r.tenant_id == tenant_id]
        return sorted(resources, key=lambda r: r.name)
