"""
Прикладной слой контекста ресурсов.
"""

from typing import List

from identity.interfaces import ITenantContext
from pydantic import BaseModel, Field
from shared_kernel import EntityId

from . import interfaces as ports
from .domain import Resource, ResourceNotFoundError


class CreateResourceRequest(BaseModel):
    """Запрос на создание ресурса."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str = ""


class ResourceDTO(BaseModel):
    """DTO для представления ресурса."""

    id: EntityId
    tenant_id: str
    name: str
    description: str

    @classmethod
    def from_domain(cls, resource: Resource) -> "ResourceDTO":
        """Создает DTO из доменной модели."""
        return cls(
            id=resource.id,
            tenant_id=str(resource.tenant_id),
            name=resource.name,
            description=resource.description,
        )


class ResourceApplicationService:
    """Сервис приложения для работы с ресурсами."""

    def __init__(
        self, resource_repo: ports.IResourceRepository, tenant_context: ITenantContext
    ):
        self._resources = resource_repo
        self._tenant_context = tenant_context

    def create_resource(self, request: CreateResourceRequest) -> ResourceDTO:
        """Регистрирует новый ресурс текущего арендатора."""
        resource = Resource(
            tenant_id=self._tenant_context.get_tenant_id(),
            name=request.name,
            description=request.description,
        )
        self._resources.save(resource)
        return ResourceDTO.from_domain(resource)

    def get_resource(self, resource_id: EntityId) -> ResourceDTO:
        resource = self._resources.find_by_id(resource_id)
        if resource is None:
            raise ResourceNotFoundError(resource_id)
        return ResourceDTO.from_domain(resource)

    def list_resources(self) -> List[ResourceDTO]:
        return [ResourceDTO.from_domain(r) for r in self._resources.find_all()]
