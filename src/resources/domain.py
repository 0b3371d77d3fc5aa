"""
Доменная модель контекста ресурсов.
"""

from pydantic import BaseModel, Field
from shared_kernel import DomainException, EntityId, TenantId, generate_id


class ResourceNotFoundError(DomainException):
    """Ресурс не найден (или принадлежит другому арендатору)."""

    def __init__(self, resource_id: EntityId) -> None:
        super().__init__(f"Ресурс {resource_id} не найден")
        self.resource_id = resource_id


class Resource(BaseModel):
    """Бронируемый ресурс."""

    id: EntityId = Field(default_factory=generate_id)
    tenant_id: TenantId
    name: str = Field(..., min_length=1, max_length=255)
    description: str = ""
