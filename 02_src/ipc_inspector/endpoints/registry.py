"""EndpointRegistry: role-based lookup of live endpoints."""

import time
from dataclasses import dataclass

from ..logging_config import get_logger
from ..models.contracts import INSPECTOR_ROLE
from .base import IEndpoint

logger = get_logger(__name__)

MAIN_ROLE = "main"
DEFAULT_ROLE = "secondary"


@dataclass
class EndpointMetadata:
    """A registered endpoint and its role."""

    id: int
    role: str
    endpoint: IEndpoint
    created_at: float


class EndpointRegistry:
    """Central registry of endpoints, grouped by role."""

    def __init__(self):
        self._endpoints: dict[int, EndpointMetadata] = {}
        self._main_id: int | None = None

    def register(self, endpoint: IEndpoint, role: str = DEFAULT_ROLE) -> EndpointMetadata:
        """Register an endpoint; it is unregistered automatically when closed."""
        metadata = EndpointMetadata(
            id=endpoint.id,
            role=role,
            endpoint=endpoint,
            created_at=time.time() * 1000,
        )
        self._endpoints[endpoint.id] = metadata

        if role == MAIN_ROLE and self._main_id is None:
            self._main_id = endpoint.id

        endpoint_id = endpoint.id
        endpoint.on_closed(lambda: self.unregister(endpoint_id))
        logger.info("Endpoint %s registered with role %s", endpoint_id, role)
        return metadata

    def unregister(self, endpoint_id: int) -> None:
        """Remove an endpoint. Unknown ids are ignored."""
        if self._main_id == endpoint_id:
            self._main_id = None
        if self._endpoints.pop(endpoint_id, None) is not None:
            logger.info("Endpoint %s unregistered", endpoint_id)

    def get_all(self) -> list[EndpointMetadata]:
        """All registered endpoints that are not destroyed."""
        return [meta for meta in self._endpoints.values() if not meta.endpoint.is_destroyed()]

    def get_by_role(self, role: str) -> list[EndpointMetadata]:
        return [meta for meta in self.get_all() if meta.role == role]

    def get_by_id(self, endpoint_id: int) -> EndpointMetadata | None:
        meta = self._endpoints.get(endpoint_id)
        if meta is None or meta.endpoint.is_destroyed():
            return None
        return meta

    def get_role(self, endpoint_id: int) -> str | None:
        meta = self.get_by_id(endpoint_id)
        return meta.role if meta else None

    def get_main(self) -> EndpointMetadata | None:
        """The main endpoint, falling back to the first registered one."""
        if self._main_id is None:
            all_endpoints = self.get_all()
            return all_endpoints[0] if all_endpoints else None
        return self.get_by_id(self._main_id)

    def count(self, exclude_inspector: bool = True) -> int:
        endpoints = self.get_all()
        if exclude_inspector:
            endpoints = [meta for meta in endpoints if meta.role != INSPECTOR_ROLE]
        return len(endpoints)
