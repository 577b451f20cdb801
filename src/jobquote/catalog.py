"""Read-only catalog lookup used by the composition layer."""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, Optional

from .models import Assembly, Material

logger = logging.getLogger(__name__)


class CatalogLookup(ABC):
    """Resolves material and assembly ids; returns None when not found."""

    @abstractmethod
    def get_material(self, material_id: str) -> Optional[Material]:
        """Look up a material by id."""

    @abstractmethod
    def get_assembly(self, assembly_id: str) -> Optional[Assembly]:
        """Look up an assembly by id."""


class InMemoryCatalog(CatalogLookup):
    """Dictionary-backed catalog.

    Usage::

        catalog = InMemoryCatalog(materials=[Material(id="m1", base_cost=4.0)])
        catalog.get_material("m1")
    """

    def __init__(
        self,
        materials: Optional[Iterable[Material]] = None,
        assemblies: Optional[Iterable[Assembly]] = None,
    ) -> None:
        self._materials: Dict[str, Material] = {}
        self._assemblies: Dict[str, Assembly] = {}

        for material in materials or []:
            if material.id in self._materials:
                logger.warning(f"Duplicate material id {material.id}; keeping the last one")
            self._materials[material.id] = material

        for assembly in assemblies or []:
            if assembly.id in self._assemblies:
                logger.warning(f"Duplicate assembly id {assembly.id}; keeping the last one")
            self._assemblies[assembly.id] = assembly

        logger.debug(
            f"Catalog loaded with {len(self._materials)} materials, {len(self._assemblies)} assemblies"
        )

    def get_material(self, material_id: str) -> Optional[Material]:
        return self._materials.get(material_id)

    def get_assembly(self, assembly_id: str) -> Optional[Assembly]:
        return self._assemblies.get(assembly_id)

    @property
    def material_count(self) -> int:
        return len(self._materials)

    @property
    def assembly_count(self) -> int:
        return len(self._assemblies)
