import logging
from pathlib import Path

from ecu_console.data.catalog_loader import load_module_table
from ecu_console.errors import UnknownModule
from ecu_console.models.module import ModuleDescriptor, Priority

logger = logging.getLogger(__name__)


class CapabilityCatalog:
    """Read-only table of ECU module descriptors."""

    def __init__(self, descriptors: list[ModuleDescriptor]):
        self._modules: dict[str, ModuleDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.id in self._modules:
                raise ValueError(f"Duplicate module id: {descriptor.id}")
            self._modules[descriptor.id] = descriptor

    @classmethod
    def from_yaml(cls, path: str | Path) -> "CapabilityCatalog":
        descriptors = [ModuleDescriptor(**raw) for raw in load_module_table(path)]
        logger.info(f"Loaded {len(descriptors)} ECU modules from {path}")
        return cls(descriptors)

    def describe(self, module_id: str) -> ModuleDescriptor:
        descriptor = self._modules.get(module_id)
        if descriptor is None:
            raise UnknownModule(module_id)
        return descriptor

    def __contains__(self, module_id: object) -> bool:
        return module_id in self._modules

    def all(self) -> list[ModuleDescriptor]:
        return list(self._modules.values())

    def by_category(self, category: str) -> list[ModuleDescriptor]:
        return [m for m in self._modules.values() if m.category == category]

    def by_priority(self, priority: Priority) -> list[ModuleDescriptor]:
        return [m for m in self._modules.values() if m.priority == priority]

    def critical(self) -> list[ModuleDescriptor]:
        return self.by_priority(Priority.CRITICAL)

    def statistics(self) -> dict:
        modules = self._modules.values()
        return {
            "total_modules": len(self._modules),
            "critical_modules": len(self.critical()),
            "categories_count": len({m.category for m in modules}),
            "protocols_supported": sorted({p for m in modules for p in m.protocols}),
        }
