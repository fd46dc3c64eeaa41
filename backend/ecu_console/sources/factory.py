from ecu_console.sources.base import DiagnosticDataSource
from ecu_console.sources.fixture_source import FixtureDataSource


class DataSourceFactory:
    _registry: dict[str, type[DiagnosticDataSource]] = {
        "fixture": FixtureDataSource,
    }

    @classmethod
    def create(cls, name: str) -> DiagnosticDataSource:
        source_class = cls._registry.get(name)
        if not source_class:
            raise ValueError(f"Unknown data source: {name}")
        return source_class()

    @classmethod
    def available(cls) -> list[str]:
        return list(cls._registry)
