"""YAML loaders for the static data tables. Parsed files are cached per path."""

from pathlib import Path

import yaml

_cache: dict[str, dict] = {}


def _load(path: str | Path) -> dict:
    key = str(path)
    if key not in _cache:
        with open(path, encoding="utf-8") as f:
            _cache[key] = yaml.safe_load(f) or {}
    return _cache[key]


def load_module_table(path: str | Path) -> list[dict]:
    return _load(path).get("modules", [])


def load_vehicle_table(path: str | Path) -> list[dict]:
    return _load(path).get("vehicles", [])


def load_trouble_code_fixtures(path: str | Path) -> dict[str, list[dict]]:
    return _load(path)
