"""RegisterCatalog: ordered FEMS register table loaded from packaged JSON via importlib.resources."""

import json
import logging
from importlib import resources
from typing import Any, Iterator

from .types import MetricDescriptor, ValueType

logger = logging.getLogger(__name__)

_CATALOG_PACKAGE = "fems_exporter.data"
_CATALOG_RESOURCE = "fems_catalog.json"


def _parse_entry(raw: dict[str, Any]) -> MetricDescriptor:
    """Build a MetricDescriptor from a JSON entry (name, labels, address, type)."""
    name = raw["name"]
    type_str = raw["type"]
    try:
        value_type = ValueType(type_str)
    except ValueError:
        raise ValueError(f"Unknown value type {type_str!r} for metric {name!r}")
    labels = tuple((str(k), str(v)) for k, v in raw.get("labels") or ())
    return MetricDescriptor(
        name=name,
        labels=labels,
        address=int(raw["address"]),
        value_type=value_type,
    )


class RegisterCatalog:
    """
    Fixed, ordered sequence of MetricDescriptor. Iteration order is report order.
    Loaded once from the packaged FEMS table, or from `entries` (list of entry dicts
    or ready-made descriptors) to substitute a smaller table.
    """

    def __init__(self, entries: list[dict[str, Any] | MetricDescriptor] | None = None) -> None:
        if entries is None:
            entries = self._load_packaged()
            source = "package"
        else:
            source = "override"

        descriptors: list[MetricDescriptor] = []
        for entry in entries:
            if isinstance(entry, MetricDescriptor):
                descriptors.append(entry)
            elif isinstance(entry, dict):
                descriptors.append(_parse_entry(entry))
            else:
                raise TypeError(f"Catalog entry must be a dict or MetricDescriptor, got {type(entry).__name__}")
        self._descriptors: tuple[MetricDescriptor, ...] = tuple(descriptors)
        logger.debug("RegisterCatalog loaded from %s: %d entries", source, len(self._descriptors))

    @staticmethod
    def _load_packaged() -> list[dict[str, Any]]:
        try:
            with resources.files(_CATALOG_PACKAGE).joinpath(_CATALOG_RESOURCE).open("r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            raise FileNotFoundError(f"Catalog resource not found: {_CATALOG_PACKAGE}/{_CATALOG_RESOURCE}") from None

        if isinstance(data, dict) and "entries" in data:
            return list(data["entries"])
        if isinstance(data, list):
            return data
        raise ValueError(f"Malformed catalog resource: {_CATALOG_RESOURCE}")

    def __iter__(self) -> Iterator[MetricDescriptor]:
        return iter(self._descriptors)

    def __len__(self) -> int:
        return len(self._descriptors)

    def __getitem__(self, index: int) -> MetricDescriptor:
        return self._descriptors[index]

    @property
    def descriptors(self) -> tuple[MetricDescriptor, ...]:
        return self._descriptors


_default_catalog: RegisterCatalog | None = None


def get_default_catalog() -> RegisterCatalog:
    """Return the packaged FEMS register table (loaded on first use)."""
    global _default_catalog
    if _default_catalog is None:
        _default_catalog = RegisterCatalog()
    return _default_catalog
