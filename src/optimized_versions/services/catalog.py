"""Lookup of source media paths by item id."""

from pathlib import Path
from typing import Optional

import structlog
import yaml

logger = structlog.get_logger()


class MediaCatalog:
    """Maps media item ids to source file paths.

    Loaded from an optional YAML file of ``item_id: path`` pairs; items can
    also be registered at runtime.
    """

    def __init__(self, items: Optional[dict[str, str]] = None):
        self._items: dict[str, str] = dict(items or {})

    @classmethod
    def from_file(cls, path: Optional[str]) -> "MediaCatalog":
        """Load a catalog from YAML; a missing path yields an empty catalog."""
        if not path:
            return cls()

        catalog_path = Path(path)
        if not catalog_path.exists():
            logger.warning("catalog_file_missing", path=str(catalog_path))
            return cls()

        with open(catalog_path) as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Catalog file must contain a mapping: {catalog_path}")

        items = {str(k): str(v) for k, v in data.items()}
        logger.info("catalog_loaded", path=str(catalog_path), items=len(items))
        return cls(items)

    def register(self, item_id: str, source_path: str) -> None:
        self._items[item_id] = source_path

    def get_source_path(self, item_id: str) -> Optional[str]:
        return self._items.get(item_id)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items
