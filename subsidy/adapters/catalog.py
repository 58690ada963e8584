"""Document catalog read from YAML."""

from typing import Dict, List, Optional

from subsidy.common.config import DEFAULT_CATALOG_PATH, CatalogEntry, load_catalog


class YamlCatalog:
    """In-memory catalog loaded once from a YAML file."""

    def __init__(self, entries: List[CatalogEntry]):
        self._entries: Dict[str, CatalogEntry] = {entry.type: entry for entry in entries}

    @classmethod
    def from_file(cls, path: str = DEFAULT_CATALOG_PATH) -> "YamlCatalog":
        return cls(load_catalog(path).entries)

    def get_entry(self, doc_type: str) -> Optional[CatalogEntry]:
        return self._entries.get(doc_type)

    def list_mandatory(self) -> List[str]:
        return [entry.type for entry in self.list_entries() if entry.mandatory]

    def list_entries(self) -> List[CatalogEntry]:
        """Active entries in display order."""
        return sorted(
            (entry for entry in self._entries.values() if entry.active),
            key=lambda e: (e.order, e.type),
        )
