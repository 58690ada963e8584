"""Document catalog configuration.

Loads the catalog of document types from a YAML file. Each entry describes
one required or optional document: allowed MIME types, maximum size and
validity window. String values may reference environment variables.

Example file::

    document_types:
      - type: national_id
        name: "National ID"
        mandatory: true
        allowed_formats: [application/pdf, image/jpeg]
        max_size_mb: 5
        order: 1
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


# File extensions accepted for each MIME type
MIME_EXTENSIONS: Dict[str, List[str]] = {
    "application/pdf": [".pdf"],
    "image/jpeg": [".jpg", ".jpeg"],
    "image/png": [".png"],
}

DEFAULT_MAX_SIZE_MB = 5

DEFAULT_CATALOG_PATH = str(Path(__file__).resolve().parent.parent / "data" / "catalog.yaml")


@dataclass
class CatalogEntry:
    """Metadata for one document type."""

    type: str
    name: str
    description: str = ""
    mandatory: bool = True
    allowed_formats: List[str] = field(default_factory=lambda: ["application/pdf"])
    max_size_bytes: int = DEFAULT_MAX_SIZE_MB * 1024 * 1024
    validity_days: Optional[int] = None
    active: bool = True
    order: int = 0

    @property
    def max_size_mb(self) -> float:
        return self.max_size_bytes / (1024 * 1024)


@dataclass
class CatalogConfig:
    """Top-level catalog configuration."""

    entries: List[CatalogEntry] = field(default_factory=list)


def parse_catalog_entry(entry_dict: Dict[str, Any]) -> CatalogEntry:
    """Parse a catalog entry dictionary.

    ``max_size_bytes`` wins over ``max_size_mb`` when both are given.

    Raises:
        ValueError: If the entry has no type or names an unknown MIME type
    """
    doc_type = entry_dict.get("type")
    if not doc_type:
        raise ValueError(f"Catalog entry without type: {entry_dict}")

    formats = list(entry_dict.get("allowed_formats", ["application/pdf"]))
    unknown = [fmt for fmt in formats if fmt not in MIME_EXTENSIONS]
    if unknown:
        raise ValueError(f"Catalog entry {doc_type}: unsupported formats {unknown}")

    if "max_size_bytes" in entry_dict:
        max_size = int(entry_dict["max_size_bytes"])
    else:
        max_size = int(float(entry_dict.get("max_size_mb", DEFAULT_MAX_SIZE_MB)) * 1024 * 1024)

    validity = entry_dict.get("validity_days")

    return CatalogEntry(
        type=str(doc_type),
        name=entry_dict.get("name", str(doc_type)),
        description=entry_dict.get("description", ""),
        mandatory=bool(entry_dict.get("mandatory", True)),
        allowed_formats=formats,
        max_size_bytes=max_size,
        validity_days=int(validity) if validity is not None else None,
        active=bool(entry_dict.get("active", True)),
        order=int(entry_dict.get("order", 0)),
    )


def parse_config(config_dict: Dict[str, Any]) -> CatalogConfig:
    """Parse the full catalog dictionary.

    Raises:
        ValueError: On duplicate document types
    """
    entries = []
    seen = set()
    for entry_dict in config_dict.get("document_types", []) or []:
        entry = parse_catalog_entry(entry_dict)
        if entry.type in seen:
            raise ValueError(f"Duplicate document type in catalog: {entry.type}")
        seen.add(entry.type)
        entries.append(entry)

    entries.sort(key=lambda e: (e.order, e.type))
    return CatalogConfig(entries=entries)


def load_config(config_path: str = DEFAULT_CATALOG_PATH) -> Dict[str, Any]:
    """Load configuration from YAML file.

    Args:
        config_path: Path to configuration file

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is invalid YAML
    """
    config_file = Path(config_path)

    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with config_file.open("r", encoding="utf-8") as f:
        config = yaml.safe_load(f)

    if config is None:
        config = {}

    if not isinstance(config, dict):
        raise TypeError(
            f"Configuration root must be a mapping, got {type(config).__name__}"
        )

    return _expand_env_vars(config)


def _expand_env_vars(obj: Any) -> Any:
    """Recursively expand environment variables in configuration."""
    if isinstance(obj, dict):
        return {key: _expand_env_vars(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    elif isinstance(obj, str):
        return os.path.expandvars(obj)
    else:
        return obj


def load_catalog(config_path: str = DEFAULT_CATALOG_PATH) -> CatalogConfig:
    """Load and parse the catalog into typed dataclasses."""
    return parse_config(load_config(config_path))
