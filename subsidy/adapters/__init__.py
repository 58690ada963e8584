"""Default implementations of the engine's external collaborators."""

from .catalog import YamlCatalog
from .identity import DatabaseIdentityProvider
from .pdf import ReportLabPdfRenderer
from .storage import FilesystemStorage

__all__ = [
    "DatabaseIdentityProvider",
    "FilesystemStorage",
    "ReportLabPdfRenderer",
    "YamlCatalog",
]
