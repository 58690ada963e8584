"""Document gate: versioned uploads, validation and completeness checks."""

from .gate import DocumentGate, check_file

__all__ = ["DocumentGate", "check_file"]
