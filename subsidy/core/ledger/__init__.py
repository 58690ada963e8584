"""Append-only audit ledger and decision recorder."""

from .audit import AuditLedger
from .decisions import DecisionRecorder

__all__ = ["AuditLedger", "DecisionRecorder"]
