"""Process workflow module.

Implements the subsidy process state machine. The persistence-aware
``ProcessService`` lives in ``subsidy.core.process.service``.
"""

from .states import ProcessState, ProcessAction, TransitionRule, VALID_TRANSITIONS, DECISION_TABLE
from .machine import ProcessStateMachine, TransitionError, PermissionDeniedError

__all__ = [
    "ProcessState",
    "ProcessAction",
    "TransitionRule",
    "VALID_TRANSITIONS",
    "DECISION_TABLE",
    "ProcessStateMachine",
    "TransitionError",
    "PermissionDeniedError",
]
