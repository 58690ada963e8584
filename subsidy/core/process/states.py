"""Process workflow states and transitions.

State Machine Diagram:

    ┌──────────┐
    │  DRAFT   │ ← Initial state (created by a validator)
    └────┬─────┘
         │ submit (beneficiary)
    ┌────▼──────┐
    │ SUBMITTED │
    └────┬──────┘
         │ start_validation (validator)
    ┌────▼───────────────┐  request_correction  ┌──────────────────┐
    │ DOCS_IN_VALIDATION │─────────────────────►│ NEEDS_CORRECTION │
    │                    │◄─────────────────────│                  │
    └────┬───────────────┘   submit (benef.)    └──────────────────┘
         │ approve (validator)
    ┌────▼───────────┐
    │ DOCS_VALIDATED │
    └────┬───────────┘
         │ approve (any approver)
    ┌────▼────────────┐
    │ DIRECTOR_REVIEW │
    └────┬────────────┘
         │ approve (director)
    ┌────▼─────────────┐
    │ DISBURSER_REVIEW │
    └────┬─────────────┘
         │ sign (disburser)
    ┌────▼─────┐  close (closer)  ┌────────┐
    │  SIGNED  │─────────────────►│ CLOSED │
    └──────────┘                  └────────┘

Every review state (DOCS_IN_VALIDATION to DISBURSER_REVIEW) can also be
rejected into the terminal REJECTED state.
"""

from enum import Enum
from typing import Dict, FrozenSet, NamedTuple, Optional, Set, Tuple

from subsidy.core.roles import APPROVER_ROLES, Role


class ProcessState(str, Enum):
    """States in the subsidy process workflow."""

    # Intake
    DRAFT = "draft"                              # Beneficiary is filling the form
    SUBMITTED = "submitted"                      # Queued for document validation

    # Document review
    DOCS_IN_VALIDATION = "docs_in_validation"    # Validator reviews documents
    NEEDS_CORRECTION = "needs_correction"        # Returned to the beneficiary
    DOCS_VALIDATED = "docs_validated"            # Documents accepted

    # Approval chain
    DIRECTOR_REVIEW = "director_review"
    DISBURSER_REVIEW = "disburser_review"

    # Close-out
    SIGNED = "signed"                            # Signed artifact produced

    # Terminal states
    CLOSED = "closed"
    REJECTED = "rejected"


class ProcessAction(str, Enum):
    """Actions that trigger state transitions."""

    SUBMIT = "submit"                            # DRAFT / NEEDS_CORRECTION → ...
    START_VALIDATION = "start_validation"        # SUBMITTED → DOCS_IN_VALIDATION
    APPROVE = "approve"                          # forward edge of a review state
    REJECT = "reject"                            # review state → REJECTED
    REQUEST_CORRECTION = "request_correction"    # DOCS_IN_VALIDATION → NEEDS_CORRECTION
    SIGN = "sign"                                # DISBURSER_REVIEW → SIGNED
    CLOSE = "close"                              # SIGNED → CLOSED


class TransitionRule(NamedTuple):
    """Defines a valid state transition."""
    from_state: ProcessState
    to_state: ProcessState
    action: ProcessAction
    required_roles: FrozenSet[Role]
    requires_comment: bool = False


# Approval role registered per review state. States that carry decision
# edges but have no entry here accept any approver role.
APPROVAL_ROLES: Dict[ProcessState, Role] = {
    ProcessState.DOCS_IN_VALIDATION: Role.VALIDATOR,
    ProcessState.DIRECTOR_REVIEW: Role.DIRECTOR,
    ProcessState.DISBURSER_REVIEW: Role.DISBURSER,
}


def approver_roles_for(state: ProcessState) -> FrozenSet[Role]:
    """Roles allowed to record a decision in the given state."""
    role = APPROVAL_ROLES.get(state)
    return frozenset({role}) if role else APPROVER_ROLES


_BENEFICIARY = frozenset({Role.BENEFICIARY})
_VALIDATOR = frozenset({Role.VALIDATOR})

# Define all valid transitions
TRANSITION_RULES: list[TransitionRule] = [
    # Intake
    TransitionRule(ProcessState.DRAFT, ProcessState.SUBMITTED, ProcessAction.SUBMIT, _BENEFICIARY),
    TransitionRule(ProcessState.NEEDS_CORRECTION, ProcessState.DOCS_IN_VALIDATION,
                   ProcessAction.SUBMIT, _BENEFICIARY),
    TransitionRule(ProcessState.SUBMITTED, ProcessState.DOCS_IN_VALIDATION,
                   ProcessAction.START_VALIDATION, _VALIDATOR),

    # Document review
    TransitionRule(ProcessState.DOCS_IN_VALIDATION, ProcessState.DOCS_VALIDATED, ProcessAction.APPROVE,
                   approver_roles_for(ProcessState.DOCS_IN_VALIDATION)),
    TransitionRule(ProcessState.DOCS_IN_VALIDATION, ProcessState.REJECTED, ProcessAction.REJECT,
                   approver_roles_for(ProcessState.DOCS_IN_VALIDATION), requires_comment=True),
    TransitionRule(ProcessState.DOCS_IN_VALIDATION, ProcessState.NEEDS_CORRECTION,
                   ProcessAction.REQUEST_CORRECTION, _VALIDATOR, requires_comment=True),

    # Approval chain
    TransitionRule(ProcessState.DOCS_VALIDATED, ProcessState.DIRECTOR_REVIEW, ProcessAction.APPROVE,
                   approver_roles_for(ProcessState.DOCS_VALIDATED)),
    TransitionRule(ProcessState.DOCS_VALIDATED, ProcessState.REJECTED, ProcessAction.REJECT,
                   approver_roles_for(ProcessState.DOCS_VALIDATED), requires_comment=True),
    TransitionRule(ProcessState.DIRECTOR_REVIEW, ProcessState.DISBURSER_REVIEW, ProcessAction.APPROVE,
                   approver_roles_for(ProcessState.DIRECTOR_REVIEW)),
    TransitionRule(ProcessState.DIRECTOR_REVIEW, ProcessState.REJECTED, ProcessAction.REJECT,
                   approver_roles_for(ProcessState.DIRECTOR_REVIEW), requires_comment=True),
    TransitionRule(ProcessState.DISBURSER_REVIEW, ProcessState.REJECTED, ProcessAction.REJECT,
                   approver_roles_for(ProcessState.DISBURSER_REVIEW), requires_comment=True),

    # Signature and close-out
    TransitionRule(ProcessState.DISBURSER_REVIEW, ProcessState.SIGNED, ProcessAction.SIGN,
                   frozenset({Role.DISBURSER})),
    TransitionRule(ProcessState.SIGNED, ProcessState.CLOSED, ProcessAction.CLOSE,
                   frozenset({Role.CLOSER})),
]

# Build lookup tables for efficient access
VALID_TRANSITIONS: Dict[ProcessState, Set[ProcessAction]] = {}
TRANSITION_TARGETS: Dict[Tuple[ProcessState, ProcessAction], TransitionRule] = {}

for rule in TRANSITION_RULES:
    VALID_TRANSITIONS.setdefault(rule.from_state, set()).add(rule.action)
    if (rule.from_state, rule.action) in TRANSITION_TARGETS:
        raise RuntimeError(f"Duplicate transition {rule.action.value} from {rule.from_state.value}")
    TRANSITION_TARGETS[(rule.from_state, rule.action)] = rule

# (from_state, approved) -> to_state for recorded decisions
DECISION_TABLE: Dict[Tuple[ProcessState, bool], ProcessState] = {}

for (from_state, action), rule in TRANSITION_TARGETS.items():
    if action is ProcessAction.APPROVE:
        DECISION_TABLE[(from_state, True)] = rule.to_state
    elif action is ProcessAction.REJECT:
        DECISION_TABLE[(from_state, False)] = rule.to_state

# States in which make_decision is meaningful at all
DECISION_STATES: FrozenSet[ProcessState] = frozenset(state for state, _ in DECISION_TABLE)


# Terminal states (no outgoing transitions)
TERMINAL_STATES: Set[ProcessState] = {
    ProcessState.CLOSED,
    ProcessState.REJECTED,
}

# States in which the beneficiary may edit the form and upload documents
EDITABLE_STATES: Set[ProcessState] = {
    ProcessState.DRAFT,
    ProcessState.NEEDS_CORRECTION,
}

# States that imply an issued signature
SIGNED_STATES: Set[ProcessState] = {
    ProcessState.SIGNED,
    ProcessState.CLOSED,
}

# Read visibility for staff roles that only see the tail of the workflow
ROLE_VISIBLE_STATES: Dict[Role, FrozenSet[ProcessState]] = {
    Role.DIRECTOR: frozenset({
        ProcessState.DIRECTOR_REVIEW,
        ProcessState.DISBURSER_REVIEW,
        ProcessState.SIGNED,
        ProcessState.CLOSED,
    }),
    Role.DISBURSER: frozenset({
        ProcessState.DISBURSER_REVIEW,
        ProcessState.SIGNED,
        ProcessState.CLOSED,
    }),
    Role.CLOSER: frozenset({
        ProcessState.SIGNED,
        ProcessState.CLOSED,
    }),
}


def can_transition(from_state: ProcessState, action: ProcessAction) -> bool:
    """Check if an action is valid from the given state."""
    return action in VALID_TRANSITIONS.get(from_state, set())


def get_transition_rule(from_state: ProcessState, action: ProcessAction) -> Optional[TransitionRule]:
    """Get the transition rule for a state/action combination."""
    return TRANSITION_TARGETS.get((from_state, action))


def get_target_state(from_state: ProcessState, action: ProcessAction) -> Optional[ProcessState]:
    """Get the target state for an action."""
    rule = get_transition_rule(from_state, action)
    return rule.to_state if rule else None


def get_decision_target(from_state: ProcessState, approved: bool) -> Optional[ProcessState]:
    """Resolve the state a decision leads to, or None if there is no such edge."""
    return DECISION_TABLE.get((from_state, approved))
