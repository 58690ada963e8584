"""Process state machine implementation.

Pure transition logic: validates actions against the transition table and
checks the acting role. Persistence, documents and audit writes live in
``ProcessService``.
"""

from typing import Dict, List, Optional
from uuid import UUID

from subsidy.core.exceptions import AuthorizationError, ConflictError, ValidationError
from subsidy.core.roles import Role

from .states import (
    DECISION_STATES,
    TERMINAL_STATES,
    TRANSITION_RULES,
    ProcessAction,
    ProcessState,
    TransitionRule,
    approver_roles_for,
    can_transition,
    get_decision_target,
    get_transition_rule,
)


class TransitionError(ConflictError):
    """Raised when a state transition is invalid."""

    def __init__(self, message: str, from_state: ProcessState, action: ProcessAction):
        super().__init__(message, details={"state": from_state.value, "action": action.value})
        self.from_state = from_state
        self.action = action


class PermissionDeniedError(AuthorizationError):
    """Raised when the acting role may not perform a transition."""

    def __init__(self, role: Optional[Role], action: ProcessAction, allowed: Optional[List[Role]] = None):
        role_name = role.value if role else "anonymous"
        super().__init__(
            f"Permission denied: role {role_name} cannot {action.value}",
            details={"allowed_roles": sorted(r.value for r in (allowed or []))},
        )
        self.role = role
        self.action = action


# Roles that appear anywhere in the table for an action
_ACTION_ROLES: Dict[ProcessAction, frozenset] = {}
for _rule in TRANSITION_RULES:
    _ACTION_ROLES[_rule.action] = _ACTION_ROLES.get(_rule.action, frozenset()) | _rule.required_roles


class ProcessStateMachine:
    """
    State machine for the subsidy process workflow.

    Manages transitions between process states with:
    - Validation of valid transitions
    - Role checking per transition rule
    - Mandatory comments on rejection and correction
    - Decision resolution through the (state, approved) table
    """

    def __init__(
        self,
        process_id: UUID,
        current_state: ProcessState,
        *,
        actor_role: Optional[Role] = None,
    ):
        """
        Initialize the state machine.

        Args:
            process_id: ID of the process
            current_state: Current process state
            actor_role: Role of the acting user
        """
        self.process_id = process_id
        self._state = current_state
        self.actor_role = actor_role

    @property
    def state(self) -> ProcessState:
        """Current state of the process."""
        return self._state

    @property
    def is_terminal(self) -> bool:
        """Check if current state is terminal (no further transitions)."""
        return self._state in TERMINAL_STATES

    def can_perform(self, action: ProcessAction) -> bool:
        """Check if an action can be performed from current state by the actor."""
        rule = get_transition_rule(self._state, action)
        if rule is None:
            return False
        return self.actor_role in rule.required_roles

    def get_available_actions(self) -> List[ProcessAction]:
        """Get list of actions available from current state."""
        return [action for action in ProcessAction if self.can_perform(action)]

    def transition(self, action: ProcessAction, *, comment: Optional[str] = None) -> TransitionRule:
        """
        Perform a state transition.

        Args:
            action: The action to perform
            comment: Comment, required for rejection and correction

        Returns:
            The applied transition rule

        Raises:
            PermissionDeniedError: If the actor role never performs this action
                or is not accepted for it in the current state
            TransitionError: If the action is invalid from the current state
            ValidationError: If a required comment is missing
        """
        allowed = _ACTION_ROLES.get(action, frozenset())
        if self.actor_role not in allowed:
            raise PermissionDeniedError(self.actor_role, action, list(allowed))

        if not can_transition(self._state, action):
            raise TransitionError(
                f"Cannot {action.value} a process in state {self._state.value}",
                self._state,
                action,
            )

        rule = get_transition_rule(self._state, action)
        if self.actor_role not in rule.required_roles:
            raise PermissionDeniedError(self.actor_role, action, list(rule.required_roles))

        if rule.requires_comment and not (comment and comment.strip()):
            raise ValidationError({"rationale": [f"A rationale is required to {action.value}"]})

        self._state = rule.to_state
        return rule

    def decide(self, approved: bool, *, rationale: Optional[str] = None) -> ProcessState:
        """
        Resolve an approve/reject decision to its target state.

        Raises:
            PermissionDeniedError: If the state takes no decisions or the
                actor role is not the approval role for the state
            TransitionError: If there is no edge for this outcome
            ValidationError: If a rejection carries no rationale
        """
        action = ProcessAction.APPROVE if approved else ProcessAction.REJECT

        if self._state not in DECISION_STATES:
            raise PermissionDeniedError(self.actor_role, action)

        accepted = approver_roles_for(self._state)
        if self.actor_role not in accepted:
            raise PermissionDeniedError(self.actor_role, action, list(accepted))

        target = get_decision_target(self._state, approved)
        if target is None:
            raise TransitionError(
                f"No {action.value} transition from state {self._state.value}",
                self._state,
                action,
            )

        if not approved and not (rationale and rationale.strip()):
            raise ValidationError({"rationale": ["A rationale is required to reject"]})

        self._state = target
        return target
