"""Tests for the process state and transition tables."""

import pytest

from subsidy.core.process.states import (
    APPROVAL_ROLES,
    DECISION_STATES,
    DECISION_TABLE,
    EDITABLE_STATES,
    ROLE_VISIBLE_STATES,
    TERMINAL_STATES,
    TRANSITION_RULES,
    VALID_TRANSITIONS,
    ProcessAction,
    ProcessState,
    approver_roles_for,
    can_transition,
    get_decision_target,
    get_target_state,
    get_transition_rule,
)
from subsidy.core.roles import APPROVER_ROLES, Role


class TestProcessStates:
    """Test process state definitions."""

    def test_all_states_defined(self):
        expected = [
            "draft", "submitted", "docs_in_validation", "needs_correction",
            "docs_validated", "director_review", "disburser_review",
            "signed", "closed", "rejected",
        ]
        assert sorted(s.value for s in ProcessState) == sorted(expected)

    def test_terminal_states(self):
        assert TERMINAL_STATES == {ProcessState.CLOSED, ProcessState.REJECTED}

    def test_terminal_states_have_no_outgoing_edges(self):
        for state in TERMINAL_STATES:
            assert state not in VALID_TRANSITIONS

    def test_editable_states(self):
        assert EDITABLE_STATES == {ProcessState.DRAFT, ProcessState.NEEDS_CORRECTION}


class TestTransitions:
    """Test the explicit transition table."""

    def test_intake_edges(self):
        assert get_target_state(ProcessState.DRAFT, ProcessAction.SUBMIT) == ProcessState.SUBMITTED
        assert (
            get_target_state(ProcessState.NEEDS_CORRECTION, ProcessAction.SUBMIT)
            == ProcessState.DOCS_IN_VALIDATION
        )
        assert (
            get_target_state(ProcessState.SUBMITTED, ProcessAction.START_VALIDATION)
            == ProcessState.DOCS_IN_VALIDATION
        )

    def test_approval_chain(self):
        assert get_target_state(ProcessState.DOCS_IN_VALIDATION, ProcessAction.APPROVE) == ProcessState.DOCS_VALIDATED
        assert get_target_state(ProcessState.DOCS_VALIDATED, ProcessAction.APPROVE) == ProcessState.DIRECTOR_REVIEW
        assert get_target_state(ProcessState.DIRECTOR_REVIEW, ProcessAction.APPROVE) == ProcessState.DISBURSER_REVIEW

    def test_disburser_review_moves_forward_by_signing_only(self):
        assert not can_transition(ProcessState.DISBURSER_REVIEW, ProcessAction.APPROVE)
        assert get_target_state(ProcessState.DISBURSER_REVIEW, ProcessAction.SIGN) == ProcessState.SIGNED

    def test_close_only_from_signed(self):
        assert get_target_state(ProcessState.SIGNED, ProcessAction.CLOSE) == ProcessState.CLOSED
        for state in ProcessState:
            if state != ProcessState.SIGNED:
                assert not can_transition(state, ProcessAction.CLOSE)

    def test_every_reject_edge_requires_comment_and_ends_rejected(self):
        rejects = [r for r in TRANSITION_RULES if r.action == ProcessAction.REJECT]
        assert len(rejects) == 4
        for rule in rejects:
            assert rule.to_state == ProcessState.REJECTED
            assert rule.requires_comment

    def test_correction_requires_comment(self):
        rule = get_transition_rule(ProcessState.DOCS_IN_VALIDATION, ProcessAction.REQUEST_CORRECTION)
        assert rule.to_state == ProcessState.NEEDS_CORRECTION
        assert rule.requires_comment
        assert rule.required_roles == frozenset({Role.VALIDATOR})

    def test_unknown_edge_returns_none(self):
        assert get_transition_rule(ProcessState.DRAFT, ProcessAction.SIGN) is None
        assert get_target_state(ProcessState.CLOSED, ProcessAction.SUBMIT) is None


class TestDecisionTable:
    """Test the (from_state, approved) -> to_state lookup."""

    @pytest.mark.parametrize("state", [
        ProcessState.DOCS_IN_VALIDATION,
        ProcessState.DOCS_VALIDATED,
        ProcessState.DIRECTOR_REVIEW,
        ProcessState.DISBURSER_REVIEW,
    ])
    def test_reject_always_leads_to_rejected(self, state):
        assert get_decision_target(state, False) == ProcessState.REJECTED

    def test_no_approve_entry_for_disburser_review(self):
        assert (ProcessState.DISBURSER_REVIEW, True) not in DECISION_TABLE
        assert get_decision_target(ProcessState.DISBURSER_REVIEW, True) is None

    def test_decision_states(self):
        assert DECISION_STATES == frozenset({
            ProcessState.DOCS_IN_VALIDATION,
            ProcessState.DOCS_VALIDATED,
            ProcessState.DIRECTOR_REVIEW,
            ProcessState.DISBURSER_REVIEW,
        })
        assert ProcessState.DRAFT not in DECISION_STATES
        assert ProcessState.SIGNED not in DECISION_STATES


class TestApprovalRoles:
    """Test the per-state approval role map."""

    def test_registered_roles(self):
        assert approver_roles_for(ProcessState.DOCS_IN_VALIDATION) == frozenset({Role.VALIDATOR})
        assert approver_roles_for(ProcessState.DIRECTOR_REVIEW) == frozenset({Role.DIRECTOR})
        assert approver_roles_for(ProcessState.DISBURSER_REVIEW) == frozenset({Role.DISBURSER})

    def test_docs_validated_accepts_any_approver(self):
        assert ProcessState.DOCS_VALIDATED not in APPROVAL_ROLES
        assert approver_roles_for(ProcessState.DOCS_VALIDATED) == APPROVER_ROLES


class TestVisibility:

    def test_director_sees_from_director_review_on(self):
        visible = ROLE_VISIBLE_STATES[Role.DIRECTOR]
        assert ProcessState.DIRECTOR_REVIEW in visible
        assert ProcessState.DOCS_VALIDATED not in visible

    def test_closer_sees_signed_and_closed(self):
        assert ROLE_VISIBLE_STATES[Role.CLOSER] == frozenset({ProcessState.SIGNED, ProcessState.CLOSED})

    def test_validator_has_no_state_scope(self):
        assert Role.VALIDATOR not in ROLE_VISIBLE_STATES
