"""Tests for the EscrowStateMachine domain guard.

These tests verify that:
    1. All valid transitions are allowed.
    2. All invalid transitions are blocked.
    3. The convenience function validate_transition works.
    4. The progress step is derived from stored state only.
"""

from __future__ import annotations

import warnings

import pytest
from statemachine.exceptions import TransitionNotAllowed

from verified_escrow.domain.enums import EscrowStatus
from verified_escrow.domain.state_machine import (
    EscrowStateMachine,
    derive_workflow_step,
    validate_transition,
)


class TestHappyPath:
    def test_deposit_then_release(self) -> None:
        sm = EscrowStateMachine("NONE")
        assert sm.status == "NONE"

        sm.deposit_funds()
        assert sm.status == "DEPOSITED"

        sm.release_payment()
        assert sm.status == "RELEASED"

    def test_deposit_then_refund(self) -> None:
        sm = EscrowStateMachine()
        sm.deposit_funds()
        sm.return_funds()
        assert sm.status is EscrowStatus.REFUNDED

    def test_transitions_emit_no_deprecation_warnings(self) -> None:
        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            sm = EscrowStateMachine("DEPOSITED")
            sm.send("release_payment")
            assert sm.status is EscrowStatus.RELEASED


class TestInvalidTransitions:
    @pytest.mark.parametrize(
        ("status", "event"),
        [
            ("NONE", "release_payment"),
            ("NONE", "return_funds"),
            ("DEPOSITED", "deposit_funds"),
            ("RELEASED", "return_funds"),
            ("RELEASED", "release_payment"),
            ("RELEASED", "deposit_funds"),
            ("REFUNDED", "release_payment"),
            ("REFUNDED", "return_funds"),
        ],
    )
    def test_blocked(self, status: str, event: str) -> None:
        with pytest.raises(TransitionNotAllowed):
            validate_transition(status, event)

    def test_unknown_status_raises(self) -> None:
        with pytest.raises(ValueError, match="Unknown status"):
            EscrowStateMachine("VERIFYING")

    def test_unknown_event_raises(self) -> None:
        with pytest.raises(ValueError, match="Unknown event"):
            validate_transition("DEPOSITED", "dispute")


class TestAllowedEvents:
    def test_from_none(self) -> None:
        assert EscrowStateMachine("NONE").get_allowed_events() == ["deposit_funds"]

    def test_from_deposited(self) -> None:
        allowed = EscrowStateMachine("DEPOSITED").get_allowed_events()
        assert set(allowed) == {"release_payment", "return_funds"}

    @pytest.mark.parametrize("status", ["RELEASED", "REFUNDED"])
    def test_terminal_states_allow_nothing(self, status: str) -> None:
        assert EscrowStateMachine(status).get_allowed_events() == []


class TestValidateTransition:
    def test_returns_new_status(self) -> None:
        assert validate_transition("NONE", "deposit_funds") is EscrowStatus.DEPOSITED
        assert validate_transition("DEPOSITED", "return_funds") is EscrowStatus.REFUNDED


class TestWorkflowStep:
    @pytest.mark.parametrize(
        ("status", "last_verified", "step"),
        [
            ("NONE", None, 2),
            ("DEPOSITED", None, 3),
            ("DEPOSITED", True, 4),
            ("DEPOSITED", False, 5),
            ("RELEASED", True, 6),
            ("REFUNDED", False, 6),
        ],
    )
    def test_derived_step(self, status: str, last_verified: bool | None, step: int) -> None:
        assert derive_workflow_step(status, last_verified) == step
