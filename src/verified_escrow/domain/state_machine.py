"""Escrow State Machine Guard.

Uses python-statemachine to enforce legal status transitions at the domain
level. Whatever the workflow or the API attempts, an illegal transition
(e.g. RELEASED -> REFUNDED) raises TransitionNotAllowed before the ORM row's
status column is touched.

Transition table:
    NONE       -> DEPOSITED   (deposit_funds)
    DEPOSITED  -> RELEASED    (release_payment)
    DEPOSITED  -> REFUNDED    (return_funds)

RELEASED and REFUNDED are final; no event fires from them.
"""

from __future__ import annotations

from statemachine import State, StateMachine

from verified_escrow.domain.enums import EscrowStatus


class EscrowStateMachine(StateMachine):
    """State machine that guards the escrow lifecycle.

    Usage:
        sm = EscrowStateMachine(current_status="DEPOSITED")
        sm.release_payment()  # transitions to RELEASED
        sm.status             # "RELEASED"
    """

    NONE = State("NONE", value="NONE", initial=True)
    DEPOSITED = State("DEPOSITED", value="DEPOSITED")
    RELEASED = State("RELEASED", value="RELEASED", final=True)
    REFUNDED = State("REFUNDED", value="REFUNDED", final=True)

    deposit_funds = NONE.to(DEPOSITED)
    release_payment = DEPOSITED.to(RELEASED)
    return_funds = DEPOSITED.to(REFUNDED)

    def __init__(self, current_status: str = EscrowStatus.NONE) -> None:
        """Initialize the state machine at a given status.

        Args:
            current_status: The current EscrowStatus value (e.g. "DEPOSITED").
        """
        valid_values = {s.value for s in self.states}
        if current_status not in valid_values:
            valid = ", ".join(sorted(valid_values))
            raise ValueError(f"Unknown status '{current_status}'. Valid states: {valid}")
        super().__init__(start_value=str(current_status))

    @property
    def status(self) -> EscrowStatus:
        return EscrowStatus(self.current_state_value)

    def get_allowed_events(self) -> list[str]:
        """Return the event names that can fire from the current state."""
        return [event.id for event in self.allowed_events]


def validate_transition(current_status: str, event_name: str) -> EscrowStatus:
    """Fire ``event_name`` on a throwaway machine and return the resulting status.

    Raises:
        TransitionNotAllowed: If the transition is illegal from ``current_status``.
        ValueError: If the status or event name is unknown.
    """
    sm = EscrowStateMachine(current_status=current_status)
    if event_name not in {"deposit_funds", "release_payment", "return_funds"}:
        raise ValueError(
            f"Unknown event '{event_name}'. "
            f"Allowed events from {current_status}: {sm.get_allowed_events()}"
        )
    sm.send(event_name)
    return sm.status


def derive_workflow_step(status: str, last_verified: bool | None) -> int:
    """Map the authoritative status to the 1-6 progress indicator shown to users.

    2 awaiting deposit, 3 awaiting submission, 4 verified, 5 rejected
    (resubmit or refund), 6 settled. Step 1 (connect wallet) never comes from
    stored state.
    """
    status = EscrowStatus(status)
    if status is EscrowStatus.NONE:
        return 2
    if status.is_terminal:
        return 6
    if last_verified is None:
        return 3
    return 4 if last_verified else 5
