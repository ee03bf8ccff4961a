"""
app/flow/states.py

Purpose: Defines the states of one order-confirmation run

- Enum of each step (START, COUPON_RESERVED, MESSAGE_SENT, ...)
- Single source of truth for the confirmation flow
- State transition validation
- Per-run result record with the path taken
"""

from enum import Enum
from typing import Dict, List, Optional
from dataclasses import dataclass, field


class ConfirmationState(str, Enum):
    """
    States of a single order-confirmation attempt.

    START -> (COUPON_RESERVED) -> MESSAGE_SENT -> COMMITTED
    START -> (COUPON_RESERVED) -> RELEASED_AND_FAILED
    """

    START = "START"
    COUPON_RESERVED = "COUPON_RESERVED"
    MESSAGE_SENT = "MESSAGE_SENT"

    # Terminal
    COMMITTED = "COMMITTED"
    RELEASED_AND_FAILED = "RELEASED_AND_FAILED"


# Valid state transitions - a run never skips back or re-enters a step
STATE_TRANSITIONS: Dict[ConfirmationState, List[ConfirmationState]] = {
    ConfirmationState.START: [
        ConfirmationState.COUPON_RESERVED,
        ConfirmationState.MESSAGE_SENT,  # No coupon needed or pool exhausted
        ConfirmationState.RELEASED_AND_FAILED,
    ],
    ConfirmationState.COUPON_RESERVED: [
        ConfirmationState.MESSAGE_SENT,
        ConfirmationState.RELEASED_AND_FAILED,  # Send failed, coupon returned
    ],
    ConfirmationState.MESSAGE_SENT: [
        ConfirmationState.COMMITTED,
    ],
    ConfirmationState.COMMITTED: [],
    ConfirmationState.RELEASED_AND_FAILED: [],
}

TERMINAL_STATES = {
    ConfirmationState.COMMITTED,
    ConfirmationState.RELEASED_AND_FAILED,
}


def is_valid_transition(from_state: ConfirmationState, to_state: ConfirmationState) -> bool:
    """
    Checks if a state transition is valid.

    Args:
        from_state: Current state
        to_state: Target state

    Returns:
        True if transition is allowed, False otherwise
    """
    allowed_transitions = STATE_TRANSITIONS.get(from_state, [])
    return to_state in allowed_transitions


@dataclass
class ConfirmationResult:
    """
    Outcome of one confirmation run for one order.
    """
    order_id: str
    metered: bool = False
    state: ConfirmationState = ConfirmationState.START
    coupon_id: Optional[str] = None
    coupon_number: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None
    history: List[ConfirmationState] = field(
        default_factory=lambda: [ConfirmationState.START]
    )

    def advance(self, to_state: ConfirmationState) -> None:
        """
        Moves the run to `to_state`.

        Raises:
            ValueError: If the transition is not allowed
        """
        if not is_valid_transition(self.state, to_state):
            raise ValueError(f"Invalid confirmation transition: {self.state.value} -> {to_state.value}")
        self.state = to_state
        self.history.append(to_state)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def to_dict(self) -> Dict[str, object]:
        return {
            "order_id": self.order_id,
            "metered": self.metered,
            "state": self.state.value,
            "coupon_number": self.coupon_number,
            "error": self.error,
            "history": [state.value for state in self.history],
        }
