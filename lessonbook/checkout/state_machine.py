"""
Finite state machine for checkout step sequencing.

Defines the five wizard steps plus Complete and the explicit transitions
between them. Skipping the identify step for an already-authenticated
learner is a guard on the transition table, decided by a single predicate
supplied by the wizard.

Usage:
    sm = CheckoutStateMachine(skip_identify=lambda: False)
    sm.transition(WizardTrigger.CONTINUE)
    assert sm.current_state == CheckoutStep.SELECT_PACKAGE
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from lessonbook.schemas.checkout_schema import CheckoutStep

logger = logging.getLogger(__name__)


class WizardTrigger(str, Enum):
    """Events that cause step transitions."""
    CONTINUE = "continue"
    BACK = "back"
    REGISTERED = "registered"
    LOGGED_IN = "logged_in"
    VERIFIED = "verified"
    PAYMENT_SUCCEEDED = "payment_succeeded"


Guard = Callable[["CheckoutStateMachine"], bool]


def _skips(machine: "CheckoutStateMachine") -> bool:
    return machine.skip_identify()


def _shows(machine: "CheckoutStateMachine") -> bool:
    return not machine.skip_identify()


@dataclass
class Transition:
    """A single valid step transition."""
    from_state: CheckoutStep
    to_state: CheckoutStep
    trigger: WizardTrigger
    guard: Optional[Guard] = None


@dataclass
class StateEntry:
    """Recorded history entry for a step visit."""
    state: CheckoutStep
    entered_at: datetime
    trigger: Optional[WizardTrigger] = None


class InvalidTransitionError(Exception):
    """Raised when a transition is not valid from the current step."""


class CheckoutStateMachine:
    """
    Deterministic step machine for the booking checkout.

    Every transition must be explicitly defined. Identify and Pay are
    left only through their own outcome triggers, never a bare CONTINUE.
    """

    TRANSITIONS: list[Transition] = [
        # --- Forward ---
        Transition(CheckoutStep.CONFIRM_INSTRUCTOR, CheckoutStep.SELECT_PACKAGE,
                   WizardTrigger.CONTINUE),
        Transition(CheckoutStep.SELECT_PACKAGE, CheckoutStep.SCHEDULE_LESSONS,
                   WizardTrigger.CONTINUE),
        Transition(CheckoutStep.SCHEDULE_LESSONS, CheckoutStep.IDENTIFY,
                   WizardTrigger.CONTINUE, guard=_shows),
        Transition(CheckoutStep.SCHEDULE_LESSONS, CheckoutStep.PAY,
                   WizardTrigger.CONTINUE, guard=_skips),

        # --- Identify outcomes ---
        Transition(CheckoutStep.IDENTIFY, CheckoutStep.PAY, WizardTrigger.REGISTERED),
        Transition(CheckoutStep.IDENTIFY, CheckoutStep.PAY, WizardTrigger.LOGGED_IN),
        Transition(CheckoutStep.IDENTIFY, CheckoutStep.PAY, WizardTrigger.VERIFIED),

        # --- Payment ---
        Transition(CheckoutStep.PAY, CheckoutStep.COMPLETE, WizardTrigger.PAYMENT_SUCCEEDED),

        # --- Back ---
        Transition(CheckoutStep.SELECT_PACKAGE, CheckoutStep.CONFIRM_INSTRUCTOR,
                   WizardTrigger.BACK),
        Transition(CheckoutStep.SCHEDULE_LESSONS, CheckoutStep.SELECT_PACKAGE,
                   WizardTrigger.BACK),
        Transition(CheckoutStep.IDENTIFY, CheckoutStep.SCHEDULE_LESSONS, WizardTrigger.BACK),
        Transition(CheckoutStep.PAY, CheckoutStep.IDENTIFY, WizardTrigger.BACK, guard=_shows),
        Transition(CheckoutStep.PAY, CheckoutStep.SCHEDULE_LESSONS, WizardTrigger.BACK,
                   guard=_skips),
    ]

    def __init__(
        self,
        skip_identify: Callable[[], bool] = lambda: False,
        initial: CheckoutStep = CheckoutStep.CONFIRM_INSTRUCTOR,
    ) -> None:
        self.skip_identify = skip_identify
        self._current_state = initial
        self._history: list[StateEntry] = [
            StateEntry(state=initial, entered_at=datetime.now(timezone.utc))
        ]

    @property
    def current_state(self) -> CheckoutStep:
        return self._current_state

    def transition(self, trigger: WizardTrigger) -> CheckoutStep:
        """
        Execute a step transition.

        Args:
            trigger: The event triggering the transition.

        Returns:
            The new step.

        Raises:
            InvalidTransitionError: If no valid transition exists.
        """
        for t in self.TRANSITIONS:
            if t.from_state == self._current_state and t.trigger == trigger:
                if t.guard is not None and not t.guard(self):
                    continue

                old_state = self._current_state
                self._current_state = t.to_state
                self._history.append(StateEntry(
                    state=self._current_state,
                    entered_at=datetime.now(timezone.utc),
                    trigger=trigger,
                ))
                logger.debug(
                    "Step transition: %s -> %s (trigger: %s)",
                    old_state.value, self._current_state.value, trigger.value,
                )
                return self._current_state

        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidTransitionError(
            f"No valid transition from '{self._current_state.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def restore(self, state: CheckoutStep) -> CheckoutStep:
        """Jump to a step restored from a persisted session.

        A restored Identify step for a learner who no longer needs it lands
        on Pay instead.
        """
        if state == CheckoutStep.IDENTIFY and self.skip_identify():
            state = CheckoutStep.PAY
        self._current_state = state
        self._history.append(StateEntry(state=state, entered_at=datetime.now(timezone.utc)))
        logger.debug("Step restored: %s", state.value)
        return state

    def get_valid_triggers(self) -> list[WizardTrigger]:
        """Return all triggers valid from the current step, guards applied."""
        return [
            t.trigger for t in self.TRANSITIONS
            if t.from_state == self._current_state and (t.guard is None or t.guard(self))
        ]

    def get_history(self) -> list[StateEntry]:
        """Return the full step transition history."""
        return list(self._history)

    def get_state_trace(self) -> list[str]:
        """Return ordered list of step names visited."""
        return [entry.state.value for entry in self._history]

    def is_terminal(self) -> bool:
        return self._current_state == CheckoutStep.COMPLETE
