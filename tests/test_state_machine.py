"""Tests for the checkout step state machine."""

import pytest

from lessonbook.checkout.state_machine import (
    CheckoutStateMachine,
    InvalidTransitionError,
    WizardTrigger,
)
from lessonbook.schemas.checkout_schema import CheckoutStep


def walk_to(machine: CheckoutStateMachine, step: CheckoutStep) -> None:
    while machine.current_state != step:
        machine.transition(WizardTrigger.CONTINUE)


class TestInitialState:
    def test_starts_at_confirm_instructor(self, state_machine):
        assert state_machine.current_state == CheckoutStep.CONFIRM_INSTRUCTOR

    def test_initial_history_has_one_entry(self, state_machine):
        assert len(state_machine.get_history()) == 1

    def test_not_terminal_at_start(self, state_machine):
        assert not state_machine.is_terminal()

    def test_step_numbers(self):
        assert [step.number for step in CheckoutStep] == [1, 2, 3, 4, 5, 6]


class TestForward:
    def test_continue_through_first_steps(self, state_machine):
        assert state_machine.transition(WizardTrigger.CONTINUE) == CheckoutStep.SELECT_PACKAGE
        assert state_machine.transition(WizardTrigger.CONTINUE) == CheckoutStep.SCHEDULE_LESSONS
        assert state_machine.transition(WizardTrigger.CONTINUE) == CheckoutStep.IDENTIFY

    def test_identify_not_left_by_continue(self, state_machine):
        walk_to(state_machine, CheckoutStep.IDENTIFY)
        with pytest.raises(InvalidTransitionError):
            state_machine.transition(WizardTrigger.CONTINUE)

    @pytest.mark.parametrize(
        "trigger", [WizardTrigger.LOGGED_IN, WizardTrigger.REGISTERED, WizardTrigger.VERIFIED]
    )
    def test_identify_outcomes_lead_to_pay(self, state_machine, trigger):
        walk_to(state_machine, CheckoutStep.IDENTIFY)
        assert state_machine.transition(trigger) == CheckoutStep.PAY

    def test_payment_completes(self, state_machine):
        walk_to(state_machine, CheckoutStep.IDENTIFY)
        state_machine.transition(WizardTrigger.LOGGED_IN)
        assert state_machine.transition(WizardTrigger.PAYMENT_SUCCEEDED) == CheckoutStep.COMPLETE
        assert state_machine.is_terminal()

    def test_pay_not_skipped_by_continue(self, state_machine):
        walk_to(state_machine, CheckoutStep.IDENTIFY)
        state_machine.transition(WizardTrigger.LOGGED_IN)
        with pytest.raises(InvalidTransitionError):
            state_machine.transition(WizardTrigger.CONTINUE)

    def test_complete_is_final(self, state_machine):
        walk_to(state_machine, CheckoutStep.IDENTIFY)
        state_machine.transition(WizardTrigger.VERIFIED)
        state_machine.transition(WizardTrigger.PAYMENT_SUCCEEDED)
        assert state_machine.get_valid_triggers() == []


class TestSkipIdentify:
    def test_schedule_goes_straight_to_pay(self):
        machine = CheckoutStateMachine(skip_identify=lambda: True)
        machine.transition(WizardTrigger.CONTINUE)
        machine.transition(WizardTrigger.CONTINUE)
        assert machine.transition(WizardTrigger.CONTINUE) == CheckoutStep.PAY
        assert "identify" not in machine.get_state_trace()

    def test_back_from_pay_skips_identify(self):
        machine = CheckoutStateMachine(skip_identify=lambda: True, initial=CheckoutStep.PAY)
        assert machine.transition(WizardTrigger.BACK) == CheckoutStep.SCHEDULE_LESSONS

    def test_back_from_pay_shows_identify_for_guest(self):
        machine = CheckoutStateMachine(initial=CheckoutStep.PAY)
        assert machine.transition(WizardTrigger.BACK) == CheckoutStep.IDENTIFY

    def test_guard_is_read_at_transition_time(self):
        signed_in = {"value": False}
        machine = CheckoutStateMachine(skip_identify=lambda: signed_in["value"])
        machine.transition(WizardTrigger.CONTINUE)
        machine.transition(WizardTrigger.CONTINUE)
        signed_in["value"] = True
        assert machine.transition(WizardTrigger.CONTINUE) == CheckoutStep.PAY


class TestBack:
    @pytest.mark.parametrize(
        "start, expected",
        [
            (CheckoutStep.SELECT_PACKAGE, CheckoutStep.CONFIRM_INSTRUCTOR),
            (CheckoutStep.SCHEDULE_LESSONS, CheckoutStep.SELECT_PACKAGE),
            (CheckoutStep.IDENTIFY, CheckoutStep.SCHEDULE_LESSONS),
        ],
    )
    def test_back_one_step(self, start, expected):
        machine = CheckoutStateMachine(initial=start)
        assert machine.transition(WizardTrigger.BACK) == expected

    def test_no_back_from_first_step(self, state_machine):
        with pytest.raises(InvalidTransitionError):
            state_machine.transition(WizardTrigger.BACK)

    def test_no_back_from_complete(self):
        machine = CheckoutStateMachine(initial=CheckoutStep.COMPLETE)
        with pytest.raises(InvalidTransitionError):
            machine.transition(WizardTrigger.BACK)


class TestRestore:
    def test_restore_jumps_to_step(self, state_machine):
        assert state_machine.restore(CheckoutStep.SCHEDULE_LESSONS) == CheckoutStep.SCHEDULE_LESSONS
        assert state_machine.current_state == CheckoutStep.SCHEDULE_LESSONS

    def test_restored_identify_moves_to_pay_when_skipped(self):
        machine = CheckoutStateMachine(skip_identify=lambda: True)
        assert machine.restore(CheckoutStep.IDENTIFY) == CheckoutStep.PAY


class TestHistory:
    def test_trace_records_every_step(self, state_machine):
        walk_to(state_machine, CheckoutStep.IDENTIFY)
        state_machine.transition(WizardTrigger.BACK)
        assert state_machine.get_state_trace() == [
            "confirm_instructor",
            "select_package",
            "schedule_lessons",
            "identify",
            "schedule_lessons",
        ]

    def test_history_records_trigger(self, state_machine):
        state_machine.transition(WizardTrigger.CONTINUE)
        assert state_machine.get_history()[-1].trigger == WizardTrigger.CONTINUE

    def test_history_is_a_copy(self, state_machine):
        state_machine.get_history().clear()
        assert len(state_machine.get_history()) == 1

    def test_error_lists_valid_triggers(self, state_machine):
        with pytest.raises(InvalidTransitionError, match="continue"):
            state_machine.transition(WizardTrigger.PAYMENT_SUCCEEDED)
