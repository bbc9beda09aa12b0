"""Tests for invoice, payment and payroll run state machines."""

import pytest

from ledger_engine.errors import ConflictError, InvalidTransitionError, ValidationError
from ledger_engine.services.state_machine import (
    InvoiceStateMachine,
    InvoiceStatus,
    PaymentStateMachine,
    PayrollRunStateMachine,
    PayrollRunStatus,
    parse_status,
)


class TestInvoiceStateMachine:
    """Test invoice transitions."""

    def test_valid_transitions(self):
        assert InvoiceStateMachine.can_transition("draft", "issued") is True
        assert InvoiceStateMachine.can_transition("issued", "paid") is True
        assert InvoiceStateMachine.can_transition("issued", "cancelled") is True

    def test_invalid_transitions(self):
        """Drafts cannot skip issuing; paid and cancelled are terminal."""
        assert InvoiceStateMachine.can_transition("draft", "paid") is False
        assert InvoiceStateMachine.can_transition("draft", "cancelled") is False
        assert InvoiceStateMachine.can_transition("paid", "cancelled") is False
        assert InvoiceStateMachine.can_transition("cancelled", "issued") is False

    def test_validate_transition_raises(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            InvoiceStateMachine.validate_transition("draft", InvoiceStatus.PAID)

        assert exc_info.value.from_status == "draft"
        assert exc_info.value.to_status == "paid"

    def test_invalid_transition_is_a_conflict(self):
        assert issubclass(InvalidTransitionError, ConflictError)

    def test_only_drafts_are_editable(self):
        assert InvoiceStateMachine.is_editable("draft") is True
        assert InvoiceStateMachine.is_editable("issued") is False


class TestPaymentStateMachine:
    def test_pending_can_close_any_way(self):
        for target in ("completed", "failed", "cancelled"):
            assert PaymentStateMachine.can_transition("pending", target) is True

    def test_closed_payments_are_terminal(self):
        for status in ("completed", "failed", "cancelled"):
            assert PaymentStateMachine.is_terminal(status) is True


class TestPayrollRunStateMachine:
    """Test payroll run transitions."""

    def test_valid_transitions(self):
        assert PayrollRunStateMachine.can_transition("draft", "locked") is True
        assert PayrollRunStateMachine.can_transition("draft", "failed") is True
        assert PayrollRunStateMachine.can_transition("failed", "draft") is True
        assert PayrollRunStateMachine.can_transition("locked", "paid") is True

    def test_invalid_transitions(self):
        assert PayrollRunStateMachine.can_transition("draft", "paid") is False
        assert PayrollRunStateMachine.can_transition("locked", "draft") is False
        assert PayrollRunStateMachine.can_transition("paid", "locked") is False

    def test_next_statuses(self):
        assert PayrollRunStateMachine.get_next_statuses("paid") == []
        assert PayrollRunStatus.LOCKED in PayrollRunStateMachine.get_next_statuses("draft")

    def test_only_failed_runs_resume(self):
        assert PayrollRunStateMachine.is_resumable("failed") is True
        assert PayrollRunStateMachine.is_resumable("draft") is False


def test_parse_status_rejects_unknown_value():
    assert parse_status(InvoiceStatus, "issued") is InvoiceStatus.ISSUED
    with pytest.raises(ValidationError) as exc_info:
        parse_status(InvoiceStatus, "archived")
    assert exc_info.value.field == "status"
