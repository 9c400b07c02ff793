"""
State Machine 테스트
"""

import pytest

from core.domain.state_machines import (
    FinancialYearStateMachine,
    TransactionStateMachine,
)
from core.errors import InvalidStateTransition
from core.types import FinancialYearStatus, TransactionStatus


class TestFinancialYearStateMachine:
    def test_happy_path(self) -> None:
        machine = FinancialYearStateMachine()

        machine.transition(FinancialYearStatus.CALCULATED)
        machine.transition(FinancialYearStatus.APPROVED)
        machine.transition(FinancialYearStatus.CLOSED)

        assert machine.state == "CLOSED"

    def test_cannot_approve_draft(self) -> None:
        machine = FinancialYearStateMachine(FinancialYearStatus.DRAFT)

        with pytest.raises(InvalidStateTransition):
            machine.transition(FinancialYearStatus.APPROVED)

    @pytest.mark.parametrize("state", ["APPROVED", "DISTRIBUTED", "CLOSED"])
    def test_not_editable_after_approval(self, state: str) -> None:
        machine = FinancialYearStateMachine(state)

        assert machine.is_editable is False
        with pytest.raises(InvalidStateTransition, match="update"):
            machine.require_editable("update")

    def test_closed_is_terminal(self) -> None:
        machine = FinancialYearStateMachine(FinancialYearStatus.CLOSED)

        for target in FinancialYearStatus:
            assert machine.can_transition(target) is False

    def test_distributed_can_close(self) -> None:
        machine = FinancialYearStateMachine(FinancialYearStatus.DISTRIBUTED)

        assert machine.transition("CLOSED") == "CLOSED"


class TestTransactionStateMachine:
    def test_cancel_once(self) -> None:
        machine = TransactionStateMachine()

        machine.transition(TransactionStatus.CANCELED)

        assert machine.is_canceled
        with pytest.raises(InvalidStateTransition):
            machine.transition(TransactionStatus.PENDING)
