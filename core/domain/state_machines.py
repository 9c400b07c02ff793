"""
State Machines

회계연도, 거래 등 핵심 엔티티의 상태 전이 관리.
"""

import logging
from enum import Enum

from core.errors import InvalidStateTransition
from core.types import FinancialYearStatus, TransactionStatus

logger = logging.getLogger(__name__)


class StateMachine:
    """상태 머신 기본 클래스

    Args:
        initial_state: 초기 상태
        transitions: 허용된 전이 정의 {from_state: [to_states]}
        name: 머신 이름 (로깅용)
    """

    def __init__(
        self,
        initial_state: str | Enum,
        transitions: dict[str, list[str]],
        name: str = "StateMachine",
    ):
        self._state = initial_state.value if isinstance(initial_state, Enum) else initial_state
        self._transitions = transitions
        self._name = name

    @property
    def state(self) -> str:
        """현재 상태"""
        return self._state

    def can_transition(self, to_state: str | Enum) -> bool:
        """전이 가능 여부 확인"""
        target = to_state.value if isinstance(to_state, Enum) else to_state
        allowed = self._transitions.get(self._state, [])
        return target in allowed

    def transition(self, to_state: str | Enum) -> str:
        """상태 전이

        Args:
            to_state: 목표 상태

        Returns:
            새 상태

        Raises:
            InvalidStateTransition: 허용되지 않은 전이
        """
        target = to_state.value if isinstance(to_state, Enum) else to_state

        if not self.can_transition(target):
            allowed = self._transitions.get(self._state, [])
            raise InvalidStateTransition(
                f"{self._name}: Cannot transition from {self._state} to {target}. "
                f"Allowed: {allowed}"
            )

        old_state = self._state
        self._state = target

        logger.debug(f"{self._name}: {old_state} → {target}")

        return target


class FinancialYearStateMachine(StateMachine):
    """회계연도 상태 머신

    전이 규칙:
    - DRAFT → PENDING: 적립 시작
    - DRAFT/PENDING → CALCULATED: 계산 완료
    - CALCULATED → CALCULATED: 재계산 (워터마크 이후부터 이어서 적립)
    - PENDING/CALCULATED → PENDING: 기간/이익 풀 변경으로 재구성
    - PENDING(워터마크 완료)/CALCULATED → APPROVED: 승인 (이익 실현)
    - APPROVED/DISTRIBUTED → CLOSED: 마감 (종료 상태)

    DISTRIBUTED는 APPROVED와 같은 의미로 취급한다.
    """

    TRANSITIONS: dict[str, list[str]] = {
        "DRAFT": ["PENDING", "CALCULATED"],
        "PENDING": ["PENDING", "CALCULATED", "APPROVED"],
        "CALCULATED": ["PENDING", "CALCULATED", "APPROVED"],
        "APPROVED": ["CLOSED"],
        "DISTRIBUTED": ["CLOSED"],
    }

    EDITABLE_STATES: tuple[str, ...] = ("DRAFT", "PENDING", "CALCULATED")

    def __init__(self, initial_state: str | FinancialYearStatus = FinancialYearStatus.PENDING):
        super().__init__(
            initial_state=initial_state,
            transitions=self.TRANSITIONS,
            name="FinancialYearStateMachine",
        )

    @property
    def is_editable(self) -> bool:
        """수정 가능 여부 (승인 전)"""
        return self._state in self.EDITABLE_STATES

    def require_editable(self, action: str) -> None:
        """수정 가능 상태 확인

        Raises:
            InvalidStateTransition: 승인 이후 상태
        """
        if not self.is_editable:
            raise InvalidStateTransition(
                f"Cannot {action} a financial year with status '{self._state}'"
            )


class TransactionStateMachine(StateMachine):
    """거래 상태 머신 (PENDING → CANCELED 단방향)"""

    TRANSITIONS: dict[str, list[str]] = {
        "PENDING": ["CANCELED"],
    }

    def __init__(self, initial_state: str | TransactionStatus = TransactionStatus.PENDING):
        super().__init__(
            initial_state=initial_state,
            transitions=self.TRANSITIONS,
            name="TransactionStateMachine",
        )

    @property
    def is_canceled(self) -> bool:
        """취소 여부"""
        return self._state == "CANCELED"
