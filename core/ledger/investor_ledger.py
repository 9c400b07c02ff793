"""
투자자 원장

투자자 잔액(amount, rollover_amount, total_amount)의 유일한 변경 경로.
total_amount = amount + rollover_amount 불변식을 여기서만 재계산한다.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.constants import Precision
from core.domain.models import Investor
from core.errors import InsufficientBalance, NotFound
from core.ledger.currency import quantize_amount
from core.types import TransactionKind, TransactionStatus
from core.utils.timezone import now_utc

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass(frozen=True)
class BalanceAudit:
    """잔액 검증 결과

    replayed_principal: 취소되지 않은 거래의 원금 영향분 합계
    (DEPOSIT +, ROLLOVER +, WITHDRAWAL -withdraw_from_principal)
    """

    investor_id: int
    amount: Decimal
    rollover_amount: Decimal
    total_amount: Decimal
    replayed_principal: Decimal

    @property
    def total_consistent(self) -> bool:
        return abs(self.total_amount - (self.amount + self.rollover_amount)) <= Precision.CURRENCY_EPSILON

    @property
    def journal_consistent(self) -> bool:
        return abs(self.amount - self.replayed_principal) <= Precision.CURRENCY_EPSILON

    @property
    def is_consistent(self) -> bool:
        return self.total_consistent and self.journal_consistent


class InvestorLedger:
    """투자자 원장

    Args:
        db: SQLiteAdapter 인스턴스
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db

    async def apply_delta(
        self,
        investor_id: int,
        principal_delta: Decimal,
        rollover_delta: Decimal,
    ) -> Investor:
        """잔액 변경 (유일한 변경 경로)

        호출 측 트랜잭션(저널 append)에 합류하여 함께 커밋/롤백된다.
        단독 호출 시 자체 트랜잭션으로 실행.

        Args:
            investor_id: 투자자 ID
            principal_delta: 원금 변화량
            rollover_delta: rollover 변화량

        Returns:
            변경 후 투자자

        Raises:
            NotFound: 투자자 없음
            InsufficientBalance: 결과 잔액이 음수
        """
        async with self.db.transaction():
            row = await self.db.fetchone(
                f"SELECT {Investor.COLUMNS} FROM investor WHERE investor_id = ?",
                (investor_id,),
            )
            if row is None:
                raise NotFound(f"Investor not found: {investor_id}")

            investor = Investor.from_row(row)

            new_amount = quantize_amount(investor.amount + principal_delta)
            new_rollover = quantize_amount(investor.rollover_amount + rollover_delta)

            if new_amount < ZERO or new_rollover < ZERO:
                raise InsufficientBalance(
                    f"Investor {investor_id}: balance would go negative "
                    f"(amount={new_amount}, rollover_amount={new_rollover})"
                )

            new_total = new_amount + new_rollover

            await self.db.execute(
                """
                UPDATE investor
                SET amount = ?, rollover_amount = ?, total_amount = ?, updated_at = ?
                WHERE investor_id = ?
                """,
                (
                    str(new_amount),
                    str(new_rollover),
                    str(new_total),
                    now_utc().isoformat(),
                    investor_id,
                ),
            )

        logger.debug(
            f"Balance updated: investor {investor_id}",
            extra={
                "investor_id": investor_id,
                "principal_delta": str(principal_delta),
                "rollover_delta": str(rollover_delta),
            },
        )

        investor.amount = new_amount
        investor.rollover_amount = new_rollover
        investor.total_amount = new_total
        return investor

    async def audit(self, investor_id: int) -> BalanceAudit:
        """잔액 불변식 검증

        total_amount == amount + rollover_amount 그리고
        저널 재생 결과 == amount 인지 확인.

        Raises:
            NotFound: 투자자 없음
        """
        row = await self.db.fetchone(
            f"SELECT {Investor.COLUMNS} FROM investor WHERE investor_id = ?",
            (investor_id,),
        )
        if row is None:
            raise NotFound(f"Investor not found: {investor_id}")
        investor = Investor.from_row(row)

        rows = await self.db.fetchall(
            """
            SELECT kind, pivot_amount, withdraw_from_principal
            FROM fund_transaction
            WHERE investor_id = ? AND status = ?
            """,
            (investor_id, TransactionStatus.PENDING.value),
        )

        replayed = ZERO
        for kind, pivot_amount, from_principal in rows:
            if kind in (TransactionKind.DEPOSIT.value, TransactionKind.ROLLOVER.value):
                replayed += Decimal(pivot_amount)
            elif kind == TransactionKind.WITHDRAWAL.value:
                replayed -= Decimal(from_principal)

        return BalanceAudit(
            investor_id=investor.investor_id,
            amount=investor.amount,
            rollover_amount=investor.rollover_amount,
            total_amount=investor.total_amount,
            replayed_principal=replayed,
        )
