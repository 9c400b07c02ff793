"""
거래 저널

잔액에 영향을 주는 모든 이벤트의 기록 (추가 위주, 취소는 단방향).
모든 기록/취소는 InvestorLedger.apply_delta와 한 트랜잭션으로 커밋된다.

출금 정책: rollover_amount(미인출 실현이익)를 먼저 차감하고
부족분은 원금에서 차감한다 (SPLIT).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.constants import Defaults
from core.domain.models import FundTransaction
from core.domain.state_machines import TransactionStateMachine
from core.errors import InsufficientBalance, NotFound, ValidationError
from core.ledger.currency import ONE, CurrencyNormalizer, quantize_amount, to_pivot
from core.ledger.investor_ledger import ZERO, InvestorLedger
from core.storage.settings_store import Settings
from core.types import (
    Actor,
    TransactionKind,
    TransactionStatus,
    WithdrawSource,
    require_admin,
)
from core.utils.timezone import ensure_utc, now_utc

logger = logging.getLogger(__name__)

MANUAL_KINDS = (TransactionKind.DEPOSIT.value, TransactionKind.WITHDRAWAL.value)
REALIZATION_KINDS = (TransactionKind.PROFIT.value, TransactionKind.ROLLOVER.value)


def parse_amount(value: Any) -> Decimal:
    """입력 금액을 Decimal로 변환 (0 이하 거부)

    Raises:
        ValidationError: 숫자가 아니거나 0 이하
    """
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"Invalid amount: {value!r}") from e

    if not amount.is_finite():
        raise ValidationError(f"Invalid amount: {value!r}")
    if amount <= ZERO:
        raise ValidationError("Transaction amount must be greater than 0")
    return amount


def parse_bound(value: Any) -> Decimal:
    """목록 필터용 금액 경계 (0 이상)"""
    try:
        bound = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"Invalid amount filter: {value!r}") from e
    if not bound.is_finite() or bound < ZERO:
        raise ValidationError(f"Invalid amount filter: {value!r}")
    return bound


@dataclass(frozen=True)
class BalanceDelta:
    """거래 한 건이 잔액에 미치는 영향"""

    principal: Decimal
    rollover: Decimal
    withdraw_source: str = WithdrawSource.NONE.value
    withdraw_from_principal: Decimal = ZERO

    def inverted(self) -> BalanceDelta:
        return BalanceDelta(
            principal=-self.principal,
            rollover=-self.rollover,
            withdraw_source=self.withdraw_source,
            withdraw_from_principal=self.withdraw_from_principal,
        )


def delta_for_stored(tx: FundTransaction) -> BalanceDelta:
    """저장된 거래가 적용했던 잔액 변화 재구성

    현재 잔액이 아닌 저장된 kind/withdraw_source/withdraw_from_principal과
    저장된 환율로 역산한다.
    """
    pivot = to_pivot(tx.amount, tx.pivot_rate)

    if tx.kind in (TransactionKind.DEPOSIT.value, TransactionKind.ROLLOVER.value):
        return BalanceDelta(principal=pivot, rollover=ZERO)

    if tx.kind == TransactionKind.PROFIT.value:
        return BalanceDelta(principal=ZERO, rollover=pivot)

    if tx.kind == TransactionKind.WITHDRAWAL.value:
        if tx.withdraw_source == WithdrawSource.ROLLOVER.value:
            return BalanceDelta(
                principal=ZERO,
                rollover=-pivot,
                withdraw_source=tx.withdraw_source,
            )
        if tx.withdraw_source == WithdrawSource.SPLIT.value:
            from_principal = tx.withdraw_from_principal
            return BalanceDelta(
                principal=-from_principal,
                rollover=-(pivot - from_principal),
                withdraw_source=tx.withdraw_source,
                withdraw_from_principal=from_principal,
            )
        # PRINCIPAL (및 재원 미기록 행)은 원금 전액
        return BalanceDelta(
            principal=-pivot,
            rollover=ZERO,
            withdraw_source=tx.withdraw_source,
            withdraw_from_principal=pivot,
        )

    raise ValidationError(f"Unknown transaction kind: {tx.kind}")


@dataclass(frozen=True)
class TransactionPage:
    """거래 목록 페이지"""

    total: int
    total_pages: int
    current_page: int
    items: list[FundTransaction]


class TransactionJournal:
    """거래 저널

    Args:
        db: SQLiteAdapter 인스턴스
        ledger: InvestorLedger (None이면 같은 db로 생성)
    """

    def __init__(self, db: SQLiteAdapter, ledger: InvestorLedger | None = None):
        self.db = db
        self.ledger = ledger or InvestorLedger(db)

    # -------------------------------------------------------------------------
    # 기록
    # -------------------------------------------------------------------------

    async def record(
        self,
        actor: Actor,
        investor_id: int,
        kind: str | TransactionKind,
        amount: Any,
        currency: str,
        settings: Settings,
        note: str | None = None,
        ts: datetime | None = None,
    ) -> FundTransaction:
        """입금/출금 기록

        Args:
            actor: 호출자 (관리자)
            investor_id: 투자자 ID
            kind: DEPOSIT 또는 WITHDRAWAL
            amount: 입력 금액 (0 초과)
            currency: 입력 통화
            settings: 설정 스냅샷 (환율)
            note: 메모
            ts: 거래 시각 (None이면 현재)

        Returns:
            저장된 거래

        Raises:
            PermissionDenied, ValidationError, NotFound,
            InsufficientBalance, ConfigurationMissing
        """
        require_admin(actor, "record transactions")

        kind_value = kind.value if isinstance(kind, TransactionKind) else str(kind).upper()
        if kind_value in REALIZATION_KINDS:
            raise ValidationError(f"{kind_value} transactions are produced only by year approval")
        if kind_value not in MANUAL_KINDS:
            raise ValidationError(f"Unsupported transaction kind: {kind}")

        value = parse_amount(amount)
        normalizer = CurrencyNormalizer.from_settings(settings)
        rate = normalizer.rate_for(currency)
        need = to_pivot(value, rate)
        if need <= ZERO:
            # 저장 자릿수 미만 금액은 0으로 반올림됨
            raise ValidationError(f"Amount too small after conversion: {value} {currency.upper()}")

        async with self.db.transaction():
            investor = await self._load_investor_balances(investor_id)

            if kind_value == TransactionKind.DEPOSIT.value:
                delta = BalanceDelta(principal=need, rollover=ZERO)
            else:
                delta = self._withdrawal_delta(investor_id, need, *investor)

            tx_id = await self._append(
                investor_id=investor_id,
                kind=kind_value,
                amount=value,
                currency=currency.upper(),
                rate=rate,
                pivot_amount=need,
                delta=delta,
                actor=actor,
                ts=ts,
                note=note,
            )
            await self.ledger.apply_delta(investor_id, delta.principal, delta.rollover)

        logger.info(
            f"Transaction recorded: {kind_value} {value} {currency.upper()} (investor {investor_id})",
            extra={
                "transaction_id": tx_id,
                "investor_id": investor_id,
                "pivot_amount": str(need),
                "withdraw_source": delta.withdraw_source,
            },
        )
        return await self.get(tx_id)

    async def record_realization(
        self,
        actor: Actor,
        investor_id: int,
        kind: str | TransactionKind,
        pivot_amount: Decimal,
        financial_year_id: int,
        settings: Settings,
    ) -> FundTransaction | None:
        """승인 단계의 이익 실현 기록 (ROLLOVER → 원금, PROFIT → rollover_amount)

        기준통화로 기록하므로 환율은 1.
        0원은 기록하지 않는다 (None 반환).
        """
        require_admin(actor, "realize profit")

        kind_value = kind.value if isinstance(kind, TransactionKind) else str(kind).upper()
        if kind_value not in REALIZATION_KINDS:
            raise ValidationError(f"Not a realization kind: {kind_value}")

        value = quantize_amount(pivot_amount)
        if value < ZERO:
            raise ValidationError(f"Negative realization amount: {value}")
        if value == ZERO:
            return None

        if kind_value == TransactionKind.ROLLOVER.value:
            delta = BalanceDelta(principal=value, rollover=ZERO)
        else:
            delta = BalanceDelta(principal=ZERO, rollover=value)

        async with self.db.transaction():
            tx_id = await self._append(
                investor_id=investor_id,
                kind=kind_value,
                amount=value,
                currency=settings.pivot_currency.upper(),
                rate=ONE,
                pivot_amount=value,
                delta=delta,
                actor=actor,
                financial_year_id=financial_year_id,
            )
            await self.ledger.apply_delta(investor_id, delta.principal, delta.rollover)

        return await self.get(tx_id)

    # -------------------------------------------------------------------------
    # 취소
    # -------------------------------------------------------------------------

    async def cancel(self, actor: Actor, transaction_id: int) -> FundTransaction:
        """거래 취소 (역분개)

        이미 CANCELED면 아무것도 하지 않는다.
        역산 결과 잔액이 음수가 되면 InsufficientBalance로 중단 (변경 없음).
        이후 거래가 같은 자금을 이미 사용한 경우 발생하므로
        최신 거래부터 역순으로 취소해야 한다.

        Raises:
            PermissionDenied, NotFound, InsufficientBalance
        """
        require_admin(actor, "cancel transactions")

        async with self.db.transaction():
            tx = await self.get(transaction_id)
            machine = TransactionStateMachine(tx.status)
            if machine.is_canceled:
                logger.debug(f"Transaction {transaction_id} already canceled")
                return tx

            machine.transition(TransactionStatus.CANCELED)
            inverse = delta_for_stored(tx).inverted()

            await self.ledger.apply_delta(tx.investor_id, inverse.principal, inverse.rollover)

            await self.db.execute(
                """
                UPDATE fund_transaction
                SET status = ?, canceled_at = ?, canceled_by = ?
                WHERE transaction_id = ?
                """,
                (machine.state, now_utc().isoformat(), actor.id, transaction_id),
            )

        logger.info(
            f"Transaction canceled: {transaction_id} ({tx.kind})",
            extra={
                "transaction_id": transaction_id,
                "investor_id": tx.investor_id,
                "principal_delta": str(inverse.principal),
                "rollover_delta": str(inverse.rollover),
            },
        )
        return await self.get(transaction_id)

    # -------------------------------------------------------------------------
    # 조회
    # -------------------------------------------------------------------------

    async def get(self, transaction_id: int) -> FundTransaction:
        """거래 조회

        Raises:
            NotFound: 거래 없음
        """
        row = await self.db.fetchone(
            f"SELECT {FundTransaction.COLUMNS} FROM fund_transaction WHERE transaction_id = ?",
            (transaction_id,),
        )
        if row is None:
            raise NotFound(f"Transaction not found: {transaction_id}")
        return FundTransaction.from_row(row)

    async def list_for_year(self, financial_year_id: int) -> list[FundTransaction]:
        """회계연도에 연결된 거래 (최신순)"""
        rows = await self.db.fetchall(
            f"""
            SELECT {FundTransaction.COLUMNS} FROM fund_transaction
            WHERE financial_year_id = ?
            ORDER BY ts DESC, transaction_id DESC
            """,
            (financial_year_id,),
        )
        return [FundTransaction.from_row(row) for row in rows]

    async def list_transactions(
        self,
        investor_id: int | None = None,
        kind: str | None = None,
        status: str | None = None,
        financial_year_id: int | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        min_amount: Any = None,
        max_amount: Any = None,
        page: int = 1,
        limit: int = Defaults.PAGE_LIMIT,
    ) -> TransactionPage:
        """거래 목록 (필터 + 페이지네이션, 최신순)

        금액 범위는 기준통화 금액(pivot_amount) 기준.

        Raises:
            ValidationError: page/limit/금액 범위 오류
            NotFound: 마지막 페이지 초과
        """
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be positive")

        clauses: list[str] = []
        params: list[Any] = []
        if investor_id is not None:
            clauses.append("investor_id = ?")
            params.append(investor_id)
        if kind:
            clauses.append("kind = ?")
            params.append(str(kind).upper())
        if status:
            clauses.append("status = ?")
            params.append(str(status).upper())
        if financial_year_id is not None:
            clauses.append("financial_year_id = ?")
            params.append(financial_year_id)
        # ts는 항상 UTC isoformat으로 저장되므로 문자열 비교가 시각 순서와 같다
        if start is not None:
            clauses.append("ts >= ?")
            params.append(ensure_utc(start).isoformat())
        if end is not None:
            clauses.append("ts <= ?")
            params.append(ensure_utc(end).isoformat())
        if min_amount is not None:
            clauses.append("CAST(pivot_amount AS REAL) >= ?")
            params.append(float(parse_bound(min_amount)))
        if max_amount is not None:
            clauses.append("CAST(pivot_amount AS REAL) <= ?")
            params.append(float(parse_bound(max_amount)))

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        row = await self.db.fetchone(
            f"SELECT COUNT(*) FROM fund_transaction {where}",
            tuple(params),
        )
        total = row[0] if row else 0
        total_pages = math.ceil(total / limit)
        if total > 0 and page > total_pages:
            raise NotFound(f"Page not found: {page}")

        rows = await self.db.fetchall(
            f"""
            SELECT {FundTransaction.COLUMNS} FROM fund_transaction
            {where}
            ORDER BY ts DESC, transaction_id DESC
            LIMIT ? OFFSET ?
            """,
            (*params, limit, (page - 1) * limit),
        )
        return TransactionPage(
            total=total,
            total_pages=total_pages,
            current_page=page,
            items=[FundTransaction.from_row(row) for row in rows],
        )

    # -------------------------------------------------------------------------
    # 내부
    # -------------------------------------------------------------------------

    async def _load_investor_balances(self, investor_id: int) -> tuple[Decimal, Decimal]:
        row = await self.db.fetchone(
            "SELECT amount, rollover_amount FROM investor WHERE investor_id = ?",
            (investor_id,),
        )
        if row is None:
            raise NotFound(f"Investor not found: {investor_id}")
        return Decimal(row[0]), Decimal(row[1])

    @staticmethod
    def _withdrawal_delta(
        investor_id: int,
        need: Decimal,
        principal: Decimal,
        rollover: Decimal,
    ) -> BalanceDelta:
        """출금 재원 계산: rollover 우선, 부족분은 원금 (SPLIT)"""
        if need > principal + rollover:
            raise InsufficientBalance(
                f"Investor {investor_id}: withdrawal {need} exceeds available {principal + rollover}"
            )

        if need <= rollover:
            return BalanceDelta(
                principal=ZERO,
                rollover=-need,
                withdraw_source=WithdrawSource.ROLLOVER.value,
            )

        from_principal = need - rollover
        return BalanceDelta(
            principal=-from_principal,
            rollover=-rollover,
            withdraw_source=WithdrawSource.SPLIT.value,
            withdraw_from_principal=from_principal,
        )

    async def _append(
        self,
        investor_id: int,
        kind: str,
        amount: Decimal,
        currency: str,
        rate: Decimal,
        pivot_amount: Decimal,
        delta: BalanceDelta,
        actor: Actor,
        financial_year_id: int | None = None,
        ts: datetime | None = None,
        note: str | None = None,
    ) -> int:
        cursor = await self.db.execute(
            """
            INSERT INTO fund_transaction (
                investor_id, kind, amount, currency, pivot_rate, pivot_amount,
                withdraw_source, withdraw_from_principal, status, ts,
                financial_year_id, actor_id, note
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                investor_id,
                kind,
                str(amount),
                currency,
                str(rate),
                str(pivot_amount),
                delta.withdraw_source,
                str(delta.withdraw_from_principal),
                TransactionStatus.PENDING.value,
                (ensure_utc(ts) if ts else now_utc()).isoformat(),
                financial_year_id,
                actor.id,
                note,
            ),
        )
        return cursor.lastrowid
