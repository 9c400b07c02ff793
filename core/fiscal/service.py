"""
회계연도 생명주기

DRAFT/PENDING → CALCULATED → APPROVED → CLOSED

- create: 기간/이익 풀 검증, total_days·daily_profit 계산, PENDING
- update: 승인 전까지만. 기간/이익 풀 변경 시 분배 재구성 + 워터마크 초기화
- calculate: 적립 엔진을 min(end_date, as_of)까지 구동 후 CALCULATED
- approve: 분배별 누적 이익을 rollover 비율로 ROLLOVER/PROFIT 거래로 실현.
  모든 분배 행이 하나의 트랜잭션 (부분 실현 없음)
- close: APPROVED → CLOSED (종료)
- delete: CLOSED만. 연결 거래 취소 → 분배 삭제 → 회계연도 삭제
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.constants import Defaults
from core.domain.models import Distribution, FinancialYear
from core.domain.state_machines import FinancialYearStateMachine
from core.errors import InvalidStateTransition, NotFound, ValidationError
from core.fiscal.accrual import AccrualEngine, YearAccrual, resolve_as_of
from core.fiscal.store import FinancialYearStore
from core.ledger.currency import quantize_amount
from core.ledger.journal import TransactionJournal
from core.storage.settings_store import Settings
from core.types import (
    Actor,
    FinancialYearStatus,
    TransactionKind,
    TransactionStatus,
    require_admin,
)
from core.utils.timezone import now_utc, parse_date

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")

EDITABLE_FIELDS = frozenset({
    "label",
    "total_profit_pool",
    "start_date",
    "end_date",
    "rollover_enabled",
    "rollover_percentage",
    "auto_rollover",
    "auto_rollover_date",
})


def parse_pool(value: Any) -> Decimal:
    """이익 풀 검증 (0 이상)"""
    if value is None:
        raise ValidationError("total_profit_pool is required")
    try:
        pool = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"Invalid total_profit_pool: {value!r}") from e
    if not pool.is_finite() or pool < ZERO:
        raise ValidationError("total_profit_pool must be >= 0")
    return pool


def parse_percentage(value: Any) -> Decimal:
    """rollover 비율 검증 ([0, 100])"""
    try:
        pct = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"Invalid rollover_percentage: {value!r}") from e
    if not pct.is_finite() or pct < ZERO or pct > HUNDRED:
        raise ValidationError("rollover_percentage must be between 0 and 100")
    return pct


def period_days(start: date, end: date) -> int:
    """기간 일수 (양 끝 포함)

    Raises:
        ValidationError: end < start
    """
    if end < start:
        raise ValidationError("end_date must not be before start_date")
    return (end - start).days + 1


def daily_profit_for(pool: Decimal, total_days: int) -> Decimal:
    return quantize_amount(pool / Decimal(total_days))


@dataclass(frozen=True)
class ApprovalResult:
    """승인 결과"""

    financial_year_id: int
    approved_count: int
    total_credited: Decimal
    total_rollover: Decimal
    total_profit: Decimal
    approved_at: datetime


@dataclass(frozen=True)
class YearSummary:
    """회계연도 요약 (조회 전용)"""

    year: FinancialYear
    distributions: list[Distribution]
    total_investors: int
    total_accumulated_profit: Decimal
    average_accumulated_profit: Decimal
    days_so_far: int


@dataclass(frozen=True)
class YearPage:
    total: int
    total_pages: int
    current_page: int
    items: list[FinancialYear]


class FinancialYearService:
    """회계연도 서비스

    Args:
        db: SQLiteAdapter 인스턴스
        journal: 거래 저널 (None이면 생성)
    """

    def __init__(self, db: SQLiteAdapter, journal: TransactionJournal | None = None):
        self.db = db
        self.store = FinancialYearStore(db)
        self.journal = journal or TransactionJournal(db)
        self.accrual = AccrualEngine(db)

    # -------------------------------------------------------------------------
    # 생성/수정
    # -------------------------------------------------------------------------

    async def create(
        self,
        actor: Actor,
        start_date: date | str,
        end_date: date | str,
        total_profit_pool: Any,
        label: str | None = None,
        rollover_enabled: bool = False,
        rollover_percentage: Any = 0,
        auto_rollover: bool = False,
        auto_rollover_date: date | str | None = None,
    ) -> FinancialYear:
        """회계연도 생성 (status = PENDING)

        Raises:
            PermissionDenied, ValidationError
        """
        require_admin(actor, "create financial years")

        start = parse_date(start_date)
        end = parse_date(end_date)
        total_days = period_days(start, end)
        pool = parse_pool(total_profit_pool)
        pct = parse_percentage(rollover_percentage)

        year_id = await self.store.insert(
            label=(label or f"{start.isoformat()} ~ {end.isoformat()}").strip(),
            total_profit_pool=pool,
            start_date=start,
            end_date=end,
            total_days=total_days,
            daily_profit=daily_profit_for(pool, total_days),
            rollover_enabled=bool(rollover_enabled),
            rollover_percentage=pct,
            auto_rollover=bool(auto_rollover),
            auto_rollover_date=parse_date(auto_rollover_date) if auto_rollover_date else None,
            status=FinancialYearStatus.PENDING.value,
            created_by=actor.id,
        )

        logger.info(
            f"Financial year created: {year_id} ({start} ~ {end}, pool={pool})",
            extra={"financial_year_id": year_id, "actor": actor.id},
        )
        return await self.store.get(year_id)

    async def update(
        self,
        actor: Actor,
        financial_year_id: int,
        patch: dict[str, Any],
    ) -> FinancialYear:
        """회계연도 수정 (DRAFT/PENDING/CALCULATED만)

        기간 또는 이익 풀이 바뀌면 분배를 모두 삭제하고 워터마크를 초기화한다.
        CALCULATED였다면 PENDING으로 되돌린다.

        Raises:
            PermissionDenied, NotFound, InvalidStateTransition, ValidationError
        """
        require_admin(actor, "update financial years")

        unknown = set(patch) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown or read-only fields: {sorted(unknown)}")

        async with self.db.transaction():
            year = await self.store.get(financial_year_id)
            machine = FinancialYearStateMachine(year.status)
            machine.require_editable("update")

            fields: dict[str, Any] = {}
            if "label" in patch:
                label = str(patch["label"] or "").strip()
                if not label:
                    raise ValidationError("label must not be empty")
                fields["label"] = label
            if "rollover_enabled" in patch:
                fields["rollover_enabled"] = bool(patch["rollover_enabled"])
            if "rollover_percentage" in patch:
                fields["rollover_percentage"] = parse_percentage(patch["rollover_percentage"])
            if "auto_rollover" in patch:
                fields["auto_rollover"] = bool(patch["auto_rollover"])
            if "auto_rollover_date" in patch:
                value = patch["auto_rollover_date"]
                fields["auto_rollover_date"] = parse_date(value) if value else None

            start = parse_date(patch["start_date"]) if "start_date" in patch else year.start_date
            end = parse_date(patch["end_date"]) if "end_date" in patch else year.end_date
            pool = parse_pool(patch["total_profit_pool"]) if "total_profit_pool" in patch else year.total_profit_pool

            rebuild = (
                start != year.start_date
                or end != year.end_date
                or pool != year.total_profit_pool
            )
            if rebuild:
                total_days = period_days(start, end)
                fields.update(
                    start_date=start,
                    end_date=end,
                    total_profit_pool=pool,
                    total_days=total_days,
                    daily_profit=daily_profit_for(pool, total_days),
                    distributed_through=None,
                )
                if machine.state != FinancialYearStatus.DRAFT.value:
                    fields["status"] = machine.transition(FinancialYearStatus.PENDING)
                await self.store.delete_distributions(financial_year_id)

            if fields:
                await self.store.update(financial_year_id, **fields)

        logger.info(
            f"Financial year updated: {financial_year_id}",
            extra={
                "financial_year_id": financial_year_id,
                "fields": sorted(fields),
                "rebuild": rebuild,
            },
        )
        return await self.store.get(financial_year_id)

    async def update_rollover_settings(
        self,
        actor: Actor,
        financial_year_id: int,
        rollover_enabled: bool | None = None,
        rollover_percentage: Any = None,
        auto_rollover: bool | None = None,
        auto_rollover_date: date | str | None = None,
    ) -> FinancialYear:
        """rollover 정책만 수정 (update와 동일한 상태 제한)"""
        patch: dict[str, Any] = {}
        if rollover_enabled is not None:
            patch["rollover_enabled"] = rollover_enabled
        if rollover_percentage is not None:
            patch["rollover_percentage"] = rollover_percentage
        if auto_rollover is not None:
            patch["auto_rollover"] = auto_rollover
        if auto_rollover_date is not None:
            patch["auto_rollover_date"] = auto_rollover_date
        return await self.update(actor, financial_year_id, patch)

    # -------------------------------------------------------------------------
    # 계산/승인/마감/삭제
    # -------------------------------------------------------------------------

    async def calculate(
        self,
        actor: Actor,
        financial_year_id: int,
        settings: Settings,
        as_of: date | datetime | None = None,
    ) -> YearAccrual:
        """분배 계산 (적립 엔진 구동 후 CALCULATED)

        재계산 시 워터마크 이후부터 이어서 적립하므로 중복 적립 없음.

        Raises:
            PermissionDenied, NotFound, InvalidStateTransition, ValidationError
        """
        require_admin(actor, "calculate distributions")
        as_of_date = resolve_as_of(as_of, settings)

        async with self.db.transaction():
            year = await self.store.get(financial_year_id)
            machine = FinancialYearStateMachine(year.status)
            machine.require_editable("calculate")

            if as_of_date < year.start_date:
                raise ValidationError("Financial year has not started yet")

            result = await self.accrual.accrue_year(
                financial_year_id,
                as_of_date,
                settings,
                allowed_statuses=FinancialYearStateMachine.EDITABLE_STATES,
            )

            if not await self.store.list_distributions(financial_year_id):
                raise ValidationError("Total invested amount must be greater than 0")

            await self.store.update(
                financial_year_id,
                status=machine.transition(FinancialYearStatus.CALCULATED),
            )

        logger.info(
            f"Financial year calculated: {financial_year_id}",
            extra={
                "financial_year_id": financial_year_id,
                "days_accrued": result.days_accrued,
                "actor": actor.id,
            },
        )
        return result

    async def approve(
        self,
        actor: Actor,
        financial_year_id: int,
        settings: Settings,
    ) -> ApprovalResult:
        """승인 (누적 이익 실현)

        CALCULATED 또는 워터마크가 end_date에 도달한 PENDING만 승인 가능.
        분배마다 rollover 비율만큼 ROLLOVER(원금 적립), 나머지는 PROFIT
        (미인출 이익, rollover_amount)으로 기록한다.
        한 행이라도 실패하면 전체 롤백.

        Raises:
            PermissionDenied, NotFound, InvalidStateTransition, ValidationError
        """
        require_admin(actor, "approve financial years")

        async with self.db.transaction():
            year = await self.store.get(financial_year_id)
            machine = FinancialYearStateMachine(year.status)

            approvable = year.status == FinancialYearStatus.CALCULATED.value or (
                year.status == FinancialYearStatus.PENDING.value and year.is_fully_accrued
            )
            if not approvable:
                raise InvalidStateTransition(
                    f"Financial year {financial_year_id} must be CALCULATED "
                    f"(or fully accrued) before approving, got '{year.status}'"
                )

            distributions = await self.store.list_distributions(financial_year_id)
            if not distributions:
                raise ValidationError(
                    "No distributions exist for this financial year. Run calculate first."
                )

            pct = year.effective_rollover_percentage
            total_rollover = ZERO
            total_profit = ZERO
            count = 0

            for dist in distributions:
                profit = dist.accumulated_profit
                rollover_part = quantize_amount(profit * pct / HUNDRED)
                payout_part = profit - rollover_part

                await self.journal.record_realization(
                    actor, dist.investor_id, TransactionKind.ROLLOVER,
                    rollover_part, financial_year_id, settings,
                )
                await self.journal.record_realization(
                    actor, dist.investor_id, TransactionKind.PROFIT,
                    payout_part, financial_year_id, settings,
                )

                total_rollover += rollover_part
                total_profit += payout_part
                count += 1

            approved_at = now_utc()
            await self.store.update(
                financial_year_id,
                status=machine.transition(FinancialYearStatus.APPROVED),
                approved_by=actor.id,
                approved_at=approved_at.isoformat(),
            )

        logger.info(
            f"Financial year approved: {financial_year_id} "
            f"({count} investors, rollover={total_rollover}, profit={total_profit})",
            extra={"financial_year_id": financial_year_id, "actor": actor.id},
        )
        return ApprovalResult(
            financial_year_id=financial_year_id,
            approved_count=count,
            total_credited=total_rollover + total_profit,
            total_rollover=total_rollover,
            total_profit=total_profit,
            approved_at=approved_at,
        )

    async def close(self, actor: Actor, financial_year_id: int) -> FinancialYear:
        """마감 (APPROVED → CLOSED)

        Raises:
            PermissionDenied, NotFound, InvalidStateTransition
        """
        require_admin(actor, "close financial years")

        async with self.db.transaction():
            year = await self.store.get(financial_year_id)
            machine = FinancialYearStateMachine(year.status)
            await self.store.update(
                financial_year_id,
                status=machine.transition(FinancialYearStatus.CLOSED),
                closed_at=now_utc().isoformat(),
            )

        logger.info(
            f"Financial year closed: {financial_year_id}",
            extra={"financial_year_id": financial_year_id, "actor": actor.id},
        )
        return await self.store.get(financial_year_id)

    async def delete(self, actor: Actor, financial_year_id: int) -> int:
        """삭제 (CLOSED만)

        연결된 거래를 최신순으로 취소한 뒤 분배와 회계연도를 삭제한다.
        취소가 하나라도 실패하면 (InsufficientBalance 등) 전체 롤백.

        Returns:
            취소한 거래 수
        """
        require_admin(actor, "delete financial years")

        async with self.db.transaction():
            year = await self.store.get(financial_year_id)
            if year.status != FinancialYearStatus.CLOSED.value:
                raise InvalidStateTransition(
                    f"Only CLOSED financial years can be deleted, got '{year.status}'"
                )

            canceled = 0
            for tx in await self.journal.list_for_year(financial_year_id):
                if tx.status == TransactionStatus.CANCELED.value:
                    continue
                await self.journal.cancel(actor, tx.transaction_id)
                canceled += 1

            await self.store.delete_distributions(financial_year_id)
            await self.store.delete(financial_year_id)

        logger.info(
            f"Financial year deleted: {financial_year_id} ({canceled} transactions canceled)",
            extra={"financial_year_id": financial_year_id, "actor": actor.id},
        )
        return canceled

    # -------------------------------------------------------------------------
    # 조회
    # -------------------------------------------------------------------------

    async def get(self, financial_year_id: int) -> FinancialYear:
        return await self.store.get(financial_year_id)

    async def get_distributions(self, financial_year_id: int) -> list[Distribution]:
        """분배 목록 (회계연도 없으면 NotFound)"""
        await self.store.get(financial_year_id)
        return await self.store.list_distributions(financial_year_id)

    async def get_year_summary(
        self,
        financial_year_id: int,
        today: date | None = None,
    ) -> YearSummary:
        """회계연도 + 분배 요약"""
        year = await self.store.get(financial_year_id)
        distributions = await self.store.list_distributions(financial_year_id)

        total = sum((d.accumulated_profit for d in distributions), ZERO)
        count = len(distributions)
        reference = min(today or now_utc().date(), year.end_date)
        days_so_far = max(0, (reference - year.start_date).days + 1)

        return YearSummary(
            year=year,
            distributions=distributions,
            total_investors=count,
            total_accumulated_profit=total,
            average_accumulated_profit=total / count if count else ZERO,
            days_so_far=days_so_far,
        )

    async def list_years(
        self,
        page: int = 1,
        limit: int = Defaults.PAGE_LIMIT,
        status: str | None = None,
    ) -> YearPage:
        """회계연도 목록 (최신 생성순)"""
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be positive")

        status_value = str(status).upper() if status else None
        total = await self.store.count(status_value)
        total_pages = math.ceil(total / limit)
        if total > 0 and page > total_pages:
            raise NotFound(f"Page not found: {page}")

        items = await self.store.list_page((page - 1) * limit, limit, status_value)
        return YearPage(total=total, total_pages=total_pages, current_page=page, items=items)

    async def list_ready_for_approval(self) -> list[FinancialYear]:
        """워터마크가 end_date에 도달한 PENDING 회계연도 (자동 승인 대상)"""
        years = await self.store.list_by_status(FinancialYearStatus.PENDING.value)
        return [year for year in years if year.is_fully_accrued]
