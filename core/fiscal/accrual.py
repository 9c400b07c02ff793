"""
일 단위 이익 적립 엔진

PENDING 회계연도마다 워터마크(distributed_through) 다음 날부터
min(end_date, as_of)까지 하루씩 적립한다.

하루 적립:
    share       = capital / Σcapital
    daily_share = share × year.daily_profit
    accumulated_profit += daily_share   (덮어쓰지 않음)

한 회계연도의 모든 일자 upsert와 워터마크 전진은 한 트랜잭션으로 커밋되므로
재실행해도 중복 적립되지 않는다. 회계연도 간에는 실패가 격리된다.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.domain.models import Distribution, FinancialYear
from core.fiscal.store import FinancialYearStore
from core.ledger.currency import quantize_amount
from core.storage.investor_store import InvestorStore
from core.storage.settings_store import Settings
from core.types import FinancialYearStatus
from core.utils.timezone import end_of_day_utc, local_date, now_utc

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class YearAccrual:
    """회계연도 한 건의 적립 결과"""

    financial_year_id: int
    days_accrued: int
    first_day: date | None
    last_day: date | None
    amount_accrued: Decimal


@dataclass(frozen=True)
class YearFailure:
    """회계연도 처리 실패 (운영자 확인용)"""

    financial_year_id: int
    error_type: str
    message: str


@dataclass
class AccrualReport:
    """accrue_daily_profits 실행 결과"""

    as_of: date
    accrued: list[YearAccrual] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    failures: list[YearFailure] = field(default_factory=list)

    @property
    def processed(self) -> int:
        """적립이 진행된 회계연도 수"""
        return len(self.accrued)

    @property
    def ok(self) -> bool:
        return not self.failures


def resolve_as_of(as_of: date | datetime | None, settings: Settings) -> date:
    """as_of를 설정 타임존 기준 로컬 날짜로 변환 (None이면 오늘)"""
    if as_of is None:
        return local_date(now_utc(), settings.timezone)
    if isinstance(as_of, datetime):
        return local_date(as_of, settings.timezone)
    return as_of


class AccrualEngine:
    """일 단위 적립 엔진

    Args:
        db: SQLiteAdapter 인스턴스
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db
        self.years = FinancialYearStore(db)
        self.investors = InvestorStore(db)

    async def accrue_daily_profits(
        self,
        settings: Settings,
        as_of: date | datetime | None = None,
    ) -> AccrualReport:
        """모든 PENDING 회계연도 적립

        Args:
            settings: 설정 스냅샷 (타임존)
            as_of: 기준일 (None이면 오늘, datetime이면 로컬 날짜로 변환)

        Returns:
            AccrualReport (회계연도별 결과/실패)
        """
        as_of_date = resolve_as_of(as_of, settings)
        report = AccrualReport(as_of=as_of_date)

        for year in await self.years.list_by_status(FinancialYearStatus.PENDING.value):
            try:
                result = await self.accrue_year(year.financial_year_id, as_of_date, settings)
            except Exception as e:
                # 회계연도 단위 격리: 해당 연도 배치는 롤백됨
                logger.error(
                    f"Accrual failed for financial year {year.financial_year_id}: {e}",
                    extra={"financial_year_id": year.financial_year_id},
                    exc_info=True,
                )
                report.failures.append(
                    YearFailure(
                        financial_year_id=year.financial_year_id,
                        error_type=type(e).__name__,
                        message=str(e),
                    )
                )
                continue

            if result.days_accrued > 0:
                report.accrued.append(result)
            else:
                report.skipped.append(year.financial_year_id)

        if report.accrued or report.failures:
            logger.info(
                f"Accrual run as of {as_of_date}: "
                f"{report.processed} accrued, {len(report.skipped)} skipped, "
                f"{len(report.failures)} failed",
            )
        return report

    async def accrue_year(
        self,
        financial_year_id: int,
        through: date,
        settings: Settings,
        allowed_statuses: tuple[str, ...] = (FinancialYearStatus.PENDING.value,),
    ) -> YearAccrual:
        """회계연도 한 건을 through까지 적립 (한 트랜잭션)

        호출 측 트랜잭션이 있으면 합류한다 (calculate).

        Args:
            financial_year_id: 회계연도 ID
            through: 적립 상한일 (end_date와 비교해 작은 값 사용)
            settings: 설정 스냅샷
            allowed_statuses: 적립 허용 상태

        Returns:
            YearAccrual (적립 일수 0이면 건너뜀)
        """
        async with self.db.transaction():
            # 트랜잭션 안에서 다시 읽어 워터마크 경합 방지
            year = await self.years.get(financial_year_id)
            if year.status not in allowed_statuses:
                return YearAccrual(financial_year_id, 0, None, None, ZERO)

            next_day = (
                year.distributed_through + timedelta(days=1)
                if year.distributed_through is not None
                else year.start_date
            )
            limit = min(year.end_date, through)
            if next_day > limit:
                return YearAccrual(financial_year_id, 0, None, None, ZERO)

            distributions = {
                d.investor_id: d for d in await self.years.list_distributions(financial_year_id)
            }

            first_day = next_day
            total_accrued = ZERO
            days = 0
            while next_day <= limit:
                total_accrued += await self._accrue_day(year, next_day, distributions, settings)
                days += 1
                next_day += timedelta(days=1)

            for dist in distributions.values():
                await self.years.upsert_distribution(
                    financial_year_id=financial_year_id,
                    investor_id=dist.investor_id,
                    capital_at_computation=dist.capital_at_computation,
                    share_percentage=dist.share_percentage,
                    days_active=dist.days_active,
                    daily_profit_share=dist.daily_profit_share,
                    accumulated_profit=dist.accumulated_profit,
                    is_rollover=dist.is_rollover,
                )

            await self.years.update(financial_year_id, distributed_through=limit)

        logger.info(
            f"Financial year {financial_year_id} accrued {days} day(s) through {limit}",
            extra={
                "financial_year_id": financial_year_id,
                "first_day": first_day.isoformat(),
                "amount_accrued": str(total_accrued),
            },
        )
        return YearAccrual(financial_year_id, days, first_day, limit, total_accrued)

    async def _accrue_day(
        self,
        year: FinancialYear,
        day: date,
        distributions: dict[int, Distribution],
        settings: Settings,
    ) -> Decimal:
        """하루치 적립을 distributions(메모리)에 반영 → 적립 합계"""
        eligible = await self.investors.list_with_capital(
            created_before=end_of_day_utc(day, settings.timezone)
        )
        total_capital = sum((inv.amount for inv in eligible), ZERO)

        # 당일 대상이 아닌 기존 분배는 지분 0 (누적 이익은 유지)
        active_ids = {inv.investor_id for inv in eligible}
        for investor_id, dist in distributions.items():
            if investor_id not in active_ids:
                dist.share_percentage = ZERO
                dist.daily_profit_share = ZERO

        if total_capital <= ZERO:
            logger.warning(
                f"Financial year {year.financial_year_id}: no capital on {day}, "
                f"daily profit {year.daily_profit} left unallocated",
            )
            return ZERO

        accrued = ZERO
        for inv in eligible:
            share = inv.amount / total_capital
            daily_share = quantize_amount(share * year.daily_profit)

            dist = distributions.get(inv.investor_id)
            if dist is None:
                dist = Distribution(
                    distribution_id=0,
                    financial_year_id=year.financial_year_id,
                    investor_id=inv.investor_id,
                    capital_at_computation=ZERO,
                    share_percentage=ZERO,
                    days_active=0,
                    daily_profit_share=ZERO,
                    accumulated_profit=ZERO,
                    is_rollover=year.rollover_enabled,
                )
                distributions[inv.investor_id] = dist

            dist.capital_at_computation = inv.amount
            dist.share_percentage = quantize_amount(share * HUNDRED)
            dist.daily_profit_share = daily_share
            dist.accumulated_profit += daily_share
            dist.days_active += 1
            dist.is_rollover = year.rollover_enabled
            accrued += daily_share

        return accrued
