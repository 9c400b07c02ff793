"""
ProfitScheduler

일 단위 이익 적립 + 자동 승인.
외부 타이머가 주기적으로 tick(now)을 호출하며, 설정 타임존 기준
로컬 날짜당 한 번만 실행된다 (마지막 실행 일자는 config_store에 저장).
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from core.fiscal.accrual import AccrualReport, YearFailure
from core.service import FundService
from core.types import Actor
from core.utils.timezone import ensure_utc, local_date, now_utc

logger = logging.getLogger(__name__)

CONFIG_KEY = "profit_scheduler"


@dataclass
class TickReport:
    """tick 실행 결과

    ran이 False면 같은 로컬 날짜에 이미 실행되어 건너뛴 것.
    """

    ran: bool
    local_date: date
    accrual: AccrualReport | None = None
    approved: list[int] = field(default_factory=list)
    failures: list[YearFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class ProfitScheduler:
    """이익 스케줄러

    Args:
        service: FundService 인스턴스
        actor: 자동 승인 주체 (기본: system:profit_scheduler)
    """

    def __init__(self, service: FundService, actor: Actor | None = None):
        self.service = service
        self.config_store = service.config_store
        self.actor = actor or Actor.system("profit_scheduler")
        self._is_running: bool = False

    async def last_run_date(self) -> date | None:
        """마지막 성공 실행 로컬 날짜"""
        state = await self.config_store.get(CONFIG_KEY, use_cache=False)
        value = state.get("last_run_date")
        return date.fromisoformat(value) if value else None

    async def should_run(self, today: date) -> bool:
        if self._is_running:
            return False
        return await self.last_run_date() != today

    async def tick(self, now: datetime | None = None) -> TickReport:
        """스케줄러 tick

        1. now를 설정 타임존의 로컬 날짜로 변환, 오늘 이미 실행했으면 건너뜀
        2. 모든 PENDING 회계연도 적립 (as_of = 오늘)
        3. 워터마크가 end_date에 도달한 PENDING 회계연도 승인 (연도별 격리)
        4. 실패가 없으면 실행 일자 저장 (실패 시 다음 tick에서 재시도)

        Args:
            now: 현재 시각 (None이면 now_utc(), 테스트에서는 임의 시각)
        """
        now = ensure_utc(now) if now else now_utc()
        settings = await self.service.get_settings()
        today = local_date(now, settings.timezone)

        if not await self.should_run(today):
            logger.debug(f"Profit scheduler already ran for {today}")
            return TickReport(ran=False, local_date=today)

        self._is_running = True
        try:
            accrual = await self.service.run_accrual(as_of=today)
            report = TickReport(
                ran=True,
                local_date=today,
                accrual=accrual,
                failures=list(accrual.failures),
            )

            for year in await self.service.years.list_ready_for_approval():
                try:
                    await self.service.approve_year(self.actor, year.financial_year_id)
                except Exception as e:
                    # 회계연도 단위 격리: 승인 트랜잭션은 롤백됨
                    logger.error(
                        f"Auto-approval failed for financial year {year.financial_year_id}: {e}",
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
                report.approved.append(year.financial_year_id)

            if report.ok:
                await self._save_state(today, now)

            logger.info(
                f"Profit scheduler tick for {today}: "
                f"{accrual.processed} accrued, {len(report.approved)} approved, "
                f"{len(report.failures)} failed",
                extra=self._summary(report),
            )
            return report

        finally:
            self._is_running = False

    async def _save_state(self, today: date, now: datetime) -> None:
        await self.config_store.set(
            CONFIG_KEY,
            {"last_run_date": today.isoformat(), "last_run_at": now.isoformat()},
            updated_by=self.actor.id,
        )

    @staticmethod
    def _summary(report: TickReport) -> dict[str, Any]:
        return {
            "local_date": report.local_date.isoformat(),
            "approved": report.approved,
            "failed_years": [f.financial_year_id for f in report.failures],
        }
