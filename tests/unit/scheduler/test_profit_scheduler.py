"""
ProfitScheduler 테스트

로컬 날짜당 1회 실행, 적립 + 자동 승인, 실패 격리/재시도
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from core.service import FundService
from core.types import Actor, FinancialYearStatus
from scheduler.profit_scheduler import CONFIG_KEY, ProfitScheduler


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
async def scheduler(service: FundService, admin: Actor, settings) -> ProfitScheduler:
    """Asia/Baghdad(UTC+3) 타임존 스케줄러"""
    await service.update_settings(admin, {"timezone": "Asia/Baghdad"})
    return ProfitScheduler(service)


class TestDailyGate:
    @pytest.mark.asyncio
    async def test_runs_once_per_local_day(self, scheduler: ProfitScheduler) -> None:
        first = await scheduler.tick(utc(2026, 1, 5, 10, 0))
        # 20:00 UTC = 23:00 Baghdad, 같은 로컬 날짜
        second = await scheduler.tick(utc(2026, 1, 5, 20, 0))

        assert first.ran is True
        assert first.local_date == date(2026, 1, 5)
        assert second.ran is False
        assert await scheduler.last_run_date() == date(2026, 1, 5)

    @pytest.mark.asyncio
    async def test_local_midnight_starts_new_day(self, scheduler: ProfitScheduler) -> None:
        await scheduler.tick(utc(2026, 1, 5, 10, 0))

        # 21:30 UTC = 00:30 Baghdad (다음 날)
        report = await scheduler.tick(utc(2026, 1, 5, 21, 30))

        assert report.ran is True
        assert report.local_date == date(2026, 1, 6)

    @pytest.mark.asyncio
    async def test_state_saved_in_config_store(
        self,
        service: FundService,
        scheduler: ProfitScheduler,
    ) -> None:
        await scheduler.tick(utc(2026, 1, 5, 10, 0))

        state = await service.config_store.get(CONFIG_KEY, use_cache=False)
        assert state["last_run_date"] == "2026-01-05"
        assert state["last_run_at"].startswith("2026-01-05T10:00")

    @pytest.mark.asyncio
    async def test_should_run_without_state(self, scheduler: ProfitScheduler) -> None:
        assert await scheduler.last_run_date() is None
        assert await scheduler.should_run(date(2026, 1, 5)) is True


class TestAccrualAndApproval:
    @pytest.mark.asyncio
    async def test_accrues_through_local_today(
        self,
        service: FundService,
        admin: Actor,
        scheduler: ProfitScheduler,
        make_investor,
    ) -> None:
        await make_investor("a", deposit="1000")
        year = await service.create_financial_year(admin, "2026-01-01", "2026-01-10", "100")

        report = await scheduler.tick(utc(2026, 1, 3, 12, 0))

        assert report.accrual is not None
        assert report.accrual.processed == 1
        assert report.approved == []
        refreshed = await service.get_financial_year(year.financial_year_id)
        assert refreshed.distributed_through == date(2026, 1, 3)
        assert refreshed.status == FinancialYearStatus.PENDING.value

    @pytest.mark.asyncio
    async def test_auto_approves_fully_accrued_year(
        self,
        service: FundService,
        admin: Actor,
        scheduler: ProfitScheduler,
        make_investor,
    ) -> None:
        investor = await make_investor("a", deposit="1000")
        year = await service.create_financial_year(
            admin,
            "2026-01-01",
            "2026-01-03",
            "300",
            rollover_enabled=True,
            rollover_percentage="10",
        )

        report = await scheduler.tick(utc(2026, 1, 4, 6, 0))

        assert report.ok
        assert report.approved == [year.financial_year_id]
        refreshed = await service.get_financial_year(year.financial_year_id)
        assert refreshed.status == FinancialYearStatus.APPROVED.value
        assert refreshed.approved_by == scheduler.actor.id

        after = await service.get_investor(investor.investor_id)
        assert after.amount == Decimal("1030")
        assert after.rollover_amount == Decimal("270")

    @pytest.mark.asyncio
    async def test_not_started_year_is_skipped(
        self,
        service: FundService,
        admin: Actor,
        scheduler: ProfitScheduler,
        make_investor,
    ) -> None:
        await make_investor("a", deposit="1000")
        year = await service.create_financial_year(admin, "2026-02-01", "2026-02-28", "28")

        report = await scheduler.tick(utc(2026, 1, 5, 10, 0))

        assert report.ran is True
        assert report.accrual.skipped == [year.financial_year_id]
        assert (await service.get_financial_year(year.financial_year_id)).distributed_through is None


class TestFailureIsolation:
    @pytest.mark.asyncio
    async def test_approval_failure_retried_next_tick(
        self,
        service: FundService,
        admin: Actor,
        scheduler: ProfitScheduler,
        make_investor,
    ) -> None:
        await make_investor("a", deposit="1000")
        failing = await service.create_financial_year(admin, "2026-01-01", "2026-01-02", "20")
        ok_year = await service.create_financial_year(admin, "2026-01-01", "2026-01-03", "30")

        original = service.approve_year

        async def flaky(actor, financial_year_id):
            if financial_year_id == failing.financial_year_id:
                raise RuntimeError("approval exploded")
            return await original(actor, financial_year_id)

        with patch.object(service, "approve_year", AsyncMock(side_effect=flaky)):
            report = await scheduler.tick(utc(2026, 1, 4, 6, 0))

        assert report.ran is True
        assert not report.ok
        assert report.approved == [ok_year.financial_year_id]
        assert [f.financial_year_id for f in report.failures] == [failing.financial_year_id]
        assert report.failures[0].error_type == "RuntimeError"
        assert (await service.get_financial_year(failing.financial_year_id)).status == "PENDING"

        # 실패한 날은 기록되지 않으므로 같은 날 다음 tick에서 재시도
        assert await scheduler.last_run_date() is None
        retry = await scheduler.tick(utc(2026, 1, 4, 7, 0))

        assert retry.ran is True
        assert retry.ok
        assert retry.approved == [failing.financial_year_id]
        assert await scheduler.last_run_date() == date(2026, 1, 4)

    @pytest.mark.asyncio
    async def test_accrual_failure_is_reported(
        self,
        service: FundService,
        admin: Actor,
        scheduler: ProfitScheduler,
        make_investor,
    ) -> None:
        await make_investor("a", deposit="1000")
        year = await service.create_financial_year(admin, "2026-01-01", "2026-01-10", "100")

        with patch.object(
            service.accrual,
            "accrue_year",
            AsyncMock(side_effect=RuntimeError("db hiccup")),
        ):
            report = await scheduler.tick(utc(2026, 1, 5, 10, 0))

        assert not report.ok
        assert report.failures[0].financial_year_id == year.financial_year_id
        assert await scheduler.last_run_date() is None
