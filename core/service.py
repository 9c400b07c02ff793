"""
FundService - 펀드 코어 진입점

외부 계층(관리 CLI, 스케줄러, API 등)에 노출되는 연산 모음.
각 연산은 시작 시 설정 스냅샷을 한 번 읽어 하위 컴포넌트에 명시적으로 전달한다.

사용 예시:
```python
async with SQLiteAdapter(db_path) as db:
    await init_schema(db)
    service = FundService(db)
    await service.initialize()

    admin = Actor.admin("owner")
    investor = await service.create_investor("Alice")
    await service.record_transaction(admin, investor.investor_id, "DEPOSIT", "1000", "USD")

    year = await service.create_financial_year(admin, "2026-01-01", "2026-12-31", "3650")
    report = await service.run_accrual(as_of=date(2026, 1, 10))
```
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.constants import Defaults
from core.domain.models import Distribution, FinancialYear, FundTransaction, Investor
from core.fiscal.accrual import AccrualEngine, AccrualReport, YearAccrual
from core.fiscal.service import ApprovalResult, FinancialYearService, YearPage, YearSummary
from core.ledger.investor_ledger import BalanceAudit, InvestorLedger
from core.ledger.journal import TransactionJournal, TransactionPage
from core.storage.config_store import ConfigStore
from core.storage.investor_store import InvestorStore
from core.storage.settings_store import Settings, SettingsStore
from core.types import Actor
from core.utils.timezone import local_date, now_utc

logger = logging.getLogger(__name__)


class FundService:
    """펀드 코어 서비스

    Args:
        db: SQLiteAdapter 인스턴스
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db
        self.config_store = ConfigStore(db)
        self.settings_store = SettingsStore(self.config_store)
        self.investors = InvestorStore(db)
        self.ledger = InvestorLedger(db)
        self.journal = TransactionJournal(db, self.ledger)
        self.years = FinancialYearService(db, self.journal)
        self.accrual = AccrualEngine(db)

    async def initialize(self) -> None:
        """기본 설정 보장 (스키마는 init_schema로 먼저 생성)"""
        await self.config_store.ensure_defaults()

    # -------------------------------------------------------------------------
    # 설정
    # -------------------------------------------------------------------------

    async def get_settings(self) -> Settings:
        return await self.settings_store.get_settings()

    async def update_settings(self, actor: Actor, patch: dict[str, Any]) -> Settings:
        return await self.settings_store.update_settings(actor, patch)

    # -------------------------------------------------------------------------
    # 투자자/거래
    # -------------------------------------------------------------------------

    async def create_investor(
        self,
        display_name: str,
        contact: str | None = None,
        created_at: datetime | None = None,
    ) -> Investor:
        return await self.investors.create(display_name, contact, created_at)

    async def get_investor(self, investor_id: int) -> Investor:
        return await self.investors.get(investor_id)

    async def record_transaction(
        self,
        actor: Actor,
        investor_id: int,
        kind: str,
        amount: Any,
        currency: str | None = None,
        note: str | None = None,
        ts: datetime | None = None,
    ) -> FundTransaction:
        """입금/출금 기록 (currency 생략 시 표시 통화)"""
        settings = await self.get_settings()
        return await self.journal.record(
            actor,
            investor_id,
            kind,
            amount,
            currency or settings.default_currency,
            settings,
            note=note,
            ts=ts,
        )

    async def cancel_transaction(self, actor: Actor, transaction_id: int) -> FundTransaction:
        return await self.journal.cancel(actor, transaction_id)

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
        return await self.journal.list_transactions(
            investor_id=investor_id,
            kind=kind,
            status=status,
            financial_year_id=financial_year_id,
            start=start,
            end=end,
            min_amount=min_amount,
            max_amount=max_amount,
            page=page,
            limit=limit,
        )

    async def audit(self, investor_id: int) -> BalanceAudit:
        return await self.ledger.audit(investor_id)

    async def audit_all(self) -> list[BalanceAudit]:
        """전체 투자자 잔액 검증"""
        return [await self.ledger.audit(inv.investor_id) for inv in await self.investors.list_all()]

    # -------------------------------------------------------------------------
    # 회계연도
    # -------------------------------------------------------------------------

    async def create_financial_year(
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
        return await self.years.create(
            actor,
            start_date,
            end_date,
            total_profit_pool,
            label=label,
            rollover_enabled=rollover_enabled,
            rollover_percentage=rollover_percentage,
            auto_rollover=auto_rollover,
            auto_rollover_date=auto_rollover_date,
        )

    async def update_financial_year(
        self,
        actor: Actor,
        financial_year_id: int,
        patch: dict[str, Any],
    ) -> FinancialYear:
        return await self.years.update(actor, financial_year_id, patch)

    async def update_rollover_settings(
        self,
        actor: Actor,
        financial_year_id: int,
        **policy: Any,
    ) -> FinancialYear:
        return await self.years.update_rollover_settings(actor, financial_year_id, **policy)

    async def calculate_year(
        self,
        actor: Actor,
        financial_year_id: int,
        as_of: date | datetime | None = None,
    ) -> YearAccrual:
        settings = await self.get_settings()
        return await self.years.calculate(actor, financial_year_id, settings, as_of)

    async def approve_year(self, actor: Actor, financial_year_id: int) -> ApprovalResult:
        settings = await self.get_settings()
        return await self.years.approve(actor, financial_year_id, settings)

    async def close_year(self, actor: Actor, financial_year_id: int) -> FinancialYear:
        return await self.years.close(actor, financial_year_id)

    async def delete_year(self, actor: Actor, financial_year_id: int) -> int:
        return await self.years.delete(actor, financial_year_id)

    async def run_accrual(self, as_of: date | datetime | None = None) -> AccrualReport:
        """모든 PENDING 회계연도 적립 (스케줄러 또는 수동 백필)"""
        settings = await self.get_settings()
        return await self.accrual.accrue_daily_profits(settings, as_of)

    # -------------------------------------------------------------------------
    # 조회
    # -------------------------------------------------------------------------

    async def get_financial_year(self, financial_year_id: int) -> FinancialYear:
        return await self.years.get(financial_year_id)

    async def get_distributions(self, financial_year_id: int) -> list[Distribution]:
        return await self.years.get_distributions(financial_year_id)

    async def get_year_summary(self, financial_year_id: int) -> YearSummary:
        settings = await self.get_settings()
        today = local_date(now_utc(), settings.timezone)
        return await self.years.get_year_summary(financial_year_id, today)

    async def list_years(
        self,
        page: int = 1,
        limit: int = Defaults.PAGE_LIMIT,
        status: str | None = None,
    ) -> YearPage:
        return await self.years.list_years(page, limit, status)
