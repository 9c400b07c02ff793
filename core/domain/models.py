"""
도메인 레코드

Investor, FundTransaction, FinancialYear, Distribution.
각 클래스의 COLUMNS 순서대로 SELECT 한 행을 from_row()로 변환한다.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from core.utils.timezone import parse_ts


def _opt_ts(value: str | None) -> datetime | None:
    return parse_ts(value) if value else None


def _opt_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


@dataclass
class Investor:
    """투자자 잔액 레코드

    amount: 원금 (적립 지분 계산 기준)
    rollover_amount: 실현되었으나 인출되지 않은 이익 (출금 시 먼저 차감)
    total_amount: amount + rollover_amount 캐시
    """

    investor_id: int
    display_name: str
    contact: str | None
    amount: Decimal
    rollover_amount: Decimal
    total_amount: Decimal
    created_at: datetime

    COLUMNS = (
        "investor_id, display_name, contact, amount, rollover_amount, "
        "total_amount, created_at"
    )

    @classmethod
    def from_row(cls, row: tuple[Any, ...]) -> Investor:
        return cls(
            investor_id=row[0],
            display_name=row[1],
            contact=row[2],
            amount=Decimal(row[3]),
            rollover_amount=Decimal(row[4]),
            total_amount=Decimal(row[5]),
            created_at=parse_ts(row[6]),
        )


@dataclass
class FundTransaction:
    """거래 저널 행

    amount/currency는 입력 그대로, pivot_rate는 생성 시점 환율.
    취소 시 현재 환율이 아닌 pivot_rate로 역산한다.
    """

    transaction_id: int
    investor_id: int
    kind: str
    amount: Decimal
    currency: str
    pivot_rate: Decimal
    pivot_amount: Decimal
    withdraw_source: str
    withdraw_from_principal: Decimal
    status: str
    ts: datetime
    financial_year_id: int | None
    actor_id: str
    note: str | None = None
    canceled_at: datetime | None = None
    canceled_by: str | None = None

    COLUMNS = (
        "transaction_id, investor_id, kind, amount, currency, pivot_rate, "
        "pivot_amount, withdraw_source, withdraw_from_principal, status, ts, "
        "financial_year_id, actor_id, note, canceled_at, canceled_by"
    )

    @classmethod
    def from_row(cls, row: tuple[Any, ...]) -> FundTransaction:
        return cls(
            transaction_id=row[0],
            investor_id=row[1],
            kind=row[2],
            amount=Decimal(row[3]),
            currency=row[4],
            pivot_rate=Decimal(row[5]),
            pivot_amount=Decimal(row[6]),
            withdraw_source=row[7],
            withdraw_from_principal=Decimal(row[8]),
            status=row[9],
            ts=parse_ts(row[10]),
            financial_year_id=row[11],
            actor_id=row[12],
            note=row[13],
            canceled_at=_opt_ts(row[14]),
            canceled_by=row[15],
        )


@dataclass
class FinancialYear:
    """회계연도 (이익 분배 기간)

    distributed_through: 적립이 완료된 마지막 로컬 날짜 (워터마크).
    None이면 아직 적립 전.
    """

    financial_year_id: int
    label: str
    total_profit_pool: Decimal
    start_date: date
    end_date: date
    total_days: int
    daily_profit: Decimal
    rollover_enabled: bool
    rollover_percentage: Decimal
    auto_rollover: bool
    auto_rollover_date: date | None
    status: str
    distributed_through: date | None
    created_by: str
    approved_by: str | None
    approved_at: datetime | None
    closed_at: datetime | None
    created_at: datetime
    updated_at: datetime

    COLUMNS = (
        "financial_year_id, label, total_profit_pool, start_date, end_date, "
        "total_days, daily_profit, rollover_enabled, rollover_percentage, "
        "auto_rollover, auto_rollover_date, status, distributed_through, "
        "created_by, approved_by, approved_at, closed_at, created_at, updated_at"
    )

    @classmethod
    def from_row(cls, row: tuple[Any, ...]) -> FinancialYear:
        return cls(
            financial_year_id=row[0],
            label=row[1],
            total_profit_pool=Decimal(row[2]),
            start_date=date.fromisoformat(row[3]),
            end_date=date.fromisoformat(row[4]),
            total_days=row[5],
            daily_profit=Decimal(row[6]),
            rollover_enabled=bool(row[7]),
            rollover_percentage=Decimal(row[8]),
            auto_rollover=bool(row[9]),
            auto_rollover_date=_opt_date(row[10]),
            status=row[11],
            distributed_through=_opt_date(row[12]),
            created_by=row[13],
            approved_by=row[14],
            approved_at=_opt_ts(row[15]),
            closed_at=_opt_ts(row[16]),
            created_at=parse_ts(row[17]),
            updated_at=parse_ts(row[18]),
        )

    @property
    def effective_rollover_percentage(self) -> Decimal:
        """승인 시 적용할 rollover 비율 (비활성화면 0)"""
        return self.rollover_percentage if self.rollover_enabled else Decimal("0")

    @property
    def is_fully_accrued(self) -> bool:
        """워터마크가 종료일에 도달했는지"""
        return self.distributed_through is not None and self.distributed_through >= self.end_date


@dataclass
class Distribution:
    """투자자 × 회계연도 분배 레코드"""

    distribution_id: int
    financial_year_id: int
    investor_id: int
    capital_at_computation: Decimal
    share_percentage: Decimal
    days_active: int
    daily_profit_share: Decimal
    accumulated_profit: Decimal
    is_rollover: bool

    COLUMNS = (
        "distribution_id, financial_year_id, investor_id, capital_at_computation, "
        "share_percentage, days_active, daily_profit_share, accumulated_profit, "
        "is_rollover"
    )

    @classmethod
    def from_row(cls, row: tuple[Any, ...]) -> Distribution:
        return cls(
            distribution_id=row[0],
            financial_year_id=row[1],
            investor_id=row[2],
            capital_at_computation=Decimal(row[3]),
            share_percentage=Decimal(row[4]),
            days_active=row[5],
            daily_profit_share=Decimal(row[6]),
            accumulated_profit=Decimal(row[7]),
            is_rollover=bool(row[8]),
        )
