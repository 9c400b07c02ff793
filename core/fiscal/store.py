"""
회계연도/분배 저장소

financial_year, distribution 테이블 읽기/쓰기.
상태 검증은 FinancialYearService에서 수행한다.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.domain.models import Distribution, FinancialYear
from core.errors import NotFound
from core.utils.timezone import now_utc

logger = logging.getLogger(__name__)

# update()로 변경 가능한 컬럼
UPDATABLE_COLUMNS = frozenset({
    "label",
    "total_profit_pool",
    "start_date",
    "end_date",
    "total_days",
    "daily_profit",
    "rollover_enabled",
    "rollover_percentage",
    "auto_rollover",
    "auto_rollover_date",
    "status",
    "distributed_through",
    "approved_by",
    "approved_at",
    "closed_at",
})


def _to_db(value: Any) -> Any:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


class FinancialYearStore:
    """회계연도 + 분배 저장소

    Args:
        db: SQLiteAdapter 인스턴스
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db

    # -------------------------------------------------------------------------
    # financial_year
    # -------------------------------------------------------------------------

    async def insert(
        self,
        label: str,
        total_profit_pool: Decimal,
        start_date: date,
        end_date: date,
        total_days: int,
        daily_profit: Decimal,
        rollover_enabled: bool,
        rollover_percentage: Decimal,
        auto_rollover: bool,
        auto_rollover_date: date | None,
        status: str,
        created_by: str,
    ) -> int:
        """회계연도 생성 → financial_year_id"""
        now = now_utc().isoformat()
        async with self.db.transaction():
            cursor = await self.db.execute(
                """
                INSERT INTO financial_year (
                    label, total_profit_pool, start_date, end_date, total_days,
                    daily_profit, rollover_enabled, rollover_percentage,
                    auto_rollover, auto_rollover_date, status, created_by,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    label,
                    str(total_profit_pool),
                    start_date.isoformat(),
                    end_date.isoformat(),
                    total_days,
                    str(daily_profit),
                    int(rollover_enabled),
                    str(rollover_percentage),
                    int(auto_rollover),
                    auto_rollover_date.isoformat() if auto_rollover_date else None,
                    status,
                    created_by,
                    now,
                    now,
                ),
            )
        return cursor.lastrowid

    async def get(self, financial_year_id: int) -> FinancialYear:
        """회계연도 조회

        Raises:
            NotFound: 회계연도 없음
        """
        row = await self.db.fetchone(
            f"SELECT {FinancialYear.COLUMNS} FROM financial_year WHERE financial_year_id = ?",
            (financial_year_id,),
        )
        if row is None:
            raise NotFound(f"Financial year not found: {financial_year_id}")
        return FinancialYear.from_row(row)

    async def list_by_status(self, *statuses: str) -> list[FinancialYear]:
        """상태별 회계연도 (ID 순)"""
        placeholders = ", ".join("?" for _ in statuses)
        rows = await self.db.fetchall(
            f"""
            SELECT {FinancialYear.COLUMNS} FROM financial_year
            WHERE status IN ({placeholders})
            ORDER BY financial_year_id
            """,
            tuple(statuses),
        )
        return [FinancialYear.from_row(row) for row in rows]

    async def count(self, status: str | None = None) -> int:
        if status:
            row = await self.db.fetchone(
                "SELECT COUNT(*) FROM financial_year WHERE status = ?",
                (status,),
            )
        else:
            row = await self.db.fetchone("SELECT COUNT(*) FROM financial_year")
        return row[0] if row else 0

    async def list_page(
        self,
        offset: int,
        limit: int,
        status: str | None = None,
    ) -> list[FinancialYear]:
        """최신 생성순 페이지 조회"""
        where = "WHERE status = ?" if status else ""
        params: tuple[Any, ...] = (status, limit, offset) if status else (limit, offset)
        rows = await self.db.fetchall(
            f"""
            SELECT {FinancialYear.COLUMNS} FROM financial_year
            {where}
            ORDER BY created_at DESC, financial_year_id DESC
            LIMIT ? OFFSET ?
            """,
            params,
        )
        return [FinancialYear.from_row(row) for row in rows]

    async def update(self, financial_year_id: int, **fields: Any) -> None:
        """컬럼 갱신 (updated_at 자동)"""
        unknown = set(fields) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Not updatable: {sorted(unknown)}")

        assignments = ", ".join(f"{name} = ?" for name in fields)
        params = [_to_db(value) for value in fields.values()]
        params.extend([now_utc().isoformat(), financial_year_id])

        async with self.db.transaction():
            await self.db.execute(
                f"""
                UPDATE financial_year
                SET {assignments}, updated_at = ?
                WHERE financial_year_id = ?
                """,
                tuple(params),
            )

    async def delete(self, financial_year_id: int) -> None:
        """회계연도 삭제 (분배 cascade, 거래는 참조 해제)"""
        async with self.db.transaction():
            await self.db.execute(
                "DELETE FROM financial_year WHERE financial_year_id = ?",
                (financial_year_id,),
            )

    # -------------------------------------------------------------------------
    # distribution
    # -------------------------------------------------------------------------

    async def list_distributions(self, financial_year_id: int) -> list[Distribution]:
        """분배 목록 (지분율 내림차순)"""
        rows = await self.db.fetchall(
            f"""
            SELECT {Distribution.COLUMNS} FROM distribution
            WHERE financial_year_id = ?
            ORDER BY CAST(share_percentage AS REAL) DESC, investor_id
            """,
            (financial_year_id,),
        )
        return [Distribution.from_row(row) for row in rows]

    async def upsert_distribution(
        self,
        financial_year_id: int,
        investor_id: int,
        capital_at_computation: Decimal,
        share_percentage: Decimal,
        days_active: int,
        daily_profit_share: Decimal,
        accumulated_profit: Decimal,
        is_rollover: bool,
    ) -> None:
        """분배 행 upsert (값은 호출 측에서 누적 계산)"""
        await self.db.execute(
            """
            INSERT INTO distribution (
                financial_year_id, investor_id, capital_at_computation,
                share_percentage, days_active, daily_profit_share,
                accumulated_profit, is_rollover, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(financial_year_id, investor_id) DO UPDATE SET
                capital_at_computation = excluded.capital_at_computation,
                share_percentage = excluded.share_percentage,
                days_active = excluded.days_active,
                daily_profit_share = excluded.daily_profit_share,
                accumulated_profit = excluded.accumulated_profit,
                is_rollover = excluded.is_rollover,
                updated_at = excluded.updated_at
            """,
            (
                financial_year_id,
                investor_id,
                str(capital_at_computation),
                str(share_percentage),
                days_active,
                str(daily_profit_share),
                str(accumulated_profit),
                int(is_rollover),
                now_utc().isoformat(),
            ),
        )

    async def delete_distributions(self, financial_year_id: int) -> int:
        """분배 전체 삭제 → 삭제 행 수"""
        async with self.db.transaction():
            cursor = await self.db.execute(
                "DELETE FROM distribution WHERE financial_year_id = ?",
                (financial_year_id,),
            )
        return cursor.rowcount
