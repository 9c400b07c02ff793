"""
InvestorStore - 투자자 레코드 저장소

투자자 생성/조회만 담당 (수정은 InvestorLedger.apply_delta 전용).
투자자 CRUD·일괄 등록은 외부 계층이 이 저장소를 통해 수행한다.
"""

import logging
from datetime import datetime
from decimal import Decimal

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.domain.models import Investor
from core.errors import NotFound, ValidationError
from core.utils.timezone import ensure_utc, now_utc

logger = logging.getLogger(__name__)


class InvestorStore:
    """투자자 저장소

    Args:
        db: SQLiteAdapter 인스턴스
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db

    async def create(
        self,
        display_name: str,
        contact: str | None = None,
        created_at: datetime | None = None,
    ) -> Investor:
        """투자자 생성 (잔액 0)

        초기 자금은 DEPOSIT 거래로 입력한다.

        Args:
            display_name: 표시 이름
            contact: 연락처
            created_at: 적립 대상 시작 시각 (None이면 현재)
        """
        if not display_name or not display_name.strip():
            raise ValidationError("display_name is required")

        ts = ensure_utc(created_at) if created_at else now_utc()

        async with self.db.transaction():
            cursor = await self.db.execute(
                """
                INSERT INTO investor (display_name, contact, amount, rollover_amount,
                                      total_amount, created_at, updated_at)
                VALUES (?, ?, '0', '0', '0', ?, ?)
                """,
                (display_name.strip(), contact, ts.isoformat(), ts.isoformat()),
            )
            investor_id = cursor.lastrowid

        logger.info(f"Investor created: {investor_id}", extra={"investor_id": investor_id})
        return await self.get(investor_id)

    async def find(self, investor_id: int) -> Investor | None:
        """투자자 조회 (없으면 None)"""
        row = await self.db.fetchone(
            f"SELECT {Investor.COLUMNS} FROM investor WHERE investor_id = ?",
            (investor_id,),
        )
        return Investor.from_row(row) if row else None

    async def get(self, investor_id: int) -> Investor:
        """투자자 조회

        Raises:
            NotFound: 투자자 없음
        """
        investor = await self.find(investor_id)
        if investor is None:
            raise NotFound(f"Investor not found: {investor_id}")
        return investor

    async def list_all(self) -> list[Investor]:
        """전체 투자자 (ID 순)"""
        rows = await self.db.fetchall(
            f"SELECT {Investor.COLUMNS} FROM investor ORDER BY investor_id"
        )
        return [Investor.from_row(row) for row in rows]

    async def list_with_capital(self, created_before: datetime | None = None) -> list[Investor]:
        """원금이 0보다 큰 투자자

        Args:
            created_before: 이 시각 이전(배타적)에 생성된 투자자만 (None이면 전체)
        """
        investors = [inv for inv in await self.list_all() if inv.amount > Decimal("0")]
        if created_before is None:
            return investors

        cutoff = ensure_utc(created_before)
        return [inv for inv in investors if inv.created_at < cutoff]

    async def delete(self, investor_id: int) -> None:
        """투자자 삭제 (거래/분배 cascade)"""
        await self.get(investor_id)
        async with self.db.transaction():
            await self.db.execute(
                "DELETE FROM investor WHERE investor_id = ?",
                (investor_id,),
            )
        logger.info(f"Investor deleted: {investor_id}", extra={"investor_id": investor_id})
