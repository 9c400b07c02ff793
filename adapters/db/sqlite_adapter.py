"""
SQLite 어댑터

WAL 모드로 SQLite 연결 관리.
스케줄러와 관리 도구(별도 프로세스)가 동시에 접근 가능하도록 설정.

잔액 변경은 모두 BEGIN IMMEDIATE 트랜잭션 안에서 수행한다.
IMMEDIATE는 시작 시점에 쓰기 잠금을 잡기 때문에, 여러 프로세스가 같은
투자자/회계연도 행을 읽고-수정-쓰기 하더라도 직렬화된다.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

import aiosqlite

logger = logging.getLogger(__name__)


async def create_connection(db_path: Path | str) -> aiosqlite.Connection:
    """SQLite 연결 생성 (WAL 모드)

    Args:
        db_path: DB 파일 경로 (":memory:" 허용)

    Returns:
        aiosqlite 연결 객체
    """
    db_path_str = str(db_path)

    if db_path_str != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path_str)

    await conn.execute("PRAGMA journal_mode=WAL")

    # 동시 접근 설정
    await conn.execute("PRAGMA busy_timeout=30000")  # 30초 대기

    # 외래 키 제약 활성화 (투자자/회계연도 삭제 cascade)
    await conn.execute("PRAGMA foreign_keys=ON")

    logger.info(
        "SQLite 연결 생성",
        extra={"db_path": db_path_str},
    )

    return conn


class SQLiteAdapter:
    """SQLite 어댑터

    WAL 모드로 SQLite 연결 관리.
    트랜잭션 컨텍스트 매니저 제공.

    Args:
        db_path: DB 파일 경로

    사용 예시:
    ```python
    async with SQLiteAdapter(db_path) as db:
        async with db.transaction():
            await db.execute("UPDATE investor SET ...")
            await db.execute("INSERT INTO fund_transaction ...")
    ```
    """

    def __init__(self, db_path: Path | str):
        self.db_path = db_path if str(db_path) == ":memory:" else Path(db_path)
        self._conn: aiosqlite.Connection | None = None
        self._tx_depth: int = 0

    @property
    def is_connected(self) -> bool:
        """연결 상태 확인"""
        return self._conn is not None

    @property
    def in_transaction(self) -> bool:
        """트랜잭션 진행 중 여부"""
        return self._tx_depth > 0

    async def connect(self) -> None:
        """연결 생성"""
        if self._conn is not None:
            return

        self._conn = await create_connection(self.db_path)

    async def close(self) -> None:
        """연결 종료"""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
            self._tx_depth = 0
            logger.info("SQLite 연결 종료")

    async def execute(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> aiosqlite.Cursor:
        """SQL 실행"""
        if self._conn is None:
            raise RuntimeError("Not connected to database")

        if parameters:
            return await self._conn.execute(sql, parameters)
        return await self._conn.execute(sql)

    async def fetchone(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> tuple[Any, ...] | None:
        """단일 행 조회"""
        cursor = await self.execute(sql, parameters)
        return await cursor.fetchone()

    async def fetchall(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> list[tuple[Any, ...]]:
        """전체 행 조회"""
        cursor = await self.execute(sql, parameters)
        return list(await cursor.fetchall())

    async def commit(self) -> None:
        """커밋 (트랜잭션 컨텍스트 안에서는 무시)"""
        if self._conn is not None and self._tx_depth == 0:
            await self._conn.commit()

    async def rollback(self) -> None:
        """롤백"""
        if self._conn is not None:
            await self._conn.rollback()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """트랜잭션 컨텍스트 매니저

        성공 시 자동 커밋, 예외 시 자동 롤백.
        중첩 호출은 바깥 트랜잭션에 합류하며, 가장 바깥에서만 커밋/롤백한다.

        사용 예시:
        ```python
        async with adapter.transaction() as conn:
            await conn.execute("INSERT INTO ...")
            # 성공 시 자동 커밋
        ```
        """
        if self._conn is None:
            raise RuntimeError("Not connected to database")

        if self._tx_depth > 0:
            self._tx_depth += 1
            try:
                yield self._conn
            finally:
                self._tx_depth -= 1
            return

        # 이전 암묵적 트랜잭션이 남아 있으면 먼저 정리
        if self._conn.in_transaction:
            await self._conn.commit()

        await self._conn.execute("BEGIN IMMEDIATE")
        self._tx_depth = 1
        try:
            yield self._conn
            await self._conn.commit()
        except BaseException:
            await self._conn.rollback()
            raise
        finally:
            self._tx_depth = 0

    # -------------------------------------------------------------------------
    # 컨텍스트 매니저
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> "SQLiteAdapter":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


async def init_schema(adapter: SQLiteAdapter) -> None:
    """스키마 초기화 (테이블 생성)

    Args:
        adapter: 연결된 SQLiteAdapter

    금액은 모두 Decimal 문자열(TEXT)로 저장.
    날짜(start_date, end_date, distributed_through)는 YYYY-MM-DD,
    시각은 UTC ISO 8601.
    """
    # config_store
    await adapter.execute("""
        CREATE TABLE IF NOT EXISTS config_store (
            id           INTEGER PRIMARY KEY AUTOINCREMENT,
            config_key   TEXT NOT NULL UNIQUE,
            value_json   TEXT NOT NULL,
            version      INTEGER NOT NULL DEFAULT 1,

            updated_by   TEXT NOT NULL,
            created_at   TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at   TEXT NOT NULL DEFAULT (datetime('now'))
        )
    """)

    # investor (잔액: amount=원금, rollover_amount=미인출 실현이익, total_amount=합계 캐시)
    await adapter.execute("""
        CREATE TABLE IF NOT EXISTS investor (
            investor_id      INTEGER PRIMARY KEY AUTOINCREMENT,
            display_name     TEXT NOT NULL,
            contact          TEXT,

            amount           TEXT NOT NULL DEFAULT '0',
            rollover_amount  TEXT NOT NULL DEFAULT '0',
            total_amount     TEXT NOT NULL DEFAULT '0',

            created_at       TEXT NOT NULL,
            updated_at       TEXT NOT NULL DEFAULT (datetime('now'))
        )
    """)

    # financial_year
    await adapter.execute("""
        CREATE TABLE IF NOT EXISTS financial_year (
            financial_year_id    INTEGER PRIMARY KEY AUTOINCREMENT,
            label                TEXT NOT NULL,
            total_profit_pool    TEXT NOT NULL,
            start_date           TEXT NOT NULL,
            end_date             TEXT NOT NULL,
            total_days           INTEGER NOT NULL,
            daily_profit         TEXT NOT NULL,

            rollover_enabled     INTEGER NOT NULL DEFAULT 0,
            rollover_percentage  TEXT NOT NULL DEFAULT '0',
            auto_rollover        INTEGER NOT NULL DEFAULT 0,
            auto_rollover_date   TEXT,

            status               TEXT NOT NULL,
            distributed_through  TEXT,

            created_by           TEXT NOT NULL,
            approved_by          TEXT,
            approved_at          TEXT,
            closed_at            TEXT,
            created_at           TEXT NOT NULL,
            updated_at           TEXT NOT NULL
        )
    """)

    # fund_transaction (원 통화/금액 + 생성 시점 환율 보관)
    await adapter.execute("""
        CREATE TABLE IF NOT EXISTS fund_transaction (
            transaction_id          INTEGER PRIMARY KEY AUTOINCREMENT,
            investor_id             INTEGER NOT NULL,
            kind                    TEXT NOT NULL,
            amount                  TEXT NOT NULL,
            currency                TEXT NOT NULL,
            pivot_rate              TEXT NOT NULL,
            pivot_amount            TEXT NOT NULL,

            withdraw_source         TEXT NOT NULL DEFAULT 'NONE',
            withdraw_from_principal TEXT NOT NULL DEFAULT '0',

            status                  TEXT NOT NULL DEFAULT 'PENDING',
            ts                      TEXT NOT NULL,
            financial_year_id       INTEGER,

            actor_id                TEXT NOT NULL,
            note                    TEXT,
            canceled_at             TEXT,
            canceled_by             TEXT,

            FOREIGN KEY (investor_id) REFERENCES investor(investor_id)
                ON DELETE CASCADE,
            FOREIGN KEY (financial_year_id) REFERENCES financial_year(financial_year_id)
                ON DELETE SET NULL
        )
    """)

    # distribution (투자자 × 회계연도 1행, upsert)
    await adapter.execute("""
        CREATE TABLE IF NOT EXISTS distribution (
            distribution_id         INTEGER PRIMARY KEY AUTOINCREMENT,
            financial_year_id       INTEGER NOT NULL,
            investor_id             INTEGER NOT NULL,

            capital_at_computation  TEXT NOT NULL DEFAULT '0',
            share_percentage        TEXT NOT NULL DEFAULT '0',
            days_active             INTEGER NOT NULL DEFAULT 0,
            daily_profit_share      TEXT NOT NULL DEFAULT '0',
            accumulated_profit      TEXT NOT NULL DEFAULT '0',
            is_rollover             INTEGER NOT NULL DEFAULT 0,

            updated_at              TEXT NOT NULL DEFAULT (datetime('now')),

            UNIQUE(financial_year_id, investor_id),
            FOREIGN KEY (financial_year_id) REFERENCES financial_year(financial_year_id)
                ON DELETE CASCADE,
            FOREIGN KEY (investor_id) REFERENCES investor(investor_id)
                ON DELETE CASCADE
        )
    """)

    # 인덱스 생성
    await adapter.execute("""
        CREATE INDEX IF NOT EXISTS ix_fund_transaction_investor
        ON fund_transaction(investor_id, ts)
    """)

    await adapter.execute("""
        CREATE INDEX IF NOT EXISTS ix_fund_transaction_year
        ON fund_transaction(financial_year_id)
    """)

    await adapter.execute("""
        CREATE INDEX IF NOT EXISTS ix_financial_year_status
        ON financial_year(status)
    """)

    await adapter.commit()

    logger.info("스키마 초기화 완료")
