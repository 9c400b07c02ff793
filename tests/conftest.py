"""
pytest 공통 fixture 정의

인메모리 SQLite + 기본 설정 + 관리자/투자자 Actor
"""

import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncGenerator, Awaitable, Callable

import pytest

from adapters.db.sqlite_adapter import SQLiteAdapter, init_schema
from core.domain.models import Investor
from core.service import FundService
from core.storage.settings_store import Settings
from core.types import Actor

# 모든 회계연도 시작일보다 이전 (적립 대상 보장)
EARLY = datetime(2020, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def temp_dir() -> Path:
    """OS 독립적인 임시 디렉토리 생성"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
async def db() -> AsyncGenerator[SQLiteAdapter, None]:
    """스키마가 생성된 인메모리 DB"""
    adapter = SQLiteAdapter(":memory:")
    await adapter.connect()
    await init_schema(adapter)
    yield adapter
    await adapter.close()


@pytest.fixture
def admin() -> Actor:
    return Actor.admin("owner")


@pytest.fixture
def investor_actor() -> Actor:
    return Actor.investor("alice")


@pytest.fixture
async def service(db: SQLiteAdapter) -> FundService:
    """기본 설정이 생성된 FundService"""
    svc = FundService(db)
    await svc.initialize()
    return svc


@pytest.fixture
async def settings(service: FundService, admin: Actor) -> Settings:
    """환율 설정 완료 스냅샷 (1 USD = 1000 IQD)"""
    return await service.update_settings(admin, {"pivot_rate": "1000"})


@pytest.fixture
def make_investor(
    service: FundService,
    admin: Actor,
    settings: Settings,
) -> Callable[..., Awaitable[Investor]]:
    """투자자 생성 + (선택) USD 입금"""

    async def _make(
        name: str = "investor",
        deposit: str | None = None,
        created_at: datetime = EARLY,
    ) -> Investor:
        investor = await service.create_investor(name, created_at=created_at)
        if deposit is not None:
            await service.record_transaction(
                admin, investor.investor_id, "DEPOSIT", deposit, "USD", ts=created_at
            )
        return await service.get_investor(investor.investor_id)

    return _make
