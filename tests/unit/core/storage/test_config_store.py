"""
ConfigStore 테스트

config_store 테이블 CRUD 테스트
"""

import json

import pytest

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.storage.config_store import (
    ConfigStore,
    DEFAULT_CONFIGS,
    init_default_configs,
)


@pytest.fixture
async def config_store(db: SQLiteAdapter) -> ConfigStore:
    """ConfigStore 인스턴스"""
    return ConfigStore(db)


class TestConfigStoreGet:
    """get() 메서드 테스트"""

    @pytest.mark.asyncio
    async def test_get_returns_default_when_not_exists(
        self,
        config_store: ConfigStore,
    ) -> None:
        """존재하지 않는 키는 기본값 반환"""
        result = await config_store.get("settings")

        assert result == DEFAULT_CONFIGS["settings"]

    @pytest.mark.asyncio
    async def test_get_returns_copy_of_default(
        self,
        config_store: ConfigStore,
    ) -> None:
        """반환값 수정이 기본값에 영향 없음"""
        result = await config_store.get("settings")
        result["pivot_rate"] = "999"

        assert DEFAULT_CONFIGS["settings"]["pivot_rate"] is None

    @pytest.mark.asyncio
    async def test_get_returns_stored_value(
        self,
        config_store: ConfigStore,
    ) -> None:
        """저장된 값 반환"""
        test_value = {"last_run_date": "2026-03-01", "last_run_at": None}
        await config_store.set("profit_scheduler", test_value)

        result = await config_store.get("profit_scheduler")

        assert result == test_value

    @pytest.mark.asyncio
    async def test_get_uses_cache(
        self,
        config_store: ConfigStore,
    ) -> None:
        """캐시 사용 확인"""
        await config_store.set("test_key", {"test": "value"})

        await config_store.get("test_key")

        assert "test_key" in config_store._cache

    @pytest.mark.asyncio
    async def test_get_bypass_cache(
        self,
        config_store: ConfigStore,
        db: SQLiteAdapter,
    ) -> None:
        """캐시 무시하고 DB에서 직접 읽기"""
        await config_store.set("test_key", {"test": "value"})
        await config_store.get("test_key")  # 캐시에 저장

        # 다른 프로세스가 수정한 상황
        await db.execute(
            "UPDATE config_store SET value_json = ? WHERE config_key = ?",
            (json.dumps({"test": "modified"}), "test_key"),
        )
        await db.commit()

        assert await config_store.get("test_key") == {"test": "value"}
        assert await config_store.get("test_key", use_cache=False) == {"test": "modified"}


class TestConfigStoreSet:
    """set() 메서드 테스트"""

    @pytest.mark.asyncio
    async def test_set_increments_version(
        self,
        config_store: ConfigStore,
    ) -> None:
        """업데이트 시 버전 증가"""
        await config_store.set("versioned", {"v": 1})
        assert await config_store.get_version("versioned") == 1

        await config_store.set("versioned", {"v": 2})
        assert await config_store.get_version("versioned") == 2

    @pytest.mark.asyncio
    async def test_set_invalidates_cache(
        self,
        config_store: ConfigStore,
    ) -> None:
        """저장 시 캐시 무효화"""
        await config_store.set("cached", {"v": 1})
        await config_store.get("cached")

        await config_store.set("cached", {"v": 2})

        assert await config_store.get("cached") == {"v": 2}

    @pytest.mark.asyncio
    async def test_set_records_updated_by(
        self,
        config_store: ConfigStore,
        db: SQLiteAdapter,
    ) -> None:
        """업데이트 주체 기록"""
        await config_store.set("who", {"v": 1}, updated_by="admin:owner")

        row = await db.fetchone(
            "SELECT updated_by FROM config_store WHERE config_key = ?",
            ("who",),
        )
        assert row[0] == "admin:owner"

    @pytest.mark.asyncio
    async def test_update_field(
        self,
        config_store: ConfigStore,
    ) -> None:
        """특정 필드만 업데이트"""
        await config_store.ensure_defaults()

        await config_store.update_field("settings", "timezone", "Asia/Baghdad")

        result = await config_store.get("settings")
        assert result["timezone"] == "Asia/Baghdad"
        assert result["pivot_currency"] == DEFAULT_CONFIGS["settings"]["pivot_currency"]


class TestEnsureDefaults:
    """기본 설정 생성 테스트"""

    @pytest.mark.asyncio
    async def test_creates_all_defaults(
        self,
        db: SQLiteAdapter,
    ) -> None:
        """모든 기본 키 생성"""
        await init_default_configs(db)

        for key in DEFAULT_CONFIGS:
            row = await db.fetchone(
                "SELECT 1 FROM config_store WHERE config_key = ?",
                (key,),
            )
            assert row is not None

    @pytest.mark.asyncio
    async def test_does_not_overwrite_existing(
        self,
        config_store: ConfigStore,
    ) -> None:
        """이미 있는 설정은 유지"""
        await config_store.set("settings", {**DEFAULT_CONFIGS["settings"], "pivot_rate": "1310"})

        await config_store.ensure_defaults()

        result = await config_store.get("settings", use_cache=False)
        assert result["pivot_rate"] == "1310"
        assert await config_store.get_version("settings") == 1
