"""
ConfigStore - 런타임 설정 저장소

config_store 테이블을 통해 런타임 설정 관리.
스케줄러와 관리 도구가 공유하는 설정을 저장/조회.

설정 키 구조:
- "settings": 통화/환율/타임존 설정 (SettingsStore가 관리)
- "profit_scheduler": 스케줄러 마지막 실행 일자
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.constants import Defaults

logger = logging.getLogger(__name__)


# 기본 설정값
DEFAULT_CONFIGS: dict[str, dict[str, Any]] = {
    "settings": {
        "pivot_currency": Defaults.PIVOT_CURRENCY,  # 내부 기준 통화
        "default_currency": Defaults.DEFAULT_CURRENCY,  # 표시 통화
        "pivot_rate": None,  # 1 기준통화 = ? 표시통화 (관리자만 변경)
        "timezone": Defaults.TIMEZONE,
    },
    "profit_scheduler": {
        "last_run_date": None,  # 마지막 실행 로컬 날짜 (YYYY-MM-DD)
        "last_run_at": None,  # 마지막 실행 시각 (UTC ISO)
    },
}


class ConfigStore:
    """설정 저장소

    config_store 테이블을 읽고 쓰는 클래스.

    Args:
        db: SQLiteAdapter 인스턴스

    사용 예시:
    ```python
    async with SQLiteAdapter(db_path) as db:
        config_store = ConfigStore(db)

        settings = await config_store.get("settings")
        await config_store.update_field("settings", "timezone", "Asia/Baghdad")
    ```
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db
        self._cache: dict[str, dict[str, Any]] = {}
        self._cache_version: dict[str, int] = {}

    async def get(self, key: str, use_cache: bool = True) -> dict[str, Any]:
        """설정 조회

        Args:
            key: 설정 키
            use_cache: 캐시 사용 여부 (기본 True)

        Returns:
            설정 값 (dict). 없으면 기본값 사본 반환.
        """
        if use_cache and key in self._cache:
            return dict(self._cache[key])

        row = await self.db.fetchone(
            """
            SELECT value_json, version
            FROM config_store
            WHERE config_key = ?
            """,
            (key,),
        )

        if row:
            value = json.loads(row[0]) if isinstance(row[0], str) else row[0]

            # 캐시 갱신
            self._cache[key] = value
            self._cache_version[key] = row[1]

            return dict(value)

        return dict(DEFAULT_CONFIGS.get(key, {}))

    async def get_version(self, key: str) -> int:
        """설정 버전 조회 (없으면 0)"""
        row = await self.db.fetchone(
            "SELECT version FROM config_store WHERE config_key = ?",
            (key,),
        )
        return row[0] if row else 0

    async def set(
        self,
        key: str,
        value: dict[str, Any],
        updated_by: str = "system",
    ) -> None:
        """설정 저장 (UPSERT)

        Args:
            key: 설정 키
            value: 설정 값
            updated_by: 업데이트 주체
        """
        now = datetime.now(timezone.utc).isoformat()
        value_json = json.dumps(value, ensure_ascii=False)

        async with self.db.transaction():
            await self.db.execute(
                """
                INSERT INTO config_store (config_key, value_json, version, updated_by, created_at, updated_at)
                VALUES (?, ?, 1, ?, ?, ?)
                ON CONFLICT(config_key) DO UPDATE SET
                    value_json = excluded.value_json,
                    version = config_store.version + 1,
                    updated_by = excluded.updated_by,
                    updated_at = excluded.updated_at
                """,
                (key, value_json, updated_by, now, now),
            )

        # 캐시 무효화
        self._cache.pop(key, None)
        self._cache_version.pop(key, None)

        logger.info(f"Config '{key}' updated by {updated_by}")

    async def update_field(
        self,
        key: str,
        field: str,
        value: Any,
        updated_by: str = "system",
    ) -> None:
        """설정의 특정 필드만 업데이트"""
        config = await self.get(key, use_cache=False)
        config[field] = value
        await self.set(key, config, updated_by)

    async def ensure_defaults(self) -> None:
        """기본 설정이 없으면 생성

        스케줄러/관리 도구 시작 시 호출하여 필수 설정이 존재하도록 보장.
        """
        for key, default_value in DEFAULT_CONFIGS.items():
            row = await self.db.fetchone(
                "SELECT 1 FROM config_store WHERE config_key = ?",
                (key,),
            )
            if not row:
                await self.set(key, default_value, updated_by="system:init")
                logger.info(f"Created default config: {key}")

    def clear_cache(self) -> None:
        """캐시 초기화"""
        self._cache.clear()
        self._cache_version.clear()


async def init_default_configs(db: SQLiteAdapter) -> None:
    """기본 설정 초기화

    Args:
        db: SQLiteAdapter 인스턴스
    """
    config_store = ConfigStore(db)
    await config_store.ensure_defaults()
