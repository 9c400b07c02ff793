"""
SettingsStore - 통화/환율/타임존 설정

config_store의 "settings" 키를 불변 스냅샷(Settings)으로 제공.
각 작업은 시작 시 스냅샷을 한 번 읽어 명시적으로 전달받는다.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from core.errors import PermissionDenied, ValidationError
from core.storage.config_store import ConfigStore
from core.types import Actor
from core.utils.timezone import get_zone

logger = logging.getLogger(__name__)

SETTINGS_KEY = "settings"


@dataclass(frozen=True)
class Settings:
    """설정 스냅샷 (불변)

    pivot_rate: 1 pivot_currency = pivot_rate default_currency.
    None이면 환율 미설정 (통화 변환 시 ConfigurationMissing).
    """

    pivot_currency: str
    default_currency: str
    pivot_rate: Decimal | None
    timezone: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Settings":
        rate = data.get("pivot_rate")
        return cls(
            pivot_currency=data["pivot_currency"],
            default_currency=data["default_currency"],
            pivot_rate=Decimal(str(rate)) if rate not in (None, "") else None,
            timezone=data.get("timezone") or "UTC",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "pivot_currency": self.pivot_currency,
            "default_currency": self.default_currency,
            "pivot_rate": str(self.pivot_rate) if self.pivot_rate is not None else None,
            "timezone": self.timezone,
        }


class SettingsStore:
    """설정 조회/변경

    Args:
        config_store: ConfigStore 인스턴스
    """

    def __init__(self, config_store: ConfigStore):
        self.config_store = config_store

    async def get_settings(self) -> Settings:
        """현재 설정 스냅샷 (항상 DB에서 읽음)"""
        data = await self.config_store.get(SETTINGS_KEY, use_cache=False)
        return Settings.from_dict(data)

    async def update_settings(self, actor: Actor, patch: dict[str, Any]) -> Settings:
        """설정 변경

        default_currency, timezone은 모든 사용자가 변경 가능.
        pivot_rate는 관리자만 변경 가능.

        Args:
            actor: 호출자
            patch: 변경할 필드

        Returns:
            변경 후 설정

        Raises:
            PermissionDenied: 비관리자가 pivot_rate 변경
            ValidationError: 잘못된 환율/타임존/알 수 없는 필드
        """
        unknown = set(patch) - {"default_currency", "timezone", "pivot_rate"}
        if unknown:
            raise ValidationError(f"Unknown settings fields: {sorted(unknown)}")

        current = (await self.get_settings()).to_dict()

        if "pivot_rate" in patch:
            if not actor.is_admin:
                raise PermissionDenied("Only admin can update pivot_rate")
            try:
                rate = Decimal(str(patch["pivot_rate"]))
            except InvalidOperation as e:
                raise ValidationError(f"Invalid pivot_rate: {patch['pivot_rate']!r}") from e
            if not rate.is_finite() or rate <= 0:
                raise ValidationError("pivot_rate must be greater than 0")
            current["pivot_rate"] = str(rate)

        if "timezone" in patch:
            get_zone(patch["timezone"])
            current["timezone"] = patch["timezone"]

        if "default_currency" in patch:
            currency = str(patch["default_currency"]).strip().upper()
            if not currency:
                raise ValidationError("default_currency must not be empty")
            current["default_currency"] = currency

        await self.config_store.set(SETTINGS_KEY, current, updated_by=actor.id)

        logger.info(
            "Settings updated",
            extra={"actor": actor.id, "fields": sorted(patch)},
        )
        return Settings.from_dict(current)
