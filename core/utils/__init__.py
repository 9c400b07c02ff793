"""
유틸리티 패키지

타임존 처리, 일 단위 경계 계산 등 공통 유틸리티
"""

from core.utils.timezone import (
    end_of_day_utc,
    ensure_utc,
    get_zone,
    local_date,
    now_utc,
    parse_date,
    parse_ts,
    to_local,
)

__all__ = [
    "get_zone",
    "ensure_utc",
    "to_local",
    "local_date",
    "end_of_day_utc",
    "now_utc",
    "parse_date",
    "parse_ts",
]
