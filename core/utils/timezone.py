"""
타임존 유틸리티

내부 저장: UTC | 일 단위 계산: 설정된 타임존의 로컬 날짜 원칙 준수를 위한 헬퍼 함수
"""

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from core.errors import ValidationError


def get_zone(name: str) -> ZoneInfo:
    """IANA 타임존 이름을 ZoneInfo로 변환

    Args:
        name: 타임존 이름 (예: "Asia/Baghdad", "UTC")

    Returns:
        ZoneInfo

    Raises:
        ValidationError: 알 수 없는 타임존
    """
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValidationError(f"Unknown timezone: {name!r}") from e


def ensure_utc(dt: datetime) -> datetime:
    """datetime을 UTC로 정규화 (naive면 UTC로 간주)"""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_local(dt: datetime, tz_name: str) -> datetime:
    """UTC datetime을 로컬 타임존으로 변환

    Example:
        >>> utc_dt = datetime(2026, 2, 20, 22, 0, 0, tzinfo=timezone.utc)
        >>> to_local(utc_dt, "Asia/Baghdad").day
        21
    """
    return ensure_utc(dt).astimezone(get_zone(tz_name))


def local_date(dt: datetime, tz_name: str) -> date:
    """해당 시각의 로컬 날짜"""
    return to_local(dt, tz_name).date()


def end_of_day_utc(day: date, tz_name: str) -> datetime:
    """로컬 날짜가 끝나는 시각(다음날 00:00, 배타적 경계)을 UTC로 반환

    end-of(day) 이전에 생성된 투자자가 해당 일자 적립 대상.
    """
    next_midnight = datetime.combine(day + timedelta(days=1), time.min, tzinfo=get_zone(tz_name))
    return next_midnight.astimezone(timezone.utc)


def now_utc() -> datetime:
    """현재 UTC 시간 반환 (타임존 명시)

    datetime.now(timezone.utc)의 축약형.
    """
    return datetime.now(timezone.utc)


def parse_date(value: str | date | datetime) -> date:
    """YYYY-MM-DD 문자열 또는 date/datetime을 date로 변환

    Raises:
        ValidationError: 형식 오류
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid date: {value!r}") from e


def parse_ts(value: str) -> datetime:
    """저장된 ISO 시각 문자열을 UTC datetime으로 변환"""
    return ensure_utc(datetime.fromisoformat(value))
