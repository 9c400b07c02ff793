"""
하드코딩 상수 - 변경될 일이 거의 없는 고정값

중요: 경로는 반드시 pathlib.Path 사용 (Windows/Linux 크로스 플랫폼)
"""

from decimal import Decimal
from pathlib import Path


# 프로젝트 루트 (이 파일 기준 2단계 상위)
PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent


class Defaults:
    """기본값 상수"""

    PIVOT_CURRENCY: str = "USD"
    DEFAULT_CURRENCY: str = "IQD"
    TIMEZONE: str = "UTC"

    SCHEDULER_INTERVAL_SEC: int = 3600  # 1시간마다 tick (하루 1회만 실행)

    PAGE_LIMIT: int = 10


class Paths:
    """프로젝트 경로 상수 (pathlib 사용 - OS 독립적)"""

    # 디렉토리
    CONFIG_DIR: Path = PROJECT_ROOT / "config"
    DATA_DIR: Path = PROJECT_ROOT / "data"
    LOGS_DIR: Path = PROJECT_ROOT / "logs"

    # 설정 파일
    CONFIG_FILE: Path = CONFIG_DIR / "fund.yaml"

    # DB 파일
    DB_FILE: Path = DATA_DIR / "fund.db"


class Precision:
    """금액 비교 허용 오차"""

    CURRENCY_EPSILON: Decimal = Decimal("1e-9")  # 잔액 불변식 검증
    AMOUNT_QUANTUM: Decimal = Decimal("1e-10")  # 기준통화 금액 저장 자릿수
