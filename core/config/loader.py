"""
설정 로더

fund.yaml 로드 및 프로세스 설정 생성
"""

from dataclasses import dataclass
from pathlib import Path

import yaml

from core.constants import PROJECT_ROOT, Defaults, Paths


@dataclass(frozen=True)
class FundConfig:
    """프로세스 설정 (fund.yaml에서 로드)

    불변 데이터 구조로 설정 변경 방지.
    환율/타임존 같은 런타임 설정은 config_store에서 관리한다.
    """

    db_path: Path
    scheduler_interval_sec: int
    log_dir: Path


class ConfigLoadError(Exception):
    """설정 로드 실패 예외"""

    pass


def _resolve(value: str | None, default: Path) -> Path:
    """상대 경로는 프로젝트 루트 기준"""
    if not value:
        return default
    path = Path(value)
    return path if path.is_absolute() else PROJECT_ROOT / path


def load_config(path: Path | None = None) -> FundConfig:
    """fund.yaml 파일 로드

    Args:
        path: fund.yaml 경로 (None이면 기본 경로 사용)

    Returns:
        FundConfig 인스턴스

    Raises:
        ConfigLoadError: 파일이 없거나 형식이 잘못된 경우
    """
    if path is None:
        path = Paths.CONFIG_FILE

    if not path.exists():
        raise ConfigLoadError(f"fund.yaml 파일을 찾을 수 없습니다: {path}")

    try:
        content = path.read_text(encoding="utf-8")
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"fund.yaml 파싱 실패: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigLoadError("fund.yaml 최상위는 매핑이어야 합니다")

    db_section = data.get("database") or {}
    scheduler_section = data.get("scheduler") or {}
    logging_section = data.get("logging") or {}

    interval = scheduler_section.get("interval_sec", Defaults.SCHEDULER_INTERVAL_SEC)
    if not isinstance(interval, int) or isinstance(interval, bool) or interval <= 0:
        raise ConfigLoadError(
            f"scheduler.interval_sec는 양의 정수여야 합니다: {interval!r}"
        )

    return FundConfig(
        db_path=_resolve(db_section.get("path"), Paths.DB_FILE),
        scheduler_interval_sec=interval,
        log_dir=_resolve(logging_section.get("dir"), Paths.LOGS_DIR),
    )


_config: FundConfig | None = None


def get_config() -> FundConfig:
    """FundConfig 싱글톤 (최초 호출 시 기본 경로에서 로드)"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset() -> None:
    """싱글톤 초기화 (테스트용)"""
    global _config
    _config = None
