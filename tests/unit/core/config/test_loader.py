"""
core/config/loader.py 테스트

fund.yaml 로드, 검증, 싱글톤 테스트
"""

from pathlib import Path

import pytest

from core.config import loader
from core.config.loader import (
    ConfigLoadError,
    FundConfig,
    get_config,
    load_config,
    reset,
)
from core.constants import PROJECT_ROOT, Defaults, Paths


@pytest.fixture
def fund_yaml(temp_dir: Path) -> Path:
    """테스트용 fund.yaml"""
    content = """database:
  path: data/test_fund.db

scheduler:
  interval_sec: 600

logging:
  dir: /var/log/fund
"""
    path = temp_dir / "fund.yaml"
    path.write_text(content, encoding="utf-8")
    return path


class TestLoadConfig:
    """load_config 테스트"""

    def test_load_full_config(self, fund_yaml: Path) -> None:
        """전체 설정 로드"""
        config = load_config(fund_yaml)

        assert config.db_path == PROJECT_ROOT / "data" / "test_fund.db"
        assert config.scheduler_interval_sec == 600
        assert config.log_dir == Path("/var/log/fund")

    def test_empty_file_uses_defaults(self, temp_dir: Path) -> None:
        """빈 파일은 기본값"""
        path = temp_dir / "empty.yaml"
        path.write_text("", encoding="utf-8")

        config = load_config(path)

        assert config.db_path == Paths.DB_FILE
        assert config.scheduler_interval_sec == Defaults.SCHEDULER_INTERVAL_SEC
        assert config.log_dir == Paths.LOGS_DIR

    def test_missing_file(self, temp_dir: Path) -> None:
        """파일 없음"""
        with pytest.raises(ConfigLoadError, match="찾을 수 없습니다"):
            load_config(temp_dir / "nonexistent.yaml")

    def test_invalid_yaml(self, temp_dir: Path) -> None:
        """잘못된 YAML 형식"""
        path = temp_dir / "invalid.yaml"
        path.write_text("database: [unclosed", encoding="utf-8")

        with pytest.raises(ConfigLoadError, match="파싱 실패"):
            load_config(path)

    def test_non_mapping_root(self, temp_dir: Path) -> None:
        """최상위가 리스트"""
        path = temp_dir / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ConfigLoadError):
            load_config(path)

    @pytest.mark.parametrize("interval", ["0", "-5", "abc", "true"])
    def test_invalid_interval(self, temp_dir: Path, interval: str) -> None:
        """잘못된 tick 주기"""
        path = temp_dir / "interval.yaml"
        path.write_text(f"scheduler:\n  interval_sec: {interval}\n", encoding="utf-8")

        with pytest.raises(ConfigLoadError, match="interval_sec"):
            load_config(path)

    def test_frozen(self, fund_yaml: Path) -> None:
        """불변성 확인"""
        config = load_config(fund_yaml)

        with pytest.raises(AttributeError):
            config.scheduler_interval_sec = 1  # type: ignore


class TestGetConfig:
    """get_config 싱글톤 테스트"""

    def test_singleton(self, fund_yaml: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """한 번만 로드"""
        reset()
        monkeypatch.setattr(Paths, "CONFIG_FILE", fund_yaml)

        first = get_config()
        second = get_config()

        assert first is second
        assert isinstance(first, FundConfig)
        reset()

    def test_reset(self, fund_yaml: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """reset 후 재로드"""
        reset()
        monkeypatch.setattr(Paths, "CONFIG_FILE", fund_yaml)
        get_config()

        reset()

        assert loader._config is None
