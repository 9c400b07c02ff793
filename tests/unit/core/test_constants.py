"""
core/constants.py 테스트

모든 경로가 pathlib.Path 타입이고, 상수가 정상적으로 접근 가능한지 확인
"""

from decimal import Decimal
from pathlib import Path

from core.constants import PROJECT_ROOT, Defaults, Paths, Precision


class TestProjectRoot:
    """PROJECT_ROOT 테스트"""

    def test_project_root_is_absolute(self) -> None:
        """PROJECT_ROOT가 절대 경로인지 확인"""
        assert isinstance(PROJECT_ROOT, Path)
        assert PROJECT_ROOT.is_absolute()

    def test_project_root_contains_core_directory(self) -> None:
        """PROJECT_ROOT에 core 디렉토리가 있는지 확인"""
        assert (PROJECT_ROOT / "core").exists()


class TestPaths:
    """Paths 테스트"""

    def test_all_paths_under_project_root(self) -> None:
        for path in (Paths.CONFIG_DIR, Paths.DATA_DIR, Paths.LOGS_DIR, Paths.CONFIG_FILE, Paths.DB_FILE):
            assert isinstance(path, Path)
            assert PROJECT_ROOT in path.parents

    def test_file_names(self) -> None:
        assert Paths.CONFIG_FILE.name == "fund.yaml"
        assert Paths.DB_FILE.suffix == ".db"


class TestDefaults:
    """Defaults/Precision 테스트"""

    def test_currencies(self) -> None:
        assert Defaults.PIVOT_CURRENCY == "USD"
        assert Defaults.PIVOT_CURRENCY != Defaults.DEFAULT_CURRENCY

    def test_precision_is_decimal(self) -> None:
        assert Precision.CURRENCY_EPSILON == Decimal("1e-9")
        assert Precision.AMOUNT_QUANTUM < Precision.CURRENCY_EPSILON
