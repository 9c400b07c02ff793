"""
core/types.py 테스트

모든 Enum이 문자열 직렬화 가능하고, Actor 권한 확인이 올바르게 동작하는지 확인
"""

import pytest

from core.errors import PermissionDenied
from core.types import (
    Actor,
    FinancialYearStatus,
    Role,
    TransactionKind,
    TransactionStatus,
    WithdrawSource,
    require_admin,
)


class TestEnums:
    """Enum 문자열 직렬화 테스트"""

    def test_transaction_kind_values(self) -> None:
        assert [k.value for k in TransactionKind] == ["DEPOSIT", "WITHDRAWAL", "PROFIT", "ROLLOVER"]

    def test_withdraw_source_values(self) -> None:
        assert WithdrawSource.SPLIT.value == "SPLIT"
        assert WithdrawSource("ROLLOVER") == WithdrawSource.ROLLOVER

    def test_transaction_status_spelling(self) -> None:
        """취소 상태는 CANCELED 한 가지 철자만 사용"""
        assert TransactionStatus.CANCELED.value == "CANCELED"
        assert len(TransactionStatus) == 2

    def test_financial_year_status_from_string(self) -> None:
        assert FinancialYearStatus("CALCULATED") == FinancialYearStatus.CALCULATED
        assert f"{FinancialYearStatus.CLOSED.value}" == "CLOSED"


class TestActor:
    """Actor 테스트"""

    def test_admin(self) -> None:
        actor = Actor.admin("owner")

        assert actor.id == "admin:owner"
        assert actor.role == Role.ADMIN.value
        assert actor.is_admin is True

    def test_investor_is_not_admin(self) -> None:
        actor = Actor.investor(42)

        assert actor.id == "investor:42"
        assert actor.is_admin is False

    def test_system_is_privileged(self) -> None:
        """스케줄러(SYSTEM)는 관리자 권한"""
        assert Actor.system("profit_scheduler").is_admin is True

    def test_frozen(self) -> None:
        actor = Actor.admin("owner")

        with pytest.raises(AttributeError):
            actor.role = Role.INVESTOR.value  # type: ignore


class TestRequireAdmin:
    """require_admin 테스트"""

    def test_admin_passes(self) -> None:
        require_admin(Actor.admin("owner"), "approve")

    def test_investor_denied(self) -> None:
        with pytest.raises(PermissionDenied, match="approve"):
            require_admin(Actor.investor("alice"), "approve")
