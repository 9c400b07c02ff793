"""
타입 정의 모듈

Enum, Dataclass 등 핵심 타입 정의
모든 Enum은 str을 상속하여 문자열 직렬화 가능
"""

from dataclasses import dataclass
from enum import Enum

from core.errors import PermissionDenied


class Role(str, Enum):
    """행위자 역할"""

    ADMIN = "ADMIN"
    INVESTOR = "INVESTOR"
    SYSTEM = "SYSTEM"  # 스케줄러 등 무인 실행


class TransactionKind(str, Enum):
    """거래 유형

    DEPOSIT/WITHDRAWAL은 수동 입력, PROFIT/ROLLOVER는 승인 단계에서만 생성
    """

    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    PROFIT = "PROFIT"
    ROLLOVER = "ROLLOVER"


class WithdrawSource(str, Enum):
    """출금 재원"""

    NONE = "NONE"
    PRINCIPAL = "PRINCIPAL"
    ROLLOVER = "ROLLOVER"
    SPLIT = "SPLIT"  # rollover 전액 + 나머지 원금


class TransactionStatus(str, Enum):
    """거래 상태 (PENDING → CANCELED 단방향)"""

    PENDING = "PENDING"
    CANCELED = "CANCELED"  # 미국식 철자


class FinancialYearStatus(str, Enum):
    """회계연도 상태"""

    DRAFT = "DRAFT"
    PENDING = "PENDING"
    CALCULATED = "CALCULATED"
    APPROVED = "APPROVED"
    DISTRIBUTED = "DISTRIBUTED"
    CLOSED = "CLOSED"


@dataclass(frozen=True)
class Actor:
    """행위자 (불변)

    변경 작업의 호출자를 식별. 권한 확인은 호출 측에서 먼저 수행하지만
    코어에서도 다시 검증한다.
    """

    id: str
    role: str

    @property
    def is_admin(self) -> bool:
        """관리 권한 보유 여부 (SYSTEM 포함)"""
        return self.role in (Role.ADMIN.value, Role.SYSTEM.value)

    @classmethod
    def admin(cls, user_id: str | int) -> "Actor":
        """관리자 Actor 생성"""
        return cls(id=f"admin:{user_id}", role=Role.ADMIN.value)

    @classmethod
    def investor(cls, user_id: str | int) -> "Actor":
        """투자자 Actor 생성"""
        return cls(id=f"investor:{user_id}", role=Role.INVESTOR.value)

    @classmethod
    def system(cls, system_name: str) -> "Actor":
        """시스템 Actor 생성"""
        return cls(id=f"system:{system_name}", role=Role.SYSTEM.value)


def require_admin(actor: Actor, action: str) -> None:
    """관리자 권한 확인

    Args:
        actor: 호출자
        action: 작업 이름 (오류 메시지용)

    Raises:
        PermissionDenied: 관리자/시스템이 아닌 경우
    """
    if not actor.is_admin:
        raise PermissionDenied(f"Only admin can {action} (actor={actor.id})")
