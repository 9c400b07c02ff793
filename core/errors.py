"""
도메인 예외

코어의 모든 작업은 아래 예외만 발생시킨다.
호출 측(HTTP 계층 등)에서 상태 코드로 매핑.
"""


class FundError(Exception):
    """펀드 코어 예외 베이스"""

    pass


class ValidationError(FundError):
    """입력값 오류 (날짜 범위, 이익 풀, rollover 비율 등)"""

    pass


class PermissionDenied(FundError):
    """관리자 전용 작업을 비관리자가 호출"""

    pass


class NotFound(FundError):
    """투자자/회계연도/거래 없음"""

    pass


class InvalidStateTransition(FundError):
    """허용되지 않은 상태 전이"""

    pass


class InsufficientBalance(FundError):
    """잔액 부족 (결과 잔액이 음수가 되는 경우)"""

    pass


class ConfigurationMissing(FundError):
    """필수 설정 없음 (환율 등)"""

    pass
