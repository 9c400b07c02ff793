"""
회계연도 모듈

회계연도 생명주기(FinancialYearService), 일 단위 적립(AccrualEngine),
저장소(FinancialYearStore).
"""

from core.fiscal.accrual import AccrualEngine, AccrualReport, YearAccrual, YearFailure
from core.fiscal.service import ApprovalResult, FinancialYearService, YearPage, YearSummary
from core.fiscal.store import FinancialYearStore

__all__ = [
    "AccrualEngine",
    "AccrualReport",
    "YearAccrual",
    "YearFailure",
    "ApprovalResult",
    "FinancialYearService",
    "YearPage",
    "YearSummary",
    "FinancialYearStore",
]
