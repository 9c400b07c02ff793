"""
투자자 원장 + 거래 저널

잔액 변경은 InvestorLedger.apply_delta만 수행하고,
모든 변경은 TransactionJournal의 기록/취소와 한 트랜잭션으로 커밋된다.

사용 예시:
```python
from core.ledger import TransactionJournal

journal = TransactionJournal(db)
settings = await SettingsStore(ConfigStore(db)).get_settings()

tx = await journal.record(admin, investor_id, "DEPOSIT", "500", "USD", settings)
await journal.cancel(admin, tx.transaction_id)

audit = await journal.ledger.audit(investor_id)
assert audit.is_consistent
```
"""

from core.ledger.currency import CurrencyNormalizer, quantize_amount, to_pivot
from core.ledger.investor_ledger import BalanceAudit, InvestorLedger
from core.ledger.journal import (
    BalanceDelta,
    TransactionJournal,
    TransactionPage,
    delta_for_stored,
    parse_amount,
)

__all__ = [
    # 핵심 클래스
    "InvestorLedger",
    "TransactionJournal",
    "CurrencyNormalizer",
    # 결과 타입
    "BalanceAudit",
    "BalanceDelta",
    "TransactionPage",
    # 함수
    "delta_for_stored",
    "parse_amount",
    "quantize_amount",
    "to_pivot",
]
