"""
InvestorLedger 테스트

apply_delta 불변식, audit (저널 재생)
"""

from decimal import Decimal
from typing import Awaitable, Callable

import pytest

from core.domain.models import Investor
from core.errors import InsufficientBalance, NotFound
from core.service import FundService
from core.types import Actor

MakeInvestor = Callable[..., Awaitable[Investor]]


class TestApplyDelta:
    @pytest.mark.asyncio
    async def test_recomputes_total(
        self,
        service: FundService,
        make_investor: MakeInvestor,
    ) -> None:
        investor = await make_investor("a")

        updated = await service.ledger.apply_delta(
            investor.investor_id, Decimal("100.25"), Decimal("10.5")
        )

        assert updated.total_amount == Decimal("110.75")
        stored = await service.get_investor(investor.investor_id)
        assert stored.total_amount == stored.amount + stored.rollover_amount

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "principal, rollover",
        [("-0.0000000001", "0"), ("0", "-1")],
    )
    async def test_negative_result_rejected(
        self,
        service: FundService,
        make_investor: MakeInvestor,
        principal: str,
        rollover: str,
    ) -> None:
        investor = await make_investor("a")

        with pytest.raises(InsufficientBalance):
            await service.ledger.apply_delta(investor.investor_id, Decimal(principal), Decimal(rollover))

        stored = await service.get_investor(investor.investor_id)
        assert stored.total_amount == Decimal("0")

    @pytest.mark.asyncio
    async def test_missing_investor(self, service: FundService) -> None:
        with pytest.raises(NotFound):
            await service.ledger.apply_delta(404, Decimal("1"), Decimal("0"))


class TestAudit:
    @pytest.mark.asyncio
    async def test_consistent_after_journal_activity(
        self,
        service: FundService,
        admin: Actor,
        make_investor: MakeInvestor,
    ) -> None:
        investor = await make_investor("a", deposit="1000")
        iid = investor.investor_id
        await service.record_transaction(admin, iid, "DEPOSIT", "250", "USD")
        w = await service.record_transaction(admin, iid, "WITHDRAWAL", "100", "USD")
        await service.record_transaction(admin, iid, "DEPOSIT", "123456", "IQD")
        await service.cancel_transaction(admin, w.transaction_id)

        audit = await service.audit(iid)

        assert audit.is_consistent
        assert audit.replayed_principal == audit.amount

    @pytest.mark.asyncio
    async def test_detects_untracked_mutation(
        self,
        service: FundService,
        db,
        make_investor: MakeInvestor,
    ) -> None:
        """저널 없이 바뀐 원금은 불일치로 검출"""
        investor = await make_investor("a", deposit="1000")
        await db.execute(
            "UPDATE investor SET amount = '900' WHERE investor_id = ?",
            (investor.investor_id,),
        )
        await db.commit()

        audit = await service.audit(investor.investor_id)

        assert audit.journal_consistent is False
        assert audit.total_consistent is False
        assert audit.is_consistent is False
