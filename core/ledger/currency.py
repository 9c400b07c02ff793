"""
통화 정규화

표시 통화 ↔ 내부 기준(pivot) 통화 변환.
환율은 관리자가 설정한 단일 값 (1 pivot = rate display) 만 사용한다.
부작용 없음.
"""

from decimal import Decimal, InvalidOperation

from core.constants import Precision
from core.errors import ConfigurationMissing, ValidationError
from core.storage.settings_store import Settings

ONE = Decimal("1")


def quantize_amount(value: Decimal) -> Decimal:
    """기준통화 금액을 저장 자릿수로 반올림

    Raises:
        ValidationError: 저장 자릿수(28자리 정밀도)로 표현할 수 없는 금액
    """
    try:
        return value.quantize(Precision.AMOUNT_QUANTUM)
    except InvalidOperation as e:
        raise ValidationError(f"Amount out of range: {value}") from e


def to_pivot(amount: Decimal, rate: Decimal) -> Decimal:
    """저장된 환율로 기준통화 금액 계산 (취소 시 역산에 사용)"""
    return quantize_amount(amount / rate)


class CurrencyNormalizer:
    """통화 정규화기

    Args:
        pivot_currency: 내부 기준 통화 (예: USD)
        display_currency: 표시 통화 (예: IQD)
        rate: 1 pivot_currency = rate display_currency (None이면 미설정)
    """

    def __init__(
        self,
        pivot_currency: str,
        display_currency: str,
        rate: Decimal | None,
    ):
        self.pivot_currency = pivot_currency.upper()
        self.display_currency = display_currency.upper()
        self.rate = rate

    @classmethod
    def from_settings(cls, settings: Settings) -> "CurrencyNormalizer":
        return cls(settings.pivot_currency, settings.default_currency, settings.pivot_rate)

    @property
    def supported_currencies(self) -> tuple[str, ...]:
        return (self.pivot_currency, self.display_currency)

    def rate_for(self, currency: str) -> Decimal:
        """해당 통화에 적용할 환율 (기준통화면 1)

        Raises:
            ValidationError: 지원하지 않는 통화
            ConfigurationMissing: 환율 미설정
        """
        code = currency.upper()
        if code == self.pivot_currency:
            return ONE
        if code != self.display_currency:
            raise ValidationError(
                f"Unsupported currency: {currency} (supported: {list(self.supported_currencies)})"
            )
        if self.rate is None or self.rate <= 0:
            raise ConfigurationMissing(
                f"No {self.pivot_currency}/{self.display_currency} rate configured"
            )
        return self.rate

    def normalize(self, amount: Decimal, currency: str) -> Decimal:
        """표시 금액 → 기준통화 금액"""
        return to_pivot(amount, self.rate_for(currency))

    def denormalize(self, pivot_amount: Decimal, currency: str) -> Decimal:
        """기준통화 금액 → 표시 금액"""
        return pivot_amount * self.rate_for(currency)
