"""Money: 금액과 통화를 함께 담는 불변 값 객체"""

import re
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Union

from .errors import CurrencyMismatchError, ValidationError


CURRENCY_CODE_PATTERN = re.compile(r"^[A-Z]{3}$")

Number = Union[Decimal, int, str]


@dataclass(frozen=True)
class Money:
    """금액 + ISO-4217 통화 코드

    통화가 같은 Money끼리만 더하거나 비교할 수 있습니다.
    통화가 다르면 변환하지 않고 CurrencyMismatchError를 발생시킵니다.

    Attributes:
        amount: 금액 (Decimal)
        currency: 통화 코드 (예: "EUR")
        allow_negative: 음수 금액 허용 여부

    Example:
        >>> Money.of("1000", "EUR").add(Money.of(500, "EUR"))
        Money(amount=Decimal('1500'), currency='EUR')
    """

    amount: Decimal
    currency: str
    allow_negative: bool = False

    def __post_init__(self):
        """초기화 후 검증"""
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', _to_decimal(self.amount))

        if not isinstance(self.currency, str) or not CURRENCY_CODE_PATTERN.match(self.currency):
            raise ValidationError(
                "Invalid currency code",
                errors=[f"Currency code '{self.currency}' must be 3 uppercase letters (ISO 4217 format)"]
            )

        if not self.allow_negative and self.amount < 0:
            raise ValidationError(
                "Money amount cannot be negative",
                errors=[f"Invalid amount: {self.amount}"]
            )

    @classmethod
    def of(cls, amount: Number, currency: str) -> "Money":
        return cls(amount=_to_decimal(amount), currency=currency)

    @classmethod
    def zero(cls, currency: str) -> "Money":
        return cls(amount=Decimal('0'), currency=currency)

    @classmethod
    def sum(cls, values: Iterable["Money"], currency: str) -> "Money":
        """같은 통화의 Money 합계

        Raises:
            CurrencyMismatchError: 하나라도 통화가 다른 경우
        """
        total = cls.zero(currency)
        for value in values:
            total = total.add(value)
        return total

    def _check_currency(self, other: "Money") -> None:
        if other.currency != self.currency:
            raise CurrencyMismatchError(self.currency, other.currency)

    def add(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(self.amount + other.amount, self.currency, self.allow_negative)

    def subtract(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(self.amount - other.amount, self.currency, allow_negative=True)

    def multiply(self, factor: Number) -> "Money":
        return Money(self.amount * _to_decimal(factor), self.currency, self.allow_negative)

    def percentage(self, percent: Number) -> "Money":
        """금액의 percent% 에 해당하는 Money"""
        return Money(self.amount * _to_decimal(percent) / Decimal('100'), self.currency, self.allow_negative)

    def apply_discount(self, percent: Number) -> "Money":
        """할인율(%)을 적용한 새 Money 반환"""
        return Money(self.amount - self.percentage(percent).amount, self.currency, self.allow_negative)

    def round(self, places: int = 2) -> "Money":
        quantum = Decimal(1).scaleb(-places)
        return Money(self.amount.quantize(quantum, rounding=ROUND_HALF_UP), self.currency, self.allow_negative)

    def is_zero(self) -> bool:
        return self.amount == 0

    def __add__(self, other: "Money") -> "Money":
        return self.add(other)

    def __sub__(self, other: "Money") -> "Money":
        return self.subtract(other)

    def __lt__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount < other.amount

    def __le__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount <= other.amount

    def __gt__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount > other.amount

    def __ge__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount >= other.amount

    def __eq__(self, other) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.currency == other.currency and self.amount == other.amount

    def __hash__(self) -> int:
        return hash((self.amount, self.currency))

    def to_dict(self) -> dict:
        return {
            'amount': str(self.amount),
            'currency': self.currency,
        }

    def __str__(self) -> str:
        return f"{self.round().amount:,} {self.currency}"

    def __repr__(self) -> str:
        return f"Money(amount={self.amount!r}, currency={self.currency!r})"


def _to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValidationError("Invalid money amount", errors=[f"Boolean is not a valid amount: {value}"])
    if isinstance(value, float):
        # 이진 부동소수점 오차 방지
        return Decimal(str(value))
    try:
        return Decimal(value)
    except (ArithmeticError, TypeError, ValueError):
        raise ValidationError("Invalid money amount", errors=[f"'{value}' is not a valid numeric value"])
