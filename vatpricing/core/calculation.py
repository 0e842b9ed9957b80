"""Calculation: 가격 계산 요청 한 건의 집계 엔티티"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import uuid4

from .enums import FilingFrequency
from .errors import ErrorCodes, ValidationError
from .money import Money


def utc_now() -> datetime:
    """현재 UTC 시각 (DB DateTime 컬럼과 같은 naive 형식)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass
class CalculationCountry:
    """국가별 비용 내역

    Attributes:
        country_code: 국가 코드
        cost: 국가 비용 (규칙 체인 결과)
        applied_rule_ids: 비용을 만든 규칙 ID (평가 순서)
        base_cost: 기본 요율 규칙까지의 비용 (없으면 cost와 동일)
    """

    country_code: str
    cost: Money
    applied_rule_ids: List[str] = field(default_factory=list)
    base_cost: Optional[Money] = None

    @property
    def additional_cost(self) -> Money:
        """구간/복잡도/할인 규칙에 의한 조정액 (음수 가능)"""
        base = self.base_cost or self.cost
        return self.cost.subtract(base)

    def to_dict(self) -> dict:
        return {
            'country_code': self.country_code,
            'base_cost': str((self.base_cost or self.cost).amount),
            'additional_cost': str(self.additional_cost.amount),
            'total_cost': str(self.cost.amount),
            'applied_rules': list(self.applied_rule_ids),
        }


@dataclass
class Calculation:
    """가격 계산 집계

    total_cost는 다른 필드들로부터 다시 계산되는 값이며 직접 수정하지 않습니다.
    국가/부가서비스/할인 변경은 aggregator 모듈의 함수를 통해서만 이루어집니다.

    Attributes:
        user_id: 요청 사용자 ID
        service_id: 서비스 ID (서비스 유형)
        transaction_volume: 거래 건수 (> 0)
        filing_frequency: 신고 주기
        currency_code: 계산 통화
        calculation_id: 계산 고유 식별자
        country_breakdowns: 국가별 비용 내역 (추가 순서)
        additional_services: 부가서비스 ID → 비용
        discounts: 할인 사유 → 할인율(%) (적용 순서 유지)
        total_cost: 총 비용
        calculation_date: 계산 시각
        is_archived: 보관 여부
    """

    user_id: str
    service_id: str
    transaction_volume: int
    filing_frequency: FilingFrequency
    currency_code: str
    calculation_id: str = field(default_factory=lambda: str(uuid4()))
    country_breakdowns: List[CalculationCountry] = field(default_factory=list)
    additional_services: Dict[str, Money] = field(default_factory=dict)
    discounts: Dict[str, Decimal] = field(default_factory=dict)
    total_cost: Optional[Money] = None
    calculation_date: datetime = field(default_factory=utc_now)
    is_archived: bool = False

    def __post_init__(self):
        if self.total_cost is None:
            self.total_cost = Money.zero(self.currency_code)

    @classmethod
    def create(
        cls,
        user_id: str,
        service_id: str,
        transaction_volume: int,
        filing_frequency: FilingFrequency,
        currency_code: str
    ) -> "Calculation":
        """Calculation 생성

        Raises:
            ValidationError: 필수 값이 없거나 거래 건수가 0 이하인 경우
        """
        errors = []
        if not user_id:
            errors.append("UserId is required")
        if not service_id:
            errors.append("ServiceId is required")
        if transaction_volume is None or transaction_volume <= 0:
            errors.append(f"Invalid transaction volume: {transaction_volume}")
        if not currency_code:
            errors.append("CurrencyCode is required")

        frequency = FilingFrequency.parse(filing_frequency)
        if frequency is None:
            errors.append(f"Invalid filing frequency: {filing_frequency}")

        if errors:
            raise ValidationError(
                "Calculation validation failed",
                code=ErrorCodes.Pricing.INVALID_PARAMETERS,
                errors=errors
            )

        return cls(
            user_id=user_id,
            service_id=service_id,
            transaction_volume=transaction_volume,
            filing_frequency=frequency,
            currency_code=currency_code
        )

    def get_country(self, country_code: str) -> Optional[CalculationCountry]:
        for breakdown in self.country_breakdowns:
            if breakdown.country_code == country_code:
                return breakdown
        return None

    def get_country_cost(self, country_code: str) -> Optional[Money]:
        breakdown = self.get_country(country_code)
        return breakdown.cost if breakdown else None

    @property
    def countries_count(self) -> int:
        return len(self.country_breakdowns)

    @property
    def additional_services_count(self) -> int:
        return len(self.additional_services)

    def archive(self) -> None:
        self.is_archived = True

    def unarchive(self) -> None:
        self.is_archived = False

    def to_dict(self) -> dict:
        return {
            'calculation_id': self.calculation_id,
            'user_id': self.user_id,
            'service_id': self.service_id,
            'transaction_volume': self.transaction_volume,
            'filing_frequency': self.filing_frequency.value,
            'currency_code': self.currency_code,
            'country_breakdowns': [c.to_dict() for c in self.country_breakdowns],
            'additional_services': {
                service_id: str(cost.amount)
                for service_id, cost in self.additional_services.items()
            },
            'discounts': {reason: str(pct) for reason, pct in self.discounts.items()},
            'total_cost': str(self.total_cost.amount),
            'calculation_date': self.calculation_date.isoformat(),
            'is_archived': self.is_archived,
        }
