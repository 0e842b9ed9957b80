"""가격 계산 요청/응답 데이터 모델"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Generic, List, Optional, TypeVar

from .money import Money


T = TypeVar('T')


@dataclass
class PricingRequest:
    """가격 계산 요청

    Attributes:
        service_type: 서비스 유형 (StandardFiling, ComplexFiling, PriorityService)
        transaction_volume: 월 거래 건수
        frequency: 신고 주기 (Monthly, Quarterly, Annually)
        country_codes: 대상 국가 코드 목록
        additional_service_ids: 부가서비스 ID 목록
        currency_code: 계산 통화 (None이면 설정 기본값)
        as_of: 규칙 기준일 (None이면 오늘)
        discounts: 수동 할인 (사유 → %)
        additional_service_prices: 부가서비스 견적가 (카탈로그 가격 대체)
        user_id: 요청 사용자
    """

    service_type: str
    transaction_volume: int
    frequency: str
    country_codes: List[str] = field(default_factory=list)
    additional_service_ids: List[str] = field(default_factory=list)
    currency_code: Optional[str] = None
    as_of: Optional[date] = None
    discounts: Dict[str, Decimal] = field(default_factory=dict)
    additional_service_prices: Dict[str, Money] = field(default_factory=dict)
    user_id: str = "anonymous"


@dataclass
class CountryBreakdown:
    """국가별 비용 응답 항목"""
    country_code: str
    country_name: str
    base_cost: Decimal
    additional_cost: Decimal
    total_cost: Decimal
    applied_rules: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'countryCode': self.country_code,
            'countryName': self.country_name,
            'baseCost': str(self.base_cost),
            'additionalCost': str(self.additional_cost),
            'totalCost': str(self.total_cost),
            'appliedRules': list(self.applied_rules),
        }


@dataclass
class ServiceCost:
    """부가서비스 응답 항목"""
    service_id: str
    name: str
    cost: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {'serviceId': self.service_id, 'name': self.name, 'cost': str(self.cost)}


@dataclass
class DiscountItem:
    """할인 응답 항목"""
    reason: str
    percentage: Decimal
    amount: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {'reason': self.reason, 'percentage': str(self.percentage), 'amount': str(self.amount)}


@dataclass
class PricingResponse:
    """가격 계산 응답"""
    calculation_id: str
    service_type: str
    transaction_volume: int
    frequency: str
    total_cost: Decimal
    currency_code: str
    subtotal: Decimal
    country_breakdowns: List[CountryBreakdown] = field(default_factory=list)
    additional_services: List[ServiceCost] = field(default_factory=list)
    discounts: List[DiscountItem] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'calculationId': self.calculation_id,
            'serviceType': self.service_type,
            'transactionVolume': self.transaction_volume,
            'frequency': self.frequency,
            'totalCost': str(self.total_cost),
            'currencyCode': self.currency_code,
            'subtotal': str(self.subtotal),
            'countryBreakdowns': [c.to_dict() for c in self.country_breakdowns],
            'additionalServices': [s.to_dict() for s in self.additional_services],
            'discounts': [d.to_dict() for d in self.discounts],
        }


@dataclass
class ServiceResult(Generic[T]):
    """서비스 경계의 구조화된 결과 (성공 여부 + 에러 코드 + 메시지)"""
    success: bool
    data: Optional[T] = None
    error_code: Optional[str] = None
    message: str = ""
    errors: List[str] = field(default_factory=list)

    @classmethod
    def ok(cls, data: T, message: str = "") -> "ServiceResult[T]":
        return cls(success=True, data=data, message=message)

    @classmethod
    def failure(cls, message: str, error_code: str, errors: Optional[List[str]] = None) -> "ServiceResult[T]":
        return cls(success=False, error_code=error_code, message=message, errors=list(errors or [message]))
