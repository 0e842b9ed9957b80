"""도메인 열거형"""

from enum import Enum
from typing import Optional


class _LookupEnum(Enum):
    """이름/값 대소문자 구분 없이 조회 가능한 Enum"""

    @classmethod
    def parse(cls, value) -> Optional["_LookupEnum"]:
        """문자열을 열거형으로 변환 (알 수 없으면 None)"""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None

        key = value.strip().lower()
        for member in cls:
            if member.name.lower() == key or str(member.value).lower() == key:
                return member
        return None

    @classmethod
    def choices(cls) -> list:
        return [member.value for member in cls]


class RuleType(_LookupEnum):
    """규칙 유형

    모든 유형은 같은 방식으로 누적값(basePrice)을 체인 평가하며
    유형은 조회 필터링과 감사 표시에 사용됩니다.
    """
    VAT_RATE = "VatRate"
    THRESHOLD = "Threshold"
    COMPLEXITY = "Complexity"
    DISCOUNT = "Discount"


class FilingFrequency(_LookupEnum):
    """신고 주기"""
    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"
    ANNUALLY = "Annually"

    @property
    def filings_per_year(self) -> int:
        return {
            FilingFrequency.MONTHLY: 12,
            FilingFrequency.QUARTERLY: 4,
            FilingFrequency.ANNUALLY: 1,
        }[self]


class ServiceType(_LookupEnum):
    """서비스 유형"""
    STANDARD_FILING = "StandardFiling"
    COMPLEX_FILING = "ComplexFiling"
    PRIORITY_SERVICE = "PriorityService"


class ConditionOperator(_LookupEnum):
    """규칙 조건 연산자"""
    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"
    CONTAINS = "contains"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"

