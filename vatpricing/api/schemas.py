"""API 요청/응답 스키마 (Pydantic)"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, Dict, Any, List
from datetime import date
from decimal import Decimal


# ============================================================================
# 가격 계산 관련 스키마
# ============================================================================

class PricingCalculateRequest(BaseModel):
    """가격 계산 요청

    값의 범위 검증은 서비스 계층에서 모든 에러를 모아 반환합니다.
    """
    service_type: str = Field(..., description="서비스 유형 (StandardFiling, ComplexFiling, PriorityService)")
    transaction_volume: int = Field(..., description="월 거래 건수 (1 ~ 1,000,000)")
    frequency: str = Field(..., description="신고 주기 (Monthly, Quarterly, Annually)")
    country_codes: List[str] = Field(..., description="대상 국가 코드 (ISO 3166-1 alpha-2)")
    additional_service_ids: List[str] = Field(default_factory=list, description="부가서비스 ID")
    currency_code: Optional[str] = Field(None, description="계산 통화 (기본값: EUR)")
    as_of: Optional[date] = Field(None, description="규칙 기준일 (기본값: 오늘)")
    discounts: Dict[str, Decimal] = Field(default_factory=dict, description="수동 할인 (사유 → %)")

    @field_validator('country_codes')
    @classmethod
    def strip_country_codes(cls, value: List[str]) -> List[str]:
        return [code.strip() for code in value]

    class Config:
        json_schema_extra = {
            "example": {
                "service_type": "StandardFiling",
                "transaction_volume": 500,
                "frequency": "Quarterly",
                "country_codes": ["GB", "DE"],
                "additional_service_ids": ["TaxConsultancy"],
                "currency_code": "EUR"
            }
        }


class CountryBreakdownResponse(BaseModel):
    """국가별 비용"""
    country_code: str
    country_name: str
    base_cost: Decimal
    additional_cost: Decimal
    total_cost: Decimal
    applied_rules: List[str]


class AdditionalServiceResponse(BaseModel):
    """부가서비스 비용"""
    service_id: str
    name: str
    cost: Decimal


class DiscountResponse(BaseModel):
    """적용된 할인"""
    reason: str
    percentage: Decimal
    amount: Decimal


class PricingCalculateResponse(BaseModel):
    """가격 계산 응답"""
    calculation_id: str
    service_type: str
    transaction_volume: int
    frequency: str
    total_cost: Decimal
    currency_code: str
    subtotal: Decimal
    country_breakdowns: List[CountryBreakdownResponse]
    additional_services: List[AdditionalServiceResponse]
    discounts: List[DiscountResponse]

    class Config:
        json_schema_extra = {
            "example": {
                "calculation_id": "0b7f8c1e-7f0d-4a55-9d7e-5c0f3c2a9b11",
                "service_type": "StandardFiling",
                "transaction_volume": 500,
                "frequency": "Quarterly",
                "total_cost": "2500.00",
                "currency_code": "EUR",
                "subtotal": "2500.00",
                "country_breakdowns": [],
                "additional_services": [],
                "discounts": []
            }
        }


class PricingCompareRequest(BaseModel):
    """시나리오 비교 요청"""
    scenarios: List[PricingCalculateRequest] = Field(..., description="비교할 계산 요청 목록")


class PricingCompareResponse(BaseModel):
    """시나리오 비교 응답"""
    scenarios: List[PricingCalculateResponse]
    lowest_cost_index: int = Field(..., description="총액이 가장 낮은 시나리오 (0부터)")


class CalculationCountryResponse(BaseModel):
    """저장된 계산의 국가별 비용"""
    country_code: str
    base_cost: Decimal
    additional_cost: Decimal
    total_cost: Decimal
    applied_rules: List[str]


class StoredCalculationResponse(BaseModel):
    """저장된 계산 조회 응답"""
    calculation_id: str
    user_id: str
    service_id: str
    transaction_volume: int
    filing_frequency: str
    currency_code: str
    total_cost: Decimal
    country_breakdowns: List[CalculationCountryResponse]
    additional_services: Dict[str, Decimal]
    discounts: Dict[str, Decimal]
    calculation_date: str
    is_archived: bool


# ============================================================================
# 규칙 관련 스키마
# ============================================================================

class RuleParameterSchema(BaseModel):
    name: str
    data_type: str = "decimal"


class RuleConditionSchema(BaseModel):
    parameter: str
    operator: str
    value: Any = None


class RuleResponse(BaseModel):
    """규칙 응답"""
    rule_id: str
    country_code: str
    rule_type: str
    name: str
    description: str = ""
    expression: str
    effective_from: date
    effective_to: Optional[date] = None
    priority: int
    is_active: bool
    parameters: List[RuleParameterSchema] = Field(default_factory=list)
    conditions: List[RuleConditionSchema] = Field(default_factory=list)


class RuleListResponse(BaseModel):
    """규칙 목록 응답"""
    rules: List[RuleResponse]
    total: int
    page: int
    page_size: int


class RuleImportResponse(BaseModel):
    """규칙 가져오기 응답"""
    total_rules: int
    imported_rules: int
    failed_rules: int
    errors: List[str]
    imported_rule_ids: List[str]
    success: bool


class ExpressionValidationRequest(BaseModel):
    """표현식 검증 요청"""
    expression: str = Field(..., description="검증할 표현식")
    sample_values: Optional[Dict[str, Any]] = Field(None, description="시험 평가용 파라미터 값")

    class Config:
        json_schema_extra = {
            "example": {
                "expression": "transactionVolume > 1000 ? basePrice * 1.1 : basePrice",
                "sample_values": {"transactionVolume": 1500, "basePrice": 100}
            }
        }


class ExpressionValidationResponse(BaseModel):
    """표현식 검증 응답"""
    is_valid: bool
    errors: List[str]
    result: Optional[Decimal] = None


# ============================================================================
# 에러 응답
# ============================================================================

class ErrorResponse(BaseModel):
    """에러 응답"""
    error: str
    message: str
    errors: List[str] = Field(default_factory=list)
