"""라우터 공용 의존성과 에러 변환"""

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..audit import CalculationAuditor
from ..core.errors import ErrorCodes
from ..core.pricing_models import ServiceResult
from ..core.pricing_service import PricingService
from ..database import (
    get_db,
    SqlCalculationRepository,
    SqlCountryRepository,
    SqlRuleRepository,
)


_NOT_FOUND_CODES = {
    ErrorCodes.General.NOT_FOUND,
    ErrorCodes.Pricing.CALCULATION_NOT_FOUND,
    ErrorCodes.Country.COUNTRY_NOT_FOUND,
    ErrorCodes.Rule.RULE_NOT_FOUND,
}

_UNPROCESSABLE_CODES = {
    ErrorCodes.Pricing.COUNTRY_NOT_SUPPORTED,
    ErrorCodes.Pricing.RULE_EVALUATION_FAILED,
    ErrorCodes.Pricing.EXPRESSION_EVALUATION_FAILED,
}

_SERVER_ERROR_CODES = {
    ErrorCodes.General.SERVER_ERROR,
    ErrorCodes.Pricing.CURRENCY_MISMATCH,
}


def get_pricing_service(db: Session = Depends(get_db)) -> PricingService:
    """요청 단위 PricingService (DB 세션 기반 저장소 + 계산 감사)"""
    return PricingService(
        country_repository=SqlCountryRepository(db),
        rule_repository=SqlRuleRepository(db),
        calculation_repository=SqlCalculationRepository(db),
        auditor_factory=CalculationAuditor
    )


def get_rule_repository(db: Session = Depends(get_db)) -> SqlRuleRepository:
    return SqlRuleRepository(db)


def status_for_code(code: str) -> int:
    if code in _NOT_FOUND_CODES:
        return status.HTTP_404_NOT_FOUND
    if code in _UNPROCESSABLE_CODES:
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    if code in _SERVER_ERROR_CODES:
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    return status.HTTP_400_BAD_REQUEST


def raise_for_failure(result: ServiceResult) -> None:
    """실패 결과를 HTTPException으로 변환"""
    if result.success:
        return
    raise HTTPException(
        status_code=status_for_code(result.error_code),
        detail={
            "error": result.error_code,
            "message": result.message,
            "errors": result.errors,
        }
    )
