"""가격 계산 API 라우터"""

from fastapi import APIRouter, Depends

from ...core.pricing_models import PricingRequest, PricingResponse
from ...core.pricing_service import PricingService
from ..dependencies import get_pricing_service, raise_for_failure
from ..schemas import (
    PricingCalculateRequest,
    PricingCalculateResponse,
    PricingCompareRequest,
    PricingCompareResponse,
    StoredCalculationResponse,
    ErrorResponse
)

router = APIRouter()

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


def _to_request(body: PricingCalculateRequest) -> PricingRequest:
    return PricingRequest(
        service_type=body.service_type,
        transaction_volume=body.transaction_volume,
        frequency=body.frequency,
        country_codes=list(body.country_codes),
        additional_service_ids=list(body.additional_service_ids),
        currency_code=body.currency_code,
        as_of=body.as_of,
        discounts=dict(body.discounts)
    )


def _to_response(response: PricingResponse) -> PricingCalculateResponse:
    return PricingCalculateResponse(
        calculation_id=response.calculation_id,
        service_type=response.service_type,
        transaction_volume=response.transaction_volume,
        frequency=response.frequency,
        total_cost=response.total_cost,
        currency_code=response.currency_code,
        subtotal=response.subtotal,
        country_breakdowns=[
            {
                "country_code": c.country_code,
                "country_name": c.country_name,
                "base_cost": c.base_cost,
                "additional_cost": c.additional_cost,
                "total_cost": c.total_cost,
                "applied_rules": c.applied_rules,
            }
            for c in response.country_breakdowns
        ],
        additional_services=[
            {"service_id": s.service_id, "name": s.name, "cost": s.cost}
            for s in response.additional_services
        ],
        discounts=[
            {"reason": d.reason, "percentage": d.percentage, "amount": d.amount}
            for d in response.discounts
        ]
    )


@router.post("/calculate", response_model=PricingCalculateResponse, responses=_ERROR_RESPONSES)
async def calculate_pricing(
    body: PricingCalculateRequest,
    service: PricingService = Depends(get_pricing_service)
):
    """VAT 신고 서비스 가격 계산

    국가별 규칙을 평가해 국가별 비용을 만들고
    거래 건수/다국가 할인과 부가서비스를 반영한 총액을 반환합니다.
    """
    result = service.calculate(_to_request(body))
    raise_for_failure(result)
    return _to_response(result.data)


@router.post("/compare", response_model=PricingCompareResponse, responses=_ERROR_RESPONSES)
async def compare_pricing(
    body: PricingCompareRequest,
    service: PricingService = Depends(get_pricing_service)
):
    """여러 시나리오 가격 비교"""
    result = service.compare([_to_request(s) for s in body.scenarios])
    raise_for_failure(result)

    scenarios = [_to_response(r) for r in result.data]
    lowest = min(range(len(scenarios)), key=lambda i: scenarios[i].total_cost)
    return PricingCompareResponse(scenarios=scenarios, lowest_cost_index=lowest)


@router.get(
    "/calculations/{calculation_id}",
    response_model=StoredCalculationResponse,
    responses=_ERROR_RESPONSES
)
async def get_calculation(
    calculation_id: str,
    service: PricingService = Depends(get_pricing_service)
):
    """저장된 계산 조회"""
    result = service.get_calculation(calculation_id)
    raise_for_failure(result)

    calculation = result.data
    return StoredCalculationResponse(
        calculation_id=calculation.calculation_id,
        user_id=calculation.user_id,
        service_id=calculation.service_id,
        transaction_volume=calculation.transaction_volume,
        filing_frequency=calculation.filing_frequency.value,
        currency_code=calculation.currency_code,
        total_cost=calculation.total_cost.amount,
        country_breakdowns=[
            {
                "country_code": b.country_code,
                "base_cost": (b.base_cost or b.cost).amount,
                "additional_cost": b.additional_cost.amount,
                "total_cost": b.cost.amount,
                "applied_rules": b.applied_rule_ids,
            }
            for b in calculation.country_breakdowns
        ],
        additional_services={k: v.amount for k, v in calculation.additional_services.items()},
        discounts=dict(calculation.discounts),
        calculation_date=calculation.calculation_date.isoformat(),
        is_archived=calculation.is_archived
    )
