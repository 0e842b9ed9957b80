"""PricingService: 가격 계산 요청 처리

검증 → 국가 조회 → 파라미터 구성 → 국가별 규칙 엔진 → 할인 → 부가서비스
순서로 요청을 처리하고 구조화된 ServiceResult를 반환합니다.
"""

import logging
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from .. import config
from . import aggregator
from .calculation import Calculation
from .enums import FilingFrequency, ServiceType
from .errors import (
    CurrencyMismatchError,
    DomainError,
    ErrorCodes,
    PricingError,
    ValidationError,
)
from .expression import ExpressionEvaluator
from .money import Money
from .pricing_models import (
    CountryBreakdown,
    DiscountItem,
    PricingRequest,
    PricingResponse,
    ServiceCost,
    ServiceResult,
)
from .repository import CalculationRepository, Country, CountryRepository, RuleRepository
from .rule_engine import BASE_PRICE_PARAMETER, RuleEngine
from .rule_selector import RuleSelector
from .validation import validate_calculation_request


logger = logging.getLogger(__name__)


class PricingService:
    """가격 계산 서비스

    PricingError 계열 예외는 이 경계를 넘지 않고 실패 ServiceResult로 변환됩니다.

    Attributes:
        country_repository: 국가 저장소
        rule_repository: 규칙 저장소
        calculation_repository: 계산 저장소 (None이면 저장하지 않음)
        evaluator: 표현식 평가기
        auditor_factory: (calculation_id, user_id) → 계산 감사기
        default_currency: 요청에 통화가 없을 때 사용할 통화
    """

    def __init__(
        self,
        country_repository: CountryRepository,
        rule_repository: RuleRepository,
        calculation_repository: Optional[CalculationRepository] = None,
        evaluator: Optional[ExpressionEvaluator] = None,
        auditor_factory: Optional[Callable[[str, Optional[str]], Any]] = None,
        default_currency: str = config.DEFAULT_CURRENCY
    ):
        if country_repository is None:
            raise ValueError("Country repository cannot be null")
        if rule_repository is None:
            raise ValueError("Rule repository cannot be null")

        self.country_repository = country_repository
        self.rule_repository = rule_repository
        self.calculation_repository = calculation_repository
        self.evaluator = evaluator or ExpressionEvaluator()
        self.auditor_factory = auditor_factory
        self.default_currency = default_currency

    def calculate(self, request: PricingRequest) -> ServiceResult[PricingResponse]:
        """가격 계산

        Args:
            request: 계산 요청

        Returns:
            성공 시 PricingResponse, 실패 시 에러 코드와 메시지
        """
        calculation: Optional[Calculation] = None
        auditor = None
        try:
            calculation = self._create_calculation(request)
            if self.auditor_factory is not None:
                auditor = self.auditor_factory(calculation.calculation_id, request.user_id)
                auditor.log_calculation_start(self._describe_request(request, calculation))

            response = self._run(request, calculation, auditor)
        except PricingError as e:
            if isinstance(e, CurrencyMismatchError):
                logger.error("Currency mismatch in calculation: %s", e.message)
            else:
                logger.warning("Pricing calculation failed [%s]: %s", e.code, e.message)
            if auditor is not None:
                auditor.log_error(e.code, e.message, e.errors)
            return ServiceResult.failure(e.message, e.code, e.errors)

        if self.calculation_repository is not None:
            self.calculation_repository.add(calculation)

        if auditor is not None:
            auditor.log_calculation_complete({
                'total_cost': response.total_cost,
                'currency_code': response.currency_code,
                'countries': [c.country_code for c in response.country_breakdowns],
            })

        logger.info(
            "Calculation %s completed: %s %s for %d countries",
            calculation.calculation_id, response.total_cost,
            response.currency_code, len(response.country_breakdowns)
        )
        return ServiceResult.ok(response, "Pricing calculated successfully")

    def compare(self, requests: List[PricingRequest]) -> ServiceResult[List[PricingResponse]]:
        """여러 시나리오의 가격 비교

        시나리오 하나라도 실패하면 전체 비교가 실패하며
        에러 메시지에는 시나리오 번호가 붙습니다.
        """
        if not requests:
            return ServiceResult.failure(
                "At least one scenario is required",
                ErrorCodes.Pricing.INVALID_PARAMETERS
            )
        if len(requests) > config.MAX_COMPARISON_SCENARIOS:
            return ServiceResult.failure(
                f"Cannot compare more than {config.MAX_COMPARISON_SCENARIOS} scenarios",
                ErrorCodes.Pricing.INVALID_PARAMETERS
            )

        responses: List[PricingResponse] = []
        for index, request in enumerate(requests, 1):
            result = self.calculate(request)
            if not result.success:
                return ServiceResult.failure(
                    f"Scenario {index}: {result.message}",
                    result.error_code,
                    [f"Scenario {index}: {error}" for error in result.errors]
                )
            responses.append(result.data)

        return ServiceResult.ok(responses, f"Compared {len(responses)} scenarios")

    def get_calculation(self, calculation_id: str) -> ServiceResult[Calculation]:
        if self.calculation_repository is None:
            return ServiceResult.failure(
                "Calculation storage is not configured",
                ErrorCodes.General.SERVER_ERROR
            )
        calculation = self.calculation_repository.get_by_id(calculation_id)
        if calculation is None:
            return ServiceResult.failure(
                f"Calculation {calculation_id} not found",
                ErrorCodes.Pricing.CALCULATION_NOT_FOUND
            )
        return ServiceResult.ok(calculation)

    def build_parameters(
        self,
        request: PricingRequest,
        service_type: ServiceType,
        frequency: FilingFrequency
    ) -> Dict[str, Any]:
        """규칙 평가 파라미터 구성

        숫자 파라미터는 표현식에서, 문자열 파라미터는 조건에서 사용합니다.
        """
        return {
            BASE_PRICE_PARAMETER: config.SERVICE_BASE_PRICES[service_type.value],
            'transactionVolume': request.transaction_volume,
            'filingsPerYear': frequency.filings_per_year,
            'countryCount': len(request.country_codes),
            'serviceLevel': config.SERVICE_LEVELS[service_type.value],
            'additionalServiceCount': len(request.additional_service_ids),
            'serviceType': service_type.value,
            'filingFrequency': frequency.value,
        }

    def _create_calculation(self, request: PricingRequest) -> Calculation:
        errors = validate_calculation_request(request)
        if errors:
            raise ValidationError(
                "Calculation request validation failed",
                code=ErrorCodes.Pricing.INVALID_PARAMETERS,
                errors=errors
            )

        return Calculation.create(
            user_id=request.user_id,
            service_id=ServiceType.parse(request.service_type).value,
            transaction_volume=request.transaction_volume,
            filing_frequency=FilingFrequency.parse(request.frequency),
            currency_code=request.currency_code or self.default_currency
        )

    def _resolve_countries(self, request: PricingRequest, frequency: FilingFrequency) -> Dict[str, Country]:
        missing = [
            code for code in request.country_codes
            if not self.country_repository.exists_by_code(code)
        ]
        if missing:
            raise DomainError(
                "One or more countries are not supported",
                code=ErrorCodes.Pricing.COUNTRY_NOT_SUPPORTED,
                errors=[f"Country {code} is not supported" for code in missing]
            )

        countries = {c.code: c for c in self.country_repository.get_by_codes(request.country_codes)}
        unsupported = [
            code for code, country in countries.items()
            if not country.supports_frequency(frequency)
        ]
        if unsupported:
            raise ValidationError(
                "Filing frequency is not supported",
                code=ErrorCodes.Pricing.INVALID_FILING_FREQUENCY,
                errors=[f"Country {code} does not support {frequency.value} filing" for code in unsupported]
            )
        return countries

    def _resolve_additional_services(self, request: PricingRequest, currency: str) -> Dict[str, Money]:
        unknown = [s for s in request.additional_service_ids if s not in config.ADDITIONAL_SERVICES]
        if unknown:
            raise ValidationError(
                "Unknown additional services",
                code=ErrorCodes.Pricing.INVALID_PARAMETERS,
                errors=[f"Additional service {s} is not available" for s in unknown]
            )

        prices = request.additional_service_prices or {}
        return {
            service_id: prices.get(service_id) or Money(config.ADDITIONAL_SERVICES[service_id].price, currency)
            for service_id in dict.fromkeys(request.additional_service_ids)
        }

    def _run(self, request: PricingRequest, calculation: Calculation, auditor) -> PricingResponse:
        service_type = ServiceType.parse(request.service_type)
        frequency = calculation.filing_frequency
        currency = calculation.currency_code
        as_of = request.as_of or date.today()

        countries = self._resolve_countries(request, frequency)
        services = self._resolve_additional_services(request, currency)

        engine = RuleEngine(
            RuleSelector.from_repository(self.rule_repository, request.country_codes),
            self.evaluator
        )
        parameters = self.build_parameters(request, service_type, frequency)

        for country_code in request.country_codes:
            result = engine.calculate_country_cost(country_code, parameters, as_of, currency)
            aggregator.add_country_cost(
                calculation, country_code, result.cost,
                result.applied_rule_ids, result.base_cost
            )
            if auditor is not None:
                for trace in result.traces:
                    auditor.log_rule_application(trace)

        for service_id, cost in services.items():
            aggregator.add_additional_service(calculation, service_id, cost)

        aggregator.apply_volume_discount(calculation)
        aggregator.apply_multi_country_discount(calculation)
        for reason, percentage in (request.discounts or {}).items():
            aggregator.apply_discount(calculation, percentage, reason)

        lines = aggregator.discount_lines(calculation)
        if auditor is not None:
            for line in lines:
                auditor.log_discount(line.reason, line.percentage, line.amount.amount)

        return PricingResponse(
            calculation_id=calculation.calculation_id,
            service_type=service_type.value,
            transaction_volume=calculation.transaction_volume,
            frequency=frequency.value,
            total_cost=calculation.total_cost.round().amount,
            currency_code=currency,
            subtotal=aggregator.subtotal(calculation).round().amount,
            country_breakdowns=[
                CountryBreakdown(
                    country_code=b.country_code,
                    country_name=countries[b.country_code].name,
                    base_cost=(b.base_cost or b.cost).round().amount,
                    additional_cost=b.additional_cost.round().amount,
                    total_cost=b.cost.round().amount,
                    applied_rules=list(b.applied_rule_ids)
                )
                for b in calculation.country_breakdowns
            ],
            additional_services=[
                ServiceCost(
                    service_id=service_id,
                    name=config.ADDITIONAL_SERVICES[service_id].name,
                    cost=cost.round().amount
                )
                for service_id, cost in calculation.additional_services.items()
            ],
            discounts=[
                DiscountItem(line.reason, line.percentage, line.amount.round().amount)
                for line in lines
            ]
        )

    def _describe_request(self, request: PricingRequest, calculation: Calculation) -> Dict[str, Any]:
        return {
            'service_type': calculation.service_id,
            'transaction_volume': request.transaction_volume,
            'frequency': calculation.filing_frequency.value,
            'country_codes': list(request.country_codes),
            'additional_service_ids': list(request.additional_service_ids),
            'currency_code': calculation.currency_code,
            'as_of': request.as_of or date.today(),
        }
