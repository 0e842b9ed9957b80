"""계산 집계: 국가 비용, 할인, 부가서비스를 조합해 총액 유지

모든 함수는 전달받은 Calculation만 변경하며 공유 상태를 갖지 않습니다.
변경 후에는 항상 recalculate_total_cost()로 총액을 다시 투영합니다.
"""

import logging
from decimal import Decimal
from typing import Iterable, List, NamedTuple, Optional

from .calculation import Calculation, CalculationCountry
from .errors import CurrencyMismatchError, ErrorCodes, ValidationError
from .money import Money


logger = logging.getLogger(__name__)

VOLUME_DISCOUNT_REASON = "Volume Discount"
MULTI_COUNTRY_DISCOUNT_REASON = "Multi-Country Discount"

# (초과 기준 거래 건수, 할인율) - 높은 구간부터, 기준값 초과(>)만 해당
VOLUME_DISCOUNT_TIERS = (
    (1000, Decimal('15')),
    (500, Decimal('10')),
    (100, Decimal('5')),
)

# (최소 국가 수, 할인율) - 높은 구간부터, 기준값 이상(>=)
MULTI_COUNTRY_DISCOUNT_TIERS = (
    (10, Decimal('20')),
    (5, Decimal('15')),
    (3, Decimal('10')),
)


class DiscountLine(NamedTuple):
    """적용된 할인 한 줄"""
    reason: str
    percentage: Decimal
    amount: Money


def volume_discount_percentage(transaction_volume: int) -> Decimal:
    """거래 건수 구간별 할인율 (경계값은 아래 구간)"""
    for threshold, percentage in VOLUME_DISCOUNT_TIERS:
        if transaction_volume > threshold:
            return percentage
    return Decimal('0')


def multi_country_discount_percentage(country_count: int) -> Decimal:
    """국가 수 구간별 할인율"""
    for minimum, percentage in MULTI_COUNTRY_DISCOUNT_TIERS:
        if country_count >= minimum:
            return percentage
    return Decimal('0')


def add_country_cost(
    calculation: Calculation,
    country_code: str,
    cost: Money,
    applied_rule_ids: Iterable[str] = (),
    base_cost: Optional[Money] = None
) -> CalculationCountry:
    """국가 비용 추가

    Raises:
        ValidationError: 국가 코드가 비었거나 이미 추가된 국가인 경우
        CurrencyMismatchError: 비용 통화가 계산 통화와 다른 경우
    """
    if not country_code:
        raise ValidationError(
            "Country code cannot be null or empty",
            code=ErrorCodes.Pricing.INVALID_PARAMETERS,
            errors=["CountryCode is required"]
        )
    if cost is None:
        raise ValidationError(
            "Country cost cannot be null",
            code=ErrorCodes.Pricing.INVALID_PARAMETERS,
            errors=["CountryCost is required"]
        )
    _require_currency(calculation, cost)
    if base_cost is not None:
        _require_currency(calculation, base_cost)

    if calculation.get_country(country_code) is not None:
        raise ValidationError(
            "Country already added to calculation",
            code=ErrorCodes.Pricing.INVALID_PARAMETERS,
            errors=[f"Country {country_code} is already included in this calculation"]
        )

    breakdown = CalculationCountry(
        country_code=country_code,
        cost=cost,
        applied_rule_ids=list(applied_rule_ids),
        base_cost=base_cost
    )
    calculation.country_breakdowns.append(breakdown)
    recalculate_total_cost(calculation)
    return breakdown


def remove_country(calculation: Calculation, country_code: str) -> bool:
    """국가 제거 (없으면 False)"""
    breakdown = calculation.get_country(country_code)
    if breakdown is None:
        return False

    calculation.country_breakdowns.remove(breakdown)
    recalculate_total_cost(calculation)
    return True


def add_additional_service(calculation: Calculation, service_id: str, cost: Money) -> Money:
    """부가서비스 비용 추가

    Raises:
        ValidationError: 서비스 ID가 비었거나 이미 추가된 서비스인 경우
        CurrencyMismatchError: 비용 통화가 계산 통화와 다른 경우
    """
    if not service_id:
        raise ValidationError(
            "Additional service ID cannot be null or empty",
            code=ErrorCodes.Pricing.INVALID_PARAMETERS,
            errors=["AdditionalServiceId is required"]
        )
    if cost is None:
        raise ValidationError(
            "Service cost cannot be null",
            code=ErrorCodes.Pricing.INVALID_PARAMETERS,
            errors=["ServiceCost is required"]
        )
    _require_currency(calculation, cost)

    if service_id in calculation.additional_services:
        raise ValidationError(
            "Additional service already added to calculation",
            code=ErrorCodes.Pricing.INVALID_PARAMETERS,
            errors=[f"Service {service_id} is already included in this calculation"]
        )

    calculation.additional_services[service_id] = cost
    recalculate_total_cost(calculation)
    return cost


def remove_additional_service(calculation: Calculation, service_id: str) -> bool:
    """부가서비스 제거 (없으면 False)"""
    if calculation.additional_services.pop(service_id, None) is None:
        return False
    recalculate_total_cost(calculation)
    return True


def apply_discount(calculation: Calculation, percentage, reason: str) -> Money:
    """할인 적용 (같은 사유는 누적하지 않고 교체)

    Args:
        calculation: 계산
        percentage: 할인율 (0~100)
        reason: 할인 사유

    Returns:
        적용 후 총액
    """
    percentage = Decimal(str(percentage))
    if percentage < 0 or percentage > 100:
        raise ValidationError(
            "Discount percentage must be between 0 and 100",
            code=ErrorCodes.Pricing.INVALID_PARAMETERS,
            errors=[f"Invalid discount percentage: {percentage}. Valid range is 0-100%"]
        )
    if not reason:
        raise ValidationError(
            "Discount reason cannot be null or empty",
            code=ErrorCodes.Pricing.INVALID_PARAMETERS,
            errors=["DiscountReason is required"]
        )

    calculation.discounts[reason] = percentage
    return recalculate_total_cost(calculation)


def remove_discount(calculation: Calculation, reason: str) -> bool:
    """할인 제거 (없으면 False)"""
    if calculation.discounts.pop(reason, None) is None:
        return False
    recalculate_total_cost(calculation)
    return True


def apply_volume_discount(calculation: Calculation) -> Decimal:
    """거래 건수 할인 적용

    >1000 → 15%, >500 → 10%, >100 → 5%, 그 외 없음.
    구간이 없으면 기존 거래 건수 할인을 제거합니다.

    Returns:
        적용된 할인율
    """
    percentage = volume_discount_percentage(calculation.transaction_volume)
    _set_tier_discount(calculation, VOLUME_DISCOUNT_REASON, percentage)
    return percentage


def apply_multi_country_discount(calculation: Calculation) -> Decimal:
    """다국가 할인 적용

    >=10 → 20%, >=5 → 15%, >=3 → 10%, 그 외 없음.

    Returns:
        적용된 할인율
    """
    percentage = multi_country_discount_percentage(calculation.countries_count)
    _set_tier_discount(calculation, MULTI_COUNTRY_DISCOUNT_REASON, percentage)
    return percentage


def _set_tier_discount(calculation: Calculation, reason: str, percentage: Decimal) -> None:
    if percentage > 0:
        logger.debug("Applying %s%% %s to %s", percentage, reason, calculation.calculation_id)
        apply_discount(calculation, percentage, reason)
    else:
        calculation.discounts.pop(reason, None)
        recalculate_total_cost(calculation)


def subtotal(calculation: Calculation) -> Money:
    """할인 전 합계: 국가 비용 + 부가서비스 비용

    Raises:
        CurrencyMismatchError: 통화가 섞여 있는 경우
    """
    currency = calculation.currency_code
    countries = Money.sum((c.cost for c in calculation.country_breakdowns), currency)
    services = Money.sum(calculation.additional_services.values(), currency)
    return countries.add(services)


def discount_lines(calculation: Calculation) -> List[DiscountLine]:
    """할인 적용 내역

    할인은 적용 순서대로, 직전 할인까지 반영된 금액을 기준으로 계산됩니다(곱셈 누적).
    """
    running = subtotal(calculation)
    lines = []
    for reason, percentage in calculation.discounts.items():
        amount = running.percentage(percentage)
        lines.append(DiscountLine(reason, percentage, amount))
        running = running.subtract(amount)
    return lines


def recalculate_total_cost(calculation: Calculation) -> Money:
    """총액 재계산 (순수 투영, 반복 호출해도 같은 결과)

    Returns:
        새 총액
    """
    total = subtotal(calculation)
    for line in discount_lines(calculation):
        total = total.subtract(line.amount)

    calculation.total_cost = Money(total.amount, calculation.currency_code)
    return calculation.total_cost


def _require_currency(calculation: Calculation, money: Money) -> None:
    if money.currency != calculation.currency_code:
        raise CurrencyMismatchError(calculation.currency_code, money.currency)
