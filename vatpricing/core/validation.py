"""입력 검증

계산 요청과 규칙 정의가 엔진에 도달하기 전에 검사합니다.
모든 검증 함수는 예외를 던지지 않고 에러 메시지 리스트를 반환하며
실패한 검사마다 서로 다른 메시지를 하나씩 추가합니다.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional

from .enums import ConditionOperator, FilingFrequency, RuleType, ServiceType
from .errors import ValidationError
from .expression import ExpressionEvaluator
from .money import CURRENCY_CODE_PATTERN, Money
from .pricing_models import PricingRequest
from .rule import parse_bool


COUNTRY_CODE_PATTERN = re.compile(r"^[A-Z]{2}$")

MIN_TRANSACTION_VOLUME = 1
MAX_TRANSACTION_VOLUME = 1_000_000

MIN_RULE_PRIORITY = 1
MAX_RULE_PRIORITY = 1000
MAX_RULE_NAME_LENGTH = 100

_evaluator = ExpressionEvaluator()


def validate_transaction_volume(volume: Any, field_name: str = "TransactionVolume") -> List[str]:
    if volume is None:
        return [f"{field_name} is required"]
    if isinstance(volume, bool) or not isinstance(volume, int):
        return [f"{field_name} must be an integer"]
    if volume < MIN_TRANSACTION_VOLUME or volume > MAX_TRANSACTION_VOLUME:
        return [
            f"{field_name} must be between {MIN_TRANSACTION_VOLUME} and {MAX_TRANSACTION_VOLUME:,}"
        ]
    return []


def validate_country_code(code: Any, field_name: str = "CountryCode") -> List[str]:
    if not code:
        return [f"{field_name} is required"]
    if not isinstance(code, str) or not COUNTRY_CODE_PATTERN.match(code):
        return [f"{field_name} '{code}' has invalid format. Expected: ISO 3166-1 alpha-2 (e.g. GB)"]
    return []


def validate_country_codes(codes: Optional[Iterable[str]]) -> List[str]:
    codes = list(codes or [])
    if not codes:
        return ["At least one country code is required"]

    errors = []
    for index, code in enumerate(codes):
        errors.extend(validate_country_code(code, f"CountryCodes[{index}]"))

    duplicates = sorted({c for c in codes if isinstance(c, str) and codes.count(c) > 1})
    if duplicates:
        errors.append(f"Duplicate country codes: {', '.join(duplicates)}")
    return errors


def validate_currency_code(code: Any, field_name: str = "CurrencyCode") -> List[str]:
    if not code:
        return [f"{field_name} is required"]
    if not isinstance(code, str) or not CURRENCY_CODE_PATTERN.match(code):
        return [f"{field_name} '{code}' has invalid format. Expected: ISO 4217 (e.g. EUR)"]
    return []


def validate_discount_percentage(percentage: Any, field_name: str = "DiscountPercentage") -> List[str]:
    if percentage is None:
        return [f"{field_name} is required"]
    try:
        value = Decimal(str(percentage))
    except (InvalidOperation, ValueError):
        return [f"{field_name} '{percentage}' is not a number"]
    if value < 0 or value > 100:
        return [f"{field_name} {value} is out of range. Valid range is 0-100%"]
    return []


def validate_money_values(values: Iterable[Money], field_name: str = "Amounts") -> List[str]:
    """여러 금액이 한 통화를 공유하는지 검사"""
    currencies = []
    for value in values:
        if value is None:
            continue
        if value.currency not in currencies:
            currencies.append(value.currency)

    if len(currencies) > 1:
        return [f"{field_name} must share one currency. Found: {', '.join(currencies)}"]
    return []


def _validate_enum(value: Any, enum_cls, field_name: str) -> List[str]:
    if value is None or value == "":
        return [f"{field_name} is required"]
    if enum_cls.parse(value) is None:
        return [f"{field_name} '{value}' is invalid. Valid values: {', '.join(enum_cls.choices())}"]
    return []


def validate_calculation_request(request: PricingRequest) -> List[str]:
    """가격 계산 요청 검증

    Args:
        request: 계산 요청

    Returns:
        모든 에러 메시지 (비어 있으면 유효)
    """
    if request is None:
        return ["Request is required"]

    errors: List[str] = []
    errors.extend(validate_transaction_volume(request.transaction_volume))
    errors.extend(validate_country_codes(request.country_codes))
    errors.extend(_validate_enum(request.frequency, FilingFrequency, "Frequency"))
    errors.extend(_validate_enum(request.service_type, ServiceType, "ServiceType"))

    if request.currency_code is not None:
        errors.extend(validate_currency_code(request.currency_code))

    for reason, percentage in (request.discounts or {}).items():
        if not reason:
            errors.append("Discount reason is required")
        errors.extend(validate_discount_percentage(percentage, f"Discounts[{reason}]"))

    prices = list((request.additional_service_prices or {}).values())
    money_errors = validate_money_values(prices, "AdditionalServicePrices")
    errors.extend(money_errors)
    if prices and not money_errors and request.currency_code:
        if prices[0].currency != request.currency_code:
            errors.append(
                f"AdditionalServicePrices currency {prices[0].currency} "
                f"does not match CurrencyCode {request.currency_code}"
            )

    return errors


def validate_rule_expression(expression: Any, field_name: str = "Expression") -> List[str]:
    """규칙 표현식 검증 (문법 + 안전성)"""
    return [f"{field_name}: {message}" for message in _evaluator.validation_errors(expression)]


def validate_rule_condition(condition: Any, field_name: str = "Condition") -> List[str]:
    """규칙 조건 검증 (dict 또는 RuleCondition)"""
    if condition is None:
        return [f"{field_name} is required"]

    if isinstance(condition, dict):
        parameter = condition.get('parameter')
        operator = condition.get('operator')
        has_value = 'value' in condition
    else:
        parameter = getattr(condition, 'parameter', None)
        operator = getattr(condition, 'operator', None)
        has_value = hasattr(condition, 'value')

    errors = []
    if not parameter:
        errors.append(f"{field_name}.Parameter is required")
    if not operator:
        errors.append(f"{field_name}.Operator is required")
    elif ConditionOperator.parse(operator) is None:
        errors.append(
            f"{field_name}.Operator '{operator}' is invalid. "
            f"Valid values: {', '.join(ConditionOperator.choices())}"
        )
    if not has_value:
        errors.append(f"{field_name}.Value is required")
    return errors


def validate_rule(data: Dict[str, Any]) -> List[str]:
    """가져오기 항목(JSON dict) 하나의 규칙 정의 검증

    Rule 객체 생성 전에 모든 필드 문제를 한 번에 모읍니다.
    """
    if not isinstance(data, dict):
        return ["Rule entry must be an object"]

    def pick(camel: str, snake: str) -> Any:
        return data[camel] if camel in data else data.get(snake)

    errors: List[str] = []

    if not pick('ruleId', 'rule_id'):
        errors.append("RuleId is required")

    name = pick('name', 'name')
    if not name or not str(name).strip():
        errors.append("Name is required")
    elif len(str(name)) > MAX_RULE_NAME_LENGTH:
        errors.append(f"Name cannot exceed {MAX_RULE_NAME_LENGTH} characters")

    errors.extend(validate_country_code(pick('countryCode', 'country_code')))
    errors.extend(_validate_enum(pick('ruleType', 'rule_type'), RuleType, "RuleType"))
    errors.extend(validate_rule_expression(pick('expression', 'expression')))

    if not pick('effectiveFrom', 'effective_from'):
        errors.append("EffectiveFrom is required")

    priority = pick('priority', 'priority')
    if priority is not None:
        try:
            priority = int(priority)
        except (TypeError, ValueError):
            errors.append(f"Priority '{priority}' must be an integer")
        else:
            if priority < MIN_RULE_PRIORITY or priority > MAX_RULE_PRIORITY:
                errors.append(f"Priority must be between {MIN_RULE_PRIORITY} and {MAX_RULE_PRIORITY}")

    try:
        parse_bool(pick('isActive', 'is_active'), "IsActive")
    except ValidationError as e:
        errors.extend(e.errors)

    parameters = pick('parameters', 'parameters')
    if parameters is not None and not isinstance(parameters, list):
        errors.append("Parameters must be a list")
    else:
        for index, parameter in enumerate(parameters or []):
            if not isinstance(parameter, dict):
                errors.append(f"Parameters[{index}] must be an object")
            elif not isinstance(parameter.get('name'), str) or not parameter['name'].strip():
                errors.append(f"Parameters[{index}].Name is required")

    conditions = pick('conditions', 'conditions')
    if conditions is not None and not isinstance(conditions, list):
        errors.append("Conditions must be a list")
    else:
        for index, condition in enumerate(conditions or []):
            if not isinstance(condition, dict):
                errors.append(f"Conditions[{index}] must be an object")
            else:
                errors.extend(validate_rule_condition(condition, f"Conditions[{index}]"))

    return errors
