"""RuleEngine: 국가별 가격 규칙 엔진 (basePrice 체인 평가)"""

import logging
import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, List, Mapping, Optional

from .calculation_trace import CalculationTrace, CountryCostResult
from .enums import ConditionOperator, RuleType
from .errors import ErrorCodes, ExpressionError, RuleEvaluationError, ValidationError
from .expression import ExpressionEvaluator, to_decimal
from .money import Money
from .rule import Rule, RuleCondition
from .rule_selector import RuleSelector


logger = logging.getLogger(__name__)

BASE_PRICE_PARAMETER = "basePrice"

_NUMERIC_PATTERN = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)$")


class RuleEngine:
    """규칙 선택기와 표현식 평가기를 조합하여 국가별 비용을 계산하는 엔진

    적용 규칙을 우선순위 순서로 접어(fold) 누적값을 만듭니다.
    각 규칙의 표현식에서 basePrice는 직전까지의 누적값으로 다시 바인딩되므로
    기본 요율 규칙이 시작 비용을 정하고 이후 구간/복잡도 규칙이 이를 조정합니다.

    엔진은 공유 상태를 변경하지 않으므로 동시에 여러 계산에 사용할 수 있습니다.

    Attributes:
        selector: 규칙 선택기
        evaluator: 표현식 평가기
    """

    def __init__(
        self,
        selector: RuleSelector,
        evaluator: Optional[ExpressionEvaluator] = None
    ):
        """RuleEngine 초기화

        Args:
            selector: 규칙 선택기
            evaluator: 표현식 평가기 (기본값: 새 ExpressionEvaluator)

        Raises:
            ValueError: selector가 None인 경우
        """
        if selector is None:
            raise ValueError("Rule selector cannot be null")
        self.selector = selector
        self.evaluator = evaluator or ExpressionEvaluator()

    def get_applicable_rules(self, country_code: str, as_of: date) -> List[Rule]:
        """기준일에 시행 중인 국가 규칙 (평가 순서)"""
        return self.selector.select(country_code, as_of)

    def calculate_country_cost(
        self,
        country_code: str,
        parameters: Mapping[str, Any],
        as_of: date,
        currency: str
    ) -> CountryCostResult:
        """국가별 비용 계산

        Args:
            country_code: 국가 코드
            parameters: 평가 파라미터 (basePrice 필수)
            as_of: 기준일
            currency: 결과 통화 코드

        Returns:
            비용, 적용 규칙 ID 목록, 계산 추적을 담은 결과

        Raises:
            ValidationError: basePrice 파라미터가 없거나 숫자가 아닌 경우
            RuleEvaluationError: 규칙 표현식 검증/평가 실패 (국가 계산 중단)
        """
        if parameters is None:
            raise ValueError("Parameters cannot be null")

        if BASE_PRICE_PARAMETER not in parameters:
            raise ValidationError(
                "Base price parameter is required",
                code=ErrorCodes.Pricing.INVALID_PARAMETERS,
                errors=[f"Parameter '{BASE_PRICE_PARAMETER}' must be provided for {country_code}"]
            )

        try:
            running_value = to_decimal(parameters[BASE_PRICE_PARAMETER], BASE_PRICE_PARAMETER)
        except ExpressionError as e:
            raise ValidationError(e.message, code=ErrorCodes.Pricing.INVALID_PARAMETERS)

        applied_rule_ids: List[str] = []
        traces: List[CalculationTrace] = []
        base_value = running_value

        for rule in self.get_applicable_rules(country_code, as_of):
            if not self.check_conditions(rule, parameters):
                logger.debug("Rule %s skipped: conditions not met", rule.rule_id)
                continue

            scoped = dict(parameters)
            scoped[BASE_PRICE_PARAMETER] = running_value

            result = self.evaluate_rule(rule, scoped)

            traces.append(CalculationTrace(
                country_code=country_code,
                rule_id=rule.rule_id,
                rule_type=rule.rule_type.value,
                formula=rule.expression,
                input_value=running_value,
                output_value=result,
                input_parameters=scoped
            ))
            applied_rule_ids.append(rule.rule_id)
            running_value = result
            if rule.rule_type is RuleType.VAT_RATE:
                base_value = result

        # 비용은 음수가 될 수 없음
        running_value = max(running_value, Decimal('0'))
        base_value = max(base_value, Decimal('0'))

        logger.debug(
            "Country %s cost %s %s (%d rules applied)",
            country_code, running_value, currency, len(applied_rule_ids)
        )

        return CountryCostResult(
            country_code=country_code,
            cost=Money(running_value, currency),
            base_cost=Money(base_value, currency),
            applied_rule_ids=applied_rule_ids,
            traces=traces
        )

    def evaluate_rule(self, rule: Rule, parameters: Mapping[str, Any]) -> Decimal:
        """규칙 표현식 평가

        Raises:
            RuleEvaluationError: 표현식 검증/평가 실패
        """
        try:
            return self.evaluator.evaluate(rule.expression, parameters)
        except ExpressionError as e:
            logger.warning("Rule %s evaluation failed: %s", rule.rule_id, e.message)
            raise RuleEvaluationError(rule.rule_id, e) from e

    def check_conditions(self, rule: Rule, parameters: Mapping[str, Any]) -> bool:
        """조건 검사

        조건이 없으면 항상 적용되고, 여러 조건은 모두 충족해야 합니다(AND).
        파라미터가 없는 조건은 평가할 수 없으므로 충족되지 않은 것으로 봅니다.
        """
        for condition in rule.conditions:
            if condition.parameter not in parameters:
                return False

            if not self._evaluate_condition(condition, parameters[condition.parameter]):
                return False

        return True

    def _evaluate_condition(self, condition: RuleCondition, parameter_value: Any) -> bool:
        """단일 조건 평가

        Args:
            condition: 조건
            parameter_value: 파라미터 값

        Returns:
            조건이 충족되면 True
        """
        operator = condition.operator
        actual = _comparable(parameter_value)
        target = _comparable(condition.value)

        if actual is None or target is None:
            if operator is ConditionOperator.EQUALS:
                return actual is None and target is None
            if operator is ConditionOperator.NOT_EQUALS:
                return not (actual is None and target is None)
            return False

        if isinstance(actual, Decimal) and isinstance(target, Decimal):
            return _compare_ordered(operator, actual, target)

        if isinstance(actual, date) and isinstance(target, date):
            return _compare_ordered(operator, actual, target)

        if isinstance(actual, bool) and isinstance(target, bool):
            if operator is ConditionOperator.EQUALS:
                return actual == target
            if operator is ConditionOperator.NOT_EQUALS:
                return actual != target
            return False

        # 타입이 다르거나 문자열이면 대소문자 무시 문자열 비교
        left = str(actual).lower()
        right = str(target).lower()

        string_operators = {
            ConditionOperator.EQUALS: lambda a, b: a == b,
            ConditionOperator.NOT_EQUALS: lambda a, b: a != b,
            ConditionOperator.CONTAINS: lambda a, b: b in a,
            ConditionOperator.STARTS_WITH: lambda a, b: a.startswith(b),
            ConditionOperator.ENDS_WITH: lambda a, b: a.endswith(b),
        }

        op_func = string_operators.get(operator)
        if not op_func:
            return False

        return op_func(left, right)


def _comparable(value: Any) -> Any:
    """비교 가능한 값으로 정규화 (숫자는 Decimal)"""
    if value is None or isinstance(value, (bool, date)):
        return value
    if isinstance(value, (int, float, Decimal)):
        try:
            return to_decimal(value)
        except ExpressionError:
            # NaN, Infinity는 문자열로 비교
            return str(value)
    if isinstance(value, str) and _NUMERIC_PATTERN.match(value.strip()):
        try:
            return Decimal(value.strip())
        except InvalidOperation:
            return value
    return value


def _compare_ordered(operator: ConditionOperator, left: Any, right: Any) -> bool:
    if operator is ConditionOperator.EQUALS:
        return left == right
    if operator is ConditionOperator.NOT_EQUALS:
        return left != right
    if operator is ConditionOperator.GREATER_THAN:
        return left > right
    if operator is ConditionOperator.LESS_THAN:
        return left < right
    # contains/startsWith/endsWith는 숫자/날짜 비교에 의미가 없음
    return False
