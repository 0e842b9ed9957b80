"""ExpressionEvaluator 테스트"""

import pytest
from decimal import Decimal

from vatpricing.core import ExpressionEvaluator, ExpressionError, ErrorCodes
from vatpricing.core.expression import evaluate, validate, tokenize, parse, Conditional


@pytest.fixture
def evaluator():
    return ExpressionEvaluator()


class TestEvaluate:
    """표현식 평가 테스트"""

    def test_simple_multiplication(self, evaluator):
        """basePrice * 0.2 = 20"""
        assert evaluator.evaluate("basePrice * 0.2", {"basePrice": 100}) == Decimal('20')

    def test_ternary_true_branch(self, evaluator):
        """조건이 참이면 첫 번째 분기"""
        result = evaluator.evaluate(
            "transactionVolume > 1000 ? basePrice * 1.1 : basePrice",
            {"transactionVolume": 1500, "basePrice": 100}
        )
        assert result == Decimal('110')

    def test_ternary_false_branch(self, evaluator):
        """조건이 거짓이면 두 번째 분기"""
        result = evaluator.evaluate(
            "transactionVolume > 1000 ? basePrice * 1.1 : basePrice",
            {"transactionVolume": 500, "basePrice": 100}
        )
        assert result == Decimal('100')

    def test_operator_precedence(self, evaluator):
        """곱셈이 덧셈보다 먼저"""
        assert evaluator.evaluate("2 + 3 * 4", {}) == Decimal('14')
        assert evaluator.evaluate("(2 + 3) * 4", {}) == Decimal('20')

    def test_unary_minus(self, evaluator):
        """단항 마이너스"""
        assert evaluator.evaluate("-basePrice + 150", {"basePrice": 100}) == Decimal('50')

    def test_modulo(self, evaluator):
        assert evaluator.evaluate("transactionVolume % 100", {"transactionVolume": 250}) == Decimal('50')

    def test_comparison_yields_one_or_zero(self, evaluator):
        """비교 결과는 1/0"""
        assert evaluator.evaluate("countryCount >= 3", {"countryCount": 3}) == Decimal('1')
        assert evaluator.evaluate("countryCount != 3", {"countryCount": 3}) == Decimal('0')

    def test_comparison_inside_arithmetic(self, evaluator):
        """비교 결과를 곱셈에 사용"""
        result = evaluator.evaluate(
            "basePrice * (1 + (transactionVolume > 1000) * 0.1)",
            {"basePrice": 100, "transactionVolume": 2000}
        )
        assert result == Decimal('110')

    def test_result_is_decimal(self, evaluator):
        """결과는 이진 부동소수점이 아닌 Decimal"""
        result = evaluator.evaluate("basePrice * 0.1", {"basePrice": 0.1})
        assert isinstance(result, Decimal)
        assert result == Decimal('0.01')

    def test_parameter_coercion(self, evaluator):
        """int/float/문자열/bool 파라미터 변환"""
        params = {"a": 1, "b": 2.5, "c": "3.5", "d": True}
        assert evaluator.evaluate("a + b + c + d", params) == Decimal('8')

    def test_parameter_names_are_case_sensitive(self, evaluator):
        """파라미터 이름은 대소문자 구분"""
        with pytest.raises(ExpressionError):
            evaluator.evaluate("baseprice * 2", {"basePrice": 100})

    def test_deterministic(self, evaluator):
        """같은 입력은 같은 결과"""
        params = {"basePrice": Decimal('123.45'), "filingsPerYear": 12}
        first = evaluator.evaluate("basePrice * filingsPerYear / 4", params)
        second = evaluator.evaluate("basePrice * filingsPerYear / 4", params)
        assert first == second

    def test_module_level_helpers(self):
        """모듈 수준 evaluate/validate"""
        assert evaluate("basePrice * 2", {"basePrice": 50}) == Decimal('100')
        assert validate("basePrice * 2") is True
        assert validate("basePrice *") is False


class TestEvaluationErrors:
    """평가 오류 테스트"""

    def test_unknown_parameter_is_error(self, evaluator):
        """알 수 없는 파라미터는 0이 아니라 오류"""
        with pytest.raises(ExpressionError) as exc_info:
            evaluator.evaluate("basePrice * missing", {"basePrice": 100})

        assert exc_info.value.code == ErrorCodes.Rule.RULE_VALIDATION_FAILED
        assert "missing" in exc_info.value.message

    def test_division_by_zero(self, evaluator):
        """0으로 나누기"""
        with pytest.raises(ExpressionError) as exc_info:
            evaluator.evaluate("basePrice / divisor", {"basePrice": 100, "divisor": 0})

        assert exc_info.value.code == ErrorCodes.Pricing.EXPRESSION_EVALUATION_FAILED

    def test_modulo_by_zero(self, evaluator):
        with pytest.raises(ExpressionError):
            evaluator.evaluate("basePrice % 0", {"basePrice": 100})

    def test_non_numeric_parameter(self, evaluator):
        """숫자로 변환할 수 없는 파라미터"""
        with pytest.raises(ExpressionError):
            evaluator.evaluate("serviceType * 2", {"serviceType": "ComplexFiling"})

    @pytest.mark.parametrize("value", ["NaN", "Infinity", "-inf", float('nan'), Decimal('NaN')])
    def test_non_finite_parameter(self, evaluator, value):
        """NaN, Infinity 값은 구조화된 오류"""
        with pytest.raises(ExpressionError) as exc_info:
            evaluator.evaluate("x > 1 ? x : 2", {"x": value})

        assert exc_info.value.code == ErrorCodes.Pricing.EXPRESSION_EVALUATION_FAILED

    def test_overflow_is_expression_error(self, evaluator):
        """Decimal 오버플로도 ExpressionError로 변환"""
        with pytest.raises(ExpressionError) as exc_info:
            evaluator.evaluate("x * x", {"x": "1E+999999"})

        assert exc_info.value.code == ErrorCodes.Pricing.EXPRESSION_EVALUATION_FAILED

    def test_invalid_expression_is_not_evaluated(self, evaluator):
        """검증 실패 시 평가하지 않음"""
        with pytest.raises(ExpressionError) as exc_info:
            evaluator.evaluate("basePrice * (2", {"basePrice": 100})

        assert "Expression has unbalanced parentheses" in exc_info.value.errors


class TestValidation:
    """표현식 검증 테스트"""

    def test_valid_expressions(self, evaluator):
        for expression in (
            "basePrice * 1.2",
            "basePrice * filingsPerYear / 4",
            "transactionVolume > 1000 ? basePrice * 0.9 : basePrice",
            "(basePrice + 50) * (countryCount >= 5 ? 0.85 : 1)",
        ):
            assert evaluator.validate(expression), expression

    def test_empty_expression(self, evaluator):
        assert evaluator.validation_errors("") == ["Expression is required"]
        assert evaluator.validation_errors("   ") == ["Expression is required"]
        assert evaluator.validation_errors(None) == ["Expression is required"]

    def test_unbalanced_parentheses(self, evaluator):
        """괄호 균형"""
        assert "Expression has unbalanced parentheses" in evaluator.validation_errors("(basePrice * 2")
        assert "Expression has unbalanced parentheses" in evaluator.validation_errors(")basePrice * 2(")

    def test_operator_required(self, evaluator):
        """연산자가 하나 이상 필요"""
        assert "Expression must contain valid operators" in evaluator.validation_errors("basePrice")

    @pytest.mark.parametrize("expression", [
        "__import__('os') + 1",
        "import os + 1",
        "eval(basePrice) * 2",
        "exec(basePrice) * 2",
        "open(basePrice) * 2",
        "os.system + 1",
        "sys.exit + 1",
        "System.IO + 1",
        "Process.Start + 1",
        "File.Delete + 1",
        "Directory.Delete + 1",
        "Environment.Exit + 1",
        "Reflection + 1",
        "Assembly + 1",
        "Invoke + 1",
        "lambda + 1",
    ])
    def test_unsafe_tokens_rejected(self, evaluator, expression):
        """안전하지 않은 토큰 차단"""
        assert "Expression contains potentially unsafe code" in evaluator.validation_errors(expression)

    def test_characters_outside_grammar_rejected(self, evaluator):
        """문법 밖의 문자 거부"""
        assert not evaluator.validate("basePrice * 2; 1 + 1")
        assert not evaluator.validate("basePrice ** 2")
        assert not evaluator.validate("basePrice * 'x'")
        assert not evaluator.validate("basePrice[0] * 2")

    def test_nested_ternary_rejected(self, evaluator):
        """삼항 연산자 중첩 금지"""
        assert not evaluator.validate("a > 1 ? (b > 1 ? 2 : 3) : 4")
        assert not evaluator.validate("(a > 1 ? 1 : 0) ? 2 : 3")
        assert not evaluator.validate("a > 1 ? 2 : (b > 1 ? 3 : 4)")

    def test_chained_comparison_rejected(self, evaluator):
        assert not evaluator.validate("1 < a < 3")

    def test_too_long_expression(self, evaluator):
        expression = " + ".join(["basePrice"] * 300)
        assert "Expression cannot exceed 2000 characters" in evaluator.validation_errors(expression)


class TestParser:
    """토크나이저/파서 테스트"""

    def test_tokenize(self):
        tokens = tokenize("basePrice*1.2 >= 10")
        assert [t.text for t in tokens] == ["basePrice", "*", "1.2", ">=", "10"]
        assert [t.kind for t in tokens] == ["identifier", "operator", "number", "operator", "number"]

    def test_parse_ternary(self):
        node = parse("a > 1 ? 2 : 3")
        assert isinstance(node, Conditional)
