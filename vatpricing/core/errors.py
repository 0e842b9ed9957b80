"""가격 계산 엔진 예외 및 에러 코드"""

from typing import Any, Dict, List, Optional


class ErrorCodes:
    """구조화된 에러 코드 카탈로그"""

    class General:
        SERVER_ERROR = "GENERAL-001"
        VALIDATION_ERROR = "GENERAL-003"
        NOT_FOUND = "GENERAL-004"
        BAD_REQUEST = "GENERAL-007"

    class Pricing:
        CALCULATION_FAILED = "PRICING-001"
        INVALID_PARAMETERS = "PRICING-002"
        COUNTRY_NOT_SUPPORTED = "PRICING-003"
        SERVICE_TYPE_NOT_SUPPORTED = "PRICING-004"
        RULE_EVALUATION_FAILED = "PRICING-005"
        EXPRESSION_EVALUATION_FAILED = "PRICING-006"
        INVALID_TRANSACTION_VOLUME = "PRICING-007"
        INVALID_FILING_FREQUENCY = "PRICING-008"
        CALCULATION_NOT_FOUND = "PRICING-009"
        CURRENCY_MISMATCH = "PRICING-011"

    class Country:
        COUNTRY_NOT_FOUND = "COUNTRY-001"
        INVALID_COUNTRY_CODE = "COUNTRY-002"

    class Rule:
        RULE_NOT_FOUND = "RULE-001"
        INVALID_RULE_TYPE = "RULE-002"
        INVALID_RULE_EXPRESSION = "RULE-003"
        DUPLICATE_RULE_ID = "RULE-004"
        INVALID_OPERATOR = "RULE-007"
        RULE_VALIDATION_FAILED = "RULE-008"
        RULE_IMPORT_FAILED = "RULE-009"


class PricingError(Exception):
    """가격 계산 엔진의 기본 예외

    Attributes:
        message: 사람이 읽을 수 있는 에러 메시지
        code: 구조화된 에러 코드
        errors: 상세 에러 메시지 리스트
    """

    default_code = ErrorCodes.General.SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        errors: Optional[List[str]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.errors = list(errors) if errors else [message]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'error': self.code,
            'message': self.message,
            'errors': self.errors,
        }


class ValidationError(PricingError):
    """요청 형태/값 오류 (호출자에게 복구 가능한 에러로 보고)"""

    default_code = ErrorCodes.General.VALIDATION_ERROR


class DomainError(PricingError):
    """도메인 규칙 위반 (알 수 없는 국가, 규칙 없음 등)"""

    default_code = ErrorCodes.Pricing.CALCULATION_FAILED


class ExpressionError(DomainError):
    """표현식 파싱/검증/평가 실패"""

    default_code = ErrorCodes.Rule.INVALID_RULE_EXPRESSION


class RuleEvaluationError(DomainError):
    """규칙 평가 중 치명적 오류

    국가 단위 계산을 중단시키며 실패한 규칙 ID를 함께 전달합니다.
    """

    default_code = ErrorCodes.Pricing.RULE_EVALUATION_FAILED

    def __init__(self, rule_id: str, cause: PricingError):
        super().__init__(
            f"Rule '{rule_id}' evaluation failed: {cause.message}",
            errors=cause.errors
        )
        self.rule_id = rule_id
        self.cause = cause


class CurrencyMismatchError(PricingError):
    """통화 불일치 (집계 내부의 결함으로 취급, 계산 전체 실패)"""

    default_code = ErrorCodes.Pricing.CURRENCY_MISMATCH

    def __init__(self, expected: str, actual: str):
        super().__init__(
            f"Currency mismatch: {actual} vs {expected}",
            errors=[f"All money values must have the same currency. Found {expected} and {actual}"]
        )
        self.expected = expected
        self.actual = actual
