"""Rule: 국가별 가격 규칙 정의

국가 단위로 적용되고 시행 기간을 가지는 가격 계산 공식입니다.
모든 규칙은 불변 객체이며, 수정은 새 객체를 만드는 방식으로 이루어집니다.
"""

import dataclasses
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Optional, Tuple

from .enums import ConditionOperator, RuleType
from .errors import ErrorCodes, ValidationError


@dataclass(frozen=True)
class RuleParameter:
    """규칙 표현식이 참조하는 파라미터 선언

    Attributes:
        name: 파라미터 이름 (대소문자 구분)
        data_type: 데이터 타입 ("decimal", "integer", "string", "boolean")
    """

    name: str
    data_type: str = "decimal"

    def to_dict(self) -> Dict[str, Any]:
        return {'name': self.name, 'dataType': self.data_type}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RuleParameter":
        return cls(
            name=data.get('name', ''),
            data_type=data.get('dataType', data.get('data_type', 'decimal'))
        )


@dataclass(frozen=True)
class RuleCondition:
    """규칙 적용 여부를 결정하는 (parameter, operator, value) 조건

    Attributes:
        parameter: 비교할 파라미터 이름
        operator: 비교 연산자
        value: 비교 대상 값
    """

    parameter: str
    operator: ConditionOperator
    value: Any

    def __post_init__(self):
        operator = ConditionOperator.parse(self.operator)
        if operator is None:
            raise ValidationError(
                f"Invalid operator: {self.operator}",
                code=ErrorCodes.Rule.INVALID_OPERATOR,
                errors=[
                    f"Operator '{self.operator}' is not supported. "
                    f"Operator must be one of: {', '.join(ConditionOperator.choices())}"
                ]
            )
        object.__setattr__(self, 'operator', operator)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'parameter': self.parameter,
            'operator': self.operator.value,
            'value': self.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RuleCondition":
        return cls(
            parameter=data.get('parameter', ''),
            operator=data.get('operator', ''),
            value=data.get('value')
        )


@dataclass(frozen=True)
class Rule:
    """국가별 가격 규칙

    Attributes:
        rule_id: 규칙 고유 식별자 (예: "GB-VAT-001")
        country_code: ISO-3166 alpha-2 국가 코드
        rule_type: 규칙 유형
        name: 규칙 이름
        expression: 제한된 문법의 계산식 (예: "basePrice * 1.2")
        effective_from: 시행 시작일
        effective_to: 시행 종료일 (없으면 무기한)
        priority: 평가 우선순위 (낮을수록 먼저 평가)
        is_active: 활성 여부 (비활성화로 논리적 폐기)
        description: 규칙 설명
        parameters: 표현식이 참조하는 파라미터 선언
        conditions: 적용 조건 (모두 충족해야 적용)
        created_at: 생성 시각

    Example:
        >>> rule = Rule(
        ...     rule_id="GB-VAT-001",
        ...     country_code="GB",
        ...     rule_type=RuleType.VAT_RATE,
        ...     name="UK base filing rate",
        ...     expression="basePrice * 8",
        ...     effective_from=date(2023, 1, 1),
        ...     priority=10
        ... )
    """

    rule_id: str
    country_code: str
    rule_type: RuleType
    name: str
    expression: str
    effective_from: date
    effective_to: Optional[date] = None
    priority: int = 100
    is_active: bool = True
    description: str = ""
    parameters: Tuple[RuleParameter, ...] = ()
    conditions: Tuple[RuleCondition, ...] = ()
    created_at: datetime = field(default_factory=datetime.now, compare=False)

    def __post_init__(self):
        """초기화 후 검증"""
        rule_type = RuleType.parse(self.rule_type)
        if rule_type is None:
            raise ValidationError(
                f"Invalid rule type: {self.rule_type}",
                code=ErrorCodes.Rule.INVALID_RULE_TYPE,
                errors=[f"Rule type must be one of: {', '.join(RuleType.choices())}"]
            )
        object.__setattr__(self, 'rule_type', rule_type)

        # 리스트로 전달된 경우에도 불변 튜플로 고정
        object.__setattr__(self, 'parameters', tuple(self.parameters))
        object.__setattr__(self, 'conditions', tuple(self.conditions))

        if self.effective_to is not None and self.effective_from > self.effective_to:
            raise ValidationError(
                "Rule effective date range is invalid",
                code=ErrorCodes.Rule.RULE_VALIDATION_FAILED,
                errors=[
                    f"effectiveFrom ({self.effective_from.isoformat()}) must not be after "
                    f"effectiveTo ({self.effective_to.isoformat()})"
                ]
            )

    def is_effective_on(self, target_date: date) -> bool:
        """특정 날짜에 이 규칙이 시행 중인지 확인

        시작일과 종료일 모두 포함합니다.
        """
        if target_date < self.effective_from:
            return False
        return self.effective_to is None or target_date <= self.effective_to

    def applies_to(self, country_code: str, target_date: date) -> bool:
        """선택 조건: 국가 일치 + 활성 + 시행 기간 내"""
        return (
            self.country_code == country_code
            and self.is_active
            and self.is_effective_on(target_date)
        )

    def with_changes(self, **changes: Any) -> "Rule":
        """변경 사항을 반영한 새 Rule 반환 (우선순위/표현식/기간 수정용)"""
        return dataclasses.replace(self, **changes)

    def deactivate(self) -> "Rule":
        """논리적 폐기 (삭제 대신 비활성화)"""
        return self.with_changes(is_active=False)

    def to_dict(self) -> Dict[str, Any]:
        """가져오기/내보내기용 JSON 형식 딕셔너리"""
        return {
            'ruleId': self.rule_id,
            'countryCode': self.country_code,
            'ruleType': self.rule_type.value,
            'name': self.name,
            'description': self.description,
            'expression': self.expression,
            'effectiveFrom': self.effective_from.isoformat(),
            'effectiveTo': self.effective_to.isoformat() if self.effective_to else None,
            'priority': self.priority,
            'isActive': self.is_active,
            'parameters': [p.to_dict() for p in self.parameters],
            'conditions': [c.to_dict() for c in self.conditions],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Rule":
        """딕셔너리에서 Rule 생성

        camelCase(JSON)와 snake_case(YAML) 키를 모두 받습니다.

        Raises:
            ValidationError: 필수 필드 누락 또는 값 형식 오류
        """
        def pick(camel: str, snake: str, default: Any = None) -> Any:
            if camel in data:
                return data[camel]
            return data.get(snake, default)

        required = {
            'ruleId': 'rule_id',
            'countryCode': 'country_code',
            'ruleType': 'rule_type',
            'expression': 'expression',
            'effectiveFrom': 'effective_from',
        }
        missing = [camel for camel, snake in required.items() if pick(camel, snake) in (None, "")]
        if missing:
            raise ValidationError(
                "Missing required rule fields",
                code=ErrorCodes.Rule.RULE_VALIDATION_FAILED,
                errors=[f"Missing required field: {name}" for name in missing]
            )

        return cls(
            rule_id=str(pick('ruleId', 'rule_id')),
            country_code=str(pick('countryCode', 'country_code')),
            rule_type=pick('ruleType', 'rule_type'),
            name=pick('name', 'name', '') or '',
            description=pick('description', 'description', '') or '',
            expression=pick('expression', 'expression'),
            effective_from=_parse_date(pick('effectiveFrom', 'effective_from'), 'effectiveFrom'),
            effective_to=_parse_date(pick('effectiveTo', 'effective_to'), 'effectiveTo'),
            priority=_parse_priority(pick('priority', 'priority', 100)),
            is_active=parse_bool(pick('isActive', 'is_active'), 'isActive'),
            parameters=tuple(RuleParameter.from_dict(p) for p in pick('parameters', 'parameters', []) or []),
            conditions=tuple(RuleCondition.from_dict(c) for c in pick('conditions', 'conditions', []) or []),
        )

    def __str__(self) -> str:
        return f"Rule({self.rule_id} [{self.country_code}/{self.rule_type.value}] p={self.priority})"


def _parse_date(value: Any, field_name: str) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        # "2024-01-01T00:00:00Z" 형태도 허용
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError(
            f"Invalid date for {field_name}",
            code=ErrorCodes.Rule.RULE_VALIDATION_FAILED,
            errors=[f"{field_name} '{value}' is not a valid ISO date"]
        )


def _parse_priority(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(
            "Invalid rule priority",
            code=ErrorCodes.Rule.RULE_VALIDATION_FAILED,
            errors=[f"Priority '{value}' must be an integer"]
        )


def parse_bool(value: Any, field_name: str, default: bool = True) -> bool:
    """bool 또는 "true"/"false" 문자열만 허용 (대소문자 무시)"""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValidationError(
        f"Invalid boolean for {field_name}",
        code=ErrorCodes.Rule.RULE_VALIDATION_FAILED,
        errors=[f"{field_name} '{value}' must be true or false"]
    )
