"""CalculationTrace: 규칙 적용 과정 추적"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .money import Money


@dataclass
class CalculationTrace:
    """규칙 하나가 적용된 단계를 기록하는 클래스

    체인 평가의 각 단계를 기록하여 국가별 비용이 어떻게 만들어졌는지
    재현할 수 있게 합니다.

    Attributes:
        country_code: 국가 코드
        rule_id: 적용된 규칙 ID
        rule_type: 규칙 유형 값
        formula: 평가된 표현식
        input_value: 규칙 적용 전 누적값 (basePrice)
        output_value: 규칙 적용 후 누적값
        input_parameters: 평가에 사용된 파라미터
        calculation_time: 계산 수행 시각
        notes: 추가 메모
    """

    country_code: str
    rule_id: str
    rule_type: str
    formula: str
    input_value: Decimal
    output_value: Decimal
    input_parameters: Dict[str, Any] = field(default_factory=dict)
    calculation_time: datetime = field(default_factory=datetime.now)
    notes: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'country_code': self.country_code,
            'rule_id': self.rule_id,
            'rule_type': self.rule_type,
            'formula': self.formula,
            'input_value': str(self.input_value),
            'output_value': str(self.output_value),
            'input_parameters': {
                key: self._serialize_value(value)
                for key, value in self.input_parameters.items()
            },
            'calculation_time': self.calculation_time.isoformat(),
            'notes': self.notes,
        }

    def _serialize_value(self, value: Any) -> Any:
        """값을 직렬화 가능한 형태로 변환"""
        if isinstance(value, Decimal):
            return str(value)
        return value

    def __str__(self) -> str:
        return (
            f"[{self.country_code}] "
            f"규칙: {self.rule_id}, "
            f"{self.input_value:,} → {self.output_value:,}"
        )


@dataclass
class CountryCostResult:
    """국가 하나의 계산 결과

    Attributes:
        country_code: 국가 코드
        cost: 최종 비용
        applied_rule_ids: 적용된 규칙 ID (평가 순서)
        traces: 규칙별 계산 추적
        base_cost: 기본 요율(VatRate) 규칙까지의 비용
    """

    country_code: str
    cost: Money
    applied_rule_ids: List[str] = field(default_factory=list)
    traces: List[CalculationTrace] = field(default_factory=list)
    base_cost: Optional[Money] = None

    def to_dict(self) -> dict:
        return {
            'country_code': self.country_code,
            'cost': self.cost.to_dict(),
            'applied_rule_ids': list(self.applied_rule_ids),
            'traces': [trace.to_dict() for trace in self.traces],
        }

    def get_trace_summary(self) -> str:
        """계산 과정 요약"""
        lines = [f"=== {self.country_code} 계산 과정 ==="]
        for i, trace in enumerate(self.traces, 1):
            lines.append(f"{i}. {trace}")
            lines.append(f"   공식: {trace.formula}")
        lines.append(f"최종 비용: {self.cost}")
        return "\n".join(lines)
