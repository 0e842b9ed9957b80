"""계산 과정 감사 추적"""

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Any, List, Optional

from .audit_service import AuditService, AuditEntry, AuditEventType, audit_service
from ..core.calculation_trace import CalculationTrace


class CalculationAuditor:
    """가격 계산 과정 추적

    계산의 각 단계를 기록하여 나중에 국가별 비용과 할인이
    어떻게 만들어졌는지 재현할 수 있도록 합니다.
    조건이 맞지 않아 건너뛴 규칙은 기록하지 않습니다.
    """

    def __init__(
        self,
        calculation_id: str,
        user_id: Optional[str] = None,
        audit_service: AuditService = audit_service
    ):
        """
        Args:
            calculation_id: 계산 ID
            user_id: 요청 사용자
            audit_service: 감사 서비스
        """
        self.calculation_id = calculation_id
        self.user_id = user_id
        self.audit_service = audit_service
        self.calculation_steps: List[Dict[str, Any]] = []

    def _log(self, event_type: AuditEventType, **fields: Any) -> AuditEntry:
        entry = AuditEntry(
            event_type=event_type,
            timestamp=datetime.now(),
            calculation_id=self.calculation_id,
            user_id=self.user_id,
            **fields
        )
        self.audit_service.log_entry(entry)
        return entry

    def log_calculation_start(self, request_data: Dict[str, Any]) -> None:
        """계산 시작 로깅

        Args:
            request_data: 계산 요청 내용
        """
        self._log(
            AuditEventType.CALCULATION_STARTED,
            request_data=self._serialize_values(request_data)
        )

    def log_rule_application(self, trace: CalculationTrace) -> None:
        """적용된 규칙 로깅"""
        step_data = {
            "country_code": trace.country_code,
            "rule_id": trace.rule_id,
            "rule_type": trace.rule_type,
            "expression": trace.formula,
            "input_value": self._serialize_value(trace.input_value),
            "output_value": self._serialize_value(trace.output_value),
        }
        self.calculation_steps.append(step_data)
        self._log(AuditEventType.RULE_APPLIED, metadata=step_data)

    def log_discount(self, reason: str, percentage: Decimal, amount: Decimal) -> None:
        """할인 적용 로깅"""
        self._log(
            AuditEventType.DISCOUNT_APPLIED,
            metadata={
                "reason": reason,
                "percentage": self._serialize_value(percentage),
                "amount": self._serialize_value(amount),
            }
        )

    def log_calculation_complete(self, final_result: Dict[str, Any]) -> None:
        """계산 완료 로깅

        Args:
            final_result: 최종 계산 결과
        """
        self._log(
            AuditEventType.CALCULATION_COMPLETED,
            response_data={
                "final_result": self._serialize_values(final_result),
                "total_steps": len(self.calculation_steps),
            }
        )

    def log_error(self, code: str, message: str, errors: List[str]) -> None:
        self._log(
            AuditEventType.ERROR_OCCURRED,
            error_data={"code": code, "message": message, "errors": list(errors)}
        )

    def generate_calculation_report(self) -> Dict[str, Any]:
        """계산 보고서 생성

        Returns:
            전체 계산 과정 보고서
        """
        audit_trail = self.audit_service.get_calculation_audit_trail(self.calculation_id)

        return {
            "calculation_id": self.calculation_id,
            "total_steps": len(self.calculation_steps),
            "calculation_steps": self.calculation_steps,
            "audit_events": [entry.to_dict() for entry in audit_trail],
            "generated_at": datetime.now().isoformat()
        }

    def _serialize_values(self, values: Dict[str, Any]) -> Dict[str, Any]:
        return {
            key: self._serialize_value(value)
            for key, value in values.items()
        }

    def _serialize_value(self, value: Any) -> Any:
        """단일 값을 직렬화

        Decimal은 정밀도를 잃지 않도록 문자열로 기록합니다.
        """
        if isinstance(value, Decimal):
            return str(value)
        elif isinstance(value, (date, datetime)):
            return value.isoformat()
        elif isinstance(value, (list, tuple)):
            return [self._serialize_value(v) for v in value]
        elif isinstance(value, dict):
            return self._serialize_values(value)
        else:
            return value
