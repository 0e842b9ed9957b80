"""감사 로그 서비스"""

import json
import logging
from collections import deque
from dataclasses import dataclass, asdict
from datetime import datetime
from enum import Enum
from typing import Deque, Dict, Any, List, Optional

from .. import config


logger = logging.getLogger("vatpricing.audit")


class AuditEventType(Enum):
    """감사 이벤트 유형"""
    API_REQUEST = "API_REQUEST"
    API_RESPONSE = "API_RESPONSE"
    CALCULATION_STARTED = "CALCULATION_STARTED"
    CALCULATION_COMPLETED = "CALCULATION_COMPLETED"
    RULE_APPLIED = "RULE_APPLIED"
    DISCOUNT_APPLIED = "DISCOUNT_APPLIED"
    RULES_IMPORTED = "RULES_IMPORTED"
    ERROR_OCCURRED = "ERROR_OCCURRED"


@dataclass
class AuditEntry:
    """감사 로그 엔트리"""
    event_type: AuditEventType
    timestamp: datetime
    calculation_id: Optional[str] = None
    user_id: Optional[str] = None
    request_data: Optional[Dict[str, Any]] = None
    response_data: Optional[Dict[str, Any]] = None
    error_data: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """딕셔너리로 변환"""
        data = asdict(self)
        data['event_type'] = self.event_type.value
        data['timestamp'] = self.timestamp.isoformat()
        return data

    def to_json(self) -> str:
        """JSON 한 줄 문자열로 변환"""
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)


class AuditService:
    """감사 로그 서비스

    최근 이벤트를 메모리에 보관하고 vatpricing.audit 로거로 내보냅니다.
    메모리에는 최대 max_entries개만 남기고 오래된 엔트리부터 버립니다.
    log_file이 지정되면 JSON Lines 형식으로 파일에도 추가합니다.
    """

    def __init__(self, log_file: Optional[str] = None, max_entries: int = config.AUDIT_MAX_ENTRIES):
        """
        Args:
            log_file: 로그 파일 경로 (None이면 로거만 사용)
            max_entries: 메모리에 보관할 최대 엔트리 수
        """
        self.log_file = log_file
        self.entries: Deque[AuditEntry] = deque(maxlen=max_entries)

    def log_entry(self, entry: AuditEntry) -> None:
        """감사 엔트리 기록

        Args:
            entry: 기록할 감사 엔트리
        """
        self.entries.append(entry)

        level = logging.ERROR if entry.event_type is AuditEventType.ERROR_OCCURRED else logging.INFO
        logger.log(
            level,
            "%s calculation=%s user=%s",
            entry.event_type.value, entry.calculation_id, entry.user_id
        )

        if self.log_file:
            self._write_to_file(entry)

    def _write_to_file(self, entry: AuditEntry) -> None:
        """파일에 엔트리 기록 (실패해도 계산은 계속)"""
        try:
            with open(self.log_file, 'a', encoding='utf-8') as f:
                f.write(entry.to_json())
                f.write('\n')
        except OSError as e:
            logger.error("Failed to write audit log %s: %s", self.log_file, e)

    def get_calculation_audit_trail(self, calculation_id: str) -> List[AuditEntry]:
        """특정 계산의 감사 추적 조회

        Args:
            calculation_id: 계산 ID

        Returns:
            해당 계산의 모든 감사 엔트리
        """
        return [
            entry for entry in self.entries
            if entry.calculation_id == calculation_id
        ]

    def generate_audit_report(self, calculation_id: str) -> Dict[str, Any]:
        """감사 보고서 생성

        Args:
            calculation_id: 계산 ID

        Returns:
            전체 감사 보고서
        """
        trail = self.get_calculation_audit_trail(calculation_id)

        if not trail:
            return {
                "calculation_id": calculation_id,
                "message": "No audit trail found"
            }

        return {
            "calculation_id": calculation_id,
            "total_events": len(trail),
            "start_time": trail[0].timestamp.isoformat(),
            "end_time": trail[-1].timestamp.isoformat(),
            "events": [entry.to_dict() for entry in trail],
            "summary": self._generate_summary(trail)
        }

    def _generate_summary(self, trail: List[AuditEntry]) -> Dict[str, Any]:
        """감사 추적 요약 생성"""
        event_counts: Dict[str, int] = {}
        for entry in trail:
            event_type = entry.event_type.value
            event_counts[event_type] = event_counts.get(event_type, 0) + 1

        return {
            "event_counts": event_counts,
            "has_errors": any(
                entry.event_type == AuditEventType.ERROR_OCCURRED
                for entry in trail
            )
        }

    def clear(self) -> None:
        self.entries.clear()


# 전역 감사 서비스 인스턴스
audit_service = AuditService(log_file=config.AUDIT_LOG_FILE)
