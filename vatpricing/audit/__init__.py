"""감사 추적 모듈"""

from .audit_middleware import AuditMiddleware
from .audit_service import AuditService, AuditEntry, AuditEventType, audit_service
from .calculation_auditor import CalculationAuditor

__all__ = [
    'AuditMiddleware',
    'AuditService',
    'AuditEntry',
    'AuditEventType',
    'CalculationAuditor',
    'audit_service'
]
