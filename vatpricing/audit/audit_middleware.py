"""FastAPI 감사 미들웨어"""

import time
from datetime import datetime
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .audit_service import AuditService, AuditEntry, AuditEventType, audit_service


class AuditMiddleware(BaseHTTPMiddleware):
    """API 요청/응답 감사 미들웨어

    모든 API 요청과 응답을 자동으로 로깅합니다.
    """

    def __init__(self, app: ASGIApp, audit_service: AuditService = audit_service):
        super().__init__(app)
        self.audit_service = audit_service

    async def dispatch(self, request: Request, call_next):
        """요청 처리 및 감사 로깅

        Args:
            request: HTTP 요청
            call_next: 다음 미들웨어/핸들러

        Returns:
            HTTP 응답
        """
        start_time = time.time()
        calculation_id = self._extract_calculation_id(request.url.path)

        self.audit_service.log_entry(AuditEntry(
            event_type=AuditEventType.API_REQUEST,
            timestamp=datetime.now(),
            calculation_id=calculation_id,
            request_data={
                "method": request.method,
                "path": request.url.path,
                "query_params": dict(request.query_params),
                "client_host": request.client.host if request.client else None,
                "content_type": request.headers.get("content-type")
            }
        ))

        try:
            response = await call_next(request)
        except Exception as e:
            self.audit_service.log_entry(AuditEntry(
                event_type=AuditEventType.ERROR_OCCURRED,
                timestamp=datetime.now(),
                calculation_id=calculation_id,
                error_data={
                    "exception_type": type(e).__name__,
                    "exception_message": str(e),
                    "processing_time_seconds": time.time() - start_time
                }
            ))
            raise

        self.audit_service.log_entry(AuditEntry(
            event_type=AuditEventType.API_RESPONSE,
            timestamp=datetime.now(),
            calculation_id=calculation_id,
            response_data={
                "status_code": response.status_code,
                "processing_time_seconds": time.time() - start_time
            }
        ))

        return response

    def _extract_calculation_id(self, path: str) -> Optional[str]:
        """URL 경로에서 계산 ID 추출

        /api/v1/pricing/calculations/{id} 패턴만 해당합니다.
        """
        parts = [p for p in path.split('/') if p]

        for i, part in enumerate(parts):
            if part == 'calculations' and i + 1 < len(parts):
                return parts[i + 1]

        return None
