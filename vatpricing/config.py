"""애플리케이션 설정

환경 변수로 덮어쓸 수 있는 설정과 가격 상수를 모아 둡니다.
"""

import logging
import os
from decimal import Decimal
from pathlib import Path
from typing import Dict, NamedTuple


BASE_DIR = Path(__file__).resolve().parent.parent

# 환경 변수 기반 설정
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./vatpricing.db")
DEFAULT_CURRENCY = os.getenv("VATPRICING_DEFAULT_CURRENCY", "EUR")
RULES_DIR = Path(os.getenv("VATPRICING_RULES_DIR", str(BASE_DIR / "rules")))
AUDIT_LOG_FILE = os.getenv("VATPRICING_AUDIT_LOG") or None
AUDIT_MAX_ENTRIES = int(os.getenv("VATPRICING_AUDIT_MAX_ENTRIES", "10000"))
LOG_LEVEL = os.getenv("VATPRICING_LOG_LEVEL", "INFO")
SQL_ECHO = os.getenv("VATPRICING_SQL_ECHO", "false").lower() == "true"

# 서비스 유형별 기본 가격 (규칙 체인의 초기 basePrice)
SERVICE_BASE_PRICES: Dict[str, Decimal] = {
    "StandardFiling": Decimal('100'),
    "ComplexFiling": Decimal('200'),
    "PriorityService": Decimal('300'),
}

# 서비스 등급 (규칙 표현식에서 숫자로 참조)
SERVICE_LEVELS: Dict[str, int] = {
    "StandardFiling": 1,
    "ComplexFiling": 2,
    "PriorityService": 3,
}


class AdditionalServiceOption(NamedTuple):
    """부가서비스 카탈로그 항목"""
    service_id: str
    name: str
    price: Decimal


ADDITIONAL_SERVICES: Dict[str, AdditionalServiceOption] = {
    option.service_id: option
    for option in (
        AdditionalServiceOption("TaxConsultancy", "Tax Consultancy", Decimal('500')),
        AdditionalServiceOption("HistoricalDataProcessing", "Historical Data Processing", Decimal('1000')),
        AdditionalServiceOption("ReconciliationServices", "Reconciliation Services", Decimal('750')),
    )
}

# 비교 요청 시 최대 시나리오 수
MAX_COMPARISON_SCENARIOS = 5

# 규칙 목록 페이지 크기
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def configure_logging(level: str = LOG_LEVEL) -> None:
    """루트 로거 설정 (애플리케이션 진입점에서 한 번 호출)"""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
