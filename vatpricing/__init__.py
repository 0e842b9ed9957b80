"""VAT 신고 서비스 가격 계산 엔진"""

__version__ = "0.1.0"
