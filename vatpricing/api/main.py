"""FastAPI 애플리케이션 메인"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from .. import __version__, config
from ..audit import AuditMiddleware
from ..core.repository import load_seed_data
from ..database import SessionLocal, init_db, seed_database
from .routers import pricing, rules

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """애플리케이션 라이프사이클 관리"""
    config.configure_logging()

    # 시작 시 데이터베이스 초기화 + 시드 규칙 적재
    init_db()
    countries, seed_rules = load_seed_data(config.RULES_DIR)
    db = SessionLocal()
    try:
        seed_database(db, countries, seed_rules)
    finally:
        db.close()

    logger.info("VAT pricing API started (%d countries, %d seed rules)", len(countries), len(seed_rules))
    yield


# FastAPI 앱 생성
app = FastAPI(
    title="VAT Filing Pricing API",
    description="국가별 규칙 기반 VAT 신고 서비스 가격 계산",
    version=__version__,
    lifespan=lifespan
)

# CORS 설정
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 프로덕션에서는 특정 도메인만 허용
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(AuditMiddleware)

# 라우터 등록
app.include_router(
    pricing.router,
    prefix="/api/v1/pricing",
    tags=["가격계산"]
)

app.include_router(
    rules.router,
    prefix="/api/v1/rules",
    tags=["가격규칙"]
)


@app.get("/")
async def root():
    """루트 엔드포인트"""
    return {
        "message": "VAT Filing Pricing API",
        "version": __version__,
        "docs": "/docs"
    }


@app.get("/health")
async def health_check():
    """헬스체크 엔드포인트"""
    return {"status": "healthy"}
