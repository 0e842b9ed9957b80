"""API 엔드포인트 통합 테스트"""

import pytest
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from vatpricing import config
from vatpricing.api.main import app
from vatpricing.core.repository import load_seed_data
from vatpricing.database import Base, get_db, seed_database


# 테스트용 인메모리 데이터베이스 (모든 세션이 같은 연결 공유)
engine = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

SEED_COUNTRIES, SEED_RULES = load_seed_data(config.RULES_DIR)


def override_get_db():
    """테스트용 DB 세션"""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


# 라이프사이클(파일 DB 초기화)은 실행하지 않음
client = TestClient(app)


@pytest.fixture(scope="function", autouse=True)
def database():
    """테스트마다 시드 데이터로 새 스키마 구성"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        seed_database(db, SEED_COUNTRIES, SEED_RULES)
    finally:
        db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield
    app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=engine)


def calculation_request(**overrides):
    data = {
        "service_type": "StandardFiling",
        "transaction_volume": 50,
        "frequency": "Quarterly",
        "country_codes": ["GB"],
        "as_of": "2024-06-01",
    }
    data.update(overrides)
    return data


def rule_entry(rule_id, **overrides):
    data = {
        "ruleId": rule_id,
        "countryCode": "GB",
        "ruleType": "Threshold",
        "name": f"Rule {rule_id}",
        "expression": "basePrice + 100",
        "effectiveFrom": "2024-01-01",
        "priority": 50,
    }
    data.update(overrides)
    return data


class TestHealthCheck:
    """헬스체크 엔드포인트 테스트"""

    def test_root_endpoint(self):
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert "message" in data
        assert "version" in data

    def test_health_endpoint(self):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestCalculateEndpoint:
    """가격 계산 엔드포인트 테스트"""

    def test_calculate_two_countries(self):
        """GB+DE, 500건: 소계 2000, 5% 거래량 할인"""
        response = client.post("/api/v1/pricing/calculate", json=calculation_request(
            transaction_volume=500,
            country_codes=["GB", "DE"]
        ))
        assert response.status_code == 200

        data = response.json()
        assert data["currency_code"] == "EUR"
        assert Decimal(data["subtotal"]) == Decimal('2000')
        assert Decimal(data["total_cost"]) == Decimal('1900')
        assert [c["country_code"] for c in data["country_breakdowns"]] == ["GB", "DE"]
        assert data["country_breakdowns"][0]["applied_rules"] == ["GB-VAT-001", "GB-FREQ-001", "GB-VOL-001"]
        assert data["discounts"][0]["reason"] == "Volume Discount"

    def test_calculate_with_additional_service(self):
        response = client.post("/api/v1/pricing/calculate", json=calculation_request(
            additional_service_ids=["ReconciliationServices"]
        ))
        assert response.status_code == 200

        data = response.json()
        assert data["additional_services"][0]["service_id"] == "ReconciliationServices"
        assert Decimal(data["total_cost"]) == Decimal('1750')

    def test_country_codes_are_stripped(self):
        response = client.post("/api/v1/pricing/calculate", json=calculation_request(country_codes=[" GB "]))
        assert response.status_code == 200

    def test_invalid_request_returns_400(self):
        """검증 실패는 모든 에러와 함께 400"""
        response = client.post("/api/v1/pricing/calculate", json=calculation_request(
            transaction_volume=0,
            frequency="Weekly"
        ))
        assert response.status_code == 400

        detail = response.json()["detail"]
        assert detail["error"] == "PRICING-002"
        assert len(detail["errors"]) == 2

    def test_unsupported_country_returns_422(self):
        response = client.post("/api/v1/pricing/calculate", json=calculation_request(country_codes=["XX"]))
        assert response.status_code == 422
        assert response.json()["detail"]["error"] == "PRICING-003"

    def test_missing_field(self):
        """필수 필드 누락은 스키마 검증 오류"""
        response = client.post("/api/v1/pricing/calculate", json={"service_type": "StandardFiling"})
        assert response.status_code == 422


class TestStoredCalculations:
    """저장된 계산 조회 테스트"""

    def test_get_stored_calculation(self):
        created = client.post("/api/v1/pricing/calculate", json=calculation_request()).json()

        response = client.get(f"/api/v1/pricing/calculations/{created['calculation_id']}")
        assert response.status_code == 200

        data = response.json()
        assert data["service_id"] == "StandardFiling"
        assert data["filing_frequency"] == "Quarterly"
        assert Decimal(data["total_cost"]) == Decimal('1000')
        assert data["country_breakdowns"][0]["applied_rules"] == ["GB-VAT-001", "GB-FREQ-001", "GB-VOL-001"]

    def test_unknown_calculation_returns_404(self):
        response = client.get("/api/v1/pricing/calculations/does-not-exist")
        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "PRICING-009"


class TestCompareEndpoint:
    """시나리오 비교 테스트"""

    def test_compare(self):
        response = client.post("/api/v1/pricing/compare", json={"scenarios": [
            calculation_request(frequency="Monthly"),
            calculation_request(frequency="Quarterly"),
        ]})
        assert response.status_code == 200

        data = response.json()
        assert [Decimal(s["total_cost"]) for s in data["scenarios"]] == [Decimal('3000'), Decimal('1000')]
        assert data["lowest_cost_index"] == 1

    def test_compare_failure_names_scenario(self):
        response = client.post("/api/v1/pricing/compare", json={"scenarios": [
            calculation_request(),
            calculation_request(transaction_volume=-1),
        ]})
        assert response.status_code == 400
        assert response.json()["detail"]["message"].startswith("Scenario 2: ")


class TestRulesEndpoint:
    """규칙 관리 엔드포인트 테스트"""

    def test_list_rules_by_country(self):
        response = client.get("/api/v1/rules", params={"country_code": "GB"})
        assert response.status_code == 200

        data = response.json()
        assert data["total"] == 5
        assert data["rules"][0]["rule_id"] == "GB-VAT-000"

    def test_list_rules_paging(self):
        response = client.get("/api/v1/rules", params={"page": 2, "page_size": 10})
        data = response.json()

        assert data["page"] == 2
        assert len(data["rules"]) == 10
        assert data["total"] == len(SEED_RULES)

    def test_list_rules_by_type(self):
        response = client.get("/api/v1/rules", params={"country_code": "DE", "rule_type": "Complexity"})
        assert [r["rule_id"] for r in response.json()["rules"]] == ["DE-CPX-001"]

    def test_invalid_rule_type_returns_400(self):
        response = client.get("/api/v1/rules", params={"rule_type": "Surcharge"})
        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "RULE-002"

    def test_import_partial_failure(self):
        """항목별 독립 검증: 1개 저장, 2개 실패"""
        response = client.post("/api/v1/rules/import", json=[
            rule_entry("GB-NEW-001"),
            rule_entry("GB-NEW-002", name=""),
            rule_entry("GB-NEW-003", expression="basePrice + (100"),
        ])
        assert response.status_code == 200

        data = response.json()
        assert data["imported_rules"] == 1
        assert data["failed_rules"] == 2
        assert len(data["errors"]) == 2
        assert data["success"] is False

    def test_imported_rule_used_in_calculation(self):
        client.post("/api/v1/rules/import", json=[rule_entry("GB-FEE-001")])

        response = client.post("/api/v1/pricing/calculate", json=calculation_request())
        data = response.json()

        assert Decimal(data["total_cost"]) == Decimal('1100')
        assert data["country_breakdowns"][0]["applied_rules"][-1] == "GB-FEE-001"

    def test_import_duplicate_and_overwrite(self):
        entry = rule_entry("GB-VAT-001", ruleType="VatRate", expression="basePrice * 12", priority=10)

        rejected = client.post("/api/v1/rules/import", json=[entry]).json()
        assert rejected["failed_rules"] == 1

        replaced = client.post("/api/v1/rules/import", params={"overwrite": True}, json=[entry]).json()
        assert replaced["success"] is True

        data = client.post("/api/v1/pricing/calculate", json=calculation_request()).json()
        assert Decimal(data["total_cost"]) == Decimal('1200')

    def test_export_rules(self):
        response = client.get("/api/v1/rules/export", params={"country_code": "DE"})
        assert response.status_code == 200

        exported = response.json()
        assert [r["ruleId"] for r in exported] == ["DE-VAT-001", "DE-FREQ-001", "DE-VOL-001", "DE-CPX-001"]
        assert exported[0]["expression"] == "basePrice * 10"


class TestValidateExpressionEndpoint:
    """표현식 검증 엔드포인트 테스트"""

    def test_valid_expression_with_sample(self):
        response = client.post("/api/v1/rules/validate-expression", json={
            "expression": "transactionVolume > 1000 ? basePrice * 1.1 : basePrice",
            "sample_values": {"transactionVolume": 1500, "basePrice": 100}
        })
        data = response.json()

        assert data["is_valid"] is True
        assert Decimal(data["result"]) == Decimal('110')

    def test_valid_expression_without_sample(self):
        data = client.post("/api/v1/rules/validate-expression", json={"expression": "basePrice * 2"}).json()
        assert data == {"is_valid": True, "errors": [], "result": None}

    def test_unsafe_expression(self):
        data = client.post("/api/v1/rules/validate-expression", json={
            "expression": "__import__('os') + 1"
        }).json()

        assert data["is_valid"] is False
        assert "Expression contains potentially unsafe code" in data["errors"]

    def test_evaluation_error_reported(self):
        data = client.post("/api/v1/rules/validate-expression", json={
            "expression": "basePrice * rate",
            "sample_values": {"basePrice": 100}
        }).json()

        assert data["is_valid"] is False
        assert data["errors"]

    def test_non_finite_sample_value_reported(self):
        """NaN 샘플 값은 500이 아니라 검증 실패 결과"""
        response = client.post("/api/v1/rules/validate-expression", json={
            "expression": "x > 1 ? x : 2",
            "sample_values": {"x": "NaN"}
        })
        assert response.status_code == 200

        data = response.json()
        assert data["is_valid"] is False
        assert data["errors"]
