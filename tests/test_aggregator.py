"""계산 집계 테스트 (국가 비용, 할인, 부가서비스)"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from vatpricing.core import (
    Calculation,
    FilingFrequency,
    Money,
    ValidationError,
    CurrencyMismatchError,
    ErrorCodes,
)
from vatpricing.core import aggregator
from vatpricing.core.aggregator import (
    VOLUME_DISCOUNT_REASON,
    MULTI_COUNTRY_DISCOUNT_REASON,
)


def eur(amount):
    return Money.of(amount, "EUR")


@pytest.fixture
def calculation():
    return Calculation.create(
        user_id="user-1",
        service_id="StandardFiling",
        transaction_volume=50,
        filing_frequency=FilingFrequency.QUARTERLY,
        currency_code="EUR"
    )


class TestCalculationCreate:
    """Calculation 생성 테스트"""

    def test_create_starts_at_zero(self, calculation):
        assert calculation.total_cost == Money.zero("EUR")
        assert calculation.countries_count == 0
        assert calculation.calculation_id

    def test_calculation_date_is_naive_utc(self, calculation):
        """계산 시각은 DB 컬럼과 같은 naive UTC"""
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        assert calculation.calculation_date.tzinfo is None
        assert abs(now - calculation.calculation_date) < timedelta(minutes=1)

    def test_frequency_parsed_from_string(self):
        calculation = Calculation.create("u", "StandardFiling", 10, "monthly", "EUR")
        assert calculation.filing_frequency is FilingFrequency.MONTHLY

    def test_invalid_values_collected(self):
        """잘못된 값은 한 번에 보고"""
        with pytest.raises(ValidationError) as exc_info:
            Calculation.create("", "StandardFiling", 0, "Weekly", "EUR")

        errors = exc_info.value.errors
        assert "UserId is required" in errors
        assert "Invalid transaction volume: 0" in errors
        assert "Invalid filing frequency: Weekly" in errors


class TestCountryCosts:
    """국가 비용 추가/제거 테스트"""

    def test_add_country_updates_total(self, calculation):
        aggregator.add_country_cost(calculation, "GB", eur(1000), ["GB-VAT-001"])
        aggregator.add_country_cost(calculation, "DE", eur(1500))

        assert calculation.total_cost == eur(2500)
        assert calculation.get_country_cost("DE") == eur(1500)
        assert calculation.get_country("GB").applied_rule_ids == ["GB-VAT-001"]

    def test_duplicate_country_rejected(self, calculation):
        aggregator.add_country_cost(calculation, "GB", eur(1000))
        with pytest.raises(ValidationError) as exc_info:
            aggregator.add_country_cost(calculation, "GB", eur(500))

        assert exc_info.value.code == ErrorCodes.Pricing.INVALID_PARAMETERS
        assert calculation.total_cost == eur(1000)

    def test_empty_country_code_rejected(self, calculation):
        with pytest.raises(ValidationError):
            aggregator.add_country_cost(calculation, "", eur(100))

    def test_currency_mismatch(self, calculation):
        """통화가 다르면 변환하지 않고 실패"""
        with pytest.raises(CurrencyMismatchError) as exc_info:
            aggregator.add_country_cost(calculation, "GB", Money.of(1000, "GBP"))

        assert exc_info.value.code == ErrorCodes.Pricing.CURRENCY_MISMATCH
        assert calculation.countries_count == 0

    def test_remove_country(self, calculation):
        aggregator.add_country_cost(calculation, "GB", eur(1000))
        aggregator.add_country_cost(calculation, "DE", eur(500))

        assert aggregator.remove_country(calculation, "GB") is True
        assert aggregator.remove_country(calculation, "GB") is False
        assert calculation.total_cost == eur(500)

    def test_base_and_additional_cost(self, calculation):
        breakdown = aggregator.add_country_cost(calculation, "GB", eur(1100), base_cost=eur(1000))

        assert breakdown.additional_cost == eur(100)
        assert breakdown.to_dict()['base_cost'] == '1000'


class TestAdditionalServices:
    """부가서비스 테스트"""

    def test_add_service(self, calculation):
        aggregator.add_country_cost(calculation, "GB", eur(1000))
        aggregator.add_additional_service(calculation, "TaxConsultancy", eur(500))

        assert calculation.total_cost == eur(1500)
        assert calculation.additional_services_count == 1

    def test_duplicate_service_rejected(self, calculation):
        aggregator.add_additional_service(calculation, "TaxConsultancy", eur(500))
        with pytest.raises(ValidationError):
            aggregator.add_additional_service(calculation, "TaxConsultancy", eur(500))

    def test_service_currency_mismatch(self, calculation):
        with pytest.raises(CurrencyMismatchError):
            aggregator.add_additional_service(calculation, "TaxConsultancy", Money.of(500, "USD"))

    def test_remove_service(self, calculation):
        aggregator.add_additional_service(calculation, "TaxConsultancy", eur(500))

        assert aggregator.remove_additional_service(calculation, "TaxConsultancy") is True
        assert aggregator.remove_additional_service(calculation, "TaxConsultancy") is False
        assert calculation.total_cost == Money.zero("EUR")


class TestDiscounts:
    """할인 테스트"""

    def test_apply_discount(self, calculation):
        aggregator.add_country_cost(calculation, "GB", eur(1000))
        total = aggregator.apply_discount(calculation, 10, "Promotion")

        assert total == eur(900)

    def test_same_reason_replaces(self):
        """같은 사유는 누적되지 않고 교체"""
        calculation = Calculation.create("u", "StandardFiling", 10, "Monthly", "EUR")
        aggregator.add_country_cost(calculation, "GB", eur(1000))
        aggregator.apply_discount(calculation, 10, "Promotion")
        aggregator.apply_discount(calculation, 20, "Promotion")

        assert calculation.discounts == {"Promotion": Decimal('20')}
        assert calculation.total_cost == eur(800)

    def test_discounts_stack_multiplicatively(self, calculation):
        """두 번째 할인은 첫 할인 적용 후 금액 기준"""
        aggregator.add_country_cost(calculation, "GB", eur(1000))
        aggregator.apply_discount(calculation, 10, "First")
        aggregator.apply_discount(calculation, 10, "Second")

        lines = aggregator.discount_lines(calculation)
        assert [line.amount for line in lines] == [eur(100), eur(90)]
        assert calculation.total_cost == eur(810)

    @pytest.mark.parametrize("percentage", [-1, 101])
    def test_out_of_range_percentage(self, calculation, percentage):
        with pytest.raises(ValidationError):
            aggregator.apply_discount(calculation, percentage, "Promotion")

    def test_empty_reason_rejected(self, calculation):
        with pytest.raises(ValidationError):
            aggregator.apply_discount(calculation, 10, "")

    def test_remove_discount(self, calculation):
        aggregator.add_country_cost(calculation, "GB", eur(1000))
        aggregator.apply_discount(calculation, 10, "Promotion")

        assert aggregator.remove_discount(calculation, "Promotion") is True
        assert aggregator.remove_discount(calculation, "Promotion") is False
        assert calculation.total_cost == eur(1000)

    def test_full_discount_gives_zero(self, calculation):
        aggregator.add_country_cost(calculation, "GB", eur(1000))
        aggregator.apply_discount(calculation, 100, "Waiver")

        assert calculation.total_cost.is_zero()


class TestTierDiscounts:
    """구간 할인 테스트"""

    @pytest.mark.parametrize("volume,expected", [
        (100, 0),
        (101, 5),
        (500, 5),
        (501, 10),
        (1000, 10),
        (1001, 15),
    ])
    def test_volume_tiers(self, volume, expected):
        """경계값은 아래 구간"""
        assert aggregator.volume_discount_percentage(volume) == Decimal(expected)

    @pytest.mark.parametrize("count,expected", [
        (1, 0),
        (2, 0),
        (3, 10),
        (4, 10),
        (5, 15),
        (9, 15),
        (10, 20),
    ])
    def test_multi_country_tiers(self, count, expected):
        assert aggregator.multi_country_discount_percentage(count) == Decimal(expected)

    def test_apply_volume_discount(self):
        calculation = Calculation.create("u", "StandardFiling", 600, "Monthly", "EUR")
        aggregator.add_country_cost(calculation, "GB", eur(1000))

        assert aggregator.apply_volume_discount(calculation) == Decimal('10')
        assert calculation.discounts[VOLUME_DISCOUNT_REASON] == Decimal('10')
        assert calculation.total_cost == eur(900)

    def test_no_tier_removes_existing_discount(self, calculation):
        """구간이 없으면 기존 구간 할인 제거"""
        aggregator.add_country_cost(calculation, "GB", eur(1000))
        calculation.discounts[VOLUME_DISCOUNT_REASON] = Decimal('5')

        assert aggregator.apply_volume_discount(calculation) == Decimal('0')
        assert VOLUME_DISCOUNT_REASON not in calculation.discounts
        assert calculation.total_cost == eur(1000)

    def test_apply_multi_country_discount(self, calculation):
        for code in ("GB", "DE", "FR"):
            aggregator.add_country_cost(calculation, code, eur(1000))

        assert aggregator.apply_multi_country_discount(calculation) == Decimal('10')
        assert calculation.discounts[MULTI_COUNTRY_DISCOUNT_REASON] == Decimal('10')
        assert calculation.total_cost == eur(2700)

    def test_volume_then_country_discount(self):
        """거래 건수 할인 후 다국가 할인 (곱셈 누적)"""
        calculation = Calculation.create("u", "StandardFiling", 1500, "Monthly", "EUR")
        for code in ("GB", "DE", "FR"):
            aggregator.add_country_cost(calculation, code, eur(1000))
        aggregator.apply_volume_discount(calculation)
        aggregator.apply_multi_country_discount(calculation)

        # 3000 * 0.85 * 0.9
        assert calculation.total_cost == eur(2295)


class TestRecalculate:
    """총액 재계산 테스트"""

    def test_recalculate_is_idempotent(self, calculation):
        aggregator.add_country_cost(calculation, "GB", eur(1234.56))
        aggregator.add_additional_service(calculation, "TaxConsultancy", eur(500))
        aggregator.apply_discount(calculation, 7.5, "Promotion")

        first = aggregator.recalculate_total_cost(calculation)
        second = aggregator.recalculate_total_cost(calculation)

        assert first == second == calculation.total_cost

    def test_subtotal_excludes_discounts(self, calculation):
        aggregator.add_country_cost(calculation, "GB", eur(1000))
        aggregator.add_additional_service(calculation, "TaxConsultancy", eur(500))
        aggregator.apply_discount(calculation, 50, "Promotion")

        assert aggregator.subtotal(calculation) == eur(1500)
        assert calculation.total_cost == eur(750)

    def test_mixed_currency_detected_on_recalculate(self, calculation):
        """직접 넣은 다른 통화 값도 재계산 시 검출"""
        calculation.additional_services["Foreign"] = Money.of(100, "USD")
        with pytest.raises(CurrencyMismatchError):
            aggregator.recalculate_total_cost(calculation)
