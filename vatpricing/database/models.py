"""데이터베이스 모델 정의"""

from sqlalchemy import (
    Column, Integer, String, DateTime, Numeric, Boolean,
    Text, ForeignKey, Date, JSON
)
from sqlalchemy.orm import declarative_base, relationship
from ..core.calculation import utc_now

Base = declarative_base()


class CountryDB(Base):
    """국가 테이블

    VAT 신고 서비스를 제공하는 국가를 저장합니다.
    """
    __tablename__ = "countries"

    code = Column(String(2), primary_key=True, comment="ISO 3166-1 alpha-2")
    name = Column(String(100), nullable=False)
    currency_code = Column(String(3), nullable=False)
    standard_vat_rate = Column(Numeric(5, 2), nullable=False, default=0)
    filing_frequencies = Column(JSON, nullable=True, comment="Monthly, Quarterly, Annually")
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    # 관계
    rules = relationship("RuleDB", back_populates="country")

    def __repr__(self):
        return f"<Country(code={self.code}, name={self.name}, active={self.is_active})>"


class RuleDB(Base):
    """가격 규칙 테이블

    규칙은 삭제하지 않고 is_active로 논리적 폐기합니다.
    """
    __tablename__ = "rules"

    # 삽입 순서 (같은 우선순위의 평가 순서)
    id = Column(Integer, primary_key=True, autoincrement=True)
    rule_id = Column(String(50), unique=True, nullable=False, index=True)
    country_code = Column(
        String(2),
        ForeignKey("countries.code"),
        nullable=False,
        index=True
    )

    rule_type = Column(
        String(20),
        nullable=False,
        comment="VatRate, Threshold, Complexity, Discount"
    )
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    expression = Column(Text, nullable=False)

    effective_from = Column(Date, nullable=False)
    effective_to = Column(Date, nullable=True)
    priority = Column(Integer, nullable=False, default=100)
    is_active = Column(Boolean, default=True, nullable=False)

    # [{"name": ..., "dataType": ...}], [{"parameter": ..., "operator": ..., "value": ...}]
    parameters = Column(JSON, nullable=True)
    conditions = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    # 관계
    country = relationship("CountryDB", back_populates="rules")

    def __repr__(self):
        return (
            f"<Rule(rule_id={self.rule_id}, country={self.country_code}, "
            f"type={self.rule_type}, priority={self.priority})>"
        )


class CalculationDB(Base):
    """가격 계산 테이블"""
    __tablename__ = "calculations"

    calculation_id = Column(String(36), primary_key=True)
    user_id = Column(String(100), nullable=False, index=True)
    service_id = Column(String(50), nullable=False)
    transaction_volume = Column(Integer, nullable=False)
    filing_frequency = Column(String(20), nullable=False)
    currency_code = Column(String(3), nullable=False)
    total_cost = Column(Numeric(20, 2), nullable=False)

    # {service_id: amount}, {reason: percentage} (적용 순서 유지)
    additional_services = Column(JSON, nullable=True)
    discounts = Column(JSON, nullable=True)

    calculation_date = Column(DateTime, default=utc_now, nullable=False)
    is_archived = Column(Boolean, default=False, nullable=False)

    # 관계
    countries = relationship(
        "CalculationCountryDB",
        back_populates="calculation",
        cascade="all, delete-orphan",
        order_by="CalculationCountryDB.id"
    )

    def __repr__(self):
        return (
            f"<Calculation(id={self.calculation_id}, total={self.total_cost} "
            f"{self.currency_code})>"
        )


class CalculationCountryDB(Base):
    """계산의 국가별 비용 테이블"""
    __tablename__ = "calculation_countries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    calculation_id = Column(
        String(36),
        ForeignKey("calculations.calculation_id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    country_code = Column(String(2), nullable=False)
    base_cost = Column(Numeric(20, 6), nullable=True)
    cost = Column(Numeric(20, 6), nullable=False)
    applied_rules = Column(JSON, nullable=True)

    # 관계
    calculation = relationship("CalculationDB", back_populates="countries")

    def __repr__(self):
        return f"<CalculationCountry(calculation={self.calculation_id}, country={self.country_code})>"
