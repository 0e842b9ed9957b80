"""SQLAlchemy 저장소 구현"""

import logging
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from ..core.calculation import Calculation, CalculationCountry
from ..core.enums import FilingFrequency, RuleType
from ..core.errors import ErrorCodes, ValidationError
from ..core.money import Money
from ..core.repository import (
    CalculationRepository,
    Country,
    CountryRepository,
    Page,
    RuleRepository,
)
from ..core.rule import Rule, RuleCondition, RuleParameter
from .models import CalculationCountryDB, CalculationDB, CountryDB, RuleDB


logger = logging.getLogger(__name__)


def country_from_db(row: CountryDB) -> Country:
    return Country(
        code=row.code,
        name=row.name,
        currency_code=row.currency_code,
        standard_vat_rate=Decimal(str(row.standard_vat_rate or 0)),
        filing_frequencies=tuple(
            f for f in (FilingFrequency.parse(v) for v in row.filing_frequencies or []) if f is not None
        ),
        is_active=row.is_active
    )


def rule_from_db(row: RuleDB) -> Rule:
    return Rule(
        rule_id=row.rule_id,
        country_code=row.country_code,
        rule_type=row.rule_type,
        name=row.name,
        description=row.description or "",
        expression=row.expression,
        effective_from=row.effective_from,
        effective_to=row.effective_to,
        priority=row.priority,
        is_active=row.is_active,
        parameters=tuple(RuleParameter.from_dict(p) for p in row.parameters or []),
        conditions=tuple(RuleCondition.from_dict(c) for c in row.conditions or []),
        created_at=row.created_at
    )


def _apply_rule(row: RuleDB, rule: Rule) -> RuleDB:
    row.rule_id = rule.rule_id
    row.country_code = rule.country_code
    row.rule_type = rule.rule_type.value
    row.name = rule.name
    row.description = rule.description
    row.expression = rule.expression
    row.effective_from = rule.effective_from
    row.effective_to = rule.effective_to
    row.priority = rule.priority
    row.is_active = rule.is_active
    row.parameters = [p.to_dict() for p in rule.parameters]
    row.conditions = [c.to_dict() for c in rule.conditions]
    return row


class SqlCountryRepository(CountryRepository):
    """국가 저장소 (SQLAlchemy)"""

    def __init__(self, db: Session):
        self.db = db

    def exists_by_code(self, code: str) -> bool:
        return self.db.query(CountryDB).filter(
            CountryDB.code == code,
            CountryDB.is_active.is_(True)
        ).first() is not None

    def get_by_codes(self, codes: Iterable[str]) -> List[Country]:
        codes = list(codes)
        rows = self.db.query(CountryDB).filter(CountryDB.code.in_(codes)).all()
        by_code = {row.code: country_from_db(row) for row in rows}
        return [by_code[code] for code in codes if code in by_code]

    def get_all(self, active_only: bool = True) -> List[Country]:
        query = self.db.query(CountryDB)
        if active_only:
            query = query.filter(CountryDB.is_active.is_(True))
        return [country_from_db(row) for row in query.order_by(CountryDB.code).all()]

    def add(self, country: Country) -> Country:
        self.db.add(CountryDB(
            code=country.code,
            name=country.name,
            currency_code=country.currency_code,
            standard_vat_rate=country.standard_vat_rate,
            filing_frequencies=[f.value for f in country.filing_frequencies],
            is_active=country.is_active
        ))
        self.db.commit()
        return country


class SqlRuleRepository(RuleRepository):
    """규칙 저장소 (SQLAlchemy)

    같은 우선순위의 평가 순서가 유지되도록 삽입 순서(id)로 정렬해 반환합니다.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_rules_by_country(self, country_code: str) -> List[Rule]:
        rows = self.db.query(RuleDB).filter(
            RuleDB.country_code == country_code
        ).order_by(RuleDB.id).all()
        return [rule_from_db(row) for row in rows]

    def get_paged_rules(
        self,
        page: int = 1,
        page_size: int = 20,
        country_code: Optional[str] = None,
        rule_type: Optional[RuleType] = None,
        active_only: bool = False
    ) -> Page:
        query = self.db.query(RuleDB)
        if country_code:
            query = query.filter(RuleDB.country_code == country_code)
        if rule_type is not None:
            query = query.filter(RuleDB.rule_type == rule_type.value)
        if active_only:
            query = query.filter(RuleDB.is_active.is_(True))

        total = query.count()
        rows = query.order_by(RuleDB.id).offset((max(page, 1) - 1) * page_size).limit(page_size).all()
        return Page(
            items=[rule_from_db(row) for row in rows],
            total_count=total,
            page=page,
            page_size=page_size
        )

    def get_by_id(self, rule_id: str) -> Optional[Rule]:
        row = self.db.query(RuleDB).filter(RuleDB.rule_id == rule_id).first()
        return rule_from_db(row) if row else None

    def add(self, rule: Rule) -> Rule:
        """규칙 추가

        Raises:
            ValidationError: 같은 rule_id가 이미 존재하는 경우
        """
        if self.db.query(RuleDB).filter(RuleDB.rule_id == rule.rule_id).first() is not None:
            raise ValidationError(
                f"Rule {rule.rule_id} already exists",
                code=ErrorCodes.Rule.DUPLICATE_RULE_ID
            )
        self.db.add(_apply_rule(RuleDB(), rule))
        self.db.commit()
        return rule

    def update(self, rule: Rule) -> Rule:
        row = self.db.query(RuleDB).filter(RuleDB.rule_id == rule.rule_id).first()
        if row is None:
            return self.add(rule)
        _apply_rule(row, rule)
        self.db.commit()
        return rule


class SqlCalculationRepository(CalculationRepository):
    """계산 저장소 (SQLAlchemy)"""

    def __init__(self, db: Session):
        self.db = db

    def add(self, calculation: Calculation) -> Calculation:
        row = CalculationDB(
            calculation_id=calculation.calculation_id,
            user_id=calculation.user_id,
            service_id=calculation.service_id,
            transaction_volume=calculation.transaction_volume,
            filing_frequency=calculation.filing_frequency.value,
            currency_code=calculation.currency_code,
            total_cost=calculation.total_cost.round().amount,
            additional_services={
                service_id: str(cost.amount)
                for service_id, cost in calculation.additional_services.items()
            },
            discounts={reason: str(pct) for reason, pct in calculation.discounts.items()},
            calculation_date=calculation.calculation_date,
            is_archived=calculation.is_archived
        )
        for breakdown in calculation.country_breakdowns:
            row.countries.append(CalculationCountryDB(
                country_code=breakdown.country_code,
                base_cost=breakdown.base_cost.amount if breakdown.base_cost else None,
                cost=breakdown.cost.amount,
                applied_rules=list(breakdown.applied_rule_ids)
            ))

        self.db.add(row)
        self.db.commit()
        logger.debug("Saved calculation %s", calculation.calculation_id)
        return calculation

    def get_by_id(self, calculation_id: str) -> Optional[Calculation]:
        row = self.db.query(CalculationDB).filter(
            CalculationDB.calculation_id == calculation_id
        ).first()
        if row is None:
            return None

        currency = row.currency_code
        return Calculation(
            user_id=row.user_id,
            service_id=row.service_id,
            transaction_volume=row.transaction_volume,
            filing_frequency=FilingFrequency.parse(row.filing_frequency),
            currency_code=currency,
            calculation_id=row.calculation_id,
            country_breakdowns=[
                CalculationCountry(
                    country_code=c.country_code,
                    cost=Money(Decimal(str(c.cost)), currency),
                    applied_rule_ids=list(c.applied_rules or []),
                    base_cost=Money(Decimal(str(c.base_cost)), currency) if c.base_cost is not None else None
                )
                for c in row.countries
            ],
            additional_services={
                service_id: Money(Decimal(amount), currency)
                for service_id, amount in (row.additional_services or {}).items()
            },
            discounts={
                reason: Decimal(pct)
                for reason, pct in (row.discounts or {}).items()
            },
            total_cost=Money(Decimal(str(row.total_cost)), currency),
            calculation_date=row.calculation_date,
            is_archived=row.is_archived
        )


def seed_database(db: Session, countries: Iterable[Country], rules: Iterable[Rule]) -> int:
    """시드 국가/규칙 중 아직 없는 항목만 저장

    Returns:
        새로 저장한 규칙 수
    """
    country_repository = SqlCountryRepository(db)
    for country in countries:
        if db.query(CountryDB).filter(CountryDB.code == country.code).first() is None:
            country_repository.add(country)

    rule_repository = SqlRuleRepository(db)
    added = 0
    for rule in rules:
        if rule_repository.get_by_id(rule.rule_id) is None:
            rule_repository.add(rule)
            added += 1

    logger.info("Seeded %d rules", added)
    return added
