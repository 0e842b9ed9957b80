"""데이터베이스 모듈"""

from .models import (
    Base,
    CountryDB,
    RuleDB,
    CalculationDB,
    CalculationCountryDB
)
from .connection import (
    engine,
    SessionLocal,
    get_db,
    init_db
)
from .repositories import (
    SqlCountryRepository,
    SqlRuleRepository,
    SqlCalculationRepository,
    seed_database
)

__all__ = [
    'Base',
    'CountryDB',
    'RuleDB',
    'CalculationDB',
    'CalculationCountryDB',
    'engine',
    'SessionLocal',
    'get_db',
    'init_db',
    'SqlCountryRepository',
    'SqlRuleRepository',
    'SqlCalculationRepository',
    'seed_database'
]
