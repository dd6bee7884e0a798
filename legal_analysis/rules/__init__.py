"""
Jurisdiction rules engine.

Only US-CA ships with rule content; every lookup degrades to documented
defaults for other jurisdictions.
"""

from .types import (
    JurisdictionRules,
    SpecialRule,
    DamagesCap,
    StatutoryMinimum,
    InterestResult,
    LimitationsResult,
)
from .california import CALIFORNIA_RULES
from .engine import (
    get_rules,
    register_jurisdiction,
    unregister_jurisdiction,
    is_jurisdiction_supported,
    get_supported_jurisdictions,
    to_date,
    calculate_interest,
    get_prejudgment_interest_rate,
    get_applicable_statutes,
    get_burden_standard,
    check_statute_of_limitations,
    get_damages_caps,
    get_special_rules,
    get_statutory_minimum,
    format_citation,
    get_small_claims_limit,
    get_jurisdictional_clarity,
)

__all__ = [
    "JurisdictionRules",
    "SpecialRule",
    "DamagesCap",
    "StatutoryMinimum",
    "InterestResult",
    "LimitationsResult",
    "CALIFORNIA_RULES",
    "get_rules",
    "register_jurisdiction",
    "unregister_jurisdiction",
    "is_jurisdiction_supported",
    "get_supported_jurisdictions",
    "to_date",
    "calculate_interest",
    "get_prejudgment_interest_rate",
    "get_applicable_statutes",
    "get_burden_standard",
    "check_statute_of_limitations",
    "get_damages_caps",
    "get_special_rules",
    "get_statutory_minimum",
    "format_citation",
    "get_small_claims_limit",
    "get_jurisdictional_clarity",
]
