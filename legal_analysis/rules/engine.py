"""
Jurisdiction Rules Engine
=========================

Pure lookup/compute functions over the jurisdiction registry. None of them
raise for an unsupported jurisdiction: lookups return None or an empty list,
computations fall back to documented defaults (7% simple interest,
preponderance, 4-year limitation period).
"""

import logging
from datetime import date, datetime
from typing import Dict, List, Optional, Union

from ..schemas import BurdenStandard
from .types import (
    JurisdictionRules,
    DamagesCap,
    SpecialRule,
    StatutoryMinimum,
    InterestResult,
    LimitationsResult,
)
from .california import CALIFORNIA_RULES

logger = logging.getLogger(__name__)

DEFAULT_INTEREST_RATE = 0.07
DEFAULT_INTEREST_BASIS = "Default 7% legal rate"
DEFAULT_LIMITATION_YEARS = 4
DEFAULT_SMALL_CLAIMS_LIMIT = 10000
DEFAULT_JURISDICTIONAL_CLARITY = 0.5

DateLike = Union[date, datetime, str]

_REGISTRY: Dict[str, JurisdictionRules] = {
    CALIFORNIA_RULES.jurisdiction: CALIFORNIA_RULES,
}


# =============================================================================
# Registry
# =============================================================================

def get_rules(jurisdiction: str) -> Optional[JurisdictionRules]:
    """Rules for a jurisdiction, or None when it is not supported"""
    return _REGISTRY.get(jurisdiction)


def register_jurisdiction(rules: JurisdictionRules) -> None:
    """Add or replace a jurisdiction's rule set"""
    _REGISTRY[rules.jurisdiction] = rules
    logger.info(f"Registered jurisdiction rules: {rules.jurisdiction}")


def unregister_jurisdiction(jurisdiction: str) -> None:
    _REGISTRY.pop(jurisdiction, None)


def is_jurisdiction_supported(jurisdiction: str) -> bool:
    return jurisdiction in _REGISTRY


def get_supported_jurisdictions() -> List[str]:
    return list(_REGISTRY.keys())


# =============================================================================
# Dates
# =============================================================================

def to_date(value: DateLike) -> date:
    """Coerce a date, datetime or ISO string (YYYY-MM-DD...) to a date"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip()[:10])


def _add_years(d: date, years: int) -> date:
    try:
        return d.replace(year=d.year + years)
    except ValueError:
        # Feb 29 in a non-leap target year
        return d.replace(year=d.year + years, day=28)


# =============================================================================
# Interest
# =============================================================================

def calculate_interest(
    jurisdiction: str,
    principal: float,
    start_date: DateLike,
    end_date: DateLike,
    is_contract_claim: bool,
    custom_rate: Optional[float] = None,
) -> InterestResult:
    """
    Simple prejudgment interest.

    days = whole days between the dates, year = 365 days, amount rounded to
    cents. A custom (contractual) rate overrides the statutory one.
    """
    rules = get_rules(jurisdiction)

    if custom_rate is not None:
        rate, basis = custom_rate, "Contractual rate"
    elif rules is None:
        rate, basis = DEFAULT_INTEREST_RATE, DEFAULT_INTEREST_BASIS
    elif is_contract_claim:
        rate, basis = rules.prejudgment_interest_rate, rules.prejudgment_interest_basis
    else:
        rate, basis = rules.default_interest_rate, rules.default_interest_basis

    days = max(0, (to_date(end_date) - to_date(start_date)).days)
    years = days / 365
    amount = round(principal * rate * years, 2)

    return InterestResult(amount=amount, rate=rate, days=days, statutory_basis=basis)


def get_prejudgment_interest_rate(jurisdiction: str, is_contract_claim: bool) -> float:
    rules = get_rules(jurisdiction)
    if not rules:
        return DEFAULT_INTEREST_RATE
    return rules.prejudgment_interest_rate if is_contract_claim else rules.default_interest_rate


# =============================================================================
# Statutes / burden / limitations
# =============================================================================

def get_applicable_statutes(
    jurisdiction: str,
    dispute_type: str,
    issue_categories: Optional[List[str]] = None,
) -> List[str]:
    """
    Statutes applicable to a dispute, deduplicated with order preserved.

    Base statutes first, then those for the dispute type, then those for each
    issue category.
    """
    rules = get_rules(jurisdiction)
    if not rules:
        return []

    issue_categories = issue_categories or []
    statutes = list(rules.base_statutes)
    statutes.extend(
        rules.statutes_by_dispute_type.get(
            (dispute_type or "").upper(), rules.default_dispute_statutes
        )
    )
    for issue, issue_statutes in rules.statutes_by_issue.items():
        if issue in issue_categories:
            statutes.extend(issue_statutes)

    return list(dict.fromkeys(statutes))


def get_burden_standard(jurisdiction: str, issue_type: str) -> BurdenStandard:
    rules = get_rules(jurisdiction)
    if not rules:
        return BurdenStandard.PREPONDERANCE

    elevated = rules.elevated_burden_issues.get((issue_type or "").lower())
    return elevated or rules.default_burden_standard


def check_statute_of_limitations(
    jurisdiction: str,
    issue_type: str,
    breach_date: DateLike,
    as_of: Optional[DateLike] = None,
) -> LimitationsResult:
    """Whether a claim arising on breach_date is still timely on as_of (default today)"""
    rules = get_rules(jurisdiction)
    breach = to_date(breach_date)
    today = to_date(as_of) if as_of is not None else date.today()

    if rules:
        key = rules.limitation_categories.get(
            (issue_type or "").lower(), rules.default_limitation_category
        )
        limit_years = rules.statute_of_limitations.get(key) or DEFAULT_LIMITATION_YEARS
    else:
        limit_years = DEFAULT_LIMITATION_YEARS

    expiration = _add_years(breach, limit_years)
    return LimitationsResult(
        within_limit=today < expiration,
        limit_years=limit_years,
        expiration_date=expiration,
    )


# =============================================================================
# Damages rules
# =============================================================================

def get_damages_caps(jurisdiction: str, dispute_type: str) -> List[DamagesCap]:
    rules = get_rules(jurisdiction)
    if not rules:
        return []
    caps = list(rules.damages_caps.get((dispute_type or "").upper(), []))
    caps.extend(rules.damages_caps.get("*", []))
    return caps


def get_special_rules(jurisdiction: str, category: str) -> List[SpecialRule]:
    rules = get_rules(jurisdiction)
    if not rules:
        return []
    return [r for r in rules.special_rules if r.category == category]


def get_statutory_minimum(jurisdiction: str, category: str) -> Optional[StatutoryMinimum]:
    rules = get_rules(jurisdiction)
    if not rules:
        return None
    for minimum in rules.statutory_minimums:
        if minimum.category == category:
            return minimum
    return None


# =============================================================================
# Misc lookups
# =============================================================================

def format_citation(jurisdiction: str, code: str, section: str) -> str:
    """Format e.g. ('civil code', '3289') as 'Cal. Civ. Code § 3289'"""
    rules = get_rules(jurisdiction)
    abbrev = code
    if rules:
        abbrev = rules.code_abbreviations.get(code.lower(), code)
    return f"{abbrev} § {section}"


def get_small_claims_limit(jurisdiction: str, is_business: bool = False) -> float:
    rules = get_rules(jurisdiction)
    if not rules:
        return DEFAULT_SMALL_CLAIMS_LIMIT
    if is_business and rules.small_claims_limit_business:
        return rules.small_claims_limit_business
    return rules.small_claims_limit


def get_jurisdictional_clarity(jurisdiction: str) -> float:
    rules = get_rules(jurisdiction)
    return rules.jurisdictional_clarity if rules else DEFAULT_JURISDICTIONAL_CLARITY
