"""
Jurisdiction rule data types.

A jurisdiction is described entirely by data (JurisdictionRules); the engine
functions in rules.engine interpret it. Adding a jurisdiction means adding a
JurisdictionRules instance, not new code paths.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

from ..schemas import BurdenStandard


@dataclass(frozen=True)
class SpecialRule:
    """A jurisdiction-specific rule (e.g. a statutory minimum recovery)"""
    id: str
    category: str
    rule: str
    conditions: List[str]
    effect: str
    statutory_basis: Optional[str] = None


@dataclass(frozen=True)
class DamagesCap:
    """
    Cap on a damages type.

    type is 'statutory', 'contractual' or 'punitive'. Statutory caps carry
    max_amount; punitive caps carry max_multiplier (of compensatory total).
    """
    type: str
    max_amount: Optional[float] = None
    max_multiplier: Optional[float] = None
    statutory_basis: Optional[str] = None
    conditions: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class StatutoryMinimum:
    """Floor on recovery when a violation of `category` is established"""
    category: str
    amount: float
    rule_id: str
    statutory_basis: Optional[str] = None
    item_id: str = "dmg-statutory-min"
    label: str = "Statutory minimum damages"


@dataclass(frozen=True)
class InterestResult:
    amount: float
    rate: float
    days: int
    statutory_basis: str


@dataclass(frozen=True)
class LimitationsResult:
    within_limit: bool
    limit_years: int
    expiration_date: date


@dataclass
class JurisdictionRules:
    """Complete rule set for one jurisdiction"""
    jurisdiction: str
    display_name: str

    # Small claims court limits
    small_claims_limit: float
    small_claims_limit_business: Optional[float] = None

    # Statute of limitations (years) keyed by limitation category, and the
    # mapping from issue type to limitation category
    statute_of_limitations: Dict[str, int] = field(default_factory=dict)
    limitation_categories: Dict[str, str] = field(default_factory=dict)
    default_limitation_category: str = "written_contract"

    # Interest rates and the authority for each
    default_interest_rate: float = 0.07
    default_interest_basis: str = "Default 7% legal rate"
    prejudgment_interest_rate: float = 0.07
    prejudgment_interest_basis: str = "Default 7% legal rate"
    postjudgment_interest_rate: Optional[float] = None

    # Statute lists
    consumer_protection_statutes: List[str] = field(default_factory=list)
    contract_statutes: List[str] = field(default_factory=list)
    commercial_statutes: List[str] = field(default_factory=list)
    base_statutes: List[str] = field(default_factory=list)
    statutes_by_dispute_type: Dict[str, List[str]] = field(default_factory=dict)
    default_dispute_statutes: List[str] = field(default_factory=list)
    statutes_by_issue: Dict[str, List[str]] = field(default_factory=dict)

    # Burden of proof
    default_burden_standard: BurdenStandard = BurdenStandard.PREPONDERANCE
    elevated_burden_issues: Dict[str, BurdenStandard] = field(default_factory=dict)

    # Damages caps keyed by upper-case dispute type; "*" applies to every type
    damages_caps: Dict[str, List[DamagesCap]] = field(default_factory=dict)
    statutory_minimums: List[StatutoryMinimum] = field(default_factory=list)

    special_rules: List[SpecialRule] = field(default_factory=list)

    # Citation code abbreviations, e.g. "civil code" -> "Cal. Civ. Code"
    code_abbreviations: Dict[str, str] = field(default_factory=dict)

    # How settled the jurisdiction's law is (confidence factor)
    jurisdictional_clarity: float = 0.5
