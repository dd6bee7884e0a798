"""
Tests for the Jurisdiction Rules Engine
=======================================

US-CA content plus the documented defaults for unsupported jurisdictions.
"""

from datetime import date

import pytest

from legal_analysis.rules import (
    CALIFORNIA_RULES,
    DamagesCap,
    JurisdictionRules,
    calculate_interest,
    check_statute_of_limitations,
    format_citation,
    get_applicable_statutes,
    get_burden_standard,
    get_damages_caps,
    get_jurisdictional_clarity,
    get_prejudgment_interest_rate,
    get_rules,
    get_small_claims_limit,
    get_special_rules,
    get_statutory_minimum,
    get_supported_jurisdictions,
    is_jurisdiction_supported,
    register_jurisdiction,
    to_date,
    unregister_jurisdiction,
)
from legal_analysis.schemas import BurdenStandard


# =============================================================================
# Registry
# =============================================================================

class TestRegistry:
    """Jurisdiction lookup and registration"""

    def test_california_supported(self):
        assert is_jurisdiction_supported("US-CA")
        assert "US-CA" in get_supported_jurisdictions()
        assert get_rules("US-CA") is CALIFORNIA_RULES

    def test_unknown_jurisdiction_returns_none(self):
        assert get_rules("US-ZZ") is None
        assert not is_jurisdiction_supported("US-ZZ")

    def test_register_and_unregister(self):
        rules = JurisdictionRules(jurisdiction="XX-TEST", display_name="Test", small_claims_limit=5000)
        register_jurisdiction(rules)
        try:
            assert get_rules("XX-TEST") is rules
            assert "XX-TEST" in get_supported_jurisdictions()
        finally:
            unregister_jurisdiction("XX-TEST")
        assert get_rules("XX-TEST") is None


# =============================================================================
# Interest
# =============================================================================

class TestInterest:
    """Simple prejudgment interest"""

    def test_contract_rate_one_year(self):
        result = calculate_interest("US-CA", 10000, "2023-01-01", "2024-01-01", True)
        assert result.days == 365
        assert result.rate == 0.10
        assert result.amount == 1000.0
        assert result.statutory_basis == "Cal. Civ. Code § 3289(b)"

    def test_non_contract_rate(self):
        result = calculate_interest("US-CA", 10000, date(2023, 1, 1), date(2024, 1, 1), False)
        assert result.rate == 0.07
        assert result.amount == 700.0
        assert result.statutory_basis == "Cal. Civ. Code § 3289(a)"

    def test_partial_year_rounded_to_cents(self):
        result = calculate_interest("US-CA", 1000, "2023-01-01", "2023-01-31", True)
        assert result.days == 30
        assert result.amount == round(1000 * 0.10 * 30 / 365, 2)

    def test_unknown_jurisdiction_defaults_to_seven_percent(self):
        result = calculate_interest("US-ZZ", 10000, "2023-01-01", "2024-01-01", True)
        assert result.rate == 0.07
        assert result.amount == 700.0
        assert result.statutory_basis == "Default 7% legal rate"

    def test_custom_rate_overrides(self):
        result = calculate_interest("US-CA", 10000, "2023-01-01", "2024-01-01", True, custom_rate=0.05)
        assert result.amount == 500.0
        assert result.statutory_basis == "Contractual rate"

    def test_end_before_start_accrues_nothing(self):
        result = calculate_interest("US-CA", 10000, "2024-01-01", "2023-01-01", True)
        assert result.days == 0
        assert result.amount == 0.0

    def test_prejudgment_rate_lookup(self):
        assert get_prejudgment_interest_rate("US-CA", True) == 0.10
        assert get_prejudgment_interest_rate("US-CA", False) == 0.07
        assert get_prejudgment_interest_rate("US-ZZ", True) == 0.07

    def test_to_date_accepts_datetime_strings(self):
        assert to_date("2024-03-05T10:00:00Z") == date(2024, 3, 5)


# =============================================================================
# Statutes and burden
# =============================================================================

class TestStatutes:
    """Statute lists and burden standards"""

    def test_contract_statutes_deduplicated(self):
        statutes = get_applicable_statutes("US-CA", "CONTRACT", ["breach_of_contract"])
        assert len(statutes) == len(set(statutes))
        assert statutes[0] == "Cal. Civ. Code § 1549 (Essential Elements of Contract)"
        assert "Cal. Civ. Code § 3300 (Contract Damages - General Rule)" in statutes

    def test_issue_categories_add_statutes(self):
        statutes = get_applicable_statutes("US-CA", "CONTRACT", ["fraud"])
        assert "Cal. Civ. Code § 1709 (Deceit)" in statutes

    def test_goods_includes_consumer_protection(self):
        statutes = get_applicable_statutes("US-CA", "GOODS")
        assert any("CLRA" in s for s in statutes)

    def test_unknown_jurisdiction_has_no_statutes(self):
        assert get_applicable_statutes("US-ZZ", "CONTRACT", ["fraud"]) == []

    def test_burden_standards(self):
        assert get_burden_standard("US-CA", "breach_of_contract") == BurdenStandard.PREPONDERANCE
        assert get_burden_standard("US-CA", "fraud") == BurdenStandard.CLEAR_AND_CONVINCING
        assert get_burden_standard("US-CA", "punitive_damages") == BurdenStandard.CLEAR_AND_CONVINCING
        assert get_burden_standard("US-ZZ", "fraud") == BurdenStandard.PREPONDERANCE

    def test_format_citation(self):
        assert format_citation("US-CA", "civil code", "3289") == "Cal. Civ. Code § 3289"
        assert format_citation("US-ZZ", "Penal", "1") == "Penal § 1"


# =============================================================================
# Statute of limitations
# =============================================================================

class TestLimitations:
    """Limitation periods"""

    def test_written_contract_within_limit(self):
        result = check_statute_of_limitations("US-CA", "breach_of_contract", "2020-01-15", as_of="2023-06-01")
        assert result.limit_years == 4
        assert result.expiration_date == date(2024, 1, 15)
        assert result.within_limit is True

    def test_oral_contract_expired(self):
        result = check_statute_of_limitations("US-CA", "oral_contract", "2020-01-15", as_of="2023-06-01")
        assert result.limit_years == 2
        assert result.within_limit is False

    def test_unknown_jurisdiction_defaults_to_four_years(self):
        result = check_statute_of_limitations("US-ZZ", "negligence", "2020-01-15", as_of="2023-06-01")
        assert result.limit_years == 4
        assert result.within_limit is True

    def test_leap_day_breach(self):
        result = check_statute_of_limitations("US-CA", "negligence", "2020-02-29", as_of="2021-01-01")
        assert result.expiration_date == date(2022, 2, 28)


# =============================================================================
# Damages rules
# =============================================================================

class TestDamagesRules:
    """Caps, minimums and special rules"""

    def test_goods_dispute_has_clra_and_punitive_caps(self):
        caps = get_damages_caps("US-CA", "GOODS")
        types = [c.type for c in caps]
        assert types == ["statutory", "punitive"]
        assert caps[0].max_amount == 5000
        assert caps[1].max_multiplier == 10

    def test_contract_dispute_has_only_punitive_cap(self):
        caps = get_damages_caps("US-CA", "contract")
        assert [c.type for c in caps] == ["punitive"]

    def test_unknown_jurisdiction_has_no_caps(self):
        assert get_damages_caps("US-ZZ", "GOODS") == []

    def test_clra_minimum(self):
        minimum = get_statutory_minimum("US-CA", "consumer_protection")
        assert minimum.amount == 1000
        assert minimum.rule_id == "clra_minimum_damages"
        assert get_statutory_minimum("US-CA", "breach_of_contract") is None
        assert get_statutory_minimum("US-ZZ", "consumer_protection") is None

    def test_special_rules_by_category(self):
        ids = [r.id for r in get_special_rules("US-CA", "consumer_protection")]
        assert ids == ["clra_minimum_damages", "clra_treble_damages", "ucl_restitution"]
        assert get_special_rules("US-ZZ", "damages") == []

    def test_small_claims_limits(self):
        assert get_small_claims_limit("US-CA") == 12500
        assert get_small_claims_limit("US-CA", is_business=True) == 6250
        assert get_small_claims_limit("US-ZZ") == 10000

    def test_jurisdictional_clarity(self):
        assert get_jurisdictional_clarity("US-CA") == 0.85
        assert get_jurisdictional_clarity("US-ZZ") == 0.5

    @pytest.mark.parametrize("dispute_type", ["SERVICE", "service", "Goods"])
    def test_cap_lookup_is_case_insensitive(self, dispute_type):
        assert any(c.type == "statutory" for c in get_damages_caps("US-CA", dispute_type))

    def test_registered_jurisdiction_caps(self):
        register_jurisdiction(JurisdictionRules(
            jurisdiction="XX-CAPS",
            display_name="Caps",
            small_claims_limit=5000,
            damages_caps={"*": [DamagesCap(type="punitive", max_multiplier=3)]},
        ))
        try:
            assert get_damages_caps("XX-CAPS", "CONTRACT")[0].max_multiplier == 3
        finally:
            unregister_jurisdiction("XX-CAPS")
