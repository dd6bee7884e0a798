"""
Tests for the Damages Calculator
================================

Fallback support ratio, prejudgment interest, caps and statutory minimums.
"""

from datetime import date

import pytest

from legal_analysis.damages_calculator import (
    DamagesClaim,
    apply_damages_caps,
    apply_statutory_minimum,
    calculate_damages,
    calculate_prejudgment_interest,
    extract_damages_claims,
    find_breach_date,
    get_default_damages_calculation,
    parse_damages_response,
    validate_adjustment_type,
    validate_damages_type,
)
from legal_analysis.errors import ProviderError
from legal_analysis.rules import (
    DamagesCap,
    JurisdictionRules,
    register_jurisdiction,
    unregister_jurisdiction,
)
from legal_analysis.schemas import (
    AdjustmentType,
    DamagesCalculation,
    DamagesItem,
    DamagesType,
)


@pytest.fixture
def punitive_jurisdiction():
    """Jurisdiction whose only rule is a 3x punitive cap"""
    register_jurisdiction(JurisdictionRules(
        jurisdiction="US-XX",
        display_name="Test State",
        small_claims_limit=10000,
        damages_caps={"*": [DamagesCap(type="punitive", max_multiplier=3, statutory_basis="Test Code § 42")]},
    ))
    yield "US-XX"
    unregister_jurisdiction("US-XX")


def _calculation(*items):
    return DamagesCalculation(claimed_total=sum(i.claimed_amount for i in items), items=list(items)).recompute_totals()


def _item(item_id, damages_type, amount, claimed=None):
    return DamagesItem(
        id=item_id,
        type=damages_type,
        claimed_amount=amount if claimed is None else claimed,
        supported_amount=amount,
        calculated_amount=amount,
    )


# =============================================================================
# Input helpers
# =============================================================================

class TestInputHelpers:

    def test_single_total_claim_without_amounts(self, contract_input):
        claims = extract_damages_claims(contract_input)
        assert claims == [DamagesClaim(description="Total claimed damages", amount=7500)]

    def test_itemized_claims_from_amounts(self, goods_input):
        claims = extract_damages_claims(goods_input)
        assert len(claims) == 1
        assert claims[0].amount == 800
        assert claims[0].category == "purchase"

    def test_breach_date_from_breach_fact(self, contract_input):
        assert find_breach_date(contract_input) == "2023-03-01"

    def test_breach_date_from_disputed_date_topic(self, goods_input):
        assert find_breach_date(goods_input) == "2024-02-05"

    def test_no_breach_date(self, contract_input):
        undated = contract_input.model_copy(deep=True)
        for fact in undated.extracted_facts.claimant:
            fact.date = None
        assert find_breach_date(undated) is None

    @pytest.mark.parametrize("raw,expected", [
        ("punitive", DamagesType.PUNITIVE),
        ("Restitution", DamagesType.RESTITUTION),
        ("emotional", DamagesType.COMPENSATORY),
        (None, DamagesType.COMPENSATORY),
    ])
    def test_damages_type(self, raw, expected):
        assert validate_damages_type(raw) == expected

    def test_adjustment_type(self):
        assert validate_adjustment_type("statutory cap") == AdjustmentType.STATUTORY_CAP
        assert validate_adjustment_type("bogus") == AdjustmentType.LIMITATION


# =============================================================================
# Interest
# =============================================================================

class TestPrejudgmentInterest:

    def test_contract_rate(self):
        interest = calculate_prejudgment_interest(1000, "2023-01-01", "US-CA", True, as_of=date(2024, 1, 1))
        assert interest.days == 365
        assert interest.rate == 0.10
        assert interest.interest_amount == 100.0
        assert interest.statutory_basis == "Cal. Civ. Code § 3289(b)"

    def test_non_contract_rate(self):
        interest = calculate_prejudgment_interest(1000, "2023-01-01", "US-CA", False, as_of=date(2024, 1, 1))
        assert interest.rate == 0.07
        assert interest.interest_amount == 70.0

    def test_unknown_jurisdiction_uses_default_rate(self):
        interest = calculate_prejudgment_interest(1000, "2023-01-01", "US-ZZ", True, as_of=date(2024, 1, 1))
        assert interest.rate == 0.07

    def test_future_breach_date_yields_zero(self):
        interest = calculate_prejudgment_interest(1000, "2025-01-01", "US-CA", True, as_of=date(2024, 1, 1))
        assert interest.days == 0
        assert interest.interest_amount == 0.0

    def test_unparsable_date(self):
        assert calculate_prejudgment_interest(1000, "last spring", "US-CA", True) is None


# =============================================================================
# Fallback
# =============================================================================

class TestDefaultDamagesCalculation:
    """Support-ratio fallback"""

    def test_half_of_each_claim_supported(self):
        claims = [DamagesClaim("Repair", 1000), DamagesClaim("Rental car", 250)]
        result = get_default_damages_calculation(1250, claims, "US-CA", is_contract_claim=False)

        assert [i.supported_amount for i in result.items] == [500, 125]
        assert [i.id for i in result.items] == ["dmg-1", "dmg-2"]
        assert result.supported_total == 625
        assert result.recommended_total == 625
        assert result.interest_calculation is None
        assert result.used_fallback is True

    def test_general_item_without_claims(self):
        result = get_default_damages_calculation(900, [], "US-CA", is_contract_claim=False)
        assert len(result.items) == 1
        assert result.items[0].description == "General damages"
        assert result.items[0].supported_amount == 450

    def test_interest_added_for_contract_claims(self, contract_input):
        result = get_default_damages_calculation(
            7500, extract_damages_claims(contract_input), "US-CA",
            is_contract_claim=True, breach_date="2023-03-01", as_of=date(2024, 2, 29),
        )
        assert result.supported_total == 3750
        assert result.interest_calculation.days == 365
        assert result.interest_calculation.interest_amount == 375.0
        assert result.recommended_total == 4125.0
        assert result.summary == "Default analysis: $3,750 of $7,500 supported pending detailed review."

    def test_configured_ratio(self):
        result = get_default_damages_calculation(
            1000, [DamagesClaim("Deposit", 1000)], "US-CA", False, support_ratio=0.8, item_confidence=0.3,
        )
        assert result.supported_total == 800
        assert result.items[0].confidence == 0.3

    def test_deterministic(self):
        args = (800, [DamagesClaim("Laptop", 800)], "US-CA", True, "2024-02-05", date(2024, 6, 1))
        assert get_default_damages_calculation(*args) == get_default_damages_calculation(*args)


# =============================================================================
# Parsing
# =============================================================================

class TestParseDamagesResponse:

    def test_recommended_total_resummed(self):
        data = {
            "claimed_total": 7500,
            "items": [
                {"id": "dmg-1", "type": "compensatory", "claimed_amount": 7500,
                 "supported_amount": 6000, "calculated_amount": 5500,
                 "adjustments": [{"type": "mitigation", "amount": -500, "description": "Could have rehired sooner"}]},
                {"type": "incidental", "claimed_amount": 200, "supported_amount": 150},
            ],
            "recommended_total": 99999,
        }
        result = parse_damages_response(data, 7500, "US-CA", False, None, date(2024, 1, 1))

        assert result.supported_total == 6150
        assert result.recommended_total == 5650
        assert result.items[1].id == "dmg-2"
        assert result.items[1].calculated_amount == 150
        assert result.items[0].adjustments[0].type == AdjustmentType.MITIGATION
        assert result.summary == "Damages analysis: $6,150 supported of $7,500 claimed."

    def test_provider_interest_used_when_positive(self):
        data = {
            "items": [{"supported_amount": 1000}],
            "interest_calculation": {"principal": 1000, "rate": 0.1, "days": 100, "interest_amount": 27.4},
        }
        result = parse_damages_response(data, 1000, "US-CA", True, "2023-01-01", date(2024, 1, 1))
        assert result.interest_calculation.interest_amount == 27.4
        assert result.recommended_total == 1027.4

    def test_engine_interest_when_provider_gives_none(self):
        data = {"items": [{"supported_amount": 1000}], "interest_calculation": {"interest_amount": 0}}
        result = parse_damages_response(data, 1000, "US-CA", True, "2023-01-01", date(2024, 1, 1))
        assert result.interest_calculation.interest_amount == 100.0
        assert result.recommended_total == 1100.0

    @pytest.mark.parametrize("data", [{}, {"items": []}, {"items": "many"}])
    def test_unusable_responses_raise(self, data):
        with pytest.raises(ValueError):
            parse_damages_response(data, 100, "US-CA", False, None, date(2024, 1, 1))


# =============================================================================
# calculate_damages
# =============================================================================

class TestCalculateDamages:

    @pytest.mark.asyncio
    async def test_provider_path(self, make_provider, goods_input):
        provider = make_provider([{"items": [
            {"type": "compensatory", "claimed_amount": 800, "supported_amount": 800},
        ]}])
        result = await calculate_damages(
            provider,
            claimed_amount=800,
            damages_claimed=extract_damages_claims(goods_input),
            extracted_facts=goods_input.extracted_facts,
            evidence_summaries=goods_input.evidence_summaries,
            jurisdiction="US-CA",
            is_contract_claim=False,
        )
        assert result.used_fallback is False
        assert result.tokens_used == 150
        assert result.recommended_total == 800
        assert "Laptop purchase price" in provider.calls[0]["prompt"]
        assert "[ev-g1]" in provider.calls[0]["prompt"]

    @pytest.mark.asyncio
    async def test_empty_items_fall_back_with_tokens(self, make_provider, goods_input):
        result = await calculate_damages(
            make_provider([{"items": []}]),
            claimed_amount=800,
            damages_claimed=extract_damages_claims(goods_input),
            extracted_facts=goods_input.extracted_facts,
            evidence_summaries=goods_input.evidence_summaries,
            jurisdiction="US-CA",
            is_contract_claim=False,
        )
        assert result.used_fallback is True
        assert result.tokens_used == 150
        assert result.supported_total == 400

    @pytest.mark.asyncio
    async def test_provider_error_falls_back(self, make_provider, contract_input):
        result = await calculate_damages(
            make_provider([ProviderError("HTTP 500", retryable=True)]),
            claimed_amount=7500,
            damages_claimed=extract_damages_claims(contract_input),
            extracted_facts=contract_input.extracted_facts,
            evidence_summaries=contract_input.evidence_summaries,
            jurisdiction="US-CA",
            is_contract_claim=True,
            breach_date="2023-03-01",
            as_of=date(2024, 2, 29),
        )
        assert result.used_fallback is True
        assert result.tokens_used == 0
        assert result.recommended_total == 4125.0


# =============================================================================
# Caps
# =============================================================================

class TestApplyDamagesCaps:

    def test_punitive_capped_at_multiplier(self, punitive_jurisdiction):
        damages = _calculation(
            _item("dmg-1", DamagesType.COMPENSATORY, 10000),
            _item("dmg-2", DamagesType.PUNITIVE, 50000),
        )
        capped = apply_damages_caps(damages, punitive_jurisdiction, "CONTRACT")

        punitive = capped.items[1]
        assert punitive.calculated_amount == 30000
        assert len(punitive.adjustments) == 1
        assert punitive.adjustments[0].type == AdjustmentType.STATUTORY_CAP
        assert punitive.adjustments[0].amount == -20000
        assert punitive.adjustments[0].description == "Capped at 3x compensatory damages"
        assert punitive.adjustments[0].legal_basis == "Test Code § 42"
        assert capped.recommended_total == 40000

    def test_input_not_mutated(self, punitive_jurisdiction):
        damages = _calculation(
            _item("dmg-1", DamagesType.COMPENSATORY, 10000),
            _item("dmg-2", DamagesType.PUNITIVE, 50000),
        )
        apply_damages_caps(damages, punitive_jurisdiction, "CONTRACT")
        assert damages.items[1].calculated_amount == 50000
        assert damages.items[1].adjustments == []

    def test_punitive_within_cap_untouched(self, punitive_jurisdiction):
        damages = _calculation(
            _item("dmg-1", DamagesType.COMPENSATORY, 10000),
            _item("dmg-2", DamagesType.PUNITIVE, 20000),
        )
        capped = apply_damages_caps(damages, punitive_jurisdiction, "CONTRACT")
        assert capped.items[1].calculated_amount == 20000
        assert capped.items[1].adjustments == []

    def test_california_punitive_guideline(self):
        damages = _calculation(
            _item("dmg-1", DamagesType.COMPENSATORY, 1000),
            _item("dmg-2", DamagesType.PUNITIVE, 15000),
        )
        capped = apply_damages_caps(damages, "US-CA", "CONTRACT")
        adjustment = capped.items[1].adjustments[0]

        assert capped.items[1].calculated_amount == 10000
        assert adjustment.description == "Capped at 10x compensatory damages"
        assert "Cal. Civ. Code § 3294" in adjustment.legal_basis

    def test_clra_statutory_cap_for_goods(self):
        damages = _calculation(
            _item("dmg-1", DamagesType.COMPENSATORY, 1000),
            _item("dmg-2", DamagesType.STATUTORY, 7000),
        )
        capped = apply_damages_caps(damages, "US-CA", "GOODS")

        assert capped.items[1].calculated_amount == 5000
        assert capped.items[1].adjustments[0].amount == -2000
        assert capped.items[1].adjustments[0].description == "Capped at statutory maximum"
        assert capped.items[1].adjustments[0].legal_basis == "Cal. Civ. Code § 1780(a)(1)"
        assert capped.recommended_total == 6000

    def test_no_statutory_cap_for_contract(self):
        damages = _calculation(_item("dmg-1", DamagesType.STATUTORY, 7000))
        assert apply_damages_caps(damages, "US-CA", "CONTRACT").recommended_total == 7000

    def test_unknown_jurisdiction_has_no_caps(self):
        damages = _calculation(
            _item("dmg-1", DamagesType.COMPENSATORY, 100),
            _item("dmg-2", DamagesType.PUNITIVE, 100000),
        )
        assert apply_damages_caps(damages, "US-ZZ", "GOODS").recommended_total == 100100


# =============================================================================
# Statutory minimum
# =============================================================================

class TestApplyStatutoryMinimum:
    """CLRA $1,000 floor"""

    def test_goods_case_raised_to_floor(self, goods_input):
        damages = get_default_damages_calculation(
            800, extract_damages_claims(goods_input), "US-CA",
            is_contract_claim=True, breach_date="2024-02-05", as_of=date(2024, 2, 5),
        )
        assert damages.recommended_total == 400

        result = apply_statutory_minimum(damages, "US-CA", ["breach_of_contract", "consumer_protection"])
        floor_item = result.items[-1]

        assert result.recommended_total == 1000
        assert floor_item.id == "dmg-clra-min"
        assert floor_item.type == DamagesType.STATUTORY
        assert floor_item.calculated_amount == 600
        assert floor_item.supported_amount == 600
        assert result.supported_total == 1000
        assert floor_item.claimed_amount == 0
        assert floor_item.basis == "Cal. Civ. Code § 1780(a)(1)"
        assert result.summary.endswith("CLRA minimum damages of $1,000 applies.")

    def test_idempotent(self):
        damages = _calculation(_item("dmg-1", DamagesType.COMPENSATORY, 300))
        once = apply_statutory_minimum(damages, "US-CA", ["consumer_protection"])
        twice = apply_statutory_minimum(once, "US-CA", ["consumer_protection"])
        assert twice == once
        assert len(twice.items) == 2

    def test_above_floor_unchanged(self):
        damages = _calculation(_item("dmg-1", DamagesType.COMPENSATORY, 1500))
        assert apply_statutory_minimum(damages, "US-CA", ["consumer_protection"]) == damages

    def test_requires_violation_category(self):
        damages = _calculation(_item("dmg-1", DamagesType.COMPENSATORY, 300))
        result = apply_statutory_minimum(damages, "US-CA", ["breach_of_contract", "fraud"])
        assert result.recommended_total == 300

    def test_input_not_mutated(self):
        damages = _calculation(_item("dmg-1", DamagesType.COMPENSATORY, 300))
        apply_statutory_minimum(damages, "US-CA", ["consumer_protection"])
        assert len(damages.items) == 1
        assert damages.recommended_total == 300
