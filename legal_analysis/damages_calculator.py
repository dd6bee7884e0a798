"""
Damages Calculator
==================

Computes supported and recommended damages per item, mitigation effects and
prejudgment interest. Statutory caps and minimums are applied afterwards by
the orchestrator through apply_damages_caps / apply_statutory_minimum.

recommended_total is always re-summed from the items plus interest
(DamagesCalculation.recompute_totals); a provider-supplied total is ignored.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import List, Dict, Any, Optional

from .errors import ProviderError
from .llm_client import InferenceProvider, complete_json
from .prompts import LEGAL_ANALYSIS_SYSTEM_PROMPT, build_damages_prompt, format_money
from .rules import (
    calculate_interest,
    get_damages_caps,
    get_prejudgment_interest_rate,
    get_statutory_minimum,
    to_date,
)
from .schemas import (
    AdjustmentType,
    DamagesAdjustment,
    DamagesCalculation,
    DamagesItem,
    DamagesType,
    EvidenceSummary,
    InterestCalculation,
    LegalAnalysisInput,
    MitigationAnalysis,
    PartyFacts,
    clamp,
)

logger = logging.getLogger(__name__)

MAX_FACTS_PER_PARTY = 20
MAX_EVIDENCE = 10
MAX_FINANCIAL_FACTS = 10

ISO_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")


@dataclass
class DamagesClaim:
    """A claimed damages item derived from the extracted facts"""
    description: str
    amount: float
    category: Optional[str] = None


# =============================================================================
# Input helpers (used by the orchestrator)
# =============================================================================

def extract_damages_claims(analysis_input: LegalAnalysisInput) -> List[DamagesClaim]:
    """Claimant facts carrying a positive amount, else one 'Total claimed damages' item"""
    claims = [
        DamagesClaim(description=f.statement, amount=f.amount, category=f.category or None)
        for f in analysis_input.extracted_facts.claimant
        if f.amount is not None and f.amount > 0
    ]
    if not claims:
        claims.append(DamagesClaim(
            description="Total claimed damages",
            amount=analysis_input.claimed_amount,
        ))
    return claims


def find_breach_date(analysis_input: LegalAnalysisInput) -> Optional[str]:
    """
    Breach date inferred from the facts.

    First a dated claimant fact whose category mentions 'breach', then the
    first YYYY-MM-DD in the claimant's position on a disputed topic about a date.
    """
    for fact in analysis_input.extracted_facts.claimant:
        if fact.date and "breach" in (fact.category or "").lower():
            return fact.date

    for disputed in analysis_input.disputed_facts:
        if "date" in disputed.topic.lower():
            match = ISO_DATE_RE.search(disputed.claimant_position or "")
            if match:
                return match.group(0)

    return None


# =============================================================================
# Validation helpers
# =============================================================================

def validate_damages_type(value: Optional[str]) -> DamagesType:
    if isinstance(value, str):
        try:
            return DamagesType(value.strip().lower())
        except ValueError:
            pass
    return DamagesType.COMPENSATORY


def validate_adjustment_type(value: Optional[str]) -> AdjustmentType:
    if isinstance(value, str):
        try:
            return AdjustmentType("_".join(value.strip().lower().split()))
        except ValueError:
            pass
    return AdjustmentType.LIMITATION


def _amount(value: Any, default: float = 0.0) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value != value:
        return default
    return round(float(value), 2)


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v is not None and str(v).strip()]


# =============================================================================
# Interest
# =============================================================================

def calculate_prejudgment_interest(
    principal: float,
    breach_date: str,
    jurisdiction: str,
    is_contract_claim: bool,
    as_of: Optional[date] = None,
) -> Optional[InterestCalculation]:
    """Interest from breach_date to as_of (default today); None for an unparsable date"""
    end = as_of or date.today()
    try:
        start = to_date(breach_date)
    except ValueError:
        logger.warning(f"Ignoring unparsable breach date: {breach_date!r}")
        return None

    result = calculate_interest(jurisdiction, principal, start, end, is_contract_claim)
    return InterestCalculation(
        principal=round(principal, 2),
        rate=result.rate,
        start_date=start.isoformat(),
        end_date=end.isoformat(),
        days=result.days,
        interest_amount=result.amount,
        statutory_basis=result.statutory_basis,
    )


def _provider_interest(
    raw: Any,
    principal: float,
    breach_date: Optional[str],
    jurisdiction: str,
    is_contract_claim: bool,
    as_of: date,
) -> Optional[InterestCalculation]:
    if not isinstance(raw, dict):
        return None
    amount = _amount(raw.get("interest_amount"))
    if amount <= 0:
        return None

    basis = raw.get("statutory_basis")
    days = raw.get("days")
    return InterestCalculation(
        principal=_amount(raw.get("principal"), default=principal),
        rate=_amount(raw.get("rate"), default=get_prejudgment_interest_rate(jurisdiction, is_contract_claim)),
        start_date=str(raw.get("start_date") or breach_date or ""),
        end_date=str(raw.get("end_date") or as_of.isoformat()),
        days=int(days) if isinstance(days, (int, float)) and not isinstance(days, bool) else 0,
        interest_amount=amount,
        statutory_basis=str(basis) if basis else None,
    )


# =============================================================================
# Provider path
# =============================================================================

def parse_damages_response(
    data: Dict[str, Any],
    claimed_amount: float,
    jurisdiction: str,
    is_contract_claim: bool,
    breach_date: Optional[str],
    as_of: date,
) -> DamagesCalculation:
    """
    Convert the provider's JSON into a DamagesCalculation.

    Raises:
        ValueError: the response carries no damages items
    """
    raw_items = data.get("items")
    if not isinstance(raw_items, list):
        raise ValueError("Response has no 'items' list")

    items = []
    for index, raw in enumerate(raw_items, 1):
        if not isinstance(raw, dict):
            continue

        adjustments = []
        raw_adjustments = raw.get("adjustments")
        for adj in raw_adjustments if isinstance(raw_adjustments, list) else []:
            if not isinstance(adj, dict):
                continue
            legal_basis = adj.get("legal_basis")
            adjustments.append(DamagesAdjustment(
                type=validate_adjustment_type(adj.get("type")),
                description=str(adj.get("description") or ""),
                amount=_amount(adj.get("amount")),
                legal_basis=str(legal_basis) if legal_basis else None,
            ))

        supported = _amount(raw.get("supported_amount"))
        items.append(DamagesItem(
            id=str(raw.get("id") or f"dmg-{index}"),
            type=validate_damages_type(raw.get("type")),
            description=str(raw.get("description") or ""),
            claimed_amount=_amount(raw.get("claimed_amount")),
            supported_amount=supported,
            calculated_amount=_amount(raw.get("calculated_amount"), default=supported),
            basis=str(raw.get("basis") or ""),
            evidence_support=_string_list(raw.get("evidence_support")),
            adjustments=adjustments,
            confidence=clamp(raw.get("confidence"), default=0.5),
        ))

    if not items:
        raise ValueError("Response contained no damages items")

    raw_mitigation = data.get("mitigation")
    if isinstance(raw_mitigation, dict):
        did_mitigate = raw_mitigation.get("did_claimant_mitigate")
        failure = raw_mitigation.get("failure_to_mitigate")
        mitigation = MitigationAnalysis(
            did_claimant_mitigate=did_mitigate if isinstance(did_mitigate, bool) else True,
            mitigation_efforts=_string_list(raw_mitigation.get("mitigation_efforts")),
            failure_to_mitigate=str(failure) if failure else None,
            reduction=_amount(raw_mitigation.get("reduction")),
        )
    else:
        mitigation = MitigationAnalysis()

    calculation = DamagesCalculation(
        claimed_total=_amount(data.get("claimed_total"), default=claimed_amount) or claimed_amount,
        items=items,
        mitigation=mitigation,
    ).recompute_totals()

    interest = _provider_interest(
        data.get("interest_calculation"), calculation.supported_total,
        breach_date, jurisdiction, is_contract_claim, as_of,
    )
    if interest is None and breach_date and is_contract_claim:
        interest = calculate_prejudgment_interest(
            calculation.supported_total, breach_date, jurisdiction, is_contract_claim, as_of
        )
    calculation.interest_calculation = interest
    calculation.recompute_totals()

    summary = data.get("summary")
    calculation.summary = str(summary) if summary else (
        f"Damages analysis: {format_money(calculation.supported_total)} supported "
        f"of {format_money(claimed_amount)} claimed."
    )
    return calculation


# =============================================================================
# Fallback
# =============================================================================

def get_default_damages_calculation(
    claimed_amount: float,
    damages_claimed: List[DamagesClaim],
    jurisdiction: str,
    is_contract_claim: bool,
    breach_date: Optional[str] = None,
    as_of: Optional[date] = None,
    support_ratio: float = 0.5,
    item_confidence: float = 0.5,
) -> DamagesCalculation:
    """Support each claimed item at support_ratio of its claimed amount"""
    if damages_claimed:
        items = [
            DamagesItem(
                id=f"dmg-{i}",
                type=DamagesType.COMPENSATORY,
                description=claim.description,
                claimed_amount=round(claim.amount, 2),
                supported_amount=round(claim.amount * support_ratio, 2),
                calculated_amount=round(claim.amount * support_ratio, 2),
                basis="Based on available evidence",
                confidence=item_confidence,
            )
            for i, claim in enumerate(damages_claimed, 1)
        ]
    else:
        supported = round(claimed_amount * support_ratio, 2)
        items = [DamagesItem(
            id="dmg-1",
            type=DamagesType.COMPENSATORY,
            description="General damages",
            claimed_amount=round(claimed_amount, 2),
            supported_amount=supported,
            calculated_amount=supported,
            basis="Pending detailed evidence review",
            confidence=item_confidence,
        )]

    calculation = DamagesCalculation(
        claimed_total=round(claimed_amount, 2),
        items=items,
        used_fallback=True,
    ).recompute_totals()

    if breach_date and is_contract_claim:
        calculation.interest_calculation = calculate_prejudgment_interest(
            calculation.supported_total, breach_date, jurisdiction, is_contract_claim, as_of
        )
        calculation.recompute_totals()

    calculation.summary = (
        f"Default analysis: {format_money(calculation.supported_total)} of "
        f"{format_money(claimed_amount)} supported pending detailed review."
    )
    return calculation


async def calculate_damages(
    provider: InferenceProvider,
    *,
    claimed_amount: float,
    damages_claimed: List[DamagesClaim],
    extracted_facts: PartyFacts,
    evidence_summaries: List[EvidenceSummary],
    jurisdiction: str,
    is_contract_claim: bool,
    breach_date: Optional[str] = None,
    legal_context: Optional[str] = None,
    as_of: Optional[date] = None,
    support_ratio: float = 0.5,
    item_confidence: float = 0.5,
    model: Optional[str] = None,
    max_tokens: int = 4096,
    timeout: Optional[float] = None,
) -> DamagesCalculation:
    """
    Calculate damages based on evidence and applicable law.

    Args:
        damages_claimed: Itemized claims (see extract_damages_claims)
        breach_date: ISO date; interest is computed only for contract claims
        as_of: End date for interest (default today)
        support_ratio / item_confidence: Fallback policy
    """
    as_of = as_of or date.today()

    financial_facts = [
        {"statement": f.statement, "amount": f.amount}
        for f in (extracted_facts.claimant[:MAX_FACTS_PER_PARTY]
                  + extracted_facts.respondent[:MAX_FACTS_PER_PARTY])
        if f.amount is not None
    ][:MAX_FINANCIAL_FACTS]

    prompt = build_damages_prompt(
        claimed_amount=claimed_amount,
        damages_claimed=[
            {"description": d.description, "amount": d.amount, "category": d.category}
            for d in damages_claimed
        ],
        financial_facts=financial_facts,
        evidence_summaries=[
            {
                "id": e.id,
                "file_name": e.file_name,
                "summary": e.summary,
                "submitted_by": e.submitted_by.value,
            }
            for e in evidence_summaries[:MAX_EVIDENCE]
        ],
        jurisdiction=jurisdiction,
        is_contract_claim=is_contract_claim,
        interest_rate=get_prejudgment_interest_rate(jurisdiction, is_contract_claim),
        breach_date=breach_date,
        legal_context=legal_context,
    )

    tokens_used = 0
    try:
        data, tokens_used = await complete_json(
            provider, prompt, LEGAL_ANALYSIS_SYSTEM_PROMPT,
            model=model, max_tokens=max_tokens, timeout=timeout,
        )
        calculation = parse_damages_response(
            data, claimed_amount, jurisdiction, is_contract_claim, breach_date, as_of
        )
        calculation.tokens_used = tokens_used
        logger.info(
            f"Damages: supported={calculation.supported_total} "
            f"recommended={calculation.recommended_total}"
        )
        return calculation

    except (ProviderError, ValueError) as e:
        tokens_used += getattr(e, "tokens_used", 0)
        logger.warning(f"Damages calculation fell back to default support ratio: {e}")
        calculation = get_default_damages_calculation(
            claimed_amount, damages_claimed, jurisdiction, is_contract_claim,
            breach_date, as_of, support_ratio, item_confidence,
        )
        calculation.tokens_used = tokens_used
        return calculation


# =============================================================================
# Post-processing: caps and minimums
# =============================================================================

def apply_damages_caps(
    damages: DamagesCalculation,
    jurisdiction: str,
    dispute_type: str,
) -> DamagesCalculation:
    """
    Truncate statutory and punitive items at the jurisdiction's caps.

    Each truncation is recorded as a statutory_cap adjustment carrying the
    (negative) delta. Returns a new calculation with re-summed totals.
    """
    capped = damages.model_copy(deep=True)

    for cap in get_damages_caps(jurisdiction, dispute_type):
        if cap.type == "statutory" and cap.max_amount is not None:
            for item in capped.items:
                if item.type == DamagesType.STATUTORY and item.calculated_amount > cap.max_amount:
                    delta = round(cap.max_amount - item.calculated_amount, 2)
                    item.calculated_amount = round(cap.max_amount, 2)
                    item.adjustments.append(DamagesAdjustment(
                        type=AdjustmentType.STATUTORY_CAP,
                        description="Capped at statutory maximum",
                        amount=delta,
                        legal_basis=cap.statutory_basis,
                    ))

        if cap.type == "punitive" and cap.max_multiplier is not None:
            compensatory_total = sum(
                i.calculated_amount for i in capped.items if i.type == DamagesType.COMPENSATORY
            )
            max_punitive = round(compensatory_total * cap.max_multiplier, 2)
            for item in capped.items:
                if item.type == DamagesType.PUNITIVE and item.calculated_amount > max_punitive:
                    delta = round(max_punitive - item.calculated_amount, 2)
                    item.calculated_amount = max_punitive
                    item.adjustments.append(DamagesAdjustment(
                        type=AdjustmentType.STATUTORY_CAP,
                        description=f"Capped at {cap.max_multiplier:g}x compensatory damages",
                        amount=delta,
                        legal_basis=cap.statutory_basis or "; ".join(cap.conditions) or None,
                    ))

    return capped.recompute_totals()


def apply_statutory_minimum(
    damages: DamagesCalculation,
    jurisdiction: str,
    violation_categories: List[str],
) -> DamagesCalculation:
    """
    Raise recommended_total to a statutory floor.

    For each violated category with a minimum-recovery rule, a synthetic
    statutory item covering the shortfall is appended. Its supported and
    calculated amounts are both the shortfall, so the floor adds the same
    amount to the re-summed supported and recommended totals.
    """
    result = damages.model_copy(deep=True)

    for category in dict.fromkeys(violation_categories):
        minimum = get_statutory_minimum(jurisdiction, category)
        if minimum is None:
            continue

        shortfall = round(minimum.amount - result.recommended_total, 2)
        if shortfall <= 0:
            continue

        result.items.append(DamagesItem(
            id=minimum.item_id,
            type=DamagesType.STATUTORY,
            description=f"{minimum.label} (floor of {format_money(minimum.amount)})",
            claimed_amount=0.0,
            supported_amount=shortfall,
            calculated_amount=shortfall,
            basis=minimum.statutory_basis or minimum.rule_id,
            confidence=1.0,
        ))
        result.recompute_totals()
        result.summary = (
            f"{result.summary} {minimum.label} of {format_money(minimum.amount)} applies."
        ).strip()
        logger.info(f"Applied {minimum.rule_id}: added {shortfall} to reach {minimum.amount}")

    return result
