"""
Burden of Proof Analyzer
========================

Determines, per issue and element, whether the claimant met the applicable
standard of proof. Falls back to a credibility/confidence heuristic when the
inference provider is unavailable.

The burden result is fed back into the issue elements by
merge_burden_into_issues, a pure function that matches analyses to elements
by text rather than position.
"""

import logging
from dataclasses import dataclass
from typing import List, Dict, Any, Optional

from .errors import ProviderError
from .llm_client import InferenceProvider, complete_json
from .prompts import LEGAL_ANALYSIS_SYSTEM_PROMPT, build_burden_analysis_prompt
from .rules import get_burden_standard
from .schemas import (
    BurdenAnalysis,
    BurdenOfProofResult,
    BurdenStandard,
    ContradictionInput,
    CredibilityScores,
    LegalIssue,
    Party,
    PartyFacts,
    ShiftingBurden,
    clamp,
)

logger = logging.getLogger(__name__)

MAX_FACTS_PER_PARTY = 15
MAX_CONTRADICTIONS = 10

STANDARD_THRESHOLDS = {
    BurdenStandard.PREPONDERANCE: 0.5,
    BurdenStandard.CLEAR_AND_CONVINCING: 0.75,
    BurdenStandard.BEYOND_REASONABLE_DOUBT: 0.95,
}

STANDARD_DESCRIPTIONS = {
    BurdenStandard.PREPONDERANCE: "More likely than not (greater than 50% probability)",
    BurdenStandard.CLEAR_AND_CONVINCING:
        "Highly probable, substantially more likely than not (approximately 75%+)",
    BurdenStandard.BEYOND_REASONABLE_DOUBT:
        "No reasonable doubt (approximately 95%+, typically criminal only)",
}


@dataclass
class BurdenPolicy:
    """Constants of the fallback heuristic"""
    contradiction_penalty_per_item: float = 0.05
    contradiction_penalty_cap: float = 0.3
    majority_satisfied_bonus: float = 0.1

    @classmethod
    def from_settings(cls, settings) -> "BurdenPolicy":
        return cls(
            contradiction_penalty_per_item=settings.contradiction_penalty_per_item,
            contradiction_penalty_cap=settings.contradiction_penalty_cap,
            majority_satisfied_bonus=settings.majority_satisfied_bonus,
        )


# =============================================================================
# Validation helpers
# =============================================================================

def validate_party(party: Optional[str]) -> Party:
    if isinstance(party, str) and party.strip().lower() == "respondent":
        return Party.RESPONDENT
    return Party.CLAIMANT


def validate_standard(standard: Optional[str]) -> BurdenStandard:
    if isinstance(standard, str):
        normalized = "_".join(standard.strip().lower().split())
        try:
            return BurdenStandard(normalized)
        except ValueError:
            pass
    return BurdenStandard.PREPONDERANCE


def meets_standard(probability: float, standard: BurdenStandard) -> bool:
    return probability > STANDARD_THRESHOLDS[standard]


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v is not None and str(v).strip()]


def generate_summary(analyses: List[BurdenAnalysis], overall_burden_met: bool) -> str:
    claimant = [a for a in analyses if a.party == Party.CLAIMANT]
    met = sum(1 for a in claimant if a.is_met is True)
    total = len(claimant)

    if overall_burden_met:
        return (
            f"Claimant has met the burden of proof on {met} of {total} analyzed elements. "
            f"The preponderance of evidence supports claimant's claims."
        )
    return (
        f"Claimant has not fully met the burden of proof. "
        f"Only {met} of {total} elements were sufficiently proven."
    )


# =============================================================================
# Provider path
# =============================================================================

def parse_burden_response(data: Dict[str, Any]) -> BurdenOfProofResult:
    """
    Convert the provider's JSON into a BurdenOfProofResult.

    Raises:
        ValueError: no analyses in the response
    """
    raw_analyses = data.get("analyses")
    if not isinstance(raw_analyses, list):
        raise ValueError("Response has no 'analyses' list")

    analyses = []
    for raw in raw_analyses:
        if not isinstance(raw, dict):
            continue
        is_met = raw.get("is_met")
        analyses.append(BurdenAnalysis(
            party=validate_party(raw.get("party")),
            standard=validate_standard(raw.get("standard")),
            issue=str(raw.get("issue") or ""),
            is_met=is_met if isinstance(is_met, bool) else None,
            probability=clamp(raw.get("probability"), default=0.5),
            reasoning=str(raw.get("reasoning") or ""),
            key_evidence=_string_list(raw.get("key_evidence")),
            weaknesses=_string_list(raw.get("weaknesses")),
        ))

    if not analyses:
        raise ValueError("Response contained no burden analyses")

    shifting = []
    raw_shifting = data.get("shifting_burdens")
    for raw in raw_shifting if isinstance(raw_shifting, list) else []:
        if isinstance(raw, dict) and raw.get("from_party") and raw.get("to_party"):
            shifting.append(ShiftingBurden(
                from_party=validate_party(raw.get("from_party")),
                to_party=validate_party(raw.get("to_party")),
                trigger=str(raw.get("trigger") or ""),
                new_burden=str(raw.get("new_burden") or ""),
            ))

    overall = data.get("overall_burden_met")
    if not isinstance(overall, bool):
        overall = all(a.is_met is True for a in analyses if a.party == Party.CLAIMANT)

    return BurdenOfProofResult(
        overall_burden_met=overall,
        analyses=analyses,
        shifting_burdens=shifting or None,
        summary=str(data.get("summary") or generate_summary(analyses, overall)),
    )


# =============================================================================
# Fallback heuristic
# =============================================================================

def primary_issues(issues: List[LegalIssue]) -> List[LegalIssue]:
    """Issues sharing the maximum materiality score"""
    if not issues:
        return []
    top = max(i.materiality_score for i in issues)
    return [i for i in issues if i.materiality_score == top]


def get_default_burden_analysis(
    issues: List[LegalIssue],
    credibility_scores: CredibilityScores,
    contradiction_count: int,
    jurisdiction: str,
    policy: Optional[BurdenPolicy] = None,
) -> BurdenOfProofResult:
    """
    Heuristic burden analysis.

    probability = average element confidence (claimant credibility when the
    elements carry none) - contradiction penalty + majority-satisfied bonus.
    """
    policy = policy or BurdenPolicy()
    penalty = min(
        policy.contradiction_penalty_cap,
        policy.contradiction_penalty_per_item * contradiction_count,
    )

    analyses: List[BurdenAnalysis] = []
    met_by_issue: Dict[str, bool] = {}

    for issue in issues:
        standard = get_burden_standard(jurisdiction, issue.category.value)

        confidences = [e.confidence for e in issue.elements]
        if any(c > 0 for c in confidences):
            base = sum(confidences) / len(confidences)
        else:
            base = credibility_scores.claimant.overall

        satisfied = sum(1 for e in issue.elements if e.is_satisfied is True)
        bonus = policy.majority_satisfied_bonus if satisfied * 2 > len(issue.elements) else 0.0

        probability = round(clamp(base - penalty + bonus), 4)
        is_met = meets_standard(probability, standard)
        met_by_issue[issue.id] = is_met

        weaknesses = [] if is_met else ["Insufficient evidence to meet burden of proof"]
        if penalty > 0:
            weaknesses.append(f"{contradiction_count} contradiction(s) weaken the claimant's account")

        for element in issue.elements:
            analyses.append(BurdenAnalysis(
                party=Party.CLAIMANT,
                standard=standard,
                issue=f"{issue.description} - {element.name}",
                is_met=is_met,
                probability=probability,
                reasoning="Analysis based on available evidence and credibility scores.",
                key_evidence=list(element.supporting_facts),
                weaknesses=list(weaknesses),
            ))

    primary = primary_issues(issues)
    overall = bool(primary) and all(met_by_issue[i.id] for i in primary)

    return BurdenOfProofResult(
        overall_burden_met=overall,
        analyses=analyses,
        summary=generate_summary(analyses, overall),
        used_fallback=True,
    )


async def analyze_burden_of_proof(
    provider: InferenceProvider,
    *,
    issues: List[LegalIssue],
    extracted_facts: PartyFacts,
    credibility_scores: CredibilityScores,
    contradictions: List[ContradictionInput],
    jurisdiction: str,
    legal_context: Optional[str] = None,
    policy: Optional[BurdenPolicy] = None,
    model: Optional[str] = None,
    max_tokens: int = 4096,
    timeout: Optional[float] = None,
) -> BurdenOfProofResult:
    """Analyze burden of proof for all legal issues"""
    prompt = build_burden_analysis_prompt(
        issues=[
            {
                "description": issue.description,
                "category": issue.category.value,
                "elements": [{"name": e.name, "description": e.description} for e in issue.elements],
            }
            for issue in issues
        ],
        claimant_facts=[
            {"id": f.id, "statement": f.statement, "confidence": f.confidence}
            for f in extracted_facts.claimant[:MAX_FACTS_PER_PARTY]
        ],
        respondent_facts=[
            {"id": f.id, "statement": f.statement, "confidence": f.confidence}
            for f in extracted_facts.respondent[:MAX_FACTS_PER_PARTY]
        ],
        claimant_credibility=credibility_scores.claimant.overall,
        respondent_credibility=credibility_scores.respondent.overall,
        contradictions=[
            {"topic": c.topic, "severity": c.severity, "analysis": c.analysis}
            for c in contradictions[:MAX_CONTRADICTIONS]
        ],
        legal_context=legal_context,
    )

    tokens_used = 0
    try:
        data, tokens_used = await complete_json(
            provider, prompt, LEGAL_ANALYSIS_SYSTEM_PROMPT,
            model=model, max_tokens=max_tokens, timeout=timeout,
        )
        result = parse_burden_response(data)
        result.tokens_used = tokens_used
        logger.info(
            f"Burden analysis: {len(result.analyses)} analyses, "
            f"overall met={result.overall_burden_met}"
        )
        return result

    except (ProviderError, ValueError) as e:
        tokens_used += getattr(e, "tokens_used", 0)
        logger.warning(f"Burden analysis fell back to heuristic: {e}")
        result = get_default_burden_analysis(
            issues, credibility_scores, len(contradictions), jurisdiction, policy
        )
        result.tokens_used = tokens_used
        return result


# =============================================================================
# Merge into issue elements
# =============================================================================

def _find_analysis(
    issue: LegalIssue,
    element_name: str,
    analyses: List[BurdenAnalysis],
    other_descriptions: List[str],
) -> Optional[BurdenAnalysis]:
    description = issue.description.lower()
    name = element_name.lower()
    element_names = [e.name.lower() for e in issue.elements]

    def text(a):
        return a.issue.lower()

    # Names both the issue and the element
    for a in analyses:
        if name in text(a) and description and description in text(a):
            return a

    # Names the element and no other issue
    for a in analyses:
        if name in text(a) and not any(d and d in text(a) for d in other_descriptions):
            return a

    # Issue-level analysis naming no element
    for a in analyses:
        if description and description in text(a) and not any(n in text(a) for n in element_names):
            return a

    return None


def merge_burden_into_issues(
    issues: List[LegalIssue],
    analyses: List[BurdenAnalysis],
) -> List[LegalIssue]:
    """
    Apply claimant burden analyses to issue elements.

    Returns new issue objects; the inputs are not mutated. An analysis with
    an undetermined is_met leaves the element's satisfaction unchanged.
    """
    claimant = [a for a in analyses if a.party == Party.CLAIMANT]
    merged = []

    for issue in issues:
        others = [i.description.lower() for i in issues if i.id != issue.id and i.description]
        if issue.description.lower() in others:
            others = [d for d in others if d != issue.description.lower()]

        elements = []
        for element in issue.elements:
            match = _find_analysis(issue, element.name, claimant, others)
            if match is None:
                elements.append(element.model_copy(deep=True))
                continue

            update = {
                "analysis": match.reasoning,
                "confidence": match.probability,
            }
            if match.is_met is not None:
                update["is_satisfied"] = match.is_met
            if match.key_evidence:
                update["supporting_facts"] = list(match.key_evidence)
            elements.append(element.model_copy(update=update, deep=True))

        merged.append(issue.model_copy(update={"elements": elements}, deep=True))

    return merged


# =============================================================================
# Helpers
# =============================================================================

def get_applicable_burden_standard(issue_category: str, jurisdiction: str) -> Dict[str, Any]:
    """Standard for an issue category plus a human-readable description"""
    standard = get_burden_standard(jurisdiction, issue_category)
    return {"standard": standard, "description": STANDARD_DESCRIPTIONS[standard]}


def summarize_party_burden(party: Party, analyses: List[BurdenAnalysis]) -> Dict[str, Any]:
    party_analyses = [a for a in analyses if a.party == party]
    total = len(party_analyses)
    average = sum(a.probability for a in party_analyses) / total if total else 0.0

    return {
        "total_elements": total,
        "elements_met": sum(1 for a in party_analyses if a.is_met is True),
        "elements_not_met": sum(1 for a in party_analyses if a.is_met is False),
        "elements_unknown": sum(1 for a in party_analyses if a.is_met is None),
        "average_probability": round(average, 2),
    }


def is_element_burden_met(element_ref: str, analyses: List[BurdenAnalysis]) -> Optional[bool]:
    """is_met of the first analysis naming the element (by id or name), else None"""
    for a in analyses:
        if element_ref in a.issue or element_ref in a.key_evidence:
            return a.is_met
    return None
