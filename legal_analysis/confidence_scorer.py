"""
Confidence Scorer
=================

Scores confidence in the analysis along five factors and combines them with
fixed weights. The provider (low-cost scoring model) may supply the factors;
the overall figure is always recomputed here.

Also aggregates the citations used across issues and damages, and maps a
confidence figure to a qualitative level.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Dict, Any, Optional, Tuple

from .errors import ProviderError
from .llm_client import InferenceProvider, complete_json
from .prompts import LEGAL_ANALYSIS_SYSTEM_PROMPT, build_confidence_prompt
from .rules import get_jurisdictional_clarity
from .schemas import (
    BurdenOfProofResult,
    CitationType,
    CitationUsage,
    ConfidenceFactors,
    ConfidenceLevel,
    ConfidenceScore,
    ContradictionInput,
    DamagesCalculation,
    LegalIssue,
    clamp,
)

logger = logging.getLogger(__name__)

WEIGHTS: Dict[str, float] = {
    "evidence_quality": 0.25,
    "legal_precedent_strength": 0.15,
    "factual_certainty": 0.30,
    "jurisdictional_clarity": 0.15,
    "issue_complexity": 0.15,
}

# Lower bounds of each level, highest first
LEVEL_THRESHOLDS: List[Tuple[float, ConfidenceLevel]] = [
    (0.85, ConfidenceLevel.VERY_HIGH),
    (0.70, ConfidenceLevel.HIGH),
    (0.50, ConfidenceLevel.MODERATE),
]

LEVEL_DESCRIPTIONS = {
    ConfidenceLevel.VERY_HIGH: "Analysis is highly reliable with strong evidence and clear legal basis",
    ConfidenceLevel.HIGH: "Analysis is reliable with good evidence support",
    ConfidenceLevel.MODERATE: "Analysis has reasonable support but some uncertainty exists",
    ConfidenceLevel.LOW: "Analysis has significant uncertainty due to limited evidence or legal complexity",
}

REGULATION_MARKERS = ("C.F.R.", "Cal. Code Regs.", "Regulation")
CASE_LAW_MARKERS = (" v. ", " v ", "Cal.App", "Cal.Rptr", "F.3d", "F.2d", "Cal.2d", "Cal.3d", "Cal.4th")


@dataclass
class ScoringPolicy:
    """Constants of the heuristic factor model"""
    evidence_target: int = 10
    citation_target: int = 15
    contradiction_penalty_per_item: float = 0.05
    contradiction_penalty_cap: float = 0.3
    burden_met_bonus: float = 0.2
    min_factual_certainty: float = 0.2
    complexity_per_issue: float = 0.1
    min_issue_complexity: float = 0.3

    @classmethod
    def from_settings(cls, settings) -> "ScoringPolicy":
        return cls(
            contradiction_penalty_per_item=settings.contradiction_penalty_per_item,
            contradiction_penalty_cap=settings.contradiction_penalty_cap,
            burden_met_bonus=settings.burden_met_bonus,
        )


# =============================================================================
# Combination
# =============================================================================

def calculate_overall_confidence(factors: ConfidenceFactors) -> float:
    """Weighted sum of the five factors, rounded to two decimals"""
    weighted = sum(getattr(factors, name) * weight for name, weight in WEIGHTS.items())
    return round(weighted, 2)


def get_confidence_level(confidence: float) -> ConfidenceLevel:
    for threshold, level in LEVEL_THRESHOLDS:
        if confidence >= threshold:
            return level
    return ConfidenceLevel.LOW


def describe_confidence_level(level: ConfidenceLevel) -> str:
    return LEVEL_DESCRIPTIONS[level]


def get_confidence_recommendations(factors: ConfidenceFactors) -> List[str]:
    """Suggested follow-ups for weak factors"""
    recommendations = []

    if factors.evidence_quality < 0.5:
        recommendations.append("Consider requesting additional documentary evidence to support claims")
    if factors.legal_precedent_strength < 0.5:
        recommendations.append("Review additional case law to strengthen legal analysis")
    if factors.factual_certainty < 0.5:
        recommendations.append("Key facts are disputed; credibility determination is critical")
    if factors.issue_complexity < 0.4:
        recommendations.append("Multiple complex legal issues present; consider phased analysis")

    return recommendations


# =============================================================================
# Citations
# =============================================================================

def normalize_citation(citation: str) -> str:
    normalized = re.sub(r"\s+", " ", citation)
    normalized = re.sub(r"§\s*", "§ ", normalized, count=1)
    return normalized.strip()


def classify_citation(citation: str) -> CitationType:
    if any(marker in citation for marker in REGULATION_MARKERS):
        return CitationType.REGULATION
    if "§" not in citation and any(marker in citation for marker in CASE_LAW_MARKERS):
        return CitationType.CASE_LAW
    return CitationType.STATUTE


def track_citation(citation: str, citation_type: CitationType, used_for: str) -> CitationUsage:
    return CitationUsage(
        citation=citation,
        normalized=normalize_citation(citation),
        type=citation_type,
        used_for=used_for,
        verified=False,
    )


def aggregate_citations(
    issues: List[LegalIssue],
    damages: Optional[DamagesCalculation],
) -> List[CitationUsage]:
    """
    Every distinct citation relied on by the analysis, in first-use order.

    Sources: issue statutes and case law, damages item bases that cite a
    section, and the interest calculation's statutory basis.
    """
    citations: List[CitationUsage] = []
    seen = set()

    def add(citation: str, citation_type: CitationType, used_for: str):
        if citation and citation not in seen:
            seen.add(citation)
            citations.append(track_citation(citation, citation_type, used_for))

    for issue in issues:
        for statute in issue.applicable_statutes:
            add(statute, classify_citation(statute), f"Issue: {issue.category.value}")
        for case in issue.applicable_case_law:
            add(case, CitationType.CASE_LAW, f"Issue: {issue.category.value}")

    if damages is not None:
        for item in damages.items:
            if "§" in item.basis:
                add(item.basis, CitationType.STATUTE, f"Damages: {item.type.value}")
        if damages.interest_calculation and damages.interest_calculation.statutory_basis:
            add(damages.interest_calculation.statutory_basis, CitationType.STATUTE, "Prejudgment interest")

    return citations


# =============================================================================
# Heuristic factors
# =============================================================================

def calculate_heuristic_factors(
    issues: List[LegalIssue],
    burden_of_proof: BurdenOfProofResult,
    damages_calculation: DamagesCalculation,
    contradiction_count: int,
    citation_count: int,
    evidence_count: int,
    jurisdiction: str,
    policy: Optional[ScoringPolicy] = None,
) -> ConfidenceFactors:
    policy = policy or ScoringPolicy()

    claimed = damages_calculation.claimed_total
    damages_ratio = damages_calculation.supported_total / claimed if claimed > 0 else 0.0
    evidence_quality = min(1.0, evidence_count / policy.evidence_target * 0.5 + damages_ratio * 0.5)

    legal_precedent_strength = min(1.0, citation_count / policy.citation_target)

    analyses = burden_of_proof.analyses
    avg_probability = sum(a.probability for a in analyses) / len(analyses) if analyses else 0.5
    penalty = min(policy.contradiction_penalty_cap, contradiction_count * policy.contradiction_penalty_per_item)
    bonus = policy.burden_met_bonus if burden_of_proof.overall_burden_met else 0.0
    factual_certainty = max(policy.min_factual_certainty, avg_probability - penalty + bonus)

    issue_complexity = max(policy.min_issue_complexity, 1 - len(issues) * policy.complexity_per_issue)

    return ConfidenceFactors(
        evidence_quality=clamp(evidence_quality),
        legal_precedent_strength=clamp(legal_precedent_strength),
        factual_certainty=clamp(factual_certainty),
        jurisdictional_clarity=clamp(get_jurisdictional_clarity(jurisdiction)),
        issue_complexity=clamp(issue_complexity),
    )


# =============================================================================
# Provider path
# =============================================================================

def parse_confidence_response(data: Dict[str, Any]) -> ConfidenceFactors:
    """
    Factors from the provider's JSON; a missing factor becomes 0.5.

    Raises:
        ValueError: the response has no 'factors' object
    """
    raw = data.get("factors")
    if not isinstance(raw, dict):
        raise ValueError("Response has no 'factors' object")

    return ConfidenceFactors(**{name: clamp(raw.get(name), default=0.5) for name in WEIGHTS})


async def score_confidence(
    provider: InferenceProvider,
    *,
    issues: List[LegalIssue],
    burden_of_proof: BurdenOfProofResult,
    damages_calculation: DamagesCalculation,
    contradictions: List[ContradictionInput],
    citations_used: List[CitationUsage],
    evidence_count: int,
    credibility_delta: float,
    jurisdiction: str,
    policy: Optional[ScoringPolicy] = None,
    model: Optional[str] = None,
    max_tokens: int = 1024,
    timeout: Optional[float] = None,
) -> ConfidenceScore:
    """
    Score confidence in the legal analysis.

    Any overall figure returned by the provider is ignored; overall confidence
    is calculate_overall_confidence(factors) on both paths.
    """
    elements = [e for issue in issues for e in issue.elements]
    prompt = build_confidence_prompt(
        issue_count=len(issues),
        elements_satisfied=sum(1 for e in elements if e.is_satisfied is True),
        elements_total=len(elements),
        evidence_count=evidence_count,
        contradiction_count=len(contradictions),
        credibility_delta=credibility_delta,
        citations_used=len(citations_used),
        damages_supported=damages_calculation.supported_total,
        damages_claimed=damages_calculation.claimed_total,
    )

    tokens_used = 0
    try:
        data, tokens_used = await complete_json(
            provider, prompt, LEGAL_ANALYSIS_SYSTEM_PROMPT,
            model=model, max_tokens=max_tokens, timeout=timeout,
        )
        factors = parse_confidence_response(data)
        used_fallback = False

    except (ProviderError, ValueError) as e:
        tokens_used += getattr(e, "tokens_used", 0)
        logger.warning(f"Confidence scoring fell back to heuristic factors: {e}")
        factors = calculate_heuristic_factors(
            issues, burden_of_proof, damages_calculation,
            contradiction_count=len(contradictions),
            citation_count=len(citations_used),
            evidence_count=evidence_count,
            jurisdiction=jurisdiction,
            policy=policy,
        )
        used_fallback = True

    overall = calculate_overall_confidence(factors)
    logger.info(f"Confidence: overall={overall} fallback={used_fallback}")
    return ConfidenceScore(
        overall_confidence=overall,
        factors=factors,
        tokens_used=tokens_used,
        used_fallback=used_fallback,
    )
