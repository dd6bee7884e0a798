"""
Legal Issue Classifier
======================

Classifies the legal issues in a case and the elements each must satisfy.

Primary path asks the inference provider; any provider failure (network,
timeout, missing or malformed JSON) falls back to a deterministic default
issue set derived from the dispute type alone.
"""

import logging
from typing import List, Dict, Any, Optional

from .errors import ProviderError
from .llm_client import InferenceProvider, complete_json
from .prompts import (
    LEGAL_ANALYSIS_SYSTEM_PROMPT,
    CATEGORY_ELEMENTS,
    GENERIC_ELEMENTS,
    build_issue_classification_prompt,
)
from .rules import get_applicable_statutes
from .schemas import (
    LegalIssue,
    LegalElement,
    LegalIssueCategory,
    IssueClassificationResult,
    DisputedFact,
    UndisputedFact,
    clamp,
)

logger = logging.getLogger(__name__)

MAX_DESCRIPTION_CHARS = 3000
MAX_FACTS = 10


def validate_category(category: Optional[str]) -> LegalIssueCategory:
    """Normalize a category string; unknown values map to breach_of_contract"""
    if isinstance(category, str):
        normalized = "_".join(category.strip().lower().split())
        try:
            return LegalIssueCategory(normalized)
        except ValueError:
            pass
    return LegalIssueCategory.BREACH_OF_CONTRACT


def get_default_elements(category: LegalIssueCategory) -> List[LegalElement]:
    """Canonical elements for a category (generic Liability/Damages otherwise)"""
    base = CATEGORY_ELEMENTS.get(category, GENERIC_ELEMENTS)
    return [
        LegalElement(id=f"elem-{i}", name=name, description=description)
        for i, (name, description) in enumerate(base, 1)
    ]


def _default_issue(
    issue_id: str,
    category: LegalIssueCategory,
    description: str,
    materiality: float,
    dispute_type: str,
    jurisdiction: str,
    statute_categories: Optional[List[str]] = None,
) -> LegalIssue:
    if statute_categories is None:
        statute_categories = [category.value]
    return LegalIssue(
        id=issue_id,
        category=category,
        description=description,
        elements=get_default_elements(category),
        applicable_statutes=get_applicable_statutes(jurisdiction, dispute_type, statute_categories),
        materiality_score=materiality,
    )


def get_default_issues(dispute_type: str, jurisdiction: str) -> List[LegalIssue]:
    """
    Deterministic issue set used when the provider is unavailable.

    Always returns at least one issue and never touches the network.
    """
    issues: List[LegalIssue] = []
    kind = (dispute_type or "").upper()

    if kind in ("CONTRACT", "SERVICE", "GOODS"):
        issues.append(_default_issue(
            "issue-1", LegalIssueCategory.BREACH_OF_CONTRACT,
            "Whether respondent breached the contract with claimant",
            0.9, dispute_type, jurisdiction,
        ))

    if kind in ("SERVICE", "GOODS"):
        issues.append(_default_issue(
            "issue-2", LegalIssueCategory.CONSUMER_PROTECTION,
            "Whether respondent violated consumer protection statutes",
            0.7, dispute_type, jurisdiction,
        ))

    if kind == "PAYMENT":
        issues.append(_default_issue(
            "issue-1", LegalIssueCategory.PAYMENT_DISPUTE,
            "Whether respondent owes claimant the disputed payment amount",
            0.9, dispute_type, jurisdiction,
        ))

    if kind == "PROPERTY":
        issues.append(_default_issue(
            "issue-1", LegalIssueCategory.PROPERTY_DAMAGE,
            "Whether respondent is liable for property damage",
            0.9, dispute_type, jurisdiction,
        ))

    if not issues:
        issues.append(_default_issue(
            "issue-1", LegalIssueCategory.BREACH_OF_CONTRACT,
            "Primary legal issue in dispute",
            0.8, dispute_type, jurisdiction, statute_categories=[],
        ))

    return issues


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v is not None and str(v).strip()]


def _parse_element(raw: Dict[str, Any], index: int) -> LegalElement:
    satisfied = raw.get("is_satisfied")
    return LegalElement(
        id=str(raw.get("id") or f"elem-{index}"),
        name=str(raw.get("name") or f"Element {index}"),
        description=str(raw.get("description") or ""),
        is_satisfied=satisfied if isinstance(satisfied, bool) else None,
        supporting_facts=_string_list(raw.get("supporting_facts")),
        opposing_facts=_string_list(raw.get("opposing_facts")),
        analysis=str(raw.get("analysis") or ""),
        confidence=clamp(raw.get("confidence"), default=0.0),
    )


def parse_issue_response(data: Dict[str, Any], dispute_type: str, jurisdiction: str) -> List[LegalIssue]:
    """
    Convert the provider's JSON into validated issues.

    Raises:
        ValueError: no usable issues in the response
    """
    raw_issues = data.get("issues")
    if not isinstance(raw_issues, list):
        raise ValueError("Response has no 'issues' list")

    issues = []
    for index, raw in enumerate(raw_issues, 1):
        if not isinstance(raw, dict):
            continue

        category = validate_category(raw.get("category"))

        raw_elements = raw.get("elements")
        if not isinstance(raw_elements, list):
            raw_elements = []
        raw_elements = [e for e in raw_elements if isinstance(e, dict)]
        if raw_elements:
            elements = [_parse_element(e, i) for i, e in enumerate(raw_elements, 1)]
        else:
            elements = get_default_elements(category)

        statutes = _string_list(raw.get("applicable_statutes"))
        statutes += get_applicable_statutes(jurisdiction, dispute_type, [category.value])

        notes = raw.get("analysis_notes")
        issues.append(LegalIssue(
            id=str(raw.get("id") or f"issue-{index}"),
            category=category,
            description=str(raw.get("description") or f"{category.value} issue"),
            elements=elements,
            applicable_statutes=list(dict.fromkeys(statutes)),
            applicable_case_law=list(dict.fromkeys(_string_list(raw.get("applicable_case_law")))),
            materiality_score=clamp(raw.get("materiality_score"), default=0.5),
            analysis_notes=str(notes) if notes else None,
        ))

    if not issues:
        raise ValueError("Response contained an empty issues list")

    return issues


async def classify_legal_issues(
    provider: InferenceProvider,
    *,
    case_description: str,
    dispute_type: str,
    claimed_amount: float,
    disputed_facts: List[DisputedFact],
    undisputed_facts: List[UndisputedFact],
    jurisdiction: str,
    legal_context: Optional[str] = None,
    model: Optional[str] = None,
    max_tokens: int = 4096,
    timeout: Optional[float] = None,
) -> IssueClassificationResult:
    """
    Classify legal issues from case facts.

    Args:
        provider: Inference provider handle
        case_description: Narrative (truncated to 3000 chars)
        disputed_facts / undisputed_facts: At most 10 of each are sent
        legal_context: Retrieved authority to include in the prompt

    Returns:
        IssueClassificationResult; used_fallback is set when the default
        issue set was returned
    """
    prompt = build_issue_classification_prompt(
        case_description=(case_description or "")[:MAX_DESCRIPTION_CHARS],
        dispute_type=dispute_type,
        claimed_amount=claimed_amount,
        disputed_facts=[
            {
                "topic": f.topic,
                "claimant_position": f.claimant_position,
                "respondent_position": f.respondent_position,
                "materiality_score": f.materiality_score,
            }
            for f in disputed_facts[:MAX_FACTS]
        ],
        undisputed_facts=[
            {"fact": f.fact, "materiality_score": f.materiality_score}
            for f in undisputed_facts[:MAX_FACTS]
        ],
        legal_context=legal_context,
    )

    tokens_used = 0
    try:
        data, tokens_used = await complete_json(
            provider, prompt, LEGAL_ANALYSIS_SYSTEM_PROMPT,
            model=model, max_tokens=max_tokens, timeout=timeout,
        )
        issues = parse_issue_response(data, dispute_type, jurisdiction)
        logger.info(f"Classified {len(issues)} legal issues ({tokens_used} tokens)")
        return IssueClassificationResult(issues=issues, tokens_used=tokens_used)

    except (ProviderError, ValueError) as e:
        tokens_used += getattr(e, "tokens_used", 0)
        logger.warning(f"Issue classification fell back to defaults: {e}")
        return IssueClassificationResult(
            issues=get_default_issues(dispute_type, jurisdiction),
            tokens_used=tokens_used,
            used_fallback=True,
        )
