"""
Legal Analysis Prompts
======================

Prompt templates for issue classification, burden of proof, damages and
confidence scoring, plus the canonical element list for each issue category.

Every prompt asks for a single JSON object with snake_case keys; the
analyzers parse it with llm_client.extract_json_object.
"""

from typing import List, Dict, Any, Optional

from .schemas import LegalIssueCategory


LEGAL_ANALYSIS_SYSTEM_PROMPT = """You are an expert legal analyst specializing in civil disputes and arbitration. Your role is to provide objective, evidence-based legal analysis following established legal principles.

Key principles:
1. Apply the applicable law objectively to the facts
2. Consider only admissible evidence and proven facts
3. Apply the correct burden of proof standard
4. Cite specific statutes and case law where applicable
5. Acknowledge uncertainty when evidence is insufficient
6. Maintain neutrality between parties

You are analyzing a case under California law unless otherwise specified.
Respond with a single JSON object and nothing else."""


LEGAL_ISSUE_CATEGORIES: Dict[LegalIssueCategory, str] = {
    LegalIssueCategory.BREACH_OF_CONTRACT: "Failure to perform contractual obligations",
    LegalIssueCategory.CONSUMER_PROTECTION: "Violation of consumer protection statutes (CLRA, UCL)",
    LegalIssueCategory.WARRANTY: "Breach of express or implied warranty",
    LegalIssueCategory.FRAUD: "Intentional misrepresentation or concealment",
    LegalIssueCategory.NEGLIGENCE: "Failure to exercise reasonable care",
    LegalIssueCategory.UNJUST_ENRICHMENT: "Retention of benefit without legal justification",
    LegalIssueCategory.STATUTORY_VIOLATION: "Violation of specific statutory requirements",
    LegalIssueCategory.PAYMENT_DISPUTE: "Dispute over payment obligations",
    LegalIssueCategory.SERVICE_DISPUTE: "Dispute over service quality or delivery",
    LegalIssueCategory.PROPERTY_DAMAGE: "Damage to real or personal property",
}


# =============================================================================
# Canonical elements per category: (name, description)
# =============================================================================

CONTRACT_ELEMENTS = [
    ("Existence of Contract", "A valid contract existed between the parties"),
    ("Performance by Claimant",
     "Claimant performed their contractual obligations or was excused from performance"),
    ("Breach by Respondent", "Respondent failed to perform their contractual obligations"),
    ("Damages", "Claimant suffered damages as a result of the breach"),
]

FRAUD_ELEMENTS = [
    ("Misrepresentation", "Respondent made a false representation of material fact"),
    ("Knowledge of Falsity", "Respondent knew the representation was false (scienter)"),
    ("Intent to Induce Reliance", "Respondent intended claimant to rely on the misrepresentation"),
    ("Justifiable Reliance", "Claimant justifiably relied on the misrepresentation"),
    ("Damages", "Claimant suffered damages as a result of reliance"),
]

CLRA_ELEMENTS = [
    ("Consumer Transaction",
     "Transaction involved goods or services for personal, family, or household purposes"),
    ("Prohibited Practice", "Respondent engaged in a practice prohibited under Cal. Civ. Code § 1770"),
    ("Causation", "The prohibited practice caused claimant's harm"),
    ("Damages", "Claimant suffered actual damages (minimum $1,000 under CLRA)"),
]

WARRANTY_ELEMENTS = [
    ("Warranty Existed", "Express or implied warranty was made"),
    ("Breach of Warranty", "The product/service failed to meet the warranty"),
    ("Notice", "Claimant provided timely notice of breach"),
    ("Damages", "Claimant suffered damages from the breach"),
]

NEGLIGENCE_ELEMENTS = [
    ("Duty of Care", "Respondent owed a duty of care to claimant"),
    ("Breach of Duty", "Respondent breached that duty"),
    ("Causation", "Breach caused claimant's harm"),
    ("Damages", "Claimant suffered damages"),
]

UNJUST_ENRICHMENT_ELEMENTS = [
    ("Benefit Conferred", "Claimant conferred a benefit on respondent"),
    ("Knowledge", "Respondent knew of the benefit"),
    ("Retention Unjust", "Retention of benefit without payment is unjust"),
]

GENERIC_ELEMENTS = [
    ("Liability", "Respondent is legally liable"),
    ("Damages", "Claimant suffered damages"),
]

CATEGORY_ELEMENTS = {
    LegalIssueCategory.BREACH_OF_CONTRACT: CONTRACT_ELEMENTS,
    LegalIssueCategory.FRAUD: FRAUD_ELEMENTS,
    LegalIssueCategory.CONSUMER_PROTECTION: CLRA_ELEMENTS,
    LegalIssueCategory.WARRANTY: WARRANTY_ELEMENTS,
    LegalIssueCategory.NEGLIGENCE: NEGLIGENCE_ELEMENTS,
    LegalIssueCategory.UNJUST_ENRICHMENT: UNJUST_ENRICHMENT_ELEMENTS,
}


def _pct(value: float) -> str:
    return f"{value * 100:.0f}%"


def format_money(value: float) -> str:
    text = f"${value:,.2f}"
    return text[:-3] if text.endswith(".00") else text


def _section(title: str, body: Optional[str]) -> str:
    return f"## {title}\n{body}\n" if body else ""


# =============================================================================
# Issue classification
# =============================================================================

def build_issue_classification_prompt(
    case_description: str,
    dispute_type: str,
    claimed_amount: float,
    disputed_facts: List[Dict[str, Any]],
    undisputed_facts: List[Dict[str, Any]],
    legal_context: Optional[str] = None,
) -> str:
    disputed = "\n".join(
        f"{i}. Topic: {f['topic']}\n"
        f"   - Claimant says: {f['claimant_position']}\n"
        f"   - Respondent says: {f['respondent_position']}\n"
        f"   - Materiality: {_pct(f['materiality_score'])}"
        for i, f in enumerate(disputed_facts, 1)
    )
    undisputed = "\n".join(
        f"{i}. {f['fact']} (Materiality: {_pct(f['materiality_score'])})"
        for i, f in enumerate(undisputed_facts, 1)
    )
    categories = ", ".join(c.value for c in LegalIssueCategory)

    return f"""Analyze this dispute and classify the legal issues that must be resolved.

## Case Overview
- Type: {dispute_type}
- Amount in Dispute: {format_money(claimed_amount)}
- Description: {case_description}

## Undisputed Facts
{undisputed or 'None identified'}

## Disputed Facts
{disputed or 'None identified'}

{_section('Applicable Legal Authority', legal_context)}
## Task
Identify and classify the legal issues in this case. For each issue:
1. Categorize it ({categories})
2. List the legal elements that must be proven
3. Identify applicable statutes and case law
4. Rate the materiality (0-1) to the case outcome

Respond in JSON format:
{{
  "issues": [
    {{
      "id": "issue-1",
      "category": "breach_of_contract",
      "description": "Description of the legal issue",
      "elements": [
        {{
          "id": "elem-1",
          "name": "Element name",
          "description": "What must be proven",
          "is_satisfied": null,
          "supporting_facts": [],
          "opposing_facts": [],
          "analysis": "",
          "confidence": 0
        }}
      ],
      "applicable_statutes": ["Cal. Civ. Code § 3300"],
      "applicable_case_law": [],
      "materiality_score": 0.9,
      "analysis_notes": "Additional analysis"
    }}
  ]
}}"""


# =============================================================================
# Burden of proof
# =============================================================================

def build_burden_analysis_prompt(
    issues: List[Dict[str, Any]],
    claimant_facts: List[Dict[str, Any]],
    respondent_facts: List[Dict[str, Any]],
    claimant_credibility: float,
    respondent_credibility: float,
    contradictions: List[Dict[str, Any]],
    legal_context: Optional[str] = None,
) -> str:
    issue_blocks = []
    for issue in issues:
        elements = "\n".join(
            f"    - {e['name']}: {e['description']}" for e in issue["elements"]
        )
        issue_blocks.append(
            f"- {issue['description']} ({issue['category']})\n  Elements to prove:\n{elements}"
        )

    def facts_list(facts):
        return "\n".join(
            f"- [{f['id']}] {f['statement']} (confidence: {_pct(f['confidence'])})" for f in facts
        )

    contradiction_list = "\n".join(
        f"- {c['topic']} ({c['severity']}): {c['analysis']}" for c in contradictions
    )

    return f"""Analyze whether the claimant has met their burden of proof for each legal element.

## Legal Issues to Analyze
{chr(10).join(issue_blocks) or 'None identified'}

## Claimant's Facts
{facts_list(claimant_facts) or 'None extracted'}

## Respondent's Facts
{facts_list(respondent_facts) or 'None extracted'}

## Credibility Assessment
- Claimant credibility: {_pct(claimant_credibility)}
- Respondent credibility: {_pct(respondent_credibility)}

## Contradictions Identified
{contradiction_list or 'None identified'}

{_section('Legal Authority', legal_context)}
## Burden of Proof Standards
- Civil claims: Preponderance of the evidence (>50% likely)
- Fraud claims: Clear and convincing evidence
- Punitive damages: Clear and convincing evidence

## Task
For each legal element, analyze whether the burden of proof has been met. Consider:
1. What evidence supports this element?
2. What evidence opposes it?
3. How does credibility affect the weighing?
4. Does the evidence meet the applicable standard?

Name each analysis "<issue description> - <element name>".

Respond in JSON format:
{{
  "overall_burden_met": true,
  "analyses": [
    {{
      "party": "claimant",
      "standard": "preponderance",
      "issue": "Issue description - Element name",
      "is_met": true,
      "probability": 0.75,
      "reasoning": "Detailed reasoning",
      "key_evidence": ["fact-id-1", "fact-id-2"],
      "weaknesses": ["Identified weaknesses in proof"]
    }}
  ],
  "shifting_burdens": [
    {{
      "from_party": "claimant",
      "to_party": "respondent",
      "trigger": "What triggered the shift",
      "new_burden": "What respondent must now prove"
    }}
  ],
  "summary": "Overall burden analysis summary"
}}"""


# =============================================================================
# Damages
# =============================================================================

def build_damages_prompt(
    claimed_amount: float,
    damages_claimed: List[Dict[str, Any]],
    financial_facts: List[Dict[str, Any]],
    evidence_summaries: List[Dict[str, Any]],
    jurisdiction: str,
    is_contract_claim: bool,
    interest_rate: float,
    breach_date: Optional[str] = None,
    legal_context: Optional[str] = None,
) -> str:
    claimed = "\n".join(
        f"- {d['description']}: {format_money(d['amount'])}"
        + (f" ({d['category']})" if d.get("category") else "")
        for d in damages_claimed
    )
    evidence = "\n".join(
        f"- [{e['id']}] {e['file_name']}: {e.get('summary') or 'No summary'}"
        for e in evidence_summaries
        if e.get("submitted_by") == "claimant"
    )
    financial = "\n".join(
        f"- {f['statement']}" + (f" ({format_money(f['amount'])})" if f.get("amount") else "")
        for f in financial_facts
    )

    return f"""Calculate appropriate damages based on the evidence and applicable law.

## Claimed Damages
Total Claimed: {format_money(claimed_amount)}

Itemized Claims:
{claimed or 'No itemization provided'}

## Supporting Evidence
{evidence or 'No evidence summaries'}

## Financial Facts Extracted
{financial or 'No financial facts extracted'}

## Jurisdiction & Interest
- Jurisdiction: {jurisdiction}
- Claim Type: {'Contract' if is_contract_claim else 'Non-Contract'}
- Breach Date: {breach_date or 'Not specified'}
- Prejudgment Interest Rate: {_pct(interest_rate)} per annum

{_section('Legal Authority on Damages', legal_context)}
## Damages Principles
1. Compensatory damages: Actual losses proven with reasonable certainty
2. Consequential damages: Must be foreseeable at time of contracting
3. Mitigation: Claimant must take reasonable steps to minimize losses
4. Interest: prejudgment interest on contract claims from breach date

## Task
Calculate damages by:
1. Evaluating each claimed item against evidence
2. Determining what amount is actually supported
3. Applying any mitigation reduction
4. Calculating prejudgment interest if applicable

Respond in JSON format:
{{
  "claimed_total": {claimed_amount},
  "items": [
    {{
      "id": "dmg-1",
      "type": "compensatory",
      "description": "Description",
      "claimed_amount": 0,
      "supported_amount": 0,
      "calculated_amount": 0,
      "basis": "Legal basis",
      "evidence_support": ["evidence-id"],
      "adjustments": [
        {{
          "type": "mitigation",
          "description": "Description",
          "amount": -100,
          "legal_basis": "Cal. Civ. Code § 3358"
        }}
      ],
      "confidence": 0.8
    }}
  ],
  "mitigation": {{
    "did_claimant_mitigate": true,
    "mitigation_efforts": ["Effort 1"],
    "failure_to_mitigate": null,
    "reduction": 0
  }},
  "interest_calculation": {{
    "principal": 0,
    "rate": {interest_rate},
    "start_date": "{breach_date or 'unknown'}",
    "end_date": "YYYY-MM-DD",
    "days": 0,
    "interest_amount": 0,
    "statutory_basis": "Cal. Civ. Code § 3289(b)"
  }},
  "summary": "Damages analysis summary"
}}"""


# =============================================================================
# Confidence
# =============================================================================

def build_confidence_prompt(
    issue_count: int,
    elements_satisfied: int,
    elements_total: int,
    evidence_count: int,
    contradiction_count: int,
    credibility_delta: float,
    citations_used: int,
    damages_supported: float,
    damages_claimed: float,
) -> str:
    ratio = damages_supported / damages_claimed if damages_claimed > 0 else 0.0

    return f"""Assess the overall confidence in the legal analysis.

## Analysis Metrics
- Legal issues identified: {issue_count}
- Elements satisfied: {elements_satisfied}/{elements_total}
- Evidence items reviewed: {evidence_count}
- Contradictions found: {contradiction_count}
- Credibility differential: {_pct(credibility_delta)}
- Legal citations used: {citations_used}
- Damages supported: {format_money(damages_supported)} / {format_money(damages_claimed)} ({_pct(ratio)})

## Task
Score the confidence in this analysis across these factors (0-1 each):
1. Evidence Quality: How strong and comprehensive is the evidence?
2. Legal Precedent: How clearly does the law apply to these facts?
3. Factual Certainty: How clear are the facts?
4. Jurisdictional Clarity: How clear is the applicable law?
5. Issue Complexity: How simple are the legal issues? (1 = very simple)

Respond in JSON format:
{{
  "factors": {{
    "evidence_quality": 0.8,
    "legal_precedent_strength": 0.7,
    "factual_certainty": 0.75,
    "jurisdictional_clarity": 0.9,
    "issue_complexity": 0.6
  }},
  "reasoning": "Explanation of confidence assessment",
  "caveats": ["Important caveats or limitations"]
}}"""
