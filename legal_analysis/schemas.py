"""
Pydantic Schemas for the Legal Analysis Pipeline
================================================

Stable schemas for pipeline input, intermediate phase outputs and results.
Every model serializes to plain JSON so phase outputs can be persisted on the
job record and reloaded on resume.

Closed sets (issue categories, damages types, burden standards, ...) are str
enums. Strings coming back from the inference provider are validated against
them at the parsing boundary and mapped to a documented default.
"""

from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field
from enum import Enum
from datetime import datetime


def clamp(value: Any, default: float = 0.5, low: float = 0.0, high: float = 1.0) -> float:
    """Coerce a provider-supplied score into [low, high]; non-numbers become default"""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if value != value:  # NaN
        return default
    return max(low, min(high, float(value)))


# =============================================================================
# ENUMS
# =============================================================================

class LLMMode(str, Enum):
    """LLM usage mode"""
    NONE = "none"           # Heuristic fallbacks only
    OPENROUTER = "openrouter"
    DEEPSEEK = "deepseek"


class LegalIssueCategory(str, Enum):
    """Categories of legal issues"""
    BREACH_OF_CONTRACT = "breach_of_contract"
    CONSUMER_PROTECTION = "consumer_protection"
    WARRANTY = "warranty"
    FRAUD = "fraud"
    NEGLIGENCE = "negligence"
    UNJUST_ENRICHMENT = "unjust_enrichment"
    STATUTORY_VIOLATION = "statutory_violation"
    PAYMENT_DISPUTE = "payment_dispute"
    SERVICE_DISPUTE = "service_dispute"
    PROPERTY_DAMAGE = "property_damage"


class BurdenStandard(str, Enum):
    """
    Burden of proof standard.

    - PREPONDERANCE: more likely than not (> 50%)
    - CLEAR_AND_CONVINCING: highly probable (~75%+), fraud and punitive damages
    - BEYOND_REASONABLE_DOUBT: criminal standard, never applied in civil arbitration
    """
    PREPONDERANCE = "preponderance"
    CLEAR_AND_CONVINCING = "clear_and_convincing"
    BEYOND_REASONABLE_DOUBT = "beyond_reasonable_doubt"


class Party(str, Enum):
    """Dispute party"""
    CLAIMANT = "claimant"
    RESPONDENT = "respondent"


class PrevailingParty(str, Enum):
    """Outcome of the award recommendation"""
    CLAIMANT = "claimant"
    RESPONDENT = "respondent"
    SPLIT = "split"


class DamagesType(str, Enum):
    """Types of damages"""
    COMPENSATORY = "compensatory"      # Actual losses
    CONSEQUENTIAL = "consequential"    # Foreseeable indirect damages
    INCIDENTAL = "incidental"          # Costs of dealing with breach
    RESTITUTION = "restitution"        # Return of value conferred
    STATUTORY = "statutory"            # Fixed by statute
    PUNITIVE = "punitive"              # Punishment (rare in arbitration)


class AdjustmentType(str, Enum):
    """Adjustment applied to a damages item"""
    MITIGATION = "mitigation"
    LIMITATION = "limitation"
    OFFSET = "offset"
    STATUTORY_CAP = "statutory_cap"
    INTEREST = "interest"


class CitationType(str, Enum):
    """Kind of legal authority"""
    STATUTE = "statute"
    CASE_LAW = "case_law"
    REGULATION = "regulation"


class AnalysisPhase(str, Enum):
    """Pipeline phase, in execution order"""
    QUEUED = "queued"
    CLASSIFYING_ISSUES = "classifying_issues"
    ANALYZING_BURDEN = "analyzing_burden"
    CALCULATING_DAMAGES = "calculating_damages"
    GENERATING_CONCLUSIONS = "generating_conclusions"
    SCORING_CONFIDENCE = "scoring_confidence"
    COMPLETED = "completed"
    FAILED = "failed"


class JobStatus(str, Enum):
    """Persisted job status"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ConfidenceLevel(str, Enum):
    """Qualitative confidence band"""
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    VERY_HIGH = "very_high"


# =============================================================================
# INPUT SCHEMAS - Fact extraction output contract
# =============================================================================

class ExtractedFact(BaseModel):
    """Fact extracted for one party"""
    id: str
    statement: str
    category: str = ""
    date: Optional[str] = Field(None, description="ISO date (YYYY-MM-DD) if the fact carries one")
    amount: Optional[float] = None
    confidence: float = 0.5


class PartyFacts(BaseModel):
    """Extracted facts split by party"""
    claimant: List[ExtractedFact] = Field(default_factory=list)
    respondent: List[ExtractedFact] = Field(default_factory=list)


class DisputedFact(BaseModel):
    """Topic on which the parties disagree"""
    id: str
    topic: str
    claimant_position: str = ""
    respondent_position: str = ""
    materiality_score: float = 0.5


class UndisputedFact(BaseModel):
    """Fact both parties accept"""
    id: str
    fact: str
    materiality_score: float = 0.5


class ContradictionInput(BaseModel):
    """Contradiction found during fact analysis"""
    id: str
    topic: str
    severity: str = "medium"
    analysis: str = ""


class PartyCredibility(BaseModel):
    overall: float = 0.5


class CredibilityScores(BaseModel):
    """Overall credibility per party"""
    claimant: PartyCredibility = Field(default_factory=PartyCredibility)
    respondent: PartyCredibility = Field(default_factory=PartyCredibility)


class EvidenceSummary(BaseModel):
    """Processed evidence item"""
    id: str
    file_name: str
    document_type: Optional[str] = None
    summary: Optional[str] = None
    key_points: List[str] = Field(default_factory=list)
    submitted_by: Party = Party.CLAIMANT


class LegalAnalysisInput(BaseModel):
    """Complete input for legal analysis"""
    case_id: str
    jurisdiction: str = Field("US-CA", description="Jurisdiction code, e.g. US-CA")
    dispute_type: str = Field(..., description="CONTRACT, SERVICE, GOODS, PAYMENT, PROPERTY, ...")
    claimed_amount: float = 0.0
    case_description: str = ""

    extracted_facts: PartyFacts = Field(default_factory=PartyFacts)
    disputed_facts: List[DisputedFact] = Field(default_factory=list)
    undisputed_facts: List[UndisputedFact] = Field(default_factory=list)
    contradictions: List[ContradictionInput] = Field(default_factory=list)
    credibility_scores: CredibilityScores = Field(default_factory=CredibilityScores)
    evidence_summaries: List[EvidenceSummary] = Field(default_factory=list)


class LegalAnalysisOptions(BaseModel):
    """Options for a pipeline run"""
    skip_issue_classification: bool = False
    skip_burden_analysis: bool = False
    skip_damages_calculation: bool = False
    skip_conclusions: bool = False
    force: bool = False   # Ignore persisted phase outputs and recompute everything
    resume: bool = True   # Reuse phase outputs persisted by an earlier, interrupted run


# =============================================================================
# ISSUE CLASSIFICATION
# =============================================================================

class LegalElement(BaseModel):
    """
    A single legal element that must be proven.

    is_satisfied is tri-state: None means undetermined and is never coerced
    to False.
    """
    id: str
    name: str
    description: str = ""
    is_satisfied: Optional[bool] = None
    supporting_facts: List[str] = Field(default_factory=list, description="Fact ids")
    opposing_facts: List[str] = Field(default_factory=list, description="Fact ids")
    analysis: str = ""
    confidence: float = Field(0.0, ge=0.0, le=1.0)


class LegalIssue(BaseModel):
    """A legal issue identified in the case"""
    id: str
    category: LegalIssueCategory
    description: str
    elements: List[LegalElement] = Field(..., min_length=1)
    applicable_statutes: List[str] = Field(default_factory=list)
    applicable_case_law: List[str] = Field(default_factory=list)
    materiality_score: float = Field(0.5, ge=0.0, le=1.0)
    analysis_notes: Optional[str] = None


class IssueClassificationResult(BaseModel):
    issues: List[LegalIssue]
    tokens_used: int = 0
    used_fallback: bool = False


# =============================================================================
# BURDEN OF PROOF
# =============================================================================

class BurdenAnalysis(BaseModel):
    """Whether a party met its burden on one issue or element"""
    party: Party = Party.CLAIMANT
    standard: BurdenStandard = BurdenStandard.PREPONDERANCE
    issue: str = Field("", description="Issue or element analyzed (matched by text, not index)")
    is_met: Optional[bool] = None
    probability: float = Field(0.5, ge=0.0, le=1.0)
    reasoning: str = ""
    key_evidence: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)


class ShiftingBurden(BaseModel):
    """Burden moving from one party to the other"""
    from_party: Party
    to_party: Party
    trigger: str = ""
    new_burden: str = ""


class BurdenOfProofResult(BaseModel):
    overall_burden_met: bool = False
    analyses: List[BurdenAnalysis] = Field(default_factory=list)
    shifting_burdens: Optional[List[ShiftingBurden]] = None
    summary: str = ""
    tokens_used: int = 0
    used_fallback: bool = False


# =============================================================================
# DAMAGES
# =============================================================================

class DamagesAdjustment(BaseModel):
    """Signed adjustment (negative = decrease)"""
    type: AdjustmentType
    description: str = ""
    amount: float = 0.0
    legal_basis: Optional[str] = None


class DamagesItem(BaseModel):
    """
    A single damages item.

    calculated_amount starts equal to supported_amount and is then moved by
    adjustments (caps, mitigation).
    """
    id: str
    type: DamagesType = DamagesType.COMPENSATORY
    description: str = ""
    claimed_amount: float = 0.0
    supported_amount: float = 0.0
    calculated_amount: float = 0.0
    basis: str = ""
    evidence_support: List[str] = Field(default_factory=list)
    adjustments: List[DamagesAdjustment] = Field(default_factory=list)
    confidence: float = Field(0.5, ge=0.0, le=1.0)


class MitigationAnalysis(BaseModel):
    did_claimant_mitigate: bool = True
    mitigation_efforts: List[str] = Field(default_factory=list)
    failure_to_mitigate: Optional[str] = None
    reduction: float = 0.0


class InterestCalculation(BaseModel):
    """Prejudgment interest; always produced by the rules engine or the provider, never edited"""
    principal: float
    rate: float
    start_date: str
    end_date: str
    days: int
    interest_amount: float
    statutory_basis: Optional[str] = None


class DamagesCalculation(BaseModel):
    claimed_total: float = 0.0
    supported_total: float = 0.0
    recommended_total: float = 0.0
    items: List[DamagesItem] = Field(default_factory=list)
    mitigation: MitigationAnalysis = Field(default_factory=MitigationAnalysis)
    interest_calculation: Optional[InterestCalculation] = None
    summary: str = ""
    tokens_used: int = 0
    used_fallback: bool = False

    @property
    def interest_amount(self) -> float:
        return self.interest_calculation.interest_amount if self.interest_calculation else 0.0

    def recompute_totals(self) -> "DamagesCalculation":
        """Re-sum supported/recommended totals from the items (in place)."""
        self.supported_total = round(sum(i.supported_amount for i in self.items), 2)
        self.recommended_total = round(
            sum(i.calculated_amount for i in self.items) + self.interest_amount, 2
        )
        return self


# =============================================================================
# CONCLUSIONS
# =============================================================================

class ConclusionOfLaw(BaseModel):
    id: str
    issue: str
    conclusion: str
    legal_basis: List[str] = Field(default_factory=list)
    supporting_facts: List[str] = Field(default_factory=list)
    confidence: float = Field(0.5, ge=0.0, le=1.0)


class AwardRecommendation(BaseModel):
    prevailing_party: PrevailingParty
    award_amount: float = 0.0
    reasoning: str = ""


class ConclusionsResult(BaseModel):
    conclusions: List[ConclusionOfLaw] = Field(default_factory=list)
    overall_determination: str = ""
    award_recommendation: AwardRecommendation


# =============================================================================
# CONFIDENCE
# =============================================================================

class ConfidenceFactors(BaseModel):
    """Five independent scores combined by fixed weights"""
    evidence_quality: float = Field(0.5, ge=0.0, le=1.0)
    legal_precedent_strength: float = Field(0.5, ge=0.0, le=1.0)
    factual_certainty: float = Field(0.5, ge=0.0, le=1.0)
    jurisdictional_clarity: float = Field(0.5, ge=0.0, le=1.0)
    issue_complexity: float = Field(0.5, ge=0.0, le=1.0, description="Higher = simpler")


class ConfidenceScore(BaseModel):
    overall_confidence: float
    factors: ConfidenceFactors
    tokens_used: int = 0
    used_fallback: bool = False


class CitationUsage(BaseModel):
    citation: str
    normalized: str
    type: CitationType
    used_for: str
    url: Optional[str] = None
    verified: bool = False


# =============================================================================
# RESULT / PROGRESS
# =============================================================================

class LegalAnalysisProgress(BaseModel):
    """Incremental progress event"""
    case_id: str
    job_id: Optional[str] = None
    phase: AnalysisPhase
    progress: int = Field(..., ge=0, le=100)
    message: Optional[str] = None


class LegalAnalysisResult(BaseModel):
    """Complete legal analysis result (or explicit failure)"""
    case_id: str
    job_id: Optional[str] = None  # None when the job record could not be opened
    status: JobStatus

    legal_issues: Optional[List[LegalIssue]] = None
    burden_of_proof: Optional[BurdenOfProofResult] = None
    damages_calculation: Optional[DamagesCalculation] = None
    conclusions_of_law: Optional[List[ConclusionOfLaw]] = None

    overall_confidence: Optional[float] = None
    confidence_factors: Optional[ConfidenceFactors] = None
    confidence_level: Optional[ConfidenceLevel] = None

    citations_used: Optional[List[CitationUsage]] = None
    award_recommendation: Optional[AwardRecommendation] = None

    jurisdiction_applied: str
    model_used: str
    tokens_used: int = 0
    processing_time_ms: float = 0.0
    estimated_cost: float = 0.0

    error: Optional[str] = None


# =============================================================================
# API SCHEMAS
# =============================================================================

class StartAnalysisRequest(BaseModel):
    """Body of POST /api/v1/cases/{case_id}/legal-analysis"""
    input: Optional[LegalAnalysisInput] = Field(
        None, description="Fact-extraction output; omitted when already stored for the case"
    )
    force: bool = False


class AnalysisStatusResponse(BaseModel):
    """Persisted state of a case's analysis job"""
    case_id: str
    job_id: str
    status: JobStatus
    phase: AnalysisPhase
    progress: int
    tokens_used: int = 0
    overall_confidence: Optional[float] = None
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    legal_issues: Optional[List[LegalIssue]] = None
    burden_of_proof: Optional[BurdenOfProofResult] = None
    damages_calculation: Optional[DamagesCalculation] = None
    conclusions_of_law: Optional[List[ConclusionOfLaw]] = None
    award_recommendation: Optional[AwardRecommendation] = None
    citations_used: Optional[List[CitationUsage]] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    """Health check response"""
    status: str = Field(..., description="Service status")
    version: str = Field(..., description="Service version")
    llm_mode: LLMMode = Field(..., description="Current LLM mode")
    timestamp: datetime = Field(..., description="Current timestamp")


class ErrorDetail(BaseModel):
    """Structured error detail"""
    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Any] = Field(None, description="Optional error details")


class ErrorResponse(BaseModel):
    """Structured error response"""
    error: ErrorDetail
