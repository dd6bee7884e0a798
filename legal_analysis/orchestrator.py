"""
Legal Analysis Orchestrator
===========================

Runs the five analysis phases in order, persisting each phase's output on the
case's AnalysisJob before advancing progress:

    queued -> classifying_issues -> analyzing_burden -> calculating_damages
           -> generating_conclusions -> scoring_confidence -> completed

Any phase may fail over to its rule-based default (the provider is optional);
only non-provider faults (store errors, cancellation, bugs) fail the run.
A failed or interrupted run can be resumed: completed phase outputs are read
back from the job instead of recomputed, unless force is set.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .burden_analyzer import BurdenPolicy, analyze_burden_of_proof, merge_burden_into_issues
from .config import Settings, get_settings
from .confidence_scorer import (
    ScoringPolicy,
    aggregate_citations,
    get_confidence_level,
    score_confidence,
)
from .damages_calculator import (
    apply_damages_caps,
    apply_statutory_minimum,
    calculate_damages,
    extract_damages_claims,
    find_breach_date,
)
from .errors import AnalysisCancelledError, InputUnavailableError, StoreError
from .issue_classifier import classify_legal_issues
from .llm_client import InferenceProvider
from .prompts import format_money
from .schemas import (
    AnalysisPhase,
    AwardRecommendation,
    BurdenOfProofResult,
    ConclusionOfLaw,
    ConfidenceFactors,
    ConfidenceScore,
    DamagesCalculation,
    JobStatus,
    LegalAnalysisInput,
    LegalAnalysisOptions,
    LegalAnalysisProgress,
    LegalAnalysisResult,
    LegalIssue,
    LegalIssueCategory,
    PrevailingParty,
    clamp,
)
from .store import JobStore

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[LegalAnalysisProgress], Awaitable[None]]
ContextRetriever = Callable[[str, str], str]

CANCELLED_MESSAGE = "Analysis cancelled"

# Issue categories whose damages earn contract-rate prejudgment interest
CONTRACT_CATEGORIES = (LegalIssueCategory.BREACH_OF_CONTRACT, LegalIssueCategory.WARRANTY)


def load_legal_analysis_input(store: JobStore, case_id: str) -> LegalAnalysisInput:
    """
    Stored fact-extraction output for a case.

    Raises:
        InputUnavailableError: nothing has been stored for the case
    """
    analysis_input = store.load_input(case_id)
    if analysis_input is None:
        raise InputUnavailableError(case_id)
    return analysis_input


# =============================================================================
# Conclusions and award (no provider call)
# =============================================================================

def _relevant_analyses(issue: LegalIssue, burden: BurdenOfProofResult):
    return [
        a for a in burden.analyses
        if issue.description in a.issue or any(e.name in a.issue for e in issue.elements)
    ]


def generate_conclusions(
    issues: List[LegalIssue],
    burden: BurdenOfProofResult,
    damages: DamagesCalculation,
) -> List[ConclusionOfLaw]:
    conclusions = []

    for issue in issues:
        satisfied = [e for e in issue.elements if e.is_satisfied is True]

        if len(satisfied) == len(issue.elements):
            text = (
                f"Claimant has established {issue.description}. "
                f"All required elements have been proven by a preponderance of the evidence."
            )
        elif satisfied:
            unsatisfied = ", ".join(e.name for e in issue.elements if e.is_satisfied is not True)
            text = (
                f"Claimant has partially established {issue.description}. However, the "
                f"following elements were not sufficiently proven: {unsatisfied}."
            )
        else:
            text = f"Claimant has not established {issue.description}. The burden of proof has not been met."

        relevant = _relevant_analyses(issue, burden)
        confidence = sum(a.probability for a in relevant) / len(relevant) if relevant else 0.5

        conclusions.append(ConclusionOfLaw(
            id=f"col-{issue.id}",
            issue=issue.description,
            conclusion=text,
            legal_basis=issue.applicable_statutes[:3],
            supporting_facts=[f for e in issue.elements for f in e.supporting_facts][:5],
            confidence=clamp(confidence),
        ))

    if damages.recommended_total > 0:
        text = f"Claimant is entitled to recover {format_money(damages.recommended_total)} in damages"
        if damages.interest_calculation:
            text += f", including {format_money(damages.interest_amount)} in prejudgment interest"
        interest_basis = damages.interest_calculation.statutory_basis if damages.interest_calculation else None
        item_confidence = (
            sum(i.confidence for i in damages.items) / len(damages.items) if damages.items else 0.5
        )

        conclusions.append(ConclusionOfLaw(
            id="col-damages",
            issue="Damages",
            conclusion=text + ".",
            legal_basis=[interest_basis] if interest_basis else [],
            supporting_facts=[f for i in damages.items for f in i.evidence_support][:5],
            confidence=clamp(item_confidence),
        ))

    return conclusions


def generate_award_recommendation(
    issues: List[LegalIssue],
    burden: BurdenOfProofResult,
    damages: DamagesCalculation,
) -> AwardRecommendation:
    """
    Prevailing party over the full issue set.

    claimant: burden met and every issue fully satisfied.
    split: burden met with some issues won, or damages supported without the
    burden being met. respondent when the burden is met but no issue is won,
    or when no damages are supported. A respondent award is zero.
    """
    ranked = sorted(issues, key=lambda i: i.materiality_score, reverse=True)
    won = [i for i in ranked if all(e.is_satisfied is True for e in i.elements)]
    supported = damages.recommended_total > 0

    if burden.overall_burden_met and ranked and len(won) == len(ranked):
        party = PrevailingParty.CLAIMANT
        reasoning = "Claimant has proven all claims and is entitled to full recovery."
    elif burden.overall_burden_met and won:
        party = PrevailingParty.SPLIT
        names = "; ".join(i.description for i in won)
        reasoning = f"Claimant prevailed on {len(won)} of {len(ranked)} claims ({names})."
    elif burden.overall_burden_met:
        party = PrevailingParty.RESPONDENT
        reasoning = "Claimant did not establish every element of any claim."
    elif supported:
        party = PrevailingParty.SPLIT
        reasoning = "Some damages supported but burden of proof not fully met."
    else:
        party = PrevailingParty.RESPONDENT
        reasoning = "Claimant failed to prove damages or liability."

    return AwardRecommendation(
        prevailing_party=party,
        award_amount=0.0 if party == PrevailingParty.RESPONDENT else damages.recommended_total,
        reasoning=reasoning,
    )


def estimate_cost(tokens_used: int, cost_per_million_tokens: float) -> float:
    return round(tokens_used / 1_000_000 * cost_per_million_tokens, 6)


# =============================================================================
# Orchestrator
# =============================================================================

@dataclass
class _RunState:
    case_id: str
    jurisdiction: str
    job_id: Optional[str] = None
    started: float = field(default_factory=time.monotonic)
    progress: int = 0
    tokens_used: int = 0
    fallbacks: Dict[str, bool] = field(default_factory=dict)

    @property
    def elapsed_ms(self) -> float:
        return round((time.monotonic() - self.started) * 1000, 1)


class LegalAnalysisOrchestrator:
    """
    Drives one case through the pipeline.

    Usage:
        orchestrator = LegalAnalysisOrchestrator(build_provider(), JobStore())
        result = await orchestrator.run(analysis_input)
    """

    def __init__(
        self,
        provider: InferenceProvider,
        store: JobStore,
        settings: Optional[Settings] = None,
        on_progress: Optional[ProgressCallback] = None,
        context_retriever: Optional[ContextRetriever] = None,
        as_of: Optional[date] = None,
    ):
        self.provider = provider
        self.store = store
        self.settings = settings or get_settings()
        self.on_progress = on_progress
        self.context_retriever = context_retriever
        self.as_of = as_of

        self.burden_policy = BurdenPolicy.from_settings(self.settings)
        self.scoring_policy = ScoringPolicy.from_settings(self.settings)

    # -------------------------------------------------------------------------
    # Provider settings
    # -------------------------------------------------------------------------

    def _model(self, scoring: bool = False) -> Optional[str]:
        """Configured model name; None lets the provider use its own default"""
        if self.provider.name != "openrouter":
            return None
        return self.settings.scoring_model if scoring else self.settings.analysis_model

    @property
    def model_used(self) -> str:
        return self._model() or self.provider.default_model

    def _call_kwargs(self, scoring: bool = False) -> Dict[str, Any]:
        return {
            "model": self._model(scoring),
            "max_tokens": self.settings.scoring_max_tokens if scoring else self.settings.llm_max_tokens,
            "timeout": self.settings.llm_timeout,
        }

    # -------------------------------------------------------------------------
    # Progress / persistence helpers
    # -------------------------------------------------------------------------

    async def _checkpoint(self, state: _RunState, phase: AnalysisPhase, progress: int, message: str):
        self.store.update_progress(state.job_id, phase, progress)
        state.progress = max(state.progress, progress)
        logger.debug(f"[{state.case_id}] {phase.value} {progress}%: {message}")
        if self.on_progress:
            await self.on_progress(LegalAnalysisProgress(
                case_id=state.case_id,
                job_id=state.job_id,
                phase=phase,
                progress=progress,
                message=message,
            ))

    def _save(self, state: _RunState, **outputs):
        self.store.save_phase_output(
            state.job_id,
            metadata={"fallbacks": dict(state.fallbacks)},
            tokens_used=state.tokens_used,
            **outputs,
        )

    @staticmethod
    def _check_cancelled(cancel_check: Optional[Callable[[], bool]]):
        if cancel_check is not None and cancel_check():
            raise AnalysisCancelledError(CANCELLED_MESSAGE)

    def _legal_context(self, analysis_input: LegalAnalysisInput, jurisdiction: str) -> Optional[str]:
        if self.context_retriever is None:
            return None
        query = f"{analysis_input.dispute_type} {analysis_input.case_description}"
        try:
            return self.context_retriever(jurisdiction, query) or None
        except Exception as e:
            logger.warning(f"Legal context retrieval unavailable: {e}")
            return None

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    async def run(
        self,
        analysis_input: LegalAnalysisInput,
        options: Optional[LegalAnalysisOptions] = None,
        cancel_check: Optional[Callable[[], bool]] = None,
    ) -> LegalAnalysisResult:
        """
        Run (or resume) the legal analysis for one case.

        Never raises for pipeline faults: a failed run returns a result with
        status=failed, the error message, and the tokens and time spent.
        """
        options = options or LegalAnalysisOptions()
        jurisdiction = analysis_input.jurisdiction or self.settings.default_jurisdiction
        case_id = analysis_input.case_id

        state = _RunState(case_id=case_id, jurisdiction=jurisdiction)

        try:
            previous = None
            if options.resume and not options.force:
                previous = self.store.get_job(case_id)

            job = self.store.start_job(case_id, reset=previous is None)
            state.job_id = job.id
            if previous is not None:
                state.tokens_used = previous.tokens_used or 0
                state.fallbacks = dict((previous.metadata_json or {}).get("fallbacks", {}))
                logger.info(f"[{case_id}] Resuming analysis job {job.id}")
            else:
                logger.info(f"[{case_id}] Starting analysis job {job.id} ({jurisdiction})")

            return await self._run_phases(analysis_input, options, cancel_check, state, previous)
        except Exception as e:
            return await self._fail(state, e)

    async def _run_phases(self, analysis_input, options, cancel_check, state, previous) -> LegalAnalysisResult:
        jurisdiction = state.jurisdiction

        # Phase 1: issue classification
        self._check_cancelled(cancel_check)
        await self._checkpoint(state, AnalysisPhase.CLASSIFYING_ISSUES, 10, "Starting legal analysis")
        legal_context = self._legal_context(analysis_input, jurisdiction)
        await self._checkpoint(state, AnalysisPhase.CLASSIFYING_ISSUES, 15, "Classifying legal issues")

        issues: List[LegalIssue] = []
        if previous is not None and previous.legal_issues_json:
            issues = [LegalIssue.model_validate(i) for i in previous.legal_issues_json]
        elif not options.skip_issue_classification:
            classification = await classify_legal_issues(
                self.provider,
                case_description=analysis_input.case_description,
                dispute_type=analysis_input.dispute_type,
                claimed_amount=analysis_input.claimed_amount,
                disputed_facts=analysis_input.disputed_facts,
                undisputed_facts=analysis_input.undisputed_facts,
                jurisdiction=jurisdiction,
                legal_context=legal_context,
                **self._call_kwargs(),
            )
            issues = classification.issues
            state.tokens_used += classification.tokens_used
            state.fallbacks["issue_classification"] = classification.used_fallback
            self._save(state, legal_issues=issues)
        await self._checkpoint(state, AnalysisPhase.CLASSIFYING_ISSUES, 20, "Issue classification complete")

        # Phase 2: burden of proof
        self._check_cancelled(cancel_check)
        await self._checkpoint(state, AnalysisPhase.ANALYZING_BURDEN, 30, "Analyzing burden of proof")

        burden = BurdenOfProofResult(summary="Burden analysis skipped")
        if previous is not None and previous.burden_of_proof_json:
            burden = BurdenOfProofResult.model_validate(previous.burden_of_proof_json)
        elif not options.skip_burden_analysis and issues:
            burden = await analyze_burden_of_proof(
                self.provider,
                issues=issues,
                extracted_facts=analysis_input.extracted_facts,
                credibility_scores=analysis_input.credibility_scores,
                contradictions=analysis_input.contradictions,
                jurisdiction=jurisdiction,
                legal_context=legal_context,
                policy=self.burden_policy,
                **self._call_kwargs(),
            )
            state.tokens_used += burden.tokens_used
            state.fallbacks["burden_analysis"] = burden.used_fallback
            issues = merge_burden_into_issues(issues, burden.analyses)
            self._save(state, legal_issues=issues, burden_of_proof=burden)
        await self._checkpoint(state, AnalysisPhase.ANALYZING_BURDEN, 40, "Burden analysis complete")

        # Phase 3: damages
        self._check_cancelled(cancel_check)
        await self._checkpoint(state, AnalysisPhase.CALCULATING_DAMAGES, 50, "Calculating damages")

        damages = DamagesCalculation(
            claimed_total=analysis_input.claimed_amount,
            summary="Damages calculation skipped",
        )
        if previous is not None and previous.damages_calculation_json:
            damages = DamagesCalculation.model_validate(previous.damages_calculation_json)
        elif not options.skip_damages_calculation:
            damages = await self._calculate_damages(analysis_input, issues, legal_context, state)
            self._save(state, damages_calculation=damages)
        await self._checkpoint(state, AnalysisPhase.CALCULATING_DAMAGES, 60, "Damages calculation complete")

        # Phase 4: conclusions and award
        self._check_cancelled(cancel_check)
        await self._checkpoint(state, AnalysisPhase.GENERATING_CONCLUSIONS, 70, "Generating conclusions")

        conclusions: List[ConclusionOfLaw] = []
        award: Optional[AwardRecommendation] = None
        if previous is not None and previous.conclusions_json is not None and previous.award_recommendation_json:
            conclusions = [ConclusionOfLaw.model_validate(c) for c in previous.conclusions_json]
            award = AwardRecommendation.model_validate(previous.award_recommendation_json)
        elif not options.skip_conclusions:
            conclusions = generate_conclusions(issues, burden, damages)
            award = generate_award_recommendation(issues, burden, damages)
            self._save(state, conclusions_of_law=conclusions, award_recommendation=award)
        await self._checkpoint(state, AnalysisPhase.GENERATING_CONCLUSIONS, 80, "Conclusions generated")

        # Phase 5: confidence
        self._check_cancelled(cancel_check)
        await self._checkpoint(state, AnalysisPhase.SCORING_CONFIDENCE, 90, "Scoring confidence")

        citations = aggregate_citations(issues, damages)
        if (previous is not None and previous.confidence_factors_json
                and previous.overall_confidence is not None):
            score = ConfidenceScore(
                overall_confidence=previous.overall_confidence,
                factors=ConfidenceFactors.model_validate(previous.confidence_factors_json),
            )
        else:
            credibility = analysis_input.credibility_scores
            score = await score_confidence(
                self.provider,
                issues=issues,
                burden_of_proof=burden,
                damages_calculation=damages,
                contradictions=analysis_input.contradictions,
                citations_used=citations,
                evidence_count=len(analysis_input.evidence_summaries),
                credibility_delta=credibility.claimant.overall - credibility.respondent.overall,
                jurisdiction=jurisdiction,
                policy=self.scoring_policy,
                **self._call_kwargs(scoring=True),
            )
            state.tokens_used += score.tokens_used
            state.fallbacks["confidence_scoring"] = score.used_fallback
            self._save(
                state,
                citations_used=citations,
                confidence_factors=score.factors,
                overall_confidence=score.overall_confidence,
            )

        self.store.mark_completed(state.job_id, score.overall_confidence, state.tokens_used)
        await self._checkpoint(state, AnalysisPhase.COMPLETED, 100, "Legal analysis complete")

        logger.info(
            f"[{state.case_id}] Analysis complete: confidence={score.overall_confidence} "
            f"tokens={state.tokens_used} time={state.elapsed_ms}ms"
        )

        return LegalAnalysisResult(
            case_id=state.case_id,
            job_id=state.job_id,
            status=JobStatus.COMPLETED,
            legal_issues=issues,
            burden_of_proof=burden,
            damages_calculation=damages,
            conclusions_of_law=conclusions,
            overall_confidence=score.overall_confidence,
            confidence_factors=score.factors,
            confidence_level=get_confidence_level(score.overall_confidence),
            citations_used=citations,
            award_recommendation=award,
            jurisdiction_applied=jurisdiction,
            model_used=self.model_used,
            tokens_used=state.tokens_used,
            processing_time_ms=state.elapsed_ms,
            estimated_cost=estimate_cost(state.tokens_used, self.settings.cost_per_million_tokens),
        )

    async def _calculate_damages(
        self,
        analysis_input: LegalAnalysisInput,
        issues: List[LegalIssue],
        legal_context: Optional[str],
        state: _RunState,
    ) -> DamagesCalculation:
        damages = await calculate_damages(
            self.provider,
            claimed_amount=analysis_input.claimed_amount,
            damages_claimed=extract_damages_claims(analysis_input),
            extracted_facts=analysis_input.extracted_facts,
            evidence_summaries=analysis_input.evidence_summaries,
            jurisdiction=state.jurisdiction,
            is_contract_claim=any(i.category in CONTRACT_CATEGORIES for i in issues),
            breach_date=find_breach_date(analysis_input),
            legal_context=legal_context,
            as_of=self.as_of,
            support_ratio=self.settings.damages_support_ratio,
            item_confidence=self.settings.fallback_item_confidence,
            **self._call_kwargs(),
        )
        state.tokens_used += damages.tokens_used
        state.fallbacks["damages_calculation"] = damages.used_fallback

        damages = apply_damages_caps(damages, state.jurisdiction, analysis_input.dispute_type)
        violations = [i.category.value for i in issues]
        return apply_statutory_minimum(damages, state.jurisdiction, violations)

    async def _fail(self, state: _RunState, error: Exception) -> LegalAnalysisResult:
        if isinstance(error, AnalysisCancelledError):
            message = CANCELLED_MESSAGE
            logger.info(f"[{state.case_id}] {message} at {state.progress}%")
        else:
            message = str(error) or type(error).__name__
            logger.exception(f"[{state.case_id}] Legal analysis failed: {message}")

        if state.job_id is not None:
            try:
                self.store.mark_failed(state.job_id, message, state.tokens_used)
            except StoreError as e:
                logger.error(f"[{state.case_id}] Could not record failure: {e}")

        if self.on_progress:
            try:
                await self.on_progress(LegalAnalysisProgress(
                    case_id=state.case_id,
                    job_id=state.job_id,
                    phase=AnalysisPhase.FAILED,
                    progress=state.progress,
                    message=message,
                ))
            except Exception as e:
                logger.error(f"[{state.case_id}] Progress notification failed: {e}")

        return LegalAnalysisResult(
            case_id=state.case_id,
            job_id=state.job_id,
            status=JobStatus.FAILED,
            jurisdiction_applied=state.jurisdiction,
            model_used=self.model_used,
            tokens_used=state.tokens_used,
            processing_time_ms=state.elapsed_ms,
            estimated_cost=estimate_cost(state.tokens_used, self.settings.cost_per_million_tokens),
            error=message,
        )
