"""
Enhancement Gate - optional model rewrite of the handler draft, with a quality gate.

Flow for one query:

    1. Skip when no credential is configured, the intent is operations
       (status answers stay fully data-driven) or the handler draft is
       degraded.
    2. Build a role prompt embedding profile numbers and up to N resident rows.
    3. Call the TextGenerationService once, bounded by a timeout. Failures
       come back as an EnhancementError value, never as an exception.
    4. Score the text on a 100-point rubric:
           specific profile numbers    30
           actionable + time reference 25
           statistical language        20
           >= 3 domain terms           15
           length in [200, 2000]       10
       Level: >= 80 excellent, >= 60 good, >= 40 fair, else poor.
    5. A poor text gets the deterministic splice: data-context,
       recommendation and statistical-context blocks built from the profile
       are added for whichever checks failed, and the result is re-scored.
    6. Adoption: level good/excellent AND (a resident name appears in the
       text OR the text is at least 1.5x the draft length). Otherwise the
       draft is kept and the rejection is recorded.

The returned EnhancementDecision always names the real source of the
visible text: handler-only, handler+model or handler+fallback.
"""

import asyncio
import logging
import re
from typing import List, Optional, Sequence, Tuple

from civicpulse.core.config import Settings
from civicpulse.models import (
    EnhancementDecision,
    EnhancementError,
    EnhancementErrorReason,
    EnhancementOutcome,
    EnhancementSuccess,
    HandlerResult,
    Intent,
    ProvenanceSource,
    QualityAssessment,
    QualityCheck,
    QualityLevel,
    QueryAnalysis,
    ResidentRow,
    StatisticalProfile,
)
from civicpulse.services.text_generation import (
    TextGenerationError,
    TextGenerationService,
    TextGenerationTimeoutError,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Rubric Constants
# =============================================================================

CHECK_POINTS = {
    QualityCheck.SPECIFIC_DATA: 30,
    QualityCheck.ACTIONABLE: 25,
    QualityCheck.STATISTICAL: 20,
    QualityCheck.DOMAIN_TERMS: 15,
    QualityCheck.LENGTH: 10,
}

MIN_LENGTH = 200
MAX_LENGTH = 2000
MIN_DOMAIN_TERMS = 3
ADOPTION_LENGTH_RATIO = 1.5

ACTION_PATTERN = re.compile(
    r'\b(implement|establish|create|develop|schedule|organi[sz]e|contact|reach out|'
    r'follow[- ]up|engage|prioriti[sz]e|address|launch)',
    re.IGNORECASE,
)
TIME_PATTERN = re.compile(
    r'within \d+|\b\d+(?:\s*-\s*\d+)?\s*(?:hours?|days?|weeks?|months?)\b|'
    r'immediate|short-term|long-term|this week|next week|this month',
    re.IGNORECASE,
)
STATISTICAL_PATTERNS = (
    re.compile(r'\d+(?:\.\d+)?%'),
    re.compile(r'confidence|significance|sample|reliability', re.IGNORECASE),
    re.compile(r'(?:above|below|higher|lower).*benchmark', re.IGNORECASE),
)
DOMAIN_TERMS = (
    'municipal', 'civic', 'citizen', 'community', 'service delivery',
    'governance', 'public service', 'municipal management', 'urban',
    'neighborhood', 'satisfaction', 'engagement', 'equity',
)

GOOD_LEVELS = (QualityLevel.GOOD, QualityLevel.EXCELLENT)


# =============================================================================
# Prompt Construction
# =============================================================================

def build_system_prompt(analysis: QueryAnalysis) -> str:
    return (
        'You are a Municipal Intelligence Analyst providing data-driven insights for city governance.\n\n'
        'CRITICAL INSTRUCTION: You have been provided with REAL citizen data including actual names '
        'and details.\nUse this specific data in your response. DO NOT generate fictional names or '
        'statistics.\n\n'
        'Your response should:\n'
        '1. Provide a clear executive summary\n'
        '2. Reference the actual data provided (names, neighborhoods, issues)\n'
        '3. Offer actionable recommendations based on the real patterns\n'
        '4. Maintain professional municipal reporting standards\n\n'
        f'Focus on {analysis.primaryIntent.value} analysis with {analysis.queryType.value} format.'
    )


def build_user_prompt(
    query: str,
    profile: StatisticalProfile,
    draft: HandlerResult,
    max_residents: int = 10,
) -> str:
    pop, sat = profile.population, profile.satisfaction
    average = f'{sat.averageScore:.2f}/5' if sat.has_data else 'insufficient data'

    data_section = ''
    residents = draft.residents
    if residents:
        lines = [f'\nACTUAL RESIDENT DATA ({len(residents)} records):']
        for index, resident in enumerate(residents[:max_residents], start=1):
            status = resident.satisfaction or 'Status unknown'
            lines.append(f'{index}. {resident.name} ({resident.neighborhood}) - {status}')
        if len(residents) > max_residents:
            lines.append(f'... and {len(residents) - max_residents} more residents')
        data_section = '\n'.join(lines) + '\n'

    return (
        f'Query: "{query}"\n\n'
        'MUNICIPAL DATABASE STATISTICS:\n'
        f'- Total Citizens: {pop.total}\n'
        f'- Response Rate: {pop.responseRate:.1f}%\n'
        f'- Average Satisfaction: {average}\n'
        f'- Geographic Coverage: {profile.geographic.totalNeighborhoods} neighborhoods\n'
        f'{data_section}\n'
        'AGENT ANALYSIS RESULTS:\n'
        f'{draft.summaryText or "Analysis completed"}\n\n'
        'Provide a professional municipal intelligence brief that incorporates the ACTUAL resident '
        'data above.\nFocus on actionable insights and maintain factual accuracy using the real '
        'names and data provided.'
    )


# =============================================================================
# Quality Rubric
# =============================================================================

def profile_markers(profile: StatisticalProfile) -> List[str]:
    """Profile numbers whose presence counts as using specific data."""
    markers = [
        str(profile.population.total),
        f'{profile.population.responseRate:.1f}',
        str(profile.geographic.totalNeighborhoods),
    ]
    if profile.satisfaction.has_data:
        markers.append(f'{profile.satisfaction.averageScore:.2f}')
    return markers


def uses_specific_data(text: str, profile: StatisticalProfile) -> bool:
    return any(marker in text for marker in profile_markers(profile))


def has_actionable_language(text: str) -> bool:
    return bool(ACTION_PATTERN.search(text)) and bool(TIME_PATTERN.search(text))


def has_statistical_language(text: str) -> bool:
    return any(pattern.search(text) for pattern in STATISTICAL_PATTERNS)


def count_domain_terms(text: str) -> int:
    lowered = text.lower()
    return sum(1 for term in DOMAIN_TERMS if term in lowered)


def quality_level(score: int) -> QualityLevel:
    if score >= 80:
        return QualityLevel.EXCELLENT
    if score >= 60:
        return QualityLevel.GOOD
    if score >= 40:
        return QualityLevel.FAIR
    return QualityLevel.POOR


def assess_quality(text: str, profile: StatisticalProfile) -> QualityAssessment:
    """Score a generated text against the 100-point rubric."""
    results = {
        QualityCheck.SPECIFIC_DATA: uses_specific_data(text, profile),
        QualityCheck.ACTIONABLE: has_actionable_language(text),
        QualityCheck.STATISTICAL: has_statistical_language(text),
        QualityCheck.DOMAIN_TERMS: count_domain_terms(text) >= MIN_DOMAIN_TERMS,
        QualityCheck.LENGTH: MIN_LENGTH <= len(text) <= MAX_LENGTH,
    }
    score = sum(CHECK_POINTS[check] for check, passed in results.items() if passed)
    return QualityAssessment(
        score=score,
        level=quality_level(score),
        satisfiedChecks=[check for check, passed in results.items() if passed],
        failedChecks=[check for check, passed in results.items() if not passed],
    )


# =============================================================================
# Deterministic Splice
# =============================================================================

def data_context_block(profile: StatisticalProfile) -> str:
    pop, sat = profile.population, profile.satisfaction
    average = f'{sat.averageScore:.2f}/5' if sat.has_data else 'insufficient-data'
    return (
        f'Based on analysis of {pop.total} municipal contacts with {pop.responseRate:.1f}% '
        f'response rate and {average} average satisfaction:'
    )


def recommendation_lines(profile: StatisticalProfile) -> List[str]:
    pop, sat = profile.population, profile.satisfaction
    lines: List[str] = []
    if pop.responseRate < 50:
        lines.append('• Implement multi-channel outreach to improve response rates')
        lines.append('• Schedule follow-up contacts within 48-72 hours')
    if sat.has_data and sat.averageScore < 3.5:
        lines.append('• Address top-priority service issues within 30 days')
        lines.append('• Establish direct communication channels with dissatisfied residents')
    if pop.engagementRate < 60:
        lines.append('• Optimize message timing and content for better engagement')
        lines.append('• Test alternative communication channels')
    if profile.geographic.equityGap > 25:
        lines.append('• Implement targeted outreach for underperforming neighborhoods')
        lines.append('• Investigate service delivery disparities')
    return lines or ['• Continue current engagement strategies and monitor performance']


def statistical_context_lines(profile: StatisticalProfile) -> List[str]:
    sat = profile.satisfaction
    if not sat.has_data:
        return ['• Statistical analysis requires larger sample size for reliable conclusions.']
    lines = [f'• Sample reliability: {sat.reliability.value} (n={sat.sampleSize})']
    if sat.confidenceInterval is not None:
        lines.append(f'• 95% confidence interval: ±{sat.confidenceInterval.marginOfError:.2f}')
    lines.append(f'• Performance vs. benchmarks: {profile.benchmarks.satisfaction.rating.value}')
    return lines


def apply_fallback_splice(text: str, assessment: QualityAssessment, profile: StatisticalProfile) -> str:
    """Add profile-built blocks for each failed content check."""
    failed = set(assessment.failedChecks)
    spliced = text
    if QualityCheck.SPECIFIC_DATA in failed:
        spliced = f'{data_context_block(profile)}\n\n{spliced}'
    if QualityCheck.ACTIONABLE in failed:
        spliced += '\n\nSpecific Recommendations:\n' + '\n'.join(recommendation_lines(profile))
    if QualityCheck.STATISTICAL in failed:
        spliced += '\n\nStatistical Context:\n' + '\n'.join(statistical_context_lines(profile))
    return spliced


# =============================================================================
# Adoption Rule
# =============================================================================

def mentions_resident(text: str, residents: Sequence[ResidentRow]) -> bool:
    return any(r.name and r.name in text for r in residents)


def should_adopt(
    assessment: QualityAssessment,
    text: str,
    draft_text: str,
    residents: Sequence[ResidentRow],
) -> Tuple[bool, Optional[str]]:
    """
    Decide whether a generated text replaces the draft.

    Returns:
        (adopted, rejection_reason). The reason is None when adopted.
    """
    if assessment.level not in GOOD_LEVELS:
        return False, f'quality {assessment.level.value} ({assessment.score}/100) below good'
    if mentions_resident(text, residents):
        return True, None
    if len(text) >= ADOPTION_LENGTH_RATIO * len(draft_text):
        return True, None
    return False, 'no resident name and shorter than 1.5x the draft'


# =============================================================================
# Gate Entry Point
# =============================================================================

async def request_enhancement(
    text_service: TextGenerationService,
    system_prompt: str,
    user_prompt: str,
    timeout_seconds: float,
) -> EnhancementOutcome:
    """Single generation attempt, returned as a success or error value."""
    try:
        text = await text_service.generate(system_prompt, user_prompt, timeout_seconds)
    except (TextGenerationTimeoutError, TimeoutError, asyncio.TimeoutError) as e:
        logger.warning(f"Enhancement timed out: {e}")
        return EnhancementError(reason=EnhancementErrorReason.TIMEOUT, message=str(e))
    except TextGenerationError as e:
        logger.warning(f"Enhancement service failed: {e}")
        return EnhancementError(reason=EnhancementErrorReason.SERVICE_ERROR, message=str(e))
    except Exception as e:
        logger.warning(f"Enhancement failed unexpectedly: {e}", exc_info=True)
        return EnhancementError(reason=EnhancementErrorReason.SERVICE_ERROR, message=str(e))

    if not text or not text.strip():
        return EnhancementError(reason=EnhancementErrorReason.EMPTY_RESPONSE, message='empty text')
    return EnhancementSuccess(text=text.strip(), model=text_service.model_name)


def _kept_draft(draft: HandlerResult, error: EnhancementError) -> EnhancementDecision:
    return EnhancementDecision(
        source=ProvenanceSource.HANDLER_ONLY,
        text=draft.summaryText,
        error=error,
    )


async def run_enhancement(
    query: str,
    analysis: QueryAnalysis,
    profile: StatisticalProfile,
    draft: HandlerResult,
    text_service: Optional[TextGenerationService],
    settings: Settings,
) -> EnhancementDecision:
    """
    Try to upgrade the handler draft and decide which text is shown.

    Never raises for text-generation problems; they are carried in
    `EnhancementDecision.error`.
    """
    if not settings.text_generation_enabled or text_service is None:
        logger.info("Enhancement skipped: no text-generation credential configured")
        return _kept_draft(draft, EnhancementError(reason=EnhancementErrorReason.NO_CREDENTIAL))
    if analysis.primaryIntent == Intent.OPERATIONS:
        logger.info("Enhancement skipped: operations answers stay data-driven")
        return _kept_draft(draft, EnhancementError(reason=EnhancementErrorReason.OPERATIONS_INTENT))
    if not draft.success:
        logger.info("Enhancement skipped: handler draft is degraded")
        return _kept_draft(draft, EnhancementError(reason=EnhancementErrorReason.DEGRADED_DRAFT))

    outcome = await request_enhancement(
        text_service,
        build_system_prompt(analysis),
        build_user_prompt(query, profile, draft, settings.max_prompt_residents),
        settings.llm_timeout_seconds,
    )
    if isinstance(outcome, EnhancementError):
        return _kept_draft(draft, outcome)

    candidate = outcome.text
    source = ProvenanceSource.HANDLER_MODEL
    assessment = assess_quality(candidate, profile)
    if assessment.level == QualityLevel.POOR:
        logger.info(
            f"Enhancement scored poor ({assessment.score}/100); splicing "
            f"{[c.value for c in assessment.failedChecks]}"
        )
        candidate = apply_fallback_splice(candidate, assessment, profile)
        assessment = assess_quality(candidate, profile)
        source = ProvenanceSource.HANDLER_FALLBACK

    adopted, reason = should_adopt(assessment, candidate, draft.summaryText, draft.residents)
    logger.info(
        f"Enhancement {'adopted' if adopted else 'rejected'}: source={source.value}, "
        f"quality={assessment.level.value} ({assessment.score}/100)"
        + (f", reason={reason}" if reason else "")
    )

    if not adopted:
        return EnhancementDecision(
            source=ProvenanceSource.HANDLER_ONLY,
            text=draft.summaryText,
            quality=assessment,
            model=outcome.model,
            rejectionReason=reason,
        )
    return EnhancementDecision(
        source=source,
        text=candidate,
        adopted=True,
        quality=assessment,
        model=outcome.model,
    )
