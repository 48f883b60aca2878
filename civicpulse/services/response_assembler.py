"""
Response Assembler - merge the winning text and handler output into a FinalResponse.

Confidence:
    base 0.7
    + 0.15 when the resident list is non-empty
    + 0.10 / + 0.05 for an adopted excellent / good enhancement
    capped at 0.95

A degraded handler result (success=False) is reported at the 0.3 floor.
Provenance always names the component that produced the visible text.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Union

from civicpulse.models import (
    DraftResponse,
    EnhancedResponse,
    EnhancementDecision,
    ErrorResponse,
    HandlerResult,
    Provenance,
    ProvenanceSource,
    QualityLevel,
    QueryAnalysis,
    ResponseStatistics,
    StatisticalProfile,
)

logger = logging.getLogger(__name__)

BASE_CONFIDENCE = 0.7
RESIDENTS_BONUS = 0.15
ENHANCEMENT_BONUS = {
    QualityLevel.EXCELLENT: 0.10,
    QualityLevel.GOOD: 0.05,
}
MAX_CONFIDENCE = 0.95
MIN_CONFIDENCE = 0.3


def calculate_confidence(draft: HandlerResult, decision: EnhancementDecision) -> float:
    if not draft.success:
        return MIN_CONFIDENCE
    confidence = BASE_CONFIDENCE
    if draft.residents:
        confidence += RESIDENTS_BONUS
    if decision.adopted and decision.quality is not None:
        confidence += ENHANCEMENT_BONUS.get(decision.quality.level, 0.0)
    return round(max(MIN_CONFIDENCE, min(confidence, MAX_CONFIDENCE)), 2)


def build_provenance(decision: EnhancementDecision) -> Provenance:
    return Provenance(
        source=decision.source,
        modelUsed=decision.model if decision.adopted else None,
        quality=decision.quality,
        enhancementError=decision.error.reason if decision.error is not None else None,
        enhancementRejected=decision.rejectionReason is not None,
    )


def assemble_response(
    query: str,
    analysis: QueryAnalysis,
    profile: StatisticalProfile,
    draft: HandlerResult,
    decision: EnhancementDecision,
    knowledge_brief: Optional[str] = None,
    processing_time_ms: float = 0.0,
    now: Optional[datetime] = None,
) -> Union[DraftResponse, EnhancedResponse]:
    """
    Build the final answer for a completed pipeline run.

    Returns:
        EnhancedResponse when an enhancement was adopted (the draft text is
        kept alongside it), otherwise DraftResponse.
    """
    fields = dict(
        query=query,
        text=decision.text,
        intent=analysis.primaryIntent,
        queryType=analysis.queryType,
        success=draft.success,
        confidence=calculate_confidence(draft, decision),
        insights=list(draft.insights),
        recommendations=list(draft.recommendations),
        residents=list(draft.residents),
        report=draft.report,
        knowledgeBrief=knowledge_brief,
        statistics=ResponseStatistics(
            totalContacts=profile.population.total,
            responseRate=profile.population.responseRate,
            satisfactionScore=profile.satisfaction.averageScore,
        ),
        provenance=build_provenance(decision),
        processingTimeMs=round(processing_time_ms, 1),
        timestamp=now or datetime.now(timezone.utc),
    )

    if decision.adopted and decision.source != ProvenanceSource.HANDLER_ONLY:
        response = EnhancedResponse(draftText=draft.summaryText, **fields)
    else:
        response = DraftResponse(**fields)

    logger.info(
        f"Assembled {response.kind} response: source={response.provenance.source.value}, "
        f"confidence={response.confidence}, residents={len(response.residents)}"
    )
    return response


def build_error_response(query: str, error: Exception, now: Optional[datetime] = None) -> ErrorResponse:
    """Minimal response for an aborted pipeline; carries no statistics."""
    return ErrorResponse(
        query=query,
        text=f'Error processing query: {error}',
        error=str(error),
        timestamp=now or datetime.now(timezone.utc),
    )
