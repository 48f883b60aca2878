"""
Unit tests for the response assembler: confidence arithmetic, provenance
and the FinalResponse variants.
"""

import pytest
from pydantic import TypeAdapter

from civicpulse.models import (
    DraftResponse,
    EnhancedResponse,
    EnhancementDecision,
    EnhancementError,
    EnhancementErrorReason,
    ErrorResponse,
    FinalResponse,
    HandlerResult,
    Intent,
    Priority,
    ProvenanceSource,
    QualityAssessment,
    QualityLevel,
    ResidentRow,
)
from civicpulse.services.intent_classifier import classify_query
from civicpulse.services.response_assembler import (
    assemble_response,
    build_error_response,
    calculate_confidence,
)
from civicpulse.services.statistical_profiler import build_statistical_profile

RESIDENT = ResidentRow(id='1', name='Morador 01', neighborhood='Centro', priority=Priority.HIGH)


def _quality(level, score):
    return QualityAssessment(score=score, level=level)


def _draft(residents=False, success=True):
    return HandlerResult(
        handler=Intent.NOTIFICATION,
        success=success,
        summaryText='Draft summary.',
        insights=['insight'],
        recommendations=['recommendation'],
        residents=[RESIDENT] if residents else [],
    )


def _kept(reason=EnhancementErrorReason.NO_CREDENTIAL):
    return EnhancementDecision(
        source=ProvenanceSource.HANDLER_ONLY,
        text='Draft summary.',
        error=EnhancementError(reason=reason),
    )


def _adopted(level, score, source=ProvenanceSource.HANDLER_MODEL):
    return EnhancementDecision(
        source=source,
        text='Enhanced text.',
        adopted=True,
        quality=_quality(level, score),
        model='test-model',
    )


class TestConfidence:
    """base 0.7, +0.15 residents, +0.10/+0.05 adopted excellent/good, max 0.95."""

    def test_base(self):
        assert calculate_confidence(_draft(), _kept()) == 0.7

    def test_residents_bonus(self):
        assert calculate_confidence(_draft(residents=True), _kept()) == 0.85

    def test_good_enhancement_bonus(self):
        assert calculate_confidence(_draft(), _adopted(QualityLevel.GOOD, 70)) == 0.75

    def test_capped_at_maximum(self):
        assert calculate_confidence(_draft(residents=True), _adopted(QualityLevel.EXCELLENT, 95)) == 0.95

    def test_rejected_enhancement_earns_nothing(self):
        rejected = EnhancementDecision(
            source=ProvenanceSource.HANDLER_ONLY,
            text='Draft summary.',
            quality=_quality(QualityLevel.EXCELLENT, 85),
            rejectionReason='no resident name and shorter than 1.5x the draft',
        )
        assert calculate_confidence(_draft(residents=True), rejected) == 0.85

    def test_degraded_draft_uses_floor(self):
        assert calculate_confidence(_draft(residents=True, success=False), _kept()) == 0.3


class TestAssembleResponse:

    @pytest.fixture
    def profile(self, dissatisfied_scenario, fixed_now):
        return build_statistical_profile(dissatisfied_scenario, now=fixed_now)

    def test_draft_response_for_kept_draft(self, profile, fixed_now):
        analysis = classify_query('list dissatisfied residents')

        response = assemble_response(
            analysis.query, analysis, profile, _draft(residents=True), _kept(), now=fixed_now
        )

        assert isinstance(response, DraftResponse)
        assert response.kind == 'draft'
        assert response.text == 'Draft summary.'
        assert response.provenance.source == ProvenanceSource.HANDLER_ONLY
        assert response.provenance.enhancementError == EnhancementErrorReason.NO_CREDENTIAL
        assert response.provenance.modelUsed is None
        assert response.statistics.totalContacts == 40
        assert response.statistics.satisfactionScore == pytest.approx(2.5)
        assert response.timestamp == fixed_now

    def test_enhanced_response_keeps_draft_text(self, profile, fixed_now):
        analysis = classify_query('overview')

        response = assemble_response(
            analysis.query, analysis, profile, _draft(),
            _adopted(QualityLevel.EXCELLENT, 90, ProvenanceSource.HANDLER_FALLBACK), now=fixed_now,
        )

        assert isinstance(response, EnhancedResponse)
        assert response.text == 'Enhanced text.'
        assert response.draftText == 'Draft summary.'
        assert response.provenance.source == ProvenanceSource.HANDLER_FALLBACK
        assert response.provenance.modelUsed == 'test-model'
        assert response.confidence == 0.8

    def test_rejection_is_recorded(self, profile, fixed_now):
        analysis = classify_query('overview')
        rejected = EnhancementDecision(
            source=ProvenanceSource.HANDLER_ONLY,
            text='Draft summary.',
            quality=_quality(QualityLevel.FAIR, 55),
            model='test-model',
            rejectionReason='quality fair (55/100) below good',
        )

        response = assemble_response(analysis.query, analysis, profile, _draft(), rejected, now=fixed_now)

        assert isinstance(response, DraftResponse)
        assert response.provenance.enhancementRejected is True
        assert response.provenance.quality.level == QualityLevel.FAIR
        assert response.provenance.modelUsed is None

    def test_union_round_trip_keeps_variant(self, profile, fixed_now):
        analysis = classify_query('overview')
        response = assemble_response(
            analysis.query, analysis, profile, _draft(), _adopted(QualityLevel.GOOD, 65), now=fixed_now
        )

        restored = TypeAdapter(FinalResponse).validate_python(response.model_dump())

        assert isinstance(restored, EnhancedResponse)


class TestErrorResponse:

    def test_error_response_shape(self, fixed_now):
        response = build_error_response('overview', RuntimeError('connection refused'), now=fixed_now)

        assert isinstance(response, ErrorResponse)
        assert response.kind == 'error'
        assert response.success is False
        assert response.text == 'Error processing query: connection refused'
        assert response.error == 'connection refused'
        assert response.confidence == 0.3
        assert response.provenance.source == ProvenanceSource.HANDLER_ONLY
