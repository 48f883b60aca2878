"""
Tests for the enhancement gate: prompts, quality rubric, deterministic
splice, adoption rule and the skip / failure paths of run_enhancement.
"""

import pytest

from civicpulse.models import (
    EnhancementErrorReason,
    HandlerResult,
    Intent,
    Priority,
    ProvenanceSource,
    QualityCheck,
    QualityLevel,
    ResidentRow,
)
from civicpulse.services.enhancement_gate import (
    apply_fallback_splice,
    assess_quality,
    build_user_prompt,
    has_actionable_language,
    has_statistical_language,
    quality_level,
    run_enhancement,
    should_adopt,
    statistical_context_lines,
)
from civicpulse.services.intent_classifier import classify_query
from civicpulse.services.statistical_profiler import build_statistical_profile
from civicpulse.services.text_generation import (
    TextGenerationServiceError,
    TextGenerationTimeoutError,
)
from civicpulse.tests.conftest import EXCELLENT_TEXT

GOOD_SHORT_TEXT = 'Reach 40 residents: contact them within 48 hours; 62.5% are unhappy.'
FAIR_TEXT = '40 residents should be contacted within 48 hours.'
POOR_TEXT = 'Things look fine.'

RESIDENT = ResidentRow(id='1', name='Morador 01', neighborhood='Centro', priority=Priority.HIGH)


@pytest.fixture
def profile(dissatisfied_scenario, fixed_now):
    return build_statistical_profile(dissatisfied_scenario, now=fixed_now)


@pytest.fixture
def empty_profile(empty_records, fixed_now):
    return build_statistical_profile(empty_records, now=fixed_now)


def _draft(summary='Short draft.', residents=None, handler=Intent.KNOWLEDGE, success=True):
    return HandlerResult(
        handler=handler, summaryText=summary, residents=residents or [], success=success
    )


# =============================================================================
# RUBRIC
# =============================================================================

class TestQualityRubric:

    def test_excellent_text_passes_every_check(self, profile):
        assessment = assess_quality(EXCELLENT_TEXT, profile)

        assert assessment.score == 100
        assert assessment.level == QualityLevel.EXCELLENT
        assert assessment.failedChecks == []

    def test_good_short_text(self, profile):
        assessment = assess_quality(GOOD_SHORT_TEXT, profile)

        assert assessment.score == 75
        assert assessment.level == QualityLevel.GOOD
        assert set(assessment.failedChecks) == {QualityCheck.DOMAIN_TERMS, QualityCheck.LENGTH}

    def test_poor_text(self, profile):
        assessment = assess_quality(POOR_TEXT, profile)

        assert assessment.score == 0
        assert assessment.level == QualityLevel.POOR

    @pytest.mark.parametrize("length, passes", [(199, False), (200, True), (2000, True), (2001, False)])
    def test_length_bounds_are_inclusive(self, empty_profile, length, passes):
        assessment = assess_quality('x' * length, empty_profile)

        assert (QualityCheck.LENGTH in assessment.satisfiedChecks) is passes

    def test_actionable_needs_verb_and_time(self):
        assert has_actionable_language('Schedule meetings within 2 weeks')
        assert not has_actionable_language('Schedule meetings soon')
        assert not has_actionable_language('Results within 2 weeks')

    def test_statistical_language(self):
        assert has_statistical_language('Response rate is 45.5%')
        assert has_statistical_language('The sample is small')
        assert has_statistical_language('Satisfaction is below the municipal benchmark')
        assert not has_statistical_language('Everything is fine')

    @pytest.mark.parametrize("score, level", [
        (80, QualityLevel.EXCELLENT), (79, QualityLevel.GOOD), (60, QualityLevel.GOOD),
        (59, QualityLevel.FAIR), (40, QualityLevel.FAIR), (39, QualityLevel.POOR),
    ])
    def test_level_thresholds(self, score, level):
        assert quality_level(score) == level


# =============================================================================
# SPLICE AND ADOPTION
# =============================================================================

class TestFallbackSplice:

    def test_adds_blocks_for_failed_checks(self, profile):
        assessment = assess_quality(POOR_TEXT, profile)

        spliced = apply_fallback_splice(POOR_TEXT, assessment, profile)

        assert spliced.startswith(
            'Based on analysis of 40 municipal contacts with 100.0% response rate '
            'and 2.50/5 average satisfaction:'
        )
        assert POOR_TEXT in spliced
        assert 'Specific Recommendations:' in spliced
        assert '• Address top-priority service issues within 30 days' in spliced
        assert 'Statistical Context:' in spliced
        assert assess_quality(spliced, profile).level in (QualityLevel.GOOD, QualityLevel.EXCELLENT)

    def test_passing_checks_add_nothing(self, profile):
        assessment = assess_quality(EXCELLENT_TEXT, profile)

        assert apply_fallback_splice(EXCELLENT_TEXT, assessment, profile) == EXCELLENT_TEXT

    def test_statistical_context_without_data(self, empty_profile):
        assert statistical_context_lines(empty_profile) == [
            '• Statistical analysis requires larger sample size for reliable conclusions.'
        ]


class TestAdoptionRule:

    def test_fair_text_is_rejected_for_quality(self, profile):
        assessment = assess_quality(FAIR_TEXT, profile)

        adopted, reason = should_adopt(assessment, FAIR_TEXT, 'draft', [RESIDENT])

        assert assessment.level == QualityLevel.FAIR
        assert adopted is False
        assert reason == 'quality fair (55/100) below good'

    def test_good_text_needs_name_or_length(self, profile):
        assessment = assess_quality(GOOD_SHORT_TEXT, profile)

        assert should_adopt(assessment, GOOD_SHORT_TEXT, 'D' * 120, [RESIDENT]) == (
            False, 'no resident name and shorter than 1.5x the draft'
        )
        named = GOOD_SHORT_TEXT + ' Start with Morador 01.'
        assert should_adopt(assess_quality(named, profile), named, 'D' * 120, [RESIDENT]) == (True, None)
        assert should_adopt(assessment, GOOD_SHORT_TEXT, 'D' * 10, []) == (True, None)


# =============================================================================
# PROMPTS
# =============================================================================

class TestPrompts:

    def test_user_prompt_samples_residents(self, profile):
        residents = [
            ResidentRow(id=str(i), name=f'Morador {i:02d}', neighborhood='Centro', priority=Priority.HIGH)
            for i in range(1, 26)
        ]

        prompt = build_user_prompt('list dissatisfied residents', profile, _draft(residents=residents), 10)

        assert 'ACTUAL RESIDENT DATA (25 records):' in prompt
        assert 'Morador 10' in prompt
        assert 'Morador 11' not in prompt
        assert '... and 15 more residents' in prompt
        assert '- Average Satisfaction: 2.50/5' in prompt

    def test_user_prompt_without_data(self, empty_profile):
        prompt = build_user_prompt('overview', empty_profile, _draft())

        assert '- Average Satisfaction: insufficient data' in prompt
        assert 'ACTUAL RESIDENT DATA' not in prompt


# =============================================================================
# RUN ENHANCEMENT
# =============================================================================

@pytest.mark.asyncio
class TestRunEnhancement:

    async def test_skipped_without_credential(self, profile, settings_without_key, scripted_text_service):
        service = scripted_text_service(text=EXCELLENT_TEXT)
        draft = _draft()

        decision = await run_enhancement(
            'overview', classify_query('overview'), profile, draft, service, settings_without_key
        )

        assert decision.source == ProvenanceSource.HANDLER_ONLY
        assert decision.text == draft.summaryText
        assert decision.error.reason == EnhancementErrorReason.NO_CREDENTIAL
        assert service.calls == []

    async def test_skipped_without_service(self, profile, settings_with_key):
        decision = await run_enhancement(
            'overview', classify_query('overview'), profile, _draft(), None, settings_with_key
        )

        assert decision.error.reason == EnhancementErrorReason.NO_CREDENTIAL

    async def test_skipped_for_operations(self, profile, settings_with_key, scripted_text_service):
        service = scripted_text_service(text=EXCELLENT_TEXT)

        decision = await run_enhancement(
            'system status', classify_query('system status'), profile,
            _draft(handler=Intent.OPERATIONS), service, settings_with_key,
        )

        assert decision.error.reason == EnhancementErrorReason.OPERATIONS_INTENT
        assert service.calls == []

    @pytest.mark.parametrize("error, reason", [
        (TextGenerationTimeoutError('timed out'), EnhancementErrorReason.TIMEOUT),
        (TextGenerationServiceError('boom'), EnhancementErrorReason.SERVICE_ERROR),
        (TimeoutError('generation timed out'), EnhancementErrorReason.TIMEOUT),
        (RuntimeError('client closed'), EnhancementErrorReason.SERVICE_ERROR),
    ])
    async def test_failures_keep_the_draft(
        self, profile, settings_with_key, scripted_text_service, error, reason
    ):
        service = scripted_text_service(error=error)
        draft = _draft()

        decision = await run_enhancement(
            'overview', classify_query('overview'), profile, draft, service, settings_with_key
        )

        assert decision.source == ProvenanceSource.HANDLER_ONLY
        assert decision.text == draft.summaryText
        assert decision.error.reason == reason
        assert decision.adopted is False
        assert service.calls[0]['timeout_seconds'] == settings_with_key.llm_timeout_seconds

    async def test_degraded_draft_is_never_enhanced(
        self, profile, settings_with_key, scripted_text_service
    ):
        service = scripted_text_service(text=EXCELLENT_TEXT)
        draft = _draft(summary='Knowledge analysis could not be completed.', success=False)

        decision = await run_enhancement(
            'overview', classify_query('overview'), profile, draft, service, settings_with_key
        )

        assert decision.adopted is False
        assert decision.source == ProvenanceSource.HANDLER_ONLY
        assert decision.text == draft.summaryText
        assert decision.error.reason == EnhancementErrorReason.DEGRADED_DRAFT
        assert service.calls == []

    async def test_blank_text_is_empty_response(self, profile, settings_with_key, scripted_text_service):
        decision = await run_enhancement(
            'overview', classify_query('overview'), profile, _draft(),
            scripted_text_service(text='   '), settings_with_key,
        )

        assert decision.error.reason == EnhancementErrorReason.EMPTY_RESPONSE

    async def test_excellent_text_is_adopted(self, profile, settings_with_key, scripted_text_service):
        decision = await run_enhancement(
            'list dissatisfied residents', classify_query('list dissatisfied residents'), profile,
            _draft(residents=[RESIDENT], handler=Intent.NOTIFICATION),
            scripted_text_service(text=EXCELLENT_TEXT), settings_with_key,
        )

        assert decision.adopted is True
        assert decision.source == ProvenanceSource.HANDLER_MODEL
        assert decision.text == EXCELLENT_TEXT
        assert decision.model == 'test-model'
        assert decision.quality.level == QualityLevel.EXCELLENT

    async def test_poor_text_is_spliced(self, profile, settings_with_key, scripted_text_service):
        decision = await run_enhancement(
            'overview', classify_query('overview'), profile, _draft(),
            scripted_text_service(text=POOR_TEXT), settings_with_key,
        )

        assert decision.adopted is True
        assert decision.source == ProvenanceSource.HANDLER_FALLBACK
        assert POOR_TEXT in decision.text
        assert decision.text.startswith('Based on analysis of 40 municipal contacts')

    async def test_rejected_text_keeps_draft_and_quality(
        self, profile, settings_with_key, scripted_text_service
    ):
        draft = _draft(summary='D' * 120)

        decision = await run_enhancement(
            'overview', classify_query('overview'), profile, draft,
            scripted_text_service(text=GOOD_SHORT_TEXT), settings_with_key,
        )

        assert decision.adopted is False
        assert decision.source == ProvenanceSource.HANDLER_ONLY
        assert decision.text == draft.summaryText
        assert decision.quality.level == QualityLevel.GOOD
        assert decision.rejectionReason == 'no resident name and shorter than 1.5x the draft'
