"""
civicpulse Services Module

This module contains the query pipeline stages. Every stage except the
orchestrator and the text-generation client is a pure function of its inputs.

Services:
- intent_classifier: ordered token rules -> QueryAnalysis
- statistical_profiler: records -> StatisticalProfile
- knowledge_handler / notification_handler / operations_handler: domain drafts
- handler_router: intent dispatch with degraded-result fallback
- text_generation: external model client (OpenAI-compatible)
- enhancement_gate: prompt, rubric, splice and adoption rule
- response_assembler: confidence, provenance and the FinalResponse union
- orchestrator: QueryOrchestrator.answer(query)
"""

# =============================================================================
# Classification and Profiling
# =============================================================================

from civicpulse.services.intent_classifier import (
    INTENT_RULES,
    IntentRule,
    classify_query,
    normalize_text,
    satisfaction_polarity,
)
from civicpulse.services.statistical_profiler import (
    build_statistical_profile,
    calculate_confidence_interval,
)

# =============================================================================
# Domain Handlers
# =============================================================================

from civicpulse.services.knowledge_handler import determine_analysis_type, handle_knowledge
from civicpulse.services.notification_handler import detect_segment, handle_notification
from civicpulse.services.operations_handler import handle_operations
from civicpulse.services.handler_router import route_query

# =============================================================================
# Enhancement and Assembly
# =============================================================================

from civicpulse.services.text_generation import (
    GroqTextGenerationService,
    TextGenerationError,
    TextGenerationService,
    TextGenerationServiceError,
    TextGenerationTimeoutError,
)
from civicpulse.services.enhancement_gate import assess_quality, run_enhancement, should_adopt
from civicpulse.services.response_assembler import (
    assemble_response,
    build_error_response,
    calculate_confidence,
)
from civicpulse.services.orchestrator import QueryOrchestrator

__all__ = [
    # Classification and profiling
    'INTENT_RULES',
    'IntentRule',
    'classify_query',
    'normalize_text',
    'satisfaction_polarity',
    'build_statistical_profile',
    'calculate_confidence_interval',
    # Handlers
    'determine_analysis_type',
    'handle_knowledge',
    'detect_segment',
    'handle_notification',
    'handle_operations',
    'route_query',
    # Enhancement and assembly
    'GroqTextGenerationService',
    'TextGenerationError',
    'TextGenerationService',
    'TextGenerationServiceError',
    'TextGenerationTimeoutError',
    'assess_quality',
    'run_enhancement',
    'should_adopt',
    'assemble_response',
    'build_error_response',
    'calculate_confidence',
    'QueryOrchestrator',
]
