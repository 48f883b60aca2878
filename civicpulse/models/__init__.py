"""
Package initialization file for civicpulse models.

This module exports all Pydantic schemas and enumerations from schemas.py and enums.py,
making them importable from civicpulse.models directly.

Usage:
    from civicpulse.models import (
        Intent,
        Record,
        StatisticalProfile,
        HandlerResult,
        FinalResponse,
        # ... etc
    )
"""

# =============================================================================
# Enums - Import and re-export all enumerations from enums.py
# =============================================================================

from civicpulse.models.enums import (
    # Survey record vocabulary
    SatisfactionLevel,
    IssueCategory,
    ParticipationIntent,
    DeliveryStatus,
    # Query classification
    Intent,
    QueryType,
    DataNeed,
    Segment,
    AnalysisType,
    Priority,
    # Statistical profile tags
    ReliabilityTier,
    SatisfactionTrend,
    EquityRisk,
    PerformanceRating,
    MomentumTrend,
    # Enhancement and provenance
    QualityLevel,
    QualityCheck,
    ProvenanceSource,
    EnhancementErrorReason,
)

# =============================================================================
# Schemas - Import and re-export all Pydantic models from schemas.py
# =============================================================================

from civicpulse.models.schemas import (
    # Records
    SurveyResponse,
    Record,
    # Statistical profile
    PopulationStats,
    ConfidenceInterval,
    SatisfactionProfile,
    NeighborhoodPerformance,
    GeographicProfile,
    IssueCount,
    IssueSeverity,
    IssueProfile,
    ParticipationProfile,
    FunnelConversionRates,
    FunnelDropoff,
    FunnelProfile,
    BenchmarkResult,
    BenchmarkComparison,
    TemporalPatterns,
    StatisticalProfile,
    # Classification
    QueryAnalysis,
    # Handler output
    ResidentRow,
    CountEntry,
    SegmentReport,
    ProviderStats,
    OperationsReport,
    StructuredReport,
    HandlerResult,
    # Enhancement
    QualityAssessment,
    EnhancementSuccess,
    EnhancementError,
    EnhancementOutcome,
    EnhancementDecision,
    # Final response
    Provenance,
    ResponseStatistics,
    DraftResponse,
    EnhancedResponse,
    ErrorResponse,
    FinalResponse,
    QueryRequest,
)

__all__ = [
    # Enums
    'SatisfactionLevel',
    'IssueCategory',
    'ParticipationIntent',
    'DeliveryStatus',
    'Intent',
    'QueryType',
    'DataNeed',
    'Segment',
    'AnalysisType',
    'Priority',
    'ReliabilityTier',
    'SatisfactionTrend',
    'EquityRisk',
    'PerformanceRating',
    'MomentumTrend',
    'QualityLevel',
    'QualityCheck',
    'ProvenanceSource',
    'EnhancementErrorReason',
    # Schemas
    'SurveyResponse',
    'Record',
    'PopulationStats',
    'ConfidenceInterval',
    'SatisfactionProfile',
    'NeighborhoodPerformance',
    'GeographicProfile',
    'IssueCount',
    'IssueSeverity',
    'IssueProfile',
    'ParticipationProfile',
    'FunnelConversionRates',
    'FunnelDropoff',
    'FunnelProfile',
    'BenchmarkResult',
    'BenchmarkComparison',
    'TemporalPatterns',
    'StatisticalProfile',
    'QueryAnalysis',
    'ResidentRow',
    'CountEntry',
    'SegmentReport',
    'ProviderStats',
    'OperationsReport',
    'StructuredReport',
    'HandlerResult',
    'QualityAssessment',
    'EnhancementSuccess',
    'EnhancementError',
    'EnhancementOutcome',
    'EnhancementDecision',
    'Provenance',
    'ResponseStatistics',
    'DraftResponse',
    'EnhancedResponse',
    'ErrorResponse',
    'FinalResponse',
    'QueryRequest',
]
