"""
Enumeration definitions for the civicpulse query pipeline.

This module provides type-safe enumeration values for two families of data:

1. Survey record vocabulary - the exact labels stored in citizen records
   (Portuguese satisfaction levels, issue categories, participation answers,
   delivery status and messaging provider).
2. Pipeline tags - the tagged values that flow between pipeline stages
   (intent, query type, segment, reliability tier, quality level, provenance).

All enums inherit from both `str` and `Enum` to ensure JSON serialization compatibility
with Pydantic models, enabling automatic serialization/deserialization in API responses.
"""

from enum import Enum


# =============================================================================
# Survey Record Vocabulary
# =============================================================================

class SatisfactionLevel(str, Enum):
    """
    Five-point ordinal satisfaction scale as recorded by the survey form.

    Weights used by the statistical profiler (5 = best):
    - Muito satisfeito: 5
    - Satisfeito: 4
    - Neutro: 3
    - Insatisfeito: 2
    - Muito insatisfeito: 1
    """
    VERY_SATISFIED = "Muito satisfeito"
    SATISFIED = "Satisfeito"
    NEUTRAL = "Neutro"
    DISSATISFIED = "Insatisfeito"
    VERY_DISSATISFIED = "Muito insatisfeito"


class IssueCategory(str, Enum):
    """
    Main community issue selected by the respondent.

    OTHER is paired with a free-text `otherIssue` detail on the survey.
    """
    SECURITY = "Segurança"
    TRANSPORT = "Transporte"
    HEALTH = "Saúde"
    EDUCATION = "Educação"
    INFRASTRUCTURE = "Infraestrutura"
    ENVIRONMENT = "Meio Ambiente"
    EMPLOYMENT = "Emprego"
    OTHER = "Outro"


class ParticipationIntent(str, Enum):
    """
    Answer to "would you take part in community events?".

    Talvez (maybe) is treated as unknown intent.
    """
    YES = "Sim"
    NO = "Não"
    MAYBE = "Talvez"


class DeliveryStatus(str, Enum):
    """Outbound message delivery status reported by the messaging provider."""
    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"


# =============================================================================
# Query Classification
# =============================================================================

class Intent(str, Enum):
    """
    Top-level purpose of a free-text query.

    - knowledge: statistical analysis of the survey dataset
    - notification: targeting/listing residents for outreach
    - operations: system status of the outreach funnel
    """
    KNOWLEDGE = "knowledge"
    NOTIFICATION = "notification"
    OPERATIONS = "operations"


class QueryType(str, Enum):
    """
    Sub-type refining the intent.

    ABANDONMENT is produced for "clicked but did not complete" questions and
    selects the abandoned-survey segment in the notification handler.
    """
    LISTING = "listing"
    INSIGHTS = "insights"
    ANALYSIS = "analysis"
    COMPARISON = "comparison"
    ACTION = "action"
    ABANDONMENT = "abandonment"


class DataNeed(str, Enum):
    """Data tags a query asks for; used to shape prompts and handler output."""
    DISSATISFIED = "dissatisfied"
    SATISFIED = "satisfied"
    PARTICIPATION = "participation"
    GEOGRAPHIC = "geographic"
    ABANDONMENT = "abandonment"


class Segment(str, Enum):
    """
    Named subset of records selected by the notification handler.

    Detection order is declared in services/notification_handler.py;
    DISSATISFIED always wins over SATISFIED.
    """
    DISSATISFIED = "dissatisfied"
    SATISFIED = "satisfied"
    PARTICIPATION_INTERESTED = "participation_interested"
    PARTICIPATION_NOT_INTERESTED = "participation_not_interested"
    ABANDONED = "abandoned"
    ALL_RESPONDED = "all_responded"
    GENERAL = "general"


class AnalysisType(str, Enum):
    """Knowledge handler sub-analysis. COMPREHENSIVE is the union of all others."""
    SATISFACTION = "satisfaction"
    ISSUES = "issues"
    NEIGHBORHOODS = "neighborhoods"
    PARTICIPATION = "participation"
    ENGAGEMENT = "engagement"
    COMPREHENSIVE = "comprehensive"


class Priority(str, Enum):
    """
    Contact-level priority attached to each resident row.

    - HIGH / MEDIUM: very dissatisfied / dissatisfied
    - ADVOCATE / POSITIVE: very satisfied / satisfied
    - ENGAGED / NOT_WILLING: participation interest yes / no
    - FOLLOW_UP: clicked the survey link without answering
    - RESPONDED: plain listing of respondents
    """
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    ADVOCATE = "ADVOCATE"
    POSITIVE = "POSITIVE"
    ENGAGED = "ENGAGED"
    NOT_WILLING = "NOT_WILLING"
    FOLLOW_UP = "FOLLOW_UP"
    RESPONDED = "RESPONDED"


# =============================================================================
# Statistical Profile Tags
# =============================================================================

class ReliabilityTier(str, Enum):
    """
    Sample reliability of the satisfaction estimate.

    n >= 30 high, n >= 15 moderate, n >= 1 low, n == 0 insufficient_data.
    """
    HIGH = "high"
    MODERATE = "moderate"
    LOW = "low"
    INSUFFICIENT_DATA = "insufficient_data"


class SatisfactionTrend(str, Enum):
    """Qualitative reading of the average satisfaction score."""
    POSITIVE = "positive"
    MODERATE = "moderate"
    NEUTRAL = "neutral"
    CONCERNING = "concerning"
    INSUFFICIENT_DATA = "insufficient_data"


class EquityRisk(str, Enum):
    """Risk level implied by the neighborhood equity gap (in score points)."""
    CRITICAL = "critical"
    HIGH = "high"
    MODERATE = "moderate"
    LOW = "low"


class PerformanceRating(str, Enum):
    """Current value relative to a municipal benchmark (ratio thresholds 1.2/1.0/0.8)."""
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class MomentumTrend(str, Enum):
    """Week-over-week change in newly registered records."""
    ACCELERATING = "accelerating"
    STABLE = "stable"
    DECLINING = "declining"
    INSUFFICIENT_DATA = "insufficient_data"


# =============================================================================
# Enhancement and Provenance
# =============================================================================

class QualityLevel(str, Enum):
    """
    Level derived from the 100-point rubric score.

    >= 80 excellent, >= 60 good, >= 40 fair, else poor.
    """
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class QualityCheck(str, Enum):
    """Individual rubric criteria, with their point values in the gate."""
    SPECIFIC_DATA = "specific_data"
    ACTIONABLE = "actionable"
    STATISTICAL = "statistical"
    DOMAIN_TERMS = "domain_terms"
    LENGTH = "length"


class ProvenanceSource(str, Enum):
    """
    Component that actually produced the visible answer text.

    - handler-only: the data-grounded handler draft
    - handler+model: the external model's enhancement was adopted
    - handler+fallback: the model text was spliced with profile-built blocks
    """
    HANDLER_ONLY = "handler-only"
    HANDLER_MODEL = "handler+model"
    HANDLER_FALLBACK = "handler+fallback"


class EnhancementErrorReason(str, Enum):
    """Why no usable enhancement text was obtained."""
    NO_CREDENTIAL = "no_credential"
    OPERATIONS_INTENT = "operations_intent"
    TIMEOUT = "timeout"
    SERVICE_ERROR = "service_error"
    EMPTY_RESPONSE = "empty_response"
    DEGRADED_DRAFT = "degraded_draft"
