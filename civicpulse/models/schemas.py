"""
Pydantic schemas for the civicpulse query pipeline.

This module defines every data structure that crosses a stage boundary:

Key Model Groups:
- Record models: SurveyResponse, Record (read-only input from the DataStore)
- Statistical profile: PopulationStats, SatisfactionProfile, GeographicProfile,
  IssueProfile, ParticipationProfile, FunnelProfile, BenchmarkComparison,
  TemporalPatterns, StatisticalProfile
- Classification: QueryAnalysis
- Handler output: ResidentRow, SegmentReport, OperationsReport, HandlerResult
- Enhancement: QualityAssessment, EnhancementSuccess / EnhancementError
  (the EnhancementOutcome result union), EnhancementDecision
- Final response: Provenance, DraftResponse / EnhancedResponse / ErrorResponse
  (the FinalResponse discriminated union), QueryRequest

Field names use camelCase so that records read from the JSON store and
responses returned over HTTP share one wire format.

Dependencies:
    - pydantic v2 (BaseModel, Field, ConfigDict, discriminated unions)
    - civicpulse.models.enums
"""

from datetime import datetime
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from civicpulse.models.enums import (
    AnalysisType,
    DataNeed,
    EnhancementErrorReason,
    EquityRisk,
    Intent,
    MomentumTrend,
    PerformanceRating,
    Priority,
    ProvenanceSource,
    QualityCheck,
    QualityLevel,
    QueryType,
    ReliabilityTier,
    SatisfactionTrend,
    Segment,
)


# =============================================================================
# Record Models
# =============================================================================

class SurveyResponse(BaseModel):
    """
    One completed survey, attached to a Record at most once.

    Labels are kept as the raw strings written by the survey form. The
    profiler maps known labels through the enums in models/enums.py and
    treats unknown labels as neutral.
    """
    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        json_schema_extra={
            "example": {
                "issue": "Segurança",
                "otherIssue": None,
                "satisfaction": "Insatisfeito",
                "participate": "Sim",
                "answeredAt": "2025-03-02T14:10:00Z"
            }
        }
    )

    issue: Optional[str] = Field(
        default=None,
        description="Main issue category (IssueCategory value)"
    )
    otherIssue: Optional[str] = Field(
        default=None,
        description="Free-text detail when issue is 'Outro'"
    )
    satisfaction: Optional[str] = Field(
        default=None,
        description="Five-point satisfaction label (SatisfactionLevel value)"
    )
    participate: Optional[str] = Field(
        default=None,
        description="Participation intent: Sim, Não or Talvez"
    )
    answeredAt: Optional[datetime] = Field(
        default=None,
        description="When the survey was answered"
    )


class Record(BaseModel):
    """
    One citizen/respondent as stored by the DataStore.

    The pipeline never mutates records; delivery status and survey
    completion are written by the excluded transport layer.
    """
    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        coerce_numbers_to_str=True,
        json_schema_extra={
            "example": {
                "id": "c-001",
                "name": "Maria Souza",
                "age": 42,
                "neighborhood": "Centro",
                "whatsapp": "+5511999990001",
                "whatsappSentAt": "2025-03-01T12:00:00Z",
                "whatsappStatus": "delivered",
                "whatsappProvider": "meta",
                "clickedAt": "2025-03-01T12:30:00Z",
                "createdAt": "2025-02-28T09:00:00Z",
                "survey": {
                    "issue": "Segurança",
                    "satisfaction": "Insatisfeito",
                    "participate": "Sim"
                }
            }
        }
    )

    id: str = Field(..., description="Record identifier")
    name: str = Field(default="", description="Resident name")
    age: Optional[int] = Field(default=None, ge=0, description="Resident age")
    neighborhood: Optional[str] = Field(default=None, description="Neighborhood (bairro)")
    whatsapp: Optional[str] = Field(default=None, description="Contact handle")
    whatsappSentAt: Optional[datetime] = Field(
        default=None,
        description="When the survey invitation was sent"
    )
    whatsappStatus: Optional[str] = Field(
        default=None,
        description="Delivery status (DeliveryStatus value)"
    )
    whatsappProvider: Optional[str] = Field(
        default=None,
        description="Messaging provider that carried the invitation (e.g. meta, twilio)"
    )
    clickedAt: Optional[datetime] = Field(
        default=None,
        description="When the survey link was clicked"
    )
    createdAt: Optional[datetime] = Field(
        default=None,
        description="When the record was registered"
    )
    survey: Optional[SurveyResponse] = Field(
        default=None,
        description="Survey answers, absent until the resident responds"
    )

    @property
    def has_responded(self) -> bool:
        return self.survey is not None


# =============================================================================
# Statistical Profile
# =============================================================================

class PopulationStats(BaseModel):
    """Population counts and top-level rates (percent, one decimal)."""
    total: int = Field(..., ge=0, description="Registered records")
    sent: int = Field(..., ge=0, description="Records with an invitation sent")
    clicked: int = Field(..., ge=0, description="Records that clicked the survey link")
    responded: int = Field(..., ge=0, description="Records with a survey response")
    responseRate: float = Field(..., description="responded / total x 100")
    engagementRate: float = Field(..., description="clicked / sent x 100")
    completionRate: float = Field(..., description="responded / clicked x 100")


class ConfidenceInterval(BaseModel):
    """95% confidence interval around the mean satisfaction score."""
    lower: float
    upper: float
    marginOfError: float = Field(..., description="1.96 x sigma / sqrt(n)")


class SatisfactionProfile(BaseModel):
    """
    Satisfaction mean, spread and reliability.

    With zero answered satisfaction questions the profile is the explicit
    insufficient-data marker: averageScore 0, no interval, reliability
    INSUFFICIENT_DATA.
    """
    sampleSize: int = Field(..., ge=0)
    averageScore: float = Field(..., ge=0.0, le=5.0)
    standardDeviation: float = Field(default=0.0, ge=0.0)
    confidenceInterval: Optional[ConfidenceInterval] = None
    reliability: ReliabilityTier
    breakdown: Dict[str, int] = Field(
        default_factory=dict,
        description="Answer count per satisfaction label"
    )
    dissatisfiedCount: int = 0
    neutralCount: int = 0
    satisfiedCount: int = 0
    trend: SatisfactionTrend = SatisfactionTrend.INSUFFICIENT_DATA

    @property
    def has_data(self) -> bool:
        return self.reliability != ReliabilityTier.INSUFFICIENT_DATA


class NeighborhoodPerformance(BaseModel):
    """Per-neighborhood counts and 0-100 performance components."""
    neighborhood: str
    total: int
    sent: int
    clicked: int
    responded: int
    satisfactionCount: int
    averageSatisfaction: float = Field(..., description="Mean satisfaction weight, 0 when unanswered")
    responseRate: float = Field(..., description="min(responded / total x 100, 100)")
    engagementRate: float = Field(..., description="clicked / sent x 100, 0 when nothing sent")
    satisfactionScore: float = Field(..., description="averageSatisfaction / 5 x 100")
    performanceScore: float = Field(
        ...,
        description="0.4 x responseRate + 0.3 x engagementRate + 0.3 x satisfactionScore"
    )


class GeographicProfile(BaseModel):
    """Neighborhood performance ranking and equity gap."""
    neighborhoods: List[NeighborhoodPerformance] = Field(
        default_factory=list,
        description="Sorted by performanceScore, best first"
    )
    totalNeighborhoods: int = 0
    averagePerformance: float = 0.0
    equityGap: float = Field(default=0.0, ge=0.0, description="max - min performanceScore")
    equityRisk: EquityRisk = EquityRisk.LOW
    topPerformers: List[str] = Field(default_factory=list)
    needsAttention: List[str] = Field(default_factory=list)


class IssueCount(BaseModel):
    issue: str
    count: int
    percentage: float


class IssueSeverity(BaseModel):
    """Severity-weighted issue priority: averageSeverity x count."""
    issue: str
    count: int
    averageSeverity: float
    priorityScore: float


class IssueProfile(BaseModel):
    """Issue frequency and severity ranking over answered surveys."""
    total: int = 0
    breakdown: List[IssueCount] = Field(default_factory=list)
    severityRanking: List[IssueSeverity] = Field(default_factory=list)
    criticalIssues: List[IssueSeverity] = Field(default_factory=list)
    diversityIndex: float = Field(default=0.0, description="Shannon index (bits)")


class ParticipationProfile(BaseModel):
    total: int = 0
    interested: int = 0
    notInterested: int = 0
    undecided: int = 0
    interestRate: float = 0.0


class FunnelConversionRates(BaseModel):
    """
    Stage-to-stage conversion percentages as one-decimal strings.

    A zero-denominator stage yields "0".
    """
    contactRate: str
    engagementRate: str
    responseRate: str
    overallConversion: str


class FunnelDropoff(BaseModel):
    preContact: int
    postContact: int
    postEngagement: int


class FunnelProfile(BaseModel):
    """registered -> contacted -> engaged (clicked) -> responded."""
    registered: int
    contacted: int
    engaged: int
    responded: int
    conversionRates: FunnelConversionRates
    dropoff: FunnelDropoff


class BenchmarkResult(BaseModel):
    current: float
    benchmark: float
    rating: PerformanceRating
    gap: float


class BenchmarkComparison(BaseModel):
    satisfaction: BenchmarkResult
    responseRate: BenchmarkResult
    engagement: BenchmarkResult


class TemporalPatterns(BaseModel):
    last24h: int = 0
    last7d: int = 0
    last30d: int = 0
    momentum: MomentumTrend = MomentumTrend.INSUFFICIENT_DATA


class StatisticalProfile(BaseModel):
    """
    Derived statistics for one query, a pure function of the record set.

    Recomputed per query and never persisted.
    """
    population: PopulationStats
    satisfaction: SatisfactionProfile
    geographic: GeographicProfile
    issues: IssueProfile
    participation: ParticipationProfile
    funnel: FunnelProfile
    benchmarks: BenchmarkComparison
    temporal: TemporalPatterns
    keyInsights: List[str] = Field(default_factory=list)
    risks: List[str] = Field(default_factory=list)
    generatedAt: datetime

    @property
    def has_insufficient_data(self) -> bool:
        return not self.satisfaction.has_data


# =============================================================================
# Query Classification
# =============================================================================

class QueryAnalysis(BaseModel):
    """Classification of one query. Created fresh per query, never persisted."""
    model_config = ConfigDict(frozen=True)

    query: str = Field(..., description="Query text as received")
    normalizedQuery: str = Field(..., description="Lower-cased, diacritics stripped")
    primaryIntent: Intent
    queryType: QueryType
    dataNeeds: List[DataNeed] = Field(
        default_factory=list,
        description="Ordered, duplicate-free data tags"
    )


# =============================================================================
# Handler Output
# =============================================================================

class ResidentRow(BaseModel):
    """Contact-level row returned by the notification handler."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    neighborhood: str
    whatsapp: Optional[str] = None
    satisfaction: Optional[str] = None
    issue: Optional[str] = None
    priority: Priority
    participateInterest: Optional[str] = None
    responded: bool = True


class CountEntry(BaseModel):
    name: str
    count: int


class SegmentReport(BaseModel):
    """Segment totals, breakdowns and outreach message templates."""
    kind: Literal["segment"] = "segment"
    segment: Segment
    label: str
    header: str
    text: str
    total: int
    priorities: Dict[str, int] = Field(default_factory=dict)
    participationInterested: int = 0
    topNeighborhoods: List[CountEntry] = Field(default_factory=list)
    topIssues: List[CountEntry] = Field(default_factory=list)
    messageTemplates: List[str] = Field(default_factory=list)


class ProviderStats(BaseModel):
    provider: str
    total: int
    delivered: int
    failed: int
    successRate: float


class OperationsReport(BaseModel):
    """Delivery and response funnel computed directly from records."""
    kind: Literal["operations"] = "operations"
    total: int
    sent: int
    delivered: int
    failed: int
    clicked: int
    answered: int
    responseRate: float
    engagementRate: float
    deliveryRate: float
    failureRate: float
    byProvider: List[ProviderStats] = Field(default_factory=list)
    topNeighborhoods: List[CountEntry] = Field(default_factory=list)
    pendingFollowUps: int = 0


StructuredReport = Annotated[
    Union[SegmentReport, OperationsReport],
    Field(discriminator="kind")
]


class HandlerResult(BaseModel):
    """
    Draft answer produced by exactly one domain handler.

    success=False marks the degraded result built by the router when the
    handler raised; the pipeline still assembles a response from it.
    """
    handler: Intent
    success: bool = True
    summaryText: str
    insights: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    residents: List[ResidentRow] = Field(default_factory=list)
    report: Optional[StructuredReport] = None
    analysisType: Optional[AnalysisType] = None
    segment: Optional[Segment] = None
    error: Optional[str] = None


# =============================================================================
# Enhancement
# =============================================================================

class QualityAssessment(BaseModel):
    """Rubric score of one generated text. Immutable."""
    model_config = ConfigDict(frozen=True)

    score: int = Field(..., ge=0, le=100)
    level: QualityLevel
    satisfiedChecks: List[QualityCheck] = Field(default_factory=list)
    failedChecks: List[QualityCheck] = Field(default_factory=list)


class EnhancementSuccess(BaseModel):
    kind: Literal["success"] = "success"
    text: str
    model: str


class EnhancementError(BaseModel):
    kind: Literal["error"] = "error"
    reason: EnhancementErrorReason
    message: str = ""


EnhancementOutcome = Annotated[
    Union[EnhancementSuccess, EnhancementError],
    Field(discriminator="kind")
]


class EnhancementDecision(BaseModel):
    """
    What the gate decided for one query.

    `text` is always the text that must be shown: the handler draft unless
    an enhancement was adopted.
    """
    source: ProvenanceSource
    text: str
    adopted: bool = False
    quality: Optional[QualityAssessment] = None
    model: Optional[str] = None
    error: Optional[EnhancementError] = None
    rejectionReason: Optional[str] = None


# =============================================================================
# Final Response
# =============================================================================

class Provenance(BaseModel):
    """Which component produced the visible text, and why."""
    source: ProvenanceSource
    modelUsed: Optional[str] = None
    quality: Optional[QualityAssessment] = None
    enhancementError: Optional[EnhancementErrorReason] = None
    enhancementRejected: bool = False


class ResponseStatistics(BaseModel):
    totalContacts: int
    responseRate: float
    satisfactionScore: float


class _AnsweredResponse(BaseModel):
    """Fields shared by the two successful response variants."""
    query: str
    text: str
    intent: Intent
    queryType: QueryType
    success: bool = True
    confidence: float = Field(..., ge=0.3, le=0.95)
    insights: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    residents: List[ResidentRow] = Field(default_factory=list)
    report: Optional[StructuredReport] = None
    knowledgeBrief: Optional[str] = None
    statistics: ResponseStatistics
    provenance: Provenance
    processingTimeMs: float = 0.0
    timestamp: datetime


class DraftResponse(_AnsweredResponse):
    """The handler draft is the visible text."""
    kind: Literal["draft"] = "draft"


class EnhancedResponse(_AnsweredResponse):
    """An enhancement replaced the draft; the draft is kept for audit."""
    kind: Literal["enhanced"] = "enhanced"
    draftText: str


class ErrorResponse(BaseModel):
    """Pipeline aborted (data store unreachable). No statistics are reported."""
    kind: Literal["error"] = "error"
    query: str
    text: str
    error: str
    success: bool = False
    confidence: float = 0.3
    provenance: Provenance = Field(
        default_factory=lambda: Provenance(source=ProvenanceSource.HANDLER_ONLY)
    )
    timestamp: datetime


FinalResponse = Annotated[
    Union[DraftResponse, EnhancedResponse, ErrorResponse],
    Field(discriminator="kind")
]


class QueryRequest(BaseModel):
    """HTTP request body for POST /query."""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        json_schema_extra={"example": {"query": "list dissatisfied residents"}}
    )

    query: str = Field(..., min_length=1, max_length=2000, description="Free-text question")
