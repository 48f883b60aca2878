"""
Statistical Profiler - survey records to a StatisticalProfile.

Builds the statistical context every query is answered from. The profile is
a pure function of the record set (plus an injectable `now` for the temporal
window), recomputed per query and never cached.

Provides:
1. POPULATION - counts and response / engagement / completion rates
2. SATISFACTION - weighted 1-5 mean, population standard deviation,
   95% confidence interval (margin = 1.96 x sigma / sqrt(n)) and a
   sample-reliability tier (n >= 30 high, n >= 15 moderate, else low)
3. GEOGRAPHIC EQUITY - per-neighborhood performance
   0.4 x response + 0.3 x engagement + 0.3 x satisfaction (each 0-100)
   and equity gap = max - min performance
4. ISSUE SEVERITY - priority score = average severity x count, sorted
   descending with ties kept in first-occurrence order
5. FUNNEL - registered -> contacted -> engaged -> responded conversion
   rates, "0" for any zero-denominator stage
6. BENCHMARKS, TEMPORAL PATTERNS, KEY INSIGHTS and RISKS

Zero survey responses never raise: the satisfaction block becomes the
explicit insufficient-data marker (averageScore 0, reliability
INSUFFICIENT_DATA, no interval).

Dependencies:
    - numpy: mean, standard deviation and Shannon entropy
"""

import logging
from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence

import numpy as np

from civicpulse.models import (
    BenchmarkComparison,
    BenchmarkResult,
    ConfidenceInterval,
    EquityRisk,
    FunnelConversionRates,
    FunnelDropoff,
    FunnelProfile,
    GeographicProfile,
    IssueCount,
    IssueProfile,
    IssueSeverity,
    MomentumTrend,
    NeighborhoodPerformance,
    ParticipationIntent,
    ParticipationProfile,
    PerformanceRating,
    PopulationStats,
    Record,
    ReliabilityTier,
    SatisfactionLevel,
    SatisfactionProfile,
    SatisfactionTrend,
    StatisticalProfile,
    TemporalPatterns,
)
from civicpulse.services.intent_classifier import normalize_text

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

SATISFACTION_WEIGHTS: Dict[str, int] = {
    SatisfactionLevel.VERY_SATISFIED.value: 5,
    SatisfactionLevel.SATISFIED.value: 4,
    SatisfactionLevel.NEUTRAL.value: 3,
    SatisfactionLevel.DISSATISFIED.value: 2,
    SatisfactionLevel.VERY_DISSATISFIED.value: 1,
}
UNKNOWN_SATISFACTION_WEIGHT = 3

# Severity of an issue as felt by the respondent (5 = very dissatisfied)
SEVERITY_WEIGHTS: Dict[str, int] = {
    SatisfactionLevel.VERY_DISSATISFIED.value: 5,
    SatisfactionLevel.DISSATISFIED.value: 3,
    SatisfactionLevel.NEUTRAL.value: 1,
    SatisfactionLevel.SATISFIED.value: 0,
    SatisfactionLevel.VERY_SATISFIED.value: 0,
}
UNKNOWN_SEVERITY_WEIGHT = 1
CRITICAL_SEVERITY_THRESHOLD = 3.0

Z_95 = 1.96
HIGH_RELIABILITY_MIN_SAMPLE = 30
MODERATE_RELIABILITY_MIN_SAMPLE = 15

RESPONSE_WEIGHT = 0.4
ENGAGEMENT_WEIGHT = 0.3
SATISFACTION_WEIGHT = 0.3

UNKNOWN_NEIGHBORHOOD = "Unknown"
UNKNOWN_ISSUE = "Unknown"
UNKNOWN_LABEL = "Unknown"
RANKED_NEIGHBORHOODS = 3

MUNICIPAL_BENCHMARKS: Dict[str, float] = {
    'satisfactionScore': 3.5,
    'responseRate': 45.0,
    'engagementRate': 60.0,
}

DISSATISFIED_LABELS = (
    SatisfactionLevel.VERY_DISSATISFIED.value,
    SatisfactionLevel.DISSATISFIED.value,
)
SATISFIED_LABELS = (
    SatisfactionLevel.VERY_SATISFIED.value,
    SatisfactionLevel.SATISFIED.value,
)

YES_ANSWERS = {normalize_text(ParticipationIntent.YES.value), 'yes', 's', 'y'}
NO_ANSWERS = {normalize_text(ParticipationIntent.NO.value), 'no', 'n'}


# =============================================================================
# Helpers
# =============================================================================

def satisfaction_weight(label: Optional[str]) -> int:
    """Map a satisfaction label to 1-5; unknown or missing labels are neutral (3)."""
    if label is None:
        return UNKNOWN_SATISFACTION_WEIGHT
    return SATISFACTION_WEIGHTS.get(label, UNKNOWN_SATISFACTION_WEIGHT)


def severity_weight(label: Optional[str]) -> int:
    if label is None:
        return UNKNOWN_SEVERITY_WEIGHT
    return SEVERITY_WEIGHTS.get(label, UNKNOWN_SEVERITY_WEIGHT)


def normalize_participation(answer: Optional[str]) -> Optional[bool]:
    """
    Normalize a participation answer.

    Returns True for Sim/yes, False for Não/no, None for Talvez or missing.
    """
    if not answer:
        return None
    normalized = normalize_text(answer).strip()
    if normalized in YES_ANSWERS:
        return True
    if normalized in NO_ANSWERS:
        return False
    return None


def percentage(numerator: float, denominator: float) -> float:
    """Percentage rounded to one decimal; 0.0 when the denominator is zero."""
    if denominator <= 0:
        return 0.0
    return round(numerator / denominator * 100, 1)


def percentage_label(numerator: float, denominator: float) -> str:
    """Percentage as a one-decimal string; "0" when the denominator is zero."""
    if denominator <= 0:
        return "0"
    return f"{numerator / denominator * 100:.1f}"


def reliability_tier(sample_size: int) -> ReliabilityTier:
    if sample_size <= 0:
        return ReliabilityTier.INSUFFICIENT_DATA
    if sample_size >= HIGH_RELIABILITY_MIN_SAMPLE:
        return ReliabilityTier.HIGH
    if sample_size >= MODERATE_RELIABILITY_MIN_SAMPLE:
        return ReliabilityTier.MODERATE
    return ReliabilityTier.LOW


def calculate_confidence_interval(scores: Sequence[float]) -> ConfidenceInterval:
    """
    95% confidence interval of the mean using the population standard deviation.

    Args:
        scores: Non-empty sequence of numeric scores.

    Returns:
        ConfidenceInterval with margin 1.96 x sigma / sqrt(n).

    Raises:
        ValueError: If scores is empty.
    """
    if len(scores) == 0:
        raise ValueError("Confidence interval needs at least one score")
    values = np.asarray(scores, dtype=float)
    mean = float(np.mean(values))
    std = float(np.std(values))
    margin = Z_95 * std / float(np.sqrt(len(values)))
    return ConfidenceInterval(
        lower=round(mean - margin, 4),
        upper=round(mean + margin, 4),
        marginOfError=round(margin, 4),
    )


def satisfaction_trend(average_score: float, has_data: bool = True) -> SatisfactionTrend:
    if not has_data:
        return SatisfactionTrend.INSUFFICIENT_DATA
    if average_score >= 4.0:
        return SatisfactionTrend.POSITIVE
    if average_score >= 3.5:
        return SatisfactionTrend.MODERATE
    if average_score >= 3.0:
        return SatisfactionTrend.NEUTRAL
    return SatisfactionTrend.CONCERNING


def assess_performance(current: float, benchmark: float) -> PerformanceRating:
    ratio = current / benchmark if benchmark else 0.0
    if ratio >= 1.2:
        return PerformanceRating.EXCELLENT
    if ratio >= 1.0:
        return PerformanceRating.GOOD
    if ratio >= 0.8:
        return PerformanceRating.FAIR
    return PerformanceRating.POOR


def assess_equity_risk(equity_gap: float) -> EquityRisk:
    if equity_gap >= 40:
        return EquityRisk.CRITICAL
    if equity_gap >= 25:
        return EquityRisk.HIGH
    if equity_gap >= 15:
        return EquityRisk.MODERATE
    return EquityRisk.LOW


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# =============================================================================
# Profile Sections
# =============================================================================

def analyze_population(records: Sequence[Record]) -> PopulationStats:
    total = len(records)
    sent = sum(1 for r in records if r.whatsappSentAt is not None)
    clicked = sum(1 for r in records if r.clickedAt is not None)
    responded = sum(1 for r in records if r.has_responded)
    return PopulationStats(
        total=total,
        sent=sent,
        clicked=clicked,
        responded=responded,
        responseRate=percentage(responded, total),
        engagementRate=percentage(clicked, sent),
        completionRate=percentage(responded, clicked),
    )


def analyze_satisfaction(records: Sequence[Record]) -> SatisfactionProfile:
    """
    Satisfaction statistics over every answered survey.

    Returns the insufficient-data marker when no survey has been answered.
    """
    answered = [r.survey for r in records if r.survey is not None]
    if not answered:
        return SatisfactionProfile(
            sampleSize=0,
            averageScore=0.0,
            reliability=ReliabilityTier.INSUFFICIENT_DATA,
            trend=SatisfactionTrend.INSUFFICIENT_DATA,
        )

    breakdown: Dict[str, int] = OrderedDict()
    scores: List[int] = []
    for survey in answered:
        label = survey.satisfaction or UNKNOWN_LABEL
        breakdown[label] = breakdown.get(label, 0) + 1
        scores.append(satisfaction_weight(survey.satisfaction))

    values = np.asarray(scores, dtype=float)
    average = float(np.mean(values))
    interval = calculate_confidence_interval(scores)

    return SatisfactionProfile(
        sampleSize=len(scores),
        averageScore=round(average, 2),
        standardDeviation=round(float(np.std(values)), 4),
        confidenceInterval=interval,
        reliability=reliability_tier(len(scores)),
        breakdown=dict(breakdown),
        dissatisfiedCount=sum(breakdown.get(label, 0) for label in DISSATISFIED_LABELS),
        neutralCount=breakdown.get(SatisfactionLevel.NEUTRAL.value, 0),
        satisfiedCount=sum(breakdown.get(label, 0) for label in SATISFIED_LABELS),
        trend=satisfaction_trend(average),
    )


def neighborhood_performance_score(
    responded: int,
    total: int,
    clicked: int,
    sent: int,
    satisfaction_sum: float,
    satisfaction_count: int,
) -> float:
    """Weighted 0-100 performance of one neighborhood, one decimal."""
    response_score = min(responded / total * 100, 100.0) if total > 0 else 0.0
    engagement_score = min(clicked / sent * 100, 100.0) if sent > 0 else 0.0
    satisfaction_score = (
        (satisfaction_sum / satisfaction_count) / 5 * 100 if satisfaction_count > 0 else 0.0
    )
    return round(
        response_score * RESPONSE_WEIGHT
        + engagement_score * ENGAGEMENT_WEIGHT
        + satisfaction_score * SATISFACTION_WEIGHT,
        1,
    )


def analyze_geographic(records: Sequence[Record]) -> GeographicProfile:
    """
    Per-neighborhood performance and equity gap.

    Records without a neighborhood are grouped under "Unknown". Neighborhoods
    are ranked by performance, best first; equal scores keep first-seen order.
    """
    groups: Dict[str, Dict[str, float]] = OrderedDict()
    for record in records:
        name = (record.neighborhood or "").strip() or UNKNOWN_NEIGHBORHOOD
        counts = groups.setdefault(name, {
            'total': 0, 'responded': 0, 'clicked': 0, 'sent': 0,
            'satisfactionSum': 0.0, 'satisfactionCount': 0,
        })
        counts['total'] += 1
        if record.survey is not None:
            counts['responded'] += 1
            counts['satisfactionSum'] += satisfaction_weight(record.survey.satisfaction)
            counts['satisfactionCount'] += 1
        if record.clickedAt is not None:
            counts['clicked'] += 1
        if record.whatsappSentAt is not None:
            counts['sent'] += 1

    neighborhoods: List[NeighborhoodPerformance] = []
    for name, c in groups.items():
        total, sent = int(c['total']), int(c['sent'])
        clicked, responded = int(c['clicked']), int(c['responded'])
        sat_count = int(c['satisfactionCount'])
        avg_sat = c['satisfactionSum'] / sat_count if sat_count > 0 else 0.0
        neighborhoods.append(NeighborhoodPerformance(
            neighborhood=name,
            total=total,
            sent=sent,
            clicked=clicked,
            responded=responded,
            satisfactionCount=sat_count,
            averageSatisfaction=round(avg_sat, 2),
            responseRate=round(min(percentage(responded, total), 100.0), 1),
            engagementRate=round(min(percentage(clicked, sent), 100.0), 1),
            satisfactionScore=round(avg_sat / 5 * 100, 1),
            performanceScore=neighborhood_performance_score(
                responded, total, clicked, sent, c['satisfactionSum'], sat_count
            ),
        ))

    ranked = sorted(neighborhoods, key=lambda n: -n.performanceScore)
    if not ranked:
        return GeographicProfile()

    scores = [n.performanceScore for n in ranked]
    equity_gap = round(max(scores) - min(scores), 1)
    lowest_first = list(reversed(ranked))

    return GeographicProfile(
        neighborhoods=ranked,
        totalNeighborhoods=len(ranked),
        averagePerformance=round(float(np.mean(scores)), 1),
        equityGap=equity_gap,
        equityRisk=assess_equity_risk(equity_gap),
        topPerformers=[n.neighborhood for n in ranked[:RANKED_NEIGHBORHOODS]],
        needsAttention=[n.neighborhood for n in lowest_first[:RANKED_NEIGHBORHOODS]],
    )


def analyze_issues(records: Sequence[Record]) -> IssueProfile:
    """
    Issue frequency and severity ranking over answered surveys.

    priorityScore = averageSeverity x count. Sorting is stable, so issues
    with equal scores stay in the order they were first seen.
    """
    counts: Dict[str, int] = OrderedDict()
    severity_totals: Dict[str, int] = {}
    for record in records:
        if record.survey is None:
            continue
        issue = record.survey.issue or UNKNOWN_ISSUE
        counts[issue] = counts.get(issue, 0) + 1
        severity_totals[issue] = severity_totals.get(issue, 0) + severity_weight(record.survey.satisfaction)

    total = sum(counts.values())
    if total == 0:
        return IssueProfile()

    breakdown = [
        IssueCount(issue=issue, count=count, percentage=percentage(count, total))
        for issue, count in sorted(counts.items(), key=lambda item: -item[1])
    ]

    severities: List[IssueSeverity] = []
    for issue, count in counts.items():
        avg_severity = severity_totals[issue] / count
        severities.append(IssueSeverity(
            issue=issue,
            count=count,
            averageSeverity=round(avg_severity, 2),
            priorityScore=round(avg_severity * count, 2),
        ))
    ranking = sorted(severities, key=lambda s: -s.priorityScore)

    proportions = np.asarray(list(counts.values()), dtype=float) / total
    diversity = float(-np.sum(proportions * np.log2(proportions)))

    return IssueProfile(
        total=total,
        breakdown=breakdown,
        severityRanking=ranking,
        criticalIssues=[s for s in ranking if s.averageSeverity >= CRITICAL_SEVERITY_THRESHOLD],
        diversityIndex=round(diversity, 2),
    )


def analyze_participation(records: Sequence[Record]) -> ParticipationProfile:
    answers = [r.survey.participate for r in records if r.survey is not None and r.survey.participate]
    interested = sum(1 for a in answers if normalize_participation(a) is True)
    not_interested = sum(1 for a in answers if normalize_participation(a) is False)
    return ParticipationProfile(
        total=len(answers),
        interested=interested,
        notInterested=not_interested,
        undecided=len(answers) - interested - not_interested,
        interestRate=percentage(interested, len(answers)),
    )


def analyze_funnel(population: PopulationStats) -> FunnelProfile:
    total, sent = population.total, population.sent
    clicked, responded = population.clicked, population.responded
    return FunnelProfile(
        registered=total,
        contacted=sent,
        engaged=clicked,
        responded=responded,
        conversionRates=FunnelConversionRates(
            contactRate=percentage_label(sent, total),
            engagementRate=percentage_label(clicked, sent),
            responseRate=percentage_label(responded, clicked),
            overallConversion=percentage_label(responded, total),
        ),
        dropoff=FunnelDropoff(
            preContact=max(total - sent, 0),
            postContact=max(sent - clicked, 0),
            postEngagement=max(clicked - responded, 0),
        ),
    )


def compare_to_benchmarks(
    population: PopulationStats,
    satisfaction: SatisfactionProfile,
) -> BenchmarkComparison:
    def _compare(current: float, benchmark: float, digits: int) -> BenchmarkResult:
        return BenchmarkResult(
            current=current,
            benchmark=benchmark,
            rating=assess_performance(current, benchmark),
            gap=round(current - benchmark, digits),
        )

    return BenchmarkComparison(
        satisfaction=_compare(satisfaction.averageScore, MUNICIPAL_BENCHMARKS['satisfactionScore'], 2),
        responseRate=_compare(population.responseRate, MUNICIPAL_BENCHMARKS['responseRate'], 1),
        engagement=_compare(population.engagementRate, MUNICIPAL_BENCHMARKS['engagementRate'], 1),
    )


def analyze_temporal(records: Sequence[Record], now: datetime) -> TemporalPatterns:
    """Registration counts in trailing windows and week-over-week momentum."""
    now = _as_utc(now)
    ages: List[timedelta] = [
        now - _as_utc(r.createdAt) for r in records if r.createdAt is not None
    ]
    last24h = sum(1 for age in ages if age < timedelta(hours=24))
    last7d = sum(1 for age in ages if age < timedelta(days=7))
    last30d = sum(1 for age in ages if age < timedelta(days=30))

    this_week = last7d
    prior_week = sum(1 for age in ages if timedelta(days=7) <= age < timedelta(days=14))
    if prior_week == 0:
        momentum = MomentumTrend.INSUFFICIENT_DATA
    else:
        change = (this_week - prior_week) / prior_week * 100
        if change > 10:
            momentum = MomentumTrend.ACCELERATING
        elif change < -10:
            momentum = MomentumTrend.DECLINING
        else:
            momentum = MomentumTrend.STABLE

    return TemporalPatterns(last24h=last24h, last7d=last7d, last30d=last30d, momentum=momentum)


def generate_key_insights(
    population: PopulationStats,
    satisfaction: SatisfactionProfile,
    geographic: GeographicProfile,
    issues: IssueProfile,
) -> List[str]:
    insights: List[str] = []

    if not satisfaction.has_data:
        insights.append("Insufficient data: no survey responses available for satisfaction analysis")
    elif satisfaction.averageScore < 3.0:
        insights.append(
            f"Critical satisfaction crisis: {satisfaction.averageScore:.2f}/5 average score "
            f"indicates systemic service delivery failures"
        )
    elif satisfaction.averageScore >= 4.0:
        insights.append(
            f"Strong satisfaction performance: {satisfaction.averageScore:.2f}/5 score "
            f"demonstrates effective municipal services"
        )

    if population.sent > 0 and population.engagementRate < 50:
        insights.append(
            f"Low engagement rate ({population.engagementRate:.1f}%) suggests communication "
            f"barriers or citizen apathy"
        )

    if geographic.equityRisk in (EquityRisk.CRITICAL, EquityRisk.HIGH):
        insights.append(
            f"Significant service equity gap ({geographic.equityGap:.1f} points) between "
            f"neighborhoods requires intervention"
        )

    if issues.criticalIssues:
        top = issues.criticalIssues[0]
        insights.append(
            f"Priority intervention needed: {top.issue} shows high severity "
            f"({top.averageSeverity:.2f}/5) across {top.count} cases"
        )

    return insights


def assess_risks(satisfaction: SatisfactionProfile, geographic: GeographicProfile) -> List[str]:
    risks: List[str] = []
    if not satisfaction.has_data:
        risks.append("No survey responses: satisfaction conclusions cannot be drawn yet")
    elif satisfaction.reliability == ReliabilityTier.LOW:
        risks.append("Low sample size reduces statistical confidence in satisfaction measurements")
    if satisfaction.trend == SatisfactionTrend.CONCERNING:
        risks.append("Declining satisfaction may lead to reduced civic engagement and trust")
    if geographic.equityRisk == EquityRisk.CRITICAL:
        risks.append("Severe service disparities may create community tensions and inequitable outcomes")
    return risks


# =============================================================================
# Public Entry Point
# =============================================================================

def build_statistical_profile(
    records: Sequence[Record],
    now: Optional[datetime] = None,
) -> StatisticalProfile:
    """
    Build the full statistical profile for a record set.

    Args:
        records: Every record loaded from the DataStore (may be empty).
        now: Reference time for temporal windows; defaults to current UTC time.

    Returns:
        StatisticalProfile. Never raises for empty input.
    """
    now = now or datetime.now(timezone.utc)

    population = analyze_population(records)
    satisfaction = analyze_satisfaction(records)
    geographic = analyze_geographic(records)
    issues = analyze_issues(records)

    profile = StatisticalProfile(
        population=population,
        satisfaction=satisfaction,
        geographic=geographic,
        issues=issues,
        participation=analyze_participation(records),
        funnel=analyze_funnel(population),
        benchmarks=compare_to_benchmarks(population, satisfaction),
        temporal=analyze_temporal(records, now),
        keyInsights=generate_key_insights(population, satisfaction, geographic, issues),
        risks=assess_risks(satisfaction, geographic),
        generatedAt=now,
    )

    logger.info(
        f"Built statistical profile: {population.total} records, "
        f"{satisfaction.sampleSize} responses, reliability={satisfaction.reliability.value}, "
        f"{geographic.totalNeighborhoods} neighborhoods"
    )
    return profile
