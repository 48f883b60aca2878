"""
Knowledge Handler - statistical analysis answers built from the profile.

Picks an analysis sub-type from the query, runs the matching component
analyses over the StatisticalProfile, and aggregates their insights and
recommendations into a HandlerResult.

Sub-type selection (first keyword group that matches wins):
- comprehensive: summary, overview, analysis, report
- satisfaction: satisf
- issues: issue, problem, concern, complaint
- neighborhoods: neighborhood, bairro, area, district
- participation: participat, event, meeting, community
- engagement: engagement, response, rate, click
- otherwise: neighborhoods for comparison queries, else comprehensive

Component plan per sub-type:
- satisfaction: satisfaction (+ neighborhoods when a neighborhood is named)
- issues / participation / engagement: that component + neighborhoods
- neighborhoods: neighborhoods + satisfaction
- comprehensive: all five components

Aggregation keeps at most 3 insights per component (8 total) and at most
2 recommendations per component (6 total). When more than one component
ran, cross-analysis insights are appended.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from civicpulse.models import (
    AnalysisType,
    HandlerResult,
    Intent,
    IssueCategory,
    NeighborhoodPerformance,
    QueryAnalysis,
    QueryType,
    Record,
    StatisticalProfile,
)
from civicpulse.services.intent_classifier import contains_any

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

ANALYSIS_TYPE_RULES: Tuple[Tuple[AnalysisType, Tuple[str, ...]], ...] = (
    (AnalysisType.COMPREHENSIVE, ('summary', 'overview', 'analysis', 'report', 'resumo', 'relatorio')),
    (AnalysisType.SATISFACTION, ('satisf',)),
    (AnalysisType.ISSUES, ('issue', 'problem', 'concern', 'complaint', 'problema')),
    (AnalysisType.NEIGHBORHOODS, ('neighborhood', 'bairro', 'area', 'district')),
    (AnalysisType.PARTICIPATION, ('participat', 'event', 'meeting', 'community', 'comunidade')),
    (AnalysisType.ENGAGEMENT, ('engagement', 'response', 'rate', 'click', 'engajamento')),
)

NEIGHBORHOOD_MENTIONS: Tuple[str, ...] = ('neighborhood', 'bairro')

MAX_INSIGHTS_PER_COMPONENT = 3
MAX_INSIGHTS = 8
MAX_RECOMMENDATIONS_PER_COMPONENT = 2
MAX_RECOMMENDATIONS = 6

HIGH_RESPONSE_RATE = 80.0
LOW_RESPONSE_RATE = 60.0
CRITICAL_RESPONSE_RATE = 30.0

ISSUE_RECOMMENDATIONS: Dict[str, str] = {
    IssueCategory.SECURITY.value: 'Coordinate with public security for enhanced safety measures',
    IssueCategory.HEALTH.value: 'Review healthcare service capacity and accessibility',
    IssueCategory.TRANSPORT.value: 'Analyze public transportation routes and frequency',
    IssueCategory.EDUCATION.value: 'Assess educational facility capacity and quality',
    IssueCategory.EMPLOYMENT.value: 'Develop job creation and economic development programs',
    IssueCategory.INFRASTRUCTURE.value: 'Prioritize street, lighting and drainage maintenance in affected areas',
    IssueCategory.ENVIRONMENT.value: 'Review waste collection and green-area maintenance schedules',
    IssueCategory.OTHER.value: 'Conduct detailed analysis of custom issue responses',
    'Outros': 'Conduct detailed analysis of custom issue responses',
}


@dataclass
class ComponentAnalysis:
    """Insights and recommendations from one sub-analysis."""
    name: AnalysisType
    insights: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


# =============================================================================
# Sub-type Selection
# =============================================================================

def determine_analysis_type(analysis: QueryAnalysis) -> AnalysisType:
    for analysis_type, keywords in ANALYSIS_TYPE_RULES:
        if contains_any(analysis.normalizedQuery, keywords):
            return analysis_type
    if analysis.queryType == QueryType.COMPARISON:
        return AnalysisType.NEIGHBORHOODS
    return AnalysisType.COMPREHENSIVE


def plan_components(analysis_type: AnalysisType, normalized_query: str) -> List[AnalysisType]:
    """Components to run for a sub-type, in aggregation order."""
    if analysis_type == AnalysisType.SATISFACTION:
        components = [AnalysisType.SATISFACTION]
        if contains_any(normalized_query, NEIGHBORHOOD_MENTIONS):
            components.append(AnalysisType.NEIGHBORHOODS)
        return components
    if analysis_type == AnalysisType.NEIGHBORHOODS:
        return [AnalysisType.NEIGHBORHOODS, AnalysisType.SATISFACTION]
    if analysis_type in (AnalysisType.ISSUES, AnalysisType.PARTICIPATION, AnalysisType.ENGAGEMENT):
        return [analysis_type, AnalysisType.NEIGHBORHOODS]
    return [
        AnalysisType.SATISFACTION,
        AnalysisType.ISSUES,
        AnalysisType.NEIGHBORHOODS,
        AnalysisType.ENGAGEMENT,
        AnalysisType.PARTICIPATION,
    ]


# =============================================================================
# Component Analyses
# =============================================================================

def analyze_satisfaction_component(profile: StatisticalProfile) -> ComponentAnalysis:
    sat = profile.satisfaction
    result = ComponentAnalysis(AnalysisType.SATISFACTION)
    if not sat.has_data:
        result.insights.append('No survey responses available for analysis')
        result.recommendations.append('Increase survey participation to gather satisfaction data')
        return result

    n, avg = sat.sampleSize, sat.averageScore
    dissatisfied_percent = round(sat.dissatisfiedCount / n * 100)

    if n < 30:
        result.insights.append(
            f'Small sample size ({n} responses) - results should be interpreted cautiously'
        )
        result.recommendations.append('Increase survey participation to improve statistical reliability')
    elif n >= 100:
        result.insights.append(f'Strong sample size ({n} responses) provides reliable insights')

    if sat.confidenceInterval is not None:
        ci = sat.confidenceInterval
        result.insights.append(
            f'95% confidence interval for satisfaction: {ci.lower:.2f}-{ci.upper:.2f} '
            f'(±{ci.marginOfError:.2f}, {sat.reliability.value} reliability, n={n})'
        )

    if dissatisfied_percent > 40:
        result.insights.append(
            f'Critical concern: {dissatisfied_percent}% of residents express dissatisfaction'
        )
        result.insights.append('High dissatisfaction levels indicate systemic service delivery issues')
        result.recommendations.append('Priority action needed: address top issues identified in survey responses')
        result.recommendations.append('Schedule immediate community meetings with affected residents')
    elif avg < 3.0:
        result.insights.append(
            f'Below-neutral satisfaction: Average score {avg:.2f}/5 indicates room for improvement'
        )
        result.recommendations.append('Analyze specific issues driving neutral/negative responses')
        result.recommendations.append('Implement targeted satisfaction improvement initiatives')
    elif avg >= 4.0:
        result.insights.append(
            f'Good satisfaction levels: {avg:.2f}/5 average indicates positive citizen sentiment'
        )
        result.recommendations.append('Maintain current service levels and identify best practices to replicate')
    else:
        result.insights.append(
            f'Moderate satisfaction: {avg:.2f}/5 suggests balanced but improvable citizen perception'
        )
        result.recommendations.append('Focus on converting neutral responses to positive satisfaction')

    if sat.neutralCount > n * 0.3:
        result.insights.append(
            f'High neutral responses ({sat.neutralCount}) suggest indifferent or undecided residents'
        )
        result.recommendations.append('Engage neutral respondents to understand their specific needs')

    return result


def low_response_neighborhoods(profile: StatisticalProfile) -> List[NeighborhoodPerformance]:
    return [n for n in profile.geographic.neighborhoods if n.responseRate < LOW_RESPONSE_RATE]


def analyze_neighborhoods_component(profile: StatisticalProfile) -> ComponentAnalysis:
    geo = profile.geographic
    result = ComponentAnalysis(AnalysisType.NEIGHBORHOODS)
    if geo.totalNeighborhoods == 0:
        result.insights.append('No neighborhood data available')
        result.recommendations.append('Ensure neighborhood information is collected during registration')
        return result

    by_size = sorted(geo.neighborhoods, key=lambda n: -n.total)
    rates = [n.responseRate for n in by_size]
    avg_rate = sum(rates) / len(rates)
    high = [n for n in by_size if n.responseRate >= HIGH_RESPONSE_RATE]
    low = [n for n in by_size if n.responseRate < LOW_RESPONSE_RATE]

    result.insights.append(
        f'Geographic analysis covers {len(by_size)} neighborhoods with {avg_rate:.1f}% average response rate'
    )
    result.insights.append(
        f'Equity gap of {geo.equityGap:.1f} points between best and worst performing '
        f'neighborhoods ({geo.equityRisk.value} risk)'
    )

    if high:
        best = high[0]
        result.insights.append(
            f'Highest engagement: {best.neighborhood} ({best.total} contacts, {best.responseRate:.1f}% response rate)'
        )
        result.recommendations.append(
            'Study successful engagement strategies from: ' + ', '.join(n.neighborhood for n in high)
        )

    if low:
        avg_low = sum(n.responseRate for n in low) / len(low)
        result.insights.append(
            'Areas needing attention: '
            + ', '.join(f'{n.neighborhood} ({n.responseRate:.1f}%)' for n in low)
        )
        result.insights.append(f'Geographic disparity: {len(low)} neighborhoods with response below 60%')
        if avg_low < CRITICAL_RESPONSE_RATE:
            result.insights.append(
                'Critical equity gap: some neighborhoods virtually disconnected from municipal services'
            )
            result.recommendations.append(
                'Urgent intervention needed: consider physical presence and local community leaders'
            )
            result.recommendations.append('Investigate structural barriers (language, technology, trust)')
        else:
            result.recommendations.append(
                f'Targeted outreach strategy for {len(low)} low-engagement neighborhoods'
            )
    else:
        result.insights.append('Excellent equity: all neighborhoods show strong engagement levels')

    total = sum(n.total for n in by_size)
    largest = by_size[0]
    concentration = largest.total / total * 100 if total else 0.0
    if concentration > 40:
        result.insights.append(
            f'High concentration: {concentration:.1f}% of participation from {largest.neighborhood}'
        )
        result.recommendations.append('Balance outreach to ensure representative geographic coverage')

    return result


def analyze_issues_component(profile: StatisticalProfile) -> ComponentAnalysis:
    issues = profile.issues
    result = ComponentAnalysis(AnalysisType.ISSUES)
    if issues.total == 0:
        result.insights.append('No issue data available for analysis')
        result.recommendations.append('Increase survey participation to identify community concerns')
        return result

    top = issues.breakdown[0]
    top_three = sum(i.percentage for i in issues.breakdown[:3])
    result.insights.append(
        f'Top community concern: {top.issue} ({top.percentage:.1f}% of {issues.total} responses)'
    )
    result.insights.append(f'Top 3 issues represent {top_three:.1f}% of all concerns')

    if issues.criticalIssues:
        critical = issues.criticalIssues[0]
        result.insights.append(
            f'Highest severity: {critical.issue} (average severity {critical.averageSeverity:.2f}/5 '
            f'across {critical.count} cases)'
        )

    if top.percentage > 50:
        result.insights.append('Single dominant issue indicates clear municipal priority')
        result.recommendations.append(f'Focus immediate resources on addressing: {top.issue}')
    elif top_three > 70:
        result.insights.append('Concentrated concerns in few key areas - manageable scope for intervention')
        result.recommendations.append('Develop integrated approach addressing top 3 issues simultaneously')
    else:
        result.insights.append('Diverse range of concerns requires broad municipal response strategy')
        result.recommendations.append(
            'Consider comprehensive municipal improvement plan addressing multiple priorities'
        )

    for entry in issues.breakdown[:3]:
        specific = ISSUE_RECOMMENDATIONS.get(entry.issue)
        if specific:
            result.recommendations.append(specific)

    return result


def analyze_engagement_component(profile: StatisticalProfile) -> ComponentAnalysis:
    pop = profile.population
    result = ComponentAnalysis(AnalysisType.ENGAGEMENT)
    response, engagement, completion = pop.responseRate, pop.engagementRate, pop.completionRate

    if response >= 70:
        result.insights.append(
            f'Excellent response rate ({response:.1f}%) indicates highly effective communication strategy'
        )
    elif response >= 50:
        result.insights.append(f'Good response rate ({response:.1f}%) shows solid community engagement')
    elif response >= 30:
        result.insights.append(f'Moderate response rate ({response:.1f}%) suggests room for improvement')
        result.recommendations.append('Enhance outreach strategies to improve response rates')
    else:
        result.insights.append(
            f'Low response rate ({response:.1f}%) indicates significant engagement challenges'
        )
        result.recommendations.append('Comprehensive review of communication approach needed')

    result.insights.append(
        f'Engagement metrics: {pop.responded}/{pop.total} responses ({response:.1f}% response rate)'
    )
    result.insights.append(f'Communication effectiveness: {engagement:.1f}% click-through rate')

    if engagement < 60:
        result.recommendations.append('Improve message content and timing to increase click-through rates')
    elif engagement >= 80:
        result.insights.append('Excellent click-through rates demonstrate compelling messaging')

    if completion < 70 and pop.clicked > 0:
        result.insights.append(
            f'Survey abandonment concern: only {completion:.1f}% complete after clicking'
        )
        result.recommendations.append('Review survey design for usability and length optimization')

    return result


def analyze_participation_component(profile: StatisticalProfile) -> ComponentAnalysis:
    part = profile.participation
    result = ComponentAnalysis(AnalysisType.PARTICIPATION)
    if part.total == 0:
        result.insights.append('No participation data available')
        result.recommendations.append('Include participation questions in future surveys')
        return result

    rate = part.interestRate
    if rate >= 70:
        result.insights.append(f'Exceptional: {rate:.1f}% of residents demonstrate active civic interest')
        result.insights.append(
            'High civic engagement represents valuable social capital for municipal initiatives'
        )
        result.recommendations.append('Capitalize on strong interest with regular, structured community events')
        result.recommendations.append('Consider forming citizen advisory committees with engaged residents')
    elif rate >= 40:
        result.insights.append(f'Good potential: {rate:.1f}% show interest in community participation')
        result.insights.append('Solid foundation for building stronger community engagement')
        result.recommendations.append(
            f'Organize pilot community events with the {part.interested} interested residents'
        )
        result.recommendations.append('Use feedback from initial events to refine and expand programming')
    else:
        result.insights.append(f'Limited engagement: only {rate:.1f}% express participation interest')
        result.insights.append('Low interest may indicate barriers, skepticism, or communication gaps')
        result.recommendations.append('Research participation barriers: timing, location, format preferences')
        result.recommendations.append('Start with small, informal community gatherings to build trust')

    if part.interested > 0:
        result.insights.append(
            f'Community engagement: {part.interested} residents interested in participation '
            f'from {part.total} responses'
        )
        result.recommendations.append(
            f'Maintain database of {part.interested} engaged residents for targeted event invitations'
        )

    return result


COMPONENT_ANALYZERS: Dict[AnalysisType, Callable[[StatisticalProfile], ComponentAnalysis]] = {
    AnalysisType.SATISFACTION: analyze_satisfaction_component,
    AnalysisType.ISSUES: analyze_issues_component,
    AnalysisType.NEIGHBORHOODS: analyze_neighborhoods_component,
    AnalysisType.ENGAGEMENT: analyze_engagement_component,
    AnalysisType.PARTICIPATION: analyze_participation_component,
}


# =============================================================================
# Summary and Aggregation
# =============================================================================

def generate_summary(analysis_type: AnalysisType, profile: StatisticalProfile) -> str:
    """One-paragraph summary for the selected sub-type."""
    sat, pop = profile.satisfaction, profile.population

    if analysis_type == AnalysisType.SATISFACTION:
        if not sat.has_data:
            return 'No satisfaction data available for analysis.'
        summary = f'Satisfaction analysis from {sat.sampleSize} residents shows average score of {sat.averageScore:.2f}/5.'
        if sat.confidenceInterval is not None:
            ci = sat.confidenceInterval
            summary += (
                f' 95% confidence interval {ci.lower:.2f}-{ci.upper:.2f}'
                f' ({sat.reliability.value} reliability).'
            )
        return summary

    if analysis_type == AnalysisType.ISSUES:
        if profile.issues.total == 0:
            return 'No issue data available for analysis.'
        top = profile.issues.breakdown[0]
        return (
            f'Issue analysis from {profile.issues.total} responses identifies '
            f'{top.issue} as the primary concern.'
        )

    if analysis_type == AnalysisType.NEIGHBORHOODS:
        if profile.geographic.totalNeighborhoods == 0:
            return 'No neighborhood data available.'
        return (
            f'Geographic analysis covers {profile.geographic.totalNeighborhoods} neighborhoods '
            f'with an equity gap of {profile.geographic.equityGap:.1f} points.'
        )

    if analysis_type == AnalysisType.PARTICIPATION:
        part = profile.participation
        if part.total == 0:
            return 'No participation data available.'
        return (
            f'Community participation analysis: {part.interested} out of {part.total} '
            f'residents interested.'
        )

    if analysis_type == AnalysisType.ENGAGEMENT:
        return f'Engagement analysis: {pop.responded}/{pop.total} responses.'

    if pop.total == 0:
        return 'Municipal analysis completed. No resident records are available yet.'
    if not sat.has_data:
        return (
            f'Municipal analysis of {pop.total} residents: {pop.responseRate:.1f}% response rate; '
            f'insufficient data for satisfaction scoring.'
        )
    return (
        f'Municipal analysis of {pop.total} residents: {pop.responseRate:.1f}% response rate, '
        f'average satisfaction {sat.averageScore:.2f}/5 across '
        f'{profile.geographic.totalNeighborhoods} neighborhoods.'
    )


def aggregate(components: Sequence[ComponentAnalysis]) -> Tuple[List[str], List[str]]:
    insights: List[str] = []
    recommendations: List[str] = []
    for component in components:
        insights.extend(component.insights[:MAX_INSIGHTS_PER_COMPONENT])
        recommendations.extend(component.recommendations[:MAX_RECOMMENDATIONS_PER_COMPONENT])
    return insights[:MAX_INSIGHTS], recommendations[:MAX_RECOMMENDATIONS]


def cross_analysis(
    components: Sequence[ComponentAnalysis],
    profile: StatisticalProfile,
) -> Tuple[List[str], List[str]]:
    """Insights that need more than one component to be present."""
    insights: List[str] = []
    recommendations: List[str] = []
    names = {c.name for c in components}
    sat = profile.satisfaction

    if {AnalysisType.SATISFACTION, AnalysisType.NEIGHBORHOODS} <= names:
        if sat.has_data and sat.averageScore < 3.0 and low_response_neighborhoods(profile):
            insights.append('Low satisfaction correlates with poor response rates in some areas')
            recommendations.append('Address satisfaction issues to improve engagement')

    return insights, recommendations


# =============================================================================
# Handler Entry Point
# =============================================================================

def handle_knowledge(
    analysis: QueryAnalysis,
    profile: StatisticalProfile,
    records: Optional[Sequence[Record]] = None,
) -> HandlerResult:
    """
    Answer a knowledge query from the statistical profile.

    Args:
        analysis: Classified query.
        profile: Statistical profile of the current record set.
        records: Unused; accepted so every handler shares one signature.

    Returns:
        HandlerResult with the sub-type summary, aggregated insights and
        recommendations. No resident rows are returned.
    """
    analysis_type = determine_analysis_type(analysis)
    plan = plan_components(analysis_type, analysis.normalizedQuery)
    components = [COMPONENT_ANALYZERS[name](profile) for name in plan]

    insights, recommendations = aggregate(components)
    if len(components) > 1:
        cross_insights, cross_recommendations = cross_analysis(components, profile)
        insights.extend(cross_insights)
        recommendations.extend(cross_recommendations)

    logger.info(
        f"Knowledge analysis '{analysis_type.value}' ran {len(components)} component(s): "
        f"{len(insights)} insights, {len(recommendations)} recommendations"
    )
    return HandlerResult(
        handler=Intent.KNOWLEDGE,
        summaryText=generate_summary(analysis_type, profile),
        insights=insights,
        recommendations=recommendations,
        analysisType=analysis_type,
    )
