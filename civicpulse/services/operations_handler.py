"""
Operations Handler - outreach system status straight from the records.

Counts the delivery funnel (sent, delivered, failed, clicked, answered),
per-provider delivery success and the neighborhoods with the most answers.
It reads the records directly and does not depend on the statistical
profile beyond its reference timestamp.
"""

import logging
from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence

from civicpulse.models import (
    CountEntry,
    DeliveryStatus,
    HandlerResult,
    Intent,
    OperationsReport,
    ProviderStats,
    QueryAnalysis,
    Record,
    StatisticalProfile,
)
from civicpulse.services.statistical_profiler import UNKNOWN_NEIGHBORHOOD, percentage

logger = logging.getLogger(__name__)

TOP_NEIGHBORHOODS = 5
FOLLOW_UP_AFTER = timedelta(days=7)
LOW_RESPONSE_RATE = 30
LOW_ENGAGEMENT_RATE = 40


def _whole_percent(numerator: int, denominator: int) -> float:
    if denominator <= 0:
        return 0.0
    return float(round(numerator / denominator * 100))


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def provider_breakdown(records: Sequence[Record]) -> List[ProviderStats]:
    """Delivery totals per provider, in first-seen order."""
    counts: Dict[str, Dict[str, int]] = OrderedDict()
    for record in records:
        if not record.whatsappProvider:
            continue
        entry = counts.setdefault(record.whatsappProvider, {'total': 0, 'delivered': 0, 'failed': 0})
        entry['total'] += 1
        if record.whatsappStatus == DeliveryStatus.DELIVERED.value:
            entry['delivered'] += 1
        elif record.whatsappStatus == DeliveryStatus.FAILED.value:
            entry['failed'] += 1
    return [
        ProviderStats(
            provider=provider,
            total=c['total'],
            delivered=c['delivered'],
            failed=c['failed'],
            successRate=percentage(c['delivered'], c['total']),
        )
        for provider, c in counts.items()
    ]


def top_answering_neighborhoods(records: Sequence[Record]) -> List[CountEntry]:
    answered: Dict[str, int] = OrderedDict()
    for record in records:
        name = record.neighborhood or UNKNOWN_NEIGHBORHOOD
        answered.setdefault(name, 0)
        if record.has_responded:
            answered[name] += 1
    ranked = sorted(answered.items(), key=lambda item: -item[1])
    return [CountEntry(name=name, count=count) for name, count in ranked[:TOP_NEIGHBORHOODS]]


def count_pending_follow_ups(records: Sequence[Record], now: datetime) -> int:
    """Invitations sent more than a week ago that are still unanswered."""
    cutoff = _as_utc(now) - FOLLOW_UP_AFTER
    return sum(
        1 for r in records
        if r.survey is None and r.whatsappSentAt is not None and _as_utc(r.whatsappSentAt) < cutoff
    )


def build_operations_report(records: Sequence[Record], now: datetime) -> OperationsReport:
    total = len(records)
    sent = sum(1 for r in records if r.whatsappSentAt is not None)
    delivered = sum(1 for r in records if r.whatsappStatus == DeliveryStatus.DELIVERED.value)
    failed = sum(1 for r in records if r.whatsappStatus == DeliveryStatus.FAILED.value)
    clicked = sum(1 for r in records if r.clickedAt is not None)
    answered = sum(1 for r in records if r.has_responded)

    return OperationsReport(
        total=total,
        sent=sent,
        delivered=delivered,
        failed=failed,
        clicked=clicked,
        answered=answered,
        responseRate=_whole_percent(answered, total),
        engagementRate=_whole_percent(clicked, total),
        deliveryRate=percentage(delivered, sent),
        failureRate=percentage(failed, sent),
        byProvider=provider_breakdown(records),
        topNeighborhoods=top_answering_neighborhoods(records),
        pendingFollowUps=count_pending_follow_ups(records, now),
    )


def _summary(report: OperationsReport) -> str:
    providers = [
        f'• {p.provider}: {p.delivered}/{p.total} delivered, {p.failed} failed ({p.successRate:.1f}% success)'
        for p in report.byProvider
    ] or ['• none']
    return (
        'System Status\n\n'
        f'Contacts: {report.total}\n'
        f'Sent: {report.sent} • Delivered: {report.delivered} • Failed: {report.failed}\n'
        f'Answered: {report.answered} ({report.responseRate:.0f}%) • '
        f'Clicks: {report.clicked} ({report.engagementRate:.0f}%)\n'
        f'Pending follow-ups (sent over 7 days ago, unanswered): {report.pendingFollowUps}\n\n'
        'Providers:\n' + '\n'.join(providers)
    )


def _insights_and_recommendations(report: OperationsReport):
    insights: List[str] = []
    recommendations: List[str] = []

    if report.failed > 0:
        insights.append(
            f'{report.failed} messages failed ({report.failureRate:.1f}% of sent); '
            'check provider credentials and webhooks'
        )
        recommendations.append('Review provider configuration and webhook logs from the last 24 hours')
    if report.responseRate < LOW_RESPONSE_RATE and report.total > 0:
        insights.append('Low response rate; opportunity to optimize message content and timing')
        if report.sent > 0:
            recommendations.append('Test a new message text and send a follow-up within 48-72 hours')
    if report.engagementRate < LOW_ENGAGEMENT_RATE and report.sent > 0:
        insights.append('Low engagement after sending; consider a segmented resend')
        recommendations.append('Include local context and a clear call to action in messages')
    if report.pendingFollowUps > 0:
        insights.append(f'{report.pendingFollowUps} invitations are over a week old without an answer')
        recommendations.append(f'Schedule follow-up contact for {report.pendingFollowUps} pending residents')
    if report.topNeighborhoods:
        leaders = ', '.join(f'{e.name} ({e.count})' for e in report.topNeighborhoods[:3])
        insights.append(f'Some neighborhoods show stronger uptake: {leaders}')
        recommendations.append('Use the best-performing neighborhoods for pilots and word-of-mouth outreach')

    return insights, recommendations


def handle_operations(
    analysis: QueryAnalysis,
    profile: Optional[StatisticalProfile],
    records: Sequence[Record],
) -> HandlerResult:
    """Answer a system-status query from raw delivery and response counts."""
    now = profile.generatedAt if profile is not None else datetime.now(timezone.utc)
    report = build_operations_report(records, now)
    insights, recommendations = _insights_and_recommendations(report)

    logger.info(
        f"Operations status: {report.total} contacts, {report.sent} sent, "
        f"{report.failed} failed, {report.answered} answered"
    )
    return HandlerResult(
        handler=Intent.OPERATIONS,
        summaryText=_summary(report),
        insights=insights,
        recommendations=recommendations,
        report=report,
    )
