"""
Notification Handler - resident targeting lists for outreach.

Selects a Segment from the normalized query through an ordered rule table,
filters the record set with that segment's predicate and returns EVERY
matching resident (no truncation) together with a SegmentReport: totals,
priority breakdown, top neighborhoods and issues, and WhatsApp message
templates for the segment.

Segment precedence (first match wins):
    1. DISSATISFIED                  dissatisfaction token
    2. SATISFIED                     satisfaction token
    3. PARTICIPATION_INTERESTED      participation token, no negation word
    4. PARTICIPATION_NOT_INTERESTED  "particip" + negation word
    5. ABANDONED                     abandonment query (clicked, no survey)
    6. ALL_RESPONDED                 listing verb
    7. GENERAL                       anything else (no rows)

Negation words are matched as whole words so that "notify" or "note" do not
count as "not".

Resident ordering follows record order in the DataStore, so repeated calls
over an unchanged record set return identical rows.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from civicpulse.models import (
    CountEntry,
    DataNeed,
    HandlerResult,
    Intent,
    Priority,
    QueryAnalysis,
    QueryType,
    Record,
    ResidentRow,
    SatisfactionLevel,
    Segment,
    SegmentReport,
    StatisticalProfile,
)
from civicpulse.services.intent_classifier import (
    DISSATISFACTION_TOKENS,
    LIST_VERBS,
    SATISFACTION_TOKENS,
    contains_any,
    contains_word,
)
from civicpulse.services.statistical_profiler import (
    DISSATISFIED_LABELS,
    SATISFIED_LABELS,
    UNKNOWN_NEIGHBORHOOD,
    normalize_participation,
    percentage,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Segment Detection
# =============================================================================

INTEREST_TOKENS: Tuple[str, ...] = ('particip', 'interested', 'interessad', 'event')
NEGATION_WORDS: Tuple[str, ...] = ('nao', 'not', 'no', 'sem interesse')

SegmentPredicate = Callable[[QueryAnalysis], bool]


def _mentions_dissatisfaction(analysis: QueryAnalysis) -> bool:
    return contains_any(analysis.normalizedQuery, DISSATISFACTION_TOKENS + ('insatisf',))


def _mentions_satisfaction(analysis: QueryAnalysis) -> bool:
    return contains_any(analysis.normalizedQuery, SATISFACTION_TOKENS)


def _has_negation(analysis: QueryAnalysis) -> bool:
    return contains_word(analysis.normalizedQuery, NEGATION_WORDS)


def _wants_interested(analysis: QueryAnalysis) -> bool:
    return contains_any(analysis.normalizedQuery, INTEREST_TOKENS) and not _has_negation(analysis)


def _wants_not_interested(analysis: QueryAnalysis) -> bool:
    return 'particip' in analysis.normalizedQuery and _has_negation(analysis)


def _wants_abandoned(analysis: QueryAnalysis) -> bool:
    return (
        analysis.queryType == QueryType.ABANDONMENT
        or DataNeed.ABANDONMENT in analysis.dataNeeds
    )


def _wants_listing(analysis: QueryAnalysis) -> bool:
    return contains_any(analysis.normalizedQuery, LIST_VERBS)


SEGMENT_RULES: Tuple[Tuple[Segment, SegmentPredicate], ...] = (
    (Segment.DISSATISFIED, _mentions_dissatisfaction),
    (Segment.SATISFIED, _mentions_satisfaction),
    (Segment.PARTICIPATION_INTERESTED, _wants_interested),
    (Segment.PARTICIPATION_NOT_INTERESTED, _wants_not_interested),
    (Segment.ABANDONED, _wants_abandoned),
    (Segment.ALL_RESPONDED, _wants_listing),
)


def detect_segment(analysis: QueryAnalysis) -> Segment:
    for segment, predicate in SEGMENT_RULES:
        if predicate(analysis):
            return segment
    return Segment.GENERAL


# =============================================================================
# Record Selection
# =============================================================================

def _row(record: Record, priority: Priority, responded: bool = True) -> ResidentRow:
    survey = record.survey
    return ResidentRow(
        id=record.id,
        name=record.name,
        neighborhood=record.neighborhood or UNKNOWN_NEIGHBORHOOD,
        whatsapp=record.whatsapp,
        satisfaction=survey.satisfaction if survey else None,
        issue=survey.issue if survey else None,
        priority=priority,
        participateInterest=survey.participate if survey else None,
        responded=responded,
    )


def _select_dissatisfied(records: Sequence[Record]) -> List[ResidentRow]:
    return [
        _row(r, Priority.HIGH if r.survey.satisfaction == SatisfactionLevel.VERY_DISSATISFIED.value
             else Priority.MEDIUM)
        for r in records
        if r.survey is not None and r.survey.satisfaction in DISSATISFIED_LABELS
    ]


def _select_satisfied(records: Sequence[Record]) -> List[ResidentRow]:
    return [
        _row(r, Priority.ADVOCATE if r.survey.satisfaction == SatisfactionLevel.VERY_SATISFIED.value
             else Priority.POSITIVE)
        for r in records
        if r.survey is not None and r.survey.satisfaction in SATISFIED_LABELS
    ]


def _select_interested(records: Sequence[Record]) -> List[ResidentRow]:
    return [
        _row(r, Priority.ENGAGED)
        for r in records
        if r.survey is not None and normalize_participation(r.survey.participate) is True
    ]


def _select_not_interested(records: Sequence[Record]) -> List[ResidentRow]:
    return [
        _row(r, Priority.NOT_WILLING)
        for r in records
        if r.survey is not None and normalize_participation(r.survey.participate) is False
    ]


def _select_abandoned(records: Sequence[Record]) -> List[ResidentRow]:
    return [
        _row(r, Priority.FOLLOW_UP, responded=False)
        for r in records
        if r.clickedAt is not None and r.survey is None
    ]


def _select_responded(records: Sequence[Record]) -> List[ResidentRow]:
    return [_row(r, Priority.RESPONDED) for r in records if r.has_responded]


SEGMENT_SELECTORS: Dict[Segment, Callable[[Sequence[Record]], List[ResidentRow]]] = {
    Segment.DISSATISFIED: _select_dissatisfied,
    Segment.SATISFIED: _select_satisfied,
    Segment.PARTICIPATION_INTERESTED: _select_interested,
    Segment.PARTICIPATION_NOT_INTERESTED: _select_not_interested,
    Segment.ABANDONED: _select_abandoned,
    Segment.ALL_RESPONDED: _select_responded,
    Segment.GENERAL: lambda records: [],
}


def select_residents(segment: Segment, records: Sequence[Record]) -> List[ResidentRow]:
    """Full, record-ordered list of residents in a segment."""
    return SEGMENT_SELECTORS[segment](records)


# =============================================================================
# Segment Report
# =============================================================================

SEGMENT_LABELS: Dict[Segment, str] = {
    Segment.DISSATISFIED: 'Insatisfeitos',
    Segment.SATISFIED: 'Satisfeitos',
    Segment.PARTICIPATION_INTERESTED: 'Interessados em participar',
    Segment.PARTICIPATION_NOT_INTERESTED: 'Sem interesse em participar',
    Segment.ABANDONED: 'Abandonos',
    Segment.ALL_RESPONDED: 'Contatos',
    Segment.GENERAL: 'Contatos',
}

DEFAULT_TEMPLATES: List[str] = [
    'Olá {NOME}, tudo bem? Gostaríamos de entender melhor suas necessidades no bairro '
    'sobre {ASSUNTO}. Podemos conversar?',
]

MESSAGE_TEMPLATES: Dict[Segment, List[str]] = {
    Segment.DISSATISFIED: [
        'Olá {NOME}, aqui é da Prefeitura. Vimos sua insatisfação com {ASSUNTO}. '
        'Podemos conversar e encaminhar sua demanda? Responda com um horário preferido.',
        'Bom dia {NOME}. Sua opinião é muito importante. Sobre {ASSUNTO}, registramos seu '
        'relato e queremos agir. Você toparia uma conversa rápida esta semana?',
    ],
    Segment.SATISFIED: [
        'Olá {NOME}! Obrigado pelo retorno positivo sobre {ASSUNTO}. Podemos usar seu '
        'depoimento (anônimo) para inspirar outras ações no bairro?',
        'Oi {NOME}, que bom saber que está satisfeito com {ASSUNTO}. Podemos convidar você '
        'para um grupo consultivo do bairro?',
    ],
}

TOP_ENTRIES = 5
NO_ISSUE_LABEL = '-'


def _top_counts(values: Sequence[str]) -> List[CountEntry]:
    # Counter.most_common keeps first-seen order among equal counts
    return [CountEntry(name=name, count=count) for name, count in Counter(values).most_common(TOP_ENTRIES)]


def build_segment_report(segment: Segment, residents: Sequence[ResidentRow]) -> SegmentReport:
    """Totals, breakdowns and message templates for one segment's residents."""
    priorities = Counter(r.priority.value for r in residents)
    participation_yes = sum(
        1 for r in residents if normalize_participation(r.participateInterest) is True
    )
    top_neighborhoods = _top_counts([r.neighborhood for r in residents])
    top_issues = _top_counts([r.issue or NO_ISSUE_LABEL for r in residents])

    label = SEGMENT_LABELS[segment]
    header = f'Relatório inteligente — {label}'

    lines = [f'Total: {len(residents)}']
    if segment == Segment.DISSATISFIED:
        lines.append(
            f'Prioridade: {priorities.get(Priority.HIGH.value, 0)} alta • '
            f'{priorities.get(Priority.MEDIUM.value, 0)} média'
        )
    elif segment == Segment.SATISFIED:
        lines.append(
            f'Potenciais defensores: {priorities.get(Priority.ADVOCATE.value, 0)} • '
            f'Positivos: {priorities.get(Priority.POSITIVE.value, 0)}'
        )
    lines.append(f'Interesse em participar: {participation_yes}')
    if top_neighborhoods:
        lines.append('Top bairros: ' + ', '.join(f'{e.name} ({e.count})' for e in top_neighborhoods))
    if top_issues:
        lines.append('Top assuntos: ' + ', '.join(f'{e.name} ({e.count})' for e in top_issues))

    return SegmentReport(
        segment=segment,
        label=label,
        header=header,
        text=f'{header}\n\n• ' + '\n• '.join(lines) + '\n',
        total=len(residents),
        priorities=dict(priorities),
        participationInterested=participation_yes,
        topNeighborhoods=top_neighborhoods,
        topIssues=top_issues,
        messageTemplates=list(MESSAGE_TEMPLATES.get(segment, DEFAULT_TEMPLATES)),
    )


# =============================================================================
# Segment Narratives
# =============================================================================

@dataclass
class SegmentNarrative:
    """Summary text, insights and recommendations for one segment."""
    summary: str
    insights: List[str]
    recommendations: List[str]


def _detailed_listing(residents: Sequence[ResidentRow], issue_caption: str, priority_caption: Optional[str]) -> str:
    lines: List[str] = []
    for index, resident in enumerate(residents, start=1):
        lines.append(f'{index}. {resident.name} ({resident.neighborhood})')
        lines.append(f'   • Satisfaction: {resident.satisfaction}')
        lines.append(f'   • {issue_caption}: {resident.issue}')
        if priority_caption:
            lines.append(f'   • {priority_caption}: {resident.priority.value}')
        lines.append(f'   • WhatsApp: {resident.whatsapp}')
        lines.append('')
    return '\n'.join(lines)


def _compact_listing(residents: Sequence[ResidentRow]) -> str:
    return '\n'.join(
        f'{index}. {r.name} ({r.neighborhood}) - {r.satisfaction or "no answer"}'
        for index, r in enumerate(residents, start=1)
    )


def _dissatisfied_narrative(residents: Sequence[ResidentRow], profile: StatisticalProfile) -> SegmentNarrative:
    high = sum(1 for r in residents if r.priority == Priority.HIGH)
    medium = sum(1 for r in residents if r.priority == Priority.MEDIUM)
    summary = (
        'Municipal Dissatisfaction Analysis\n\n'
        f'Critical Intervention Required: {len(residents)} residents express dissatisfaction\n\n'
        'Priority Breakdown:\n'
        f'• High Priority (Muito insatisfeitos): {high} residents\n'
        f'• Medium Priority (Insatisfeitos): {medium} residents\n'
    )
    if residents:
        summary += '\nDISSATISFIED RESIDENTS LIST:\n' + _detailed_listing(residents, 'Issue', 'Priority')
        insights = [
            f'{high} cases require immediate intervention within 24-48 hours',
            f'{medium} cases need scheduled follow-up within 1 week',
            'Direct contact recommended for all dissatisfied residents',
        ]
        recommendations = [
            'Contact high-priority cases immediately with personalized responses',
            'Schedule systematic follow-up for medium-priority cases',
            'Address underlying service delivery issues',
        ]
    else:
        insights = ['No dissatisfied residents identified in current data']
        recommendations = ['Monitor satisfaction levels in future surveys']
    return SegmentNarrative(summary, insights, recommendations)


def _satisfied_narrative(residents: Sequence[ResidentRow], profile: StatisticalProfile) -> SegmentNarrative:
    summary = (
        'Municipal Satisfaction Analysis\n\n'
        f'Positive Engagement Opportunity: {len(residents)} residents express satisfaction\n'
    )
    if residents:
        advocates = sum(1 for r in residents if r.priority == Priority.ADVOCATE)
        positive = sum(1 for r in residents if r.priority == Priority.POSITIVE)
        summary += (
            '\nSatisfaction Breakdown:\n'
            f'• Potential Advocates: {advocates} residents (muito satisfeitos)\n'
            f'• Positive Feedback: {positive} residents (satisfeitos)\n'
            '\nSATISFIED RESIDENTS LIST:\n'
            + _detailed_listing(residents, 'Satisfied with', 'Advocacy potential')
        )
    return SegmentNarrative(
        summary,
        [
            'Satisfied residents provide valuable advocacy opportunities',
            'Can serve as community ambassadors and testimonials',
        ],
        [
            'Engage satisfied residents for community testimonials',
            'Invite advocates to municipal improvement initiatives',
            'Use positive feedback to identify best practices',
        ],
    )


def _interested_narrative(residents: Sequence[ResidentRow], profile: StatisticalProfile) -> SegmentNarrative:
    summary = (
        'Municipal Participation Analysis\n\n'
        f'Community Engagement Opportunity: {len(residents)} residents interested in participation\n'
    )
    if not residents:
        return SegmentNarrative(
            summary,
            ['No residents have expressed participation interest'],
            ['Include participation questions in future outreach'],
        )
    summary += '\nPARTICIPATION-INTERESTED RESIDENTS:\n' + _detailed_listing(residents, 'Focus area', None)
    return SegmentNarrative(
        summary,
        [
            f'{len(residents)} residents ready for community engagement',
            'Strong foundation for municipal events and initiatives',
        ],
        [
            'Organize community events with interested residents',
            'Create citizen advisory groups from engaged residents',
            'Use participation interest for municipal planning input',
        ],
    )


def _not_interested_narrative(residents: Sequence[ResidentRow], profile: StatisticalProfile) -> SegmentNarrative:
    summary = (
        'Municipal Participation Analysis (Not Willing)\n\n'
        f'Current Hesitation: {len(residents)} residents not interested in participation at this time\n'
    )
    if not residents:
        return SegmentNarrative(
            summary,
            ['All surveyed residents are either interested or undecided about participation'],
            ['Continue fostering engagement; monitor sentiments over time'],
        )
    share = percentage(len(residents), profile.population.responded)
    summary += '\nPARTICIPATION NOT WILLING (RESIDENTS):\n' + _detailed_listing(residents, 'Issue focus', None)
    return SegmentNarrative(
        summary,
        [
            f'Participation hesitation: {share:.1f}% of respondents indicated no interest now',
            'Potential barriers: time availability, relevance, trust, or communication',
        ],
        [
            'Offer low-commitment, flexible participation formats',
            'Clarify value proposition and expected time investment',
            'Engage via neighborhood channels to build trust',
            'Re-invite after addressing top reported issues',
        ],
    )


def _abandoned_narrative(residents: Sequence[ResidentRow], profile: StatisticalProfile) -> SegmentNarrative:
    summary = (
        'Survey Abandonment Analysis\n\n'
        f'Follow-up Opportunity: {len(residents)} residents clicked the survey link but did not complete it\n'
    )
    if not residents:
        return SegmentNarrative(
            summary,
            ['No survey abandonment detected: every resident who clicked completed the survey'],
            ['Keep the current survey format and monitor completion after each outreach wave'],
        )
    rate = percentage(len(residents), profile.population.total)
    summary += '\nABANDONED SURVEYS:\n' + '\n'.join(
        f'{index}. {r.name} ({r.neighborhood}) - WhatsApp: {r.whatsapp}'
        for index, r in enumerate(residents, start=1)
    ) + '\n'
    insights = [f"Survey abandonment: {len(residents)} residents clicked but didn't complete ({rate:.1f}%)"]
    if len(residents) > profile.population.total * 0.3:
        insights.append('High abandonment rate suggests usability or survey length issues')
    recommendations = [
        f'Priority follow-up: {len(residents)} residents who showed initial interest',
        "Consider phone outreach for residents who clicked but didn't complete",
    ]
    if len(residents) > 10:
        recommendations.append('Review survey design for potential usability improvements')
    return SegmentNarrative(summary, insights, recommendations)


def _responded_narrative(residents: Sequence[ResidentRow], profile: StatisticalProfile) -> SegmentNarrative:
    summary = (
        'Municipal Contact Analysis\n\n'
        f'Available for outreach: {len(residents)} residents with survey responses\n'
    )
    if residents:
        summary += '\nRESIDENT CONTACTS:\n' + _compact_listing(residents) + '\n'
    return SegmentNarrative(
        summary,
        [f'{len(residents)} residents available for targeted communication'],
        ['Segment residents by satisfaction level for targeted messaging'],
    )


def _general_narrative(residents: Sequence[ResidentRow], profile: StatisticalProfile) -> SegmentNarrative:
    return SegmentNarrative(
        'Municipal notification targeting ready. Specify target criteria (dissatisfied, '
        'satisfied, interested) for detailed resident lists with names and contact information.',
        ['Resident targeting requires specific satisfaction or participation criteria'],
        ['Use specific queries like "list dissatisfied residents" or "list satisfied residents"'],
    )


SEGMENT_NARRATIVES: Dict[Segment, Callable[[Sequence[ResidentRow], StatisticalProfile], SegmentNarrative]] = {
    Segment.DISSATISFIED: _dissatisfied_narrative,
    Segment.SATISFIED: _satisfied_narrative,
    Segment.PARTICIPATION_INTERESTED: _interested_narrative,
    Segment.PARTICIPATION_NOT_INTERESTED: _not_interested_narrative,
    Segment.ABANDONED: _abandoned_narrative,
    Segment.ALL_RESPONDED: _responded_narrative,
    Segment.GENERAL: _general_narrative,
}


# =============================================================================
# Handler Entry Point
# =============================================================================

def handle_notification(
    analysis: QueryAnalysis,
    profile: StatisticalProfile,
    records: Sequence[Record],
) -> HandlerResult:
    """
    Build a resident targeting list for a notification query.

    Args:
        analysis: Classified query.
        profile: Statistical profile, used for segment-level rates.
        records: Full record set in DataStore order.

    Returns:
        HandlerResult carrying the full resident list and a SegmentReport.
    """
    segment = detect_segment(analysis)
    residents = select_residents(segment, records)
    narrative = SEGMENT_NARRATIVES[segment](residents, profile)

    summary = narrative.summary
    report = None
    if segment != Segment.GENERAL:
        report = build_segment_report(segment, residents)
        summary = f'{summary.rstrip()}\n\n{report.text}'

    logger.info(f"Notification segment '{segment.value}' selected {len(residents)} residents")
    return HandlerResult(
        handler=Intent.NOTIFICATION,
        summaryText=summary,
        insights=narrative.insights,
        recommendations=narrative.recommendations,
        residents=residents,
        report=report,
        segment=segment,
    )
