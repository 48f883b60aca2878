"""
Intent Classifier - free-text query to QueryAnalysis.

Classification is plain substring matching over a normalized query
(lower-cased, diacritics stripped, whitespace collapsed) against an ordered
rule table. The first matching rule wins:

    1. listing verb + (resident noun | satisfaction token | participation token)
           -> notification / listing
    2. clicked|abandoned + didn't|not|survey
           -> notification / abandonment
    3. send / message / notify / contact
           -> notification / action
    4. system / health / status / export
           -> operations / analysis
    *  no match
           -> knowledge / comparison | insights | analysis

Satisfaction polarity is resolved by an ordered table as well: any
dissatisfaction token makes the query "dissatisfied" even when a
satisfaction token is also present ("show satisfied and dissatisfied
residents" is a dissatisfied query).

The classifier is a pure function and never raises; an empty or
unrecognised query is a knowledge/analysis query.
"""

import logging
import re
import unicodedata
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from civicpulse.models import DataNeed, Intent, QueryAnalysis, QueryType

logger = logging.getLogger(__name__)


# =============================================================================
# Token Vocabulary (normalized: lower-case, no diacritics)
# =============================================================================

LIST_VERBS: Tuple[str, ...] = (
    'list', 'show', 'names', 'display',
    'listar', 'lista', 'mostre', 'mostrar', 'exibir', 'exiba', 'traga',
    'me mostre', 'me traga',
)

RESIDENT_NOUNS: Tuple[str, ...] = (
    'resident', 'citizen', 'people',
    'residente', 'morador', 'moradores', 'cidadao', 'cidadaos', 'cidadas', 'pessoas',
)

DISSATISFACTION_TOKENS: Tuple[str, ...] = (
    'dissatisfied', 'unsatisfied', 'insatisfied', 'unhappy',
    'insatisfeito', 'insatisfeitos', 'insatisfacao',
)

SATISFACTION_TOKENS: Tuple[str, ...] = (
    'satisfied', 'happy', 'satisfeito', 'satisfeitos',
)

PARTICIPATION_TOKENS: Tuple[str, ...] = (
    'interested', 'interessado', 'interessados', 'interessad',
    'participated', 'participate', 'participar', 'participantes', 'participacao', 'participaria',
)

ABANDONMENT_ACTION_TOKENS: Tuple[str, ...] = (
    'clicked', 'abandon', 'clicou', 'clicaram',
)

ABANDONMENT_QUALIFIER_TOKENS: Tuple[str, ...] = (
    'didn', 'not', 'survey', 'nao', 'pesquisa', 'incomplet',
)

SEND_TOKENS: Tuple[str, ...] = (
    'send', 'message', 'notify', 'contact',
    'enviar', 'envie', 'mensagem', 'notificar', 'contatar',
)

OPERATIONS_TOKENS: Tuple[str, ...] = (
    'system', 'health', 'status', 'export',
    'sistema', 'exportar',
)

GEOGRAPHIC_TOKENS: Tuple[str, ...] = (
    'neighborhood', 'neighbourhood', 'equity', 'district', 'bairro', 'equidade',
)

COMPARISON_TOKENS: Tuple[str, ...] = (
    'compare', 'comparison', 'versus', ' vs ', 'comparar', 'comparacao',
)

INSIGHT_TOKENS: Tuple[str, ...] = (
    'insight', 'trend', 'tendencia',
)

_WHITESPACE = re.compile(r'\s+')


# =============================================================================
# Normalization and Matching
# =============================================================================

def normalize_text(text: Optional[str]) -> str:
    """Lower-case, strip diacritics (NFD + drop combining marks), collapse whitespace."""
    if not text:
        return ''
    decomposed = unicodedata.normalize('NFD', str(text))
    stripped = ''.join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _WHITESPACE.sub(' ', stripped.lower()).strip()


def contains_any(text: str, tokens: Iterable[str]) -> bool:
    """Substring match of any token in already-normalized text."""
    return any(token in text for token in tokens)


def contains_word(text: str, words: Iterable[str]) -> bool:
    """Whole-word match of any word (or phrase) in already-normalized text."""
    return any(re.search(rf'\b{re.escape(word)}\b', text) for word in words)


# =============================================================================
# Rule Tables
# =============================================================================

@dataclass(frozen=True)
class IntentRule:
    """
    One row of the ordered intent table.

    `required` is a conjunction of token groups; a group is satisfied when
    any of its tokens occurs in the normalized query.
    """
    name: str
    intent: Intent
    query_type: QueryType
    required: Tuple[Tuple[str, ...], ...]

    def matches(self, normalized_query: str) -> bool:
        return all(contains_any(normalized_query, group) for group in self.required)


INTENT_RULES: Tuple[IntentRule, ...] = (
    IntentRule(
        name='listing',
        intent=Intent.NOTIFICATION,
        query_type=QueryType.LISTING,
        required=(
            LIST_VERBS,
            RESIDENT_NOUNS + DISSATISFACTION_TOKENS + SATISFACTION_TOKENS + PARTICIPATION_TOKENS,
        ),
    ),
    IntentRule(
        name='abandonment',
        intent=Intent.NOTIFICATION,
        query_type=QueryType.ABANDONMENT,
        required=(ABANDONMENT_ACTION_TOKENS, ABANDONMENT_QUALIFIER_TOKENS),
    ),
    IntentRule(
        name='send',
        intent=Intent.NOTIFICATION,
        query_type=QueryType.ACTION,
        required=(SEND_TOKENS,),
    ),
    IntentRule(
        name='operations',
        intent=Intent.OPERATIONS,
        query_type=QueryType.ANALYSIS,
        required=(OPERATIONS_TOKENS,),
    ),
)

# Ordered: dissatisfaction is checked first and therefore wins
SATISFACTION_POLARITY_RULES: Tuple[Tuple[DataNeed, Tuple[str, ...]], ...] = (
    (DataNeed.DISSATISFIED, DISSATISFACTION_TOKENS),
    (DataNeed.SATISFIED, SATISFACTION_TOKENS),
)


def satisfaction_polarity(normalized_query: str) -> Optional[DataNeed]:
    """Return DISSATISFIED, SATISFIED or None for a normalized query."""
    for need, tokens in SATISFACTION_POLARITY_RULES:
        if contains_any(normalized_query, tokens):
            return need
    return None


def _knowledge_query_type(normalized_query: str) -> QueryType:
    if contains_any(normalized_query, COMPARISON_TOKENS):
        return QueryType.COMPARISON
    if contains_any(normalized_query, INSIGHT_TOKENS):
        return QueryType.INSIGHTS
    return QueryType.ANALYSIS


def detect_data_needs(normalized_query: str) -> List[DataNeed]:
    """Ordered, duplicate-free data tags for a normalized query."""
    needs: List[DataNeed] = []
    polarity = satisfaction_polarity(normalized_query)
    if polarity is not None:
        needs.append(polarity)
    if contains_any(normalized_query, PARTICIPATION_TOKENS) or 'particip' in normalized_query:
        needs.append(DataNeed.PARTICIPATION)
    if contains_any(normalized_query, GEOGRAPHIC_TOKENS):
        needs.append(DataNeed.GEOGRAPHIC)
    if (
        contains_any(normalized_query, ABANDONMENT_ACTION_TOKENS)
        and contains_any(normalized_query, ABANDONMENT_QUALIFIER_TOKENS)
    ):
        needs.append(DataNeed.ABANDONMENT)
    return needs


# =============================================================================
# Public Entry Point
# =============================================================================

def classify_query(query: Optional[str]) -> QueryAnalysis:
    """
    Classify a free-text query.

    Args:
        query: Raw query text (any language mix, any casing).

    Returns:
        QueryAnalysis with primary intent, query type and data needs.
        Identical normalized text always yields an identical result.
    """
    raw = query or ''
    normalized = normalize_text(raw)

    intent, query_type, rule_name = Intent.KNOWLEDGE, _knowledge_query_type(normalized), 'default'
    for rule in INTENT_RULES:
        if rule.matches(normalized):
            intent, query_type, rule_name = rule.intent, rule.query_type, rule.name
            break

    analysis = QueryAnalysis(
        query=raw,
        normalizedQuery=normalized,
        primaryIntent=intent,
        queryType=query_type,
        dataNeeds=detect_data_needs(normalized),
    )
    logger.info(
        f"Classified query as {intent.value}/{query_type.value} "
        f"(rule={rule_name}, needs={[n.value for n in analysis.dataNeeds]})"
    )
    return analysis
