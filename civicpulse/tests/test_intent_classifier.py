"""
Unit tests for the intent classifier.

Covers the ordered rule table, satisfaction polarity, data needs and the
purity of classification over normalized text.
"""

import pytest

from civicpulse.models import DataNeed, Intent, QueryType
from civicpulse.services.intent_classifier import (
    classify_query,
    contains_word,
    normalize_text,
    satisfaction_polarity,
)


class TestNormalization:

    def test_lowercases_strips_diacritics_and_collapses_whitespace(self):
        assert normalize_text('  Mostre   os MORADORES   Insatisfeitos ') == 'mostre os moradores insatisfeitos'
        assert normalize_text('Saúde e Educação') == 'saude e educacao'

    def test_none_and_empty_normalize_to_empty(self):
        assert normalize_text(None) == ''
        assert normalize_text('') == ''

    def test_contains_word_requires_word_boundary(self):
        assert contains_word('please notify them', ['not']) is False
        assert contains_word('they are not interested', ['not']) is True
        assert contains_word('sem interesse algum', ['sem interesse']) is True


class TestIntentRules:
    """Tests for the first-match-wins rule order."""

    @pytest.mark.parametrize("query, intent, query_type", [
        ('list dissatisfied residents', Intent.NOTIFICATION, QueryType.LISTING),
        ('Mostre os moradores insatisfeitos', Intent.NOTIFICATION, QueryType.LISTING),
        ('show me the names of people interested in participating', Intent.NOTIFICATION, QueryType.LISTING),
        ("who clicked but didn't finish the survey?", Intent.NOTIFICATION, QueryType.ABANDONMENT),
        ('send a message to residents of Centro', Intent.NOTIFICATION, QueryType.ACTION),
        ('system status', Intent.OPERATIONS, QueryType.ANALYSIS),
        ('run a health check', Intent.OPERATIONS, QueryType.ANALYSIS),
        ('export the results', Intent.OPERATIONS, QueryType.ANALYSIS),
        ('compare neighborhoods', Intent.KNOWLEDGE, QueryType.COMPARISON),
        ('what are the main trends?', Intent.KNOWLEDGE, QueryType.INSIGHTS),
        ('how is overall satisfaction?', Intent.KNOWLEDGE, QueryType.ANALYSIS),
    ])
    def test_rule_table(self, query, intent, query_type):
        analysis = classify_query(query)

        assert analysis.primaryIntent == intent
        assert analysis.queryType == query_type

    def test_platform_health_is_operations(self):
        analysis = classify_query('is the platform health ok?')

        assert analysis.primaryIntent == Intent.OPERATIONS
        assert analysis.queryType == QueryType.ANALYSIS

    def test_saude_issue_questions_stay_knowledge(self):
        """Saúde normalizes to saude, which holds no operations token."""
        analysis = classify_query('Como está a saúde no bairro Centro?')

        assert analysis.primaryIntent == Intent.KNOWLEDGE
        assert DataNeed.GEOGRAPHIC in analysis.dataNeeds

    def test_listing_wins_over_send(self):
        """Rule 1 precedes rule 3 even when both match."""
        analysis = classify_query('list residents to contact')

        assert analysis.queryType == QueryType.LISTING

    def test_empty_query_is_knowledge_analysis(self):
        analysis = classify_query('')

        assert analysis.primaryIntent == Intent.KNOWLEDGE
        assert analysis.queryType == QueryType.ANALYSIS
        assert analysis.dataNeeds == []


class TestDataNeeds:

    def test_dissatisfied_wins_over_satisfied(self):
        """Any dissatisfaction token makes the query dissatisfied."""
        analysis = classify_query('show satisfied and dissatisfied residents')

        assert analysis.dataNeeds[0] == DataNeed.DISSATISFIED
        assert DataNeed.SATISFIED not in analysis.dataNeeds

    def test_portuguese_polarity(self):
        assert satisfaction_polarity(normalize_text('moradores insatisfeitos')) == DataNeed.DISSATISFIED
        assert satisfaction_polarity(normalize_text('moradores satisfeitos')) == DataNeed.SATISFIED
        assert satisfaction_polarity('no polarity here') is None

    def test_needs_are_ordered_and_unique(self):
        analysis = classify_query(
            'list dissatisfied residents interested in participating, by neighborhood and bairro'
        )

        assert analysis.dataNeeds == [DataNeed.DISSATISFIED, DataNeed.PARTICIPATION, DataNeed.GEOGRAPHIC]

    def test_abandonment_need(self):
        analysis = classify_query('residents who clicked but did not answer the survey')

        assert DataNeed.ABANDONMENT in analysis.dataNeeds


class TestPurity:

    def test_same_normalized_text_same_classification(self):
        first = classify_query('Liste os moradores INSATISFEITOS')
        second = classify_query('liste os   moradores insatisfeitos')

        assert first.normalizedQuery == second.normalizedQuery
        assert first.primaryIntent == second.primaryIntent
        assert first.queryType == second.queryType
        assert first.dataNeeds == second.dataNeeds

    def test_repeated_calls_are_equal(self):
        query = 'compare satisfaction across neighborhoods'
        assert classify_query(query) == classify_query(query)
