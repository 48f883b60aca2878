"""
Pytest Configuration and Shared Fixtures for civicpulse Tests.

This module provides fixtures and configuration for all tests, supporting:
- Async test execution with pytest-asyncio
- A record factory matching the JSON store wire format
- Scenario record sets (40 records with 25 dissatisfied, empty, multi-neighborhood)
- In-memory DataStore and scripted TextGenerationService doubles
- Settings with and without a text-generation credential

Dependencies:
- pytest
- pytest-asyncio
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from civicpulse.core.config import Settings
from civicpulse.core.data_store import DataStore, DataStoreError
from civicpulse.models import Record
from civicpulse.services.text_generation import TextGenerationService


# ============================================================
# PYTEST PLUGINS CONFIGURATION
# ============================================================

pytest_plugins: List[str] = ['pytest_asyncio']


# ============================================================
# PYTEST HOOKS
# ============================================================

def pytest_configure(config) -> None:
    """
    Configure custom pytest markers for test organization.

    Custom markers defined:
    - slow: Marks tests as slow (deselect with -m "not slow")
    - integration: Marks tests exercising the HTTP app end to end
    """
    config.addinivalue_line(
        'markers',
        'slow: marks tests as slow (deselect with -m "not slow")'
    )
    config.addinivalue_line(
        'markers',
        'integration: marks tests exercising the FastAPI app end to end'
    )


# ============================================================
# TIME FIXTURES
# ============================================================

FIXED_NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def fixed_now() -> datetime:
    """Reference time used for temporal windows and follow-up cutoffs."""
    return FIXED_NOW


# ============================================================
# RECORD FACTORY
# ============================================================

def build_record(
    record_id: str,
    name: Optional[str] = None,
    neighborhood: Optional[str] = 'Centro',
    satisfaction: Optional[str] = None,
    issue: Optional[str] = None,
    participate: Optional[str] = None,
    responded: Optional[bool] = None,
    sent: bool = True,
    clicked: Optional[bool] = None,
    status: Optional[str] = 'delivered',
    provider: Optional[str] = 'meta',
    created_days_ago: float = 10,
    sent_days_ago: float = 9,
) -> Record:
    """
    Build a Record in the JSON store format.

    A survey is attached when `responded` is True, or when it is left as None
    and any survey answer is given. Responding implies clicking unless
    `clicked` is passed explicitly.
    """
    if responded is None:
        responded = any(v is not None for v in (satisfaction, issue, participate))
    if clicked is None:
        clicked = responded

    payload: Dict[str, Any] = {
        'id': record_id,
        'name': name or f'Resident {record_id}',
        'age': 35,
        'neighborhood': neighborhood,
        'whatsapp': f'+55119999{record_id.zfill(5)[-5:]}',
        'createdAt': (FIXED_NOW - timedelta(days=created_days_ago)).isoformat(),
    }
    if sent:
        payload['whatsappSentAt'] = (FIXED_NOW - timedelta(days=sent_days_ago)).isoformat()
        payload['whatsappStatus'] = status
        payload['whatsappProvider'] = provider
    if clicked:
        payload['clickedAt'] = (FIXED_NOW - timedelta(days=sent_days_ago - 0.5)).isoformat()
    if responded:
        payload['survey'] = {
            'issue': issue,
            'satisfaction': satisfaction,
            'participate': participate,
            'answeredAt': (FIXED_NOW - timedelta(days=sent_days_ago - 1)).isoformat(),
        }
    return Record.model_validate(payload)


@pytest.fixture
def make_record():
    """Factory fixture exposing build_record."""
    return build_record


# ============================================================
# SCENARIO RECORD SETS
# ============================================================

NEIGHBORHOODS = ['Centro', 'Jardim América', 'Vila Nova']
ISSUES = ['Segurança', 'Saúde', 'Transporte', 'Educação', 'Segurança']


def build_dissatisfied_scenario() -> List[Record]:
    """
    40 records: 10 Muito insatisfeito, 15 Insatisfeito, 5 Neutro,
    5 Satisfeito, 5 Muito satisfeito, interleaved so that dissatisfied
    records are not contiguous.
    """
    labels = (
        ['Muito insatisfeito'] * 10
        + ['Insatisfeito'] * 15
        + ['Neutro'] * 5
        + ['Satisfeito'] * 5
        + ['Muito satisfeito'] * 5
    )
    # Deterministic interleave: step through the label list with stride 7
    order = [(i * 7) % 40 for i in range(40)]
    records = []
    for position, label_index in enumerate(order):
        label = labels[label_index]
        records.append(build_record(
            str(position + 1),
            name=f'Morador {position + 1:02d}',
            neighborhood=NEIGHBORHOODS[position % 3],
            satisfaction=label,
            issue=ISSUES[position % 5],
            participate='Sim' if position % 2 == 0 else 'Não',
        ))
    return records


@pytest.fixture
def dissatisfied_scenario() -> List[Record]:
    return build_dissatisfied_scenario()


@pytest.fixture
def empty_records() -> List[Record]:
    return []


@pytest.fixture
def multi_neighborhood_records() -> List[Record]:
    """
    Three neighborhoods with clearly different performance:
    - Centro: everyone sent, clicked and answered satisfied
    - Jardim: everyone sent, half clicked, half answered neutral
    - Periferia: everyone sent, nobody clicked or answered
    """
    records = []
    for i in range(4):
        records.append(build_record(f'c{i}', neighborhood='Centro', satisfaction='Satisfeito',
                                    issue='Transporte', participate='Sim'))
    for i in range(4):
        if i < 2:
            records.append(build_record(f'j{i}', neighborhood='Jardim', satisfaction='Neutro',
                                        issue='Saúde', participate='Talvez'))
        else:
            records.append(build_record(f'j{i}', neighborhood='Jardim'))
    for i in range(4):
        records.append(build_record(f'p{i}', neighborhood='Periferia'))
    return records


# ============================================================
# COLLABORATOR DOUBLES
# ============================================================

class FakeDataStore(DataStore):
    """In-memory DataStore that counts loads and can simulate an I/O failure."""

    def __init__(self, records: Optional[List[Record]] = None, fail: bool = False) -> None:
        self.records = list(records or [])
        self.fail = fail
        self.load_calls = 0
        self.invalidations = 0

    async def load_records(self) -> List[Record]:
        self.load_calls += 1
        if self.fail:
            raise DataStoreError('connection refused')
        return list(self.records)

    def invalidate(self) -> None:
        self.invalidations += 1


class ScriptedTextService(TextGenerationService):
    """TextGenerationService returning canned text or raising a canned error."""

    model_name = 'test-model'

    def __init__(self, text: str = '', error: Optional[Exception] = None) -> None:
        self.text = text
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    async def generate(self, system_prompt: str, user_prompt: str, timeout_seconds: float) -> str:
        self.calls.append({
            'system_prompt': system_prompt,
            'user_prompt': user_prompt,
            'timeout_seconds': timeout_seconds,
        })
        if self.error is not None:
            raise self.error
        return self.text


@pytest.fixture
def fake_store_factory():
    return FakeDataStore


@pytest.fixture
def scripted_text_service():
    return ScriptedTextService


# ============================================================
# SETTINGS FIXTURES
# ============================================================

@pytest.fixture
def settings_without_key() -> Settings:
    return Settings(_env_file=None, groq_api_key=None)


@pytest.fixture
def settings_with_key() -> Settings:
    return Settings(_env_file=None, groq_api_key='test-key', llm_timeout_seconds=0.5)


# ============================================================
# GENERATED TEXT SAMPLES
# ============================================================

# Passes every rubric check against the 40-record dissatisfied scenario
EXCELLENT_TEXT = (
    'Municipal intelligence brief: 40 residents were surveyed with a 100.0% response rate and '
    'an average community satisfaction of 2.50/5 across 3 neighborhoods. Contact Morador 01 and '
    'the other dissatisfied citizens within 48 hours, and schedule neighborhood meetings this '
    'week to address service delivery gaps.'
)
