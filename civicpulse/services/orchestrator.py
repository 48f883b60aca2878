"""
Query Orchestrator - the single `answer(query)` entry point.

Pipeline:
    query
      -> classify_query              (QueryAnalysis)
      -> DataStore.load_records      (records)
      -> build_statistical_profile   (StatisticalProfile)
      -> route_query                 (HandlerResult draft)
      -> run_enhancement             (EnhancementDecision)
      -> assemble_response           (DraftResponse | EnhancedResponse)

Each stage degrades instead of failing: handler exceptions become a
degraded draft, text-generation problems keep the draft. Only a DataStore
failure aborts the run, and it still yields a well-formed ErrorResponse.

Collaborators are passed in explicitly; there is no module-level instance.

Usage:
    orchestrator = QueryOrchestrator(
        data_store=JsonFileDataStore(settings.db_file),
        text_service=GroqTextGenerationService.from_settings(settings),
        settings=settings,
    )
    response = await orchestrator.answer("list dissatisfied residents")

See Also:
    - civicpulse/api/query.py: HTTP adapter
    - civicpulse/core/dependencies.py: FastAPI wiring
"""

import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

from civicpulse.core.config import Settings
from civicpulse.core.data_store import DataStore, DataStoreError
from civicpulse.models import (
    FinalResponse,
    HandlerResult,
    Intent,
    QueryAnalysis,
    Record,
    StatisticalProfile,
)
from civicpulse.services.enhancement_gate import run_enhancement
from civicpulse.services.handler_router import route_query
from civicpulse.services.intent_classifier import classify_query
from civicpulse.services.response_assembler import assemble_response, build_error_response
from civicpulse.services.statistical_profiler import build_statistical_profile
from civicpulse.services.text_generation import TextGenerationService

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class QueryOrchestrator:
    """
    Runs the full query pipeline for one query at a time.

    Holds no per-query state, so one instance can serve concurrent queries.

    Args:
        data_store: Source of citizen records.
        text_service: External text generator, or None to disable enhancement.
        settings: Timeouts, prompt limits and the credential flag.
        clock: Current-time source, injectable for tests.
    """

    def __init__(
        self,
        data_store: DataStore,
        text_service: Optional[TextGenerationService],
        settings: Settings,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.data_store = data_store
        self.text_service = text_service
        self.settings = settings
        self._clock = clock

    async def answer(self, query: str) -> FinalResponse:
        """
        Answer a free-text query.

        Never raises; a record-store failure or an unexpected error returns
        an ErrorResponse.
        """
        started = time.perf_counter()
        try:
            analysis = classify_query(query)
            records = await self.data_store.load_records()
            profile = build_statistical_profile(records, now=self._clock())

            draft = route_query(analysis, profile, records)
            knowledge_brief = self._knowledge_brief(analysis, profile, records)

            decision = await run_enhancement(
                query, analysis, profile, draft, self.text_service, self.settings
            )
            return assemble_response(
                query,
                analysis,
                profile,
                draft,
                decision,
                knowledge_brief=knowledge_brief,
                processing_time_ms=(time.perf_counter() - started) * 1000,
                now=self._clock(),
            )
        except DataStoreError as e:
            logger.error(f"Critical failure, record store unavailable: {e}")
            return build_error_response(query, e, now=self._clock())
        except Exception as e:
            logger.error(f"Unexpected pipeline failure: {e}", exc_info=True)
            return build_error_response(query, e, now=self._clock())

    def _knowledge_brief(
        self,
        analysis: QueryAnalysis,
        profile: StatisticalProfile,
        records: Sequence[Record],
    ) -> Optional[str]:
        """Knowledge summary attached to notification answers."""
        if analysis.primaryIntent != Intent.NOTIFICATION:
            return None
        knowledge_analysis = analysis.model_copy(update={'primaryIntent': Intent.KNOWLEDGE})
        result: HandlerResult = route_query(knowledge_analysis, profile, records)
        return result.summaryText if result.success else None

    def invalidate_cache(self) -> None:
        self.data_store.invalidate()
