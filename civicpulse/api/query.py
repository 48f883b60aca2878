"""
FastAPI router module for the query pipeline.

Endpoints:
- POST /query: answer a free-text question (FinalResponse body)
- POST /records/cache/invalidate: drop the record read-through cache

Every pipeline outcome, including a record-store failure, is returned as a
200 response whose `kind` is draft, enhanced or error. Only malformed
requests are rejected (FastAPI validation, 422).
"""

import logging

from fastapi import APIRouter

from civicpulse.core.dependencies import DataStoreDep, OrchestratorDep
from civicpulse.models import FinalResponse, QueryRequest

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/query", response_model=FinalResponse)
async def answer_query(request: QueryRequest, orchestrator: OrchestratorDep) -> FinalResponse:
    """
    Answer a free-text question about the survey dataset.

    Args:
        request: Body with the query text (1-2000 characters).
        orchestrator: Injected pipeline.

    Returns:
        DraftResponse, EnhancedResponse or ErrorResponse, discriminated by `kind`.
    """
    logger.info(f"Received query ({len(request.query)} chars)")
    return await orchestrator.answer(request.query)


@router.post("/records/cache/invalidate", response_model=dict)
async def invalidate_record_cache(data_store: DataStoreDep) -> dict:
    """Drop cached records so the next query reloads them."""
    data_store.invalidate()
    return {"status": "invalidated"}
