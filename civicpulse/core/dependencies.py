"""
FastAPI dependency injection module for the civicpulse service.

This module provides reusable FastAPI dependencies for configuration access
and the query pipeline collaborators. The DataStore and TextGenerationService
are constructed once in the application lifespan (see civicpulse/main.py) and
kept on `app.state`; the dependencies below only read them from there, so
tests can swap any of them with `app.dependency_overrides`.

Key Dependencies Provided:
- get_settings_dependency: Returns the cached Settings singleton
- get_data_store: The DataStore built at startup
- get_text_service: The TextGenerationService, or None without a credential
- get_orchestrator: A QueryOrchestrator wired from the three above
- SettingsDep / DataStoreDep / OrchestratorDep: Annotated type aliases

Usage Examples:
    @router.post("/query")
    async def query(request: QueryRequest, orchestrator: OrchestratorDep):
        return await orchestrator.answer(request.query)

    # In tests
    app.dependency_overrides[get_data_store] = lambda: FakeDataStore(records)

See Also:
    - civicpulse/core/config.py: Settings management and environment variables
    - civicpulse/core/data_store.py: DataStore interface and JSON file store
    - civicpulse/api/query.py: Endpoint handlers using these dependencies
"""

from typing import Annotated, Optional

from fastapi import Depends, Request

from civicpulse.core.config import Settings, get_settings
from civicpulse.core.data_store import DataStore
from civicpulse.services.orchestrator import QueryOrchestrator
from civicpulse.services.text_generation import TextGenerationService


# =============================================================================
# Settings Dependency
# =============================================================================

def get_settings_dependency() -> Settings:
    """
    Return the Settings singleton instance.

    Thin wrapper around get_settings() so tests can override it:

        app.dependency_overrides[get_settings_dependency] = lambda: test_settings
    """
    return get_settings()


SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]


# =============================================================================
# Pipeline Collaborators
# =============================================================================

def get_data_store(request: Request) -> DataStore:
    """Return the DataStore created during application startup."""
    return request.app.state.data_store


def get_text_service(request: Request) -> Optional[TextGenerationService]:
    """Return the text-generation client, or None when no credential is configured."""
    return getattr(request.app.state, 'text_service', None)


DataStoreDep = Annotated[DataStore, Depends(get_data_store)]
TextServiceDep = Annotated[Optional[TextGenerationService], Depends(get_text_service)]


def get_orchestrator(
    data_store: DataStoreDep,
    text_service: TextServiceDep,
    settings: SettingsDep,
) -> QueryOrchestrator:
    """Wire a QueryOrchestrator for the current request."""
    return QueryOrchestrator(data_store=data_store, text_service=text_service, settings=settings)


OrchestratorDep = Annotated[QueryOrchestrator, Depends(get_orchestrator)]
