"""
Core infrastructure package for the civicpulse service.

Provides:
- Configuration management via pydantic-settings
- The read-only record store collaborator (DataStore)

Re-exports key components so other modules can write:

    from civicpulse.core import get_settings, DataStore

Dependency-injection helpers live in civicpulse.core.dependencies and are not
re-exported here, since they import the service layer.
"""

# =============================================================================
# Re-exports from civicpulse.core.config
# =============================================================================
from civicpulse.core.config import Settings, get_settings

# =============================================================================
# Re-exports from civicpulse.core.data_store
# =============================================================================
from civicpulse.core.data_store import DataStore, DataStoreError, JsonFileDataStore

__all__ = [
    # Configuration management (from config.py)
    'Settings',
    'get_settings',
    # Record store (from data_store.py)
    'DataStore',
    'DataStoreError',
    'JsonFileDataStore',
]
