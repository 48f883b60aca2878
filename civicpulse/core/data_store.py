"""
Record store collaborator for the civicpulse query pipeline.

The pipeline reads citizen records through the `DataStore` interface and
never writes them. The store is constructed explicitly and passed to the
orchestrator; there is no module-level singleton.

Key Components:
- DataStore: abstract async interface (load_records, invalidate)
- JsonFileDataStore: reads a JSON array file with a read-through TTL cache
- DataStoreError: raised only for I/O or decode failures

Behaviour:
- Missing file: an empty record list (no data is not an error)
- Unreadable file or invalid JSON: DataStoreError
- Individual malformed records: skipped with a warning
- File reads and parsing run in a worker thread via asyncio.to_thread
- Cache: records are reused for `ttl_seconds` (30 by default) and can be
  dropped explicitly with invalidate()

Usage:
    store = JsonFileDataStore(settings.db_file, ttl_seconds=settings.record_cache_ttl_seconds)
    records = await store.load_records()

See Also:
    - civicpulse/core/config.py: DB_FILE and RECORD_CACHE_TTL_SECONDS
    - civicpulse/services/orchestrator.py: the only consumer
"""

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, List, Optional, Union

from pydantic import ValidationError

from civicpulse.models import Record

logger = logging.getLogger(__name__)


class DataStoreError(Exception):
    """The record store could not be read."""


class DataStore(ABC):
    """Read-only source of citizen records."""

    @abstractmethod
    async def load_records(self) -> List[Record]:
        """
        Return every record currently stored.

        May return an empty list. Raises DataStoreError only on I/O failure.
        """

    def invalidate(self) -> None:
        """Drop any cached records. No-op for uncached stores."""


class JsonFileDataStore(DataStore):
    """
    DataStore backed by a JSON file holding an array of record objects.

    Args:
        path: Location of the JSON file.
        ttl_seconds: How long a successful load is reused.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        path: Union[str, Path],
        ttl_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.path = Path(path)
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._cache: Optional[List[Record]] = None
        self._cached_at: Optional[float] = None

    async def load_records(self) -> List[Record]:
        if self._cache is not None and self._cached_at is not None:
            if self._clock() - self._cached_at < self.ttl_seconds:
                logger.debug(f"Record cache hit ({len(self._cache)} records)")
                return list(self._cache)

        records = await asyncio.to_thread(self._read_file)
        self._cache = records
        self._cached_at = self._clock()
        return list(records)

    def invalidate(self) -> None:
        logger.info("Record cache invalidated")
        self._cache = None
        self._cached_at = None

    def _read_file(self) -> List[Record]:
        if not self.path.exists():
            logger.warning(f"No data file found at {self.path}; treating dataset as empty")
            return []

        try:
            raw = self.path.read_text(encoding='utf-8')
        except OSError as e:
            logger.error(f"Failed to read data file {self.path}: {e}")
            raise DataStoreError(f"Failed to read data file {self.path}: {e}") from e

        try:
            payload = json.loads(raw) if raw.strip() else []
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in data file {self.path}: {e}")
            raise DataStoreError(f"Invalid JSON in data file {self.path}: {e}") from e

        if not isinstance(payload, list):
            logger.warning(f"Data file {self.path} does not hold a JSON array; treating dataset as empty")
            return []

        records: List[Record] = []
        skipped = 0
        for item in payload:
            try:
                records.append(Record.model_validate(item))
            except ValidationError as e:
                skipped += 1
                logger.warning(f"Skipping malformed record: {e.error_count()} validation error(s)")

        logger.info(
            f"Loaded {len(records)} records from {self.path.name}"
            + (f" ({skipped} skipped)" if skipped else "")
        )
        return records
