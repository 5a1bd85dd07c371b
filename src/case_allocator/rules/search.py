"""Debounced geography search with last-request-wins ordering."""

import asyncio
import logging
from typing import Optional, List

from ..core.config import settings
from .models import GeographyOption

logger = logging.getLogger(__name__)


class GeographySearch:
    """Free-text search over one geography catalog (states or cities).

    Each call to ``search`` takes a new sequence number. A call waits out the
    debounce window first and gives up if a newer call arrived meanwhile.
    A response is only applied to ``results`` if no newer call was issued
    while it was in flight; stale calls return None.
    """

    def __init__(self, catalog, kind: str, debounce_seconds: Optional[float] = None):
        self.catalog = catalog
        self.kind = kind
        self.debounce_seconds = (
            settings.search_debounce_seconds if debounce_seconds is None else debounce_seconds
        )
        self.results: List[GeographyOption] = []
        self.warnings: List[str] = []
        self.query = ""
        self._sequence = 0

    @property
    def latest_sequence(self) -> int:
        return self._sequence

    async def search(self, query: str) -> Optional[List[GeographyOption]]:
        self._sequence += 1
        sequence = self._sequence

        if self.debounce_seconds > 0:
            await asyncio.sleep(self.debounce_seconds)
        if sequence != self._sequence:
            return None

        results = await self.catalog.search(self.kind, query)
        if sequence != self._sequence:
            logger.debug(f"Dropping stale {self.kind} search #{sequence} for {query!r}")
            return None

        self.query = query
        self.results = results
        self.warnings = self.catalog.take_warnings()
        return results
