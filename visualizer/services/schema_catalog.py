"""Process-wide schema catalog: fetched at most once, never invalidated."""
import asyncio
import logging
from typing import Awaitable, Callable, Optional

from visualizer.models.schema import VisualizerSchema
from visualizer.services.client import VisualizerClient, VisualizerClientError

logger = logging.getLogger(__name__)

SchemaFetcher = Callable[[], Awaitable[VisualizerSchema]]


class SchemaLoadError(VisualizerClientError):
    """The schema catalog could not be loaded."""
    pass


async def fetch_schema_from_service() -> VisualizerSchema:
    """Default fetcher: one request through a short-lived client."""
    async with VisualizerClient() as client:
        return await client.get_schema()


class SchemaCatalog:
    """
    Caches the schema for the lifetime of the process.

    Concurrent first callers share a single fetch. A failed fetch caches
    nothing, so the next caller tries again.
    """

    def __init__(self, fetch: Optional[SchemaFetcher] = None):
        self._fetch = fetch or fetch_schema_from_service
        self._schema: Optional[VisualizerSchema] = None
        self._lock = asyncio.Lock()

    @property
    def schema(self) -> Optional[VisualizerSchema]:
        return self._schema

    @property
    def loaded(self) -> bool:
        return self._schema is not None

    async def get(self) -> VisualizerSchema:
        """
        Return the schema, fetching it on first use.

        Raises:
            SchemaLoadError: If the catalog is unavailable
        """
        if self._schema is not None:
            return self._schema

        async with self._lock:
            if self._schema is None:
                try:
                    schema = await self._fetch()
                except Exception as e:
                    # Any fetcher failure leaves the catalog unavailable
                    logger.error(f"Failed to load visualizer schema: {e}")
                    raise SchemaLoadError(f"Field catalog unavailable: {e}") from e
                self._schema = schema
                logger.info(f"Schema catalog cached ({len(schema.fields)} fields)")
        return self._schema


_catalog: Optional[SchemaCatalog] = None


def get_schema_catalog() -> SchemaCatalog:
    """Get the process-wide catalog instance."""
    global _catalog
    if _catalog is None:
        _catalog = SchemaCatalog()
    return _catalog


def set_schema_catalog(catalog: Optional[SchemaCatalog]) -> None:
    """Install a catalog (e.g. with a custom fetcher); None drops the current one."""
    global _catalog
    _catalog = catalog
