from __future__ import annotations

from typing import TYPE_CHECKING, Generic, TypeVar

from kusto_notebooks.connections.schema import EngineSchema
from kusto_notebooks.connections.types import ConnectionInfo, encode_connection_info
from kusto_notebooks.exceptions.errors import SchemaFetchError
from kusto_notebooks.kusto.client import KustoClient
from kusto_notebooks.logging.logger import get_logger

if TYPE_CHECKING:
    from kusto_notebooks.kernel.context import ProcessContext

log = get_logger("connections.base")

InfoT = TypeVar("InfoT", bound=ConnectionInfo)


class BaseConnection(Generic[InfoT]):
    """Capability shared by every connection variant: cached schema and persistence.

    Subclasses supply ``_fetch_schema`` and ``get_kusto_client``.
    """

    def __init__(self, info: InfoT, context: "ProcessContext"):
        self.info = info
        self.context = context

    @property
    def token(self) -> str:
        return encode_connection_info(self.info)

    @property
    def database(self) -> str:
        return ""

    async def get_schema(self, ignore_cache: bool = False, hide_progress: bool = False) -> EngineSchema:
        cache = self.context.schema_cache
        if not ignore_cache:
            cached = cache.get(self.token)
            if cached is not None:
                return cached

        log.info("Fetching schema", extra={"connection_id": self.info.id, "ignore_cache": ignore_cache})
        try:
            work = self._fetch_schema()
            ui = self.context.ui
            if ui is not None and not hide_progress:
                schema = await ui.with_progress(f"Fetching schema for {self.info.display_name}", work)
            else:
                schema = await work
        except SchemaFetchError:
            raise
        except Exception as e:
            log.exception("Schema fetch failed", extra={"connection_id": self.info.id})
            raise SchemaFetchError(f"Failed to fetch schema for {self.info.display_name or self.info.id}: {e}") from e

        cache.put(self.token, schema)
        return schema

    async def save(self) -> None:
        await self.context.store.save(self.token, self.info)

    async def delete(self) -> None:
        self.context.schema_cache.invalidate(self.token)
        await self.context.store.delete(self.token, self.info)

    async def get_kusto_client(self) -> KustoClient:
        raise NotImplementedError

    async def _fetch_schema(self) -> EngineSchema:
        raise NotImplementedError
