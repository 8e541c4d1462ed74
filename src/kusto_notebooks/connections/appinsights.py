from __future__ import annotations

from typing import Any, Mapping, Optional

from kusto_notebooks.connections.base import BaseConnection
from kusto_notebooks.connections.schema import EngineSchema, parse_app_insights_metadata
from kusto_notebooks.connections.types import AppInsightsConnectionInfo
from kusto_notebooks.exceptions.errors import ConnectionSetupError
from kusto_notebooks.kernel.host import AppInsightsSecrets
from kusto_notebooks.kusto.client import KustoClient
from kusto_notebooks.logging.logger import get_logger

log = get_logger("connections.appinsights")


class AppInsightsConnection(BaseConnection[AppInsightsConnectionInfo]):
    @staticmethod
    def connection_info_from(raw: Mapping[str, Any]) -> Optional[AppInsightsConnectionInfo]:
        """Recognizer: claims app-id shaped fields that carry no cluster."""
        if "cluster" in raw:
            return None
        app_id = raw.get("appId") or raw.get("id")
        if not app_id:
            return None
        return AppInsightsConnectionInfo(id=str(app_id), display_name=str(raw.get("displayName") or app_id))

    async def _secrets(self) -> AppInsightsSecrets:
        provider = self.context.secrets
        secrets = await provider.get_app_insights_secrets(self.info.id) if provider else None
        if not secrets or not secrets.app_key:
            raise ConnectionSetupError(f"No App Insights credentials stored for {self.info.id}")
        return secrets

    async def get_kusto_client(self) -> KustoClient:
        secrets = await self._secrets()
        log.info("Creating App Insights client", extra={"app_id": secrets.app_id})
        return self.context.make_app_insights_client(secrets.app_id, secrets.app_key)

    async def _fetch_schema(self) -> EngineSchema:
        client = await self.get_kusto_client()
        payload = await client.metadata()
        return parse_app_insights_metadata(self.info.id, payload)
