from __future__ import annotations

from typing import Any, Mapping, Optional

from azure.core.exceptions import ClientAuthenticationError
from azure.identity import CredentialUnavailableError
from azure.identity.aio import AzureCliCredential

from kusto_notebooks.connections.base import BaseConnection
from kusto_notebooks.connections.schema import SHOW_SCHEMA_COMMAND, EngineSchema, schema_from_response
from kusto_notebooks.connections.types import AzureAuthConnectionInfo, get_cluster_display_name
from kusto_notebooks.exceptions.errors import ConnectionSetupError
from kusto_notebooks.kusto.client import KustoClient
from kusto_notebooks.kusto.response import normalize_response
from kusto_notebooks.logging.logger import get_logger

log = get_logger("connections.azauth")

OFFLINE_SCOPE = "offline_access"
LOGIN_HINT = 'Please run "az login" in your terminal to authenticate'


class CliTokenProvider:
    """Token from the ambient ``az login`` session, via azure-identity."""

    async def get_token(self, scope: str) -> Optional[str]:
        credential = AzureCliCredential()
        try:
            access = await credential.get_token(scope)
        except ClientAuthenticationError as e:
            message = str(e)
            if "az login" in message.lower() or "not logged in" in message.lower():
                raise ConnectionSetupError(LOGIN_HINT) from e
            if isinstance(e, CredentialUnavailableError):
                raise ConnectionSetupError(f"Azure CLI is not available: {message}") from e
            raise ConnectionSetupError(f"Azure CLI token request failed: {message}") from e
        finally:
            await credential.close()
        return access.token


class AzureAuthenticatedConnection(BaseConnection[AzureAuthConnectionInfo]):
    @staticmethod
    def connection_info_from(raw: Mapping[str, Any]) -> Optional[AzureAuthConnectionInfo]:
        """Recognizer: claims anything carrying a cluster."""
        cluster = raw.get("cluster")
        if not cluster:
            return None
        return AzureAuthConnectionInfo(
            id=str(cluster),
            display_name=get_cluster_display_name(str(cluster)),
            cluster=str(cluster),
            database=raw.get("database"),
        )

    @property
    def database(self) -> str:
        return self.info.database or ""

    async def get_kusto_client(self) -> KustoClient:
        if not self.info.cluster:
            log.error("Cluster information is missing in connection info")
            raise ConnectionSetupError("Cluster information is missing in connection info.")
        log.info("Creating Kusto client", extra={"cluster": self.info.cluster})
        token = await self._get_access_token()
        return self.context.make_kusto_client(self.info.cluster, token)

    async def _get_access_token(self) -> str:
        scope = self.context.settings.aad_scope
        cred = self.context.cli_credential
        if cred is not None:
            try:
                token = await cred.get_token(scope)
                if token:
                    return token
                log.warning("Azure CLI returned no token")
            except Exception as e:
                log.warning("Azure CLI auth failed, falling back to interactive", extra={"error": str(e)})

        ui = self.context.ui
        if ui is None:
            raise ConnectionSetupError("No interactive sign-in is available")
        try:
            token = await ui.get_session_token([scope, OFFLINE_SCOPE])
            if token:
                return token
        except Exception as e:
            log.warning("Interactive sign-in failed, asking for a token", extra={"error": str(e)})

        try:
            token = await ui.prompt_access_token()
        except Exception as e:
            raise ConnectionSetupError("Access token entry failed") from e
        if not token:
            raise ConnectionSetupError("No access token provided")
        return token

    async def _fetch_schema(self) -> EngineSchema:
        client = await self.get_kusto_client()
        response = normalize_response(await client.execute(self.database, SHOW_SCHEMA_COMMAND))
        return schema_from_response(self.info.cluster, response)
