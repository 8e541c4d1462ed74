from __future__ import annotations

from typing import Any, Callable, Optional

from kusto_notebooks.config.settings import Settings
from kusto_notebooks.connections.appinsights import AppInsightsConnection
from kusto_notebooks.connections.azauth import AzureAuthenticatedConnection, CliTokenProvider
from kusto_notebooks.connections.base import BaseConnection
from kusto_notebooks.connections.cache import SchemaCache
from kusto_notebooks.connections.registry import CapabilityRegistry
from kusto_notebooks.connections.storage import ConnectionStore
from kusto_notebooks.connections.types import APP_INSIGHTS, AZ_AUTH, ConnectionInfo
from kusto_notebooks.kernel.host import HostUI, KernelHost, SecretProvider
from kusto_notebooks.kusto.client import AppInsightsHttpClient, KustoClient, KustoHttpClient
from kusto_notebooks.logging.logger import get_logger, init_logging

log = get_logger("kernel.context")


class ProcessContext:
    """Process-wide state: capability table, connection store, schema cache, host adapters.

    Built once at startup and handed to connections and controllers; ``close()``
    drops the caches at shutdown.
    """

    def __init__(
        self,
        settings: Settings,
        store: ConnectionStore,
        host: Optional[KernelHost] = None,
        ui: Optional[HostUI] = None,
        secrets: Optional[SecretProvider] = None,
        cli_credential: Optional[Any] = None,
        kusto_client_factory: Optional[Callable[[str, str], KustoClient]] = None,
        app_insights_client_factory: Optional[Callable[[str, str], Any]] = None,
    ):
        self.settings = settings
        self.store = store
        self.host = host
        self.ui = ui
        self.secrets = secrets
        self.cli_credential = cli_credential
        self.capabilities = CapabilityRegistry()
        self.schema_cache = SchemaCache()
        self._kusto_client_factory = kusto_client_factory
        self._app_insights_client_factory = app_insights_client_factory

    def make_kusto_client(self, cluster: str, access_token: str) -> KustoClient:
        if self._kusto_client_factory:
            return self._kusto_client_factory(cluster, access_token)
        return KustoHttpClient(cluster=cluster, access_token=access_token, timeout=self.settings.request_timeout_seconds)

    def make_app_insights_client(self, app_id: str, app_key: str) -> Any:
        if self._app_insights_client_factory:
            return self._app_insights_client_factory(app_id, app_key)
        return AppInsightsHttpClient(
            app_id=app_id,
            app_key=app_key,
            endpoint=self.settings.app_insights_endpoint,
            timeout=self.settings.request_timeout_seconds,
        )

    def get_connection(self, info: ConnectionInfo) -> BaseConnection:
        return self.capabilities.resolve(info, self)

    def close(self) -> None:
        self.schema_cache.clear()
        log.info("Process context closed")


def register_default_capabilities(context: ProcessContext) -> None:
    reg = context.capabilities
    reg.register(AZ_AUTH, AzureAuthenticatedConnection, AzureAuthenticatedConnection.connection_info_from)
    reg.register(APP_INSIGHTS, AppInsightsConnection, AppInsightsConnection.connection_info_from)


def bootstrap(
    settings: Settings,
    host: Optional[KernelHost] = None,
    ui: Optional[HostUI] = None,
    secrets: Optional[SecretProvider] = None,
) -> ProcessContext:
    """Startup wiring: logging, store from settings, CLI credential, both connection types."""
    init_logging(settings.log_level, settings.log_file)
    context = ProcessContext(
        settings=settings,
        store=ConnectionStore(settings.connections_file),
        host=host,
        ui=ui,
        secrets=secrets,
        cli_credential=CliTokenProvider(),
    )
    register_default_capabilities(context)
    log.info("Process context ready", extra={"env": settings.env, "capabilities": context.capabilities.tags()})
    return context
