import pytest

from kusto_notebooks.connections.storage import ConnectionStore
from kusto_notebooks.connections.types import AppInsightsConnectionInfo, AzureAuthConnectionInfo
from kusto_notebooks.kernel.context import ProcessContext, register_default_capabilities

from fakes import FakeClient, FakeCredential, FakeHost, FakeSecrets, FakeUI, make_settings


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def az_info():
    return AzureAuthConnectionInfo(
        id="https://help.kusto.windows.net",
        display_name="help",
        cluster="https://help.kusto.windows.net",
        database="Samples",
    )


@pytest.fixture
def ai_info():
    return AppInsightsConnectionInfo(id="app-123", display_name="My App")


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def fake_host():
    return FakeHost()


@pytest.fixture
def context(settings, fake_client, fake_host):
    ctx = ProcessContext(
        settings=settings,
        store=ConnectionStore(None),
        host=fake_host,
        ui=FakeUI(),
        secrets=FakeSecrets(),
        cli_credential=FakeCredential("cli-token"),
        kusto_client_factory=lambda cluster, token: fake_client,
        app_insights_client_factory=lambda app_id, key: fake_client,
    )
    register_default_capabilities(ctx)
    yield ctx
    ctx.close()
