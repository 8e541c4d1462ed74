"""Unit tests for the connection capability registry."""

import logging

import pytest

from kusto_notebooks.connections.appinsights import AppInsightsConnection
from kusto_notebooks.connections.azauth import AzureAuthenticatedConnection
from kusto_notebooks.connections.registry import CapabilityRegistry
from kusto_notebooks.connections.types import AppInsightsConnectionInfo, AzureAuthConnectionInfo
from kusto_notebooks.exceptions.errors import UnknownConnectionType


class TestResolve:
    def test_resolves_each_variant(self, context, az_info, ai_info):
        assert isinstance(context.get_connection(az_info), AzureAuthenticatedConnection)
        assert isinstance(context.get_connection(ai_info), AppInsightsConnection)

    def test_unknown_type(self, context, az_info):
        empty = CapabilityRegistry()
        with pytest.raises(UnknownConnectionType):
            empty.resolve(az_info, context)

    def test_last_registration_wins(self, context, az_info, caplog):
        class Other(AzureAuthenticatedConnection):
            pass

        with caplog.at_level(logging.WARNING, logger="kusto.connections.registry"):
            context.capabilities.register("azAuth", Other, Other.connection_info_from)
        assert isinstance(context.get_connection(az_info), Other)
        assert any("registered twice" in r.getMessage() for r in caplog.records)


class TestRecognize:
    def test_cluster_fields_are_az_auth(self, context):
        info = context.capabilities.recognize({"cluster": "https://help.kusto.windows.net", "database": "Samples"})
        assert isinstance(info, AzureAuthConnectionInfo)
        assert info.display_name == "help"
        assert info.database == "Samples"

    def test_app_id_fields_are_app_insights(self, context):
        info = context.capabilities.recognize({"appId": "app-1", "displayName": "App"})
        assert isinstance(info, AppInsightsConnectionInfo)
        assert info.id == "app-1"

    def test_nothing_claims_empty_fields(self, context):
        with pytest.raises(UnknownConnectionType):
            context.capabilities.recognize({})

    def test_overlapping_recognizers_are_rejected(self, context):
        context.capabilities.register("greedy", AppInsightsConnection, lambda raw: AppInsightsConnectionInfo("x", "x"))
        with pytest.raises(UnknownConnectionType):
            context.capabilities.recognize({"cluster": "https://c"})
