"""Unit tests for response normalization and the HTTP clients' payload parsing."""

import httpx
import pytest

from kusto_notebooks.kusto.client import (
    AppInsightsHttpClient,
    KustoHttpClient,
    parse_app_insights_response,
    parse_v1_response,
)
from kusto_notebooks.kusto.response import (
    ResultTable,
    TabularResponse,
    get_row_count_status,
    normalize_response,
)

from fakes import table, viz_props

V1_PAYLOAD = {
    "Tables": [
        {
            "TableName": "Table_0",
            "Columns": [
                {"ColumnName": "State", "DataType": "String", "ColumnType": "string"},
                {"ColumnName": "Count", "DataType": "Int64", "ColumnType": "long"},
            ],
            "Rows": [["TEXAS", 10], ["KANSAS", 4]],
        },
        {
            "TableName": "Table_1",
            "Columns": [
                {"ColumnName": "Value", "DataType": "String", "ColumnType": "string"},
            ],
            "Rows": [['{"Visualization":"piechart","Title":"States"}']],
        },
        {
            "TableName": "Table_2",
            "Columns": [
                {"ColumnName": "Ordinal", "ColumnType": "long"},
                {"ColumnName": "Kind", "ColumnType": "string"},
                {"ColumnName": "Name", "ColumnType": "string"},
                {"ColumnName": "Id", "ColumnType": "string"},
            ],
            "Rows": [
                [0, "QueryResult", "PrimaryResult", "a"],
                [1, "QueryProperties", "@ExtendedProperties", "b"],
            ],
        },
    ]
}


class TestNormalize:
    def test_primary_result_table_moves_to_primary_results(self):
        primary = table("PrimaryResult", [("x", "long")], [[1], [2]])
        props = viz_props("{}")
        response = TabularResponse(tables=[primary, props], table_names=["PrimaryResult", "@ExtendedProperties"])

        out = normalize_response(response)

        assert out.primary_results == [primary]
        assert [t.name for t in out.tables] == ["@ExtendedProperties"]
        assert out.table_names == ["@ExtendedProperties"]
        assert out.primary_results[0].rows == [[1], [2]]

    def test_existing_primary_results_are_kept(self):
        dedicated = table("Results", [("x", "long")], [[7]])
        duplicate = table("PrimaryResult", [("x", "long")], [[7]])
        response = TabularResponse(tables=[duplicate], table_names=["PrimaryResult"], primary_results=[dedicated])

        out = normalize_response(response)

        assert out.primary_results == [dedicated]
        assert out.tables == []
        assert out.table_names == []

    def test_input_is_not_mutated(self):
        primary = table("PrimaryResult", [("x", "long")], [[1]])
        response = TabularResponse(tables=[primary], table_names=["PrimaryResult"])
        normalize_response(response)
        assert response.tables == [primary]

    def test_row_count_status(self):
        response = normalize_response(
            TabularResponse(tables=[table("PrimaryResult", [("x", "long")], [[1], [2], [3]])])
        )
        assert get_row_count_status(response) == "3 records"
        assert get_row_count_status(TabularResponse(tables=[])) is None


class TestResultTable:
    def test_mapping_rows_follow_column_order(self):
        t = ResultTable.from_dict(
            {
                "name": "PrimaryResult",
                "columns": [{"name": "a", "type": "string"}, {"name": "b", "type": "long"}],
                "rows": [{"b": 2, "a": "x"}],
            }
        )
        assert t.rows == [["x", 2]]
        assert t.columns[1].ordinal == 1

    def test_to_frame(self):
        t = table("PrimaryResult", [("State", "string"), ("Count", "long")], [["TX", 1], ["KS", 2]])
        df = t.to_frame()
        assert list(df.columns) == ["State", "Count"]
        assert df["Count"].sum() == 3

    def test_round_trip_dict(self):
        response = TabularResponse(
            tables=[viz_props("{}")],
            table_names=["@ExtendedProperties"],
            primary_results=[table("PrimaryResult", [("x", "long")], [[1]])],
            exceptions=["partial failure"],
        )
        assert TabularResponse.from_dict(response.to_dict()) == response


class TestParsing:
    def test_v1_uses_table_of_contents(self):
        response = parse_v1_response(V1_PAYLOAD)
        assert response.table_names == ["PrimaryResult", "@ExtendedProperties"]
        assert response.tables[0].columns[1].type == "long"

    def test_v1_single_table_is_primary(self):
        response = parse_v1_response({"Tables": [V1_PAYLOAD["Tables"][0]]})
        assert response.table_names == ["PrimaryResult"]

    def test_app_insights_payload(self):
        response = parse_app_insights_response(
            {"tables": [{"name": "PrimaryResult", "columns": [{"name": "n", "type": "long"}], "rows": [[5]]}]}
        )
        assert normalize_response(response).primary.rows == [[5]]


class TestHttpClients:
    @pytest.mark.asyncio
    async def test_kusto_query_request(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = request.read()
            return httpx.Response(200, json=V1_PAYLOAD)

        client = KustoHttpClient("https://help.kusto.windows.net", "tok", transport=httpx.MockTransport(handler))
        response = await client.execute("Samples", "StormEvents | count")

        assert seen["url"] == "https://help.kusto.windows.net/v1/rest/query"
        assert seen["auth"] == "Bearer tok"
        assert b'"db":"Samples"' in seen["body"].replace(b" ", b"")
        assert response.table_names[0] == "PrimaryResult"

    @pytest.mark.asyncio
    async def test_management_commands_use_mgmt_endpoint(self):
        urls = []

        def handler(request):
            urls.append(str(request.url))
            return httpx.Response(200, json={"Tables": []})

        client = KustoHttpClient("help.kusto.windows.net", "tok", transport=httpx.MockTransport(handler))
        await client.execute("", ".show databases schema as json")
        assert urls == ["https://help.kusto.windows.net/v1/rest/mgmt"]

    @pytest.mark.asyncio
    async def test_http_errors_propagate(self):
        def handler(request):
            return httpx.Response(400, json={"error": {"@message": "Syntax error"}})

        client = KustoHttpClient("https://c", "tok", transport=httpx.MockTransport(handler))
        with pytest.raises(httpx.HTTPStatusError) as info:
            await client.execute("db", "bad |")
        assert info.value.response.status_code == 400

    @pytest.mark.asyncio
    async def test_app_insights_uses_api_key(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["key"] = request.headers["x-api-key"]
            return httpx.Response(200, json={"tables": []})

        client = AppInsightsHttpClient("app-1", "secret", transport=httpx.MockTransport(handler))
        await client.execute("", "requests | take 1")
        assert seen == {"url": "https://api.applicationinsights.io/v1/apps/app-1/query", "key": "secret"}
