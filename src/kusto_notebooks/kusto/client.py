"""Query-engine clients.

The kernel only needs ``execute(database, query)``. The HTTP clients below speak the
Kusto v1 REST endpoints and the Application Insights query API and turn both
payload shapes into a :class:`TabularResponse`. HTTP failures are left as
``httpx.HTTPStatusError`` so the caller can classify them by status.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol

import httpx

from kusto_notebooks.kusto.response import (
    EXTENDED_PROPERTIES,
    PRIMARY_RESULT,
    Column,
    ResultTable,
    TabularResponse,
)
from kusto_notebooks.logging.logger import get_logger

log = get_logger("kusto.client")

# v1 table-of-contents kinds
_TOC_KIND_NAMES = {
    "QueryResult": PRIMARY_RESULT,
    "QueryProperties": EXTENDED_PROPERTIES,
    "QueryStatus": "QueryStatus",
}


class KustoClient(Protocol):
    async def execute(self, database: str, query: str) -> TabularResponse:
        ...


def _v1_table(raw: Mapping[str, Any], name: str) -> ResultTable:
    cols = [
        Column(
            name=str(c.get("ColumnName", "")),
            type=str(c.get("ColumnType") or c.get("DataType") or "").lower(),
            ordinal=i,
        )
        for i, c in enumerate(raw.get("Columns") or [])
    ]
    return ResultTable(name=name, columns=cols, rows=[list(r) for r in raw.get("Rows") or []])


def parse_v1_response(payload: Mapping[str, Any]) -> TabularResponse:
    """Parse a Kusto v1 REST payload (``{"Tables": [...]}``).

    With more than one table, the last one is the table of contents naming the
    others. Query results become ``PrimaryResult`` tables; normalization later moves
    them into ``primary_results``.
    """
    raw_tables: List[Mapping[str, Any]] = list(payload.get("Tables") or [])
    if len(raw_tables) <= 1:
        tables = [_v1_table(t, PRIMARY_RESULT) for t in raw_tables]
        return TabularResponse(tables=tables, table_names=[t.name for t in tables])

    toc = raw_tables[-1]
    toc_cols = [str(c.get("ColumnName", "")) for c in toc.get("Columns") or []]
    kind_idx = toc_cols.index("Kind") if "Kind" in toc_cols else 1
    name_idx = toc_cols.index("Name") if "Name" in toc_cols else 2

    tables: List[ResultTable] = []
    for i, raw in enumerate(raw_tables[:-1]):
        name = str(raw.get("TableName", f"Table_{i}"))
        toc_rows = toc.get("Rows") or []
        if i < len(toc_rows):
            row = toc_rows[i]
            kind = row[kind_idx]
            name = _TOC_KIND_NAMES.get(kind, row[name_idx] or name)
        tables.append(_v1_table(raw, name))

    exceptions: List[str] = []
    for raw in raw_tables:
        for ex in raw.get("Exceptions") or []:
            exceptions.append(str(ex))
    return TabularResponse(tables=tables, table_names=[t.name for t in tables], exceptions=exceptions)


def parse_app_insights_response(payload: Mapping[str, Any]) -> TabularResponse:
    """Parse the Application Insights query payload (``{"tables": [...]}``)."""
    tables = [ResultTable.from_dict(t) for t in payload.get("tables") or []]
    errors = payload.get("error")
    exceptions = [str(errors.get("message", errors))] if isinstance(errors, Mapping) else []
    return TabularResponse(tables=tables, table_names=[t.name for t in tables], exceptions=exceptions)


@dataclass
class KustoHttpClient:
    """Bearer-token client for a Kusto cluster."""

    cluster: str
    access_token: str
    timeout: float = 240.0
    transport: Optional[httpx.AsyncBaseTransport] = None

    def _url(self, query: str) -> str:
        base = self.cluster.rstrip("/")
        if "://" not in base:
            base = f"https://{base}"
        # Management commands go to a separate endpoint.
        path = "/v1/rest/mgmt" if query.lstrip().startswith(".") else "/v1/rest/query"
        return base + path

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
            "x-ms-client-request-id": f"KNB.execute;{uuid.uuid4()}",
        }

    async def execute(self, database: str, query: str) -> TabularResponse:
        log.info("Kusto execute", extra={"cluster": self.cluster, "database": database, "query_head": query[:300]})
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(
                self._url(query),
                json={"db": database, "csl": query},
                headers=self._headers(),
            )
            response.raise_for_status()
            return parse_v1_response(response.json())


@dataclass
class AppInsightsHttpClient:
    """API-key client for one Application Insights app."""

    app_id: str
    app_key: str
    endpoint: str = "https://api.applicationinsights.io"
    timeout: float = 240.0
    transport: Optional[httpx.AsyncBaseTransport] = None

    def _headers(self) -> Dict[str, str]:
        return {"x-api-key": self.app_key, "Accept": "application/json"}

    async def execute(self, database: str, query: str) -> TabularResponse:
        log.info("App Insights execute", extra={"app_id": self.app_id, "query_head": query[:300]})
        url = f"{self.endpoint.rstrip('/')}/v1/apps/{self.app_id}/query"
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(url, json={"query": query}, headers=self._headers())
            response.raise_for_status()
            return parse_app_insights_response(response.json())

    async def metadata(self) -> Dict[str, Any]:
        url = f"{self.endpoint.rstrip('/')}/v1/apps/{self.app_id}/metadata"
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.get(url, headers=self._headers())
            response.raise_for_status()
            return response.json()
