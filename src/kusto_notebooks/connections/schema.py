from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

from kusto_notebooks.kusto.response import TabularResponse

SHOW_SCHEMA_COMMAND = ".show databases schema as json"


@dataclass(frozen=True)
class ColumnSchema:
    name: str
    type: str


@dataclass(frozen=True)
class TableSchema:
    name: str
    columns: List[ColumnSchema] = field(default_factory=list)


@dataclass(frozen=True)
class DatabaseSchema:
    name: str
    tables: List[TableSchema] = field(default_factory=list)


@dataclass(frozen=True)
class EngineSchema:
    cluster: str
    databases: List[DatabaseSchema] = field(default_factory=list)

    def database(self, name: str) -> DatabaseSchema:
        for db in self.databases:
            if db.name.lower() == (name or "").lower():
                return db
        raise KeyError(name)


def _columns(raw: Any) -> List[ColumnSchema]:
    out: List[ColumnSchema] = []
    for c in raw or []:
        out.append(ColumnSchema(name=str(c.get("Name", c.get("name", ""))), type=str(c.get("CslType", c.get("type", "")))))
    return out


def parse_cluster_schema(cluster: str, payload: Mapping[str, Any]) -> EngineSchema:
    """Parse the JSON document returned by ``.show databases schema as json``.

    Shape: ``{"Databases": {"<db>": {"Name": ..., "Tables": {"<t>": {"OrderedColumns": [...]}}}}}``
    """
    databases: List[DatabaseSchema] = []
    for db_name, db in (payload.get("Databases") or {}).items():
        tables = [
            TableSchema(name=str(t.get("Name", t_name)), columns=_columns(t.get("OrderedColumns")))
            for t_name, t in (db.get("Tables") or {}).items()
        ]
        databases.append(DatabaseSchema(name=str(db.get("Name", db_name)), tables=tables))
    return EngineSchema(cluster=cluster, databases=databases)


def schema_from_response(cluster: str, response: TabularResponse) -> EngineSchema:
    """The schema command returns one row whose first cell holds the JSON document."""
    table = response.primary or (response.tables[0] if response.tables else None)
    if table is None or not table.rows:
        return EngineSchema(cluster=cluster)
    cell = table.rows[0][0]
    payload: Dict[str, Any] = json.loads(cell) if isinstance(cell, str) else dict(cell)
    return parse_cluster_schema(cluster, payload)


def parse_app_insights_metadata(app_id: str, payload: Mapping[str, Any]) -> EngineSchema:
    """Application Insights ``/metadata``: ``{"tables": [{"name", "columns": [{"name", "type"}]}]}``."""
    tables = [
        TableSchema(name=str(t.get("name", "")), columns=_columns(t.get("columns")))
        for t in payload.get("tables") or []
    ]
    return EngineSchema(cluster=app_id, databases=[DatabaseSchema(name=app_id, tables=tables)])
