from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pandas as pd

from kusto_notebooks.logging.logger import get_logger

log = get_logger("kusto.response")

PRIMARY_RESULT = "PrimaryResult"
EXTENDED_PROPERTIES = "@ExtendedProperties"


@dataclass(frozen=True)
class Column:
    name: str
    type: str
    ordinal: int


@dataclass(frozen=True)
class ResultTable:
    name: str
    columns: List[Column]
    rows: List[List[Any]]

    @staticmethod
    def from_dict(raw: Mapping[str, Any]) -> "ResultTable":
        """Accept the serialized table shape (``name``/``columns``/``rows``).

        Rows may be positional lists or mappings; mappings are laid out by column name
        when columns are known, otherwise by their own key order.
        """
        columns: List[Column] = []
        for i, c in enumerate(raw.get("columns") or []):
            columns.append(
                Column(
                    name=str(c.get("name", c.get("ColumnName", ""))),
                    type=str(c.get("type", c.get("ColumnType", ""))).lower(),
                    ordinal=int(c.get("ordinal", i)),
                )
            )
        rows = [_row_values(r, columns) for r in (raw.get("rows") or raw.get("data") or [])]
        return ResultTable(name=str(raw.get("name", "")), columns=columns, rows=rows)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "columns": [{"name": c.name, "type": c.type, "ordinal": c.ordinal} for c in self.columns],
            "rows": [list(r) for r in self.rows],
        }

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    @property
    def width(self) -> int:
        """Number of columns, falling back to the first row when metadata is absent."""
        if self.columns:
            return len(self.columns)
        return len(self.rows[0]) if self.rows else 0

    def to_frame(self) -> pd.DataFrame:
        names = self.column_names or [str(i) for i in range(self.width)]
        return pd.DataFrame(self.rows, columns=names)

    def to_records(self) -> List[Dict[str, Any]]:
        names = self.column_names
        return [{n: (r[i] if i < len(r) else None) for i, n in enumerate(names)} for r in self.rows]


def _row_values(row: Any, columns: Sequence[Column]) -> List[Any]:
    if isinstance(row, Mapping):
        if columns and all(c.name in row for c in columns):
            return [row[c.name] for c in columns]
        return list(row.values())
    return list(row)


@dataclass(frozen=True)
class TabularResponse:
    tables: List[ResultTable]
    table_names: List[str] = field(default_factory=list)
    primary_results: List[ResultTable] = field(default_factory=list)
    exceptions: List[str] = field(default_factory=list)

    @staticmethod
    def from_dict(raw: Mapping[str, Any]) -> "TabularResponse":
        tables = [ResultTable.from_dict(t) for t in raw.get("tables") or []]
        names = list(raw.get("tableNames") or [t.name for t in tables])
        primary = [ResultTable.from_dict(t) for t in raw.get("primaryResults") or []]
        return TabularResponse(
            tables=tables,
            table_names=names,
            primary_results=primary,
            exceptions=[str(e) for e in raw.get("exceptions") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tables": [t.to_dict() for t in self.tables],
            "tableNames": list(self.table_names),
            "primaryResults": [t.to_dict() for t in self.primary_results],
            "exceptions": list(self.exceptions),
        }

    def find_table(self, name: str) -> Optional[ResultTable]:
        for t in self.tables:
            if t.name == name:
                return t
        return None

    @property
    def primary(self) -> Optional[ResultTable]:
        return self.primary_results[0] if self.primary_results else None


def normalize_response(response: TabularResponse) -> TabularResponse:
    """Reconcile ``primary_results`` with ``tables``.

    When the engine did not separate the primary output, the ``PrimaryResult`` tables
    become the primary results. Either way they are dropped from ``tables`` and
    ``table_names`` so the payload carries them once.
    """
    primary = list(response.primary_results)
    if not primary:
        primary = [t for t in response.tables if t.name == PRIMARY_RESULT]
    tables = [t for t in response.tables if t.name != PRIMARY_RESULT]
    names = [n for n in response.table_names if n != PRIMARY_RESULT]
    if len(tables) != len(response.tables):
        log.debug("Moved PrimaryResult out of tables", extra={"primary_tables": len(primary)})
    return replace(response, tables=tables, table_names=names, primary_results=primary)


def get_row_count_status(response: TabularResponse) -> Optional[str]:
    """Status text for a cell, e.g. ``"42 records"``; ``None`` when there is nothing to count."""
    table = response.primary
    if table is None or not table.rows:
        return None
    return f"{len(table.rows)} records"
