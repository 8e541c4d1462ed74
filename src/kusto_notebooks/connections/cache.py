from __future__ import annotations

from typing import Dict, Optional

from kusto_notebooks.connections.schema import EngineSchema


class SchemaCache:
    """One schema per encoded connection; entries only leave on explicit invalidation."""

    def __init__(self) -> None:
        self._entries: Dict[str, EngineSchema] = {}

    def get(self, token: str) -> Optional[EngineSchema]:
        return self._entries.get(token)

    def put(self, token: str, schema: EngineSchema) -> None:
        self._entries = {**self._entries, token: schema}

    def invalidate(self, token: str) -> None:
        if token in self._entries:
            self._entries = {k: v for k, v in self._entries.items() if k != token}

    def clear(self) -> None:
        self._entries = {}

    def __len__(self) -> int:
        return len(self._entries)
