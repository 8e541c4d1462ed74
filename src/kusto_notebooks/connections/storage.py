from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from kusto_notebooks.connections.types import (
    ConnectionInfo,
    connection_info_from_dict,
    encode_connection_info,
)
from kusto_notebooks.logging.logger import get_logger

log = get_logger("connections.storage")

ADDED = "added"
REMOVED = "removed"
LAST_USED_CONNECTION = "lastUsedConnection"


@dataclass(frozen=True)
class ConnectionChange:
    connection: ConnectionInfo
    change: str  # "added" | "removed"


ChangeListener = Callable[[ConnectionChange], None]


class ConnectionStore:
    """Persisted connection set, keyed by encoded connection token.

    Also records which connection each document and each document type last used.
    With ``path=None`` the store lives in memory only. Every mutation writes a whole
    new state (dict copy + file replace) so readers never see a half-applied change.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path) if path else None
        self._state: Dict[str, Any] = self._load()
        self._listeners: List[ChangeListener] = []

    # -----------------------------
    # Persistence
    # -----------------------------
    def _load(self) -> Dict[str, Any]:
        empty: Dict[str, Any] = {"connections": {}, "lastUsed": {}, "documents": {}}
        if not self.path or not self.path.exists():
            return empty
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            log.exception("Could not read connection store", extra={"path": str(self.path)})
            return empty
        for k in empty:
            raw.setdefault(k, {})
        return raw

    def _commit(self, state: Dict[str, Any]) -> None:
        self._state = state
        if not self.path:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(state, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp, self.path)

    def _copy(self) -> Dict[str, Any]:
        return json.loads(json.dumps(self._state))

    # -----------------------------
    # Change notifications
    # -----------------------------
    def on_connection_changed(self, listener: ChangeListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, event: ConnectionChange) -> None:
        for listener in list(self._listeners):
            listener(event)

    # -----------------------------
    # Connection set
    # -----------------------------
    async def save(self, token: str, info: ConnectionInfo) -> None:
        state = self._copy()
        state["connections"][token] = info.to_dict()
        self._commit(state)
        log.info("Saved connection", extra={"connection_id": info.id, "type": info.type})
        self._notify(ConnectionChange(connection=info, change=ADDED))

    async def delete(self, token: str, info: ConnectionInfo) -> None:
        if token not in self._state["connections"]:
            log.debug("Delete of unknown connection ignored", extra={"connection_id": info.id})
            return
        state = self._copy()
        del state["connections"][token]
        for doc_type, tokens in state["lastUsed"].items():
            state["lastUsed"][doc_type] = [t for t in tokens if t != token]
        last = state.get(LAST_USED_CONNECTION)
        if last and self._token_of(last) == token:
            del state[LAST_USED_CONNECTION]
        state["documents"] = {
            uri: raw for uri, raw in state["documents"].items() if self._token_of(raw) != token
        }
        self._commit(state)
        log.info("Deleted connection", extra={"connection_id": info.id, "type": info.type})
        self._notify(ConnectionChange(connection=info, change=REMOVED))

    def contains(self, token: str) -> bool:
        return token in self._state["connections"]

    def list_connections(self) -> List[ConnectionInfo]:
        return [c for c in (self._parse(v) for v in self._state["connections"].values()) if c]

    # -----------------------------
    # Last used / per-document
    # -----------------------------
    async def update_last_used(self, document_type: str, info: ConnectionInfo) -> None:
        token = encode_connection_info(info)
        state = self._copy()
        tokens = [t for t in state["lastUsed"].get(document_type, []) if t != token]
        state["lastUsed"][document_type] = [token] + tokens
        added = token not in state["connections"]
        if added:
            state["connections"][token] = info.to_dict()
        state[LAST_USED_CONNECTION] = info.to_dict()
        self._commit(state)
        if added:
            log.info("Saved connection on first use", extra={"connection_id": info.id, "type": info.type})
            self._notify(ConnectionChange(connection=info, change=ADDED))

    def list_last_used(self, document_type: str) -> List[ConnectionInfo]:
        out: List[ConnectionInfo] = []
        for token in self._state["lastUsed"].get(document_type, []):
            raw = self._state["connections"].get(token)
            info = self._parse(raw) if raw else None
            if info:
                out.append(info)
        return out

    def last_used_connection(self) -> Optional[ConnectionInfo]:
        raw = self._state.get(LAST_USED_CONNECTION)
        return self._parse(raw) if raw else None

    async def set_document_connection(self, document_uri: str, info: ConnectionInfo) -> None:
        state = self._copy()
        state["documents"][document_uri.lower()] = info.to_dict()
        self._commit(state)

    def get_document_connection(self, document_uri: str) -> Optional[ConnectionInfo]:
        raw = self._state["documents"].get(document_uri.lower())
        return self._parse(raw) if raw else None

    @classmethod
    def _token_of(cls, raw: Dict[str, Any]) -> Optional[str]:
        info = cls._parse(raw)
        return encode_connection_info(info) if info else None

    @staticmethod
    def _parse(raw: Dict[str, Any]) -> Optional[ConnectionInfo]:
        try:
            return connection_info_from_dict(raw)
        except ValueError as e:
            log.warning("Skipping unreadable stored connection", extra={"error": str(e)})
            return None
