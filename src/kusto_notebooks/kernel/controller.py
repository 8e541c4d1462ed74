from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Sequence, Tuple

from kusto_notebooks.connections.storage import ADDED, ConnectionChange
from kusto_notebooks.connections.types import (
    ConnectionInfo,
    encode_connection_info,
    get_display_info,
)
from kusto_notebooks.kernel.context import ProcessContext
from kusto_notebooks.kernel.execution import Cell, Document, ExecutionTask, execute_cell
from kusto_notebooks.kernel.host import HostController
from kusto_notebooks.logging.logger import get_logger

log = get_logger("kernel.controller")

ControllerKey = Tuple[str, str]  # (document type, encoded connection)


def get_controller_id(connection: ConnectionInfo, document_type: str) -> str:
    return f"{document_type}_{encode_connection_info(connection)}"


class KernelController:
    """Executor for one (document type, connection) pair, exposed to the host as a kernel."""

    def __init__(self, document_type: str, connection: ConnectionInfo, context: ProcessContext):
        self.document_type = document_type
        self.connection = connection
        self.context = context
        self.id = get_controller_id(connection, document_type)
        self.disposed = False
        self.host_controller: Optional[HostController] = None
        self._unsubscribe = None

        display = get_display_info(connection)
        if context.host is not None:
            self.host_controller = context.host.create_controller(
                self.id, document_type, display.label, self.execute
            )
            self.host_controller.description = display.description
            self._unsubscribe = self.host_controller.on_selection_changed(self.on_selection_changed)

    @property
    def key(self) -> ControllerKey:
        return self.document_type, encode_connection_info(self.connection)

    async def on_selection_changed(self, document: Document, selected: bool) -> None:
        if not selected:
            return
        store = self.context.store
        await store.set_document_connection(document.uri, self.connection)
        await store.update_last_used(self.document_type, self.connection)
        log.info(
            "Kernel selected",
            extra={"document": document.uri, "document_type": self.document_type, "connection_id": self.connection.id},
        )

    async def execute(self, cells: Sequence[Cell], tasks: Optional[Sequence[ExecutionTask]] = None) -> None:
        """Run cells concurrently; each gets its own task and cancellation token."""
        connection = self.context.get_connection(self.connection)
        runs = []
        for i, cell in enumerate(cells):
            task = tasks[i] if tasks is not None else None
            runs.append(execute_cell(cell, connection, task))
        await asyncio.gather(*runs)

    async def execute_interactive(self, cells: Sequence[Cell], document: Document) -> None:
        log.info("Interactive execution", extra={"document": document.uri, "cells": len(cells)})
        await self.execute(cells)

    def dispose(self) -> None:
        if self.disposed:
            return
        self.disposed = True
        if self._unsubscribe is not None:
            self._unsubscribe()
        if self.host_controller is not None:
            self.host_controller.dispose()


class ControllerManager:
    """Live set of kernel controllers, keyed by (document type, encoded connection)."""

    def __init__(self, context: ProcessContext):
        self.context = context
        self._controllers: Dict[ControllerKey, KernelController] = {}
        self._unsubscribe = context.store.on_connection_changed(self._on_connection_changed)

    def register_controller(self, document_type: str, connection: ConnectionInfo) -> KernelController:
        key = (document_type, encode_connection_info(connection))
        existing = self._controllers.get(key)
        if existing is not None:
            return existing
        controller = KernelController(document_type, connection, self.context)
        self._controllers = {**self._controllers, key: controller}
        log.info(
            "Registered controller",
            extra={"document_type": document_type, "connection_id": connection.id, "controllers": len(self._controllers)},
        )
        return controller

    def get(self, document_type: str, connection: ConnectionInfo) -> Optional[KernelController]:
        return self._controllers.get((document_type, encode_connection_info(connection)))

    def controllers(self) -> List[KernelController]:
        return list(self._controllers.values())

    def controller_for_document(self, document: Document) -> Optional[KernelController]:
        info = self.context.store.get_document_connection(document.uri)
        if info is None:
            return None
        return self.register_controller(document.document_type, info)

    def _on_connection_changed(self, event: ConnectionChange) -> None:
        if event.change == ADDED:
            return
        token = encode_connection_info(event.connection)
        removed = [c for key, c in self._controllers.items() if key[1] == token]
        if not removed:
            return
        self._controllers = {k: c for k, c in self._controllers.items() if k[1] != token}
        for controller in removed:
            controller.dispose()
        log.info("Removed controllers for deleted connection", extra={"connection_id": event.connection.id, "removed": len(removed)})

    def activate(self) -> None:
        """Bring back a kernel for every connection that was last used, for every document type."""
        document_types = self.context.settings.document_types
        seen: Dict[str, ConnectionInfo] = {}
        for doc_type in document_types:
            for info in self.context.store.list_last_used(doc_type):
                seen.setdefault(encode_connection_info(info), info)
        last = self.context.store.last_used_connection()
        if last is not None:
            seen.setdefault(encode_connection_info(last), last)

        for info in seen.values():
            for doc_type in document_types:
                self.register_controller(doc_type, info)

    def dispose(self) -> None:
        self._unsubscribe()
        controllers, self._controllers = self._controllers, {}
        for controller in controllers.values():
            controller.dispose()
